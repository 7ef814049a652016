"""Credential helpers: bearer header parsing and app-only token acquisition."""

from __future__ import annotations

from collections.abc import Mapping

import msal

from .errors import AuthError

BEARER_PREFIX = "Bearer "
GRAPH_SCOPE = ["https://graph.microsoft.com/.default"]
AUTHORITY_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}"


def header_value(headers: Mapping[str, str] | None, name: str) -> str:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for key, value in (headers or {}).items():
        if str(key).lower() == wanted:
            return str(value or "")
    return ""


def extract_bearer_token(headers: Mapping[str, str] | None) -> str:
    """Return the token from an ``Authorization: Bearer`` header or raise AuthError."""
    auth_header = header_value(headers, "Authorization")
    if not auth_header.startswith(BEARER_PREFIX):
        raise AuthError("Unauthorized: No token provided")
    token = auth_header[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthError("Unauthorized: No token provided")
    return token


def acquire_app_token(*, tenant_id: str, client_id: str, client_secret: str) -> str:
    """Run the OAuth2 client-credentials flow and return an access token."""
    if not (tenant_id and client_id and client_secret):
        raise AuthError("TENANT_ID, CLIENT_ID and CLIENT_SECRET are required for app-only auth.")
    app = msal.ConfidentialClientApplication(
        client_id=client_id,
        client_credential=client_secret,
        authority=AUTHORITY_TEMPLATE.format(tenant_id=tenant_id),
    )
    result = app.acquire_token_for_client(scopes=GRAPH_SCOPE)
    if "access_token" not in result:
        detail = result.get("error_description") or result.get("error") or result
        raise AuthError(f"Token acquisition failed: {detail}")
    return str(result["access_token"])
