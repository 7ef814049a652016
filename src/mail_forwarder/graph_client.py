"""Microsoft Graph mail client."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from requests import Response, Session
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from .config import GRAPH_URL
from .errors import GraphApiError
from .logging_utils import null_logger

LEGACY_ID_TYPE = "ewsId"
NATIVE_ID_TYPE = "restId"


def make_retry_session(user_agent: str) -> Session:
    """Create requests session with retry/backoff defaults.

    Only GET is retried: create, send and move are not idempotent.
    """
    session = Session()
    session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
    retry = Retry(
        total=3,
        backoff_factor=0.6,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=frozenset({"GET"}),
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def graph_error_from_response(response: Response, action: str) -> GraphApiError:
    """Translate a non-2xx Graph response into a GraphApiError."""
    try:
        body: Any = response.json()
    except ValueError:
        body = {"raw": response.text}
    code: str | None = None
    message = response.text or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        code = error.get("code") or None
        message = error.get("message") or message
    return GraphApiError(
        f"{action} failed ({response.status_code}): {message}",
        status_code=response.status_code,
        code=code,
        body=body,
    )


class GraphMailClient:
    """Thin wrapper over the Graph mail endpoints used for forwarding.

    Targets ``/me`` for delegated tokens, or ``/users/{mailbox}`` when a
    mailbox is given (required for app-only tokens).
    """

    def __init__(
        self,
        *,
        session: Session,
        token: str,
        timeout: float,
        base_url: str = GRAPH_URL,
        mailbox: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._session = session
        self._token = token
        self._timeout = timeout
        self._logger = logger or null_logger()
        base = base_url.rstrip("/")
        if mailbox:
            self._root = f"{base}/users/{quote(mailbox.strip().lower(), safe='')}"
        else:
            self._root = f"{base}/me"

    @property
    def root(self) -> str:
        return self._root

    def __enter__(self) -> GraphMailClient:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def _decode(self, response: Response, action: str) -> Any:
        if response.status_code >= 400:
            raise graph_error_from_response(response, action)
        if response.status_code in (202, 204):
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    def _get(self, path: str, *, params: dict[str, Any] | None, action: str) -> Any:
        url = f"{self._root}{path}"
        self._logger.debug("GET %s params=%s", url, params)
        try:
            response = self._session.get(
                url, params=params, headers=self._headers(), timeout=self._timeout
            )
        except RequestException as exc:
            raise GraphApiError(f"{action} failed: {exc}") from exc
        return self._decode(response, action)

    def _post(self, path: str, *, payload: dict[str, Any], action: str) -> Any:
        url = f"{self._root}{path}"
        self._logger.debug("POST %s", url)
        try:
            response = self._session.post(
                url, json=payload, headers=self._headers(), timeout=self._timeout
            )
        except RequestException as exc:
            raise GraphApiError(f"{action} failed: {exc}") from exc
        return self._decode(response, action)

    def list_messages(
        self, filter_expression: str, *, select: Sequence[str], top: int
    ) -> list[dict[str, Any]]:
        params = {
            "$filter": filter_expression,
            "$select": ",".join(select),
            "$top": int(top),
        }
        payload = self._get("/messages", params=params, action="list messages")
        values = payload.get("value", []) if isinstance(payload, dict) else []
        return [item for item in values if isinstance(item, dict)]

    def get_message(self, message_id: str, *, select: Sequence[str]) -> dict[str, Any]:
        payload = self._get(
            f"/messages/{message_id}",
            params={"$select": ",".join(select)},
            action="get message",
        )
        return payload if isinstance(payload, dict) else {}

    def list_attachments(self, message_id: str) -> list[dict[str, Any]]:
        payload = self._get(
            f"/messages/{message_id}/attachments", params=None, action="list attachments"
        )
        values = payload.get("value", []) if isinstance(payload, dict) else []
        return [item for item in values if isinstance(item, dict)]

    def create_message(self, payload: dict[str, Any]) -> dict[str, Any]:
        created = self._post("/messages", payload=payload, action="create draft")
        return created if isinstance(created, dict) else {}

    def create_attachment(self, message_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        created = self._post(
            f"/messages/{message_id}/attachments", payload=payload, action="add attachment"
        )
        return created if isinstance(created, dict) else {}

    def send_draft(self, message_id: str) -> None:
        self._post(f"/messages/{message_id}/send", payload={}, action="send draft")

    def move_message(self, message_id: str, destination_id: str) -> dict[str, Any]:
        moved = self._post(
            f"/messages/{message_id}/move",
            payload={"destinationId": destination_id},
            action="move message",
        )
        return moved if isinstance(moved, dict) else {}

    def translate_legacy_id(self, legacy_id: str) -> str | None:
        payload = self._post(
            "/translateExchangeIds",
            payload={
                "inputIds": [legacy_id],
                "sourceIdType": LEGACY_ID_TYPE,
                "targetIdType": NATIVE_ID_TYPE,
            },
            action="translate item id",
        )
        for item in payload.get("value", []) if isinstance(payload, dict) else []:
            target = item.get("targetId") if isinstance(item, dict) else None
            if isinstance(target, str) and target:
                return target
        return None
