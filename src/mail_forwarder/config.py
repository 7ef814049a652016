"""Runtime configuration model."""

from __future__ import annotations

from dataclasses import dataclass

from .validation import validate_runtime_constraints

GRAPH_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_USER_AGENT = "MailForwarder/1.0"
DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_ARCHIVE_FOLDER = "deleteditems"
DEFAULT_STRATEGY = "auto"


@dataclass(frozen=True)
class ForwarderConfig:
    """Validated configuration used by the forwarding pipeline."""

    graph_url: str = GRAPH_URL
    mailbox: str | None = None
    strategy: str = DEFAULT_STRATEGY
    archive_folder: str = DEFAULT_ARCHIVE_FOLDER
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    show_progress: bool = False

    def __post_init__(self) -> None:
        validate_runtime_constraints(
            graph_url=self.graph_url,
            mailbox=self.mailbox,
            strategy=self.strategy,
            archive_folder=self.archive_folder,
            request_timeout=self.request_timeout,
        )
