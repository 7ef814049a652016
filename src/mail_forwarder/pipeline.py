"""Core orchestration pipeline."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .config import ForwarderConfig
from .forwarder import forward_message
from .graph_client import GraphMailClient, make_retry_session
from .logging_utils import null_logger
from .models import ForwardResult, MailClient, SearchCriteria
from .resolver import resolve_message_id
from .strategy import ResolutionStrategy, get_strategy

ClientFactory = Callable[[str, ForwarderConfig], MailClient]


@dataclass(frozen=True)
class ForwardOutcome:
    """Message id that was resolved and what forwarding it produced."""

    message_id: str
    result: ForwardResult | None = None


def build_graph_client(
    token: str, config: ForwarderConfig, *, logger: logging.Logger | None = None
) -> GraphMailClient:
    """Build the concrete Graph client for a token."""
    return GraphMailClient(
        session=make_retry_session(config.user_agent),
        token=token,
        timeout=config.request_timeout,
        base_url=config.graph_url,
        mailbox=config.mailbox,
        logger=logger,
    )


def forward_by_criteria(
    criteria: SearchCriteria,
    *,
    client: MailClient,
    strategy: ResolutionStrategy,
    archive_folder: str,
    resolve_only: bool = False,
    show_progress: bool = False,
    logger: logging.Logger | None = None,
) -> ForwardOutcome:
    """Resolve the message the caller means, then forward and archive it."""
    logger = logger or null_logger()
    logger.info("Attempting message resolution. Criteria: %s", criteria.describe())
    message_id = resolve_message_id(criteria, client, strategy=strategy, logger=logger)
    logger.info('Resolved message id "%s".', message_id)
    if resolve_only:
        return ForwardOutcome(message_id=message_id)

    result = forward_message(
        client,
        message_id,
        archive_folder=archive_folder,
        show_progress=show_progress,
        logger=logger,
    )
    return ForwardOutcome(message_id=message_id, result=result)


def run_pipeline(
    config: ForwarderConfig,
    criteria: SearchCriteria,
    *,
    token: str,
    resolve_only: bool = False,
    logger: logging.Logger | None = None,
) -> ForwardOutcome:
    """Build concrete dependencies and execute resolution plus forwarding."""
    with build_graph_client(token, config, logger=logger) as client:
        return forward_by_criteria(
            criteria,
            client=client,
            strategy=get_strategy(config.strategy),
            archive_folder=config.archive_folder,
            resolve_only=resolve_only,
            show_progress=config.show_progress,
            logger=logger,
        )
