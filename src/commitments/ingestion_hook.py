"""Message-send hook that records commitments inline without blocking delivery."""

from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.orm import Session

from commitments.pipeline import CommitmentPipeline, MessageEvent, PipelineResult
from commitments.repository import CommitmentRepository

LOGGER = logging.getLogger(__name__)


def create_message_commitment_hook(
    session_factory: Callable[[], Session],
    *,
    pipeline: CommitmentPipeline | None = None,
) -> Callable[[MessageEvent], PipelineResult | None]:
    """Create a hook callback for the messaging service's send path.

    Args:
        session_factory: Factory for creating database sessions
        pipeline: Optional preconfigured pipeline (defaults to the repository-backed one)

    Returns:
        A callback that processes one message event and never raises
    """
    resolved_pipeline = pipeline or CommitmentPipeline(CommitmentRepository(session_factory))

    def message_commitment_hook(event: MessageEvent) -> PipelineResult | None:
        """Detect and persist a commitment for one message event.

        Failures are logged and reported as ``None``; the reconciler picks the
        message up on its next run.
        """
        try:
            result = resolved_pipeline.process(event)
        except Exception:
            LOGGER.exception(
                "Commitment hook failed: message_id=%s channel_id=%s",
                event.id,
                event.channel_id,
            )
            return None
        if result.status == "created" and result.commitment is not None:
            LOGGER.info(
                "Commitment recorded from message: message_id=%s commitment_id=%s",
                event.id,
                result.commitment.id,
            )
        return result

    return message_commitment_hook


__all__ = ["create_message_commitment_hook"]
