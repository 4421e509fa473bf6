"""Classify, resolve, and persist commitments for one inbound message."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
import logging
from typing import Literal

from commitments.classifier import Detection, classify
from commitments.deadline_resolver import DeadlinePolicy, resolve_deadline
from commitments.repository import CommitmentContext, CommitmentRepository
from config import settings
from models import Commitment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageEvent:
    """Inbound message as delivered by the messaging service."""

    id: str
    channel_id: str
    text: str | None
    timestamp: datetime
    case_id: str | None = None
    sender_id: str | None = None
    sender_name: str | None = None
    sender_role: str | None = None
    is_from_client: bool | None = None


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of processing one message."""

    status: Literal["created", "duplicate", "no_commitment", "not_support_sender"]
    detection: Detection | None = None
    commitment: Commitment | None = None


def is_support_message(event: MessageEvent, support_roles: list[str] | None = None) -> bool:
    """Return True when the message was written by the support side."""
    roles = support_roles if support_roles is not None else settings.commitments.support_roles
    role = (event.sender_role or "").strip().lower()
    if role and role in roles:
        return True
    return event.is_from_client is False


class CommitmentPipeline:
    """Run classifier, resolver, and idempotent create for messages."""

    def __init__(
        self,
        repository: CommitmentRepository,
        *,
        tz: tzinfo | None = None,
        policy: DeadlinePolicy | None = None,
        support_roles: list[str] | None = None,
    ) -> None:
        self._repository = repository
        self._tz = tz
        self._policy = policy
        self._support_roles = support_roles

    def process(self, event: MessageEvent) -> PipelineResult:
        """Process one message event; duplicates return the existing record."""
        if not is_support_message(event, self._support_roles):
            return PipelineResult(status="not_support_sender")
        detection = classify(event.text)
        if not detection.has_commitment:
            return PipelineResult(status="no_commitment", detection=detection)
        resolved = resolve_deadline(detection, event.timestamp, tz=self._tz, policy=self._policy)
        context = CommitmentContext(
            channel_id=event.channel_id,
            created_at=event.timestamp,
            case_id=event.case_id,
            agent_id=event.sender_id,
            agent_name=event.sender_name,
            sender_role=event.sender_role,
            message_text=event.text,
        )
        result = self._repository.create(event.id, context, detection, resolved)
        return PipelineResult(
            status="created" if result.created else "duplicate",
            detection=detection,
            commitment=result.commitment,
        )


__all__ = ["CommitmentPipeline", "MessageEvent", "PipelineResult", "is_support_message"]
