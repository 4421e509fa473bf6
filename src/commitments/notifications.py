"""Commitment notification payloads and delivery adapters."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import Callable, Iterable, Protocol
from uuid import UUID

import httpx

from config import settings
from models import Commitment
from time_utils import ensure_utc, to_local

logger = logging.getLogger(__name__)


class CommitmentNotificationType(str, Enum):
    """Supported commitment notification types."""

    ESCALATION = "ESCALATION"
    REMINDER = "REMINDER"


@dataclass(frozen=True)
class CommitmentNotification:
    """Payload describing a commitment notification to be delivered."""

    commitment_id: UUID
    notification_type: CommitmentNotificationType
    message: str
    channel_id: str
    status: str
    priority: str
    escalation_level: int
    deadline: datetime
    assignee_id: str | None = None
    assignee_name: str | None = None
    case_id: str | None = None

    def to_payload(self) -> dict[str, object]:
        """Return a JSON-serializable payload."""
        payload = asdict(self)
        payload["commitment_id"] = str(self.commitment_id)
        payload["notification_type"] = self.notification_type.value
        payload["deadline"] = ensure_utc(self.deadline).isoformat()
        return payload


class CommitmentNotifier(Protocol):
    """Delivery channel for commitment notifications."""

    def send(self, notification: CommitmentNotification) -> None:
        """Deliver one notification or raise on failure."""


def build_escalation_message(commitment: Commitment) -> str:
    """Build a human-readable escalation message."""
    who = commitment.assignee_name or commitment.assignee_id or "unassigned"
    local_deadline = to_local(commitment.deadline).strftime("%Y-%m-%d %H:%M")
    return (
        f'Escalation level {commitment.escalation_level}: "{commitment.commitment_text}" '
        f"promised by {who} was due {local_deadline} and is still open."
    )


def build_reminder_message(commitment: Commitment) -> str:
    """Build a human-readable reminder message."""
    local_deadline = to_local(commitment.deadline).strftime("%Y-%m-%d %H:%M")
    return f'Reminder: "{commitment.commitment_text}" is due by {local_deadline}.'


def build_notification(
    commitment: Commitment,
    notification_type: CommitmentNotificationType,
) -> CommitmentNotification:
    """Build a notification from a commitment snapshot."""
    if notification_type is CommitmentNotificationType.ESCALATION:
        message = build_escalation_message(commitment)
    else:
        message = build_reminder_message(commitment)
    return CommitmentNotification(
        commitment_id=commitment.id,
        notification_type=notification_type,
        message=message,
        channel_id=commitment.channel_id,
        status=commitment.status,
        priority=commitment.priority,
        escalation_level=commitment.escalation_level,
        deadline=ensure_utc(commitment.deadline),
        assignee_id=commitment.assignee_id,
        assignee_name=commitment.assignee_name,
        case_id=commitment.case_id,
    )


class LoggingCommitmentNotifier:
    """Notifier that writes notifications to the application log."""

    def send(self, notification: CommitmentNotification) -> None:
        level = (
            logging.WARNING
            if notification.notification_type is CommitmentNotificationType.ESCALATION
            else logging.INFO
        )
        logger.log(
            level,
            "commitment notification: type=%s commitment_id=%s channel_id=%s message=%s",
            notification.notification_type.value,
            notification.commitment_id,
            notification.channel_id,
            notification.message,
        )


class WebhookCommitmentNotifier:
    """Notifier that POSTs notifications as JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        client_factory: Callable[..., httpx.Client] = httpx.Client,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client_factory = client_factory

    def send(self, notification: CommitmentNotification) -> None:
        with self._client_factory(timeout=self._timeout) as client:
            response = client.post(self._url, json=notification.to_payload())
            response.raise_for_status()


def build_default_notifier() -> CommitmentNotifier:
    """Return the notifier selected by configuration."""
    if settings.notifications.webhook_url:
        return WebhookCommitmentNotifier(
            settings.notifications.webhook_url,
            timeout=settings.notifications.timeout_seconds,
        )
    return LoggingCommitmentNotifier()


def dispatch_notifications(
    notifier: CommitmentNotifier,
    notifications: Iterable[CommitmentNotification],
) -> tuple[int, int]:
    """Send notifications without letting delivery failures propagate.

    Returns a ``(sent, failed)`` tuple.
    """
    sent = 0
    failed = 0
    for notification in notifications:
        try:
            notifier.send(notification)
        except Exception:
            failed += 1
            logger.exception(
                "commitment notification failed: type=%s commitment_id=%s",
                notification.notification_type.value,
                notification.commitment_id,
            )
            continue
        sent += 1
    return sent, failed


__all__ = [
    "CommitmentNotification",
    "CommitmentNotificationType",
    "CommitmentNotifier",
    "LoggingCommitmentNotifier",
    "WebhookCommitmentNotifier",
    "build_default_notifier",
    "build_notification",
    "dispatch_notifications",
]
