"""Reminder dispatch for commitments approaching their deadline."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from commitments.constants import OPEN_STATUSES
from commitments.notifications import (
    CommitmentNotification,
    CommitmentNotificationType,
    CommitmentNotifier,
    build_default_notifier,
    build_notification,
    dispatch_notifications,
)
from config import settings
from models import Commitment
from time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderDispatchResult:
    """Counts describing one reminder dispatch run."""

    claimed: int
    sent: int
    failed: int

    def as_dict(self) -> dict[str, int]:
        return {"claimed": self.claimed, "sent": self.sent, "failed": self.failed}


class ReminderDispatcher:
    """Claim due reminders and send them after the claim commits."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        notifier: CommitmentNotifier | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier
        self._batch_size = batch_size

    def dispatch_due(self, now: datetime | None = None) -> ReminderDispatchResult:
        """Send one reminder per open commitment whose reminder_at has passed."""
        timestamp = ensure_utc(now or utc_now())
        batch_size = self._batch_size or settings.commitments.reminder_batch_size
        pending: list[CommitmentNotification] = []

        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                candidates = (
                    session.execute(
                        select(Commitment)
                        .where(
                            Commitment.status.in_(OPEN_STATUSES),
                            Commitment.reminder_at <= timestamp,
                            Commitment.reminder_sent_at.is_(None),
                        )
                        .order_by(Commitment.reminder_at.asc())
                        .limit(batch_size)
                    )
                    .scalars()
                    .all()
                )
                for commitment in candidates:
                    result = session.execute(
                        update(Commitment)
                        .where(
                            Commitment.id == commitment.id,
                            Commitment.reminder_sent_at.is_(None),
                            Commitment.status.in_(OPEN_STATUSES),
                        )
                        .values(reminder_sent_at=timestamp)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        continue
                    pending.append(
                        build_notification(commitment, CommitmentNotificationType.REMINDER)
                    )
                session.commit()
            except Exception:
                session.rollback()
                raise

        notifier = self._notifier or build_default_notifier()
        sent, failed = dispatch_notifications(notifier, pending)
        logger.info(
            "commitment reminders completed: claimed=%s sent=%s failed=%s",
            len(pending),
            sent,
            failed,
        )
        return ReminderDispatchResult(claimed=len(pending), sent=sent, failed=failed)


__all__ = ["ReminderDispatchResult", "ReminderDispatcher"]
