"""Backfill commitments for support messages the inline hook missed.

Every message reconciliation runs detection over is marked as scanned, so
messages without a promise drop out of later runs and older history in the
window is reached on the next pass.
"""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Callable, Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from commitments.pipeline import CommitmentPipeline, MessageEvent
from commitments.repository import CommitmentRepository
from config import settings
from models import Commitment, CommitmentMessageScan, SupportMessage
from time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class MessageHistory(Protocol):
    """Read access to historical inbox messages."""

    def list_untracked_support_messages(
        self,
        start: datetime,
        end: datetime,
        *,
        support_roles: list[str],
        limit: int,
    ) -> list[MessageEvent]:
        """Return unscanned support-side messages in [start, end) with no commitment, newest first."""

    def mark_scanned(self, outcomes: dict[str, str], scanned_at: datetime) -> None:
        """Record that detection ran over the given message ids."""


class SqlMessageHistory:
    """Message history backed by the shared support_messages table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def list_untracked_support_messages(
        self,
        start: datetime,
        end: datetime,
        *,
        support_roles: list[str],
        limit: int,
    ) -> list[MessageEvent]:
        roles = [role.strip().lower() for role in support_roles]
        query = (
            select(SupportMessage)
            .outerjoin(Commitment, Commitment.source_message_id == SupportMessage.id)
            .outerjoin(
                CommitmentMessageScan,
                CommitmentMessageScan.message_id == SupportMessage.id,
            )
            .where(
                Commitment.id.is_(None),
                CommitmentMessageScan.message_id.is_(None),
                SupportMessage.text_content.is_not(None),
                SupportMessage.created_at >= ensure_utc(start),
                SupportMessage.created_at < ensure_utc(end),
                or_(
                    func.lower(SupportMessage.sender_role).in_(roles),
                    SupportMessage.is_from_client.is_(False),
                ),
            )
            .order_by(SupportMessage.created_at.desc())
            .limit(limit)
        )
        with closing(self._session_factory()) as session:
            rows = session.execute(query).scalars().all()
            return [_to_event(row) for row in rows]

    def mark_scanned(self, outcomes: dict[str, str], scanned_at: datetime) -> None:
        if not outcomes:
            return
        rows = [
            {"message_id": message_id, "outcome": outcome, "scanned_at": scanned_at}
            for message_id, outcome in outcomes.items()
        ]
        with closing(self._session_factory()) as session:
            try:
                session.execute(_insert_scans_ignoring_duplicates(session, rows))
                session.commit()
            except Exception:
                session.rollback()
                raise


def _insert_scans_ignoring_duplicates(session: Session, rows: list[dict[str, object]]):
    """Build an INSERT of scan markers that skips messages already marked."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        statement = postgresql.insert(CommitmentMessageScan).values(rows)
    elif dialect == "sqlite":
        statement = sqlite.insert(CommitmentMessageScan).values(rows)
    else:
        raise RuntimeError(f"Unsupported database dialect for commitments: {dialect}")
    return statement.on_conflict_do_nothing(index_elements=["message_id"])


def _to_event(row: SupportMessage) -> MessageEvent:
    return MessageEvent(
        id=row.id,
        channel_id=row.channel_id,
        text=row.text_content,
        timestamp=ensure_utc(row.created_at),
        case_id=row.case_id,
        sender_id=row.sender_id,
        sender_name=row.sender_name,
        sender_role=row.sender_role,
        is_from_client=row.is_from_client,
    )


@dataclass(frozen=True)
class ReconciliationResult:
    """Counts describing one reconciliation run."""

    scanned: int
    created: int
    duplicates: int
    no_commitment: int
    failed: int

    def as_dict(self) -> dict[str, int]:
        return {
            "scanned": self.scanned,
            "created": self.created,
            "duplicates": self.duplicates,
            "no_commitment": self.no_commitment,
            "failed": self.failed,
        }


class CommitmentReconciler:
    """Re-run detection over a window of historical messages."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        history: MessageHistory | None = None,
        pipeline: CommitmentPipeline | None = None,
    ) -> None:
        self._history = history or SqlMessageHistory(session_factory)
        self._pipeline = pipeline or CommitmentPipeline(CommitmentRepository(session_factory))

    def reconcile(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        now: datetime | None = None,
        limit: int | None = None,
    ) -> ReconciliationResult:
        """Backfill commitments for untracked support messages in [start, end).

        Defaults to the configured trailing window ending now. Safe to repeat
        over overlapping windows.
        """
        window_end = ensure_utc(end or now or utc_now())
        window_start = ensure_utc(
            start
            or window_end - timedelta(hours=settings.commitments.reconciliation_window_hours)
        )
        if window_start >= window_end:
            raise ValueError("Reconciliation window start must be before end.")
        batch_size = limit or settings.commitments.reconciliation_batch_size
        messages = self._history.list_untracked_support_messages(
            window_start,
            window_end,
            support_roles=settings.commitments.support_roles,
            limit=batch_size,
        )
        created = duplicates = no_commitment = failed = 0
        # Failed messages stay unmarked and are retried on the next run.
        scanned: dict[str, str] = {}
        for message in messages:
            try:
                outcome = self._pipeline.process(message)
            except Exception:
                failed += 1
                logger.exception(
                    "commitment reconciliation failed for message: message_id=%s",
                    message.id,
                )
                continue
            scanned[message.id] = outcome.status
            if outcome.status == "created":
                created += 1
            elif outcome.status == "duplicate":
                duplicates += 1
            else:
                no_commitment += 1
        self._history.mark_scanned(scanned, ensure_utc(now or utc_now()))
        result = ReconciliationResult(
            scanned=len(messages),
            created=created,
            duplicates=duplicates,
            no_commitment=no_commitment,
            failed=failed,
        )
        logger.info(
            "commitment reconciliation completed: start=%s end=%s scanned=%s created=%s "
            "duplicates=%s no_commitment=%s failed=%s",
            window_start.isoformat(),
            window_end.isoformat(),
            result.scanned,
            created,
            duplicates,
            no_commitment,
            failed,
        )
        return result


__all__ = [
    "CommitmentReconciler",
    "MessageHistory",
    "ReconciliationResult",
    "SqlMessageHistory",
]
