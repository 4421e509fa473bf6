"""Periodic escalation sweep for overdue commitments.

One sweep performs two passes:

1. Promote ``active`` commitments whose deadline has passed to ``overdue``.
2. For ``overdue``/``escalated`` commitments, raise ``escalation_level`` by one
   once a full grace period has passed since the last step on the ladder
   (promotion counts as the first step). Commitments promoted in the same pass
   are never stepped. The grace period scales with the original promise window
   (``deadline - created_at``) and has a configured floor. When the level
   reaches the escalation threshold an ``overdue`` commitment becomes
   ``escalated``.

Every write is a single-row conditional update guarded by the state that was
read, so overlapping sweeps cannot double-apply a step. Notifications are sent
only after the sweep's transaction commits and never fail the sweep.
"""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Callable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from commitments.constants import ACTOR_SYSTEM, ESCALATABLE_STATUSES
from commitments.notifications import (
    CommitmentNotification,
    CommitmentNotificationType,
    CommitmentNotifier,
    build_default_notifier,
    build_notification,
    dispatch_notifications,
)
from commitments.state_transition_repository import (
    CommitmentStateTransitionCreateInput,
    create_transition_record,
)
from config import settings
from models import Commitment
from time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscalationPolicy:
    """Grace and threshold settings for escalation steps."""

    grace_multiplier: float = 0.5
    min_grace_minutes: int = 15
    level_threshold: int = 1
    batch_size: int = 500

    @classmethod
    def from_settings(cls) -> "EscalationPolicy":
        """Build a policy from the global settings object."""
        return cls(
            grace_multiplier=settings.commitments.escalation_grace_multiplier,
            min_grace_minutes=settings.commitments.escalation_min_grace_minutes,
            level_threshold=settings.commitments.escalation_level_threshold,
            batch_size=settings.commitments.sweep_batch_size,
        )

    def grace_period(self, created_at: datetime, deadline: datetime) -> timedelta:
        """Return the grace period for a commitment's original window."""
        window = ensure_utc(deadline) - ensure_utc(created_at)
        return max(window * self.grace_multiplier, timedelta(minutes=self.min_grace_minutes))


@dataclass(frozen=True)
class SweepResult:
    """Counts describing one sweep invocation."""

    promoted: int
    escalation_steps: int
    escalated: int
    notified: int
    notification_failures: int

    def as_dict(self) -> dict[str, int]:
        return {
            "promoted": self.promoted,
            "escalation_steps": self.escalation_steps,
            "escalated": self.escalated,
            "notified": self.notified,
            "notification_failures": self.notification_failures,
        }


def escalation_due(
    commitment: Commitment,
    now: datetime,
    policy: EscalationPolicy,
) -> bool:
    """Return True when a full grace period has passed since the last ladder step."""
    anchor = ensure_utc(commitment.deadline)
    if commitment.last_escalation_step_at is not None:
        anchor = max(anchor, ensure_utc(commitment.last_escalation_step_at))
    grace = policy.grace_period(commitment.created_at, commitment.deadline)
    return ensure_utc(now) - anchor >= grace


class EscalationSweeper:
    """Advance overdue commitments through the escalation ladder."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        notifier: CommitmentNotifier | None = None,
        policy: EscalationPolicy | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier
        self._policy = policy

    def sweep(self, now: datetime | None = None) -> SweepResult:
        """Run one promotion and escalation pass at the given instant."""
        timestamp = ensure_utc(now or utc_now())
        policy = self._policy or EscalationPolicy.from_settings()
        pending: list[CommitmentNotification] = []

        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                promoted_ids = self._promote_overdue(session, timestamp, policy)
                steps, escalated = self._escalate(
                    session,
                    timestamp,
                    policy,
                    pending,
                    skip_ids=promoted_ids,
                )
                session.commit()
            except Exception:
                session.rollback()
                raise

        notifier = self._notifier or build_default_notifier()
        notified, failures = dispatch_notifications(notifier, pending)
        promoted = len(promoted_ids)
        result = SweepResult(
            promoted=promoted,
            escalation_steps=steps,
            escalated=escalated,
            notified=notified,
            notification_failures=failures,
        )
        logger.info(
            "commitment sweep completed: promoted=%s escalation_steps=%s escalated=%s "
            "notified=%s notification_failures=%s",
            promoted,
            steps,
            escalated,
            notified,
            failures,
        )
        return result

    def _promote_overdue(
        self,
        session: Session,
        now: datetime,
        policy: EscalationPolicy,
    ) -> set[UUID]:
        """Move past-deadline active commitments to overdue and return their ids."""
        candidates = (
            session.execute(
                select(Commitment.id)
                .where(Commitment.status == "active", Commitment.deadline < now)
                .order_by(Commitment.deadline.asc())
                .limit(policy.batch_size)
            )
            .scalars()
            .all()
        )
        promoted: set[UUID] = set()
        for commitment_id in candidates:
            result = session.execute(
                update(Commitment)
                .where(
                    Commitment.id == commitment_id,
                    Commitment.status == "active",
                    Commitment.deadline < now,
                )
                .values(status="overdue", last_escalation_step_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                continue
            promoted.add(commitment_id)
            create_transition_record(
                session,
                CommitmentStateTransitionCreateInput(
                    commitment_id=commitment_id,
                    from_status="active",
                    to_status="overdue",
                    action="sweep_overdue",
                    actor=ACTOR_SYSTEM,
                    transitioned_at=now,
                ),
            )
        return promoted

    def _escalate(
        self,
        session: Session,
        now: datetime,
        policy: EscalationPolicy,
        pending: list[CommitmentNotification],
        *,
        skip_ids: set[UUID],
    ) -> tuple[int, int]:
        """Apply at most one escalation step per overdue commitment."""
        candidates = (
            session.execute(
                select(Commitment)
                .where(
                    Commitment.status.in_(ESCALATABLE_STATUSES),
                    Commitment.deadline < now,
                )
                .order_by(Commitment.deadline.asc())
                .limit(policy.batch_size)
            )
            .scalars()
            .all()
        )
        steps = 0
        escalated = 0
        for commitment in candidates:
            if commitment.id in skip_ids or not escalation_due(commitment, now, policy):
                continue
            current_level = commitment.escalation_level
            current_status = commitment.status
            last_step_at = commitment.last_escalation_step_at
            new_level = current_level + 1
            values: dict[str, object] = {
                "escalation_level": new_level,
                "last_escalation_step_at": now,
                "updated_at": now,
            }
            becomes_escalated = current_status == "overdue" and new_level >= policy.level_threshold
            if becomes_escalated:
                values["status"] = "escalated"
                values["escalated_at"] = now
            if last_step_at is None:
                step_guard = Commitment.last_escalation_step_at.is_(None)
            else:
                step_guard = Commitment.last_escalation_step_at == last_step_at
            result = session.execute(
                update(Commitment)
                .where(
                    Commitment.id == commitment.id,
                    Commitment.status == current_status,
                    Commitment.escalation_level == current_level,
                    step_guard,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                continue
            session.refresh(commitment)
            steps += 1
            if becomes_escalated:
                escalated += 1
            create_transition_record(
                session,
                CommitmentStateTransitionCreateInput(
                    commitment_id=commitment.id,
                    from_status=current_status,
                    to_status=commitment.status,
                    action="escalate",
                    actor=ACTOR_SYSTEM,
                    escalation_level=new_level,
                    context={"previous_escalation_level": current_level},
                    transitioned_at=now,
                ),
            )
            if commitment.status == "escalated":
                pending.append(
                    build_notification(commitment, CommitmentNotificationType.ESCALATION)
                )
        return steps, escalated


__all__ = [
    "EscalationPolicy",
    "EscalationSweeper",
    "SweepResult",
    "escalation_due",
]
