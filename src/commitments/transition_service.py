"""Operator-driven commitment transitions with guarded updates and audit logging."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Literal
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from commitments.constants import ACTOR_OPERATOR, OPEN_STATUSES
from commitments.repository import InvalidCommitmentError, fetch_commitment
from commitments.state_transition_repository import (
    CommitmentStateTransitionCreateInput,
    create_transition_record,
)
from models import Commitment
from time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

TransitionAction = Literal["complete", "extend", "dismiss", "cancel", "reassign"]
TRANSITION_ACTIONS: tuple[str, ...] = ("complete", "extend", "dismiss", "cancel", "reassign")

_TERMINAL_TARGETS = {
    "complete": "completed",
    "dismiss": "dismissed",
    "cancel": "cancelled",
}


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of a transition request; applied is False for a no-op."""

    commitment: Commitment
    action: str
    applied: bool
    from_status: str
    to_status: str


class CommitmentTransitionService:
    """Apply operator actions to commitments with single-row conditional updates."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize the service with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def transition(
        self,
        commitment_id: UUID,
        action: TransitionAction,
        *,
        extend_minutes: int | None = None,
        assignee_id: str | None = None,
        assignee_name: str | None = None,
        actor: str = ACTOR_OPERATOR,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> TransitionOutcome:
        """Apply one action; illegal transitions return an unapplied outcome."""
        if action not in TRANSITION_ACTIONS:
            raise InvalidCommitmentError(f"Unsupported commitment action: {action}")
        if action == "extend" and (extend_minutes is None or extend_minutes <= 0):
            raise InvalidCommitmentError("extend requires a positive number of minutes.")
        if action == "reassign" and not (assignee_id or assignee_name):
            raise InvalidCommitmentError("reassign requires an assignee.")
        timestamp = ensure_utc(now or utc_now())

        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                commitment = fetch_commitment(session, commitment_id)
                from_status = commitment.status
                level = commitment.escalation_level
                conditions, values = self._plan(
                    commitment,
                    action,
                    timestamp,
                    extend_minutes=extend_minutes,
                    assignee_id=assignee_id,
                    assignee_name=assignee_name,
                )
                result = session.execute(
                    update(Commitment)
                    .where(Commitment.id == commitment_id, *conditions)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                applied = result.rowcount == 1
                if applied:
                    session.refresh(commitment)
                    create_transition_record(
                        session,
                        CommitmentStateTransitionCreateInput(
                            commitment_id=commitment_id,
                            from_status=from_status,
                            to_status=commitment.status,
                            action=action,
                            actor=actor,
                            reason=reason,
                            escalation_level=commitment.escalation_level,
                            context=_transition_context(
                                action,
                                extend_minutes=extend_minutes,
                                previous_level=level,
                                assignee_id=assignee_id,
                            ),
                            transitioned_at=timestamp,
                        ),
                    )
                session.commit()
            except Exception:
                session.rollback()
                raise

        if applied:
            logger.info(
                "commitment transition applied: id=%s action=%s from=%s to=%s",
                commitment_id,
                action,
                from_status,
                commitment.status,
            )
        else:
            logger.info(
                "commitment transition ignored: id=%s action=%s status=%s",
                commitment_id,
                action,
                from_status,
            )
        return TransitionOutcome(
            commitment=commitment,
            action=action,
            applied=applied,
            from_status=from_status,
            to_status=commitment.status,
        )

    def complete(self, commitment_id: UUID, **kwargs: Any) -> TransitionOutcome:
        return self.transition(commitment_id, "complete", **kwargs)

    def extend(self, commitment_id: UUID, minutes: int, **kwargs: Any) -> TransitionOutcome:
        return self.transition(commitment_id, "extend", extend_minutes=minutes, **kwargs)

    def dismiss(self, commitment_id: UUID, **kwargs: Any) -> TransitionOutcome:
        return self.transition(commitment_id, "dismiss", **kwargs)

    def cancel(self, commitment_id: UUID, **kwargs: Any) -> TransitionOutcome:
        return self.transition(commitment_id, "cancel", **kwargs)

    def reassign(
        self,
        commitment_id: UUID,
        *,
        assignee_id: str | None = None,
        assignee_name: str | None = None,
        **kwargs: Any,
    ) -> TransitionOutcome:
        return self.transition(
            commitment_id,
            "reassign",
            assignee_id=assignee_id,
            assignee_name=assignee_name,
            **kwargs,
        )

    def _plan(
        self,
        commitment: Commitment,
        action: str,
        timestamp: datetime,
        *,
        extend_minutes: int | None,
        assignee_id: str | None,
        assignee_name: str | None,
    ) -> tuple[list[Any], dict[str, Any]]:
        """Return the guard conditions and new values for an action."""
        conditions: list[Any] = [Commitment.status.in_(OPEN_STATUSES)]
        if action in _TERMINAL_TARGETS:
            values: dict[str, Any] = {
                "status": _TERMINAL_TARGETS[action],
                "updated_at": timestamp,
            }
            if action == "complete":
                values["completed_at"] = timestamp
            return conditions, values
        if action == "reassign":
            return conditions, {
                "assignee_id": assignee_id,
                "assignee_name": assignee_name,
                "updated_at": timestamp,
            }
        shift = timedelta(minutes=extend_minutes or 0)
        new_deadline = ensure_utc(commitment.deadline) + shift
        values = {
            "deadline": new_deadline,
            "reminder_at": ensure_utc(commitment.reminder_at) + shift,
            "reminder_sent_at": None,
            "escalation_level": max(0, commitment.escalation_level - 1),
            "updated_at": timestamp,
        }
        if new_deadline > timestamp:
            values["status"] = "active"
            values["last_escalation_step_at"] = None
        # Compare-and-set on what was read so concurrent extends never double-decrement.
        conditions.extend(
            [
                Commitment.escalation_level == commitment.escalation_level,
                Commitment.deadline == commitment.deadline,
            ]
        )
        return conditions, values


def _transition_context(
    action: str,
    *,
    extend_minutes: int | None,
    previous_level: int,
    assignee_id: str | None,
) -> dict[str, object] | None:
    if action == "extend":
        return {"extend_minutes": extend_minutes, "previous_escalation_level": previous_level}
    if action == "reassign":
        return {"assignee_id": assignee_id}
    return None


__all__ = [
    "CommitmentTransitionService",
    "TRANSITION_ACTIONS",
    "TransitionAction",
    "TransitionOutcome",
]
