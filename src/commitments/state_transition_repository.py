"""Repository helpers for commitment state transition persistence."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from models import CommitmentStateTransition
from time_utils import ensure_utc, utc_now


@dataclass(frozen=True)
class CommitmentStateTransitionCreateInput:
    """Input payload for creating a commitment state transition audit record."""

    commitment_id: UUID
    from_status: str | None
    to_status: str
    action: str
    actor: str
    reason: str | None = None
    escalation_level: int = 0
    context: Mapping[str, object] | None = None
    transitioned_at: datetime | None = None


class CommitmentStateTransitionRepository:
    """Repository for commitment state transition audit records."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def create(
        self,
        payload: CommitmentStateTransitionCreateInput,
        *,
        now: datetime | None = None,
    ) -> CommitmentStateTransition:
        """Create and persist a commitment state transition audit record."""

        def handler(session: Session) -> CommitmentStateTransition:
            return create_transition_record(session, payload, now=now)

        return self._execute(handler)

    def list_for_commitment(
        self,
        commitment_id: UUID,
        *,
        limit: int | None = None,
    ) -> list[CommitmentStateTransition]:
        """Return transition history for a commitment, oldest first."""

        def handler(session: Session) -> list[CommitmentStateTransition]:
            query = (
                session.query(CommitmentStateTransition)
                .filter(CommitmentStateTransition.commitment_id == commitment_id)
                .order_by(
                    CommitmentStateTransition.transitioned_at.asc(),
                    CommitmentStateTransition.transition_id.asc(),
                )
            )
            if limit is not None:
                query = query.limit(limit)
            return list(query.all())

        return self._execute(handler)

    def _execute(self, handler):
        """Execute repository work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result


def create_transition_record(
    session: Session,
    payload: CommitmentStateTransitionCreateInput,
    *,
    now: datetime | None = None,
) -> CommitmentStateTransition:
    """Create a commitment state transition using an existing session."""
    transitioned_at = ensure_utc(payload.transitioned_at or now or utc_now())
    transition = CommitmentStateTransition(
        commitment_id=payload.commitment_id,
        from_status=payload.from_status,
        to_status=payload.to_status,
        action=payload.action,
        actor=payload.actor,
        reason=payload.reason,
        escalation_level=payload.escalation_level,
        context=dict(payload.context) if payload.context is not None else None,
        transitioned_at=transitioned_at,
    )
    session.add(transition)
    session.flush()
    return transition


__all__ = [
    "CommitmentStateTransitionCreateInput",
    "CommitmentStateTransitionRepository",
    "create_transition_record",
]
