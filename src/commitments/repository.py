"""Repository helpers for support commitment persistence."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from commitments.classifier import Detection
from commitments.constants import (
    ACTOR_OPERATOR,
    ACTOR_SYSTEM,
    COMMITMENT_STATUSES,
    LISTED_ACTIVE_STATUSES,
    STATUS_FILTER_ALL,
    CommitmentPriority,
)
from commitments.deadline_resolver import ResolvedDeadline
from commitments.state_transition_repository import (
    CommitmentStateTransitionCreateInput,
    create_transition_record,
)
from config import settings
from models import Commitment, CommitmentStateTransition
from time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class CommitmentNotFoundError(ValueError):
    """Raised when a commitment id does not exist."""

    def __init__(self, commitment_id: UUID | str) -> None:
        super().__init__(f"Commitment not found: {commitment_id}")
        self.commitment_id = commitment_id


class InvalidCommitmentError(ValueError):
    """Raised when commitment input violates a creation or transition rule."""


@dataclass(frozen=True)
class CommitmentContext:
    """Conversation context for the message a commitment was found in."""

    channel_id: str
    created_at: datetime
    case_id: str | None = None
    agent_id: str | None = None
    agent_name: str | None = None
    sender_role: str | None = None
    message_text: str | None = None
    assignee_id: str | None = None
    assignee_name: str | None = None


@dataclass(frozen=True)
class CreateResult:
    """Commitment returned by create and whether this call inserted it."""

    commitment: Commitment
    created: bool


@dataclass(frozen=True)
class CommitmentFilter:
    """List filter for commitments."""

    status: str = "active"
    channel_id: str | None = None
    assignee_id: str | None = None
    due_soon: bool = False
    limit: int = 100


@dataclass(frozen=True)
class CommitmentStats:
    """Aggregate counts across commitment statuses."""

    by_status: dict[str, int] = field(default_factory=dict)
    vague: int = 0
    due_soon: int = 0

    @property
    def total(self) -> int:
        return sum(self.by_status.values())


def derive_priority(
    detection: Detection,
    created_at: datetime,
    deadline: datetime,
    *,
    high_priority_hours: float | None = None,
) -> CommitmentPriority:
    """Derive commitment priority from type and the time left at creation."""
    horizon = (
        settings.commitments.high_priority_hours
        if high_priority_hours is None
        else high_priority_hours
    )
    hours_to_deadline = (ensure_utc(deadline) - ensure_utc(created_at)).total_seconds() / 3600
    if detection.commitment_type == "time" and hours_to_deadline <= horizon:
        return "high"
    if detection.is_vague:
        return "low"
    return "medium"


def compute_reminder_at(detection: Detection, created_at: datetime, deadline: datetime) -> datetime:
    """Return the reminder instant, never earlier than creation."""
    lead_minutes = (
        settings.commitments.vague_reminder_lead_minutes
        if detection.is_vague
        else settings.commitments.concrete_reminder_lead_minutes
    )
    reminder_at = ensure_utc(deadline) - timedelta(minutes=lead_minutes)
    return max(reminder_at, ensure_utc(created_at))


class CommitmentRepository:
    """Repository for support commitment CRUD operations."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def create(
        self,
        source_message_id: str | None,
        context: CommitmentContext,
        detection: Detection,
        resolved: ResolvedDeadline,
        *,
        actor: str = ACTOR_SYSTEM,
        now: datetime | None = None,
    ) -> CreateResult:
        """Create a commitment, or return the existing one for the same source message."""
        if not detection.has_commitment or detection.commitment_type is None:
            raise InvalidCommitmentError("Detection does not contain a commitment.")
        if not context.channel_id:
            raise InvalidCommitmentError("Commitment requires a channel_id.")
        created_at = ensure_utc(context.created_at)
        deadline = ensure_utc(resolved.deadline)
        if deadline <= created_at:
            raise InvalidCommitmentError("Commitment deadline must be after created_at.")
        timestamp = ensure_utc(now or utc_now())

        def handler(session: Session) -> CreateResult:
            new_id = uuid4()
            values = {
                "id": new_id,
                "source_message_id": source_message_id,
                "channel_id": context.channel_id,
                "case_id": context.case_id,
                "agent_id": context.agent_id,
                "agent_name": context.agent_name,
                "sender_role": context.sender_role,
                "assignee_id": context.assignee_id or context.agent_id,
                "assignee_name": context.assignee_name or context.agent_name,
                "commitment_text": detection.matched_text or "",
                "message_context": context.message_text,
                "commitment_type": detection.commitment_type,
                "is_vague": detection.is_vague,
                "language": detection.language,
                "priority": derive_priority(detection, created_at, deadline),
                "created_at": created_at,
                "deadline": deadline,
                "is_explicit_deadline": resolved.is_explicit,
                "reminder_at": compute_reminder_at(detection, created_at, deadline),
                "reminder_sent_at": None,
                "escalation_level": 0,
                "status": "active",
                "updated_at": timestamp,
            }
            session.execute(_insert_ignoring_duplicates(session, values))
            if source_message_id is None:
                commitment = session.get(Commitment, new_id)
            else:
                commitment = session.execute(
                    select(Commitment).where(Commitment.source_message_id == source_message_id)
                ).scalar_one()
            created = commitment.id == new_id
            if created:
                create_transition_record(
                    session,
                    CommitmentStateTransitionCreateInput(
                        commitment_id=new_id,
                        from_status=None,
                        to_status="active",
                        action="create",
                        actor=actor,
                        context={
                            "matcher": detection.matcher,
                            "source_message_id": source_message_id,
                        },
                        transitioned_at=timestamp,
                    ),
                )
            return CreateResult(commitment=commitment, created=created)

        result = self._execute(handler)
        if result.created:
            logger.info(
                "commitment created: id=%s source_message_id=%s type=%s deadline=%s",
                result.commitment.id,
                source_message_id,
                detection.commitment_type,
                deadline.isoformat(),
            )
        else:
            logger.debug(
                "commitment create skipped, already tracked: source_message_id=%s",
                source_message_id,
            )
        return result

    def get(self, commitment_id: UUID) -> Commitment:
        """Return a commitment by id or raise when missing."""

        def handler(session: Session) -> Commitment:
            commitment = session.get(Commitment, commitment_id)
            if commitment is None:
                raise CommitmentNotFoundError(commitment_id)
            return commitment

        return self._execute(handler)

    def get_by_source_message(self, source_message_id: str) -> Commitment | None:
        """Return the commitment created from a message, if any."""

        def handler(session: Session) -> Commitment | None:
            return session.execute(
                select(Commitment).where(Commitment.source_message_id == source_message_id)
            ).scalar_one_or_none()

        return self._execute(handler)

    def list_commitments(
        self,
        filters: CommitmentFilter | None = None,
        *,
        now: datetime | None = None,
    ) -> list[Commitment]:
        """List commitments, vague ones first, then by ascending deadline."""
        filters = filters or CommitmentFilter()
        statuses = _statuses_for_filter(filters.status)
        if filters.limit < 1:
            raise InvalidCommitmentError("limit must be >= 1.")
        timestamp = ensure_utc(now or utc_now())

        def handler(session: Session) -> list[Commitment]:
            query = select(Commitment)
            if statuses is not None:
                query = query.where(Commitment.status.in_(statuses))
            if filters.channel_id:
                query = query.where(Commitment.channel_id == filters.channel_id)
            if filters.assignee_id:
                query = query.where(Commitment.assignee_id == filters.assignee_id)
            if filters.due_soon:
                horizon = timestamp + timedelta(hours=settings.commitments.due_soon_hours)
                query = query.where(
                    Commitment.deadline < horizon,
                    Commitment.status.in_(LISTED_ACTIVE_STATUSES),
                )
            query = query.order_by(
                Commitment.is_vague.desc(),
                Commitment.deadline.asc(),
                Commitment.created_at.asc(),
            ).limit(filters.limit)
            return list(session.execute(query).scalars().all())

        return self._execute(handler)

    def stats(self, *, now: datetime | None = None) -> CommitmentStats:
        """Return counts by status plus vague and due-soon counts for open work."""
        timestamp = ensure_utc(now or utc_now())

        def handler(session: Session) -> CommitmentStats:
            rows = session.execute(
                select(Commitment.status, func.count(Commitment.id)).group_by(Commitment.status)
            ).all()
            by_status = {status: 0 for status in COMMITMENT_STATUSES}
            for status, count in rows:
                by_status[status] = int(count)
            vague = session.execute(
                select(func.count(Commitment.id)).where(
                    Commitment.is_vague.is_(True),
                    Commitment.status.in_(LISTED_ACTIVE_STATUSES),
                )
            ).scalar_one()
            horizon = timestamp + timedelta(hours=settings.commitments.due_soon_hours)
            due_soon = session.execute(
                select(func.count(Commitment.id)).where(
                    Commitment.deadline < horizon,
                    Commitment.status.in_(LISTED_ACTIVE_STATUSES),
                )
            ).scalar_one()
            return CommitmentStats(by_status=by_status, vague=int(vague), due_soon=int(due_soon))

        return self._execute(handler)

    def delete(self, commitment_id: UUID) -> None:
        """Physically delete a commitment and its audit trail."""

        def handler(session: Session) -> None:
            commitment = session.get(Commitment, commitment_id)
            if commitment is None:
                raise CommitmentNotFoundError(commitment_id)
            session.query(CommitmentStateTransition).filter(
                CommitmentStateTransition.commitment_id == commitment_id
            ).delete(synchronize_session=False)
            session.delete(commitment)
            session.flush()

        self._execute(handler)
        logger.info("commitment deleted: id=%s actor=%s", commitment_id, ACTOR_OPERATOR)

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


def _statuses_for_filter(status: str | None) -> tuple[str, ...] | None:
    """Translate a list status filter into concrete statuses (None means all)."""
    normalized = (status or "active").strip().lower()
    if normalized == STATUS_FILTER_ALL:
        return None
    if normalized == "active":
        return LISTED_ACTIVE_STATUSES
    if normalized not in COMMITMENT_STATUSES:
        raise InvalidCommitmentError(f"Unknown status filter: {status}")
    return (normalized,)


def _insert_ignoring_duplicates(session: Session, values: dict[str, object]):
    """Build an INSERT that does nothing when source_message_id already exists."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        statement = postgresql.insert(Commitment).values(**values)
    elif dialect == "sqlite":
        statement = sqlite.insert(Commitment).values(**values)
    else:
        raise RuntimeError(f"Unsupported database dialect for commitments: {dialect}")
    return statement.on_conflict_do_nothing(index_elements=["source_message_id"])


def fetch_commitment(session: Session, commitment_id: UUID) -> Commitment:
    """Fetch a commitment inside an existing session or raise when missing."""
    commitment = session.get(Commitment, commitment_id)
    if commitment is None:
        raise CommitmentNotFoundError(commitment_id)
    return commitment


__all__ = [
    "CommitmentContext",
    "CommitmentFilter",
    "CommitmentNotFoundError",
    "CommitmentRepository",
    "CommitmentStats",
    "CreateResult",
    "InvalidCommitmentError",
    "compute_reminder_at",
    "derive_priority",
    "fetch_commitment",
]
