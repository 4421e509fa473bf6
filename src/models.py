"""Data models for the support commitments engine."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()

# Commitment enums
CommitmentTypeEnum = Enum(
    "time",
    "action",
    "vague",
    name="commitment_type",
    native_enum=False,
)
CommitmentStatusEnum = Enum(
    "active",
    "overdue",
    "escalated",
    "completed",
    "dismissed",
    "cancelled",
    name="commitment_status",
    native_enum=False,
)
CommitmentPriorityEnum = Enum(
    "low",
    "medium",
    "high",
    name="commitment_priority",
    native_enum=False,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Commitment(Base):
    """A promise made by a support agent, tracked until it is closed."""

    __tablename__ = "support_commitments"
    __table_args__ = (
        CheckConstraint("escalation_level >= 0", name="ck_support_commitments_level"),
        CheckConstraint("deadline > created_at", name="ck_support_commitments_deadline"),
        Index("ix_support_commitments_status_deadline", "status", "deadline"),
        Index("ix_support_commitments_channel", "channel_id"),
        Index("ix_support_commitments_assignee", "assignee_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    source_message_id = Column(String(200), nullable=True, unique=True)
    channel_id = Column(String(200), nullable=False)
    case_id = Column(String(200), nullable=True)
    agent_id = Column(String(200), nullable=True)
    agent_name = Column(String(200), nullable=True)
    sender_role = Column(String(50), nullable=True)
    assignee_id = Column(String(200), nullable=True)
    assignee_name = Column(String(200), nullable=True)
    commitment_text = Column(Text, nullable=False)
    message_context = Column(Text, nullable=True)
    commitment_type = Column(CommitmentTypeEnum, nullable=False)
    is_vague = Column(Boolean, nullable=False, default=False)
    language = Column(String(20), nullable=True)
    priority = Column(CommitmentPriorityEnum, nullable=False, default="medium")
    created_at = Column(DateTime(timezone=True), nullable=False)
    deadline = Column(DateTime(timezone=True), nullable=False)
    is_explicit_deadline = Column(Boolean, nullable=False, default=False)
    reminder_at = Column(DateTime(timezone=True), nullable=False)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    escalation_level = Column(Integer, nullable=False, default=0)
    status = Column(CommitmentStatusEnum, nullable=False, default="active")
    completed_at = Column(DateTime(timezone=True), nullable=True)
    escalated_at = Column(DateTime(timezone=True), nullable=True)
    # Last step on the escalation ladder; promotion to overdue counts as step zero.
    last_escalation_step_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class CommitmentStateTransition(Base):
    """Audit record for one effective commitment state change."""

    __tablename__ = "commitment_state_transitions"
    __table_args__ = (
        Index(
            "ix_commitment_state_transitions_commitment_time",
            "commitment_id",
            "transitioned_at",
        ),
    )

    transition_id = Column(Integer, primary_key=True, autoincrement=True)
    commitment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("support_commitments.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=False)
    action = Column(String(50), nullable=False)
    actor = Column(String(50), nullable=False)
    reason = Column(Text, nullable=True)
    escalation_level = Column(Integer, nullable=False, default=0)
    context = Column(JSON, nullable=True)
    transitioned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class SupportMessage(Base):
    """Read model over the inbox message store, owned by the messaging service."""

    __tablename__ = "support_messages"

    id = Column(String(200), primary_key=True)
    channel_id = Column(String(200), nullable=False)
    case_id = Column(String(200), nullable=True)
    sender_id = Column(String(200), nullable=True)
    sender_name = Column(String(200), nullable=True)
    sender_role = Column(String(50), nullable=True)
    is_from_client = Column(Boolean, nullable=False, default=False)
    text_content = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class CommitmentMessageScan(Base):
    """Marks a support message that reconciliation has already run detection over."""

    __tablename__ = "commitment_message_scans"

    message_id = Column(String(200), primary_key=True)
    outcome = Column(String(20), nullable=False)
    scanned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
