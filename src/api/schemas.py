"""Request and response models for the commitments admin API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from time_utils import ensure_utc


class CommitmentResponse(BaseModel):
    """Serialized commitment record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_message_id: Optional[str] = None
    channel_id: str
    case_id: Optional[str] = None
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    sender_role: Optional[str] = None
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    commitment_text: str
    message_context: Optional[str] = None
    commitment_type: str
    is_vague: bool
    language: Optional[str] = None
    priority: str
    status: str
    escalation_level: int
    created_at: datetime
    deadline: datetime
    is_explicit_deadline: bool
    reminder_at: datetime
    reminder_sent_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    escalated_at: Optional[datetime] = None
    last_escalation_step_at: Optional[datetime] = None
    updated_at: datetime

    @field_validator(
        "created_at",
        "deadline",
        "reminder_at",
        "reminder_sent_at",
        "completed_at",
        "escalated_at",
        "last_escalation_step_at",
        "updated_at",
    )
    @classmethod
    def normalize_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Serialize stored timestamps as aware UTC values."""
        if value is None:
            return None
        return ensure_utc(value)


class CommitmentListResponse(BaseModel):
    commitments: list[CommitmentResponse]
    count: int


class CommitmentCreateRequest(BaseModel):
    """Operator-created commitment; text is classified unless a type is forced."""

    channel_id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    source_message_id: Optional[str] = None
    case_id: Optional[str] = None
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    commitment_type: Optional[Literal["time", "action", "vague"]] = None
    created_at: Optional[datetime] = None
    deadline: Optional[datetime] = None


class CommitmentCreateResponse(BaseModel):
    created: bool
    commitment: CommitmentResponse


class TransitionRequest(BaseModel):
    """Operator action on one commitment."""

    action: Literal["complete", "extend", "dismiss", "cancel", "reassign"]
    extend_minutes: Optional[int] = Field(default=None, ge=1, le=60 * 24 * 30)
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_action_arguments(self) -> "TransitionRequest":
        """Require the arguments each action needs."""
        if self.action == "extend" and self.extend_minutes is None:
            raise ValueError("extend requires extend_minutes.")
        if self.action == "reassign" and not (self.assignee_id or self.assignee_name):
            raise ValueError("reassign requires assignee_id or assignee_name.")
        return self


class TransitionResponse(BaseModel):
    applied: bool
    action: str
    from_status: str
    to_status: str
    commitment: CommitmentResponse


class StatsResponse(BaseModel):
    active: int
    overdue: int
    escalated: int
    completed: int
    dismissed: int
    cancelled: int
    vague: int
    due_soon: int
    total: int


class DetectRequest(BaseModel):
    """Diagnostic classification request for one or many texts."""

    text: Optional[str] = None
    texts: Optional[list[str]] = Field(default=None, max_length=200)
    reference: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_inputs(self) -> "DetectRequest":
        """Require at least one text."""
        if self.text is None and not self.texts:
            raise ValueError("Provide text or texts.")
        return self


class DetectionResult(BaseModel):
    input: str
    has_commitment: bool
    commitment_type: Optional[str] = None
    is_vague: bool = False
    matched_text: Optional[str] = None
    raw_timeframe_hint: Optional[str] = None
    language: Optional[str] = None
    matcher: Optional[str] = None
    deadline: Optional[datetime] = None
    is_explicit_deadline: Optional[bool] = None


class DetectResponse(BaseModel):
    reference: datetime
    results: list[DetectionResult]


class ReconcileRequest(BaseModel):
    hours: Optional[int] = Field(default=None, ge=1, le=24 * 30)
    limit: Optional[int] = Field(default=None, ge=1, le=10000)
