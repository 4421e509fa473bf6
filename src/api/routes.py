"""Administrative HTTP routes for support commitments."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from api.schemas import (
    CommitmentCreateRequest,
    CommitmentCreateResponse,
    CommitmentListResponse,
    CommitmentResponse,
    DetectionResult,
    DetectRequest,
    DetectResponse,
    ReconcileRequest,
    StatsResponse,
    TransitionRequest,
    TransitionResponse,
)
from commitments.classifier import Detection, classify
from commitments.constants import ACTOR_OPERATOR
from commitments.deadline_resolver import ResolvedDeadline, resolve_deadline
from commitments.notifications import CommitmentNotifier
from commitments.reconciliation import CommitmentReconciler
from commitments.reminders import ReminderDispatcher
from commitments.repository import (
    CommitmentContext,
    CommitmentFilter,
    CommitmentRepository,
)
from commitments.sweeper import EscalationSweeper
from commitments.transition_service import CommitmentTransitionService
from time_utils import ensure_utc, utc_now

router = APIRouter(prefix="/commitments", tags=["commitments"])


@dataclass
class CommitmentServices:
    """Services wired to one session factory, stored on app state."""

    repository: CommitmentRepository
    transitions: CommitmentTransitionService
    sweeper: EscalationSweeper
    reconciler: CommitmentReconciler
    reminders: ReminderDispatcher

    @classmethod
    def build(
        cls,
        session_factory: Callable[[], Session],
        *,
        notifier: CommitmentNotifier | None = None,
    ) -> "CommitmentServices":
        return cls(
            repository=CommitmentRepository(session_factory),
            transitions=CommitmentTransitionService(session_factory),
            sweeper=EscalationSweeper(session_factory, notifier=notifier),
            reconciler=CommitmentReconciler(session_factory),
            reminders=ReminderDispatcher(session_factory, notifier=notifier),
        )


def get_services(request: Request) -> CommitmentServices:
    return request.app.state.commitment_services


@router.get("", response_model=CommitmentListResponse)
def list_commitments(
    status_filter: str = Query("active", alias="status"),
    channel_id: Optional[str] = None,
    assignee_id: Optional[str] = None,
    due_soon: bool = False,
    limit: int = Query(100, ge=1, le=1000),
    services: CommitmentServices = Depends(get_services),
) -> CommitmentListResponse:
    """List commitments, vague first, then by deadline."""
    commitments = services.repository.list_commitments(
        CommitmentFilter(
            status=status_filter,
            channel_id=channel_id,
            assignee_id=assignee_id,
            due_soon=due_soon,
            limit=limit,
        )
    )
    return CommitmentListResponse(
        commitments=[CommitmentResponse.model_validate(item) for item in commitments],
        count=len(commitments),
    )


@router.get("/stats", response_model=StatsResponse)
def commitment_stats(services: CommitmentServices = Depends(get_services)) -> StatsResponse:
    stats = services.repository.stats()
    return StatsResponse(
        **stats.by_status,
        vague=stats.vague,
        due_soon=stats.due_soon,
        total=stats.total,
    )


@router.post("/detect", response_model=DetectResponse)
def detect_commitments(body: DetectRequest) -> DetectResponse:
    """Classify and resolve texts without persisting anything."""
    reference = ensure_utc(body.reference or utc_now())
    inputs = [body.text] if body.text is not None else []
    inputs.extend(body.texts or [])
    results = []
    for text in inputs:
        detection = classify(text)
        result = DetectionResult(
            input=text,
            has_commitment=detection.has_commitment,
            commitment_type=detection.commitment_type,
            is_vague=detection.is_vague,
            matched_text=detection.matched_text,
            raw_timeframe_hint=detection.raw_timeframe_hint,
            language=detection.language,
            matcher=detection.matcher,
        )
        if detection.has_commitment:
            resolved = resolve_deadline(detection, reference)
            result.deadline = resolved.deadline
            result.is_explicit_deadline = resolved.is_explicit
        results.append(result)
    return DetectResponse(reference=reference, results=results)


@router.post("/sweep")
def run_sweep(services: CommitmentServices = Depends(get_services)) -> dict[str, int]:
    return services.sweeper.sweep().as_dict()


@router.post("/reconcile")
def run_reconciliation(
    body: Optional[ReconcileRequest] = None,
    services: CommitmentServices = Depends(get_services),
) -> dict[str, int]:
    body = body or ReconcileRequest()
    end = utc_now()
    start = end - timedelta(hours=body.hours) if body.hours else None
    return services.reconciler.reconcile(start, end, limit=body.limit).as_dict()


@router.post("/reminders")
def run_reminders(services: CommitmentServices = Depends(get_services)) -> dict[str, int]:
    return services.reminders.dispatch_due().as_dict()


@router.post("", response_model=CommitmentCreateResponse, status_code=status.HTTP_201_CREATED)
def create_commitment(
    body: CommitmentCreateRequest,
    services: CommitmentServices = Depends(get_services),
) -> CommitmentCreateResponse:
    """Create a commitment on behalf of an operator."""
    created_at = ensure_utc(body.created_at or utc_now())
    detection = _operator_detection(body)
    if body.deadline is not None:
        resolved = ResolvedDeadline(deadline=ensure_utc(body.deadline), is_explicit=True)
    else:
        resolved = resolve_deadline(detection, created_at)
    context = CommitmentContext(
        channel_id=body.channel_id,
        created_at=created_at,
        case_id=body.case_id,
        agent_id=body.agent_id,
        agent_name=body.agent_name,
        sender_role=ACTOR_OPERATOR,
        message_text=body.text,
        assignee_id=body.assignee_id,
        assignee_name=body.assignee_name,
    )
    result = services.repository.create(
        body.source_message_id,
        context,
        detection,
        resolved,
        actor=ACTOR_OPERATOR,
    )
    return CommitmentCreateResponse(
        created=result.created,
        commitment=CommitmentResponse.model_validate(result.commitment),
    )


@router.get("/{commitment_id}", response_model=CommitmentResponse)
def get_commitment(
    commitment_id: UUID,
    services: CommitmentServices = Depends(get_services),
) -> CommitmentResponse:
    return CommitmentResponse.model_validate(services.repository.get(commitment_id))


@router.patch("/{commitment_id}", response_model=TransitionResponse)
def transition_commitment(
    commitment_id: UUID,
    body: TransitionRequest,
    services: CommitmentServices = Depends(get_services),
) -> TransitionResponse:
    """Apply an operator action; no-ops return applied=false."""
    outcome = services.transitions.transition(
        commitment_id,
        body.action,
        extend_minutes=body.extend_minutes,
        assignee_id=body.assignee_id,
        assignee_name=body.assignee_name,
        reason=body.reason,
    )
    return TransitionResponse(
        applied=outcome.applied,
        action=outcome.action,
        from_status=outcome.from_status,
        to_status=outcome.to_status,
        commitment=CommitmentResponse.model_validate(outcome.commitment),
    )


@router.delete("/{commitment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_commitment(
    commitment_id: UUID,
    services: CommitmentServices = Depends(get_services),
) -> None:
    services.repository.delete(commitment_id)


def _operator_detection(body: CommitmentCreateRequest) -> Detection:
    """Classify operator text, falling back to the requested or action type."""
    detection = classify(body.text)
    if detection.has_commitment and body.commitment_type in (None, detection.commitment_type):
        return detection
    commitment_type = body.commitment_type or "action"
    return Detection(
        has_commitment=True,
        commitment_type=commitment_type,
        is_vague=commitment_type == "vague",
        matched_text=body.text.strip(),
        raw_timeframe_hint=detection.raw_timeframe_hint if commitment_type == "time" else None,
        language=detection.language,
        matcher="operator",
    )


__all__ = ["CommitmentServices", "get_services", "router"]
