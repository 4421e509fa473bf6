"""Unit tests for support commitment repository behavior."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime, timedelta, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from commitments.classifier import NO_COMMITMENT, classify
from commitments.deadline_resolver import DeadlinePolicy, ResolvedDeadline, resolve_deadline
from commitments.repository import (
    CommitmentContext,
    CommitmentFilter,
    CommitmentNotFoundError,
    CommitmentRepository,
    InvalidCommitmentError,
)
from commitments.state_transition_repository import CommitmentStateTransitionRepository
from models import Commitment
from time_utils import ensure_utc

CREATED_AT = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)


def _create(
    repo: CommitmentRepository,
    message_id: str | None,
    text: str,
    *,
    created_at: datetime = CREATED_AT,
    channel_id: str = "chat-1",
    agent_id: str = "agent-1",
):
    """Classify, resolve, and persist a commitment for a message text."""
    detection = classify(text)
    resolved = resolve_deadline(
        detection,
        created_at,
        tz=ZoneInfo("Asia/Tashkent"),
        policy=DeadlinePolicy(),
    )
    context = CommitmentContext(
        channel_id=channel_id,
        created_at=created_at,
        agent_id=agent_id,
        agent_name="Dilnoza",
        sender_role="support",
        message_text=text,
    )
    return repo.create(message_id, context, detection, resolved, now=created_at)


def test_create_persists_commitment_fields(sqlite_session_factory: sessionmaker) -> None:
    """Creating a commitment should persist derived fields and an audit row."""
    repo = CommitmentRepository(sqlite_session_factory)

    result = _create(repo, "msg-1", "Будет готово через 10 минут")

    assert result.created is True
    commitment = repo.get(result.commitment.id)
    assert commitment.status == "active"
    assert commitment.escalation_level == 0
    assert commitment.commitment_type == "time"
    assert commitment.language == "ru"
    assert commitment.assignee_id == "agent-1"
    assert commitment.assignee_name == "Dilnoza"
    assert ensure_utc(commitment.created_at) == CREATED_AT
    assert ensure_utc(commitment.deadline) == CREATED_AT + timedelta(minutes=10)
    assert commitment.is_explicit_deadline is True

    transitions = CommitmentStateTransitionRepository(sqlite_session_factory).list_for_commitment(
        commitment.id
    )
    assert [item.action for item in transitions] == ["create"]
    assert transitions[0].from_status is None
    assert transitions[0].to_status == "active"


def test_create_is_idempotent_per_source_message(sqlite_session_factory: sessionmaker) -> None:
    """A second create for the same source message should return the existing record."""
    repo = CommitmentRepository(sqlite_session_factory)

    first = _create(repo, "msg-1", "Будет готово через 10 минут")
    second = _create(
        repo,
        "msg-1",
        "Будет готово через 10 минут",
        created_at=CREATED_AT + timedelta(minutes=1),
    )

    assert first.created is True
    assert second.created is False
    assert second.commitment.id == first.commitment.id
    assert ensure_utc(second.commitment.created_at) == CREATED_AT

    with closing(sqlite_session_factory()) as session:
        rows = session.execute(select(Commitment)).scalars().all()
    assert len(rows) == 1
    transitions = CommitmentStateTransitionRepository(sqlite_session_factory).list_for_commitment(
        first.commitment.id
    )
    assert len(transitions) == 1


def test_commitments_without_source_message_are_not_deduplicated(
    sqlite_session_factory: sessionmaker,
) -> None:
    """Operator commitments without a source message should each be stored."""
    repo = CommitmentRepository(sqlite_session_factory)

    first = _create(repo, None, "Проверю статус заказа")
    second = _create(repo, None, "Проверю статус заказа")

    assert first.created is True
    assert second.created is True
    assert first.commitment.id != second.commitment.id


@pytest.mark.parametrize(
    ("text", "priority"),
    [
        ("Будет готово через 10 минут", "high"),
        ("Сделаю завтра", "medium"),
        ("Проверю статус заказа", "medium"),
        ("Минуточку", "low"),
    ],
)
def test_priority_is_derived_at_creation(
    sqlite_session_factory: sessionmaker,
    text: str,
    priority: str,
) -> None:
    """Priority should follow type and time-to-deadline at creation."""
    repo = CommitmentRepository(sqlite_session_factory)

    result = _create(repo, "msg-1", text)

    assert result.commitment.priority == priority


def test_reminder_lead_times(sqlite_session_factory: sessionmaker) -> None:
    """Reminders lead concrete deadlines by an hour and vague ones by half an hour."""
    repo = CommitmentRepository(sqlite_session_factory)

    action = _create(repo, "msg-1", "Проверю статус заказа").commitment
    vague = _create(repo, "msg-2", "Минуточку").commitment

    assert ensure_utc(action.reminder_at) == ensure_utc(action.deadline) - timedelta(minutes=60)
    assert ensure_utc(vague.reminder_at) == CREATED_AT


def test_reminder_is_clamped_to_creation_time(sqlite_session_factory: sessionmaker) -> None:
    """A reminder lead longer than the window should clamp to created_at."""
    repo = CommitmentRepository(sqlite_session_factory)

    commitment = _create(repo, "msg-1", "Будет готово через 10 минут").commitment

    assert ensure_utc(commitment.reminder_at) == CREATED_AT


def test_create_rejects_deadline_not_after_creation(sqlite_session_factory: sessionmaker) -> None:
    """Deadlines at or before created_at should be rejected."""
    repo = CommitmentRepository(sqlite_session_factory)
    context = CommitmentContext(channel_id="chat-1", created_at=CREATED_AT)

    with pytest.raises(InvalidCommitmentError):
        repo.create(
            "msg-1",
            context,
            classify("Проверю статус заказа"),
            ResolvedDeadline(deadline=CREATED_AT, is_explicit=True),
        )


def test_create_rejects_missing_commitment(sqlite_session_factory: sessionmaker) -> None:
    """A negative detection should not be persisted."""
    repo = CommitmentRepository(sqlite_session_factory)
    context = CommitmentContext(channel_id="chat-1", created_at=CREATED_AT)

    with pytest.raises(InvalidCommitmentError):
        repo.create(
            "msg-1",
            context,
            NO_COMMITMENT,
            ResolvedDeadline(deadline=CREATED_AT + timedelta(hours=1), is_explicit=False),
        )


def test_get_missing_commitment_raises(sqlite_session_factory: sessionmaker) -> None:
    """Unknown ids should raise a not-found error."""
    repo = CommitmentRepository(sqlite_session_factory)

    with pytest.raises(CommitmentNotFoundError):
        repo.get(uuid4())


def test_get_by_source_message(sqlite_session_factory: sessionmaker) -> None:
    """Lookups by source message should find the created commitment."""
    repo = CommitmentRepository(sqlite_session_factory)
    created = _create(repo, "msg-1", "Проверю статус заказа").commitment

    assert repo.get_by_source_message("msg-1").id == created.id
    assert repo.get_by_source_message("msg-2") is None


def test_list_orders_vague_first_then_deadline(sqlite_session_factory: sessionmaker) -> None:
    """Listing should put vague commitments first, then the earliest deadlines."""
    repo = CommitmentRepository(sqlite_session_factory)
    tomorrow = _create(repo, "msg-1", "Сделаю завтра").commitment
    soon = _create(repo, "msg-2", "Будет готово через 10 минут").commitment
    vague = _create(repo, "msg-3", "Минуточку").commitment

    listed = repo.list_commitments(now=CREATED_AT)

    assert [item.id for item in listed] == [vague.id, soon.id, tomorrow.id]


def test_list_filters_by_status_channel_and_assignee(
    sqlite_session_factory: sessionmaker,
) -> None:
    """Filters should narrow listing results."""
    repo = CommitmentRepository(sqlite_session_factory)
    first = _create(repo, "msg-1", "Проверю статус заказа", channel_id="chat-1").commitment
    _create(repo, "msg-2", "Проверю оплату", channel_id="chat-2", agent_id="agent-2")

    by_channel = repo.list_commitments(CommitmentFilter(channel_id="chat-1"), now=CREATED_AT)
    by_assignee = repo.list_commitments(CommitmentFilter(assignee_id="agent-2"), now=CREATED_AT)
    completed = repo.list_commitments(CommitmentFilter(status="completed"), now=CREATED_AT)
    everything = repo.list_commitments(CommitmentFilter(status="all"), now=CREATED_AT)

    assert [item.id for item in by_channel] == [first.id]
    assert [item.channel_id for item in by_assignee] == ["chat-2"]
    assert completed == []
    assert len(everything) == 2


def test_list_due_soon_uses_horizon(sqlite_session_factory: sessionmaker) -> None:
    """due_soon should only include open commitments due inside the horizon."""
    repo = CommitmentRepository(sqlite_session_factory)
    soon = _create(repo, "msg-1", "Будет готово через 10 минут").commitment
    _create(repo, "msg-2", "Сделаю послезавтра к 10:00", created_at=CREATED_AT)
    later = _create(
        repo,
        "msg-3",
        "Проверю статус заказа",
        created_at=CREATED_AT + timedelta(days=3),
    ).commitment

    listed = repo.list_commitments(CommitmentFilter(due_soon=True), now=CREATED_AT)

    ids = [item.id for item in listed]
    assert soon.id in ids
    assert later.id not in ids


def test_list_rejects_unknown_status(sqlite_session_factory: sessionmaker) -> None:
    """Unknown status filters should be rejected."""
    repo = CommitmentRepository(sqlite_session_factory)

    with pytest.raises(InvalidCommitmentError):
        repo.list_commitments(CommitmentFilter(status="pending"))


def test_stats_counts_by_status(sqlite_session_factory: sessionmaker) -> None:
    """Stats should count every status plus vague and due-soon open work."""
    repo = CommitmentRepository(sqlite_session_factory)
    _create(repo, "msg-1", "Будет готово через 10 минут")
    _create(repo, "msg-2", "Минуточку")
    _create(
        repo,
        "msg-3",
        "Проверю статус заказа",
        created_at=CREATED_AT + timedelta(days=3),
    )

    stats = repo.stats(now=CREATED_AT)

    assert stats.by_status["active"] == 3
    assert stats.by_status["completed"] == 0
    assert stats.vague == 1
    assert stats.due_soon == 2
    assert stats.total == 3


def test_delete_removes_commitment_and_audit(sqlite_session_factory: sessionmaker) -> None:
    """Administrative delete should remove the row and its transitions."""
    repo = CommitmentRepository(sqlite_session_factory)
    created = _create(repo, "msg-1", "Проверю статус заказа").commitment

    repo.delete(created.id)

    with pytest.raises(CommitmentNotFoundError):
        repo.get(created.id)
    transitions = CommitmentStateTransitionRepository(sqlite_session_factory).list_for_commitment(
        created.id
    )
    assert transitions == []
    with pytest.raises(CommitmentNotFoundError):
        repo.delete(created.id)
