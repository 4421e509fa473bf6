"""Unit tests for commitment reconciliation over message history."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from commitments.pipeline import CommitmentPipeline, MessageEvent, PipelineResult
from commitments.reconciliation import CommitmentReconciler, SqlMessageHistory
from commitments.repository import CommitmentRepository
from models import Commitment, SupportMessage

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _seed_messages(session_factory: sessionmaker, messages: list[dict[str, object]]) -> None:
    """Insert inbox messages into the support_messages read model."""
    with closing(session_factory()) as session:
        for values in messages:
            session.add(SupportMessage(**values))
        session.commit()


def _message(message_id: str, text: str | None, minutes_ago: int, **overrides) -> dict[str, object]:  # noqa: ANN003
    values: dict[str, object] = {
        "id": message_id,
        "channel_id": "chat-1",
        "sender_id": "agent-1",
        "sender_name": "Dilnoza",
        "sender_role": "support",
        "is_from_client": False,
        "text_content": text,
        "created_at": NOW - timedelta(minutes=minutes_ago),
    }
    values.update(overrides)
    return values


def _commitment_count(session_factory: sessionmaker) -> int:
    with closing(session_factory()) as session:
        return len(session.execute(select(Commitment)).scalars().all())


class _StaticHistory:
    """Message history stub returning a fixed list of events."""

    def __init__(self, events: list[MessageEvent]) -> None:
        self.events = events
        self.scanned: dict[str, str] = {}

    def list_untracked_support_messages(self, start, end, *, support_roles, limit):  # noqa: ANN001
        return list(self.events)

    def mark_scanned(self, outcomes, scanned_at) -> None:  # noqa: ANN001
        self.scanned.update(outcomes)


class _SelectiveFailurePipeline:
    """Pipeline stub that fails for one message id and creates the rest."""

    def __init__(self, failing_id: str) -> None:
        self.failing_id = failing_id

    def process(self, event: MessageEvent) -> PipelineResult:
        if event.id == self.failing_id:
            raise RuntimeError("boom")
        return PipelineResult(status="created")


def test_reconcile_backfills_untracked_support_messages(
    sqlite_session_factory: sessionmaker,
) -> None:
    """Support messages with promises and no commitment should be backfilled."""
    _seed_messages(
        sqlite_session_factory,
        [
            _message("m-1", "Будет готово через 10 минут", 30),
            _message("m-2", "Спасибо за ожидание, хорошего дня", 20),
            _message(
                "m-3",
                "Сделаю завтра",
                10,
                sender_role="client",
                is_from_client=True,
            ),
            _message("m-4", "Проверю статус заказа", 60 * 30),
            _message("m-5", None, 5),
        ],
    )
    reconciler = CommitmentReconciler(sqlite_session_factory)

    result = reconciler.reconcile(NOW - timedelta(hours=24), NOW)

    assert result.scanned == 2
    assert result.created == 1
    assert result.no_commitment == 1
    assert result.failed == 0
    commitment = CommitmentRepository(sqlite_session_factory).get_by_source_message("m-1")
    assert commitment is not None
    assert commitment.agent_id == "agent-1"


def test_reconcile_twice_creates_no_duplicates(sqlite_session_factory: sessionmaker) -> None:
    """Re-running over an overlapping window should not create new rows."""
    _seed_messages(
        sqlite_session_factory,
        [
            _message("m-1", "Будет готово через 10 минут", 30),
            _message("m-2", "Минуточку", 40),
        ],
    )
    reconciler = CommitmentReconciler(sqlite_session_factory)

    first = reconciler.reconcile(NOW - timedelta(hours=2), NOW)
    second = reconciler.reconcile(NOW - timedelta(hours=3), NOW + timedelta(minutes=5))

    assert first.created == 2
    assert second.created == 0
    assert second.scanned == 0
    assert _commitment_count(sqlite_session_factory) == 2


def test_reconcile_skips_messages_tracked_inline(sqlite_session_factory: sessionmaker) -> None:
    """Messages already handled by the inline hook should not be rescanned."""
    _seed_messages(sqlite_session_factory, [_message("m-1", "Проверю статус заказа", 30)])
    CommitmentPipeline(CommitmentRepository(sqlite_session_factory)).process(
        MessageEvent(
            id="m-1",
            channel_id="chat-1",
            text="Проверю статус заказа",
            timestamp=NOW - timedelta(minutes=30),
            sender_role="support",
        )
    )

    result = CommitmentReconciler(sqlite_session_factory).reconcile(
        NOW - timedelta(hours=1),
        NOW,
    )

    assert result.scanned == 0
    assert _commitment_count(sqlite_session_factory) == 1


def test_duplicate_events_in_one_batch_are_absorbed(sqlite_session_factory: sessionmaker) -> None:
    """The same message appearing twice should count once as created."""
    event = MessageEvent(
        id="m-1",
        channel_id="chat-1",
        text="Минуточку",
        timestamp=NOW - timedelta(minutes=5),
        sender_role="support",
    )
    history = _StaticHistory([event, event])
    reconciler = CommitmentReconciler(sqlite_session_factory, history=history)

    result = reconciler.reconcile(NOW - timedelta(hours=1), NOW)

    assert result.created == 1
    assert result.duplicates == 1
    assert _commitment_count(sqlite_session_factory) == 1
    assert history.scanned == {"m-1": "duplicate"}


def test_per_message_failures_are_counted(sqlite_session_factory: sessionmaker) -> None:
    """One failing message should not stop the rest of the batch."""
    events = [
        MessageEvent(id=f"m-{index}", channel_id="chat-1", text="x", timestamp=NOW)
        for index in range(3)
    ]
    history = _StaticHistory(events)
    reconciler = CommitmentReconciler(
        sqlite_session_factory,
        history=history,
        pipeline=_SelectiveFailurePipeline("m-1"),
    )

    result = reconciler.reconcile(NOW - timedelta(hours=1), NOW)

    assert result.as_dict() == {
        "scanned": 3,
        "created": 2,
        "duplicates": 0,
        "no_commitment": 0,
        "failed": 1,
    }
    assert sorted(history.scanned) == ["m-0", "m-2"]


def test_reconcile_rejects_inverted_window(sqlite_session_factory: sessionmaker) -> None:
    """A window whose start is not before its end should be rejected."""
    reconciler = CommitmentReconciler(sqlite_session_factory)

    with pytest.raises(ValueError):
        reconciler.reconcile(NOW, NOW - timedelta(hours=1))


def test_history_orders_newest_first_and_applies_limit(
    sqlite_session_factory: sessionmaker,
) -> None:
    """History queries should return the newest untracked messages first."""
    _seed_messages(
        sqlite_session_factory,
        [
            _message("m-1", "Проверю", 30),
            _message("m-2", "Проверю", 20),
            _message("m-3", "Проверю", 10),
        ],
    )
    history = SqlMessageHistory(sqlite_session_factory)

    events = history.list_untracked_support_messages(
        NOW - timedelta(hours=1),
        NOW,
        support_roles=["support"],
        limit=2,
    )

    assert [event.id for event in events] == ["m-3", "m-2"]
    assert events[0].timestamp.tzinfo is not None


def test_reconcile_reaches_older_history_past_messages_without_promises(
    sqlite_session_factory: sessionmaker,
) -> None:
    """Messages without a promise should not keep filling the batch on later runs."""
    _seed_messages(
        sqlite_session_factory,
        [
            _message(f"m-chat-{index}", "Спасибо за ожидание, хорошего дня", 10 + index)
            for index in range(5)
        ]
        + [_message("m-promise", "Проверю через 10 минут", 120)],
    )
    reconciler = CommitmentReconciler(sqlite_session_factory)
    window = (NOW - timedelta(hours=24), NOW)

    first = reconciler.reconcile(*window, now=NOW, limit=5)
    second = reconciler.reconcile(*window, now=NOW, limit=5)
    third = reconciler.reconcile(*window, now=NOW, limit=5)

    assert (first.scanned, first.no_commitment, first.created) == (5, 5, 0)
    assert (second.scanned, second.created) == (1, 1)
    assert third.scanned == 0
    assert CommitmentRepository(sqlite_session_factory).get_by_source_message("m-promise")


def test_history_matches_support_roles_case_insensitively(
    sqlite_session_factory: sessionmaker,
) -> None:
    """Stored sender roles should match configured roles regardless of case."""
    _seed_messages(
        sqlite_session_factory,
        [
            _message("m-1", "Проверю", 10, sender_role="Support", is_from_client=True),
            _message("m-2", "Проверю", 20, sender_role="CLIENT", is_from_client=True),
        ],
    )

    events = SqlMessageHistory(sqlite_session_factory).list_untracked_support_messages(
        NOW - timedelta(hours=1),
        NOW,
        support_roles=["support"],
        limit=10,
    )

    assert [event.id for event in events] == ["m-1"]
