"""Unit tests for the inline message commitment hook."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import sessionmaker

from commitments.ingestion_hook import create_message_commitment_hook
from commitments.pipeline import MessageEvent
from commitments.repository import CommitmentRepository


class _ExplodingPipeline:
    """Pipeline stub that fails on every message."""

    def __init__(self) -> None:
        self.calls = 0

    def process(self, event: MessageEvent):  # noqa: ANN201
        self.calls += 1
        raise RuntimeError("database unavailable")


def _event(message_id: str = "msg-1", text: str = "Проверю статус заказа") -> MessageEvent:
    return MessageEvent(
        id=message_id,
        channel_id="chat-1",
        text=text,
        timestamp=datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc),
        sender_id="agent-1",
        sender_role="support",
        is_from_client=False,
    )


def test_hook_records_commitment(sqlite_session_factory: sessionmaker) -> None:
    """The hook should persist commitments for support messages."""
    hook = create_message_commitment_hook(sqlite_session_factory)

    result = hook(_event())

    assert result is not None
    assert result.status == "created"
    stored = CommitmentRepository(sqlite_session_factory).get_by_source_message("msg-1")
    assert stored is not None
    assert stored.commitment_type == "action"


def test_hook_never_raises(sqlite_session_factory: sessionmaker, caplog) -> None:
    """Pipeline failures should be logged and swallowed so delivery continues."""
    pipeline = _ExplodingPipeline()
    hook = create_message_commitment_hook(sqlite_session_factory, pipeline=pipeline)

    result = hook(_event())

    assert result is None
    assert pipeline.calls == 1
    assert "Commitment hook failed" in caplog.text
