"""Unit tests for commitment deadline resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import re
from zoneinfo import ZoneInfo

import pytest

from commitments.classifier import Detection, classify
from commitments.deadline_resolver import (
    DeadlinePolicy,
    TimeframeRule,
    resolve_deadline,
)

TASHKENT = ZoneInfo("Asia/Tashkent")
POLICY = DeadlinePolicy()


def _time_detection(hint: str) -> Detection:
    """Build a time detection carrying the given raw hint."""
    return Detection(
        has_commitment=True,
        commitment_type="time",
        matched_text=hint,
        raw_timeframe_hint=hint,
        language="ru",
    )


def _resolve(text: str, reference: datetime):
    return resolve_deadline(classify(text), reference, tz=TASHKENT, policy=POLICY)


def test_minutes_offset_is_explicit() -> None:
    """A minute count should resolve to the reference plus that many minutes."""
    reference = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    resolved = _resolve("Будет готово через 10 минут", reference)

    assert resolved.deadline == reference + timedelta(minutes=10)
    assert resolved.is_explicit is True


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Отвечу через 3 часа", timedelta(hours=3)),
        ("2 soatda tayyor bo'ladi", timedelta(hours=2)),
        ("15 daqiqada javob beraman", timedelta(minutes=15)),
        ("I'll check in 45 minutes", timedelta(minutes=45)),
        ("Сделаю через полчаса", timedelta(minutes=30)),
        ("Сделаю через пару часов", timedelta(hours=2)),
        ("Отвечу через час", timedelta(hours=1)),
        ("Сделаю до конца дня", timedelta(hours=8)),
        ("Kechqurun javob beraman", timedelta(hours=8)),
        ("Сделаю к вечеру", timedelta(hours=6)),
        ("Сделаю сегодня", timedelta(hours=4)),
        ("Сделаю завтра", timedelta(days=1)),
        ("Ответим в ближайшее время", timedelta(hours=2)),
    ],
)
def test_relative_timeframes(text: str, expected: timedelta) -> None:
    """Relative hints in each language should map to fixed offsets."""
    reference = datetime(2026, 3, 10, 5, 0, tzinfo=timezone.utc)

    resolved = _resolve(text, reference)

    assert resolved.is_explicit is True
    assert resolved.deadline == reference + expected


def test_tomorrow_morning_resolves_to_local_nine_am() -> None:
    """Tomorrow morning should be 09:00 business time on the next local day."""
    reference = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    resolved = _resolve("ertaga ertalab", reference)

    assert resolved.deadline == datetime(2026, 3, 11, 9, 0, tzinfo=TASHKENT)
    assert resolved.deadline == datetime(2026, 3, 11, 4, 0, tzinfo=timezone.utc)
    assert resolved.is_explicit is True


def test_tomorrow_morning_uses_local_date_near_midnight() -> None:
    """The next local day should be computed in business time, not UTC."""
    # 20:30 UTC is already 01:30 on the 11th in Tashkent.
    reference = datetime(2026, 3, 10, 20, 30, tzinfo=timezone.utc)

    resolved = _resolve("Завтра утром отвечу", reference)

    assert resolved.deadline == datetime(2026, 3, 12, 9, 0, tzinfo=TASHKENT)


def test_morning_before_midday_resolves_to_local_noon() -> None:
    """A bare morning promise made early should resolve to midday today."""
    reference = datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)

    resolved = resolve_deadline(_time_detection("с утра"), reference, tz=TASHKENT, policy=POLICY)

    assert resolved.deadline == datetime(2026, 3, 10, 12, 0, tzinfo=TASHKENT)


def test_morning_after_midday_rolls_to_next_morning() -> None:
    """A bare morning promise made after midday should resolve to tomorrow 09:00."""
    reference = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)

    resolved = resolve_deadline(_time_detection("с утра"), reference, tz=TASHKENT, policy=POLICY)

    assert resolved.deadline == datetime(2026, 3, 11, 9, 0, tzinfo=TASHKENT)


def test_morning_in_evening_rolls_to_next_morning() -> None:
    """A morning promise made after the evening cutoff means tomorrow morning."""
    reference = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)

    resolved = resolve_deadline(_time_detection("ertalab"), reference, tz=TASHKENT, policy=POLICY)

    assert resolved.deadline == datetime(2026, 3, 11, 9, 0, tzinfo=TASHKENT)


def test_clock_time_later_today() -> None:
    """A clock time still ahead today should resolve to today."""
    reference = datetime(2026, 3, 10, 5, 0, tzinfo=timezone.utc)

    resolved = _resolve("Сделаю к 15:00", reference)

    assert resolved.deadline == datetime(2026, 3, 10, 15, 0, tzinfo=TASHKENT)


def test_clock_time_already_passed_rolls_to_tomorrow() -> None:
    """A clock time already behind us should resolve to the same time tomorrow."""
    reference = datetime(2026, 3, 10, 11, 0, tzinfo=timezone.utc)

    resolved = _resolve("Сделаю к 15:00", reference)

    assert resolved.deadline == datetime(2026, 3, 11, 15, 0, tzinfo=TASHKENT)


def test_vague_detection_uses_short_window() -> None:
    """Vague commitments should get the fixed short window."""
    reference = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    resolved = _resolve("Минуточку", reference)

    assert resolved.deadline == reference + timedelta(minutes=30)
    assert resolved.is_explicit is False


def test_action_detection_uses_default_window() -> None:
    """Action commitments without a timeframe should get the default window."""
    reference = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    resolved = _resolve("Проверю и отпишусь", reference)

    assert resolved.deadline == reference + timedelta(hours=4)
    assert resolved.is_explicit is False


@pytest.mark.parametrize("hint", ["soon", "скоро", "tez orada"])
def test_soon_hint_resolves_to_two_hours(hint: str) -> None:
    """A bare "soon" hint should be treated as the near future."""
    reference = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    resolved = resolve_deadline(_time_detection(hint), reference, tz=TASHKENT, policy=POLICY)

    assert resolved.deadline == reference + timedelta(hours=2)
    assert resolved.is_explicit is True


def test_unparseable_hint_falls_back_to_default_window() -> None:
    """Hints no rule understands should fall back instead of failing."""
    reference = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    resolved = resolve_deadline(
        _time_detection("когда-нибудь"),
        reference,
        tz=TASHKENT,
        policy=POLICY,
    )

    assert resolved.deadline == reference + timedelta(minutes=POLICY.action_window_minutes)
    assert resolved.is_explicit is False


def test_rule_errors_fall_back_to_default_window() -> None:
    """A failing rule should degrade to the default window, never raise."""
    reference = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)
    broken = (
        TimeframeRule(name="broken", pattern=re.compile("через"), kind="clock"),
    )

    resolved = resolve_deadline(
        _time_detection("через 10 минут"),
        reference,
        tz=TASHKENT,
        policy=POLICY,
        rules=broken,
    )

    assert resolved.deadline == reference + timedelta(hours=4)
    assert resolved.is_explicit is False


def test_naive_reference_is_treated_as_utc() -> None:
    """Naive reference instants should be interpreted as UTC."""
    reference = datetime(2026, 3, 10, 10, 0)

    resolved = _resolve("Будет готово через 10 минут", reference)

    assert resolved.deadline == datetime(2026, 3, 10, 10, 10, tzinfo=timezone.utc)


def test_custom_policy_windows_are_used() -> None:
    """Policy overrides should change the fallback windows."""
    reference = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)
    policy = DeadlinePolicy(vague_window_minutes=5, action_window_minutes=60)

    vague = resolve_deadline(classify("Подождите"), reference, tz=TASHKENT, policy=policy)
    action = resolve_deadline(classify("Уточню у коллег"), reference, tz=TASHKENT, policy=policy)

    assert vague.deadline == reference + timedelta(minutes=5)
    assert action.deadline == reference + timedelta(minutes=60)


def test_deadline_is_always_after_reference() -> None:
    """Every resolved deadline should be strictly after the reference instant."""
    reference = datetime(2026, 3, 10, 18, 59, tzinfo=timezone.utc)
    texts = [
        "Сделаю к 23:59",
        "с утра отвечу",
        "Эртага эрталаб",
        "bugun hal qilaman",
        "kutib turing",
        "we will investigate",
    ]

    for text in texts:
        resolved = _resolve(text, reference)
        assert resolved.deadline > reference
