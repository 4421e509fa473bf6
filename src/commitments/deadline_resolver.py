"""Deadline resolution for detected commitments.

The resolver turns a detection plus a reference instant (the message
timestamp) into an absolute UTC deadline. Timeframe hints are matched against
an ordered list of rules; the first rule that matches decides the deadline.
Rules that depend on the local calendar ("tomorrow morning", "by 15:00")
evaluate in the business timezone, which is passed in explicitly or taken
from configuration.

Resolution never raises. Anything unparseable degrades to the default
window for the detection type with ``is_explicit=False``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
import logging
import re
from typing import Literal

from commitments.classifier import Detection
from config import settings
from time_utils import ensure_utc, get_business_timezone

logger = logging.getLogger(__name__)

RuleKind = Literal["offset", "count", "clock", "next_morning", "morning"]

_MINUTE_UNITS = ("мин", "daqiqa", "дақиқа", "min")


@dataclass(frozen=True)
class ResolvedDeadline:
    """Absolute deadline and whether it came from an explicit timeframe."""

    deadline: datetime
    is_explicit: bool


@dataclass(frozen=True)
class DeadlinePolicy:
    """Windows and business-hour anchors used during resolution."""

    vague_window_minutes: int = 30
    action_window_minutes: int = 240
    morning_hour: int = 9
    midday_hour: int = 12
    evening_cutoff_hour: int = 18

    @classmethod
    def from_settings(cls) -> "DeadlinePolicy":
        """Build a policy from the global settings object."""
        return cls(
            vague_window_minutes=settings.commitments.vague_window_minutes,
            action_window_minutes=settings.commitments.action_window_minutes,
            morning_hour=settings.business.morning_hour,
            midday_hour=settings.business.midday_hour,
            evening_cutoff_hour=settings.business.evening_cutoff_hour,
        )


@dataclass(frozen=True)
class TimeframeRule:
    """One timeframe interpretation keyed by a hint pattern."""

    name: str
    pattern: re.Pattern[str]
    kind: RuleKind
    minutes: int | None = None


def _rule(name: str, pattern: str, kind: RuleKind, minutes: int | None = None) -> TimeframeRule:
    return TimeframeRule(
        name=name,
        pattern=re.compile(pattern, re.IGNORECASE),
        kind=kind,
        minutes=minutes,
    )


TIMEFRAME_RULES: tuple[TimeframeRule, ...] = (
    _rule(
        "tomorrow_morning",
        r"завтра\s+(?:с\s+утра|утром)|ertaga\s+ertalab|эртага\s+эрталаб|tomorrow\s+morning",
        "next_morning",
    ),
    _rule(
        "count",
        r"(?<!\d)([1-9]\d{0,3})\s*(мин|час|daqiqa|soat|дақиқа|соат|minute|min|hour|hr)",
        "count",
    ),
    _rule("clock", r"([01]?\d|2[0-3])[:.]([0-5]\d)", "clock"),
    _rule(
        "half_hour",
        r"пол\s*-?\s*часа|полчаса|yarim\s+soat|ярим\s+соат|half\s+an\s+hour|будет\s+готово",
        "offset",
        30,
    ),
    _rule("couple_hours", r"пару\s+час|couple\s+(?:of\s+)?hours", "offset", 120),
    _rule("one_hour", r"через\s+час|bir\s+soat|бир\s+соат|an\s+hour", "offset", 60),
    _rule(
        "end_of_day",
        r"конца\s+(?:рабочего\s+)?дня|kun\s+oxiri|kechqurun|кун\s+охири|кечқурун"
        r"|end\s+of\s+(?:the\s+)?day|\beod\b",
        "offset",
        480,
    ),
    _rule("evening", r"вечер|evening|tonight", "offset", 360),
    _rule("lunch", r"обед|tushlik|тушлик|lunch", "offset", 240),
    _rule("today", r"сегодня|bugun|бугун|today", "offset", 240),
    _rule("tomorrow", r"завтра|ertaga|эртага|tomorrow", "offset", 1440),
    _rule("morning", r"утр|ertalab|эрталаб|morning", "morning"),
    _rule(
        "near_future",
        r"ближайшее\s+время|скоро\b|yaqin\s+vaqt|яқин\s+вақт"
        r"|tez\s+orada|тез\s+орада|near\s+future|\bsoon\b",
        "offset",
        120,
    ),
)


def resolve_deadline(
    detection: Detection,
    reference: datetime,
    *,
    tz: tzinfo | None = None,
    policy: DeadlinePolicy | None = None,
    rules: tuple[TimeframeRule, ...] = TIMEFRAME_RULES,
) -> ResolvedDeadline:
    """Resolve a detection into an absolute deadline relative to the reference."""
    policy = policy or DeadlinePolicy.from_settings()
    reference_utc = ensure_utc(reference)
    if detection.is_vague or detection.commitment_type == "vague":
        return _default(reference_utc, policy.vague_window_minutes)
    if detection.commitment_type != "time" or not detection.raw_timeframe_hint:
        return _default(reference_utc, policy.action_window_minutes)
    try:
        zone = tz or get_business_timezone()
        deadline = _apply_rules(detection.raw_timeframe_hint, reference_utc, zone, policy, rules)
    except Exception:
        logger.exception(
            "deadline resolution failed: hint=%r",
            detection.raw_timeframe_hint,
        )
        deadline = None
    if deadline is None or deadline <= reference_utc:
        return _default(reference_utc, policy.action_window_minutes)
    return ResolvedDeadline(deadline=deadline, is_explicit=True)


def _default(reference: datetime, minutes: int) -> ResolvedDeadline:
    return ResolvedDeadline(deadline=reference + timedelta(minutes=minutes), is_explicit=False)


def _apply_rules(
    hint: str,
    reference: datetime,
    zone: tzinfo,
    policy: DeadlinePolicy,
    rules: tuple[TimeframeRule, ...],
) -> datetime | None:
    """Return the deadline for the first matching rule, or None."""
    normalized = hint.strip().lower()
    for rule in rules:
        match = rule.pattern.search(normalized)
        if match is None:
            continue
        if rule.kind == "offset":
            return reference + timedelta(minutes=rule.minutes or 0)
        if rule.kind == "count":
            return reference + _count_offset(int(match.group(1)), match.group(2))
        if rule.kind == "clock":
            return _next_clock_time(reference, zone, int(match.group(1)), int(match.group(2)))
        if rule.kind == "next_morning":
            return _local_at(reference, zone, days=1, hour=policy.morning_hour)
        if rule.kind == "morning":
            return _morning(reference, zone, policy)
    return None


def _count_offset(count: int, unit: str) -> timedelta:
    """Convert an explicit count and its literal unit word into an offset."""
    if unit.startswith(_MINUTE_UNITS):
        return timedelta(minutes=count)
    return timedelta(hours=count)


def _local_at(
    reference: datetime,
    zone: tzinfo,
    *,
    days: int,
    hour: int,
    minute: int = 0,
) -> datetime:
    """Return a UTC instant for a local wall-clock time N days after the reference."""
    local_date = reference.astimezone(zone).date() + timedelta(days=days)
    local = datetime.combine(local_date, time(hour, minute), tzinfo=zone)
    return ensure_utc(local)


def _next_clock_time(reference: datetime, zone: tzinfo, hour: int, minute: int) -> datetime:
    """Return the next occurrence of a local clock time after the reference."""
    candidate = _local_at(reference, zone, days=0, hour=hour, minute=minute)
    if candidate <= reference:
        candidate = _local_at(reference, zone, days=1, hour=hour, minute=minute)
    return candidate


def _morning(reference: datetime, zone: tzinfo, policy: DeadlinePolicy) -> datetime:
    """Resolve a bare "morning" promise without landing in the past."""
    local_hour = reference.astimezone(zone).hour
    if local_hour >= policy.evening_cutoff_hour:
        return _local_at(reference, zone, days=1, hour=policy.morning_hour)
    midday = _local_at(reference, zone, days=0, hour=policy.midday_hour)
    if midday <= reference:
        return _local_at(reference, zone, days=1, hour=policy.morning_hour)
    return midday


__all__ = [
    "DeadlinePolicy",
    "ResolvedDeadline",
    "TIMEFRAME_RULES",
    "TimeframeRule",
    "resolve_deadline",
]
