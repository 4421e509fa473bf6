"""Shared constants for support commitment tracking."""

from __future__ import annotations

from typing import Literal

CommitmentType = Literal["time", "action", "vague"]
CommitmentStatus = Literal[
    "active",
    "overdue",
    "escalated",
    "completed",
    "dismissed",
    "cancelled",
]
CommitmentPriority = Literal["low", "medium", "high"]
CommitmentLanguage = Literal["ru", "uz_latin", "uz_cyrillic", "en"]

COMMITMENT_TYPES: tuple[str, ...] = ("time", "action", "vague")
COMMITMENT_STATUSES: tuple[str, ...] = (
    "active",
    "overdue",
    "escalated",
    "completed",
    "dismissed",
    "cancelled",
)
COMMITMENT_PRIORITIES: tuple[str, ...] = ("low", "medium", "high")
COMMITMENT_LANGUAGES: tuple[str, ...] = ("ru", "uz_latin", "uz_cyrillic", "en")

# "active" in list filters means work that still needs the agent.
LISTED_ACTIVE_STATUSES: tuple[str, ...] = ("active", "overdue")
OPEN_STATUSES: tuple[str, ...] = ("active", "overdue", "escalated")
ESCALATABLE_STATUSES: tuple[str, ...] = ("overdue", "escalated")
TERMINAL_STATUSES: tuple[str, ...] = ("completed", "dismissed", "cancelled")

STATUS_FILTER_ALL = "all"

ACTOR_SYSTEM = "system"
ACTOR_OPERATOR = "operator"

__all__ = [
    "ACTOR_OPERATOR",
    "ACTOR_SYSTEM",
    "COMMITMENT_LANGUAGES",
    "COMMITMENT_PRIORITIES",
    "COMMITMENT_STATUSES",
    "COMMITMENT_TYPES",
    "CommitmentLanguage",
    "CommitmentPriority",
    "CommitmentStatus",
    "CommitmentType",
    "ESCALATABLE_STATUSES",
    "LISTED_ACTIVE_STATUSES",
    "OPEN_STATUSES",
    "STATUS_FILTER_ALL",
    "TERMINAL_STATUSES",
]
