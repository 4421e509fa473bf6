"""Keyword-based commitment classification for agent-authored messages."""

from __future__ import annotations

from dataclasses import dataclass

from commitments.constants import CommitmentLanguage, CommitmentType
from commitments.patterns import ALL_MATCHERS, CommitmentMatcher
from config import settings

_APOSTROPHES = str.maketrans(
    {
        "’": "'",
        "‘": "'",
        "ʻ": "'",
        "ʼ": "'",
        "`": "'",
        "ё": "е",
    }
)


@dataclass(frozen=True)
class Detection:
    """Classification verdict for one message."""

    has_commitment: bool
    commitment_type: CommitmentType | None = None
    is_vague: bool = False
    matched_text: str | None = None
    raw_timeframe_hint: str | None = None
    language: CommitmentLanguage | None = None
    matcher: str | None = None


NO_COMMITMENT = Detection(has_commitment=False)


def classify(
    text: str | None,
    *,
    matchers: tuple[CommitmentMatcher, ...] = ALL_MATCHERS,
    min_length: int | None = None,
) -> Detection:
    """Classify free text into a commitment detection verdict."""
    if not text:
        return NO_COMMITMENT
    normalized = _normalize_text(text)
    threshold = settings.commitments.min_text_length if min_length is None else min_length
    if len(normalized) < threshold:
        return NO_COMMITMENT
    for matcher in matchers:
        match = matcher.search(normalized)
        if match is None:
            continue
        matched_text = match.group(0).strip()
        return Detection(
            has_commitment=True,
            commitment_type=matcher.commitment_type,
            is_vague=matcher.commitment_type == "vague",
            matched_text=matched_text,
            raw_timeframe_hint=matched_text if matcher.commitment_type == "time" else None,
            language=matcher.language,
            matcher=matcher.name,
        )
    return NO_COMMITMENT


def _normalize_text(text: str) -> str:
    """Normalize message text for pattern matching."""
    return " ".join(text.split()).lower().translate(_APOSTROPHES)


__all__ = ["Detection", "NO_COMMITMENT", "classify"]
