"""Prioritized commitment matchers for Russian, Uzbek, and English agent replies.

Matchers are evaluated in list order and the first hit wins. All time
matchers precede all action matchers, which precede all vague matchers, so a
message that names a concrete timeframe is never downgraded to a bare promise.
Within a group, more specific phrasings come before the words they contain
("завтра утром" before "завтра").

Patterns run against lower-cased text with apostrophe variants folded to
ASCII ``'`` and ``ё`` folded to ``е``.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

from commitments.constants import CommitmentLanguage, CommitmentType

_COUNT = r"(?<![\d.,:])[1-9]\d{0,3}"


@dataclass(frozen=True)
class CommitmentMatcher:
    """Tagged regular expression that recognizes one commitment phrasing."""

    name: str
    pattern: re.Pattern[str]
    commitment_type: CommitmentType
    language: CommitmentLanguage

    def search(self, text: str) -> re.Match[str] | None:
        """Return the first match of this matcher in normalized text."""
        return self.pattern.search(text)


def _matcher(
    name: str,
    pattern: str,
    commitment_type: CommitmentType,
    language: CommitmentLanguage,
) -> CommitmentMatcher:
    return CommitmentMatcher(
        name=name,
        pattern=re.compile(pattern, re.IGNORECASE),
        commitment_type=commitment_type,
        language=language,
    )


def _group(
    commitment_type: CommitmentType,
    language: CommitmentLanguage,
    entries: tuple[tuple[str, str], ...],
) -> list[CommitmentMatcher]:
    return [_matcher(name, pattern, commitment_type, language) for name, pattern in entries]


TIME_MATCHERS: tuple[CommitmentMatcher, ...] = tuple(
    _group(
        "time",
        "ru",
        (
            ("ru_tomorrow_morning", r"завтра\s+(?:с\s+утра|утром)"),
            ("ru_half_hour", r"через\s+(?:пол\s*-?\s*часа|полчаса)"),
            ("ru_couple_hours", r"через\s+пару\s+час(?:ов|а)?\b"),
            ("ru_minutes", rf"(?:через\s+)?{_COUNT}\s*мин(?:ут\w*)?\b\.?"),
            ("ru_hours", rf"(?:через\s+)?{_COUNT}\s*час(?:а|ов)?\b"),
            ("ru_one_hour", r"через\s+час\b"),
            ("ru_ready_in", r"будет\s+готово\s+через"),
            ("ru_clock", r"(?:\bк|\bдо)\s+(?:[01]?\d|2[0-3])[:.][0-5]\d"),
            ("ru_end_of_day", r"до\s+конца\s+(?:рабочего\s+)?дня"),
            ("ru_evening", r"к\s+вечеру"),
            ("ru_lunch", r"к\s+обеду"),
            ("ru_today", r"сегодня"),
            ("ru_tomorrow", r"завтра"),
            ("ru_morning", r"с\s+утра|\bутром\b"),
            ("ru_near_future", r"(?:в\s+)?ближайшее\s+время"),
        ),
    )
    + _group(
        "time",
        "uz_latin",
        (
            ("uz_tomorrow_morning", r"ertaga\s+ertalab"),
            ("uz_half_hour", r"yarim\s+soat(?:da|dan\s+keyin|\s+ichida)?"),
            ("uz_minutes", rf"{_COUNT}\s*daqiqa(?:da|dan\s+keyin|\s+ichida)?"),
            ("uz_hours", rf"{_COUNT}\s*soat(?:da|dan\s+keyin|\s+ichida)?"),
            ("uz_one_hour", r"bir\s+soat(?:da|dan\s+keyin|\s+ichida)"),
            ("uz_end_of_day", r"kun\s+oxiri(?:gacha)?|kechqurun(?:gacha)?"),
            ("uz_lunch", r"tushlik(?:gacha|dan\s+keyin)?"),
            ("uz_today", r"bugun"),
            ("uz_tomorrow", r"ertaga"),
            ("uz_morning", r"ertalab"),
            ("uz_near_future", r"yaqin\s+vaqt(?:da)?"),
        ),
    )
    + _group(
        "time",
        "uz_cyrillic",
        (
            ("uzc_tomorrow_morning", r"эртага\s+эрталаб"),
            ("uzc_half_hour", r"ярим\s+соат(?:да|дан\s+кейин)?"),
            ("uzc_minutes", rf"{_COUNT}\s*дақиқа(?:да|дан\s+кейин)?"),
            ("uzc_hours", rf"{_COUNT}\s*соат(?:да|дан\s+кейин)?"),
            ("uzc_one_hour", r"бир\s+соат(?:да|дан\s+кейин)"),
            ("uzc_end_of_day", r"кун\s+охири(?:гача)?|кечқурун(?:гача)?"),
            ("uzc_lunch", r"тушлик(?:гача|дан\s+кейин)?"),
            ("uzc_today", r"бугун"),
            ("uzc_tomorrow", r"эртага"),
            ("uzc_morning", r"эрталаб"),
            ("uzc_near_future", r"яқин\s+вақт(?:да)?"),
        ),
    )
    + _group(
        "time",
        "en",
        (
            ("en_tomorrow_morning", r"\btomorrow\s+morning\b"),
            ("en_half_hour", r"\bhalf\s+an\s+hour\b"),
            ("en_couple_hours", r"\b(?:a\s+)?couple\s+(?:of\s+)?hours\b"),
            ("en_minutes", rf"\b(?:in\s+)?{_COUNT}\s*(?:minutes?|mins?)\b"),
            ("en_hours", rf"\b(?:in\s+)?{_COUNT}\s*(?:hours?|hrs?)\b"),
            ("en_one_hour", r"\bin\s+an\s+hour\b"),
            ("en_clock", r"\b(?:by|until)\s+(?:[01]?\d|2[0-3]):[0-5]\d\b"),
            ("en_end_of_day", r"\bby\s+(?:the\s+)?end\s+of\s+(?:the\s+)?day\b|\beod\b"),
            ("en_evening", r"\bby\s+(?:the\s+)?evening\b|\btonight\b"),
            ("en_lunch", r"\bby\s+lunch\b"),
            ("en_today", r"\btoday\b"),
            ("en_tomorrow", r"\btomorrow\b"),
            ("en_morning", r"\bin\s+the\s+morning\b"),
            ("en_near_future", r"\bin\s+the\s+near\s+future\b"),
        ),
    )
)

ACTION_MATCHERS: tuple[CommitmentMatcher, ...] = tuple(
    _group(
        "action",
        "ru",
        (
            ("ru_ticket", r"(?:сформирую|создам)\s+тикет"),
            ("ru_take_on", r"возьм(?:у|е|ё)тся\s+за|возьмутся\s+за"),
            ("ru_will_handle", r"займ(?:у|е|ё)(?:сь|тся)"),
            ("ru_work_out", r"(?:от|об)работа(?:ю|ем|ет|ть)"),
            ("ru_fix", r"(?:ис|по)прав(?:лю|ят|им|ит|ь)"),
            ("ru_do", r"сдела(?:ю|ем|ют)"),
            ("ru_will_be_done", r"будет\s+(?:сделано|готово|исправлено|решено)"),
            ("ru_solve", r"реш(?:у|им|ат)\b"),
            ("ru_check", r"провер(?:ю|им|ят)\b"),
            ("ru_clarify", r"уточн(?:ю|им)\b"),
            ("ru_find_out", r"(?:узнаю|узнаем|выясню|выясним)\b"),
            ("ru_pass_on", r"переда(?:м|дим)\b"),
            ("ru_contact", r"свяж(?:усь|емся)\b|перезвон(?:ю|им)\b"),
            ("ru_reply", r"(?:отвечу|ответим|напишу|сообщу)\b"),
            ("ru_try", r"постара(?:юсь|емся)"),
            ("ru_execute", r"выполн(?:ю|им|ят)\b"),
            ("ru_look", r"посмотр(?:ю|им|ят)\b"),
            ("ru_must_do", r"(?:надо|нужно|срочно)\s+(?:\w+\s+)?(?:проверить|сделать)"),
        ),
    )
    + _group(
        "action",
        "uz_latin",
        (
            ("uz_fix_solve", r"hal\s+qila(?:man|miz)|harakat\s+qila(?:man|miz)"),
            ("uz_do", r"qila(?:man|miz)|qilishadi"),
            ("uz_check", r"tekshira(?:man|miz)"),
            ("uz_fix", r"to'g'irlay(?:man|miz)|tuzata(?:man|miz)|yecha(?:man|miz)"),
            ("uz_contact", r"bog'lana(?:man|miz)"),
            ("uz_reply", r"(?:xabar|javob)\s+bera(?:man|miz)"),
            ("uz_develop", r"ishlab\s+chiqa(?:man|miz)"),
            ("uz_will_be_done", r"tayyor\s+bo'ladi|amalga\s+oshiriladi|bajariladi"),
            ("uz_look", r"ko'ra(?:man|miz)"),
            ("uz_clarify", r"aniqlay(?:man|miz)"),
            ("uz_execute", r"bajara(?:man|miz)"),
        ),
    )
    + _group(
        "action",
        "uz_cyrillic",
        (
            ("uzc_fix_solve", r"ҳал\s+қила(?:ман|миз)|хал\s+кила(?:ман|миз)"),
            ("uzc_do", r"қила(?:ман|миз)|кила(?:ман|миз)"),
            ("uzc_check", r"текшира(?:ман|миз)"),
            ("uzc_fix", r"тузата(?:ман|миз)"),
            ("uzc_contact", r"боғлана(?:ман|миз)"),
            ("uzc_reply", r"(?:хабар|жавоб)\s+бера(?:ман|миз)"),
            ("uzc_look", r"кўра(?:ман|миз)"),
            ("uzc_execute", r"бажара(?:ман|миз)"),
        ),
    )
    + _group(
        "action",
        "en",
        (
            (
                "en_will_verb",
                r"\b(?:i|we)(?:'ll|\s+will)\s+"
                r"(?:check|fix|look|handle|resolve|get\s+back|follow\s+up|update|investigate|call)\b",
            ),
            ("en_let_me", r"\blet\s+me\s+(?:check|look|verify|find\s+out)\b"),
            ("en_will_be_done", r"\bwill\s+be\s+(?:fixed|done|resolved|ready)\b"),
        ),
    )
)

VAGUE_MATCHERS: tuple[CommitmentMatcher, ...] = tuple(
    _group(
        "vague",
        "ru",
        (
            ("ru_right_now", r"сейчас\s+(?:проверю|посмотрю|уточню|узнаю)"),
            ("ru_one_moment", r"минуточку|секундочку"),
            ("ru_wait", r"подождите"),
            ("ru_will_sort_out", r"разбер(?:усь|емся)|разбираемся"),
            ("ru_soon", r"(?:очень\s+)?скоро"),
            ("ru_later", r"(?:чуть\s+)?(?:по)?позже"),
            ("ru_in_progress", r"в\s+процессе|работаем"),
            ("ru_will_take", r"займемся|возьмемся"),
        ),
    )
    + _group(
        "vague",
        "uz_latin",
        (
            ("uz_now", r"\bhozir\b"),
            ("uz_wait", r"kutib\s+turing"),
            ("uz_one_moment", r"bir\s+daqiqa"),
            ("uz_soon", r"tez\s+orada|yaqinda"),
            ("uz_later", r"keyinroq"),
            ("uz_working", r"ishlaymiz"),
        ),
    )
    + _group(
        "vague",
        "uz_cyrillic",
        (
            ("uzc_now", r"ҳозир|хозир"),
            ("uzc_wait", r"кутиб\s+туринг"),
            ("uzc_soon", r"тез\s+орада|яқинда"),
            ("uzc_later", r"кейинроқ"),
        ),
    )
    + _group(
        "vague",
        "en",
        (
            ("en_one_moment", r"\b(?:one|just\s+a)\s+(?:moment|sec(?:ond)?|minute)\b"),
            ("en_wait", r"\b(?:hold\s+on|please\s+wait)\b"),
            ("en_soon", r"\bsoon\b|\bshortly\b"),
            ("en_later", r"\blater\b"),
            ("en_working", r"\b(?:working|looking)\s+(?:on|into)\s+it\b"),
        ),
    )
)

ALL_MATCHERS: tuple[CommitmentMatcher, ...] = TIME_MATCHERS + ACTION_MATCHERS + VAGUE_MATCHERS

__all__ = [
    "ACTION_MATCHERS",
    "ALL_MATCHERS",
    "CommitmentMatcher",
    "TIME_MATCHERS",
    "VAGUE_MATCHERS",
]
