"""
Natural date and time phrase resolution.

All resolvers take an explicit reference instant so that every phrase in one
request resolves against the same "now". Unrecognized phrases resolve to None,
which callers treat as "not specified".

Weekday numbers follow the calendar convention Sunday=0 .. Saturday=6.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import NamedTuple

from dateutil import parser as date_literal_parser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)
SATURDAY = 6
FRIDAY = 5
MONDAY = 1

DAYPART_TIMES = {
    "midnight": "00:00",
    "noon": "12:00",
    "morning": "09:00",
    "afternoon": "14:00",
    "evening": "18:00",
    "night": "20:00",
    "tonight": "20:00",
}

_WEEKDAY_ALT = "|".join(WEEKDAYS)
_DAYPART_ALT = "|".join(DAYPART_TIMES)

_PREFIX_RE = re.compile(r"^(?:by|on|due|before|until)\s+")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")
_NEXT_WEEKDAY_RE = re.compile(rf"^next\s+({_WEEKDAY_ALT})$")
_THIS_WEEKDAY_RE = re.compile(rf"^(?:this\s+)?({_WEEKDAY_ALT})$")
_WEEKDAY_DAYPART_RE = re.compile(
    rf"^(?:(next|this)\s+)?({_WEEKDAY_ALT})\s+(?:in\s+the\s+|at\s+)?({_DAYPART_ALT})$"
)
_IN_DAYS_RE = re.compile(r"^in\s+(\d+|an?|one)\s+(day|days|week|weeks)$")
_IN_DURATION_RE = re.compile(
    r"\bin\s+(\d+|an?|one)\s*(min|mins|minute|minutes|hr|hrs|hour|hours)\b"
)
_CLOCK_RE = re.compile(
    r"^(?:at\s+)?(\d{1,2})(?::(\d{2}))?(?::\d{2})?\s*(am|pm|a\.m\.?|p\.m\.?)?$"
)
_DAYPART_RE = re.compile(rf"\b({_DAYPART_ALT})\b")
_COMBINED_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[T ](\d{1,2}):(\d{2})(?::\d{2}(?:\.\d+)?)?"
    r"(?:Z|[+-]\d{2}:?\d{2})?$"
)
_ORDINAL_RE = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)\b")

_YEAR_RE = re.compile(r"\b\d{4}\b|\d+[/.-]\d+[/.-]\d+")

# Phrases located inside free text, longest alternatives first
_TEXT_DATE_RE = re.compile(
    r"\b(?:(?:by|on|due|before|until)\s+)?("
    r"day\s+after\s+tomorrow|today|tomorrow|yesterday"
    r"|next\s+weekend|this\s+weekend|weekend"
    r"|end\s+of\s+(?:the\s+)?(?:week|month)"
    r"|(?:beginning|start)\s+of\s+(?:the\s+)?(?:week|month)"
    r"|next\s+week|next\s+month"
    r"|in\s+(?:\d+|an?|one)\s+(?:days?|weeks?)"
    rf"|(?:(?:next|this)\s+)?(?:{_WEEKDAY_ALT})"
    r"|\d{4}-\d{2}-\d{2}"
    r")\b",
    re.IGNORECASE,
)
_TEXT_DURATION_RE = re.compile(_IN_DURATION_RE.pattern, re.IGNORECASE)
_TEXT_TIME_RE = re.compile(
    r"\b(?:at\s+|by\s+)?(\d{1,2}(?::\d{2})?\s*(?:am|pm))(?![\w.])"
    r"|\bat\s+(\d{1,2}:\d{2}|\d{1,2})\b"
    rf"|\b(?:this\s+|in\s+the\s+|at\s+)?({_DAYPART_ALT})\b",
    re.IGNORECASE,
)


class DateTimeResolution(NamedTuple):
    """A resolved calendar date and clock time."""

    date: str
    time: str


class TextDateExtraction(NamedTuple):
    """Task text with its date and time phrases lifted out."""

    text: str
    due_date: str | None
    due_time: str | None


def is_valid_date(value: object) -> bool:
    """Check that value is a real calendar date in YYYY-MM-DD form."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_time(value: object) -> bool:
    """Check that value is a 24-hour HH:MM clock time."""
    return isinstance(value, str) and bool(_TIME_RE.match(value))


def split_datetime(value: str) -> tuple[str, str] | None:
    """
    Split a combined datetime string into separate date and time parts.

    Args:
        value: String such as "2025-12-10T09:00" or "2025-12-10 09:00:00"

    Returns:
        (date, time) tuple, or None if value is not a combined datetime
    """
    match = _COMBINED_RE.match(value.strip())
    if not match:
        return None
    day, hour, minute = match.groups()
    if not is_valid_date(day) or int(hour) > 23 or int(minute) > 59:
        return None
    return day, f"{int(hour):02d}:{minute}"


def weekday_number(day: date) -> int:
    """Return the Sunday=0 weekday number of a date."""
    return (day.weekday() + 1) % 7


def days_until(target: int, current: int, allow_today: bool = False) -> int:
    """
    Count days from one weekday to the next occurrence of another.

    Args:
        target: Target weekday number (Sunday=0)
        current: Current weekday number (Sunday=0)
        allow_today: Return 0 when target is today instead of a week ahead

    Returns:
        Number of days to add
    """
    diff = (target - current + 7) % 7
    if diff == 0 and not allow_today:
        return 7
    return diff


def next_weekday(today: date, target: int, allow_today: bool = False) -> date:
    """Return the next date falling on the target weekday."""
    return today + timedelta(days=days_until(target, weekday_number(today), allow_today))


def _parse_count(value: str) -> int:
    return 1 if value in ("a", "an", "one") else int(value)


def _normalize(phrase: str) -> str:
    text = " ".join(phrase.lower().split())
    text = text.rstrip(".,!?;")
    return _PREFIX_RE.sub("", text)


def _parse_date_literal(text: str, today: date) -> date | None:
    cleaned = _ORDINAL_RE.sub(r"\1", text)
    combined = split_datetime(cleaned)
    if combined:
        return date.fromisoformat(combined[0])

    if _DATE_RE.match(cleaned):
        return date.fromisoformat(cleaned) if is_valid_date(cleaned) else None
    # A literal needs a day number that is not a clock time
    if _CLOCK_RE.match(cleaned) or not re.search(r"\d", cleaned):
        return None

    try:
        parsed = date_literal_parser.parse(
            cleaned, default=datetime(today.year, today.month, 1)
        ).date()
    except (ValueError, OverflowError):
        return None

    # A month/day without a year means its next occurrence
    if parsed < today and not _YEAR_RE.search(cleaned):
        parsed += relativedelta(years=1)
    return parsed


def _resolve_day(text: str, today: date) -> date | None:
    if text == "today":
        return today
    if text == "tomorrow":
        return today + timedelta(days=1)
    if text == "yesterday":
        return today - timedelta(days=1)
    if text == "day after tomorrow":
        return today + timedelta(days=2)

    if text in ("this weekend", "weekend"):
        return next_weekday(today, SATURDAY)
    if text == "next weekend":
        return next_weekday(today, SATURDAY) + timedelta(days=7)

    if text in ("end of week", "end of the week", "eow"):
        return next_weekday(today, FRIDAY)
    if text in ("end of month", "end of the month", "eom"):
        return today + relativedelta(day=31)
    if text in (
        "beginning of week",
        "beginning of the week",
        "start of week",
        "start of the week",
        "bow",
    ):
        return next_weekday(today, MONDAY)
    if text in (
        "beginning of month",
        "beginning of the month",
        "start of month",
        "start of the month",
        "bom",
    ):
        return today + relativedelta(months=1, day=1)

    match = _NEXT_WEEKDAY_RE.match(text)
    if match:
        return next_weekday(today, WEEKDAYS.index(match.group(1)))

    match = _THIS_WEEKDAY_RE.match(text)
    if match:
        return next_weekday(today, WEEKDAYS.index(match.group(1)), allow_today=True)

    match = _WEEKDAY_DAYPART_RE.match(text)
    if match:
        modifier, weekday, _ = match.groups()
        return next_weekday(
            today, WEEKDAYS.index(weekday), allow_today=modifier == "this"
        )

    match = _IN_DAYS_RE.match(text)
    if match:
        count = _parse_count(match.group(1))
        unit_days = 7 if match.group(2).startswith("week") else 1
        return today + timedelta(days=count * unit_days)

    if text == "next week":
        return today + timedelta(days=7)
    if text == "next month":
        return today + relativedelta(months=1)

    return _parse_date_literal(text, today)


def resolve_date(phrase: str | None, now: datetime | None = None) -> str | None:
    """
    Resolve a natural date phrase to a YYYY-MM-DD string.

    Args:
        phrase: Phrase such as "tomorrow", "next friday" or "end of month"
        now: Reference instant (defaults to the current time)

    Returns:
        ISO date string, or None if the phrase is not recognized
    """
    if not phrase or not isinstance(phrase, str):
        return None
    text = _normalize(phrase)
    if not text:
        return None

    reference = now or datetime.now()
    relative = _IN_DURATION_RE.fullmatch(text)
    if relative:
        resolution = resolve_relative(text, reference)
        return resolution.date if resolution else None

    resolved = _resolve_day(text, reference.date())
    if resolved is None:
        logger.debug(f"Unrecognized date phrase: '{phrase}'")
        return None
    return resolved.isoformat()


def resolve_time(phrase: str | None) -> str | None:
    """
    Resolve a time phrase to a 24-hour HH:MM string.

    Accepts clock times ("3pm", "3:30 pm", "15:45", "at 9") and dayparts
    ("morning", "noon", "midnight"). Out-of-range values are rejected rather
    than clamped.

    Args:
        phrase: Time phrase

    Returns:
        HH:MM string, or None if the phrase is not a valid time
    """
    if not phrase or not isinstance(phrase, str):
        return None
    text = _normalize(phrase)

    match = _CLOCK_RE.match(text)
    if match:
        hour_text, minute_text, meridiem = match.groups()
        hour = int(hour_text)
        minute = int(minute_text) if minute_text else 0
        if minute > 59:
            return None
        if meridiem:
            if not 1 <= hour <= 12:
                return None
            if meridiem.startswith("p") and hour != 12:
                hour += 12
            elif meridiem.startswith("a") and hour == 12:
                hour = 0
        elif hour > 23:
            return None
        return f"{hour:02d}:{minute:02d}"

    # midnight is listed before night so it is never read as 20:00
    match = _DAYPART_RE.search(text)
    if match:
        return DAYPART_TIMES[match.group(1)]

    return None


def resolve_relative(
    phrase: str | None, now: datetime | None = None
) -> DateTimeResolution | None:
    """
    Resolve a phrase that carries both a date and a time.

    "in 10 minutes" and "in 2 hours" resolve to exactly the reference instant
    plus the offset, never rounded. "friday afternoon" resolves to the next
    Friday with the afternoon time.

    Args:
        phrase: Relative phrase
        now: Reference instant (defaults to the current time)

    Returns:
        DateTimeResolution, or None if the phrase is not relative
    """
    if not phrase or not isinstance(phrase, str):
        return None
    text = _normalize(phrase)
    reference = now or datetime.now()

    match = _IN_DURATION_RE.search(text)
    if match:
        count = _parse_count(match.group(1))
        unit = match.group(2)
        delta = (
            timedelta(minutes=count) if unit.startswith("min") else timedelta(hours=count)
        )
        target = reference + delta
        return DateTimeResolution(target.date().isoformat(), target.strftime("%H:%M"))

    match = _WEEKDAY_DAYPART_RE.match(text)
    if match:
        resolved = _resolve_day(text, reference.date())
        if resolved is not None:
            return DateTimeResolution(resolved.isoformat(), DAYPART_TIMES[match.group(3)])

    return None


def extract_date_from_text(
    text: str, now: datetime | None = None
) -> TextDateExtraction:
    """
    Lift date and time phrases out of free task text.

    "Call mom tomorrow at 3pm" becomes text "Call mom" with tomorrow's date and
    15:00.

    Args:
        text: Free task text
        now: Reference instant (defaults to the current time)

    Returns:
        TextDateExtraction with the cleaned text and any resolved fields
    """
    reference = now or datetime.now()
    remaining = text
    due_date: str | None = None
    due_time: str | None = None

    relative = _TEXT_DURATION_RE.search(remaining)
    if relative:
        resolution = resolve_relative(relative.group(0), reference)
        if resolution:
            due_date, due_time = resolution
            remaining = remaining[: relative.start()] + remaining[relative.end() :]

    if due_date is None:
        match = _TEXT_DATE_RE.search(remaining)
        if match:
            resolved = resolve_date(match.group(1), reference)
            if resolved:
                due_date = resolved
                remaining = remaining[: match.start()] + remaining[match.end() :]

    if due_time is None:
        match = _TEXT_TIME_RE.search(remaining)
        if match:
            resolved_time = resolve_time(next(g for g in match.groups() if g))
            if resolved_time:
                due_time = resolved_time
                remaining = remaining[: match.start()] + remaining[match.end() :]

    cleaned = " ".join(remaining.split()).strip(" ,.;-")
    cleaned = re.sub(r"\s+(?:at|by|on|due)$", "", cleaned, flags=re.IGNORECASE)
    return TextDateExtraction(cleaned or text.strip(), due_date, due_time)
