"""Smart default due date and time selection."""

import logging
from datetime import date, datetime, timedelta

from .date_parser import SATURDAY, next_weekday, weekday_number
from .keywords import SMART_DEFAULT_KEYWORDS, match_category
from .models import DefaultTiming, SmartDefaults

logger = logging.getLogger(__name__)

# Hour at which "send it today" turns into "send it tomorrow morning"
COMMUNICATION_CUTOFF_HOUR = 17


def should_apply_defaults(due_date: str | None, due_time: str | None) -> bool:
    """
    Check whether a task needs inferred defaults.

    Either field on its own counts as explicit user intent.

    Args:
        due_date: Due date, if any
        due_time: Due time, if any

    Returns:
        True only when both fields are absent
    """
    return not due_date and not due_time


def next_business_day(now: datetime) -> date:
    """
    Return the next business day after the reference instant.

    Tomorrow, unless tomorrow is a Saturday (skip to Monday) or a Sunday
    (skip to Monday).
    """
    tomorrow = now.date() + timedelta(days=1)
    weekday = weekday_number(tomorrow)
    if weekday == SATURDAY:
        return tomorrow + timedelta(days=2)
    if weekday == 0:
        return tomorrow + timedelta(days=1)
    return tomorrow


def _at(day: date, time: str, reason: str) -> SmartDefaults:
    return SmartDefaults(due_date=day.isoformat(), due_time=time, reason=reason)


def _smart_defaults(task_text: str, now: datetime) -> SmartDefaults:
    today = now.date()
    tomorrow = today + timedelta(days=1)
    category = match_category(task_text or "", SMART_DEFAULT_KEYWORDS)

    if category == "urgent":
        soon = now + timedelta(hours=1)
        return _at(soon.date(), soon.strftime("%H:%M"), "Urgent task - 1 hour from now")
    if category == "today":
        return _at(today, "17:00", "Today task - This afternoon")
    if category == "shopping":
        return _at(
            next_weekday(today, SATURDAY), "10:00", "Shopping task - Weekend morning"
        )
    if category == "meeting":
        return _at(
            next_business_day(now), "14:00", "Meeting task - Next business day afternoon"
        )
    if category == "communication":
        if now.hour >= COMMUNICATION_CUTOFF_HOUR:
            return _at(tomorrow, "09:00", "Communication task - Tomorrow morning")
        return _at(today, "18:00", "Communication task - This evening")
    if category == "work":
        return _at(
            next_business_day(now), "17:00", "Work task - End of next business day"
        )
    if category == "appointment":
        return _at(
            next_business_day(now), "10:00", "Appointment - Next business day morning"
        )
    if category == "exercise":
        return _at(tomorrow, "07:00", "Exercise task - Tomorrow morning")

    return _at(tomorrow, "09:00", "Default - Tomorrow morning")


def get_smart_defaults(
    task_text: str,
    policy: DefaultTiming | str = DefaultTiming.TOMORROW_MORNING,
    now: datetime | None = None,
) -> SmartDefaults:
    """
    Infer a due date and time for a task the user left undated.

    Args:
        task_text: Task text, scanned for keywords in smart mode
        policy: Default timing policy; unknown values act as tomorrow_morning
        now: Reference instant (defaults to the current time)

    Returns:
        SmartDefaults with the chosen date, time and the reason for it
    """
    reference = now or datetime.now()

    try:
        timing = DefaultTiming(policy)
    except ValueError:
        logger.warning(f"Unknown default timing '{policy}', using tomorrow_morning")
        timing = DefaultTiming.TOMORROW_MORNING

    if timing is DefaultTiming.MANUAL:
        return SmartDefaults(due_date=None, due_time=None, reason="Defaults disabled")
    if timing is DefaultTiming.END_OF_TODAY:
        return _at(reference.date(), "23:59", "End of today")
    if timing is DefaultTiming.NEXT_BUSINESS_DAY:
        return _at(next_business_day(reference), "09:00", "Next business day morning")
    if timing is DefaultTiming.SMART:
        defaults = _smart_defaults(task_text, reference)
        logger.debug(f"Smart defaults for '{task_text}': {defaults.reason}")
        return defaults

    return _at(reference.date() + timedelta(days=1), "09:00", "Tomorrow morning")
