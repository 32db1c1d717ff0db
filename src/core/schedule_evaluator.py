"""Schedule evaluation: is a task due on a given calendar date.

Pure and synchronous. Dates are compared as calendar days in the viewing user's
local timezone; a task is never normalized across users' timezones.
"""

import datetime as dt
from typing import assert_never

from src.core.errors import InvalidScheduleError
from src.domain.schedule import (
    UZBEK_WEEKDAY_NAMES,
    WEEK,
    DateRangeSchedule,
    OneTimeSchedule,
    RecurringSchedule,
    Schedule,
    Weekday,
    sort_weekdays,
    weekday_of,
)


def is_due_on(schedule: Schedule, date: dt.date) -> bool:
    """Return True if a task with this schedule is due on `date`.

    A recurring schedule with no days is never due.
    """
    match schedule:
        case OneTimeSchedule():
            return date == schedule.date
        case RecurringSchedule():
            return weekday_of(date) in schedule.days
        case DateRangeSchedule():
            return schedule.start_date <= date <= schedule.end_date
        case _:
            assert_never(schedule)


def applicable_days(schedule: Schedule) -> set[Weekday]:
    """Weekdays on which the schedule can be due, for schedule editors."""
    match schedule:
        case OneTimeSchedule():
            return {weekday_of(schedule.date)}
        case RecurringSchedule():
            return set(schedule.days)
        case DateRangeSchedule():
            if schedule.end_date < schedule.start_date:
                return set()
            span_days = (schedule.end_date - schedule.start_date).days + 1
            return {weekday_of(schedule.start_date + dt.timedelta(days=i)) for i in range(min(span_days, 7))}
        case _:
            assert_never(schedule)


def validate_schedule(schedule: Schedule) -> Schedule:
    """Reject schedules that must never be persisted.

    Raises:
        InvalidScheduleError: For a recurring schedule with no days or an inverted date range
    """
    match schedule:
        case RecurringSchedule() if not schedule.days:
            raise InvalidScheduleError("Invalid schedule: a recurring schedule needs at least one weekday")
        case DateRangeSchedule() if schedule.end_date < schedule.start_date:
            raise InvalidScheduleError(
                f"Invalid schedule: end date {schedule.end_date} is before start date {schedule.start_date}"
            )
    return schedule


_EVERY_DAY = {"uz": "Har kuni", "en": "Every day"}
_RANGE_TEMPLATE = {"uz": "{start} dan {end} gacha", "en": "From {start} to {end}"}


def describe_schedule(schedule: Schedule, *, locale: str = "uz") -> str:
    """Human-readable schedule text (e.g. "Har kuni", "Dushanba, Juma", "2026-10-19").

    Args:
        schedule: Schedule to describe
        locale: "uz" or "en"

    Returns:
        Description string
    """
    match schedule:
        case OneTimeSchedule():
            return schedule.date.isoformat()
        case RecurringSchedule():
            if set(schedule.days) == set(WEEK):
                return _EVERY_DAY.get(locale, _EVERY_DAY["uz"])
            days = sort_weekdays(schedule.days)
            if locale == "en":
                return ", ".join(day.value for day in days)
            return ", ".join(UZBEK_WEEKDAY_NAMES[day] for day in days)
        case DateRangeSchedule():
            template = _RANGE_TEMPLATE.get(locale, _RANGE_TEMPLATE["uz"])
            return template.format(start=schedule.start_date.isoformat(), end=schedule.end_date.isoformat())
        case _:
            assert_never(schedule)
