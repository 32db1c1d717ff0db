"""Schedule domain models: when a task applies.

A schedule is a closed tagged union discriminated on `type`. Dates are calendar
days in the viewing user's local timezone; no cross-timezone normalization is done.
"""

import datetime as dt
from collections.abc import Iterable
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer, field_validator


class Weekday(StrEnum):
    """Day of week, stored by English name."""

    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"

    @classmethod
    def parse(cls, name: str) -> "Weekday":
        """Parse an English or Uzbek weekday name, case-insensitively."""
        key = name.strip().lower()
        try:
            return _WEEKDAY_ALIASES[key]
        except KeyError:
            raise ValueError(f"Unknown weekday: {name}") from None


# Display order used throughout the app (Sunday first)
WEEK: tuple[Weekday, ...] = tuple(Weekday)

# date.weekday() is Monday=0 .. Sunday=6
_BY_PYTHON_INDEX: tuple[Weekday, ...] = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
)

UZBEK_WEEKDAY_NAMES: dict[Weekday, str] = {
    Weekday.SUNDAY: "Yakshanba",
    Weekday.MONDAY: "Dushanba",
    Weekday.TUESDAY: "Seshanba",
    Weekday.WEDNESDAY: "Chorshanba",
    Weekday.THURSDAY: "Payshanba",
    Weekday.FRIDAY: "Juma",
    Weekday.SATURDAY: "Shanba",
}

_WEEKDAY_ALIASES: dict[str, Weekday] = {
    **{day.value.lower(): day for day in Weekday},
    **{day.value[:3].lower(): day for day in Weekday},
    **{name.lower(): day for day, name in UZBEK_WEEKDAY_NAMES.items()},
}


def weekday_of(day: dt.date) -> Weekday:
    """Return the weekday of a calendar date."""
    return _BY_PYTHON_INDEX[day.weekday()]


def sort_weekdays(days: Iterable[Weekday]) -> list[Weekday]:
    """Sort weekdays in week order (Sunday first)."""
    return sorted(set(days), key=WEEK.index)


class OneTimeSchedule(BaseModel):
    """Due on exactly one calendar date."""

    model_config = ConfigDict(frozen=True)

    type: Literal["one-time"] = "one-time"
    date: dt.date


class RecurringSchedule(BaseModel):
    """Due every week on the selected weekdays."""

    model_config = ConfigDict(frozen=True)

    type: Literal["recurring"] = "recurring"
    days: frozenset[Weekday] = Field(default_factory=frozenset)

    @field_validator("days", mode="before")
    @classmethod
    def parse_day_names(cls, v: Any) -> Any:
        """Accept weekday names in any case, in English or Uzbek."""
        if isinstance(v, str):
            v = [v]
        if isinstance(v, Iterable):
            return frozenset(Weekday.parse(d) if isinstance(d, str) else d for d in v)
        return v

    @field_serializer("days")
    def serialize_days(self, days: frozenset[Weekday]) -> list[str]:
        return [day.value for day in sort_weekdays(days)]

    @classmethod
    def every_day(cls) -> "RecurringSchedule":
        return cls(days=frozenset(Weekday))


class DateRangeSchedule(BaseModel):
    """Due on every day between two dates, inclusive."""

    model_config = ConfigDict(frozen=True)

    type: Literal["date-range"] = "date-range"
    start_date: dt.date
    end_date: dt.date


Schedule = Annotated[
    OneTimeSchedule | RecurringSchedule | DateRangeSchedule,
    Field(discriminator="type"),
]

_schedule_adapter: TypeAdapter[Schedule] = TypeAdapter(Schedule)


def parse_schedule(value: Any) -> Schedule:
    """Build a schedule from a model, dict, or its stored JSON text."""
    if isinstance(value, OneTimeSchedule | RecurringSchedule | DateRangeSchedule):
        return value
    if isinstance(value, str | bytes):
        return _schedule_adapter.validate_json(value)
    return _schedule_adapter.validate_python(value)


def dump_schedule(schedule: Schedule) -> str:
    """Serialize a schedule to JSON text for storage."""
    return _schedule_adapter.dump_json(schedule).decode()
