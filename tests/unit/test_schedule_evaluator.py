from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from src.core.errors import InvalidScheduleError
from src.core.schedule_evaluator import applicable_days, describe_schedule, is_due_on, validate_schedule
from src.domain.schedule import (
    WEEK,
    DateRangeSchedule,
    OneTimeSchedule,
    RecurringSchedule,
    Weekday,
    dump_schedule,
    parse_schedule,
    weekday_of,
)
from tests.unit.conftest import MONDAY, TUESDAY


@pytest.mark.unit
class TestWeekdays:
    def test_weekday_of_known_dates(self):
        assert weekday_of(MONDAY) == Weekday.MONDAY
        assert weekday_of(TUESDAY) == Weekday.TUESDAY
        assert weekday_of(date(2024, 1, 7)) == Weekday.SUNDAY
        assert weekday_of(date(2024, 1, 6)) == Weekday.SATURDAY

    def test_week_starts_on_sunday(self):
        assert WEEK[0] == Weekday.SUNDAY
        assert WEEK[-1] == Weekday.SATURDAY

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Monday", Weekday.MONDAY),
            ("monday", Weekday.MONDAY),
            ("Mon", Weekday.MONDAY),
            ("Dushanba", Weekday.MONDAY),
            ("juma", Weekday.FRIDAY),
            ("Yakshanba", Weekday.SUNDAY),
        ],
    )
    def test_parse_names(self, name, expected):
        assert Weekday.parse(name) == expected

    def test_parse_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown weekday"):
            Weekday.parse("Funday")


@pytest.mark.unit
class TestIsDueOnRecurring:
    def test_due_iff_weekday_in_days(self):
        schedule = RecurringSchedule(days={Weekday.MONDAY, Weekday.WEDNESDAY})
        for offset in range(14):
            day = MONDAY + timedelta(days=offset)
            assert is_due_on(schedule, day) == (weekday_of(day) in {Weekday.MONDAY, Weekday.WEDNESDAY})

    def test_empty_days_never_due(self):
        schedule = RecurringSchedule(days=set())
        assert not any(is_due_on(schedule, MONDAY + timedelta(days=offset)) for offset in range(7))

    def test_every_day(self):
        schedule = RecurringSchedule.every_day()
        assert all(is_due_on(schedule, MONDAY + timedelta(days=offset)) for offset in range(7))


@pytest.mark.unit
class TestIsDueOnOneTime:
    def test_due_only_on_its_date(self):
        schedule = OneTimeSchedule(date=MONDAY)
        assert is_due_on(schedule, MONDAY)
        assert not is_due_on(schedule, MONDAY - timedelta(days=1))
        assert not is_due_on(schedule, MONDAY + timedelta(days=1))
        assert not is_due_on(schedule, MONDAY + timedelta(days=7))


@pytest.mark.unit
class TestIsDueOnDateRange:
    def test_inclusive_bounds(self):
        schedule = DateRangeSchedule(start_date=MONDAY, end_date=MONDAY + timedelta(days=2))
        assert not is_due_on(schedule, MONDAY - timedelta(days=1))
        assert is_due_on(schedule, MONDAY)
        assert is_due_on(schedule, MONDAY + timedelta(days=2))
        assert not is_due_on(schedule, MONDAY + timedelta(days=3))


@pytest.mark.unit
class TestApplicableDays:
    def test_recurring(self):
        assert applicable_days(RecurringSchedule(days=["Friday", "Monday"])) == {Weekday.MONDAY, Weekday.FRIDAY}

    def test_one_time(self):
        assert applicable_days(OneTimeSchedule(date=TUESDAY)) == {Weekday.TUESDAY}

    def test_short_range(self):
        schedule = DateRangeSchedule(start_date=MONDAY, end_date=TUESDAY)
        assert applicable_days(schedule) == {Weekday.MONDAY, Weekday.TUESDAY}

    def test_long_range_covers_week(self):
        schedule = DateRangeSchedule(start_date=MONDAY, end_date=MONDAY + timedelta(days=30))
        assert applicable_days(schedule) == set(WEEK)


@pytest.mark.unit
class TestValidateSchedule:
    def test_rejects_empty_recurring(self):
        with pytest.raises(InvalidScheduleError, match="at least one weekday"):
            validate_schedule(RecurringSchedule(days=[]))

    def test_rejects_inverted_range(self):
        with pytest.raises(InvalidScheduleError, match="before start date"):
            validate_schedule(DateRangeSchedule(start_date=TUESDAY, end_date=MONDAY))

    def test_accepts_valid(self):
        schedule = RecurringSchedule(days=["Monday"])
        assert validate_schedule(schedule) is schedule
        assert validate_schedule(OneTimeSchedule(date=MONDAY))


@pytest.mark.unit
class TestDescribeSchedule:
    def test_every_day(self):
        assert describe_schedule(RecurringSchedule.every_day()) == "Har kuni"
        assert describe_schedule(RecurringSchedule.every_day(), locale="en") == "Every day"

    def test_weekday_list_in_week_order(self):
        schedule = RecurringSchedule(days=["Friday", "Monday"])
        assert describe_schedule(schedule) == "Dushanba, Juma"
        assert describe_schedule(schedule, locale="en") == "Monday, Friday"

    def test_one_time(self):
        assert describe_schedule(OneTimeSchedule(date=MONDAY)) == "2024-01-01"

    def test_date_range(self):
        schedule = DateRangeSchedule(start_date=MONDAY, end_date=TUESDAY)
        assert describe_schedule(schedule, locale="en") == "From 2024-01-01 to 2024-01-02"


@pytest.mark.unit
class TestScheduleStorage:
    def test_json_round_trip_keeps_variant(self):
        schedule = RecurringSchedule(days=["Dushanba", "Juma"])
        stored = dump_schedule(schedule)

        assert '"type":"recurring"' in stored
        assert parse_schedule(stored) == schedule

    def test_days_serialized_in_week_order(self):
        stored = dump_schedule(RecurringSchedule(days=["Saturday", "Sunday", "Monday"]))
        assert '["Sunday","Monday","Saturday"]' in stored

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_schedule({"type": "monthly", "day": 3})

    def test_unknown_weekday_rejected(self):
        with pytest.raises(ValidationError):
            RecurringSchedule(days=["Funday"])
