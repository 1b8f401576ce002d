"""Unit tests for the field generators."""

import pytest

from calrecur.rrule.generators import (
    ByDayGenerator,
    ByHourGenerator,
    ByMonthDayGenerator,
    ByMonthGenerator,
    ByWeekNoGenerator,
    ByYearDayGenerator,
    FilteredDayGenerator,
    Generator,
    SerialDayGenerator,
    SerialHourGenerator,
    SerialMonthGenerator,
    SerialYearGenerator,
    Step,
    WeekPacer,
    pump,
    time_field,
)
from calrecur.rrule.models import WeekdayNum
from calrecur.rrule.timeutils import DateTimeBuilder
from calrecur.rrule.values import CalendarDate, CalendarDateTime, Weekday

pytestmark = pytest.mark.unit


def drain_days(generator: Generator, year: int, month: int) -> list[int]:
    """Collect the days a day generator produces for one month."""
    builder = DateTimeBuilder(year, month, 1)
    days = []
    while generator.generate(builder) is Step.VALUE:
        days.append(builder.day)
    return days


def drain_months(generator: Generator, year: int) -> list[int]:
    builder = DateTimeBuilder(year)
    months = []
    while generator.generate(builder) is Step.VALUE:
        months.append(builder.month)
    return months


class TestSerialYearGenerator:
    """Tests for the throttled year generator."""

    def test_steps_by_interval(self) -> None:
        """Test years advance by the interval from the start year."""
        generator = SerialYearGenerator(4, CalendarDate(1996, 11, 5))
        builder = DateTimeBuilder(1996)
        years = []
        for _ in range(3):
            assert generator.generate(builder) is Step.VALUE
            years.append(builder.year)

        assert years == [1996, 2000, 2004]

    def test_halts_without_work(self) -> None:
        """Test the generator halts once its unproductive budget is spent."""
        generator = SerialYearGenerator(1, CalendarDate(2006, 1, 1), max_unproductive_years=3)
        builder = DateTimeBuilder(2006)

        steps = [generator.generate(builder) for _ in range(4)]

        assert steps == [Step.VALUE, Step.VALUE, Step.VALUE, Step.HALT]
        assert builder.year == 2008

    def test_work_done_refills_budget(self) -> None:
        """Test work_done lets the generator continue."""
        generator = SerialYearGenerator(1, CalendarDate(2006, 1, 1), max_unproductive_years=3)
        builder = DateTimeBuilder(2006)
        for _ in range(3):
            generator.generate(builder)

        generator.work_done()

        assert generator.generate(builder) is Step.VALUE
        assert builder.year == 2009
        assert generator.throttled

    def test_pacer_skips_years_without_slots(self) -> None:
        """Test a paced generator spends one call per productive year."""
        start = CalendarDate(2000, 1, 1)
        months = SerialMonthGenerator(5000, start)
        generator = SerialYearGenerator(1, start, max_unproductive_years=3)
        generator.pace_with(months)
        builder = DateTimeBuilder(2000)

        found = []
        for _ in range(3):
            assert generator.generate(builder) is Step.VALUE
            found.append((builder.year, drain_months(months, builder.year)))

        assert found == [(2000, [1]), (2416, [9]), (2833, [5])]

    def test_list_generators_cannot_pace(self) -> None:
        """Test pace_with refuses a generator without year pacing."""
        generator = SerialYearGenerator(1, CalendarDate(2000, 1, 1))

        with pytest.raises(ValueError, match="cannot pace years"):
            generator.pace_with(ByMonthGenerator([1], CalendarDate(2000, 1, 1)))


class TestSerialGenerators:
    """Tests for interval-stepped month, day and hour generators."""

    def test_month_interval_spans_years(self) -> None:
        """Test an 18 month interval keeps its phase across years."""
        generator = SerialMonthGenerator(18, CalendarDate(1997, 9, 10))

        assert drain_months(generator, 1997) == [9]
        assert drain_months(generator, 1998) == []
        assert drain_months(generator, 1999) == [3]

    def test_day_interval_spans_months(self) -> None:
        """Test every other day continues across a month boundary."""
        generator = SerialDayGenerator(2, CalendarDate(1997, 1, 5))

        assert drain_days(generator, 1997, 1) == list(range(5, 32, 2))
        assert drain_days(generator, 1997, 2)[:3] == [2, 4, 6]

    def test_hour_interval_spans_days(self) -> None:
        """Test every third hour continues across midnight."""
        generator = SerialHourGenerator(3, CalendarDateTime(1997, 9, 2, 9))
        hours = []
        for day in (2, 3):
            builder = DateTimeBuilder(1997, 9, day)
            while generator.generate(builder) is Step.VALUE:
                hours.append((day, builder.hour))

        assert hours[:6] == [(2, 9), (2, 12), (2, 15), (2, 18), (2, 21), (3, 0)]
        assert hours[-1] == (3, 21)

    def test_first_year_from(self) -> None:
        """Test the year of the next slot is found without stepping through years."""
        days = SerialDayGenerator(50000, CalendarDate(2000, 1, 1))
        hours = SerialHourGenerator(1000000, CalendarDateTime(2000, 1, 1, 0))
        months = SerialMonthGenerator(18, CalendarDate(1997, 9, 10))

        assert days.first_year_from(2000) == 2000
        assert days.first_year_from(2001) == 2136
        assert hours.first_year_from(2001) == 2114
        assert months.first_year_from(1998) == 1999
        assert days.paces_year and hours.paces_year and months.paces_year


class TestWeekPacer:
    """Tests for year pacing of WEEKLY rules with BYDAY."""

    def test_next_slot_week(self) -> None:
        """Test the year of the next week a multiple of the interval away."""
        pacer = WeekPacer(10000, Weekday.MO, CalendarDate(2000, 1, 3))

        assert pacer.first_year_from(2000) == 2000
        assert pacer.first_year_from(2001) == 2191

    def test_week_reaching_into_year(self) -> None:
        """Test a slot week starting in December counts for the next year."""
        pacer = WeekPacer(1000, Weekday.MO, CalendarDate(2007, 12, 31))

        assert pacer.first_year_from(2008) == 2008
        assert pacer.first_year_from(2009) == 2027


class TestFilteredDayGenerator:
    """Tests for the day generator wrapper applying date-level parts."""

    def test_skips_rejected_days(self) -> None:
        """Test only days passing the predicate are produced."""
        days = SerialDayGenerator(1, CalendarDate(2006, 1, 1))
        generator = FilteredDayGenerator(days, lambda value: value.day % 10 == 0)

        assert drain_days(generator, 2006, 1) == [10, 20, 30]
        assert drain_days(generator, 2006, 2) == [10, 20]


class TestByMonthGenerator:
    """Tests for BYMONTH."""

    def test_skips_months_before_start(self) -> None:
        """Test months before the start are skipped in the start year only."""
        generator = ByMonthGenerator([6, 1, 6], CalendarDate(2006, 3, 1))

        assert drain_months(generator, 2006) == [6]
        assert drain_months(generator, 2007) == [1, 6]


class TestByYearDayGenerator:
    """Tests for BYYEARDAY."""

    @pytest.mark.parametrize(
        "start,month,expected",
        [
            (CalendarDate(2006, 1, 1), 1, [1, 5]),
            (CalendarDate(2006, 1, 2), 1, [5]),
            (CalendarDate(2006, 2, 1), 2, []),
            (CalendarDate(2006, 12, 1), 12, [31]),
            (CalendarDate(2006, 4, 1), 4, [10]),
        ],
    )
    def test_year_days(self, start: CalendarDate, month: int, expected: list[int]) -> None:
        """Test positive and negative year days within a month."""
        generator = ByYearDayGenerator([1, 5, -1, 100], start)

        assert drain_days(generator, 2006, month) == expected

    def test_day_before_start(self) -> None:
        """Test a year day before the start is not produced."""
        generator = ByYearDayGenerator([100], CalendarDate(2006, 1, 6))

        assert drain_days(generator, 2006, 1) == []

    def test_empty_list(self) -> None:
        """Test an empty list produces nothing."""
        assert drain_days(ByYearDayGenerator([], CalendarDate(2006, 1, 1)), 2006, 1) == []

    def test_leap_day(self) -> None:
        """Test day 366 only exists in leap years."""
        generator = ByYearDayGenerator([366], CalendarDate(2003, 1, 1))

        assert drain_days(generator, 2003, 12) == []
        assert drain_days(generator, 2004, 12) == [31]


class TestByWeekNoGenerator:
    """Tests for BYWEEKNO."""

    def test_week_starting_sunday(self) -> None:
        """Test week 22 of 2006 with WKST=SU."""
        generator = ByWeekNoGenerator([22], Weekday.SU, CalendarDate(2006, 1, 1))

        assert drain_days(generator, 2006, 4) == []
        assert drain_days(generator, 2006, 5) == [28, 29, 30, 31]
        assert drain_days(generator, 2006, 6) == [1, 2, 3]

    def test_week_starting_monday(self) -> None:
        """Test week 22 of 2006 with WKST=MO."""
        generator = ByWeekNoGenerator([22], Weekday.MO, CalendarDate(2006, 1, 1))

        assert drain_days(generator, 2006, 5) == [29, 30, 31]
        assert drain_days(generator, 2006, 6) == [1, 2, 3, 4]
        assert drain_days(generator, 2006, 7) == []

    def test_week_in_leap_year(self) -> None:
        """Test week 14 of 2004 spans March and April."""
        generator = ByWeekNoGenerator([14], Weekday.MO, CalendarDate(2004, 1, 1))

        assert drain_days(generator, 2004, 3) == [29, 30, 31]
        assert drain_days(generator, 2004, 4) == [1, 2, 3, 4]

    def test_last_week_reaches_next_year(self) -> None:
        """Test week -1 of 2004 includes the first days of January 2005."""
        generator = ByWeekNoGenerator([-1], Weekday.MO, CalendarDate(2004, 1, 1))

        assert drain_days(generator, 2004, 12) == [27, 28, 29, 30, 31]
        assert drain_days(generator, 2005, 1) == [1, 2]


class TestByDayGenerator:
    """Tests for BYDAY."""

    def test_plain_weekdays(self) -> None:
        """Test entries without an ordinal give every matching day."""
        generator = ByDayGenerator([WeekdayNum.of("MO")], False, CalendarDate(2006, 1, 1))

        assert drain_days(generator, 2006, 1) == [2, 9, 16, 23, 30]

    def test_ordinals_within_month(self) -> None:
        """Test first Monday and last Friday of the month."""
        days = [WeekdayNum.of("MO", 1), WeekdayNum.of("FR", -1)]
        generator = ByDayGenerator(days, False, CalendarDate(2006, 1, 1))

        assert drain_days(generator, 2006, 1) == [2, 27]
        assert drain_days(generator, 2006, 2) == [6, 24]

    def test_ordinals_within_year(self) -> None:
        """Test the 20th Monday of 1997 falls on May 19th."""
        generator = ByDayGenerator([WeekdayNum.of("MO", 20)], True, CalendarDate(1997, 1, 1))

        assert drain_days(generator, 1997, 4) == []
        assert drain_days(generator, 1997, 5) == [19]

    def test_days_before_start(self) -> None:
        """Test days before the start are skipped in its month."""
        generator = ByDayGenerator([WeekdayNum.of("MO")], False, CalendarDate(2006, 1, 10))

        assert drain_days(generator, 2006, 1) == [16, 23, 30]


class TestByMonthDayGenerator:
    """Tests for BYMONTHDAY."""

    def test_negative_and_missing_days(self) -> None:
        """Test days counted from the end and days a month lacks."""
        generator = ByMonthDayGenerator([1, -1, 31], CalendarDate(2006, 1, 1))

        assert drain_days(generator, 2006, 1) == [1, 31]
        assert drain_days(generator, 2006, 2) == [1, 28]
        assert drain_days(generator, 2006, 4) == [1, 30]


class TestTimeGenerators:
    """Tests for the sub-day list generators."""

    def test_single_value(self) -> None:
        """Test a one-element list is flagged as single valued."""
        single = ByHourGenerator([9], CalendarDateTime(2006, 1, 1, 9))
        several = ByHourGenerator([17, 9], CalendarDateTime(2006, 1, 1, 9))

        assert single.single_value
        assert single.value == 9
        assert not several.single_value
        assert several.values == (9, 17)

    def test_time_field(self) -> None:
        """Test time fields of dates default to zero."""
        assert time_field(CalendarDateTime(2006, 1, 1, 9, 30, 15), "minute") == 30
        assert time_field(CalendarDate(2006, 1, 1), "hour") == 0


class TestPump:
    """Tests for driving a generator chain."""

    def test_rollover_of_coarsest_generator(self) -> None:
        """Test the chain reports ROLLOVER when the first generator runs out."""
        generators = [ByMonthGenerator([1, 2], CalendarDate(2006, 1, 1))]
        builder = DateTimeBuilder(2006)

        assert pump(generators, builder, 0) is Step.VALUE
        assert pump(generators, builder, 0) is Step.VALUE
        assert builder.month == 2
        assert pump(generators, builder, 0) is Step.ROLLOVER

    def test_carries_into_coarser_fields(self) -> None:
        """Test exhausting the days of a month moves to the next month."""
        start = CalendarDate(2006, 1, 30)
        generators = [
            SerialYearGenerator(1, start),
            ByMonthGenerator([1, 2], start),
            SerialDayGenerator(1, start),
        ]
        builder = DateTimeBuilder.from_value(start)
        values = []
        step = pump(generators, builder, 0)
        while step is Step.VALUE and len(values) < 4:
            values.append(builder.to_date())
            step = pump(generators, builder)

        assert values == [
            CalendarDate(2006, 1, 30),
            CalendarDate(2006, 1, 31),
            CalendarDate(2006, 2, 1),
            CalendarDate(2006, 2, 2),
        ]

    def test_halts_on_impossible_chain(self) -> None:
        """Test February 30th never exists and the year generator gives up."""
        start = CalendarDate(2006, 1, 1)
        generators = [
            SerialYearGenerator(1, start, max_unproductive_years=5),
            ByMonthGenerator([2], start),
            ByMonthDayGenerator([30], start),
        ]

        assert pump(generators, DateTimeBuilder(2006), 0) is Step.HALT
