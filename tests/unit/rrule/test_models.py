"""Unit tests for the recurrence rule models."""

import logging

import pytest
from pydantic import ValidationError

from calrecur.rrule.exceptions import RRuleValidationError
from calrecur.rrule.models import Frequency, RecurrenceRule, WeekdayNum
from calrecur.rrule.values import CalendarDate, CalendarDateTime, Weekday

pytestmark = pytest.mark.unit


class TestFrequency:
    """Tests for the Frequency enum."""

    def test_granularity(self) -> None:
        """Test frequencies are ordered from finest to coarsest."""
        assert Frequency.SECONDLY.rank == 0
        assert Frequency.YEARLY.rank == 6
        assert Frequency.DAILY.is_finer_than(Frequency.WEEKLY)
        assert not Frequency.MONTHLY.is_finer_than(Frequency.WEEKLY)
        assert not Frequency.DAILY.is_finer_than(Frequency.DAILY)


class TestWeekdayNum:
    """Tests for BYDAY entries."""

    def test_str(self) -> None:
        """Test rendering with and without an ordinal."""
        assert str(WeekdayNum.of("MO")) == "MO"
        assert str(WeekdayNum.of(Weekday.FR, -1)) == "-1FR"
        assert str(WeekdayNum.of("su", 20)) == "20SU"

    @pytest.mark.parametrize("ordinal", [0, 54, -54])
    def test_ordinal_out_of_range(self, ordinal: int) -> None:
        """Test ordinals must be within ±1..53."""
        with pytest.raises(RRuleValidationError, match="BYDAY ordinal"):
            WeekdayNum.of("MO", ordinal)

    def test_ordinal_rejection_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a bad ordinal is logged before it is reported."""
        with caplog.at_level(logging.WARNING), pytest.raises(RRuleValidationError, match="got 60"):
            WeekdayNum.of("FR", 60)

        assert "Rejected BYDAY entry 60FR" in caplog.text

    def test_is_hashable(self) -> None:
        """Test equal entries hash alike."""
        assert len({WeekdayNum.of("MO", 1), WeekdayNum.of(Weekday.MO, 1)}) == 1


class TestRecurrenceRuleBuilder:
    """Tests for building rules."""

    def test_defaults(self) -> None:
        """Test a bare rule has interval 1, no bound and WKST=MO."""
        rule = RecurrenceRule.builder(Frequency.DAILY).build()

        assert rule.interval == 1
        assert rule.count is None
        assert rule.until is None
        assert rule.by_day == ()
        assert rule.week_start is Weekday.MO

    def test_builder_collects_parts(self) -> None:
        """Test every builder method sets its part."""
        rule = (
            RecurrenceRule.builder("YEARLY")
            .interval(2)
            .until(CalendarDate(2000, 1, 1))
            .by_second(0)
            .by_minute(30)
            .by_hour(9, 17)
            .by_day(Weekday.MO, WeekdayNum.of("FR", -1))
            .by_month_day(1, -1)
            .by_year_day(100)
            .by_week_no(-1)
            .by_month(1, 6)
            .by_set_pos(1)
            .week_start(Weekday.SU)
            .build()
        )

        assert rule.freq is Frequency.YEARLY
        assert rule.interval == 2
        assert rule.until == CalendarDate(2000, 1, 1)
        assert rule.by_hour == (9, 17)
        assert rule.by_day == (WeekdayNum.of("MO"), WeekdayNum.of("FR", -1))
        assert rule.by_month_day == (1, -1)
        assert rule.by_week_no == (-1,)
        assert rule.week_start is Weekday.SU
        assert rule.has_ordinal_by_day

    def test_count_and_until_are_exclusive(self) -> None:
        """Test COUNT and UNTIL cannot both be set."""
        builder = RecurrenceRule.builder(Frequency.DAILY).count(3).until(CalendarDate(2000, 1, 1))

        with pytest.raises(RRuleValidationError, match="COUNT and UNTIL"):
            builder.build()

    @pytest.mark.parametrize(
        "part,values",
        [
            ("by_second", (60,)),
            ("by_minute", (-1,)),
            ("by_hour", (24,)),
            ("by_month_day", (0,)),
            ("by_month_day", (32,)),
            ("by_year_day", (-367,)),
            ("by_week_no", (54,)),
            ("by_month", (13,)),
            ("by_set_pos", (0,)),
        ],
    )
    def test_out_of_range_values(self, part: str, values: tuple) -> None:
        """Test BY-part values are range checked."""
        builder = RecurrenceRule.builder(Frequency.YEARLY)
        getattr(builder, part)(*values)

        with pytest.raises(RRuleValidationError):
            builder.build()

    @pytest.mark.parametrize("part,value", [("interval", 0), ("count", 0), ("count", -5)])
    def test_non_positive_interval_and_count(self, part: str, value: int) -> None:
        """Test INTERVAL and COUNT must be positive."""
        builder = RecurrenceRule.builder(Frequency.DAILY)
        getattr(builder, part)(value)

        with pytest.raises(RRuleValidationError, match="positive integer"):
            builder.build()

    def test_rejections_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test validator failures are logged and reported without pydantic framing."""
        builder = RecurrenceRule.builder(Frequency.DAILY).interval(0).by_hour(24)

        with caplog.at_level(logging.WARNING), pytest.raises(RRuleValidationError) as exc_info:
            builder.build()

        assert exc_info.value.message == (
            "Invalid recurrence rule: INTERVAL must be a positive integer, got 0; "
            "BYHOUR values must be within 0..23, got 24"
        )
        assert "Rejected recurrence rule parts" in caplog.text

    def test_unknown_frequency(self) -> None:
        """Test pydantic errors are reported as RRuleValidationError."""
        with pytest.raises(RRuleValidationError, match="Invalid recurrence rule"):
            RecurrenceRule.builder("FORTNIGHTLY").build()

    def test_rules_are_frozen(self) -> None:
        """Test rules cannot be modified after construction."""
        rule = RecurrenceRule.builder(Frequency.DAILY).build()

        with pytest.raises(ValidationError):
            rule.interval = 2  # type: ignore[misc]


class TestToIcal:
    """Tests for rendering rules as RRULE text."""

    def test_parts_in_canonical_order(self) -> None:
        """Test parts render in a fixed order regardless of build order."""
        rule = (
            RecurrenceRule.builder(Frequency.MONTHLY)
            .by_set_pos(3)
            .by_day(Weekday.TU, Weekday.WE, Weekday.TH)
            .count(3)
            .build()
        )

        assert rule.to_ical() == "FREQ=MONTHLY;COUNT=3;BYDAY=TU,WE,TH;BYSETPOS=3"
        assert str(rule) == rule.to_ical()

    def test_until_and_week_start(self) -> None:
        """Test UNTIL date-times get a Z suffix and non-default WKST is kept."""
        rule = (
            RecurrenceRule.builder(Frequency.WEEKLY)
            .interval(2)
            .until(CalendarDateTime(1997, 12, 24))
            .week_start(Weekday.SU)
            .build()
        )

        assert rule.to_ical() == "FREQ=WEEKLY;UNTIL=19971224T000000Z;INTERVAL=2;WKST=SU"

    def test_until_date(self) -> None:
        """Test DATE bounds render without a time."""
        rule = RecurrenceRule.builder(Frequency.DAILY).until(CalendarDate(1997, 12, 24)).build()

        assert rule.to_ical() == "FREQ=DAILY;UNTIL=19971224"

    def test_round_trip_through_parser(self) -> None:
        """Test rendered text parses back to an equal rule."""
        rule = RecurrenceRule.from_ical("FREQ=YEARLY;BYMONTH=3;BYDAY=SA,SU;BYSETPOS=-1;WKST=SU")

        assert RecurrenceRule.from_ical(rule.to_ical()) == rule
