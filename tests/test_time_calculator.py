"""Unit tests for TimeCalculator."""

from datetime import date, datetime
from uuid import uuid4

import pytest

from dtr_engine.calculators.schedule_resolver import ScheduleResolver
from dtr_engine.calculators.time_calculator import TimeCalculator, overlap_minutes
from dtr_engine.calculators.types import Punch, PunchType, WorkInterval, WorkPeriod
from dtr_engine.models import WorkSchedule

MONDAY = date(2024, 1, 15)


def at(hour: int, minute: int = 0, second: int = 0, day: int = 15) -> datetime:
    return datetime(2024, 1, day, hour, minute, second)


def schedule(
    schedule_type: str = "fixed",
    overtime_rules=None,
    night_differential=None,
    **time_configuration,
) -> WorkSchedule:
    return WorkSchedule(
        code="test",
        name="Test",
        schedule_type=schedule_type,
        time_configuration=time_configuration,
        overtime_rules=overtime_rules,
        night_differential=night_differential,
    )


@pytest.fixture
def calculator():
    return TimeCalculator(ScheduleResolver(session=None))


@pytest.fixture
def eight_to_five():
    return schedule(start_time="08:00", end_time="17:00")


class TestLate:
    """Test lateness against scheduled start."""

    def test_late_arrival(self, calculator, eight_to_five):
        assert calculator.calculate_late(at(8, 15), eight_to_five, MONDAY) == 15

    def test_early_arrival_is_not_late(self, calculator, eight_to_five):
        assert calculator.calculate_late(at(7, 50), eight_to_five, MONDAY) == 0

    def test_partial_minute_is_truncated(self, calculator, eight_to_five):
        assert calculator.calculate_late(at(8, 0, 59), eight_to_five, MONDAY) == 0

    def test_flexible_uses_core_start(self, calculator):
        flexible = schedule("flexible", core_hours={"start_time": "10:00", "end_time": "15:00"})

        assert calculator.calculate_late(at(10, 20), flexible, MONDAY) == 20

    def test_no_start_means_no_lateness(self, calculator):
        compressed = schedule("compressed", daily_hours=10)

        assert calculator.calculate_late(at(11, 0), compressed, MONDAY) == 0


class TestUndertime:
    """Test undertime against scheduled end."""

    def test_early_departure(self, calculator, eight_to_five):
        assert calculator.calculate_undertime(at(16, 30), eight_to_five, MONDAY) == 30

    def test_late_departure_is_not_undertime(self, calculator, eight_to_five):
        assert calculator.calculate_undertime(at(17, 30), eight_to_five, MONDAY) == 0

    def test_flexible_uses_core_end(self, calculator):
        flexible = schedule("flexible", core_hours={"start_time": "10:00", "end_time": "15:00"})

        assert calculator.calculate_undertime(at(14, 0), flexible, MONDAY) == 60

    def test_cross_midnight_end(self, calculator):
        night = schedule(start_time="22:00", end_time="06:00")

        assert calculator.calculate_undertime(at(5, 0, day=16), night, MONDAY) == 60


class TestOvertime:
    """Test the larger-of overtime rule."""

    def test_past_scheduled_end(self, calculator, eight_to_five):
        assert calculator.calculate_overtime(at(18, 0), 480, eight_to_five, MONDAY) == 60

    def test_over_daily_threshold(self, calculator, eight_to_five):
        assert calculator.calculate_overtime(at(17, 0), 600, eight_to_five, MONDAY) == 120

    def test_signals_are_not_summed(self, calculator, eight_to_five):
        assert calculator.calculate_overtime(at(18, 0), 600, eight_to_five, MONDAY) == 120

    def test_custom_threshold(self, calculator):
        nine_hour = schedule(
            start_time="08:00", end_time="17:00", overtime_rules={"daily_threshold_hours": 9}
        )

        assert calculator.calculate_overtime(at(17, 0), 600, nine_hour, MONDAY) == 60

    def test_no_scheduled_end_uses_threshold_only(self, calculator):
        compressed = schedule("compressed", daily_hours=10)

        assert calculator.calculate_overtime(at(23, 0), 600, compressed, MONDAY) == 120

    def test_under_everything(self, calculator, eight_to_five):
        assert calculator.calculate_overtime(at(16, 0), 420, eight_to_five, MONDAY) == 0


class TestNightDifferential:
    """Test night window overlap."""

    @pytest.fixture
    def night_enabled(self):
        return schedule(start_time="22:00", end_time="06:00", night_differential={"enabled": True})

    def test_disabled(self, calculator, eight_to_five):
        periods = [WorkPeriod(at(22), at(6, day=16))]

        assert calculator.calculate_night_differential(periods, eight_to_five) == 0

    def test_full_night(self, calculator, night_enabled):
        periods = [WorkPeriod(at(21, 55), at(6, 10, day=16))]

        assert calculator.calculate_night_differential(periods, night_enabled) == 480

    def test_inside_window(self, calculator, night_enabled):
        periods = [WorkPeriod(at(23), at(3, day=16))]

        assert calculator.calculate_night_differential(periods, night_enabled) == 240

    def test_daytime_work(self, calculator, night_enabled):
        periods = [WorkPeriod(at(8), at(17))]

        assert calculator.calculate_night_differential(periods, night_enabled) == 0

    def test_early_morning_counts_previous_night(self, calculator, night_enabled):
        periods = [WorkPeriod(at(4), at(8))]

        assert calculator.calculate_night_differential(periods, night_enabled) == 120

    def test_custom_same_day_window(self, calculator):
        evening = schedule(
            start_time="14:00",
            end_time="22:00",
            night_differential={"enabled": True, "start_time": "20:00", "end_time": "23:00"},
        )
        periods = [WorkPeriod(at(18), at(22))]

        assert calculator.calculate_night_differential(periods, evening) == 120

    def test_sums_periods(self, calculator, night_enabled):
        periods = [WorkPeriod(at(21), at(23)), WorkPeriod(at(0, day=16), at(1, day=16))]

        assert calculator.calculate_night_differential(periods, night_enabled) == 120


class TestHelpers:
    """Test interval helpers."""

    def test_overlap(self):
        assert overlap_minutes(at(8), at(12), at(10), at(14)) == 120

    def test_disjoint_overlap_is_zero(self):
        assert overlap_minutes(at(8), at(9), at(10), at(14)) == 0

    def test_convert_pairs_skips_incomplete(self, calculator):
        complete = WorkInterval(
            Punch(uuid4(), at(8), PunchType.IN),
            Punch(uuid4(), at(12), PunchType.OUT),
        )
        incomplete = WorkInterval(Punch(uuid4(), at(13), PunchType.IN))

        periods = calculator.convert_pairs_to_work_periods([complete, incomplete])

        assert periods == [WorkPeriod(at(8), at(12))]
