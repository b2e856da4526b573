"""Late, undertime, overtime and night differential calculations."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from dtr_engine.calculators.schedule_resolver import ScheduleResolver, at_time
from dtr_engine.calculators.types import WorkInterval, WorkPeriod, minutes_between
from dtr_engine.models import WorkSchedule


def overlap_minutes(
    start: datetime,
    end: datetime,
    window_start: datetime,
    window_end: datetime,
) -> int:
    """Minutes shared by [start, end) and [window_start, window_end)."""
    return minutes_between(max(start, window_start), min(end, window_end))


class TimeCalculator:
    """Derives time metrics from paired intervals and resolved schedule facts.

    Stateless; the resolver is used only for its schedule arithmetic.
    Flexible schedules resolve to their core hours, so lateness and
    undertime are measured against core hours for them.
    """

    def __init__(self, schedule_resolver: ScheduleResolver):
        self.schedule_resolver = schedule_resolver

    def calculate_late(
        self,
        first_in: datetime,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None = None,
    ) -> int:
        scheduled_start = self.schedule_resolver.get_scheduled_start_time(schedule, on_date, shift_name)
        if scheduled_start is None:
            return 0
        return minutes_between(scheduled_start, first_in)

    def calculate_undertime(
        self,
        last_out: datetime,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None = None,
    ) -> int:
        scheduled_end = self.schedule_resolver.get_scheduled_end_time(schedule, on_date, shift_name)
        if scheduled_end is None:
            return 0
        return minutes_between(last_out, scheduled_end)

    def calculate_overtime(
        self,
        last_out: datetime,
        total_work_minutes: int,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None = None,
    ) -> int:
        """Larger of minutes past scheduled end and minutes over the daily threshold.

        The two signals are alternatives, never summed. Without a resolvable
        scheduled end only the threshold applies.
        """
        excess = max(0, total_work_minutes - schedule.overtime_policy.daily_threshold_minutes)

        scheduled_end = self.schedule_resolver.get_scheduled_end_time(schedule, on_date, shift_name)
        if scheduled_end is None:
            return excess
        return max(minutes_between(scheduled_end, last_out), excess)

    def calculate_night_differential(
        self,
        work_periods: Iterable[WorkPeriod],
        schedule: WorkSchedule,
    ) -> int:
        """Minutes worked inside the night window.

        Each period is checked against the window anchored on its own start
        date and against the previous day's window, which catches early
        morning work continuing a prior night.
        """
        policy = schedule.night_differential_policy
        if not policy.enabled:
            return 0

        total = 0
        for period in work_periods:
            window_start = at_time(period.start.date(), policy.start_time)
            window_end = at_time(period.start.date(), policy.end_time)
            if window_end < window_start:
                window_end += timedelta(days=1)

            total += overlap_minutes(period.start, period.end, window_start, window_end)
            total += overlap_minutes(
                period.start,
                period.end,
                window_start - timedelta(days=1),
                window_end - timedelta(days=1),
            )
        return total

    def convert_pairs_to_work_periods(self, pairs: Iterable[WorkInterval]) -> list[WorkPeriod]:
        """Complete pairs as plain start/end periods."""
        return [
            WorkPeriod(pair.punch_in.logged_at, pair.punch_out.logged_at)
            for pair in pairs
            if pair.punch_out is not None
        ]
