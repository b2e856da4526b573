"""Work schedule resolution for an employee and date."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dtr_engine.calculators.schedule_config import (
    DEFAULT_WORK_DAYS,
    WEEKDAYS,
    BreakConfig,
    CompressedTimeConfig,
    ShiftingTimeConfig,
)
from dtr_engine.calculators.types import ExpectedEvent, PunchType
from dtr_engine.config import DtrPolicy
from dtr_engine.models import EmployeeScheduleAssignment, WorkSchedule


def weekday_name(on_date: date) -> str:
    return WEEKDAYS[on_date.weekday()]


def at_time(on_date: date, time_of_day: time) -> datetime:
    """Anchor a time of day onto a calendar date."""
    return datetime.combine(on_date, time_of_day)


@dataclass(frozen=True)
class ResolvedSchedule:
    """Schedule in effect for one employee/date. All None when unassigned."""

    schedule: WorkSchedule | None = None
    assignment: EmployeeScheduleAssignment | None = None
    shift_name: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.schedule is not None


class ScheduleResolver:
    """Resolves the effective work schedule for an employee on a given date.

    Apart from ``resolve`` every method is a pure function of the schedule
    definition and the date; no schedule is a valid outcome, not an error.
    """

    def __init__(self, session: AsyncSession, policy: DtrPolicy | None = None):
        self.session = session
        self.policy = policy or DtrPolicy()

    async def resolve(self, employee_id: UUID, on_date: date) -> ResolvedSchedule:
        """Find the assignment covering ``on_date`` with the latest effective date.

        Args:
            employee_id: The employee to resolve for
            on_date: The calendar date

        Returns:
            The resolved schedule, or an empty ResolvedSchedule when no
            assignment is effective on that date
        """
        result = await self.session.execute(
            select(EmployeeScheduleAssignment)
            .options(selectinload(EmployeeScheduleAssignment.work_schedule))
            .where(
                EmployeeScheduleAssignment.employee_id == employee_id,
                EmployeeScheduleAssignment.effective_date <= on_date,
                or_(
                    EmployeeScheduleAssignment.end_date.is_(None),
                    EmployeeScheduleAssignment.end_date >= on_date,
                ),
            )
            .order_by(EmployeeScheduleAssignment.effective_date.desc())
            .limit(1)
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            return ResolvedSchedule()

        return ResolvedSchedule(
            schedule=assignment.work_schedule,
            assignment=assignment,
            shift_name=assignment.shift_name,
        )

    def is_work_day(self, schedule: WorkSchedule, on_date: date) -> bool:
        """Check if a date is a work day for the schedule.

        Rotating schedules without an explicit work-day set are always a
        potential work day; the shift assignment decides.
        """
        config = schedule.time_config
        if config.work_days is not None:
            return weekday_name(on_date) in config.work_days
        if isinstance(config, ShiftingTimeConfig):
            return True
        return weekday_name(on_date) in DEFAULT_WORK_DAYS

    def get_scheduled_start_time(
        self,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None = None,
    ) -> datetime | None:
        start = schedule.time_config.start_time_for(shift_name)
        if start is None:
            return None
        return at_time(on_date, start)

    def get_scheduled_end_time(
        self,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None = None,
    ) -> datetime | None:
        """Scheduled end on ``on_date``; may fall on the next calendar day.

        A Saturday half day overrides the end time when configured.
        """
        config = schedule.time_config

        if (
            weekday_name(on_date) == "saturday"
            and config.half_day_saturday
            and config.saturday_end_time is not None
        ):
            return at_time(on_date, config.saturday_end_time)

        end = config.end_time_for(shift_name)
        if end is None:
            return None

        end_at = at_time(on_date, end)
        start = config.start_time_for(shift_name)
        if start is not None:
            crosses = end <= start if config.crosses_midnight_on_equal else end < start
            if crosses:
                end_at += timedelta(days=1)
        return end_at

    def get_required_work_minutes(
        self,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None = None,
    ) -> int:
        """Minutes of work expected on ``on_date``.

        Precedence: half-day Saturday, explicit hours per day, compressed
        daily hours (with its half-day weekday), scheduled span less break,
        then the policy default.
        """
        config = schedule.time_config
        weekday = weekday_name(on_date)

        if weekday == "saturday" and config.half_day_saturday:
            return self.policy.half_day_minutes

        if config.required_hours_per_day is not None:
            return int(config.required_hours_per_day * 60)

        if isinstance(config, CompressedTimeConfig):
            if config.half_day is not None and config.half_day.day == weekday:
                return config.half_day.minutes
            return int(config.daily_hours * 60)

        start = self.get_scheduled_start_time(schedule, on_date, shift_name)
        end = self.get_scheduled_end_time(schedule, on_date, shift_name)
        if start is not None and end is not None:
            span = int((end - start).total_seconds() // 60)
            return max(0, span - self.get_break_duration(schedule, shift_name))

        return self.policy.default_required_minutes

    def get_break_config(
        self,
        schedule: WorkSchedule,
        shift_name: str | None = None,
    ) -> BreakConfig | None:
        return schedule.time_config.break_for(shift_name)

    def get_break_duration(self, schedule: WorkSchedule, shift_name: str | None = None) -> int:
        """Configured break minutes; 0 when no break is configured."""
        break_config = self.get_break_config(schedule, shift_name)
        return break_config.duration_minutes if break_config else 0

    def get_break_window(
        self,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None = None,
    ) -> tuple[datetime, datetime] | None:
        """Concrete break start/end, or None when the break start is unknown.

        A break time earlier than the shift start belongs to the part of a
        cross-midnight shift that falls on the next day.
        """
        break_config = self.get_break_config(schedule, shift_name)
        if break_config is None or break_config.start_time is None:
            return None

        break_start = at_time(on_date, break_config.start_time)
        shift_start = self.get_scheduled_start_time(schedule, on_date, shift_name)
        if shift_start is not None and break_start < shift_start:
            break_start += timedelta(days=1)
        return break_start, break_start + timedelta(minutes=break_config.duration_minutes)

    def get_expected_events(
        self,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None = None,
    ) -> list[ExpectedEvent]:
        """Scans the schedule expects: In at start, Out/In around the break, Out at end.

        Empty when the schedule has no resolvable start and end.
        """
        start = self.get_scheduled_start_time(schedule, on_date, shift_name)
        end = self.get_scheduled_end_time(schedule, on_date, shift_name)
        if start is None or end is None:
            return []

        events = [ExpectedEvent(start, PunchType.IN)]
        break_window = self.get_break_window(schedule, on_date, shift_name)
        if break_window is not None:
            break_start, break_end = break_window
            events.append(ExpectedEvent(break_start, PunchType.OUT))
            events.append(ExpectedEvent(break_end, PunchType.IN))
        events.append(ExpectedEvent(end, PunchType.OUT))
        return events
