"""Daily time record computation.

Orchestrates schedule resolution, scan direction inference, pairing and
time metrics for one employee/date, then persists the record and its
punches as a full replace.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dtr_engine.calculators.punch_pair_processor import PunchPairProcessor
from dtr_engine.calculators.schedule_resolver import ResolvedSchedule, ScheduleResolver
from dtr_engine.calculators.time_calculator import TimeCalculator
from dtr_engine.calculators.types import (
    DayComputation,
    DtrStatus,
    HolidayType,
    MatchResult,
    Punch,
    PunchPairResult,
    minutes_between,
)
from dtr_engine.clock import Clock, system_clock
from dtr_engine.config import DtrPolicy, get_settings
from dtr_engine.database import acquire_dtr_lock
from dtr_engine.models import (
    AttendanceLog,
    DailyTimeRecord,
    Employee,
    Holiday,
    TimeRecordPunch,
    WorkSchedule,
)

logger = logging.getLogger(__name__)

NO_SCHEDULE_REASON = "No schedule assigned"
REST_DAY_REMARK = "Worked on rest day"
REST_DAY_REASON = "Work on rest day - OT pending approval"
HOLIDAY_REASON = "Holiday work - OT pending approval"
MISSING_TIME_OUT_REASON = "Missing time-out"
MISSING_TIME_IN_REASON = "Missing time-in"


def unmatched_scans_reason(count: int) -> str:
    return f"{count} attendance scan(s) could not be matched to schedule"


class DtrCalculationService:
    """Computes and stores daily time records.

    Usage:
        service = DtrCalculationService(session, clock=fixed_clock(now))
        record = await service.calculate_for_date(employee, date(2024, 1, 15))

    The caller owns the transaction; this service only flushes.
    """

    def __init__(
        self,
        session: AsyncSession,
        policy: DtrPolicy | None = None,
        clock: Clock = system_clock,
    ):
        self.session = session
        self.policy = policy or get_settings().policy
        self.clock = clock
        self.schedule_resolver = ScheduleResolver(session, self.policy)
        self.punch_processor = PunchPairProcessor(self.policy)
        self.time_calculator = TimeCalculator(self.schedule_resolver)

    async def calculate_for_date(self, employee: Employee, on_date: date) -> DailyTimeRecord:
        """Compute, persist and return the record for one employee/date.

        Args:
            employee: The employee to compute for
            on_date: The calendar date

        Returns:
            The stored record with ``work_schedule`` and ``punches`` loaded

        Raises:
            ScheduleConfigurationError: If the resolved schedule is malformed
        """
        await acquire_dtr_lock(self.session, employee.employee_id, on_date)

        resolved = await self.schedule_resolver.resolve(employee.employee_id, on_date)
        scans = await self._get_scans_for_date(employee, on_date, resolved)

        match = MatchResult(punches=())
        if scans:
            match = self._resolve_directions([Punch.from_scan(scan) for scan in scans], resolved, on_date)

        computation = await self._compute_day(employee, on_date, resolved, match)
        record = await self._save_record(employee, on_date, computation)

        logger.info(
            "Computed DTR employee=%s date=%s status=%s work=%d late=%d undertime=%d "
            "overtime=%d night_diff=%d needs_review=%s",
            employee.employee_id,
            on_date,
            record.status,
            record.total_work_minutes,
            record.late_minutes,
            record.undertime_minutes,
            record.overtime_minutes,
            record.night_diff_minutes,
            record.needs_review,
        )
        return record

    async def calculate_for_date_range(
        self,
        employee: Employee,
        start_date: date,
        end_date: date,
    ) -> list[DailyTimeRecord]:
        """Compute each day from start_date to end_date inclusive, in order."""
        records = []
        current = start_date
        while current <= end_date:
            records.append(await self.calculate_for_date(employee, current))
            current += timedelta(days=1)
        return records

    # === Direction inference ===

    def _resolve_directions(
        self,
        punches: list[Punch],
        resolved: ResolvedSchedule,
        on_date: date,
    ) -> MatchResult:
        """Collapse double taps, then match to the schedule or alternate."""
        collapsed = self.punch_processor.collapse_duplicate_scans(punches)

        events = []
        if resolved.is_resolved:
            events = self.schedule_resolver.get_expected_events(
                resolved.schedule, on_date, resolved.shift_name
            )

        if events:
            return self.punch_processor.match_to_schedule(collapsed, events)
        return MatchResult(punches=tuple(self.punch_processor.infer_directions(collapsed)))

    # === Classification ===

    async def _compute_day(
        self,
        employee: Employee,
        on_date: date,
        resolved: ResolvedSchedule,
        match: MatchResult,
    ) -> DayComputation:
        schedule = resolved.schedule
        punches = match.punches

        if not resolved.is_resolved:
            return self._build_no_schedule(punches)

        if not self.schedule_resolver.is_work_day(schedule, on_date):
            return self._build_rest_day(schedule, resolved.shift_name, punches, match.dropped_count)

        holiday = await self._get_holiday(employee, on_date)
        if holiday is not None:
            return self._build_holiday(schedule, resolved.shift_name, punches, holiday, match.dropped_count)

        if not punches:
            return DayComputation(
                status=DtrStatus.ABSENT,
                work_schedule_id=schedule.work_schedule_id,
                shift_name=resolved.shift_name,
            )

        return self._build_present(schedule, on_date, resolved.shift_name, punches, match.unmatched_count)

    def _build_no_schedule(self, punches: Sequence[Punch]) -> DayComputation:
        computation = DayComputation(
            status=DtrStatus.NO_SCHEDULE,
            needs_review=True,
            review_reason=NO_SCHEDULE_REASON,
        )
        if punches:
            self._apply_worked_time(computation, self.punch_processor.process(punches))
        return computation

    def _build_rest_day(
        self,
        schedule: WorkSchedule,
        shift_name: str | None,
        punches: Sequence[Punch],
        dropped_count: int,
    ) -> DayComputation:
        computation = DayComputation(
            status=DtrStatus.REST_DAY,
            work_schedule_id=schedule.work_schedule_id,
            shift_name=shift_name,
        )
        reason = None
        if punches:
            result = self.punch_processor.process(punches)
            self._apply_worked_time(computation, result)
            reason = self._review_reason(result, dropped_count)

        # All rest-day work is overtime.
        computation.overtime_minutes = computation.total_work_minutes
        if computation.total_work_minutes > 0:
            computation.remarks = REST_DAY_REMARK
            reason = reason or REST_DAY_REASON
        computation.needs_review = reason is not None
        computation.review_reason = reason
        return computation

    def _build_holiday(
        self,
        schedule: WorkSchedule,
        shift_name: str | None,
        punches: Sequence[Punch],
        holiday: Holiday,
        dropped_count: int,
    ) -> DayComputation:
        computation = DayComputation(
            status=DtrStatus.HOLIDAY,
            work_schedule_id=schedule.work_schedule_id,
            shift_name=shift_name,
            remarks=f"{holiday.name} ({HolidayType(holiday.holiday_type).label})",
        )
        reason = None
        if punches:
            result = self.punch_processor.process(punches)
            self._apply_worked_time(computation, result)
            computation.night_diff_minutes = self.time_calculator.calculate_night_differential(
                self.time_calculator.convert_pairs_to_work_periods(result.pairs), schedule
            )
            reason = self._review_reason(result, dropped_count)

        computation.overtime_minutes = computation.total_work_minutes
        if computation.total_work_minutes > 0:
            reason = reason or HOLIDAY_REASON
        computation.needs_review = reason is not None
        computation.review_reason = reason
        return computation

    def _build_present(
        self,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None,
        punches: Sequence[Punch],
        unmatched_count: int,
    ) -> DayComputation:
        result = self.punch_processor.process(punches)
        computation = DayComputation(
            status=DtrStatus.PRESENT,
            work_schedule_id=schedule.work_schedule_id,
            shift_name=shift_name,
        )
        self._apply_worked_time(computation, result)

        if result.break_pairs:
            computation.total_break_minutes = self.punch_processor.calculate_actual_break_minutes(
                result.break_pairs
            )
        else:
            computation.total_break_minutes = self.punch_processor.calculate_break_minutes(result.pairs)

        if (
            len(result.pairs) == 1
            and not result.break_pairs
            and computation.total_break_minutes == 0
        ):
            deduction = self._mandatory_break_minutes(schedule, on_date, shift_name, result)
            if deduction > 0:
                computation.total_break_minutes = deduction
                computation.total_work_minutes = max(0, computation.total_work_minutes - deduction)

        if result.first_in is not None:
            computation.late_minutes = self.time_calculator.calculate_late(
                result.first_in, schedule, on_date, shift_name
            )
        if result.last_out is not None:
            computation.undertime_minutes = self.time_calculator.calculate_undertime(
                result.last_out, schedule, on_date, shift_name
            )
            computation.overtime_minutes = self.time_calculator.calculate_overtime(
                result.last_out, computation.total_work_minutes, schedule, on_date, shift_name
            )
        computation.night_diff_minutes = self.time_calculator.calculate_night_differential(
            self.time_calculator.convert_pairs_to_work_periods(result.pairs), schedule
        )

        reason = self._review_reason(result, unmatched_count)
        computation.needs_review = reason is not None
        computation.review_reason = reason
        return computation

    def _apply_worked_time(self, computation: DayComputation, result: PunchPairResult) -> None:
        computation.first_in = result.first_in
        computation.last_out = result.last_out
        computation.total_work_minutes = self.punch_processor.calculate_total_work_minutes(result.pairs)
        computation.punches = self.punch_processor.get_punch_records(result.pairs, result.break_pairs)

    def _mandatory_break_minutes(
        self,
        schedule: WorkSchedule,
        on_date: date,
        shift_name: str | None,
        result: PunchPairResult,
    ) -> int:
        """Break to deduct from a single unbroken work interval.

        Unconfigured break: the policy's inferred break when the span is
        long enough. Configured break with a known start: its duration when
        the span covers the start. Configured break without a start: its
        duration when the span is long enough.
        """
        if result.first_in is None or result.last_out is None:
            return 0

        span = minutes_between(result.first_in, result.last_out)
        break_config = self.schedule_resolver.get_break_config(schedule, shift_name)

        if break_config is None:
            if span > self.policy.inferred_break_min_span_minutes:
                return self.policy.inferred_break_minutes
            return 0

        if break_config.duration_minutes == 0:
            return 0

        window = self.schedule_resolver.get_break_window(schedule, on_date, shift_name)
        if window is None:
            spans_break = span > self.policy.inferred_break_min_span_minutes
        else:
            break_start = window[0]
            spans_break = result.first_in <= break_start < result.last_out

        return break_config.duration_minutes if spans_break else 0

    @staticmethod
    def _review_reason(result: PunchPairResult, unmatched_count: int) -> str | None:
        if unmatched_count > 0:
            return unmatched_scans_reason(unmatched_count)
        if result.has_missing_out or (result.first_in is not None and result.last_out is None):
            return MISSING_TIME_OUT_REASON
        if result.unpaired_out is not None:
            return MISSING_TIME_IN_REASON
        return None

    # === Data Loading Methods ===

    async def _get_scans_for_date(
        self,
        employee: Employee,
        on_date: date,
        resolved: ResolvedSchedule,
    ) -> list[AttendanceLog]:
        window_start, window_end = await self._get_scan_window(employee, on_date, resolved)
        logger.debug(
            "Scan window employee=%s date=%s from=%s to=%s",
            employee.employee_id,
            on_date,
            window_start,
            window_end,
        )

        result = await self.session.execute(
            select(AttendanceLog)
            .where(
                AttendanceLog.employee_id == employee.employee_id,
                AttendanceLog.logged_at >= window_start,
                AttendanceLog.logged_at <= window_end,
            )
            .order_by(AttendanceLog.logged_at)
        )
        return list(result.scalars().all())

    async def _get_scan_window(
        self,
        employee: Employee,
        on_date: date,
        resolved: ResolvedSchedule,
    ) -> tuple[datetime, datetime]:
        """Bounds of the scans that belong to ``on_date``.

        Starts after the previous day's cross-midnight overflow, no earlier
        than the early-arrival grace before scheduled start. Ends at end of
        day, or past a cross-midnight scheduled end by the departure grace.
        """
        window_start = await self._get_window_start_after_previous_day(employee, on_date)
        window_end = datetime.combine(on_date, time.max)

        schedule = resolved.schedule
        if schedule is None:
            return window_start, window_end

        start = self.schedule_resolver.get_scheduled_start_time(schedule, on_date, resolved.shift_name)
        end = self.schedule_resolver.get_scheduled_end_time(schedule, on_date, resolved.shift_name)

        if start is not None:
            window_start = max(window_start, start - timedelta(hours=self.policy.early_arrival_grace_hours))
            if end is not None and end > window_end:
                window_end = end + timedelta(hours=self.policy.late_departure_grace_hours)

        return window_start, window_end

    async def _get_window_start_after_previous_day(self, employee: Employee, on_date: date) -> datetime:
        day_start = datetime.combine(on_date, time.min)
        previous_date = on_date - timedelta(days=1)

        previous = await self.schedule_resolver.resolve(employee.employee_id, previous_date)
        if previous.schedule is None:
            return day_start

        previous_end = self.schedule_resolver.get_scheduled_end_time(
            previous.schedule, previous_date, previous.shift_name
        )
        if previous_end is not None and previous_end >= day_start:
            return previous_end + timedelta(hours=self.policy.late_departure_grace_hours)
        return day_start

    async def _get_holiday(self, employee: Employee, on_date: date) -> Holiday | None:
        """National holiday, or one scoped to the employee's work location."""
        scope = [Holiday.is_national.is_(True)]
        if employee.work_location_id is not None:
            scope.append(Holiday.work_location_id == employee.work_location_id)

        result = await self.session.execute(
            select(Holiday)
            .where(Holiday.holiday_date == on_date, or_(*scope))
            .order_by(Holiday.is_national.desc(), Holiday.name)
            .limit(1)
        )
        return result.scalar_one_or_none()

    # === Persistence ===

    async def _save_record(
        self,
        employee: Employee,
        on_date: date,
        computation: DayComputation,
    ) -> DailyTimeRecord:
        """Upsert the record by (employee, date) and regenerate its punches."""
        values = computation.record_values()
        values["computed_at"] = self.clock()

        record = await self.session.scalar(
            select(DailyTimeRecord).where(
                DailyTimeRecord.employee_id == employee.employee_id,
                DailyTimeRecord.work_date == on_date,
            )
        )
        if record is None:
            record = DailyTimeRecord(employee_id=employee.employee_id, work_date=on_date, **values)
            self.session.add(record)
        else:
            for key, value in values.items():
                setattr(record, key, value)
        await self.session.flush()

        await self.session.execute(
            delete(TimeRecordPunch).where(
                TimeRecordPunch.daily_time_record_id == record.daily_time_record_id
            )
        )
        self.session.add_all(
            TimeRecordPunch(
                daily_time_record_id=record.daily_time_record_id,
                attendance_log_id=candidate.attendance_log_id,
                punch_type=candidate.punch_type.value,
                punched_at=candidate.punched_at,
            )
            for candidate in computation.punches
        )
        await self.session.flush()

        return await self.get_record(record.daily_time_record_id)

    async def get_record(self, record_id: UUID) -> DailyTimeRecord:
        """Load a record with its schedule and punches refreshed."""
        result = await self.session.execute(
            select(DailyTimeRecord)
            .options(
                selectinload(DailyTimeRecord.work_schedule),
                selectinload(DailyTimeRecord.punches),
            )
            .where(DailyTimeRecord.daily_time_record_id == record_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
