"""Human review of flagged daily time records."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from dtr_engine.calculators.types import DtrStatus
from dtr_engine.clock import Clock, system_clock
from dtr_engine.models import AttendanceLog, DailyTimeRecord, Employee
from dtr_engine.services.dtr_calculation_service import DtrCalculationService

logger = logging.getLogger(__name__)


class ReviewResolution(str, Enum):
    """Ways a reviewer can settle a flagged record."""

    MANUAL_TIME_OUT = "manual_time_out"
    USE_SCHEDULE_END = "use_schedule_end"
    MARK_HALF_DAY = "mark_half_day"
    MARK_ABSENT = "mark_absent"
    NO_CHANGE = "no_change"


class ReviewError(Exception):
    """Base class for review workflow errors."""


class ReviewNotRequiredError(ReviewError):
    """Raised when resolving a record that is not flagged."""

    def __init__(self, record: DailyTimeRecord):
        self.record_id = record.daily_time_record_id
        super().__init__("This record does not need review.")


class NoOvertimeError(ReviewError):
    """Raised when approving overtime on a record without overtime."""

    def __init__(self, record: DailyTimeRecord):
        self.record_id = record.daily_time_record_id
        super().__init__("No overtime to approve for this record.")


class ReviewResolutionError(ReviewError):
    """Raised when a resolution cannot be applied to the record."""


def format_audit_stamp(moment: datetime) -> str:
    """Render like ``Jan 5, 2024 3:07pm``."""
    hour = moment.hour % 12 or 12
    meridiem = "am" if moment.hour < 12 else "pm"
    return f"{moment:%b} {moment.day}, {moment.year} {hour}:{moment:%M}{meridiem}"


def audit_remarks(resolved_by: str, moment: datetime, remarks: str | None) -> str:
    return f"[Resolved by {resolved_by} on {format_audit_stamp(moment)}] {remarks or ''}".rstrip()


class DtrReviewService:
    """Applies reviewer decisions to flagged records.

    Every resolution clears the review flag and replaces the remarks with an
    audit line naming the reviewer.
    """

    def __init__(
        self,
        session: AsyncSession,
        calculation_service: DtrCalculationService | None = None,
        clock: Clock = system_clock,
    ):
        self.session = session
        self.clock = clock
        self.calculation_service = calculation_service or DtrCalculationService(session, clock=clock)

    async def resolve(
        self,
        record: DailyTimeRecord,
        resolution: ReviewResolution | str,
        remarks: str | None = None,
        resolved_by: str = "System",
        manual_time_out: time | None = None,
    ) -> DailyTimeRecord:
        """Settle a flagged record.

        Raises:
            ReviewNotRequiredError: If the record is not flagged
            ReviewResolutionError: If the resolution cannot be applied
        """
        if not record.needs_review:
            raise ReviewNotRequiredError(record)

        resolution = ReviewResolution(resolution)
        note = audit_remarks(resolved_by, self.clock(), remarks)
        record = await self.calculation_service.get_record(record.daily_time_record_id)

        if resolution is ReviewResolution.MANUAL_TIME_OUT:
            if manual_time_out is None:
                raise ReviewResolutionError("manual_time_out is required for this resolution")
            time_out = datetime.combine(record.work_date, manual_time_out)
            if record.first_in is not None and time_out <= record.first_in:
                # Clock-out after midnight for a shift that started the day before.
                time_out += timedelta(days=1)
            record = await self._recalculate_with_time_out(record, time_out)

        elif resolution is ReviewResolution.USE_SCHEDULE_END:
            time_out = self._scheduled_end(record)
            if time_out is None:
                raise ReviewResolutionError(
                    "Could not determine the scheduled end time for this record."
                )
            record = await self._recalculate_with_time_out(record, time_out)

        elif resolution is ReviewResolution.MARK_HALF_DAY:
            required = self._required_minutes(record)
            half_day = required // 2
            record.status = DtrStatus.PRESENT.value
            record.total_work_minutes = half_day
            record.undertime_minutes = required - half_day
            record.overtime_minutes = 0

        elif resolution is ReviewResolution.MARK_ABSENT:
            record.status = DtrStatus.ABSENT.value
            record.first_in = None
            record.last_out = None
            record.total_work_minutes = 0
            record.total_break_minutes = 0
            record.late_minutes = 0
            record.undertime_minutes = 0
            record.overtime_minutes = 0
            record.overtime_approved = False
            record.night_diff_minutes = 0

        record.needs_review = False
        record.review_reason = None
        record.remarks = note
        await self.session.flush()

        logger.info(
            "DTR review resolved record=%s resolution=%s by=%s",
            record.daily_time_record_id,
            resolution.value,
            resolved_by,
        )
        return record

    async def approve_overtime(self, record: DailyTimeRecord) -> DailyTimeRecord:
        """Mark the record's overtime as approved.

        Raises:
            NoOvertimeError: If the record has no overtime minutes
        """
        if record.overtime_minutes == 0:
            raise NoOvertimeError(record)
        record.overtime_approved = True
        await self.session.flush()
        logger.info("Overtime approved record=%s minutes=%d", record.daily_time_record_id, record.overtime_minutes)
        return record

    async def update_remarks(self, record: DailyTimeRecord, remarks: str | None) -> DailyTimeRecord:
        record.remarks = remarks
        await self.session.flush()
        return record

    async def _recalculate_with_time_out(self, record: DailyTimeRecord, time_out: datetime) -> DailyTimeRecord:
        """Record a manual Out scan and recompute the day."""
        self.session.add(
            AttendanceLog(
                employee_id=record.employee_id,
                logged_at=time_out,
                direction="out",
                source="manual",
            )
        )
        await self.session.flush()

        employee = await self.session.get(Employee, record.employee_id)
        return await self.calculation_service.calculate_for_date(employee, record.work_date)

    def _scheduled_end(self, record: DailyTimeRecord) -> datetime | None:
        if record.work_schedule is None:
            return None
        return self.calculation_service.schedule_resolver.get_scheduled_end_time(
            record.work_schedule, record.work_date, record.shift_name
        )

    def _required_minutes(self, record: DailyTimeRecord) -> int:
        resolver = self.calculation_service.schedule_resolver
        if record.work_schedule is None:
            return resolver.policy.default_required_minutes
        return resolver.get_required_work_minutes(record.work_schedule, record.work_date, record.shift_name)
