"""Period summaries over stored daily time records."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dtr_engine.calculators.types import DtrStatus
from dtr_engine.models import DailyTimeRecord, Employee

TWO_PLACES = Decimal("0.01")


def minutes_to_hours(minutes: int) -> Decimal:
    return (Decimal(minutes) / Decimal(60)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class PeriodInfo:
    start_date: date
    end_date: date
    total_days: int


@dataclass
class AttendanceSummary:
    present_days: int
    absent_days: int
    holiday_days: int
    rest_days: int
    no_schedule_days: int
    attendance_rate: Decimal


@dataclass
class TimeSummary:
    total_work_minutes: int
    total_work_hours: Decimal
    total_break_minutes: int
    total_break_hours: Decimal
    average_daily_work_minutes: int
    average_daily_work_hours: Decimal


@dataclass
class LateUndertimeSummary:
    total_late_minutes: int
    total_late_hours: Decimal
    late_days: int
    total_undertime_minutes: int
    total_undertime_hours: Decimal
    undertime_days: int


@dataclass
class OvertimeSummary:
    total_overtime_minutes: int
    total_overtime_hours: Decimal
    approved_overtime_minutes: int
    approved_overtime_hours: Decimal
    pending_overtime_minutes: int
    pending_overtime_hours: Decimal
    overtime_days: int


@dataclass
class NightDifferentialSummary:
    total_night_diff_minutes: int
    total_night_diff_hours: Decimal


@dataclass
class PeriodSummary:
    """Aggregated attendance for a date range."""

    period: PeriodInfo
    attendance: AttendanceSummary
    time_summary: TimeSummary
    late_undertime: LateUndertimeSummary
    overtime: OvertimeSummary
    night_differential: NightDifferentialSummary
    needs_review_count: int
    department_id: UUID | None = None
    employee_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DtrPeriodAggregator:
    """Summarises stored records; never re-derives metrics from scans."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_records(self, employee_id: UUID, start_date: date, end_date: date) -> list[DailyTimeRecord]:
        """One employee's records in the period, oldest first."""
        return await self._get_records(
            DailyTimeRecord.employee_id == employee_id,
            start_date=start_date,
            end_date=end_date,
        )

    async def get_summary(self, employee_id: UUID, start_date: date, end_date: date) -> PeriodSummary:
        records = await self.get_records(employee_id, start_date, end_date)
        return self.aggregate_records(records, start_date, end_date)

    async def get_department_summary(
        self,
        department_id: UUID,
        start_date: date,
        end_date: date,
    ) -> PeriodSummary:
        """Summary across a department plus the number of employees with records."""
        records = await self._get_records(
            DailyTimeRecord.employee_id.in_(
                select(Employee.employee_id).where(Employee.department_id == department_id)
            ),
            start_date=start_date,
            end_date=end_date,
        )
        summary = self.aggregate_records(records, start_date, end_date)
        summary.department_id = department_id
        summary.employee_count = len({record.employee_id for record in records})
        return summary

    def aggregate_records(
        self,
        records: Sequence[DailyTimeRecord],
        start_date: date,
        end_date: date,
    ) -> PeriodSummary:
        """Aggregate already-loaded records for the given period."""
        status_counts = {status: 0 for status in DtrStatus}
        for record in records:
            status_counts[DtrStatus(record.status)] += 1
        present = status_counts[DtrStatus.PRESENT]
        absent = status_counts[DtrStatus.ABSENT]

        total_work = sum(r.total_work_minutes for r in records)
        total_break = sum(r.total_break_minutes for r in records)
        total_late = sum(r.late_minutes for r in records)
        total_undertime = sum(r.undertime_minutes for r in records)
        total_overtime = sum(r.overtime_minutes for r in records)
        approved_overtime = sum(r.overtime_minutes for r in records if r.overtime_approved)
        pending_overtime = sum(r.overtime_minutes for r in records if r.has_pending_overtime)
        total_night_diff = sum(r.night_diff_minutes for r in records)

        if present > 0:
            average_minutes = int(
                (Decimal(total_work) / present).quantize(Decimal(1), rounding=ROUND_HALF_UP)
            )
            average_hours = (Decimal(total_work) / present / 60).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        else:
            average_minutes = 0
            average_hours = Decimal("0.00")

        return PeriodSummary(
            period=PeriodInfo(
                start_date=start_date,
                end_date=end_date,
                total_days=(end_date - start_date).days + 1,
            ),
            attendance=AttendanceSummary(
                present_days=present,
                absent_days=absent,
                holiday_days=status_counts[DtrStatus.HOLIDAY],
                rest_days=status_counts[DtrStatus.REST_DAY],
                no_schedule_days=status_counts[DtrStatus.NO_SCHEDULE],
                attendance_rate=self.calculate_attendance_rate(present, absent),
            ),
            time_summary=TimeSummary(
                total_work_minutes=total_work,
                total_work_hours=minutes_to_hours(total_work),
                total_break_minutes=total_break,
                total_break_hours=minutes_to_hours(total_break),
                average_daily_work_minutes=average_minutes,
                average_daily_work_hours=average_hours,
            ),
            late_undertime=LateUndertimeSummary(
                total_late_minutes=total_late,
                total_late_hours=minutes_to_hours(total_late),
                late_days=sum(1 for r in records if r.late_minutes > 0),
                total_undertime_minutes=total_undertime,
                total_undertime_hours=minutes_to_hours(total_undertime),
                undertime_days=sum(1 for r in records if r.undertime_minutes > 0),
            ),
            overtime=OvertimeSummary(
                total_overtime_minutes=total_overtime,
                total_overtime_hours=minutes_to_hours(total_overtime),
                approved_overtime_minutes=approved_overtime,
                approved_overtime_hours=minutes_to_hours(approved_overtime),
                pending_overtime_minutes=pending_overtime,
                pending_overtime_hours=minutes_to_hours(pending_overtime),
                overtime_days=sum(1 for r in records if r.overtime_minutes > 0),
            ),
            night_differential=NightDifferentialSummary(
                total_night_diff_minutes=total_night_diff,
                total_night_diff_hours=minutes_to_hours(total_night_diff),
            ),
            needs_review_count=sum(1 for r in records if r.needs_review),
        )

    def get_daily_breakdown(self, records: Sequence[DailyTimeRecord]) -> list[dict[str, Any]]:
        """One display row per record."""
        return [
            {
                "id": record.daily_time_record_id,
                "date": record.work_date,
                "day_of_week": f"{record.work_date:%A}",
                "status": record.status,
                "status_label": DtrStatus(record.status).label,
                "first_in": f"{record.first_in:%H:%M}" if record.first_in else None,
                "last_out": f"{record.last_out:%H:%M}" if record.last_out else None,
                "total_work_hours": minutes_to_hours(record.total_work_minutes),
                "late_minutes": record.late_minutes,
                "undertime_minutes": record.undertime_minutes,
                "overtime_minutes": record.overtime_minutes,
                "overtime_approved": record.overtime_approved,
                "night_diff_minutes": record.night_diff_minutes,
                "needs_review": record.needs_review,
                "review_reason": record.review_reason,
            }
            for record in records
        ]

    @staticmethod
    def calculate_attendance_rate(present_days: int, absent_days: int) -> Decimal:
        """Present share of work days as a percentage; 100 with no work days."""
        work_days = present_days + absent_days
        if work_days == 0:
            return Decimal("100.00")
        return (Decimal(present_days) * 100 / work_days).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    # === Data Loading Methods ===

    async def _get_records(self, *criteria, start_date: date, end_date: date) -> list[DailyTimeRecord]:
        result = await self.session.execute(
            select(DailyTimeRecord)
            .where(
                *criteria,
                DailyTimeRecord.work_date >= start_date,
                DailyTimeRecord.work_date <= end_date,
            )
            .order_by(DailyTimeRecord.work_date, DailyTimeRecord.employee_id)
        )
        return list(result.scalars().all())
