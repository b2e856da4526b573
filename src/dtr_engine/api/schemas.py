"""Pydantic schemas for API request/response models."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dtr_engine.services.review_service import ReviewResolution

MAX_RANGE_DAYS = 62


# ============================================================================
# Daily time record schemas
# ============================================================================


class PunchResponse(BaseModel):
    """Schema for a punch attached to a record."""

    model_config = ConfigDict(from_attributes=True)

    time_record_punch_id: UUID
    attendance_log_id: UUID
    punch_type: str
    punched_at: datetime


class DailyTimeRecordResponse(BaseModel):
    """Schema for a daily time record."""

    model_config = ConfigDict(from_attributes=True)

    daily_time_record_id: UUID
    employee_id: UUID
    work_date: date
    work_schedule_id: UUID | None = None
    shift_name: str | None = None
    status: str
    first_in: datetime | None = None
    last_out: datetime | None = None
    total_work_minutes: int
    total_break_minutes: int
    late_minutes: int
    undertime_minutes: int
    overtime_minutes: int
    overtime_approved: bool
    night_diff_minutes: int
    remarks: str | None = None
    needs_review: bool
    review_reason: str | None = None
    computed_at: datetime


class DailyTimeRecordDetailResponse(DailyTimeRecordResponse):
    """Record with its punches."""

    punches: list[PunchResponse] = Field(default_factory=list)


class DailyTimeRecordListResponse(BaseModel):
    """Schema for listing records."""

    items: list[DailyTimeRecordResponse]
    total: int
    page: int
    page_size: int


# ============================================================================
# Calculation schemas
# ============================================================================


class CalculateRequest(BaseModel):
    """Compute one day."""

    work_date: date


class CalculateRangeRequest(BaseModel):
    """Compute an inclusive range of days."""

    date_from: date
    date_to: date

    @model_validator(mode="after")
    def check_range(self) -> "CalculateRangeRequest":
        if self.date_to < self.date_from:
            raise ValueError("date_to must be on or after date_from")
        if (self.date_to - self.date_from).days + 1 > MAX_RANGE_DAYS:
            raise ValueError(f"range cannot exceed {MAX_RANGE_DAYS} days")
        return self


class CalculateRangeResponse(BaseModel):
    """Records computed for a range."""

    items: list[DailyTimeRecordResponse]
    count: int


# ============================================================================
# Summary schemas
# ============================================================================


class PeriodInfoResponse(BaseModel):
    start_date: date
    end_date: date
    total_days: int


class AttendanceSummaryResponse(BaseModel):
    present_days: int
    absent_days: int
    holiday_days: int
    rest_days: int
    no_schedule_days: int
    attendance_rate: Decimal


class TimeSummaryResponse(BaseModel):
    total_work_minutes: int
    total_work_hours: Decimal
    total_break_minutes: int
    total_break_hours: Decimal
    average_daily_work_minutes: int
    average_daily_work_hours: Decimal


class LateUndertimeResponse(BaseModel):
    total_late_minutes: int
    total_late_hours: Decimal
    late_days: int
    total_undertime_minutes: int
    total_undertime_hours: Decimal
    undertime_days: int


class OvertimeSummaryResponse(BaseModel):
    total_overtime_minutes: int
    total_overtime_hours: Decimal
    approved_overtime_minutes: int
    approved_overtime_hours: Decimal
    pending_overtime_minutes: int
    pending_overtime_hours: Decimal
    overtime_days: int


class NightDifferentialResponse(BaseModel):
    total_night_diff_minutes: int
    total_night_diff_hours: Decimal


class PeriodSummaryResponse(BaseModel):
    """Schema for a period summary."""

    model_config = ConfigDict(from_attributes=True)

    period: PeriodInfoResponse
    attendance: AttendanceSummaryResponse
    time_summary: TimeSummaryResponse
    late_undertime: LateUndertimeResponse
    overtime: OvertimeSummaryResponse
    night_differential: NightDifferentialResponse
    needs_review_count: int
    department_id: UUID | None = None
    employee_count: int | None = None


class DailyBreakdownItem(BaseModel):
    """One row of a daily breakdown."""

    id: UUID
    date: date
    day_of_week: str
    status: str
    status_label: str
    first_in: str | None = None
    last_out: str | None = None
    total_work_hours: Decimal
    late_minutes: int
    undertime_minutes: int
    overtime_minutes: int
    overtime_approved: bool
    night_diff_minutes: int
    needs_review: bool
    review_reason: str | None = None


class EmployeeDtrResponse(BaseModel):
    """Summary plus daily breakdown for one employee."""

    summary: PeriodSummaryResponse
    daily: list[DailyBreakdownItem]


# ============================================================================
# Review schemas
# ============================================================================


class RemarksUpdate(BaseModel):
    """Replace free-text remarks."""

    remarks: str | None = Field(default=None, max_length=1000)


class ResolveReviewRequest(BaseModel):
    """Reviewer decision for a flagged record."""

    resolution_type: ReviewResolution
    remarks: str | None = Field(default=None, max_length=1000)
    resolved_by: str = "System"
    manual_time_out: time | None = None

    @model_validator(mode="after")
    def check_manual_time_out(self) -> "ResolveReviewRequest":
        if self.resolution_type is ReviewResolution.MANUAL_TIME_OUT and self.manual_time_out is None:
            raise ValueError("manual_time_out is required for manual_time_out resolution")
        return self


class MessageResponse(BaseModel):
    """Message with the affected record."""

    message: str
    data: DailyTimeRecordResponse


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None


StatusFilter = Literal["present", "absent", "holiday", "rest_day", "no_schedule"]
