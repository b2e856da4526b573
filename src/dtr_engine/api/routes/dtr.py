"""Daily time record API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status
from sqlalchemy import func, select

from dtr_engine.api.dependencies import ClockDep, DbSession
from dtr_engine.api.schemas import (
    CalculateRangeRequest,
    CalculateRangeResponse,
    CalculateRequest,
    DailyBreakdownItem,
    DailyTimeRecordDetailResponse,
    DailyTimeRecordListResponse,
    DailyTimeRecordResponse,
    EmployeeDtrResponse,
    ErrorResponse,
    MessageResponse,
    PeriodSummaryResponse,
    RemarksUpdate,
    ResolveReviewRequest,
    StatusFilter,
)
from dtr_engine.models import DailyTimeRecord, Employee
from dtr_engine.services.dtr_calculation_service import DtrCalculationService
from dtr_engine.services.period_aggregator import DtrPeriodAggregator
from dtr_engine.services.review_service import (
    DtrReviewService,
    NoOvertimeError,
    ReviewNotRequiredError,
    ReviewResolutionError,
)

router = APIRouter(tags=["dtr"])


async def _get_employee(db: DbSession, employee_id: UUID) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found",
        )
    return employee


async def _get_record(service: DtrCalculationService, db: DbSession, record_id: UUID) -> DailyTimeRecord:
    if await db.get(DailyTimeRecord, record_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Daily time record not found",
        )
    return await service.get_record(record_id)


def _check_period(date_from: date, date_to: date) -> None:
    if date_to < date_from:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="date_to must be on or after date_from",
        )


# ============================================================================
# Records
# ============================================================================


@router.get(
    "/dtr",
    response_model=DailyTimeRecordListResponse,
)
async def list_records(
    db: DbSession,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    employee_id: UUID | None = None,
    department_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    status_filter: Annotated[StatusFilter | None, Query(alias="status")] = None,
    needs_review: bool | None = None,
    overtime_pending: bool = False,
) -> DailyTimeRecordListResponse:
    """List records, newest date first, with optional filters."""
    query = select(DailyTimeRecord)

    if employee_id:
        query = query.where(DailyTimeRecord.employee_id == employee_id)
    if department_id:
        query = query.where(
            DailyTimeRecord.employee_id.in_(
                select(Employee.employee_id).where(Employee.department_id == department_id)
            )
        )
    if date_from:
        query = query.where(DailyTimeRecord.work_date >= date_from)
    if date_to:
        query = query.where(DailyTimeRecord.work_date <= date_to)
    if status_filter:
        query = query.where(DailyTimeRecord.status == status_filter)
    if needs_review is not None:
        query = query.where(DailyTimeRecord.needs_review.is_(needs_review))
    if overtime_pending:
        query = query.where(
            DailyTimeRecord.overtime_minutes > 0,
            DailyTimeRecord.overtime_approved.is_(False),
        )

    # Get total count
    count_query = select(func.count()).select_from(query.subquery())
    total = await db.scalar(count_query) or 0

    # Apply pagination
    query = query.order_by(DailyTimeRecord.work_date.desc(), DailyTimeRecord.employee_id)
    query = query.offset((page - 1) * page_size).limit(page_size)

    result = await db.execute(query)
    records = result.scalars().all()

    return DailyTimeRecordListResponse(
        items=[DailyTimeRecordResponse.model_validate(r) for r in records],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/dtr/{record_id}",
    response_model=DailyTimeRecordDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_record(
    db: DbSession,
    record_id: Annotated[UUID, Path()],
) -> DailyTimeRecordDetailResponse:
    """Get a record with its punches."""
    record = await _get_record(DtrCalculationService(db), db, record_id)
    return DailyTimeRecordDetailResponse.model_validate(record)


# ============================================================================
# Calculation
# ============================================================================


@router.post(
    "/employees/{employee_id}/dtr/calculate",
    response_model=DailyTimeRecordDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def calculate_day(
    db: DbSession,
    clock: ClockDep,
    employee_id: Annotated[UUID, Path()],
    payload: CalculateRequest,
) -> DailyTimeRecordDetailResponse:
    """Compute (or recompute) one employee's record for a date."""
    employee = await _get_employee(db, employee_id)
    record = await DtrCalculationService(db, clock=clock).calculate_for_date(employee, payload.work_date)
    await db.commit()
    return DailyTimeRecordDetailResponse.model_validate(record)


@router.post(
    "/employees/{employee_id}/dtr/calculate-range",
    response_model=CalculateRangeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def calculate_range(
    db: DbSession,
    clock: ClockDep,
    employee_id: Annotated[UUID, Path()],
    payload: CalculateRangeRequest,
) -> CalculateRangeResponse:
    """Compute every day of an inclusive date range."""
    employee = await _get_employee(db, employee_id)
    records = await DtrCalculationService(db, clock=clock).calculate_for_date_range(
        employee, payload.date_from, payload.date_to
    )
    await db.commit()
    return CalculateRangeResponse(
        items=[DailyTimeRecordResponse.model_validate(r) for r in records],
        count=len(records),
    )


# ============================================================================
# Summaries
# ============================================================================


@router.get(
    "/employees/{employee_id}/dtr",
    response_model=EmployeeDtrResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employee_dtr(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    date_from: date,
    date_to: date,
) -> EmployeeDtrResponse:
    """Summary and daily breakdown for one employee."""
    _check_period(date_from, date_to)
    await _get_employee(db, employee_id)

    aggregator = DtrPeriodAggregator(db)
    records = await aggregator.get_records(employee_id, date_from, date_to)
    summary = aggregator.aggregate_records(records, date_from, date_to)

    return EmployeeDtrResponse(
        summary=PeriodSummaryResponse.model_validate(summary.to_dict()),
        daily=[DailyBreakdownItem.model_validate(row) for row in aggregator.get_daily_breakdown(records)],
    )


@router.get(
    "/employees/{employee_id}/dtr/summary",
    response_model=PeriodSummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employee_summary(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    date_from: date,
    date_to: date,
) -> PeriodSummaryResponse:
    """Period summary for one employee."""
    _check_period(date_from, date_to)
    await _get_employee(db, employee_id)
    summary = await DtrPeriodAggregator(db).get_summary(employee_id, date_from, date_to)
    return PeriodSummaryResponse.model_validate(summary.to_dict())


@router.get(
    "/departments/{department_id}/dtr/summary",
    response_model=PeriodSummaryResponse,
)
async def get_department_summary(
    db: DbSession,
    department_id: Annotated[UUID, Path()],
    date_from: date,
    date_to: date,
) -> PeriodSummaryResponse:
    """Period summary across a department."""
    _check_period(date_from, date_to)
    summary = await DtrPeriodAggregator(db).get_department_summary(department_id, date_from, date_to)
    return PeriodSummaryResponse.model_validate(summary.to_dict())


# ============================================================================
# Review workflow
# ============================================================================


@router.post(
    "/dtr/{record_id}/approve-overtime",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def approve_overtime(
    db: DbSession,
    clock: ClockDep,
    record_id: Annotated[UUID, Path()],
) -> MessageResponse:
    """Approve the overtime on a record."""
    service = DtrReviewService(db, clock=clock)
    record = await _get_record(service.calculation_service, db, record_id)
    try:
        record = await service.approve_overtime(record)
    except NoOvertimeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    await db.commit()
    return MessageResponse(
        message="Overtime approved successfully.",
        data=DailyTimeRecordResponse.model_validate(record),
    )


@router.patch(
    "/dtr/{record_id}/remarks",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_remarks(
    db: DbSession,
    record_id: Annotated[UUID, Path()],
    payload: RemarksUpdate,
) -> MessageResponse:
    """Replace a record's remarks."""
    service = DtrReviewService(db)
    record = await _get_record(service.calculation_service, db, record_id)
    record = await service.update_remarks(record, payload.remarks)
    await db.commit()
    return MessageResponse(
        message="Remarks updated successfully.",
        data=DailyTimeRecordResponse.model_validate(record),
    )


@router.post(
    "/dtr/{record_id}/resolve-review",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def resolve_review(
    db: DbSession,
    clock: ClockDep,
    record_id: Annotated[UUID, Path()],
    payload: ResolveReviewRequest,
) -> MessageResponse:
    """Settle a flagged record."""
    service = DtrReviewService(db, clock=clock)
    record = await _get_record(service.calculation_service, db, record_id)
    try:
        record = await service.resolve(
            record,
            payload.resolution_type,
            remarks=payload.remarks,
            resolved_by=payload.resolved_by,
            manual_time_out=payload.manual_time_out,
        )
    except (ReviewNotRequiredError, ReviewResolutionError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    await db.commit()
    return MessageResponse(
        message=f"Review resolved ({payload.resolution_type.value}).",
        data=DailyTimeRecordResponse.model_validate(record),
    )
