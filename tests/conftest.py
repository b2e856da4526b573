"""Pytest fixtures for DTR engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dtr_engine.clock import fixed_clock
from dtr_engine.config import DtrPolicy
from dtr_engine.models import (
    AttendanceLog,
    Base,
    Department,
    Employee,
    EmployeeScheduleAssignment,
    Holiday,
    WorkLocation,
    WorkSchedule,
)
from dtr_engine.services.dtr_calculation_service import DtrCalculationService

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2024, 1, 20, 12, 0)

FIXED_8_TO_5 = {
    "start_time": "08:00",
    "end_time": "17:00",
    "break": {"start_time": "12:00", "duration_minutes": 60},
    "work_days": ["monday", "tuesday", "wednesday", "thursday", "friday"],
}


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def policy() -> DtrPolicy:
    return DtrPolicy()


@pytest.fixture
def clock():
    return fixed_clock(FIXED_NOW)


@pytest.fixture
def service(session, policy, clock) -> DtrCalculationService:
    return DtrCalculationService(session, policy=policy, clock=clock)


@pytest_asyncio.fixture
async def work_location(session) -> WorkLocation:
    location = WorkLocation(code="HQ", name="Head Office")
    session.add(location)
    await session.flush()
    return location


@pytest_asyncio.fixture
async def department(session) -> Department:
    dept = Department(code="OPS", name="Operations")
    session.add(dept)
    await session.flush()
    return dept


@pytest.fixture
def make_employee(session, work_location, department):
    """Factory for employees at the head office."""
    counter = {"n": 0}

    async def _make(status: str = "active", **overrides: Any) -> Employee:
        counter["n"] += 1
        values = {
            "employee_number": f"E-{counter['n']:03d}",
            "first_name": "Test",
            "last_name": f"Employee {counter['n']}",
            "status": status,
            "work_location_id": work_location.work_location_id,
            "department_id": department.department_id,
        }
        values.update(overrides)
        employee = Employee(**values)
        session.add(employee)
        await session.flush()
        return employee

    return _make


@pytest_asyncio.fixture
async def employee(make_employee) -> Employee:
    return await make_employee()


@pytest.fixture
def make_schedule(session):
    """Factory for work schedules."""

    async def _make(
        code: str,
        time_configuration: dict[str, Any],
        schedule_type: str = "fixed",
        overtime_rules: dict[str, Any] | None = None,
        night_differential: dict[str, Any] | None = None,
    ) -> WorkSchedule:
        schedule = WorkSchedule(
            code=code,
            name=code.replace("_", " ").title(),
            schedule_type=schedule_type,
            time_configuration=time_configuration,
            overtime_rules=overtime_rules or {"daily_threshold_hours": 8},
            night_differential=night_differential or {"enabled": False},
        )
        session.add(schedule)
        await session.flush()
        return schedule

    return _make


@pytest.fixture
def overwrite_time_configuration(session):
    """Store a raw time configuration, bypassing model validation.

    Stands in for rows written by other tools or older releases.
    """
    table = WorkSchedule.__table__

    async def _overwrite(schedule: WorkSchedule, time_configuration: dict[str, Any]) -> None:
        await session.execute(
            table.update()
            .where(table.c.work_schedule_id == schedule.work_schedule_id)
            .values(time_configuration=time_configuration)
        )

    return _overwrite


@pytest.fixture
def assign_schedule(session):
    """Factory for schedule assignments."""

    async def _assign(
        employee: Employee,
        schedule: WorkSchedule,
        effective_date: date = date(2024, 1, 1),
        end_date: date | None = None,
        shift_name: str | None = None,
    ) -> EmployeeScheduleAssignment:
        assignment = EmployeeScheduleAssignment(
            employee_id=employee.employee_id,
            work_schedule_id=schedule.work_schedule_id,
            effective_date=effective_date,
            end_date=end_date,
            shift_name=shift_name,
        )
        session.add(assignment)
        await session.flush()
        return assignment

    return _assign


@pytest.fixture
def add_scans(session):
    """Factory for raw scans: ``await add_scans(employee, (datetime, direction), ...)``."""

    async def _add(employee: Employee, *scans: tuple[datetime, str | None]) -> list[AttendanceLog]:
        logs = [
            AttendanceLog(
                employee_id=employee.employee_id,
                logged_at=logged_at,
                direction=direction,
                source="device",
            )
            for logged_at, direction in scans
        ]
        session.add_all(logs)
        await session.flush()
        return logs

    return _add


@pytest.fixture
def add_holiday(session):
    async def _add(
        on_date: date,
        name: str,
        holiday_type: str = "regular",
        is_national: bool = True,
        work_location_id=None,
    ) -> Holiday:
        holiday = Holiday(
            name=name,
            holiday_date=on_date,
            holiday_type=holiday_type,
            is_national=is_national,
            work_location_id=work_location_id,
        )
        session.add(holiday)
        await session.flush()
        return holiday

    return _add


@pytest_asyncio.fixture
async def fixed_schedule(make_schedule) -> WorkSchedule:
    """08:00-17:00 Monday to Friday with a 12:00 one hour break."""
    return await make_schedule("fixed_8_to_5", FIXED_8_TO_5)
