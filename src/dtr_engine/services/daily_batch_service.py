"""Batch computation of daily time records for all scheduled employees."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dtr_engine.clock import Clock, system_clock
from dtr_engine.config import DtrPolicy
from dtr_engine.models import Employee, EmployeeScheduleAssignment
from dtr_engine.services.dtr_calculation_service import DtrCalculationService

logger = logging.getLogger(__name__)


def days_ending_yesterday(today: date, count: int) -> list[date]:
    """The ``count`` calendar days before ``today``, oldest first."""
    if count < 1:
        raise ValueError("count must be at least 1")
    return [today - timedelta(days=offset) for offset in range(count, 0, -1)]


@dataclass
class BatchResult:
    """Outcome of a batch run."""

    processed: int = 0
    failed: int = 0
    dates: list[date] = field(default_factory=list)
    failures: list[tuple[UUID, date, str]] = field(default_factory=list)


class DailyDtrBatchService:
    """Computes records for every active employee with a schedule.

    Each employee/date runs in its own session and transaction, so one
    failure does not roll back the others.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: DtrPolicy | None = None,
        clock: Clock = system_clock,
    ):
        self.session_factory = session_factory
        self.policy = policy
        self.clock = clock

    async def run(self, target_dates: Iterable[date]) -> BatchResult:
        result = BatchResult()
        for target_date in target_dates:
            result.dates.append(target_date)
            employee_ids = await self._get_scheduled_employee_ids(target_date)
            logger.info("Calculating DTR for %d employee(s) on %s", len(employee_ids), target_date)

            for employee_id in employee_ids:
                try:
                    await self._calculate_one(employee_id, target_date)
                    result.processed += 1
                except Exception as exc:
                    logger.exception("DTR calculation failed employee=%s date=%s", employee_id, target_date)
                    result.failed += 1
                    result.failures.append((employee_id, target_date, str(exc)))

        logger.info("DTR batch finished processed=%d failed=%d", result.processed, result.failed)
        return result

    async def _calculate_one(self, employee_id: UUID, target_date: date) -> None:
        async with self.session_factory() as session:
            try:
                employee = await session.get(Employee, employee_id)
                service = DtrCalculationService(session, policy=self.policy, clock=self.clock)
                await service.calculate_for_date(employee, target_date)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _get_scheduled_employee_ids(self, target_date: date) -> list[UUID]:
        """Active employees with an assignment effective on the date."""
        assignment_exists = exists().where(
            EmployeeScheduleAssignment.employee_id == Employee.employee_id,
            EmployeeScheduleAssignment.effective_date <= target_date,
            or_(
                EmployeeScheduleAssignment.end_date.is_(None),
                EmployeeScheduleAssignment.end_date >= target_date,
            ),
        )
        async with self.session_factory() as session:
            result = await session.execute(
                select(Employee.employee_id)
                .where(Employee.status == "active", assignment_exists)
                .order_by(Employee.employee_number)
            )
            return list(result.scalars().all())
