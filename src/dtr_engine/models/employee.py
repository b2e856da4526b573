"""Employee model."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dtr_engine.models.base import Base, TimestampMixin, uuid_pk

if TYPE_CHECKING:
    from dtr_engine.models.attendance import DailyTimeRecord
    from dtr_engine.models.company import Department, WorkLocation
    from dtr_engine.models.schedule import EmployeeScheduleAssignment


class Employee(Base, TimestampMixin):
    """An employee whose attendance is tracked."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = uuid_pk()
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    work_location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_location.work_location_id"),
        nullable=True,
    )
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("department.department_id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("employee_number", name="employee_number_unique"),
        CheckConstraint(
            "status IN ('active', 'terminated', 'on_leave')",
            name="employee_status_check",
        ),
    )

    # Relationships
    work_location: Mapped[WorkLocation | None] = relationship(back_populates="employees")
    department: Mapped[Department | None] = relationship(back_populates="employees")
    schedule_assignments: Mapped[list[EmployeeScheduleAssignment]] = relationship(
        back_populates="employee"
    )
    time_records: Mapped[list[DailyTimeRecord]] = relationship(back_populates="employee")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status == "active"
