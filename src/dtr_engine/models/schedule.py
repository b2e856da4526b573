"""Work schedule, schedule assignment and holiday models."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any, Callable
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from dtr_engine.models.base import Base, TimestampMixin, uuid_pk

if TYPE_CHECKING:
    from dtr_engine.calculators.schedule_config import (
        NightDifferentialPolicy,
        OvertimePolicy,
        TimeConfig,
    )
    from dtr_engine.models.company import WorkLocation
    from dtr_engine.models.employee import Employee


def _parse_time_config(schedule_type: str, configuration: dict[str, Any]) -> TimeConfig:
    from dtr_engine.calculators.schedule_config import parse_time_configuration

    return parse_time_configuration(schedule_type, configuration)


def _parse_overtime_policy(data: dict[str, Any] | None) -> OvertimePolicy:
    from dtr_engine.calculators.schedule_config import OvertimePolicy

    return OvertimePolicy.from_dict(data)


def _parse_night_differential(data: dict[str, Any] | None) -> NightDifferentialPolicy:
    from dtr_engine.calculators.schedule_config import NightDifferentialPolicy

    return NightDifferentialPolicy.from_dict(data)


class WorkSchedule(Base, TimestampMixin):
    """A reusable work schedule definition.

    ``time_configuration`` holds the kind-specific layout (start/end, core
    hours, named shifts, break, work days). Overtime and night differential
    policies are kept in their own columns.
    """

    __tablename__ = "work_schedule"

    work_schedule_id: Mapped[UUID] = uuid_pk()
    code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    schedule_type: Mapped[str] = mapped_column(String, nullable=False)
    time_configuration: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)
    overtime_rules: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    night_differential: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "schedule_type IN ('fixed', 'flexible', 'shifting', 'compressed')",
            name="work_schedule_type_check",
        ),
        CheckConstraint("status IN ('active', 'inactive')", name="work_schedule_status_check"),
    )

    # Relationships
    assignments: Mapped[list[EmployeeScheduleAssignment]] = relationship(
        back_populates="work_schedule"
    )

    @validates("schedule_type", "time_configuration")
    def _validate_time_configuration(self, key: str, value: Any) -> Any:
        schedule_type = value if key == "schedule_type" else self.schedule_type
        configuration = value if key == "time_configuration" else self.time_configuration
        if schedule_type is not None and configuration is not None:
            self._parse("time_config", _parse_time_config, schedule_type, configuration)
        return value

    @validates("overtime_rules")
    def _validate_overtime_rules(self, key: str, value: Any) -> Any:
        self._parse("overtime_policy", _parse_overtime_policy, value)
        return value

    @validates("night_differential")
    def _validate_night_differential(self, key: str, value: Any) -> Any:
        self._parse("night_differential_policy", _parse_night_differential, value)
        return value

    def _parse(self, name: str, parse: Callable[..., Any], *source: Any) -> Any:
        """Parse a JSON column once per stored value.

        The cache is keyed on the identity of the source values, so a
        reloaded row (new JSON objects) is parsed again.
        """
        cache = self.__dict__.setdefault("_parsed_config", {})
        hit = cache.get(name)
        if hit is not None and all(a is b for a, b in zip(hit[0], source)):
            return hit[1]
        parsed = parse(*source)
        cache[name] = (source, parsed)
        return parsed

    @property
    def time_config(self) -> TimeConfig:
        """Typed view of ``time_configuration``."""
        return self._parse(
            "time_config", _parse_time_config, self.schedule_type, self.time_configuration or {}
        )

    @property
    def overtime_policy(self) -> OvertimePolicy:
        return self._parse("overtime_policy", _parse_overtime_policy, self.overtime_rules)

    @property
    def night_differential_policy(self) -> NightDifferentialPolicy:
        return self._parse(
            "night_differential_policy", _parse_night_differential, self.night_differential
        )


class EmployeeScheduleAssignment(Base, TimestampMixin):
    """Binds an employee to a work schedule for an effective date range."""

    __tablename__ = "employee_schedule_assignment"

    employee_schedule_assignment_id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_schedule_id: Mapped[UUID] = mapped_column(
        ForeignKey("work_schedule.work_schedule_id"),
        nullable=False,
    )
    shift_name: Mapped[str | None] = mapped_column(String, nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR end_date >= effective_date",
            name="schedule_assignment_date_range_check",
        ),
        Index("ix_schedule_assignment_employee_effective", "employee_id", "effective_date"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="schedule_assignments")
    work_schedule: Mapped[WorkSchedule] = relationship(back_populates="assignments")


class Holiday(Base, TimestampMixin):
    """A national or location-scoped holiday."""

    __tablename__ = "holiday"

    holiday_id: Mapped[UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String, nullable=False)
    holiday_date: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    holiday_type: Mapped[str] = mapped_column(String, nullable=False)
    is_national: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    work_location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_location.work_location_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("holiday_type IN ('regular', 'special')", name="holiday_type_check"),
    )

    # Relationships
    work_location: Mapped[WorkLocation | None] = relationship(back_populates="holidays")
