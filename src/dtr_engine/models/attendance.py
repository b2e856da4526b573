"""Attendance scans and computed daily time records."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dtr_engine.models.base import Base, TimestampMixin, uuid_pk

if TYPE_CHECKING:
    from dtr_engine.models.employee import Employee
    from dtr_engine.models.schedule import WorkSchedule


class AttendanceLog(Base, TimestampMixin):
    """A raw badge or biometric scan. Never modified by the DTR pipeline."""

    __tablename__ = "attendance_log"

    attendance_log_id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    logged_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    direction: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, default="device")
    device_serial: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("source IN ('device', 'manual')", name="attendance_log_source_check"),
        Index("ix_attendance_log_employee_logged_at", "employee_id", "logged_at"),
    )


class DailyTimeRecord(Base, TimestampMixin):
    """Computed attendance summary for one employee on one calendar date.

    Rewritten in full on every recomputation; punches are regenerated with it.
    """

    __tablename__ = "daily_time_record"

    daily_time_record_id: Mapped[UUID] = uuid_pk()
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    work_schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_schedule.work_schedule_id"),
        nullable=True,
    )
    shift_name: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    first_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    total_work_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    undertime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    night_diff_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="daily_time_record_employee_date_unique"),
        CheckConstraint(
            "status IN ('present', 'absent', 'holiday', 'rest_day', 'no_schedule')",
            name="daily_time_record_status_check",
        ),
        CheckConstraint(
            "total_work_minutes >= 0 AND total_break_minutes >= 0 AND late_minutes >= 0 "
            "AND undertime_minutes >= 0 AND overtime_minutes >= 0 AND night_diff_minutes >= 0",
            name="daily_time_record_minutes_non_negative",
        ),
        Index("ix_daily_time_record_date", "date"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="time_records")
    work_schedule: Mapped[WorkSchedule | None] = relationship()
    punches: Mapped[list[TimeRecordPunch]] = relationship(
        back_populates="daily_time_record",
        cascade="all, delete-orphan",
        order_by="TimeRecordPunch.punched_at",
    )

    @property
    def total_work_hours(self) -> float:
        return round(self.total_work_minutes / 60, 2)

    @property
    def has_pending_overtime(self) -> bool:
        return self.overtime_minutes > 0 and not self.overtime_approved


class TimeRecordPunch(Base):
    """A scan accepted into a daily time record, with its resolved type."""

    __tablename__ = "time_record_punch"

    time_record_punch_id: Mapped[UUID] = uuid_pk()
    daily_time_record_id: Mapped[UUID] = mapped_column(
        ForeignKey("daily_time_record.daily_time_record_id", ondelete="CASCADE"),
        nullable=False,
    )
    attendance_log_id: Mapped[UUID] = mapped_column(
        ForeignKey("attendance_log.attendance_log_id"),
        nullable=False,
    )
    punch_type: Mapped[str] = mapped_column(String, nullable=False)
    punched_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "punch_type IN ('in', 'out', 'break_out', 'break_in')",
            name="time_record_punch_type_check",
        ),
    )

    # Relationships
    daily_time_record: Mapped[DailyTimeRecord] = relationship(back_populates="punches")
