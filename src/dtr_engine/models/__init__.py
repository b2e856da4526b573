"""ORM models."""

from dtr_engine.models.base import Base, TimestampMixin
from dtr_engine.models.company import Department, WorkLocation
from dtr_engine.models.employee import Employee
from dtr_engine.models.schedule import EmployeeScheduleAssignment, Holiday, WorkSchedule
from dtr_engine.models.attendance import AttendanceLog, DailyTimeRecord, TimeRecordPunch

__all__ = [
    "AttendanceLog",
    "Base",
    "DailyTimeRecord",
    "Department",
    "Employee",
    "EmployeeScheduleAssignment",
    "Holiday",
    "TimeRecordPunch",
    "TimestampMixin",
    "WorkLocation",
    "WorkSchedule",
]
