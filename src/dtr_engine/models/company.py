"""Organizational structure models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dtr_engine.models.base import Base, TimestampMixin, uuid_pk

if TYPE_CHECKING:
    from dtr_engine.models.employee import Employee
    from dtr_engine.models.schedule import Holiday


class WorkLocation(Base, TimestampMixin):
    """Physical work location; scopes local holidays."""

    __tablename__ = "work_location"

    work_location_id: Mapped[UUID] = uuid_pk()
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        UniqueConstraint("code", name="work_location_code_unique"),
        CheckConstraint("status IN ('active', 'inactive')", name="work_location_status_check"),
    )

    # Relationships
    employees: Mapped[list[Employee]] = relationship(back_populates="work_location")
    holidays: Mapped[list[Holiday]] = relationship(back_populates="work_location")


class Department(Base, TimestampMixin):
    """Department within the organization."""

    __tablename__ = "department"

    department_id: Mapped[UUID] = uuid_pk()
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (UniqueConstraint("code", name="department_code_unique"),)

    # Relationships
    employees: Mapped[list[Employee]] = relationship(back_populates="department")
