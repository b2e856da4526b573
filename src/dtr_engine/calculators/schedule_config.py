"""Typed views over a work schedule's JSON configuration.

Each schedule kind has its own frozen config class. ``parse_time_configuration``
validates the stored JSON once so the resolver and calculators never have to
look up optional keys.

Stored layout (all times ``HH:MM``)::

    fixed:      {start_time, end_time, break?, work_days?, half_day_saturday?, saturday_end_time?}
    flexible:   {core_hours: {start_time, end_time}, required_hours_per_day?, break?, work_days?}
    shifting:   {shifts: [{name, start_time, end_time, break?}], break?, work_days?}
    compressed: {daily_hours, half_day?: {enabled, day, hours}, start_time?, end_time?, break?, work_days?}

``break`` is ``{start_time?, duration_minutes}``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Any, Union

from dtr_engine.calculators.types import ScheduleType

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
DEFAULT_WORK_DAYS = frozenset(WEEKDAYS[:5])


class ScheduleConfigurationError(ValueError):
    """Raised when a stored schedule configuration cannot be interpreted."""

    def __init__(self, message: str, schedule_type: str | None = None):
        self.schedule_type = schedule_type
        prefix = f"{schedule_type} schedule: " if schedule_type else ""
        super().__init__(f"{prefix}{message}")


def parse_time_of_day(value: Any, field_name: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a time (seconds are dropped)."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise ScheduleConfigurationError(f"{field_name} must be a HH:MM string, got {value!r}")
    parts = value.strip().split(":")
    try:
        hour = int(parts[0])
        minute = int(parts[1]) if len(parts) > 1 else 0
        return time(hour, minute)
    except (ValueError, IndexError):
        raise ScheduleConfigurationError(f"{field_name} is not a valid time: {value!r}")


def _optional_time(value: Any, field_name: str) -> time | None:
    if value is None:
        return None
    return parse_time_of_day(value, field_name)


@dataclass(frozen=True)
class BreakConfig:
    """Break window; ``start_time`` may be unknown."""

    duration_minutes: int
    start_time: time | None = None

    def __post_init__(self) -> None:
        if self.duration_minutes < 0:
            raise ScheduleConfigurationError("break duration_minutes cannot be negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BreakConfig | None:
        if not data or data.get("duration_minutes") is None:
            return None
        return cls(
            duration_minutes=int(data["duration_minutes"]),
            start_time=_optional_time(data.get("start_time"), "break.start_time"),
        )


@dataclass(frozen=True)
class ShiftConfig:
    """A named shift of a rotating schedule."""

    name: str
    start_time: time
    end_time: time
    break_config: BreakConfig | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShiftConfig:
        name = data.get("name")
        if not name:
            raise ScheduleConfigurationError("every shift needs a name", "shifting")
        if "start_time" not in data or "end_time" not in data:
            raise ScheduleConfigurationError(f"shift {name!r} needs start_time and end_time", "shifting")
        return cls(
            name=name,
            start_time=parse_time_of_day(data["start_time"], f"shift {name}.start_time"),
            end_time=parse_time_of_day(data["end_time"], f"shift {name}.end_time"),
            break_config=BreakConfig.from_dict(data.get("break")),
        )


@dataclass(frozen=True)
class HalfDayConfig:
    """Compressed-week half day on a specific weekday."""

    day: str
    hours: float = 4

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> HalfDayConfig | None:
        if not data or not data.get("enabled"):
            return None
        day = str(data.get("day", "")).lower()
        if day not in WEEKDAYS:
            raise ScheduleConfigurationError(f"half_day.day must be a weekday name, got {day!r}", "compressed")
        return cls(day=day, hours=data.get("hours", 4))

    @property
    def minutes(self) -> int:
        return int(self.hours * 60)


@dataclass(frozen=True, kw_only=True)
class BaseTimeConfig:
    """Settings shared by every schedule kind."""

    work_days: frozenset[str] | None = None
    break_config: BreakConfig | None = None
    half_day_saturday: bool = False
    saturday_end_time: time | None = None
    required_hours_per_day: float | None = None

    # Fixed-like kinds treat end == start as a 24h span.
    crosses_midnight_on_equal = True

    def start_time_for(self, shift_name: str | None) -> time | None:
        return None

    def end_time_for(self, shift_name: str | None) -> time | None:
        return None

    def break_for(self, shift_name: str | None) -> BreakConfig | None:
        return self.break_config


@dataclass(frozen=True, kw_only=True)
class FixedTimeConfig(BaseTimeConfig):
    """Same start and end every work day."""

    start_time: time
    end_time: time

    def start_time_for(self, shift_name: str | None) -> time | None:
        return self.start_time

    def end_time_for(self, shift_name: str | None) -> time | None:
        return self.end_time


@dataclass(frozen=True, kw_only=True)
class FlexibleTimeConfig(BaseTimeConfig):
    """Flexible hours; lateness and undertime are measured against core hours."""

    core_start_time: time
    core_end_time: time

    def start_time_for(self, shift_name: str | None) -> time | None:
        return self.core_start_time

    def end_time_for(self, shift_name: str | None) -> time | None:
        return self.core_end_time


@dataclass(frozen=True, kw_only=True)
class ShiftingTimeConfig(BaseTimeConfig):
    """Rotating schedule with named shifts; the assignment picks the shift."""

    shifts: tuple[ShiftConfig, ...]

    crosses_midnight_on_equal = False

    def shift(self, shift_name: str | None) -> ShiftConfig | None:
        if shift_name is None:
            return None
        for shift in self.shifts:
            if shift.name == shift_name:
                return shift
        return None

    def start_time_for(self, shift_name: str | None) -> time | None:
        shift = self.shift(shift_name)
        return shift.start_time if shift else None

    def end_time_for(self, shift_name: str | None) -> time | None:
        shift = self.shift(shift_name)
        return shift.end_time if shift else None

    def break_for(self, shift_name: str | None) -> BreakConfig | None:
        shift = self.shift(shift_name)
        if shift is not None and shift.break_config is not None:
            return shift.break_config
        return self.break_config


@dataclass(frozen=True, kw_only=True)
class CompressedTimeConfig(BaseTimeConfig):
    """Compressed work week: longer days, fewer of them."""

    daily_hours: float
    half_day: HalfDayConfig | None = None
    start_time: time | None = None
    end_time: time | None = None

    def start_time_for(self, shift_name: str | None) -> time | None:
        return self.start_time

    def end_time_for(self, shift_name: str | None) -> time | None:
        if self.start_time is None:
            return None
        return self.end_time


TimeConfig = Union[FixedTimeConfig, FlexibleTimeConfig, ShiftingTimeConfig, CompressedTimeConfig]


def _parse_work_days(value: Any, schedule_type: str) -> frozenset[str] | None:
    if value is None:
        return None
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ScheduleConfigurationError("work_days must be a list of weekday names", schedule_type)
    days = frozenset(str(day).lower() for day in value)
    unknown = days - set(WEEKDAYS)
    if unknown:
        raise ScheduleConfigurationError(f"unknown work_days {sorted(unknown)}", schedule_type)
    return days


def _common_fields(data: dict[str, Any], schedule_type: str) -> dict[str, Any]:
    required_hours = data.get("required_hours_per_day")
    return {
        "work_days": _parse_work_days(data.get("work_days"), schedule_type),
        "break_config": BreakConfig.from_dict(data.get("break")),
        "half_day_saturday": bool(data.get("half_day_saturday", False)),
        "saturday_end_time": _optional_time(data.get("saturday_end_time"), "saturday_end_time"),
        "required_hours_per_day": float(required_hours) if required_hours is not None else None,
    }


def parse_time_configuration(schedule_type: str | ScheduleType, data: dict[str, Any]) -> TimeConfig:
    """Build the typed configuration for a schedule kind.

    Raises:
        ScheduleConfigurationError: If required keys are missing or malformed.
    """
    try:
        kind = ScheduleType(schedule_type)
    except ValueError:
        raise ScheduleConfigurationError(f"unknown schedule type {schedule_type!r}")

    common = _common_fields(data, kind.value)

    if kind is ScheduleType.FIXED:
        if "start_time" not in data or "end_time" not in data:
            raise ScheduleConfigurationError("start_time and end_time are required", kind.value)
        return FixedTimeConfig(
            start_time=parse_time_of_day(data["start_time"], "start_time"),
            end_time=parse_time_of_day(data["end_time"], "end_time"),
            **common,
        )

    if kind is ScheduleType.FLEXIBLE:
        core = data.get("core_hours") or {}
        if "start_time" not in core or "end_time" not in core:
            raise ScheduleConfigurationError("core_hours.start_time and core_hours.end_time are required", kind.value)
        return FlexibleTimeConfig(
            core_start_time=parse_time_of_day(core["start_time"], "core_hours.start_time"),
            core_end_time=parse_time_of_day(core["end_time"], "core_hours.end_time"),
            **common,
        )

    if kind is ScheduleType.SHIFTING:
        shifts = data.get("shifts")
        if not shifts:
            raise ScheduleConfigurationError("at least one shift is required", kind.value)
        return ShiftingTimeConfig(
            shifts=tuple(ShiftConfig.from_dict(shift) for shift in shifts),
            **common,
        )

    if data.get("daily_hours") is None:
        raise ScheduleConfigurationError("daily_hours is required", kind.value)
    return CompressedTimeConfig(
        daily_hours=float(data["daily_hours"]),
        half_day=HalfDayConfig.from_dict(data.get("half_day")),
        start_time=_optional_time(data.get("start_time"), "start_time"),
        end_time=_optional_time(data.get("end_time"), "end_time"),
        **common,
    )


@dataclass(frozen=True)
class OvertimePolicy:
    """Schedule-level overtime rules."""

    daily_threshold_hours: float = 8

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OvertimePolicy:
        if not data or data.get("daily_threshold_hours") is None:
            return cls()
        try:
            hours = float(data["daily_threshold_hours"])
        except (TypeError, ValueError):
            raise ScheduleConfigurationError(
                f"overtime daily_threshold_hours must be a number, got {data['daily_threshold_hours']!r}"
            )
        if hours < 0:
            raise ScheduleConfigurationError("overtime daily_threshold_hours cannot be negative")
        return cls(daily_threshold_hours=hours)

    @property
    def daily_threshold_minutes(self) -> int:
        return int(self.daily_threshold_hours * 60)


@dataclass(frozen=True)
class NightDifferentialPolicy:
    """Schedule-level night differential window."""

    enabled: bool = False
    start_time: time = time(22, 0)
    end_time: time = time(6, 0)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> NightDifferentialPolicy:
        if not data:
            return cls()
        return cls(
            enabled=bool(data.get("enabled", False)),
            start_time=parse_time_of_day(data.get("start_time", "22:00"), "night_differential.start_time"),
            end_time=parse_time_of_day(data.get("end_time", "06:00"), "night_differential.end_time"),
        )
