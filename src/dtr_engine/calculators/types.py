"""Type definitions for the DTR calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from dtr_engine.models import AttendanceLog


class PunchType(str, Enum):
    """Resolved direction of a scan."""

    IN = "in"
    OUT = "out"
    BREAK_OUT = "break_out"
    BREAK_IN = "break_in"
    UNKNOWN = "unknown"

    @property
    def is_out_type(self) -> bool:
        return self in (PunchType.OUT, PunchType.BREAK_OUT)

    @property
    def is_known(self) -> bool:
        return self is not PunchType.UNKNOWN


class DtrStatus(str, Enum):
    """Classification of a daily time record."""

    PRESENT = "present"
    ABSENT = "absent"
    HOLIDAY = "holiday"
    REST_DAY = "rest_day"
    NO_SCHEDULE = "no_schedule"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    DtrStatus.PRESENT: "Present",
    DtrStatus.ABSENT: "Absent",
    DtrStatus.HOLIDAY: "Holiday",
    DtrStatus.REST_DAY: "Rest Day",
    DtrStatus.NO_SCHEDULE: "No Schedule",
}


class ScheduleType(str, Enum):
    """Kinds of work schedule."""

    FIXED = "fixed"
    FLEXIBLE = "flexible"
    SHIFTING = "shifting"
    COMPRESSED = "compressed"


class HolidayType(str, Enum):
    """Holiday kinds."""

    REGULAR = "regular"
    SPECIAL = "special"

    @property
    def label(self) -> str:
        if self is HolidayType.REGULAR:
            return "Regular Holiday"
        return "Special Non-Working Holiday"


# Device vocabulary, compared lower-cased and stripped.
DIRECTION_ALIASES: dict[str, PunchType] = {
    "in": PunchType.IN,
    "entry": PunchType.IN,
    "check-in": PunchType.IN,
    "checkin": PunchType.IN,
    "1": PunchType.IN,
    "out": PunchType.OUT,
    "exit": PunchType.OUT,
    "check-out": PunchType.OUT,
    "checkout": PunchType.OUT,
    "2": PunchType.OUT,
    "break_out": PunchType.BREAK_OUT,
    "breakout": PunchType.BREAK_OUT,
    "break-out": PunchType.BREAK_OUT,
    "lunch_out": PunchType.BREAK_OUT,
    "lunchout": PunchType.BREAK_OUT,
    "3": PunchType.BREAK_OUT,
    "break_in": PunchType.BREAK_IN,
    "breakin": PunchType.BREAK_IN,
    "break-in": PunchType.BREAK_IN,
    "lunch_in": PunchType.BREAK_IN,
    "lunchin": PunchType.BREAK_IN,
    "4": PunchType.BREAK_IN,
}


def normalize_direction(raw: str | None) -> PunchType:
    """Map a raw device direction string to a PunchType.

    Missing or unrecognised values become UNKNOWN.
    """
    if raw is None:
        return PunchType.UNKNOWN
    return DIRECTION_ALIASES.get(raw.strip().lower(), PunchType.UNKNOWN)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, truncated; never negative."""
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


@dataclass(frozen=True)
class Punch:
    """A scan with a resolved direction."""

    scan_id: UUID
    logged_at: datetime
    direction: PunchType = PunchType.UNKNOWN

    @classmethod
    def from_scan(cls, scan: AttendanceLog) -> Punch:
        return cls(
            scan_id=scan.attendance_log_id,
            logged_at=scan.logged_at,
            direction=normalize_direction(scan.direction),
        )

    def with_direction(self, direction: PunchType) -> Punch:
        return Punch(scan_id=self.scan_id, logged_at=self.logged_at, direction=direction)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.logged_at, str(self.scan_id))


@dataclass(frozen=True)
class WorkInterval:
    """Continuous work between an In and an Out (Out may be missing)."""

    punch_in: Punch
    punch_out: Punch | None = None

    @property
    def is_complete(self) -> bool:
        return self.punch_out is not None

    @property
    def minutes(self) -> int:
        if self.punch_out is None:
            return 0
        return minutes_between(self.punch_in.logged_at, self.punch_out.logged_at)


@dataclass(frozen=True)
class BreakInterval:
    """A break between a BreakOut and a BreakIn (either may be missing)."""

    punch_out: Punch | None
    punch_in: Punch | None = None

    @property
    def is_complete(self) -> bool:
        return self.punch_out is not None and self.punch_in is not None

    @property
    def minutes(self) -> int:
        if self.punch_out is None or self.punch_in is None:
            return 0
        return minutes_between(self.punch_out.logged_at, self.punch_in.logged_at)


@dataclass(frozen=True)
class PunchPairResult:
    """Output of pairing a day's punches."""

    pairs: tuple[WorkInterval, ...] = ()
    break_pairs: tuple[BreakInterval, ...] = ()
    unpaired_in: Punch | None = None
    unpaired_out: Punch | None = None
    first_in: datetime | None = None
    last_out: datetime | None = None

    @property
    def has_missing_out(self) -> bool:
        return any(not pair.is_complete for pair in self.pairs)


@dataclass(frozen=True)
class ExpectedEvent:
    """A scan the schedule expects at a given time."""

    expected_at: datetime
    direction: PunchType


@dataclass(frozen=True)
class MatchResult:
    """Punches with resolved directions plus the count of unmatched scans.

    ``dropped_count`` counts direction-less scans no event claimed.
    ``unconfirmed_count`` counts boundary scans that took the first In or
    last Out despite lying outside the matching tolerance.
    """

    punches: tuple[Punch, ...]
    dropped_count: int = 0
    unconfirmed_count: int = 0

    @property
    def unmatched_count(self) -> int:
        return self.dropped_count + self.unconfirmed_count


@dataclass(frozen=True)
class WorkPeriod:
    """A complete work interval as plain timestamps."""

    start: datetime
    end: datetime


@dataclass
class PunchRecordCandidate:
    """A punch row to persist for a daily time record."""

    attendance_log_id: UUID
    punch_type: PunchType
    punched_at: datetime


@dataclass
class DayComputation:
    """Field values for a daily time record before persistence."""

    status: DtrStatus
    work_schedule_id: UUID | None = None
    shift_name: str | None = None
    first_in: datetime | None = None
    last_out: datetime | None = None
    total_work_minutes: int = 0
    total_break_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    overtime_minutes: int = 0
    night_diff_minutes: int = 0
    remarks: str | None = None
    needs_review: bool = False
    review_reason: str | None = None
    punches: list[PunchRecordCandidate] = field(default_factory=list)

    def record_values(self) -> dict[str, object]:
        """Column values for the daily_time_record row."""
        return {
            "status": self.status.value,
            "work_schedule_id": self.work_schedule_id,
            "shift_name": self.shift_name,
            "first_in": self.first_in,
            "last_out": self.last_out,
            "total_work_minutes": self.total_work_minutes,
            "total_break_minutes": self.total_break_minutes,
            "late_minutes": self.late_minutes,
            "undertime_minutes": self.undertime_minutes,
            "overtime_minutes": self.overtime_minutes,
            "overtime_approved": False,
            "night_diff_minutes": self.night_diff_minutes,
            "remarks": self.remarks,
            "needs_review": self.needs_review,
            "review_reason": self.review_reason,
        }
