"""DTR calculation pipeline."""

from dtr_engine.calculators.punch_pair_processor import PunchPairProcessor
from dtr_engine.calculators.schedule_resolver import ResolvedSchedule, ScheduleResolver
from dtr_engine.calculators.time_calculator import TimeCalculator

__all__ = [
    "PunchPairProcessor",
    "ResolvedSchedule",
    "ScheduleResolver",
    "TimeCalculator",
]
