"""DTR engine services."""

from dtr_engine.services.daily_batch_service import BatchResult, DailyDtrBatchService
from dtr_engine.services.dtr_calculation_service import DtrCalculationService
from dtr_engine.services.period_aggregator import DtrPeriodAggregator, PeriodSummary
from dtr_engine.services.review_service import (
    DtrReviewService,
    NoOvertimeError,
    ReviewError,
    ReviewNotRequiredError,
    ReviewResolution,
    ReviewResolutionError,
)

__all__ = [
    "BatchResult",
    "DailyDtrBatchService",
    "DtrCalculationService",
    "DtrPeriodAggregator",
    "DtrReviewService",
    "NoOvertimeError",
    "PeriodSummary",
    "ReviewError",
    "ReviewNotRequiredError",
    "ReviewResolution",
    "ReviewResolutionError",
]
