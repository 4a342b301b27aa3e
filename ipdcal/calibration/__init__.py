"""
IPDCAL Calibration Module.

Reference sampling, the delay convergence search, and the batch harness.
"""

from .events import (
    CalibrationEvent,
    CalibrationEventType,
    CompositeObserver,
    LoggingObserver,
    ProgressObserver,
    RecordingObserver,
)
from .sampler import ReferenceSampler
from .search import DelaySearchEngine, approx_equal
from .results import ResultsAggregator
from .harness import CalibrationHarness

__all__ = [
    "CalibrationEvent",
    "CalibrationEventType",
    "CompositeObserver",
    "LoggingObserver",
    "ProgressObserver",
    "RecordingObserver",
    "ReferenceSampler",
    "DelaySearchEngine",
    "approx_equal",
    "ResultsAggregator",
    "CalibrationHarness",
]
