"""
Inter-Packet Delay Calibrator (IPDCAL)

Closed-loop calibration of the inter-packet delay of GigE Vision cameras:
finds the largest pacing delay that still lets the camera reach the frame
rate it sustains with pacing disabled, for one or all pixel formats.
"""

__version__ = "1.0.0"

from ipdcal.core.config import CalibrationSettings, load_settings
from ipdcal.core.errors import (
    CalibrationError,
    ConfigurationTimeout,
    ConfigurationUnsupported,
    DeviceCapabilityMissing,
    InvalidSelection,
    NonConvergence,
    ResourceAllocationFailure,
)
from ipdcal.core.schema import (
    CalibrationOutcome,
    CalibrationReport,
    CalibrationResult,
    CalibrationState,
    Configuration,
    DeviceIdentity,
    GlobalParameters,
)
from ipdcal.device import DeviceAdapter, AcquisitionHandle, SimulatedDevice, acquisition
from ipdcal.calibration import (
    CalibrationHarness,
    DelaySearchEngine,
    ReferenceSampler,
    ResultsAggregator,
    ProgressObserver,
    approx_equal,
)
from ipdcal.report import ReportRenderer

__all__ = [
    "__version__",
    "CalibrationSettings",
    "load_settings",
    "CalibrationError",
    "ConfigurationTimeout",
    "ConfigurationUnsupported",
    "DeviceCapabilityMissing",
    "InvalidSelection",
    "NonConvergence",
    "ResourceAllocationFailure",
    "CalibrationOutcome",
    "CalibrationReport",
    "CalibrationResult",
    "CalibrationState",
    "Configuration",
    "DeviceIdentity",
    "GlobalParameters",
    "DeviceAdapter",
    "AcquisitionHandle",
    "SimulatedDevice",
    "acquisition",
    "CalibrationHarness",
    "DelaySearchEngine",
    "ReferenceSampler",
    "ResultsAggregator",
    "ProgressObserver",
    "approx_equal",
    "ReportRenderer",
]
