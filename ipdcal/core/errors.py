"""
IPDCAL Error Taxonomy
Exceptions raised by the calibration core and device adapters.
"""

from typing import Optional


class CalibrationError(Exception):
    """Base class for all calibration errors."""


class ConfigurationUnsupported(CalibrationError):
    """A configuration the device cannot acquire in was requested."""

    def __init__(self, name: str):
        super().__init__(f"Configuration not supported by device: {name}")
        self.name = name


class ResourceAllocationFailure(CalibrationError):
    """Acquisition buffers could not be allocated for one configuration."""

    def __init__(self, name: str, reason: str = ""):
        message = f"Unable to allocate acquisition buffers for {name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.name = name
        self.reason = reason


class NonConvergence(CalibrationError):
    """The delay search ended without a usable delay."""

    def __init__(self, name: str, delay_ticks: int = 0):
        super().__init__(
            f"Inter-packet delay search did not converge for {name} "
            f"(stopped at {delay_ticks} ticks)"
        )
        self.name = name
        self.delay_ticks = delay_ticks


class DeviceCapabilityMissing(CalibrationError):
    """The device lacks a capability required for the whole run."""

    def __init__(self, capability: str, detail: Optional[str] = None):
        message = f"Device does not support {capability}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.capability = capability


class ConfigurationTimeout(CalibrationError):
    """The device never became writable within the allowed wait."""

    def __init__(self, name: str, waited_s: float):
        super().__init__(
            f"Timed out after {waited_s:.1f} s waiting to apply configuration {name}"
        )
        self.name = name
        self.waited_s = waited_s


class InvalidSelection(CalibrationError):
    """Configuration selection outside [0, count]."""

    def __init__(self, selection: int, count: int):
        super().__init__(f"Invalid selection {selection}, expected 0-{count}")
        self.selection = selection
        self.count = count
