"""
Calibration Settings - tunable constants of the delay search and harness.
Supports loading overrides from a YAML file.
"""

import logging
from dataclasses import dataclass, fields, asdict, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)


# Number of grab buffers in the acquisition queue.
BUFFERING_SIZE_MAX = 20


@dataclass(frozen=True)
class CalibrationSettings:
    """Constants driving the convergence search and the batch harness."""

    # Rates within this absolute distance are considered equal
    tolerance: float = 0.1
    # Consecutive equal measurements needed to converge
    required_streak: int = 3
    # Fraction removed from the converged delay
    safety_margin: float = 0.15
    # Divisor for the shrink step while rates match
    converge_divisor: float = 50.0
    # Divisor for the shrink step while rates differ
    diverge_divisor: float = 10.0
    # Pause after every measurement, milliseconds
    settle_ms: int = 500
    buffer_depth: int = BUFFERING_SIZE_MAX
    # Writability polling for configuration changes
    apply_poll_interval_ms: int = 250
    apply_backoff: float = 1.5
    apply_max_poll_interval_ms: int = 2000
    # None waits indefinitely
    apply_timeout_s: Optional[float] = 30.0
    reset_delay_on_exit: bool = True

    def __post_init__(self):
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")
        if self.required_streak < 1:
            raise ValueError(f"required_streak must be >= 1, got {self.required_streak}")
        if not 0.0 <= self.safety_margin < 1.0:
            raise ValueError(f"safety_margin must be in [0, 1), got {self.safety_margin}")
        if self.converge_divisor <= 1.0 or self.diverge_divisor <= 1.0:
            raise ValueError("shrink divisors must be > 1")
        if self.settle_ms < 0:
            raise ValueError(f"settle_ms must be >= 0, got {self.settle_ms}")
        if not 1 <= self.buffer_depth <= BUFFERING_SIZE_MAX:
            raise ValueError(
                f"buffer_depth must be in [1, {BUFFERING_SIZE_MAX}], got {self.buffer_depth}"
            )
        if self.apply_poll_interval_ms <= 0:
            raise ValueError("apply_poll_interval_ms must be > 0")
        if self.apply_timeout_s is not None and self.apply_timeout_s < 0:
            raise ValueError("apply_timeout_s must be >= 0 or None")

    @property
    def settle_s(self) -> float:
        return self.settle_ms / 1000.0

    def with_overrides(self, **overrides: Any) -> "CalibrationSettings":
        """Return a copy with non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationSettings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown calibration settings: {', '.join(unknown)}")
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            # Wrong value types surface from the comparisons in __post_init__
            raise ValueError(f"Invalid calibration settings: {e}") from e


def load_settings(config_path: Union[str, Path, None]) -> CalibrationSettings:
    """
    Load calibration settings from a YAML file.

    The file may hold the settings at top level or under a `calibration:` key.
    A missing path yields the defaults.
    """
    if config_path is None:
        return CalibrationSettings()

    path = Path(config_path)
    if not path.exists():
        logger.warning(f"Settings file not found: {config_path}, using defaults")
        return CalibrationSettings()

    with open(path, "r") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Settings file {config_path} must contain a mapping")

    section = config.get("calibration", config)
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ValueError(f"calibration section in {config_path} must be a mapping")
    settings = CalibrationSettings.from_dict(section)
    logger.info(f"Loaded calibration settings from {config_path}")
    return settings
