"""
IPDCAL Data Schema Definitions
Dataclasses for configurations, per-run calibration state, results and reports.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from ipdcal.core.errors import NonConvergence
from ipdcal.core.utils import seconds_to_ticks


class CalibrationOutcome(Enum):
    """How a single configuration's calibration ended."""

    PENDING = "pending"
    CONVERGED = "converged"
    ZERO_DELAY = "zero_delay"
    NON_CONVERGENCE = "non_convergence"
    ALLOCATION_FAILED = "allocation_failed"
    APPLY_TIMEOUT = "apply_timeout"


@dataclass(frozen=True)
class Configuration:
    """A device acquisition configuration (e.g. a pixel format)."""

    name: str
    supported: bool = True
    value: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DeviceIdentity:
    """Device vendor and model strings."""

    vendor: str
    model: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GlobalParameters:
    """Parameters shared by every configuration of a run."""

    width: int
    height: int
    unit_size: int  # packet size in bytes

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CalibrationState:
    """
    Mutable search state for one configuration.

    delay_seconds and delay_ticks are only written together via set_delay().
    """

    configuration: Configuration
    tick_frequency: int
    reference_rate: float = 0.0
    current_rate: float = 0.0
    delay_seconds: float = 0.0
    delay_ticks: int = 0
    equality_streak: int = 0
    iterations: int = 0
    failed: bool = False
    done: bool = False
    outcome: CalibrationOutcome = CalibrationOutcome.PENDING

    def set_delay(self, seconds: float) -> None:
        """Set the candidate delay, clamping at zero and re-deriving ticks."""
        if seconds <= 0.0:
            seconds = 0.0
        self.delay_seconds = seconds
        self.delay_ticks = seconds_to_ticks(seconds, self.tick_frequency)

    @property
    def finished(self) -> bool:
        return self.failed or self.done

    def to_result(self) -> "CalibrationResult":
        """Snapshot the state; delay values are kept only on success."""
        if self.failed:
            return CalibrationResult(
                configuration=self.configuration.name,
                reference_rate=self.reference_rate,
                succeeded=False,
                outcome=self.outcome,
                iterations=self.iterations,
            )
        return CalibrationResult(
            configuration=self.configuration.name,
            delay_ticks=self.delay_ticks,
            delay_seconds=self.delay_seconds,
            reference_rate=self.reference_rate,
            obtained_rate=self.current_rate,
            succeeded=True,
            outcome=self.outcome,
            iterations=self.iterations,
        )


@dataclass
class CalibrationResult:
    """Per-configuration calibration outcome."""

    configuration: str
    delay_ticks: Optional[int] = None
    delay_seconds: Optional[float] = None
    reference_rate: Optional[float] = None
    obtained_rate: Optional[float] = None
    succeeded: bool = False
    outcome: CalibrationOutcome = CalibrationOutcome.PENDING
    iterations: int = 0

    @property
    def delay_us(self) -> Optional[float]:
        if self.delay_seconds is None:
            return None
        return self.delay_seconds * 1e6

    def raise_for_outcome(self) -> None:
        """Raise NonConvergence if the search did not produce a delay."""
        if self.outcome == CalibrationOutcome.NON_CONVERGENCE:
            raise NonConvergence(self.configuration, self.delay_ticks or 0)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["outcome"] = self.outcome.value
        return d


@dataclass
class CalibrationReport:
    """Everything the reporting surface needs after a run."""

    identity: DeviceIdentity
    parameters: GlobalParameters
    tick_frequency: int
    results: List[CalibrationResult] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity.to_dict(),
            "parameters": self.parameters.to_dict(),
            "tick_frequency": self.tick_frequency,
            "duration_s": self.duration_s,
            "results": [r.to_dict() for r in self.results],
        }
