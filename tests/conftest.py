"""
IPDCAL Test Configuration and Fixtures
======================================
Shared fixtures and a scripted device adapter for all tests.
"""

from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

import pytest

from ipdcal.core.config import CalibrationSettings
from ipdcal.core.errors import ResourceAllocationFailure
from ipdcal.core.schema import Configuration, DeviceIdentity, GlobalParameters
from ipdcal.device.adapter import AcquisitionHandle, DeviceAdapter
from ipdcal.device.simulated import SimulatedDevice


class ScriptedAdapter(DeviceAdapter):
    """
    Deterministic adapter whose frame rate is a function of the programmed
    delay and the active configuration.

    Every call is appended to `calls` as a (method, argument) tuple.
    """

    def __init__(
        self,
        configurations: Iterable[Configuration] = (Configuration("Mono8"),),
        rate_fn: Optional[Callable[[str, int], float]] = None,
        rates: Optional[Iterable[float]] = None,
        tick_frequency: int = 1_000_000,
        theoretical_delay_s: float = 0.0002,
        fail_allocation: Optional[Set[str]] = None,
        buffer_depth: Optional[int] = None,
        writable_after: int = 0,
        never_writable: bool = False,
        lock_after_writes: Optional[int] = None,
    ):
        self.configurations = list(configurations)
        self.rate_fn = rate_fn or (lambda name, ticks: 30.0)
        self._rates = iter(rates) if rates is not None else None
        self.tick_frequency = tick_frequency
        self.theoretical_delay_s = theoretical_delay_s
        self.fail_allocation = fail_allocation or set()
        self.buffer_depth = buffer_depth
        self.writable_after = writable_after
        self.never_writable = never_writable
        self.lock_after_writes = lock_after_writes

        self.current: Optional[str] = None
        self.delay_ticks = 0
        self.active: Optional[AcquisitionHandle] = None
        self.calls: List[tuple] = []
        self.write_polls = 0

    def calls_of(self, method: str) -> list:
        return [arg for name, arg in self.calls if name == method]

    def enumerate_configurations(self) -> List[Configuration]:
        self.calls.append(("enumerate", None))
        return list(self.configurations)

    def is_configuration_writable(self) -> bool:
        self.write_polls += 1
        if self.never_writable:
            return False
        return self.write_polls > self.writable_after

    def write_configuration(self, name: str) -> None:
        self.calls.append(("apply", name))
        self.current = name
        if self.lock_after_writes is not None and len(self.calls_of("apply")) >= self.lock_after_writes:
            self.never_writable = True

    def allocate_resources(self, configuration: Configuration, depth: int) -> AcquisitionHandle:
        self.calls.append(("allocate", configuration.name))
        if self.active is not None:
            raise RuntimeError("buffers still allocated")
        if configuration.name in self.fail_allocation:
            raise ResourceAllocationFailure(configuration.name, "scripted failure")
        count = self.buffer_depth or depth
        self.active = AcquisitionHandle(configuration.name, list(range(count)))
        return self.active

    def release_resources(self, handle: AcquisitionHandle) -> None:
        self.calls.append(("release", handle.configuration))
        self.active = None

    def set_pacing_delay(self, ticks: int) -> None:
        self.calls.append(("delay", ticks))
        self.delay_ticks = ticks

    def run_sampling_cycle(self, buffer_depth: int) -> float:
        self.calls.append(("sample", buffer_depth))
        if self._rates is not None:
            return next(self._rates)
        return self.rate_fn(self.current, self.delay_ticks)

    def query_tick_frequency(self) -> int:
        return self.tick_frequency

    def query_theoretical_delay_seconds(self) -> float:
        return self.theoretical_delay_s

    def query_identity(self) -> DeviceIdentity:
        return DeviceIdentity(vendor="Acme", model="Pacer-1")

    def query_global_parameters(self) -> GlobalParameters:
        return GlobalParameters(width=640, height=480, unit_size=1500)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fast_settings() -> CalibrationSettings:
    """Default search constants without the settle pause."""
    return CalibrationSettings(settle_ms=0, apply_poll_interval_ms=1, apply_timeout_s=1.0)


@pytest.fixture
def make_adapter():
    """Factory for ScriptedAdapter instances."""
    return ScriptedAdapter


@pytest.fixture
def scripted_adapter() -> ScriptedAdapter:
    """Single-configuration adapter that always reaches the reference rate."""
    return ScriptedAdapter()


@pytest.fixture
def two_config_adapter() -> ScriptedAdapter:
    """Adapter exposing configurations A and B."""
    return ScriptedAdapter(configurations=[Configuration("A"), Configuration("B")])


@pytest.fixture
def simulated_device() -> SimulatedDevice:
    """Noise-free simulated camera."""
    return SimulatedDevice()


@pytest.fixture
def sample_settings_yaml(tmp_path) -> Path:
    """YAML settings file with a calibration section."""
    path = tmp_path / "settings.yaml"
    path.write_text(
        "calibration:\n"
        "  settle_ms: 0\n"
        "  tolerance: 0.25\n"
        "  required_streak: 4\n"
        "  apply_timeout_s: null\n"
    )
    return path


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow running")
    config.addinivalue_line("markers", "integration: marks integration tests")
