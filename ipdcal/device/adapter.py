"""
Device Adapter Interface
Capability contract the calibration core consumes from an acquisition device.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional

from ipdcal.core.errors import ConfigurationTimeout, ConfigurationUnsupported
from ipdcal.core.schema import Configuration, DeviceIdentity, GlobalParameters
from ipdcal.core.utils import wait_until

logger = logging.getLogger(__name__)


@dataclass
class AcquisitionHandle:
    """Acquisition buffers owned by the calibration of one configuration."""

    configuration: str
    buffer_ids: List[int]
    frame_bytes: int = 0
    released: bool = False

    @property
    def buffer_depth(self) -> int:
        return len(self.buffer_ids)


class DeviceAdapter(ABC):
    """
    Abstract interface to a pacing-capable acquisition device.

    Implementations program the inter-packet delay and measure the achieved
    frame rate. run_sampling_cycle() blocks until the bounded sampling window
    has completed.
    """

    @abstractmethod
    def enumerate_configurations(self) -> List[Configuration]:
        """Return every configuration the device reports, in device order."""
        pass

    @abstractmethod
    def is_configuration_writable(self) -> bool:
        """Whether the configuration feature currently accepts writes."""
        pass

    @abstractmethod
    def write_configuration(self, name: str) -> None:
        """Select a configuration; only called once writable."""
        pass

    @abstractmethod
    def allocate_resources(self, configuration: Configuration, depth: int) -> AcquisitionHandle:
        """
        Allocate up to depth acquisition buffers sized for configuration.

        Raises:
            ResourceAllocationFailure: If not a single buffer can be allocated.
        """
        pass

    @abstractmethod
    def release_resources(self, handle: AcquisitionHandle) -> None:
        """Free every buffer held by handle."""
        pass

    @abstractmethod
    def set_pacing_delay(self, ticks: int) -> None:
        """Program the inter-packet delay in device ticks."""
        pass

    @abstractmethod
    def run_sampling_cycle(self, buffer_depth: int) -> float:
        """Start acquisition, wait for buffer_depth frames, stop, return frames/s."""
        pass

    @abstractmethod
    def query_tick_frequency(self) -> int:
        """Device clock ticks per second; 0 when pacing is unsupported."""
        pass

    @abstractmethod
    def query_theoretical_delay_seconds(self) -> float:
        """Device-suggested delay for the current configuration."""
        pass

    @abstractmethod
    def query_identity(self) -> DeviceIdentity:
        pass

    @abstractmethod
    def query_global_parameters(self) -> GlobalParameters:
        pass

    def apply_configuration(
        self,
        configuration: Configuration,
        poll_interval_s: float = 0.25,
        timeout_s: Optional[float] = None,
        backoff: float = 1.0,
        max_poll_interval_s: float = 2.0,
    ) -> None:
        """
        Wait until the device accepts a configuration change, then apply it.

        With timeout_s=None the wait is unbounded.

        Raises:
            ConfigurationUnsupported: If configuration is not supported.
            ConfigurationTimeout: If the device stays read-only past timeout_s.
        """
        if not configuration.supported:
            raise ConfigurationUnsupported(configuration.name)

        try:
            waited = wait_until(
                self.is_configuration_writable,
                interval_s=poll_interval_s,
                timeout_s=timeout_s,
                backoff=backoff,
                max_interval_s=max_poll_interval_s,
            )
        except TimeoutError as e:
            raise ConfigurationTimeout(configuration.name, timeout_s or 0.0) from e

        if waited > 0:
            logger.debug(f"Configuration became writable after {waited:.2f} s")

        self.write_configuration(configuration.name)
        logger.info(f"Applied configuration {configuration.name}")


@contextmanager
def acquisition(
    adapter: DeviceAdapter, configuration: Configuration, depth: int
) -> Iterator[AcquisitionHandle]:
    """
    Scoped ownership of acquisition buffers.

    Usage:
        with acquisition(adapter, configuration, 20) as handle:
            run_calibration(handle.buffer_depth)
    """
    handle = adapter.allocate_resources(configuration, depth)
    logger.debug(
        f"Allocated {handle.buffer_depth} buffers for {configuration.name}"
    )

    try:
        yield handle
    finally:
        adapter.release_resources(handle)
        handle.released = True
        logger.debug(f"Released buffers for {configuration.name}")
