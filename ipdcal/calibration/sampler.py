"""
Reference frame-rate sampling.

Measures the throughput reached with pacing disabled and seeds the search
with the device's theoretical inter-packet delay.
"""

import logging
from typing import Optional

from ipdcal.calibration.events import CalibrationEvent, CalibrationEventType, ProgressObserver
from ipdcal.core.schema import CalibrationState, Configuration
from ipdcal.device.adapter import DeviceAdapter

logger = logging.getLogger(__name__)


class ReferenceSampler:
    """Builds the initial CalibrationState for one configuration."""

    def __init__(
        self,
        adapter: DeviceAdapter,
        tick_frequency: int,
        observer: Optional[ProgressObserver] = None,
    ):
        self.adapter = adapter
        self.tick_frequency = tick_frequency
        self.observer = observer or ProgressObserver()

    def sample(self, configuration: Configuration, buffer_depth: int) -> CalibrationState:
        """
        Measure the zero-delay reference rate and compute the seed delay.

        Args:
            configuration: Configuration currently applied on the device
            buffer_depth: Number of allocated acquisition buffers

        Returns:
            Fresh CalibrationState with reference_rate and seed delay set
        """
        state = CalibrationState(
            configuration=configuration,
            tick_frequency=self.tick_frequency,
        )

        self.adapter.set_pacing_delay(0)
        state.reference_rate = self.adapter.run_sampling_cycle(buffer_depth)

        seed_seconds = self.adapter.query_theoretical_delay_seconds()
        if seed_seconds < 0:
            logger.warning(
                f"Device suggested a negative delay ({seed_seconds:.3e} s) "
                f"for {configuration.name}, starting from 0"
            )
        state.set_delay(seed_seconds)

        logger.info(
            f"Reference frame rate for {configuration.name}: {state.reference_rate:.2f} fps, "
            f"theoretical delay {state.delay_ticks} ticks ({state.delay_seconds * 1e6:.3f} usec)"
        )
        self.observer.on_event(
            CalibrationEvent(
                kind=CalibrationEventType.REFERENCE_SAMPLED,
                configuration=configuration.name,
                delay_ticks=state.delay_ticks,
                delay_seconds=state.delay_seconds,
                rate=state.reference_rate,
                reference_rate=state.reference_rate,
                message=f"reference {state.reference_rate:.2f} fps",
            )
        )
        return state
