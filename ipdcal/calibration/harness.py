"""
Calibration Harness
Sequences inter-packet delay calibration over one or all device configurations.
"""

import logging
from contextlib import ExitStack
from typing import List, Optional

from ipdcal.calibration.events import CalibrationEvent, CalibrationEventType, ProgressObserver
from ipdcal.calibration.results import ResultsAggregator
from ipdcal.calibration.sampler import ReferenceSampler
from ipdcal.calibration.search import DelaySearchEngine
from ipdcal.core.config import CalibrationSettings
from ipdcal.core.errors import (
    ConfigurationTimeout,
    DeviceCapabilityMissing,
    InvalidSelection,
    ResourceAllocationFailure,
)
from ipdcal.core.schema import (
    CalibrationOutcome,
    CalibrationReport,
    CalibrationResult,
    Configuration,
)
from ipdcal.core.utils import Timer
from ipdcal.device.adapter import DeviceAdapter, acquisition

logger = logging.getLogger(__name__)


class CalibrationHarness:
    """
    Runs calibration for the selected configurations, strictly one at a time.

    Every configuration gets a fresh CalibrationState and its own acquisition
    buffers, released before the next configuration is applied. Allocation
    failures and pixel formats that never become writable skip one
    configuration; missing device capabilities abort the whole run before
    anything is applied.
    """

    def __init__(
        self,
        adapter: DeviceAdapter,
        settings: Optional[CalibrationSettings] = None,
        observer: Optional[ProgressObserver] = None,
    ):
        self.adapter = adapter
        self.settings = settings or CalibrationSettings()
        self.observer = observer or ProgressObserver()

    def check_capabilities(self) -> int:
        """
        Verify the device supports pacing.

        Returns:
            Device tick frequency in ticks per second

        Raises:
            DeviceCapabilityMissing: If the tick frequency is zero
        """
        tick_frequency = self.adapter.query_tick_frequency()
        if not tick_frequency or tick_frequency <= 0:
            raise DeviceCapabilityMissing("inter-packet delay", "tick frequency is 0")
        return int(tick_frequency)

    def supported_configurations(self) -> List[Configuration]:
        """Configurations the device can calibrate, in device order."""
        configurations = [c for c in self.adapter.enumerate_configurations() if c.supported]
        logger.debug(
            f"Device reports {len(configurations)} supported configurations: "
            f"{', '.join(c.name for c in configurations)}"
        )
        return configurations

    @staticmethod
    def resolve_selection(
        configurations: List[Configuration], selection: Optional[int]
    ) -> List[Configuration]:
        """
        Map a selection index to the configurations to calibrate.

        selection == len(configurations) (or None) means all of them. A single
        configuration is selected implicitly whatever the selection.
        """
        count = len(configurations)
        if count == 0:
            raise DeviceCapabilityMissing("any supported configuration")
        if count == 1:
            return list(configurations)
        if selection is None or selection == count:
            return list(configurations)
        if 0 <= selection < count:
            return [configurations[selection]]
        raise InvalidSelection(selection, count)

    def run(self, selection: Optional[int] = None) -> CalibrationReport:
        """
        Calibrate the selected configurations and aggregate their results.

        Args:
            selection: Index into supported_configurations(), or its length
                for all configurations

        Returns:
            CalibrationReport with one result per processed configuration
        """
        tick_frequency = self.check_capabilities()
        selected = self.resolve_selection(self.supported_configurations(), selection)

        aggregator = ResultsAggregator(
            identity=self.adapter.query_identity(),
            parameters=self.adapter.query_global_parameters(),
            tick_frequency=tick_frequency,
        )

        logger.info(
            f"Calibrating {len(selected)} configuration(s) at {tick_frequency} ticks/s"
        )

        with Timer("calibration batch") as timer:
            try:
                for configuration in selected:
                    result = self.calibrate_configuration(configuration, tick_frequency)
                    aggregator.record(result)
            finally:
                if self.settings.reset_delay_on_exit:
                    self.adapter.set_pacing_delay(0)

        logger.info(
            f"Calibration finished: {len(aggregator.succeeded())}/{len(aggregator)} succeeded"
        )
        failed = aggregator.failed()
        if failed:
            logger.warning(
                "No delay for: "
                + ", ".join(f"{r.configuration} ({r.outcome.value})" for r in failed)
            )
        return aggregator.build_report(duration_s=timer.duration_s)

    def calibrate_configuration(
        self, configuration: Configuration, tick_frequency: int
    ) -> CalibrationResult:
        """Apply, acquire, sample and search for a single configuration."""
        s = self.settings

        self.observer.on_event(
            CalibrationEvent(
                kind=CalibrationEventType.CONFIGURATION_STARTED,
                configuration=configuration.name,
                message=f"calculating inter-packet delay for {configuration.name}",
            )
        )

        try:
            self.adapter.apply_configuration(
                configuration,
                poll_interval_s=s.apply_poll_interval_ms / 1000.0,
                timeout_s=s.apply_timeout_s,
                backoff=s.apply_backoff,
                max_poll_interval_s=s.apply_max_poll_interval_ms / 1000.0,
            )
        except ConfigurationTimeout as e:
            return self._skip(configuration, CalibrationOutcome.APPLY_TIMEOUT, e)

        with ExitStack() as stack:
            try:
                handle = stack.enter_context(
                    acquisition(self.adapter, configuration, s.buffer_depth)
                )
            except ResourceAllocationFailure as e:
                return self._skip(configuration, CalibrationOutcome.ALLOCATION_FAILED, e)

            sampler = ReferenceSampler(self.adapter, tick_frequency, self.observer)
            state = sampler.sample(configuration, handle.buffer_depth)

            engine = DelaySearchEngine(self.adapter, s, self.observer)
            return engine.run(state, handle.buffer_depth)

    def _skip(
        self, configuration: Configuration, outcome: CalibrationOutcome, error: Exception
    ) -> CalibrationResult:
        logger.warning(f"Skipping {configuration.name}: {error}")
        self.observer.on_event(
            CalibrationEvent(
                kind=CalibrationEventType.SKIPPED,
                configuration=configuration.name,
                message=str(error),
            )
        )
        return CalibrationResult(
            configuration=configuration.name,
            succeeded=False,
            outcome=outcome,
        )
