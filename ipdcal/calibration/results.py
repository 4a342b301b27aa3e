"""
Results aggregation for a calibration batch.
"""

from collections import OrderedDict
from typing import List, Optional

from ipdcal.core.schema import (
    CalibrationReport,
    CalibrationResult,
    DeviceIdentity,
    GlobalParameters,
)


class ResultsAggregator:
    """
    Collects one CalibrationResult per configuration in processing order.

    Device identity and global parameters are captured once per run and
    handed to the reporting surface alongside the results.
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        parameters: GlobalParameters,
        tick_frequency: int,
    ):
        self.identity = identity
        self.parameters = parameters
        self.tick_frequency = tick_frequency
        self._results: "OrderedDict[str, CalibrationResult]" = OrderedDict()

    def record(self, result: CalibrationResult) -> None:
        """Append a result; a configuration may only be recorded once."""
        if result.configuration in self._results:
            raise ValueError(f"Result for {result.configuration} already recorded")
        self._results[result.configuration] = result

    def results(self) -> List[CalibrationResult]:
        return list(self._results.values())

    def get(self, configuration: str) -> Optional[CalibrationResult]:
        return self._results.get(configuration)

    def succeeded(self) -> List[CalibrationResult]:
        return [r for r in self._results.values() if r.succeeded]

    def failed(self) -> List[CalibrationResult]:
        return [r for r in self._results.values() if not r.succeeded]

    def __len__(self) -> int:
        return len(self._results)

    def build_report(self, duration_s: float = 0.0) -> CalibrationReport:
        return CalibrationReport(
            identity=self.identity,
            parameters=self.parameters,
            tick_frequency=self.tick_frequency,
            results=self.results(),
            duration_s=duration_s,
        )
