"""
Report Renderer
Formats a CalibrationReport for the terminal or as JSON.
"""

import json
import logging
from pathlib import Path
from typing import Union

from ipdcal.core.schema import CalibrationOutcome, CalibrationReport, CalibrationResult
from ipdcal.core.utils import format_duration, safe_json_dump

logger = logging.getLogger(__name__)


OUTCOME_LABELS = {
    CalibrationOutcome.CONVERGED: "converged",
    CalibrationOutcome.ZERO_DELAY: "completed at zero delay",
    CalibrationOutcome.NON_CONVERGENCE: "did not converge",
    CalibrationOutcome.ALLOCATION_FAILED: "skipped, buffer allocation failed",
    CalibrationOutcome.APPLY_TIMEOUT: "skipped, pixel format could not be applied",
    CalibrationOutcome.PENDING: "not run",
}


class ReportRenderer:
    """
    Renders inter-packet delay reports.

    Supports:
    - Terminal (summary table per configuration)
    - JSON (structured data)
    """

    def __init__(self, report: CalibrationReport):
        self.report = report

    def render_terminal(self) -> str:
        """Render report for terminal output."""
        identity = self.report.identity
        params = self.report.parameters
        lines = []

        lines.append(
            f"Inter-packet delay report summary for {identity.vendor} {identity.model}:"
        )
        lines.append("")
        lines.append("Camera parameters:")
        lines.append(f"Camera SizeX:         {params.width}")
        lines.append(f"Camera SizeY:         {params.height}")
        lines.append(f"Camera Packet size:   {params.unit_size}")
        lines.append(f"Tick frequency:       {self.report.tick_frequency} Hz")
        lines.append("")

        for result in self.report.results:
            lines.extend(self._render_result(result))
            lines.append("-" * 58)

        lines.append("")
        lines.append(
            f"{self.report.succeeded_count} of {len(self.report.results)} configuration(s) "
            f"calibrated in {format_duration(self.report.duration_s)}."
        )
        lines.append(
            "Printed inter-packet delay results are valid only for the above parameters"
        )
        return "\n".join(lines)

    def _render_result(self, result: CalibrationResult) -> list:
        lines = [f"Camera Pixel format:  {result.configuration}"]

        if result.succeeded:
            lines.append(
                f"Inter-packet delay of {result.delay_ticks} ticks "
                f"({result.delay_us:.3f} usec) calculated."
            )
        else:
            lines.append(f"Inter-packet delay not calculated ({OUTCOME_LABELS[result.outcome]}).")

        if result.reference_rate is not None:
            lines.append(f"Reference frame rate: {result.reference_rate:.1f}")
        if result.obtained_rate is not None:
            lines.append(f"Obtained frame rate:  {result.obtained_rate:.1f}")
        return lines

    def render_json(self) -> str:
        """Render JSON report."""
        return json.dumps(self.report.to_dict(), indent=2, default=str)

    def save_json(self, path: Union[str, Path]) -> Path:
        """Write the JSON report to path."""
        path = Path(path)
        safe_json_dump(self.report.to_dict(), path)
        logger.info(f"Report written to {path}")
        return path
