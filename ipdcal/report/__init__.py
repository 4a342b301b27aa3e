"""
IPDCAL Report Module - Terminal and JSON rendering of calibration reports.
"""

from ipdcal.report.render import ReportRenderer

__all__ = ["ReportRenderer"]
