"""
IPDCAL Core Module - Schemas, settings, errors, and utilities.
"""

from ipdcal.core.schema import *
from ipdcal.core.errors import *
from ipdcal.core.config import CalibrationSettings, load_settings, BUFFERING_SIZE_MAX

__all__ = ["CalibrationSettings", "load_settings", "BUFFERING_SIZE_MAX"]
