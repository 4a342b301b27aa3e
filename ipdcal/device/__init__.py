"""
IPDCAL Device Module - Adapter contract and the simulated camera.
"""

from ipdcal.device.adapter import AcquisitionHandle, DeviceAdapter, acquisition
from ipdcal.device.simulated import SimulatedDevice, PixelFormat, DEFAULT_PIXEL_FORMATS

__all__ = [
    "AcquisitionHandle",
    "DeviceAdapter",
    "acquisition",
    "SimulatedDevice",
    "PixelFormat",
    "DEFAULT_PIXEL_FORMATS",
]
