"""
Simulated GigE Vision Camera
Deterministic device model used for dry runs, demos and tests.

The achieved frame rate follows a simple streaming model:

    period = max(1 / max_frame_rate, packets * (wire_time + delay) + frame_overhead)

The device's theoretical delay spreads the packets of one frame over the
sensor period but ignores the per-frame overhead, so it overshoots slightly
and the search has to pull it back.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ipdcal.core.errors import ConfigurationUnsupported, ResourceAllocationFailure
from ipdcal.core.schema import Configuration, DeviceIdentity, GlobalParameters
from ipdcal.core.utils import ticks_to_seconds
from ipdcal.device.adapter import AcquisitionHandle, DeviceAdapter

logger = logging.getLogger(__name__)


# Bit set on vendor-specific pixel format codes.
PFNC_CUSTOM = 0x80000000

# IP + UDP + GVSP headers carried inside each packet.
PACKET_HEADER_BYTES = 36
# Preamble, Ethernet header, FCS and inter-frame gap on the wire.
ETHERNET_OVERHEAD_BYTES = 38


@dataclass(frozen=True)
class PixelFormat:
    """A camera pixel format and its storage cost."""

    name: str
    value: int
    bytes_per_pixel: float
    available: bool = True

    @property
    def is_custom(self) -> bool:
        return (self.value & PFNC_CUSTOM) == PFNC_CUSTOM


DEFAULT_PIXEL_FORMATS = [
    PixelFormat("Mono8", 0x01080001, 1.0),
    PixelFormat("Mono12Packed", 0x010C0006, 1.5),
    PixelFormat("Mono16", 0x01100007, 2.0),
    PixelFormat("BayerRG8", 0x01080009, 1.0),
    PixelFormat("YUV422_8", 0x02100032, 2.0),
    PixelFormat("RGB8", 0x02180014, 3.0, available=False),
    PixelFormat("VendorRaw10", 0x81100001, 1.25),
]


class SimulatedDevice(DeviceAdapter):
    """
    In-memory GigE Vision camera with pacing support.

    Measurement noise is drawn from a seeded numpy generator, so two devices
    built with the same arguments produce identical measurement sequences.
    """

    def __init__(
        self,
        width: int = 1280,
        height: int = 1024,
        packet_size: int = 1500,
        link_rate_bps: float = 1e9,
        max_frame_rate: float = 30.0,
        frame_overhead_s: float = 0.002,
        tick_frequency: int = 125_000_000,
        noise_std: float = 0.0,
        seed: Optional[int] = None,
        pixel_formats: Optional[List[PixelFormat]] = None,
        busy_polls: int = 0,
        memory_budget_bytes: Optional[int] = None,
        vendor: str = "Simulated",
        model: str = "GigE-Sim 1.3MP",
    ):
        if packet_size <= PACKET_HEADER_BYTES:
            raise ValueError(f"packet_size must exceed {PACKET_HEADER_BYTES} bytes")
        if max_frame_rate <= 0 or link_rate_bps <= 0:
            raise ValueError("max_frame_rate and link_rate_bps must be positive")

        self.width = width
        self.height = height
        self.packet_size = packet_size
        self.link_rate_bps = link_rate_bps
        self.max_frame_rate = max_frame_rate
        self.frame_overhead_s = frame_overhead_s
        self.tick_frequency = tick_frequency
        self.noise_std = noise_std
        self.busy_polls = busy_polls
        self.memory_budget_bytes = memory_budget_bytes
        self.vendor = vendor
        self.model = model

        self.pixel_formats = list(pixel_formats or DEFAULT_PIXEL_FORMATS)
        self._formats_by_name = {pf.name: pf for pf in self.pixel_formats}
        self._rng = np.random.default_rng(seed)

        self.current_format: PixelFormat = self.pixel_formats[0]
        self.delay_ticks = 0
        self.delay_history: List[int] = []
        self.sampling_log: List[Tuple[int, float]] = []
        self.applied: List[str] = []
        self._busy_remaining = busy_polls
        self._active_handle: Optional[AcquisitionHandle] = None
        self._next_buffer_id = 1

    # ------------------------------------------------------------------
    # Streaming model
    # ------------------------------------------------------------------

    def frame_bytes(self, pixel_format: Optional[PixelFormat] = None) -> int:
        pf = pixel_format or self.current_format
        return int(math.ceil(self.width * self.height * pf.bytes_per_pixel))

    def packets_per_frame(self, pixel_format: Optional[PixelFormat] = None) -> int:
        payload = self.packet_size - PACKET_HEADER_BYTES
        return int(math.ceil(self.frame_bytes(pixel_format) / payload))

    @property
    def wire_time_s(self) -> float:
        """Time to put one packet on the wire."""
        return (self.packet_size + ETHERNET_OVERHEAD_BYTES) * 8 / self.link_rate_bps

    def expected_frame_rate(self, delay_ticks: int) -> float:
        """Noise-free frame rate with delay_ticks programmed."""
        delay_s = ticks_to_seconds(delay_ticks, self.tick_frequency)
        transmit_s = self.packets_per_frame() * (self.wire_time_s + delay_s)
        period = max(1.0 / self.max_frame_rate, transmit_s + self.frame_overhead_s)
        return 1.0 / period

    # ------------------------------------------------------------------
    # DeviceAdapter
    # ------------------------------------------------------------------

    def enumerate_configurations(self) -> List[Configuration]:
        return [
            Configuration(
                name=pf.name,
                supported=pf.available and not pf.is_custom,
                value=pf.value,
            )
            for pf in self.pixel_formats
        ]

    def is_configuration_writable(self) -> bool:
        if self._busy_remaining > 0:
            self._busy_remaining -= 1
            return False
        return True

    def write_configuration(self, name: str) -> None:
        pf = self._formats_by_name.get(name)
        if pf is None or not pf.available or pf.is_custom:
            raise ConfigurationUnsupported(name)
        self.current_format = pf
        self.applied.append(name)
        self._busy_remaining = self.busy_polls

    def allocate_resources(self, configuration: Configuration, depth: int) -> AcquisitionHandle:
        if self._active_handle is not None:
            raise RuntimeError(
                f"Buffers for {self._active_handle.configuration} are still allocated"
            )

        pf = self._formats_by_name.get(configuration.name)
        if pf is None:
            raise ResourceAllocationFailure(configuration.name, "unknown pixel format")

        frame_bytes = self.frame_bytes(pf)
        count = depth
        if self.memory_budget_bytes is not None:
            count = min(depth, self.memory_budget_bytes // frame_bytes)
        if count <= 0:
            raise ResourceAllocationFailure(
                configuration.name, f"{frame_bytes} bytes per buffer exceeds memory budget"
            )
        if count < depth:
            logger.warning(
                f"Only {count} of {depth} buffers allocated for {configuration.name}"
            )

        buffer_ids = list(range(self._next_buffer_id, self._next_buffer_id + count))
        self._next_buffer_id += count

        handle = AcquisitionHandle(
            configuration=configuration.name,
            buffer_ids=buffer_ids,
            frame_bytes=frame_bytes,
        )
        self._active_handle = handle
        return handle

    def release_resources(self, handle: AcquisitionHandle) -> None:
        if self._active_handle is handle:
            self._active_handle = None

    @property
    def has_allocated_buffers(self) -> bool:
        return self._active_handle is not None

    def set_pacing_delay(self, ticks: int) -> None:
        if ticks < 0:
            raise ValueError(f"Inter-packet delay cannot be negative: {ticks}")
        self.delay_ticks = ticks
        self.delay_history.append(ticks)

    def run_sampling_cycle(self, buffer_depth: int) -> float:
        if self._active_handle is None:
            raise RuntimeError("No acquisition buffers allocated")
        if buffer_depth <= 0:
            raise ValueError("buffer_depth must be positive")

        rate = self.expected_frame_rate(self.delay_ticks)
        if self.noise_std > 0:
            # Averaging over more frames narrows the measurement spread
            rate += float(self._rng.normal(0.0, self.noise_std / math.sqrt(buffer_depth)))

        self.sampling_log.append((self.delay_ticks, rate))
        return rate

    def query_tick_frequency(self) -> int:
        return self.tick_frequency

    def query_theoretical_delay_seconds(self) -> float:
        per_packet = (1.0 / self.max_frame_rate) / self.packets_per_frame()
        return max(per_packet - self.wire_time_s, 0.0)

    def query_identity(self) -> DeviceIdentity:
        return DeviceIdentity(vendor=self.vendor, model=self.model)

    def query_global_parameters(self) -> GlobalParameters:
        return GlobalParameters(
            width=self.width, height=self.height, unit_size=self.packet_size
        )
