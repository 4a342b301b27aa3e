"""
IPDCAL Utilities
Common utilities for tick conversion, timing, bounded polling and file I/O.
"""

import json
import math
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union
import logging

logger = logging.getLogger(__name__)


def seconds_to_ticks(seconds: float, tick_frequency: int) -> int:
    """Convert a delay in seconds to device clock ticks, flooring."""
    return int(math.floor(seconds * tick_frequency))


def ticks_to_seconds(ticks: int, tick_frequency: int) -> float:
    """Convert device clock ticks to seconds."""
    if tick_frequency <= 0:
        return 0.0
    return ticks / tick_frequency


def get_monotonic_ns() -> int:
    """Get monotonic clock time in nanoseconds."""
    return time.monotonic_ns()


def ns_to_ms(ns: int) -> float:
    """Convert nanoseconds to milliseconds."""
    return ns / 1_000_000


def format_duration(seconds: float) -> str:
    """Format duration as human-readable string."""
    if seconds < 0.001:
        return f"{seconds * 1_000_000:.1f} µs"
    elif seconds < 1:
        return f"{seconds * 1000:.2f} ms"
    elif seconds < 60:
        return f"{seconds:.2f} s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f} min"
    else:
        return f"{seconds / 3600:.1f} h"


def wait_until(
    predicate: Callable[[], bool],
    interval_s: float = 0.25,
    timeout_s: Optional[float] = None,
    backoff: float = 1.0,
    max_interval_s: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> float:
    """
    Poll predicate until it returns True.

    The wait between polls starts at interval_s and is multiplied by backoff
    after every miss, capped at max_interval_s. With timeout_s=None the wait
    is unbounded.

    Returns:
        Seconds spent waiting.

    Raises:
        TimeoutError: If timeout_s elapses before predicate holds.
    """
    start = time.monotonic()
    interval = interval_s

    while not predicate():
        waited = time.monotonic() - start
        if timeout_s is not None and waited >= timeout_s:
            raise TimeoutError(f"Condition not met after {waited:.2f} s")

        if timeout_s is not None:
            interval = min(interval, max(timeout_s - waited, 0.0))
        sleep(interval)
        interval = min(interval * backoff, max_interval_s) if backoff > 1.0 else interval_s

    return time.monotonic() - start


def safe_json_dump(data: Any, path: Union[str, Path], indent: int = 2) -> None:
    """Safely write JSON to file with atomic write pattern."""
    path = Path(path)
    temp_path = path.with_suffix(".tmp")

    try:
        with open(temp_path, "w") as f:
            json.dump(data, f, indent=indent, default=str)
        temp_path.replace(path)
    except Exception as e:
        logger.error(f"Failed to write JSON to {path}: {e}")
        if temp_path.exists():
            temp_path.unlink()
        raise


class Timer:
    """Context manager for timing code blocks."""

    def __init__(self, name: str = ""):
        self.name = name
        self.start_ns = 0
        self.end_ns = 0
        self.duration_ns = 0
        self.duration_ms = 0.0

    @property
    def duration_s(self) -> float:
        return self.duration_ns / 1e9

    def __enter__(self) -> "Timer":
        self.start_ns = get_monotonic_ns()
        return self

    def __exit__(self, *args) -> None:
        self.end_ns = get_monotonic_ns()
        self.duration_ns = self.end_ns - self.start_ns
        self.duration_ms = ns_to_ms(self.duration_ns)

        if self.name:
            logger.debug(f"{self.name}: {self.duration_ms:.2f} ms")
