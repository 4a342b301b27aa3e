"""
Calibration progress events.

The search engine and harness report progress through ProgressObserver
instances instead of printing, so the state machine has no output dependency.
"""

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class CalibrationEventType(str, Enum):
    """Kinds of progress events."""

    CONFIGURATION_STARTED = "configuration_started"
    REFERENCE_SAMPLED = "reference_sampled"
    ITERATION = "iteration"
    CONVERGED = "converged"
    ZERO_DELAY = "zero_delay"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CalibrationEvent:
    """Structured snapshot emitted during calibration."""

    kind: CalibrationEventType
    configuration: str
    iteration: int = 0
    delay_ticks: int = 0
    delay_seconds: float = 0.0
    rate: float = 0.0
    reference_rate: float = 0.0
    streak: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind.value
        return d


class ProgressObserver:
    """Receives calibration events. Subclasses override on_event()."""

    def on_event(self, event: CalibrationEvent) -> None:
        pass


class LoggingObserver(ProgressObserver):
    """Writes events to the module logger."""

    def on_event(self, event: CalibrationEvent) -> None:
        if event.kind == CalibrationEventType.ITERATION:
            logger.debug(
                f"[{event.configuration}] iteration {event.iteration}: "
                f"{event.delay_ticks} ticks -> {event.rate:.2f} fps "
                f"(reference {event.reference_rate:.2f}, streak {event.streak})"
            )
        elif event.kind == CalibrationEventType.FAILED:
            logger.warning(f"[{event.configuration}] {event.message}")
        elif event.kind == CalibrationEventType.SKIPPED:
            logger.warning(f"[{event.configuration}] skipped: {event.message}")
        else:
            logger.info(f"[{event.configuration}] {event.kind.value}: {event.message}")


class RecordingObserver(ProgressObserver):
    """Keeps every event in memory."""

    def __init__(self):
        self.events: List[CalibrationEvent] = []

    def on_event(self, event: CalibrationEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: CalibrationEventType) -> List[CalibrationEvent]:
        return [e for e in self.events if e.kind == kind]

    def last(self) -> Optional[CalibrationEvent]:
        return self.events[-1] if self.events else None


class CompositeObserver(ProgressObserver):
    """Fans events out to several observers."""

    def __init__(self, *observers: ProgressObserver):
        self.observers = [o for o in observers if o is not None]

    def on_event(self, event: CalibrationEvent) -> None:
        for observer in self.observers:
            observer.on_event(event)
