"""
Inter-Packet Delay Search Engine.

Iteratively finds the largest inter-packet delay that does not disturb the
camera's frame rate:

1. Program the candidate delay and measure the obtained frame rate.
2. While the obtained rate matches the reference, shrink the delay by 2%
   and count consecutive matches; three in a row converge, after which an
   extra 15% is removed as safety margin.
3. While the rates differ, reset the count and shrink the delay by 10%.

If the reference rate sampled at zero delay is off, the search will not
converge and the configuration is reported as failed.
"""

import logging
import time
from typing import Optional

from ipdcal.calibration.events import CalibrationEvent, CalibrationEventType, ProgressObserver
from ipdcal.core.config import CalibrationSettings
from ipdcal.core.schema import CalibrationOutcome, CalibrationResult, CalibrationState
from ipdcal.device.adapter import DeviceAdapter

logger = logging.getLogger(__name__)


def approx_equal(a: float, b: float, tolerance: float = 0.1) -> bool:
    """True when a and b are within tolerance of each other, inclusive."""
    return abs(a - b) <= tolerance


class DelaySearchEngine:
    """
    Closed-loop convergence search over the pacing delay.

    Usage:
        state = ReferenceSampler(device, tick_frequency).sample(config, depth)
        result = DelaySearchEngine(device).run(state, depth)
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

    def run(self, state: CalibrationState, buffer_depth: int) -> CalibrationResult:
        """
        Drive state to a terminal condition.

        Args:
            state: Seeded state from ReferenceSampler; mutated in place
            buffer_depth: Number of allocated acquisition buffers

        Returns:
            CalibrationResult; delay values are only set on success
        """
        logger.debug(
            f"Searching delay for {state.configuration.name}, "
            f"reference {state.reference_rate:.2f} fps, seed {state.delay_ticks} ticks"
        )

        while not state.finished:
            attempted_ticks = state.delay_ticks
            attempted_seconds = state.delay_seconds

            self.adapter.set_pacing_delay(attempted_ticks)
            state.current_rate = self.adapter.run_sampling_cycle(buffer_depth)
            state.iterations += 1

            # Let the device and the grab queue reach steady state
            if self.settings.settle_ms > 0:
                time.sleep(self.settings.settle_s)

            self.step(state)

            self.observer.on_event(
                CalibrationEvent(
                    kind=CalibrationEventType.ITERATION,
                    configuration=state.configuration.name,
                    iteration=state.iterations,
                    delay_ticks=attempted_ticks,
                    delay_seconds=attempted_seconds,
                    rate=state.current_rate,
                    reference_rate=state.reference_rate,
                    streak=state.equality_streak,
                )
            )

        if state.outcome == CalibrationOutcome.CONVERGED:
            self.adapter.set_pacing_delay(state.delay_ticks)

        self._emit_terminal(state)
        return state.to_result()

    def step(self, state: CalibrationState) -> None:
        """Apply one transition of the search to a freshly measured state."""
        s = self.settings

        if approx_equal(state.reference_rate, state.current_rate, s.tolerance):
            state.equality_streak += 1

            if state.delay_ticks == 0:
                # Already at the minimum delay: no margin left to report
                state.set_delay(0.0)
                state.failed = True
                state.outcome = CalibrationOutcome.NON_CONVERGENCE
            elif state.equality_streak >= s.required_streak:
                state.set_delay(state.delay_seconds - state.delay_seconds * s.safety_margin)
                state.done = True
                state.outcome = CalibrationOutcome.CONVERGED
            else:
                state.set_delay(state.delay_seconds - state.delay_seconds / s.converge_divisor)
        else:
            state.equality_streak = 0
            state.set_delay(state.delay_seconds - state.delay_seconds / s.diverge_divisor)

            if state.delay_ticks == 0:
                state.set_delay(0.0)
                state.failed = True
                state.outcome = CalibrationOutcome.NON_CONVERGENCE
            elif state.delay_seconds <= 0.0:
                # Completes without failure, unlike the zero-tick exit above
                state.set_delay(0.0)
                state.done = True
                state.outcome = CalibrationOutcome.ZERO_DELAY

    def _emit_terminal(self, state: CalibrationState) -> None:
        name = state.configuration.name

        if state.failed:
            kind = CalibrationEventType.FAILED
            message = (
                f"no usable delay after {state.iterations} iterations "
                f"(reference {state.reference_rate:.2f} fps, last {state.current_rate:.2f} fps)"
            )
        elif state.outcome == CalibrationOutcome.ZERO_DELAY:
            kind = CalibrationEventType.ZERO_DELAY
            message = f"completed at zero delay after {state.iterations} iterations"
        else:
            kind = CalibrationEventType.CONVERGED
            message = (
                f"{state.delay_ticks} ticks ({state.delay_seconds * 1e6:.3f} usec) "
                f"after {state.iterations} iterations"
            )

        self.observer.on_event(
            CalibrationEvent(
                kind=kind,
                configuration=name,
                iteration=state.iterations,
                delay_ticks=state.delay_ticks,
                delay_seconds=state.delay_seconds,
                rate=state.current_rate,
                reference_rate=state.reference_rate,
                streak=state.equality_streak,
                message=message,
            )
        )
