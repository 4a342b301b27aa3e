"""
IPDCAL Unit Tests - Delay Search
"""

from unittest.mock import call, patch

import pytest

from ipdcal.calibration.events import CalibrationEventType, RecordingObserver
from ipdcal.calibration.sampler import ReferenceSampler
from ipdcal.calibration.search import DelaySearchEngine, approx_equal
from ipdcal.core.config import CalibrationSettings
from ipdcal.core.schema import CalibrationOutcome, CalibrationState, Configuration
from ipdcal.core.utils import seconds_to_ticks


def run_search(adapter, settings, observer=None):
    """Sample the reference and run the search on the adapter's first configuration."""
    configuration = adapter.configurations[0]
    state = ReferenceSampler(adapter, adapter.tick_frequency).sample(configuration, 20)
    engine = DelaySearchEngine(adapter, settings, observer)
    return state, engine.run(state, 20)


class TestApproxEqual:
    """Tests for the rate comparison."""

    def test_within_tolerance(self):
        assert approx_equal(30.0, 30.05)
        assert approx_equal(30.05, 30.0)

    def test_boundary_is_inclusive(self):
        """A difference of exactly the tolerance counts as equal."""
        assert approx_equal(0.0, 0.1)
        assert not approx_equal(0.0, 0.1000001)

    def test_custom_tolerance(self):
        assert approx_equal(10.0, 10.4, tolerance=0.5)
        assert not approx_equal(10.0, 10.6, tolerance=0.5)


class TestSearchConvergence:
    """Tests for the convergence path."""

    def test_always_equal_converges_in_three_iterations(self, make_adapter, fast_settings):
        """Two 2% shrinks, then the 15% margin."""
        adapter = make_adapter()
        state, result = run_search(adapter, fast_settings)

        expected = 0.0002
        expected -= expected / 50.0
        expected -= expected / 50.0
        expected -= expected * 0.15

        assert result.succeeded
        assert result.outcome == CalibrationOutcome.CONVERGED
        assert result.iterations == 3
        assert result.delay_seconds == expected
        assert result.delay_ticks == seconds_to_ticks(expected, 1_000_000)
        assert result.reference_rate == 30.0
        assert result.obtained_rate == 30.0

    def test_final_delay_is_programmed(self, make_adapter, fast_settings):
        """The converged delay is written to the device after the last measurement."""
        adapter = make_adapter()
        _, result = run_search(adapter, fast_settings)

        delays = adapter.calls_of("delay")
        assert delays[0] == 0
        assert delays[1] == 200
        assert delays[-1] == result.delay_ticks
        assert adapter.delay_ticks == result.delay_ticks

    def test_mismatch_then_converge(self, make_adapter, fast_settings):
        """Three 10% shrinks bring the delay under the threshold, then three matches converge."""
        adapter = make_adapter(rate_fn=lambda name, ticks: 30.0 if ticks < 150 else 28.0)
        observer = RecordingObserver()
        _, result = run_search(adapter, fast_settings, observer)

        assert result.succeeded
        assert result.iterations == 6

        streaks = [e.streak for e in observer.of_kind(CalibrationEventType.ITERATION)]
        assert streaks == [0, 0, 0, 1, 2, 3]
        assert result.delay_ticks < 150

    def test_streak_resets_on_mismatch(self, make_adapter, fast_settings):
        """A single mismatch restarts the count of consecutive matches."""
        adapter = make_adapter(rates=[30.0, 30.0, 30.0, 20.0, 30.0, 30.0, 30.0])
        observer = RecordingObserver()
        _, result = run_search(adapter, fast_settings, observer)

        streaks = [e.streak for e in observer.of_kind(CalibrationEventType.ITERATION)]
        assert streaks == [1, 2, 0, 1, 2, 3]
        assert result.iterations == 6
        assert result.outcome == CalibrationOutcome.CONVERGED

    def test_delay_never_increases(self, make_adapter, fast_settings):
        adapter = make_adapter(rate_fn=lambda name, ticks: 30.0 if ticks < 120 else 29.0)
        observer = RecordingObserver()
        _, result = run_search(adapter, fast_settings, observer)

        attempted = [e.delay_ticks for e in observer.of_kind(CalibrationEventType.ITERATION)]
        assert attempted == sorted(attempted, reverse=True)
        assert result.delay_ticks <= attempted[-1]

        programmed = adapter.calls_of("delay")[1:]
        assert programmed == sorted(programmed, reverse=True)

    def test_converged_event_emitted_once(self, make_adapter, fast_settings):
        adapter = make_adapter()
        observer = RecordingObserver()
        _, result = run_search(adapter, fast_settings, observer)

        converged = observer.of_kind(CalibrationEventType.CONVERGED)
        assert len(converged) == 1
        assert converged[0].delay_ticks == result.delay_ticks
        assert observer.last().kind == CalibrationEventType.CONVERGED


class TestSearchFailure:
    """Tests for the non-convergence paths."""

    def test_equal_only_at_zero_fails(self, make_adapter, fast_settings):
        """Shrinking all the way to zero ticks without a match is a failure."""
        adapter = make_adapter(rate_fn=lambda name, ticks: 30.0 if ticks == 0 else 20.0)
        state, result = run_search(adapter, fast_settings)

        assert not result.succeeded
        assert result.outcome == CalibrationOutcome.NON_CONVERGENCE
        assert state.delay_ticks == 0
        assert result.delay_ticks is None
        assert result.delay_seconds is None
        assert result.obtained_rate is None
        assert result.reference_rate == 30.0

    def test_zero_seed_fails_on_first_match(self, make_adapter, fast_settings):
        """A match at zero ticks leaves no margin to report."""
        adapter = make_adapter(theoretical_delay_s=0.0)
        state, result = run_search(adapter, fast_settings)

        assert not result.succeeded
        assert result.iterations == 1
        assert state.equality_streak == 1
        assert state.failed

    def test_failure_raises_non_convergence(self, make_adapter, fast_settings):
        from ipdcal.core.errors import NonConvergence

        adapter = make_adapter(theoretical_delay_s=0.0)
        _, result = run_search(adapter, fast_settings)

        with pytest.raises(NonConvergence):
            result.raise_for_outcome()

    def test_failed_event_emitted(self, make_adapter, fast_settings):
        adapter = make_adapter(theoretical_delay_s=0.0)
        observer = RecordingObserver()
        run_search(adapter, fast_settings, observer)

        assert observer.last().kind == CalibrationEventType.FAILED
        assert not observer.of_kind(CalibrationEventType.CONVERGED)


class TestSearchStep:
    """Tests for single state transitions."""

    @staticmethod
    def make_state(delay_seconds=0.001, reference=30.0, current=30.0, streak=0):
        state = CalibrationState(
            configuration=Configuration("Mono8"),
            tick_frequency=1_000_000,
            reference_rate=reference,
            current_rate=current,
        )
        state.set_delay(delay_seconds)
        state.equality_streak = streak
        return state

    def test_match_shrinks_by_two_percent(self, make_adapter):
        engine = DelaySearchEngine(make_adapter())
        state = self.make_state()

        engine.step(state)

        assert state.delay_seconds == 0.001 - 0.001 / 50.0
        assert state.equality_streak == 1
        assert not state.finished

    def test_mismatch_shrinks_by_ten_percent(self, make_adapter):
        engine = DelaySearchEngine(make_adapter())
        state = self.make_state(current=25.0, streak=2)

        engine.step(state)

        assert state.delay_seconds == 0.001 - 0.001 / 10.0
        assert state.equality_streak == 0
        assert not state.finished

    def test_third_match_applies_margin(self, make_adapter):
        engine = DelaySearchEngine(make_adapter())
        state = self.make_state(streak=2)

        engine.step(state)

        assert state.done
        assert state.delay_seconds == 0.001 - 0.001 * 0.15
        assert state.outcome == CalibrationOutcome.CONVERGED

    def test_mismatch_reaching_zero_ticks_fails(self, make_adapter):
        engine = DelaySearchEngine(make_adapter())
        state = self.make_state(delay_seconds=0.000001, current=25.0)

        engine.step(state)

        assert state.failed
        assert state.delay_ticks == 0
        assert state.delay_seconds == 0.0

    def test_custom_streak_length(self, make_adapter):
        settings = CalibrationSettings(settle_ms=0, required_streak=5)
        engine = DelaySearchEngine(make_adapter(), settings)
        state = self.make_state(streak=3)

        engine.step(state)
        assert not state.finished

        engine.step(state)
        assert state.done


class TestSettlePause:
    """Tests for the pause after each measurement."""

    def test_sleeps_after_every_measurement(self, make_adapter):
        adapter = make_adapter()
        settings = CalibrationSettings(settle_ms=500)

        with patch("ipdcal.calibration.search.time.sleep") as mock_sleep:
            _, result = run_search(adapter, settings)

        assert mock_sleep.call_count == result.iterations
        assert mock_sleep.call_args_list == [call(0.5)] * result.iterations

    def test_no_sleep_when_disabled(self, make_adapter, fast_settings):
        adapter = make_adapter()

        with patch("ipdcal.calibration.search.time.sleep") as mock_sleep:
            run_search(adapter, fast_settings)

        mock_sleep.assert_not_called()
