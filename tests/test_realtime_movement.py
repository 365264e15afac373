"""
Tests for the realtime movement analyzer.

Tests cover:
- Boxcar FIR filter response
- Agreement of realtime and batch speeds and bouts
- Bout completion timing
- Reset behaviour
"""

import numpy as np
import pytest

from fish_kinematics.core.movement_analysis import Bout, MovementAnalyzer
from fish_kinematics.core.post_processing import causal_boxcar
from fish_kinematics.core.realtime_movement import BoxcarFIRFilter, RealtimeMovementAnalyzer


def burst_trajectory(n_frames=400, bursts=(50, 150, 260), seed=7):
    rng = np.random.default_rng(seed)
    steps = rng.normal(0.0, 0.02, size=(n_frames, 2))
    for start in bursts:
        steps[start:start + 8] += [1.5, 0.5]
    return np.cumsum(steps, axis=0) + 100.0


class TestBoxcarFIRFilter:
    """Test suite for BoxcarFIRFilter."""

    def test_step_response_ramps_up(self):
        fir = BoxcarFIRFilter(4)
        outputs = [fir.filter(8.0) for _ in range(6)]
        np.testing.assert_allclose(outputs, [2.0, 4.0, 6.0, 8.0, 8.0, 8.0])

    def test_reset_clears_delay_line(self):
        fir = BoxcarFIRFilter(2)
        fir.filter(10.0)
        fir.reset()
        assert fir.filter(4.0) == pytest.approx(2.0)

    def test_invalid_tap_count(self):
        with pytest.raises(ValueError):
            BoxcarFIRFilter(0)


class TestRealtimeMovementAnalyzer:
    """Test suite for RealtimeMovementAnalyzer."""

    def test_speeds_match_batch_after_delay_line_fills(self):
        """Sample by sample speeds equal batch speeds over FIR smoothed positions."""
        trajectory = burst_trajectory()
        tap_count = 4
        analyzer = RealtimeMovementAnalyzer(100, 30.0, 2, 1, tap_count)
        results = [analyzer.process_next_point(p) for p in trajectory]
        realtime = np.array([r.instant_speed for r in results])
        smoothed = np.array([r.smoothed for r in results])

        filtered = causal_boxcar(trajectory, tap_count)
        batch = MovementAnalyzer().compute_instant_speeds(filtered, 100)

        np.testing.assert_allclose(smoothed, filtered, rtol=0, atol=1e-9)
        np.testing.assert_allclose(realtime[tap_count:], batch[tap_count:], rtol=0, atol=1e-6)
        assert realtime[0] == 0.0

    def test_bouts_match_batch(self):
        trajectory = burst_trajectory()
        tap_count = 4
        analyzer = RealtimeMovementAnalyzer(100, 30.0, 2, 1, tap_count)
        online = [
            r.completed_bout
            for r in (analyzer.process_next_point(p) for p in trajectory)
            if r.completed_bout is not None
        ]

        speeds = MovementAnalyzer().compute_instant_speeds(causal_boxcar(trajectory, tap_count), 100)
        speeds[:tap_count] = 0.0
        offline = MovementAnalyzer().detect_bouts(speeds, 30.0, 2, 1, 100)

        assert len(online) == 3
        assert [(b.start, b.peak, b.end) for b in online] == [
            (b.start, b.peak, b.end) for b in offline
        ]
        for a, b in zip(online, offline):
            assert a.displacement == pytest.approx(b.displacement)
            assert a.peak_speed == pytest.approx(b.peak_speed)

    def test_bout_completes_on_first_rest_sample(self):
        """Without smoothing the worked speed example is reproduced online."""
        xs = np.cumsum([0, 0, 6, 9, 7, 0, 0])
        analyzer = RealtimeMovementAnalyzer(1, 5, 2, 1, 1)
        results = [analyzer.process_next_point((x, 0.0)) for x in xs]

        completed = [i for i, r in enumerate(results) if r.completed_bout is not None]
        assert completed == [5]
        assert results[5].completed_bout == Bout(1, 3, 4, 22.0, 9.0)

    def test_reset(self):
        analyzer = RealtimeMovementAnalyzer(10, 5.0, 2, 1, 2)
        for p in [(0, 0), (4, 0), (8, 0)]:
            analyzer.process_next_point(p)
        analyzer.reset()
        assert analyzer.frame_index == 0

        result = analyzer.process_next_point((6, 2))
        assert result.instant_speed == 0.0
        assert result.smoothed == pytest.approx((3.0, 1.0))
        assert result.original == (6.0, 2.0)
        assert analyzer.frame_index == 1

    def test_from_params(self):
        params = {
            "FRAME_RATE": 50,
            "SPEED_THRESHOLD": 2.5,
            "MIN_FRAMES_PER_BOUT": 3,
            "MAX_FRAMES_AT_PEAK": 0,
            "FIR_TAP_COUNT": 7,
        }
        analyzer = RealtimeMovementAnalyzer.from_params(params)
        assert analyzer.frame_rate == 50
        assert analyzer.speed_threshold == 2.5
        assert analyzer.tap_count == 7

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            RealtimeMovementAnalyzer(0, 5.0, 2, 1, 3)
        with pytest.raises(ValueError):
            RealtimeMovementAnalyzer(100, 5.0, 2, 1, 0)
