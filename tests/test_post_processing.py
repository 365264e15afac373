"""
Tests for trajectory post-processing.

Tests cover:
- Zero phase lag of the mirrored boxcar smoother
- Constant and linear trajectories
- Scratch buffer reuse
- Missing samples staying local
- Causal boxcar equivalent of the realtime filter
"""

import numpy as np
import pytest

from fish_kinematics.core.post_processing import (
    TrajectorySmoother,
    causal_boxcar,
    smooth_trajectory,
)


class TestTrajectorySmoother:
    """Test suite for TrajectorySmoother."""

    @pytest.mark.parametrize("window", [1, 2, 3, 4, 5, 8])
    def test_impulse_response_is_symmetric(self, window):
        """A unit impulse stays centered on its frame."""
        n, k = 61, 30
        trajectory = np.zeros((n, 2))
        trajectory[k] = [1.0, -2.0]

        smoothed = smooth_trajectory(trajectory, window)

        for channel in range(2):
            response = smoothed[:, channel]
            offsets = np.arange(1, k + 1)
            np.testing.assert_allclose(response[k - offsets], response[k + offsets], atol=1e-12)
            assert np.argmax(np.abs(response)) == k
        assert smoothed[:, 0].sum() == pytest.approx(1.0)

    def test_constant_trajectory_is_fixed_point(self):
        trajectory = np.tile([12.5, -3.0], (20, 1))
        np.testing.assert_allclose(smooth_trajectory(trajectory, 5), trajectory, atol=1e-12)

    def test_linear_trajectory_unchanged_away_from_ends(self):
        t = np.arange(50, dtype=float)
        trajectory = np.column_stack([2.0 * t + 1.0, -t])
        smoothed = smooth_trajectory(trajectory, 5)
        np.testing.assert_allclose(smoothed[8:-8], trajectory[8:-8], atol=1e-9)

    def test_missing_sample_stays_local(self):
        """One NaN frame only affects frames within 2 * (W - 1) of it."""
        window, missing = 5, 10
        t = np.arange(200, dtype=float)
        trajectory = np.column_stack([t, 0.5 * t])
        trajectory[missing] = np.nan

        smoothed = smooth_trajectory(trajectory, window)

        reach = 2 * (window - 1)
        spoiled = np.flatnonzero(np.isnan(smoothed).any(axis=1))
        assert spoiled.min() >= missing - reach
        assert spoiled.max() <= missing + reach
        clean = slice(missing + reach + 1, 200 - reach)
        np.testing.assert_allclose(smoothed[clean], trajectory[clean], atol=1e-9)

    def test_input_not_modified(self):
        trajectory = np.arange(20, dtype=float).reshape(10, 2)
        before = trajectory.copy()
        smooth_trajectory(trajectory, 3)
        np.testing.assert_array_equal(trajectory, before)

    def test_scratch_reused_until_size_changes(self):
        smoother = TrajectorySmoother(30, 5)
        assert smoother.scratch_size == 30 + 2 * 3
        padded = smoother._padded

        smoother.smooth(np.zeros((30, 2)), 5)
        assert smoother._padded is padded

        smoother.smooth(np.zeros((30, 2)), 4)
        assert smoother._padded is not padded
        assert smoother.scratch_size == 30 + 2 * 2

        padded = smoother._padded
        smoother.smooth(np.zeros((40, 2)), 4)
        assert smoother._padded is not padded
        assert smoother.scratch_size == 40 + 2 * 2

    def test_short_trajectories(self):
        np.testing.assert_allclose(smooth_trajectory([[1.0, 2.0]], 5), [[1.0, 2.0]])
        assert smooth_trajectory(np.zeros((0, 2)), 5).shape == (0, 2)

    def test_invalid_arguments(self):
        with TrajectorySmoother() as smoother:
            with pytest.raises(ValueError):
                smoother.smooth(np.zeros((5, 3)), 3)
            with pytest.raises(ValueError):
                smoother.smooth(np.zeros((5, 2)), 0)

    def test_close_is_idempotent(self):
        smoother = TrajectorySmoother(10, 3)
        smoother.close()
        smoother.close()
        assert smoother.closed
        with pytest.raises(ValueError):
            smoother.smooth(np.zeros((10, 2)), 3)


class TestCausalBoxcar:
    """Test suite for causal_boxcar."""

    def test_matches_running_mean_with_zero_history(self):
        trajectory = np.column_stack([np.arange(6, dtype=float), np.full(6, 3.0)])
        filtered = causal_boxcar(trajectory, 3)
        np.testing.assert_allclose(filtered[:, 0], [0.0, 1 / 3, 1.0, 2.0, 3.0, 4.0])
        np.testing.assert_allclose(filtered[:, 1], [1.0, 2.0, 3.0, 3.0, 3.0, 3.0])

    def test_invalid_tap_count(self):
        with pytest.raises(ValueError):
            causal_boxcar(np.zeros((3, 2)), 0)
