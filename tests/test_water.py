"""Tests for plantsim.water — stepwise, saturating water depletion."""

import numpy as np
import pytest

from plantsim.water import (
    compute_resource,
    compute_resource_vec,
    time_until_empty,
)

INTERVAL = 30
RATE = 2


class TestComputeResource:
    def test_no_elapsed_time(self):
        assert compute_resource(100, 0, 0, INTERVAL, RATE) == 100

    def test_clock_behind_last_reset(self):
        """A `now` before the last reset leaves the level unchanged."""
        assert compute_resource(73, 500, 400, INTERVAL, RATE) == 73

    def test_partial_interval_loses_nothing(self):
        assert compute_resource(100, 0, 29, INTERVAL, RATE) == 100

    def test_one_interval(self):
        assert compute_resource(100, 0, 30, INTERVAL, RATE) == 98

    def test_45_seconds(self):
        """100 − ⌊45/30⌋×2 = 98."""
        assert compute_resource(100, 0, 45, INTERVAL, RATE) == 98

    def test_185_seconds(self):
        """100 − ⌊185/30⌋×2 = 88."""
        assert compute_resource(100, 0, 185, INTERVAL, RATE) == 88

    def test_relative_to_last_reset(self):
        assert compute_resource(100, 1000, 1060, INTERVAL, RATE) == 96

    def test_exactly_empty_at_1500(self):
        assert compute_resource(100, 0, 1499, INTERVAL, RATE) == 2
        assert compute_resource(100, 0, 1500, INTERVAL, RATE) == 0

    def test_saturates_at_zero(self):
        assert compute_resource(100, 0, 10**9, INTERVAL, RATE) == 0
        assert compute_resource(3, 0, 60, INTERVAL, RATE) == 0

    def test_zero_rate_never_depletes(self):
        assert compute_resource(100, 0, 10**6, INTERVAL, 0) == 100

    def test_bounded_and_non_increasing(self):
        prev = 100
        for now in range(0, 2000, 7):
            level = compute_resource(100, 0, now, INTERVAL, RATE)
            assert 0 <= level <= 100
            assert level <= prev
            prev = level

    def test_deterministic(self):
        a = compute_resource(100, 10, 777, INTERVAL, RATE)
        b = compute_resource(100, 10, 777, INTERVAL, RATE)
        assert a == b

    def test_returns_python_int(self):
        assert isinstance(compute_resource(100, 0, 45, INTERVAL, RATE), int)

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            compute_resource(100, 0, 45, 0, RATE)

    def test_negative_rate(self):
        with pytest.raises(ValueError):
            compute_resource(100, 0, 45, INTERVAL, -1)


class TestComputeResourceVec:
    def test_matches_scalar(self):
        levels = np.array([100, 100, 50, 0, 100, 7], dtype=np.int16)
        last = np.array([0, 100, 0, 0, 2000, 0], dtype=np.int64)
        now = 1000
        out = compute_resource_vec(levels, last, now, INTERVAL, RATE)
        expected = [
            compute_resource(int(l), int(t), now, INTERVAL, RATE)
            for l, t in zip(levels, last)
        ]
        np.testing.assert_array_equal(out, expected)

    def test_future_reset_keeps_level(self):
        out = compute_resource_vec(
            np.array([42]), np.array([500]), 100, INTERVAL, RATE,
        )
        assert out[0] == 42

    def test_empty_arrays(self):
        out = compute_resource_vec(
            np.array([], dtype=np.int16), np.array([], dtype=np.int64),
            100, INTERVAL, RATE,
        )
        assert out.shape == (0,)

    def test_never_negative(self):
        levels = np.full(10, 100)
        last = np.zeros(10, dtype=np.int64)
        out = compute_resource_vec(levels, last, 10**8, INTERVAL, RATE)
        assert np.all(out == 0)


class TestTimeUntilEmpty:
    def test_full_level(self):
        assert time_until_empty(100, INTERVAL, RATE) == 1500

    def test_odd_level_rounds_up(self):
        # 3 units at 2 per step → 2 steps
        assert time_until_empty(3, INTERVAL, RATE) == 60

    def test_consistent_with_compute_resource(self):
        t = time_until_empty(37, INTERVAL, RATE)
        assert compute_resource(37, 0, t, INTERVAL, RATE) == 0
        assert compute_resource(37, 0, t - 1, INTERVAL, RATE) > 0

    def test_already_empty(self):
        assert time_until_empty(0, INTERVAL, RATE) == 0

    def test_zero_rate(self):
        with pytest.raises(ValueError):
            time_until_empty(100, INTERVAL, 0)
