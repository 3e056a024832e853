"""
Tests for single paths, path streams and the batch kernel.
"""

import math

import numpy as np
import pytest

from escape_sim.paths import distance_stream, simulate_path, simulate_paths_kernel
from escape_sim.sampling import theta_stream
from escape_sim.steps import next_distance


def test_zero_steps_stays_at_origin():
    assert simulate_path(0, iter([])) == 0.0
    assert simulate_path(0, theta_stream(np.random.default_rng(0))) == 0.0


def test_straight_line_path():
    assert simulate_path(5, iter([math.pi] * 5)) == pytest.approx(5.0)


def test_early_exit_freezes_distance():
    angles = [math.pi, math.pi, 0.0, 0.0, 0.0]

    # Without an escape radius the particle walks back to distance 1
    assert simulate_path(5, iter(angles)) == pytest.approx(1.0)

    # With radius 2 it has left after two steps and stays at 2
    assert simulate_path(5, iter(angles), escape_radius=2.0) == pytest.approx(2.0)


def test_early_exit_matches_first_crossing():
    """For random injected angles the result is the distance at first crossing."""
    rng = np.random.default_rng(11)
    radius = 1.8
    for _ in range(200):
        angles = list(rng.uniform(0.0, math.pi, 6))

        d = 0.0
        expected = None
        for theta in angles:
            d = next_distance(d, theta)
            if d >= radius:
                expected = d
                break
        if expected is None:
            expected = d

        assert simulate_path(6, iter(angles), escape_radius=radius) == expected


def test_escaped_path_stops_drawing_angles():
    angles = iter([math.pi, math.pi, 0.0, 0.0, 0.0])
    simulate_path(5, angles, escape_radius=2.0)
    assert len(list(angles)) == 3


def test_consume_all_steps_uses_every_slot():
    angles = iter([math.pi, math.pi, 0.0, 0.0, 0.0])
    d = simulate_path(5, angles, escape_radius=2.0, consume_all_steps=True)
    assert d == pytest.approx(2.0)
    assert list(angles) == []


def test_exhausted_source_and_bad_step_count():
    with pytest.raises(ValueError):
        simulate_path(3, iter([0.5, 0.5]))
    with pytest.raises(ValueError):
        simulate_path(-1, iter([]))


def test_distance_stream_never_reuses_angles():
    stream = distance_stream(2, iter([math.pi] * 4 + [0.0] * 2))
    assert next(stream) == pytest.approx(2.0)
    assert next(stream) == pytest.approx(2.0)
    # Third path gets the two remaining angles
    assert next(stream) == pytest.approx(0.0)
    with pytest.raises(ValueError):
        next(stream)


def test_kernel_reproducible_and_bounded():
    a = simulate_paths_kernel(2000, 5, np.inf, 7, False)
    b = simulate_paths_kernel(2000, 5, np.inf, 7, False)
    assert a.shape == (2000,)
    assert np.array_equal(a, b)
    assert np.all(a >= 0.0)
    assert np.all(a <= 5.0)

    c = simulate_paths_kernel(2000, 5, np.inf, 8, False)
    assert not np.array_equal(a, c)


def test_kernel_zero_steps_and_small_radius():
    assert np.all(simulate_paths_kernel(100, 0, np.inf, 1, False) == 0.0)

    # Every particle escapes on its first step and is frozen at distance 1
    frozen = simulate_paths_kernel(500, 5, 0.5, 3, False)
    assert np.all(frozen == 1.0)


def test_kernel_mean_distance():
    """Mean squared distance after n isotropic unit steps is n."""
    d = simulate_paths_kernel(100_000, 5, np.inf, 99, False)
    assert np.mean(d * d) == pytest.approx(5.0, rel=0.02)
