"""
Path simulation: compose unit steps into a final radial distance.

Every path starts at the origin and takes a fixed number of unit steps. Once
its distance reaches the escape radius the particle has left the sphere for
good, so the distance is frozen for the remaining steps.

Angle consumption after escape is controlled by ``consume_all_steps``:

- ``False`` (default): no further angles are drawn for an escaped path, so
  each drawn angle corresponds to one simulated step.
- ``True``: the path still pulls one angle per remaining step and discards
  it. Every path then uses exactly ``step_count`` angles, which lets sweeps
  over several radii share identical draws (common random numbers).
"""

from __future__ import annotations

import math
from typing import Iterable, Iterator, Optional

import numpy as np
from numba import njit

from .sampling import sample_theta, theta_stream
from .steps import next_distance


def simulate_path(
    step_count: int,
    angle_source: Iterable[float],
    escape_radius: float = math.inf,
    consume_all_steps: bool = False,
) -> float:
    """
    Final distance of one path of ``step_count`` unit steps.

    ``angle_source`` is read with ``next()``. Pass an iterator (for example a
    ``theta_stream``) to share it between paths; a list would be restarted
    on every call.
    """
    if step_count < 0:
        raise ValueError(f"step_count must be non-negative, got {step_count}")

    angles = iter(angle_source)
    distance = 0.0
    for _ in range(step_count):
        escaped = distance >= escape_radius
        if escaped and not consume_all_steps:
            break
        try:
            theta = next(angles)
        except StopIteration:
            raise ValueError("angle source exhausted before the path finished") from None
        if not escaped:
            distance = next_distance(distance, theta)
    return distance


def distance_stream(
    step_count: int,
    angle_source: Optional[Iterable[float]] = None,
    escape_radius: float = math.inf,
    consume_all_steps: bool = False,
) -> Iterator[float]:
    """Infinite stream of independent path distances sharing one angle source."""
    angles = theta_stream() if angle_source is None else iter(angle_source)
    while True:
        yield simulate_path(step_count, angles, escape_radius, consume_all_steps)


###############################################################################
# Numba batch kernel
###############################################################################


@njit(cache=True)
def _walk(step_count, escape_radius, consume_all_steps):
    d = 0.0
    for _ in range(step_count):
        if d >= escape_radius:
            if not consume_all_steps:
                break
            sample_theta()
        else:
            d = next_distance(d, sample_theta())
    return d


@njit(cache=True)
def simulate_paths_kernel(sample_size, step_count, escape_radius, seed, consume_all_steps):
    """
    Simulate ``sample_size`` independent paths and return their distances.

    The kernel seeds Numba's generator with ``seed`` first, so a given
    argument tuple always produces the same array.
    """
    np.random.seed(seed)
    distances = np.empty(sample_size, dtype=np.float64)
    for i in range(sample_size):
        distances[i] = _walk(step_count, escape_radius, consume_all_steps)
    return distances


__all__ = ["simulate_path", "distance_stream", "simulate_paths_kernel"]
