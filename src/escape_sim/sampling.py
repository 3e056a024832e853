"""
Uniform-on-the-sphere direction sampling.

Only the polar angle of each step matters for the radial distance, and for a
direction drawn uniformly from the unit sphere that angle has density
``sin(theta) / 2`` on [0, pi]. Drawing theta uniformly from [0, pi] instead
would pile directions up at the poles.

Both samplers here use rejection sampling: propose ``theta = pi * U1`` and
keep it when ``U2 <= sin(theta)``. Since ``sin(theta) <= 1`` no normalising
constant is needed, and on average pi/2 proposals are spent per angle.

Two flavours are provided:

- ``theta_stream`` / ``sample_thetas``: driven by an explicit
  ``numpy.random.Generator`` for the Python engine and for diagnostics.
- ``sample_theta``: a Numba kernel driven by Numba's internal generator,
  seeded through ``seed_kernel``.
"""

from __future__ import annotations

import math
from typing import Iterator, Optional

import numpy as np
from numba import njit

DEFAULT_BLOCK_SIZE = 4096


###############################################################################
# Numba kernels
###############################################################################


@njit(cache=True)
def seed_kernel(seed: int) -> None:
    """
    Seed Numba's generator.

    Numba keeps its own random state, separate from NumPy's global one, so
    this has to be called from compiled code to affect ``sample_theta``.
    """
    np.random.seed(seed)


@njit(cache=True)
def sample_theta() -> float:
    """Draw one polar angle with density proportional to sin(theta)."""
    while True:
        theta = np.random.random() * math.pi
        if np.random.random() <= math.sin(theta):
            return theta


###############################################################################
# Generator-driven sampling
###############################################################################


def theta_stream(
    rng: Optional[np.random.Generator] = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> Iterator[float]:
    """
    Infinite stream of polar angles for points uniform on a sphere.

    Proposals are drawn from ``rng`` in blocks of ``block_size`` and the
    accepted angles are yielded one at a time, in proposal order. The stream
    cannot be restarted; share one stream between consumers so no angle is
    handed out twice.
    """
    if block_size < 1:
        raise ValueError(f"block_size must be positive, got {block_size}")
    rng = np.random.default_rng() if rng is None else rng

    while True:
        candidates = rng.random(block_size) * math.pi
        trials = rng.random(block_size)
        for theta in candidates[trials <= np.sin(candidates)]:
            yield float(theta)


def sample_thetas(
    n: int,
    rng: Optional[np.random.Generator] = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> np.ndarray:
    """Return ``n`` accepted angles as a float64 array."""
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    rng = np.random.default_rng() if rng is None else rng

    accepted = []
    count = 0
    # Expected acceptance rate is 2/pi, over-draw a little to usually need one pass
    draw = max(block_size, int(1.6 * n) + 16)
    while count < n:
        candidates = rng.random(draw) * math.pi
        trials = rng.random(draw)
        keep = candidates[trials <= np.sin(candidates)]
        accepted.append(keep)
        count += keep.shape[0]

    if not accepted:
        return np.empty(0, dtype=np.float64)
    return np.concatenate(accepted)[:n]


__all__ = [
    "DEFAULT_BLOCK_SIZE",
    "seed_kernel",
    "sample_theta",
    "theta_stream",
    "sample_thetas",
]
