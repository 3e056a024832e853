"""
Law-of-cosines step composition.

A particle sits at distance ``d`` from the origin and takes one unit step at
polar angle ``theta``, measured at the particle between the direction back to
the origin and the step direction. Its new distance from the origin is

    sqrt(1 + d**2 - 2*d*cos(theta))

The radicand is evaluated as ``(1 - d)**2 + 4*d*sin(theta/2)**2``. Both terms
are non-negative in floating point, so the result is never NaN for d >= 0,
and the straight-line cases come out exact.
"""

from __future__ import annotations

import math

from numba import njit


@njit(cache=True)
def next_distance(d: float, theta: float) -> float:
    """Distance from the origin after one unit step from distance ``d``."""
    half_chord = math.sin(0.5 * theta)
    gap = 1.0 - d
    return math.sqrt(gap * gap + 4.0 * d * half_chord * half_chord)


__all__ = ["next_distance"]
