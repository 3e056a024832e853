"""
Statistics helpers for checking samplers and quoting sweep results.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.stats import kstest


def theta_cdf(theta):
    """
    CDF of the polar angle of a uniform point on the sphere.

    Integral of sin(x) / 2 from 0 to theta, i.e. (1 - cos(theta)) / 2.
    """
    theta = np.clip(theta, 0.0, math.pi)
    return 0.5 * (1.0 - np.cos(theta))


def theta_ks_test(samples):
    """Kolmogorov-Smirnov test of ``samples`` against ``theta_cdf``."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.size == 0:
        raise ValueError("Need at least one sample for a KS test")
    return kstest(samples, theta_cdf)


def escape_standard_error(percent_escaped: float, sample_size: int) -> float:
    """Binomial standard error of an escape percentage, in percentage points."""
    if sample_size < 1:
        raise ValueError(f"sample_size must be at least 1, got {sample_size}")
    p = percent_escaped / 100.0
    return 100.0 * math.sqrt(max(p * (1.0 - p), 0.0) / sample_size)


__all__ = ["theta_cdf", "theta_ks_test", "escape_standard_error"]
