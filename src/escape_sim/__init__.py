"""
Escape Simulation Library

Monte Carlo estimate of how many isotropic unit-step random walkers leave a
sphere of a given radius within a fixed number of steps, swept over candidate
radii:

- sampling: polar angles uniform on the sphere (rejection sampling)
- steps: law-of-cosines distance update
- paths: single paths, path streams and the Numba batch kernel
- sweep: EscapeSweepSimulator, aggregation and configuration
"""

from .sweep import (
    EscapeSweepSimulator,
    SimulationError,
    SweepConfig,
    aggregate,
    candidate_radii,
    run_model,
)
from .utils import SimulationResult, SweepRecord
from . import stats, utils

__all__ = [
    # Simulator
    "EscapeSweepSimulator",
    "run_model",
    # Configuration and results
    "SweepConfig",
    "SimulationResult",
    "SweepRecord",
    "SimulationError",
    # Helpers
    "aggregate",
    "candidate_radii",
    "stats",
    "utils",
]
