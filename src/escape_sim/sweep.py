"""
Radius sweep driver.

For each candidate radius a large batch of independent paths is simulated
with that radius as the escape threshold, and the batch is reduced to a
``SimulationResult``. Results are produced lazily in ascending radius order,
so a caller looking for the smallest "safe" radius can stop as soon as it is
found without paying for the larger radii.

Randomness is fully owned by the sweep. A ``numpy.random.SeedSequence``
built from ``SweepConfig.seed`` is keyed by ``(radius index, chunk index)``
to give every chunk of every batch its own independent stream. Chunks are
joined in chunk order, so the output does not depend on ``jobs``.
"""

from __future__ import annotations

import itertools
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, fields
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from . import utils
from .paths import distance_stream, simulate_paths_kernel
from .sampling import theta_stream
from .utils import SimulationResult

###############################################################################
# Constants
###############################################################################

DEFAULT_STEPS = 5  # Particle lifetime in unit steps
DEFAULT_SAMPLE_SIZE = 10_000_000  # Paths per radius
DEFAULT_SIGNIFICANT_FIGURES = 3  # Granularity of the radius sweep
DEFAULT_CHUNK_SIZE = 1_000_000  # Paths per kernel call / worker task

ENGINES = ("numba", "python")

# camelCase keys used by persisted records
_PARAM_ALIASES = {
    "sampleSize": "sample_size",
    "significantFigures": "significant_figures",
    "chunkSize": "chunk_size",
    "consumeAllSteps": "consume_all_steps",
    "commonRandomNumbers": "common_random_numbers",
}
_RECORD_ONLY_KEYS = {"date", "results"}


class SimulationError(RuntimeError):
    """Raised when a batch produces distances that cannot be valid."""


###############################################################################
# Configuration
###############################################################################


@dataclass
class SweepConfig:
    """Parameters of one radius sweep."""

    steps: int = DEFAULT_STEPS
    sample_size: int = DEFAULT_SAMPLE_SIZE
    significant_figures: int = DEFAULT_SIGNIFICANT_FIGURES
    seed: Optional[int] = None
    engine: str = "numba"
    jobs: int = 1
    chunk_size: int = DEFAULT_CHUNK_SIZE
    consume_all_steps: bool = False
    # Reuse the same random streams for every radius
    common_random_numbers: bool = False
    verbose: bool = True

    def __post_init__(self) -> None:
        if self.steps < 1:
            raise ValueError(f"steps must be at least 1, got {self.steps}")
        if self.sample_size < 1:
            raise ValueError(f"sample_size must be at least 1, got {self.sample_size}")
        if self.significant_figures < 1:
            raise ValueError(
                f"significant_figures must be at least 1, got {self.significant_figures}"
            )
        if self.engine not in ENGINES:
            raise ValueError(f"Unknown engine: {self.engine!r} (expected one of {ENGINES})")
        if self.jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {self.jobs}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"seed must be non-negative, got {self.seed}")

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "SweepConfig":
        """
        Build a config from a parameter mapping.

        Accepts snake_case field names as well as the camelCase keys of a
        saved sweep record, so a record can be fed back in to repeat a run.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in params.items():
            if key in _RECORD_ONLY_KEYS:
                continue
            name = _PARAM_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown sweep parameter: {key}")
            kwargs[name] = value
        return cls(**kwargs)


###############################################################################
# Radii and aggregation
###############################################################################


def candidate_radii(steps: int, significant_figures: int) -> Tuple[float, ...]:
    """
    Radii from one precision unit up to ``steps`` (the furthest a particle
    can get), inclusive, in steps of ``10 ** -(significant_figures - 1)``.
    """
    if steps < 0:
        raise ValueError(f"steps must be non-negative, got {steps}")
    if significant_figures < 1:
        raise ValueError(
            f"significant_figures must be at least 1, got {significant_figures}"
        )
    n = 10 ** (significant_figures - 1)
    # i / n is the closest double to the decimal radius, unlike i * (1 / n)
    return tuple(i / n for i in range(1, steps * n + 1))


def aggregate(distances: Sequence[float] | np.ndarray, radius: float) -> SimulationResult:
    """Mean final distance and percentage of paths that reached ``radius``."""
    d = np.asarray(distances, dtype=np.float64)
    if d.size == 0:
        raise ValueError("Cannot aggregate an empty batch of distances")
    if not np.all(np.isfinite(d)) or np.any(d < 0.0):
        raise SimulationError(f"Invalid distances in batch at r={radius}")

    escaped = int(np.count_nonzero(d >= radius))
    return SimulationResult(
        radius=float(radius),
        average_distance=float(d.mean()),
        percent_escaped=100.0 * escaped / d.size,
    )


###############################################################################
# Worker
###############################################################################


def _simulate_chunk(
    engine: str,
    size: int,
    steps: int,
    radius: float,
    seed_seq: np.random.SeedSequence,
    consume_all_steps: bool,
) -> np.ndarray:
    """
    Simulate one chunk of paths.

    Module level so ProcessPoolExecutor can pickle it.
    """
    if engine == "numba":
        seed = int(seed_seq.generate_state(1)[0])
        return simulate_paths_kernel(size, steps, radius, seed, consume_all_steps)

    stream = distance_stream(
        steps, theta_stream(np.random.default_rng(seed_seq)), radius, consume_all_steps
    )
    return np.fromiter(itertools.islice(stream, size), dtype=np.float64, count=size)


###############################################################################
# Simulator
###############################################################################


class EscapeSweepSimulator:
    """
    Runs the radius sweep.

    Responsibilities:
    1. Own the random streams (one SeedSequence per run).
    2. Split each radius' batch into chunks and fan them out.
    3. Reduce every batch to a SimulationResult and keep the history.
    """

    def __init__(self, config: SweepConfig | None = None) -> None:
        self.config = config or SweepConfig()
        self.seed_sequence = np.random.SeedSequence(self.config.seed)
        self.results: List[SimulationResult] = []
        self.started_at = utils.utc_now()
        self._executor: Optional[ProcessPoolExecutor] = None

    def __enter__(self) -> "EscapeSweepSimulator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the worker pool, if one was started."""
        if self._executor is not None:
            self._executor.shutdown()
            self._executor = None

    def _pool(self) -> ProcessPoolExecutor:
        # One pool serves every radius of a sweep
        if self._executor is None:
            self._executor = ProcessPoolExecutor(max_workers=self.config.jobs)
        return self._executor

    @property
    def entropy(self) -> int:
        """Seed that reproduces this run, also when none was configured."""
        return int(self.seed_sequence.entropy)

    def radii(self) -> Tuple[float, ...]:
        return candidate_radii(self.config.steps, self.config.significant_figures)

    def _chunk_sizes(self) -> List[int]:
        full, rest = divmod(self.config.sample_size, self.config.chunk_size)
        return [self.config.chunk_size] * full + ([rest] if rest else [])

    def _chunk_seed(self, index: int, chunk: int) -> np.random.SeedSequence:
        if self.config.common_random_numbers:
            index = 0
        return np.random.SeedSequence(self.entropy, spawn_key=(index, chunk))

    def simulate_distances(self, radius: float, index: int = 0) -> np.ndarray:
        """Final distances of ``sample_size`` paths with escape radius ``radius``."""
        cfg = self.config
        tasks = [
            (cfg.engine, size, cfg.steps, float(radius), self._chunk_seed(index, chunk),
             cfg.consume_all_steps)
            for chunk, size in enumerate(self._chunk_sizes())
        ]

        if cfg.jobs > 1 and len(tasks) > 1:
            chunks = list(self._pool().map(_simulate_chunk, *zip(*tasks)))
        else:
            chunks = [_simulate_chunk(*task) for task in tasks]

        return np.concatenate(chunks)

    def simulate_radius(self, radius: float, index: int = 0) -> SimulationResult:
        return aggregate(self.simulate_distances(radius, index), radius)

    def run(self) -> Iterator[SimulationResult]:
        """
        Lazily simulate every candidate radius in ascending order.

        Each radius is only simulated when the caller asks for its result.
        The worker pool is shut down when the sweep finishes or is closed.
        """
        self.results = []
        self.started_at = utils.utc_now()
        t_start = time.perf_counter()

        try:
            for index, radius in enumerate(self.radii()):
                if self.config.verbose:
                    print(f"Simulating at r={radius}")
                result = self.simulate_radius(radius, index)
                self.results.append(result)
                yield result
        finally:
            self.close()

        if self.config.verbose:
            elapsed = time.perf_counter() - t_start
            print(
                f"Sweep completed: {len(self.results)} radii x "
                f"{self.config.sample_size} paths in {elapsed:.2f}s"
            )

    def find_minimum_radius(self, threshold: float) -> Optional[SimulationResult]:
        """
        First (smallest) radius whose escape percentage is below ``threshold``.

        Stops the sweep there. Returns None if no candidate radius qualifies.
        """
        if not 0.0 <= threshold <= 100.0:
            raise ValueError(f"threshold must be a percentage in [0, 100], got {threshold}")
        sweep = self.run()
        try:
            for result in sweep:
                if result.percent_escaped < threshold:
                    return result
        finally:
            sweep.close()
        return None

    def to_record(self) -> utils.SweepRecord:
        return utils.SweepRecord(
            date=self.started_at,
            steps=self.config.steps,
            sample_size=self.config.sample_size,
            significant_figures=self.config.significant_figures,
            seed=self.entropy,
            engine=self.config.engine,
            chunk_size=self.config.chunk_size,
            consume_all_steps=self.config.consume_all_steps,
            common_random_numbers=self.config.common_random_numbers,
            results=list(self.results),
        )


def run_model(params: SweepConfig | dict | None = None) -> utils.SweepRecord:
    """
    Run a complete sweep and return its SweepRecord.
    """
    if params is None:
        params = SweepConfig()
    elif isinstance(params, dict):
        params = SweepConfig.from_dict(params)

    simulator = EscapeSweepSimulator(params)
    for _ in simulator.run():
        pass
    return simulator.to_record()


__all__ = [
    "DEFAULT_STEPS",
    "DEFAULT_SAMPLE_SIZE",
    "DEFAULT_SIGNIFICANT_FIGURES",
    "SimulationError",
    "SweepConfig",
    "EscapeSweepSimulator",
    "candidate_radii",
    "aggregate",
    "run_model",
]
