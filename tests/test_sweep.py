"""
Tests for the radius sweep driver and result aggregation.
"""

import itertools
import math

import numpy as np
import pytest

from escape_sim import sweep, utils
from escape_sim import (
    EscapeSweepSimulator,
    SimulationError,
    SweepConfig,
    aggregate,
    candidate_radii,
    run_model,
)


def make_sim(**kwargs):
    kwargs.setdefault("verbose", False)
    return EscapeSweepSimulator(SweepConfig(**kwargs))


def test_candidate_radii():
    radii = candidate_radii(5, 3)
    assert len(radii) == 500
    assert radii[0] == 0.01
    assert radii[-1] == 5.0
    assert radii[122] == 1.23
    assert all(a < b for a, b in zip(radii, radii[1:]))

    assert candidate_radii(2, 1) == (1.0, 2.0)
    assert candidate_radii(3, 2)[:3] == (0.1, 0.2, 0.3)


def test_candidate_radii_validation():
    with pytest.raises(ValueError):
        candidate_radii(5, 0)
    with pytest.raises(ValueError):
        candidate_radii(-1, 3)


def test_aggregate():
    result = aggregate([1.0, 2.0, 3.0, 4.0], 3.0)
    assert result.radius == 3.0
    assert result.average_distance == pytest.approx(2.5)
    assert result.percent_escaped == pytest.approx(50.0)


def test_aggregate_rejects_bad_batches():
    with pytest.raises(ValueError):
        aggregate([], 1.0)
    with pytest.raises(SimulationError):
        aggregate([1.0, math.nan], 1.0)
    with pytest.raises(SimulationError):
        aggregate([1.0, -0.5], 1.0)


@pytest.mark.parametrize("engine", ["numba", "python"])
def test_radius_five_is_never_escaped(engine):
    result = make_sim(sample_size=1000, seed=3, engine=engine).simulate_radius(5.0)
    assert result.percent_escaped == 0.0
    assert 0.0 < result.average_distance < 5.0


@pytest.mark.parametrize("engine", ["numba", "python"])
def test_tiny_radius_is_always_escaped(engine):
    result = make_sim(sample_size=10_000, seed=4, engine=engine).simulate_radius(0.001)
    assert result.percent_escaped >= 99.0
    # Frozen right after the first step
    assert result.average_distance == pytest.approx(1.0)


def test_escape_percentage_decreases_with_radius():
    sim = make_sim(sample_size=20_000, seed=5)
    inner = sim.simulate_radius(1.5, index=0)
    outer = sim.simulate_radius(2.5, index=1)
    assert inner.percent_escaped > outer.percent_escaped


@pytest.mark.parametrize("engine", ["numba", "python"])
def test_common_random_numbers_give_exact_monotonicity(engine):
    sim = make_sim(
        steps=5,
        significant_figures=2,
        sample_size=2000,
        seed=6,
        engine=engine,
        consume_all_steps=True,
        common_random_numbers=True,
    )
    escaped = [r.percent_escaped for r in sim.run()]
    assert len(escaped) == 50
    assert all(a >= b for a, b in zip(escaped, escaped[1:]))
    assert escaped[0] == 100.0


def test_seeded_runs_are_reproducible():
    a = make_sim(significant_figures=1, sample_size=3000, seed=9)
    b = make_sim(significant_figures=1, sample_size=3000, seed=9)
    assert list(a.run()) == list(b.run())


def test_chunking_and_jobs_do_not_change_results():
    single = make_sim(sample_size=1000, chunk_size=250, seed=10, jobs=1)
    parallel = make_sim(sample_size=1000, chunk_size=250, seed=10, jobs=2)
    d1 = single.simulate_distances(2.0, index=3)
    with parallel:
        d2 = parallel.simulate_distances(2.0, index=3)
    assert d1.shape == (1000,)
    assert np.array_equal(d1, d2)


def test_uneven_chunks_cover_sample_size():
    sim = make_sim(sample_size=1001, chunk_size=250, seed=12)
    assert sim._chunk_sizes() == [250, 250, 250, 250, 1]
    assert sim.simulate_distances(1.0).shape == (1001,)


def test_run_is_lazy():
    sim = make_sim(significant_figures=2, sample_size=500, seed=1)
    first_two = list(itertools.islice(sim.run(), 2))
    assert [r.radius for r in first_two] == [0.1, 0.2]
    assert len(sim.results) == 2


def test_find_minimum_radius():
    # With two steps the particle can only reach 2 by walking in a perfect line
    sim = make_sim(steps=2, significant_figures=1, sample_size=2000, seed=2)
    found = sim.find_minimum_radius(50.0)
    assert found is not None
    assert found.radius == 2.0
    assert [r.radius for r in sim.results] == [1.0, 2.0]

    assert sim.find_minimum_radius(0.0) is None
    assert len(sim.results) == 2

    with pytest.raises(ValueError):
        sim.find_minimum_radius(120.0)


def test_progress_lines(capsys):
    sim = EscapeSweepSimulator(
        SweepConfig(steps=2, significant_figures=1, sample_size=100, seed=0)
    )
    list(sim.run())
    out = capsys.readouterr().out
    assert "Simulating at r=1.0" in out
    assert "Simulating at r=2.0" in out


def test_config_validation():
    with pytest.raises(ValueError):
        SweepConfig(steps=0)
    with pytest.raises(ValueError):
        SweepConfig(sample_size=0)
    with pytest.raises(ValueError):
        SweepConfig(engine="gpu")
    with pytest.raises(ValueError):
        SweepConfig(seed=-1)


def test_config_from_dict():
    config = SweepConfig.from_dict(
        {"steps": 4, "sampleSize": 100, "significantFigures": 2, "seed": 1,
         "date": "2026-10-18T10:15:00+00:00", "results": []}
    )
    assert config.steps == 4
    assert config.sample_size == 100
    assert config.significant_figures == 2

    with pytest.raises(ValueError):
        SweepConfig.from_dict({"stepz": 4})


def test_run_model_record():
    record = run_model(
        {"steps": 3, "significant_figures": 1, "sample_size": 500, "seed": 7,
         "verbose": False}
    )
    assert record.steps == 3
    assert record.sample_size == 500
    assert record.seed == 7
    assert [r.radius for r in record.results] == [1.0, 2.0, 3.0]
    assert record.results[0].percent_escaped == 100.0


def test_unseeded_run_records_entropy():
    sim = make_sim(sample_size=10)
    assert isinstance(sim.to_record().seed, int)


def test_saved_record_repeats_its_run(tmp_path):
    """Every setting that changes the output must survive a save and reload."""
    config = SweepConfig(
        steps=3,
        significant_figures=1,
        sample_size=1000,
        seed=3,
        engine="python",
        chunk_size=500,
        consume_all_steps=True,
        common_random_numbers=True,
        verbose=False,
    )
    original = run_model(config)
    path = utils.save_sweep_record(tmp_path / "run.json", original)

    params = utils.load_params(path)
    params["verbose"] = False
    rebuilt = SweepConfig.from_dict(params)
    assert rebuilt == config

    assert run_model(rebuilt).results == original.results


def test_one_worker_pool_per_sweep(monkeypatch):
    created = []

    class CountingPool(sweep.ProcessPoolExecutor):
        def __init__(self, *args, **kwargs):
            created.append(1)
            super().__init__(*args, **kwargs)

    monkeypatch.setattr(sweep, "ProcessPoolExecutor", CountingPool)

    sim = make_sim(steps=3, significant_figures=1, sample_size=400, chunk_size=100,
                   seed=8, jobs=2)
    results = list(sim.run())

    assert len(results) == 3
    assert len(created) == 1
    # Pool is released once the sweep is over
    assert sim._executor is None
