#!/usr/bin/env python3
"""
Escape Radius Sweep Runner

Simulates the escape percentage for every candidate radius (or until the
first radius below --threshold) and saves the run as a JSON record.
"""

import argparse
import sys
import time
from pathlib import Path

from escape_sim import EscapeSweepSimulator, SweepConfig, stats, utils


def build_config(args: argparse.Namespace) -> SweepConfig:
    """Merge an optional parameter file with explicit command line flags."""
    params = utils.load_params(args.config) if args.config else {}
    if not isinstance(params, dict):
        raise ValueError(f"Parameter file {args.config} must hold a table of parameters")
    if args.threshold is not None and not 0.0 <= args.threshold <= 100.0:
        raise ValueError(f"threshold must be a percentage in [0, 100], got {args.threshold}")
    overrides = {
        "steps": args.steps,
        "sample_size": args.sample_size,
        "significant_figures": args.sig_figs,
        "seed": args.seed,
        "engine": args.engine,
        "jobs": args.jobs,
        "chunk_size": args.chunk_size,
    }
    params.update({k: v for k, v in overrides.items() if v is not None})
    if args.consume_all_steps:
        params["consume_all_steps"] = True
    if args.quiet:
        params["verbose"] = False
    return SweepConfig.from_dict(params)


def save_with_retry(path: Path, record: utils.SweepRecord, retries: int) -> bool:
    """Write the record, retrying on I/O errors without re-running the sweep."""
    for attempt in range(1, retries + 1):
        try:
            utils.save_sweep_record(path, record)
            return True
        except OSError as e:
            print(f"Write attempt {attempt}/{retries} failed: {e}", file=sys.stderr)
            if attempt < retries:
                time.sleep(1.0)
    return False


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Sweep sphere radii and estimate particle escape percentages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=str, default=None,
                        help="JSON or TOML parameter file")
    parser.add_argument("--steps", type=int, default=None,
                        help="Unit steps before a particle decays (default: 5)")
    parser.add_argument("--sample-size", type=int, default=None,
                        help="Paths simulated per radius (default: 10,000,000)")
    parser.add_argument("--sig-figs", type=int, default=None,
                        help="Significant figures of the radius sweep (default: 3)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducibility")
    parser.add_argument("--engine", choices=["numba", "python"], default=None,
                        help="Simulation engine (default: numba)")
    parser.add_argument("--jobs", type=int, default=None,
                        help="Number of parallel processes (default: 1)")
    parser.add_argument("--chunk-size", type=int, default=None,
                        help="Paths per worker task (default: 1,000,000)")
    parser.add_argument("--consume-all-steps", action="store_true",
                        help="Keep drawing angles for escaped particles")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Stop at the first radius with escape percentage below this")
    parser.add_argument("--out-dir", type=str, default="results",
                        help="Directory for the JSON record (default: results)")
    parser.add_argument("--retries", type=int, default=3,
                        help="Attempts at writing the record (default: 3)")
    parser.add_argument("--quiet", action="store_true",
                        help="Suppress per-radius progress lines")

    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    print(f"Sweep started: steps={config.steps}, sample_size={config.sample_size}, "
          f"significant_figures={config.significant_figures}, engine={config.engine}, "
          f"jobs={config.jobs}")
    start_time = time.time()

    simulator = EscapeSweepSimulator(config)
    found = None
    if args.threshold is not None:
        found = simulator.find_minimum_radius(args.threshold)
    else:
        for _ in simulator.run():
            pass

    elapsed_time = time.time() - start_time
    record = simulator.to_record()

    out_path = Path(args.out_dir) / utils.record_filename(record.date)
    if not save_with_retry(out_path, record, max(1, args.retries)):
        print(f"Could not save results to {out_path}", file=sys.stderr)
        return 1

    # Print summary
    print()
    print("=" * 60)
    print("Sweep completed!")
    print(f"  Radii simulated: {len(record.results)}")
    print(f"  Seed: {record.seed}")
    print(f"  Total time: {elapsed_time:.2f} seconds")
    if args.threshold is not None:
        if found is None:
            print(f"  No candidate radius keeps escapes below {args.threshold}%")
        else:
            err = stats.escape_standard_error(found.percent_escaped, config.sample_size)
            print(f"  Minimum radius: {found.radius} "
                  f"({found.percent_escaped:.4f}% +/- {err:.4f}% escaped)")
    print(f"  Output saved to: {out_path}")
    print("=" * 60)

    return 0


if __name__ == "__main__":
    sys.exit(main())
