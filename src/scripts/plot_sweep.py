"""
Plot escape percentage and mean distance against radius for a saved sweep.
"""
import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from escape_sim import stats, utils


def plot_record(record: utils.SweepRecord, output_path, threshold=None, dpi=150):
    if not record.results:
        raise ValueError("Record contains no results to plot.")

    radii = np.array([r.radius for r in record.results])
    escaped = np.array([r.percent_escaped for r in record.results])
    mean_dist = np.array([r.average_distance for r in record.results])
    err = np.array([stats.escape_standard_error(p, record.sample_size) for p in escaped])

    fig, (ax_esc, ax_dist) = plt.subplots(2, 1, figsize=(8, 8), sharex=True)

    ax_esc.errorbar(radii, escaped, yerr=err, fmt="-", color="black", lw=1.2, ecolor="gray")
    if threshold is not None:
        ax_esc.axhline(threshold, color="red", ls="--", lw=1.0, label=f"{threshold}%")
        ax_esc.legend()
    ax_esc.set_ylabel("Escaped [%]")
    ax_esc.set_title(
        f"{record.steps} steps, {record.sample_size} paths per radius"
    )
    ax_esc.grid(alpha=0.3)

    ax_dist.plot(radii, mean_dist, "-", color="tab:blue", lw=1.2)
    ax_dist.set_xlabel("Sphere radius")
    ax_dist.set_ylabel("Mean final distance")
    ax_dist.grid(alpha=0.3)

    fig.tight_layout()
    fig.savefig(output_path, dpi=dpi)
    plt.close(fig)


def main():
    parser = argparse.ArgumentParser(description="Plot a saved escape sweep")
    parser.add_argument("input", type=str, help="Sweep record (.json)")
    parser.add_argument("--out", type=str, default=None, help="Output image path")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Draw a horizontal line at this escape percentage")
    parser.add_argument("--dpi", type=int, default=150)
    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: {input_path} not found.", file=sys.stderr)
        return 1

    record = utils.load_sweep_record(input_path)
    out = args.out or str(input_path.with_suffix(".png"))
    plot_record(record, out, threshold=args.threshold, dpi=args.dpi)
    print(f"Saved plot to {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
