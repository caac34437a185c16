# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Plot a benchmark results file as scaling curves.

Creates a two-panel figure:
- Left: clients vs average and longest round-trip (ms)
- Right: clients vs success rate (%)

Usage:
    wsbench-plot benchmarks/go/1_1.csv
    wsbench-plot benchmarks/go/1_1.csv benchmarks/rust/1_1.csv --output compare.png
"""

import argparse
import csv
from pathlib import Path
from typing import Any, Dict, List, Optional

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend
import matplotlib.pyplot as plt  # noqa: E402


def load_results_csv(csv_path: Path) -> List[Dict[str, Any]]:
    """Load a results CSV into a list of dicts with numeric fields converted."""
    if not csv_path.exists():
        return []

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        rows = []
        for row in reader:
            for key in row:
                try:
                    if "." in str(row[key]):
                        row[key] = float(row[key])
                    else:
                        row[key] = int(row[key])
                except (ValueError, TypeError):
                    pass
            rows.append(row)
        return rows


def series_label(csv_path: Path) -> str:
    """Label a results file by its language folder and file name, e.g. ``go/1_1``."""
    return f"{csv_path.parent.name}/{csv_path.stem}"


def plot_results(results: Dict[str, List[Dict[str, Any]]], output_path: Path, success_threshold: float = 95.0) -> Path:
    """
    Write the scaling figure for one or more results files.

    Args:
        results: Mapping of series label to rows from load_results_csv
        output_path: Where to save the PNG
        success_threshold: Success rate threshold line (default 95%)
    """
    fig, (latency_ax, success_ax) = plt.subplots(1, 2, figsize=(14, 6))

    for label, rows in sorted(results.items()):
        rows = sorted(rows, key=lambda row: row.get("clients", 0))
        clients = [row.get("clients", 0) for row in rows]
        if not clients:
            continue

        latency_ax.plot(clients, [row.get("average", 0) for row in rows], marker="o", linewidth=2, label=f"{label} avg")
        latency_ax.plot(
            clients,
            [row.get("longest", 0) for row in rows],
            linestyle="--",
            linewidth=1.5,
            alpha=0.7,
            label=f"{label} max",
        )
        success_ax.plot(clients, [row.get("percentage", 0) for row in rows], marker="o", linewidth=2, label=label)

    latency_ax.set_xlabel("Clients", fontsize=11)
    latency_ax.set_ylabel("Round-trip (ms)", fontsize=11)
    latency_ax.set_title("Round-trip latency", fontsize=12, fontweight="bold")
    latency_ax.grid(True, alpha=0.3)
    latency_ax.legend(loc="upper left", fontsize=9, framealpha=0.9)

    success_ax.axhline(y=success_threshold, color="#e74c3c", linestyle="--", linewidth=1.5, alpha=0.7)
    success_ax.set_xlabel("Clients", fontsize=11)
    success_ax.set_ylabel("Success Rate (%)", fontsize=11)
    success_ax.set_ylim(-5, 105)
    success_ax.set_title("Success rate", fontsize=12, fontweight="bold")
    success_ax.grid(True, alpha=0.3)
    success_ax.legend(loc="lower left", fontsize=9, framealpha=0.9)

    fig.tight_layout()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Plot websocket benchmark results")
    parser.add_argument("inputs", nargs="+", help="Results CSV files")
    parser.add_argument("--output", "-o", default="scaling.png", help="Output image (default: scaling.png)")
    parser.add_argument("--threshold", type=float, default=95.0, help="Success rate threshold line")
    args = parser.parse_args(argv)

    results = {}
    for name in args.inputs:
        path = Path(name)
        rows = load_results_csv(path)
        if not rows:
            print(f"Warning: no results in {path}")
            continue
        results[series_label(path)] = rows

    if not results:
        parser.error("no results to plot")

    output = plot_results(results, Path(args.output), args.threshold)
    print(f"Saved figure to {output}")


if __name__ == "__main__":
    main()
