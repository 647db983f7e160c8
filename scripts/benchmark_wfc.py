#!/usr/bin/env python3
"""Benchmark Wave Function Collapse run time across grid sizes."""

from __future__ import annotations

import argparse
import json
import time
from pathlib import Path

from tilewave.generators import WFC, GenerationFailed, RuleSet, WFCConfig

GRID_SIZES: tuple[tuple[int, int], ...] = (
    (10, 10),
    (20, 20),
    (30, 30),
    (40, 30),
    (50, 50),
)


def create_terrain_rules() -> RuleSet:
    """Water / sand / grass / forest bands: each tile only touches its neighbors."""
    bands = {0: {0, 1}, 1: {0, 1, 2}, 2: {1, 2, 3}, 3: {2, 3}}
    weights = {0: 2.0, 1: 1.0, 2: 3.0, 3: 2.0}
    return RuleSet(
        {
            tile: {
                "weight": weights[tile],
                "up": allowed,
                "down": allowed,
                "left": allowed,
                "right": allowed,
            }
            for tile, allowed in bands.items()
        }
    )


class WFCBenchmark:
    """Benchmark runner for the collapse driver."""

    def __init__(self, iterations: int) -> None:
        self.iterations = iterations
        self.rules = create_terrain_rules()
        self.results: dict[str, dict[str, float]] = {}

    def _run_case(self, width: int, height: int) -> dict[str, float]:
        """Run one grid size; return average ms, backtracks and worst streak."""
        elapsed_total = 0.0
        backtracks = 0
        longest_run = 0

        for i in range(self.iterations):
            seed = (width * 1_000_000) + (height * 1_000) + i
            wfc = WFC(
                WFCConfig(width=width, height=height, rules=self.rules, seed=seed)
            )
            wfc.initialize()

            start = time.perf_counter()
            try:
                wfc.run()
            except GenerationFailed as exc:
                print(f"  {width}x{height} seed {seed}: {exc}")
            elapsed_total += time.perf_counter() - start
            backtracks += wfc.total_backtracks
            longest_run = max(longest_run, wfc.stats.longest_backtrack_run)

        return {
            "run_ms": (elapsed_total / self.iterations) * 1000.0,
            "backtracks": backtracks / self.iterations,
            "longest_run": longest_run,
        }

    def run(self) -> None:
        """Run all configured grid-size benchmarks."""
        print("WFC Benchmark")
        print("=" * 56)
        print(f"Iterations per size: {self.iterations}")
        print()
        print(f"{'Size':>12} {'Time (ms)':>14} {'Backtracks':>12} {'Longest':>12}")
        print("-" * 56)

        for width, height in GRID_SIZES:
            size_key = f"{width}x{height}"
            result = self._run_case(width, height)
            self.results[size_key] = result
            print(
                f"{size_key:>12} {result['run_ms']:14.2f} "
                f"{result['backtracks']:12.1f} {result['longest_run']:12d}"
            )

    def save_results(self, filename: str) -> None:
        """Save benchmark output to a JSON file."""
        with Path(filename).open("w") as f:
            json.dump(self.results, f, indent=2)
        print(f"\nSaved benchmark results to {filename}")

    def compare_with_baseline(self, baseline_file: str) -> None:
        """Print time and backtrack deltas against a saved results file.

        Seeds are fixed per grid size, so backtrack averages are deterministic:
        any backtrack delta means the collapse sequence changed.
        """
        path = Path(baseline_file)
        if not path.exists():
            print(f"\nBaseline file not found: {baseline_file}")
            return
        with path.open() as f:
            baseline: dict[str, dict[str, float]] = json.load(f)

        print(f"\nChanges vs {baseline_file}")
        print(f"{'Size':>12} {'Time':>12} {'Backtracks':>14}")
        for size_key, current in self.results.items():
            previous = baseline.get(size_key)
            if previous is None:
                print(f"{size_key:>12} {'(new)':>12}")
                continue

            old_ms = previous.get("run_ms", 0.0)
            time_change = (
                f"{(current['run_ms'] - old_ms) / old_ms * 100.0:+.1f}%"
                if old_ms > 0
                else "n/a"
            )
            backtrack_change = current["backtracks"] - previous.get("backtracks", 0.0)
            print(f"{size_key:>12} {time_change:>12} {backtrack_change:+14.1f}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark WFC generation")
    parser.add_argument(
        "--iterations",
        type=int,
        default=3,
        help="Number of runs per grid size (default: 3)",
    )
    parser.add_argument("--save", type=str, help="Save current results to JSON")
    parser.add_argument(
        "--compare",
        type=str,
        help="Compare current results against baseline JSON",
    )
    args = parser.parse_args(argv)

    benchmark = WFCBenchmark(iterations=args.iterations)
    benchmark.run()

    if args.save:
        benchmark.save_results(args.save)

    if args.compare:
        benchmark.compare_with_baseline(args.compare)


if __name__ == "__main__":
    main()
