#!/usr/bin/env python3
"""
Gradient Factor sweep script.

Plans the same square dive across several GF settings and prints how the
stop table, decompression time and runtime change.

Usage:
    python run_gf_sweep.py                     # Dive from config.yaml
    python run_gf_sweep.py --depth 45 --time 25
    python run_gf_sweep.py --workers 1         # Plan sequentially
"""

import argparse
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from decoplan.config import load_effective_config
from decoplan.exceptions import DecoPlanError
from decoplan.planner import plan_dive


# GF pairs to plan: (gf_low, gf_high, label)
GF_SETS = [
    (100, 100, "Standard Buhlmann"),
    (85, 85, "Recreational Flat"),
    (70, 85, "Moderate Conservative"),
    (50, 80, "Tech Conservative"),
    (30, 85, "Deep Stops Moderate"),
    (30, 70, "Deep Tech"),
]


def print_header(params):
    """Print header showing the dive and all GF pairs that will be planned."""
    print("\n" + "=" * 70)
    print("GRADIENT FACTOR SWEEP")
    print("=" * 70)
    print(
        f"\nDive: {params.depth:g}m / {params.bottom_time:g}min on "
        f"{params.bottom_gas.label}, last stop {params.last_stop_depth:g}m"
    )
    print(f"Planning {len(GF_SETS)} GF configurations:\n")
    for i, (low, high, label) in enumerate(GF_SETS, 1):
        print(f"  [{i}/{len(GF_SETS)}] GF {low}/{high} ({label})")
    print()


def plan_one(base_params, gf_low: int, gf_high: int, label: str) -> dict:
    """Plan the dive for one GF pair; errors are reported, not raised."""
    params = replace(base_params, gf_low=gf_low / 100.0, gf_high=gf_high / 100.0)
    result = {"gf_low": gf_low, "gf_high": gf_high, "label": label}
    try:
        plan = plan_dive(params)
    except DecoPlanError as e:
        result["error"] = str(e)
        return result

    result.update(
        first_stop=plan.first_stop_depth,
        stops=len(plan.rows),
        deco_time=plan.total_deco_time,
        runtime=plan.total_runtime,
        rows=plan.rows,
    )
    return result


def run_sweep(base_params, workers: int = 4) -> list:
    """Plan every GF pair, in parallel when workers > 1.

    Returns:
        List of result dicts in GF_SETS order
    """
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures = [
            executor.submit(plan_one, base_params, low, high, label)
            for low, high, label in GF_SETS
        ]
        return [f.result() for f in futures]


def print_summary(results: list, total_time: float):
    """Print summary table of all runs."""
    print("=" * 70)
    print("SWEEP SUMMARY")
    print("=" * 70)
    print()

    print(f"{'GF':<10} {'Label':<25} {'1st stop':>8} {'Stops':>6} {'Deco':>6} {'Runtime':>8}")
    print("-" * 70)

    for r in results:
        gf_str = f"{r['gf_low']}/{r['gf_high']}"
        if "error" in r:
            print(f"{gf_str:<10} {r['label']:<25} ERROR: {r['error']}")
            continue
        print(
            f"{gf_str:<10} {r['label']:<25} {r['first_stop']:>7g}m {r['stops']:>6} "
            f"{r['deco_time']:>6} {r['runtime']:>8}"
        )

    print("-" * 70)
    print(f"\nTotal time: {total_time:.2f}s")

    print("\nStop tables:")
    for r in results:
        if "error" in r or not r["rows"]:
            continue
        stops = ", ".join(f"{row.stop_depth:g}m/{row.minutes}'" for row in r["rows"])
        print(f"  GF {r['gf_low']}/{r['gf_high']}: {stops}")
    print()


def main():
    parser = argparse.ArgumentParser(
        description="Plan one dive across multiple Gradient Factor settings"
    )
    parser.add_argument("--depth", type=float, help="Dive depth in meters")
    parser.add_argument("--time", type=float, help="Bottom time in minutes")
    parser.add_argument("--config", type=str, default=None, help="Path to config YAML")
    parser.add_argument(
        "--workers", type=int, default=4,
        help="Number of planning threads (default: 4)",
    )
    args = parser.parse_args()

    base_params = load_effective_config(config_path=args.config)["params"]
    if args.depth is not None:
        base_params = replace(base_params, depth=args.depth)
    if args.time is not None:
        base_params = replace(base_params, bottom_time=args.time)

    try:
        base_params.validate()
    except DecoPlanError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print_header(base_params)

    start_time = time.time()
    results = run_sweep(base_params, workers=args.workers)
    print_summary(results, time.time() - start_time)


if __name__ == "__main__":
    main()
