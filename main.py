"""
DecoPlan - Bühlmann ZH-L16C Decompression Planner

Computes a staged decompression schedule for a square dive profile using
gradient factors, prints the stop table and the full dive schedule, and
optionally charts the profile and tissue saturation over time.

Usage:
    python main.py                              # Plan with config.yaml settings
    python main.py --depth 40 --time 20         # Quick square profile override
    python main.py --gf 30 85 --deco-gas ean+o2 # Gradient factors and deco gas
    python main.py --strategies                 # Compare stop-time allocations
    python main.py --output results --plot      # Export JSON and show charts
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import replace

import numpy as np
import matplotlib.pyplot as plt
from matplotlib import colormaps

from decoplan.config import (
    build_plan_dirname,
    load_effective_config,
    save_config_snapshot,
)
from decoplan.exceptions import DecoPlanError
from decoplan.gas import DecoGasPolicy
from decoplan.parameters import DiveParameters
from decoplan.planner import DecoPlan, Phase, plan_dive
from decoplan.strategy import compare_strategies
from decoplan.zhl16_constants import TISSUE_LABELS

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=log_format,
        handlers=[logging.StreamHandler()],
    )


def apply_overrides(params: DiveParameters, args: argparse.Namespace) -> DiveParameters:
    """Apply command-line overrides on top of the config file values."""
    overrides = {}
    if args.depth is not None:
        overrides["depth"] = args.depth
    if args.time is not None:
        overrides["bottom_time"] = args.time
    if args.gas is not None:
        overrides["gas"] = args.gas
    if args.deco_gas is not None:
        overrides["deco_gas"] = DecoGasPolicy.parse(args.deco_gas)
    if args.deco_o2 is not None:
        overrides["deco_o2"] = args.deco_o2
    if args.last_stop is not None:
        overrides["last_stop_depth"] = args.last_stop
    return replace(params, **overrides) if overrides else params


def print_dive_plan(params: DiveParameters) -> None:
    """Print dive plan summary before planning."""
    gases = params.gas_resolver()
    print("--- DIVE PLAN ---")
    print(f"Depth: {params.depth:g}m, bottom time: {params.bottom_time:g} min")
    print(f"Bottom gas: {gases.bottom_gas.label}")
    print(f"Deco gas: {gases.policy.value}")
    print(f"GF: {params.gf_low * 100:.0f}/{params.gf_high * 100:.0f}")
    print(f"Descent rate: {params.descent_rate:g} m/min")
    print(f"Last stop: {params.last_stop_depth:g}m")


def print_results(plan: DecoPlan) -> None:
    """Print the stop table, totals and the detailed schedule."""
    print("\n--- DECOMPRESSION STOPS ---")
    if not plan.rows:
        print("No decompression stops required.")
    for row in plan.rows:
        print(f"  {row.stop_depth:>5g}m  {row.minutes:>4d} min  {row.gas_label}")

    print(f"\nTotal dive runtime: {plan.total_runtime} min")
    print(f"Total decompression time: {plan.total_deco_time} min")

    print("\n--- DETAILED SCHEDULE ---")
    print(f"{'Phase':<8} {'Depth':<10} {'Rate':<12} {'Time':>5} {'Accum':>6}")
    for event in plan.schedule:
        print(
            f"{event.phase.value:<8} {event.depth_range:<10} {event.rate_label:<12} "
            f"{event.minutes:>5g} {event.accumulated_minutes:>6d}"
        )

    surface = plan.tissue_snapshots[-1]
    leading = surface.leading_compartment
    print(
        f"\nLeading compartment on surfacing: #{leading.compartment} {leading.label} "
        f"({leading.saturation:.0f}% of M-value)"
    )


def print_strategies(plan: DecoPlan) -> None:
    """Print alternative stop-time allocations. For comparison only."""
    if not plan.rows:
        return
    allocations = compare_strategies(plan.rows, plan.total_deco_time)
    names = list(allocations)

    print("\n--- STOP-TIME STRATEGIES (comparison only, not a dive plan) ---")
    print(f"{'Depth':>6} {'Plan':>5} " + " ".join(f"{n:>12}" for n in names))
    for i, row in enumerate(plan.rows):
        minutes = " ".join(f"{allocations[n][i].minutes:>12d}" for n in names)
        print(f"{row.stop_depth:>5g}m {row.minutes:>5d} {minutes}")


def export_plan(plan: DecoPlan, params: DiveParameters, output_root: str, config_path: str) -> str:
    """Write plan.json (and a config snapshot) into a per-settings directory."""
    output_dir = os.path.join(output_root, build_plan_dirname(params))
    os.makedirs(output_dir, exist_ok=True)
    with open(os.path.join(output_dir, "plan.json"), "w") as f:
        json.dump(plan.to_dict(), f, indent=2)
    save_config_snapshot(config_path, output_dir)
    logger.info(f"Plan exported to {output_dir}")
    return output_dir


def profile_points(plan: DecoPlan):
    """(times, depths) polyline of the planned dive from the schedule."""
    times = [0.0]
    depths = [0.0]
    t = 0.0
    for event in plan.schedule:
        if event.phase in (Phase.DESCENT, Phase.ASCENT):
            t += abs(event.start_depth - event.end_depth) / event.rate
        else:
            t += event.minutes
        times.append(t)
        depths.append(event.end_depth)
    return times, depths


def plot_results(plan: DecoPlan, params: DiveParameters) -> None:
    """Visualize the dive profile and tissue saturation over time."""
    _fig, axes = plt.subplots(
        3, 1, figsize=(12, 12),
        gridspec_kw={"height_ratios": [1, 1.5, 1.2]},
    )

    # --- Row 0: Depth Profile ---
    ax_depth = axes[0]
    times, depths = profile_points(plan)
    ax_depth.plot(times, depths, "b-", linewidth=2)
    for row, event in zip(plan.rows, [e for e in plan.schedule if e.phase is Phase.STOP]):
        ax_depth.annotate(
            f"{row.minutes}'", (event.accumulated_minutes, row.stop_depth),
            textcoords="offset points", xytext=(0, 6), fontsize=8,
        )
    ax_depth.set_ylabel("Depth (m)")
    ax_depth.set_xlabel("Time (min)")
    ax_depth.set_title(
        f"Dive Profile: {params.depth:g}m / {params.bottom_time:g}min, "
        f"GF {params.gf_low * 100:.0f}/{params.gf_high * 100:.0f}"
    )
    ax_depth.invert_yaxis()
    ax_depth.grid(True, alpha=0.3)
    ax_depth.fill_between(times, depths, alpha=0.15, color="blue")

    # --- Row 1: Saturation heatmap, compartments x time ---
    ax_heat = axes[1]
    timeline = plan.tissue_timeline
    sample_times = [s.time for s in timeline]
    saturation = np.array([[c.saturation for c in s.compartments] for s in timeline])
    im = ax_heat.imshow(
        saturation.T,
        aspect="auto",
        cmap="hot",
        origin="lower",
        extent=[sample_times[0], sample_times[-1], 0.5, len(TISSUE_LABELS) + 0.5],
    )
    plt.colorbar(im, ax=ax_heat, label="% of M-value")
    ax_heat.set_xlabel("Time (min)")
    ax_heat.set_ylabel("Compartment")
    ax_heat.set_title("Tissue Saturation (GF low)")

    # --- Row 2: Snapshot bars ---
    ax_snap = axes[2]
    snapshots = plan.tissue_snapshots
    cmap = colormaps["viridis"]
    colors = cmap(np.linspace(0, 1, len(snapshots)))
    width = 0.8 / len(snapshots)
    x = np.arange(1, len(TISSUE_LABELS) + 1)
    for i, snap in enumerate(snapshots):
        ax_snap.bar(
            x + i * width - 0.4,
            [c.saturation for c in snap.compartments],
            width=width, color=colors[i], label=snap.phase,
        )
    ax_snap.axhline(y=100, color="red", linestyle="--", linewidth=1, label="M-value")
    ax_snap.set_xticks(x)
    ax_snap.set_xticklabels(TISSUE_LABELS, rotation=45, ha="right", fontsize=8)
    ax_snap.set_ylabel("% of M-value")
    ax_snap.set_title("Tissue Snapshots")
    ax_snap.legend(loc="upper right", fontsize=7)
    ax_snap.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments for quick overrides."""
    parser = argparse.ArgumentParser(
        description="DecoPlan - Bühlmann ZH-L16C decompression planner",
    )
    parser.add_argument("--depth", type=float, help="Dive depth in meters")
    parser.add_argument("--time", type=float, help="Bottom time in minutes")
    parser.add_argument(
        "--gas", type=str,
        help="Bottom gas: air, ean28, ean32, tx21/35, tx18/45",
    )
    parser.add_argument(
        "--gf", type=int, nargs=2, metavar=("LOW", "HIGH"),
        help="Gradient factors in percent (e.g. --gf 30 85)",
    )
    parser.add_argument(
        "--deco-gas", choices=[p.value for p in DecoGasPolicy],
        help="Deco gas policy",
    )
    parser.add_argument("--deco-o2", type=float, help="Nitrox deco gas O2 percent")
    parser.add_argument("--last-stop", type=float, help="Last stop depth in meters")
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to plan config YAML (default: config.yaml)",
    )
    parser.add_argument("--output", type=str, help="Directory to export plan.json into")
    parser.add_argument("--plot", action="store_true", help="Show charts")
    parser.add_argument(
        "--strategies", action="store_true",
        help="Print alternative stop-time allocations",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        effective_config = load_effective_config(
            config_path=args.config, gf_override=args.gf,
        )
        params = apply_overrides(effective_config["params"], args)

        print_dive_plan(params)
        plan = plan_dive(params)
    except DecoPlanError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print_results(plan)

    if args.strategies:
        print_strategies(plan)

    if args.output:
        output_dir = export_plan(
            plan, params, args.output, effective_config["config_path"],
        )
        print(f"\nPlan exported to {output_dir}")

    if args.plot:
        plot_results(plan, params)


if __name__ == "__main__":
    main()
