"""Command line entry points.

Both commands run against a simulated network preset.

Usage:
    # Periodic manager: rescans, redeploys on fleet changes
    batch-manager joesguns 0.05 1.25 home --quiet --max-cycles 30 --time-scale 0

    # Stop every operation thread on the fleet once the manager exits
    batch-manager joesguns --max-cycles 5 --time-scale 0 --kill-all

    # One-shot deployment, optionally as a dry run
    smart-batcher joesguns 0.10 --include-home --dry
"""

import argparse
import logging
import sys
import time
from typing import Callable

from fleet_batcher.config import DEFAULT_HOST, BatcherConfig, ManagerConfig
from fleet_batcher.errors import BatcherError
from fleet_batcher.orchestration.orchestrator import DeploymentOrchestrator
from fleet_batcher.orchestration.results import CycleSummary, save_summary
from fleet_batcher.scheduling.oracle import (
    OverrideTimingOracle,
    load_timing_overrides,
    save_timing_overrides,
)
from fleet_batcher.simulation.network import SimulatedNetwork
from fleet_batcher.simulation.scenarios import create_scenario_network, get_scenario, list_scenarios

logger = logging.getLogger(__name__)


def extract_fraction_arg(value: str) -> float:
    """argparse type for the per-batch extract fraction, 0 < f <= 1."""
    try:
        fraction = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if not 0 < fraction <= 1:
        raise argparse.ArgumentTypeError(f"extract fraction must be in (0, 1], got {fraction}")
    return fraction


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Only report warnings, errors and the final summary",
    )
    parser.add_argument(
        "--scenario",
        default="starter",
        choices=list_scenarios(),
        help="Simulated network preset (default: starter)",
    )
    parser.add_argument("--seed", type=int, default=42, help="Network seed (default: 42)")
    parser.add_argument(
        "--overrides",
        type=str,
        default=None,
        help="JSON file of per-target timing overrides",
    )
    parser.add_argument(
        "--summary-out",
        type=str,
        default=None,
        help="Write the last cycle summary as JSON",
    )


def build_manager_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batch-manager",
        description="Periodically scan the fleet and keep batches deployed against a target",
    )
    parser.add_argument("target", nargs="?", default="joesguns", help="Target (default: joesguns)")
    parser.add_argument(
        "extract_fraction",
        nargs="?",
        type=extract_fraction_arg,
        default=0.05,
        help="Fraction of the target's resource taken per batch (default: 0.05)",
    )
    parser.add_argument(
        "poll_multiplier",
        nargs="?",
        type=float,
        default=1.25,
        help="Safety multiplier over the batch window (default: 1.25)",
    )
    parser.add_argument(
        "host_node",
        nargs="?",
        default=DEFAULT_HOST,
        help=f"Node running the manager (default: {DEFAULT_HOST})",
    )
    parser.add_argument(
        "--no-root",
        action="store_true",
        help="Disable automatic access acquisition",
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many poll cycles (default: run until interrupted)",
    )
    parser.add_argument(
        "--time-scale",
        type=float,
        default=1.0,
        help="Simulated seconds per wall-clock second; 0 disables real sleeping",
    )
    parser.add_argument(
        "--kill-all",
        action="store_true",
        help="Terminate every operation thread on the fleet when the manager stops",
    )
    _add_common_arguments(parser)
    return parser


def build_batcher_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smart-batcher",
        description="Deploy ratio-shaped batches across the fleet once",
    )
    parser.add_argument("target", help="Target to work")
    parser.add_argument(
        "extract_fraction",
        nargs="?",
        type=extract_fraction_arg,
        default=0.05,
        help="Fraction of the target's resource taken per batch (default: 0.05)",
    )
    parser.add_argument(
        "--include-home",
        "-H",
        action="store_true",
        help="Also deploy on the host node",
    )
    parser.add_argument(
        "--dry",
        "-n",
        action="store_true",
        help="Plan and report without launching anything",
    )
    parser.add_argument(
        "--save-overrides",
        type=str,
        default=None,
        help="Write current target timings as an overrides JSON file",
    )
    _add_common_arguments(parser)
    return parser


def configure_logging(quiet: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING if quiet else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def simulated_sleep(network: SimulatedNetwork, time_scale: float) -> Callable[[float], None]:
    """Sleep that advances the simulation, optionally in scaled real time."""

    def sleep(seconds: float) -> None:
        network.advance(seconds)
        if time_scale > 0:
            time.sleep(seconds / time_scale)

    return sleep


def _build_network(args: argparse.Namespace, host: str = DEFAULT_HOST):
    network = create_scenario_network(get_scenario(args.scenario), seed=args.seed, host=host)
    oracle = network
    if args.overrides:
        oracle = OverrideTimingOracle(network, load_timing_overrides(args.overrides))
    return network, oracle


def print_summary(summary: CycleSummary) -> None:
    """Print the deployment summary table."""
    data = summary.summary()
    shares = summary.thread_shares()
    print("=" * 60)
    print("Deployment Summary" + (" (dry run)" if summary.dry_run else ""))
    print("=" * 60)
    print(f"Target: {summary.target}")
    if summary.ratio is not None:
        r = summary.ratio
        method = "precise" if r.precise else "estimated"
        print(f"Ratio: e{r.extract}/r{r.replenish}/s{r.stabilize} ({method})")
        print(f"Batch window: {r.batch_window:.2f}s | Timing efficiency: {100 * r.timing_efficiency:.1f}%")
    print(f"Fleet capacity: {summary.fleet_capacity:.0f}")
    print(f"Nodes: {data['deployed']} deployed, {data['skipped']} skipped, "
          f"{data['newly_accessed']} newly accessed")
    for label, count in data["threads"].items():
        print(f"  {label.capitalize():<10} {int(count):>6} ({shares[label.capitalize()]:.1f}%)")
    print(f"  {'Total':<10} {data['total_threads']:>6}")
    if summary.production is not None:
        p = summary.production
        print(f"Expected: {p.batches_per_minute:.2f} batches/min, "
              f"{p.per_second:,.0f}/s, {p.per_hour:,.0f}/hr")


def manager_main(argv: list[str] | None = None) -> int:
    args = build_manager_parser().parse_args(argv)
    configure_logging(args.quiet)

    try:
        network, oracle = _build_network(args, host=args.host_node)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    orchestrator = DeploymentOrchestrator(
        oracle,
        network,
        network,
        batcher_config=BatcherConfig(target=args.target, extract_fraction=args.extract_fraction),
        manager_config=ManagerConfig(
            host_node=args.host_node,
            poll_multiplier=args.poll_multiplier,
            enable_access=not args.no_root,
        ),
        sleep=simulated_sleep(network, args.time_scale),
    )

    try:
        context = orchestrator.run(max_cycles=args.max_cycles)
    except BatcherError as e:
        logger.error("%s", e)
        return 1

    if orchestrator.last_summary is not None:
        print_summary(orchestrator.last_summary)
        if args.summary_out:
            save_summary(orchestrator.last_summary, args.summary_out)
    print(f"Cycles: {context.cycle} | Deploy cycles: {context.deploy_cycles} | "
          f"Extracted: {network.total_extracted:,.0f}")
    if args.kill_all:
        terminated = orchestrator.teardown_all()
        print(f"Terminated {terminated} operation process(es)")
    return 0


def batcher_main(argv: list[str] | None = None) -> int:
    args = build_batcher_parser().parse_args(argv)
    configure_logging(args.quiet)

    try:
        network, oracle = _build_network(args)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    orchestrator = DeploymentOrchestrator(
        oracle,
        network,
        network,
        batcher_config=BatcherConfig(
            target=args.target,
            extract_fraction=args.extract_fraction,
            include_home=args.include_home,
            dry_run=args.dry,
        ),
        sleep=lambda _seconds: None,
    )

    try:
        summary = orchestrator.deploy_once()
    except BatcherError as e:
        logger.error("%s", e)
        return 1
    if summary is None:
        logger.error("No deployment: timing for %s unavailable", args.target)
        return 1

    print_summary(summary)
    if args.summary_out:
        save_summary(summary, args.summary_out)
    if args.save_overrides:
        timings = {
            name: oracle.durations(name)
            for name in network.node_names
            if network.target_exists(name) and network.has_access(name)
        }
        save_timing_overrides(args.save_overrides, timings)
        print(f"Wrote {len(timings)} timing override(s) to {args.save_overrides}")
    return 0


if __name__ == "__main__":
    sys.exit(manager_main())
