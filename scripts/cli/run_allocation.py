#!/usr/bin/env python3
"""
Solve a spatial allocation scenario.

This script loads a scenario YAML file, optionally checks the analytic
derivatives against finite differences, solves with IPOPT and reports
the recovered allocation.

Usage:
    python run_allocation.py examples/scenarios/two_cities.yaml
    python run_allocation.py scenario.yaml --check-derivatives
    python run_allocation.py scenario.yaml --save-solution output/solution.json
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

import numpy as np

from otnet.config import load_scenario
from otnet.exceptions import OTNetError
from otnet.qa import format_report_summary, run_derivative_checks
from otnet.solver import solve_allocation


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def main():
    parser = argparse.ArgumentParser(
        description="Solve a spatial allocation scenario with IPOPT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Solve a scenario
  python run_allocation.py examples/scenarios/two_cities.yaml

  # Check derivatives first, then solve with more iterations
  python run_allocation.py scenario.yaml --check-derivatives --max-iter 5000

  # Save allocation tables
  python run_allocation.py scenario.yaml --save-nodes output/nodes.csv --save-edges output/edges.csv
        """,
    )

    parser.add_argument(
        "scenario",
        type=Path,
        help="Path to scenario YAML file",
    )
    parser.add_argument(
        "--max-iter",
        type=int,
        default=None,
        help="Override the scenario's maximum IPOPT iterations",
    )
    parser.add_argument(
        "--check-derivatives",
        action="store_true",
        help="Run finite-difference derivative checks before solving",
    )
    parser.add_argument(
        "--save-solution",
        type=Path,
        default=None,
        help="Save recovered allocation to JSON file",
    )
    parser.add_argument(
        "--save-nodes",
        type=Path,
        default=None,
        help="Save per-node allocation table to CSV",
    )
    parser.add_argument(
        "--save-edges",
        type=Path,
        default=None,
        help="Save per-edge flow table to CSV",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose logging and IPOPT output",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        scenario = load_scenario(args.scenario)
        ctx = scenario.build_context()
    except OTNetError as exc:
        print(f"✗ {exc}")
        return 2

    options = scenario.solver
    overrides = {}
    if args.max_iter is not None:
        overrides["max_iter"] = args.max_iter
    if args.verbose:
        overrides["verbose"] = True
    if overrides:
        options = options.model_copy(update=overrides)

    print("=" * 70)
    print(f"SCENARIO {scenario.name}")
    print("=" * 70)
    print(ctx)
    print()

    if args.check_derivatives:
        rng = np.random.default_rng(0)
        x = ctx.layout.default_initial_point()
        x = x + rng.uniform(0.5, 1.5, size=x.size)
        report = run_derivative_checks(ctx, x)
        print(format_report_summary(report))
        if not report.passed:
            print("✗ Derivative checks failed. Aborting before solve.")
            return 2

    try:
        solution = solve_allocation(ctx, options=options)
    except ImportError as exc:
        print(f"✗ {exc}. Install with: pip install cyipopt")
        return 2

    print()
    print(solution.summary())
    print()

    results = solution.results
    if args.save_solution:
        results.save_json(args.save_solution)
        print(f"Saved solution: {args.save_solution}")
    if args.save_nodes:
        args.save_nodes.parent.mkdir(parents=True, exist_ok=True)
        results.node_frame().to_csv(args.save_nodes)
        print(f"Saved node table: {args.save_nodes}")
    if args.save_edges:
        args.save_edges.parent.mkdir(parents=True, exist_ok=True)
        results.edge_frame(ctx).to_csv(args.save_edges, index=False)
        print(f"Saved edge table: {args.save_edges}")

    return 0 if solution.converged else 1


if __name__ == "__main__":
    sys.exit(main())
