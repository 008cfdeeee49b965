"""Example 2: Solving a Scenario File

This example demonstrates how to:
1. Load a scenario from YAML
2. Solve it with the scenario's solver options
3. Export node and edge tables with pandas
"""

from pathlib import Path

from otnet.config import load_scenario
from otnet.solver import solve_allocation

SCENARIO = Path(__file__).parent / "scenarios" / "grid_two_goods.yaml"


def main():
    """Solve the two-good grid scenario and print its tables."""
    print("=" * 70)
    print("Example 2: Solving a Scenario File")
    print("=" * 70)

    scenario = load_scenario(SCENARIO)
    ctx = scenario.build_context()
    print(f"\nScenario '{scenario.name}': {ctx}")

    solution = solve_allocation(ctx, options=scenario.solver)
    print()
    print(solution.summary())

    print("\nNodes:")
    print(solution.results.node_frame().round(4).to_string())
    print("\nEdges:")
    print(solution.results.edge_frame(ctx).round(4).to_string(index=False))


if __name__ == "__main__":
    main()
