"""IPOPT adapter for the allocation problem."""

from otnet.solver.ipopt import (
    IPOPT_AVAILABLE,
    AllocationProblem,
    AllocationSolution,
    solve_allocation,
)

__all__ = [
    "IPOPT_AVAILABLE",
    "AllocationProblem",
    "AllocationSolution",
    "solve_allocation",
]
