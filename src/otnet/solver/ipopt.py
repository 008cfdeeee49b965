"""
Allocation solver with IPOPT

This module hands the spatial allocation problem to IPOPT (Interior Point
OPTimizer) through cyipopt, with exact first and second derivatives and
fixed sparsity patterns.

Installation:
    pip install cyipopt

Or with conda:
    conda install -c conda-forge cyipopt

Usage:
    from otnet.solver import solve_allocation

    solution = solve_allocation(ctx)
    print(solution.summary())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from otnet.allocation.constraints import constraints
from otnet.allocation.hessian import HessianAssembler
from otnet.allocation.jacobian import JacobianAssembler
from otnet.allocation.objective import gradient, objective
from otnet.allocation.recovery import AllocationResults, recover
from otnet.config.models import SolverOptions
from otnet.core.context import ModelContext
from otnet.exceptions import SparsityMismatchError

logger = logging.getLogger(__name__)

try:
    import cyipopt
    IPOPT_AVAILABLE = True
except ImportError:
    IPOPT_AVAILABLE = False
    logger.warning("IPOPT (cyipopt) not available. Install with: pip install cyipopt")

# Solve_Succeeded and Solved_To_Acceptable_Level
CONVERGED_STATUSES = (0, 1)


class AllocationProblem:
    """cyipopt problem object for one model context.

    Patterns are declared once at construction; every Jacobian and
    Hessian call is checked against them.
    """

    def __init__(self, ctx: ModelContext) -> None:
        self.ctx = ctx
        self.jacobian_assembler = JacobianAssembler(ctx)
        self.hessian_assembler = HessianAssembler(ctx)
        self.n_evaluations = 0
        self.iterations = 0

    @property
    def n_variables(self) -> int:
        return self.ctx.layout.n_variables

    @property
    def n_constraints(self) -> int:
        return self.ctx.layout.n_constraints

    def objective(self, x: np.ndarray) -> float:
        return objective(self.ctx, x)

    def gradient(self, x: np.ndarray) -> np.ndarray:
        return gradient(self.ctx, x)

    def constraints(self, x: np.ndarray) -> np.ndarray:
        self.n_evaluations += 1
        if self.n_evaluations % 100 == 0:
            logger.debug(f"Constraint evaluation {self.n_evaluations}")
        return constraints(self.ctx, x)

    def jacobianstructure(self) -> tuple[np.ndarray, np.ndarray]:
        return self.jacobian_assembler.structure()

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        values = self.jacobian_assembler.values(x)
        if values.shape != (self.jacobian_assembler.nnz,):
            raise SparsityMismatchError(
                f"Jacobian produced {values.size} values for {self.jacobian_assembler.nnz} slots"
            )
        return values

    def hessianstructure(self) -> tuple[np.ndarray, np.ndarray]:
        return self.hessian_assembler.structure()

    def hessian(self, x: np.ndarray, lagrange: np.ndarray, obj_factor: float) -> np.ndarray:
        values = self.hessian_assembler.values(x, obj_factor, lagrange)
        if values.shape != (self.hessian_assembler.nnz,):
            raise SparsityMismatchError(
                f"Hessian produced {values.size} values for {self.hessian_assembler.nnz} slots"
            )
        return values

    def intermediate(
        self,
        alg_mod: int,
        iter_count: int,
        obj_value: float,
        inf_pr: float,
        inf_du: float,
        mu: float,
        d_norm: float,
        regularization_size: float,
        alpha_du: float,
        alpha_pr: float,
        ls_trials: int,
    ) -> bool:
        self.iterations = int(iter_count)
        return True


@dataclass
class AllocationSolution:
    """Outcome of an IPOPT run.

    The IPOPT status is reported as-is. ``converged`` is set for an
    optimal (0) or acceptable (1) termination; any other run still carries
    the last iterate and its recovered allocation.
    """

    converged: bool = False
    status: int = -199
    message: str = ""
    iterations: int = 0
    objective: float = float("nan")
    x: np.ndarray = field(default_factory=lambda: np.zeros(0))
    multipliers: np.ndarray = field(default_factory=lambda: np.zeros(0))
    results: AllocationResults | None = None

    def summary(self) -> str:
        """Return a text summary of the solution."""
        lines = [
            "=" * 70,
            "ALLOCATION SOLUTION",
            "=" * 70,
            f"Status:        {'CONVERGED' if self.converged else 'FAILED'} ({self.status})",
            f"Iterations:    {self.iterations}",
            f"Objective:     {self.objective:.6e}",
            f"Message:       {self.message}",
        ]
        if self.results is not None:
            res = self.results
            lines += [
                "",
                "Key Quantities:",
                f"  Welfare:             {res.welfare:15,.6f}",
                f"  Total population:    {float(np.sum(res.Lj)):15,.6f}",
                f"  Total consumption:   {float(np.sum(res.Cj)):15,.6f}",
                f"  Max |edge flow|:     {float(np.max(np.abs(res.Qin), initial=0.0)):15,.6f}",
            ]
        lines.append("=" * 70)
        return "\n".join(lines)


def _decode(message: Any) -> str:
    if isinstance(message, bytes):
        return message.decode("utf-8", errors="replace")
    return str(message)


def solve_allocation(
    ctx: ModelContext,
    x0: np.ndarray | None = None,
    options: SolverOptions | None = None,
) -> AllocationSolution:
    """Solve the allocation problem with IPOPT.

    Args:
        ctx: Model context
        x0: Starting point; the layout's default point when omitted
        options: Solver knobs

    Returns:
        AllocationSolution with the final iterate, multipliers and
        recovered allocation

    Raises:
        ImportError: If cyipopt is not installed
    """
    if not IPOPT_AVAILABLE:
        logger.error("IPOPT not available. Install with: pip install cyipopt")
        raise ImportError("cyipopt not installed")

    options = options or SolverOptions()
    layout = ctx.layout
    x0 = layout.default_initial_point() if x0 is None else np.asarray(x0, dtype=float)
    if x0.shape != (layout.n_variables,):
        raise ValueError(f"Starting point has shape {x0.shape}, expected ({layout.n_variables},)")

    logger.info("=" * 70)
    logger.info("STARTING IPOPT SOLUTION")
    logger.info("=" * 70)

    problem = AllocationProblem(ctx)
    lb, ub = layout.bounds(options)
    cl, cu = layout.constraint_bounds(equality=options.equality_constraints)
    logger.info(f"Number of variables: {problem.n_variables}")
    logger.info(f"Number of constraints: {problem.n_constraints}")
    logger.info(
        f"Jacobian nonzeros: {problem.jacobian_assembler.nnz}, "
        f"Hessian nonzeros: {problem.hessian_assembler.nnz}"
    )

    nlp = cyipopt.Problem(
        n=problem.n_variables,
        m=problem.n_constraints,
        problem_obj=problem,
        lb=lb,
        ub=ub,
        cl=cl,
        cu=cu,
    )
    nlp.add_option("max_iter", options.max_iter)
    nlp.add_option("print_level", options.print_level)
    nlp.add_option("tol", options.tol)
    nlp.add_option("hessian_approximation", options.hessian_approximation)
    if not options.verbose:
        nlp.add_option("sb", "yes")
    for key, value in options.ipopt_options.items():
        nlp.add_option(key, value)

    logger.info("IPOPT options configured")
    logger.info(f"  Tolerance: {options.tol}")
    logger.info(f"  Max iterations: {options.max_iter}")
    logger.info(f"  Hessian: {options.hessian_approximation}")

    x, info = nlp.solve(x0)
    status = int(info.get("status", -199))
    message = _decode(info.get("status_msg", "Unknown"))
    multipliers = np.asarray(info.get("mult_g", np.zeros(problem.n_constraints)), dtype=float)

    solution = AllocationSolution(
        converged=status in CONVERGED_STATUSES,
        status=status,
        message=message,
        iterations=problem.iterations,
        objective=float(info.get("obj_val", objective(ctx, x))),
        x=np.asarray(x, dtype=float),
        multipliers=multipliers,
        results=recover(ctx, x, multipliers),
    )

    logger.info(f"IPOPT finished: {solution.message}")
    logger.info(f"  Status: {status}")
    logger.info(f"  Iterations: {solution.iterations}")
    logger.info(f"  Final objective: {solution.objective:.6e}")
    logger.info(f"  Constraint evaluations: {problem.n_evaluations}")
    if not solution.converged:
        logger.warning("IPOPT did not converge (status %d): %s", status, message)
    return solution
