"""Finite-difference checks of the analytic derivatives.

Central differences of the objective, the constraints and the Lagrangian
gradient are compared with the analytic gradient, Jacobian and
(transpose-completed) Hessian. Numerically nonzero entries that fall
outside a declared pattern are counted as ``uncovered``; any such entry
fails the check.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable

import numpy as np

from otnet.allocation.constraints import constraints
from otnet.allocation.hessian import HessianAssembler
from otnet.allocation.jacobian import JacobianAssembler
from otnet.allocation.objective import gradient, objective
from otnet.core.context import ModelContext


@dataclass
class DerivativeCheckResult:
    """Result of one derivative comparison."""

    name: str
    passed: bool
    evaluated: int
    max_abs_error: float
    max_rel_error: float
    abs_tol: float
    rel_tol: float
    uncovered: int = 0
    samples: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DerivativeCheckReport:
    """All derivative checks at one point."""

    passed: bool
    checks: list[DerivativeCheckResult]
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "checks": [check.to_dict() for check in self.checks],
            "metadata": self.metadata,
        }

    def save_json(self, path: Path | str) -> None:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(self.to_dict(), indent=2))


def format_report_summary(report: DerivativeCheckReport) -> str:
    """Compact human-readable summary line."""
    status = "PASS" if report.passed else "FAIL"
    parts = [
        f"{check.name}={'ok' if check.passed else 'FAIL'}({check.max_rel_error:.1e})"
        for check in report.checks
    ]
    return f"Derivative QA {status} | " + " ".join(parts)


def _central_difference(
    fn: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    step: float,
) -> np.ndarray:
    """Dense matrix of central differences, one column per variable."""
    x = np.asarray(x, dtype=float)
    base = np.atleast_1d(fn(x))
    out = np.zeros((base.size, x.size))
    for i in range(x.size):
        h = step * max(1.0, abs(x[i]))
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[i] += h
        x_minus[i] -= h
        out[:, i] = (np.atleast_1d(fn(x_plus)) - np.atleast_1d(fn(x_minus))) / (2.0 * h)
    return out


def _compare(
    name: str,
    numeric: np.ndarray,
    analytic: np.ndarray,
    abs_tol: float,
    rel_tol: float,
    mask: np.ndarray | None = None,
    max_samples: int = 5,
) -> DerivativeCheckResult:
    error = np.abs(numeric - analytic)
    rel_error = error / np.maximum(np.abs(analytic), 1.0)
    failing = error > abs_tol + rel_tol * np.abs(analytic)

    uncovered = 0
    if mask is not None:
        outside = (~mask) & (np.abs(numeric) > abs_tol)
        uncovered = int(np.count_nonzero(outside))
        failing |= outside

    samples = [
        {
            "index": [int(i) for i in idx],
            "numeric": float(numeric[idx]),
            "analytic": float(analytic[idx]),
        }
        for idx in zip(*np.nonzero(failing))
    ][:max_samples]

    return DerivativeCheckResult(
        name=name,
        passed=not bool(np.any(failing)),
        evaluated=int(error.size),
        max_abs_error=float(error.max(initial=0.0)),
        max_rel_error=float(rel_error.max(initial=0.0)),
        abs_tol=abs_tol,
        rel_tol=rel_tol,
        uncovered=uncovered,
        samples=samples,
    )


def check_gradient(
    ctx: ModelContext,
    x: np.ndarray,
    step: float = 1e-6,
    abs_tol: float = 1e-6,
    rel_tol: float = 1e-5,
) -> DerivativeCheckResult:
    """Compare the analytic gradient with central differences of the objective."""
    numeric = _central_difference(lambda z: np.array([objective(ctx, z)]), x, step)[0]
    return _compare("gradient", numeric, gradient(ctx, x), abs_tol, rel_tol)


def check_jacobian(
    ctx: ModelContext,
    x: np.ndarray,
    step: float = 1e-6,
    abs_tol: float = 1e-6,
    rel_tol: float = 1e-5,
) -> DerivativeCheckResult:
    """Compare the sparse Jacobian with central differences of the constraints."""
    assembler = JacobianAssembler(ctx)
    analytic = assembler.pattern.to_dense(assembler.values(x))
    mask = np.zeros(assembler.pattern.shape, dtype=bool)
    mask[assembler.pattern.rows, assembler.pattern.cols] = True
    numeric = _central_difference(lambda z: constraints(ctx, z), x, step)
    return _compare("jacobian", numeric, analytic, abs_tol, rel_tol, mask=mask)


def lagrangian_gradient(
    ctx: ModelContext,
    x: np.ndarray,
    multipliers: np.ndarray,
    obj_factor: float = 1.0,
    assembler: JacobianAssembler | None = None,
) -> np.ndarray:
    """Analytic gradient of ``obj_factor * f + multipliers @ c``."""
    assembler = assembler or JacobianAssembler(ctx)
    jac = assembler.pattern.to_dense(assembler.values(x))
    return obj_factor * gradient(ctx, x) + jac.T @ np.asarray(multipliers, dtype=float)


def check_hessian(
    ctx: ModelContext,
    x: np.ndarray,
    multipliers: np.ndarray,
    obj_factor: float = 1.0,
    step: float = 1e-6,
    abs_tol: float = 1e-6,
    rel_tol: float = 1e-5,
) -> DerivativeCheckResult:
    """Compare the completed Hessian with differences of the Lagrangian gradient."""
    hess = HessianAssembler(ctx)
    analytic = hess.pattern.to_dense(hess.values(x, obj_factor, multipliers), symmetric=True)
    mask = np.zeros(hess.pattern.shape, dtype=bool)
    mask[hess.pattern.rows, hess.pattern.cols] = True
    mask |= mask.T

    jac = JacobianAssembler(ctx)
    numeric = _central_difference(
        lambda z: lagrangian_gradient(ctx, z, multipliers, obj_factor, jac), x, step
    )
    return _compare("hessian", numeric, analytic, abs_tol, rel_tol, mask=mask)


def check_pattern_stability(ctx: ModelContext, points: Iterable[np.ndarray]) -> DerivativeCheckResult:
    """Verify that structures are reproducible and values always fill them.

    Fresh assemblers must declare identical structures, and every value
    pass must return exactly one value per declared slot.
    """
    jac_ref = JacobianAssembler(ctx)
    hess_ref = HessianAssembler(ctx)
    rows_j, cols_j = jac_ref.structure()
    rows_h, cols_h = hess_ref.structure()
    multipliers = np.ones(ctx.layout.n_constraints)

    evaluated = 0
    failures: list[dict[str, Any]] = []
    for k, x in enumerate(points):
        jac = JacobianAssembler(ctx)
        hess = HessianAssembler(ctx)
        evaluated += 1
        same_structure = (
            np.array_equal(jac.structure()[0], rows_j)
            and np.array_equal(jac.structure()[1], cols_j)
            and np.array_equal(hess.structure()[0], rows_h)
            and np.array_equal(hess.structure()[1], cols_h)
        )
        sizes_match = (
            jac.values(x).shape == (jac_ref.nnz,)
            and hess.values(x, 1.0, multipliers).shape == (hess_ref.nnz,)
        )
        if not (same_structure and sizes_match):
            failures.append({"point": k, "structure": same_structure, "sizes": sizes_match})

    return DerivativeCheckResult(
        name="pattern_stability",
        passed=not failures,
        evaluated=evaluated,
        max_abs_error=0.0,
        max_rel_error=0.0,
        abs_tol=0.0,
        rel_tol=0.0,
        samples=failures[:5],
    )


def run_derivative_checks(
    ctx: ModelContext,
    x: np.ndarray,
    multipliers: np.ndarray | None = None,
    step: float = 1e-6,
) -> DerivativeCheckReport:
    """Run all derivative checks at ``x``.

    Args:
        ctx: Model context
        x: Interior point (all floored variables well above their floors)
        multipliers: Constraint multipliers for the Hessian check; ones
            when omitted
        step: Relative finite-difference step
    """
    if multipliers is None:
        multipliers = np.ones(ctx.layout.n_constraints)
    checks = [
        check_gradient(ctx, x, step=step),
        check_jacobian(ctx, x, step=step),
        check_hessian(ctx, x, multipliers, step=step),
        check_pattern_stability(ctx, [x]),
    ]
    return DerivativeCheckReport(
        passed=all(check.passed for check in checks),
        checks=checks,
        metadata={
            "n_variables": ctx.layout.n_variables,
            "n_constraints": ctx.layout.n_constraints,
        },
    )
