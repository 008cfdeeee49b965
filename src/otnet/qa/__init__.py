"""Derivative and sparsity-pattern checks."""

from otnet.qa.derivatives import (
    DerivativeCheckReport,
    DerivativeCheckResult,
    check_gradient,
    check_hessian,
    check_jacobian,
    check_pattern_stability,
    format_report_summary,
    run_derivative_checks,
)

__all__ = [
    "DerivativeCheckResult",
    "DerivativeCheckReport",
    "check_gradient",
    "check_jacobian",
    "check_hessian",
    "check_pattern_stability",
    "format_report_summary",
    "run_derivative_checks",
]
