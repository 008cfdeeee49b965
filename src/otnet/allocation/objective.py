"""Planner objective and its gradient.

The planner maximizes the weighted sum of regional utilities,
``sum_r omegar_r * Lr_r * ur_r``. The solver minimizes, so both functions
return the negated quantity.
"""

from __future__ import annotations

import numpy as np

from otnet.core.context import ModelContext


def objective(ctx: ModelContext, x: np.ndarray) -> float:
    """Negative weighted regional welfare."""
    ur = np.asarray(x, dtype=float)[ctx.layout.ur]
    params = ctx.parameters
    return -float(np.sum(params.omegar * params.Lr * ur))


def gradient(ctx: ModelContext, x: np.ndarray) -> np.ndarray:
    """Constant gradient: ``-omegar * Lr`` on the utility block, zero elsewhere."""
    layout = ctx.layout
    if np.shape(x) != (layout.n_variables,):
        raise ValueError(
            f"Decision vector has shape {np.shape(x)}, expected ({layout.n_variables},)"
        )
    g = np.zeros(layout.n_variables)
    g[layout.ur] = -ctx.parameters.omegar * ctx.parameters.Lr
    return g
