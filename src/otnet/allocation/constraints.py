"""Constraint vector of the allocation problem.

Four families are stacked in a fixed order (see
:mod:`otnet.core.layout`):

1. Utility equalization, one row per node::

       Lj * ur[region(j)] - (Cj/alpha)^alpha * (Hj/(1-alpha))^(1-alpha)

2. Final-good availability, one row per node::

       Cj + Apos @ cost(Qin_direct) + Aneg @ cost(Qin_indirect) - Dj

   with the cross-good congestion cost of edge e
   ``cost_e = (sum_n m_n * Q_en^nu)^((beta+1)/nu) / kappa_e`` and ``Dj``
   the CES aggregate of ``Djn``.

3. Flow conservation, one row per node and good::

       Djn + A @ Qin_direct[:, n] - A @ Qin_indirect[:, n] - Zjn * Lj^a

4. Regional labor, one row per region::

       sum_{j in r} Lj - Lr

No bounds checking happens here; positivity is the job of the variable
floors passed to the solver.
"""

from __future__ import annotations

import numpy as np

from otnet.core.context import ModelContext


def utility_bundle(Cj: np.ndarray, Hj: np.ndarray, alpha: float) -> np.ndarray:
    """Cobb-Douglas bundle of traded consumption and housing."""
    return (Cj / alpha) ** alpha * (Hj / (1.0 - alpha)) ** (1.0 - alpha)


def ces_aggregate(Djn: np.ndarray, sigma: float) -> np.ndarray:
    """CES aggregate over goods (axis 1) with elasticity ``sigma``."""
    rho = (sigma - 1.0) / sigma
    return np.sum(Djn**rho, axis=1) ** (1.0 / rho)


def congestion_base(Q: np.ndarray, m: np.ndarray, nu: float) -> np.ndarray:
    """Per-edge power sum ``sum_n m_n * Q_n^nu`` shared by all goods."""
    return np.sum(m[None, :] * Q**nu, axis=1)


def congestion_cost(
    Q: np.ndarray,
    m: np.ndarray,
    nu: float,
    beta: float,
    kappa: np.ndarray,
) -> np.ndarray:
    """Per-edge transport cost in units of the final good."""
    return congestion_base(Q, m, nu) ** ((beta + 1.0) / nu) / kappa


def production(Zjn: np.ndarray, Lj: np.ndarray, a: float) -> np.ndarray:
    """Output of every good at every node, ``Zjn * Lj^a``."""
    return Zjn * Lj[:, None] ** a


def scatter_to_nodes(ends: np.ndarray, values: np.ndarray, n_nodes: int) -> np.ndarray:
    """Sum per-edge values onto the given endpoint of each edge.

    Equivalent to multiplying by the positive (``ends = origin``) or
    negative (``ends = destination``) part of the incidence matrix.
    """
    out = np.zeros((n_nodes,) + values.shape[1:])
    np.add.at(out, ends, values)
    return out


def net_outflow(ctx: ModelContext, Q: np.ndarray) -> np.ndarray:
    """Incidence product ``A @ Q`` for an (E, N) flow matrix."""
    graph = ctx.topology
    J = graph.n_nodes
    return scatter_to_nodes(graph.origin, Q, J) - scatter_to_nodes(graph.destination, Q, J)


def constraints(ctx: ModelContext, x: np.ndarray) -> np.ndarray:
    """Evaluate the stacked constraint vector at ``x``.

    Args:
        ctx: Model context
        x: Decision vector

    Returns:
        Vector of length ``2J + J*N + R``
    """
    layout = ctx.layout
    params = ctx.parameters
    graph = ctx.topology
    blocks = layout.unpack(x)
    J = layout.n_nodes

    cons = np.empty(layout.n_constraints)

    cons[layout.utility] = blocks.Lj * blocks.ur[graph.region] - utility_bundle(
        blocks.Cj, params.Hj, params.alpha
    )

    cost_direct = congestion_cost(blocks.Qin_direct, params.m, params.nu, params.beta, ctx.kappa_ex)
    cost_indirect = congestion_cost(
        blocks.Qin_indirect, params.m, params.nu, params.beta, ctx.kappa_ex
    )
    cons[layout.availability] = (
        blocks.Cj
        + scatter_to_nodes(graph.origin, cost_direct, J)
        + scatter_to_nodes(graph.destination, cost_indirect, J)
        - ces_aggregate(blocks.Djn, params.sigma)
    )

    balance = (
        blocks.Djn
        + net_outflow(ctx, blocks.Qin_direct)
        - net_outflow(ctx, blocks.Qin_indirect)
        - production(params.Zjn, blocks.Lj, params.a)
    )
    cons[layout.flow] = balance.reshape(-1, order="F")

    cons[layout.labor] = graph.location @ blocks.Lj - params.Lr
    return cons
