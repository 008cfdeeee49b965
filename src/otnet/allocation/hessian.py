"""Lower-triangular Hessian of the Lagrangian.

The objective is linear, so every second derivative comes from the
constraints, weighted by their multipliers:

- ``(Lj, ur)``: the bilinear utility term, weighted by the utility
  multiplier of node j.
- ``Cj`` diagonal: curvature of the Cobb-Douglas bundle.
- ``Djn``: a dense lower N x N block per node from the CES aggregate,
  weighted by the availability multiplier.
- ``Qin_direct`` / ``Qin_indirect``: a dense lower N x N block per edge
  from the congestion cost, weighted by the availability multiplier of
  the endpoint paying the cost. The diagonal term vanishes when
  ``nu == 1`` but stays in the pattern.
- ``Lj`` diagonal: curvature of production, weighted by the flow
  multipliers and summed over goods.

Diagonal and cross terms of the dense blocks land in shared slots and are
added, never assigned.
"""

from __future__ import annotations

import numpy as np

from otnet.allocation.constraints import ces_aggregate, congestion_base
from otnet.core.context import ModelContext
from otnet.core.sparsity import SparsityPattern


def _lower_pairs(n_goods: int) -> tuple[np.ndarray, np.ndarray]:
    """Good pairs (n, m) with n >= m, row-major."""
    rows, cols = np.tril_indices(n_goods)
    return rows, cols


class HessianAssembler:
    """Declares the Hessian pattern and fills its values."""

    def __init__(self, ctx: ModelContext) -> None:
        self.ctx = ctx
        self._pair_n, self._pair_m = _lower_pairs(ctx.layout.n_goods)
        self.pattern = self._declare(ctx, self._pair_n, self._pair_m)

    @staticmethod
    def _declare(ctx: ModelContext, pair_n: np.ndarray, pair_m: np.ndarray) -> SparsityPattern:
        lay = ctx.layout
        J, N, E = lay.n_nodes, lay.n_goods, lay.n_edges
        nodes = np.arange(J)
        edge_ids = np.arange(E)
        n_var = lay.n_variables

        pattern = SparsityPattern((n_var, n_var), lower_triangular=True, exclusive=False)

        pattern.declare("Lj/ur", lay.Lj.start + nodes, lay.ur.start + ctx.topology.region)
        pattern.declare("Cj/Cj", lay.Cj.start + nodes, lay.Cj.start + nodes)

        diag_D = lay.Djn.start + np.arange(J * N)
        pattern.declare("Djn/diag", diag_D, diag_D)
        pattern.declare(
            "Djn/cross",
            lay.Djn.start + (pair_n[:, None] * J + nodes[None, :]).reshape(-1),
            lay.Djn.start + (pair_m[:, None] * J + nodes[None, :]).reshape(-1),
        )

        for name, block in (("Qin_direct", lay.Qin_direct), ("Qin_indirect", lay.Qin_indirect)):
            diag_Q = block.start + np.arange(E * N)
            pattern.declare(f"{name}/diag", diag_Q, diag_Q)
            pattern.declare(
                f"{name}/cross",
                block.start + (pair_n[:, None] * E + edge_ids[None, :]).reshape(-1),
                block.start + (pair_m[:, None] * E + edge_ids[None, :]).reshape(-1),
            )

        pattern.declare("Lj/Lj", lay.Lj.start + nodes, lay.Lj.start + nodes)
        return pattern.freeze()

    @property
    def nnz(self) -> int:
        return self.pattern.nnz

    def structure(self) -> tuple[np.ndarray, np.ndarray]:
        """Row and column index of every structural nonzero (row >= col)."""
        return self.pattern.structure()

    def values(self, x: np.ndarray, obj_factor: float, multipliers: np.ndarray) -> np.ndarray:
        """Hessian of ``obj_factor * f + multipliers @ c`` at ``x``.

        Args:
            x: Decision vector
            obj_factor: Objective weight (unused, the objective is linear)
            multipliers: One multiplier per constraint row

        Returns:
            Values aligned with :meth:`structure`
        """
        ctx = self.ctx
        lay = ctx.layout
        params = ctx.parameters
        graph = ctx.topology
        J, N = lay.n_nodes, lay.n_goods
        alpha, sigma, nu, beta, a = params.alpha, params.sigma, params.nu, params.beta, params.a

        multipliers = np.asarray(multipliers, dtype=float)
        if multipliers.shape != (lay.n_constraints,):
            raise ValueError(
                f"Multiplier vector has shape {multipliers.shape}, expected ({lay.n_constraints},)"
            )
        blocks = lay.unpack(x)
        omega = multipliers[lay.utility]
        lam = multipliers[lay.availability]
        Pjn = multipliers[lay.flow].reshape((J, N), order="F")

        pattern = self.pattern
        vals = pattern.new_values()

        pattern.accumulate(vals, "Lj/ur", omega)

        HC = (
            -omega
            * ((alpha - 1.0) / alpha)
            * (blocks.Cj / alpha) ** (alpha - 2.0)
            * (params.Hj / (1.0 - alpha)) ** (1.0 - alpha)
        )
        pattern.accumulate(vals, "Cj/Cj", HC)

        # CES: d2Dj/dDjn dDjm = (1/sigma) Dj^((2-sigma)/sigma) (Djn Djm)^(-1/sigma)
        #                      - delta_nm (1/sigma) Dj^(1/sigma) Djn^(-1/sigma-1)
        Djn = blocks.Djn
        Dj = ces_aggregate(Djn, sigma)
        HD_diag = (lam / sigma * Dj ** (1.0 / sigma))[:, None] * Djn ** (-1.0 / sigma - 1.0)
        pattern.accumulate(vals, "Djn/diag", HD_diag.reshape(-1, order="F"))
        weighted = Djn ** (-1.0 / sigma)
        coef_D = -lam / sigma * Dj ** ((2.0 - sigma) / sigma)
        HD_cross = coef_D[None, :] * weighted[:, self._pair_n].T * weighted[:, self._pair_m].T
        pattern.accumulate(vals, "Djn/cross", HD_cross.reshape(-1))

        # Congestion cost of each edge is paid at one endpoint
        power = (beta + 1.0) / nu
        for name, Q, payer in (
            ("Qin_direct", blocks.Qin_direct, graph.origin),
            ("Qin_indirect", blocks.Qin_indirect, graph.destination),
        ):
            base = congestion_base(Q, params.m, nu)
            weight = lam[payer] / ctx.kappa_ex
            if nu > 1.0:
                coef_diag = (1.0 + beta) * (nu - 1.0) * weight * base ** (power - 1.0)
                HQ_diag = coef_diag[:, None] * params.m[None, :] * Q ** (nu - 2.0)
            else:
                HQ_diag = np.zeros_like(Q)
            pattern.accumulate(vals, f"{name}/diag", HQ_diag.reshape(-1, order="F"))

            coef_cross = (1.0 + beta) * (power - 1.0) * nu * weight * base ** (power - 2.0)
            slope = params.m[None, :] * Q ** (nu - 1.0)
            HQ_cross = coef_cross[None, :] * slope[:, self._pair_n].T * slope[:, self._pair_m].T
            pattern.accumulate(vals, f"{name}/cross", HQ_cross.reshape(-1))

        HLL = -a * (a - 1.0) * np.sum(Pjn * params.Zjn, axis=1) * blocks.Lj ** (a - 2.0)
        pattern.accumulate(vals, "Lj/Lj", HLL)
        return vals


_last_assembler: HessianAssembler | None = None


def assembler_for(ctx: ModelContext) -> HessianAssembler:
    """Assembler for ``ctx``, reused while the same context is passed in."""
    global _last_assembler
    if _last_assembler is None or _last_assembler.ctx is not ctx:
        _last_assembler = HessianAssembler(ctx)
    return _last_assembler


def hessian_pattern(ctx: ModelContext) -> tuple[np.ndarray, np.ndarray]:
    """Fixed lower-triangular Hessian structure for ``ctx``."""
    return assembler_for(ctx).structure()


def hessian(
    ctx: ModelContext,
    x: np.ndarray,
    obj_factor: float,
    multipliers: np.ndarray,
) -> np.ndarray:
    """Hessian values in the order of :func:`hessian_pattern`."""
    return assembler_for(ctx).values(x, obj_factor, multipliers)
