"""Sparse constraint Jacobian.

The pattern is declared once per context, one named block per
(constraint family, decision block) pair. Every value pass writes the
same blocks in the same order, and each structural slot is written by
exactly one term. Entries that happen to evaluate to zero stay in the
pattern.
"""

from __future__ import annotations

import numpy as np

from otnet.allocation.constraints import ces_aggregate, congestion_base
from otnet.core.context import ModelContext
from otnet.core.sparsity import SparsityPattern


class JacobianAssembler:
    """Declares the Jacobian pattern and fills its values.

    Example:
        >>> assembler = JacobianAssembler(ctx)
        >>> rows, cols = assembler.structure()
        >>> values = assembler.values(x)
        >>> values.shape == rows.shape
        True
    """

    def __init__(self, ctx: ModelContext) -> None:
        self.ctx = ctx
        self.pattern = self._declare(ctx)

    @staticmethod
    def _declare(ctx: ModelContext) -> SparsityPattern:
        lay = ctx.layout
        graph = ctx.topology
        J, N, E = lay.n_nodes, lay.n_goods, lay.n_edges
        nodes = np.arange(J)
        goods = np.arange(N)
        row_avail = lay.availability.start
        row_flow = lay.flow.start
        row_labor = lay.labor.start

        pattern = SparsityPattern((lay.n_constraints, lay.n_variables), exclusive=True)

        # Utility equalization
        pattern.declare("utility/ur", nodes, lay.ur.start + graph.region)
        pattern.declare("utility/Cj", nodes, lay.Cj.start + nodes)
        pattern.declare("utility/Lj", nodes, lay.Lj.start + nodes)

        # Final-good availability
        pattern.declare("availability/Cj", row_avail + nodes, lay.Cj.start + nodes)
        pattern.declare(
            "availability/Djn",
            row_avail + np.tile(nodes, N),
            lay.Djn.start + np.arange(J * N),
        )
        pattern.declare(
            "availability/Qin_direct",
            row_avail + np.tile(graph.origin, N),
            lay.Qin_direct.start + np.arange(E * N),
        )
        pattern.declare(
            "availability/Qin_indirect",
            row_avail + np.tile(graph.destination, N),
            lay.Qin_indirect.start + np.arange(E * N),
        )

        # Flow conservation: both endpoints of every edge, replicated per good
        ends = np.concatenate([graph.origin, graph.destination])
        edges = np.concatenate([np.arange(E), np.arange(E)])
        flow_rows = row_flow + (goods[:, None] * J + ends[None, :]).reshape(-1)
        pattern.declare("flow/Djn", row_flow + np.arange(J * N), lay.Djn.start + np.arange(J * N))
        pattern.declare(
            "flow/Qin_direct",
            flow_rows,
            lay.Qin_direct.start + (goods[:, None] * E + edges[None, :]).reshape(-1),
        )
        pattern.declare(
            "flow/Qin_indirect",
            flow_rows,
            lay.Qin_indirect.start + (goods[:, None] * E + edges[None, :]).reshape(-1),
        )
        pattern.declare("flow/Lj", row_flow + np.arange(J * N), lay.Lj.start + np.tile(nodes, N))

        # Regional labor
        pattern.declare("labor/Lj", row_labor + graph.region, lay.Lj.start + nodes)

        return pattern.freeze()

    @property
    def nnz(self) -> int:
        return self.pattern.nnz

    def structure(self) -> tuple[np.ndarray, np.ndarray]:
        """Row and column index of every structural nonzero."""
        return self.pattern.structure()

    def values(self, x: np.ndarray) -> np.ndarray:
        """Jacobian values at ``x``, aligned with :meth:`structure`."""
        ctx = self.ctx
        params = ctx.parameters
        graph = ctx.topology
        E = ctx.layout.n_edges
        blocks = ctx.layout.unpack(x)
        alpha, sigma, nu, beta = params.alpha, params.sigma, params.nu, params.beta
        pattern = self.pattern
        vals = pattern.new_values()

        # Utility equalization
        bundle_slope = (blocks.Cj / alpha) ** (alpha - 1.0) * (params.Hj / (1.0 - alpha)) ** (
            1.0 - alpha
        )
        pattern.accumulate(vals, "utility/ur", blocks.Lj)
        pattern.accumulate(vals, "utility/Cj", -bundle_slope)
        pattern.accumulate(vals, "utility/Lj", blocks.ur[graph.region])

        # Final-good availability
        Dj = ces_aggregate(blocks.Djn, sigma)
        dD = Dj[:, None] ** (1.0 / sigma) * blocks.Djn ** (-1.0 / sigma)
        pattern.accumulate(vals, "availability/Cj", np.ones(ctx.layout.n_nodes))
        pattern.accumulate(vals, "availability/Djn", -dD.reshape(-1, order="F"))
        exponent = (beta + 1.0) / nu - 1.0
        for name, Q in (
            ("availability/Qin_direct", blocks.Qin_direct),
            ("availability/Qin_indirect", blocks.Qin_indirect),
        ):
            scale = congestion_base(Q, params.m, nu) ** exponent / ctx.kappa_ex
            marginal = (1.0 + beta) * scale[:, None] * params.m[None, :] * Q ** (nu - 1.0)
            pattern.accumulate(vals, name, marginal.reshape(-1, order="F"))

        # Flow conservation
        signs = np.tile(np.concatenate([np.ones(E), -np.ones(E)]), ctx.layout.n_goods)
        pattern.accumulate(vals, "flow/Djn", np.ones(ctx.layout.n_nodes * ctx.layout.n_goods))
        pattern.accumulate(vals, "flow/Qin_direct", signs)
        pattern.accumulate(vals, "flow/Qin_indirect", -signs)
        dY = params.a * params.Zjn * blocks.Lj[:, None] ** (params.a - 1.0)
        pattern.accumulate(vals, "flow/Lj", -dY.reshape(-1, order="F"))

        # Regional labor
        pattern.accumulate(vals, "labor/Lj", np.ones(ctx.layout.n_nodes))
        return vals


_last_assembler: JacobianAssembler | None = None


def assembler_for(ctx: ModelContext) -> JacobianAssembler:
    """Assembler for ``ctx``, reused while the same context is passed in."""
    global _last_assembler
    if _last_assembler is None or _last_assembler.ctx is not ctx:
        _last_assembler = JacobianAssembler(ctx)
    return _last_assembler


def jacobian_pattern(ctx: ModelContext) -> tuple[np.ndarray, np.ndarray]:
    """Fixed Jacobian structure for ``ctx``."""
    return assembler_for(ctx).structure()


def jacobian(ctx: ModelContext, x: np.ndarray) -> np.ndarray:
    """Jacobian values at ``x`` in the order of :func:`jacobian_pattern`."""
    return assembler_for(ctx).values(x)
