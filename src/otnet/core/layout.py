"""Decision vector layout.

The solver sees one flat vector ``x`` made of five contiguous blocks::

    [ ur (R) | Cj (J) | Djn (J*N) | Qin_direct (E*N) | Qin_indirect (E*N) | Lj (J) ]

``Djn`` is stored column-major by good (entry ``n*J + j``) and the two
flow blocks by good (entry ``n*E + e``). Constraint rows follow the same
idea::

    [ utility (J) | availability (J) | flow (J*N, row n*J + j) | labor (R) ]

Direct and indirect flows are two non-negative variables per edge and
good standing in for one signed flow (direct minus indirect). At an
optimum at most one of the pair is away from its floor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from otnet.config.models import SolverOptions


@dataclass(frozen=True)
class DecisionBlocks:
    """Named, reshaped views of a decision vector."""

    ur: np.ndarray
    Cj: np.ndarray
    Djn: np.ndarray
    Qin_direct: np.ndarray
    Qin_indirect: np.ndarray
    Lj: np.ndarray


@dataclass(frozen=True)
class DecisionLayout:
    """Fixed slicing of the decision and constraint vectors."""

    n_regions: int
    n_nodes: int
    n_goods: int
    n_edges: int

    @property
    def ur(self) -> slice:
        return slice(0, self.n_regions)

    @property
    def Cj(self) -> slice:  # noqa: N802
        start = self.ur.stop
        return slice(start, start + self.n_nodes)

    @property
    def Djn(self) -> slice:  # noqa: N802
        start = self.Cj.stop
        return slice(start, start + self.n_nodes * self.n_goods)

    @property
    def Qin_direct(self) -> slice:  # noqa: N802
        start = self.Djn.stop
        return slice(start, start + self.n_edges * self.n_goods)

    @property
    def Qin_indirect(self) -> slice:  # noqa: N802
        start = self.Qin_direct.stop
        return slice(start, start + self.n_edges * self.n_goods)

    @property
    def Lj(self) -> slice:  # noqa: N802
        start = self.Qin_indirect.stop
        return slice(start, start + self.n_nodes)

    @property
    def n_variables(self) -> int:
        """Length of the decision vector."""
        return self.Lj.stop

    # Constraint rows

    @property
    def utility(self) -> slice:
        return slice(0, self.n_nodes)

    @property
    def availability(self) -> slice:
        return slice(self.n_nodes, 2 * self.n_nodes)

    @property
    def flow(self) -> slice:
        start = 2 * self.n_nodes
        return slice(start, start + self.n_nodes * self.n_goods)

    @property
    def labor(self) -> slice:
        start = self.flow.stop
        return slice(start, start + self.n_regions)

    @property
    def n_constraints(self) -> int:
        """Length of the constraint vector."""
        return self.labor.stop

    def unpack(self, x: np.ndarray) -> DecisionBlocks:
        """Slice a decision vector into its named blocks.

        Args:
            x: Decision vector of length ``n_variables``

        Returns:
            DecisionBlocks of read-only views, ``Djn`` as (J, N) and
            flows as (E, N)
        """
        x = np.asarray(x, dtype=float)
        if x.shape != (self.n_variables,):
            raise ValueError(
                f"Decision vector has shape {x.shape}, expected ({self.n_variables},)"
            )
        J, N, E = self.n_nodes, self.n_goods, self.n_edges
        views = {
            "ur": x[self.ur],
            "Cj": x[self.Cj],
            "Djn": x[self.Djn].reshape((J, N), order="F"),
            "Qin_direct": x[self.Qin_direct].reshape((E, N), order="F"),
            "Qin_indirect": x[self.Qin_indirect].reshape((E, N), order="F"),
            "Lj": x[self.Lj],
        }
        for view in views.values():
            view.setflags(write=False)
        return DecisionBlocks(**views)

    def pack(self, blocks: DecisionBlocks) -> np.ndarray:
        """Inverse of :meth:`unpack`."""
        return np.concatenate(
            [
                np.asarray(blocks.ur, dtype=float).reshape(-1),
                np.asarray(blocks.Cj, dtype=float).reshape(-1),
                np.asarray(blocks.Djn, dtype=float).reshape(-1, order="F"),
                np.asarray(blocks.Qin_direct, dtype=float).reshape(-1, order="F"),
                np.asarray(blocks.Qin_indirect, dtype=float).reshape(-1, order="F"),
                np.asarray(blocks.Lj, dtype=float).reshape(-1),
            ]
        )

    def bounds(self, options: SolverOptions | None = None) -> tuple[np.ndarray, np.ndarray]:
        """Variable bounds handed to the solver.

        Utility is free; consumption, absorption, flows and population are
        bounded below by small positive floors and unbounded above.
        """
        consumption_floor = 1e-6 if options is None else options.consumption_floor
        flow_floor = 1e-8 if options is None else options.flow_floor
        labor_floor = 1e-8 if options is None else options.labor_floor

        lb = np.empty(self.n_variables)
        lb[self.ur] = -np.inf
        lb[self.Cj] = consumption_floor
        lb[self.Djn] = consumption_floor
        lb[self.Qin_direct] = flow_floor
        lb[self.Qin_indirect] = flow_floor
        lb[self.Lj] = labor_floor
        ub = np.full(self.n_variables, np.inf)
        return lb, ub

    def constraint_bounds(self, equality: bool = True) -> tuple[np.ndarray, np.ndarray]:
        """Constraint bounds handed to the solver.

        Args:
            equality: If False, utility, availability and flow rows are
                one-sided (``<= 0``); labor rows always stay equalities.
        """
        cl = np.zeros(self.n_constraints)
        cu = np.zeros(self.n_constraints)
        if not equality:
            cl[: self.labor.start] = -np.inf
        return cl, cu

    def default_initial_point(self) -> np.ndarray:
        """Uninformative starting point built from closed-form guesses."""
        consumption = 1e-6
        population = 1.0 / self.n_nodes
        x0 = np.empty(self.n_variables)
        x0[self.ur] = 0.0
        x0[self.Cj] = consumption / population
        x0[self.Djn] = consumption
        x0[self.Qin_direct] = 1e-8
        x0[self.Qin_indirect] = 1e-8
        x0[self.Lj] = population
        return x0
