"""Allocation recovery.

Turns a solved decision vector, and optionally the constraint
multipliers, into economic quantities: consumption, population, welfare,
production, absorption, trade flows and prices.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

from otnet.allocation.constraints import ces_aggregate, production, utility_bundle
from otnet.core.context import ModelContext


def _per_capita(total: np.ndarray, population: np.ndarray) -> np.ndarray:
    """Divide by population, with zero wherever the node is empty."""
    out = np.zeros_like(total, dtype=float)
    populated = population != 0
    out[populated] = total[populated] / population[populated]
    return out


class AllocationResults(BaseModel):
    """Economic allocation recovered from a solution.

    Attributes:
        ur: Utility level of every region (R,)
        Cj: Aggregate traded consumption per node (J,)
        Lj: Population per node (J,)
        cj: Consumption per capita, zero at empty nodes (J,)
        hj: Housing per capita, zero at empty nodes (J,)
        uj: Per-capita welfare at every node (J,)
        welfare: Weighted sum of regional utilities
        Ljn: Labor employed in each good (J, N)
        Yjn: Production (J, N)
        Djn: Domestic absorption (J, N)
        Dj: CES aggregate of absorption (J,)
        Qin: Signed flow per edge and good, positive along the canonical
            orientation (E, N)
        Qjkn: Non-negative directed flow from j to k (J, J, N)
        net_flows: Signed flow from j to k, antisymmetric in (j, k) (J, J, N)
        Pjn: Shadow price of every good at every node (J, N), if multipliers given
        PCj: CES price index per node (J,), if multipliers given
    """

    ur: np.ndarray = Field(..., description="Regional utility")
    Cj: np.ndarray = Field(..., description="Aggregate consumption")
    Lj: np.ndarray = Field(..., description="Population")
    cj: np.ndarray = Field(..., description="Consumption per capita")
    hj: np.ndarray = Field(..., description="Housing per capita")
    uj: np.ndarray = Field(..., description="Welfare per location")
    welfare: float = Field(..., description="Aggregate welfare")
    Ljn: np.ndarray = Field(..., description="Labor by good")
    Yjn: np.ndarray = Field(..., description="Production")
    Djn: np.ndarray = Field(..., description="Domestic absorption")
    Dj: np.ndarray = Field(..., description="Final good availability")
    Qin: np.ndarray = Field(..., description="Signed edge flows")
    Qjkn: np.ndarray = Field(..., description="Directed bilateral flows")
    net_flows: np.ndarray = Field(..., description="Signed bilateral flows")
    Pjn: np.ndarray | None = Field(default=None, description="Prices by good")
    PCj: np.ndarray | None = Field(default=None, description="Price index")

    model_config = {"arbitrary_types_allowed": True}

    def node_frame(self) -> pd.DataFrame:
        """One row per node with scalar node quantities and per-good columns."""
        frame = pd.DataFrame(
            {
                "Lj": self.Lj,
                "Cj": self.Cj,
                "cj": self.cj,
                "hj": self.hj,
                "uj": self.uj,
                "Dj": self.Dj,
            }
        )
        if self.PCj is not None:
            frame["PCj"] = self.PCj
        for n in range(self.Yjn.shape[1]):
            frame[f"Yjn_{n}"] = self.Yjn[:, n]
            frame[f"Djn_{n}"] = self.Djn[:, n]
            if self.Pjn is not None:
                frame[f"Pjn_{n}"] = self.Pjn[:, n]
        frame.index.name = "node"
        return frame

    def edge_frame(self, ctx: ModelContext) -> pd.DataFrame:
        """One row per edge and good with the signed flow."""
        records = []
        for e, (i, k) in enumerate(ctx.topology.edges):
            for n in range(self.Qin.shape[1]):
                records.append({"edge": e, "origin": i, "destination": k, "good": n, "Qin": self.Qin[e, n]})
        return pd.DataFrame.from_records(
            records, columns=["edge", "origin", "destination", "good", "Qin"]
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert results to a JSON-ready dictionary."""
        out: dict[str, Any] = {}
        for name, value in self:
            if isinstance(value, np.ndarray):
                out[name] = value.tolist()
            else:
                out[name] = value
        return out

    def save_json(self, path: Path | str) -> None:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(self.to_dict(), indent=2))


def recover(
    ctx: ModelContext,
    x: np.ndarray,
    multipliers: np.ndarray | None = None,
) -> AllocationResults:
    """Recover the economic allocation from a decision vector.

    Args:
        ctx: Model context
        x: Decision vector
        multipliers: Constraint multipliers; prices are recovered from the
            flow-conservation rows when given

    Returns:
        AllocationResults
    """
    lay = ctx.layout
    params = ctx.parameters
    graph = ctx.topology
    blocks = lay.unpack(x)
    J, N = lay.n_nodes, lay.n_goods

    Lj = blocks.Lj.copy()
    Cj = blocks.Cj.copy()
    cj = _per_capita(Cj, Lj)
    hj = _per_capita(params.Hj, Lj)
    uj = utility_bundle(cj, hj, params.alpha)

    Djn = np.maximum(blocks.Djn, 0.0)
    Qin = blocks.Qin_direct - blocks.Qin_indirect

    Qjkn = np.zeros((J, J, N))
    net_flows = np.zeros((J, J, N))
    Qjkn[graph.origin, graph.destination, :] = np.maximum(Qin, 0.0)
    Qjkn[graph.destination, graph.origin, :] = np.maximum(-Qin, 0.0)
    net_flows[graph.origin, graph.destination, :] = Qin
    net_flows[graph.destination, graph.origin, :] = -Qin

    Pjn = None
    PCj = None
    if multipliers is not None:
        multipliers = np.asarray(multipliers, dtype=float)
        if multipliers.shape != (lay.n_constraints,):
            raise ValueError(
                f"Multiplier vector has shape {multipliers.shape}, expected ({lay.n_constraints},)"
            )
        Pjn = multipliers[lay.flow].reshape((J, N), order="F").copy()
        PCj = np.sum(Pjn ** (1.0 - params.sigma), axis=1) ** (1.0 / (1.0 - params.sigma))

    return AllocationResults(
        ur=blocks.ur.copy(),
        Cj=Cj,
        Lj=Lj,
        cj=cj,
        hj=hj,
        uj=uj,
        welfare=float(np.sum(params.omegar * params.Lr * blocks.ur)),
        Ljn=(params.Zjn > 0) * Lj[:, None],
        Yjn=production(params.Zjn, Lj, params.a),
        Djn=Djn,
        Dj=ces_aggregate(Djn, params.sigma),
        Qin=Qin,
        Qjkn=Qjkn,
        net_flows=net_flows,
        Pjn=Pjn,
        PCj=PCj,
    )
