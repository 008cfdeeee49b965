"""Immutable model context passed to every callback."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from pydantic import BaseModel, Field, model_validator

from otnet.core.layout import DecisionLayout
from otnet.core.parameters import ModelParameters
from otnet.core.topology import Topology

logger = logging.getLogger(__name__)


class ModelContext(BaseModel):
    """Topology, parameters and edge capacities for one solve.

    Attributes:
        topology: Transport network and region membership
        parameters: Economic parameters
        kappa_ex: Per-edge transport efficiency, aligned with topology.edges
        layout: Decision/constraint vector layout
    """

    topology: Topology = Field(..., description="Transport network")
    parameters: ModelParameters = Field(..., description="Economic parameters")
    kappa_ex: np.ndarray = Field(..., description="Per-edge efficiency (E,)")
    layout: DecisionLayout = Field(..., description="Vector layout")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @model_validator(mode="after")
    def validate_consistency(self) -> ModelContext:
        """Cross-check dimensions and run the model-compatibility check."""
        graph, params = self.topology, self.parameters
        if params.n_nodes != graph.n_nodes:
            raise ValueError(
                f"Zjn has {params.n_nodes} rows but the topology has {graph.n_nodes} nodes"
            )
        if params.n_regions != graph.n_regions:
            raise ValueError(
                f"Lr/omegar have {params.n_regions} entries but the topology has "
                f"{graph.n_regions} regions"
            )
        kappa = np.asarray(self.kappa_ex, dtype=float).reshape(-1)
        if kappa.shape != (graph.n_edges,):
            raise ValueError(f"kappa_ex has {kappa.size} entries, expected {graph.n_edges}")
        if np.any(kappa <= 0):
            raise ValueError("kappa_ex must be strictly positive")
        expected = DecisionLayout(
            n_regions=graph.n_regions,
            n_nodes=graph.n_nodes,
            n_goods=params.n_goods,
            n_edges=graph.n_edges,
        )
        if self.layout != expected:
            raise ValueError(f"Layout {self.layout} does not match inputs {expected}")

        params.check_single_good_per_node()

        kappa = kappa.copy()
        kappa.setflags(write=False)
        object.__setattr__(self, "kappa_ex", kappa)
        return self

    @classmethod
    def build(
        cls,
        topology: Topology,
        parameters: ModelParameters,
        kappa: float | np.ndarray | Any = 1.0,
    ) -> ModelContext:
        """Assemble a context, deriving the layout from the inputs.

        Args:
            topology: Transport network
            parameters: Economic parameters
            kappa: Scalar, per-edge vector (E,) or node-pair matrix (J, J)

        Returns:
            Validated, immutable ModelContext

        Raises:
            ModelIncompatibilityError: If the parameters violate the
                single-good-per-node restriction
        """
        kappa_arr = np.asarray(kappa, dtype=float)
        J, E = topology.n_nodes, topology.n_edges
        if kappa_arr.ndim == 0:
            kappa_ex = np.full(E, float(kappa_arr))
        elif kappa_arr.ndim == 2:
            kappa_ex = topology.edge_values(kappa_arr)
        else:
            kappa_ex = kappa_arr.reshape(-1)

        layout = DecisionLayout(
            n_regions=topology.n_regions,
            n_nodes=J,
            n_goods=parameters.n_goods,
            n_edges=E,
        )
        ctx = cls(topology=topology, parameters=parameters, kappa_ex=kappa_ex, layout=layout)
        logger.debug(
            "Built model context: J=%d, N=%d, E=%d, R=%d, %d variables, %d constraints",
            J,
            parameters.n_goods,
            E,
            topology.n_regions,
            layout.n_variables,
            layout.n_constraints,
        )
        return ctx

    @property
    def region(self) -> np.ndarray:
        """Region index of every node."""
        return self.topology.region

    def __repr__(self) -> str:
        """String representation."""
        lay = self.layout
        return (
            f"ModelContext(J={lay.n_nodes}, N={lay.n_goods}, E={lay.n_edges}, "
            f"R={lay.n_regions})"
        )
