"""Configuration models for solver options and scenarios."""

from __future__ import annotations

from typing import Any, Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from otnet.core.context import ModelContext
from otnet.core.parameters import ModelParameters
from otnet.core.topology import Topology
from otnet.exceptions import ConfigurationError


class SolverOptions(BaseModel):
    """Knobs consumed by the IPOPT adapter.

    Attributes:
        max_iter: Maximum IPOPT iterations
        verbose: Print IPOPT progress (print_level 5 instead of 0)
        tol: IPOPT convergence tolerance
        hessian_approximation: "exact" uses the analytic Hessian
        consumption_floor: Lower bound on Cj and Djn
        flow_floor: Lower bound on direct and indirect flows
        labor_floor: Lower bound on Lj
        equality_constraints: Impose every constraint as an equality;
            when False the first three families are one-sided
        ipopt_options: Extra options passed verbatim to IPOPT
    """

    max_iter: int = Field(default=2000, gt=0, description="Maximum iterations")
    verbose: bool = Field(default=False, description="IPOPT console output")
    tol: float = Field(default=1e-8, gt=0, description="Convergence tolerance")
    hessian_approximation: Literal["exact", "limited-memory"] = Field(
        default="exact", description="Hessian mode"
    )
    consumption_floor: float = Field(default=1e-6, gt=0, description="Floor on Cj, Djn")
    flow_floor: float = Field(default=1e-8, gt=0, description="Floor on flows")
    labor_floor: float = Field(default=1e-8, gt=0, description="Floor on Lj")
    equality_constraints: bool = Field(default=True, description="Equality constraints")
    ipopt_options: dict[str, Any] = Field(default_factory=dict, description="Extra IPOPT options")

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def print_level(self) -> int:
        return 5 if self.verbose else 0


class GraphConfig(BaseModel):
    """Network section of a scenario."""

    kind: Literal["line", "square", "edges"] = Field(default="line", description="Graph family")
    n_nodes: int | None = Field(default=None, ge=1, description="Node count (line, edges)")
    width: int | None = Field(default=None, ge=1, description="Grid width (square)")
    height: int | None = Field(default=None, ge=1, description="Grid height (square)")
    edges: list[tuple[int, int]] = Field(default_factory=list, description="Edge list (edges)")
    region: list[int] | None = Field(default=None, description="Region of every node")

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def validate_kind(self) -> GraphConfig:
        if self.kind in ("line", "edges") and self.n_nodes is None:
            raise ValueError(f"graph.n_nodes is required for kind '{self.kind}'")
        if self.kind == "square" and (self.width is None or self.height is None):
            raise ValueError("graph.width and graph.height are required for kind 'square'")
        return self

    def build(self) -> Topology:
        """Construct the topology described by this section."""
        region = None if self.region is None else np.asarray(self.region)
        if self.kind == "line":
            return Topology.line(self.n_nodes, region=region)
        if self.kind == "square":
            return Topology.square(self.width, self.height, region=region)
        return Topology(n_nodes=self.n_nodes, edges=self.edges, region=region)


class ScenarioConfig(BaseModel):
    """A complete allocation scenario: network, parameters and solver knobs.

    Scalar ``Hj``, ``Lr`` and ``omegar`` entries are broadcast to one value
    per node or region.
    """

    name: str = Field(default="scenario", description="Scenario name")
    graph: GraphConfig = Field(..., description="Network section")
    parameters: dict[str, Any] = Field(..., description="ModelParameters fields")
    kappa: float | list[float] | list[list[float]] = Field(
        default=1.0, description="Edge efficiency: scalar, per-edge or node-pair matrix"
    )
    solver: SolverOptions = Field(default_factory=SolverOptions, description="Solver knobs")

    model_config = ConfigDict(extra="forbid")

    def build_parameters(self, topology: Topology) -> ModelParameters:
        """Validate the parameter section against the topology."""
        payload = dict(self.parameters)
        if "Hj" in payload and np.ndim(payload["Hj"]) == 0:
            payload["Hj"] = np.full(topology.n_nodes, float(payload["Hj"]))
        for key in ("Lr", "omegar"):
            if key in payload and np.ndim(payload[key]) == 0:
                payload[key] = np.full(topology.n_regions, float(payload[key]))
        return ModelParameters(**payload)

    def build_context(self) -> ModelContext:
        """Build the immutable model context for this scenario.

        Raises:
            ConfigurationError: If the graph, parameter or kappa sections
                do not describe a valid model
            ModelIncompatibilityError: If a node produces several goods
        """
        try:
            topology = self.graph.build()
            params = self.build_parameters(topology)
            return ModelContext.build(topology, params, np.asarray(self.kappa, dtype=float))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid scenario '{self.name}': {exc}") from exc
