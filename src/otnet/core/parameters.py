"""Economic parameters of the spatial allocation model.

The parameter set is calibrated upstream and read-only for the whole
solve. Array inputs are coerced to float arrays and locked against
writes once validated.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator

from otnet.exceptions import ModelIncompatibilityError


class ModelParameters(BaseModel):
    """Preferences, technology and population targets.

    Attributes:
        alpha: Cobb-Douglas share of traded consumption in utility
        a: Production elasticity with respect to labor
        sigma: Elasticity of substitution across goods (CES)
        nu: Exponent of the per-good flow power sum in transport costs
        beta: Congestion intensity; transport cost scales with flow^(1+beta)
        m: Per-good weights in the congestion power sum (N,)
        Zjn: Productivity of each good at each node (J, N)
        Hj: Housing / amenity endowment per node (J,)
        Lr: Population target per region (R,)
        omegar: Welfare weight per region (R,)

    Example:
        >>> params = ModelParameters(
        ...     Zjn=[[1.0], [0.5]], Hj=[1.0, 1.0], Lr=[1.0], omegar=[1.0]
        ... )
        >>> params.n_goods
        1
    """

    alpha: float = Field(default=0.5, gt=0, lt=1, description="Cobb-Douglas share")
    a: float = Field(default=0.8, gt=0, description="Production elasticity")
    sigma: float = Field(default=5.0, gt=0, description="CES elasticity")
    nu: float = Field(default=1.0, ge=1, description="Transport-cost exponent")
    beta: float = Field(default=1.0, ge=0, description="Congestion intensity")
    m: np.ndarray | None = Field(default=None, description="Goods weights (N,)")
    Zjn: np.ndarray = Field(..., description="Productivity (J, N)")
    Hj: np.ndarray = Field(..., description="Housing endowment (J,)")
    Lr: np.ndarray = Field(..., description="Regional population targets (R,)")
    omegar: np.ndarray = Field(..., description="Regional welfare weights (R,)")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("m", "Zjn", "Hj", "Lr", "omegar", mode="before")
    @classmethod
    def ensure_numpy_array(cls, v: Any) -> np.ndarray | None:  # noqa: N805
        """Convert input to a float numpy array."""
        if v is None:
            return None
        return np.array(v, dtype=float)

    @field_validator("sigma")
    @classmethod
    def sigma_not_one(cls, v: float) -> float:  # noqa: N805
        """The CES aggregator is undefined at sigma = 1."""
        if np.isclose(v, 1.0):
            raise ValueError("sigma = 1 (Cobb-Douglas limit) is not supported by the CES aggregator")
        return v

    @model_validator(mode="after")
    def validate_shapes(self) -> ModelParameters:
        """Check array dimensions and signs, then lock arrays."""
        zjn = self.Zjn
        if zjn.ndim == 1:
            zjn = zjn[:, None]
        if zjn.ndim != 2:
            raise ValueError(f"Zjn must be a (J, N) matrix, got {zjn.ndim} dimensions")
        if np.any(zjn < 0):
            raise ValueError("Zjn must be non-negative")
        n_nodes, n_goods = zjn.shape

        m = np.ones(n_goods) if self.m is None else self.m.reshape(-1)
        if m.shape != (n_goods,):
            raise ValueError(f"m has {m.size} entries, expected one per good ({n_goods})")
        if np.any(m <= 0):
            raise ValueError("Goods weights m must be positive")

        hj = self.Hj.reshape(-1)
        if hj.shape != (n_nodes,):
            raise ValueError(f"Hj has {hj.size} entries, expected one per node ({n_nodes})")
        if np.any(hj <= 0):
            raise ValueError("Housing endowment Hj must be positive")

        lr = self.Lr.reshape(-1)
        omegar = self.omegar.reshape(-1)
        if lr.shape != omegar.shape:
            raise ValueError(
                f"Lr ({lr.size}) and omegar ({omegar.size}) must have one entry per region"
            )
        if np.any(lr < 0):
            raise ValueError("Regional population targets Lr must be non-negative")

        for name, arr in (("Zjn", zjn), ("m", m), ("Hj", hj), ("Lr", lr), ("omegar", omegar)):
            arr = arr.copy()
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)
        return self

    @property
    def n_nodes(self) -> int:
        """Number of nodes implied by the productivity matrix."""
        return self.Zjn.shape[0]

    @property
    def n_goods(self) -> int:
        """Number of traded goods N."""
        return self.Zjn.shape[1]

    @property
    def n_regions(self) -> int:
        """Number of regions R."""
        return self.Lr.shape[0]

    def check_single_good_per_node(self) -> None:
        """Reject nodes that produce more than one good.

        The hand-coded derivatives assume each location produces at most
        one good with positive productivity.

        Raises:
            ModelIncompatibilityError: If any node has two or more
                productive goods
        """
        producing = np.sum(self.Zjn > 0, axis=1)
        offenders = np.flatnonzero(producing > 1)
        if offenders.size:
            raise ModelIncompatibilityError(
                "Only one good with positive productivity is supported per node; "
                f"nodes {offenders.tolist()} produce {producing[offenders].tolist()} goods"
            )
