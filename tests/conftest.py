"""Shared fixtures for otnet tests."""

from __future__ import annotations

import numpy as np
import pytest

from otnet.core import ModelContext, ModelParameters, Topology


def build_context(nu: float = 1.5, beta: float = 1.2) -> ModelContext:
    """Four nodes, four edges, two regions, two goods."""
    graph = Topology(
        n_nodes=4,
        edges=[(0, 1), (1, 2), (2, 3), (0, 2)],
        region=[0, 0, 1, 1],
    )
    params = ModelParameters(
        alpha=0.4,
        a=0.7,
        sigma=3.0,
        nu=nu,
        beta=beta,
        m=[1.0, 2.0],
        Zjn=[[1.0, 0.0], [0.0, 1.0], [0.5, 0.0], [0.0, 0.0]],
        Hj=[1.0, 2.0, 1.5, 1.0],
        Lr=[1.0, 2.0],
        omegar=[1.0, 0.5],
    )
    return ModelContext.build(graph, params, kappa=[1.0, 2.0, 0.5, 1.5])


def interior_point(ctx: ModelContext, seed: int = 0) -> np.ndarray:
    """Random point with every floored variable well inside its domain."""
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.5, 2.0, size=ctx.layout.n_variables)
    x[ctx.layout.ur] = rng.uniform(-1.0, 1.0, size=ctx.layout.n_regions)
    return x


@pytest.fixture
def ctx() -> ModelContext:
    return build_context()


@pytest.fixture
def linear_cost_ctx() -> ModelContext:
    return build_context(nu=1.0, beta=1.0)


@pytest.fixture
def x(ctx: ModelContext) -> np.ndarray:
    return interior_point(ctx)


@pytest.fixture
def make_point():
    """Factory for interior points of any context."""
    return interior_point


@pytest.fixture
def multipliers(ctx: ModelContext) -> np.ndarray:
    rng = np.random.default_rng(1)
    return rng.uniform(-1.0, 1.0, size=ctx.layout.n_constraints)


@pytest.fixture
def closed_ctx() -> ModelContext:
    """One node, one region, one good, no edges."""
    graph = Topology(n_nodes=1)
    params = ModelParameters(
        alpha=0.5,
        a=0.8,
        sigma=5.0,
        Zjn=[[1.5]],
        Hj=[1.0],
        Lr=[2.0],
        omegar=[1.0],
    )
    return ModelContext.build(graph, params)


@pytest.fixture
def two_city_ctx() -> ModelContext:
    """Two immobile cities, one link, the first ten times more productive."""
    graph = Topology.line(2, region=[0, 1])
    params = ModelParameters(
        alpha=0.5,
        a=0.8,
        sigma=5.0,
        nu=1.0,
        beta=1.0,
        Zjn=[[1.0], [0.1]],
        Hj=[1.0, 1.0],
        Lr=[1.0, 1.0],
        omegar=[1.0, 1.0],
    )
    return ModelContext.build(graph, params, kappa=1.0)
