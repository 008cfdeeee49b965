"""Tests for the objective and constraint callbacks."""

import numpy as np
import pytest

from otnet.allocation import constraints, gradient, objective
from otnet.allocation.constraints import ces_aggregate, net_outflow, utility_bundle


def test_objective_is_negative_weighted_welfare(ctx, x) -> None:
    ur = x[ctx.layout.ur]
    expected = -(1.0 * 1.0 * ur[0] + 0.5 * 2.0 * ur[1])
    assert objective(ctx, x) == pytest.approx(expected)


def test_gradient_only_on_utility_block(ctx, x) -> None:
    g = gradient(ctx, x)
    assert g.shape == (ctx.layout.n_variables,)
    assert np.allclose(g[ctx.layout.ur], [-1.0, -1.0])
    assert np.count_nonzero(g) == ctx.layout.n_regions


def test_gradient_checks_shape(ctx) -> None:
    with pytest.raises(ValueError):
        gradient(ctx, np.zeros(3))


def test_constraints_by_hand(two_city_ctx) -> None:
    """Hand-computed residuals for two cities joined by one link."""
    #           ur        Cj        Djn       Qd   Qi    Lj
    x = np.array([1.0, 2.0, 1.0, 4.0, 2.0, 3.0, 0.5, 0.25, 1.0, 1.0])
    cons = constraints(two_city_ctx, x)
    lay = two_city_ctx.layout

    assert np.allclose(cons[lay.utility], [-1.0, -2.0])
    # cost = Q^2 / kappa, paid at the origin for direct and destination for indirect flows
    assert np.allclose(cons[lay.availability], [1.0 + 0.25 - 2.0, 4.0 + 0.0625 - 3.0])
    assert np.allclose(cons[lay.flow], [2.0 + 0.5 - 0.25 - 1.0, 3.0 - 0.5 + 0.25 - 0.1])
    assert np.allclose(cons[lay.labor], [0.0, 0.0])


def test_closed_economy_feasible_point(closed_ctx) -> None:
    """A single node consuming its own output satisfies every constraint."""
    params = closed_ctx.parameters
    L = 2.0
    D = params.Zjn[0, 0] * L**params.a
    C = D
    u = utility_bundle(np.array([C]), params.Hj, params.alpha)[0] / L
    x = np.array([u, C, D, L])
    assert np.allclose(constraints(closed_ctx, x), 0.0)


def test_labor_residual(ctx, x) -> None:
    """Labor rows are the regional population gaps."""
    x = x.copy()
    x[ctx.layout.Lj] = [0.25, 0.75, 1.5, 0.5]
    cons = constraints(ctx, x)
    assert np.allclose(cons[ctx.layout.labor], 0.0)

    x[ctx.layout.Lj.start] += 0.1
    assert np.allclose(constraints(ctx, x)[ctx.layout.labor], [0.1, 0.0])


def test_constraint_vector_length(ctx, x) -> None:
    assert constraints(ctx, x).shape == (ctx.layout.n_constraints,)


def test_ces_aggregate_single_good_is_identity() -> None:
    d = np.array([[2.0], [0.5]])
    assert np.allclose(ces_aggregate(d, 3.0), [2.0, 0.5])


def test_ces_aggregate_symmetric_goods() -> None:
    """N equal goods aggregate to d * N^(sigma/(sigma-1))."""
    sigma = 4.0
    d = np.full((1, 3), 2.0)
    assert np.allclose(ces_aggregate(d, sigma), 2.0 * 3.0 ** (sigma / (sigma - 1.0)))


def test_net_outflow_matches_incidence(ctx, x) -> None:
    Q = ctx.layout.unpack(x).Qin_direct
    assert np.allclose(net_outflow(ctx, Q), ctx.topology.incidence @ Q)


def test_flows_cancel_in_aggregate(ctx, x) -> None:
    """Flows move goods between nodes; summed over nodes they net out."""
    blocks = ctx.layout.unpack(x)
    total = net_outflow(ctx, blocks.Qin_direct - blocks.Qin_indirect).sum(axis=0)
    assert np.allclose(total, 0.0)
