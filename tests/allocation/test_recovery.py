"""Tests for allocation recovery."""

import json

import numpy as np
import pytest

from otnet.allocation import recover


def test_quantities(ctx, x) -> None:
    lay = ctx.layout
    blocks = lay.unpack(x)
    res = recover(ctx, x)

    assert np.allclose(res.Lj, blocks.Lj)
    assert np.allclose(res.cj, blocks.Cj / blocks.Lj)
    assert np.allclose(res.hj, ctx.parameters.Hj / blocks.Lj)
    assert res.welfare == pytest.approx(float(np.sum([1.0, 1.0] * blocks.ur)))
    assert np.allclose(res.Qin, blocks.Qin_direct - blocks.Qin_indirect)
    assert np.allclose(res.Yjn, ctx.parameters.Zjn * blocks.Lj[:, None] ** 0.7)
    assert res.Pjn is None and res.PCj is None


def test_labor_by_good(ctx, x) -> None:
    res = recover(ctx, x)
    assert np.allclose(res.Ljn.sum(axis=1)[:3], res.Lj[:3])
    # node 3 produces nothing
    assert np.all(res.Ljn[3] == 0.0)


def test_bilateral_flows(ctx, x) -> None:
    res = recover(ctx, x)
    J, N = ctx.layout.n_nodes, ctx.layout.n_goods
    assert res.Qjkn.shape == (J, J, N)
    assert np.all(res.Qjkn >= 0.0)
    assert np.allclose(res.net_flows, -res.net_flows.transpose(1, 0, 2))
    assert np.allclose(res.Qjkn - res.Qjkn.transpose(1, 0, 2), res.net_flows)
    for e, (i, k) in enumerate(ctx.topology.edges):
        assert np.allclose(res.net_flows[i, k], res.Qin[e])


def test_empty_node_is_zero_filled(ctx, x) -> None:
    x = x.copy()
    x[ctx.layout.Lj.start] = 0.0
    res = recover(ctx, x)
    assert res.cj[0] == 0.0
    assert res.hj[0] == 0.0
    assert res.uj[0] == 0.0
    assert np.all(np.isfinite(res.uj))


def test_prices_from_flow_multipliers(ctx, x) -> None:
    lay = ctx.layout
    multipliers = np.linspace(0.5, 2.0, lay.n_constraints)
    res = recover(ctx, x, multipliers)
    expected = multipliers[lay.flow].reshape((lay.n_nodes, lay.n_goods), order="F")
    assert np.allclose(res.Pjn, expected)
    sigma = ctx.parameters.sigma
    index = np.sum(expected ** (1.0 - sigma), axis=1) ** (1.0 / (1.0 - sigma))
    assert np.allclose(res.PCj, index)


def test_multiplier_shape_checked(ctx, x) -> None:
    with pytest.raises(ValueError):
        recover(ctx, x, np.ones(2))


def test_node_frame(ctx, x) -> None:
    multipliers = np.ones(ctx.layout.n_constraints)
    frame = recover(ctx, x, multipliers).node_frame()
    assert len(frame) == ctx.layout.n_nodes
    for column in ("Lj", "Cj", "cj", "uj", "PCj", "Yjn_0", "Djn_1", "Pjn_1"):
        assert column in frame.columns


def test_edge_frame(ctx, x) -> None:
    res = recover(ctx, x)
    frame = res.edge_frame(ctx)
    assert len(frame) == ctx.layout.n_edges * ctx.layout.n_goods
    row = frame[(frame["edge"] == 1) & (frame["good"] == 0)].iloc[0]
    assert (row["origin"], row["destination"]) == ctx.topology.edges[1]
    assert row["Qin"] == pytest.approx(res.Qin[1, 0])


def test_save_json(ctx, x, tmp_path) -> None:
    path = tmp_path / "out" / "solution.json"
    recover(ctx, x).save_json(path)
    payload = json.loads(path.read_text())
    assert payload["Pjn"] is None
    assert len(payload["Lj"]) == ctx.layout.n_nodes
    assert isinstance(payload["welfare"], float)
