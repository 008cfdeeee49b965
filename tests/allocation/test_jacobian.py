"""Tests for the sparse constraint Jacobian."""

import numpy as np
import pytest

from otnet.allocation import JacobianAssembler, constraints, jacobian, jacobian_pattern
from otnet.allocation.jacobian import assembler_for


def _numeric_jacobian(ctx, x, step=1e-6):
    out = np.zeros((ctx.layout.n_constraints, x.size))
    for i in range(x.size):
        h = step * max(1.0, abs(x[i]))
        up, down = x.copy(), x.copy()
        up[i] += h
        down[i] -= h
        out[:, i] = (constraints(ctx, up) - constraints(ctx, down)) / (2.0 * h)
    return out


def test_nonzero_count(ctx) -> None:
    lay = ctx.layout
    J, N, E = lay.n_nodes, lay.n_goods, lay.n_edges
    assembler = JacobianAssembler(ctx)
    assert assembler.nnz == 5 * J + 3 * J * N + 6 * E * N


def test_structure_entries_unique(ctx) -> None:
    rows, cols = jacobian_pattern(ctx)
    pairs = set(zip(rows.tolist(), cols.tolist()))
    assert len(pairs) == rows.size
    assert rows.max() < ctx.layout.n_constraints
    assert cols.max() < ctx.layout.n_variables


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_matches_finite_differences(ctx, make_point, seed) -> None:
    x = make_point(ctx, seed)
    assembler = JacobianAssembler(ctx)
    analytic = assembler.pattern.to_dense(assembler.values(x))
    numeric = _numeric_jacobian(ctx, x)
    assert np.allclose(analytic, numeric, rtol=1e-5, atol=1e-6)


def test_linear_cost_matches_finite_differences(linear_cost_ctx, make_point) -> None:
    x = make_point(linear_cost_ctx)
    assembler = JacobianAssembler(linear_cost_ctx)
    analytic = assembler.pattern.to_dense(assembler.values(x))
    assert np.allclose(analytic, _numeric_jacobian(linear_cost_ctx, x), rtol=1e-5, atol=1e-6)


def test_numeric_nonzeros_inside_pattern(ctx, x) -> None:
    rows, cols = jacobian_pattern(ctx)
    mask = np.zeros((ctx.layout.n_constraints, ctx.layout.n_variables), dtype=bool)
    mask[rows, cols] = True
    numeric = _numeric_jacobian(ctx, x)
    assert not np.any((np.abs(numeric) > 1e-8) & ~mask)


def test_structure_independent_of_point(ctx, make_point) -> None:
    """Structure is fixed; every value pass fills exactly nnz slots."""
    assembler = JacobianAssembler(ctx)
    rows, cols = assembler.structure()
    for seed in range(3):
        values = jacobian(ctx, make_point(ctx, seed))
        assert values.shape == (assembler.nnz,)
        fresh_rows, fresh_cols = jacobian_pattern(ctx)
        assert np.array_equal(fresh_rows, rows)
        assert np.array_equal(fresh_cols, cols)


def test_zero_productivity_entries_stay_declared(ctx, x) -> None:
    """Node 3 produces nothing; its production slots are present with value zero."""
    assembler = JacobianAssembler(ctx)
    values = assembler.values(x)
    slots = assembler.pattern.slots("flow/Lj")
    lay = ctx.layout
    node3 = [n * lay.n_nodes + 3 for n in range(lay.n_goods)]
    assert np.all(values[slots[node3]] == 0.0)


def test_isolated_node(closed_ctx) -> None:
    """Without edges the flow blocks are empty but the pattern is well formed."""
    assembler = JacobianAssembler(closed_ctx)
    assert assembler.nnz == 5 + 3
    x = np.array([0.5, 1.0, 1.0, 2.0])
    assert np.allclose(
        assembler.pattern.to_dense(assembler.values(x)),
        _numeric_jacobian(closed_ctx, x),
        rtol=1e-5,
        atol=1e-6,
    )


def test_module_helpers_reuse_pattern(ctx, linear_cost_ctx, x) -> None:
    """Repeated calls with one context share a single declared pattern."""
    first = assembler_for(ctx)
    assert assembler_for(ctx) is first
    assert jacobian_pattern(ctx)[0] is first.pattern.rows
    assert np.array_equal(jacobian(ctx, x), first.values(x))
    assert assembler_for(ctx) is first

    other = assembler_for(linear_cost_ctx)
    assert other is not first
    assert other.ctx is linear_cost_ctx
