"""Tests for the immutable model context."""

import numpy as np
import pytest
from pydantic import ValidationError

from otnet.core import ModelContext, ModelParameters, Topology
from otnet.exceptions import ModelIncompatibilityError


def _params(zjn, regions=1) -> ModelParameters:
    zjn = np.asarray(zjn, dtype=float)
    return ModelParameters(
        Zjn=zjn,
        Hj=np.ones(zjn.shape[0]),
        Lr=np.ones(regions),
        omegar=np.ones(regions),
    )


class TestModelContext:
    """Tests for ModelContext.build and validation."""

    def test_layout_derived_from_inputs(self, ctx):
        lay = ctx.layout
        assert (lay.n_regions, lay.n_nodes, lay.n_goods, lay.n_edges) == (2, 4, 2, 4)
        assert lay.n_variables == 2 + 4 + 8 + 8 + 8 + 4
        assert lay.n_constraints == 4 + 4 + 8 + 2
        assert ctx.region.tolist() == [0, 0, 1, 1]

    def test_scalar_kappa(self):
        graph = Topology.line(3)
        ctx = ModelContext.build(graph, _params([[1.0], [1.0], [1.0]]), kappa=2.5)
        assert ctx.kappa_ex.tolist() == [2.5, 2.5]

    def test_matrix_kappa(self):
        graph = Topology.line(3)
        kappa = np.array([[0.0, 2.0, 0.0], [2.0, 0.0, 4.0], [0.0, 4.0, 0.0]])
        ctx = ModelContext.build(graph, _params([[1.0], [1.0], [1.0]]), kappa=kappa)
        assert ctx.kappa_ex.tolist() == [2.0, 4.0]

    def test_kappa_must_be_positive(self):
        graph = Topology.line(3)
        with pytest.raises(ValidationError, match="strictly positive"):
            ModelContext.build(graph, _params([[1.0], [1.0], [1.0]]), kappa=[1.0, 0.0])

    def test_kappa_length_checked(self):
        graph = Topology.line(3)
        with pytest.raises(ValidationError, match="kappa_ex"):
            ModelContext.build(graph, _params([[1.0], [1.0], [1.0]]), kappa=[1.0, 1.0, 1.0])

    def test_node_count_mismatch(self):
        graph = Topology.line(3)
        with pytest.raises(ValidationError, match="rows"):
            ModelContext.build(graph, _params([[1.0], [1.0]]))

    def test_region_count_mismatch(self):
        graph = Topology.line(2, region=[0, 1])
        with pytest.raises(ValidationError, match="regions"):
            ModelContext.build(graph, _params([[1.0], [1.0]], regions=1))

    def test_multi_good_node_rejected(self):
        """Nodes producing two goods are rejected before any callback runs."""
        graph = Topology.line(2)
        with pytest.raises(ModelIncompatibilityError):
            ModelContext.build(graph, _params([[1.0, 1.0], [0.0, 1.0]]))

    def test_context_immutable(self, ctx):
        with pytest.raises(ValidationError):
            ctx.kappa_ex = np.ones(4)
        with pytest.raises(ValueError):
            ctx.kappa_ex[0] = 3.0

    def test_repr(self, ctx):
        assert repr(ctx) == "ModelContext(J=4, N=2, E=4, R=2)"
