"""Tests for model parameters."""

import numpy as np
import pytest
from pydantic import ValidationError

from otnet.core import ModelParameters
from otnet.exceptions import ModelIncompatibilityError


def _params(**overrides) -> ModelParameters:
    payload = {
        "Zjn": [[1.0], [0.5]],
        "Hj": [1.0, 1.0],
        "Lr": [2.0],
        "omegar": [1.0],
    }
    payload.update(overrides)
    return ModelParameters(**payload)


class TestModelParameters:
    """Tests for ModelParameters validation."""

    def test_defaults(self):
        params = _params()
        assert params.alpha == 0.5
        assert params.a == 0.8
        assert params.sigma == 5.0
        assert params.nu == 1.0
        assert params.beta == 1.0
        assert params.m.tolist() == [1.0]

    def test_dimensions(self):
        params = _params(Zjn=[[1.0, 0.0], [0.0, 2.0], [0.0, 0.0]], Hj=[1.0, 1.0, 1.0])
        assert params.n_nodes == 3
        assert params.n_goods == 2
        assert params.n_regions == 1
        assert params.m.tolist() == [1.0, 1.0]

    def test_vector_productivity_is_one_good(self):
        """A 1-D Zjn is read as a single-good column."""
        params = _params(Zjn=[1.0, 0.5])
        assert params.Zjn.shape == (2, 1)

    def test_sigma_one_rejected(self):
        """The CES aggregator is undefined at sigma = 1."""
        with pytest.raises(ValidationError, match="sigma"):
            _params(sigma=1.0)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"alpha": 1.0},
            {"alpha": 0.0},
            {"nu": 0.5},
            {"beta": -0.1},
            {"Hj": [1.0]},
            {"Hj": [1.0, 0.0]},
            {"Zjn": [[1.0], [-0.5]]},
            {"m": [1.0, 1.0]},
            {"Lr": [1.0, 1.0]},
            {"Lr": [-1.0]},
        ],
    )
    def test_invalid_inputs_rejected(self, overrides):
        with pytest.raises(ValidationError):
            _params(**overrides)

    def test_arrays_are_read_only(self):
        params = _params()
        with pytest.raises(ValueError):
            params.Zjn[0, 0] = 3.0
        with pytest.raises(ValueError):
            params.Lr[0] = 3.0

    def test_input_array_not_aliased(self):
        """Later changes to the caller's array do not leak into the parameters."""
        hj = np.array([1.0, 1.0])
        params = _params(Hj=hj)
        hj[0] = 9.0
        assert params.Hj[0] == 1.0

    def test_single_good_per_node(self):
        _params(Zjn=[[1.0, 0.0], [0.0, 0.0]]).check_single_good_per_node()

        params = _params(Zjn=[[1.0, 0.5], [0.0, 1.0]])
        with pytest.raises(ModelIncompatibilityError, match=r"nodes \[0\]"):
            params.check_single_good_per_node()
