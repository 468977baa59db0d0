# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Loss values and hand-derived gradients on inputs small enough to check by hand.
"""

import math

import pytest
import torch

from gradlab.losses.base import EPSILON
from gradlab.losses.classification import (
    BinaryCrossentropy,
    BinaryCrossentropyLogits,
    CategoricalCrossentropy,
    CategoricalCrossentropyLogits,
)
from gradlab.losses.registry import LOSS_FUNCTIONS, get_loss_function
from gradlab.losses.regression import MeanAbsoluteError, MeanSquaredError
from gradlab.tensors import DTYPE
from gradlab.training.exceptions import ConfigurationError


def _t(rows: list[list[float]]) -> torch.Tensor:
    return torch.tensor(rows, dtype=DTYPE)


class TestMeanSquaredError:
    def test_compute(self) -> None:
        loss = MeanSquaredError().compute(_t([[1.0], [2.0]]), _t([[2.0], [4.0]]))
        assert loss.item() == pytest.approx(2.5)

    def test_parameter_gradient_stacks_bias_and_weights(self) -> None:
        X = _t([[1.0], [2.0]])
        gradient = MeanSquaredError().parameter_gradient(X, _t([[1.0], [2.0]]), _t([[2.0], [4.0]]))
        # errors [1, 2]: bias mean 1.5, weight (1*1 + 2*2) / 2
        assert torch.allclose(gradient, _t([[1.5], [2.5]]))

    def test_gradient_shape_matches_theta(self) -> None:
        X = torch.zeros((5, 3), dtype=DTYPE)
        y = torch.zeros((5, 2), dtype=DTYPE)
        gradient = MeanSquaredError().parameter_gradient(X, y, y + 1)
        assert gradient.shape == (4, 2)

    def test_prediction_gradient(self) -> None:
        gradient = MeanSquaredError().prediction_gradient(_t([[1.0]]), _t([[3.0]]))
        assert gradient.item() == pytest.approx(4.0)


class TestMeanAbsoluteError:
    def test_compute(self) -> None:
        loss = MeanAbsoluteError().compute(_t([[1.0], [2.0]]), _t([[2.0], [4.0]]))
        assert loss.item() == pytest.approx(1.5)

    def test_prediction_gradient_is_sign(self) -> None:
        gradient = MeanAbsoluteError().prediction_gradient(
            _t([[1.0], [1.0], [1.0]]), _t([[3.0], [1.0], [-2.0]])
        )
        assert gradient.flatten().tolist() == [1.0, 0.0, -1.0]

    def test_parameter_gradient_uses_sign_of_error(self) -> None:
        X = _t([[2.0], [4.0]])
        gradient = MeanAbsoluteError().parameter_gradient(X, _t([[0.0], [0.0]]), _t([[10.0], [-5.0]]))
        # signs [1, -1]: bias 0, weight (2 - 4) / 2
        assert torch.allclose(gradient, _t([[0.0], [-1.0]]))


class TestBinaryCrossentropy:
    def test_half_probability_costs_log_two(self) -> None:
        loss = BinaryCrossentropy().compute(_t([[0.0], [1.0]]), _t([[0.5], [0.5]]))
        assert loss.item() == pytest.approx(math.log(2.0))

    def test_extreme_probabilities_are_clipped(self) -> None:
        loss = BinaryCrossentropy().compute(_t([[1.0]]), _t([[0.0]]))
        assert math.isfinite(loss.item())
        assert loss.item() == pytest.approx(-math.log(EPSILON), rel=1e-6)

    def test_prediction_gradient_is_finite_at_bounds(self) -> None:
        gradient = BinaryCrossentropy().prediction_gradient(_t([[1.0], [0.0]]), _t([[0.0], [1.0]]))
        assert torch.isfinite(gradient).all()

    def test_parameter_gradient_is_probability_error(self) -> None:
        X = _t([[1.0], [3.0]])
        gradient = BinaryCrossentropy().parameter_gradient(X, _t([[1.0], [0.0]]), _t([[0.5], [0.5]]))
        # errors [-0.5, 0.5]: bias 0, weight (-0.5 + 1.5) / 2
        assert torch.allclose(gradient, _t([[0.0], [0.5]]))


class TestBinaryCrossentropyLogits:
    def test_matches_probability_form(self) -> None:
        logits = _t([[-2.0], [0.5], [3.0]])
        y = _t([[0.0], [1.0], [1.0]])
        from_logits = BinaryCrossentropyLogits().compute(y, logits)
        from_probs = BinaryCrossentropy().compute(y, torch.sigmoid(logits))
        assert from_logits.item() == pytest.approx(from_probs.item(), rel=1e-6)

    def test_extreme_logits_do_not_overflow(self) -> None:
        loss = BinaryCrossentropyLogits().compute(_t([[0.0]]), _t([[1000.0]]))
        assert loss.item() == pytest.approx(1000.0)

    def test_uses_logits(self) -> None:
        assert BinaryCrossentropyLogits().uses_logits()
        assert not BinaryCrossentropy().uses_logits()


class TestCategoricalCrossentropy:
    def test_uniform_probabilities(self) -> None:
        y = _t([[1.0, 0.0], [0.0, 1.0]])
        loss = CategoricalCrossentropy().compute(y, _t([[0.5, 0.5], [0.5, 0.5]]))
        assert loss.item() == pytest.approx(math.log(2.0))

    def test_zero_probability_is_clipped(self) -> None:
        loss = CategoricalCrossentropy().compute(_t([[1.0, 0.0]]), _t([[0.0, 1.0]]))
        assert math.isfinite(loss.item())

    def test_logits_match_softmax_form(self) -> None:
        y = _t([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
        logits = _t([[2.0, 1.0, -1.0], [0.0, 0.5, 1.5]])
        from_logits = CategoricalCrossentropyLogits().compute(y, logits)
        from_probs = CategoricalCrossentropy().compute(y, torch.softmax(logits, dim=1))
        assert from_logits.item() == pytest.approx(from_probs.item(), rel=1e-6)

    def test_parameter_gradient_shape(self) -> None:
        X = torch.ones((4, 2), dtype=DTYPE)
        y = torch.zeros((4, 3), dtype=DTYPE)
        gradient = CategoricalCrossentropy().parameter_gradient(X, y, y + 1 / 3)
        assert gradient.shape == (3, 3)


class TestRegistry:
    @pytest.mark.parametrize("name", sorted(LOSS_FUNCTIONS))
    def test_every_name_builds_its_class(self, name: str) -> None:
        assert isinstance(get_loss_function(name), LOSS_FUNCTIONS[name])

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown loss function"):
            get_loss_function("hinge")
