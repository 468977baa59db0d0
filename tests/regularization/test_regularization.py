# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the penalty terms. The bias row must never be penalized."""

import pytest
import torch

from gradlab.config.schema import RegularizationConfig
from gradlab.regularization.core import L2Regularization, NoRegularization, get_regularization
from gradlab.tensors import DTYPE
from gradlab.training.exceptions import ConfigurationError


class TestL2Regularization:
    def test_penalty_skips_bias_row(self) -> None:
        theta = torch.tensor([[1.0], [2.0]], dtype=DTYPE)
        assert L2Regularization(0.1).compute(theta).item() == pytest.approx(0.2)

    def test_gradient_zeroes_bias_row(self) -> None:
        theta = torch.tensor([[1.0, -1.0], [2.0, 4.0]], dtype=DTYPE)
        gradient = L2Regularization(0.5).gradient(theta)
        assert torch.allclose(gradient, torch.tensor([[0.0, 0.0], [1.0, 2.0]], dtype=DTYPE))

    def test_gradient_does_not_touch_theta(self) -> None:
        theta = torch.tensor([[1.0], [2.0]], dtype=DTYPE)
        L2Regularization(0.5).gradient(theta)
        assert theta[0, 0].item() == 1.0

    def test_bias_only_theta_has_no_penalty(self) -> None:
        theta = torch.tensor([[3.0]], dtype=DTYPE)
        regularization = L2Regularization(1.0)
        assert regularization.compute(theta).item() == 0.0
        assert regularization.gradient(theta).item() == 0.0

    def test_negative_lambda_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            L2Regularization(-0.1)

    @pytest.mark.parametrize("scale", [-3.0, -0.5, 0.0, 1.0, 2.5])
    def test_gradient_is_linear(self, scale: float) -> None:
        theta = torch.tensor([[0.7, -1.2], [2.0, 0.5], [-4.0, 3.0]], dtype=DTYPE)
        regularization = L2Regularization(0.3)
        assert torch.allclose(
            regularization.gradient(scale * theta), scale * regularization.gradient(theta)
        )

    @pytest.mark.parametrize("scale", [-3.0, -0.5, 0.0, 1.0, 2.5])
    def test_penalty_scales_quadratically(self, scale: float) -> None:
        theta = torch.tensor([[0.7, -1.2], [2.0, 0.5], [-4.0, 3.0]], dtype=DTYPE)
        regularization = L2Regularization(0.3)
        assert regularization.compute(scale * theta).item() == pytest.approx(
            scale**2 * regularization.compute(theta).item()
        )


class TestNoRegularization:
    def test_contributes_zeros(self) -> None:
        theta = torch.tensor([[1.0], [2.0]], dtype=DTYPE)
        regularization = NoRegularization()
        assert regularization.compute(theta).item() == 0.0
        assert torch.equal(regularization.gradient(theta), torch.zeros_like(theta))


class TestFactory:
    def test_l2_from_config(self) -> None:
        config = RegularizationConfig.model_validate({"type": "l2", "lambda": 0.3})
        regularization = get_regularization(config)
        assert isinstance(regularization, L2Regularization)
        assert regularization.lam == 0.3

    def test_none_from_config(self) -> None:
        assert isinstance(get_regularization(RegularizationConfig()), NoRegularization)
