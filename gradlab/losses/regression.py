# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Regression losses.

  MSE = mean((y_pred - y_true)^2)
  MAE = mean(|y_pred - y_true|)

The parameter gradients drop the constant factor 2 of the squared error,
which matches the usual "half MSE" convention and keeps learning rates
comparable between the two losses.
"""

import torch

from gradlab.losses.base import LossFunction, stack_parameter_gradient


class MeanSquaredError(LossFunction):
    def compute(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        return (y_pred - y_true).square().mean()

    def parameter_gradient(
        self,
        features: torch.Tensor,
        y_true: torch.Tensor,
        y_pred: torch.Tensor,
    ) -> torch.Tensor:
        errors = y_pred - y_true
        return stack_parameter_gradient(features, errors)

    def prediction_gradient(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        return (y_pred - y_true) * 2


class MeanAbsoluteError(LossFunction):
    """
    Sub-gradient form: sign(e) replaces e, so a perfect prediction
    contributes 0 rather than an arbitrary +-1.
    """

    def compute(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        return (y_pred - y_true).abs().mean()

    def parameter_gradient(
        self,
        features: torch.Tensor,
        y_true: torch.Tensor,
        y_pred: torch.Tensor,
    ) -> torch.Tensor:
        sign_errors = torch.sign(y_pred - y_true)
        return stack_parameter_gradient(features, sign_errors)

    def prediction_gradient(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        return torch.sign(y_pred - y_true)
