# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Common contract for every loss function."""

from abc import ABC, abstractmethod

import torch

from gradlab.tensors import bias_row_gradient, weight_rows_gradient

# Clipping bound for probabilities before taking logs.
EPSILON = 1e-7


class LossFunction(ABC):
    """
    A stateless loss strategy.

    ``parameter_gradient`` returns a matrix shaped like theta: the bias-row
    gradient stacked on top of the feature-row gradients.
    """

    @abstractmethod
    def compute(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        """Scalar loss (0-dim tensor)."""

    @abstractmethod
    def parameter_gradient(
        self,
        features: torch.Tensor,
        y_true: torch.Tensor,
        y_pred: torch.Tensor,
    ) -> torch.Tensor:
        """Gradient with respect to theta, shape ``[features + 1, outputs]``."""

    @abstractmethod
    def prediction_gradient(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        """Gradient with respect to the predictions, shape of ``y_pred``."""

    def uses_logits(self) -> bool:
        """True when ``compute`` expects raw scores instead of probabilities."""
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def stack_parameter_gradient(features: torch.Tensor, errors: torch.Tensor) -> torch.Tensor:
    """``[mean(e); X^T e / n]``: the shared shape of every linear-model gradient."""
    return torch.cat(
        [bias_row_gradient(errors), weight_rows_gradient(features, errors)],
        dim=0,
    )
