# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Penalty terms added to the training loss.

Row 0 of theta is the bias row and is never penalized. The models add the
penalty and its gradient unconditionally, so "no regularization" is a real
object that contributes exact zeros rather than a None check at every call
site.
"""

from abc import ABC, abstractmethod

import torch

from gradlab.config.schema import RegularizationConfig
from gradlab.training.exceptions import require


class Regularization(ABC):
    """Penalty on theta plus its gradient (same shape as theta)."""

    @abstractmethod
    def compute(self, theta: torch.Tensor) -> torch.Tensor:
        ...

    @abstractmethod
    def gradient(self, theta: torch.Tensor) -> torch.Tensor:
        ...


class NoRegularization(Regularization):
    def compute(self, theta: torch.Tensor) -> torch.Tensor:
        return torch.zeros((), dtype=theta.dtype)

    def gradient(self, theta: torch.Tensor) -> torch.Tensor:
        return torch.zeros_like(theta)

    def __repr__(self) -> str:
        return "NoRegularization()"


class L2Regularization(Regularization):
    """
    Ridge penalty ``0.5 * lam * sum(theta[1:] ** 2)``.

    The gradient is ``lam * theta`` with the bias row zeroed. A theta with a
    single (bias) row has no weights, so both the penalty and the gradient
    are zero.

    Args:
        lam: Penalty strength, must be >= 0.

    Raises:
        ConfigurationError: If lam is negative.
    """

    def __init__(self, lam: float = 0.0) -> None:
        require(lam >= 0, f"L2 lambda must be >= 0, got {lam}")
        self.lam = float(lam)

    def compute(self, theta: torch.Tensor) -> torch.Tensor:
        weights = theta[1:]
        return 0.5 * self.lam * weights.square().sum()

    def gradient(self, theta: torch.Tensor) -> torch.Tensor:
        grad = self.lam * theta
        grad[0] = 0.0
        return grad

    def __repr__(self) -> str:
        return f"L2Regularization(lam={self.lam})"


def get_regularization(config: RegularizationConfig) -> Regularization:
    """Build the penalty described by a RegularizationConfig."""
    if config.type == "l2":
        return L2Regularization(config.lambda_)
    return NoRegularization()
