# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Estimator base class.

An estimator owns a loss, an optimizer, a regularization term and a theta
initializer. It turns its hypothesis into the two closures the optimizer
needs:

  loss(X, y, theta)     = loss_fn.compute(y, h(X, theta)) + penalty(theta)
  gradient(X, y, theta) = loss_fn.parameter_gradient(X, y, h(X, theta)) + penalty'(theta)

The penalty is always added; NoRegularization contributes zeros. For losses
that work on logits the loss closure evaluates the hypothesis without the
output activation, while the gradient closure always uses activated
probabilities.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

import torch

from gradlab.losses.base import LossFunction
from gradlab.model.init.theta import ThetaInitializer, zeros_initializer
from gradlab.regularization.core import NoRegularization, Regularization
from gradlab.tensors import add_bias_column
from gradlab.training.exceptions import NotTrainedError, TrainingStoppedError
from gradlab.training.optimizer.core import BaseOptimizer

Closure = Callable[[torch.Tensor, torch.Tensor, torch.Tensor], torch.Tensor]
Evaluation = tuple[torch.Tensor, torch.Tensor, torch.Tensor]


class BaseEstimator(ABC):
    """
    Common training, control and lifecycle logic for all models.

    Args:
        loss_fn: Loss to minimize.
        optimizer: Optimizer that runs the descent loop.
        regularization: Penalty on theta; none when omitted.
        theta_initializer: Initial theta factory; zeros when omitted.
    """

    def __init__(
        self,
        loss_fn: LossFunction,
        optimizer: BaseOptimizer,
        regularization: Optional[Regularization] = None,
        theta_initializer: Optional[ThetaInitializer] = None,
    ) -> None:
        self.loss_fn = loss_fn
        self.optimizer = optimizer
        self.regularization = regularization if regularization is not None else NoRegularization()
        self.theta_initializer = (
            theta_initializer if theta_initializer is not None else self._default_initializer()
        )
        self._theta: Optional[torch.Tensor] = None

    def _default_initializer(self) -> ThetaInitializer:
        return zeros_initializer()

    @property
    def theta(self) -> Optional[torch.Tensor]:
        return self._theta

    # ── Hypothesis ───────────────────────────────────────────────────

    def linear_scores(self, features: torch.Tensor, theta: torch.Tensor) -> torch.Tensor:
        """``[1, X] @ theta``."""
        return add_bias_column(features).matmul(theta)

    @abstractmethod
    def hypothesis(
        self, features: torch.Tensor, theta: torch.Tensor, as_logits: bool = False
    ) -> torch.Tensor:
        ...

    def _build_closures(self) -> tuple[Closure, Closure]:
        as_logits = self.loss_fn.uses_logits()

        def loss_closure(X: torch.Tensor, y: torch.Tensor, theta: torch.Tensor) -> torch.Tensor:
            y_pred = self.hypothesis(X, theta, as_logits)
            return self.loss_fn.compute(y, y_pred) + self.regularization.compute(theta)

        def gradient_closure(X: torch.Tensor, y: torch.Tensor, theta: torch.Tensor) -> torch.Tensor:
            y_pred = self.hypothesis(X, theta)
            gradient = self.loss_fn.parameter_gradient(X, y, y_pred)
            return gradient + self.regularization.gradient(theta)

        return loss_closure, gradient_closure

    # ── Model contract ───────────────────────────────────────────────

    def _check_trainable(self) -> None:
        if self.optimizer.stopped:
            raise TrainingStoppedError(
                f"{type(self).__name__} was stopped; build a new model to train again"
            )

    def _resolve_theta(self, theta: Optional[torch.Tensor]) -> torch.Tensor:
        resolved = theta if theta is not None else self._theta
        if resolved is None:
            raise NotTrainedError()
        return resolved

    async def train(self, X: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        """
        Fit theta to ``(X, y)``.

        Raises:
            TrainingStoppedError: If this model's optimizer was stopped.
        """
        self._check_trainable()
        loss_closure, gradient_closure = self._build_closures()
        init_theta = self.theta_initializer((X.shape[1], self._output_count(y)))

        self._theta = await self.optimizer.optimize(
            X, y, loss_closure, gradient_closure, init_theta
        )
        return self._theta

    def _output_count(self, y: torch.Tensor) -> int:
        return 1

    @abstractmethod
    def predict(self, X: torch.Tensor, theta: Optional[torch.Tensor] = None) -> torch.Tensor:
        ...

    @abstractmethod
    def evaluate(
        self, X: torch.Tensor, y: torch.Tensor, theta: Optional[torch.Tensor] = None
    ) -> Evaluation:
        """Return ``(predictions, raw outputs, loss)`` for ``theta`` or the trained theta."""

    def uses_one_hot_labels(self) -> bool:
        return False

    def dispose(self, with_dependencies: bool = False) -> None:
        self._theta = None
        if with_dependencies:
            self.optimizer.stop()
            if self.optimizer.events is not None:
                self.optimizer.events.clear()

    # ── Control ──────────────────────────────────────────────────────

    def stop(self) -> None:
        self.optimizer.stop()

    def pause(self) -> None:
        self.optimizer.pause()

    def resume(self) -> None:
        self.optimizer.resume()

    def step(self) -> None:
        self.optimizer.step()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(loss_fn={self.loss_fn!r}, optimizer={self.optimizer!r}, "
            f"regularization={self.regularization!r})"
        )
