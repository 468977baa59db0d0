# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Logistic regression variants.

  - LogisticRegressor:          sigmoid output, labels 0/1, threshold 0.5
  - SoftmaxLogisticRegressor:   softmax over k classes, one-hot labels
  - OneVsRestLogisticRegressor: k independent binary runs, one per label

All three evaluate the loss in the loss function's own space: raw scores
for the logit-based losses, probabilities otherwise.
"""

import asyncio
import logging
from typing import Optional

import torch

from gradlab.logging.logger import get_logger
from gradlab.model.base import BaseEstimator, Evaluation
from gradlab.model.init.theta import ThetaInitializer, xavier_uniform_initializer
from gradlab.tensors import DTYPE

logger: logging.Logger = get_logger(__name__)


class LogisticRegressor(BaseEstimator):
    """Binary classifier, h(X) = sigmoid([1, X] @ theta)."""

    def hypothesis(
        self, features: torch.Tensor, theta: torch.Tensor, as_logits: bool = False
    ) -> torch.Tensor:
        scores = self.linear_scores(features, theta)
        return scores if as_logits else torch.sigmoid(scores)

    def probability_to_label(self, probability: torch.Tensor) -> torch.Tensor:
        return (probability >= 0.5).to(DTYPE)

    def _loss_space_outputs(
        self, features: torch.Tensor, theta: torch.Tensor, probability: torch.Tensor
    ) -> torch.Tensor:
        if self.loss_fn.uses_logits():
            return self.hypothesis(features, theta, as_logits=True)
        return probability

    @torch.no_grad()
    def predict(self, X: torch.Tensor, theta: Optional[torch.Tensor] = None) -> torch.Tensor:
        probability = self.hypothesis(X, self._resolve_theta(theta))
        return self.probability_to_label(probability)

    @torch.no_grad()
    def evaluate(
        self, X: torch.Tensor, y: torch.Tensor, theta: Optional[torch.Tensor] = None
    ) -> Evaluation:
        resolved = self._resolve_theta(theta)
        probability = self.hypothesis(X, resolved)
        loss = self.loss_fn.compute(y, self._loss_space_outputs(X, resolved, probability))
        return self.probability_to_label(probability), probability, loss


class SoftmaxLogisticRegressor(LogisticRegressor):
    """
    Multinomial logistic regression.

    Labels must be one-hot rows (the pipeline converts them), theta is
    ``[features + 1, classes]`` and predictions are a column of class
    indices. Without an explicit initializer the weights start from a
    seeded Glorot-uniform draw; a zero start would make every class
    column identical at the first step.
    """

    def _default_initializer(self) -> ThetaInitializer:
        return xavier_uniform_initializer()

    def _output_count(self, y: torch.Tensor) -> int:
        return y.shape[1]

    def hypothesis(
        self, features: torch.Tensor, theta: torch.Tensor, as_logits: bool = False
    ) -> torch.Tensor:
        scores = self.linear_scores(features, theta)
        return scores if as_logits else torch.softmax(scores, dim=1)

    def probability_to_label(self, probability: torch.Tensor) -> torch.Tensor:
        return probability.argmax(dim=1, keepdim=True).to(DTYPE)

    def uses_one_hot_labels(self) -> bool:
        return True


class OneVsRestLogisticRegressor(LogisticRegressor):
    """
    One binary logistic run per distinct label, trained concurrently.

    Runs share the optimizer (and so its pause/step/stop control) and are
    launched together with ``asyncio.gather``. Run ``i`` learns "label ==
    classes[i]" and reports with ``run_id=i``. The final theta stacks the
    per-class columns in sorted label order, and prediction returns the
    label whose column scores highest.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.classes: Optional[torch.Tensor] = None

    def _one_vs_rest_targets(self, y: torch.Tensor, classes: torch.Tensor) -> torch.Tensor:
        return (y.reshape(-1, 1) == classes.reshape(1, -1)).to(DTYPE)

    async def train(self, X: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        self._check_trainable()
        loss_closure, gradient_closure = self._build_closures()

        classes = torch.unique(y.flatten(), sorted=True)
        targets = self._one_vs_rest_targets(y, classes)
        run_count = len(classes)
        self.classes = classes

        logger.info("Training one-vs-rest runs", extra={"classes": classes.tolist()})

        runs = [
            self.optimizer.optimize(
                X,
                targets[:, index : index + 1],
                loss_closure,
                gradient_closure,
                self.theta_initializer((X.shape[1], 1)),
                run_id=index,
                run_count=run_count,
                run_name=f"{label:g}",
            )
            for index, label in enumerate(classes.tolist())
        ]
        thetas = await asyncio.gather(*runs)

        self._theta = torch.cat(thetas, dim=1)
        return self._theta

    def _classes_for(self, theta: torch.Tensor) -> torch.Tensor:
        if self.classes is not None and len(self.classes) == theta.shape[1]:
            return self.classes
        return torch.arange(theta.shape[1], dtype=DTYPE)

    def probability_to_label(self, probability: torch.Tensor) -> torch.Tensor:
        indices = probability.argmax(dim=1)
        return self._classes_for(probability).to(DTYPE)[indices].reshape(-1, 1)

    @torch.no_grad()
    def evaluate(
        self, X: torch.Tensor, y: torch.Tensor, theta: Optional[torch.Tensor] = None
    ) -> Evaluation:
        resolved = self._resolve_theta(theta)
        probability = self.hypothesis(X, resolved)
        targets = self._one_vs_rest_targets(y, self._classes_for(resolved))
        loss = self.loss_fn.compute(targets, self._loss_space_outputs(X, resolved, probability))
        return self.probability_to_label(probability), probability, loss
