# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Ordinary linear regression trained by gradient descent."""

from typing import Optional

import torch

from gradlab.model.base import BaseEstimator, Evaluation


class LinearRegressor(BaseEstimator):
    """h(X) = [1, X] @ theta, with theta shaped ``[features + 1, 1]``."""

    def hypothesis(
        self, features: torch.Tensor, theta: torch.Tensor, as_logits: bool = False
    ) -> torch.Tensor:
        return self.linear_scores(features, theta)

    @torch.no_grad()
    def predict(self, X: torch.Tensor, theta: Optional[torch.Tensor] = None) -> torch.Tensor:
        return self.hypothesis(X, self._resolve_theta(theta))

    @torch.no_grad()
    def evaluate(
        self, X: torch.Tensor, y: torch.Tensor, theta: Optional[torch.Tensor] = None
    ) -> Evaluation:
        y_pred = self.hypothesis(X, self._resolve_theta(theta))
        loss = self.loss_fn.compute(y, y_pred)
        return y_pred, y_pred, loss
