# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Cross-entropy losses for binary and multiclass logistic models.

Probability-space variants clip predictions away from 0 and 1 before taking
logs. Logit-space variants take the raw score z = Xb @ theta and use the
stable identities:

  binary:      max(z, 0) - z * y + log(1 + exp(-|z|))
  categorical: logsumexp(z) - sum(y * z)

For both families the parameter gradient is computed from probabilities
(sigmoid or softmax of z), which is why the models always feed the gradient
closure probabilities even when the loss itself works on logits.
"""

import torch

from gradlab.losses.base import EPSILON, LossFunction, stack_parameter_gradient


class BinaryCrossentropy(LossFunction):
    """-mean(y * log(p) + (1 - y) * log(1 - p)) with p clipped to [eps, 1 - eps]."""

    def compute(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        clipped = y_pred.clamp(EPSILON, 1 - EPSILON)
        return -(y_true * clipped.log() + (1 - y_true) * (1 - clipped).log()).mean()

    def parameter_gradient(
        self,
        features: torch.Tensor,
        y_true: torch.Tensor,
        y_pred: torch.Tensor,
    ) -> torch.Tensor:
        errors = y_pred - y_true
        return stack_parameter_gradient(features, errors)

    def prediction_gradient(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        clipped = y_pred.clamp(EPSILON, 1 - EPSILON)
        return (clipped - y_true) / (clipped * (1 - clipped))


class BinaryCrossentropyLogits(BinaryCrossentropy):
    """Binary cross-entropy on raw scores; never overflows for extreme z."""

    def uses_logits(self) -> bool:
        return True

    def compute(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        logits = y_pred
        return (
            logits.clamp(min=0) - logits * y_true + torch.log1p(torch.exp(-logits.abs()))
        ).mean()


class CategoricalCrossentropy(LossFunction):
    """-mean over samples of sum(y_one_hot * log(p)), p clipped to [eps, 1]."""

    def compute(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        clipped = y_pred.clamp(EPSILON, 1)
        return -(y_true * clipped.log()).sum(dim=1).mean()

    def parameter_gradient(
        self,
        features: torch.Tensor,
        y_true: torch.Tensor,
        y_pred: torch.Tensor,
    ) -> torch.Tensor:
        # softmax + cross-entropy collapses to (p - y)
        errors = y_pred - y_true
        return stack_parameter_gradient(features, errors)

    def prediction_gradient(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        return y_pred - y_true


class CategoricalCrossentropyLogits(CategoricalCrossentropy):
    """Categorical cross-entropy on raw scores via logsumexp."""

    def uses_logits(self) -> bool:
        return True

    def compute(self, y_true: torch.Tensor, y_pred: torch.Tensor) -> torch.Tensor:
        logits = y_pred
        return (torch.logsumexp(logits, dim=1) - (logits * y_true).sum(dim=1)).mean()
