# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Evaluation metrics."""

import torch


def accuracy(y_true: torch.Tensor, y_pred: torch.Tensor) -> float:
    """
    Fraction of exactly matching entries.

    Both inputs must have the same shape (a column of labels, usually).
    Returns 0.0 for empty input.
    """
    if y_true.numel() == 0:
        return 0.0
    if y_true.shape != y_pred.shape:
        raise ValueError(
            f"accuracy needs matching shapes, got {tuple(y_true.shape)} and {tuple(y_pred.shape)}"
        )
    return float((y_true == y_pred).to(torch.float64).mean().item())
