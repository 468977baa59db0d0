# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Column-wise feature scaling."""

from typing import Callable

import torch

from gradlab.config.schema import NormalizationType

NormalizeFn = Callable[[torch.Tensor], torch.Tensor]

Z_SCORE_EPSILON = 1e-8


def no_scaling(features: torch.Tensor) -> torch.Tensor:
    return features


def z_score_scaling(features: torch.Tensor) -> torch.Tensor:
    """
    ``(x - mean) / sqrt(var + eps)`` per column, population variance.

    An empty matrix comes back as ``[0, 0]``. Constant columns map to 0.
    """
    if features.numel() == 0:
        return torch.zeros((0, 0), dtype=features.dtype)

    mean = features.mean(dim=0, keepdim=True)
    variance = features.var(dim=0, unbiased=False, keepdim=True)
    return (features - mean) / torch.sqrt(variance + Z_SCORE_EPSILON)


def get_normalize_function(kind: NormalizationType) -> NormalizeFn:
    if kind == "zscore":
        return z_score_scaling
    return no_scaling
