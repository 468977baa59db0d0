# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Small tensor helpers shared by the losses, models and pipeline.

Everything in the engine is a 2-D CPU tensor of ``DTYPE``: rows are samples,
columns are features, outputs or classes. Float64 keeps the closed-form
gradients and the bit-for-bit determinism checks free of float32 rounding
noise; reports are downcast to float32 only when they are encoded.
"""

from typing import Sequence, Union

import torch

DTYPE = torch.float64

MatrixLike = Union[torch.Tensor, Sequence[Sequence[float]]]


def as_matrix(data: MatrixLike) -> torch.Tensor:
    """
    Build a detached 2-D tensor of DTYPE.

    Empty input (``[]`` or ``[[]]``) becomes a ``[0, 0]`` tensor. A 1-D
    tensor is treated as a single column.
    """
    if isinstance(data, torch.Tensor):
        tensor = data.detach().to(DTYPE)
    else:
        rows = [list(row) for row in data]
        if not rows or all(len(row) == 0 for row in rows):
            return torch.zeros((0, 0), dtype=DTYPE)
        tensor = torch.tensor(rows, dtype=DTYPE)

    if tensor.dim() == 1:
        tensor = tensor.reshape(-1, 1)
    if tensor.dim() != 2:
        raise ValueError(f"Expected a 2-D matrix, got shape {tuple(tensor.shape)}")
    return tensor


def add_bias_column(features: torch.Tensor) -> torch.Tensor:
    """Prepend a column of ones so that row 0 of theta acts as the intercept."""
    ones = torch.ones((features.shape[0], 1), dtype=features.dtype)
    return torch.cat([ones, features], dim=1)


def bias_row_gradient(errors: torch.Tensor) -> torch.Tensor:
    """Mean error per output column, shaped ``[1, outputs]``."""
    return errors.mean(dim=0, keepdim=True)


def weight_rows_gradient(features: torch.Tensor, errors: torch.Tensor) -> torch.Tensor:
    """``X^T e / n``, shaped ``[features, outputs]``."""
    return features.T.matmul(errors) / features.shape[0]


def to_nested_list(tensor: torch.Tensor) -> list[list[float]]:
    """Plain Python rows for reports and logs."""
    return as_matrix(tensor).tolist()
