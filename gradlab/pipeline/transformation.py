# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Feature expansion.

Each transformation maps the (normalized) feature matrix to a block of
additional columns, or None when it has nothing to add. The pipeline
concatenates the blocks after the original columns.

  sinusoid(d):   sin(1*x), sin(2*x), ..., sin(d*x), every column each time
  polynomial(d): every monomial of total degree 2..d, e.g. for two
                 features and d = 3: x1^2, x1*x2, x2^2, x1^3, x1^2*x2, ...
"""

import logging
from math import comb
from typing import Callable, Optional, Sequence

import torch

from gradlab.config.schema import TransformationConfig
from gradlab.logging.logger import get_logger
from gradlab.pipeline.normalization import NormalizeFn, no_scaling
from gradlab.training.exceptions import require

logger: logging.Logger = get_logger(__name__)

TransformationFn = Callable[[torch.Tensor], Optional[torch.Tensor]]


def generate_sinusoid_features(features: torch.Tensor, degree: int) -> torch.Tensor:
    """
    Stack ``sin(k * X)`` for k = 1..degree along the columns.

    Returns:
        ``[samples, features * degree]`` matrix.

    Raises:
        ConfigurationError: If degree < 1.
    """
    require(degree >= 1, f"Degree must be at least 1, got {degree}")
    return torch.cat([torch.sin(features * k) for k in range(1, degree + 1)], dim=1)


def exponent_combinations(n: int, d: int) -> list[list[int]]:
    """
    All length-``n`` exponent vectors that sum to ``d``.

    Ordered lexicographically by the first exponent, then the second, ...
    """
    results: list[list[int]] = []
    combo = [0] * n

    def recurse(position: int, remaining: int) -> None:
        if position == n - 1:
            combo[position] = remaining
            results.append(list(combo))
            return
        for exponent in range(remaining + 1):
            combo[position] = exponent
            recurse(position + 1, remaining - exponent)

    if n > 0:
        recurse(0, d)
    return results


def generate_full_polynomial_features(
    features: torch.Tensor,
    degree: int,
    normalize: NormalizeFn = no_scaling,
) -> Optional[torch.Tensor]:
    """
    Every monomial of total degree 2..degree, passed through ``normalize``.

    Returns:
        The new columns, or None when degree < 2 (nothing to add).
    """
    if degree < 2:
        return None

    samples, n_features = features.shape
    terms: list[torch.Tensor] = []
    for total in range(2, degree + 1):
        for exponents in exponent_combinations(n_features, total):
            term = torch.ones((samples, 1), dtype=features.dtype)
            for column, exponent in enumerate(exponents):
                if exponent > 0:
                    term = term * features[:, column : column + 1].pow(exponent)
            terms.append(term)

    if not terms:
        return None
    return normalize(torch.cat(terms, dim=1))


def count_output_features(kind: str, degree: int, n_features: int) -> int:
    """Number of columns a transformation adds for ``n_features`` inputs."""
    if kind == "sinusoid":
        return n_features * degree
    if kind == "polynomial":
        if degree < 2:
            return 0
        return sum(comb(n_features + d - 1, d) for d in range(2, degree + 1))
    return 0


def sinusoid_generator(degree: int) -> TransformationFn:
    require(degree >= 1, f"Degree must be at least 1, got {degree}")

    def transform(features: torch.Tensor) -> torch.Tensor:
        return generate_sinusoid_features(features, degree)

    return transform


def full_polynomial_generator(degree: int, normalize: NormalizeFn = no_scaling) -> TransformationFn:
    def transform(features: torch.Tensor) -> Optional[torch.Tensor]:
        return generate_full_polynomial_features(features, degree, normalize)

    return transform


def get_transformations(
    configs: Sequence[TransformationConfig],
    normalize: Optional[NormalizeFn] = None,
) -> list[TransformationFn]:
    """Build the transformation list, in config order."""
    transformations: list[TransformationFn] = []
    for config in configs:
        if config.type == "sinusoid":
            transformations.append(sinusoid_generator(config.degree))
        elif config.type == "polynomial":
            transformations.append(
                full_polynomial_generator(config.degree, normalize or no_scaling)
            )
        else:
            logger.warning("Unknown transformation type", extra={"type": config.type})
    return transformations
