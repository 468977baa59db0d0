# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Deterministic theta initialization.

An initializer is a plain function ``(shape, with_bias=True) -> Tensor``
where ``shape`` is ``(fan_in, fan_out)``: feature count by output count.
With ``with_bias`` an all-zero bias row is prepended, so the result has
``fan_in + 1`` rows.

Random initializers draw from their own torch.Generator, seeded on every
call, so two calls with the same seed return identical matrices regardless
of the global RNG state.
"""

import math
from typing import Callable, Optional

import torch

from gradlab.config.schema import ThetaInitializationConfig
from gradlab.tensors import DTYPE
from gradlab.training.exceptions import require

DEFAULT_SEED = 42

Shape = tuple[int, int]
ThetaInitializer = Callable[..., torch.Tensor]


def _check_shape(shape: Shape) -> tuple[int, int]:
    fan_in, fan_out = shape
    require(fan_in > 0 and fan_out > 0, f"Theta shape must be positive, got {tuple(shape)}")
    return int(fan_in), int(fan_out)


def _with_bias_row(weights: torch.Tensor, with_bias: bool) -> torch.Tensor:
    if not with_bias:
        return weights
    bias = torch.zeros((1, weights.shape[1]), dtype=weights.dtype)
    return torch.cat([bias, weights], dim=0)


def _generator(seed: int) -> torch.Generator:
    generator = torch.Generator()
    generator.manual_seed(seed)
    return generator


def _uniform(shape: Shape, low: float, high: float, seed: int) -> torch.Tensor:
    weights = torch.empty(shape, dtype=DTYPE)
    return weights.uniform_(low, high, generator=_generator(seed))


def _normal(shape: Shape, mean: float, stddev: float, seed: int) -> torch.Tensor:
    weights = torch.empty(shape, dtype=DTYPE)
    return weights.normal_(mean, stddev, generator=_generator(seed))


def zeros_initializer() -> ThetaInitializer:
    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        fan_in, fan_out = _check_shape(shape)
        rows = fan_in + 1 if with_bias else fan_in
        return torch.zeros((rows, fan_out), dtype=DTYPE)

    return initialize


def ones_initializer() -> ThetaInitializer:
    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        weights = torch.ones(_check_shape(shape), dtype=DTYPE)
        return _with_bias_row(weights, with_bias)

    return initialize


def constant_initializer(value: float) -> ThetaInitializer:
    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        weights = torch.full(_check_shape(shape), float(value), dtype=DTYPE)
        return _with_bias_row(weights, with_bias)

    return initialize


def uniform_initializer(low: float, high: float, seed: int = DEFAULT_SEED) -> ThetaInitializer:
    """
    Weights drawn from U[low, high).

    Raises:
        ConfigurationError: If low >= high.
    """
    require(low < high, f"Uniform initializer needs low < high, got [{low}, {high}]")

    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        weights = _uniform(_check_shape(shape), low, high, seed)
        return _with_bias_row(weights, with_bias)

    return initialize


def normal_initializer(mean: float, stddev: float, seed: int = DEFAULT_SEED) -> ThetaInitializer:
    """
    Weights drawn from N(mean, stddev^2).

    Raises:
        ConfigurationError: If stddev <= 0.
    """
    require(stddev > 0, f"Normal initializer needs stddev > 0, got {stddev}")

    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        weights = _normal(_check_shape(shape), mean, stddev, seed)
        return _with_bias_row(weights, with_bias)

    return initialize


def xavier_uniform_initializer(seed: int = DEFAULT_SEED) -> ThetaInitializer:
    """Glorot uniform: limit = sqrt(6 / (fan_in + fan_out))."""

    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        fan_in, fan_out = _check_shape(shape)
        limit = math.sqrt(6.0 / (fan_in + fan_out))
        weights = _uniform((fan_in, fan_out), -limit, limit, seed)
        return _with_bias_row(weights, with_bias)

    return initialize


def xavier_normal_initializer(seed: int = DEFAULT_SEED) -> ThetaInitializer:
    """Glorot normal: stddev = sqrt(2 / (fan_in + fan_out))."""

    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        fan_in, fan_out = _check_shape(shape)
        stddev = math.sqrt(2.0 / (fan_in + fan_out))
        weights = _normal((fan_in, fan_out), 0.0, stddev, seed)
        return _with_bias_row(weights, with_bias)

    return initialize


def he_uniform_initializer(seed: int = DEFAULT_SEED) -> ThetaInitializer:
    """He uniform: limit = sqrt(6 / fan_in)."""

    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        fan_in, fan_out = _check_shape(shape)
        limit = math.sqrt(6.0 / fan_in)
        weights = _uniform((fan_in, fan_out), -limit, limit, seed)
        return _with_bias_row(weights, with_bias)

    return initialize


def he_normal_initializer(seed: int = DEFAULT_SEED) -> ThetaInitializer:
    """He normal: stddev = sqrt(2 / fan_in)."""

    def initialize(shape: Shape, with_bias: bool = True) -> torch.Tensor:
        fan_in, fan_out = _check_shape(shape)
        stddev = math.sqrt(2.0 / fan_in)
        weights = _normal((fan_in, fan_out), 0.0, stddev, seed)
        return _with_bias_row(weights, with_bias)

    return initialize


def get_theta_initializer(
    config: ThetaInitializationConfig,
    default_seed: Optional[int] = None,
) -> ThetaInitializer:
    """
    Build the initializer described by a ThetaInitializationConfig.

    The config's own seed wins; otherwise ``default_seed`` (normally the
    global seed) and finally 42.
    """
    seed = config.seed if config.seed is not None else default_seed
    if seed is None:
        seed = DEFAULT_SEED

    kind = config.type
    if kind == "ones":
        return ones_initializer()
    if kind == "constant":
        return constant_initializer(config.value)
    if kind == "uniform":
        return uniform_initializer(config.min, config.max, seed)
    if kind == "normal":
        return normal_initializer(config.mean, config.stddev, seed)
    if kind == "xavierUniform":
        return xavier_uniform_initializer(seed)
    if kind == "xavierNormal":
        return xavier_normal_initializer(seed)
    if kind == "heUniform":
        return he_uniform_initializer(seed)
    if kind == "heNormal":
        return he_normal_initializer(seed)
    return zeros_initializer()
