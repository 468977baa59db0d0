# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Loss function registry.

The config names a loss by string; this maps the string to the class. The
mapping is fixed at import time so the set of variants is closed and can be
checked exhaustively in tests.
"""

from gradlab.losses.base import LossFunction
from gradlab.losses.classification import (
    BinaryCrossentropy,
    BinaryCrossentropyLogits,
    CategoricalCrossentropy,
    CategoricalCrossentropyLogits,
)
from gradlab.losses.regression import MeanAbsoluteError, MeanSquaredError
from gradlab.training.exceptions import ConfigurationError

LOSS_FUNCTIONS: dict[str, type[LossFunction]] = {
    "mse": MeanSquaredError,
    "mae": MeanAbsoluteError,
    "binaryCrossentropy": BinaryCrossentropy,
    "logitsBasedBinaryCrossentropy": BinaryCrossentropyLogits,
    "categoricalCrossentropy": CategoricalCrossentropy,
    "logitsBasedCategoricalCrossentropy": CategoricalCrossentropyLogits,
}


def get_loss_function(name: str) -> LossFunction:
    """
    Instantiate the loss registered under ``name``.

    Raises:
        ConfigurationError: If no loss is registered under that name.
    """
    if name not in LOSS_FUNCTIONS:
        raise ConfigurationError(
            f"Unknown loss function '{name}'. Available: {sorted(LOSS_FUNCTIONS)}"
        )
    return LOSS_FUNCTIONS[name]()
