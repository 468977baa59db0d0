# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Errors raised by the training engine.

Invalid hyper-parameters fail at construction or call time and are never
clamped into range. A NaN loss is not an exception: the optimizer reports it
as an ``error`` event and ends the run.
"""


class TrainingError(Exception):
    """Base for all training engine errors."""


class ConfigurationError(TrainingError, ValueError):
    """An engine component was built or called with invalid parameters."""


class NotTrainedError(TrainingError, RuntimeError):
    """predict/evaluate was called before the model was trained."""

    def __init__(self, message: str = "Model has not been trained yet. Please call train() first.") -> None:
        super().__init__(message)


class TrainingStoppedError(TrainingError, RuntimeError):
    """A stopped model or optimizer was asked to train again."""


def require(condition: bool, message: str) -> None:
    """Raise ConfigurationError with ``message`` unless ``condition`` holds."""
    if not condition:
        raise ConfigurationError(message)
