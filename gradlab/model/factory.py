# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Model and pipeline factories.

Every strategy is picked from its config discriminant:
  - loss:           LOSS_FUNCTIONS registry
  - optimizer:      create_optimizer
  - regularization: get_regularization
  - theta init:     get_theta_initializer
  - model class:    MODEL_CLASSES keyed by (model type, classification type)
"""

import logging
from typing import Optional

from gradlab.config.schema import DataSettings, ModelSettings, RunConfig
from gradlab.logging.logger import get_logger
from gradlab.losses.registry import get_loss_function
from gradlab.model.base import BaseEstimator
from gradlab.model.init.theta import get_theta_initializer
from gradlab.model.linear import LinearRegressor
from gradlab.model.logistic import (
    LogisticRegressor,
    OneVsRestLogisticRegressor,
    SoftmaxLogisticRegressor,
)
from gradlab.pipeline.core import FeatureTransform, ModelPipeline
from gradlab.pipeline.normalization import get_normalize_function
from gradlab.pipeline.transformation import get_transformations
from gradlab.regularization.core import get_regularization
from gradlab.training.events.core import EventBus
from gradlab.training.optimizer.core import create_optimizer

logger: logging.Logger = get_logger(__name__)

MODEL_CLASSES: dict[tuple[str, str], type[BaseEstimator]] = {
    ("linear", "binary"): LinearRegressor,
    ("linear", "softmax"): LinearRegressor,
    ("linear", "ovr"): LinearRegressor,
    ("logistic", "binary"): LogisticRegressor,
    ("logistic", "softmax"): SoftmaxLogisticRegressor,
    ("logistic", "ovr"): OneVsRestLogisticRegressor,
}


def create_model(
    settings: ModelSettings,
    events: Optional[EventBus] = None,
    default_seed: Optional[int] = None,
) -> BaseEstimator:
    """
    Build an untrained estimator from the model settings.

    Args:
        settings: Model section of the run config.
        events: Bus handed to the optimizer.
        default_seed: Seed for random initializers and the batch shuffler
                      when their own config leaves it unset.
    """
    model_cls = MODEL_CLASSES[(settings.type, settings.classification)]

    # Left unset, each model class picks its own starting theta.
    theta_initializer = None
    init_config = settings.theta_initialization
    if "type" in init_config.model_fields_set:
        theta_initializer = get_theta_initializer(init_config, default_seed)

    model = model_cls(
        get_loss_function(settings.loss_function.type),
        create_optimizer(settings.optimizer, events, default_seed),
        get_regularization(settings.regularization),
        theta_initializer,
    )
    logger.info(
        "Model created",
        extra={
            "model": model_cls.__name__,
            "loss": settings.loss_function.type,
            "regularization": settings.regularization.type,
            "theta_initialization": init_config.type,
        },
    )
    return model


def create_feature_transform(settings: DataSettings) -> FeatureTransform:
    normalize = get_normalize_function(settings.normalization)
    return FeatureTransform(normalize, get_transformations(settings.transformations, normalize))


def build_pipeline(config: RunConfig, events: Optional[EventBus] = None) -> ModelPipeline:
    """Model plus feature processing for a full run config."""
    model = create_model(config.model, events, config.global_config.seed)
    return ModelPipeline(model, create_feature_transform(config.data), events)
