# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for gradlab.

A training run is described by one ``RunConfig``: the task type, the model
settings (model, loss, optimizer, regularization, theta initialization), the
feature pipeline settings and the dataset itself. The same schema validates
YAML files on disk and the ``train`` command payload sent to a worker.

Every model is frozen and rejects unknown keys:
  - frozen=True: a run's configuration can't change while it trains
  - extra="forbid": typos in key names fail loudly
  - validate_default=True: defaults get type-checked too

Range checks live here so that bad hyper-parameters are rejected before any
tensor is allocated. The engine classes re-check the same invariants, because
they can also be built directly from Python.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

TaskType = Literal["regression", "classification"]
ModelType = Literal["linear", "logistic"]
ClassificationType = Literal["binary", "softmax", "ovr"]
OptimizerType = Literal["batch", "stochastic", "momentum"]
LossFunctionType = Literal[
    "mse",
    "mae",
    "binaryCrossentropy",
    "logitsBasedBinaryCrossentropy",
    "categoricalCrossentropy",
    "logitsBasedCategoricalCrossentropy",
]
RegularizationType = Literal["none", "l2"]
ThetaInitializationType = Literal[
    "zeros",
    "ones",
    "constant",
    "uniform",
    "normal",
    "xavierUniform",
    "xavierNormal",
    "heUniform",
    "heNormal",
]
NormalizationType = Literal["none", "zscore"]
TransformationType = Literal["sinusoid", "polynomial"]

REGRESSION_LOSSES = frozenset({"mse", "mae"})
BINARY_LOSSES = frozenset({"binaryCrossentropy", "logitsBasedBinaryCrossentropy"})
CATEGORICAL_LOSSES = frozenset({"categoricalCrossentropy", "logitsBasedCategoricalCrossentropy"})

_FROZEN = ConfigDict(frozen=True, extra="forbid", validate_default=True)


class GlobalConfig(BaseModel):
    """Cross-cutting settings: reproducibility and observability."""

    model_config = _FROZEN

    config_version: str = Field(
        default="1.0.0", description="Schema version for compatibility tracking"
    )
    project_name: str = Field(default="gradlab", description="Human-readable run identifier")
    seed: int = Field(
        default=42,
        ge=0,
        description="Seed for torch and python RNGs and the default initializer seed",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class SchedulerConfig(BaseModel):
    """Inverse-scaling decay: rate = lr * (s0 / (s0 + iteration)) ** p."""

    model_config = _FROZEN

    s0: float = Field(default=1.0, ge=0.0, description="Decay offset")
    p: float = Field(default=0.5, ge=0.0, description="Decay power")


class OptimizerConfig(BaseModel):
    """Which gradient-descent variant to run and for how long."""

    model_config = _FROZEN

    type: OptimizerType = Field(default="batch", description="batch, stochastic or momentum")
    max_iterations: int = Field(default=100, ge=1, description="Upper bound on iterations")
    tolerance: float = Field(
        default=1e-4,
        gt=0.0,
        description="Stop early once the loss falls below this (batch and momentum)",
    )
    learning_rate: float = Field(default=0.01, gt=0.0, description="Base step size")
    scheduler: bool = Field(default=False, description="Decay the learning rate")
    scheduler_config: SchedulerConfig = Field(default_factory=SchedulerConfig)
    batch_size: int = Field(default=1, ge=1, description="Mini-batch size (stochastic only)")
    beta: float = Field(
        default=0.9,
        gt=0.0,
        lt=1.0,
        description="Velocity decay factor (momentum only)",
    )
    seed: Optional[int] = Field(
        default=None,
        ge=0,
        description="Seed for the stochastic batch shuffler; falls back to the global seed",
    )


class LossFunctionConfig(BaseModel):
    model_config = _FROZEN

    type: LossFunctionType = Field(default="mse")


class RegularizationConfig(BaseModel):
    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, populate_by_name=True
    )

    type: RegularizationType = Field(default="none")
    lambda_: float = Field(
        default=0.0,
        ge=0.0,
        alias="lambda",
        description="L2 penalty strength; the bias row is never penalized",
    )


class ThetaInitializationConfig(BaseModel):
    """Initial parameter matrix. Only the fields of the chosen type are read."""

    model_config = _FROZEN

    type: ThetaInitializationType = Field(default="zeros")
    value: float = Field(default=0.0, description="constant")
    min: float = Field(default=-0.05, description="uniform lower bound")
    max: float = Field(default=0.05, description="uniform upper bound")
    mean: float = Field(default=0.0, description="normal mean")
    stddev: float = Field(default=0.05, gt=0.0, description="normal standard deviation")
    seed: Optional[int] = Field(
        default=None,
        ge=0,
        description="Seed for random initializers; falls back to the global seed",
    )

    @model_validator(mode="after")
    def _check_uniform_bounds(self) -> "ThetaInitializationConfig":
        if self.type == "uniform" and not self.min < self.max:
            raise ValueError(f"uniform initializer needs min < max, got [{self.min}, {self.max}]")
        return self


class ModelSettings(BaseModel):
    model_config = _FROZEN

    type: ModelType = Field(default="linear")
    classification: ClassificationType = Field(
        default="binary",
        description="Logistic variant: binary, softmax or one-vs-rest",
    )
    loss_function: LossFunctionConfig = Field(default_factory=LossFunctionConfig)
    optimizer: OptimizerConfig = Field(default_factory=OptimizerConfig)
    regularization: RegularizationConfig = Field(default_factory=RegularizationConfig)
    theta_initialization: ThetaInitializationConfig = Field(
        default_factory=ThetaInitializationConfig
    )

    @model_validator(mode="after")
    def _check_loss_matches_model(self) -> "ModelSettings":
        loss = self.loss_function.type
        if self.type == "linear":
            allowed = REGRESSION_LOSSES
        elif self.classification == "softmax":
            allowed = CATEGORICAL_LOSSES
        else:
            allowed = BINARY_LOSSES
        if loss not in allowed:
            variant = self.type if self.type == "linear" else f"{self.type}/{self.classification}"
            raise ValueError(
                f"Loss '{loss}' cannot train a {variant} model; use one of {sorted(allowed)}"
            )
        return self


class TransformationConfig(BaseModel):
    model_config = _FROZEN

    type: TransformationType
    degree: int = Field(ge=1, description="Highest frequency or total polynomial degree")


class DataSettings(BaseModel):
    model_config = _FROZEN

    normalization: NormalizationType = Field(default="none")
    transformations: list[TransformationConfig] = Field(default_factory=list)


Matrix = list[list[float]]


def _check_rectangular(name: str, matrix: Matrix) -> None:
    if matrix and len({len(row) for row in matrix}) != 1:
        raise ValueError(f"{name} rows must all have the same length")


class DatasetConfig(BaseModel):
    """Already split and shuffled data. Rows are samples."""

    model_config = _FROZEN

    train_features: Matrix = Field(min_length=1)
    train_labels: Matrix = Field(min_length=1)
    test_features: Matrix = Field(default_factory=list)
    test_labels: Matrix = Field(default_factory=list)
    prediction_features: Optional[Matrix] = Field(
        default=None,
        description="Grid of points to predict on every report (e.g. a decision boundary mesh)",
    )

    @model_validator(mode="after")
    def _check_shapes(self) -> "DatasetConfig":
        for name in ("train_features", "train_labels", "test_features", "test_labels"):
            _check_rectangular(name, getattr(self, name))
        if self.prediction_features is not None:
            _check_rectangular("prediction_features", self.prediction_features)

        if len(self.train_features) != len(self.train_labels):
            raise ValueError(
                f"train_features has {len(self.train_features)} rows but "
                f"train_labels has {len(self.train_labels)}"
            )
        if len(self.test_features) != len(self.test_labels):
            raise ValueError(
                f"test_features has {len(self.test_features)} rows but "
                f"test_labels has {len(self.test_labels)}"
            )

        n_features = len(self.train_features[0])
        for name in ("test_features", "prediction_features"):
            other = getattr(self, name)
            if other and len(other[0]) != n_features:
                raise ValueError(f"{name} must have {n_features} columns like train_features")
        return self


class RunConfig(BaseModel):
    """
    Top-level container: everything one training run needs.

    Maps to a YAML file with ``global``, ``task_type``, ``model``, ``data``
    and ``dataset`` sections.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, populate_by_name=True
    )

    global_config: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    task_type: TaskType = Field(default="regression")
    model: ModelSettings = Field(default_factory=ModelSettings)
    data: DataSettings = Field(default_factory=DataSettings)
    dataset: DatasetConfig
    report_interval: int = Field(
        default=1,
        ge=1,
        description="Emit a report every N iterations (the first iteration always reports)",
    )
    log_interval: int = Field(default=10, ge=1, description="Log metrics every N iterations")

    @model_validator(mode="after")
    def _check_task_matches_model(self) -> "RunConfig":
        expected = "linear" if self.task_type == "regression" else "logistic"
        if self.model.type != expected:
            raise ValueError(
                f"task_type '{self.task_type}' requires a {expected} model, got '{self.model.type}'"
            )
        return self

    @model_validator(mode="after")
    def _check_batch_fits_dataset(self) -> "RunConfig":
        optimizer = self.model.optimizer
        samples = len(self.dataset.train_features)
        if optimizer.type == "stochastic" and optimizer.batch_size > samples:
            raise ValueError(
                f"Batch size ({optimizer.batch_size}) cannot be larger than the number "
                f"of training samples ({samples})"
            )
        return self
