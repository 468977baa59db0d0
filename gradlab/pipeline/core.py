# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
ModelPipeline: feature processing in front of a model.

The pipeline exposes the same contract as the model it wraps (train,
predict, evaluate, control, dispose) and runs every input through:

  1. normalization (column-wise)
  2. each transformation on the normalized matrix, appended as new columns

Labels pass through unchanged, or become one-hot rows for models that ask
for them. Processed matrices are cached per TensorHandle so repeated
evaluation of the same split costs one matrix multiply. Plain tensors are
accepted too; they are processed every time.

Lifecycle transitions are announced as "state" events: transforming and
training at the start of ``train``, then paused, training (resume),
stepped-forward and stopped from the control methods.
"""

import logging
from typing import Optional, Sequence, Union

import torch
import torch.nn.functional as F

from gradlab.logging.logger import get_logger
from gradlab.model.base import BaseEstimator, Evaluation
from gradlab.pipeline.cache import FeatureCache, TensorHandle
from gradlab.pipeline.normalization import NormalizeFn, no_scaling
from gradlab.pipeline.transformation import TransformationFn
from gradlab.tensors import DTYPE
from gradlab.training.events.core import EventBus, TrainingState

logger: logging.Logger = get_logger(__name__)

Input = Union[TensorHandle, torch.Tensor]


class FeatureTransform:
    """Normalization followed by feature expansions."""

    def __init__(
        self,
        normalize: Optional[NormalizeFn] = None,
        transformations: Sequence[TransformationFn] = (),
    ) -> None:
        self.normalize = normalize or no_scaling
        self.transformations = list(transformations)

    def __call__(self, features: torch.Tensor) -> torch.Tensor:
        normalized = self.normalize(features.clone())
        blocks = [normalized]
        for transform in self.transformations:
            extra = transform(normalized)
            if extra is not None:
                blocks.append(extra)
        return torch.cat(blocks, dim=1) if len(blocks) > 1 else normalized


def one_hot_labels(labels: torch.Tensor, num_classes: Optional[int] = None) -> torch.Tensor:
    """
    Integer class labels (one column) to one-hot rows.

    The class count covers every label value present, so label ``k`` always
    maps to column ``k`` even when some smaller label is missing. Pass
    ``num_classes`` to widen the encoding to the class count seen in
    training, e.g. for a test split that lacks the highest class.
    """
    flat = labels.flatten().round().to(torch.long)
    if flat.numel() == 0:
        return torch.zeros((0, num_classes or 0), dtype=DTYPE)
    present = max(int(torch.unique(flat).numel()), int(flat.max().item()) + 1)
    return F.one_hot(flat, num_classes=max(present, num_classes or 0)).to(DTYPE)


class ModelPipeline:
    """
    Wraps a model with feature processing and state events.

    Args:
        model: The estimator to train.
        feature_transform: Normalization and transformations; identity when omitted.
        events: Bus that receives "state" events.
    """

    def __init__(
        self,
        model: BaseEstimator,
        feature_transform: Optional[FeatureTransform] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.model = model
        self.feature_transform = feature_transform or FeatureTransform()
        self.events = events
        self._cache = FeatureCache()
        self._num_classes: Optional[int] = None

    @property
    def cache(self) -> FeatureCache:
        return self._cache

    @property
    def theta(self) -> Optional[torch.Tensor]:
        return self.model.theta

    def uses_one_hot_labels(self) -> bool:
        return self.model.uses_one_hot_labels()

    # ── Preparation ──────────────────────────────────────────────────

    def prepare_features(self, features: Input) -> torch.Tensor:
        if isinstance(features, TensorHandle):
            return self._cache.get_or_compute(features, "features", self.feature_transform)
        return self.feature_transform(features)

    def prepare_labels(
        self,
        labels: Input,
        one_hot: bool = False,
        num_classes: Optional[int] = None,
    ) -> torch.Tensor:
        if one_hot:
            kind = f"labels:one-hot:{num_classes or 0}"

            def convert(raw: torch.Tensor) -> torch.Tensor:
                return one_hot_labels(raw, num_classes)

        else:
            kind = "labels"
            convert = _identity

        if isinstance(labels, TensorHandle):
            return self._cache.get_or_compute(labels, kind, convert)
        return convert(labels)

    # ── Model contract ───────────────────────────────────────────────

    async def train(self, X: Input, y: Input) -> torch.Tensor:
        await self._emit_state("transforming")
        features = self.prepare_features(X)
        labels = self.prepare_labels(y, self.uses_one_hot_labels())
        if self.uses_one_hot_labels():
            self._num_classes = labels.shape[1]
        logger.debug(
            "Features prepared",
            extra={"samples": features.shape[0], "features": features.shape[1]},
        )

        await self._emit_state("training")
        return await self.model.train(features, labels)

    def predict(self, X: Input, theta: Optional[torch.Tensor] = None) -> torch.Tensor:
        return self.model.predict(self.prepare_features(X), theta)

    def evaluate(self, X: Input, y: Input, theta: Optional[torch.Tensor] = None) -> Evaluation:
        features = self.prepare_features(X)
        # every split is encoded with as many columns as theta has classes
        reference = theta if theta is not None else self.model.theta
        num_classes = reference.shape[1] if reference is not None else self._num_classes
        labels = self.prepare_labels(y, self.uses_one_hot_labels(), num_classes)
        return self.model.evaluate(features, labels, theta)

    def dispose(self, with_dependencies: bool = False) -> None:
        self._cache.clear()
        self.model.dispose(with_dependencies)

    # ── Control ──────────────────────────────────────────────────────

    def stop(self) -> None:
        self.model.stop()
        self._emit_state_nowait("stopped")

    def pause(self) -> None:
        self.model.pause()
        self._emit_state_nowait("paused")

    def resume(self) -> None:
        self.model.resume()
        self._emit_state_nowait("training")

    def step(self) -> None:
        self.model.step()
        self._emit_state_nowait("stepped-forward")

    async def _emit_state(self, state: TrainingState) -> None:
        if self.events is not None:
            await self.events.emit("state", state)

    def _emit_state_nowait(self, state: TrainingState) -> None:
        if self.events is not None:
            self.events.emit_nowait("state", state)


def _identity(labels: torch.Tensor) -> torch.Tensor:
    return labels
