# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Trainer: runs one training job and turns its progress into reports.

For a RunConfig the trainer:
  1. wraps the train/test/prediction matrices in TensorHandles
  2. builds the model pipeline through the factories
  3. subscribes to the optimizer's callback/info/error events and the
     pipeline's state events
  4. on every callback, evaluates the current theta on the train and test
     splits (plus accuracy for classification) and predicts the grid
  5. encodes a TrainingReport every ``report_interval`` iterations and on
     the first one, and flushes the last report when the run ends
  6. disposes everything and signals ``on_finished``, even on failure

A one-vs-rest model trains one run per class concurrently. A report needs a
theta column from every run, so evaluation happens once per round: when the
last run still iterating completes an iteration. Loss history is kept per
run: a single run records the evaluated train loss, one-vs-rest runs record
the binary loss their optimizer reports.

After ``stop()`` no further reports are emitted.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import torch

from gradlab.config.schema import RunConfig
from gradlab.logging.logger import get_logger
from gradlab.metrics.core import accuracy
from gradlab.model.factory import build_pipeline
from gradlab.pipeline.cache import TensorHandle
from gradlab.pipeline.core import ModelPipeline
from gradlab.reporting.codec import encode
from gradlab.tensors import to_nested_list
from gradlab.training.events.core import EventBus, OptimizerCallback
from gradlab.training.metrics.core import IterationMetrics, MetricsTracker

logger: logging.Logger = get_logger(__name__)


@dataclass
class TrainingReport:
    """Snapshot of a run after one iteration."""

    train_loss_history: list[list[float]]
    iterations: list[int]
    theta: list[list[float]]
    train_accuracy: Optional[float] = None
    test_accuracy: Optional[float] = None
    test_loss: Optional[float] = None
    train_predicted_labels: Optional[list[list[float]]] = None
    test_predicted_labels: Optional[list[list[float]]] = None
    prediction_predicted_labels: Optional[list[list[float]]] = None

    def to_mapping(self) -> dict[str, Any]:
        """Wire keys; unset fields map to None and are dropped by the codec."""
        return {
            "trainLossHistory": self.train_loss_history,
            "trainAccuracy": self.train_accuracy,
            "testAccuracy": self.test_accuracy,
            "testLoss": self.test_loss,
            "iterations": self.iterations,
            "trainPredictedLabels": self.train_predicted_labels,
            "testPredictedLabels": self.test_predicted_labels,
            "predictionPredictedLabels": self.prediction_predicted_labels,
            "theta": self.theta,
        }

    def encode(self) -> bytes:
        return encode(self.to_mapping())


def _ignore(*_: Any) -> None:
    return None


@dataclass
class TrainingCallbacks:
    """Where the trainer delivers its output. Every hook is optional."""

    on_report: Callable[[bytes], None] = field(default=_ignore)
    on_info: Callable[[str], None] = field(default=_ignore)
    on_error: Callable[[str], None] = field(default=_ignore)
    on_state: Callable[[str], None] = field(default=_ignore)
    on_finished: Callable[[], None] = field(default=_ignore)


def _round_complete(counts: list[int]) -> bool:
    """
    True once every run still iterating has reached the furthest count.

    Concurrent runs advance in lockstep, so a run two or more iterations
    behind the furthest one has already finished (early stop) and no longer
    holds the round back.
    """
    furthest = max(counts)
    return all(count == furthest for count in counts if count >= furthest - 1)


def _wrap_if_populated(data: Optional[list[list[float]]]) -> Optional[TensorHandle]:
    if not data:
        return None
    return TensorHandle.wrap(data)


class Trainer:
    """Runs training jobs one at a time and exposes their control surface."""

    def __init__(self) -> None:
        self._pipeline: Optional[ModelPipeline] = None
        self._stopped = False
        self._active = False
        # control commands that arrive before the pipeline exists
        self._pending_controls: list[str] = []

    @property
    def running(self) -> bool:
        return self._active

    def reserve(self) -> bool:
        """
        Claim the trainer for a run about to start; False if one is active.

        Control commands received between ``reserve`` and the start of
        ``train`` are held and applied once the model exists.
        """
        if self._active:
            return False
        self._active = True
        self._stopped = False
        self._pending_controls = []
        return True

    async def train(
        self,
        config: RunConfig,
        callbacks: Optional[TrainingCallbacks] = None,
        by_step: bool = False,
    ) -> Optional[TrainingReport]:
        """
        Run one training job to completion.

        Args:
            config: Validated run configuration.
            callbacks: Output hooks; reports arrive as encoded bytes.
            by_step: Stop after the first iteration (used to step through a
                     run from a cold start).

        Returns:
            The last report built, or None if no iteration completed.
        """
        callbacks = callbacks or TrainingCallbacks()
        dataset = config.dataset
        classification = config.task_type == "classification"

        X = TensorHandle.wrap(dataset.train_features)
        y = TensorHandle.wrap(dataset.train_labels)
        X_test = _wrap_if_populated(dataset.test_features)
        y_test = _wrap_if_populated(dataset.test_labels)
        X_grid = _wrap_if_populated(dataset.prediction_features)

        events = EventBus()
        tracker = MetricsTracker(log_interval=config.log_interval)
        thetas: dict[int, torch.Tensor] = {}
        latest: dict[str, Any] = {"report": None, "emitted": False}

        if not self._active:
            self.reserve()
        try:
            pipeline = build_pipeline(config, events)
        except Exception:
            self._active = False
            callbacks.on_finished()
            raise
        self._pipeline = pipeline

        def on_error(message: str) -> None:
            callbacks.on_error(message)
            pipeline.stop()

        def on_callback(payload: OptimizerCallback) -> None:
            if self._stopped:
                return

            thetas[payload.run_id] = payload.theta
            tracker.ensure_runs(payload.run_count)
            multi_run = payload.run_count > 1
            if multi_run:
                # one-vs-rest histories follow each run's own objective
                tracker.record(
                    IterationMetrics(
                        run_id=payload.run_id,
                        iteration=payload.iteration,
                        loss=payload.loss,
                        learning_rate=payload.rate,
                    )
                )
                if len(thetas) < payload.run_count or not _round_complete(tracker.iterations()):
                    return

            theta = torch.cat([thetas[run] for run in range(payload.run_count)], dim=1)
            report, metrics = self._evaluate(
                pipeline, theta, X, y, X_test, y_test, X_grid, classification, payload
            )
            if not multi_run:
                tracker.record(metrics)
            report.train_loss_history = tracker.loss_history()
            report.iterations = tracker.iterations()

            latest["report"] = report
            latest["emitted"] = False
            if payload.iteration == 0 or (payload.iteration + 1) % config.report_interval == 0:
                callbacks.on_report(report.encode())
                latest["emitted"] = True

            if by_step and payload.iteration == 0:
                pipeline.stop()

        events.on("callback", on_callback)
        events.on("error", on_error)
        events.on("info", callbacks.on_info)
        events.on("state", callbacks.on_state)

        for control in self._pending_controls:
            getattr(pipeline, control)()
        self._pending_controls = []

        logger.info(
            "Training started",
            extra={
                "task_type": config.task_type,
                "samples": X.shape[0],
                "features": X.shape[1],
                "by_step": by_step,
            },
        )

        try:
            if not self._stopped:
                await pipeline.train(X, y)

            if latest["report"] is not None and not latest["emitted"] and not self._stopped:
                callbacks.on_report(latest["report"].encode())
                latest["emitted"] = True

            logger.info(
                "Training finished",
                extra={"iterations": tracker.iterations(), "stopped": self._stopped},
            )
        finally:
            pipeline.dispose(with_dependencies=True)
            self._pipeline = None
            self._active = False
            callbacks.on_finished()

        return latest["report"]

    def _evaluate(
        self,
        pipeline: ModelPipeline,
        theta: torch.Tensor,
        X: TensorHandle,
        y: TensorHandle,
        X_test: Optional[TensorHandle],
        y_test: Optional[TensorHandle],
        X_grid: Optional[TensorHandle],
        classification: bool,
        payload: OptimizerCallback,
    ) -> tuple[TrainingReport, IterationMetrics]:
        train_pred, _, train_loss = pipeline.evaluate(X, y, theta)
        train_accuracy = accuracy(y.tensor, train_pred) if classification else None

        test_pred = None
        test_loss = None
        test_accuracy = None
        if X_test is not None and y_test is not None:
            test_pred, _, test_loss_tensor = pipeline.evaluate(X_test, y_test, theta)
            test_loss = float(test_loss_tensor.item())
            if classification:
                test_accuracy = accuracy(y_test.tensor, test_pred)

        grid_pred = pipeline.predict(X_grid, theta) if X_grid is not None else None

        report = TrainingReport(
            train_loss_history=[],
            iterations=[],
            theta=to_nested_list(theta),
            train_accuracy=train_accuracy,
            test_accuracy=test_accuracy,
            test_loss=test_loss,
            train_predicted_labels=to_nested_list(train_pred),
            test_predicted_labels=to_nested_list(test_pred) if test_pred is not None else None,
            prediction_predicted_labels=(
                to_nested_list(grid_pred) if grid_pred is not None else None
            ),
        )
        metrics = IterationMetrics(
            run_id=payload.run_id,
            iteration=payload.iteration,
            loss=float(train_loss.item()),
            learning_rate=payload.rate,
            train_accuracy=train_accuracy,
            test_accuracy=test_accuracy,
            test_loss=test_loss,
        )
        return report, metrics

    # ── Control ──────────────────────────────────────────────────────

    def _control(self, name: str) -> None:
        if self._pipeline is not None:
            getattr(self._pipeline, name)()
        elif self._active:
            self._pending_controls.append(name)

    def stop(self) -> None:
        self._stopped = True
        self._control("stop")

    def pause(self) -> None:
        self._control("pause")

    def resume(self) -> None:
        self._control("resume")

    def step(self) -> None:
        self._control("step")
