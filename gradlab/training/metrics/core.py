# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Per-run training metrics.

The trainer records the train loss of every run after every iteration. One
model can drive several concurrent runs (one-vs-rest), so history and
iteration counters are kept per run id. Logs are emitted at the configured
interval via the structured logger.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from gradlab.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass
class IterationMetrics:
    """Metrics collected for a single iteration of one run."""

    run_id: int = 0
    iteration: int = 0
    loss: float = 0.0
    learning_rate: float = 0.0
    train_accuracy: Optional[float] = None
    test_accuracy: Optional[float] = None
    test_loss: Optional[float] = None
    iterations_per_sec: float = 0.0


@dataclass
class MetricsTracker:
    """
    Accumulates per-run loss history and iteration counters.

    Args:
        run_count: Number of concurrent runs being tracked.
        log_interval: Log metrics every N iterations.
    """

    run_count: int = 1
    log_interval: int = 10
    _loss_history: dict[int, list[float]] = field(default_factory=dict, init=False)
    _iterations: dict[int, int] = field(default_factory=dict, init=False)
    _start_time: float = field(default_factory=time.monotonic, init=False)

    def ensure_runs(self, run_count: int) -> None:
        """Grow the tracked run count once the real number of runs is known."""
        self.run_count = max(self.run_count, run_count)

    def record(self, metrics: IterationMetrics) -> None:
        self._loss_history.setdefault(metrics.run_id, []).append(metrics.loss)
        self._iterations[metrics.run_id] = metrics.iteration + 1

        if metrics.iteration % self.log_interval == 0:
            elapsed = time.monotonic() - self._start_time
            total = sum(self._iterations.values())
            metrics.iterations_per_sec = total / elapsed if elapsed > 0 else 0.0
            self._log_metrics(metrics)

    def loss_history(self) -> list[list[float]]:
        """
        Loss history per run, truncated to the shortest run.

        Runs advance at slightly different times, so the matrix is cut to a
        common length to stay rectangular.
        """
        histories = [self._loss_history.get(run, []) for run in range(self.run_count)]
        shortest = min((len(history) for history in histories), default=0)
        return [history[:shortest] for history in histories]

    def iterations(self) -> list[int]:
        return [self._iterations.get(run, 0) for run in range(self.run_count)]

    def _log_metrics(self, metrics: IterationMetrics) -> None:
        log_data = {
            "run_id": metrics.run_id,
            "iteration": metrics.iteration,
            "loss": round(metrics.loss, 6),
            "lr": metrics.learning_rate,
            "iterations_per_sec": round(metrics.iterations_per_sec, 1),
        }
        if metrics.train_accuracy is not None:
            log_data["train_accuracy"] = round(metrics.train_accuracy, 4)
        if metrics.test_accuracy is not None:
            log_data["test_accuracy"] = round(metrics.test_accuracy, 4)
        if metrics.test_loss is not None:
            log_data["test_loss"] = metrics.test_loss

        logger.info("Training iteration", extra=log_data)
