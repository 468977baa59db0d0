# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Gradient-descent optimizers for gradlab.

Three variants share one loop contract:
  - BatchGD:      full-batch descent, theta <- theta - rate * grad
  - StochasticGD: mini-batches drawn from a shuffled index pool
  - MomentumGD:   v <- beta * v - rate * grad, theta <- theta + v

Each iteration computes the gradient, updates theta, computes the loss on
the updated theta and emits a "callback" event. A NaN loss emits "error"
and ends the run. Batch and momentum also end early (with an "info" event)
once the loss drops below the tolerance.

The optimizer does not know about models: it receives a loss closure and a
gradient closure ``(X, y, theta) -> Tensor`` that already include the
regularization term. Nothing here uses autograd; all work happens under
``torch.no_grad()`` and theta is rebound, never mutated in place, so a theta
handed to listeners stays valid.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Callable, Optional

import torch

from gradlab.config.schema import OptimizerConfig
from gradlab.logging.logger import get_logger
from gradlab.tensors import DTYPE
from gradlab.training.events.core import EventBus, OptimizerCallback
from gradlab.training.exceptions import require
from gradlab.training.optimizer.control import OptimizerControl
from gradlab.training.scheduler.core import LearningRate, get_learning_rate

logger: logging.Logger = get_logger(__name__)

DEFAULT_TOLERANCE = 1e-4
DEFAULT_BATCH_SIZE = 1
DEFAULT_BETA = 0.9
DEFAULT_SEED = 42

ObjectiveFn = Callable[[torch.Tensor, torch.Tensor, torch.Tensor], torch.Tensor]


class BaseOptimizer(ABC):
    """
    Shared state, control and event plumbing for all optimizers.

    Args:
        learning_rate: A LearningRate or a plain float (constant rate).
        max_iterations: Upper bound on iterations, must be >= 1.
        tolerance: Early-stop threshold on the loss, must be > 0.
        events: Bus that receives callback/info/error events.

    Raises:
        ConfigurationError: On out-of-range parameters.
    """

    def __init__(
        self,
        learning_rate: "LearningRate | float",
        max_iterations: int,
        tolerance: float = DEFAULT_TOLERANCE,
        events: Optional[EventBus] = None,
    ) -> None:
        require(max_iterations >= 1, f"max_iterations must be >= 1, got {max_iterations}")
        require(tolerance > 0, f"tolerance must be > 0, got {tolerance}")

        if not isinstance(learning_rate, LearningRate):
            learning_rate = LearningRate.constant(learning_rate)

        self.learning_rate = learning_rate
        self.max_iterations = int(max_iterations)
        self.tolerance = float(tolerance)
        self.events = events
        self.control = OptimizerControl()

    # ── Control ──────────────────────────────────────────────────────

    @property
    def stopped(self) -> bool:
        return self.control.stopped

    def pause(self) -> None:
        self.control.pause()

    def resume(self) -> None:
        self.control.resume()

    def step(self) -> None:
        self.control.step()

    def stop(self) -> None:
        self.control.stop()

    # ── Optimization ─────────────────────────────────────────────────

    @abstractmethod
    async def optimize(
        self,
        X: torch.Tensor,
        y: torch.Tensor,
        loss_fn: ObjectiveFn,
        gradient_fn: ObjectiveFn,
        init_theta: Optional[torch.Tensor] = None,
        run_id: int = 0,
        run_count: int = 1,
        run_name: Optional[str] = None,
    ) -> torch.Tensor:
        """
        Minimize ``loss_fn`` starting from ``init_theta``.

        Args:
            X: Feature matrix without the bias column (the closures add it).
            y: Targets, one row per sample.
            loss_fn: ``(X, y, theta) -> scalar`` loss including the penalty.
            gradient_fn: ``(X, y, theta) -> Tensor`` shaped like theta.
            init_theta: Starting parameters; zeros ``[X.cols + 1, 1]`` when omitted.
            run_id: Identifies this run among concurrent runs.
            run_count: Number of concurrent runs sharing this optimizer.
            run_name: Optional human-readable run label.

        Returns:
            The final theta. If the run was stopped it is the last theta
            reached before the stop.
        """

    def _initial_theta(self, X: torch.Tensor, init_theta: Optional[torch.Tensor]) -> torch.Tensor:
        if init_theta is None:
            return torch.zeros((X.shape[1] + 1, 1), dtype=DTYPE)
        return init_theta.detach().to(DTYPE).clone()

    async def _emit(self, event: str, *args: object) -> None:
        if self.events is not None:
            await self.events.emit(event, *args)

    async def _report_iteration(
        self,
        *,
        run_id: int,
        run_count: int,
        run_name: Optional[str],
        iteration: int,
        theta: torch.Tensor,
        loss: float,
        rate: float,
        check_tolerance: bool,
    ) -> bool:
        """Emit the callback and return True when the run must end."""
        await self._emit(
            "callback",
            OptimizerCallback(
                run_id=run_id,
                iteration=iteration,
                theta=theta,
                loss=loss,
                rate=rate,
                run_count=run_count,
                run_name=run_name,
            ),
        )

        if math.isnan(loss):
            message = f"[{run_id}] Loss is NaN at iteration {iteration}. Stopping optimization."
            logger.error(message, extra={"run_id": run_id, "iteration": iteration})
            await self._emit("error", message)
            return True

        if check_tolerance and loss < self.tolerance:
            message = f"[{run_id}] Early stopping at iteration {iteration} with loss: {loss:.4f}"
            logger.info(
                "Early stopping",
                extra={"run_id": run_id, "iteration": iteration, "loss": loss},
            )
            await self._emit("info", message)
            return True

        return False

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(learning_rate={self.learning_rate!r}, "
            f"max_iterations={self.max_iterations}, tolerance={self.tolerance})"
        )


class BatchGD(BaseOptimizer):
    """Full-batch gradient descent."""

    async def optimize(
        self,
        X: torch.Tensor,
        y: torch.Tensor,
        loss_fn: ObjectiveFn,
        gradient_fn: ObjectiveFn,
        init_theta: Optional[torch.Tensor] = None,
        run_id: int = 0,
        run_count: int = 1,
        run_name: Optional[str] = None,
    ) -> torch.Tensor:
        theta = self._initial_theta(X, init_theta)

        async for iteration in self.control.iterations(self.max_iterations):
            rate = self.learning_rate.next(iteration)

            with torch.no_grad():
                gradient = gradient_fn(X, y, theta)
                theta = theta - rate * gradient
                loss = float(loss_fn(X, y, theta).item())
            del gradient

            done = await self._report_iteration(
                run_id=run_id,
                run_count=run_count,
                run_name=run_name,
                iteration=iteration,
                theta=theta,
                loss=loss,
                rate=rate,
                check_tolerance=True,
            )
            if done:
                break

        return theta


class BatchSampler:
    """
    Draws mini-batches without replacement from a shuffled index pool.

    The pool is a permutation of all sample indices. It is reshuffled when
    empty or when the next batch would run past its end, so every index is
    seen once per pass (the tail that doesn't fill a batch is dropped).
    """

    def __init__(self, sample_count: int, batch_size: int, seed: int = DEFAULT_SEED) -> None:
        require(
            batch_size <= sample_count,
            f"Batch size ({batch_size}) cannot be larger than the number of samples ({sample_count}).",
        )
        self.sample_count = sample_count
        self.batch_size = batch_size
        self._generator = torch.Generator()
        self._generator.manual_seed(seed)
        self._pool = torch.empty(0, dtype=torch.long)
        self._pointer = 0

    def _refill(self) -> None:
        self._pool = torch.randperm(self.sample_count, generator=self._generator)
        self._pointer = 0

    def next_indices(self) -> torch.Tensor:
        if len(self._pool) == 0 or self._pointer + self.batch_size > self.sample_count:
            self._refill()
        indices = self._pool[self._pointer : self._pointer + self.batch_size]
        self._pointer += self.batch_size
        return indices

    def next_batch(self, X: torch.Tensor, y: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
        indices = self.next_indices()
        return X.index_select(0, indices), y.index_select(0, indices)


class StochasticGD(BaseOptimizer):
    """
    Mini-batch stochastic gradient descent.

    The loss reported each iteration is the loss on that iteration's batch,
    so it is noisy and there is no tolerance-based early stop.

    Args:
        batch_size: Samples per batch, must be >= 1.
        seed: Seed for the batch shuffler (42 when omitted).
    """

    def __init__(
        self,
        learning_rate: "LearningRate | float",
        max_iterations: int,
        tolerance: float = DEFAULT_TOLERANCE,
        events: Optional[EventBus] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        seed: Optional[int] = None,
    ) -> None:
        super().__init__(learning_rate, max_iterations, tolerance, events)
        require(batch_size > 0, f"Batch size must be positive, got {batch_size}")
        self.batch_size = int(batch_size)
        self.seed = DEFAULT_SEED if seed is None else int(seed)

    async def optimize(
        self,
        X: torch.Tensor,
        y: torch.Tensor,
        loss_fn: ObjectiveFn,
        gradient_fn: ObjectiveFn,
        init_theta: Optional[torch.Tensor] = None,
        run_id: int = 0,
        run_count: int = 1,
        run_name: Optional[str] = None,
    ) -> torch.Tensor:
        theta = self._initial_theta(X, init_theta)
        sampler = BatchSampler(X.shape[0], self.batch_size, self.seed)

        async for iteration in self.control.iterations(self.max_iterations):
            rate = self.learning_rate.next(iteration)

            with torch.no_grad():
                batch_X, batch_y = sampler.next_batch(X, y)
                gradient = gradient_fn(batch_X, batch_y, theta)
                theta = theta - rate * gradient
                loss = float(loss_fn(batch_X, batch_y, theta).item())
            del gradient, batch_X, batch_y

            done = await self._report_iteration(
                run_id=run_id,
                run_count=run_count,
                run_name=run_name,
                iteration=iteration,
                theta=theta,
                loss=loss,
                rate=rate,
                check_tolerance=False,
            )
            if done:
                break

        return theta


class MomentumGD(BaseOptimizer):
    """
    Gradient descent with classical momentum.

    The velocity buffer starts at zero for every ``optimize`` call.

    Args:
        beta: Velocity decay, strictly between 0 and 1.
    """

    def __init__(
        self,
        learning_rate: "LearningRate | float",
        max_iterations: int,
        tolerance: float = DEFAULT_TOLERANCE,
        events: Optional[EventBus] = None,
        beta: float = DEFAULT_BETA,
    ) -> None:
        super().__init__(learning_rate, max_iterations, tolerance, events)
        require(0 < beta < 1, f"Invalid beta value: {beta}. It should be in the range (0, 1).")
        self.beta = float(beta)

    async def optimize(
        self,
        X: torch.Tensor,
        y: torch.Tensor,
        loss_fn: ObjectiveFn,
        gradient_fn: ObjectiveFn,
        init_theta: Optional[torch.Tensor] = None,
        run_id: int = 0,
        run_count: int = 1,
        run_name: Optional[str] = None,
    ) -> torch.Tensor:
        theta = self._initial_theta(X, init_theta)
        velocity = torch.zeros_like(theta)

        async for iteration in self.control.iterations(self.max_iterations):
            rate = self.learning_rate.next(iteration)

            with torch.no_grad():
                gradient = gradient_fn(X, y, theta)
                velocity = self.beta * velocity - rate * gradient
                theta = theta + velocity
                loss = float(loss_fn(X, y, theta).item())
            del gradient

            done = await self._report_iteration(
                run_id=run_id,
                run_count=run_count,
                run_name=run_name,
                iteration=iteration,
                theta=theta,
                loss=loss,
                rate=rate,
                check_tolerance=True,
            )
            if done:
                break

        return theta


def create_optimizer(
    config: OptimizerConfig,
    events: Optional[EventBus] = None,
    default_seed: Optional[int] = None,
) -> BaseOptimizer:
    """
    Build the optimizer described by an OptimizerConfig.

    Args:
        config: Optimizer section of the model settings.
        events: Bus for callback/info/error events.
        default_seed: Shuffler seed used when the config has none.

    Returns:
        A ready-to-use optimizer.
    """
    scheduler_config = config.scheduler_config if config.scheduler else None
    learning_rate = get_learning_rate(config.learning_rate, scheduler_config)

    if config.type == "stochastic":
        seed = config.seed if config.seed is not None else default_seed
        optimizer: BaseOptimizer = StochasticGD(
            learning_rate,
            config.max_iterations,
            config.tolerance,
            events,
            batch_size=config.batch_size,
            seed=seed,
        )
    elif config.type == "momentum":
        optimizer = MomentumGD(
            learning_rate,
            config.max_iterations,
            config.tolerance,
            events,
            beta=config.beta,
        )
    else:
        optimizer = BatchGD(learning_rate, config.max_iterations, config.tolerance, events)

    logger.info(
        "Optimizer created",
        extra={
            "optimizer": config.type,
            "learning_rate": config.learning_rate,
            "scheduler": config.scheduler,
            "max_iterations": config.max_iterations,
        },
    )
    return optimizer
