# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Event bus shared by the optimizer, the models and the trainer.

Event names and payloads:
  - "callback": OptimizerCallback, once per completed iteration
  - "info":     str, e.g. early stopping
  - "error":    str, e.g. a NaN loss
  - "state":    TrainingState, lifecycle transitions from the pipeline

Listeners may be plain functions or coroutine functions. ``emit`` calls all
of them and awaits the coroutines together, so the optimizer does not start
the next iteration until every listener has seen the current one.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

import torch

from gradlab.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)

TrainingState = Literal["transforming", "training", "paused", "stopped", "stepped-forward"]

EventName = Literal["callback", "info", "error", "state"]
Listener = Callable[..., Any]


@dataclass(frozen=True)
class OptimizerCallback:
    """
    Progress of one optimizer run after one iteration.

    ``run_id`` and ``run_count`` identify a run among the concurrent runs of
    a one-vs-rest model; a single-run model always reports ``0`` of ``1``.
    ``theta`` is the updated parameter matrix; the optimizer never mutates
    it afterwards.
    """

    run_id: int
    iteration: int
    theta: torch.Tensor
    loss: float
    rate: float
    run_count: int = 1
    run_name: Optional[str] = None


class EventBus:
    """Minimal publish/subscribe table keyed by event name."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._pending: set[asyncio.Task] = set()

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: str, listener: Optional[Listener] = None) -> None:
        """Remove one listener, or every listener of ``event`` when none is given."""
        if event not in self._listeners:
            return
        if listener is None:
            del self._listeners[event]
            return
        self._listeners[event] = [cb for cb in self._listeners[event] if cb != listener]

    async def emit(self, event: str, *args: Any) -> None:
        listeners = list(self._listeners.get(event, ()))
        if not listeners:
            return

        pending = []
        for listener in listeners:
            result = listener(*args)
            if inspect.isawaitable(result):
                pending.append(result)

        if pending:
            await asyncio.gather(*pending)

    def emit_nowait(self, event: str, *args: Any) -> None:
        """
        Fire an event from synchronous code.

        Plain listeners run immediately. Coroutine listeners are scheduled as
        tasks on the running loop, so they need one.
        """
        for listener in list(self._listeners.get(event, ())):
            result = listener(*args)
            if inspect.isawaitable(result):
                task = asyncio.get_running_loop().create_task(result)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def clear(self) -> None:
        self._listeners.clear()
        logger.debug("Event bus cleared")
