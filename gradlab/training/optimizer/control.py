# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Cooperative pause/step/stop control for the optimizer loop.

The optimizer pulls iteration numbers from ``iterations()``. Control
commands only flip flags; the loop honours them at the top of the next
iteration:

  - paused:  the loop waits on an asyncio.Event until resumed, stopped or
             stepped (no polling)
  - step:    while paused, lets exactly one more iteration through
  - stopped: terminal, ends the loop; also clears pause

Between iterations the loop yields to the event loop once, so a command
queued while an iteration was running takes effect before the next one.

One control can drive several concurrent loops (one-vs-rest runs share an
optimizer). Each ``step()`` bumps a counter and every loop remembers the
last value it consumed, so a single step advances each paused run by one
iteration. A step requested before a loop starts counts as pending for it.
"""

import asyncio
import logging
from typing import AsyncIterator

from gradlab.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)


class OptimizerControl:
    def __init__(self) -> None:
        self._paused = False
        self._stopped = False
        self._step_count = 0
        self._waiters: set[asyncio.Event] = set()

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def stopped(self) -> bool:
        return self._stopped

    def pause(self) -> None:
        if self._stopped:
            return
        self._paused = True
        logger.debug("Optimizer paused")

    def resume(self) -> None:
        self._paused = False
        self._notify()
        logger.debug("Optimizer resumed")

    def step(self) -> None:
        self._step_count += 1
        self._notify()
        logger.debug("Optimizer step requested", extra={"step_count": self._step_count})

    def stop(self) -> None:
        if self._stopped:
            return
        self._paused = False
        self._stopped = True
        self._notify()
        logger.debug("Optimizer stopped")

    def _notify(self) -> None:
        for waiter in self._waiters:
            waiter.set()

    async def iterations(self, max_iterations: int) -> AsyncIterator[int]:
        """
        Yield 0..max_iterations-1, honouring pause, step and stop.

        The loop ends early (without raising) once ``stop()`` is called.
        """
        wake = asyncio.Event()
        self._waiters.add(wake)
        consumed_step = 0
        try:
            for iteration in range(max_iterations):
                while self._paused and not self._stopped and consumed_step == self._step_count:
                    wake.clear()
                    await wake.wait()

                if self._stopped:
                    break

                consumed_step = self._step_count
                yield iteration

                await asyncio.sleep(0)
        finally:
            self._waiters.discard(wake)
