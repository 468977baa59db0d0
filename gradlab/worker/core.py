# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Worker boundary: tagged commands in, tagged events out.

A TrainingWorker owns one background thread running one asyncio loop. All
engine work (the optimizer loop included) runs as tasks on that loop, so
the caller's thread never blocks on training.

Commands (caller -> worker):
  train       payload: run config mapping (or RunConfig); starts a run
  train-step  same, but the run stops after its first iteration
  stop        terminal cancel of the current run
  pause       suspend after the current iteration
  resume      continue
  step        while paused, run exactly one more iteration

Events (worker -> caller):
  report      payload: encoded report bytes
  info        payload: str
  error       payload: str
  state       payload: TrainingState str
  finished    no payload; every accepted train command ends with one

``send`` is thread-safe and commands are dispatched in arrival order. Only
one run is active at a time; a train command that arrives while a run is
active is answered with an error event.
"""

import asyncio
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Iterator, Literal, Mapping, Optional, Union

from gradlab.config.exceptions import ConfigError
from gradlab.config.loader import parse_config
from gradlab.config.schema import RunConfig
from gradlab.logging.logger import get_logger
from gradlab.training.engine.core import Trainer, TrainingCallbacks
from gradlab.training.exceptions import TrainingError

logger: logging.Logger = get_logger(__name__)

CommandType = Literal["train", "train-step", "stop", "pause", "resume", "step"]
EventType = Literal["report", "info", "error", "state", "finished"]

TRAIN_COMMANDS = frozenset({"train", "train-step"})
CONTROL_COMMANDS = frozenset({"stop", "pause", "resume", "step"})


@dataclass(frozen=True)
class Command:
    type: str
    payload: Optional[Union[Mapping[str, Any], RunConfig]] = None


@dataclass(frozen=True)
class Event:
    type: EventType
    payload: Any = None


EmitFn = Callable[[Event], None]


def _as_config(command: Command) -> RunConfig:
    if isinstance(command.payload, RunConfig):
        return command.payload
    return parse_config(command.payload or {}, source=f"{command.type} command")


async def _run_training(trainer: Trainer, config: RunConfig, by_step: bool, emit: EmitFn) -> None:
    """
    Run one job and translate failures into events.

    ``finished`` is sent here, after any failure has been reported, so a
    caller that stops reading at ``finished`` never misses the error.
    """
    callbacks = TrainingCallbacks(
        on_report=lambda report: emit(Event("report", report)),
        on_info=lambda message: emit(Event("info", message)),
        on_error=lambda message: emit(Event("error", message)),
        on_state=lambda state: emit(Event("state", state)),
    )

    try:
        await trainer.train(config, callbacks, by_step=by_step)
    except TrainingError as err:
        logger.error("Training failed", extra={"error": str(err)})
        emit(Event("error", str(err)))
    except Exception as err:
        logger.exception("Unexpected training failure")
        emit(Event("error", f"Unexpected error: {err}"))
    finally:
        emit(Event("finished"))


def handle_message(
    trainer: Trainer,
    command: Command,
    emit: EmitFn,
) -> Optional[Coroutine[Any, Any, None]]:
    """
    Dispatch one command.

    Control commands act immediately and return None. Train commands return
    the coroutine that runs the job; the caller schedules it so that later
    control commands are not blocked behind it.
    """
    if command.type in TRAIN_COMMANDS:
        if trainer.running:
            emit(Event("error", "A training run is already in progress; stop it first."))
            return None
        try:
            config = _as_config(command)
        except ConfigError as err:
            logger.error("Rejected train command", extra={"error": str(err)})
            emit(Event("error", str(err)))
            emit(Event("finished"))
            return None
        trainer.reserve()
        return _run_training(trainer, config, command.type == "train-step", emit)

    if command.type == "stop":
        trainer.stop()
    elif command.type == "pause":
        trainer.pause()
    elif command.type == "resume":
        trainer.resume()
    elif command.type == "step":
        trainer.step()
    else:
        logger.warning("Unknown message type", extra={"type": command.type})
        return None

    logger.debug("Control command handled", extra={"type": command.type})
    return None


class TrainingWorker:
    """
    Runs a Trainer on a dedicated thread and event loop.

    Usage:
        with TrainingWorker() as worker:
            worker.send(Command("train", config_dict))
            for event in worker.events_until_finished(timeout=30):
                ...
    """

    def __init__(self, trainer: Optional[Trainer] = None) -> None:
        self._trainer = trainer or Trainer()
        self._events: "queue.Queue[Event]" = queue.Queue()
        self._loop = asyncio.new_event_loop()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self._thread = threading.Thread(target=self._run_loop, name="gradlab-worker", daemon=True)
        self._thread.start()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
            # let a stopped run unwind and emit its final events
            if self._tasks:
                self._loop.run_until_complete(
                    asyncio.gather(*self._tasks, return_exceptions=True)
                )
        finally:
            self._loop.close()

    def _emit(self, event: Event) -> None:
        self._events.put(event)

    def _dispatch(self, command: Command) -> None:
        job = handle_message(self._trainer, command, self._emit)
        if job is not None:
            task = self._loop.create_task(job)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def send(self, command: Command) -> None:
        """Queue a command for the worker loop. Safe from any thread."""
        if self._closed:
            raise RuntimeError("TrainingWorker is closed")
        self._loop.call_soon_threadsafe(self._dispatch, command)

    def next_event(self, timeout: Optional[float] = None) -> Event:
        """
        Block until the next event arrives.

        Raises:
            queue.Empty: If ``timeout`` elapses first.
        """
        return self._events.get(timeout=timeout)

    def events_until_finished(self, timeout: Optional[float] = None) -> Iterator[Event]:
        """Yield events up to and including the next ``finished`` event."""
        while True:
            event = self.next_event(timeout)
            yield event
            if event.type == "finished":
                return

    def close(self, timeout: Optional[float] = 10.0) -> None:
        """Stop any active run, drain the loop and join the thread."""
        if self._closed:
            return
        self._closed = True
        self._loop.call_soon_threadsafe(self._shutdown)
        self._thread.join(timeout)

    def _shutdown(self) -> None:
        self._trainer.stop()
        self._loop.stop()

    def __enter__(self) -> "TrainingWorker":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
