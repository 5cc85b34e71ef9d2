# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

from __future__ import annotations

import time
from enum import Enum
from threading import Condition, Thread
from typing import Callable, Optional, Protocol

from share import shared_logger

# AutoFlushCallable is called from the worker thread with the generation of the timer that fired
AutoFlushCallable = Callable[[int], None]


class AutoFlushState(Enum):
    DISABLED = "DISABLED"
    IDLE = "IDLE"
    ARMED = "ARMED"
    FIRED = "FIRED"
    STOPPED = "STOPPED"


class ProtocolAutoFlush(Protocol):
    """
    Protocol class for auto flush runners
    """

    @property
    def state(self) -> AutoFlushState:
        pass  # pragma: no cover

    def start(self) -> None:
        pass  # pragma: no cover

    def stop(self) -> None:
        pass  # pragma: no cover

    def is_current(self, generation: int) -> bool:
        pass  # pragma: no cover


class AutoFlushWorker(Thread):
    """The AutoFlushWorker calls the flusher when the deadline of its runner elapses.

    A single worker lives as long as its runner: it waits on the runner condition
    and re-reads the deadline every time it wakes up."""

    def __init__(self, runner: AutoFlush) -> None:
        Thread.__init__(self, name="joinlines-auto-flush", daemon=True)
        self.runner = runner

    def run(self) -> None:
        while True:
            generation = self.runner._wait_for_deadline()
            if generation is None:
                return

            self.runner._fire(generation)


class AutoFlush:
    """
    AutoFlush.
    Idle timer: every `start` moves the deadline `interval` seconds ahead, when the deadline
    elapses without a new `start` the flusher is called from the worker thread.

    Each arming gets a new generation: the flusher must check `is_current` under its own
    lock so that a fire racing with a newer `start` is discarded.
    """

    def __init__(self, flusher: AutoFlushCallable, interval: float):
        self._flusher: AutoFlushCallable = flusher
        self._interval: float = float(interval)

        self._condition = Condition()
        self._worker: Optional[AutoFlushWorker] = None
        self._deadline: Optional[float] = None
        self._generation: int = 0
        self._state: AutoFlushState = AutoFlushState.IDLE

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def state(self) -> AutoFlushState:
        return self._state

    def start(self) -> None:
        with self._condition:
            if self._state is AutoFlushState.STOPPED:
                return

            self._generation += 1

            # the deadline only moves forward: a waiting worker needs a wake up only when it had none
            waiting_without_deadline = self._deadline is None
            self._deadline = time.monotonic() + self._interval
            self._state = AutoFlushState.ARMED

            if self._worker is None:
                self._worker = AutoFlushWorker(self)
                self._worker.start()
            elif waiting_without_deadline:
                self._condition.notify()

    def stop(self) -> None:
        with self._condition:
            # invalidates a fire already waiting for the flusher lock
            self._generation += 1
            self._deadline = None
            self._state = AutoFlushState.STOPPED
            self._condition.notify()

    def is_current(self, generation: int) -> bool:
        with self._condition:
            return self._state is not AutoFlushState.STOPPED and generation == self._generation

    def _wait_for_deadline(self) -> Optional[int]:
        """
        Blocks until the deadline elapses and returns the generation to fire,
        or None once stopped
        """

        with self._condition:
            while self._state is not AutoFlushState.STOPPED:
                if self._deadline is None:
                    self._condition.wait()
                    continue

                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    self._deadline = None
                    self._state = AutoFlushState.FIRED
                    return self._generation

                self._condition.wait(remaining)

            self._worker = None
            return None

    def _fire(self, generation: int) -> None:
        try:
            self._flusher(generation)
        except Exception as e:
            shared_logger.error("auto flush error", exc_info=e)
        finally:
            with self._condition:
                if self._state is AutoFlushState.FIRED and generation == self._generation:
                    self._state = AutoFlushState.IDLE


class AutoFlushUnset:
    """
    AutoFlushUnset.
    Runner used when no `auto_flush_interval` is configured: it never fires
    """

    @property
    def state(self) -> AutoFlushState:
        return AutoFlushState.DISABLED

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def is_current(self, generation: int) -> bool:
        return False
