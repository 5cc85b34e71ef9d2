# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

import threading
import time
from typing import Callable
from unittest import TestCase

import mock
import pytest

from joinlines import AutoFlush, AutoFlushState, AutoFlushUnset, Joinlines, LineListener, Record
from joinlines.auto_flush import AutoFlushWorker

_auto_flush_interval: float = 0.5
_wait_timeout: float = 5.0


def _wait_for(condition: Callable[[], bool], timeout: float = _wait_timeout) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True

        time.sleep(0.01)

    return condition()


class _ErrorListener:
    def __init__(self, codec: Joinlines, error: Exception):
        self._codec = codec
        self._error = error

    def accept(self, data: str) -> None:
        self._codec.accept(self, data)

    def process_event(self, record: Record) -> None:
        raise self._error


@pytest.mark.unit
class TestAutoFlush(TestCase):
    def test_fire(self) -> None:
        fired = threading.Event()
        generations: list[int] = []

        def flusher(generation: int) -> None:
            generations.append(generation)
            fired.set()

        runner = AutoFlush(flusher, 0.05)
        assert runner.state is AutoFlushState.IDLE
        assert runner.interval == 0.05

        runner.start()
        assert runner.state is AutoFlushState.ARMED

        assert fired.wait(_wait_timeout)
        assert generations == [1]
        assert _wait_for(lambda: runner.state is AutoFlushState.IDLE)

    def test_restart_discards_previous_generation(self) -> None:
        runner = AutoFlush(mock.MagicMock(), 10)

        runner.start()
        assert runner.is_current(1)

        runner.start()
        assert not runner.is_current(1)
        assert runner.is_current(2)

        runner.stop()

    def test_single_worker(self) -> None:
        runner = AutoFlush(mock.MagicMock(), 10)

        with mock.patch("joinlines.auto_flush.AutoFlushWorker", wraps=AutoFlushWorker) as worker_class:
            for _ in range(50):
                runner.start()

        assert worker_class.call_count == 1
        assert runner.state is AutoFlushState.ARMED

        worker = runner._worker
        assert worker is not None and worker.is_alive()

        runner.stop()
        worker.join(_wait_timeout)
        assert not worker.is_alive()

    def test_restart_after_fire(self) -> None:
        fired = threading.Event()
        generations: list[int] = []

        def flusher(generation: int) -> None:
            generations.append(generation)
            fired.set()

        runner = AutoFlush(flusher, 0.05)

        try:
            runner.start()
            assert fired.wait(_wait_timeout)
            assert _wait_for(lambda: runner.state is AutoFlushState.IDLE)

            fired.clear()
            runner.start()
            assert fired.wait(_wait_timeout)
            assert generations == [1, 2]
        finally:
            runner.stop()

    def test_stop(self) -> None:
        flusher = mock.MagicMock()
        runner = AutoFlush(flusher, 0.05)

        runner.start()
        runner.stop()

        assert runner.state is AutoFlushState.STOPPED
        assert not runner.is_current(1)

        with self.subTest("start after stop is a no-op"):
            runner.start()
            assert runner.state is AutoFlushState.STOPPED

        time.sleep(0.2)
        flusher.assert_not_called()

    def test_flusher_error(self) -> None:
        fired = threading.Event()

        def flusher(generation: int) -> None:
            fired.set()
            raise Exception("OMG, Daleks!")

        runner = AutoFlush(flusher, 0.05)

        with mock.patch("joinlines.auto_flush.shared_logger") as logger:
            runner.start()
            assert fired.wait(_wait_timeout)
            assert _wait_for(lambda: logger.error.called)

        assert logger.error.call_args[0][0] == "auto flush error"
        assert _wait_for(lambda: runner.state is AutoFlushState.IDLE)

    def test_unset(self) -> None:
        runner = AutoFlushUnset()

        runner.start()
        runner.stop()

        assert runner.state is AutoFlushState.DISABLED
        assert not runner.is_current(0)


@pytest.mark.unit
class TestJoinlinesAutoFlush(TestCase):
    def test_auto_flush_interval_not_set(self) -> None:
        codec = Joinlines(patterns="^\\s", what="previous", negate=False)
        records: list[Record] = []
        listener = LineListener(codec=codec, source="en.log", consumer=records.append)

        for line in ["hello world", " second line", " third line"]:
            listener.accept(line)

        time.sleep(_auto_flush_interval + 0.1)

        assert codec.auto_flush_runner.state is AutoFlushState.DISABLED
        assert records == []
        assert codec.buffer_size == 3

    def test_previous_mode(self) -> None:
        codec = Joinlines(patterns="^\\s", what="previous", negate=False, auto_flush_interval=_auto_flush_interval)
        records: list[Record] = []
        en = LineListener(codec=codec, source="en.log", consumer=records.append)
        fr = LineListener(codec=codec, source="fr.log", consumer=records.append)

        try:
            with self.subTest("auto-flushes the accumulated lines"):
                started = time.monotonic()
                for line in ["hello world", " second line", " third line"]:
                    en.accept(line)

                assert records == []
                assert _wait_for(lambda: len(records) == 1)
                assert time.monotonic() - started >= _auto_flush_interval

                assert records[0] == Record(
                    message="hello world\n second line\n third line", tags=("joinlines",), source="en.log"
                )
                assert codec.buffer_size == 0

            with self.subTest("new lines before the interval keep the record buffered"):
                for line in ["Salut le Monde", " deuxième ligne"]:
                    fr.accept(line)
                    time.sleep(_auto_flush_interval * 0.6)

                assert len(records) == 1
                assert codec.buffer_size == 2

                assert _wait_for(lambda: len(records) == 2)
                assert records[1] == Record(
                    message="Salut le Monde\n deuxième ligne", tags=("joinlines",), source="fr.log"
                )
        finally:
            codec.close()

    def test_decode_consumer(self) -> None:
        codec = Joinlines(patterns="^\\s", what="previous", negate=False, auto_flush_interval=_auto_flush_interval)
        records: list[Record] = []

        try:
            started = time.monotonic()
            codec.decode("hello world", records.append)
            codec.decode("  second line", records.append)

            assert records == []
            assert _wait_for(lambda: len(records) == 1)
            assert time.monotonic() - started >= _auto_flush_interval

            assert records[0] == Record(message="hello world\n  second line", tags=("joinlines",))
            assert codec.buffer_size == 0
        finally:
            codec.close()

    def test_next_mode(self) -> None:
        codec = Joinlines(patterns="\\+\\+$", what="next", negate=False, auto_flush_interval=_auto_flush_interval)
        records: list[Record] = []
        en = LineListener(codec=codec, source="en.log", consumer=records.append)

        try:
            for line in ["hello world++", "second line++", "third line"]:
                en.accept(line)

            assert _wait_for(lambda: len(records) == 1)
            assert records[0] == Record(
                message="hello world++\nsecond line++\nthird line", tags=("joinlines",), source="en.log"
            )
            assert codec.buffer_size == 0
        finally:
            codec.close()

    def test_downstream_error(self) -> None:
        codec = Joinlines(patterns="^\\s", what="previous", negate=False, auto_flush_interval=_auto_flush_interval)
        listener = _ErrorListener(codec, Exception("OMG, Daleks!"))

        try:
            with mock.patch("joinlines.multiline.shared_logger") as logger:
                for line in ["hello world", " second line", " third line"]:
                    listener.accept(line)

                assert _wait_for(lambda: logger.error.called)

            assert logger.error.call_args[0][0] == "flush downstream error"
            assert str(logger.error.call_args[1]["exc_info"]) == "OMG, Daleks!"
            assert codec.buffer_size == 3
        finally:
            codec.close()

    def test_close_cancels_timer(self) -> None:
        codec = Joinlines(patterns="^\\s", what="previous", negate=False, auto_flush_interval=0.1)
        records: list[Record] = []
        listener = LineListener(codec=codec, source="en.log", consumer=records.append)

        listener.accept("hello world")
        codec.close()

        time.sleep(0.3)

        assert codec.auto_flush_runner.state is AutoFlushState.STOPPED
        assert records == []
        assert codec.buffer_size == 1

    def test_stale_fire_is_discarded(self) -> None:
        codec = Joinlines(patterns="^\\s", what="previous", negate=False, auto_flush_interval=10)
        records: list[Record] = []
        listener = LineListener(codec=codec, source="en.log", consumer=records.append)

        try:
            listener.accept("hello world")
            listener.accept(" second line")

            codec._auto_flush_fired(1)
            assert records == []
            assert codec.buffer_size == 2

            codec._auto_flush_fired(2)
            assert records == [Record(message="hello world\n second line", tags=("joinlines",), source="en.log")]
        finally:
            codec.close()
