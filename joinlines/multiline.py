# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.


# This file is a porting of the joinlines codec on logstash.

from __future__ import annotations

import threading
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Union

from typing_extensions import TypeAlias

from share import shared_logger

from .auto_flush import AutoFlush, AutoFlushUnset, ProtocolAutoFlush
from .charset import CharsetConverter
from .patterns import PatternLibrary

default_max_bytes: int = 10485760  # Default maximum number of bytes to return in one multi-line record
default_max_lines: int = 500  # Default maximum number of lines to return in one multi-line record
default_multiline_tag: str = "joinlines"

max_bytes_reached_tag: str = "joinlines_codec_max_bytes_reached"
max_lines_reached_tag: str = "joinlines_codec_max_lines_reached"

NL: str = "\n"


class Direction(Enum):
    """
    Direction of a matching line: PREVIOUS attaches the line to the record before it,
    NEXT attaches the following lines to it
    """

    PREVIOUS = "previous"
    NEXT = "next"


@dataclass(frozen=True)
class Record:
    """
    Record is a completed group of lines
    """

    message: str
    tags: tuple[str, ...] = ()
    source: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {"message": self.message}
        if self.tags:
            record["tags"] = list(self.tags)

        if self.source is not None:
            record["source"] = self.source

        return record


# ConsumerCallable receives every flushed record
ConsumerCallable: TypeAlias = Callable[[Record], None]

# EmitCallable receives the flushed record and whether it belongs to the previous listener
EmitCallable: TypeAlias = Callable[[Record, bool], None]

# MatcherCallable returns a boolean indicating if the line matches a rule, negation included
MatcherCallable: TypeAlias = Callable[[str], bool]


class ProtocolListener(Protocol):
    """
    Protocol class for the listeners feeding a Joinlines instance
    """

    def process_event(self, record: Record) -> None:
        pass  # pragma: no cover


class Rule:
    """
    Rule is a single (pattern, direction, negate) triple
    """

    def __init__(self, pattern: str, direction: Direction, negate: bool, library: PatternLibrary):
        self._pattern: str = pattern
        self._direction: Direction = direction
        self._negate: bool = negate

        self._matcher: MatcherCallable = self._setup_pattern_matcher(pattern, negate, library)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Rule):
            return False

        return (
            self._pattern == other._pattern and self._direction == other._direction and self._negate == other._negate
        )

    @property
    def pattern(self) -> str:
        return self._pattern

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def negate(self) -> bool:
        return self._negate

    def _setup_pattern_matcher(self, pattern: str, negate: bool, library: PatternLibrary) -> MatcherCallable:
        matcher: MatcherCallable = self._get_pattern_matcher(library.compile(pattern))
        if negate:
            matcher = self._negated_matcher(matcher)

        return matcher

    @staticmethod
    def _get_pattern_matcher(pattern: Any) -> MatcherCallable:
        def match(line: str) -> bool:
            return pattern.search(line) is not None

        return match

    @staticmethod
    def _negated_matcher(matcher: MatcherCallable) -> MatcherCallable:
        def negate(line: str) -> bool:
            return not matcher(line)

        return negate

    def matches(self, line: str) -> bool:
        return self._matcher(line)


class RuleSet:
    """
    RuleSet.
    Ordered rules, the first matching one decides the direction of a line
    """

    def __init__(self, rules: list[Rule]):
        if len(rules) == 0:
            raise ValueError("At least one rule must be provided")

        self._rules: list[Rule] = rules

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleSet):
            return False

        return self._rules == other._rules

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rules(self) -> list[Rule]:
        return self._rules

    def classify(self, line: str) -> Optional[Direction]:
        """
        Returns the direction of the first matching rule or None if no rule matches
        """

        for rule in self._rules:
            match = rule.matches(line)
            shared_logger.debug(
                "joinlines", extra={"pattern": rule.pattern, "text": line, "match": match, "negate": rule.negate}
            )

            if match:
                return rule.direction

        return None


class LineBuffer:
    """
    LineBuffer.
    This class implements a buffer for collecting lines with max lines and max bytes limits.
    """

    def __init__(self, max_bytes: int, max_lines: int, multiline_tag: str):
        self._max_bytes: int = max_bytes
        self._max_lines: int = max_lines
        self._multiline_tag: str = multiline_tag

        self._lines: list[str] = []
        self._bytes: int = 0

    def append(self, line: str) -> None:
        self._bytes += len(line.encode("utf-8"))
        self._lines.append(line)

    def size(self) -> int:
        return len(self._lines)

    def byte_size(self) -> int:
        return self._bytes

    def is_empty(self) -> bool:
        return len(self._lines) == 0

    def over_line_limit(self) -> bool:
        return self.size() > self._max_lines

    def over_byte_limit(self) -> bool:
        return self.byte_size() >= self._max_bytes

    def over_limits(self) -> bool:
        return self.over_line_limit() or self.over_byte_limit()

    def merge(self) -> Record:
        tags: list[str] = []
        if self._multiline_tag and self.size() > 1:
            tags.append(self._multiline_tag)

        if self.over_byte_limit():
            tags.append(max_bytes_reached_tag)

        if self.over_line_limit():
            tags.append(max_lines_reached_tag)

        return Record(message=NL.join(self._lines), tags=tuple(tags))

    def reset(self) -> None:
        self._lines = []
        self._bytes = 0


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value

    return [value]


class ConsumerBinding:
    """
    ConsumerBinding lets a plain consumer callable, as given to `Joinlines.decode`,
    stand where a listener is expected
    """

    def __init__(self, consumer: ConsumerCallable):
        self._consumer: ConsumerCallable = consumer

    @property
    def consumer(self) -> ConsumerCallable:
        return self._consumer

    def process_event(self, record: Record) -> None:
        self._consumer(record)


class Joinlines:
    """
    Joinlines.
    Joins lines matching a list of patterns, each with its own direction and negation.

    Lines are fed through `decode` (single consumer) or `accept` (on behalf of a listener).
    A record is flushed when a line opens a new group, when the buffer limits are reached
    or, if `auto_flush_interval` is set, when no line is fed for that many seconds.
    """

    def __init__(
        self,
        patterns: Union[str, list[str]],
        what: Union[str, list[str]],
        negate: Union[bool, list[bool]],
        charset: str = "UTF-8",
        multiline_tag: str = default_multiline_tag,
        max_lines: int = default_max_lines,
        max_bytes: int = default_max_bytes,
        auto_flush_interval: Optional[float] = None,
        patterns_dir: Optional[list[str]] = None,
    ):
        self._patterns: list[str] = _as_list(patterns)
        self._what: list[str] = _as_list(what)
        self._negate: list[bool] = _as_list(negate)

        if len(self._patterns) == 0:
            raise ValueError("`patterns` must not be empty")

        if not (len(self._patterns) == len(self._what) == len(self._negate)):
            raise ValueError(
                "`patterns`, `what` and `negate` must have the same length: "
                f"{len(self._patterns)}, {len(self._what)} and {len(self._negate)} given"
            )

        if not isinstance(multiline_tag, str):
            raise ValueError("`multiline_tag` must be provided as string")

        if isinstance(max_lines, bool) or not isinstance(max_lines, int) or max_lines <= 0:
            raise ValueError(f"`max_lines` must be a positive integer: {max_lines} given")

        if isinstance(max_bytes, bool) or not isinstance(max_bytes, int) or max_bytes <= 0:
            raise ValueError(f"`max_bytes` must be a positive integer: {max_bytes} given")

        if auto_flush_interval is not None and (
            isinstance(auto_flush_interval, bool)
            or not isinstance(auto_flush_interval, (int, float))
            or auto_flush_interval <= 0
        ):
            raise ValueError(f"`auto_flush_interval` must be a positive number: {auto_flush_interval} given")

        self._charset: str = charset
        self._multiline_tag: str = multiline_tag
        self._max_lines: int = max_lines
        self._max_bytes: int = max_bytes
        self._auto_flush_interval: Optional[float] = auto_flush_interval
        self._patterns_dir: list[str] = list(patterns_dir) if patterns_dir else []

        library = PatternLibrary(self._patterns_dir)

        rules: list[Rule] = []
        for pattern, what_value, negate_value in zip(self._patterns, self._what, self._negate):
            if not isinstance(pattern, str):
                raise ValueError(f"Each pattern in `patterns` must be provided as string: {pattern} given")

            try:
                direction = Direction(what_value)
            except ValueError:
                raise ValueError(
                    f"Each value in `what` must be one of {','.join(d.value for d in Direction)}: {what_value} given"
                )

            if not isinstance(negate_value, bool):
                raise ValueError(f"Each value in `negate` must be provided as boolean: {negate_value} given")

            rules.append(Rule(pattern=pattern, direction=direction, negate=negate_value, library=library))

        self._rule_set: RuleSet = RuleSet(rules)
        self._converter: CharsetConverter = CharsetConverter(charset)
        self._buffer: LineBuffer = LineBuffer(max_bytes=max_bytes, max_lines=max_lines, multiline_tag=multiline_tag)

        self._current_direction: Optional[Direction] = None

        self._last_seen_listener: Optional[weakref.ReferenceType[ProtocolListener]] = None
        self._previous_listener: Optional[weakref.ReferenceType[ProtocolListener]] = None
        self._consumer_binding: Optional[ConsumerBinding] = None

        self._lock = threading.Lock()

        self._auto_flush_runner: ProtocolAutoFlush
        if self._auto_flush_interval is not None:
            # will start on first line
            self._auto_flush_runner = AutoFlush(self._auto_flush_fired, self._auto_flush_interval)
        else:
            self._auto_flush_runner = AutoFlushUnset()

        shared_logger.debug(
            "registered joinlines",
            extra={"patterns": self._patterns, "what": self._what, "negate": self._negate, "charset": charset},
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Joinlines):
            return False

        return (
            self._rule_set == other._rule_set
            and self._charset == other._charset
            and self._multiline_tag == other._multiline_tag
            and self._max_lines == other._max_lines
            and self._max_bytes == other._max_bytes
            and self._auto_flush_interval == other._auto_flush_interval
        )

    def clone(self) -> Joinlines:
        """
        Returns a new instance with the same configuration and an empty state
        """

        return Joinlines(
            patterns=self._patterns,
            what=self._what,
            negate=self._negate,
            charset=self._charset,
            multiline_tag=self._multiline_tag,
            max_lines=self._max_lines,
            max_bytes=self._max_bytes,
            auto_flush_interval=self._auto_flush_interval,
            patterns_dir=self._patterns_dir,
        )

    @property
    def rule_set(self) -> RuleSet:
        return self._rule_set

    @property
    def buffer_size(self) -> int:
        return self._buffer.size()

    @property
    def buffer_bytes(self) -> int:
        return self._buffer.byte_size()

    @property
    def current_direction(self) -> Optional[Direction]:
        return self._current_direction

    @property
    def auto_flush_active(self) -> bool:
        return self._auto_flush_interval is not None

    @property
    def auto_flush_runner(self) -> ProtocolAutoFlush:
        return self._auto_flush_runner

    def decode(self, data: Union[bytes, str], consumer: ConsumerCallable) -> None:
        """
        Feeds data and sends every completed record to the consumer.
        The consumer becomes the most recent binding: the auto flush timer dispatches to it
        """

        with self._lock:
            # the codec holds bindings by weak reference: the decode binding is owned here
            if self._consumer_binding is None or self._consumer_binding.consumer != consumer:
                self._consumer_binding = ConsumerBinding(consumer)

            self._bind(self._consumer_binding)

            self._internal_decode(data, lambda record, _: consumer(record))

    def accept(self, listener: ProtocolListener, data: Union[bytes, str]) -> None:
        """
        Feeds data on behalf of a listener.
        Records completed by a line of another listener may belong to the previous one
        """

        with self._lock:
            self._bind(listener)

            self._internal_decode(data, self._dispatch_to_listener)

    def flush(self, consumer: ConsumerCallable) -> None:
        with self._lock:
            self._flush(consumer)

    def auto_flush(self, listener: Optional[ProtocolListener] = None) -> None:
        """
        Flushes to the given listener or, by default, to the last seen one
        """

        with self._lock:
            if listener is None:
                listener = self._dereference(self._last_seen_listener)

            if listener is None:
                return

            self._flush(listener.process_event)

    def close(self) -> None:
        """
        Stops the auto flush timer. The buffer is not flushed
        """

        self._auto_flush_runner.stop()

    def _internal_decode(self, data: Union[bytes, str], emit: EmitCallable) -> None:
        text = self._converter.convert(data)

        for line in self._split_lines(text):
            direction = self._rule_set.classify(line)

            if direction is not None:
                do_flush = direction is Direction.NEXT and self._current_direction is not Direction.NEXT
            else:
                do_flush = self._current_direction is not Direction.NEXT

            self._current_direction = direction

            if do_flush:
                belongs_to_previous = self._current_direction is not Direction.NEXT
                self._flush(lambda record: emit(record, belongs_to_previous))

            self._auto_flush_runner.start()
            self._buffer.append(line)

            if self._buffer.over_limits():
                self._flush(lambda record: emit(record, False))

    @staticmethod
    def _split_lines(text: str) -> list[str]:
        lines = text.split(NL)
        while len(lines) > 0 and lines[-1] == "":
            lines.pop()

        return lines

    def _flush(self, consumer: ConsumerCallable) -> None:
        if self._buffer.is_empty():
            return

        record = self._buffer.merge()
        try:
            consumer(record)
        except Exception as e:
            # likeliest cause: backpressure or timeout by exception
            # leave the data in the buffer for next time
            shared_logger.error(
                "flush downstream error",
                extra={"buffer_lines": self._buffer.size(), "buffer_bytes": self._buffer.byte_size()},
                exc_info=e,
            )
            return

        self._buffer.reset()

    def _bind(self, listener: ProtocolListener) -> None:
        """
        Memoizes references to the listener that holds upstream state.
        Previous is the listener of the line before, even when it's the same one:
        a record completed by a second line of the same source belongs to that source
        """

        if self._dereference(self._last_seen_listener) is not None:
            self._previous_listener = self._last_seen_listener
        else:
            self._previous_listener = weakref.ref(listener)

        self._last_seen_listener = weakref.ref(listener)

    def _dispatch_to_listener(self, record: Record, belongs_to_previous: bool) -> None:
        reference = self._previous_listener if belongs_to_previous else self._last_seen_listener
        listener = self._dereference(reference)
        if listener is None:
            raise ReferenceError("listener is no longer available")

        listener.process_event(record)

    def _auto_flush_fired(self, generation: int) -> None:
        with self._lock:
            # a line fed after the timer fired re-armed it: that line must not be flushed early
            if not self._auto_flush_runner.is_current(generation):
                return

            listener = self._dereference(self._last_seen_listener)
            if listener is None:
                shared_logger.debug("auto flush skipped: no listener")
                return

            shared_logger.debug("auto flush", extra={"buffer_lines": self._buffer.size()})
            self._flush(listener.process_event)

    @staticmethod
    def _dereference(
        reference: Optional[weakref.ReferenceType[ProtocolListener]],
    ) -> Optional[ProtocolListener]:
        if reference is None:
            return None

        return reference()
