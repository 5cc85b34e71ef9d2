# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

from dataclasses import replace
from typing import Union

from .multiline import ConsumerCallable, Joinlines, Record


class LineListener:
    """
    LineListener holds the upstream state of a single source:
    it feeds its lines to a (possibly shared) Joinlines instance and receives
    back the records belonging to it, tagged with the source
    """

    def __init__(self, codec: Joinlines, source: str, consumer: ConsumerCallable):
        self._codec: Joinlines = codec
        self._source: str = source
        self._consumer: ConsumerCallable = consumer

    @property
    def source(self) -> str:
        return self._source

    def accept(self, data: Union[bytes, str]) -> None:
        self._codec.accept(self, data)

    def process_event(self, record: Record) -> None:
        self._consumer(replace(record, source=self._source))
