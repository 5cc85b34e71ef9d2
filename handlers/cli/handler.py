# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

import sys
from typing import IO, Optional

from joinlines import CharsetConverter, Joinlines, LineListener
from share import shared_logger

from .exceptions import ConfigFileException
from .utils import STDIN_SOURCE, config_from_file, lines_from_source, ndjson_writer, wrap_try_except


@wrap_try_except
def cli_handler(config_path: str, sources: list[str], output: Optional[IO[str]] = None) -> int:
    """
    Command line handler
    Parses the config and feeds every source, line by line, through one shared codec
    """

    if output is None:
        output = sys.stdout

    if len(sources) == 0:
        sources = [STDIN_SOURCE]

    joinlines_config = config_from_file(config_path)

    try:
        codec: Joinlines = joinlines_config.create_codec()
    except ValueError as e:
        raise ConfigFileException(e)

    # sources are decoded before being split in lines: multi-byte charsets may embed line feed bytes
    converter = CharsetConverter(joinlines_config.charset)
    writer = ndjson_writer(output)

    # the codec holds only weak references to the listeners
    listeners: list[LineListener] = []

    try:
        for source in sources:
            listener = LineListener(codec=codec, source=source, consumer=writer)
            listeners.append(listener)

            shared_logger.info("reading source", extra={"source": source})
            for line in lines_from_source(source, converter):
                listener.accept(line)

        # nothing else will come: release the last record
        if len(listeners) > 0:
            codec.auto_flush(listeners[-1])
    finally:
        codec.close()

    shared_logger.info("sources processed", extra={"sources": len(sources)})

    return 0
