# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

import sys
from typing import IO, Any, Callable, Iterator

from joinlines import CharsetConverter, ConsumerCallable, Record, parse_config
from joinlines.config import JoinlinesConfig
from share import json_dumper, shared_logger

from .exceptions import ConfigFileException, InputException

STDIN_SOURCE: str = "-"


def wrap_try_except(func: Callable[..., int]) -> Callable[..., int]:
    """
    Decorator to catch every exception: ConfigFileException and InputException
    are logged and raised, any other exception is logged and turned into exit code 1
    """

    def wrapper(*args: Any, **kwargs: Any) -> int:
        try:
            return func(*args, **kwargs)

        # NOTE: non-transient unrecoverable errors: let the caller know
        except (ConfigFileException, InputException) as e:
            shared_logger.exception("exception raised", exc_info=e)

            raise e

        except Exception as e:
            shared_logger.exception("exception raised", exc_info=e)

            return 1

    return wrapper


def config_from_file(config_path: str) -> JoinlinesConfig:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_yaml = f.read()
    except OSError as e:
        raise ConfigFileException(f"cannot read config file {config_path}: {e}")

    try:
        return parse_config(config_yaml)
    except ValueError as e:
        raise ConfigFileException(e)


def lines_from_source(source: str, converter: CharsetConverter) -> Iterator[str]:
    """
    Yields the lines of a source decoded from the configured charset, newline included.
    `-` reads from stdin
    """

    if source == STDIN_SOURCE:
        stdin = converter.text_stream(sys.stdin.buffer)
        try:
            yield from stdin
        finally:
            # leaves stdin open
            stdin.detach()

        return

    try:
        f = open(source, "rb")
    except OSError as e:
        raise InputException(f"cannot read source {source}: {e}")

    with converter.text_stream(f) as text:
        yield from text


def ndjson_writer(output: IO[str]) -> ConsumerCallable:
    """
    Returns a consumer writing every record as a single json line
    """

    def write(record: Record) -> None:
        output.write(json_dumper(record.to_dict(), append_newline=True))
        output.flush()

    return write
