# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

import codecs
import io
from typing import IO, Union

from share import shared_logger

# Charset names meaning "raw bytes, no declared text encoding"
_binary_charsets: list[str] = ["ascii-8bit", "binary"]

_invalid_sequence_message: str = "received an event that has a different character encoding than you configured"


def _logged_backslashreplace(error: UnicodeError) -> tuple[Union[str, bytes], int]:
    shared_logger.warning(
        _invalid_sequence_message, extra={"charset": getattr(error, "encoding", None), "reason": str(error)}
    )

    return codecs.backslashreplace_errors(error)


# error handler for streams: there's no strict first pass to detect the invalid sequences
_stream_errors: str = "joinlines.backslashreplace"
codecs.register_error(_stream_errors, _logged_backslashreplace)


class CharsetConverter:
    """
    CharsetConverter.
    Converts raw bytes declared in a source charset to text.
    Invalid byte sequences are replaced with one `\\xNN` escape per offending byte
    """

    def __init__(self, charset: str = "UTF-8"):
        if not isinstance(charset, str):
            raise ValueError("`charset` must be provided as string")

        self._charset: str = charset
        self._binary: bool = charset.lower() in _binary_charsets

        if self._binary:
            self._codec_name: str = "ascii"
        else:
            try:
                self._codec_name = codecs.lookup(charset).name
                # bytes-to-bytes codecs (base64, zlib, ...) are found by lookup but can't decode to text
                b"".decode(self._codec_name)
            except LookupError:
                raise ValueError(f"`charset` must be a valid encoding name: {charset} given")

    @property
    def charset(self) -> str:
        return self._charset

    def convert(self, data: Union[bytes, str]) -> str:
        if isinstance(data, str):
            return data

        if self._binary:
            # there's no source charset to honour: anything above 7 bits is unknown
            return data.decode(self._codec_name, errors="replace")

        try:
            return data.decode(self._codec_name)
        except UnicodeDecodeError as e:
            shared_logger.warning(_invalid_sequence_message, extra={"charset": self._charset, "reason": e.reason})

        return data.decode(self._codec_name, errors="backslashreplace")

    def text_stream(self, stream: IO[bytes]) -> io.TextIOWrapper:
        """
        Wraps a binary stream into a text one.
        Bytes are decoded before splitting, lines are terminated by line feeds only
        and keep their terminator
        """

        errors = "replace" if self._binary else _stream_errors

        return io.TextIOWrapper(stream, encoding=self._codec_name, errors=errors, newline="\n")  # type:ignore
