# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

import io
from unittest import TestCase

import mock
import pytest

from joinlines import CharsetConverter, Joinlines, Record

charset_convert = [
    pytest.param("UTF-8", "κόσμε".encode("utf-8"), "κόσμε", id="valid utf-8"),
    pytest.param("UTF-8", b"foo \xed\xb9\x81\xc3", "foo \\xed\\xb9\\x81\\xc3", id="invalid utf-8 sequences"),
    pytest.param("UTF-8", b"bar \xad", "bar \\xad", id="invalid utf-8 byte"),
    pytest.param("ISO-8859-1", b"\xe0 Montr\xe9al", "à Montréal", id="valid iso-8859-1"),
    pytest.param("cp1252", b"\x80 price", "€ price", id="valid cp1252"),
    pytest.param("ASCII-8BIT", b"\xe0 Montr\xe9al", "� Montr�al", id="binary"),
    pytest.param("UTF-8", "already text", "already text", id="text passthrough"),
]


@pytest.mark.unit
@pytest.mark.parametrize("charset,data,expected", charset_convert)
def test_charset_convert(charset: str, data: bytes, expected: str) -> None:
    converter = CharsetConverter(charset)

    assert converter.convert(data) == expected


@pytest.mark.unit
class TestCharsetConverter(TestCase):
    def test_init(self) -> None:
        with self.subTest("charset name is kept"):
            assert CharsetConverter("ISO-8859-1").charset == "ISO-8859-1"

        with self.subTest("unknown charset"):
            with self.assertRaisesRegex(ValueError, "`charset` must be a valid encoding name: NOPE-42 given"):
                CharsetConverter("NOPE-42")

        for charset in ["base64", "hex", "rot13", "zlib"]:
            with self.subTest("not a text encoding", charset=charset):
                with self.assertRaisesRegex(
                    ValueError, f"`charset` must be a valid encoding name: {charset} given"
                ):
                    CharsetConverter(charset)

                with self.assertRaisesRegex(ValueError, "`charset` must be a valid encoding name"):
                    Joinlines(patterns="^\\s", what="previous", negate=False, charset=charset)

        with self.subTest("charset not str"):
            with self.assertRaisesRegex(ValueError, "`charset` must be provided as string"):
                CharsetConverter(8)  # type:ignore

    def test_invalid_sequence_is_logged(self) -> None:
        converter = CharsetConverter("UTF-8")

        with mock.patch("joinlines.charset.shared_logger") as logger:
            converter.convert(b"valid")
            logger.warning.assert_not_called()

            converter.convert(b"bar \xad")
            logger.warning.assert_called_once()
            assert logger.warning.call_args[1]["extra"]["charset"] == "UTF-8"

    def test_text_stream(self) -> None:
        with self.subTest("utf-16 line feeds are split after decoding"):
            stream = CharsetConverter("UTF-16-LE").text_stream(io.BytesIO("hello\n  cont\r\n".encode("utf-16-le")))
            assert list(stream) == ["hello\n", "  cont\r\n"]

        with self.subTest("invalid sequences are escaped and logged"):
            stream = CharsetConverter("UTF-8").text_stream(io.BytesIO(b"bar \xad\nfoo\n"))

            with mock.patch("joinlines.charset.shared_logger") as logger:
                assert list(stream) == ["bar \\xad\n", "foo\n"]

            logger.warning.assert_called_once()

        with self.subTest("binary charset"):
            stream = CharsetConverter("BINARY").text_stream(io.BytesIO(b"caf\xc3\xa9\n"))
            assert list(stream) == ["caf\ufffd\ufffd\n"]

    def test_joinlines_charset(self) -> None:
        with self.subTest("escapes invalid sequences"):
            codec = Joinlines(patterns="^\\s", what="previous", negate=False)
            records: list[Record] = []
            for line in [b"foo \xed\xb9\x81\xc3", b"bar \xad"]:
                codec.decode(line, records.append)

            codec.flush(records.append)

            assert [record.message for record in records] == ["foo \\xed\\xb9\\x81\\xc3", "bar \\xad"]

        with self.subTest("converts non utf-8 source"):
            codec = Joinlines(patterns="^\\s", what="previous", negate=False, charset="ISO-8859-1")
            records = []
            for line in [b"foobar", b"\xe0 Montr\xe9al"]:
                codec.decode(line, records.append)

            codec.flush(records.append)

            assert [record.message for record in records] == ["foobar", "à Montréal"]
