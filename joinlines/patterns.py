# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

# Named sub-patterns usable inside joinlines patterns as %{NAME} or %{NAME:field}.

from __future__ import annotations

import glob
import os
import re
from typing import Optional

from share import shared_logger

_max_expansion_depth: int = 64

_reference_regex = re.compile(r"%\{(?P<name>\w+)(?::(?P<field>[\w.@\[\]-]+))?(?::(?P<type>\w+))?\}")

# Subset of the logstash core grok patterns, rewritten for the `re` dialect
core_patterns: dict[str, str] = {
    "USERNAME": r"[a-zA-Z0-9._-]+",
    "USER": r"%{USERNAME}",
    "EMAILLOCALPART": r"[a-zA-Z][a-zA-Z0-9_.+-=:]+",
    "EMAILADDRESS": r"%{EMAILLOCALPART}@%{HOSTNAME}",
    "INT": r"(?:[+-]?(?:[0-9]+))",
    "BASE10NUM": r"(?<![0-9.+-])(?:[+-]?(?:(?:[0-9]+(?:\.[0-9]+)?)|(?:\.[0-9]+)))",
    "NUMBER": r"(?:%{BASE10NUM})",
    "BASE16NUM": r"(?<![0-9A-Fa-f])(?:[+-]?(?:0x)?(?:[0-9A-Fa-f]+))",
    "POSINT": r"\b(?:[1-9][0-9]*)\b",
    "NONNEGINT": r"\b(?:[0-9]+)\b",
    "WORD": r"\b\w+\b",
    "NOTSPACE": r"\S+",
    "SPACE": r"\s*",
    "DATA": r".*?",
    "GREEDYDATA": r".*",
    "QUOTEDSTRING": r"(?:\"(?:\\.|[^\\\"]+)+\"|\"\"|'(?:\\.|[^\\']+)+'|''|`(?:\\.|[^\\`]+)+`|``)",
    "UUID": r"[A-Fa-f0-9]{8}-(?:[A-Fa-f0-9]{4}-){3}[A-Fa-f0-9]{12}",
    "IPV4": r"(?<![0-9])(?:(?:[0-1]?[0-9]{1,2}|2[0-4][0-9]|25[0-5])[.](?:[0-1]?[0-9]{1,2}|2[0-4][0-9]|25[0-5])"
    r"[.](?:[0-1]?[0-9]{1,2}|2[0-4][0-9]|25[0-5])[.](?:[0-1]?[0-9]{1,2}|2[0-4][0-9]|25[0-5]))(?![0-9])",
    "HOSTNAME": r"\b(?:[0-9A-Za-z][0-9A-Za-z-]{0,62})(?:\.(?:[0-9A-Za-z][0-9A-Za-z-]{0,62}))*(?:\.?|\b)",
    "IPORHOST": r"(?:%{IPV4}|%{HOSTNAME})",
    "HOSTPORT": r"%{IPORHOST}:%{POSINT}",
    "UNIXPATH": r"(?:/[\w_%!$@:.,+~-]*)+",
    "WINPATH": r"(?:[A-Za-z]+:|\\)(?:\\[^\\?*]*)+",
    "PATH": r"(?:%{UNIXPATH}|%{WINPATH})",
    "MONTH": r"\b(?:[Jj]an(?:uary|uar)?|[Ff]eb(?:ruary|ruar)?|[Mm](?:a|ä)?r(?:ch|z)?|[Aa]pr(?:il)?|[Mm]a(?:y|i)?"
    r"|[Jj]un(?:e|i)?|[Jj]ul(?:y|i)?|[Aa]ug(?:ust)?|[Ss]ep(?:tember)?|[Oo](?:c|k)?t(?:ober)?|[Nn]ov(?:ember)?"
    r"|[Dd]e(?:c|z)(?:ember)?)\b",
    "MONTHNUM": r"(?:0?[1-9]|1[0-2])",
    "MONTHDAY": r"(?:(?:0[1-9])|(?:[12][0-9])|(?:3[01])|[1-9])",
    "DAY": r"(?:Mon(?:day)?|Tue(?:sday)?|Wed(?:nesday)?|Thu(?:rsday)?|Fri(?:day)?|Sat(?:urday)?|Sun(?:day)?)",
    "YEAR": r"(?:\d\d){1,2}",
    "HOUR": r"(?:2[0123]|[01]?[0-9])",
    "MINUTE": r"(?:[0-5][0-9])",
    "SECOND": r"(?:(?:[0-5]?[0-9]|60)(?:[:.,][0-9]+)?)",
    "TIME": r"(?<![0-9])%{HOUR}:%{MINUTE}(?::%{SECOND})(?![0-9])",
    "DATE_US": r"%{MONTHNUM}[/-]%{MONTHDAY}[/-]%{YEAR}",
    "DATE_EU": r"%{MONTHDAY}[./-]%{MONTHNUM}[./-]%{YEAR}",
    "DATE": r"%{DATE_US}|%{DATE_EU}",
    "ISO8601_TIMEZONE": r"(?:Z|[+-]%{HOUR}(?::?%{MINUTE}))",
    "ISO8601_SECOND": r"%{SECOND}",
    "TIMESTAMP_ISO8601": r"%{YEAR}-%{MONTHNUM}-%{MONTHDAY}[T ]%{HOUR}:?%{MINUTE}(?::?%{SECOND})?%{ISO8601_TIMEZONE}?",
    "DATESTAMP": r"%{DATE}[- ]%{TIME}",
    "SYSLOGTIMESTAMP": r"%{MONTH} +%{MONTHDAY} %{TIME}",
    "HTTPDATE": r"%{MONTHDAY}/%{MONTH}/%{YEAR}:%{TIME} %{INT}",
    "LOGLEVEL": r"(?:[Aa]lert|ALERT|[Tt]race|TRACE|[Dd]ebug|DEBUG|[Nn]otice|NOTICE|[Ii]nfo?(?:rmation)?"
    r"|INFO?(?:RMATION)?|[Ww]arn?(?:ing)?|WARN?(?:ING)?|[Ee]rr?(?:or)?|ERR?(?:OR)?|[Cc]rit?(?:ical)?"
    r"|CRIT?(?:ICAL)?|[Ff]atal|FATAL|[Ss]evere|SEVERE|EMERG(?:ENCY)?|[Ee]merg(?:ency)?)",
}


def load_patterns_file(path: str) -> dict[str, str]:
    """
    Reads a patterns file: one `NAME PATTERN` definition per line,
    blank lines and lines starting with `#` are skipped
    """

    definitions: dict[str, str] = {}
    with open(path, "r", encoding="utf-8") as f:
        for line_n, line in enumerate(f):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            name, _, pattern = line.partition(" ")
            pattern = pattern.strip()
            if not pattern:
                raise ValueError(f"Invalid pattern definition at line {line_n + 1} of {path}: {line}")

            definitions[name] = pattern

    return definitions


class PatternLibrary:
    """
    PatternLibrary.
    Holds the named sub-patterns and expands them inside a pattern
    """

    def __init__(self, patterns_dir: Optional[list[str]] = None):
        self._definitions: dict[str, str] = dict(core_patterns)

        if patterns_dir is None:
            patterns_dir = []

        for path in patterns_dir:
            if os.path.isdir(path):
                path = os.path.join(path, "*")

            for file_path in sorted(glob.glob(path)):
                if not os.path.isfile(file_path):
                    continue

                shared_logger.debug("loading patterns from file", extra={"path": file_path})
                self._definitions.update(load_patterns_file(file_path))

    def __contains__(self, name: str) -> bool:
        return name in self._definitions

    def add_pattern(self, name: str, pattern: str) -> None:
        self._definitions[name] = pattern

    def expand(self, pattern: str) -> str:
        """
        Replaces every %{NAME} reference, recursively, with a non-capturing group
        """

        return self._expand(pattern, [])

    def _expand(self, pattern: str, stack: list[str]) -> str:
        if len(stack) > _max_expansion_depth:
            raise ValueError(f"Pattern expansion too deep: {' -> '.join(stack)}")

        def replace(matched: re.Match[str]) -> str:
            name: str = matched.group("name")
            if name not in self._definitions:
                raise ValueError(f"Unknown pattern name %{{{name}}}")

            if name in stack:
                raise ValueError(f"Recursive pattern definition: {' -> '.join(stack + [name])}")

            return "(?:" + self._expand(self._definitions[name], stack + [name]) + ")"

        return _reference_regex.sub(replace, pattern)

    def compile(self, pattern: str) -> re.Pattern[str]:
        expanded = self.expand(pattern)
        try:
            return re.compile(expanded)
        except re.error as e:
            raise ValueError(f"Invalid pattern {pattern}: {e}")
