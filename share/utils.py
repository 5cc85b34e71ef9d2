# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

import re
from typing import Union

_byte_size_units: dict[str, int] = {
    "": 1,
    "b": 1,
    "kb": 1000,
    "mb": 1000**2,
    "gb": 1000**3,
    "tb": 1000**4,
    "kib": 1024,
    "mib": 1024**2,
    "gib": 1024**3,
    "tib": 1024**4,
}

_byte_size_regex = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmgt]?i?b)?\s*$", re.IGNORECASE)


def strtobool(val: str) -> bool:
    """Convert a string representation of truth to true (1) or false (0).
    True values are 'y', 'yes', 't', 'true', 'on', and '1'; false values
    are 'n', 'no', 'f', 'false', 'off', and '0'.  Raises ValueError if
    'val' is anything else.
    """
    val = val.lower()
    if val in ("y", "yes", "t", "true", "on", "1"):
        return True
    elif val in ("n", "no", "f", "false", "off", "0"):
        return False
    else:
        raise ValueError("invalid truth value {!r}".format(val))


def parse_byte_size(value: Union[int, str]) -> int:
    """
    Converts a byte size given either as int or as string with an optional unit
    ("1024", "2 mb", "10 MiB") to the number of bytes
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid byte size {value!r}")

    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"invalid byte size {value!r}")

    matched = _byte_size_regex.match(value)
    if matched is None:
        raise ValueError(f"invalid byte size {value!r}")

    number, unit = matched.groups()
    if unit is None:
        unit = ""

    unit = unit.lower()
    if unit not in _byte_size_units:
        raise ValueError(f"invalid byte size unit {unit!r} in {value!r}")

    return int(float(number) * _byte_size_units[unit])
