# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

from typing import Any, Optional, Union

import yaml

from share import parse_byte_size, shared_logger, strtobool

from .multiline import Direction, Joinlines, default_max_bytes, default_max_lines, default_multiline_tag

_available_what: list[str] = [direction.value for direction in Direction]


class JoinlinesConfig:
    """
    Config component for the joinlines codec
    """

    def __init__(
        self,
        patterns: Union[str, list[str]],
        what: Union[str, list[str]],
        negate: Union[bool, str, list[Union[bool, str]]],
        charset: str = "UTF-8",
        multiline_tag: str = default_multiline_tag,
        max_lines: int = default_max_lines,
        max_bytes: Union[int, str] = default_max_bytes,
        auto_flush_interval: Optional[Union[int, float]] = None,
        patterns_dir: Optional[list[str]] = None,
    ):
        self.patterns = patterns  # type:ignore
        self.what = what  # type:ignore
        self.negate = negate  # type:ignore
        self.charset = charset
        self.multiline_tag = multiline_tag
        self.max_lines = max_lines
        self.max_bytes = max_bytes  # type:ignore
        self.auto_flush_interval = auto_flush_interval
        self.patterns_dir = patterns_dir if patterns_dir is not None else []

        if not (len(self.patterns) == len(self.what) == len(self.negate)):
            raise ValueError("`patterns`, `what` and `negate` must have the same length")

        if not self.multiline_tag:
            shared_logger.debug("empty `multiline_tag` set in config: multiline records won't be tagged")

    @property
    def patterns(self) -> list[str]:
        return self._patterns

    @patterns.setter
    def patterns(self, values: Union[str, list[str]]) -> None:
        if isinstance(values, str):
            values = [values]

        if not isinstance(values, list) or len(values) == 0:
            raise ValueError("`patterns` must be provided as non empty list")

        if not all(isinstance(value, str) for value in values):
            raise ValueError(f"Each pattern in `patterns` must be provided as string, given: {values}")

        self._patterns = values

    @property
    def what(self) -> list[str]:
        return self._what

    @what.setter
    def what(self, values: Union[str, list[str]]) -> None:
        if isinstance(values, str):
            values = [values]

        if not isinstance(values, list) or len(values) == 0:
            raise ValueError("`what` must be provided as non empty list")

        for value in values:
            if value not in _available_what:
                raise ValueError(f"Each value in `what` must be one of {','.join(_available_what)}: {value} given")

        self._what = values

    @property
    def negate(self) -> list[bool]:
        return self._negate

    @negate.setter
    def negate(self, values: Union[bool, str, list[Union[bool, str]]]) -> None:
        if not isinstance(values, list):
            values = [values]

        if len(values) == 0:
            raise ValueError("`negate` must be provided as non empty list")

        negate: list[bool] = []
        for value in values:
            if isinstance(value, str):
                try:
                    value = strtobool(value)
                except ValueError:
                    pass

            if not isinstance(value, bool):
                raise ValueError(f"Each value in `negate` must be provided as boolean, given: {values}")

            negate.append(value)

        self._negate = negate

    @property
    def charset(self) -> str:
        return self._charset

    @charset.setter
    def charset(self, value: str) -> None:
        if not isinstance(value, str):
            raise ValueError("`charset` must be provided as string")

        self._charset = value

    @property
    def multiline_tag(self) -> str:
        return self._multiline_tag

    @multiline_tag.setter
    def multiline_tag(self, value: str) -> None:
        if not isinstance(value, str):
            raise ValueError("`multiline_tag` must be provided as string")

        self._multiline_tag = value

    @property
    def max_lines(self) -> int:
        return self._max_lines

    @max_lines.setter
    def max_lines(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"`max_lines` must be provided as positive integer: {value} given")

        self._max_lines = value

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    @max_bytes.setter
    def max_bytes(self, value: Union[int, str]) -> None:
        try:
            max_bytes = parse_byte_size(value)
        except ValueError as e:
            raise ValueError(f"`max_bytes` must be provided as integer or byte size string: {e}")

        if max_bytes <= 0:
            raise ValueError(f"`max_bytes` must be positive: {value} given")

        self._max_bytes = max_bytes

    @property
    def auto_flush_interval(self) -> Optional[float]:
        return self._auto_flush_interval

    @auto_flush_interval.setter
    def auto_flush_interval(self, value: Optional[Union[int, float]]) -> None:
        if value is None:
            self._auto_flush_interval: Optional[float] = None
            return

        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError(f"`auto_flush_interval` must be provided as positive number: {value} given")

        self._auto_flush_interval = float(value)

    @property
    def patterns_dir(self) -> list[str]:
        return self._patterns_dir

    @patterns_dir.setter
    def patterns_dir(self, values: Union[str, list[str]]) -> None:
        if isinstance(values, str):
            values = [values]

        if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
            raise ValueError("`patterns_dir` must be provided as list of strings")

        self._patterns_dir = values

    def create_codec(self) -> Joinlines:
        """
        Joinlines factory.
        Instantiates the codec as defined by the config
        """

        return Joinlines(
            patterns=self.patterns,
            what=self.what,
            negate=self.negate,
            charset=self.charset,
            multiline_tag=self.multiline_tag,
            max_lines=self.max_lines,
            max_bytes=self.max_bytes,
            auto_flush_interval=self.auto_flush_interval,
            patterns_dir=self.patterns_dir,
        )


def parse_config(config_yaml: str) -> JoinlinesConfig:
    """
    Config component factory
    Given a config yaml as string it return the JoinlinesConfig instance as defined by the yaml
    """

    yaml_config = yaml.safe_load(config_yaml)
    if not isinstance(yaml_config, dict):
        raise ValueError("Config must be provided as dictionary")

    if "joinlines" not in yaml_config or not isinstance(yaml_config["joinlines"], dict):
        raise ValueError("`joinlines` must be provided as dictionary")

    joinlines_config: dict[str, Any] = yaml_config["joinlines"]

    for required in ["patterns", "what", "negate"]:
        if required not in joinlines_config:
            raise ValueError(f"`{required}` must be provided in joinlines configuration")

    try:
        return JoinlinesConfig(**joinlines_config)
    except TypeError as e:
        raise ValueError(f"An error occurred while applying joinlines configuration: {e}")
