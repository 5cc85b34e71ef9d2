# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

from .auto_flush import AutoFlush, AutoFlushState, AutoFlushUnset, ProtocolAutoFlush
from .charset import CharsetConverter
from .config import JoinlinesConfig, parse_config
from .listener import LineListener
from .multiline import (
    ConsumerBinding,
    ConsumerCallable,
    Direction,
    Joinlines,
    LineBuffer,
    ProtocolListener,
    Record,
    Rule,
    RuleSet,
    max_bytes_reached_tag,
    max_lines_reached_tag,
)
from .patterns import PatternLibrary, core_patterns, load_patterns_file
