# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

from .json import json_dumper, json_parser
from .logger import logger as shared_logger
from .utils import parse_byte_size, strtobool
