# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.


class ConfigFileException(Exception):
    """Raised when there is an error related to the config file"""

    pass


class InputException(Exception):
    """Raised when there is an error related to an input source"""

    pass
