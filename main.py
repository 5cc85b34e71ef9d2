# Copyright Elasticsearch B.V. and/or licensed to Elasticsearch B.V. under one
# or more contributor license agreements. Licensed under the Elastic License 2.0;
# you may not use this file except in compliance with the Elastic License 2.0.

import argparse
import sys
from typing import Optional

from handlers.cli import cli_handler


def main(argv: Optional[list[str]] = None) -> int:
    """
    Command line entrypoint
    This is just a wrapper to handlers.cli.cli_handler
    """
    parser = argparse.ArgumentParser(description="Join lines of the given sources into multi-line records")
    parser.add_argument("--config", required=True, help="path of the joinlines yaml config")
    parser.add_argument("sources", nargs="*", help="files to read, `-` or nothing for stdin")

    args = parser.parse_args(argv)

    return cli_handler(args.config, args.sources)


if __name__ == "__main__":
    sys.exit(main())
