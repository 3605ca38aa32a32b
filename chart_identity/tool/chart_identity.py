"""Command line tool for resolving, building and checking releases of the chart."""

import argparse
import asyncio
import logging
import sys
import traceback
from typing import Any

import yaml

from chart_identity.exceptions import ChartIdentityException
from . import build, check, resolve

_LOGGER = logging.getLogger(__name__)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for deriving release scoped resource names and labels.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    resolve.ResolveAction.register(subparsers)
    build.BuildAction.register(subparsers)
    check.CheckAction.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Chart-identity command line tool main entry point."""

    def str_presenter(dumper: yaml.Dumper, data: Any) -> Any:
        """Represent multi-line yaml strings as you'd expect.

        See https://github.com/yaml/pyyaml/issues/240
        """
        return dumper.represent_scalar(
            "tag:yaml.org,2002:str", data, style="|" if data.count("\n") > 0 else None
        )

    yaml.add_representer(str, str_presenter)

    parser = _make_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except ChartIdentityException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("chart-identity error: ", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
