"""Flags and helpers shared by chart-identity commands."""

from argparse import (
    ArgumentParser,
    Action,
    ArgumentError,
    Namespace,
)
import logging
import pathlib
from typing import Any

from chart_identity.identity import (
    ChartIdentity,
    ReleaseIdentity,
    DEFAULT_CHART_NAME,
    DEFAULT_CHART_VERSION,
)
from chart_identity.values import ChartValues, apply_set_values, read_values

_LOGGER = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"


class SetAppendAction(Action):
    """Append comma separated key=value overrides to the argument list."""

    def __call__(
        self,
        parser: ArgumentParser,
        namespace: Namespace,
        values: Any,
        option_string: str | None = None,
    ) -> None:
        values = values.split(",")
        if not values[0]:
            return
        result = list(getattr(namespace, self.dest) or [])
        for value in values:
            if "=" not in value:
                raise ArgumentError(
                    self, f"Expected key=value format but got '{value}'"
                )
            result.append(value)
        setattr(namespace, self.dest, result)


def add_release_flags(args: ArgumentParser) -> None:
    """Add flags selecting the releases and values of a command."""
    args.add_argument(
        "releases",
        nargs="+",
        metavar="RELEASE",
        help="Release name, optionally prefixed with a namespace e.g. `ns1/app1`",
    )
    args.add_argument(
        "--namespace",
        "-n",
        type=str,
        default=DEFAULT_NAMESPACE,
        help="Namespace for releases not prefixed with a namespace",
    )
    args.add_argument(
        "--chart",
        type=str,
        default=DEFAULT_CHART_NAME,
        help="Name of the chart being installed",
    )
    args.add_argument(
        "--chart-version",
        type=str,
        default=DEFAULT_CHART_VERSION,
        help="Version of the chart, used for metadata labels",
    )
    args.add_argument(
        "--app-version",
        type=str,
        default=None,
        help="Version of the application, used for metadata labels",
    )
    args.add_argument(
        "--values",
        "-f",
        type=pathlib.Path,
        action="append",
        default=[],
        help="Values file to merge, may be specified multiple times",
    )
    args.add_argument(
        "--set",
        dest="set_values",
        action=SetAppendAction,
        default=[],
        help="Override values on the command line e.g. `service.port=9090`",
    )


def release_identities(
    releases: list[str], namespace: str
) -> list[ReleaseIdentity]:
    """Parse release arguments of the form `name` or `namespace/name`."""
    result: list[ReleaseIdentity] = []
    for release in releases:
        release_namespace, _, name = release.rpartition("/")
        identity = ReleaseIdentity(
            release_name=name, namespace=release_namespace or namespace
        )
        if identity in result:
            _LOGGER.warning("Release %s specified more than once", identity)
            continue
        result.append(identity)
    return result


def chart_identity(**kwargs: Any) -> ChartIdentity:
    """Build the chart identity from the command flags."""
    return ChartIdentity(
        chart_name=kwargs["chart"],
        version=kwargs.get("chart_version"),
        app_version=kwargs.get("app_version"),
    )


async def chart_values(
    values: list[pathlib.Path], set_values: list[str], **kwargs: Any
) -> ChartValues:
    """Read the values files and overrides into ChartValues."""
    doc = await read_values(values)
    doc = apply_set_values(doc, set_values)
    return ChartValues.parse(doc)
