"""Chart-identity resolve action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import Any, cast

from chart_identity.manifest import resolve_release

from . import common
from .format import FORMATTERS, formatter

_LOGGER = logging.getLogger(__name__)

WIDE_KEYS = ["namespace", "release", "fullName", "imageReference"]


class ResolveAction:
    """Chart-identity resolve action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "resolve",
                help="Print the names, labels and image of releases",
                description="""Print the identity shared by every resource of a
                    release: the resource name, the metadata and selector labels
                    and the fully qualified image reference.""",
            ),
        )
        common.add_release_flags(args)
        args.add_argument(
            "--output",
            "-o",
            choices=FORMATTERS,
            default="yaml",
            help="Output format of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        releases: list[str],
        namespace: str,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        chart = common.chart_identity(**kwargs)
        values = await common.chart_values(**kwargs)
        results: list[dict[str, Any]] = []
        for release in common.release_identities(releases, namespace):
            identity = resolve_release(chart, release, values)
            result = identity.to_dict()
            if output == "wide":
                result["release"] = release.release_name
            results.append(result)
        formatter(output, WIDE_KEYS).print(results)
