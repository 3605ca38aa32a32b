"""Chart-identity build action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import Any, cast

from chart_identity.manifest import render_release

from . import common
from .format import YamlFormatter

_LOGGER = logging.getLogger(__name__)


class BuildAction:
    """Chart-identity build action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "build",
                help="Build the resources of releases",
                description="""Render the BuildConfig, ImageStream, deployment,
                    Service, Route and HorizontalPodAutoscaler of each release as
                    a yaml stream, similar to helm template.""",
            ),
        )
        common.add_release_flags(args)
        args.add_argument(
            "--output-file",
            type=str,
            default="/dev/stdout",
            help="Output file for the results of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        releases: list[str],
        namespace: str,
        output_file: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        chart = common.chart_identity(**kwargs)
        values = await common.chart_values(**kwargs)
        resources: list[dict[str, Any]] = []
        for release in common.release_identities(releases, namespace):
            _, docs = render_release(chart, release, values)
            resources.extend(docs)

        with open(output_file, "w") as file:
            YamlFormatter().print(resources, file=file)
