"""Chart-identity check action.

Renders every release and verifies that no selector of one release matches
the pods of another release, and that every image is pulled from a qualified
registry path. Resources of releases that are already deployed may be added
with `--resources` to check a new release against them. Deployed resources
are grouped by the release that owns them, so an upgrade of a release is
checked against the other releases only.
"""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
import pathlib
from typing import Any, cast

import aiofiles
import yaml

from chart_identity.exceptions import CheckException, InputException
from chart_identity.image import ImageChecker
from chart_identity.manifest import render_release
from chart_identity.selector import find_collisions, group_by_release

from . import common

_LOGGER = logging.getLogger(__name__)

FAIL = "[CHECK FAIL]"
OK = "[CHECK OK]"


async def read_resources(path: pathlib.Path) -> list[dict[str, Any]]:
    """Read a yaml stream of resources, expanding List objects."""
    try:
        async with aiofiles.open(str(path)) as resource_file:
            content = await resource_file.read()
    except OSError as err:
        raise InputException(f"Unable to read resources file {path}: {err}") from err
    try:
        docs = list(yaml.safe_load_all(content))
    except yaml.YAMLError as err:
        raise InputException(f"`{path}` failed to parse as yaml: {err}") from err

    resources: list[dict[str, Any]] = []
    for doc in docs:
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise InputException(
                f"`{path}` was not a dictionary: {type(doc).__name__}: {doc}"
            )
        if doc.get("kind") == "List":
            resources.extend(
                item for item in doc.get("items") or [] if isinstance(item, dict)
            )
            continue
        resources.append(doc)
    return resources


class CheckAction:
    """Chart-identity check action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "check",
                help="Check releases for selector collisions and unqualified images",
                description="""Render each release and report any Service or
                    workload selector matching pods of another release, and any
                    container image missing a registry host or namespace.""",
            ),
        )
        common.add_release_flags(args)
        args.add_argument(
            "--resources",
            type=pathlib.Path,
            action="append",
            default=[],
            help="Yaml file with resources of deployed releases to check against",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        releases: list[str],
        namespace: str,
        resources: list[pathlib.Path],
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        chart = common.chart_identity(**kwargs)
        values = await common.chart_values(**kwargs)

        rendered: dict[str, list[dict[str, Any]]] = {}
        for release in common.release_identities(releases, namespace):
            _, docs = render_release(chart, release, values)
            rendered[str(release)] = docs
        for path in resources:
            deployed = group_by_release(await read_resources(path))
            for release_name, docs in deployed.items():
                _LOGGER.debug(
                    "Read %d deployed resources of release %s from %s",
                    len(docs),
                    release_name,
                    path,
                )
                rendered.setdefault(release_name, []).extend(docs)

        image_checker = ImageChecker()
        for docs in rendered.values():
            for doc in docs:
                image_checker.visit(doc)

        errors = [str(collision) for collision in find_collisions(rendered)]
        errors.extend(image_checker.errors)
        if errors:
            for error in errors:
                print(f"{FAIL}: {error}")
            raise CheckException(errors)
        print(OK)
