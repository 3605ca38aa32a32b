"""Library for evaluating label selectors across releases.

A Service or workload selector is an exact-match predicate over pod labels.
When two releases of the same chart share a namespace, a selector that only
matches on the chart name picks up the pods of both releases and traffic leaks
between them. `find_collisions` reports every such case.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import logging
from typing import Any

from .identity import INSTANCE_LABEL
from .manifest import SERVICE_KIND, WORKLOAD_KINDS
from .values import DEPLOYMENT_KIND

__all__ = [
    "matches",
    "resource_selector",
    "pod_labels",
    "release_key",
    "group_by_release",
    "Collision",
    "find_collisions",
]

_LOGGER = logging.getLogger(__name__)


def matches(selector: Mapping[str, str] | None, labels: Mapping[str, str]) -> bool:
    """Return true if every selector label is present with the same value.

    An empty selector matches nothing.
    """
    if not selector:
        return False
    return all(labels.get(key) == value for key, value in selector.items())


def resource_selector(doc: dict[str, Any]) -> dict[str, str] | None:
    """Return the pod selector of a Service or workload, if it has one."""
    kind = doc.get("kind")
    spec = doc.get("spec") or {}
    if kind == DEPLOYMENT_KIND:
        return (spec.get("selector") or {}).get("matchLabels")
    if kind == SERVICE_KIND or kind in WORKLOAD_KINDS:
        return spec.get("selector")
    return None


def pod_labels(doc: dict[str, Any]) -> dict[str, str] | None:
    """Return the pod template labels of a workload."""
    if doc.get("kind") not in WORKLOAD_KINDS:
        return None
    spec = doc.get("spec") or {}
    template = spec.get("template") or {}
    return (template.get("metadata") or {}).get("labels") or {}


def release_key(doc: dict[str, Any]) -> str:
    """Return the `namespace/release` owning a deployed resource.

    The release comes from the instance label, falling back to the resource
    name for resources that predate the label.
    """
    metadata = doc.get("metadata") or {}
    labels = metadata.get("labels") or {}
    release = labels.get(INSTANCE_LABEL) or metadata.get("name")
    return f"{metadata.get('namespace')}/{release}"


def group_by_release(
    docs: Iterable[dict[str, Any]],
) -> dict[str, list[dict[str, Any]]]:
    """Group deployed resources by the release that owns them."""
    releases: dict[str, list[dict[str, Any]]] = {}
    for doc in docs:
        releases.setdefault(release_key(doc), []).append(doc)
    return releases


def _resource_id(doc: dict[str, Any]) -> str:
    metadata = doc.get("metadata") or {}
    return f"{doc.get('kind')}/{metadata.get('namespace')}/{metadata.get('name')}"


@dataclass(frozen=True, order=True)
class Collision:
    """A selector of one release that matches the pods of another release."""

    release: str
    """The release owning the selector."""

    resource: str
    """The resource owning the selector."""

    other_release: str
    """The release whose pods are selected."""

    other_resource: str
    """The workload whose pod template is selected."""

    def __str__(self) -> str:
        return (
            f"{self.resource} of release '{self.release}' selects pods of "
            f"{self.other_resource} of release '{self.other_release}'"
        )


def find_collisions(releases: Mapping[str, list[dict[str, Any]]]) -> list[Collision]:
    """Find selectors that match pods rendered for a different release.

    The releases are the rendered resources keyed by release name. Selectors
    only apply within a namespace. A release never collides with itself.
    """
    collisions: list[Collision] = []
    for release, docs in releases.items():
        for doc in docs:
            if not (selector := resource_selector(doc)):
                continue
            namespace = (doc.get("metadata") or {}).get("namespace")
            for other_release, other_docs in releases.items():
                if other_release == release:
                    continue
                for other in other_docs:
                    if (other.get("metadata") or {}).get("namespace") != namespace:
                        continue
                    if (labels := pod_labels(other)) is None:
                        continue
                    if not matches(selector, labels):
                        continue
                    collision = Collision(
                        release=release,
                        resource=_resource_id(doc),
                        other_release=other_release,
                        other_resource=_resource_id(other),
                    )
                    _LOGGER.debug("Found selector collision: %s", collision)
                    collisions.append(collision)
    collisions.sort()
    return collisions
