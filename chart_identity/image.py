"""Helper functions for working with container images.

An image reference without a registry host is pulled from a public registry,
which fails for images that only exist in the in-cluster registry. Rendered
resources are checked so every image carries a registry and a namespace.
"""

import logging
from typing import Any

from .exceptions import ChartIdentityException

__all__ = [
    "is_qualified",
    "extract_images",
    "ImageChecker",
]

_LOGGER = logging.getLogger(__name__)


# Default image key for most object types.
IMAGE_KEY = "image"


def _strip_tag(reference: str) -> str:
    """Return the repository of an image reference without tag or digest."""
    repository = reference.split("@", 1)[0]
    last_slash = repository.rfind("/")
    if (colon := repository.rfind(":")) > last_slash:
        repository = repository[:colon]
    return repository


def is_qualified(reference: str) -> bool:
    """Return true if the image has a registry host and a namespace segment."""
    parts = _strip_tag(reference).split("/")
    if len(parts) < 3 or not all(parts):
        return False
    host = parts[0]
    return "." in host or ":" in host or host == "localhost"


def extract_images(doc: dict[str, Any]) -> set[str]:
    """Extract the container images referenced by a Kubernetes object."""
    images: set[str] = set({})

    for key, value in doc.items():
        if key == IMAGE_KEY:
            if not isinstance(value, str):
                raise ValueError(
                    f"Expected string for image key '{IMAGE_KEY}', got type {type(value).__name__}: {value}"
                )
            images.add(value)
        elif isinstance(value, dict):
            images.update(extract_images(value))
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    images.update(extract_images(item))

    return images


class ImageChecker:
    """Helper that records unqualified container images of rendered resources."""

    def __init__(self) -> None:
        """Initialize ImageChecker."""
        self.unqualified: dict[str, set[str]] = {}

    def visit(self, doc: dict[str, Any]) -> None:
        """Record any unqualified images found in the document."""
        kind: str = doc.get("kind", "")
        metadata = doc.get("metadata") or {}
        name = f"{kind}/{metadata.get('namespace', '')}/{metadata.get('name', '')}"
        try:
            images = extract_images(doc)
        except ValueError as err:
            raise ChartIdentityException(
                f"Error extracting images from document '{name}': {err}"
            )
        for image in images:
            if is_qualified(image):
                continue
            _LOGGER.debug("Found unqualified image %s in %s", image, name)
            self.unqualified.setdefault(name, set()).add(image)

    @property
    def errors(self) -> list[str]:
        """Human readable descriptions of the unqualified images."""
        return [
            f"{name} uses image '{image}' without a registry host and namespace"
            for name in sorted(self.unqualified)
            for image in sorted(self.unqualified[name])
        ]
