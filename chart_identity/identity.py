"""Library for deriving the identity of a release of a chart.

Every resource rendered for a release shares the same name, labels and image
reference. These are derived once from the release and chart identity:

```python
from chart_identity.identity import ChartIdentity, ReleaseIdentity, resolve

identity = resolve(
    ChartIdentity(chart_name="springboot-ocdemo"),
    ReleaseIdentity(release_name="app1", namespace="ns1"),
)
print(identity.full_name)  # app1-springboot-ocdemo
print(identity.label_set.as_dict())
```

The label set always carries both the chart name and the release instance so
that two releases of the same chart never select each others pods.
"""

from dataclasses import dataclass, field
import logging
import re
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .exceptions import InvalidIdentity

__all__ = [
    "ChartIdentity",
    "ReleaseIdentity",
    "ImageConfig",
    "LabelSet",
    "ResolvedIdentity",
    "resolve",
]

_LOGGER = logging.getLogger(__name__)


# Kubernetes limits object names and label values to a DNS label.
MAX_NAME_LENGTH = 63
DNS_LABEL_RE = re.compile(r"^[a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?$")
LABEL_VALUE_RE = re.compile(r"^([A-Za-z0-9]([-A-Za-z0-9_.]{0,61}[A-Za-z0-9])?)?$")

NAME_LABEL = "app.kubernetes.io/name"
INSTANCE_LABEL = "app.kubernetes.io/instance"
VERSION_LABEL = "app.kubernetes.io/version"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
CHART_LABEL = "helm.sh/chart"
MANAGED_BY = "Helm"

DEFAULT_CHART_NAME = "springboot-ocdemo"
DEFAULT_CHART_VERSION = "0.1.0"

# The OpenShift internal registry, reachable from every node in the cluster.
DEFAULT_REGISTRY_HOST = "image-registry.openshift-image-registry.svc"
DEFAULT_REGISTRY_PORT = 5000
DEFAULT_TAG = "latest"


def _check_dns_label(field_name: str, value: str) -> None:
    """Assert that the value may be used as a DNS label."""
    if not value:
        raise InvalidIdentity(field_name, value, "must not be empty")
    if not DNS_LABEL_RE.match(value):
        raise InvalidIdentity(
            field_name,
            value,
            f"must be at most {MAX_NAME_LENGTH} lowercase alphanumeric characters "
            "or '-', starting and ending with an alphanumeric character",
        )


def _truncate(value: str, length: int = MAX_NAME_LENGTH) -> str:
    """Truncate the value and trim any trailing separators."""
    return value[:length].rstrip("-")


def _normalize_chart_name(name: str) -> str:
    """Return the chart name in a form that is safe for resource names."""
    normalized = name.strip().lower().replace("_", "-").replace(".", "-")
    return _truncate(normalized)


def _is_registry_host(segment: str) -> bool:
    """Return true if the first segment of an image repository is a registry."""
    return "." in segment or ":" in segment or segment == "localhost"


@dataclass(frozen=True)
class ReleaseIdentity:
    """A named instance of a chart installed into a namespace."""

    release_name: str
    """The name of the release, unique among concurrently installed releases."""

    namespace: str
    """The namespace the release is installed into."""

    def __str__(self) -> str:
        return f"{self.namespace}/{self.release_name}"


@dataclass(frozen=True)
class ChartIdentity:
    """The identity of the chart package being installed."""

    chart_name: str = DEFAULT_CHART_NAME
    """The name of the chart package."""

    version: str | None = DEFAULT_CHART_VERSION
    """The chart version, used for metadata labels only."""

    app_version: str | None = None
    """The version of the application packaged by the chart."""

    name_override: str | None = None
    """Replaces the chart name as the source of the application name."""

    @property
    def app_name(self) -> str:
        """The chart name normalized for use in resource names and labels."""
        source = self.name_override or self.chart_name
        if not source or not source.strip():
            raise InvalidIdentity("chart name", source, "must not be empty")
        app_name = _normalize_chart_name(source)
        _check_dns_label("chart name", app_name)
        return app_name

    @property
    def chart_label(self) -> str:
        """Value of the chart label including the version."""
        name = _normalize_chart_name(self.chart_name)
        if not self.version:
            return name
        label = f"{name}-{self.version}".replace("+", "_")
        return label[:MAX_NAME_LENGTH].rstrip("-_.")

    def validate(self) -> None:
        """Assert the chart name and version can be used in labels.

        The chart name is checked even when a name override replaces it as
        the source of the application name, since it still names the chart
        in the metadata labels.
        """
        if not self.chart_name or not self.chart_name.strip():
            raise InvalidIdentity("chart name", self.chart_name, "must not be empty")
        _check_dns_label("chart name", _normalize_chart_name(self.chart_name))
        if not LABEL_VALUE_RE.match(self.chart_label):
            raise InvalidIdentity(
                "chart version",
                self.version or "",
                "must only contain alphanumeric characters, '-', '_', '.' or '+'",
            )


@dataclass(frozen=True)
class ImageConfig:
    """Optional override of the image used by the release."""

    repository: str = ""
    """An explicit image repository, empty for the release image stream."""

    tag: str = ""
    """An explicit image tag, empty for the default tag."""

    registry_host: str = DEFAULT_REGISTRY_HOST
    """Host of the in-cluster image registry."""

    registry_port: int = DEFAULT_REGISTRY_PORT
    """Port of the in-cluster image registry."""

    @property
    def registry(self) -> str:
        """The registry host and port."""
        return f"{self.registry_host}:{self.registry_port}"


@dataclass(frozen=True)
class LabelSet(DataClassDictMixin):
    """Labels used to select the pods of exactly one release.

    Both labels are required. A selector made of the name label alone would
    match the pods of every release of the chart in the namespace.
    """

    name: str = field(metadata=field_options(alias=NAME_LABEL))
    """The application name."""

    instance: str = field(metadata=field_options(alias=INSTANCE_LABEL))
    """The release name."""

    def as_dict(self) -> dict[str, str]:
        """Return the labels keyed by their kubernetes label names."""
        return {NAME_LABEL: self.name, INSTANCE_LABEL: self.instance}

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass(frozen=True)
class ResolvedIdentity(DataClassDictMixin):
    """Names and labels shared by every resource rendered for a release."""

    app_name: str = field(metadata=field_options(alias="appName"))
    """The normalized chart name."""

    full_name: str = field(metadata=field_options(alias="fullName"))
    """The name of every resource of the release."""

    namespace: str
    """The namespace of every resource of the release."""

    label_set: LabelSet = field(metadata=field_options(alias="selectorLabels"))
    """Labels copied into every selector."""

    labels: dict[str, str]
    """Labels copied into every metadata block."""

    image_reference: str = field(metadata=field_options(alias="imageReference"))
    """Fully qualified pull string of the release image."""

    @property
    def selector_labels(self) -> dict[str, str]:
        """The complete label set as a selector."""
        return self.label_set.as_dict()

    def metadata(self) -> dict[str, Any]:
        """Return a metadata block for a resource of the release."""
        return {
            "name": self.full_name,
            "namespace": self.namespace,
            "labels": dict(self.labels),
        }

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


def _full_name(release_name: str, app_name: str) -> str:
    """Join the release and app name, shortening only the app name.

    Once the app name is shortened the full name no longer identifies the
    release on its own. Releases `r` and `r-x` of a chart named `x-...` may
    both end up as `r-x-x` when the app name is cut after its first segment.
    Their label sets still differ, so selectors stay apart, but the second
    install fails on the existing object names. Keep long release names
    from sharing a prefix with another release plus a chart name segment.
    """
    budget = MAX_NAME_LENGTH - len(release_name) - 1
    if budget < 1:
        raise InvalidIdentity(
            "release name",
            release_name,
            f"must be at most {MAX_NAME_LENGTH - 2} characters",
        )
    if len(app_name) > budget:
        _LOGGER.debug(
            "Truncating app name %s to %d characters for release %s",
            app_name,
            budget,
            release_name,
        )
    return f"{release_name}-{_truncate(app_name, budget)}"


def _image_reference(full_name: str, namespace: str, config: ImageConfig) -> str:
    """Return the fully qualified image reference for the release."""
    tag = config.tag or DEFAULT_TAG
    if not (repository := config.repository.strip("/")):
        return f"{config.registry}/{namespace}/{full_name}:{tag}"
    parts = repository.split("/")
    if _is_registry_host(parts[0]):
        if len(parts) < 3:
            raise InvalidIdentity(
                "image repository",
                repository,
                "must include a namespace after the registry host",
            )
        return f"{repository}:{tag}"
    if len(parts) == 1:
        _LOGGER.warning(
            "Image repository %s has no registry or namespace, using %s/%s",
            repository,
            config.registry,
            namespace,
        )
        return f"{config.registry}/{namespace}/{repository}:{tag}"
    return f"{config.registry}/{repository}:{tag}"


def resolve(
    chart: ChartIdentity,
    release: ReleaseIdentity,
    image_config: ImageConfig | None = None,
) -> ResolvedIdentity:
    """Derive the names, labels and image of a release of a chart.

    This is a pure function: the same arguments always produce the same
    identity. The release name is never normalized or truncated since it is
    what keeps the identity of two releases of the same chart apart.
    """
    _check_dns_label("release name", release.release_name)
    _check_dns_label("namespace", release.namespace)
    chart.validate()
    app_name = chart.app_name
    full_name = _full_name(release.release_name, app_name)

    label_set = LabelSet(name=app_name, instance=release.release_name)
    labels = {
        CHART_LABEL: chart.chart_label,
        **label_set.as_dict(),
    }
    if chart.app_version:
        labels[VERSION_LABEL] = chart.app_version
    labels[MANAGED_BY_LABEL] = MANAGED_BY

    identity = ResolvedIdentity(
        app_name=app_name,
        full_name=full_name,
        namespace=release.namespace,
        label_set=label_set,
        labels=labels,
        image_reference=_image_reference(
            full_name, release.namespace, image_config or ImageConfig()
        ),
    )
    _LOGGER.debug("Resolved release %s to %s", release, identity)
    return identity
