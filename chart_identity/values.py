"""Module for working with chart values.

Values are the operator facing configuration of a release. Values files are
merged the same way helm merges them, then overridden with any `--set`
expressions and decoded into `ChartValues`.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
import logging
from pathlib import Path
import re
from typing import Any

import aiofiles
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import MissingField, InvalidFieldValue
import yaml

from .exceptions import InputException
from .identity import ImageConfig

__all__ = [
    "ChartValues",
    "merge_values",
    "parse_set_value",
    "apply_set_values",
    "read_values",
]

_LOGGER = logging.getLogger(__name__)


DEPLOYMENT_CONFIG_KIND = "DeploymentConfig"
DEPLOYMENT_KIND = "Deployment"
DEPLOYMENT_KINDS = (DEPLOYMENT_CONFIG_KIND, DEPLOYMENT_KIND)

HEALTH_PATH = "/actuator/health"
DEFAULT_PORT = 8080


def _default_liveness_probe() -> dict[str, Any]:
    return {
        "httpGet": {"path": HEALTH_PATH, "port": DEFAULT_PORT},
        "initialDelaySeconds": 60,
        "periodSeconds": 10,
    }


def _default_readiness_probe() -> dict[str, Any]:
    return {
        "httpGet": {"path": HEALTH_PATH, "port": DEFAULT_PORT},
        "initialDelaySeconds": 10,
        "periodSeconds": 5,
    }


def _default_resources() -> dict[str, Any]:
    return {
        "limits": {"cpu": "500m", "memory": "512Mi"},
        "requests": {"cpu": "200m", "memory": "256Mi"},
    }


def _check_type(path: str, value: Any, expected: type) -> None:
    """Assert a decoded scalar has the expected type, since it is not coerced."""
    # bool is a subclass of int
    if isinstance(value, expected) and (
        expected is bool or not isinstance(value, bool)
    ):
        return
    description = "a boolean" if expected is bool else "an integer"
    raise InputException(f"Invalid values: {path} must be {description}, found '{value}'")


@dataclass
class BaseValues(DataClassDictMixin):
    """Base class for all values objects."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass
class GitSource(BaseValues):
    """The git repository built into the release image."""

    uri: str = "https://github.com/abhishekyavi/springbootOcdemo.git"
    ref: str = "master"


@dataclass
class BuilderImage(BaseValues):
    """The ImageStreamTag used by the source build strategy."""

    name: str = "java:latest"
    namespace: str = "openshift"


@dataclass
class BuildValues(BaseValues):
    """Values for the BuildConfig."""

    enabled: bool = True
    git: GitSource = field(default_factory=GitSource)
    strategy: str = "Source"
    builder_image: BuilderImage = field(
        metadata=field_options(alias="builderImage"), default_factory=BuilderImage
    )
    output_image_stream: str = field(
        metadata=field_options(alias="outputImageStream"), default=""
    )
    """An explicit output ImageStreamTag, empty for the release image stream."""


@dataclass
class ImageStreamValues(BaseValues):
    """Values for the ImageStream watched by the deployment."""

    name: str = ""
    """Informational only, the image stream is always named for the release."""

    tag: str = "latest"


@dataclass
class DeploymentValues(BaseValues):
    """Values for the Deployment or DeploymentConfig."""

    enabled: bool = True
    kind: str = DEPLOYMENT_CONFIG_KIND
    replica_count: int = field(
        metadata=field_options(alias="replicaCount"), default=1
    )
    image_stream: ImageStreamValues = field(
        metadata=field_options(alias="image-stream"),
        default_factory=ImageStreamValues,
    )


@dataclass
class ServiceValues(BaseValues):
    """Values for the Service."""

    name: str = ""
    """Informational only, the service is always named for the release."""

    type: str = "ClusterIP"
    port: int = DEFAULT_PORT


@dataclass
class RouteValues(BaseValues):
    """Values for the Route."""

    enabled: bool = True
    host: str = ""


@dataclass
class AutoscalingValues(BaseValues):
    """Values for the HorizontalPodAutoscaler."""

    enabled: bool = False
    min_replicas: int = field(metadata=field_options(alias="minReplicas"), default=1)
    max_replicas: int = field(metadata=field_options(alias="maxReplicas"), default=3)
    target_cpu_utilization_percentage: int = field(
        metadata=field_options(alias="targetCPUUtilizationPercentage"), default=80
    )


@dataclass
class ImageValues(BaseValues):
    """Values for the container image."""

    pull_policy: str = field(
        metadata=field_options(alias="pullPolicy"), default="IfNotPresent"
    )
    repository: str = ""
    tag: str = ""


@dataclass
class ChartValues(BaseValues):
    """All values accepted by the chart."""

    build: BuildValues = field(default_factory=BuildValues)
    deployment: DeploymentValues = field(default_factory=DeploymentValues)
    service: ServiceValues = field(default_factory=ServiceValues)
    route: RouteValues = field(default_factory=RouteValues)
    autoscaling: AutoscalingValues = field(default_factory=AutoscalingValues)
    image: ImageValues = field(default_factory=ImageValues)
    resources: dict[str, Any] = field(default_factory=_default_resources)
    liveness_probe: dict[str, Any] = field(
        metadata=field_options(alias="livenessProbe"),
        default_factory=_default_liveness_probe,
    )
    readiness_probe: dict[str, Any] = field(
        metadata=field_options(alias="readinessProbe"),
        default_factory=_default_readiness_probe,
    )
    name_override: str | None = field(
        metadata=field_options(alias="nameOverride"), default=None
    )

    @classmethod
    def parse(cls, doc: dict[str, Any] | None) -> "ChartValues":
        """Parse ChartValues from a merged values document."""
        try:
            values = cls.from_dict(doc or {})
        except (MissingField, InvalidFieldValue, ValueError) as err:
            raise InputException(f"Invalid values: {err}") from err
        if values.deployment.kind not in DEPLOYMENT_KINDS:
            raise InputException(
                f"Invalid values: deployment.kind must be one of "
                f"{', '.join(DEPLOYMENT_KINDS)}, found '{values.deployment.kind}'"
            )
        for path, value, expected in (
            ("build.enabled", values.build.enabled, bool),
            ("deployment.enabled", values.deployment.enabled, bool),
            ("deployment.replicaCount", values.deployment.replica_count, int),
            ("service.port", values.service.port, int),
            ("route.enabled", values.route.enabled, bool),
            ("autoscaling.enabled", values.autoscaling.enabled, bool),
            ("autoscaling.minReplicas", values.autoscaling.min_replicas, int),
            ("autoscaling.maxReplicas", values.autoscaling.max_replicas, int),
            (
                "autoscaling.targetCPUUtilizationPercentage",
                values.autoscaling.target_cpu_utilization_percentage,
                int,
            ),
        ):
            _check_type(path, value, expected)
        return values

    def image_config(self) -> ImageConfig:
        """Return the image override for the release."""
        return ImageConfig(
            repository=self.image.repository or "",
            tag=self.image.tag or self.deployment.image_stream.tag or "",
        )


def merge_values(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two dictionaries, similar to how Helm merges values.

    Lists are replaced entirely (Helm behavior).
    """
    result = base.copy()
    for key, override_value in override.items():
        base_value = result.get(key)
        if (
            base_value is not None
            and isinstance(base_value, dict)
            and isinstance(override_value, dict)
        ):
            result[key] = merge_values(base_value, override_value)
        else:
            result[key] = override_value
    return result


def parse_set_value(expr: str) -> tuple[list[str], Any]:
    """Parse a `key.path=value` expression into the key path and value.

    Dots in a key may be escaped with a backslash e.g. `labels.app\\.io/x=y`.
    """
    if "=" not in expr:
        raise InputException(f"Expected key=value format but got '{expr}'")
    key, raw_value = expr.split("=", 1)
    if not key:
        raise InputException(f"Expected key=value format but got '{expr}'")
    raw_parts = re.split(r"(?<!\\)\.", key)
    parts = [re.sub(r"\\(.)", r"\1", raw_part) for raw_part in raw_parts]
    if not all(parts):
        raise InputException(f"Invalid key path '{key}'")
    try:
        value = yaml.load(raw_value, Loader=yaml.SafeLoader) if raw_value else ""
    except yaml.YAMLError:
        value = raw_value
    return parts, value


def apply_set_values(values: dict[str, Any], exprs: Iterable[str]) -> dict[str, Any]:
    """Apply `--set` style overrides to a values document."""
    result = merge_values({}, values)
    for expr in exprs:
        parts, value = parse_set_value(expr)
        _LOGGER.debug("Setting value %s=%s", ".".join(parts), value)
        inner_values = result
        for part in parts[:-1]:
            if part not in inner_values:
                inner_values[part] = {}
            elif not isinstance(inner_values[part], dict):
                raise InputException(
                    f"Expected values field '{part}' of '{expr}' to be a dict, "
                    f"found {type(inner_values[part]).__name__}"
                )
            else:
                inner_values[part] = dict(inner_values[part])
            inner_values = inner_values[part]
        inner_values[parts[-1]] = value
    return result


async def read_values(paths: Iterable[Path]) -> dict[str, Any]:
    """Read and merge values files, later files taking precedence."""
    values: dict[str, Any] = {}
    for path in paths:
        _LOGGER.debug("Reading values file %s", path)
        try:
            async with aiofiles.open(str(path)) as values_file:
                content = await values_file.read()
        except OSError as err:
            raise InputException(f"Unable to read values file {path}: {err}") from err
        try:
            doc = yaml.load(content, Loader=yaml.SafeLoader)
        except yaml.YAMLError as err:
            raise InputException(
                f"Values file {path} failed to parse as yaml: {err}"
            ) from err
        # Handle empty YAML file case
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise InputException(
                f"Expected values file {path} to contain a dict, found {type(doc).__name__}"
            )
        values = merge_values(values, doc)
    return values
