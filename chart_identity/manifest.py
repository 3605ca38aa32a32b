"""Representation of the resources rendered for a release of the chart.

Every resource is built from the same `ResolvedIdentity` so that names,
labels and selectors agree across the BuildConfig, ImageStream, deployment,
Service, Route and HorizontalPodAutoscaler of a release. Builders return plain
dictionaries ready to be dumped as yaml.
"""

import copy
import dataclasses
import logging
from typing import Any

from .identity import (
    ChartIdentity,
    ReleaseIdentity,
    ResolvedIdentity,
    DEFAULT_TAG,
    resolve,
)
from .values import ChartValues, DEPLOYMENT_CONFIG_KIND, DEPLOYMENT_KIND

__all__ = [
    "build_config",
    "image_stream",
    "deployment",
    "service",
    "route",
    "horizontal_pod_autoscaler",
    "render",
    "resolve_release",
    "render_release",
]

_LOGGER = logging.getLogger(__name__)


BUILD_CONFIG_KIND = "BuildConfig"
IMAGE_STREAM_KIND = "ImageStream"
IMAGE_STREAM_TAG_KIND = "ImageStreamTag"
SERVICE_KIND = "Service"
ROUTE_KIND = "Route"
HPA_KIND = "HorizontalPodAutoscaler"

BUILD_API_VERSION = "build.openshift.io/v1"
IMAGE_API_VERSION = "image.openshift.io/v1"
APPS_OPENSHIFT_API_VERSION = "apps.openshift.io/v1"
APPS_API_VERSION = "apps/v1"
ROUTE_API_VERSION = "route.openshift.io/v1"
AUTOSCALING_API_VERSION = "autoscaling/v2"
CORE_API_VERSION = "v1"

# Workload kinds whose selectors pick pods from their pod template.
WORKLOAD_KINDS = [DEPLOYMENT_CONFIG_KIND, DEPLOYMENT_KIND]

PORT_NAME = "http"


def _image_stream_tag(identity: ResolvedIdentity, values: ChartValues) -> str:
    """The ImageStreamTag produced by the build and consumed by the deployment."""
    return f"{identity.full_name}:{values.image_config().tag or DEFAULT_TAG}"


def build_config(identity: ResolvedIdentity, values: ChartValues) -> dict[str, Any]:
    """Build the BuildConfig that produces the release image."""
    build = values.build
    return {
        "apiVersion": BUILD_API_VERSION,
        "kind": BUILD_CONFIG_KIND,
        "metadata": identity.metadata(),
        "spec": {
            "source": {
                "type": "Git",
                "git": {
                    "uri": build.git.uri,
                    "ref": build.git.ref,
                },
            },
            "triggers": [
                {"type": "ConfigChange"},
                {"type": "ImageChange"},
            ],
            "strategy": {
                "type": build.strategy,
                "sourceStrategy": {
                    "from": {
                        "kind": IMAGE_STREAM_TAG_KIND,
                        "name": build.builder_image.name,
                        "namespace": build.builder_image.namespace,
                    },
                },
            },
            "output": {
                "to": {
                    "kind": IMAGE_STREAM_TAG_KIND,
                    "name": build.output_image_stream
                    or _image_stream_tag(identity, values),
                },
            },
        },
    }


def image_stream(identity: ResolvedIdentity, values: ChartValues) -> dict[str, Any]:
    """Build the ImageStream that tracks the release image."""
    return {
        "apiVersion": IMAGE_API_VERSION,
        "kind": IMAGE_STREAM_KIND,
        "metadata": identity.metadata(),
        "spec": {
            "lookupPolicy": {"local": True},
        },
    }


def _container(identity: ResolvedIdentity, values: ChartValues) -> dict[str, Any]:
    """Build the application container of the pod template."""
    container: dict[str, Any] = {
        "name": identity.app_name,
        "image": identity.image_reference,
        "imagePullPolicy": values.image.pull_policy,
        "ports": [
            {
                "name": PORT_NAME,
                "containerPort": values.service.port,
                "protocol": "TCP",
            }
        ],
    }
    if values.resources:
        container["resources"] = copy.deepcopy(values.resources)
    if values.liveness_probe:
        container["livenessProbe"] = copy.deepcopy(values.liveness_probe)
    if values.readiness_probe:
        container["readinessProbe"] = copy.deepcopy(values.readiness_probe)
    return container


def deployment(identity: ResolvedIdentity, values: ChartValues) -> dict[str, Any]:
    """Build the DeploymentConfig or Deployment running the release image.

    The selector and the pod template labels are the complete label set of
    the release.
    """
    template = {
        "metadata": {"labels": identity.selector_labels},
        "spec": {"containers": [_container(identity, values)]},
    }
    spec: dict[str, Any] = {}
    if not values.autoscaling.enabled:
        spec["replicas"] = values.deployment.replica_count

    if values.deployment.kind == DEPLOYMENT_KIND:
        spec["selector"] = {"matchLabels": identity.selector_labels}
        spec["template"] = template
        return {
            "apiVersion": APPS_API_VERSION,
            "kind": DEPLOYMENT_KIND,
            "metadata": identity.metadata(),
            "spec": spec,
        }

    spec["selector"] = identity.selector_labels
    spec["template"] = template
    spec["triggers"] = [
        {"type": "ConfigChange"},
        {
            "type": "ImageChange",
            "imageChangeParams": {
                "automatic": True,
                "containerNames": [identity.app_name],
                "from": {
                    "kind": IMAGE_STREAM_TAG_KIND,
                    "name": _image_stream_tag(identity, values),
                },
            },
        },
    ]
    return {
        "apiVersion": APPS_OPENSHIFT_API_VERSION,
        "kind": DEPLOYMENT_CONFIG_KIND,
        "metadata": identity.metadata(),
        "spec": spec,
    }


def service(identity: ResolvedIdentity, values: ChartValues) -> dict[str, Any]:
    """Build the Service selecting the pods of the release."""
    return {
        "apiVersion": CORE_API_VERSION,
        "kind": SERVICE_KIND,
        "metadata": identity.metadata(),
        "spec": {
            "type": values.service.type,
            "selector": identity.selector_labels,
            "ports": [
                {
                    "name": PORT_NAME,
                    "port": values.service.port,
                    "targetPort": PORT_NAME,
                    "protocol": "TCP",
                }
            ],
        },
    }


def route(identity: ResolvedIdentity, values: ChartValues) -> dict[str, Any]:
    """Build the Route exposing the Service."""
    spec: dict[str, Any] = {}
    if values.route.host:
        spec["host"] = values.route.host
    spec["to"] = {
        "kind": SERVICE_KIND,
        "name": identity.full_name,
        "weight": 100,
    }
    spec["port"] = {"targetPort": PORT_NAME}
    return {
        "apiVersion": ROUTE_API_VERSION,
        "kind": ROUTE_KIND,
        "metadata": identity.metadata(),
        "spec": spec,
    }


def horizontal_pod_autoscaler(
    identity: ResolvedIdentity, values: ChartValues
) -> dict[str, Any]:
    """Build the HorizontalPodAutoscaler scaling the deployment of the release."""
    kind = values.deployment.kind
    autoscaling = values.autoscaling
    return {
        "apiVersion": AUTOSCALING_API_VERSION,
        "kind": HPA_KIND,
        "metadata": identity.metadata(),
        "spec": {
            "scaleTargetRef": {
                "apiVersion": (
                    APPS_API_VERSION
                    if kind == DEPLOYMENT_KIND
                    else APPS_OPENSHIFT_API_VERSION
                ),
                "kind": kind,
                "name": identity.full_name,
            },
            "minReplicas": autoscaling.min_replicas,
            "maxReplicas": autoscaling.max_replicas,
            "metrics": [
                {
                    "type": "Resource",
                    "resource": {
                        "name": "cpu",
                        "target": {
                            "type": "Utilization",
                            "averageUtilization": autoscaling.target_cpu_utilization_percentage,
                        },
                    },
                }
            ],
        },
    }


def render(identity: ResolvedIdentity, values: ChartValues) -> list[dict[str, Any]]:
    """Render all enabled resources of a release."""
    resources: list[dict[str, Any]] = []
    if values.build.enabled:
        resources.append(build_config(identity, values))
        resources.append(image_stream(identity, values))
    if values.deployment.enabled:
        resources.append(deployment(identity, values))
        if values.autoscaling.enabled:
            resources.append(horizontal_pod_autoscaler(identity, values))
    resources.append(service(identity, values))
    if values.route.enabled:
        resources.append(route(identity, values))
    _LOGGER.debug(
        "Rendered %d resources for %s/%s",
        len(resources),
        identity.namespace,
        identity.full_name,
    )
    return resources


def resolve_release(
    chart: ChartIdentity, release: ReleaseIdentity, values: ChartValues
) -> ResolvedIdentity:
    """Resolve the identity of a release using the image and name overrides in values."""
    if values.name_override and not chart.name_override:
        chart = dataclasses.replace(chart, name_override=values.name_override)
    return resolve(chart, release, values.image_config())


def render_release(
    chart: ChartIdentity, release: ReleaseIdentity, values: ChartValues
) -> tuple[ResolvedIdentity, list[dict[str, Any]]]:
    """Resolve the identity of a release and render its resources."""
    identity = resolve_release(chart, release, values)
    return identity, render(identity, values)
