"""Tests for the selector library."""

from typing import Any

import pytest

from chart_identity.identity import ChartIdentity, ReleaseIdentity
from chart_identity.manifest import render_release
from chart_identity.selector import (
    Collision,
    find_collisions,
    group_by_release,
    matches,
    pod_labels,
    resource_selector,
)
from chart_identity.values import ChartValues

CHART = ChartIdentity(chart_name="springboot-ocdemo")


def _render(release: str, namespace: str, **values: Any) -> list[dict[str, Any]]:
    _, docs = render_release(
        CHART,
        ReleaseIdentity(release_name=release, namespace=namespace),
        ChartValues.parse(values),
    )
    return docs


def _legacy_release(name: str, namespace: str) -> list[dict[str, Any]]:
    """Resources selecting pods with the single app label."""
    labels = {"app": "springboot-image-builder"}
    return [
        {
            "apiVersion": "apps.openshift.io/v1",
            "kind": "DeploymentConfig",
            "metadata": {"name": name, "namespace": namespace, "labels": labels},
            "spec": {
                "selector": labels,
                "template": {"metadata": {"labels": labels}},
            },
        },
        {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {"name": name, "namespace": namespace},
            "spec": {"selector": labels},
        },
    ]


@pytest.mark.parametrize(
    ("selector", "labels", "expected"),
    [
        ({"a": "1"}, {"a": "1", "b": "2"}, True),
        ({"a": "1", "b": "2"}, {"a": "1", "b": "2"}, True),
        ({"a": "1", "b": "2"}, {"a": "1"}, False),
        ({"a": "1"}, {"a": "2"}, False),
        ({}, {"a": "1"}, False),
        (None, {"a": "1"}, False),
    ],
)
def test_matches(
    selector: dict[str, str] | None, labels: dict[str, str], expected: bool
) -> None:
    """Test the exact-match selector predicate."""
    assert matches(selector, labels) == expected


def test_release_selectors_do_not_match_other_release() -> None:
    """Test a selector of one release matches none of the pods of another."""
    app1 = _render("app1", "ns1")
    app2 = _render("app2", "ns1")
    app2_pods = [labels for doc in app2 if (labels := pod_labels(doc)) is not None]
    assert app2_pods
    app1_selectors = [
        selector for doc in app1 if (selector := resource_selector(doc)) is not None
    ]
    assert len(app1_selectors) == 2
    for selector in app1_selectors:
        assert not any(matches(selector, labels) for labels in app2_pods)
        assert any(
            matches(selector, labels)
            for doc in app1
            if (labels := pod_labels(doc)) is not None
        )


def test_resource_selector_deployment() -> None:
    """Test reading matchLabels from a Deployment."""
    docs = _render("app1", "ns1", deployment={"kind": "Deployment"})
    deployment = next(doc for doc in docs if doc["kind"] == "Deployment")
    assert resource_selector(deployment) == {
        "app.kubernetes.io/name": "springboot-ocdemo",
        "app.kubernetes.io/instance": "app1",
    }
    route = next(doc for doc in docs if doc["kind"] == "Route")
    assert resource_selector(route) is None
    assert pod_labels(route) is None


def test_no_collisions_between_releases() -> None:
    """Test releases of the chart in one namespace never collide."""
    releases = {
        "ns1/app1": _render("app1", "ns1"),
        "ns1/app2": _render("app2", "ns1"),
        "ns2/app1": _render("app1", "ns2", deployment={"kind": "Deployment"}),
    }
    assert find_collisions(releases) == []


def test_legacy_app_label_collides() -> None:
    """Test releases selecting on the single app label select each others pods."""
    releases = {
        "app1": _legacy_release("app1-springboot-image-builder", "ns1"),
        "app2": _legacy_release("app2-springboot-image-builder", "ns1"),
    }
    collisions = find_collisions(releases)
    assert collisions == [
        Collision(
            release="app1",
            resource="DeploymentConfig/ns1/app1-springboot-image-builder",
            other_release="app2",
            other_resource="DeploymentConfig/ns1/app2-springboot-image-builder",
        ),
        Collision(
            release="app1",
            resource="Service/ns1/app1-springboot-image-builder",
            other_release="app2",
            other_resource="DeploymentConfig/ns1/app2-springboot-image-builder",
        ),
        Collision(
            release="app2",
            resource="DeploymentConfig/ns1/app2-springboot-image-builder",
            other_release="app1",
            other_resource="DeploymentConfig/ns1/app1-springboot-image-builder",
        ),
        Collision(
            release="app2",
            resource="Service/ns1/app2-springboot-image-builder",
            other_release="app1",
            other_resource="DeploymentConfig/ns1/app1-springboot-image-builder",
        ),
    ]
    assert str(collisions[1]) == (
        "Service/ns1/app1-springboot-image-builder of release 'app1' selects pods "
        "of DeploymentConfig/ns1/app2-springboot-image-builder of release 'app2'"
    )


def test_legacy_collision_scoped_to_namespace() -> None:
    """Test selectors don't apply across namespaces."""
    releases = {
        "app1": _legacy_release("app1-springboot-image-builder", "ns1"),
        "app2": _legacy_release("app2-springboot-image-builder", "ns2"),
    }
    assert find_collisions(releases) == []


def test_group_by_release() -> None:
    """Test deployed resources are grouped by their instance label or name."""
    app1 = _render("app1", "ns1")
    legacy = _legacy_release("app2-springboot-image-builder", "ns1")
    releases = group_by_release([*app1, *legacy])
    assert list(releases) == ["ns1/app1", "ns1/app2-springboot-image-builder"]
    assert releases["ns1/app1"] == app1
    assert releases["ns1/app2-springboot-image-builder"] == legacy


def test_deployed_copy_of_release_does_not_collide() -> None:
    """Test a release does not collide with its own deployed resources."""
    releases = {"ns1/app1": _render("app1", "ns1")}
    for release, docs in group_by_release(_render("app1", "ns1")).items():
        releases.setdefault(release, []).extend(docs)
    assert list(releases) == ["ns1/app1"]
    assert find_collisions(releases) == []
