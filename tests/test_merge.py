import copy

import pytest

from cvoperator.merge import (
    ensure_api_service,
    ensure_cluster_role,
    ensure_cluster_role_binding,
    ensure_cluster_version,
    ensure_cluster_version_status,
    ensure_custom_resource_definition,
    ensure_daemon_set,
    ensure_deployment,
    ensure_job,
    ensure_role,
    ensure_role_binding,
    ensure_security_context_constraints,
)


@pytest.mark.parametrize(
    "existing, required, expected_modified, expected",
    [
        (
            {"spec": {"replicas": 2}},
            {"spec": {"replicas": 3}},
            True,
            {"spec": {"replicas": 3}},
        ),
        (
            {"spec": {"replicas": 2}},
            {"spec": {"replicas": 2}},
            False,
            {"spec": {"replicas": 2}},
        ),
        (
            {},
            {"spec": {"selector": {}}},
            True,
            {"spec": {"selector": {}}},
        ),
    ],
    ids=[
        "different replica count",
        "same replica count",
        "existing-selector-nil-required-selector-non-nil",
    ],
)
def test_ensure_deployment(existing, required, expected_modified, expected):
    assert ensure_deployment(existing, required) is expected_modified
    assert existing == expected


def test_ensure_deployment_merges_template_and_metadata():
    existing = {
        "metadata": {"name": "app", "labels": {"a": "1"}},
        "spec": {"template": {"spec": {"containers": [{"name": "old"}]}}},
    }
    required = {
        "metadata": {"name": "app", "labels": {"b": "2"}},
        "spec": {"template": {"spec": {"containers": [{"name": "web", "image": "img"}]}}},
    }
    assert ensure_deployment(existing, required) is True
    assert existing["metadata"]["labels"] == {"a": "1", "b": "2"}
    assert existing["spec"]["template"]["spec"]["containers"] == [{"name": "web", "image": "img"}]
    assert ensure_deployment(existing, required) is False


def test_ensure_deployment_copies_required_values():
    existing = {}
    required = {"spec": {"selector": {"matchLabels": {"app": "x"}}}}
    ensure_deployment(existing, required)
    existing["spec"]["selector"]["matchLabels"]["app"] = "changed"
    assert required["spec"]["selector"]["matchLabels"]["app"] == "x"


def test_ensure_daemon_set_missing_selector_always_reports_change():
    existing = {}
    assert ensure_daemon_set(existing, {}) is True
    assert existing == {"spec": {}}


def test_ensure_daemon_set_replaces_selector():
    existing = {"spec": {"selector": {"matchLabels": {"a": "b"}}}}
    required = {"spec": {"selector": {"matchLabels": {"a": "c"}}}}
    assert ensure_daemon_set(existing, required) is True
    assert existing["spec"]["selector"] == {"matchLabels": {"a": "c"}}
    assert ensure_daemon_set(existing, required) is False


def test_ensure_job_pointer_fields():
    existing = {
        "spec": {
            "selector": {"matchLabels": {"x": "y"}},
            "parallelism": 2,
            "backoffLimit": 6,
            "manualSelector": True,
        }
    }
    required = {
        "spec": {
            "selector": {"matchLabels": {"x": "y"}},
            "parallelism": 2,
            "activeDeadlineSeconds": 60,
        }
    }
    assert ensure_job(existing, required) is True
    spec = existing["spec"]
    assert "backoffLimit" not in spec
    assert spec["activeDeadlineSeconds"] == 60
    assert spec["parallelism"] == 2
    assert spec["manualSelector"] is True
    assert ensure_job(existing, required) is False


@pytest.mark.parametrize("ensure", [ensure_custom_resource_definition, ensure_api_service])
def test_stomped_spec(ensure):
    existing = {"metadata": {"name": "thing"}, "spec": {"group": "a", "extra": 1}}
    required = {"metadata": {"name": "thing"}, "spec": {"group": "b"}}
    assert ensure(existing, required) is True
    assert existing["spec"] == {"group": "b"}
    assert ensure(existing, required) is False


def test_ensure_cluster_version_spec():
    existing = {"spec": {"channel": "stable", "desiredUpdate": {"version": "1.0.0"}}}
    required = {"spec": {"channel": "fast", "clusterID": "cid"}}
    assert ensure_cluster_version(existing, required) is True
    assert existing["spec"] == {"channel": "fast", "clusterID": "cid"}
    assert ensure_cluster_version(existing, required) is False


def test_ensure_cluster_version_absent_and_empty_desired_update_differ():
    existing = {"spec": {}}
    assert ensure_cluster_version(existing, {"spec": {"desiredUpdate": {}}}) is True
    assert existing["spec"]["desiredUpdate"] == {}


def test_ensure_cluster_version_status():
    existing = {"status": {"desired": {"version": "1"}}}
    required = {"status": {"desired": {"version": "2"}}}
    assert ensure_cluster_version_status(existing, required) is True
    assert existing["status"] == required["status"]
    assert ensure_cluster_version_status(existing, copy.deepcopy(required)) is False


@pytest.mark.parametrize("ensure", [ensure_cluster_role_binding, ensure_role_binding])
def test_role_bindings(ensure):
    existing = {"subjects": [{"kind": "User", "name": "a"}], "roleRef": {"name": "r1"}}
    required = {"subjects": [{"kind": "User", "name": "b"}], "roleRef": {"name": "r2"}}
    assert ensure(existing, required) is True
    assert existing["subjects"] == [{"kind": "User", "name": "b"}]
    assert existing["roleRef"] == {"name": "r2"}
    assert ensure(existing, required) is False


@pytest.mark.parametrize("ensure", [ensure_cluster_role, ensure_role])
def test_roles(ensure):
    existing = {"rules": [{"verbs": ["get"]}]}
    required = {"rules": [{"verbs": ["get", "list"]}]}
    assert ensure(existing, required) is True
    assert existing["rules"] == [{"verbs": ["get", "list"]}]
    assert ensure(existing, {"rules": [{"verbs": ["get", "list"]}]}) is False


def test_ensure_security_context_constraints():
    existing = {
        "priority": 5,
        "users": ["a"],
        "allowedFlexVolumes": [{"driver": "d1"}],
    }
    required = {
        "users": ["b", "a"],
        "allowHostNetwork": True,
        "allowedFlexVolumes": [{"driver": "d1", "fsType": "x"}, {"driver": "d2"}],
        "runAsUser": {"type": "RunAsAny"},
    }
    assert ensure_security_context_constraints(existing, required) is True
    assert "priority" not in existing
    assert existing["users"] == ["a", "b"]
    assert existing["allowHostNetwork"] is True
    assert existing["allowedFlexVolumes"] == [{"driver": "d1"}, {"driver": "d2"}]
    assert existing["runAsUser"] == {"type": "RunAsAny"}
    assert ensure_security_context_constraints(existing, required) is False