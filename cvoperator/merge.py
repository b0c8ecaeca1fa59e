"""Merging of required workload, RBAC, extension and cluster-version objects.

Objects are plain dictionaries in their JSON form. Every ensure function
mutates ``existing`` in place and returns True when it changed anything.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

from cvoperator.meta import _semantic_equal, ensure_object_meta
from cvoperator.podmerge import (
    ensure_pod_template_spec,
    merge_string_list,
    set_field,
    set_if_present,
    sync_field,
)

Ensure = Callable[[dict, dict], bool]


def _nested(existing: dict, key: str, required: dict | None, ensure: Ensure) -> bool:
    """Run ``ensure`` on ``existing[key]``, creating it only when something changed."""
    current = existing.get(key)
    target = current if current is not None else {}
    modified = ensure(target, required or {})
    if current is None and modified:
        existing[key] = target
    return modified


def _ensure_meta(existing: dict, required: dict) -> bool:
    return _nested(existing, "metadata", required.get("metadata"), ensure_object_meta)


def _put(existing: dict, key: str, value: Any) -> None:
    if value is None:
        existing.pop(key, None)
    else:
        existing[key] = copy.deepcopy(value)


def _sync_optional(existing: dict, key: str, required: Any) -> bool:
    """Like ``sync_field``, but an absent object never equals a present empty one."""
    current = existing.get(key)
    if (current is None) == (required is None) and _semantic_equal(current, required):
        return False
    _put(existing, key, required)
    return True


def _set_bool(existing: dict, key: str, required: Any) -> bool:
    value = bool(required)
    if bool(existing.get(key, False)) == value:
        return False
    existing[key] = value
    return True


def _ensure_selector(spec: dict, required: dict, reset_when_missing: bool) -> bool:
    selector = required.get("selector")
    modified = False
    if spec.get("selector") is None and (reset_when_missing or selector is not None):
        _put(spec, "selector", selector)
        modified = True
    modified |= _sync_optional(spec, "selector", selector)
    return modified


def _ensure_template(spec: dict, required: dict) -> bool:
    return _nested(spec, "template", required.get("template"), ensure_pod_template_spec)


def _ensure_deployment_spec(spec: dict, required: dict) -> bool:
    modified = False
    replicas = required.get("replicas")
    if replicas is not None and spec.get("replicas") != replicas:
        spec["replicas"] = replicas
        modified = True
    modified |= _ensure_selector(spec, required, reset_when_missing=False)
    modified |= _ensure_template(spec, required)
    return modified


def _ensure_daemon_set_spec(spec: dict, required: dict) -> bool:
    modified = _ensure_selector(spec, required, reset_when_missing=True)
    modified |= _ensure_template(spec, required)
    return modified


def _ensure_job_spec(spec: dict, required: dict) -> bool:
    modified = _ensure_selector(spec, required, reset_when_missing=True)
    modified |= set_field(spec, "parallelism", required.get("parallelism"))
    modified |= set_field(spec, "completions", required.get("completions"))
    modified |= set_if_present(
        spec, "activeDeadlineSeconds", required.get("activeDeadlineSeconds")
    )
    modified |= set_field(spec, "backoffLimit", required.get("backoffLimit"))
    modified |= set_if_present(spec, "manualSelector", required.get("manualSelector"))
    modified |= _ensure_template(spec, required)
    return modified


def _ensure_cluster_version_spec(spec: dict, required: dict) -> bool:
    modified = sync_field(spec, "upstream", required.get("upstream"))
    modified |= sync_field(spec, "channel", required.get("channel"))
    modified |= sync_field(spec, "clusterID", required.get("clusterID"))
    modified |= _sync_optional(spec, "desiredUpdate", required.get("desiredUpdate"))
    return modified


def _ensure_stomped_spec(existing: dict, required: dict) -> bool:
    modified = _ensure_meta(existing, required)
    modified |= sync_field(existing, "spec", required.get("spec"))
    return modified


def ensure_deployment(existing: dict, required: dict) -> bool:
    """Make a deployment match the required deployment."""
    modified = _ensure_meta(existing, required)
    modified |= _nested(existing, "spec", required.get("spec"), _ensure_deployment_spec)
    return modified


def ensure_daemon_set(existing: dict, required: dict) -> bool:
    """Make a daemon set match the required daemon set."""
    modified = _ensure_meta(existing, required)
    modified |= _nested(existing, "spec", required.get("spec"), _ensure_daemon_set_spec)
    return modified


def ensure_job(existing: dict, required: dict) -> bool:
    """Make a job match the required job."""
    modified = _ensure_meta(existing, required)
    modified |= _nested(existing, "spec", required.get("spec"), _ensure_job_spec)
    return modified


def ensure_custom_resource_definition(existing: dict, required: dict) -> bool:
    """Merge metadata and replace the whole spec of a custom resource definition."""
    return _ensure_stomped_spec(existing, required)


def ensure_api_service(existing: dict, required: dict) -> bool:
    """Merge metadata and replace the whole spec of an API service."""
    return _ensure_stomped_spec(existing, required)


def ensure_cluster_version(existing: dict, required: dict) -> bool:
    """Make a cluster version's metadata and spec match the required one."""
    modified = _ensure_meta(existing, required)
    modified |= _nested(existing, "spec", required.get("spec"), _ensure_cluster_version_spec)
    return modified


def ensure_cluster_version_status(existing: dict, required: dict) -> bool:
    """Replace a cluster version's status when it differs from the required one."""
    return sync_field(existing, "status", required.get("status"))


def ensure_cluster_role_binding(existing: dict, required: dict) -> bool:
    """Make a cluster role binding match the required one."""
    modified = _ensure_meta(existing, required)
    modified |= sync_field(existing, "subjects", required.get("subjects"))
    modified |= sync_field(existing, "roleRef", required.get("roleRef"))
    return modified


def ensure_cluster_role(existing: dict, required: dict) -> bool:
    """Make a cluster role match the required one."""
    modified = _ensure_meta(existing, required)
    modified |= sync_field(existing, "rules", required.get("rules"))
    return modified


def ensure_role_binding(existing: dict, required: dict) -> bool:
    """Make a role binding match the required one."""
    return ensure_cluster_role_binding(existing, required)


def ensure_role(existing: dict, required: dict) -> bool:
    """Make a role match the required one."""
    return ensure_cluster_role(existing, required)


def _merge_flex_volumes(existing: dict, required: list | None) -> bool:
    modified = False
    for volume in required or []:
        current = existing.get("allowedFlexVolumes")
        if current is not None and any(
            _semantic_equal(item.get("driver"), volume.get("driver")) for item in current
        ):
            continue
        if current is None:
            current = existing["allowedFlexVolumes"] = []
        current.append(copy.deepcopy(volume))
        modified = True
    return modified


def ensure_security_context_constraints(existing: dict, required: dict) -> bool:
    """Make security context constraints carry everything the required ones set."""
    modified = _ensure_meta(existing, required)
    modified |= set_field(existing, "priority", required.get("priority"))
    modified |= _set_bool(
        existing, "allowPrivilegedContainer", required.get("allowPrivilegedContainer")
    )
    for key in ("defaultAddCapabilities", "requiredDropCapabilities", "allowedCapabilities"):
        modified |= merge_string_list(existing, key, required.get(key))
    modified |= _set_bool(
        existing, "allowHostDirVolumePlugin", required.get("allowHostDirVolumePlugin")
    )
    modified |= merge_string_list(existing, "volumes", required.get("volumes"))
    modified |= _merge_flex_volumes(existing, required.get("allowedFlexVolumes"))
    for key in ("allowHostNetwork", "allowHostPorts", "allowHostPID", "allowHostIPC"):
        modified |= _set_bool(existing, key, required.get(key))
    for key in ("defaultAllowPrivilegeEscalation", "allowPrivilegeEscalation"):
        modified |= set_if_present(existing, key, required.get(key))
    for key in ("seLinuxContext", "runAsUser", "fsGroup", "supplementalGroups"):
        modified |= sync_field(existing, key, required.get(key))
    modified |= _set_bool(
        existing, "readOnlyRootFilesystem", required.get("readOnlyRootFilesystem")
    )
    for key in (
        "users",
        "groups",
        "seccompProfiles",
        "allowedUnsafeSysctls",
        "forbiddenSysctls",
    ):
        modified |= merge_string_list(existing, key, required.get(key))
    return modified