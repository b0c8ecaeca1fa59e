"""Merging of config maps, pod templates, pod specs and containers.

Objects are plain dictionaries in their JSON form. Every function mutates
``existing`` in place and returns True when it changed anything.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

from cvoperator.meta import _semantic_equal, ensure_object_meta, merge_map, set_string_if_set

_PROBE_HANDLERS = ("exec", "httpGet", "tcpSocket")


def _assign(existing: dict, key: str, value: Any) -> None:
    if value is None:
        existing.pop(key, None)
    else:
        existing[key] = copy.deepcopy(value)


def set_field(existing: dict, key: str, required: Any) -> bool:
    """Replace ``existing[key]`` with ``required`` on any strict difference; None removes it."""
    if existing.get(key) == required:
        return False
    _assign(existing, key, required)
    return True


def set_if_present(existing: dict, key: str, required: Any) -> bool:
    """Replace ``existing[key]`` with ``required`` unless ``required`` is None or equal."""
    if required is None:
        return False
    current = existing.get(key)
    if current is not None and _semantic_equal(current, required):
        return False
    _assign(existing, key, required)
    return True


def sync_field(existing: dict, key: str, required: Any) -> bool:
    """Make ``existing[key]`` semantically equal to ``required``."""
    if _semantic_equal(existing.get(key), required):
        return False
    _assign(existing, key, required)
    return True


def merge_string_list(existing: dict, key: str, required: list | None) -> bool:
    """Append every item of ``required`` missing from the list at ``existing[key]``."""
    modified = False
    for item in required or []:
        current = existing.get(key)
        if current is not None and item in current:
            continue
        if current is None:
            current = existing[key] = []
        current.append(copy.deepcopy(item))
        modified = True
    return modified


def _ensure_named(
    existing: dict,
    key: str,
    required: list | None,
    match: str = "name",
    same: Callable[[Any, Any], bool] = _semantic_equal,
) -> bool:
    """Require every item of ``required`` in the list at ``existing[key]``, matched on ``match``."""
    modified = False
    for item in required or []:
        current = existing.get(key)
        if current is None:
            current = existing[key] = []
        wanted = item.get(match) or ""
        index = next(
            (i for i, cur in enumerate(current) if (cur.get(match) or "") == wanted), None
        )
        if index is None:
            current.append(copy.deepcopy(item))
            modified = True
        elif not same(current[index], item):
            current[index] = copy.deepcopy(item)
            modified = True
    return modified


def _ensure_ptr(
    existing: dict, key: str, required: dict | None, ensure: Callable[[dict, dict], bool]
) -> bool:
    """Set a nested object when absent, otherwise merge into it; ignore a None requirement."""
    if required is None:
        return False
    current = existing.get(key)
    if current is None:
        existing[key] = copy.deepcopy(required)
        return True
    return ensure(current, required)


def _ensure_probe(existing: dict, required: dict) -> bool:
    modified = False
    delay = required.get("initialDelaySeconds", 0)
    if existing.get("initialDelaySeconds", 0) != delay:
        existing["initialDelaySeconds"] = delay
        modified = True
    for handler in _PROBE_HANDLERS:
        modified |= sync_field(existing, handler, required.get(handler))
    return modified


def _ensure_capabilities(existing: dict, required: dict) -> bool:
    modified = merge_string_list(existing, "add", required.get("add"))
    modified |= merge_string_list(existing, "drop", required.get("drop"))
    return modified


def _ensure_selinux_options(existing: dict, required: dict) -> bool:
    modified = False
    for key in ("user", "role", "type", "level"):
        modified |= set_string_if_set(existing, key, required.get(key))
    return modified


def _ensure_security_context(existing: dict, required: dict) -> bool:
    modified = _ensure_ptr(
        existing, "capabilities", required.get("capabilities"), _ensure_capabilities
    )
    modified |= _ensure_ptr(
        existing, "seLinuxOptions", required.get("seLinuxOptions"), _ensure_selinux_options
    )
    for key in (
        "privileged",
        "runAsUser",
        "runAsNonRoot",
        "readOnlyRootFilesystem",
        "allowPrivilegeEscalation",
    ):
        modified |= set_if_present(existing, key, required.get(key))
    return modified


def _same_sysctl_value(current: dict, required: dict) -> bool:
    return (current.get("value") or "") == (required.get("value") or "")


def _ensure_pod_security_context(existing: dict, required: dict) -> bool:
    modified = _ensure_ptr(
        existing, "seLinuxOptions", required.get("seLinuxOptions"), _ensure_selinux_options
    )
    for key in ("runAsUser", "runAsGroup", "runAsNonRoot"):
        modified |= set_if_present(existing, key, required.get(key))
    modified |= merge_string_list(
        existing, "supplementalGroups", required.get("supplementalGroups")
    )
    modified |= set_if_present(existing, "fsGroup", required.get("fsGroup"))
    modified |= _ensure_named(
        existing, "sysctls", required.get("sysctls"), same=_same_sysctl_value
    )
    return modified


def _ensure_affinity(existing: dict, required: dict) -> bool:
    modified = False
    for key in ("nodeAffinity", "podAffinity", "podAntiAffinity"):
        modified |= sync_field(existing, key, required.get(key))
    return modified


def _ensure_resources(existing: dict, required: dict) -> bool:
    resources = existing.get("resources")
    target = resources if resources is not None else {}
    modified = sync_field(target, "limits", required.get("limits"))
    modified |= sync_field(target, "requests", required.get("requests"))
    if resources is None and target:
        existing["resources"] = target
    return modified


def ensure_container(existing: dict, required: dict) -> bool:
    """Make one container match the required container."""
    modified = set_string_if_set(existing, "name", required.get("name"))
    modified |= set_string_if_set(existing, "image", required.get("image"))
    # the launch command is owned by the required manifest, not by whoever edited it
    modified |= set_field(existing, "command", required.get("command"))
    modified |= set_field(existing, "args", required.get("args"))
    modified |= set_if_present(existing, "env", required.get("env"))
    modified |= set_if_present(existing, "envFrom", required.get("envFrom"))
    modified |= set_string_if_set(existing, "workingDir", required.get("workingDir"))
    modified |= _ensure_resources(existing, required.get("resources") or {})
    modified |= _ensure_named(existing, "ports", required.get("ports"))
    modified |= _ensure_named(existing, "volumeMounts", required.get("volumeMounts"))
    modified |= _ensure_ptr(
        existing, "livenessProbe", required.get("livenessProbe"), _ensure_probe
    )
    modified |= _ensure_ptr(
        existing, "readinessProbe", required.get("readinessProbe"), _ensure_probe
    )
    modified |= _ensure_ptr(
        existing, "securityContext", required.get("securityContext"), _ensure_security_context
    )
    return modified


def ensure_containers(existing: dict, key: str, required: list | None) -> bool:
    """Make the container list at ``existing[key]`` hold exactly the required containers."""
    current = existing.get(key)
    required = required or []
    by_name: dict[str, dict] = {}
    for container in required:
        by_name.setdefault(container.get("name") or "", container)

    modified = False
    kept = []
    for container in current or []:
        wanted = by_name.get(container.get("name") or "")
        if wanted is None:
            modified = True
            continue
        modified |= ensure_container(container, wanted)
        kept.append(container)

    present = {container.get("name") or "" for container in kept}
    for container in required:
        name = container.get("name") or ""
        if name not in present:
            kept.append(copy.deepcopy(container))
            present.add(name)
            modified = True

    if current is not None or kept:
        existing[key] = kept
    return modified


def ensure_pod_spec(existing: dict, required: dict) -> bool:
    """Make a pod spec match the required pod spec."""
    modified = ensure_containers(existing, "initContainers", required.get("initContainers"))
    modified |= ensure_containers(existing, "containers", required.get("containers"))
    modified |= _ensure_named(existing, "volumes", required.get("volumes"))
    modified |= set_string_if_set(existing, "restartPolicy", required.get("restartPolicy"))
    modified |= set_string_if_set(
        existing, "serviceAccountName", required.get("serviceAccountName")
    )
    host_network = bool(required.get("hostNetwork", False))
    if bool(existing.get("hostNetwork", False)) != host_network:
        existing["hostNetwork"] = host_network
        modified = True
    modified |= merge_map(existing, "nodeSelector", required.get("nodeSelector"))
    modified |= _ensure_ptr(
        existing,
        "securityContext",
        required.get("securityContext"),
        _ensure_pod_security_context,
    )
    modified |= _ensure_ptr(existing, "affinity", required.get("affinity"), _ensure_affinity)
    modified |= _ensure_named(existing, "tolerations", required.get("tolerations"), match="key")
    modified |= set_string_if_set(
        existing, "priorityClassName", required.get("priorityClassName")
    )
    modified |= set_field(existing, "priority", required.get("priority"))
    return modified


def ensure_pod_template_spec(existing: dict, required: dict) -> bool:
    """Make a pod template match the required template."""
    modified = ensure_object_meta(
        existing.setdefault("metadata", {}), required.get("metadata") or {}
    )
    modified |= ensure_pod_spec(existing.setdefault("spec", {}), required.get("spec") or {})
    return modified


def ensure_config_map(existing: dict, required: dict) -> bool:
    """Make a config map carry the required metadata and data entries."""
    modified = ensure_object_meta(
        existing.setdefault("metadata", {}), required.get("metadata") or {}
    )
    modified |= merge_map(existing, "data", required.get("data"))
    return modified