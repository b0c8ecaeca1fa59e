"""Cluster operator status merging and status condition helpers.

Conditions are dictionaries with ``type``, ``status``, ``reason``, ``message``
and ``lastTransitionTime`` keys, kept in plain lists.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone

from cvoperator.merge import _ensure_meta, _nested
from cvoperator.podmerge import sync_field

CONDITION_TRUE = "True"
CONDITION_FALSE = "False"


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _ensure_status(existing: dict, required: dict) -> bool:
    modified = False
    for key in ("conditions", "versions", "extension", "relatedObjects"):
        modified |= sync_field(existing, key, required.get(key))
    return modified


def ensure_cluster_operator_status(existing: dict, required: dict) -> bool:
    """Make a cluster operator's metadata and status match the required ones."""
    modified = _ensure_meta(existing, required)
    modified |= _nested(existing, "status", required.get("status"), _ensure_status)
    return modified


def find_operator_status_condition(conditions: list | None, condition_type: str) -> dict | None:
    """Return the condition of the given type, or None."""
    return next((c for c in conditions or [] if c.get("type") == condition_type), None)


def set_operator_status_condition(conditions: list, new_condition: dict) -> None:
    """Add or update a condition, stamping the transition time when its status changes."""
    current = find_operator_status_condition(conditions, new_condition.get("type"))
    if current is None:
        added = copy.deepcopy(new_condition)
        added["lastTransitionTime"] = _now()
        conditions.append(added)
        return
    if current.get("status") != new_condition.get("status"):
        current["status"] = new_condition.get("status")
        current["lastTransitionTime"] = _now()
    for key in ("reason", "message"):
        value = new_condition.get(key)
        if value:
            current[key] = value
        else:
            current.pop(key, None)


def remove_operator_status_condition(conditions: list, condition_type: str) -> None:
    """Drop every condition of the given type."""
    conditions[:] = [c for c in conditions if c.get("type") != condition_type]


def is_operator_status_condition_present_and_equal(
    conditions: list | None, condition_type: str, status: str
) -> bool:
    """True when the condition of the given type exists with the given status."""
    condition = find_operator_status_condition(conditions, condition_type)
    return condition is not None and condition.get("status") == status


def is_operator_status_condition_true(conditions: list | None, condition_type: str) -> bool:
    """True when the condition of the given type is present and True."""
    return is_operator_status_condition_present_and_equal(
        conditions, condition_type, CONDITION_TRUE
    )


def is_operator_status_condition_false(conditions: list | None, condition_type: str) -> bool:
    """True when the condition of the given type is present and False."""
    return is_operator_status_condition_present_and_equal(
        conditions, condition_type, CONDITION_FALSE
    )


def is_operator_status_condition_not_in(
    conditions: list | None, condition_type: str, *args: str
) -> bool:
    """True unless the condition of the given type has one of the given statuses."""
    condition = find_operator_status_condition(conditions, condition_type)
    return condition is None or condition.get("status") not in args