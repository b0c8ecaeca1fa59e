"""Merging of object metadata into existing Kubernetes objects.

Objects are plain dictionaries in their JSON form. Every ensure/merge function
mutates ``existing`` in place and returns True when it changed anything.
"""

from __future__ import annotations

import copy
from typing import Any


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, tuple, dict)) and not value)


def _semantic_equal(left: Any, right: Any) -> bool:
    """Deep comparison in which absent, null and empty values are all equal."""
    if _is_empty(left) and _is_empty(right):
        return True
    if isinstance(left, dict) and isinstance(right, dict):
        return all(_semantic_equal(left.get(k), right.get(k)) for k in left.keys() | right.keys())
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(map(_semantic_equal, left, right))
    return isinstance(left, bool) == isinstance(right, bool) and left == right


def set_string_if_set(existing: dict, key: str, required: str | None) -> bool:
    """Set ``existing[key]`` to ``required`` unless ``required`` is empty."""
    if not required or existing.get(key) == required:
        return False
    existing[key] = required
    return True


def merge_map(existing: dict, key: str, required: dict | None) -> bool:
    """Add every entry of ``required`` to the map stored at ``existing[key]``."""
    current = existing.get(key)
    if current is None:
        if required is None:
            return False
        current = existing[key] = {}
    modified = False
    for name, value in (required or {}).items():
        if name not in current or current[name] != value:
            current[name] = value
            modified = True
    return modified


def merge_owner_refs(existing: list, required: list) -> bool:
    """Add or replace owner references in ``existing``, matched by UID."""
    modified = False
    for ref in required:
        index = next(
            (i for i, current in enumerate(existing) if current.get("uid") == ref.get("uid")),
            None,
        )
        if index is None:
            existing.append(copy.deepcopy(ref))
            modified = True
        elif not _semantic_equal(existing[index], ref):
            existing[index] = copy.deepcopy(ref)
            modified = True
    return modified


def ensure_object_meta(existing: dict, required: dict) -> bool:
    """Make the ``existing`` metadata carry everything set in ``required``."""
    modified = set_string_if_set(existing, "namespace", required.get("namespace"))
    modified |= set_string_if_set(existing, "name", required.get("name"))
    modified |= merge_map(existing, "labels", required.get("labels"))
    modified |= merge_map(existing, "annotations", required.get("annotations"))
    required_refs = required.get("ownerReferences") or []
    if required_refs:
        refs = existing.get("ownerReferences")
        if refs is None:
            refs = existing["ownerReferences"] = []
        modified |= merge_owner_refs(refs, required_refs)
    return modified