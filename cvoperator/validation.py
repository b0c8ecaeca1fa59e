"""Validation of ClusterVersion objects."""

from __future__ import annotations

import copy
import re
import urllib.parse
import uuid
from dataclasses import dataclass
from typing import Any

from cvoperator.cincinnati import SemverError, parse_version

_DNS1035 = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])?$")
_DNS1035_MESSAGE = (
    "a DNS-1035 label must consist of lower case alphanumeric characters or '-', "
    "start with an alphabetic character, and end with an alphanumeric character"
)
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class FieldError:
    """A validation error for one field of an object."""

    type: str
    field: str
    bad_value: Any = None
    detail: str = ""

    def __str__(self) -> str:
        if self.type == "Invalid":
            return f"{self.field}: Invalid value: {self.bad_value!r}: {self.detail}"
        return f"{self.field}: {self.type}: {self.detail}"


def _invalid(path: str, value: Any, detail: str) -> FieldError:
    return FieldError("Invalid", path, value, detail)


def _validate_meta(meta: dict) -> list[FieldError]:
    errors = []
    name = meta.get("name") or ""
    if not name and not meta.get("generateName"):
        errors.append(FieldError("Required", "metadata.name", "", "name or generateName is required"))
    elif name and (len(name) > 63 or not _DNS1035.match(name)):
        errors.append(_invalid("metadata.name", name, _DNS1035_MESSAGE))
    if meta.get("namespace"):
        errors.append(FieldError("Forbidden", "metadata.namespace", None, "not allowed on this type"))
    return errors


def _valid_url(text: str) -> bool:
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in text) or _BAD_ESCAPE.search(text):
        return False
    try:
        urllib.parse.urlsplit(text).port
    except ValueError:
        return False
    return True


def _valid_semver(text: str) -> bool:
    try:
        parse_version(text)
    except SemverError:
        return False
    return True


def _count_payloads_for_version(config: dict, version: str) -> int:
    status = config.get("status") or {}
    count = sum(
        1
        for u in status.get("availableUpdates") or []
        if u.get("version") == version and u.get("image")
    )
    if count:
        return count
    for entry in status.get("history") or []:
        if entry.get("version") == version and entry.get("image"):
            return 1
    return 0


def validate_cluster_version(config: dict) -> list[FieldError]:
    """Return every validation error of a ClusterVersion."""
    errors = _validate_meta(config.get("metadata") or {})
    spec = config.get("spec") or {}

    upstream = spec.get("upstream") or ""
    if upstream and not _valid_url(upstream):
        errors.append(_invalid("spec.upstream", upstream, "must be a valid URL or empty"))

    cluster_id = spec.get("clusterID") or ""
    if cluster_id:
        try:
            parsed = uuid.UUID(cluster_id)
        except ValueError:
            parsed = uuid.UUID(int=0)
        if parsed.variant != uuid.RFC_4122:
            errors.append(_invalid("spec.clusterID", cluster_id, "must be an RFC4122-variant UUID"))
        elif (parsed.int >> 76) & 0xF != 4:
            errors.append(_invalid("spec.clusterID", cluster_id, "must be a version-4 UUID"))

    update = spec.get("desiredUpdate")
    if update is not None:
        version = update.get("version") or ""
        image = update.get("image") or ""
        path = "spec.desiredUpdate.version"
        if not version and not image:
            errors.append(FieldError("Required", path, "", "must specify version or image"))
        elif version and not _valid_semver(version):
            errors.append(_invalid(path, version, "must be a semantic version (1.2.3[-...])"))
        elif version and not image:
            count = _count_payloads_for_version(config, version)
            if count == 0:
                errors.append(_invalid(
                    path, version,
                    "when image is empty the update must be a previous version or an available update",
                ))
            elif count > 1:
                errors.append(_invalid(
                    path, version,
                    "there are multiple possible payloads for this version, specify the exact image",
                ))
    return errors


def clear_invalid_fields(config: dict, errors: list[FieldError]) -> dict:
    """Return ``config``, or a copy with every field named in ``errors`` cleared."""
    if not errors:
        return config
    copied = copy.deepcopy(config)
    spec = copied.setdefault("spec", {})
    for error in errors:
        if error.field.startswith("spec.desiredUpdate."):
            spec.pop("desiredUpdate", None)
        elif error.field == "spec.upstream":
            spec.pop("upstream", None)
        elif error.field == "spec.clusterID":
            spec.pop("clusterID", None)
    return copied