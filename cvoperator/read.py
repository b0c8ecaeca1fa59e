"""Decoding of raw manifests into typed Kubernetes objects.

Each reader accepts the JSON or YAML form of a single object, checks that its
group, version and kind belong to the reader's scheme, converts it to the
reader's target version and returns it as a dictionary. Anything else raises
:class:`DecodeError`.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Mapping

import yaml

from cvoperator.manifest import ManifestError, _Loader, _parse_group_version

Scheme = Mapping[tuple[str, str], frozenset[str]]


class DecodeError(ValueError):
    """Raised when raw bytes cannot be decoded into the requested object."""


_APIEXT_GROUP = "apiextensions.k8s.io"
_APIREG_GROUP = "apiregistration.k8s.io"
_RBAC_GROUP = "rbac.authorization.k8s.io"
_IMAGE_GROUP = "image.openshift.io"
_SECURITY_GROUP = "security.openshift.io"

_APIEXT_SCHEME: Scheme = {
    (_APIEXT_GROUP, "v1beta1"): frozenset(
        {"CustomResourceDefinition", "CustomResourceDefinitionList"}
    ),
}
_APIREG_KINDS = frozenset({"APIService", "APIServiceList"})
_APIREG_SCHEME: Scheme = {
    (_APIREG_GROUP, "v1"): _APIREG_KINDS,
    (_APIREG_GROUP, "v1beta1"): _APIREG_KINDS,
}
_APPS_SCHEME: Scheme = {
    ("apps", "v1"): frozenset(
        {
            "Deployment",
            "DeploymentList",
            "DaemonSet",
            "DaemonSetList",
            "StatefulSet",
            "StatefulSetList",
            "ReplicaSet",
            "ReplicaSetList",
            "ControllerRevision",
            "ControllerRevisionList",
        }
    ),
}
_BATCH_SCHEME: Scheme = {("batch", "v1"): frozenset({"Job", "JobList"})}
_CORE_SCHEME: Scheme = {
    ("", "v1"): frozenset(
        {
            "ConfigMap",
            "ConfigMapList",
            "ServiceAccount",
            "ServiceAccountList",
            "Namespace",
            "NamespaceList",
            "Service",
            "ServiceList",
            "Pod",
            "PodList",
            "Secret",
            "SecretList",
            "Endpoints",
            "EndpointsList",
            "Node",
            "NodeList",
            "Event",
            "EventList",
        }
    ),
}
_IMAGE_SCHEME: Scheme = {
    (_IMAGE_GROUP, "v1"): frozenset(
        {
            "Image",
            "ImageList",
            "ImageStream",
            "ImageStreamList",
            "ImageStreamTag",
            "ImageStreamTagList",
            "ImageStreamMapping",
            "ImageStreamImage",
            "ImageStreamImport",
        }
    ),
}
_RBAC_KINDS = frozenset(
    {
        "ClusterRole",
        "ClusterRoleList",
        "ClusterRoleBinding",
        "ClusterRoleBindingList",
        "Role",
        "RoleList",
        "RoleBinding",
        "RoleBindingList",
    }
)
_RBAC_SCHEME: Scheme = {
    (_RBAC_GROUP, "v1"): _RBAC_KINDS,
    (_RBAC_GROUP, "v1beta1"): _RBAC_KINDS,
}
_SECURITY_SCHEME: Scheme = {
    (_SECURITY_GROUP, "v1"): frozenset(
        {"SecurityContextConstraints", "SecurityContextConstraintsList"}
    ),
}


def _load(raw: bytes | str) -> Any:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"unable to decode object: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.load(raw, Loader=_Loader)
    except yaml.YAMLError as exc:
        raise DecodeError(f"unable to decode object: {exc}") from exc


def _decode(raw: bytes | str, scheme: Scheme, group: str, version: str, kind: str) -> dict:
    obj = _load(raw)
    if not isinstance(obj, dict):
        raise DecodeError("unable to decode object: expected a single object")
    obj_kind = obj.get("kind")
    if not isinstance(obj_kind, str) or not obj_kind:
        raise DecodeError("Object 'Kind' is missing")
    api_version = obj.get("apiVersion") or ""
    if not isinstance(api_version, str):
        raise DecodeError("apiVersion must be a string")
    try:
        obj_group, obj_version = _parse_group_version(api_version)
    except ManifestError as exc:
        raise DecodeError(str(exc)) from exc
    if not obj_version:
        raise DecodeError("Object 'apiVersion' is missing")

    registered = scheme.get((obj_group, obj_version), frozenset())
    if obj_kind not in registered:
        raise DecodeError(
            f'no kind "{obj_kind}" is registered for version "{api_version}" in scheme'
        )
    if obj_kind != kind:
        raise DecodeError(f"expected {kind}, got {obj_kind}")

    result = copy.deepcopy(obj)
    result["apiVersion"] = f"{group}/{version}" if group else version
    return result


def read_custom_resource_definition_v1beta1(raw: bytes | str) -> dict:
    """Decode a v1beta1 CustomResourceDefinition."""
    return _decode(raw, _APIEXT_SCHEME, _APIEXT_GROUP, "v1beta1", "CustomResourceDefinition")


def read_api_service_v1(raw: bytes | str) -> dict:
    """Decode an APIService, converting v1beta1 to v1."""
    return _decode(raw, _APIREG_SCHEME, _APIREG_GROUP, "v1", "APIService")


def read_deployment_v1(raw: bytes | str) -> dict:
    """Decode an apps/v1 Deployment."""
    return _decode(raw, _APPS_SCHEME, "apps", "v1", "Deployment")


def read_daemon_set_v1(raw: bytes | str) -> dict:
    """Decode an apps/v1 DaemonSet."""
    return _decode(raw, _APPS_SCHEME, "apps", "v1", "DaemonSet")


def read_job_v1(raw: bytes | str) -> dict:
    """Decode a batch/v1 Job."""
    return _decode(raw, _BATCH_SCHEME, "batch", "v1", "Job")


def read_config_map_v1(raw: bytes | str) -> dict:
    """Decode a v1 ConfigMap."""
    return _decode(raw, _CORE_SCHEME, "", "v1", "ConfigMap")


def read_service_account_v1(raw: bytes | str) -> dict:
    """Decode a v1 ServiceAccount."""
    return _decode(raw, _CORE_SCHEME, "", "v1", "ServiceAccount")


def read_namespace_v1(raw: bytes | str) -> dict:
    """Decode a v1 Namespace."""
    return _decode(raw, _CORE_SCHEME, "", "v1", "Namespace")


def read_service_v1(raw: bytes | str) -> dict:
    """Decode a v1 Service."""
    return _decode(raw, _CORE_SCHEME, "", "v1", "Service")


def read_image_stream_v1(raw: bytes | str) -> dict:
    """Decode an image.openshift.io/v1 ImageStream."""
    return _decode(raw, _IMAGE_SCHEME, _IMAGE_GROUP, "v1", "ImageStream")


def read_cluster_role_binding_v1(raw: bytes | str) -> dict:
    """Decode a ClusterRoleBinding, converting v1beta1 to v1."""
    return _decode(raw, _RBAC_SCHEME, _RBAC_GROUP, "v1", "ClusterRoleBinding")


def read_cluster_role_v1(raw: bytes | str) -> dict:
    """Decode a ClusterRole, converting v1beta1 to v1."""
    return _decode(raw, _RBAC_SCHEME, _RBAC_GROUP, "v1", "ClusterRole")


def read_role_binding_v1(raw: bytes | str) -> dict:
    """Decode a RoleBinding, converting v1beta1 to v1."""
    return _decode(raw, _RBAC_SCHEME, _RBAC_GROUP, "v1", "RoleBinding")


def read_role_v1(raw: bytes | str) -> dict:
    """Decode a Role, converting v1beta1 to v1."""
    return _decode(raw, _RBAC_SCHEME, _RBAC_GROUP, "v1", "Role")


def read_security_context_constraints_v1(raw: bytes | str) -> dict:
    """Decode a security.openshift.io/v1 SecurityContextConstraints."""
    return _decode(
        raw, _SECURITY_SCHEME, _SECURITY_GROUP, "v1", "SecurityContextConstraints"
    )