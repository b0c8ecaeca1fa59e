"""Create-or-update of Kubernetes objects against an API client.

Objects are plain dictionaries in their JSON form. A client is any object with
``get(namespace, name)``, ``create(obj)`` and ``update(obj)`` methods. ``get``
raises :class:`NotFoundError` for a missing object. A lister is a read-only
cache with the same ``get(namespace, name)`` method. Cluster-scoped objects use
an empty namespace.

Every apply function returns ``(actual, updated)``. ``actual`` is the object
the server returned, the unchanged existing object, or None when nothing was
done. ``updated`` is True when a create or update request was sent. Errors from
the client propagate.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Protocol

from cvoperator.merge import (
    _ensure_meta,
    ensure_api_service,
    ensure_cluster_role,
    ensure_cluster_role_binding,
    ensure_cluster_version,
    ensure_custom_resource_definition,
    ensure_daemon_set,
    ensure_deployment,
    ensure_job,
    ensure_role,
    ensure_role_binding,
)
from cvoperator.meta import _semantic_equal
from cvoperator.podmerge import ensure_config_map

# When this annotation is "true" (in any case), the resource is created if it
# does not exist but is never updated afterwards.
CREATE_ONLY_ANNOTATION = "release.openshift.io/create-only"

Ensure = Callable[[dict, dict], bool]
Result = tuple[Any, bool]


class NotFoundError(LookupError):
    """Raised by a client or lister when the requested object does not exist."""


class AlreadyExistsError(Exception):
    """Raised by a client when creating an object that already exists."""


class ResourceClient(Protocol):
    def get(self, namespace: str, name: str) -> dict: ...

    def create(self, obj: dict) -> dict: ...

    def update(self, obj: dict) -> dict: ...


class ResourceLister(Protocol):
    def get(self, namespace: str, name: str) -> dict: ...


def _key(obj: dict) -> tuple[str, str]:
    metadata = obj.get("metadata") or {}
    return metadata.get("namespace") or "", metadata.get("name") or ""


def is_create_only(obj: dict) -> bool:
    """True when the object asks to be created but never updated."""
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    value = annotations.get(CREATE_ONLY_ANNOTATION) or ""
    return value.casefold() == "true"


def _finish(client: ResourceClient, existing: dict, required: dict, ensure: Ensure) -> Result:
    if is_create_only(required):
        return None, False
    if not ensure(existing, required):
        return existing, False
    return client.update(existing), True


def apply_resource(client: ResourceClient, required: dict, ensure: Ensure) -> Result:
    """Create ``required`` or merge it into the live object with ``ensure``."""
    try:
        existing = client.get(*_key(required))
    except NotFoundError:
        return client.create(required), True
    return _finish(client, existing, required, ensure)


def apply_resource_from_cache(
    lister: ResourceLister, client: ResourceClient, required: dict, ensure: Ensure
) -> Result:
    """Like :func:`apply_resource`, but read the existing object from a cache."""
    try:
        cached = lister.get(*_key(required))
    except NotFoundError:
        return client.create(required), True
    if is_create_only(required):
        return None, False
    # never mutate the cache
    return _finish(client, copy.deepcopy(cached), required, ensure)


def apply_custom_resource_definition(client: ResourceClient, required: dict) -> Result:
    """Apply a custom resource definition."""
    return apply_resource(client, required, ensure_custom_resource_definition)


def apply_custom_resource_definition_from_cache(
    lister: ResourceLister, client: ResourceClient, required: dict
) -> Result:
    """Apply a custom resource definition, reading the current one from a cache."""
    return apply_resource_from_cache(lister, client, required, ensure_custom_resource_definition)


def apply_api_service(client: ResourceClient, required: dict) -> Result:
    """Apply an API service."""
    return apply_resource(client, required, ensure_api_service)


def apply_deployment(client: ResourceClient, required: dict) -> Result:
    """Apply a deployment."""
    return apply_resource(client, required, ensure_deployment)


def apply_deployment_from_cache(
    lister: ResourceLister, client: ResourceClient, required: dict
) -> Result:
    """Apply a deployment, reading the current one from a cache."""
    return apply_resource_from_cache(lister, client, required, ensure_deployment)


def apply_daemon_set(client: ResourceClient, required: dict) -> Result:
    """Apply a daemon set."""
    return apply_resource(client, required, ensure_daemon_set)


def apply_daemon_set_from_cache(
    lister: ResourceLister, client: ResourceClient, required: dict
) -> Result:
    """Apply a daemon set, reading the current one from a cache."""
    return apply_resource_from_cache(lister, client, required, ensure_daemon_set)


def apply_job(client: ResourceClient, required: dict) -> Result:
    """Apply a job."""
    return apply_resource(client, required, ensure_job)


def apply_namespace(client: ResourceClient, required: dict) -> Result:
    """Apply a namespace, merging only its metadata."""
    return apply_resource(client, required, _ensure_meta)


def apply_service(client: ResourceClient, required: dict) -> Result:
    """Apply a service, merging metadata and forcing its selector and type."""
    try:
        existing = client.get(*_key(required))
    except NotFoundError:
        return client.create(required), True
    if is_create_only(required):
        return None, False

    modified = _ensure_meta(existing, required)
    spec = existing.get("spec") or {}
    required_spec = required.get("spec") or {}
    selector = required_spec.get("selector")
    service_type = required_spec.get("type")
    same_selector = _semantic_equal(spec.get("selector"), selector)
    same_type = _semantic_equal(spec.get("type"), service_type)
    if same_selector and same_type and not modified:
        return None, False

    spec = existing.setdefault("spec", {})
    for key, value in (("selector", selector), ("type", service_type)):
        if value is None:
            spec.pop(key, None)
        else:
            spec[key] = copy.deepcopy(value)
    # a changed type may be rejected by the server; the error then propagates
    return client.update(existing), True


def apply_service_account(client: ResourceClient, required: dict) -> Result:
    """Apply a service account, merging only its metadata."""
    return apply_resource(client, required, _ensure_meta)


def apply_config_map(client: ResourceClient, required: dict) -> Result:
    """Apply a config map."""
    return apply_resource(client, required, ensure_config_map)


def apply_cluster_version(client: ResourceClient, required: dict) -> Result:
    """Apply a cluster version."""
    return apply_resource(client, required, ensure_cluster_version)


def apply_cluster_version_from_cache(
    lister: ResourceLister, client: ResourceClient, required: dict
) -> Result:
    """Apply a cluster version, reading the current one from a cache."""
    return apply_resource_from_cache(lister, client, required, ensure_cluster_version)


def apply_cluster_role_binding(client: ResourceClient, required: dict) -> Result:
    """Apply a cluster role binding."""
    return apply_resource(client, required, ensure_cluster_role_binding)


def apply_cluster_role(client: ResourceClient, required: dict) -> Result:
    """Apply a cluster role."""
    return apply_resource(client, required, ensure_cluster_role)


def apply_role_binding(client: ResourceClient, required: dict) -> Result:
    """Apply a role binding."""
    return apply_resource(client, required, ensure_role_binding)


def apply_role(client: ResourceClient, required: dict) -> Result:
    """Apply a role."""
    return apply_resource(client, required, ensure_role)


def apply_security_context_constraints(client: ResourceClient, required: dict) -> Result:
    """Apply security context constraints, merging only their metadata."""
    return apply_resource(client, required, _ensure_meta)