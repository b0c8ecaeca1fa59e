"""Calculation of the updates available to a cluster."""

from __future__ import annotations

import copy
import logging
import ssl
import time
import urllib.parse
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from cvoperator.apply import NotFoundError
from cvoperator.cincinnati import Client, SemverError, Update, Version, parse_version
from cvoperator.conditions import find_operator_status_condition, set_operator_status_condition
from cvoperator.meta import _semantic_equal

log = logging.getLogger(__name__)

RETRIEVED_UPDATES = "RetrievedUpdates"
# Namespace holding the config map with the proxy's trusted CA bundle.
CONFIG_NAMESPACE = "openshift-config"
CA_BUNDLE_KEY = "ca-bundle.crt"


@dataclass
class AvailableUpdates:
    """The updates last retrieved for an upstream and channel."""

    upstream: str = ""
    channel: str = ""
    at: float = field(default_factory=time.time)
    updates: list | None = None
    condition: dict = field(default_factory=dict)

    def recently_changed(self, interval: float) -> bool:
        """True when retrieved less than ``interval`` seconds ago."""
        return self.at > time.time() - interval

    def needs_update(self, original: dict) -> dict | None:
        """Return a copy of ``original`` carrying these updates, or None if unchanged."""
        spec = original.get("spec") or {}
        if self.upstream != (spec.get("upstream") or "") or self.channel != (spec.get("channel") or ""):
            return None
        status = original.get("status") or {}
        current = find_operator_status_condition(status.get("conditions"), self.condition.get("type"))
        if _semantic_equal(self.updates, status.get("availableUpdates")) and _semantic_equal(
            self.condition, current
        ):
            return None
        config = copy.deepcopy(original)
        new_status = config.setdefault("status", {})
        set_operator_status_condition(new_status.setdefault("conditions", []), self.condition)
        if self.updates is None:
            new_status.pop("availableUpdates", None)
        else:
            new_status["availableUpdates"] = copy.deepcopy(self.updates)
        return config


def _failed(reason: str, message: str) -> tuple[None, dict]:
    return None, {"type": RETRIEVED_UPDATES, "status": "False", "reason": reason, "message": message}


def calculate_available_updates_status(
    cluster_id: str,
    proxy_url: str | None,
    tls_config: ssl.SSLContext | None,
    upstream: str,
    arch: str,
    channel: str,
    version: str,
) -> tuple[list | None, dict]:
    """Fetch the available updates and the RetrievedUpdates condition describing the result."""
    if not upstream:
        return _failed("NoUpstream", "No upstream server has been set to retrieve updates.")
    if not arch:
        return _failed("NoArchitecture", "The set of architectures has not been configured.")
    if not version:
        return _failed(
            "NoCurrentVersion",
            "The cluster version does not have a semantic version assigned and cannot "
            "calculate valid upgrades.",
        )
    if not channel:
        return _failed("NoChannel", "The update channel has not been configured.")
    try:
        current = parse_version(version)
    except SemverError as exc:
        log.info("Unable to parse current semantic version %r: %s", version, exc)
        return _failed(
            "InvalidCurrentVersion",
            "The current cluster version is not a valid semantic version and cannot be "
            "used to calculate upgrades.",
        )
    try:
        updates = check_for_update(cluster_id, proxy_url, tls_config, upstream, arch, channel, current)
    except Exception as exc:  # noqa: BLE001 - any failure becomes a condition
        log.info("Upstream server %s could not return available updates: %s", upstream, exc)
        return _failed("RemoteFailed", f"Unable to retrieve available updates: {exc}")

    result = [{"version": str(u.version), "image": u.image} for u in updates] or None
    return result, {
        "type": RETRIEVED_UPDATES,
        "status": "True",
        "lastTransitionTime": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }


def check_for_update(
    cluster_id: str,
    proxy_url: str | None,
    tls_config: ssl.SSLContext | None,
    upstream: str,
    arch: str,
    channel: str,
    current_version: Version,
) -> list[Update]:
    """Ask the upstream service for updates from ``current_version``."""
    client_id = uuid.UUID(cluster_id)
    if not upstream:
        raise ValueError("no upstream URL set for cluster version")
    return Client(client_id, proxy_url, tls_config).get_updates(upstream, arch, channel, current_version)


def get_https_proxy_url(proxy_lister: Any) -> tuple[str | None, str]:
    """Return the cluster HTTPS proxy URL and the name of its trusted CA config map."""
    try:
        proxy = proxy_lister.get("", "cluster")
    except NotFoundError:
        return None, ""
    spec = proxy.get("spec") or {}
    https_proxy = spec.get("httpsProxy") or ""
    if not https_proxy:
        return None, ""
    urllib.parse.urlsplit(https_proxy).port  # raises ValueError for a malformed URL
    return https_proxy, (spec.get("trustedCA") or {}).get("name") or ""


def get_tls_config(config_map_lister: Any, config_map_name: str) -> ssl.SSLContext | None:
    """Build a TLS context trusting the system roots plus the config map's CA bundle."""
    config_map = config_map_lister.get(CONFIG_NAMESPACE, config_map_name)
    bundle = (config_map.get("data") or {}).get(CA_BUNDLE_KEY) or ""
    if not bundle:
        return None
    context = ssl.create_default_context()
    try:
        context.load_verify_locations(cadata=bundle)
    except (ssl.SSLError, ValueError) as exc:
        raise ValueError(f"unable to add {CA_BUNDLE_KEY} certificates") from exc
    return context