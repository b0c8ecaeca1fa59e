"""Injection of proxy settings into pod specs."""

from __future__ import annotations

import json
from typing import Iterable


def _proxy_env(http_proxy: str, https_proxy: str, no_proxy: str) -> list[dict]:
    return [
        {"name": "HTTP_PROXY", "value": http_proxy},
        {"name": "HTTPS_PROXY", "value": https_proxy},
        {"name": "NO_PROXY", "value": no_proxy},
    ]


def update_pod_spec_with_proxy(
    pod_spec: dict,
    container_names: Iterable[str] | None,
    http_proxy: str,
    https_proxy: str,
    no_proxy: str,
) -> None:
    """Append proxy environment variables to the named containers and init containers.

    Does nothing when no proxy value is set; raises ValueError for a name that
    matches no container.
    """
    if not (https_proxy or http_proxy or no_proxy):
        return

    for name in container_names or []:
        found = False
        for key in ("containers", "initContainers"):
            for container in pod_spec.get(key) or []:
                if container.get("name") != name:
                    continue
                found = True
                container.setdefault("env", []).extend(
                    _proxy_env(http_proxy, https_proxy, no_proxy)
                )
        if not found:
            raise ValueError(
                f"requested injection for non-existent container: {json.dumps(name)}"
            )