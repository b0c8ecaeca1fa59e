"""Client for the Cincinnati update-graph API and semantic version handling."""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.parse
import urllib.request
import uuid
from dataclasses import dataclass, field
from typing import Any

# Media type sent in the Accept header of graph requests.
GRAPH_MEDIA_TYPE = "application/json"

_DIGITS = frozenset("0123456789")
_ALPHANUM = frozenset("0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ-")


class SemverError(ValueError):
    """Raised for a string that is not a semantic version."""


class CincinnatiError(Exception):
    """Raised when the update graph cannot be fetched or used."""


@dataclass(frozen=True)
class Version:
    """A semantic version; build metadata is ignored when comparing."""

    major: int = 0
    minor: int = 0
    patch: int = 0
    pre: tuple = ()
    build: tuple = ()

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(str(p) for p in self.pre)
        if self.build:
            text += "+" + ".".join(self.build)
        return text

    def compare(self, other: "Version") -> int:
        """Return -1, 0 or 1 as this version sorts before, with or after ``other``."""
        for a, b in ((self.major, other.major), (self.minor, other.minor), (self.patch, other.patch)):
            if a != b:
                return -1 if a < b else 1
        if not self.pre and not other.pre:
            return 0
        if not self.pre:
            return 1
        if not other.pre:
            return -1
        for a, b in zip(self.pre, other.pre):
            result = _compare_pre(a, b)
            if result:
                return result
        if len(self.pre) == len(other.pre):
            return 0
        return -1 if len(self.pre) < len(other.pre) else 1

    def equals(self, other: "Version") -> bool:
        """True when both versions have equal precedence."""
        return self.compare(other) == 0


def _compare_pre(a: int | str, b: int | str) -> int:
    if isinstance(a, int) != isinstance(b, int):
        return -1 if isinstance(a, int) else 1
    if a == b:
        return 0
    return -1 if a < b else 1  # type: ignore[operator]


def _number(text: str, name: str) -> int:
    if not text or not set(text) <= _DIGITS:
        raise SemverError(f"Invalid character(s) found in {name.lower()} number {json.dumps(text)}")
    if len(text) > 1 and text[0] == "0":
        raise SemverError(f"{name} number must not contain leading zeroes {json.dumps(text)}")
    return int(text)


def _pre_part(text: str) -> int | str:
    if not text:
        raise SemverError("Prerelease is empty")
    if set(text) <= _DIGITS:
        if len(text) > 1 and text[0] == "0":
            raise SemverError(
                f"Numeric PreRelease version must not contain leading zeroes {json.dumps(text)}"
            )
        return int(text)
    if not set(text) <= _ALPHANUM:
        raise SemverError(f"Invalid character(s) found in prerelease {json.dumps(text)}")
    return text


def _build_part(text: str) -> str:
    if not text:
        raise SemverError("Build meta data is empty")
    if not set(text) <= _ALPHANUM:
        raise SemverError(f"Invalid character(s) found in build meta data {json.dumps(text)}")
    return text


def parse_version(text: str) -> Version:
    """Parse a semantic version such as ``4.0.0-0.2+build``."""
    parts = text.split(".", 2)
    if len(parts) != 3:
        raise SemverError("No Major.Minor.Patch elements found")
    major = _number(parts[0], "Major")
    minor = _number(parts[1], "Minor")
    patch_text = parts[2]
    build: tuple = ()
    pre: tuple = ()
    if "+" in patch_text:
        patch_text, build_text = patch_text.split("+", 1)
        build = tuple(_build_part(p) for p in build_text.split("."))
    if "-" in patch_text:
        patch_text, pre_text = patch_text.split("-", 1)
        pre = tuple(_pre_part(p) for p in pre_text.split("."))
    patch = _number(patch_text, "Patch")
    return Version(major, minor, patch, pre, build)


@dataclass(frozen=True)
class Update:
    """A node of the update graph: a version and the image that delivers it."""

    version: Version = field(default_factory=Version)
    image: str = ""


def _field(obj: dict, name: str) -> Any:
    if name in obj:
        return obj[name]
    lowered = name.lower()
    return next((v for k, v in obj.items() if k.lower() == lowered), None)


def _load(data: Any) -> Any:
    if isinstance(data, (bytes, str)):
        return json.loads(data)
    return data


def parse_node(data: Any) -> Update:
    """Decode one graph node from JSON text or a decoded mapping."""
    obj = _load(data)
    if not isinstance(obj, dict):
        raise CincinnatiError("expected a JSON object for a graph node")
    version_text = _field(obj, "version")
    version = Version() if version_text is None else parse_version(str(version_text))
    return Update(version=version, image=_field(obj, "payload") or "")


def parse_edge(data: Any) -> tuple[int, int]:
    """Decode a graph edge, a two-element array of node indices."""
    fields = _load(data)
    if not isinstance(fields, list) or not all(
        isinstance(f, int) and not isinstance(f, bool) for f in fields
    ):
        raise CincinnatiError("expected an array of integers for a graph edge")
    if len(fields) != 2:
        raise CincinnatiError(f"expected 2 fields, found {len(fields)}")
    return fields[0], fields[1]


class Client:
    """Fetches available updates from an upstream Cincinnati service."""

    def __init__(
        self,
        client_id: uuid.UUID,
        proxy_url: str | None = None,
        tls_config: ssl.SSLContext | None = None,
    ) -> None:
        self.id = client_id
        self.proxy_url = proxy_url
        self.tls_config = tls_config

    def _query_url(self, upstream: str, arch: str, channel: str, version: Version) -> str:
        try:
            parts = urllib.parse.urlsplit(upstream)
        except ValueError as exc:
            raise CincinnatiError(f"failed to parse upstream URL: {exc}") from exc
        params = urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
        params += [
            ("arch", arch),
            ("channel", channel),
            ("id", str(self.id)),
            ("version", str(version)),
        ]
        params.sort(key=lambda item: item[0])
        return urllib.parse.urlunsplit(parts._replace(query=urllib.parse.urlencode(params)))

    def _fetch(self, url: str) -> bytes:
        proxies = {"http": self.proxy_url, "https": self.proxy_url} if self.proxy_url else {}
        handlers: list = [urllib.request.ProxyHandler(proxies)]
        if self.tls_config is not None:
            handlers.append(urllib.request.HTTPSHandler(context=self.tls_config))
        opener = urllib.request.build_opener(*handlers)
        request = urllib.request.Request(url, headers={"Accept": GRAPH_MEDIA_TYPE})
        try:
            with opener.open(request) as response:
                if response.status != 200:
                    raise CincinnatiError(
                        f"unexpected HTTP status: {response.status} {response.reason}"
                    )
                return response.read()
        except urllib.error.HTTPError as exc:
            raise CincinnatiError(f"unexpected HTTP status: {exc.code} {exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise CincinnatiError(str(exc.reason)) from exc

    def get_updates(self, upstream: str, arch: str, channel: str, version: Version) -> list[Update]:
        """Return the updates reachable in one step from ``version`` in ``channel``."""
        body = self._fetch(self._query_url(upstream, arch, channel, version))
        try:
            graph = json.loads(body)
        except json.JSONDecodeError as exc:
            raise CincinnatiError(str(exc)) from exc
        if not isinstance(graph, dict):
            raise CincinnatiError("expected a JSON object for the update graph")
        nodes = [parse_node(n) for n in _field(graph, "nodes") or []]
        edges = [parse_edge(e) for e in _field(graph, "edges") or []]

        current = next((i for i, n in enumerate(nodes) if version.equals(n.version)), None)
        if current is None:
            raise CincinnatiError(
                f"currently installed version {version} not found in the "
                f"{json.dumps(channel)} channel"
            )
        updates = []
        for origin, destination in edges:
            if origin != current:
                continue
            if not 0 <= destination < len(nodes):
                raise CincinnatiError(f"edge destination {destination} out of range")
            updates.append(nodes[destination])
        return updates