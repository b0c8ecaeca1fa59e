"""Loading Kubernetes manifests from YAML or JSON documents."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

import yaml


class ManifestError(ValueError):
    """Raised when a manifest cannot be read or decoded."""


@dataclass(frozen=True)
class GroupVersionKind:
    """The API group, version and kind that identify a resource type."""

    group: str = ""
    version: str = ""
    kind: str = ""

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Kind={self.kind}"


@dataclass
class Manifest:
    """A single Kubernetes object together with its raw JSON form."""

    raw: bytes
    gvk: GroupVersionKind
    obj: dict | None = None
    # Name of the file the manifest was loaded from, for debuggability only.
    original_filename: str = ""


class _Loader(yaml.SafeLoader):
    """Safe YAML loader that keeps timestamps as plain strings."""


_Loader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

_WHITESPACE = re.compile(r"\s*")
_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _key_text(key: Any) -> str:
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "null"
    return str(key)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {_key_text(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _to_json(document: Any) -> bytes:
    try:
        text = json.dumps(
            _jsonable(document),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise ManifestError(f"error parsing: {exc}") from exc
    for char, escaped in _JSON_ESCAPES.items():
        text = text.replace(char, escaped)
    return text.encode("utf-8")


def _parse_group_version(text: str) -> tuple[str, str]:
    if not text or text == "/":
        return "", ""
    parts = text.split("/")
    if len(parts) == 1:
        return "", text
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ManifestError(f"unexpected GroupVersion string: {text}")


def decode_manifest(raw: bytes | str) -> Manifest | None:
    """Decode one JSON-encoded object; return None for an empty or null document."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    raw = raw.strip()
    if not raw or raw == b"null":
        return None
    try:
        obj = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"unable to decode manifest: {exc}") from exc
    if not isinstance(obj, dict):
        raise ManifestError("unable to decode manifest: expected a JSON object")
    kind = obj.get("kind")
    if not isinstance(kind, str) or not kind:
        raise ManifestError(
            f"unable to decode manifest: Object 'Kind' is missing in '{raw.decode('utf-8')}'"
        )
    api_version = obj.get("apiVersion") or ""
    if not isinstance(api_version, str):
        raise ManifestError("unable to decode manifest: apiVersion must be a string")
    try:
        group, version = _parse_group_version(api_version)
    except ManifestError as exc:
        raise ManifestError(f"unable to decode manifest: {exc}") from exc
    return Manifest(raw=raw, gvk=GroupVersionKind(group, version, kind), obj=obj)


def _documents(text: str) -> Iterator[bytes | None]:
    """Yield the raw JSON of each document in a YAML or JSON stream."""
    if text.lstrip().startswith("{"):
        decoder = json.JSONDecoder()
        pos = _WHITESPACE.match(text).end()
        while pos < len(text):
            try:
                _, end = decoder.raw_decode(text, pos)
            except json.JSONDecodeError as exc:
                raise ManifestError(f"error parsing: {exc}") from exc
            yield text[pos:end].encode("utf-8")
            pos = _WHITESPACE.match(text, end).end()
        return
    try:
        documents = list(yaml.load_all(text, Loader=_Loader))
    except yaml.YAMLError as exc:
        raise ManifestError(f"error parsing: {exc}") from exc
    for document in documents:
        yield None if document is None else _to_json(document)


def parse_manifests(stream: Any) -> list[Manifest]:
    """Parse a YAML or JSON stream (file object, text or bytes) holding one or more objects."""
    data = stream.read() if hasattr(stream, "read") else stream
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    manifests = []
    for raw in _documents(data):
        if raw is None:
            continue
        try:
            manifest = decode_manifest(raw)
        except ManifestError as exc:
            raise ManifestError(f"error parsing: {exc}") from exc
        if manifest is not None:
            manifests.append(manifest)
    return manifests


def manifests_from_files(files: Iterable[str | os.PathLike]) -> list[Manifest]:
    """Read the given files and return their manifests in order."""
    manifests: list[Manifest] = []
    errors: list[str] = []
    for path in files:
        try:
            with open(path, encoding="utf-8") as handle:
                parsed = parse_manifests(handle)
        except OSError as exc:
            errors.append(f"error opening {path}: {exc}")
            continue
        except ManifestError as exc:
            errors.append(f"error parsing {path}: {exc}")
            continue
        name = os.path.basename(os.fspath(path))
        for manifest in parsed:
            manifest.original_filename = name
        manifests.extend(parsed)

    if errors:
        aggregate = errors[0] if len(errors) == 1 else "[" + ", ".join(errors) + "]"
        raise ManifestError(f"error loading manifests: {aggregate}")
    return manifests