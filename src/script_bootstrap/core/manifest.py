# src/script_bootstrap/core/manifest.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from script_bootstrap.core.errors import NetworkError, ParseError, StorageError
from script_bootstrap.core.md5 import md5_hex
from script_bootstrap.device.storage import Storage
from script_bootstrap.remote.http_transport import Transport

log = logging.getLogger("script_bootstrap.manifest")

DEFAULT_CATEGORY = "Other"


@dataclass(frozen=True)
class ManifestEntry:
    id: str
    name: str
    description: str
    category: str
    remote_path: str
    local_path: str
    is_default: bool = False


@dataclass(frozen=True)
class Manifest:
    entries: tuple[ManifestEntry, ...]
    default_id: str | None = None

    @property
    def ids(self) -> list[str]:
        return [e.id for e in self.entries]

    def get(self, entry_id: str) -> ManifestEntry | None:
        for e in self.entries:
            if e.id == entry_id:
                return e
        return None

    def resolve_default(self) -> ManifestEntry:
        """Declared default if it exists, otherwise the first entry."""
        if self.default_id:
            e = self.get(self.default_id)
            if e is not None:
                return e
        return self.entries[0]

    def by_category(self) -> list[tuple[str, list[ManifestEntry]]]:
        """Entries grouped by category, categories in first-seen order."""
        groups: dict[str, list[ManifestEntry]] = {}
        for e in self.entries:
            groups.setdefault(e.category, []).append(e)
        return list(groups.items())

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "scripts": [
                {
                    "id": e.id,
                    "name": e.name,
                    "description": e.description,
                    "category": e.category,
                    "file": e.remote_path,
                    "local_name": e.local_path,
                }
                for e in self.entries
            ]
        }
        if self.default_id is not None:
            doc["default"] = self.default_id
        return doc

    def canonical_bytes(self) -> bytes:
        return json.dumps(
            self.to_document(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")

    def digest(self) -> str:
        return md5_hex(self.canonical_bytes())


def _require_str(item: dict[str, Any], key: str, where: str) -> str:
    v = item.get(key)
    if not isinstance(v, str) or not v.strip():
        raise ParseError(f"{where}: missing required field '{key}'")
    return v


def parse_manifest_document(data: Any) -> Manifest:
    if not isinstance(data, dict):
        raise ParseError("Manifest must be a JSON object")

    scripts = data.get("scripts")
    if not isinstance(scripts, list):
        raise ParseError("Manifest: missing required field 'scripts'")
    if not scripts:
        raise ParseError("Manifest lists no scripts")

    default = data.get("default")
    default_id = default if isinstance(default, str) and default else None

    entries: list[ManifestEntry] = []
    seen: set[str] = set()
    for i, item in enumerate(scripts):
        where = f"scripts[{i}]"
        if not isinstance(item, dict):
            raise ParseError(f"{where}: expected an object")

        sid = _require_str(item, "id", where)
        if sid in seen:
            raise ParseError(f"{where}: duplicate id {sid!r}")
        seen.add(sid)

        entries.append(
            ManifestEntry(
                id=sid,
                name=str(item.get("name") or sid),
                description=str(item.get("description") or ""),
                category=str(item.get("category") or DEFAULT_CATEGORY),
                remote_path=_require_str(item, "file", where),
                local_path=_require_str(item, "local_name", where),
                is_default=(sid == default_id),
            )
        )

    return Manifest(entries=tuple(entries), default_id=default_id)


def parse_manifest(raw: bytes) -> Manifest:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Manifest is not valid JSON: {e}") from e
    return parse_manifest_document(data)


class ManifestCache:
    """Last successfully fetched manifest, kept on local storage."""

    def __init__(self, storage: Storage, path: str) -> None:
        self.storage = storage
        self.path = path

    def load(self) -> Manifest | None:
        try:
            raw = self.storage.read_bytes(self.path)
        except StorageError as e:
            log.warning("Manifest cache unreadable, ignoring: %s", e)
            return None
        if raw is None:
            return None
        try:
            return parse_manifest(raw)
        except ParseError as e:
            log.warning("Manifest cache malformed, ignoring: %s", e)
            return None

    def save(self, manifest: Manifest) -> None:
        doc = json.dumps(manifest.to_document(), ensure_ascii=False, indent=2)
        self.storage.write_bytes(self.path, doc.encode("utf-8"))


class FetchMode(str, Enum):
    NORMAL = "normal"
    PROBE = "probe"


@dataclass(frozen=True)
class FetchResult:
    manifest: Manifest
    changed: bool
    previous: Manifest | None
    from_cache: bool = False
    error: str = ""

    def new_entry_ids(self) -> list[str]:
        """Ids introduced since the previously cached manifest."""
        if not self.changed or self.previous is None:
            return []
        known = set(self.previous.ids)
        return [i for i in self.manifest.ids if i not in known]


class ManifestFetcher:
    def __init__(self, transport: Transport, cache: ManifestCache, remote_path: str) -> None:
        self.transport = transport
        self.cache = cache
        self.remote_path = remote_path

    def fetch(self, mode: FetchMode = FetchMode.NORMAL) -> FetchResult:
        """
        Raises NetworkError (or ParseError for a malformed remote document) only
        when no cached manifest exists to fall back on.
        """
        cached = self.cache.load()

        try:
            manifest = parse_manifest(self.transport.fetch(self.remote_path))
        except (NetworkError, ParseError) as e:
            if cached is None:
                raise
            log.warning("Manifest fetch failed, using cached copy: %s", e)
            return FetchResult(manifest=cached, changed=False, previous=cached, from_cache=True, error=str(e))

        changed = cached is not None and manifest.digest() != cached.digest()

        if mode is FetchMode.NORMAL:
            try:
                self.cache.save(manifest)
            except StorageError as e:
                log.warning("Could not update manifest cache: %s", e)

        log.info("manifest entries=%s changed=%s", len(manifest.entries), changed)
        return FetchResult(manifest=manifest, changed=changed, previous=cached)
