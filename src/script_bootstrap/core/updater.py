# src/script_bootstrap/core/updater.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from script_bootstrap.core.errors import NetworkError, StorageError
from script_bootstrap.core.md5 import md5_hex
from script_bootstrap.device.storage import Storage
from script_bootstrap.remote.http_transport import Transport

log = logging.getLogger("script_bootstrap.updater")

DEFAULT_BACKUP_SUFFIX = ".backup"


@dataclass(frozen=True)
class TrackedFile:
    local_path: str
    remote_path: str
    label: str = ""

    @property
    def display_name(self) -> str:
        return self.label or self.local_path


class OutcomeStatus(str, Enum):
    UNCHANGED = "unchanged"
    REPLACED = "replaced"
    FAILED = "failed"


@dataclass(frozen=True)
class UpdateOutcome:
    file: TrackedFile
    status: OutcomeStatus
    old_digest: str | None = None
    new_digest: str | None = None
    reason: str = ""

    @property
    def replaced(self) -> bool:
        return self.status is OutcomeStatus.REPLACED


@dataclass(frozen=True)
class PlannedUpdate:
    """
    Result of comparing one tracked file against its remote copy.

    `content` holds the fully downloaded remote bytes; it is None when the
    download (or the local read) failed, and `error` says why.
    """

    file: TrackedFile
    local_digest: str | None
    remote_digest: str | None
    content: bytes | None
    local_content: bytes | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error and self.content is not None

    @property
    def needs_update(self) -> bool:
        return self.ok and self.local_digest != self.remote_digest


def backup_path_for(local_path: str, suffix: str = DEFAULT_BACKUP_SUFFIX) -> str:
    return local_path + suffix


def validate_content(local_path: str, data: bytes) -> str:
    """
    Rejects downloads that cannot be the tracked file, such as an error or
    portal page served with status 200. Returns "" when the content is usable.
    """
    try:
        source = data.decode("utf-8")
    except UnicodeDecodeError as e:
        return f"not UTF-8 text ({e.reason} at byte {e.start})"

    if local_path.endswith(".py"):
        try:
            compile(source, local_path, "exec")
        except (SyntaxError, ValueError) as e:
            return f"not valid Python: {e}"
    return ""


class UpdatePlanner:
    """Reads local content, downloads remote content, compares digests. Never writes."""

    def __init__(self, storage: Storage, transport: Transport) -> None:
        self.storage = storage
        self.transport = transport

    def plan_one(self, f: TrackedFile) -> PlannedUpdate:
        try:
            local = self.storage.read_bytes(f.local_path)
        except StorageError as e:
            return PlannedUpdate(f, None, None, None, error=f"local read failed: {e}")

        local_digest = md5_hex(local) if local is not None else None

        try:
            remote = self.transport.fetch(f.remote_path)
        except NetworkError as e:
            return PlannedUpdate(f, local_digest, None, None, local_content=local, error=f"download failed: {e}")

        remote_digest = md5_hex(remote)
        if remote_digest != local_digest:
            problem = validate_content(f.local_path, remote)
            if problem:
                log.warning("rejected download for %s: %s", f.local_path, problem)
                return PlannedUpdate(
                    f, local_digest, remote_digest, None, local_content=local, error=f"invalid content: {problem}"
                )

        return PlannedUpdate(
            file=f,
            local_digest=local_digest,
            remote_digest=remote_digest,
            content=remote,
            local_content=local,
        )

    def plan(self, files: list[TrackedFile]) -> list[PlannedUpdate]:
        # one download at a time
        return [self.plan_one(f) for f in files]


class FileReplacer:
    def __init__(self, storage: Storage, backup_suffix: str = DEFAULT_BACKUP_SUFFIX) -> None:
        self.storage = storage
        self.backup_suffix = backup_suffix

    def apply(self, p: PlannedUpdate) -> UpdateOutcome:
        f = p.file
        if not p.ok or p.content is None:
            return UpdateOutcome(f, OutcomeStatus.FAILED, old_digest=p.local_digest, reason=p.error)

        if not p.needs_update:
            return UpdateOutcome(f, OutcomeStatus.UNCHANGED, old_digest=p.local_digest, new_digest=p.remote_digest)

        if p.local_content is not None:
            backup = backup_path_for(f.local_path, self.backup_suffix)
            try:
                self.storage.write_bytes(backup, p.local_content)
            except StorageError as e:
                return UpdateOutcome(
                    f, OutcomeStatus.FAILED, old_digest=p.local_digest, reason=f"backup failed: {e}"
                )

        try:
            self.storage.write_bytes(f.local_path, p.content)
        except StorageError as e:
            # previous bytes stay recoverable from the backup
            return UpdateOutcome(f, OutcomeStatus.FAILED, old_digest=p.local_digest, reason=f"write failed: {e}")

        log.info("replaced %s (%s -> %s)", f.local_path, p.local_digest or "new", p.remote_digest)
        return UpdateOutcome(f, OutcomeStatus.REPLACED, old_digest=p.local_digest, new_digest=p.remote_digest)

    def apply_all(self, plans: list[PlannedUpdate]) -> list[UpdateOutcome]:
        return [self.apply(p) for p in plans]
