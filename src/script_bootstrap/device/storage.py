from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

from script_bootstrap.core.errors import StorageError

log = logging.getLogger("script_bootstrap.storage")


class Storage(Protocol):
    """Local persistent storage addressed by paths relative to the install root."""

    def read_bytes(self, rel_path: str) -> bytes | None: ...

    def write_bytes(self, rel_path: str, data: bytes) -> None: ...

    def exists(self, rel_path: str) -> bool: ...


class LocalStorage:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def resolve(self, rel_path: str) -> Path:
        return self.root / rel_path

    def exists(self, rel_path: str) -> bool:
        return self.resolve(rel_path).is_file()

    def read_bytes(self, rel_path: str) -> bytes | None:
        path = self.resolve(rel_path)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def write_bytes(self, rel_path: str, data: bytes) -> None:
        """
        Writes via a sibling temp file + os.replace, so readers see either the
        old bytes or the new bytes, never a truncated file.
        """
        path = self.resolve(rel_path)
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as e:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                log.warning("Could not remove temp file %s", tmp)
            raise StorageError(f"Cannot write {path}: {e}") from e
