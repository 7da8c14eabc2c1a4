from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from script_bootstrap.core.errors import StorageError
from script_bootstrap.device.storage import Storage

log = logging.getLogger("script_bootstrap.selection")

SELECTED_ID_KEY = "selected_script_id"


@dataclass(frozen=True)
class Selection:
    selected_id: str


class SelectionStore:
    """
    Persists the operator's chosen script id across reboots.

    A missing, unreadable or malformed document is the same as no selection.
    """

    def __init__(self, storage: Storage, path: str) -> None:
        self.storage = storage
        self.path = path

    def load(self) -> Selection | None:
        try:
            raw = self.storage.read_bytes(self.path)
        except StorageError as e:
            log.warning("Selection unreadable, ignoring: %s", e)
            return None

        if raw is None:
            return None

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            log.warning("Selection document malformed, ignoring: %s", e)
            return None

        sid = data.get(SELECTED_ID_KEY) if isinstance(data, dict) else None
        if not isinstance(sid, str) or not sid:
            log.warning("Selection document has no %s, ignoring.", SELECTED_ID_KEY)
            return None
        return Selection(selected_id=sid)

    def save(self, selection: Selection) -> None:
        doc = {SELECTED_ID_KEY: selection.selected_id}
        self.storage.write_bytes(self.path, json.dumps(doc, indent=2).encode("utf-8"))
