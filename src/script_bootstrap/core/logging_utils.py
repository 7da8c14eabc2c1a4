# src/script_bootstrap/core/logging_utils.py
from __future__ import annotations

import json
import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _make_run_id() -> str:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    rnd = secrets.token_hex(3)
    return f"{ts}_{rnd}"


@dataclass
class EventLogger:
    """
    Structured event log (JSONL). One line per event with timestamp, run_id
    and extra fields. With path=None events are dropped (probe mode).

    Usage:
      ev.event("file_replaced", local_path="game.py", old="...", new="...")
    """

    path: Path | None
    run_id: str

    def __post_init__(self) -> None:
        self._fh = None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open("a", encoding="utf-8")

    def event(self, name: str, **fields: Any) -> None:
        if self._fh is None:
            return
        payload = {
            "ts_utc": _utc_now_iso(),
            "run_id": self.run_id,
            "event": name,
            **fields,
        }
        self._fh.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
        self._fh.flush()

    def close(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.close()
        except OSError:
            pass
        self._fh = None


def prune_old_runs(logs_dir: Path, keep_runs: int) -> list[Path]:
    """Deletes run_*.log / events_*.jsonl beyond the newest `keep_runs` runs."""
    removed: list[Path] = []
    if keep_runs < 0 or not logs_dir.exists():
        return removed

    for pattern in ("run_*.log", "events_*.jsonl"):
        # run ids start with a sortable timestamp
        files = sorted(logs_dir.glob(pattern), key=lambda p: p.name, reverse=True)
        for old in files[keep_runs:]:
            try:
                old.unlink()
                removed.append(old)
            except OSError:
                logging.getLogger("script_bootstrap").warning("Could not prune %s", old)
    return removed


def setup_logging(
    logs_dir: Path | None,
    level: int = logging.INFO,
    keep_runs: int = 20,
) -> tuple[str, EventLogger]:
    """
    Configures text logging + JSONL event logger.

    Outputs (when logs_dir is given):
      logs/run_<run_id>.log
      logs/events_<run_id>.jsonl

    logs_dir=None logs to the stream only and writes no files.
    """
    run_id = _make_run_id()

    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicated handlers when called more than once in a process
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root.addHandler(sh)

    if logs_dir is None:
        return run_id, EventLogger(path=None, run_id=run_id)

    logs_dir.mkdir(parents=True, exist_ok=True)
    if keep_runs > 0:
        prune_old_runs(logs_dir, keep_runs - 1)

    text_log_path = logs_dir / f"run_{run_id}.log"
    events_path = logs_dir / f"events_{run_id}.jsonl"

    fh = logging.FileHandler(text_log_path, encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    ev = EventLogger(path=events_path, run_id=run_id)

    logging.getLogger("script_bootstrap").info("run_id=%s", run_id)
    logging.getLogger("script_bootstrap").info("text_log=%s", str(text_log_path))
    logging.getLogger("script_bootstrap").info("events_log=%s", str(events_path))
    logging.getLogger("script_bootstrap").info("cwd=%s", os.getcwd())
    logging.getLogger("script_bootstrap").info("pid=%s", os.getpid())

    ev.event(
        "run_boot",
        text_log=str(text_log_path),
        events_log=str(events_path),
        cwd=os.getcwd(),
        pid=os.getpid(),
    )
    return run_id, ev
