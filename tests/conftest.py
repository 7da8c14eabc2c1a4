"""Shared fakes for storage, transport and device collaborators."""

from __future__ import annotations

import json
from typing import Any

import pytest

from script_bootstrap.core.config import AppCfg, config_from_dict
from script_bootstrap.core.errors import LaunchError, NetworkError, StorageError
from script_bootstrap.core.runtime import build_supervisor
from script_bootstrap.core.supervisor import BootstrapSupervisor
from script_bootstrap.device.console import InputEvent, TimedOut, WaitResult


class FakeStorage:
    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.writes: list[str] = []
        self.fail_writes: set[str] = set()

    def read_bytes(self, rel_path: str) -> bytes | None:
        return self.files.get(rel_path)

    def write_bytes(self, rel_path: str, data: bytes) -> None:
        if rel_path in self.fail_writes:
            raise StorageError(f"disk full: {rel_path}")
        self.writes.append(rel_path)
        self.files[rel_path] = bytes(data)

    def exists(self, rel_path: str) -> bool:
        return rel_path in self.files


class FakeTransport:
    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.offline = False
        self.requests: list[str] = []

    def fetch(self, remote_path: str) -> bytes:
        self.requests.append(remote_path)
        if self.offline:
            raise NetworkError("network unreachable")
        if remote_path not in self.files:
            raise NetworkError(f"404 for {remote_path}")
        return self.files[remote_path]


class FakeConsole:
    def __init__(self, inputs: list[str] | None = None) -> None:
        self.inputs = list(inputs or [])
        self.messages: list[str] = []
        self.menus_shown = 0

    def status(self, title: str, details: list[str] | None = None, style: str = "info") -> None:
        self.messages.append(title)
        self.messages.extend(details or [])

    def show_menu(self, groups, current_id):
        self.menus_shown += 1
        return [e for _, entries in groups for e in entries]

    def wait_for_input_or_timeout(self, duration: float | None) -> WaitResult:
        if not self.inputs:
            return TimedOut()
        return InputEvent(self.inputs.pop(0))


class FakeLauncher:
    def __init__(self, error: str = "") -> None:
        self.error = error
        self.launched: list[str] = []

    def launch(self, local_path: str) -> None:
        self.launched.append(local_path)
        if self.error:
            raise LaunchError(self.error)


class FakeRestarter:
    def __init__(self) -> None:
        self.restarts: list[tuple[float, str]] = []

    def restart(self, delay_s: float, reason: str) -> None:
        self.restarts.append((delay_s, reason))


def manifest_bytes(scripts: list[dict[str, Any]], default: str | None = None) -> bytes:
    doc: dict[str, Any] = {"scripts": scripts}
    if default is not None:
        doc["default"] = default
    return json.dumps(doc).encode("utf-8")


def script(sid: str, category: str = "Games") -> dict[str, str]:
    return {
        "id": sid,
        "name": f"Script {sid}",
        "description": f"The {sid} script",
        "category": category,
        "file": f"scripts/{sid}.py",
        "local_name": f"{sid.lower()}.py",
    }


@pytest.fixture
def app_cfg() -> AppCfg:
    return config_from_dict(
        {
            "remote": {"base_url": "https://example.test/repo", "manifest_file": "scripts.json"},
            "supervisor": {"interrupt_window_seconds": 0},
        }
    )


class Rig:
    """A supervisor wired to fakes."""

    def __init__(self, cfg: AppCfg, inputs: list[str] | None = None) -> None:
        self.cfg = cfg
        self.storage = FakeStorage()
        self.transport = FakeTransport({"startup.py": b"# bootstrap v1\n"})
        self.console = FakeConsole(inputs)
        self.launcher = FakeLauncher()
        self.restarter = FakeRestarter()

    @property
    def supervisor(self) -> BootstrapSupervisor:
        return build_supervisor(
            self.cfg,
            storage=self.storage,
            transport=self.transport,
            console=self.console,
            launcher=self.launcher,
            restarter=self.restarter,
        )

    def publish(self, scripts: list[dict[str, Any]], default: str | None = None) -> None:
        self.transport.files["scripts.json"] = manifest_bytes(scripts, default)
        for s in scripts:
            self.transport.files.setdefault(s["file"], f"# {s['id']} v1\n".encode())

    def selected_id(self) -> str | None:
        raw = self.storage.files.get(self.cfg.paths.selection_rel)
        return json.loads(raw)["selected_script_id"] if raw else None


@pytest.fixture
def rig(app_cfg: AppCfg) -> Rig:
    return Rig(app_cfg)
