from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from script_bootstrap.core.errors import ConfigError
from script_bootstrap.remote.http_transport import github_raw_base_url


_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        def repl(m: re.Match[str]) -> str:
            return os.environ.get(m.group(1), "")
        return _ENV_PATTERN.sub(repl, value)

    if isinstance(value, list):
        return [_expand_env(v) for v in value]

    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}

    return value


@dataclass(frozen=True)
class PathsCfg:
    install_root: Path
    state_dir_rel: str
    logs_dir_rel: str
    logs_keep_runs: int

    @property
    def logs_dir(self) -> Path:
        return self.install_root / self.logs_dir_rel

    @property
    def selection_rel(self) -> str:
        return f"{self.state_dir_rel.rstrip('/')}/selection.json"

    @property
    def manifest_cache_rel(self) -> str:
        return f"{self.state_dir_rel.rstrip('/')}/manifest_cache.json"


@dataclass(frozen=True)
class RemoteCfg:
    github_user: str
    github_repo: str
    github_branch: str
    base_url: str
    manifest_file: str
    timeout_seconds: float

    @property
    def effective_base_url(self) -> str:
        if self.base_url:
            return self.base_url.rstrip("/")
        return github_raw_base_url(self.github_user, self.github_repo, self.github_branch)


@dataclass(frozen=True)
class SupervisorCfg:
    self_local_name: str
    self_remote_path: str
    backup_suffix: str
    interrupt_window_seconds: float
    interrupt_key: str
    menu_timeout_seconds: float
    self_update_restart_delay_seconds: float
    fatal_retry_delay_seconds: float
    crash_restart_delay_seconds: float


@dataclass(frozen=True)
class LaunchCfg:
    python_executable: str


@dataclass(frozen=True)
class AppCfg:
    paths: PathsCfg
    remote: RemoteCfg
    supervisor: SupervisorCfg
    launch: LaunchCfg


def config_from_dict(raw: dict[str, Any]) -> AppCfg:
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    raw = _expand_env(raw)

    try:
        r = raw["remote"]
        remote = RemoteCfg(
            github_user=str(r.get("github_user", "")),
            github_repo=str(r.get("github_repo", "")),
            github_branch=str(r.get("github_branch", "master")),
            base_url=str(r.get("base_url") or ""),
            manifest_file=str(r.get("manifest_file", "scripts.json")),
            timeout_seconds=float(r.get("timeout_seconds", 15.0)),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"Invalid 'remote' section: {e}") from e

    if not remote.base_url and not (remote.github_user and remote.github_repo):
        raise ConfigError("remote: set base_url or both github_user and github_repo")

    try:
        p = raw.get("paths", {})
        paths = PathsCfg(
            install_root=Path(p.get("install_root") or "."),
            state_dir_rel=str(p.get("state_dir_rel", ".bootstrap/state")),
            logs_dir_rel=str(p.get("logs_dir_rel", ".bootstrap/logs")),
            logs_keep_runs=int(p.get("logs_keep_runs", 20)),
        )

        s = raw.get("supervisor", {})
        supervisor = SupervisorCfg(
            self_local_name=str(s.get("self_local_name", "startup.py")),
            self_remote_path=str(s.get("self_remote_path", "startup.py")),
            backup_suffix=str(s.get("backup_suffix", ".backup")),
            interrupt_window_seconds=float(s.get("interrupt_window_seconds", 3.0)),
            interrupt_key=str(s.get("interrupt_key", "m")),
            menu_timeout_seconds=float(s.get("menu_timeout_seconds", 0.0)),
            self_update_restart_delay_seconds=float(s.get("self_update_restart_delay_seconds", 2.0)),
            fatal_retry_delay_seconds=float(s.get("fatal_retry_delay_seconds", 10.0)),
            crash_restart_delay_seconds=float(s.get("crash_restart_delay_seconds", 10.0)),
        )

        la = raw.get("launch", {})
        launch = LaunchCfg(python_executable=str(la.get("python_executable") or ""))
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"Invalid config value: {e}") from e

    return AppCfg(paths=paths, remote=remote, supervisor=supervisor, launch=launch)


def load_config(config_path: Path) -> AppCfg:
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"{config_path}: invalid YAML: {e}") from e
    return config_from_dict(raw or {})
