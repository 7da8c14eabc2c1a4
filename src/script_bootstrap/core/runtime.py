# src/script_bootstrap/core/runtime.py
from __future__ import annotations

import logging

from script_bootstrap.core.config import AppCfg
from script_bootstrap.core.logging_utils import EventLogger, setup_logging
from script_bootstrap.core.manifest import ManifestCache, ManifestFetcher
from script_bootstrap.core.selection import SelectionStore
from script_bootstrap.core.supervisor import BootContext, BootstrapSupervisor
from script_bootstrap.core.updater import FileReplacer, UpdatePlanner
from script_bootstrap.device.console import OperatorConsole, TerminalConsole
from script_bootstrap.device.launcher import Launcher, SubprocessLauncher
from script_bootstrap.device.restart import ProcessRestarter, Restarter
from script_bootstrap.device.storage import LocalStorage, Storage
from script_bootstrap.remote.http_transport import HttpTransport, Transport

log = logging.getLogger("script_bootstrap.runtime")


def build_supervisor(
    cfg: AppCfg,
    storage: Storage,
    transport: Transport,
    console: OperatorConsole,
    launcher: Launcher,
    restarter: Restarter,
    events: EventLogger | None = None,
) -> BootstrapSupervisor:
    cache = ManifestCache(storage, cfg.paths.manifest_cache_rel)
    return BootstrapSupervisor(
        cfg.supervisor,
        storage=storage,
        selection_store=SelectionStore(storage, cfg.paths.selection_rel),
        fetcher=ManifestFetcher(transport, cache, cfg.remote.manifest_file),
        planner=UpdatePlanner(storage, transport),
        replacer=FileReplacer(storage, backup_suffix=cfg.supervisor.backup_suffix),
        console=console,
        launcher=launcher,
        restarter=restarter,
        events=events,
    )


def run_boot(cfg: AppCfg) -> BootContext:
    """Full supervisor flow. Only returns when the launched script exits cleanly."""
    run_id, ev = setup_logging(cfg.paths.logs_dir, level=logging.INFO, keep_runs=cfg.paths.logs_keep_runs)
    ev.event(
        "run_start",
        install_root=str(cfg.paths.install_root),
        base_url=cfg.remote.effective_base_url,
        manifest_file=cfg.remote.manifest_file,
    )

    transport = HttpTransport(cfg.remote.effective_base_url, timeout_s=cfg.remote.timeout_seconds)
    try:
        supervisor = build_supervisor(
            cfg,
            storage=LocalStorage(cfg.paths.install_root),
            transport=transport,
            console=TerminalConsole(),
            launcher=SubprocessLauncher(cfg.paths.install_root, cfg.launch.python_executable),
            restarter=ProcessRestarter(cfg.paths.install_root / cfg.supervisor.self_local_name),
            events=ev,
        )
        ctx = supervisor.run()
        ev.event("run_end", final_state=ctx.final_state.value if ctx.final_state else None)
        return ctx
    finally:
        transport.close()
        ev.close()


def check_for_updates(cfg: AppCfg) -> bool:
    """Probe mode: stream logging only, no writes, no prompts, no restarts."""
    setup_logging(None, level=logging.WARNING)
    transport = HttpTransport(cfg.remote.effective_base_url, timeout_s=cfg.remote.timeout_seconds)
    try:
        supervisor = build_supervisor(
            cfg,
            storage=LocalStorage(cfg.paths.install_root),
            transport=transport,
            console=TerminalConsole(),
            launcher=SubprocessLauncher(cfg.paths.install_root, cfg.launch.python_executable),
            restarter=ProcessRestarter(cfg.paths.install_root / cfg.supervisor.self_local_name),
        )
        return supervisor.check()
    finally:
        transport.close()
