# src/script_bootstrap/core/supervisor.py
"""
Boot-time supervisor.

Every boot: optional operator interrupt window, load the persisted selection,
fetch the manifest, resolve which script to run (showing the menu when the
selection is stale, the manifest grew, or the operator asked), bring the
supervisor's own file and the selected script up to date, then launch the
script. Every failure path ends in a timed restart; the only clean exit is the
launched script finishing normally.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from script_bootstrap.core.config import SupervisorCfg
from script_bootstrap.core.errors import LaunchError, NetworkError, ParseError, StorageError, SupervisorFault
from script_bootstrap.core.logging_utils import EventLogger
from script_bootstrap.core.manifest import FetchMode, FetchResult, Manifest, ManifestEntry, ManifestFetcher
from script_bootstrap.core.selection import Selection, SelectionStore
from script_bootstrap.core.updater import (
    FileReplacer,
    OutcomeStatus,
    PlannedUpdate,
    TrackedFile,
    UpdateOutcome,
    UpdatePlanner,
)
from script_bootstrap.device.console import OperatorConsole, TimedOut
from script_bootstrap.device.launcher import Launcher
from script_bootstrap.device.restart import Restarter
from script_bootstrap.device.storage import Storage

log = logging.getLogger("script_bootstrap.supervisor")


class State(str, Enum):
    INIT = "init"
    INTERRUPT_WINDOW = "interrupt_window"
    LOAD_SELECTION = "load_selection"
    FETCH_MANIFEST = "fetch_manifest"
    RESOLVE_SELECTION = "resolve_selection"
    SELECTION_MENU = "selection_menu"
    PLAN_UPDATES = "plan_updates"
    APPLY_UPDATES = "apply_updates"
    LAUNCH = "launch"
    # terminal
    SELF_UPDATE_RESTART = "self_update_restart"
    FATAL_RETRY = "fatal_retry"
    CRASH_RECOVERY = "crash_recovery"
    CRITICAL_RECOVERY = "critical_recovery"
    FINISHED = "finished"


_TERMINAL = {
    State.SELF_UPDATE_RESTART,
    State.FATAL_RETRY,
    State.CRASH_RECOVERY,
    State.CRITICAL_RECOVERY,
    State.FINISHED,
}


@dataclass
class BootContext:
    """Everything one boot cycle learns. Discarded at restart."""

    probe: bool = False
    force_menu: bool = False
    selection: Selection | None = None
    fetch: FetchResult | None = None
    selected: ManifestEntry | None = None
    menu_reasons: list[str] = field(default_factory=list)
    tracked: list[TrackedFile] = field(default_factory=list)
    plans: list[PlannedUpdate] = field(default_factory=list)
    outcomes: list[UpdateOutcome] = field(default_factory=list)
    failure: str = ""
    history: list[State] = field(default_factory=list)
    final_state: State | None = None

    @property
    def fetched(self) -> FetchResult:
        if self.fetch is None:
            raise SupervisorFault("manifest requested before it was fetched")
        return self.fetch

    @property
    def manifest(self) -> Manifest:
        return self.fetched.manifest

    @property
    def entry(self) -> ManifestEntry:
        if self.selected is None:
            raise SupervisorFault("no script selected")
        return self.selected

    def outcome_for(self, local_path: str) -> UpdateOutcome | None:
        for o in self.outcomes:
            if o.file.local_path == local_path:
                return o
        return None


class BootstrapSupervisor:
    def __init__(
        self,
        cfg: SupervisorCfg,
        *,
        storage: Storage,
        selection_store: SelectionStore,
        fetcher: ManifestFetcher,
        planner: UpdatePlanner,
        replacer: FileReplacer,
        console: OperatorConsole,
        launcher: Launcher,
        restarter: Restarter,
        events: EventLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cfg = cfg
        self.storage = storage
        self.selection_store = selection_store
        self.fetcher = fetcher
        self.planner = planner
        self.replacer = replacer
        self.console = console
        self.launcher = launcher
        self.restarter = restarter
        self.events = events
        self._clock = clock

        self._handlers: dict[State, Callable[[BootContext], State]] = {
            State.INIT: self._on_init,
            State.INTERRUPT_WINDOW: self._on_interrupt_window,
            State.LOAD_SELECTION: self._on_load_selection,
            State.FETCH_MANIFEST: self._on_fetch_manifest,
            State.RESOLVE_SELECTION: self._on_resolve_selection,
            State.SELECTION_MENU: self._on_selection_menu,
            State.PLAN_UPDATES: self._on_plan_updates,
            State.APPLY_UPDATES: self._on_apply_updates,
            State.LAUNCH: self._on_launch,
        }

    # ------------------------------------------------------------------
    # entry points

    def run(self) -> BootContext:
        """
        Runs one boot cycle to a terminal state. Restart-inducing terminal
        states hand over to the restarter, which does not return on a real
        device.
        """
        ctx = BootContext()
        state = State.INIT
        try:
            while state not in _TERMINAL:
                ctx.history.append(state)
                self._event("state", state=state.value)
                state = self._handlers[state](ctx)
        except Exception as e:
            fault = e if isinstance(e, SupervisorFault) else SupervisorFault(f"{type(e).__name__}: {e}")
            log.exception("Unhandled fault in state=%s", state.value)
            ctx.failure = str(fault)
            state = State.CRITICAL_RECOVERY

        ctx.history.append(state)
        ctx.final_state = state
        self._event("terminal", state=state.value, failure=ctx.failure or None)
        self._finish(state, ctx)
        return ctx

    def check(self) -> bool:
        """
        Probe mode: fetch, resolve and compare digests without writing,
        prompting or restarting. True when any tracked file differs remotely.
        """
        ctx = BootContext(probe=True)
        state = State.LOAD_SELECTION
        while state is not State.APPLY_UPDATES:
            ctx.history.append(state)
            state = self._handlers[state](ctx)
            if state is State.FATAL_RETRY:
                log.warning("Update check could not complete: %s", ctx.failure)
                return False

        available = any(p.needs_update for p in ctx.plans)
        for p in ctx.plans:
            if p.error:
                log.warning("check %s: %s", p.file.display_name, p.error)
        log.info("update_available=%s", available)
        return available

    # ------------------------------------------------------------------
    # states

    def _on_init(self, ctx: BootContext) -> State:
        self.console.status("Starting bootstrap...")
        if self.cfg.interrupt_window_seconds > 0:
            return State.INTERRUPT_WINDOW
        return State.LOAD_SELECTION

    def _on_interrupt_window(self, ctx: BootContext) -> State:
        key = self.cfg.interrupt_key.lower()
        self.console.status(
            f"Press '{key}' + Enter within {self.cfg.interrupt_window_seconds:g}s to choose a script",
            style="muted",
        )
        deadline = self._clock() + self.cfg.interrupt_window_seconds
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            got = self.console.wait_for_input_or_timeout(remaining)
            if isinstance(got, TimedOut):
                break
            if got.text.strip().lower() == key:
                ctx.force_menu = True
                self._event("menu_requested")
                break
        return State.LOAD_SELECTION

    def _on_load_selection(self, ctx: BootContext) -> State:
        ctx.selection = self.selection_store.load()
        self._event("selection_loaded", selected_id=ctx.selection.selected_id if ctx.selection else None)
        return State.FETCH_MANIFEST

    def _on_fetch_manifest(self, ctx: BootContext) -> State:
        if not ctx.probe:
            self.console.status("Checking for updates...")
        mode = FetchMode.PROBE if ctx.probe else FetchMode.NORMAL
        try:
            ctx.fetch = self.fetcher.fetch(mode)
        except (NetworkError, ParseError) as e:
            ctx.failure = f"No manifest available: {e}"
            return State.FATAL_RETRY

        self._event(
            "manifest_fetched",
            entries=len(ctx.fetch.manifest.entries),
            changed=ctx.fetch.changed,
            from_cache=ctx.fetch.from_cache,
            error=ctx.fetch.error or None,
        )
        if ctx.fetch.from_cache and not ctx.probe:
            self.console.status("Offline, using cached manifest", [ctx.fetch.error], style="warn")
        return State.RESOLVE_SELECTION

    def _on_resolve_selection(self, ctx: BootContext) -> State:
        manifest = ctx.manifest
        persisted = ctx.selection.selected_id if ctx.selection else None

        entry = manifest.get(persisted) if persisted else None
        if entry is None:
            if persisted:
                ctx.menu_reasons.append(f"selected script '{persisted}' is no longer available")
            entry = manifest.resolve_default()
        ctx.selected = entry

        new_ids = ctx.fetched.new_entry_ids()
        if new_ids:
            ctx.menu_reasons.append("new scripts available: " + ", ".join(new_ids))
        if ctx.force_menu:
            ctx.menu_reasons.append("requested by operator")

        self._event("selection_resolved", entry_id=entry.id, menu_reasons=ctx.menu_reasons)

        if ctx.probe:
            return State.PLAN_UPDATES
        if ctx.menu_reasons:
            return State.SELECTION_MENU
        if persisted is None:
            # first boot: the default becomes the persisted choice
            self._save_selection(entry, source="default")
        return State.PLAN_UPDATES

    def _on_selection_menu(self, ctx: BootContext) -> State:
        self.console.status("Script selection", ctx.menu_reasons, style="warn")
        options = self.console.show_menu(ctx.manifest.by_category(), ctx.entry.id)
        timeout = self.cfg.menu_timeout_seconds if self.cfg.menu_timeout_seconds > 0 else None

        while True:
            got = self.console.wait_for_input_or_timeout(timeout)
            if isinstance(got, TimedOut):
                log.info("No choice made, keeping %s", ctx.entry.id)
                break

            choice = got.text.strip()
            if not choice:
                break
            if choice.isdigit() and 1 <= int(choice) <= len(options):
                ctx.selected = options[int(choice) - 1]
                break
            self.console.status(f"Invalid choice: {choice!r}. Enter 1-{len(options)}.", style="error")

        self._save_selection(ctx.entry, source="menu")
        self.console.status(f"Selected: {ctx.entry.name}", style="ok")
        return State.PLAN_UPDATES

    def _on_plan_updates(self, ctx: BootContext) -> State:
        entry = ctx.entry
        ctx.tracked = [TrackedFile(self.cfg.self_local_name, self.cfg.self_remote_path, label="Bootstrap")]
        if entry.local_path != self.cfg.self_local_name:
            ctx.tracked.append(TrackedFile(entry.local_path, entry.remote_path, label=entry.name))

        ctx.plans = self.planner.plan(ctx.tracked)
        return State.APPLY_UPDATES

    def _on_apply_updates(self, ctx: BootContext) -> State:
        entry = ctx.entry
        ctx.outcomes = self.replacer.apply_all(ctx.plans)

        lines: list[str] = []
        for o in ctx.outcomes:
            self._event(
                "file_outcome",
                local_path=o.file.local_path,
                status=o.status.value,
                old_digest=o.old_digest,
                new_digest=o.new_digest,
                reason=o.reason or None,
            )
            lines.append(_describe_outcome(o))
        any_replaced = any(o.replaced for o in ctx.outcomes)
        self.console.status("Updates installed" if any_replaced else "All files current", lines)

        own = ctx.outcome_for(self.cfg.self_local_name)
        if own is not None and own.replaced:
            return State.SELF_UPDATE_RESTART

        if not self.storage.exists(entry.local_path):
            ctx.failure = f"Script not found: {entry.local_path}"
            return State.FATAL_RETRY
        return State.LAUNCH

    def _on_launch(self, ctx: BootContext) -> State:
        entry = ctx.entry
        self.console.status(f"Starting {entry.name}...", style="ok")
        self._event("launch", local_path=entry.local_path)
        try:
            self.launcher.launch(entry.local_path)
        except LaunchError as e:
            ctx.failure = str(e)
            return State.CRASH_RECOVERY
        self._event("launch_exit", local_path=entry.local_path, ok=True)
        return State.FINISHED

    # ------------------------------------------------------------------

    def _finish(self, state: State, ctx: BootContext) -> None:
        if state is State.FINISHED:
            return

        if state is State.SELF_UPDATE_RESTART:
            title, delay, style = "Bootstrap updated, restarting", self.cfg.self_update_restart_delay_seconds, "warn"
        elif state is State.FATAL_RETRY:
            title, delay, style = "Error!", self.cfg.fatal_retry_delay_seconds, "error"
        elif state is State.CRASH_RECOVERY:
            title, delay, style = "Script crashed!", self.cfg.crash_restart_delay_seconds, "error"
        else:
            title, delay, style = "CRITICAL ERROR in bootstrap", self.cfg.crash_restart_delay_seconds, "error"

        details = [ctx.failure] if ctx.failure else []
        details.append(f"Restarting in {delay:g}s...")
        try:
            self.console.status(title, details, style=style)
        except Exception:
            log.exception("Could not display status before restart")
        self._event("restart", state=state.value, delay_s=delay)
        self.restarter.restart(delay, ctx.failure or state.value)

    def _save_selection(self, entry: ManifestEntry, source: str) -> None:
        # the resolved entry stays in memory; the next boot resolves again
        try:
            self.selection_store.save(Selection(selected_id=entry.id))
        except StorageError as e:
            log.warning("Could not persist selection %s: %s", entry.id, e)
            self._event("selection_save_failed", selected_id=entry.id, source=source, error=str(e))
            self.console.status("Could not save selection", [str(e)], style="warn")
            return
        self._event("selection_saved", selected_id=entry.id, source=source)

    def _event(self, name: str, **fields: Any) -> None:
        if self.events is not None:
            self.events.event(name, **fields)


def _describe_outcome(o: UpdateOutcome) -> str:
    name = o.file.display_name
    if o.status is OutcomeStatus.REPLACED:
        return f"{name}: Updated ({o.old_digest or 'new'} -> {o.new_digest})"
    if o.status is OutcomeStatus.UNCHANGED:
        return f"{name}: Current"
    return f"{name}: Failed ({o.reason})"

