from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
from typing import Callable, Protocol

log = logging.getLogger("script_bootstrap.restart")


class Restarter(Protocol):
    def restart(self, delay_s: float, reason: str) -> None: ...


class ProcessRestarter:
    """
    Waits, then replaces the current process with a fresh interpreter.

    With an entry script (the self-updated startup.py) the new process runs
    that file with the current arguments, so the next boot runs the code that
    was just installed. Without one, or while it is missing, the original
    command line is re-executed.
    """

    def __init__(
        self,
        entry_script: Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
        execv: Callable[[str, list[str]], None] = os.execv,
    ) -> None:
        self.entry_script = Path(entry_script) if entry_script is not None else None
        self._sleep = sleep
        self._execv = execv

    def argv(self) -> list[str]:
        if self.entry_script is not None and self.entry_script.is_file():
            return [sys.executable, str(self.entry_script), *sys.argv[1:]]
        return [sys.executable, *sys.orig_argv[1:]]

    def restart(self, delay_s: float, reason: str) -> None:
        log.warning("restarting in %.1fs: %s", delay_s, reason)
        if delay_s > 0:
            self._sleep(delay_s)
        for h in logging.getLogger().handlers:
            h.flush()
        self._execv(sys.executable, self.argv())
