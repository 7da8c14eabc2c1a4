from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import IO, Any, Protocol

from script_bootstrap.core.errors import LaunchError

log = logging.getLogger("script_bootstrap.launcher")


class Launcher(Protocol):
    def launch(self, local_path: str) -> None:
        """Blocks until the script exits. Raises LaunchError on abnormal exit."""
        ...


class SubprocessLauncher:
    def __init__(self, root: Path, python_executable: str = "", stdin: IO[Any] | None = None) -> None:
        self.root = Path(root)
        self.python = python_executable or sys.executable
        # None: the child inherits the supervisor's stdin
        self.stdin = stdin

    def launch(self, local_path: str) -> None:
        script = self.root / local_path
        log.info("launching %s", script)
        try:
            proc = subprocess.run([self.python, str(script)], cwd=self.root, stdin=self.stdin)
        except OSError as e:
            raise LaunchError(f"Could not start {local_path}: {e}") from e

        if proc.returncode != 0:
            raise LaunchError(f"{local_path} exited with status {proc.returncode}")
        log.info("%s exited cleanly", local_path)
