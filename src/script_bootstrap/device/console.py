# src/script_bootstrap/device/console.py
from __future__ import annotations

import os
import selectors
import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TextIO, Union

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from script_bootstrap.core.manifest import ManifestEntry


@dataclass(frozen=True)
class InputEvent:
    text: str


@dataclass(frozen=True)
class TimedOut:
    pass


WaitResult = Union[InputEvent, TimedOut]

# status styles -> rich styles
_STYLES = {
    "info": "cyan",
    "ok": "green",
    "muted": "bright_black",
    "warn": "yellow",
    "error": "bold red",
}


class OperatorConsole(Protocol):
    def status(self, title: str, details: list[str] | None = None, style: str = "info") -> None: ...

    def show_menu(
        self, groups: list[tuple[str, list["ManifestEntry"]]], current_id: str | None
    ) -> list["ManifestEntry"]: ...

    def wait_for_input_or_timeout(self, duration: float | None) -> WaitResult: ...


class _LineReader:
    """
    Reads lines straight from the stream's file descriptor, one byte at a time,
    so nothing past the returned newline is consumed. Whatever the operator
    types later stays in the descriptor for the launched script.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._pending = bytearray()
        self._eof = False

    def _fileno(self) -> int | None:
        try:
            return self._stream.fileno()
        except (AttributeError, OSError, ValueError):
            return None

    def get(self, timeout: float | None) -> str | None:
        if self._eof:
            return None
        fd = self._fileno()
        if fd is None:
            # no descriptor to wait on (detached or captured stdin)
            self._eof = True
            return None

        deadline = None if timeout is None else time.monotonic() + timeout
        # select() also accepts regular files and /dev/null
        with selectors.SelectSelector() as sel:
            sel.register(fd, selectors.EVENT_READ)
            while True:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                if not sel.select(remaining):
                    return None
                byte = os.read(fd, 1)
                if not byte:
                    self._eof = True
                    return self._take() if self._pending else None
                if byte == b"\n":
                    return self._take()
                self._pending += byte

    def _take(self) -> str:
        line = bytes(self._pending).decode("utf-8", errors="replace").rstrip("\r")
        self._pending.clear()
        return line


class TerminalConsole:
    def __init__(self, console: Console | None = None, stream: TextIO | None = None) -> None:
        self.console = console or Console()
        self._reader = _LineReader(stream or sys.stdin)

    def status(self, title: str, details: list[str] | None = None, style: str = "info") -> None:
        self.console.print(f"[{_STYLES.get(style, style)}]{escape(title)}[/]")
        for line in details or []:
            self.console.print(f"  {escape(line)}", highlight=False)

    def show_menu(
        self, groups: list[tuple[str, list["ManifestEntry"]]], current_id: str | None
    ) -> list["ManifestEntry"]:
        ordered: list["ManifestEntry"] = []
        table = Table(title="Select a script", show_lines=False)
        table.add_column("#", justify="right")
        table.add_column("Name")
        table.add_column("Description")

        for category, entries in groups:
            table.add_row("", f"[bold]{escape(category)}[/]", "")
            for e in entries:
                ordered.append(e)
                marker = " *" if e.id == current_id else ""
                table.add_row(str(len(ordered)), escape(e.name) + marker, escape(e.description))

        self.console.print(table)
        self.console.print("Enter a number (Enter keeps the marked script):")
        return ordered

    def wait_for_input_or_timeout(self, duration: float | None) -> WaitResult:
        if duration is not None and duration <= 0:
            return TimedOut()
        line = self._reader.get(duration)
        if line is None:
            return TimedOut()
        return InputEvent(text=line)
