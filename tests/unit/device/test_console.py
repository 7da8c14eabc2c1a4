"""Tests for script_bootstrap.device.console."""

from __future__ import annotations

import io
import os
from collections.abc import Iterator
from typing import TextIO

import pytest
from rich.console import Console

from script_bootstrap.core.manifest import parse_manifest
from script_bootstrap.device.console import InputEvent, TerminalConsole, TimedOut

MANIFEST = (
    b'{"scripts": ['
    b'{"id": "a", "name": "Snake", "category": "Games", "file": "a.py", "local_name": "a.py"},'
    b'{"id": "b", "name": "Clock", "category": "Tools", "file": "b.py", "local_name": "b.py"},'
    b'{"id": "c", "name": "Pong", "category": "Games", "file": "c.py", "local_name": "c.py"}'
    b'], "default": "a"}'
)


@pytest.fixture
def pipe() -> Iterator[tuple[TextIO, int]]:
    """Read end as a text stream plus the raw write descriptor."""
    r, w = os.pipe()
    reader = os.fdopen(r, "r")
    yield reader, w
    reader.close()
    try:
        os.close(w)
    except OSError:
        pass


def _console(stream: TextIO) -> tuple[TerminalConsole, io.StringIO]:
    out = io.StringIO()
    return TerminalConsole(console=Console(file=out, width=100), stream=stream), out


class TestWaitForInput:
    def test_returns_lines_then_times_out_at_eof(self, pipe: tuple[TextIO, int]) -> None:
        reader, w = pipe
        os.write(w, b"m\n2\n")
        os.close(w)
        console, _ = _console(reader)
        assert console.wait_for_input_or_timeout(1.0) == InputEvent("m")
        assert console.wait_for_input_or_timeout(1.0) == InputEvent("2")
        assert isinstance(console.wait_for_input_or_timeout(1.0), TimedOut)
        assert isinstance(console.wait_for_input_or_timeout(None), TimedOut)

    def test_times_out_without_input(self, pipe: tuple[TextIO, int]) -> None:
        reader, _ = pipe
        console, _ = _console(reader)
        assert isinstance(console.wait_for_input_or_timeout(0.05), TimedOut)

    def test_zero_duration_times_out_immediately(self, pipe: tuple[TextIO, int]) -> None:
        reader, w = pipe
        os.write(w, b"m\n")
        console, _ = _console(reader)
        assert isinstance(console.wait_for_input_or_timeout(0), TimedOut)

    def test_only_the_returned_line_is_consumed(self, pipe: tuple[TextIO, int]) -> None:
        reader, w = pipe
        os.write(w, b"m\r\nleft for the script\n")
        os.close(w)
        console, _ = _console(reader)
        assert console.wait_for_input_or_timeout(1.0) == InputEvent("m")
        assert os.read(reader.fileno(), 100) == b"left for the script\n"

    def test_stream_without_descriptor_times_out(self) -> None:
        console, _ = _console(io.StringIO("m\n"))
        assert isinstance(console.wait_for_input_or_timeout(1.0), TimedOut)


class TestMenu:
    def test_numbers_follow_category_grouping(self) -> None:
        console, out = _console(io.StringIO(""))
        m = parse_manifest(MANIFEST)
        ordered = console.show_menu(m.by_category(), current_id="a")
        assert [e.name for e in ordered] == ["Snake", "Pong", "Clock"]
        text = out.getvalue()
        assert "Games" in text and "Tools" in text
        assert "Snake *" in text

    def test_status_prints_details(self) -> None:
        console, out = _console(io.StringIO(""))
        console.status("Script crashed!", ["boom", "Restarting in 10s..."], style="error")
        text = out.getvalue()
        assert "Script crashed!" in text
        assert "Restarting in 10s..." in text
