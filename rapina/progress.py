"""Progress messages on the terminal, with colours and a spinner."""

from __future__ import annotations

import sys
from typing import TextIO

_SPINNERS = "/-\\|"

_COLOR_RESET = "\033[0m"
_COLOR_RED = "\033[31m"
_COLOR_YELLOW = "\033[33m"
_COLOR_BLUE = "\033[34m"
_COLOR_CYAN = "\033[36m"


class Progress:
    """Writes formatted progress messages to ``out`` (stderr by default)."""

    def __init__(self, out: TextIO | None = None, debug: bool = False) -> None:
        self._out = out
        self._debug = debug
        self._running = ""
        self._seq = 0

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stderr

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def _writeln(self, text: str) -> None:
        if not text.endswith("\n"):
            text += "\n"
        self._write(text)

    def _clear_line(self) -> None:
        if self._running:
            self._write("\r" + " " * len(self._running) + "\r")

    def _message(self, color: str, text: str) -> None:
        if self._running:
            self._clear_line()
        self._write(color)
        self._writeln(text)
        self._write(_COLOR_RESET)
        if self._running:
            self._write(self._running)

    def set_debug(self, on: bool) -> None:
        self._debug = on

    def cursor(self, show: bool) -> None:
        """Show or hide the terminal cursor (only on stdout or stderr)."""
        out = self.out
        if out is not sys.stdout and out is not sys.stderr:
            return
        self._write("\033[?25h" if show else "\033[?25l")

    def status(self, message: str) -> None:
        if self._running:
            self._clear_line()
            self._write(_COLOR_CYAN)
        self._writeln("[>] " + message)
        if self._running:
            self._write(_COLOR_RESET)
            self._write(self._running)

    def error(self, err: object) -> None:
        self._message(_COLOR_RED, f"[✗] {err}")

    def error_msg(self, message: str) -> None:
        self._message(_COLOR_RED, "[✗] " + message)

    def warning(self, message: str) -> None:
        self._message(_COLOR_YELLOW, "[!] " + message)

    def debug(self, message: str) -> None:
        if self._debug:
            self._message(_COLOR_BLUE, "--- " + message)

    def running(self, message: str) -> None:
        self._running = f"[ ] {message}"
        self._write(self._running)

    def spinner(self) -> None:
        self._write(f"\r[{_SPINNERS[self._seq]}]")
        self._seq = (self._seq + 1) % len(_SPINNERS)

    def run_ok(self) -> None:
        self._writeln("\r[✓]")
        self._running = ""

    def run_fail(self) -> None:
        self._write(_COLOR_RED)
        if self._running:
            self._clear_line()
            self._write(self._running)
        self._writeln("\r[✗]")
        self._running = ""
        self._write(_COLOR_RESET)

    def download(self, text: str) -> None:
        self._write("[          ] " + text)


_default = Progress()


def set_debug(on: bool) -> None:
    _default.set_debug(on)


def cursor(show: bool) -> None:
    _default.cursor(show)


def status(message: str) -> None:
    _default.status(message)


def error(err: object) -> None:
    _default.error(err)


def error_msg(message: str) -> None:
    _default.error_msg(message)


def warning(message: str) -> None:
    _default.warning(message)


def debug(message: str) -> None:
    _default.debug(message)


def running(message: str) -> None:
    _default.running(message)


def spinner() -> None:
    _default.spinner()


def run_ok() -> None:
    _default.run_ok()


def run_fail() -> None:
    _default.run_fail()


def download(text: str) -> None:
    _default.download(text)