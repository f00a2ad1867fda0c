"""Terminal output with an optional built-in pager."""

from __future__ import annotations

import os
import sys
from typing import TextIO

try:
    import termios
    import tty
except ImportError:  # not a POSIX terminal
    termios = None  # type: ignore[assignment]
    tty = None  # type: ignore[assignment]

_DEFAULT_HEIGHT = 24
_DEFAULT_WIDTH = 80

_CLEAR_LINE = "\r\x1b[2K"
_CLEAR_SCREEN = "\r\x1b[2J\r\x1b[H"
_ENTER_ALT_SCREEN = "\x1b[?1049h\x1b[?25l"
_LEAVE_ALT_SCREEN = "\x1b[?25h\x1b[?1049l"

_END = sys.maxsize

_QUIT = {"q", "Q", "\x03"}
_LINE_UP = {"y", "\x19", "\x10", "\x0b", "k", "\x1b[A", "\x1bOA"}
_LINE_DOWN = {"\x0e", "e", "\x05", "\n", "\r", "j", "\x1b[B", "\x1bOB"}
_PAGE_UP = {"b", "\x02", "\x1b[5~"}
_PAGE_DOWN = {"\x16", "f", "\x06", " ", "\x1b[6~"}
_TOP = {"<", "g", "\x1b[H", "\x1bOH"}
_BOTTOM = {">", "G", "\x1b[F", "\x1bOF"}


def _scroll(key: str, upper: int, prefix: str, rows: int, total: int) -> int:
    """Return the new first visible line after pressing ``key``."""
    count = int(prefix) if prefix else 1
    if key in _LINE_UP:
        upper -= count
    elif key in _LINE_DOWN:
        upper += count
    elif key in _PAGE_UP:
        upper -= max(rows - 1, 0)
    elif key in _PAGE_DOWN:
        upper += max(rows - 1, 0)
    elif key in _TOP:
        upper = 0
    elif key in _BOTTOM:
        # line numbers start at 1 while the upper mark starts at 0
        line = int(prefix) if prefix else None
        upper = _END if line is None or line <= 1 else line - 1
    return min(max(upper, 0), max(total - rows, 0))


class TermInfo:
    """Writes rows to the terminal or collects them for the built-in pager."""

    def __init__(
        self,
        clear_by_line: bool = False,
        use_pager: bool = False,
        *,
        stream: TextIO | None = None,
        size: tuple[int, int] | None = None,
        is_terminal: bool | None = None,
    ) -> None:
        self._stream = stream if stream is not None else sys.stdout
        if is_terminal is None:
            try:
                is_terminal = self._stream.isatty()
            except (AttributeError, ValueError):
                is_terminal = False
        self._is_terminal = is_terminal
        self.height, self.width = size if size is not None else self._detect_size()
        self.clear_by_line = clear_by_line
        self.use_pager = use_pager
        self.pager_lines: list[str] = []

    def _detect_size(self) -> tuple[int, int]:
        try:
            columns, lines = os.get_terminal_size(self._stream.fileno())
        except (OSError, ValueError, AttributeError):
            return _DEFAULT_HEIGHT, _DEFAULT_WIDTH
        return lines, columns

    def _control(self, sequence: str) -> None:
        if self._is_terminal:
            self._stream.write(sequence)
            self._stream.flush()

    def write_line(self, text: str) -> None:
        """Write one row, to the pager buffer when paging."""
        if self.clear_by_line:
            self._control(_CLEAR_LINE)
        if self.use_pager:
            self.pager_lines.append(text)
        else:
            self._stream.write(f"{text}\n")
            self._stream.flush()

    def clear_screen(self) -> None:
        self._control(_CLEAR_SCREEN)

    def move_cursor_to(self, x: int, y: int) -> None:
        self._control(f"\x1b[{y + 1};{x + 1}H")

    def clear_rest_lines(self) -> None:
        """Blank the following ``height`` lines."""
        for _ in range(self.height):
            self._control(_CLEAR_LINE)
            self._control("\x1b[1B")

    def page_all(self) -> None:
        """Show the buffered rows, interactively when attached to a terminal."""
        lines, self.pager_lines = self.pager_lines, []
        if self._is_terminal and termios is not None and _stdin_is_terminal():
            self._run_pager(lines)
        else:
            self._stream.write("".join(f"{line}\n" for line in lines))
            self._stream.flush()

    def _run_pager(self, lines: list[str]) -> None:
        fd_in = sys.stdin.fileno()
        saved = termios.tcgetattr(fd_in)
        out = self._stream
        upper = 0
        prefix = ""
        try:
            tty.setcbreak(fd_in)
            out.write(_ENTER_ALT_SCREEN)
            while True:
                self.height, self.width = self._detect_size()
                rows = max(self.height - 1, 1)
                upper = _scroll("", upper, "", rows, len(lines))
                self._render(lines, upper, rows, prefix)
                key = os.read(fd_in, 16).decode(errors="ignore")
                if not key or key in _QUIT:
                    break
                if key.isdigit():
                    prefix += key
                    continue
                upper = _scroll(key, upper, prefix, rows, len(lines))
                prefix = ""
        finally:
            out.write(_LEAVE_ALT_SCREEN)
            out.flush()
            termios.tcsetattr(fd_in, termios.TCSADRAIN, saved)

    def _render(self, lines: list[str], upper: int, rows: int, prefix: str) -> None:
        out = self._stream
        out.write("\x1b[H\x1b[2J")
        for line in lines[upper : upper + rows]:
            out.write(f"{line}\x1b[0m\x1b[K\n")
        out.write(f"\x1b[{self.height};1H\x1b[7m:{prefix}\x1b[0m")
        out.flush()


def _stdin_is_terminal() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False