"""Keyword search, text layout and terminal helpers."""

from __future__ import annotations

import os
import re
import select
import sys
import time
from enum import Enum
from typing import Callable, Iterable, Protocol, Sequence

from wcwidth import wcwidth

from procview.config import (
    Config,
    ConfigColumnAlign,
    ConfigSearchCase,
    ConfigSearchLogic,
    ConfigTheme,
)

try:
    import termios
    import tty
except ImportError:  # not a POSIX terminal
    termios = None  # type: ignore[assignment]
    tty = None  # type: ignore[assignment]


class ArgColorMode(Enum):
    AUTO = "auto"
    ALWAYS = "always"
    DISABLE = "disable"


class ArgThemeMode(Enum):
    AUTO = "auto"
    DARK = "dark"
    LIGHT = "light"


class ArgPagerMode(Enum):
    AUTO = "auto"
    ALWAYS = "always"
    DISABLE = "disable"


class KeywordClass(Enum):
    NUMERIC = "Numeric"
    NON_NUMERIC = "NonNumeric"


_THEME_BY_ARG = {
    ArgThemeMode.AUTO: ConfigTheme.AUTO,
    ArgThemeMode.DARK: ConfigTheme.DARK,
    ArgThemeMode.LIGHT: ConfigTheme.LIGHT,
}


def theme_from_arg(mode: ArgThemeMode) -> ConfigTheme:
    """Map a command-line theme choice to the configuration theme."""
    return _THEME_BY_ARG[mode]


# ---------------------------------------------------------------------------
# Keyword search
# ---------------------------------------------------------------------------


class _Searchable(Protocol):
    def find_partial(self, pid: int, keyword: str, content_to_lowercase: bool) -> bool: ...

    def find_exact(self, pid: int, keyword: str, content_to_lowercase: bool) -> bool: ...


_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def _ascii_lower(text: str) -> str:
    return text.translate(_ASCII_LOWER)


def _search(
    keywords: Iterable[str],
    logic: ConfigSearchLogic,
    case: ConfigSearchCase,
    matches: Callable[[str, bool], bool],
) -> bool:
    conjunctive = logic in (ConfigSearchLogic.AND, ConfigSearchLogic.NAND)
    result = conjunctive
    for keyword in keywords:
        lowered = _ascii_lower(keyword)
        if case is ConfigSearchCase.SMART:
            ignore_case = keyword == lowered
        else:
            ignore_case = case is ConfigSearchCase.INSENSITIVE
        hit = matches(lowered if ignore_case else keyword, ignore_case)
        result = (result and hit) if conjunctive else (result or hit)
    return result


def find_partial(
    columns: Sequence[_Searchable],
    pid: int,
    keywords: Iterable[str],
    logic: ConfigSearchLogic,
    case: ConfigSearchCase,
) -> bool:
    """Combine partial matches of every keyword in any column using ``logic``."""
    return _search(
        keywords,
        logic,
        case,
        lambda kw, lower: any(c.find_partial(pid, kw, lower) for c in columns),
    )


def find_exact(
    columns: Sequence[_Searchable],
    pid: int,
    keywords: Iterable[str],
    logic: ConfigSearchLogic,
    case: ConfigSearchCase,
) -> bool:
    """Combine exact matches of every keyword in any column using ``logic``."""
    return _search(
        keywords,
        logic,
        case,
        lambda kw, lower: any(c.find_exact(pid, kw, lower) for c in columns),
    )


_I64 = re.compile(r"[+-]?[0-9]+")


def classify(keyword: str) -> KeywordClass:
    """Numeric when the keyword is a 64-bit signed integer."""
    if _I64.fullmatch(keyword) and -(2**63) <= int(keyword) < 2**63:
        return KeywordClass.NUMERIC
    return KeywordClass.NON_NUMERIC


# ---------------------------------------------------------------------------
# Text layout
# ---------------------------------------------------------------------------


def _char_width(char: str) -> int:
    return max(wcwidth(char), 0)


def _text_width(text: str) -> int:
    return sum(_char_width(c) for c in text)


def adjust(text: str, width: int, align: ConfigColumnAlign) -> str:
    """Pad or cut ``text`` to exactly ``width`` display cells."""
    text_width = _text_width(text)
    if width < text_width:
        return truncate(text, width)
    space = width - text_width
    if align is ConfigColumnAlign.LEFT:
        return text + " " * space
    if align is ConfigColumnAlign.RIGHT:
        return " " * space + text
    left = space // 2
    return " " * left + text + " " * (space - left)


def parse_time(seconds: int) -> str:
    """Render a duration as HH:MM:SS, or in days or years when long."""
    if seconds < 0:
        raise ValueError(f"duration must not be negative: {seconds}")
    minutes, sec = divmod(seconds, 60)
    hours, minute = divmod(minutes, 60)
    hour = hours % 24
    day = seconds / (60.0 * 60.0 * 24.0)
    year = seconds / (365.0 * 60.0 * 60.0 * 24.0)
    if year >= 1.0:
        return f"{year:.1f}years"
    if day >= 1.0:
        return f"{day:.1f}days"
    return f"{hour:02}:{minute:02}:{sec:02}"


def truncate(text: str, width: int) -> str:
    """Cut ``text`` to ``width`` display cells, keeping ANSI colour sequences."""
    out: list[str] = []
    total = 0
    escape = False
    for char in text:
        if char == "\x1b":
            escape = True
        if escape:
            if char == "m":
                escape = False
            out.append(char)
            continue
        total += _char_width(char)
        if total > width:
            return "".join(out)
        out.append(char)
    return text


_BINARY_UNITS = "KMGTPE"


def bytify(value: int) -> str:
    """Render a byte count with a binary unit letter, e.g. ``1.000K``."""
    if value < 0:
        raise ValueError(f"byte count must not be negative: {value}")
    exponent = min((value.bit_length() - 1) // 10, len(_BINARY_UNITS)) if value else 0
    scaled = value / 1024**exponent
    suffix = _BINARY_UNITS[exponent - 1] if exponent else ""
    return f"{scaled:.3f}{suffix}"


def lap(start: float, message: str) -> float:
    """Report time since ``start`` on stderr and return the new start time."""
    elapsed = time.perf_counter() - start
    secs = int(elapsed)
    millis = int((elapsed - secs) * 1000)
    print(f"{message} [{secs}.{millis:03}s]", file=sys.stderr)
    return time.perf_counter()


# ---------------------------------------------------------------------------
# Theme detection
# ---------------------------------------------------------------------------

_MIN_TIMEOUT = 0.1
_LATENCY_TIMEOUT = 1.0
_RGB = re.compile(rb"rgb:([0-9a-fA-F]+)/([0-9a-fA-F]+)/([0-9a-fA-F]+)")


def _terminal_query(
    query: bytes, is_complete: Callable[[bytes], bool], timeout: float
) -> bytes | None:
    if termios is None:
        return None
    try:
        fd_in = sys.stdin.fileno()
        fd_out = sys.stdout.fileno()
        saved = termios.tcgetattr(fd_in)
    except (OSError, ValueError, termios.error):
        return None
    try:
        tty.setcbreak(fd_in)
        os.write(fd_out, query)
        deadline = time.monotonic() + timeout
        response = b""
        while not is_complete(response):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            ready, _, _ = select.select([fd_in], [], [], remaining)
            if not ready:
                return None
            chunk = os.read(fd_in, 64)
            if not chunk:
                return None
            response += chunk
        return response
    except (OSError, termios.error):
        return None
    finally:
        try:
            termios.tcsetattr(fd_in, termios.TCSADRAIN, saved)
        except termios.error:
            pass


def _terminal_latency() -> float | None:
    start = time.monotonic()
    reply = _terminal_query(b"\x1b[c", lambda buf: buf.endswith(b"c"), _LATENCY_TIMEOUT)
    return None if reply is None else time.monotonic() - start


def _scale16(component: bytes) -> int:
    return int(component, 16) * 0xFFFF // (16 ** len(component) - 1)


def _terminal_background(timeout: float) -> ConfigTheme | None:
    reply = _terminal_query(
        b"\x1b]11;?\x1b\\",
        lambda buf: buf.endswith(b"\x07") or buf.endswith(b"\x1b\\"),
        timeout,
    )
    if reply is None:
        return None
    match = _RGB.search(reply)
    if match is None:
        return None
    red, green, blue = (_scale16(part) for part in match.groups())
    luminance = red * 0.299 + green * 0.587 + blue * 0.114
    return ConfigTheme.LIGHT if luminance > 32768 else ConfigTheme.DARK


def get_theme(theme_override: ArgThemeMode | None, config: Config) -> ConfigTheme:
    """Resolve the theme, asking the terminal when it is Auto; Dark on failure."""
    theme = theme_from_arg(theme_override) if theme_override is not None else config.display.theme
    if theme is not ConfigTheme.AUTO:
        return theme
    if not (sys.stdout.isatty() and sys.stderr.isatty() and sys.stdin.isatty()):
        return ConfigTheme.DARK
    latency = _terminal_latency()
    if latency is None:
        return ConfigTheme.DARK
    detected = _terminal_background(max(latency * 2, _MIN_TIMEOUT))
    return detected if detected is not None else ConfigTheme.DARK