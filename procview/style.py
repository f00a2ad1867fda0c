"""Colouring of table cells with ANSI escape sequences."""

from __future__ import annotations

import os
import sys

from procview.config import (
    Color,
    Color256,
    ColumnStyleKind,
    ConfigColor,
    ConfigColorByTheme,
    ConfigColumnStyle,
    ConfigStyle,
    ConfigTheme,
)

_RESET = "\x1b[0m"

# colour -> (base ANSI index, bright)
_PALETTE: dict[ConfigColor, tuple[int, bool]] = {
    ConfigColor.BLACK: (0, False),
    ConfigColor.RED: (1, False),
    ConfigColor.GREEN: (2, False),
    ConfigColor.YELLOW: (3, False),
    ConfigColor.BLUE: (4, False),
    ConfigColor.MAGENTA: (5, False),
    ConfigColor.CYAN: (6, False),
    ConfigColor.WHITE: (7, False),
    ConfigColor.BRIGHT_BLACK: (0, True),
    ConfigColor.BRIGHT_RED: (1, True),
    ConfigColor.BRIGHT_GREEN: (2, True),
    ConfigColor.BRIGHT_YELLOW: (3, True),
    ConfigColor.BRIGHT_BLUE: (4, True),
    ConfigColor.BRIGHT_MAGENTA: (5, True),
    ConfigColor.BRIGHT_CYAN: (6, True),
    ConfigColor.BRIGHT_WHITE: (7, True),
}

_state: dict[str, bool | None] = {"enabled": None}


def _auto_colors() -> bool:
    force = os.environ.get("CLICOLOR_FORCE")
    if force is not None and force != "0":
        return True
    if os.environ.get("CLICOLOR") == "0":
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def set_colors_enabled(enabled: bool) -> None:
    """Turn colour output on or off for all later styling."""
    _state["enabled"] = bool(enabled)


def colors_enabled() -> bool:
    """Whether styling emits escape sequences."""
    enabled = _state["enabled"]
    return _auto_colors() if enabled is None else enabled


def _sgr(color: Color, faded: bool) -> str:
    if isinstance(color, Color256):
        return f"\x1b[38;5;{color.value}m"
    index, bright = _PALETTE[color]
    if bright and not faded:
        return f"\x1b[38;5;{index + 8}m"
    return f"\x1b[{index + 30}m"


def apply_color(text: str, color: ConfigColorByTheme, theme: ConfigTheme, faded: bool) -> str:
    """Colour ``text`` for a concrete theme; faded turns bright colours normal."""
    if theme is ConfigTheme.DARK:
        chosen = color.dark
    elif theme is ConfigTheme.LIGHT:
        chosen = color.light
    else:
        raise ValueError("theme must be resolved to Dark or Light before styling")
    if not colors_enabled():
        return text
    return f"{_sgr(chosen, faded)}{text}{_RESET}"


_STATE_LETTERS = (
    ("D", "color_d"),
    ("R", "color_r"),
    ("S", "color_s"),
    ("T", "color_t"),
    ("t", "color_t"),
    ("Z", "color_z"),
    ("X", "color_x"),
    ("K", "color_k"),
    ("W", "color_w"),
    ("P", "color_p"),
)

_UNIT_LETTERS = (
    ("K", "color_k"),
    ("M", "color_m"),
    ("G", "color_g"),
    ("T", "color_t"),
    ("P", "color_p"),
)


def _by_letter(text: str, table: object, letters: tuple[tuple[str, str], ...]) -> ConfigColorByTheme:
    name = next((attr for letter, attr in letters if letter in text), "color_x")
    return getattr(table, name)


def _percentage(text: str) -> float:
    stripped = text.strip()
    if "_" in stripped:
        return 0.0
    try:
        return float(stripped)
    except ValueError:
        return 0.0


def _by_percentage(text: str, style: ConfigStyle) -> ConfigColorByTheme:
    value = _percentage(text)
    colors = style.by_percentage
    if value > 100.0:
        return colors.color_100
    if value > 75.0:
        return colors.color_075
    if value > 50.0:
        return colors.color_050
    if value > 25.0:
        return colors.color_025
    return colors.color_000


def apply_style(
    text: str,
    column_style: ConfigColumnStyle,
    style: ConfigStyle,
    theme: ConfigTheme,
    faded: bool,
) -> str:
    """Colour a cell according to its column style."""
    kind = column_style.kind
    if kind is ColumnStyleKind.FIXED:
        assert column_style.color is not None
        color = column_style.color
    elif kind is ColumnStyleKind.BY_PERCENTAGE:
        color = _by_percentage(text, style)
    elif kind is ColumnStyleKind.BY_STATE:
        color = _by_letter(text, style.by_state, _STATE_LETTERS)
    else:
        color = _by_letter(text, style.by_unit, _UNIT_LETTERS)
    return apply_color(text, color, theme, faded)


def color_to_column_style(color: ConfigColorByTheme) -> ConfigColumnStyle:
    """A fixed column style using ``color``."""
    return ConfigColumnStyle(ColumnStyleKind.FIXED, color)