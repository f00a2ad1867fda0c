"""Configuration model with TOML loading and dumping."""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, TypeVar

import tomli_w


class ConfigError(ValueError):
    """Raised when a configuration value or document is invalid."""


class ConfigTheme(Enum):
    AUTO = "Auto"
    DARK = "Dark"
    LIGHT = "Light"


class ConfigColor(Enum):
    BRIGHT_BLACK = "BrightBlack"
    BRIGHT_RED = "BrightRed"
    BRIGHT_GREEN = "BrightGreen"
    BRIGHT_YELLOW = "BrightYellow"
    BRIGHT_BLUE = "BrightBlue"
    BRIGHT_MAGENTA = "BrightMagenta"
    BRIGHT_CYAN = "BrightCyan"
    BRIGHT_WHITE = "BrightWhite"
    BLACK = "Black"
    RED = "Red"
    GREEN = "Green"
    YELLOW = "Yellow"
    BLUE = "Blue"
    MAGENTA = "Magenta"
    CYAN = "Cyan"
    WHITE = "White"


@dataclass(frozen=True)
class Color256:
    """An 8-bit palette colour."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ConfigError(f"8bit color must be an integer, not {self.value!r}")
        if not 0 <= self.value <= 255:
            raise ConfigError(f"8bit color out of range: {self.value}")


Color = ConfigColor | Color256


@dataclass(frozen=True)
class ConfigColorByTheme:
    dark: Color
    light: Color


class ColumnStyleKind(Enum):
    FIXED = "Fixed"
    BY_PERCENTAGE = "ByPercentage"
    BY_STATE = "ByState"
    BY_UNIT = "ByUnit"


@dataclass(frozen=True)
class ConfigColumnStyle:
    """How a column is coloured; ``color`` is set only for fixed styles."""

    kind: ColumnStyleKind
    color: ConfigColorByTheme | None = None

    def __post_init__(self) -> None:
        if (self.kind is ColumnStyleKind.FIXED) != (self.color is not None):
            raise ConfigError("a fixed column style needs a color, other styles take none")


class ConfigColumnAlign(Enum):
    LEFT = "Left"
    RIGHT = "Right"
    CENTER = "Center"


def _default_color_by_theme() -> ConfigColorByTheme:
    return ConfigColorByTheme(dark=ConfigColor.BRIGHT_WHITE, light=ConfigColor.BLACK)


def _pair(dark: ConfigColor, light: ConfigColor) -> Callable[[], ConfigColorByTheme]:
    return lambda: ConfigColorByTheme(dark=dark, light=light)


_BLUE = _pair(ConfigColor.BRIGHT_BLUE, ConfigColor.BLUE)
_GREEN = _pair(ConfigColor.BRIGHT_GREEN, ConfigColor.GREEN)
_YELLOW = _pair(ConfigColor.BRIGHT_YELLOW, ConfigColor.YELLOW)
_RED = _pair(ConfigColor.BRIGHT_RED, ConfigColor.RED)
_CYAN = _pair(ConfigColor.BRIGHT_CYAN, ConfigColor.CYAN)
_MAGENTA = _pair(ConfigColor.BRIGHT_MAGENTA, ConfigColor.MAGENTA)

DEFAULT_TREE_SYMBOLS = ("│", "─", "┬", "├", "└")


@dataclass
class ConfigColumn:
    kind: str
    style: ConfigColumnStyle = field(
        default_factory=lambda: ConfigColumnStyle(ColumnStyleKind.BY_UNIT)
    )
    numeric_search: bool = False
    nonnumeric_search: bool = False
    align: ConfigColumnAlign = ConfigColumnAlign.LEFT
    max_width: int | None = None
    min_width: int | None = None
    header: str | None = None


@dataclass
class ConfigStyleByPercentage:
    color_000: ConfigColorByTheme = field(default_factory=_BLUE)
    color_025: ConfigColorByTheme = field(default_factory=_GREEN)
    color_050: ConfigColorByTheme = field(default_factory=_YELLOW)
    color_075: ConfigColorByTheme = field(default_factory=_RED)
    color_100: ConfigColorByTheme = field(default_factory=_RED)


@dataclass
class ConfigStyleByUnit:
    color_k: ConfigColorByTheme = field(default_factory=_BLUE)
    color_m: ConfigColorByTheme = field(default_factory=_GREEN)
    color_g: ConfigColorByTheme = field(default_factory=_YELLOW)
    color_t: ConfigColorByTheme = field(default_factory=_RED)
    color_p: ConfigColorByTheme = field(default_factory=_RED)
    color_x: ConfigColorByTheme = field(default_factory=_BLUE)


@dataclass
class ConfigStyleByState:
    color_d: ConfigColorByTheme = field(default_factory=_RED)
    color_r: ConfigColorByTheme = field(default_factory=_GREEN)
    color_s: ConfigColorByTheme = field(default_factory=_BLUE)
    color_t: ConfigColorByTheme = field(default_factory=_CYAN)
    color_z: ConfigColorByTheme = field(default_factory=_MAGENTA)
    color_x: ConfigColorByTheme = field(default_factory=_MAGENTA)
    color_k: ConfigColorByTheme = field(default_factory=_YELLOW)
    color_w: ConfigColorByTheme = field(default_factory=_YELLOW)
    color_p: ConfigColorByTheme = field(default_factory=_YELLOW)


@dataclass
class ConfigStyle:
    header: ConfigColorByTheme = field(default_factory=_default_color_by_theme)
    unit: ConfigColorByTheme = field(default_factory=_default_color_by_theme)
    tree: ConfigColorByTheme = field(default_factory=_default_color_by_theme)
    by_percentage: ConfigStyleByPercentage = field(default_factory=ConfigStyleByPercentage)
    by_state: ConfigStyleByState = field(default_factory=ConfigStyleByState)
    by_unit: ConfigStyleByUnit = field(default_factory=ConfigStyleByUnit)


class ConfigSearchKind(Enum):
    EXACT = "Exact"
    PARTIAL = "Partial"


class ConfigSearchLogic(Enum):
    AND = "And"
    OR = "Or"
    NAND = "Nand"
    NOR = "Nor"


class ConfigSearchCase(Enum):
    SMART = "Smart"
    INSENSITIVE = "Insensitive"
    SENSITIVE = "Sensitive"


@dataclass
class ConfigSearch:
    numeric_search: ConfigSearchKind = ConfigSearchKind.EXACT
    nonnumeric_search: ConfigSearchKind = ConfigSearchKind.PARTIAL
    logic: ConfigSearchLogic = ConfigSearchLogic.AND
    case: ConfigSearchCase = ConfigSearchCase.SMART


class ConfigColorMode(Enum):
    AUTO = "Auto"
    ALWAYS = "Always"
    DISABLE = "Disable"


@dataclass
class ConfigDisplay:
    show_self: bool = False
    show_self_parents: bool = False
    show_thread: bool = False
    show_thread_in_tree: bool = True
    show_parent_in_tree: bool = True
    show_children_in_tree: bool = True
    show_header: bool = True
    show_footer: bool = False
    cut_to_terminal: bool = True
    cut_to_pager: bool = False
    cut_to_pipe: bool = False
    color_mode: ConfigColorMode = ConfigColorMode.AUTO
    separator: str = "│"
    ascending: str = "▲"
    descending: str = "▼"
    tree_symbols: tuple[str, str, str, str, str] = DEFAULT_TREE_SYMBOLS
    abbr_sid: bool = True
    theme: ConfigTheme = ConfigTheme.AUTO
    show_kthreads: bool = True


class ConfigSortOrder(Enum):
    ASCENDING = "Ascending"
    DESCENDING = "Descending"


@dataclass
class ConfigSort:
    column: int = 0
    order: ConfigSortOrder = ConfigSortOrder.ASCENDING


def _default_docker_path() -> str:
    return os.environ.get("DOCKER_HOST", "unix:///var/run/docker.sock")


@dataclass
class ConfigDocker:
    path: str = field(default_factory=_default_docker_path)


class ConfigPagerMode(Enum):
    AUTO = "Auto"
    ALWAYS = "Always"
    DISABLE = "Disable"


@dataclass
class ConfigPager:
    mode: ConfigPagerMode = ConfigPagerMode.AUTO
    detect_width: bool = False
    use_builtin: bool = False
    command: str | None = None


@dataclass
class Config:
    columns: list[ConfigColumn]
    style: ConfigStyle = field(default_factory=ConfigStyle)
    search: ConfigSearch = field(default_factory=ConfigSearch)
    display: ConfigDisplay = field(default_factory=ConfigDisplay)
    sort: ConfigSort = field(default_factory=ConfigSort)
    docker: ConfigDocker = field(default_factory=ConfigDocker)
    pager: ConfigPager = field(default_factory=ConfigPager)


# ---------------------------------------------------------------------------
# Colour and style text forms
# ---------------------------------------------------------------------------

_U8 = re.compile(r"\+?[0-9]+")


def serialize_color(color: Color) -> str:
    """Return the text form of a colour: its name or its 8-bit index."""
    if isinstance(color, Color256):
        return str(color.value)
    return color.value


def deserialize_color(text: str) -> Color:
    """Parse a colour name or an 8-bit index (0-255)."""
    try:
        return ConfigColor(text)
    except ValueError:
        pass
    if _U8.fullmatch(text) and int(text) <= 255:
        return Color256(int(text))
    raise ConfigError(f"invalid color: {text!r}")


def serialize_color_by_theme(color: ConfigColorByTheme) -> str:
    """Return ``dark|light``, or a single colour when both are the same."""
    if color.dark == color.light:
        return serialize_color(color.dark)
    return f"{serialize_color(color.dark)}|{serialize_color(color.light)}"


def deserialize_color_by_theme(text: str) -> ConfigColorByTheme:
    """Parse ``dark|light`` or a single colour used for both themes."""
    dark, sep, light = text.partition("|")
    if sep:
        return ConfigColorByTheme(dark=deserialize_color(dark), light=deserialize_color(light))
    color = deserialize_color(text)
    return ConfigColorByTheme(dark=color, light=color)


def serialize_column_style(style: ConfigColumnStyle) -> str:
    """Return the text form of a column style."""
    if style.kind is ColumnStyleKind.FIXED:
        assert style.color is not None
        return serialize_color_by_theme(style.color)
    return style.kind.value


def deserialize_column_style(text: str) -> ConfigColumnStyle:
    """Parse a column style name or a fixed colour specification."""
    if text in {"ByPercentage", "ByState", "ByUnit"}:
        return ConfigColumnStyle(ColumnStyleKind(text))
    return ConfigColumnStyle(ColumnStyleKind.FIXED, deserialize_color_by_theme(text))


# ---------------------------------------------------------------------------
# Reading from plain data
# ---------------------------------------------------------------------------

_MISSING = object()
_E = TypeVar("_E", bound=Enum)
_Converter = Callable[[Any, str], Any]


def _take(table: dict, key: str, where: str, convert: _Converter, default: Any = _MISSING) -> Any:
    path = f"{where}.{key}" if where else key
    if key not in table:
        if default is _MISSING:
            raise ConfigError(f"missing field `{key}` in {where or 'config'}")
        return default() if callable(default) else default
    return convert(table[key], path)


def _bool(value: Any, path: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{path}: expected a boolean, found {value!r}")
    return value


def _str(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{path}: expected a string, found {value!r}")
    return value


def _usize(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < 2**64:
        raise ConfigError(f"{path}: expected a non-negative integer, found {value!r}")
    return value


def _enum(cls: type[_E]) -> _Converter:
    def convert(value: Any, path: str) -> _E:
        text = _str(value, path)
        try:
            return cls(text)
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            raise ConfigError(
                f"{path}: unknown variant {text!r}, expected one of {choices}"
            ) from None

    return convert


def _color_by_theme(value: Any, path: str) -> ConfigColorByTheme:
    try:
        return deserialize_color_by_theme(_str(value, path))
    except ConfigError as exc:
        raise ConfigError(f"{path}: {exc}") from None


def _column_style(value: Any, path: str) -> ConfigColumnStyle:
    try:
        return deserialize_column_style(_str(value, path))
    except ConfigError as exc:
        raise ConfigError(f"{path}: {exc}") from None


def _tree_symbols(value: Any, path: str) -> tuple[str, str, str, str, str]:
    if not isinstance(value, list) or len(value) != 5:
        raise ConfigError(f"{path}: expected an array of 5 strings")
    return tuple(_str(item, f"{path}[{i}]") for i, item in enumerate(value))  # type: ignore[return-value]


def _table(value: Any, path: str) -> dict:
    if not isinstance(value, dict):
        raise ConfigError(f"{path}: expected a table, found {value!r}")
    return value


def _colors(cls: type) -> _Converter:
    """Converter for a table whose fields are all required theme colours."""

    def convert(value: Any, path: str) -> Any:
        table = _table(value, path)
        return cls(**{f.name: _take(table, f.name, path, _color_by_theme) for f in fields(cls)})

    return convert


def _column(value: Any, path: str) -> ConfigColumn:
    t = _table(value, path)
    return ConfigColumn(
        kind=_take(t, "kind", path, _str),
        style=_take(t, "style", path, _column_style,
                    lambda: ConfigColumnStyle(ColumnStyleKind.BY_UNIT)),
        numeric_search=_take(t, "numeric_search", path, _bool, False),
        nonnumeric_search=_take(t, "nonnumeric_search", path, _bool, False),
        align=_take(t, "align", path, _enum(ConfigColumnAlign), ConfigColumnAlign.LEFT),
        max_width=_take(t, "max_width", path, _usize, None),
        min_width=_take(t, "min_width", path, _usize, None),
        header=_take(t, "header", path, _str, None),
    )


def _columns(value: Any, path: str) -> list[ConfigColumn]:
    if not isinstance(value, list):
        raise ConfigError(f"{path}: expected an array of tables")
    return [_column(item, f"{path}[{i}]") for i, item in enumerate(value)]


def _style(value: Any, path: str) -> ConfigStyle:
    t = _table(value, path)
    return ConfigStyle(
        header=_take(t, "header", path, _color_by_theme, _default_color_by_theme),
        unit=_take(t, "unit", path, _color_by_theme, _default_color_by_theme),
        tree=_take(t, "tree", path, _color_by_theme, _default_color_by_theme),
        by_percentage=_take(t, "by_percentage", path, _colors(ConfigStyleByPercentage),
                            ConfigStyleByPercentage),
        by_state=_take(t, "by_state", path, _colors(ConfigStyleByState), ConfigStyleByState),
        by_unit=_take(t, "by_unit", path, _colors(ConfigStyleByUnit), ConfigStyleByUnit),
    )


def _search(value: Any, path: str) -> ConfigSearch:
    t = _table(value, path)
    return ConfigSearch(
        numeric_search=_take(t, "numeric_search", path, _enum(ConfigSearchKind),
                             ConfigSearchKind.EXACT),
        nonnumeric_search=_take(t, "nonnumeric_search", path, _enum(ConfigSearchKind),
                                ConfigSearchKind.PARTIAL),
        logic=_take(t, "logic", path, _enum(ConfigSearchLogic), ConfigSearchLogic.AND),
        case=_take(t, "case", path, _enum(ConfigSearchCase), ConfigSearchCase.SMART),
    )


_DISPLAY_BOOLS = {
    f.name: f.default for f in fields(ConfigDisplay) if isinstance(f.default, bool)
}


def _display(value: Any, path: str) -> ConfigDisplay:
    t = _table(value, path)
    flags = {name: _take(t, name, path, _bool, default) for name, default in _DISPLAY_BOOLS.items()}
    return ConfigDisplay(
        **flags,
        color_mode=_take(t, "color_mode", path, _enum(ConfigColorMode), ConfigColorMode.AUTO),
        separator=_take(t, "separator", path, _str, "│"),
        ascending=_take(t, "ascending", path, _str, "▲"),
        descending=_take(t, "descending", path, _str, "▼"),
        tree_symbols=_take(t, "tree_symbols", path, _tree_symbols, DEFAULT_TREE_SYMBOLS),
        theme=_take(t, "theme", path, _enum(ConfigTheme), ConfigTheme.AUTO),
    )


def _sort(value: Any, path: str) -> ConfigSort:
    t = _table(value, path)
    return ConfigSort(
        column=_take(t, "column", path, _usize, 0),
        order=_take(t, "order", path, _enum(ConfigSortOrder), ConfigSortOrder.ASCENDING),
    )


def _docker(value: Any, path: str) -> ConfigDocker:
    return ConfigDocker(path=_take(_table(value, path), "path", path, _str))


def _pager(value: Any, path: str) -> ConfigPager:
    t = _table(value, path)
    return ConfigPager(
        mode=_take(t, "mode", path, _enum(ConfigPagerMode), ConfigPagerMode.AUTO),
        detect_width=_take(t, "detect_width", path, _bool, False),
        use_builtin=_take(t, "use_builtin", path, _bool, False),
        command=_take(t, "command", path, _str, None),
    )


def config_from_dict(data: dict) -> Config:
    """Build a Config from parsed TOML data; unknown keys are ignored."""
    t = _table(data, "config")
    return Config(
        columns=_take(t, "columns", "", _columns),
        style=_take(t, "style", "", _style, ConfigStyle),
        search=_take(t, "search", "", _search, ConfigSearch),
        display=_take(t, "display", "", _display, ConfigDisplay),
        sort=_take(t, "sort", "", _sort, ConfigSort),
        docker=_take(t, "docker", "", _docker, ConfigDocker),
        pager=_take(t, "pager", "", _pager, ConfigPager),
    )


# ---------------------------------------------------------------------------
# Writing to plain data
# ---------------------------------------------------------------------------

def _colors_to_dict(obj: Any) -> dict[str, str]:
    return {f.name: serialize_color_by_theme(getattr(obj, f.name)) for f in fields(obj)}


def _column_to_dict(column: ConfigColumn) -> dict[str, Any]:
    out: dict[str, Any] = {
        "kind": column.kind,
        "style": serialize_column_style(column.style),
        "numeric_search": column.numeric_search,
        "nonnumeric_search": column.nonnumeric_search,
        "align": column.align.value,
    }
    for name in ("max_width", "min_width", "header"):
        value = getattr(column, name)
        if value is not None:
            out[name] = value
    return out


def _plain(obj: Any) -> dict[str, Any]:
    """Flatten a dataclass of scalars, enums and tuples; None fields are dropped."""
    out: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = list(value)
        out[f.name] = value
    return out


def config_to_dict(config: Config) -> dict[str, Any]:
    """Turn a Config into plain data suitable for TOML output."""
    style = config.style
    return {
        "columns": [_column_to_dict(c) for c in config.columns],
        "style": {
            "header": serialize_color_by_theme(style.header),
            "unit": serialize_color_by_theme(style.unit),
            "tree": serialize_color_by_theme(style.tree),
            "by_percentage": _colors_to_dict(style.by_percentage),
            "by_state": _colors_to_dict(style.by_state),
            "by_unit": _colors_to_dict(style.by_unit),
        },
        "search": _plain(config.search),
        "display": _plain(config.display),
        "sort": _plain(config.sort),
        "docker": _plain(config.docker),
        "pager": _plain(config.pager),
    }


def load_config(text: str) -> Config:
    """Parse a TOML configuration document."""
    try:
        return config_from_dict(tomllib.loads(text))
    except (tomllib.TOMLDecodeError, ConfigError) as exc:
        if "Color256" in text:
            raise ConfigError(
                f'"Color256" keyword for 8bit color is obsolete; use the color number: {exc}'
            ) from exc
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(f"failed to parse toml: {exc}") from exc


def dump_config(config: Config) -> str:
    """Render a Config as a TOML document."""
    return tomli_w.dumps(config_to_dict(config))