"""Filtering, sizing and printing of the process table."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Protocol, Sequence

from procview.config import (
    Config,
    ConfigColumnAlign,
    ConfigColumnStyle,
    ConfigSearchKind,
    ConfigSearchLogic,
    ConfigSortOrder,
    ConfigTheme,
)
from procview.style import apply_color, apply_style, set_colors_enabled
from procview.term_info import TermInfo
from procview.util import (
    ArgColorMode,
    ArgPagerMode,
    KeywordClass,
    classify,
    find_exact,
    find_partial,
    truncate,
)


class _Column(Protocol):
    """What the view needs from a column of the table."""

    def find_partial(self, pid: int, keyword: str, content_to_lowercase: bool) -> bool: ...

    def find_exact(self, pid: int, keyword: str, content_to_lowercase: bool) -> bool: ...

    def sorted_pid(self, order: ConfigSortOrder) -> list[int]: ...

    def apply_visible(self, visible_pids: Sequence[int]) -> None: ...

    def reset_width(
        self,
        order: ConfigSortOrder | None,
        config: Config,
        max_width: int | None,
        min_width: int | None,
    ) -> None: ...

    def update_width(self, pid: int, max_width: int | None) -> None: ...

    def get_width(self) -> int: ...

    def display_header(
        self, align: ConfigColumnAlign, order: ConfigSortOrder | None, config: Config
    ) -> str: ...

    def display_unit(self, align: ConfigColumnAlign) -> str: ...

    def display_content(self, pid: int, align: ConfigColumnAlign) -> str | None: ...

    def sortable(self) -> bool: ...


class _Related(Protocol):
    pid: int
    ppid: int


@dataclass
class ViewOptions:
    """Command-line choices that affect filtering and display."""

    keyword: list[str] = field(default_factory=list)
    logic: ConfigSearchLogic | None = None
    tree: bool = False
    watch_mode: bool = False
    color: ArgColorMode | None = None
    pager: ArgPagerMode | None = None
    no_header: bool = False


@dataclass
class SortInfo:
    idx: int
    order: ConfigSortOrder


@dataclass
class ColumnInfo:
    column: _Column
    kind: str
    style: ConfigColumnStyle
    nonnumeric_search: bool = False
    numeric_search: bool = False
    align: ConfigColumnAlign = ConfigColumnAlign.LEFT
    max_width: int | None = None
    min_width: int | None = None
    visible: bool = True


def build_relations(
    processes: Iterable[_Related],
) -> tuple[dict[int, int], dict[int, list[int]]]:
    """Map each pid to its parent, and each parent to its children in order."""
    parents: dict[int, int] = {}
    children: dict[int, list[int]] = {}
    for proc in processes:
        parents[proc.pid] = proc.ppid
        children.setdefault(proc.ppid, []).append(proc.pid)
    return parents, children


def _user_attended() -> bool:
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


@dataclass
class View:
    """A process table: its columns, the rows to show and the terminal."""

    columns: list[ColumnInfo]
    term_info: TermInfo
    sort_info: SortInfo
    parent_pids: dict[int, int] = field(default_factory=dict)
    child_pids: dict[int, list[int]] = field(default_factory=dict)
    visible_pids: list[int] = field(default_factory=list)
    auxiliary_pids: list[int] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def filter(self, options: ViewOptions, config: Config, header_lines: int) -> None:
        """Choose the rows to show, in sort order."""
        cols_nonnumeric = [c.column for c in self.columns if c.nonnumeric_search]
        cols_numeric = [c.column for c in self.columns if c.numeric_search]

        keyword_numeric: list[str] = []
        keyword_nonnumeric: list[str] = []
        for keyword in options.keyword:
            if classify(keyword) is KeywordClass.NUMERIC:
                keyword_numeric.append(keyword)
            else:
                keyword_nonnumeric.append(keyword)

        pids = self.columns[self.sort_info.idx].column.sorted_pid(self.sort_info.order)
        self_pid = os.getpid()
        display = config.display

        if display.show_self_parents:
            self_parents: set[int] = set()
        else:
            self_parents = {
                pid
                for pid in self._ancestors(self_pid)
                if len(self.child_pids.get(pid, ())) == 1
            }

        logic = options.logic if options.logic is not None else config.search.logic

        candidates: list[int] = []
        for pid in pids:
            hidden = (not display.show_self and pid == self_pid) or pid in self_parents
            if hidden:
                continue
            if not options.keyword or self.search(
                pid,
                keyword_numeric,
                keyword_nonnumeric,
                cols_numeric,
                cols_nonnumeric,
                config,
                logic,
            ):
                candidates.append(pid)

        auxiliary: list[int] = []
        if options.tree:
            known = set(candidates)
            for pid in candidates:
                related: list[int] = []
                if display.show_parent_in_tree:
                    related.extend(self._ancestors(pid))
                if display.show_children_in_tree:
                    related.extend(self._descendants(pid))
                auxiliary.extend(x for x in related if x not in known)
            candidates.extend(auxiliary)

        wanted = set(candidates)
        reserved_rows = 4 + header_lines
        visible: list[int] = []
        for pid in pids:
            if pid in wanted:
                visible.append(pid)
            if options.watch_mode and len(visible) >= self.term_info.height - reserved_rows:
                break

        self.visible_pids = visible
        self.auxiliary_pids = auxiliary

    def _ancestors(self, pid: int) -> list[int]:
        found: list[int] = []
        current = pid
        while (parent := self.parent_pids.get(current)) is not None and parent not in found:
            found.append(parent)
            current = parent
        return found

    def _descendants(self, pid: int) -> list[int]:
        found: list[int] = []
        seen: set[int] = set()
        stack = [iter(self.child_pids.get(pid, ()))]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                continue
            if child in seen:
                continue
            seen.add(child)
            found.append(child)
            stack.append(iter(self.child_pids.get(child, ())))
        return found

    def search(
        self,
        pid: int,
        keyword_numeric: Sequence[str],
        keyword_nonnumeric: Sequence[str],
        cols_numeric: Sequence[_Column],
        cols_nonnumeric: Sequence[_Column],
        config: Config,
        logic: ConfigSearchLogic,
    ) -> bool:
        """Whether ``pid`` matches the keywords under ``logic``."""
        case = config.search.case
        nonnumeric_find = (
            find_partial
            if config.search.nonnumeric_search is ConfigSearchKind.PARTIAL
            else find_exact
        )
        numeric_find = (
            find_partial
            if config.search.numeric_search is ConfigSearchKind.PARTIAL
            else find_exact
        )
        hit_nonnumeric = nonnumeric_find(cols_nonnumeric, pid, keyword_nonnumeric, logic, case)
        hit_numeric = numeric_find(cols_numeric, pid, keyword_numeric, logic, case)
        if logic is ConfigSearchLogic.AND:
            return hit_nonnumeric and hit_numeric
        if logic is ConfigSearchLogic.OR:
            return hit_nonnumeric or hit_numeric
        if logic is ConfigSearchLogic.NAND:
            return not (hit_nonnumeric and hit_numeric)
        return not (hit_nonnumeric or hit_numeric)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _order_of(self, index: int) -> ConfigSortOrder | None:
        return self.sort_info.order if index == self.sort_info.idx else None

    def adjust(self, config: Config, min_widths: Mapping[int, int]) -> None:
        """Recompute column widths for the visible rows."""
        for index, info in enumerate(self.columns):
            column = info.column
            column.apply_visible(self.visible_pids)
            min_width = min_widths.get(index, info.min_width)
            column.reset_width(self._order_of(index), config, info.max_width, min_width)
            for pid in self.visible_pids:
                column.update_width(pid, info.max_width)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def display(self, options: ViewOptions, config: Config, theme: ConfigTheme) -> None:
        """Print the table, through the built-in pager when needed."""
        use_terminal = _user_attended()
        term = self.term_info

        # header/unit line and the next prompt
        threshold_height = len(self.visible_pids) + 3
        if config.pager.detect_width:
            threshold_width = max(
                sum(c.column.get_width() for c in self.columns) + len(self.columns) - 1, 0
            )
        else:
            threshold_width = 0

        if options.watch_mode:
            use_pager = False
        else:
            mode = options.pager
            if mode is None:
                mode = ArgPagerMode(config.pager.mode.value.lower())
            if mode is ArgPagerMode.AUTO:
                use_pager = term.height < threshold_height or term.width < threshold_width
            else:
                use_pager = mode is ArgPagerMode.ALWAYS

        # The built-in pager cannot scroll sideways, so paged rows are always cut.
        cut = (
            (use_terminal and use_pager)
            or (use_terminal and not use_pager and config.display.cut_to_terminal)
            or (not use_terminal and config.display.cut_to_pipe)
        )
        if not cut:
            term.width = sys.maxsize

        color_mode = options.color
        if color_mode is None:
            color_mode = ArgColorMode(config.display.color_mode.value.lower())
        if color_mode is ArgColorMode.AUTO:
            if use_pager and use_terminal:
                set_colors_enabled(True)
        else:
            set_colors_enabled(color_mode is ArgColorMode.ALWAYS)

        if use_pager:
            term.use_pager = True

        show_titles = not options.no_header
        if show_titles and config.display.show_header:
            self._write_quietly(self._header_row(config, theme))
            self._write_quietly(self._unit_row(config, theme))

        auxiliary = set(self.auxiliary_pids)
        for pid in self.visible_pids:
            self._write_quietly(self._content_row(config, pid, theme, pid in auxiliary))

        if show_titles and config.display.show_footer:
            self._write_quietly(self._unit_row(config, theme))
            self._write_quietly(self._header_row(config, theme))

        if term.use_pager:
            term.page_all()

    def _write_quietly(self, row: str) -> None:
        # A broken pipe while paging is harmless.
        try:
            self.term_info.write_line(truncate(row.rstrip(), self.term_info.width))
        except OSError:
            pass

    def _header_row(self, config: Config, theme: ConfigTheme) -> str:
        cells = (
            apply_color(
                info.column.display_header(info.align, self._order_of(index), config),
                config.style.header,
                theme,
                False,
            )
            for index, info in enumerate(self.columns)
            if info.visible
        )
        return "".join(f" {cell}" for cell in cells)

    def _unit_row(self, config: Config, theme: ConfigTheme) -> str:
        cells = (
            apply_color(info.column.display_unit(info.align), config.style.unit, theme, False)
            for info in self.columns
            if info.visible
        )
        return "".join(f" {cell}" for cell in cells)

    def _content_row(
        self, config: Config, pid: int, theme: ConfigTheme, auxiliary: bool
    ) -> str:
        cells = []
        for info in self.columns:
            if not info.visible:
                continue
            content = info.column.display_content(pid, info.align)
            if content is None:
                raise KeyError(f"no content for pid {pid}")
            cells.append(apply_style(content, info.style, config.style, theme, auxiliary))
        return "".join(f" {cell}" for cell in cells)

    # ------------------------------------------------------------------
    # Sort column navigation
    # ------------------------------------------------------------------

    def inc_sort_column(self) -> int:
        """Index of the next sortable column, wrapping around."""
        current = self.sort_info.idx
        count = len(self.columns)
        for step in range(1, count):
            idx = (current + step) % count
            if self.columns[idx].column.sortable():
                return idx
        return current

    def dec_sort_column(self) -> int:
        """Index of the previous sortable column, wrapping around."""
        current = self.sort_info.idx
        count = len(self.columns)
        for step in range(1, count):
            idx = (current + count - step) % count
            if self.columns[idx].column.sortable():
                return idx
        return current