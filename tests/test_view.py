import io
import os
import sys
from types import SimpleNamespace

import pytest

from procview.config import (
    ColumnStyleKind,
    Config,
    ConfigColumnAlign,
    ConfigColumnStyle,
    ConfigPagerMode,
    ConfigSearchLogic,
    ConfigSortOrder,
    ConfigTheme,
)
from procview.style import colors_enabled, set_colors_enabled
from procview.term_info import TermInfo
from procview.util import ArgColorMode, ArgPagerMode, adjust
from procview.view import ColumnInfo, SortInfo, View, ViewOptions, build_relations

BASE = 4_000_000_000
A, B, C, D = BASE + 1, BASE + 2, BASE + 3, BASE + 4


class FakeColumn:
    def __init__(self, values, header, sortable=True):
        self.values = dict(values)
        self.header = header
        self._sortable = sortable
        self.width = 0
        self.visible = None
        self.order = "unset"

    def find_partial(self, pid, keyword, content_to_lowercase):
        content = self.values.get(pid, "")
        if content_to_lowercase:
            content = content.lower()
        return keyword in content

    def find_exact(self, pid, keyword, content_to_lowercase):
        content = self.values.get(pid, "")
        if content_to_lowercase:
            content = content.lower()
        return keyword == content

    def sorted_pid(self, order):
        return sorted(
            self.values,
            key=lambda p: (self.values[p], p),
            reverse=order is ConfigSortOrder.DESCENDING,
        )

    def apply_visible(self, visible_pids):
        self.visible = list(visible_pids)

    def reset_width(self, order, config, max_width, min_width):
        self.order = order
        self.width = max(len(self.header), min_width or 0)

    def update_width(self, pid, max_width):
        self.width = max(self.width, len(self.values[pid]))
        if max_width is not None:
            self.width = min(self.width, max_width)

    def get_width(self):
        return self.width

    def display_header(self, align, order, config):
        return adjust(self.header, self.width, align)

    def display_unit(self, align):
        return adjust("", self.width, align)

    def display_content(self, pid, align):
        if pid not in self.values:
            return None
        return adjust(self.values[pid], self.width, align)

    def sortable(self):
        return self._sortable


def info(column, *, nonnumeric=False, numeric=False, visible=True, min_width=None):
    return ColumnInfo(
        column=column,
        kind=column.header,
        style=ConfigColumnStyle(ColumnStyleKind.BY_UNIT),
        nonnumeric_search=nonnumeric,
        numeric_search=numeric,
        align=ConfigColumnAlign.LEFT,
        min_width=min_width,
        visible=visible,
    )


def make_view(columns, *, height=50, width=200, parents=None, children=None,
              sort_idx=0, order=ConfigSortOrder.ASCENDING):
    stream = io.StringIO()
    term = TermInfo(stream=stream, size=(height, width), is_terminal=False)
    view = View(
        columns=columns,
        term_info=term,
        sort_info=SortInfo(sort_idx, order),
        parent_pids=parents or {},
        child_pids=children or {},
    )
    return view, stream


def names():
    return FakeColumn({A: "bash", B: "python", C: "vim", D: "zsh"}, "Name")


def pid_column(pids=(A, B, C, D)):
    return FakeColumn({p: str(p) for p in pids}, "PID")


def plain_config():
    config = Config(columns=[])
    config.pager.mode = ConfigPagerMode.DISABLE
    return config


def output_lines(stream):
    return stream.getvalue().splitlines()


# ---------------------------------------------------------------------------
# build_relations
# ---------------------------------------------------------------------------


def test_build_relations_maps_parents_and_children():
    procs = [
        SimpleNamespace(pid=A, ppid=1),
        SimpleNamespace(pid=B, ppid=A),
        SimpleNamespace(pid=C, ppid=A),
    ]
    parents, children = build_relations(procs)
    assert parents == {A: 1, B: A, C: A}
    assert children == {1: [A], A: [B, C]}


# ---------------------------------------------------------------------------
# filter
# ---------------------------------------------------------------------------


def test_filter_without_keywords_shows_all_in_sort_order():
    column = pid_column()
    view, _ = make_view([info(column)])
    view.filter(ViewOptions(), plain_config(), 1)
    assert view.visible_pids == [A, B, C, D]
    assert view.auxiliary_pids == []


def test_filter_descending_order():
    view, _ = make_view([info(pid_column())], order=ConfigSortOrder.DESCENDING)
    view.filter(ViewOptions(), plain_config(), 1)
    assert view.visible_pids == [D, C, B, A]


def test_filter_partial_nonnumeric_keyword():
    view, _ = make_view([info(names(), nonnumeric=True), info(pid_column())])
    view.filter(ViewOptions(keyword=["py"]), plain_config(), 1)
    assert view.visible_pids == [B]


def test_filter_numeric_keyword_is_exact():
    view, _ = make_view([info(names(), nonnumeric=True), info(pid_column(), numeric=True)])
    view.filter(ViewOptions(keyword=[str(C)]), plain_config(), 1)
    assert view.visible_pids == [C]


def test_filter_or_logic():
    view, _ = make_view([info(names(), nonnumeric=True)])
    options = ViewOptions(keyword=["bash", "zsh"], logic=ConfigSearchLogic.OR)
    view.filter(options, plain_config(), 1)
    assert view.visible_pids == [A, D]


def test_filter_logic_from_config():
    view, _ = make_view([info(names(), nonnumeric=True)])
    config = plain_config()
    config.search.logic = ConfigSearchLogic.NOR
    view.filter(ViewOptions(keyword=["bash", "zsh"]), config, 1)
    assert view.visible_pids == [B, C]


def test_filter_nand_inverts_and():
    view, _ = make_view([info(names(), nonnumeric=True)])
    view.filter(ViewOptions(keyword=["vim"], logic=ConfigSearchLogic.NAND), plain_config(), 1)
    assert view.visible_pids == [A, B, D]


def test_filter_hides_self_unless_configured():
    me = os.getpid()
    column = FakeColumn({A: "a", me: "me"}, "Name")
    view, _ = make_view([info(column)])
    config = plain_config()
    view.filter(ViewOptions(), config, 1)
    assert me not in view.visible_pids
    assert A in view.visible_pids

    config.display.show_self = True
    view.filter(ViewOptions(), config, 1)
    assert me in view.visible_pids


def test_filter_hides_single_child_parents_of_self():
    me = os.getpid()
    parent = BASE + 100
    column = FakeColumn({A: "a", me: "me", parent: "shell"}, "Name")
    view, _ = make_view(
        [info(column)],
        parents={me: parent},
        children={parent: [me]},
    )
    config = plain_config()
    view.filter(ViewOptions(), config, 1)
    assert view.visible_pids == [A]

    config.display.show_self = True
    config.display.show_self_parents = True
    view.filter(ViewOptions(), config, 1)
    assert sorted(view.visible_pids) == sorted([A, me, parent])


def test_filter_tree_adds_relatives_as_auxiliary():
    procs = [
        SimpleNamespace(pid=A, ppid=1),
        SimpleNamespace(pid=B, ppid=A),
        SimpleNamespace(pid=C, ppid=B),
        SimpleNamespace(pid=D, ppid=1),
    ]
    parents, children = build_relations(procs)
    view, _ = make_view([info(names(), nonnumeric=True), info(pid_column())],
                        parents=parents, children=children, sort_idx=1)
    view.filter(ViewOptions(keyword=["python"], tree=True), plain_config(), 1)
    assert view.visible_pids == [A, B, C]
    assert A in view.auxiliary_pids
    assert C in view.auxiliary_pids
    assert B not in view.auxiliary_pids


def test_filter_tree_without_parents():
    procs = [
        SimpleNamespace(pid=A, ppid=1),
        SimpleNamespace(pid=B, ppid=A),
        SimpleNamespace(pid=C, ppid=B),
    ]
    parents, children = build_relations(procs)
    view, _ = make_view([info(names(), nonnumeric=True), info(pid_column((A, B, C)))],
                        parents=parents, children=children, sort_idx=1)
    config = plain_config()
    config.display.show_parent_in_tree = False
    view.filter(ViewOptions(keyword=["python"], tree=True), config, 1)
    assert view.visible_pids == [B, C]


def test_filter_watch_mode_limits_rows_to_terminal():
    pids = [BASE + i for i in range(1, 9)]
    view, _ = make_view([info(pid_column(pids))], height=10)
    view.filter(ViewOptions(watch_mode=True), plain_config(), 1)
    assert len(view.visible_pids) == 5
    assert view.visible_pids == pids[: len(view.visible_pids)]


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("keyword", "logic", "expected"),
    [
        ("bash", ConfigSearchLogic.AND, True),
        ("bash", ConfigSearchLogic.OR, True),
        ("bash", ConfigSearchLogic.NAND, False),
        ("bash", ConfigSearchLogic.NOR, False),
        ("fish", ConfigSearchLogic.AND, False),
        ("fish", ConfigSearchLogic.NAND, True),
    ],
)
def test_search_combines_kinds(keyword, logic, expected):
    column = names()
    view, _ = make_view([info(column, nonnumeric=True)])
    assert view.search(A, [], [keyword], [], [column], plain_config(), logic) is expected


# ---------------------------------------------------------------------------
# adjust
# ---------------------------------------------------------------------------


def test_adjust_passes_order_and_min_widths():
    name_col = names()
    pid_col = pid_column()
    view, _ = make_view([info(name_col), info(pid_col, min_width=12)],
                        sort_idx=1, order=ConfigSortOrder.DESCENDING)
    view.filter(ViewOptions(), plain_config(), 1)
    view.adjust(plain_config(), {0: 20})
    assert name_col.order is None
    assert pid_col.order is ConfigSortOrder.DESCENDING
    assert name_col.visible == view.visible_pids
    assert name_col.get_width() == 20
    assert pid_col.get_width() == 12


# ---------------------------------------------------------------------------
# display
# ---------------------------------------------------------------------------


def run_display(view, options, config):
    view.filter(options, config, 1)
    view.adjust(config, {})
    view.display(options, config, ConfigTheme.DARK)


def test_display_writes_header_unit_and_rows():
    view, stream = make_view([info(names(), nonnumeric=True), info(pid_column())])
    options = ViewOptions(keyword=["bash", "zsh"], logic=ConfigSearchLogic.OR,
                          color=ArgColorMode.DISABLE)
    run_display(view, options, plain_config())
    lines = output_lines(stream)
    assert len(lines) == 2 + len(view.visible_pids)
    assert lines[0].split() == ["Name", "PID"]
    assert lines[1].strip() == ""
    assert lines[2].split() == ["bash", str(A)]
    assert lines[3].split() == ["zsh", str(D)]


def test_display_footer_and_no_header():
    config = plain_config()
    config.display.show_footer = True
    view, stream = make_view([info(names())])
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE), config)
    lines = output_lines(stream)
    assert len(lines) == 4 + 4
    assert lines[-1].split() == ["Name"]

    view, stream = make_view([info(names())])
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE, no_header=True), config)
    assert len(output_lines(stream)) == 4
    assert all("Name" not in line for line in output_lines(stream))


def test_display_skips_invisible_columns():
    view, stream = make_view([info(names()), info(pid_column(), visible=False)])
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE), plain_config())
    lines = output_lines(stream)
    assert lines[0].split() == ["Name"]
    assert all(str(A) not in line for line in lines)


def test_display_without_cut_uses_unlimited_width():
    view, _ = make_view([info(names())], width=6)
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE), plain_config())
    assert view.term_info.width == sys.maxsize


def test_display_cut_to_pipe_truncates_rows():
    config = plain_config()
    config.display.cut_to_pipe = True
    view, stream = make_view([info(names()), info(pid_column())], width=6)
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE), config)
    lines = output_lines(stream)
    assert len(lines) == 6
    assert all(len(line) <= 6 for line in lines)


def test_display_pager_always_gives_same_output():
    view, plain_stream = make_view([info(names())])
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE), plain_config())

    paged, paged_stream = make_view([info(names())])
    run_display(paged, ViewOptions(color=ArgColorMode.DISABLE, pager=ArgPagerMode.ALWAYS),
                plain_config())
    assert paged.term_info.use_pager is True
    assert paged_stream.getvalue() == plain_stream.getvalue()


def test_display_pager_auto_depends_on_height_and_watch_mode():
    config = plain_config()
    config.pager.mode = ConfigPagerMode.AUTO
    view, _ = make_view([info(names())], height=3)
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE), config)
    assert view.term_info.use_pager is True

    view, _ = make_view([info(names())], height=100)
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE), config)
    assert view.term_info.use_pager is False

    view, _ = make_view([info(names())], height=3)
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE, watch_mode=True), config)
    assert view.term_info.use_pager is False


def test_display_color_always_emits_escapes():
    view, stream = make_view([info(names())])
    try:
        run_display(view, ViewOptions(color=ArgColorMode.ALWAYS), plain_config())
        assert colors_enabled() is True
        assert "\x1b[" in stream.getvalue()
    finally:
        set_colors_enabled(False)


def test_display_color_disable_emits_plain_text():
    view, stream = make_view([info(names())])
    run_display(view, ViewOptions(color=ArgColorMode.DISABLE), plain_config())
    assert colors_enabled() is False
    assert "\x1b" not in stream.getvalue()


def test_display_missing_content_raises():
    view, _ = make_view([info(names())])
    view.adjust(plain_config(), {})
    view.visible_pids = [BASE + 999]
    with pytest.raises(KeyError):
        view.display(ViewOptions(color=ArgColorMode.DISABLE), plain_config(), ConfigTheme.DARK)


# ---------------------------------------------------------------------------
# sort column navigation
# ---------------------------------------------------------------------------


def test_inc_and_dec_skip_unsortable_columns():
    cols = [
        info(names()),
        info(FakeColumn({}, "Tree", sortable=False)),
        info(pid_column()),
    ]
    view, _ = make_view(cols, sort_idx=0)
    assert view.inc_sort_column() == 2
    assert view.dec_sort_column() == 2
    view.sort_info.idx = 2
    assert view.inc_sort_column() == 0
    assert view.dec_sort_column() == 0


def test_sort_column_stays_when_nothing_else_sortable():
    cols = [info(names()), info(FakeColumn({}, "Tree", sortable=False))]
    view, _ = make_view(cols, sort_idx=0)
    assert view.inc_sort_column() == 0
    assert view.dec_sort_column() == 0