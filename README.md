# procview

`procview` provides the parts needed to print a `ps`-like process table in
a terminal:

- a TOML configuration model (`procview.config`)
- keyword search with AND/OR/NAND/NOR logic and text layout helpers (`procview.util`)
- ANSI colouring for dark and light terminals (`procview.style`)
- terminal output with a built-in pager (`procview.term_info`)
- a table view that filters, sizes and prints rows, with a tree mode that adds parents and children (`procview.view`)

It needs Python 3.11 or later. It depends on `tomli-w` and `wcwidth`.

## Configuration

A configuration is a TOML document. The `columns` array is required. Every
other section (`style`, `search`, `display`, `sort`, `docker`, `pager`) has
defaults. Keys the model does not know are ignored. Invalid values raise
`procview.config.ConfigError`.

```python
from procview.config import load_config, dump_config

config = load_config("""
[[columns]]
kind = "Pid"
style = "BrightYellow|Yellow"
numeric_search = true

[[columns]]
kind = "Command"
style = "BrightWhite|Black"
nonnumeric_search = true

[search]
logic = "Or"
case = "Smart"

[display]
theme = "Dark"
""")

print(dump_config(config))
```

You can give a colour as a name (`BrightRed`, `Green`, ...) or as a number
from 0 to 255 for the 256-colour palette (`Color256`). Write `dark|light`
to use a different colour for each theme. A column style is `ByPercentage`,
`ByState`, `ByUnit`, or a fixed colour.

The text forms can also be converted directly:

```python
from procview.config import deserialize_color_by_theme, serialize_color_by_theme

color = deserialize_color_by_theme("BrightBlue|Blue")
assert serialize_color_by_theme(color) == "BrightBlue|Blue"
```

`config_from_dict` and `config_to_dict` do the same conversion using plain
data instead of TOML text.

## Text helpers

```python
from procview.util import parse_time, truncate, bytify, classify, KeywordClass

parse_time(3725)        # "01:02:05"
parse_time(90061)       # "1.0days"
truncate("hello", 3)    # "hel"; ANSI colour sequences are kept and not counted
bytify(1024)            # "1.000K"
classify("42") is KeywordClass.NUMERIC
```

`adjust(text, width, align)` pads or cuts text to an exact display width.

`find_partial` and `find_exact` match keywords against columns under the
configured search logic and case rule.

`get_theme(theme_override, config)` resolves the `Auto` theme by asking the
terminal for its background colour. It falls back to `Dark` when the answer
cannot be read.

## Colouring

`procview.style.apply_color(text, color, theme, faded)` and
`apply_style(text, column_style, style, theme, faded)` wrap cell text in
escape sequences. The theme must already be `Dark` or `Light`.

`set_colors_enabled` turns colour output on or off for the whole process.
`colors_enabled` reports the current setting. It follows `CLICOLOR` and
`CLICOLOR_FORCE`, and otherwise whether stdout is a terminal.

## Views

`procview.view.View` holds the following:

- a list of `ColumnInfo`
- a `TermInfo`
- a `SortInfo`
- the parent and child maps

You can get the parent and child maps from any records that have `pid` and
`ppid` attributes, using `build_relations(processes)`.

Each column object must provide these methods:

- `find_partial`
- `find_exact`
- `sorted_pid`
- `apply_visible`
- `reset_width`
- `update_width`
- `get_width`
- `display_header`
- `display_unit`
- `display_content`
- `sortable`

Once the view is built, call these in order:

1. `view.filter(options, config, header_lines)` picks the rows that match
   the keywords in `ViewOptions`. It hides the current process and its
   lone-child ancestors unless the configuration says otherwise. In tree
   mode it adds related processes as auxiliary rows.
2. `view.adjust(config, min_widths)` works out the column widths.
3. `view.display(options, config, theme)` writes the header, the unit line,
   the rows and an optional footer. When the rows do not fit, it uses the
   built-in pager.

`inc_sort_column()` returns the index of the next sortable column, and
`dec_sort_column()` the index of the previous one.

`TermInfo` can write to any text stream with a given size. This makes it
usable outside a real terminal.

## What this package does not do

- It does not read process information from the system.
- It provides no column implementations. The caller supplies the objects
  that hold each column's data.
- It installs no command-line program.