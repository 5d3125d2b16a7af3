"""Plain-text rendering of summarize results.

Count tables are drawn with rich and captured as text with styling off,
so output is identical on a terminal and in a pipe.
"""

import io

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from photocat.models.summary import CountTable, SummaryResult
from photocat.services.heatmap import HeatmapRenderer

MISSING_LABEL = "<missing>"


def _label(value: str | None) -> Text:
    return Text(MISSING_LABEL if value is None else value)


def _axis(values: set[str | None]) -> list[str | None]:
    return sorted(values, key=lambda value: (value is None, value or ""))


def _render(table: Table) -> str:
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        width=1000,
        color_system=None,
        highlight=False,
        emoji=False,
        markup=False,
        legacy_windows=False,
    )
    console.print(table)
    return buffer.getvalue().rstrip("\n")


def build_count_table(table: CountTable) -> Table:
    """Lay out one count table.

    One field gives value and count columns. Two fields give a cross
    table with the first field down the side and the second across the
    top. More fields give one column per field plus a count column.
    """
    if len(table.fields) == 2:
        return _cross_table(table)

    rendered = Table(box=box.ROUNDED)
    for field in table.fields:
        rendered.add_column(Text(field))
    rendered.add_column(Text("Count"), justify="right")
    for item in table.counts:
        rendered.add_row(*(_label(value) for value in item.values), Text(str(item.count)))
    return rendered


def _cross_table(table: CountTable) -> Table:
    down, across = table.fields
    cells = {item.values: item.count for item in table.counts}
    rows = _axis({values[0] for values in cells})
    columns = _axis({values[1] for values in cells})

    rendered = Table(box=box.ROUNDED)
    rendered.add_column(Text(f"↓{down}  {across} →"))
    for value in columns:
        rendered.add_column(_label(value), justify="right")
    for row in rows:
        rendered.add_row(_label(row), *(Text(str(cells.get((row, column), 0))) for column in columns))
    return rendered


def format_count_table(table: CountTable) -> str:
    return f"count:{table.key}\n{_render(build_count_table(table))}"


def format_summary(result: SummaryResult, renderer: HeatmapRenderer | None = None) -> str:
    """Render totals followed by count tables or the calendar heatmap."""
    sections = [f"#total:{result.total}\n#no_exif_date:{result.no_exif_date}"]

    if result.tables:
        sections.extend(format_count_table(table) for table in result.tables)
    elif result.first_day is not None and result.last_day is not None:
        renderer = renderer or HeatmapRenderer()
        grid = renderer.render(result.daily_counts, result.first_day, result.last_day, result.months_per_row)
        if grid:
            sections.append(grid)

    if result.total == 0:
        sections.append("No matching rows.")
    return "\n\n".join(sections)
