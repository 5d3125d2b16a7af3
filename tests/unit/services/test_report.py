"""Unit tests for summarize output formatting."""

from datetime import date

from photocat.models.summary import CountTable, SummaryResult, ValueCount
from photocat.services.report import format_count_table, format_summary


def _cells(text: str) -> list[list[str]]:
    """Cell text of every table row, header first."""
    return [[cell.strip() for cell in line.split("│")[1:-1]] for line in text.split("\n") if "│" in line]


def _counts(*rows: tuple) -> list[ValueCount]:
    return [ValueCount(values=row[:-1], count=row[-1]) for row in rows]


def test_single_field_table_labels_missing_values() -> None:
    table = CountTable(fields=("Lens",), counts=_counts(("85mm f/1.8", 52), (None, 3)))

    output = format_count_table(table)

    lines = output.split("\n")
    assert lines[0] == "count:Lens"
    assert lines[1].startswith("╭")
    assert lines[-1].startswith("╰")
    assert _cells(output) == [["Lens", "Count"], ["85mm f/1.8", "52"], ["<missing>", "3"]]


def test_counts_are_right_aligned() -> None:
    table = CountTable(fields=("Lens",), counts=_counts(("A", 120), ("B", 3)))

    rows = [line.rstrip() for line in format_count_table(table).split("\n") if "│" in line]

    assert rows[1].endswith("120 │")
    assert rows[2].endswith("  3 │")


def test_two_fields_render_cross_table() -> None:
    table = CountTable(
        fields=("Lens", "Model"),
        counts=_counts(("50mm", "A7", 2), ("85mm", "A7", 1), ("50mm", None, 1)),
    )

    output = format_count_table(table)

    assert output.split("\n")[0] == "count:Lens+Model"
    assert _cells(output) == [
        ["↓Lens  Model →", "A7", "<missing>"],
        ["50mm", "2", "1"],
        ["85mm", "1", "0"],
    ]


def test_three_fields_render_one_column_each() -> None:
    table = CountTable(fields=("Lens", "Model", "ISO"), counts=_counts(("50mm", "A7", "100", 4)))

    assert _cells(format_count_table(table)) == [["Lens", "Model", "ISO", "Count"], ["50mm", "A7", "100", "4"]]


def test_values_are_not_read_as_markup() -> None:
    table = CountTable(fields=("Lens",), counts=_counts(("[bold]x[/bold]", 1)))

    assert _cells(format_count_table(table))[1] == ["[bold]x[/bold]", "1"]


def test_summary_starts_with_totals() -> None:
    result = SummaryResult(
        total=128,
        no_exif_date=4,
        tables=[CountTable(fields=("Lens",), counts=_counts(("85mm f/1.8", 128)))],
    )

    lines = format_summary(result).split("\n")

    assert lines[:2] == ["#total:128", "#no_exif_date:4"]
    assert lines[3] == "count:Lens"


def test_summary_renders_tables_in_order() -> None:
    result = SummaryResult(
        total=1,
        no_exif_date=0,
        tables=[
            CountTable(fields=("Lens",), counts=_counts(("X", 1))),
            CountTable(fields=("Model",), counts=_counts(("M", 1))),
        ],
    )

    output = format_summary(result)

    assert output.index("count:Lens") < output.index("count:Model")


def test_summary_without_counts_renders_heatmap() -> None:
    result = SummaryResult(
        total=2,
        no_exif_date=0,
        daily_counts={date(2023, 3, 5): 2},
        first_day=date(2023, 3, 5),
        last_day=date(2023, 3, 5),
    )

    output = format_summary(result)

    assert output.startswith("#total:2\n#no_exif_date:0\n\nMAR 2023\n")
    assert "█" in output


def test_summary_wraps_heatmap_months() -> None:
    result = SummaryResult(
        total=1,
        no_exif_date=0,
        daily_counts={date(2023, 4, 5): 1},
        first_day=date(2023, 3, 1),
        last_day=date(2023, 4, 30),
        months_per_row=2,
    )

    output = format_summary(result)

    assert "    MAR 2023  APR 2023" in output.split("\n")


def test_empty_summary_with_span_still_draws_grid() -> None:
    result = SummaryResult(total=0, no_exif_date=0, first_day=date(2024, 3, 1), last_day=date(2024, 3, 31))

    output = format_summary(result)

    assert output.startswith("#total:0\n#no_exif_date:0\n\nMAR 2024\n")
    assert output.endswith("No matching rows.")


def test_empty_summary_says_so() -> None:
    output = format_summary(SummaryResult(total=0, no_exif_date=0))

    assert output == "#total:0\n#no_exif_date:0\n\nNo matching rows."
