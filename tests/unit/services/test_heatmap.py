"""Unit tests for the calendar heatmap."""

from datetime import date

import pytest

from photocat.services.heatmap import RAMP, HeatmapRenderer, iter_months


@pytest.fixture
def renderer() -> HeatmapRenderer:
    return HeatmapRenderer()


def test_iter_months_crosses_year_boundary() -> None:
    months = list(iter_months(date(2023, 11, 20), date(2024, 2, 1)))

    assert months == [(2023, 11), (2023, 12), (2024, 1), (2024, 2)]


class TestRenderMonth:
    """Tests for a single month block."""

    def test_empty_month_has_header_and_idle_cells(self, renderer: HeatmapRenderer) -> None:
        lines = renderer.render_month({}, 2024, 2).split("\n")

        assert lines[0] == "FEB 2024"
        assert [line[:3] for line in lines[1:]] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
        cells = "".join(line[4:] for line in lines[1:])
        assert cells.count(RAMP[0]) == 29
        assert not any(level in cells for level in RAMP[1:])

    def test_rows_have_one_column_per_week(self, renderer: HeatmapRenderer) -> None:
        # March 2024 starts on a Friday and spans six weeks.
        lines = renderer.render_month({}, 2024, 3).split("\n")

        assert {len(line) for line in lines[1:]} == {len("Sun ") + 6}
        assert lines[1] == "Sun  ·····"
        assert lines[6] == "Fri ····· "

    def test_levels_scale_against_busiest_day(self, renderer: HeatmapRenderer) -> None:
        counts = {date(2024, 2, 1): 4, date(2024, 2, 2): 1, date(2024, 2, 3): 2, date(2024, 2, 4): 3}

        lines = renderer.render_month(counts, 2024, 2).split("\n")

        assert lines[1] == "Sun  ▓···"
        assert lines[5] == "Thu █····"
        assert lines[6] == "Fri ░··· "
        assert lines[7] == "Sat ▒··· "


class TestRender:
    """Tests for multi-month rendering."""

    def test_blocks_are_separated_by_blank_line(self, renderer: HeatmapRenderer) -> None:
        output = renderer.render({date(2024, 1, 2): 1}, date(2023, 12, 30), date(2024, 1, 2))

        blocks = output.split("\n\n")
        assert [block.split("\n")[0] for block in blocks] == ["DEC 2023", "JAN 2024"]
        assert "█" in blocks[1]
        assert "█" not in blocks[0]

    def test_reversed_span_renders_nothing(self, renderer: HeatmapRenderer) -> None:
        assert renderer.render({}, date(2024, 2, 1), date(2024, 1, 1)) == ""

    def test_custom_ramp(self) -> None:
        renderer = HeatmapRenderer(ramp=(".", "#"))

        lines = renderer.render_month({date(2024, 2, 1): 1}, 2024, 2).split("\n")

        assert lines[5] == "Thu #...."

    @pytest.mark.parametrize("ramp", [("x",), ("a", "bb"), ()])
    def test_rejects_bad_ramp(self, ramp: tuple[str, ...]) -> None:
        with pytest.raises(ValueError):
            HeatmapRenderer(ramp=ramp)


class TestWrappedRender:
    """Tests for months laid side by side."""

    def test_months_share_weekday_labels(self, renderer: HeatmapRenderer) -> None:
        output = renderer.render({}, date(2024, 2, 1), date(2024, 3, 31), months_per_row=2)

        lines = output.split("\n")
        assert len(lines) == 8
        assert lines[0] == "    FEB 2024  MAR 2024"
        assert lines[1] == "Sun  ····      ·····  "
        assert [line[:3] for line in lines[1:]] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

    def test_rows_break_after_months_per_row(self, renderer: HeatmapRenderer) -> None:
        output = renderer.render({date(2024, 4, 9): 2}, date(2024, 1, 1), date(2024, 4, 30), months_per_row=3)

        blocks = output.split("\n\n")
        assert [block.split("\n")[0].split() for block in blocks] == [
            ["JAN", "2024", "FEB", "2024", "MAR", "2024"],
            ["APR", "2024"],
        ]
        assert "█" in blocks[1]

    def test_cells_match_stacked_layout(self, renderer: HeatmapRenderer) -> None:
        counts = {date(2024, 2, 1): 4, date(2024, 2, 2): 1}

        stacked = renderer.render_month(counts, 2024, 2).split("\n")
        wrapped = renderer.render(counts, date(2024, 2, 1), date(2024, 2, 29), months_per_row=1).split("\n")

        assert [line.rstrip() for line in wrapped[1:]] == [line.rstrip() for line in stacked[1:]]
