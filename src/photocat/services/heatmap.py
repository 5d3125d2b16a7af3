"""Calendar heatmap of per-day counts, one block per month.

Each block is a month header followed by seven rows (Sun to Sat) and one
column per week of the month::

    MAR 2024
    Sun  ·····
    Mon  ··░·
    ...

With wrapping on, several months share one set of weekday labels and sit
side by side, each padded to the width of its header.
"""

import calendar
import math
from collections.abc import Iterator, Mapping
from datetime import date

RAMP: tuple[str, ...] = ("·", "░", "▒", "▓", "█")
WEEKDAYS: tuple[str, ...] = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTHS: tuple[str, ...] = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")


def iter_months(first: date, last: date) -> Iterator[tuple[int, int]]:
    """Yield ``(year, month)`` from ``first``'s month through ``last``'s month."""
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


class HeatmapRenderer:
    """Renders day counts as fixed-width text grids.

    A day's cell is picked from ``ramp`` by scaling its count against the
    busiest day of the same month; zero-count days use ``ramp[0]`` and
    padding cells outside the month are blank.
    """

    def __init__(self, ramp: tuple[str, ...] = RAMP) -> None:
        if len(ramp) < 2 or any(len(cell) != 1 for cell in ramp):
            raise ValueError("ramp needs at least two single-character cells")
        self._ramp = ramp

    def render(
        self,
        counts: Mapping[date, int],
        first: date,
        last: date,
        months_per_row: int | None = None,
    ) -> str:
        """Render every month from ``first`` through ``last``.

        Months are stacked one below the other, or laid side by side in
        rows of ``months_per_row`` when it is given.
        """
        if last < first:
            return ""
        months = list(iter_months(first, last))
        if not months_per_row:
            return "\n\n".join(self.render_month(counts, year, month) for year, month in months)
        return "\n\n".join(
            self._render_row(counts, months[start : start + months_per_row])
            for start in range(0, len(months), months_per_row)
        )

    def render_month(self, counts: Mapping[date, int], year: int, month: int) -> str:
        header, rows = self._month_grid(counts, year, month)
        lines = [header]
        lines.extend(f"{name} {row}" for name, row in zip(WEEKDAYS, rows))
        return "\n".join(lines)

    def _render_row(self, counts: Mapping[date, int], months: list[tuple[int, int]]) -> str:
        grids = [self._month_grid(counts, year, month) for year, month in months]
        widths = [max(len(header), len(rows[0])) for header, rows in grids]
        indent = " " * (len(WEEKDAYS[0]) + 1)

        lines = [indent + "  ".join(header.ljust(width) for (header, _), width in zip(grids, widths))]
        for index, name in enumerate(WEEKDAYS):
            cells = "  ".join(rows[index].ljust(width) for (_, rows), width in zip(grids, widths))
            lines.append(f"{name} {cells}")
        return "\n".join(lines)

    def _month_grid(self, counts: Mapping[date, int], year: int, month: int) -> tuple[str, list[str]]:
        days_in_month = calendar.monthrange(year, month)[1]
        # Column offset of day 1 with Sunday as the first row.
        offset = (date(year, month, 1).weekday() + 1) % 7
        weeks = math.ceil((offset + days_in_month) / 7)

        month_counts = [counts.get(date(year, month, day), 0) for day in range(1, days_in_month + 1)]
        peak = max(month_counts)

        grid = [[" "] * weeks for _ in WEEKDAYS]
        for day, count in enumerate(month_counts, start=1):
            slot = offset + day - 1
            grid[slot % 7][slot // 7] = self._cell(count, peak)

        return f"{MONTHS[month - 1]} {year}", ["".join(row) for row in grid]

    def _cell(self, count: int, peak: int) -> str:
        if count <= 0 or peak <= 0:
            return self._ramp[0]
        steps = len(self._ramp) - 1
        return self._ramp[min(steps, math.ceil(steps * count / peak))]
