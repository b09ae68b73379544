"""
Report generation for benchmark results.

Results are printed, never written to disk.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from labbench.session import BenchmarkResult, PairResult

logger = logging.getLogger(__name__)

COLUMNS = ("Operation", "File", "Size", "Trials", "Mean (s)", "Std dev (s)", "Throughput")


def format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size_bytes} B"


class ReportGenerator:
    """Renders a benchmark result as a table."""

    def __init__(self, result: BenchmarkResult, console: Console | None = None):
        self.result = result
        self.console = console or Console()

    def _row(self, row: PairResult) -> list[str]:
        cells = [
            row.operation.value,
            escape(str(row.target.path)),
            format_size(row.target.size_bytes),
        ]
        if row.stats is None:
            cells.append(f"{row.trials_completed}/{self.result.repeats}")
            cells.extend(["[red]missing[/red]", "", ""])
            return cells

        stats = row.stats
        cells.extend([
            str(stats.count),
            f"{stats.mean_s:.3f}",
            f"{stats.std_s:.3f}",
            f"{stats.throughput_mib_s(row.target.size_bytes):.1f} MiB/s",
        ])
        return cells

    def build_table(self) -> Table:
        """One row per (operation, file) pair, in run order."""
        table = Table(title=f"Benchmark results ({self.result.repeats} trials per pair)")
        for name in COLUMNS:
            justify = "left" if name in ("Operation", "File") else "right"
            table.add_column(name, justify=justify)

        for row in self.result.rows:
            table.add_row(*self._row(row))
        return table

    def print_report(self) -> None:
        """Print the results table, then any pairs that could not be measured."""
        self.console.print(self.build_table())

        for row in self.result.missing:
            self.console.print(
                f"[red]Missing:[/red] {row.operation.value} on {escape(str(row.target.path))}: {escape(row.error or '')}",
                highlight=False,
            )

        self.console.print(f"Wall clock time: {self.result.wall_time_s:.2f}s")
        logger.debug(f"Printed {len(self.result.rows)} result rows")
