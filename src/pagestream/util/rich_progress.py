from __future__ import annotations

import sys
from typing import Any, Dict, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table


def _stderr_console() -> Console:
    return Console(file=sys.stderr)


class PageProgress:
    """
    Spinner with page and item counters for CLI runs. A no-op when disabled.
    """

    def __init__(self, *, enabled: bool, console: Optional[Console] = None) -> None:
        self._enabled = bool(enabled)
        self._console = console or _stderr_console()
        self._progress: Optional[Progress] = None
        self._task: Optional[Any] = None
        self._pages = 0
        self._items = 0
        self._started = False
        if self._enabled:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                TextColumn("pages={task.fields[pages]} items={task.fields[items]}"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )

    def __enter__(self) -> PageProgress:
        if self._enabled and self._progress and not self._started:
            self._progress.start()
            self._task = self._progress.add_task("Paging", total=None, pages=0, items=0)
            self._started = True
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        if self._enabled and self._progress and self._started:
            self._progress.stop()
            self._started = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def pages(self) -> int:
        return self._pages

    @property
    def items(self) -> int:
        return self._items

    def update(self, *, pages: int, items: int) -> None:
        self._pages = pages
        self._items = items
        if not self._enabled or not self._progress or self._task is None:
            return
        self._progress.update(self._task, pages=pages, items=items)


def render_summary_table(
    *,
    enabled: bool,
    status: str,
    metrics: Dict[str, Any],
    console: Optional[Console] = None,
) -> None:
    if not enabled:
        return
    table = Table(title="Paging Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Status", status)
    table.add_row("URL", str(metrics.get("url", "")))
    table.add_row("Pages fetched", str(metrics.get("pages", 0)))
    table.add_row("Items written", str(metrics.get("items", 0)))
    table.add_row("Output", str(metrics.get("output") or "stdout"))
    (console or _stderr_console()).print(table)
