import logging
import threading
import time
from typing import List, Optional

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from spacesaver.domain.models import InPlaceCompressionResult, ScanResult
from spacesaver.ui.formatting import format_size, format_time, percentage, shorten_path
from spacesaver.ui.state import UIState


class Dashboard:
    """Live progress view of a compression run, redrawn from UIState."""

    def __init__(self, state: UIState, max_in_flight: int = 8, console: Optional[Console] = None):
        self.state = state
        self.max_in_flight = max_in_flight
        self.console = console or Console()
        self.logger = logging.getLogger(__name__)
        self._live: Optional[Live] = None
        self._refresh_thread: Optional[threading.Thread] = None
        self._stop_refresh = threading.Event()
        self._ui_lock = threading.Lock()

    def _generate_progress(self) -> Panel:
        with self.state._lock:
            total = self.state.total_files
            done = self.state.completed_count
            pct = percentage(done, total)
            elapsed = None
            if self.state.elapsed_seconds is not None:
                elapsed = self.state.elapsed_seconds
            elif self.state.processing_start_time:
                elapsed = time.time() - self.state.processing_start_time.timestamp()

            bar = ProgressBar(total=max(total, 1), completed=done, width=None)
            bar_grid = Table.grid(padding=(0, 1))
            bar_grid.add_row(bar, f"{done}/{total}", "•", f"{pct:.1f}%", "•", format_time(elapsed))

            header = (
                f"[green]{self.state.succeeded_count} ok[/] • [red]{self.state.failed_count} failed[/] • "
                f"saved [bold]{format_size(self.state.total_savings)}[/] • "
                f"{self.state.worker_count} workers (pool {self.state.pool_size})"
            )
            rows: List[RenderableType] = [header, bar_grid]
            if self.state.pool_error:
                rows.append(Text(f"Internal error: {self.state.pool_error}", style="bold red"))
            elif self.state.cancel_requested and not self.state.finished:
                rows.append(Text("Cancelling - waiting for in-flight files...", style="yellow"))
            elif self.state.finished:
                label = "CANCELLED" if self.state.cancelled else "FINISHED"
                rows.append(Text(label, style="bold yellow" if self.state.cancelled else "bold green"))
        return Panel(Group(*rows), title=self.state.ui_title, border_style="cyan")

    def _generate_in_flight_panel(self) -> Panel:
        items = self.state.in_flight_items()
        table = Table.grid(padding=(0, 1))
        table.add_column(ratio=1)
        table.add_column(justify="right")
        for path, running_s in items[:self.max_in_flight]:
            table.add_row(shorten_path(path), format_time(running_s))
        if len(items) > self.max_in_flight:
            table.add_row(f"[dim]...+{len(items) - self.max_in_flight} more[/]", "")
        if not items:
            table.add_row("[dim]idle[/]", "")
        return Panel(table, title="IN FLIGHT", border_style="cyan")

    def _render_result(self, result: InPlaceCompressionResult) -> str:
        name = shorten_path(result.path, 50)
        if result.success:
            return f"[green]✓[/] {name} [dim]{format_size(result.original_size)} → {format_size(result.compressed_size)}[/]"
        return f"[red]✗[/] {name} [red]{result.error}[/]"

    def _generate_recent_panel(self) -> Panel:
        with self.state._lock:
            recent = list(self.state.recent_results)
        lines = [self._render_result(r) for r in recent] or ["[dim]nothing yet[/]"]
        return Panel("\n".join(lines), title="LAST COMPLETED", border_style="cyan")

    def create_display(self) -> RenderableType:
        rows = [self._generate_progress(), self._generate_in_flight_panel(), self._generate_recent_panel()]
        last_action = self.state.get_last_action()
        if last_action:
            rows.append(Text(last_action, style="yellow"))
        return Group(*rows)

    def _refresh_loop(self):
        while not self._stop_refresh.is_set():
            if self._live:
                try:
                    display = self.create_display()
                    with self._ui_lock:
                        self._live.update(display)
                except Exception as e:
                    self.logger.debug(f"Dashboard refresh failed: {e}")
            time.sleep(0.25)

    def start(self):
        self._live = Live(self.create_display(), console=self.console, refresh_per_second=4)
        self._live.start()
        self._stop_refresh.clear()
        self._refresh_thread = threading.Thread(target=self._refresh_loop, daemon=True)
        self._refresh_thread.start()
        return self

    def stop(self):
        self._stop_refresh.set()
        if self._refresh_thread:
            self._refresh_thread.join(timeout=1.0)
        if self._live:
            # Final frame shows the FINISHED / CANCELLED state
            with self._ui_lock:
                self._live.update(self.create_display())
            self._live.stop()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


def build_scan_summary(result: ScanResult, max_rows: int = 20) -> Table:
    """Candidate list shown before confirmation."""
    table = Table(title=f"{len(result.compressible)} compressible files", show_lines=False)
    table.add_column("File")
    table.add_column("Plugin")
    table.add_column("Size", justify="right")
    table.add_column("Est. savings", justify="right")
    for entry in result.compressible[:max_rows]:
        table.add_row(
            shorten_path(entry.path),
            entry.plugin_name,
            format_size(entry.original_size),
            f"{format_size(entry.estimated_savings)} ({percentage(entry.estimated_savings, entry.original_size):.0f}%)",
        )
    hidden = len(result.compressible) - max_rows
    if hidden > 0:
        table.add_row(f"[dim]...+{hidden} more[/]", "", "", "")
    table.caption = (
        f"Total {format_size(result.total_original_size)}, estimated savings "
        f"{format_size(result.total_estimated_savings)} • {len(result.rejected)} rejected"
    )
    return table


def build_results_table(results: List[InPlaceCompressionResult], max_rows: int = 20) -> Table:
    """Final per-file outcome table; failures first."""
    ordered = sorted(results, key=lambda r: r.success)
    table = Table(title="Results")
    table.add_column("", width=1)
    table.add_column("File")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    table.add_column("Saved / Error")
    for result in ordered[:max_rows]:
        if result.success:
            table.add_row(
                "[green]✓[/]",
                shorten_path(result.output_path or result.path),
                format_size(result.original_size),
                format_size(result.compressed_size),
                format_size(result.savings),
            )
        else:
            table.add_row("[red]✗[/]", shorten_path(result.path), "", "", f"[red]{result.error}[/]")
    hidden = len(ordered) - max_rows
    if hidden > 0:
        table.add_row("", f"[dim]...+{hidden} more[/]", "", "", "")
    return table
