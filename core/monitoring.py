"""Per-cycle wallet monitoring.

Tracks what happened to each wallet during one pass of the scheduler and
renders it as a Rich table once the pass is over.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table


@dataclass
class WalletMetrics:
    """Results for a single wallet within one cycle.

    ``None`` means the step did not run (or did not get that far).
    """

    address: str
    proxy: str = "none"
    checked_in: Optional[bool] = None
    node_running: Optional[bool] = None
    node_stopped: Optional[bool] = None
    node_connected: Optional[bool] = None
    points: Optional[Any] = None
    failed: bool = False
    error: Optional[str] = None
    started_at: float = 0.0
    finished_at: Optional[float] = None

    @property
    def duration(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at


class CycleMonitor:
    """Collect :class:`WalletMetrics` for the current cycle.

    Features:
        - One entry per wallet index, reset at every cycle
        - Failure marking with the exception text
        - Rich summary table rendered after the cycle
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self.cycle = 0
        self.metrics: Dict[int, WalletMetrics] = {}

    def start_cycle(self) -> None:
        self.cycle += 1
        self.metrics = {}

    def start_wallet(self, index: int, address: str, proxy: str = "none") -> WalletMetrics:
        metrics = WalletMetrics(address=address, proxy=proxy, started_at=time.time())
        self.metrics[index] = metrics
        return metrics

    def finish_wallet(self, index: int) -> None:
        if index in self.metrics:
            self.metrics[index].finished_at = time.time()

    def mark_failed(self, index: int, error: BaseException) -> None:
        metrics = self.metrics.get(index)
        if metrics is None:
            return
        metrics.failed = True
        metrics.error = str(error) or error.__class__.__name__
        metrics.finished_at = time.time()

    @property
    def failed_count(self) -> int:
        return sum(1 for m in self.metrics.values() if m.failed)

    def get_summary_stats(self) -> Dict[str, Any]:
        wallets: List[WalletMetrics] = list(self.metrics.values())
        return {
            "cycle": self.cycle,
            "wallets": len(wallets),
            "failed": self.failed_count,
            "running": sum(1 for m in wallets if m.node_connected),
        }

    def render_table(self) -> Table:
        """Render the cycle's wallets as a Rich table."""
        table = Table(
            title=f"Cycle {self.cycle} Summary", box=box.ROUNDED,
        )
        table.add_column("#", justify="right")
        table.add_column("Wallet", style="cyan", no_wrap=True)
        table.add_column("Proxy")
        table.add_column("Check-in", justify="center")
        table.add_column("Node", justify="center")
        table.add_column("Points", justify="right")
        table.add_column("Time", justify="right")

        for index in sorted(self.metrics):
            m = self.metrics[index]
            if m.failed:
                node = "[red]FAILED[/red]"
            elif m.node_connected:
                node = "[green]RUNNING[/green]"
            elif m.node_connected is None:
                node = "-"
            else:
                node = "[yellow]DOWN[/yellow]"
            duration = f"{m.duration:.1f}s" if m.duration is not None else "N/A"
            table.add_row(
                str(index + 1),
                m.address,
                m.proxy,
                _flag(m.checked_in),
                node,
                "-" if m.points is None else str(m.points),
                duration,
            )
        return table

    def display(self) -> None:
        self.console.print(self.render_table())


def _flag(value: Optional[bool]) -> str:
    if value is None:
        return "-"
    return "[green]OK[/green]" if value else "[red]FAIL[/red]"
