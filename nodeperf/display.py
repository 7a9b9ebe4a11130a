"""Rich terminal output for nodeperf."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from nodeperf.config import (
    FAST_THRESHOLD_MBPS,
    FAST_THRESHOLD_MS,
    MEDIUM_THRESHOLD_MBPS,
    MEDIUM_THRESHOLD_MS,
)
from nodeperf.models import (
    LatencyAllFailed,
    LatencyResult,
    LatencySessionError,
    LatencySuccess,
    LatencyUnstable,
    ProxyEndpoint,
    RunReport,
    SpeedFailed,
    SpeedResult,
    SpeedSuccess,
)

console = Console()


def _color_for_ms(value: float) -> str:
    """Return a Rich color name based on latency thresholds."""
    if value <= FAST_THRESHOLD_MS:
        return "green"
    elif value <= MEDIUM_THRESHOLD_MS:
        return "yellow"
    return "red"


def _color_for_mbps(value: float) -> str:
    if value >= FAST_THRESHOLD_MBPS:
        return "green"
    elif value >= MEDIUM_THRESHOLD_MBPS:
        return "yellow"
    return "red"


def _fmt_ms(value: float, colorize: bool = True) -> Text:
    """Format a millisecond value with optional color."""
    text = f"{value:.2f}"
    if colorize:
        return Text(text, style=_color_for_ms(value))
    return Text(text)


def format_latency(result: LatencyResult) -> str:
    """One-line plain text form of a latency result."""
    if isinstance(result, LatencySuccess):
        return (
            f"{result.median:.2f}/{result.average:.2f}/"
            f"{result.minimum:.2f}/{result.maximum:.2f}"
        )
    if isinstance(result, LatencyUnstable):
        return f"Unstable ({result.valid_count}/{result.total_count})"
    if isinstance(result, LatencyAllFailed):
        return "All Failed"
    if isinstance(result, LatencySessionError):
        return f"Session Error: {result.reason}"
    raise TypeError(f"Unknown latency result: {result!r}")


def format_speed(result: Optional[SpeedResult]) -> str:
    if result is None:
        return ""
    if isinstance(result, SpeedSuccess):
        return f"{result.rate_mbps:.2f} Mbps"
    if isinstance(result, SpeedFailed):
        return f"Failed: {result.reason}"
    raise TypeError(f"Unknown speed result: {result!r}")


# ── Progress tracking ─────────────────────────────────────────────────


class ProgressPrinter:
    """Live per-node progress log, driven by engine progress events."""

    def __init__(self, total_nodes: int):
        self.total_nodes = total_nodes
        self.current = 0

    def __call__(self, event: str, endpoint: ProxyEndpoint, payload: object) -> None:
        handler = getattr(self, f"_on_{event}", None)
        if handler is not None:
            handler(endpoint, payload)

    def _on_node_start(self, endpoint: ProxyEndpoint, _payload: object) -> None:
        self.current += 1
        console.print(
            f"[bold][{self.current}/{self.total_nodes}][/bold] "
            f"{escape(endpoint.tag)} [dim](port {endpoint.port})[/dim]"
        )

    def _on_attempt(self, endpoint: ProxyEndpoint, payload: object) -> None:
        attempt, outcome = payload  # type: ignore[misc]
        line = Text(f"  ↳ #{attempt:>2}: ", style="dim")
        if outcome.ok:
            line.append(f"{outcome.duration_ms:7.2f} ms", style=_color_for_ms(outcome.duration_ms))
        else:
            line.append(outcome.detail or outcome.failure or "failed", style="red")
        console.print(line)

    def _on_latency(self, endpoint: ProxyEndpoint, payload: object) -> None:
        if isinstance(payload, LatencySuccess):
            console.print(f"  latency: [green]{format_latency(payload)} ms[/green] [dim](med/avg/min/max)[/dim]")
        elif isinstance(payload, LatencyUnstable):
            console.print(
                f"  latency: [yellow]unstable ({payload.valid_count}/{payload.total_count} succeeded)[/yellow]"
            )
        else:
            console.print(f"  latency: [red]{escape(format_latency(payload))}[/red]")  # type: ignore[arg-type]

    def _on_speed_start(self, endpoint: ProxyEndpoint, payload: object) -> None:
        console.print(f"  [dim]downloading {payload} MB...[/dim]")

    def _on_speed(self, endpoint: ProxyEndpoint, payload: object) -> None:
        if isinstance(payload, SpeedSuccess):
            style = _color_for_mbps(payload.rate_mbps)
            console.print(f"  speed:   [{style}]{payload.rate_mbps:.2f} Mbps[/{style}]")
        else:
            console.print(f"  speed:   [red]{escape(format_speed(payload))}[/red]")  # type: ignore[arg-type]


def render_header(node_count: int, download_mb: Optional[int], attempts: int) -> None:
    if download_mb is not None:
        what = f"{attempts} latency attempts + {download_mb} MB download per node"
    else:
        what = f"{attempts} latency attempts per node"
    console.print(f"[bold]Testing {node_count} socks nodes sequentially ({what})[/bold]\n")


# ── Result table ──────────────────────────────────────────────────────


def _build_results_table(report: RunReport) -> Table:
    speed_enabled = report.config is not None and report.config.speed_enabled
    title = "[bold]Node Ranking[/bold]"
    if speed_enabled:
        title += " [dim](sorted by download speed, then median latency)[/dim]"
    else:
        title += " [dim](sorted by median latency)[/dim]"
    if report.interrupted:
        title += " [yellow](partial)[/yellow]"

    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        pad_edge=True,
        header_style="bold",
        title=title,
        title_style="",
    )
    table.add_column("#", justify="right", width=3, style="dim")
    table.add_column("Port", justify="right")
    table.add_column("Med", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    if speed_enabled:
        table.add_column("Mbps", justify="right")
    table.add_column("Tag", style="bold", min_width=12)

    for rank, r in enumerate(report.results, 1):
        lat = r.latency
        if isinstance(lat, LatencySuccess):
            cells = [_fmt_ms(lat.median), _fmt_ms(lat.average), _fmt_ms(lat.minimum), _fmt_ms(lat.maximum)]
        else:
            style = "yellow" if isinstance(lat, LatencyUnstable) else "red"
            cells = [Text(format_latency(lat), style=style), Text(""), Text(""), Text("")]

        row = [str(rank), str(r.port), *cells]
        if speed_enabled:
            if isinstance(r.speed, SpeedSuccess):
                row.append(Text(f"{r.speed.rate_mbps:.2f}", style=_color_for_mbps(r.speed.rate_mbps)))
            elif isinstance(r.speed, SpeedFailed):
                row.append(Text(r.speed.reason, style="red", overflow="ellipsis"))
            else:
                row.append(Text(""))
        row.append(Text(r.tag, style="bold"))
        table.add_row(*row)

    return table


def render_results(report: RunReport) -> None:
    """Render the ranked result table."""
    if not report.results:
        console.print("[dim]No results.[/dim]")
        return
    console.print()
    console.print(_build_results_table(report))


def render_summary(report: RunReport) -> None:
    """Print the closing summary lines."""
    total = len(report.results)
    config = report.config
    if config is not None and config.download_mb is not None:
        ok = sum(1 for r in report.results if isinstance(r.speed, SpeedSuccess))
        console.print("\n[bold]Summary[/bold]")
        console.print(f"  Nodes tested:      {total}")
        console.print(f"  Speed succeeded:   [green]{ok}[/green]")
        console.print(f"  Speed failed:      [red]{total - ok}[/red]")
        console.print(f"  Download size:     {config.download_mb} MB")
    else:
        console.print(f"\n[bold]Done.[/bold] Tested {total} nodes (latency only).")


def render_error(message: str) -> None:
    """Display an error message."""
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def render_warning(message: str) -> None:
    """Display a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {escape(message)}")
