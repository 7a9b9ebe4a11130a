"""CLI entry point and orchestration for nodeperf."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.logging import RichHandler

from nodeperf import __version__
from nodeperf.config import LATENCY_ATTEMPTS, MAX_DOWNLOAD_MB
from nodeperf.exceptions import InventoryError
from nodeperf.models import NodeResult, ProxyEndpoint, RunConfig, RunReport


@click.command()
@click.argument("config_path")
@click.argument("patterns", nargs=-1)
@click.option(
    "-d", "--download-mb",
    type=click.IntRange(min=1),
    default=None,
    help="Download test size in MB (enables the speed test)",
)
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout")
@click.option("--csv", "csv_output", is_flag=True, help="Output CSV to stdout")
@click.option("-o", "--output", default=None, help="Write results to file")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress, show only results")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logs")
@click.version_option(version=__version__)
def main(
    config_path: str,
    patterns: tuple[str, ...],
    download_mb: int | None,
    json_output: bool,
    csv_output: bool,
    output: str | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """nodeperf — rank local SOCKS5 proxy nodes by latency and speed.

    Reads socks inbounds from the sing-box style CONFIG_PATH, keeps those
    whose tag matches every PATTERN (regular expressions), and tests each
    node in turn.
    """
    _setup_logging(verbose)

    from nodeperf.display import render_error, render_warning
    from nodeperf.inventory import load_endpoints

    config = RunConfig(
        config_path=config_path,
        tag_patterns=list(patterns),
        latency_attempts=LATENCY_ATTEMPTS,
        download_mb=download_mb,
        verbose=verbose,
        quiet=quiet,
        json_output=json_output,
        csv_output=csv_output,
        output_file=output,
    )

    try:
        endpoints = load_endpoints(config_path, config.tag_patterns)
    except InventoryError as exc:
        render_error(str(exc))
        sys.exit(1)

    if not endpoints:
        if config.tag_patterns:
            render_error(f"No socks inbounds match the patterns: {', '.join(config.tag_patterns)}")
        else:
            render_error("No local socks inbounds found in config")
        sys.exit(1)

    if download_mb is not None and download_mb > MAX_DOWNLOAD_MB and _show_progress(config):
        render_warning(f"Download size above {MAX_DOWNLOAD_MB} MB is not supported; speed tests will fail")

    collected: list[NodeResult] = []
    interrupted = False
    try:
        asyncio.run(_run(endpoints, config, collected))
    except KeyboardInterrupt:
        interrupted = True
        if _show_progress(config):
            from nodeperf.display import console
            console.print("\n[yellow]Interrupted, showing partial results.[/yellow]")

    report = _build_report(collected, config, interrupted)
    _handle_output(report, config)

    if interrupted:
        sys.exit(130)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # Per-request lines from the HTTP stack drown out the progress log
    for name in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _show_progress(config: RunConfig) -> bool:
    return not config.quiet and not config.json_output and not config.csv_output


async def _run(
    endpoints: list[ProxyEndpoint],
    config: RunConfig,
    collected: list[NodeResult],
) -> list[NodeResult]:
    """Main async orchestration."""
    from nodeperf.display import ProgressPrinter, render_header
    from nodeperf.engine import evaluate_all

    progress = None
    if _show_progress(config):
        render_header(len(endpoints), config.download_mb, config.latency_attempts)
        progress = ProgressPrinter(len(endpoints))

    return await evaluate_all(endpoints, config, results=collected, progress_callback=progress)


def _build_report(collected: list[NodeResult], config: RunConfig, interrupted: bool) -> RunReport:
    from nodeperf.ranking import rank_results

    return RunReport(
        results=rank_results(collected, config.speed_enabled),
        config=config,
        timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        interrupted=interrupted,
    )


def _handle_output(report: RunReport, config: RunConfig) -> None:
    """Handle output rendering and export."""
    from nodeperf.display import console, render_results, render_summary
    from nodeperf.export import export_csv, export_json, write_to_file

    # JSON output
    if config.json_output:
        json_str = export_json(report)
        if config.output_file:
            write_to_file(json_str, config.output_file)
            if not config.quiet:
                console.print(f"[dim]Results written to {config.output_file}[/dim]")
        else:
            click.echo(json_str)
        return

    # CSV output
    if config.csv_output:
        csv_str = export_csv(report)
        if config.output_file:
            write_to_file(csv_str, config.output_file)
            if not config.quiet:
                console.print(f"[dim]Results written to {config.output_file}[/dim]")
        else:
            click.echo(csv_str, nl=False)
        return

    # Rich terminal output
    render_results(report)
    render_summary(report)

    # Also write to file if -o specified (non-json/csv mode writes JSON)
    if config.output_file:
        write_to_file(export_json(report), config.output_file)
        console.print(f"\n[dim]Results written to {config.output_file}[/dim]")


if __name__ == "__main__":
    main()
