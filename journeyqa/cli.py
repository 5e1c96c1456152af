"""CLI entry point for the journey suite."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from journeyqa.dashboard.metrics import format_duration
from journeyqa.datastore.client import DatastoreNotConfiguredError, get_async_client, get_client
from journeyqa.datastore.realtime import RealtimeDashboard, subscribe_to_journey_updates, unsubscribe
from journeyqa.datastore.test_data_service import TestDataService
from journeyqa.flows.journeys import select_journeys
from journeyqa.mail.otp_client import GmailOtpClient
from journeyqa.models.config import FrameworkConfig

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(path: str) -> FrameworkConfig:
    try:
        return FrameworkConfig.load(path)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {path}[/red]")
        console.print("Run 'journeyqa init' to create a default config.")
        sys.exit(1)


def _data_service(cfg: FrameworkConfig) -> TestDataService:
    try:
        return TestDataService(get_client(cfg.datastore))
    except DatastoreNotConfiguredError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """End-to-end journey tests and results dashboard"""
    setup_logging(verbose)


@cli.command()
@click.option("--base-url", "-u", prompt="Storefront URL", help="Site under test")
@click.option("--output", "-o", default="journeyqa.json", help="Config file path")
def init(base_url: str, output: str) -> None:
    """Create a default configuration file."""
    config_path = Path(output)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    cfg = FrameworkConfig(base_url=base_url)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nAdd mailbox and datastore settings (secrets may be written as env:VAR), then run:")
    console.print("  [blue]journeyqa run[/blue]")


@cli.command()
@click.option("--config", "-c", default="journeyqa.json", help="Config file path")
@click.option("--journey", "-j", "journeys", multiple=True, help="Journey key to run (repeatable)")
@click.option("--no-publish", is_flag=True, help="Do not write results to the datastore")
def run(config: str, journeys: tuple[str, ...], no_publish: bool) -> None:
    """Run the selected journeys (all by default) and write reports."""
    from journeyqa.orchestrator import Orchestrator

    cfg = _load_config(config)
    try:
        select_journeys(list(journeys))
    except KeyError as e:
        console.print(f"[red]{e.args[0]}[/red]")
        sys.exit(2)

    results = Orchestrator(cfg, publish=not no_publish).run(list(journeys) or None)

    console.print("\n[bold green]Run Complete[/bold green]")
    table = Table(title=f"Run {results['readable_run_id']}")
    table.add_column("#", justify="right")
    table.add_column("Journey", style="bold")
    table.add_column("Status")
    table.add_column("Steps")
    table.add_column("Duration")
    table.add_column("Failure")
    for j in results["journeys"]:
        status = "[green]PASSED[/green]" if j["status"] == "PASSED" else f"[red]{j['status']}[/red]"
        table.add_row(str(j["number"]), j["name"], status, j["steps"],
                      format_duration(j["duration_ms"]), j["failure_reason"] or "")
    console.print(table)
    console.print(
        f"Step success rate: [bold]{results['results']['success_rate']:.2f}%[/bold] "
        f"in {format_duration(results['duration_ms'])}"
    )
    if results["published"]:
        console.print("[green]Results published to datastore[/green]")

    for fmt, path in results["reports"].items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")

    if results["results"]["failed"]:
        sys.exit(1)


@cli.command("journeys")
def list_journeys() -> None:
    """List the available journeys."""
    table = Table(title="Journeys")
    table.add_column("#", justify="right")
    table.add_column("Key", style="bold")
    table.add_column("Name")
    table.add_column("Description")
    for d in select_journeys():
        table.add_row(str(d.number), d.key, d.name, d.description)
    console.print(table)


@cli.command()
@click.option("--config", "-c", default="journeyqa.json", help="Config file path")
@click.option("--wait", "-w", default=0, type=int, help="Seconds to keep polling for a code")
def otp(config: str, wait: int) -> None:
    """Fetch the latest one-time code from the configured mailbox."""
    cfg = _load_config(config)
    if not cfg.mailbox:
        console.print("[red]No mailbox configured[/red]")
        sys.exit(1)
    code = asyncio.run(GmailOtpClient(cfg.mailbox).wait_for_otp(timeout_s=wait))
    if not code:
        console.print("[yellow]No OTP found in recent unread messages[/yellow]")
        sys.exit(1)
    console.print(f"OTP: [bold]{code}[/bold]")


@cli.command()
@click.option("--config", "-c", default="journeyqa.json", help="Config file path")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", "-p", default=8000, type=int, help="Port")
def serve(config: str, host: str, port: int) -> None:
    """Serve the results dashboard."""
    import uvicorn

    from journeyqa.dashboard.server import create_app

    cfg = _load_config(config)
    service = None
    if cfg.datastore.enabled:
        service = _data_service(cfg)
        service.probe_capabilities()
    else:
        console.print("[yellow]No datastore configured; the dashboard will show empty results[/yellow]")
    app = create_app(service, screenshot_dir=Path(cfg.report_output_dir) / "evidence")
    uvicorn.run(app, host=host, port=port)


@cli.command()
@click.option("--config", "-c", default="journeyqa.json", help="Config file path")
def health(config: str) -> None:
    """Show per-system health over the last 24 hours."""
    cfg = _load_config(config)
    service = _data_service(cfg)
    rows = service.fetch_system_health()
    if not rows:
        console.print("[yellow]No runs in the last 24 hours[/yellow]")
        return
    table = Table(title="System Health (24h)")
    table.add_column("System", style="bold")
    table.add_column("Runs", justify="right")
    table.add_column("Passed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Avg Success", justify="right")
    table.add_column("Avg Runtime", justify="right")
    table.add_column("Last Run")
    for h in rows:
        table.add_row(
            h.system, str(h.runs_last_24h),
            f"[green]{h.successful_runs}[/green]", f"[red]{h.failed_runs}[/red]",
            f"{h.avg_success_rate:.2f}%", format_duration(h.avg_runtime_ms),
            h.last_execution or "",
        )
    console.print(table)


@cli.command()
@click.option("--config", "-c", default="journeyqa.json", help="Config file path")
def watch(config: str) -> None:
    """Follow the latest journey live as steps are written."""
    cfg = _load_config(config)
    service = _data_service(cfg)
    dashboard = RealtimeDashboard(service.fetch_latest_journey)

    async def _watch() -> None:
        client = await get_async_client(cfg.datastore)
        dashboard.refresh()
        channel = await subscribe_to_journey_updates(client, dashboard.on_change, dashboard.on_error)
        seen = -1
        try:
            while True:
                if dashboard.refresh_count != seen:
                    seen = dashboard.refresh_count
                    _print_live(dashboard)
                await asyncio.sleep(0.5)
        finally:
            await unsubscribe(client, channel)

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        console.print("\nStopped watching")


def _print_live(dashboard: RealtimeDashboard) -> None:
    if dashboard.error:
        console.print(f"[red]Realtime error: {dashboard.error}[/red]")
    if dashboard.data is None:
        console.print("[yellow]No journeys recorded yet[/yellow]")
        return
    journey = dashboard.data.journey
    stats = dashboard.stats()
    console.print(
        f"[{dashboard.last_updated}] {journey.journey_name}: {journey.status} | "
        f"{stats.passed} passed, {stats.failed} failed, {stats.running} running, "
        f"{stats.pending} pending of {stats.total} ({stats.success_rate}%) | "
        f"avg step {format_duration(stats.avg_step_time_ms)}"
    )


if __name__ == "__main__":
    cli()
