"""Operator CLI for the brand reputation pipeline using Typer and Rich."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from reputation_system.config.settings import settings
from reputation_system.config.logging import configure_logging, get_logger
from reputation_system.data_management.schemas import (
    Brand,
    EvidenceItem,
    IncomingPost,
    JobStatus,
    Monitor,
    Notification,
    ThreatStatus,
)
from reputation_system.errors import ReputationSystemError
from reputation_system.orchestration.runtime import Runtime, build_runtime

T = TypeVar("T")

app = typer.Typer(
    help="Brand reputation pipeline CLI - detect, verify and correct misinformation",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")


def _run(operation: Callable[[Runtime], Awaitable[T]]) -> T:
    """Build a runtime, run one operation against it and always close it."""

    async def runner() -> T:
        runtime = build_runtime()
        try:
            return await operation(runtime)
        finally:
            await runtime.close()

    try:
        return asyncio.run(runner())
    except ReputationSystemError as e:
        console.print(f"[red]✗[/red] Error: {e.message}")
        logger.error(f"CLI command failed: {e.message}")
        raise typer.Exit(1)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗[/red] Cannot read {path}: {e}")
        raise typer.Exit(1)


@app.callback()
def cli_options(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override LOG_LEVEL for this invocation (DEBUG, INFO, ...)"
    ),
) -> None:
    """Brand reputation pipeline CLI."""
    if log_level:
        configure_logging(level=log_level)


@app.command()
def status() -> None:
    """
    Display system status and configuration.

    Shows oracle, platform, persistence and worker settings.
    """
    logger.info("Displaying system status")

    table = Table(title="Reputation System Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Status", style="green", width=15)
    table.add_column("Details", style="yellow")

    python_version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    table.add_row("Environment", "✓ Ready", python_version)

    oracle_status = "✓ Configured" if settings.gemini_api_key else "⚠ Fallback only"
    oracle_details = f"{settings.gemini_model} (RPM: {settings.max_rpm}, TPM: {settings.max_tpm:,})"
    table.add_row("Judgment Oracle", oracle_status, oracle_details)

    platform_status = "✓ Configured" if settings.platform_api_key else "⚠ No API key"
    table.add_row("Platform", platform_status, settings.platform_api_url)

    storage_status = "✓ Persistent" if settings.data_dir else "⚠ Memory only"
    table.add_row("Storage", storage_status, settings.data_dir or "-")

    worker_details = (
        f"Concurrency: {settings.worker_concurrency}, "
        f"Attempts: {settings.job_max_attempts}, "
        f"Sweep: {settings.scan_interval_seconds:g}s"
    )
    table.add_row("Workers", "✓ Ready", worker_details)

    log_details = f"Level: {settings.log_level}, Format: {settings.log_format}"
    table.add_row("Logging", "✓ Active", log_details)

    console.print(table)


@app.command()
def seed(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with brands, monitors and evidence"),
) -> None:
    """
    Load brands, monitors and evidence items from a JSON file.

    The file holds optional "brands", "monitors" and "evidence" lists.
    """
    data = _read_json(path)
    try:
        brands = [Brand.model_validate(b) for b in data.get("brands", [])]
        monitors = [Monitor.model_validate(m) for m in data.get("monitors", [])]
        evidence = [EvidenceItem.model_validate(e) for e in data.get("evidence", [])]
    except (AttributeError, ValidationError) as e:
        console.print(f"[red]✗[/red] Invalid seed file: {e}")
        raise typer.Exit(1)

    async def load(runtime: Runtime) -> dict[str, int]:
        for brand in brands:
            await runtime.brand_store.save_brand(brand)
        for monitor in monitors:
            await runtime.monitor_store.save_monitor(monitor)
        counts = await runtime.evidence_store.add_items(evidence)
        return {"brands": len(brands), "monitors": len(monitors), **counts}

    counts = _run(load)
    console.print(
        f"[green]✓[/green] Loaded {counts['brands']} brands, {counts['monitors']} monitors, "
        f"{counts['added']} new and {counts['updated']} updated evidence items"
    )


@app.command()
def submit(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with one post or a list of posts"),
) -> None:
    """Score observed posts and process every job they trigger."""
    data = _read_json(path)
    items = data if isinstance(data, list) else [data]
    try:
        posts = [IncomingPost.model_validate(item) for item in items]
    except ValidationError as e:
        console.print(f"[red]✗[/red] Invalid post: {e}")
        raise typer.Exit(1)

    async def process(runtime: Runtime) -> list[str]:
        await runtime.orchestrator.start()
        job_ids = [await runtime.orchestrator.submit_post(post) for post in posts]
        await runtime.orchestrator.join()
        return job_ids

    job_ids = _run(process)
    console.print(f"[green]✓[/green] Processed {len(job_ids)} post(s): {', '.join(job_ids)}")


@app.command()
def verify(
    threat_id: str = typer.Argument(..., help="Threat to verify"),
    autopost: bool = typer.Option(False, "--autopost", help="Publish the correction right away"),
) -> None:
    """Queue a verification for one Threat and wait for it to finish."""

    async def run_verification(runtime: Runtime):
        await runtime.orchestrator.start()
        job_id = await runtime.orchestrator.force_verify(threat_id, autopost=autopost)
        await runtime.orchestrator.join()
        return runtime.orchestrator.queue.get_job(job_id)

    job = _run(run_verification)
    if job is None or job.status != JobStatus.COMPLETED:
        error = job.last_error if job else "job not found"
        console.print(f"[red]✗[/red] Verification of {threat_id} failed: {error}")
        raise typer.Exit(1)

    result = job.result or {}
    console.print(f"[green]✓[/green] Threat {threat_id}: {result.get('action', 'done')}")
    if result.get("response_id"):
        posted = "posted" if result.get("posted") else "pending"
        console.print(f"  Response {result['response_id']} ({posted})")


@app.command()
def publish(
    response_id: str = typer.Argument(..., help="Response to post"),
) -> None:
    """Post a pending or failed Response to the platform."""
    response = _run(lambda runtime: runtime.orchestrator.force_publish(response_id))
    console.print(f"[green]✓[/green] Response {response.id} {response.status.value}")


@app.command()
def sweep() -> None:
    """Queue and process verifications for every unverified Threat."""

    async def run_sweep(runtime: Runtime) -> list[str]:
        await runtime.orchestrator.start()
        job_ids = await runtime.orchestrator.sweep()
        await runtime.orchestrator.join()
        return job_ids

    job_ids = _run(run_sweep)
    console.print(f"[green]✓[/green] Sweep processed {len(job_ids)} threat(s)")


@app.command()
def threats(
    status_filter: Optional[ThreatStatus] = typer.Option(None, "--status", help="Only threats in this status"),
    limit: int = typer.Option(20, help="Maximum rows shown"),
) -> None:
    """List stored Threats, newest first."""

    async def list_threats(runtime: Runtime):
        return await runtime.threat_store.list_threats(status=status_filter, limit=limit)

    rows = _run(list_threats)

    table = Table(title="Threats", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Brand")
    table.add_column("Severity")
    table.add_column("Score", justify="right")
    table.add_column("Status", style="green")
    table.add_column("Verdict", style="yellow")

    for threat in rows:
        verdict = threat.verification_status.value if threat.verification_status else "-"
        table.add_row(
            threat.id,
            threat.brand_id,
            threat.severity.value,
            f"{threat.threat_score:.1f}",
            threat.status.value,
            verdict,
        )

    console.print(table)


@app.command()
def jobs(
    status_filter: Optional[JobStatus] = typer.Option(None, "--status", help="Only jobs in this status"),
    prune: bool = typer.Option(False, "--prune", help="Drop completed job records first"),
) -> None:
    """List persisted job records, newest first. Failed jobs show their last error."""

    async def list_jobs(runtime: Runtime):
        pruned = await runtime.job_store.prune_finished() if prune else 0
        return pruned, await runtime.job_store.list_jobs(status=status_filter)

    pruned, records = _run(list_jobs)
    if prune:
        console.print(f"[dim]Pruned {pruned} completed job(s)[/dim]")

    table = Table(title="Jobs", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Kind")
    table.add_column("Status", style="green")
    table.add_column("Attempts", justify="right")
    table.add_column("Last Error", style="red")

    for record in records:
        table.add_row(
            record.id,
            record.kind.value,
            record.status.value,
            f"{record.attempts}/{record.max_attempts}",
            record.last_error or "-",
        )

    console.print(table)


@app.command()
def run() -> None:
    """Run workers and the periodic sweep until interrupted, printing notifications."""

    async def print_notification(notification: Notification) -> None:
        console.print(
            f"[bold cyan]{notification.event.value}[/bold cyan] "
            f"[dim]{notification.entity_id}[/dim] {notification.message}"
        )

    async def serve(runtime: Runtime) -> None:
        runtime.notifications.subscribe("cli", print_notification)
        await runtime.orchestrator.start()
        console.print("[bold]Orchestrator running[/bold] - press Ctrl+C to stop")
        await asyncio.Event().wait()

    try:
        _run(serve)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]Brand Reputation System[/bold]")
    console.print("Version: 0.1.0")


if __name__ == "__main__":
    app()
