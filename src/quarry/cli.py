"""
Quarry CLI - command-line interface for iterative web research.

Commands:
- init: Write a default quarry.toml
- run: Research a topic and write the report
- jobs: List recent jobs
- show: Display one job
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import ResearchConfig, create_default_config, load_config
from .jobs import JobStore, ResearchJob
from .utils.logging import setup_logging

app = typer.Typer(
    name="quarry",
    help="Iterative web research with cited reports",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()

_STATUS_STYLES = {
    "completed": "green",
    "failed": "red",
    "cancelled": "yellow",
    "processing": "cyan",
}


def _load(config_path: Path) -> ResearchConfig:
    """Load the config file, or defaults if it does not exist."""
    if config_path.exists():
        return load_config(config_path)
    console.print(f"[dim]{config_path} not found, using defaults[/dim]")
    return ResearchConfig()


@app.command()
def init(
    path: Path = typer.Option(Path.cwd(), "--path", "-p", help="Project directory"),
) -> None:
    """
    Write a default quarry.toml.

    Example:
        quarry init
        quarry init --path ./research
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        config_path = path / "quarry.toml"

        if config_path.exists():
            console.print(f"[yellow]Warning:[/yellow] {config_path} already exists.")
            raise typer.Exit(1)

        create_default_config(config_path)

        console.print(Panel.fit(
            f"[green]✓[/green] Wrote {config_path}\n\n"
            "[dim]Next steps:[/dim]\n"
            "1. Set API keys in environment (TOGETHER_API_KEY, BRAVE_API_KEY, FIRECRAWL_API_KEY)\n"
            "2. Edit quarry.toml to choose models and providers\n"
            '3. Run your first job: quarry run "your topic"',
            title="Quarry Initialized",
            border_style="green",
        ))

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def run(
    topic: str = typer.Argument(..., help="Research topic"),
    config: Path = typer.Option(Path("quarry.toml"), "--config", "-c", help="Config file path"),
    budget: Optional[int] = typer.Option(None, "--budget", "-b", help="Follow-up cycles after the first"),
    max_queries: Optional[int] = typer.Option(None, "--max-queries", "-q", help="Queries per cycle"),
    max_sources: Optional[int] = typer.Option(None, "--max-sources", "-s", help="Sources in the report"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report to this file"),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level"),
) -> None:
    """
    Research a topic end to end.

    Example:
        quarry run "State of solid-state batteries in 2026"
        quarry run "EU AI Act obligations" --budget 1 --max-sources 8 -o report.md
    """
    setup_logging(level=log_level)

    try:
        job = asyncio.run(_run_job(config, topic, budget, max_queries, max_sources))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _print_job(job)

    if job.status != "completed":
        raise typer.Exit(1)

    if output and job.report:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(job.report.markdown, encoding="utf-8")
        console.print(f"[green]✓[/green] Report written to {output}")


async def _run_job(
    config_path: Path,
    topic: str,
    budget: Optional[int],
    max_queries: Optional[int],
    max_sources: Optional[int],
) -> ResearchJob:
    """Create, run and persist one job."""
    from .runtime import create_orchestrator

    config = _load(config_path)

    overrides = {
        "cycle_budget": budget,
        "max_queries_per_cycle": max_queries,
        "max_sources": max_sources,
    }
    job_budget = config.budget.model_validate(
        {**config.budget.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
    )

    store = JobStore(config.storage.db_path)
    await store.initialize()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=None)

            async def on_event(event: dict) -> None:
                data = event.get("data", {})
                if event.get("type") == "job.phase":
                    progress.update(task, description=f"{data.get('phase', '').capitalize()}...")
                elif event.get("type") == "cycle.completed":
                    progress.console.print(
                        f"[green]✓[/green] Cycle {data.get('cycle_id')}: "
                        f"{data.get('hits')} hits, {data.get('findings')} findings, "
                        f"{data.get('failures')} failed"
                    )

            orchestrator = create_orchestrator(config, store=store, event_callback=on_event)
            job = await store.create_job(topic, budget=job_budget)
            return await orchestrator.run(job)
    finally:
        await store.close()


def _print_job(job: ResearchJob, show_report: bool = False) -> None:
    style = _STATUS_STYLES.get(job.status, "white")
    lines = [
        f"[bold]{job.topic}[/bold]",
        f"Job: {job.id}",
        f"Status: [{style}]{job.status}[/{style}] (phase {job.phase})",
        f"Cycles: {len(job.cycles)} | Findings: {len(job.findings)} | Sources: {len(job.sources)}",
    ]
    if job.plan_summary:
        lines.append(f"Plan: {job.plan_summary}")
    if job.error:
        lines.append(f"[red]Error ({job.error_code}):[/red] {job.error}")
    console.print(Panel.fit("\n".join(lines), title="Research Job", border_style=style))

    if job.sources:
        table = Table(title="Sources")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Title")
        table.add_column("URL", style="cyan")
        for i, source in enumerate(job.sources, start=1):
            table.add_row(str(i), source.title or "-", source.url)
        console.print(table)

    if show_report and job.report:
        console.print(Markdown(job.report.markdown))


@app.command()
def jobs(
    config: Path = typer.Option(Path("quarry.toml"), "--config", "-c", help="Config file path"),
    limit: int = typer.Option(20, "--limit", "-n", help="Jobs to list"),
) -> None:
    """List recent research jobs."""
    try:
        results = asyncio.run(_list_jobs(config, limit))
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not results:
        console.print('[yellow]No jobs yet. Run: quarry run "your topic"[/yellow]')
        return

    table = Table(title="Research Jobs")
    table.add_column("ID", style="dim")
    table.add_column("Topic")
    table.add_column("Status")
    table.add_column("Sources", justify="right")
    table.add_column("Created")

    for job in results:
        style = _STATUS_STYLES.get(job.status, "white")
        table.add_row(
            job.id,
            job.topic[:60],
            f"[{style}]{job.status}[/{style}]",
            str(len(job.sources)),
            job.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


async def _list_jobs(config_path: Path, limit: int) -> list[ResearchJob]:
    store = JobStore(_load(config_path).storage.db_path)
    try:
        return await store.list_jobs(limit=limit)
    finally:
        await store.close()


@app.command()
def show(
    job_id: str = typer.Argument(..., help="Job ID"),
    config: Path = typer.Option(Path("quarry.toml"), "--config", "-c", help="Config file path"),
) -> None:
    """Display a job and its report."""
    try:
        job = asyncio.run(_load_job(config, job_id))
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if job is None:
        console.print(f"[red]Job not found:[/red] {job_id}")
        raise typer.Exit(1)

    _print_job(job, show_report=True)


async def _load_job(config_path: Path, job_id: str) -> ResearchJob | None:
    store = JobStore(_load(config_path).storage.db_path)
    try:
        return await store.load_job(job_id)
    finally:
        await store.close()


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
