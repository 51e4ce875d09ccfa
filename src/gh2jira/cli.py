"""CLI interface for gh2jira."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from gh2jira import __version__
from gh2jira.config import Config
from gh2jira.exceptions import ConfigurationError, LabelWriteError, NotFoundError, TransportError
from gh2jira.sync.label_manager import issue_number_from_url
from gh2jira.sync.mirror import IssueMirror
from gh2jira.sync.models import BatchResult

app = typer.Typer(
    name="gh2jira",
    help="Mirror accepted GitHub issues into Jira.",
    no_args_is_help=True,
)
console = Console()

DryRunOption = Annotated[
    bool | None,
    typer.Option("--dry-run/--no-dry-run", help="Log Jira and label writes without executing them"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]


def _setup_logging(level: str) -> None:
    """Route the gh2jira loggers through rich."""
    logger = logging.getLogger("gh2jira")
    logger.handlers.clear()
    logger.addHandler(RichHandler(console=console, show_path=False, rich_tracebacks=True))
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def _load_config(verbose: bool, **overrides: object) -> Config:
    try:
        config = Config.load(**overrides)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    _setup_logging("DEBUG" if verbose else config.log_level)
    return config


@app.command("sync-issue")
def sync_issue(
    issue_number: Annotated[
        int | None,
        typer.Argument(help="Issue number to sync (default: GITHUB_ISSUE_NUMBER)", show_default=False),
    ] = None,
    dry_run: DryRunOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Mirror one GitHub issue into Jira if it is accepted and not yet synced."""
    config = _load_config(verbose, github_issue_number=issue_number, dry_run=dry_run)
    try:
        number = config.issue_number()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    async def _run() -> None:
        async with IssueMirror(config) as mirror:
            outcome = await mirror.sync_issue(number)

        if outcome.decision.reason is not None:
            console.print(f"[yellow]#{number} skipped:[/yellow] {outcome.decision.reason.value}")
            return

        if outcome.failed:
            console.print(f"[red]Failed to create Jira issue for #{number}:[/red] {escape(outcome.result.error or '')}")
            raise typer.Exit(1)

        console.print(f"[green]#{number} mirrored as {outcome.result.key}[/green]")
        if not outcome.labeled:
            console.print(f"[yellow]Could not add '{config.synced_label}' to #{number}; it may be mirrored again[/yellow]")

    try:
        asyncio.run(_run())
    except NotFoundError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    except TransportError as e:
        console.print(f"[red]Error retrieving issue {config.repo}#{number}:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command("sync-batch")
def sync_batch(
    since: Annotated[
        datetime | None,
        typer.Option("--since", help="Only issues updated since this time (default: GITHUB_SINCE or lookback window)"),
    ] = None,
    per_page: Annotated[
        int | None,
        typer.Option("--per-page", help="Maximum issues to fetch (default: GITHUB_PER_PAGE or 30)"),
    ] = None,
    dry_run: DryRunOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Mirror every newly accepted GitHub issue into Jira."""
    config = _load_config(verbose, github_since=since, github_per_page=per_page, dry_run=dry_run)
    watermark = config.watermark()

    async def _run() -> BatchResult:
        async with IssueMirror(config) as mirror:
            return await mirror.sync_batch(since=watermark, per_page=config.github_per_page)

    try:
        batch = asyncio.run(_run())
    except (NotFoundError, TransportError) as e:
        console.print(f"[red]Error listing issues for {config.repo}:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if batch.total == 0:
        console.print(f"[dim]No issues labeled '{config.accepted_label}' updated since {watermark.isoformat()}[/dim]")
        return

    _display_batch(batch)


def _display_batch(batch: BatchResult) -> None:
    """Print a summary table of a batch run."""
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Issue", style="cyan", no_wrap=True)
    table.add_column("Summary", max_width=40)
    table.add_column("Result", no_wrap=True)

    for result in batch.succeeded:
        table.add_row(_issue_ref(result.draft.back_reference), escape(result.draft.summary[:40]), f"[green]{result.key}[/green]")
    for result in batch.failed:
        table.add_row(_issue_ref(result.draft.back_reference), escape(result.draft.summary[:40]), f"[red]{escape(result.error or '')}[/red]")
    for issue, reason in batch.skipped:
        table.add_row(f"#{issue.number}", escape(issue.title[:40]), f"[dim]{reason.value}[/dim]")

    console.print(table)
    console.print(
        f"[bold]Created:[/bold] {len(batch.succeeded)}  [bold]Failed:[/bold] {len(batch.failed)}  "
        f"[bold]Skipped:[/bold] {len(batch.skipped)}  [bold]Labeled:[/bold] {len(batch.labeled)}"
    )
    for reference in batch.label_failures:
        console.print(f"[yellow]Synced label not written for {reference}; it may be mirrored again[/yellow]")


def _issue_ref(url: str | None) -> str:
    try:
        return f"#{issue_number_from_url(url)}"
    except LabelWriteError:
        return url or "-"


@app.command()
def version() -> None:
    """Show the gh2jira version."""
    console.print(f"gh2jira {__version__}")


if __name__ == "__main__":
    app()
