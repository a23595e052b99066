"""
Command-line interface for the news briefing pipeline.

Uses Typer to trigger one refresh and print the ranked items. Supports
loading .env files for endpoint and API key configuration.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import load_config
from .core.ranking import filter_by_category, unique_categories
from .errors import ConfigurationError, TransportError, UpstreamWorkflowError
from .logging_utils import setup_logging
from .runner import run_pipeline

app = typer.Typer(add_completion=False)
console = Console()


@app.callback()
def main() -> None:
    """Ingest news briefings from the workflow engine."""


@app.command()
def fetch(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    endpoint: str | None = typer.Option(None, "--endpoint", help="Workflow endpoint (domain or API URL)."),
    api_key: str | None = typer.Option(
        None,
        "--api-key",
        envvar="MISO_API_KEY",
        help="Workflow API key (or set MISO_API_KEY / .env).",
    ),
    mode: str | None = typer.Option(None, "--mode", help="Response mode: blocking or streaming."),
    timeout: float | None = typer.Option(None, "--timeout", help="Whole-call timeout in seconds."),
    retries: int | None = typer.Option(None, "--retries", help="Retries on 5xx or connection failure."),
    window_hours: float | None = typer.Option(None, "--window-hours", help="Recency window in hours."),
    category: str | None = typer.Option(None, "--category", help="Only show this category."),
    as_json: bool = typer.Option(False, "--json", help="Print items as JSON."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="Directory for the log file."),
):
    """Run the workflow once and print the ranked news items."""
    load_dotenv()

    cfg = load_config(str(config) if config else None)

    if endpoint:
        cfg.transport.endpoint = endpoint
    if api_key:
        cfg.transport.api_key = api_key
    if mode:
        cfg.transport.mode = mode
    if timeout is not None:
        cfg.transport.timeout_seconds = timeout
    if retries is not None:
        cfg.transport.max_retries = retries
    if window_hours is not None:
        cfg.pipeline.recency_window_hours = window_hours
    if log_level:
        cfg.logging.level = log_level
    if log_dir is not None:
        cfg.logging.file = True

    setup_logging(cfg.logging, log_dir)

    try:
        result = run_pipeline(cfg)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=2)
    except (TransportError, UpstreamWorkflowError) as exc:
        console.print(f"[red]Could not get a briefing from the workflow engine:[/red] {exc}")
        raise typer.Exit(code=1)

    if result.is_empty:
        console.print("No news data: the workflow answered but no recent items were found.")
        return

    items = filter_by_category(result.items, category)
    if as_json:
        console.print_json(json.dumps([item.to_dict() for item in items], ensure_ascii=False))
        return

    table = Table(title=f"News briefing ({len(items)} items)")
    table.add_column("Score", justify="right")
    table.add_column("Category")
    table.add_column("Title")
    table.add_column("Source")
    table.add_column("Published")
    for item in items:
        table.add_row(
            str(item.relevance_score),
            item.category,
            item.title,
            item.source,
            item.published_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
    console.print("Categories: " + ", ".join(unique_categories(result.items)))


if __name__ == "__main__":
    app()
