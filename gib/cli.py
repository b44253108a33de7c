"""CLI entry-point: run or estimate a batch of Grok Imagine generation/edit jobs."""

import asyncio
import logging
import sys
from enum import Enum

import typer
from rich.console import Console
from rich.markup import escape

from gib import __version__
from gib import batch
from gib.batch import load_batch_config, merge_batch_config
from gib.config import Settings, get_settings
from gib.errors import BatchConfigError, GibError
from gib.images import get_provider
from gib.report import estimate_to_json, format_estimate_text, format_report_text, report_to_json
from gib.schemas.models import BatchConfig, BatchReport

app = typer.Typer(help="Batch image generation and editing with xAI Grok Imagine")


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(
    config_path: str,
    settings: Settings,
    err_console: Console,
    output_dir: str | None = None,
    max_concurrent: int | None = None,
    timeout: int | None = None,
) -> BatchConfig:
    try:
        config = load_batch_config(config_path)
        return merge_batch_config(
            config,
            output_dir=output_dir,
            max_concurrent=max_concurrent,
            timeout=timeout,
            settings=settings,
        )
    except BatchConfigError as e:
        err_console.print(f"[red]Configuration Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _print_estimate(config: BatchConfig, fmt: OutputFormat, console: Console) -> None:
    estimate = batch.estimate(config)
    if fmt is OutputFormat.JSON:
        typer.echo(estimate_to_json(estimate))
    else:
        console.print(format_estimate_text(estimate), markup=False, highlight=False, soft_wrap=True)


async def _run_batch(config: BatchConfig, settings: Settings, allow_any_path: bool) -> BatchReport:
    async with get_provider(settings) as provider:
        return await batch.run(
            config,
            provider,
            allow_any_path=allow_any_path,
            grace_period_s=settings.gib_grace_period_seconds,
            cancel_on_timeout=settings.gib_cancel_on_timeout,
        )


@app.command()
def run(
    config_path: str = typer.Argument(..., help="Batch config file (.json, .yaml or .yml)"),
    output_dir: str = typer.Option(None, "--output-dir", help="Override output directory from config"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", help="Output format: text or json"),
    timeout: int = typer.Option(None, "--timeout", min=1000, max=3_600_000, help="Batch timeout in milliseconds (default: 600000)"),
    max_concurrent: int = typer.Option(None, "--max-concurrent", min=1, max=10, help="Max concurrent jobs, 1-10 (default: 2)"),
    estimate_only: bool = typer.Option(False, "--estimate-only", help="Estimate cost without executing"),
    allow_any_path: bool = typer.Option(False, "--allow-any-path", help="Allow output paths outside the output directory (for CI/CD)"),
):
    """Run every job in CONFIG_PATH and report each job's fate. Exits 1 if any job failed or was cancelled."""
    console = Console()
    err_console = Console(stderr=True)
    settings = get_settings()
    _configure_logging(settings)

    config = _load(config_path, settings, err_console, output_dir, max_concurrent, timeout)

    if estimate_only:
        _print_estimate(config, format, console)
        return

    if not settings.xai_api_key:
        err_console.print("[red]Error: XAI_API_KEY environment variable is required[/red]")
        err_console.print("Get your API key from: https://console.x.ai/")
        raise typer.Exit(1)

    err_console.print(f"Starting batch execution: {len(config.jobs)} jobs...")
    try:
        report = asyncio.run(_run_batch(config, settings, allow_any_path))
    except BatchConfigError as e:
        err_console.print(f"[red]Configuration Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    except GibError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if format is OutputFormat.JSON:
        typer.echo(report_to_json(report))
    else:
        console.print(format_report_text(report), markup=False, highlight=False, soft_wrap=True)

    if report.failed > 0 or report.cancelled > 0:
        raise typer.Exit(1)


@app.command()
def estimate(
    config_path: str = typer.Argument(..., help="Batch config file (.json, .yaml or .yml)"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", help="Output format: text or json"),
):
    """Estimate the cost of a batch without calling the API."""
    console = Console()
    err_console = Console(stderr=True)
    settings = get_settings()
    _configure_logging(settings)
    config = _load(config_path, settings, err_console)
    _print_estimate(config, format, console)


@app.command()
def version():
    """Show version."""
    typer.echo(f"grok-imagine-batch v{__version__}")


if __name__ == "__main__":
    app()
