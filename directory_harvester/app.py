"""Typer CLI entrypoint for directory_harvester."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, HarvesterConfig, ScrapeMode
from .errors import EmptyResultError, PersistenceError, ValidationError
from .infra import OutputDirectory
from .logging_conf import (
    GLOBAL_LOG,
    available_dataset_logs,
    configure_logging,
    dataset_log_path,
    log_dir,
    run_logger,
    tail_log,
)
from .orchestrator import ScrapeResult, build_orchestrator, category_from_url
from .server import serve as serve_http
from .ui import ProgressReporter

app = typer.Typer(
    help="Harvest business listings from a paginated directory.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: HarvesterConfig
    outputs_dir: Path
    verbose: bool = False


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    config = repository.load_config()
    configure_logging(verbose=verbose)
    return AppState(
        repository=repository,
        config=config,
        outputs_dir=repository.outputs_dir(config),
        verbose=verbose,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _render_stats(result: ScrapeResult) -> Table:
    stats = result.stats
    table = Table(title=f"{result.identifier} run result", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Pages attempted", str(stats.pages_attempted))
    table.add_row("Pages succeeded", str(stats.pages_succeeded))
    table.add_row("Pages failed", str(stats.pages_failed))
    table.add_row("New businesses", str(stats.new_records))
    table.add_row("Duplicates skipped", str(stats.duplicates_skipped))
    table.add_row("Total saved", str(stats.total_saved))
    table.add_row("Output file", stats.output_file)
    if stats.category:
        table.add_row("Category", stats.category)
    if stats.stopped_early:
        table.add_row("Stopped early", "yes")
    return table


def _render_errors(result: ScrapeResult) -> Table:
    table = Table(title="Failed pages", box=box.SIMPLE_HEAD)
    table.add_column("Page", style="cyan", justify="right")
    table.add_column("Kind", style="magenta")
    table.add_column("URL", style="dim", overflow="fold")
    table.add_column("Error", style="red", overflow="fold")
    for error in result.errors:
        table.add_row(str(error.page), error.kind, error.url, error.error)
    return table


app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("scrape", help="Scrape a page range and merge it into the dataset.")
def scrape(
    ctx: typer.Context,
    base_url: str = typer.Argument(..., help="Directory URL without page number."),
    start: int = typer.Option(1, "--start", help="First page (>= 1)."),
    end: int = typer.Option(1, "--end", help="Last page (>= start)."),
    category: bool = typer.Option(False, "--category", help="Treat BASE_URL as a category URL."),
    quiet: bool = typer.Option(False, "--quiet", help="Only print a one-line summary."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging for this run."),
) -> None:
    state = _get_state(ctx)
    mode = ScrapeMode.CATEGORY if category else ScrapeMode.DIRECTORY
    progress = ProgressReporter(enabled=_progress_default_enabled() and not quiet, console=console)
    dataset = state.config.default_dataset
    if category:
        dataset = f"category_{category_from_url(base_url) or 'unknown'}"
    logger = run_logger(dataset, verbose or state.verbose)
    orchestrator = build_orchestrator(
        state.config, state.outputs_dir, logger=logger, progress=progress
    )
    try:
        with orchestrator:
            result = orchestrator.run(base_url, start, end, mode=mode)
    except ValidationError as exc:
        console.print(f"{exc.error}: {exc.details}", style="red")
        raise typer.Exit(code=2)
    except EmptyResultError as exc:
        console.print(str(exc), style="red")
        console.print(exc.solution, style="yellow")
        if exc.result.errors and not quiet:
            console.print(_render_errors(exc.result))
        raise typer.Exit(code=1)
    except PersistenceError as exc:
        console.print(f"Nothing was saved: {exc}", style="red")
        raise typer.Exit(code=1)

    if quiet:
        stats = result.stats
        console.print(
            f"Done: {stats.new_records} new, {stats.pages_failed} failed pages, "
            f"{stats.total_saved} saved in {stats.output_file}"
        )
        return
    console.print(_render_stats(result))
    if result.errors:
        console.print(_render_errors(result))


@app.command("serve", help="Run the HTTP API.")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    port: Optional[int] = typer.Option(None, "--port", help="Listening port."),
) -> None:
    state = _get_state(ctx)
    console.print(f"Datasets are saved in: {state.outputs_dir}", style="dim")
    serve_http(state.config, state.outputs_dir, host=host, port=port)


@app.command("datasets", help="List persisted datasets.")
def datasets(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    files = OutputDirectory(state.outputs_dir).list_files()
    if not files:
        console.print("No datasets yet.", style="dim")
        return
    table = Table(title=f"Datasets · {len(files)}", box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    table.add_column("Size", style="cyan", justify="right")
    for path in files:
        table.add_row(path.name, f"{path.stat().st_size} B")
    console.print(table)


@log_app.command("list", help="List per-dataset log files.")
def log_list() -> None:
    logs = list(available_dataset_logs())
    if not logs:
        console.print("No dataset logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    dataset: Optional[str] = typer.Option(None, "--dataset", help="Dataset log (global log if omitted)."),
    tail: int = typer.Option(100, "--tail", help="Number of lines."),
) -> None:
    path = dataset_log_path(dataset) if dataset else log_dir() / GLOBAL_LOG
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    console.print("".join(lines))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
