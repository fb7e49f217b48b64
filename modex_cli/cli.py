"""Typer-based CLI for the Modex module registry."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .cli_discover import cache_grp, discover_grp, metrics_grp
from .cli_groups import console, fail, open_store, print_json
from .cli_registry import config_grp, installed_grp, registry_grp
from .cli_suggestions import show_next_steps
from .config_manager import load_logging_config, load_suggestions_config
from .search_index import SearchIndexBuilder
from .suggestions import SuggestionService, summarize

app = typer.Typer(
    help="🧩 Modex — find reusable modules before writing new ones.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(registry_grp, name="registry")
app.add_typer(discover_grp, name="discover")
app.add_typer(cache_grp, name="cache")
app.add_typer(installed_grp, name="installed")
app.add_typer(metrics_grp, name="metrics")
app.add_typer(config_grp, name="config")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DECISION_STYLES = {"reuse": "green", "extend": "yellow", "create": "red"}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Modex CLI v{__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging from flags, falling back to the configured level."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = getattr(logging, load_logging_config()["level"], logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
):
    """Modex CLI: module registry, discovery and reuse suggestions."""
    setup_logging(verbose=verbose, quiet=quiet)


def _service() -> SuggestionService:
    store = open_store()
    return SuggestionService(
        store,
        SearchIndexBuilder(store),
        import_prefix=load_suggestions_config()["import_prefix"],
    )


@app.command("suggest")
def suggest(context: str = typer.Argument(..., help="Free-text context to match against the registry.")):
    """Rank reusable modules and exports for a context (JSON output)."""
    result = _service().suggest(context)
    print_json(result.to_dict())


@app.command("task")
def task(
    description: str = typer.Argument(..., help="Natural-language task description."),
    as_json: bool = typer.Option(False, "--json", help="Print the analysis as JSON."),
):
    """Analyze a task and recommend reusing, extending or creating a module."""
    analysis = _service().suggest_from_task(description)
    if as_json:
        print_json(analysis.to_dict())
        return

    info = summarize(analysis)
    console.print(Panel(
        f"[bold]Category:[/bold] {info['category']} ({round(info['confidence'] * 100)}% confidence)\n"
        f"[bold]Actions:[/bold]  {', '.join(info['actions']) or 'none detected'}\n"
        f"[bold]Domains:[/bold]  {', '.join(info['domains']) or 'none detected'}\n"
        f"[bold]Keywords:[/bold] {', '.join(info['keywords']) or 'none'}",
        title="[bold cyan]🧠 Task analysis[/bold cyan]",
        border_style="cyan",
    ))

    recs = analysis.suggestions.recommendations
    if recs:
        table = Table(title=f"Found {len(recs)} reusable candidate(s)", show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Relevance", justify="right")
        table.add_column("Type")
        table.add_column("Name", style="cyan")
        table.add_column("Module")
        for i, rec in enumerate(recs, start=1):
            table.add_row(str(i), f"{rec.relevance}%", rec.type, rec.name, rec.module)
        console.print(table)
        typer.echo(f"Usage: {recs[0].usage_snippet}")

    style = DECISION_STYLES[analysis.decision]
    console.print(f"\n[bold {style}]💡 {analysis.decision.upper()}[/bold {style}]")
    typer.echo(analysis.message)
    show_next_steps(f"task:{analysis.decision}")


@app.command("analyze")
def analyze(file_path: Path = typer.Argument(..., help="Source file to analyze (.tsx, .jsx, .ts, .js, .sql).")):
    """Detect a file's kind and patterns and cross-reference them with the registry (JSON output)."""
    service = _service()
    try:
        analysis = service.analyze_file(file_path)
    except FileNotFoundError as exc:
        fail(str(exc))
    print_json(analysis.to_dict())


@app.command("index")
def index(
    strict: bool = typer.Option(False, "--strict", help="Exit 1 if any registry record was skipped."),
):
    """Rebuild and persist the search index."""
    store = open_store()
    builder = SearchIndexBuilder(store)
    report = builder.rebuild()
    idx = report.index

    console.print(f"[green]✓[/green] Search index built in {report.elapsed_ms} ms → {builder.index_file}")
    typer.echo(
        f"Modules: {len(idx.modules)} | Components: {len(idx.components)} | "
        f"Hooks: {len(idx.hooks)} | Services: {len(idx.services)} | Keywords: {len(idx.keywords)}"
    )
    for failure in report.failures:
        typer.echo(f"⚠️  {failure}", err=True)

    if strict and report.failures:
        raise typer.Exit(code=1)
    show_next_steps("index")


if __name__ == "__main__":
    app()
