"""Discovery, cache and metrics commands.

Discovery commands print JSON so an agent can consume them directly.
"""

from __future__ import annotations

from typing import List, Optional

import typer
from rich.table import Table

from .cli_groups import cache_grp, console, discover_grp, fail, metrics_grp, open_store, print_json
from .errors import NotFound
from .metrics import ModuleMetrics
from .search_index import SearchIndex, SearchIndexBuilder


def _load_index() -> SearchIndex:
    store = open_store()
    return SearchIndexBuilder(store).load_or_build()


def _render_bar(percentage: float) -> str:
    filled = int(percentage / 10)
    bar = "█" * filled + "░" * (10 - filled)
    if percentage >= 80:
        color = "green"
    elif percentage >= 60:
        color = "yellow"
    else:
        color = "red"
    return f"[{color}]{bar}[/{color}] {percentage:.0f}%"


# ===================================================================
# modex discover ...
# ===================================================================

@discover_grp.command("components")
def discover_components(query: Optional[str] = typer.Argument(None, help="Substring filter on name/description.")):
    """List reusable components."""
    items = _load_index().find_components(query)
    print_json({"count": len(items), "components": items})


@discover_grp.command("hooks")
def discover_hooks(query: Optional[str] = typer.Argument(None, help="Substring filter on name/description.")):
    """List reusable hooks."""
    items = _load_index().find_hooks(query)
    print_json({"count": len(items), "hooks": items})


@discover_grp.command("services")
def discover_services(query: Optional[str] = typer.Argument(None, help="Substring filter on name/description.")):
    """List services."""
    items = _load_index().find_services(query)
    print_json({"count": len(items), "services": items})


@discover_grp.command("category")
def discover_category(category: str = typer.Argument(..., help="ui, logic, data or integration.")):
    """List the modules of one category."""
    index = _load_index()
    try:
        modules = index.by_category(category)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    print_json({"category": category, "count": len(modules), "modules": modules})


@discover_grp.command("keywords")
def discover_keywords(keywords: List[str] = typer.Argument(..., help="One or more keywords.")):
    """Find modules by exact keyword, ranked by the share of keywords matched."""
    modules = _load_index().by_keywords(keywords)
    print_json({"query": keywords, "count": len(modules), "modules": modules})


@discover_grp.command("examples")
def discover_examples(module_id: str = typer.Argument(..., help="Module id.")):
    """Show usage examples for one module."""
    index = _load_index()
    try:
        print_json(index.examples(module_id))
    except NotFound as exc:
        fail(str(exc))


@discover_grp.command("search")
def discover_search(query: str = typer.Argument(..., help="Substring to look for.")):
    """Fast substring search across exports and module keywords."""
    print_json(_load_index().search(query))


# ===================================================================
# modex cache ...
# ===================================================================

@cache_grp.command("status")
def cache_status():
    """Show search index cache status."""
    store = open_store()
    status = SearchIndexBuilder(store).status()

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Valid", "[green]yes[/green]" if status["valid"] else "[red]no[/red]")
    table.add_row("Size", status["size"])
    table.add_row("Age", status["age"])
    table.add_row("Last build", f"{status['lastIndexBuildMs']} ms" if status["lastIndexBuildMs"] is not None else "N/A")
    table.add_row("Total builds", str(status["totalIndexBuilds"]))
    console.print(table)
    if not status["valid"]:
        console.print("[yellow]Rebuild with:[/yellow] modex index")


@cache_grp.command("validate")
def cache_validate():
    """Exit 0 if the cached index matches the registry, 1 otherwise."""
    store = open_store()
    if SearchIndexBuilder(store).is_valid():
        typer.echo("Cache is VALID")
        return
    typer.echo("Cache is INVALID")
    raise typer.Exit(code=1)


@cache_grp.command("invalidate")
def cache_invalidate():
    """Delete the cached search index."""
    store = open_store()
    removed = SearchIndexBuilder(store).invalidate()
    typer.echo("Removed search index." if removed else "No search index to remove.")


# ===================================================================
# modex metrics ...
# ===================================================================

@metrics_grp.command("overview")
def metrics_overview(
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
):
    """Inventory by category, export kind, status and dependency type."""
    overview = ModuleMetrics(open_store()).overview()
    if as_json:
        print_json(overview)
        return

    console.print(f"[bold]Total modules:[/bold] {overview['totalModules']}")
    for title, section in (
        ("Categories", overview["categories"]),
        ("Exports", overview["exports"]),
        ("Status", overview["statuses"]),
        ("Dependencies", overview["dependencies"]),
    ):
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Key", style="cyan")
        table.add_column("Count", justify="right")
        for key, value in section.items():
            table.add_row(key, str(value))
        console.print(table)


@metrics_grp.command("category")
def metrics_category(category: str = typer.Argument(..., help="ui, logic, data or integration.")):
    """Per-module export counts for one category."""
    try:
        print_json(ModuleMetrics(open_store()).by_category(category))
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


@metrics_grp.command("reusability")
def metrics_reusability(
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
):
    """Example coverage across exports and the exports still missing one."""
    report = ModuleMetrics(open_store()).reusability()
    if as_json:
        print_json(report)
        return

    console.print(f"[bold]Total exports:[/bold] {report['totalExports']}")
    console.print(f"[bold]With examples:[/bold] {report['withExamples']}/{report['totalExports']}")
    console.print(f"[bold]Coverage:[/bold]      {_render_bar(report['exampleCoverage'])}")

    missing = report["missingExamples"]
    if missing:
        table = Table(title="Missing usage examples", show_header=True, header_style="bold yellow")
        table.add_column("Module", style="cyan")
        table.add_column("Export")
        table.add_column("Kind")
        for item in missing[:20]:
            table.add_row(item["module"], item["item"], item["type"])
        console.print(table)
        if len(missing) > 20:
            console.print(f"[dim]... and {len(missing) - 20} more[/dim]")
