"""Registry, installed-modules and configuration commands."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.panel import Panel
from rich.table import Table

from . import config
from .cli_groups import (
    config_grp,
    console,
    fail,
    installed_grp,
    open_store,
    print_json,
    registry_grp,
)
from .cli_suggestions import show_next_steps
from .config_manager import (
    LOG_LEVELS,
    load_logging_config,
    load_suggestions_config,
    save_import_prefix,
    save_log_level,
)
from .errors import NotFound, ValidationError
from .models import ModuleManifest
from .search_index import SearchIndexBuilder
from .storage import InstalledModulesStore, ManifestStore, read_json
from .validation import validate_manifest


def _check_category(category: Optional[str]) -> None:
    if category is not None and category not in config.CATEGORIES:
        raise typer.BadParameter(f"Category must be one of: {', '.join(config.CATEGORIES)}")


def _invalidate_cache(store: ManifestStore) -> None:
    # The next query rebuilds the index from the changed registry.
    SearchIndexBuilder(store).invalidate()


# ===================================================================
# modex registry ...
# ===================================================================

@registry_grp.command("init")
def registry_init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing registry."),
):
    """Create an empty registry document."""
    store = ManifestStore()
    if not store.init(force=force):
        console.print(f"[yellow]Registry already exists at {store.registry_file}[/yellow] (use --force to reset)")
        return
    console.print(f"[green]✓[/green] Created empty registry at {store.registry_file}")


@registry_grp.command("sync")
def registry_sync(
    modules_dir: Optional[Path] = typer.Option(
        None, "--modules-dir", "-d", file_okay=False, help="Modules tree to scan (default: ./modules)."
    ),
):
    """Rebuild the registry from every modules/<category>/<module>/module.json."""
    store = ManifestStore()
    report = store.sync(modules_dir=modules_dir)
    _invalidate_cache(store)

    console.print(f"[green]✓[/green] Synced {len(report.synced)} module(s) into {store.registry_file}")
    if report.skipped:
        table = Table(title="Skipped", show_header=True, header_style="bold yellow")
        table.add_column("Directory", style="cyan")
        table.add_column("Reason")
        for key, reason in report.skipped.items():
            table.add_row(key, reason)
        console.print(table)
    show_next_steps("sync")


@registry_grp.command("list")
def registry_list(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Only list one category."),
):
    """List registered modules."""
    _check_category(category)
    store = open_store()
    modules = store.list(category)
    if not modules:
        typer.echo("No modules registered.")
        raise typer.Exit(code=0)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Category")
    table.add_column("Status")
    table.add_column("Exports", justify="right")
    for m in modules:
        table.add_row(m.id, m.name, m.version, m.category, m.status, str(m.exports.total))
    console.print(table)

    for module_id, cat in store.unreadable():
        typer.echo(f"⚠️  Unreadable registry record '{module_id}' under '{cat}'", err=True)


@registry_grp.command("info")
def registry_info(module_id: str = typer.Argument(..., help="Module id.")):
    """Print one manifest as JSON."""
    store = open_store()
    try:
        manifest = store.get(module_id)
    except NotFound as exc:
        fail(str(exc))
    print_json(manifest.to_dict())


@registry_grp.command("register")
def registry_register(
    manifest_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Path to a module.json file."),
):
    """Validate a manifest file and insert (or replace) it in the registry."""
    store = open_store()
    try:
        data = read_json(manifest_file)
    except (OSError, ValueError) as exc:
        fail(f"Could not read {manifest_file}: {exc}")

    try:
        manifest = store.register(data)
    except ValidationError as exc:
        typer.echo(f"❌ Manifest {manifest_file} is invalid:", err=True)
        for error in exc.errors:
            typer.echo(f"   • {error}", err=True)
        raise typer.Exit(code=1)

    _invalidate_cache(store)
    console.print(f"[green]✓[/green] Registered '{manifest.id}' ({manifest.category})")


@registry_grp.command("remove")
def registry_remove(module_id: str = typer.Argument(..., help="Module id.")):
    """Remove a module from the registry."""
    store = open_store()
    try:
        manifest = store.remove(module_id)
    except NotFound as exc:
        fail(str(exc))
    _invalidate_cache(store)
    console.print(f"[green]✓[/green] Removed '{manifest.id}' ({manifest.category})")


@registry_grp.command("validate")
def registry_validate(
    paths: Optional[List[Path]] = typer.Argument(
        None, help="module.json files to check (default: every manifest under ./modules)."
    ),
):
    """Validate manifest files without registering them."""
    if not paths:
        paths = sorted(config.MODULES_DIR.glob("*/*/module.json"))
    if not paths:
        typer.echo(f"No module.json files found under {config.MODULES_DIR}")
        raise typer.Exit(code=0)

    invalid = 0
    for path in paths:
        try:
            errors = validate_manifest(read_json(path))
        except (OSError, ValueError) as exc:
            errors = [f"file: {exc}"]
        if errors:
            invalid += 1
            console.print(f"[red]✗[/red] {path}")
            for error in errors:
                console.print(f"    • {error}")
        else:
            console.print(f"[green]✓[/green] {path}")

    if invalid:
        typer.echo(f"{invalid} of {len(paths)} manifest(s) invalid.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"All {len(paths)} manifest(s) valid.")


@registry_grp.command("stats")
def registry_stats():
    """Show per-category counts and the reusability score."""
    store = open_store()
    stats = store.compute_stats()

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total modules", str(stats.total_modules))
    for category in config.CATEGORIES:
        table.add_row(f"  {category}", str(stats.count(category)))
    table.add_row("Reusability score", f"{stats.reusability_score}/100")
    table.add_row("Last sync", stats.last_sync or "never")
    console.print(table)


# ===================================================================
# modex installed ...
# ===================================================================

@installed_grp.command("add")
def installed_add(module_id: str = typer.Argument(..., help="Registered module id.")):
    """Record a registered module as installed in this project."""
    store = open_store()
    try:
        manifest: ModuleManifest = store.get(module_id)
    except NotFound as exc:
        fail(str(exc))
    item = InstalledModulesStore().load().install(manifest)
    console.print(f"[green]✓[/green] Installed '{item.id}' v{item.version} from {item.path}")


@installed_grp.command("list")
def installed_list(
    active_only: bool = typer.Option(False, "--active", help="Only list active modules."),
):
    """List installed modules."""
    items = InstalledModulesStore().load().list(active_only=active_only)
    if not items:
        typer.echo("No modules installed.")
        raise typer.Exit(code=0)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="cyan")
    table.add_column("Version")
    table.add_column("Path")
    table.add_column("Active")
    for item in items:
        table.add_row(item.id, item.version, item.path, "yes" if item.active else "no")
    console.print(table)


@installed_grp.command("deactivate")
def installed_deactivate(module_id: str = typer.Argument(..., help="Installed module id.")):
    """Mark an installed module as inactive."""
    try:
        item = InstalledModulesStore().load().deactivate(module_id)
    except NotFound as exc:
        fail(str(exc))
    console.print(f"[green]✓[/green] Deactivated '{item.id}'")


# ===================================================================
# modex config ...
# ===================================================================

@config_grp.command("show")
def config_show():
    """Show the effective configuration."""
    suggestions = load_suggestions_config()
    logging_cfg = load_logging_config()
    console.print(Panel(
        f"[bold]Root:[/bold]          {config.ROOT_DIR}\n"
        f"[bold]Registry:[/bold]      {config.REGISTRY_FILE}\n"
        f"[bold]Search index:[/bold]  {config.SEARCH_INDEX_FILE}\n"
        f"[bold]Config file:[/bold]   {config.CONFIG_FILE}\n"
        f"[bold]Import prefix:[/bold] {suggestions['import_prefix']}\n"
        f"[bold]Log level:[/bold]     {logging_cfg['level']}",
        title="[bold cyan]modex configuration[/bold cyan]",
        border_style="cyan",
    ))


@config_grp.command("set-prefix")
def config_set_prefix(prefix: str = typer.Argument(..., help="Import prefix, e.g. '@/modules'.")):
    """Set the prefix used in synthesized import statements."""
    try:
        save_import_prefix(prefix)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    console.print(f"[green]✓[/green] Import prefix set to '{prefix.rstrip('/')}'")


@config_grp.command("set-log-level")
def config_set_log_level(level: str = typer.Argument(..., help=f"One of: {', '.join(LOG_LEVELS)}.")):
    """Set the default log level."""
    try:
        save_log_level(level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    console.print(f"[green]✓[/green] Log level set to {level.upper()}")
