"""Command hierarchy groups and helpers shared by the CLI modules.

Provides logical grouping of commands under:
  modex registry   — Register, sync and inspect module manifests
  modex discover   — Browse the search index
  modex cache      — Search index cache maintenance
  modex installed  — Modules installed in this project
  modex metrics    — Registry health metrics
  modex config     — Persistent settings
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console

from .errors import RegistryUnavailable
from .storage import ManifestStore

console = Console()

# ── Registry group ───────────────────────────────────────────
registry_grp = typer.Typer(
    help="📦 Registry — sync, register and inspect module manifests.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Discovery group ──────────────────────────────────────────
discover_grp = typer.Typer(
    help="🔍 Discovery — browse components, hooks, services and keywords.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Cache group ──────────────────────────────────────────────
cache_grp = typer.Typer(
    help="🗄️  Cache — search index status, validation and invalidation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Installed modules group ──────────────────────────────────
installed_grp = typer.Typer(
    help="📥 Installed — modules installed into this project.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Metrics group ────────────────────────────────────────────
metrics_grp = typer.Typer(
    help="📊 Metrics — inventory overview and reusability report.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Configuration group ──────────────────────────────────────
config_grp = typer.Typer(
    help="⚙️  Configuration — import prefix and log level.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def fail(message: str) -> NoReturn:
    """Print an error to stderr and exit with status 1."""
    typer.echo(f"❌ {message}", err=True)
    raise typer.Exit(code=1)


def open_store() -> ManifestStore:
    """Load the registry, exiting with a remediation hint if it is unavailable."""
    store = ManifestStore()
    try:
        store.load()
    except RegistryUnavailable as exc:
        fail(str(exc))
    return store


def print_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
