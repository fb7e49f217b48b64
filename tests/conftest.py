"""Pytest configuration and fixtures for Modex CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest

from modex_cli.search_index import SearchIndexBuilder
from modex_cli.storage import ManifestStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def modex_root(temp_dir: Path, monkeypatch) -> Path:
    """Point every registry path at a temporary project root."""
    state_dir = temp_dir / ".modules"
    cache_dir = state_dir / "cache"
    config_file = state_dir / "config.toml"

    monkeypatch.setattr("modex_cli.config.ROOT_DIR", temp_dir)
    monkeypatch.setattr("modex_cli.config.MODULES_DIR", temp_dir / "modules")
    monkeypatch.setattr("modex_cli.config.STATE_DIR", state_dir)
    monkeypatch.setattr("modex_cli.config.REGISTRY_FILE", state_dir / "registry.json")
    monkeypatch.setattr("modex_cli.config.INSTALLED_FILE", state_dir / "installed.json")
    monkeypatch.setattr("modex_cli.config.CACHE_DIR", cache_dir)
    monkeypatch.setattr("modex_cli.config.SEARCH_INDEX_FILE", cache_dir / "search-index.json")
    monkeypatch.setattr("modex_cli.config.CACHE_META_FILE", cache_dir / "cache-meta.json")
    monkeypatch.setattr("modex_cli.config.CONFIG_FILE", config_file)
    # config_manager imports CONFIG_FILE at module load
    monkeypatch.setattr("modex_cli.config_manager.CONFIG_FILE", config_file)
    return temp_dir


@pytest.fixture
def modules_tree(modex_root: Path) -> Path:
    """Copy the fixture modules tree into the temporary root."""
    target = modex_root / "modules"
    shutil.copytree(FIXTURES_DIR / "modules", target)
    return target


@pytest.fixture
def empty_store(modex_root: Path) -> ManifestStore:
    """An initialized, empty registry."""
    store = ManifestStore()
    store.init()
    return store


@pytest.fixture
def synced_store(modules_tree: Path) -> ManifestStore:
    """A registry synced from the fixture modules tree."""
    store = ManifestStore()
    store.sync()
    return store


@pytest.fixture
def builder(synced_store: ManifestStore) -> SearchIndexBuilder:
    return SearchIndexBuilder(synced_store)


@pytest.fixture
def code_fixtures() -> Path:
    return FIXTURES_DIR / "code"


def make_manifest(**overrides: Any) -> Dict[str, Any]:
    """Build a minimal valid manifest dict, with field overrides."""
    manifest: Dict[str, Any] = {
        "id": "sample-module",
        "name": "Sample Module",
        "version": "1.0.0",
        "category": "logic",
        "description": "A sample module used in tests",
        "keywords": ["sample"],
    }
    manifest.update(overrides)
    return manifest


@pytest.fixture
def manifest_factory():
    """Factory fixture returning :func:`make_manifest`."""
    return make_manifest
