"""Configuration paths for the local module registry."""

from __future__ import annotations

import os
from pathlib import Path

ROOT_DIR = Path(os.environ.get("MODEX_ROOT", str(Path.cwd()))).expanduser()
MODULES_DIR = ROOT_DIR / "modules"
STATE_DIR = ROOT_DIR / ".modules"
REGISTRY_FILE = STATE_DIR / "registry.json"
INSTALLED_FILE = STATE_DIR / "installed.json"
CACHE_DIR = STATE_DIR / "cache"
SEARCH_INDEX_FILE = CACHE_DIR / "search-index.json"
CACHE_META_FILE = CACHE_DIR / "cache-meta.json"
CONFIG_FILE = STATE_DIR / "config.toml"

CATEGORIES = ("ui", "logic", "data", "integration")
STATUSES = ("experimental", "stable", "deprecated")
EXPORT_KINDS = ("components", "hooks", "services", "types", "utils", "schemas", "stores")
DOCUMENT_VERSION = "1.0.0"
