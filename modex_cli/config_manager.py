"""Configuration manager for Modex CLI using TOML files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from .config import CONFIG_FILE

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Default configuration for each section
DEFAULT_CONFIGS: Dict[str, Dict[str, Any]] = {
    "suggestions": {
        "import_prefix": "@/modules",
    },
    "logging": {
        "level": "WARNING",
    },
}


def load_full_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing file is not an error. An unparsable file is logged and treated
    as empty so the CLI still starts with defaults.
    """
    path = config_file or CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read config %s: %s", path, exc)
        return {}


def _save_full_config(config: Dict[str, Any], config_file: Optional[Path] = None) -> None:
    """Write entire config dict to TOML file, preserving all sections."""
    path = config_file or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(config, f)


def _load_section(section: str, config_file: Optional[Path] = None) -> Dict[str, Any]:
    merged = DEFAULT_CONFIGS[section].copy()
    merged.update(load_full_config(config_file).get(section, {}))
    return merged


# ------------------------------------------------------------------
# Suggestions configuration
# ------------------------------------------------------------------

def load_suggestions_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load the ``[suggestions]`` section merged over defaults."""
    return _load_section("suggestions", config_file)


def save_import_prefix(prefix: str, config_file: Optional[Path] = None) -> None:
    """Save the import prefix used in usage snippets.

    Preserves ``[logging]`` and other sections.
    """
    prefix = prefix.strip().rstrip("/")
    if not prefix:
        raise ValueError("import prefix must not be empty")
    config = load_full_config(config_file)
    config.setdefault("suggestions", {})["import_prefix"] = prefix
    _save_full_config(config, config_file)


# ------------------------------------------------------------------
# Logging configuration
# ------------------------------------------------------------------

def load_logging_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load the ``[logging]`` section merged over defaults.

    Unknown levels fall back to ``WARNING``.
    """
    section = _load_section("logging", config_file)
    level = str(section.get("level", "WARNING")).upper()
    if level not in LOG_LEVELS:
        logger.warning("Unknown log level %r in config, using WARNING", level)
        level = "WARNING"
    section["level"] = level
    return section


def save_log_level(level: str, config_file: Optional[Path] = None) -> None:
    """Persist the default log level for CLI invocations."""
    level = level.upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"log level must be one of: {', '.join(LOG_LEVELS)}")
    config = load_full_config(config_file)
    config.setdefault("logging", {})["level"] = level
    _save_full_config(config, config_file)
