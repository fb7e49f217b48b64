"""Modex CLI: module registry, discovery and reuse suggestions."""

__version__ = "1.0.0"
