"""Exception types raised by the registry, index and suggestion layers."""

from __future__ import annotations

from pathlib import Path
from typing import List


class ModexError(Exception):
    """Base class for all Modex errors."""


class ValidationError(ModexError):
    """A manifest failed schema validation.

    ``errors`` lists every violation as ``"<field>: <reason>"``.
    """

    def __init__(self, errors: List[str], module_id: str | None = None):
        self.errors = list(errors)
        self.module_id = module_id
        label = f"Manifest '{module_id}'" if module_id else "Manifest"
        super().__init__(f"{label} is invalid: " + "; ".join(self.errors))


class NotFound(ModexError):
    """Lookup of a module id that is not registered."""

    def __init__(self, module_id: str):
        self.module_id = module_id
        super().__init__(f"Module '{module_id}' not found in registry")


class RegistryUnavailable(ModexError):
    """The registry document is missing or unreadable."""

    def __init__(self, path: Path, reason: str = "not found"):
        self.path = path
        self.reason = reason
        super().__init__(
            f"Registry {reason} at {path}. "
            "Run 'modex registry sync' (or 'modex registry init') first."
        )


class CacheBuildFailure(ModexError):
    """A manifest was skipped while building the search index."""

    def __init__(self, module_id: str, reason: str):
        self.module_id = module_id
        self.reason = reason
        super().__init__(f"Skipped '{module_id}': {reason}")
