"""Persistence layer for the module registry.

Architecture:
- **registry.json** holds every registered manifest grouped by category,
  plus summary stats. It is the authoritative Manifest Store.
- **installed.json** tracks which modules are installed locally.

Both documents are plain JSON, written atomically (temp file + rename) so a
reader never observes a partially written document.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from . import config
from .config import CATEGORIES, DOCUMENT_VERSION
from .errors import NotFound, RegistryUnavailable, ValidationError
from .models import InstalledModule, ModuleManifest, RegistryStats, SyncReport

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def write_json_atomic(path: Path, payload: Dict[str, Any]) -> None:
    """Write *payload* to *path* via a temp file renamed into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_json(path: Path) -> Dict[str, Any]:
    """Read a JSON object from *path*. Raises ``OSError`` / ``ValueError``."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path.name} must contain a JSON object")
    return payload


# ===================================================================
# ManifestStore  (registry.json)
# ===================================================================

class ManifestStore:
    """Registry of module manifests with explicit load/save lifecycle."""

    def __init__(self, registry_file: Optional[Path] = None) -> None:
        self.registry_file = registry_file or config.REGISTRY_FILE
        self.updated: Optional[str] = None
        self.last_sync: Optional[str] = None
        self._modules: Dict[str, ModuleManifest] = {}
        # category -> raw records that failed validation (kept verbatim on save)
        self._unreadable: Dict[str, List[Dict[str, Any]]] = {c: [] for c in CATEGORIES}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def exists(self) -> bool:
        return self.registry_file.exists()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, force: bool = False) -> bool:
        """Create an empty registry document.

        Returns:
            True if a document was written, False if one already existed
        """
        if self.exists and not force:
            return False
        self._modules = {}
        self._unreadable = {c: [] for c in CATEGORIES}
        self.last_sync = None
        self._loaded = True
        self.save()
        return True

    def load(self) -> "ManifestStore":
        """Read the registry document from disk.

        Raises:
            RegistryUnavailable: If the document is missing or unreadable
        """
        if not self.registry_file.exists():
            raise RegistryUnavailable(self.registry_file)
        try:
            payload = read_json(self.registry_file)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read registry %s: %s", self.registry_file, exc)
            raise RegistryUnavailable(self.registry_file, reason="unreadable") from exc

        stats = categories = None
        if isinstance(payload, dict):
            stats = payload.get("stats") or {}
            categories = payload.get("categories") or {}
        if (
            not isinstance(stats, dict)
            or not isinstance(categories, dict)
            or not all(isinstance(categories.get(c) or [], list) for c in CATEGORIES)
        ):
            logger.warning("Registry %s has an unexpected document shape", self.registry_file)
            raise RegistryUnavailable(self.registry_file, reason="unreadable")

        self._modules = {}
        self._unreadable = {c: [] for c in CATEGORIES}
        self.updated = payload.get("updated")
        self.last_sync = stats.get("last_sync")

        for category in CATEGORIES:
            for record in categories.get(category) or []:
                self._load_record(category, record)

        self._loaded = True
        logger.debug("Loaded %d modules from %s", len(self._modules), self.registry_file)
        return self

    def _load_record(self, category: str, record: Any) -> None:
        try:
            manifest = ModuleManifest.from_dict(record)
        except ValidationError as exc:
            logger.warning("Unreadable registry record under '%s': %s", category, exc)
            self._unreadable[category].append(record)
            return
        if manifest.category != category:
            logger.warning(
                "Module '%s' declares category '%s' but is registered under '%s'",
                manifest.id, manifest.category, category,
            )
            self._unreadable[category].append(record)
            return
        if manifest.id in self._modules:
            logger.warning("Duplicate module id '%s' in registry; keeping the first", manifest.id)
            self._unreadable[category].append(record)
            return
        self._modules[manifest.id] = manifest

    def save(self) -> None:
        """Write the registry document atomically."""
        self.updated = utc_now()
        write_json_atomic(self.registry_file, self.to_document())

    def to_document(self) -> Dict[str, Any]:
        categories: Dict[str, List[Dict[str, Any]]] = {}
        for category in CATEGORIES:
            records = [m.to_dict() for m in self.list(category)]
            records.extend(self._unreadable[category])
            categories[category] = records
        return {
            "version": DOCUMENT_VERSION,
            "updated": self.updated or utc_now(),
            "categories": categories,
            "stats": self.compute_stats().to_dict(),
        }

    def _require_loaded(self) -> None:
        if not self._loaded:
            self.load()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def register(self, manifest: Union[ModuleManifest, Dict[str, Any]], save: bool = True) -> ModuleManifest:
        """Insert or replace a manifest by id.

        Raises:
            ValidationError: If the manifest violates the schema; nothing is applied
        """
        self._require_loaded()
        if isinstance(manifest, dict):
            manifest = ModuleManifest.from_dict(manifest)
        else:
            # Re-validate objects built by hand.
            manifest = ModuleManifest.from_dict(manifest.to_dict())

        replaced = manifest.id in self._modules
        self._modules[manifest.id] = manifest
        logger.info("%s module '%s' (%s)", "Replaced" if replaced else "Registered", manifest.id, manifest.category)
        if save:
            self.save()
        return manifest

    def get(self, module_id: str) -> ModuleManifest:
        self._require_loaded()
        try:
            return self._modules[module_id]
        except KeyError:
            raise NotFound(module_id) from None

    def list(self, category: Optional[str] = None) -> List[ModuleManifest]:
        self._require_loaded()
        modules = sorted(self._modules.values(), key=lambda m: m.id)
        if category is None:
            return modules
        return [m for m in modules if m.category == category]

    def remove(self, module_id: str, save: bool = True) -> ModuleManifest:
        self._require_loaded()
        manifest = self._modules.pop(module_id, None)
        if manifest is None:
            raise NotFound(module_id)
        logger.info("Removed module '%s' (%s)", module_id, manifest.category)
        if save:
            self.save()
        return manifest

    def __contains__(self, module_id: str) -> bool:
        return module_id in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def unreadable(self) -> List[Tuple[str, str]]:
        """Return ``(module_id, category)`` for records that failed to load."""
        out = []
        for category, records in self._unreadable.items():
            for record in records:
                module_id = record.get("id") if isinstance(record, dict) else None
                out.append((str(module_id or "<unknown>"), category))
        return out

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def compute_stats(self) -> RegistryStats:
        """Per-category counts, total and reusability score.

        The reusability score counts, for every module, the distinct other
        modules that depend on it, sums those counts and normalizes against
        the total number of exports (capped at 100).
        """
        stats = RegistryStats(last_sync=self.last_sync)
        dependents: Dict[str, set] = {module_id: set() for module_id in self._modules}
        total_exports = 0

        for manifest in self._modules.values():
            setattr(stats, manifest.category, stats.count(manifest.category) + 1)
            total_exports += manifest.exports.total
            for dep in manifest.dependencies.modules:
                if dep in dependents and dep != manifest.id:
                    dependents[dep].add(manifest.id)

        stats.total_modules = len(self._modules)
        references = sum(len(consumers) for consumers in dependents.values())
        stats.reusability_score = min(100, round(references * 100 / max(total_exports, 1)))
        return stats

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(self, modules_dir: Optional[Path] = None, root_dir: Optional[Path] = None) -> SyncReport:
        """Rebuild the registry from ``<modules_dir>/<category>/<dir>/module.json``.

        Unreadable or invalid manifests are skipped and reported; the
        registry content is fully replaced.
        """
        modules_dir = modules_dir or config.MODULES_DIR
        root_dir = root_dir or modules_dir.parent
        report = SyncReport()
        found: Dict[str, ModuleManifest] = {}

        for category in CATEGORIES:
            category_dir = modules_dir / category
            if not category_dir.is_dir():
                logger.info("Category directory not found: %s", category_dir)
                continue
            for module_dir in sorted(p for p in category_dir.iterdir() if p.is_dir()):
                manifest_path = module_dir / "module.json"
                key = f"{category}/{module_dir.name}"
                if not manifest_path.exists():
                    report.skipped[key] = "no module.json"
                    continue
                try:
                    data = read_json(manifest_path)
                    data["path"] = _relative_path(module_dir, root_dir)
                    manifest = ModuleManifest.from_dict(data)
                except (OSError, ValueError) as exc:
                    report.skipped[key] = f"unreadable module.json: {exc}"
                    continue
                except ValidationError as exc:
                    report.skipped[key] = "; ".join(exc.errors)
                    continue
                if manifest.category != category:
                    report.skipped[key] = (
                        f"category '{manifest.category}' does not match directory '{category}'"
                    )
                    continue
                if manifest.id in found:
                    report.skipped[key] = f"duplicate module id '{manifest.id}'"
                    continue
                found[manifest.id] = manifest
                report.synced.append(manifest.id)

        for key, reason in report.skipped.items():
            logger.warning("Skipping %s: %s", key, reason)

        self._modules = found
        self._unreadable = {c: [] for c in CATEGORIES}
        self._loaded = True
        self.last_sync = utc_now()
        self.save()
        return report


def _relative_path(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


# ===================================================================
# InstalledModulesStore  (installed.json)
# ===================================================================

class InstalledModulesStore:
    """Track modules installed into the local project."""

    def __init__(self, installed_file: Optional[Path] = None) -> None:
        self.installed_file = installed_file or config.INSTALLED_FILE
        self._modules: Dict[str, InstalledModule] = {}

    def load(self) -> "InstalledModulesStore":
        self._modules = {}
        if not self.installed_file.exists():
            return self
        try:
            payload = read_json(self.installed_file)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read %s: %s", self.installed_file, exc)
            return self
        for record in payload.get("modules", []):
            try:
                item = InstalledModule.from_dict(record)
            except (KeyError, TypeError) as exc:
                logger.warning("Ignoring malformed installed-module record: %s", exc)
                continue
            self._modules[item.id] = item
        return self

    def save(self) -> None:
        write_json_atomic(self.installed_file, {
            "version": DOCUMENT_VERSION,
            "updated": utc_now(),
            "modules": [m.to_dict() for m in self.list()],
        })

    def install(self, manifest: ModuleManifest) -> InstalledModule:
        item = InstalledModule(
            id=manifest.id,
            version=manifest.version,
            installed_at=utc_now(),
            path=manifest.path,
            active=True,
        )
        self._modules[item.id] = item
        self.save()
        return item

    def deactivate(self, module_id: str) -> InstalledModule:
        item = self._modules.get(module_id)
        if item is None:
            raise NotFound(module_id)
        item.active = False
        self.save()
        return item

    def list(self, active_only: bool = False) -> List[InstalledModule]:
        items = sorted(self._modules.values(), key=lambda m: m.id)
        if active_only:
            return [m for m in items if m.active]
        return items
