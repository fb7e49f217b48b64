"""Denormalized search index derived from the module registry.

The index is a pure function of the registry at build time. It is cached as
``search-index.json`` next to ``cache-meta.json``, which records the md5 of the
registry document the index was built from, so a changed registry can be
detected without re-reading every manifest.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .config import CATEGORIES, DOCUMENT_VERSION
from .errors import CacheBuildFailure, NotFound, RegistryUnavailable
from .models import ExportInfo, ModuleManifest
from .storage import ManifestStore, read_json, utc_now, write_json_atomic

logger = logging.getLogger(__name__)

# Export kinds that are flattened into their own ranked sequences
INDEXED_KINDS = ("components", "hooks", "services")
EXPORT_ENTRY_KEYS = ("name", "moduleId", "category")


def project_module(manifest: ModuleManifest) -> Dict[str, Any]:
    """Module-level projection stored under ``modules[id]``."""
    return {
        "id": manifest.id,
        "name": manifest.name,
        "version": manifest.version,
        "category": manifest.category,
        "description": manifest.description,
        "keywords": list(manifest.keywords),
        "status": manifest.status,
        "path": manifest.path,
        "exports": manifest.exports.to_dict(),
        "dependencies": manifest.dependencies.to_dict(),
        "use_cases": list(manifest.use_cases),
        "examples": list(manifest.examples),
    }


def flatten_export(export: ExportInfo, manifest: ModuleManifest) -> Dict[str, Any]:
    """Flat export entry with a back-reference to its owning module."""
    return {
        "name": export.name,
        "moduleId": manifest.id,
        "moduleName": manifest.name,
        "category": manifest.category,
        "description": export.description or manifest.description,
        "keywords": list(export.keywords),
        "path": export.path,
        "type": export.type,
        "example": export.example,
    }


# ===================================================================
# SearchIndex  (query side)
# ===================================================================

class SearchIndex:
    """In-memory search index with the discovery queries."""

    def __init__(
        self,
        modules: Optional[Dict[str, Dict[str, Any]]] = None,
        components: Optional[List[Dict[str, Any]]] = None,
        hooks: Optional[List[Dict[str, Any]]] = None,
        services: Optional[List[Dict[str, Any]]] = None,
        keywords: Optional[Dict[str, List[str]]] = None,
        generated_at: Optional[str] = None,
        version: str = DOCUMENT_VERSION,
    ):
        self.modules = modules or {}
        self.components = components or []
        self.hooks = hooks or []
        self.services = services or []
        self.keywords = keywords or {}
        self.generated_at = generated_at or utc_now()
        self.version = version

    @property
    def is_empty(self) -> bool:
        return not (self.modules or self.components or self.hooks or self.services)

    def exports(self, kind: str) -> List[Dict[str, Any]]:
        if kind not in INDEXED_KINDS:
            raise ValueError(f"Unsupported export kind: {kind}")
        return getattr(self, kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "generatedAt": self.generated_at,
            "modules": self.modules,
            "components": self.components,
            "hooks": self.hooks,
            "services": self.services,
            "keywords": self.keywords,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchIndex":
        """Rebuild an index from its JSON document.

        Raises:
            ValueError: If the document or any entry has the wrong shape
        """
        if not isinstance(data, dict):
            raise ValueError("search index must be an object")
        modules = data.get("modules", {})
        if not isinstance(modules, dict):
            raise ValueError("search index 'modules' must be an object")
        for module_id, entry in modules.items():
            if not isinstance(entry, dict) or "id" not in entry or "category" not in entry:
                raise ValueError(f"search index module '{module_id}' is malformed")
        for kind in INDEXED_KINDS:
            entries = data.get(kind, [])
            if not isinstance(entries, list):
                raise ValueError(f"search index '{kind}' must be a list")
            for entry in entries:
                if not isinstance(entry, dict) or any(k not in entry for k in EXPORT_ENTRY_KEYS):
                    raise ValueError(f"search index '{kind}' has a malformed entry")
        keywords = data.get("keywords", {})
        if not isinstance(keywords, dict):
            raise ValueError("search index 'keywords' must be an object")
        return cls(
            modules=modules,
            components=list(data.get("components", [])),
            hooks=list(data.get("hooks", [])),
            services=list(data.get("services", [])),
            keywords=dict(keywords),
            generated_at=data.get("generatedAt"),
            version=data.get("version", DOCUMENT_VERSION),
        )

    # ------------------------------------------------------------------
    # Discovery queries
    # ------------------------------------------------------------------

    @staticmethod
    def _filter(entries: Iterable[Dict[str, Any]], query: Optional[str]) -> List[Dict[str, Any]]:
        if not query:
            return list(entries)
        needle = query.lower()
        return [
            e for e in entries
            if needle in f"{e.get('name', '')} {e.get('description') or ''}".lower()
        ]

    def find_components(self, query: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._filter(self.components, query)

    def find_hooks(self, query: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._filter(self.hooks, query)

    def find_services(self, query: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._filter(self.services, query)

    def by_category(self, category: str) -> List[Dict[str, Any]]:
        if category not in CATEGORIES:
            raise ValueError(
                f"Invalid category '{category}'. Choose from: {', '.join(CATEGORIES)}"
            )
        return [m for m in self.modules.values() if m.get("category") == category]

    def by_keywords(self, keywords: List[str]) -> List[Dict[str, Any]]:
        """Modules carrying any of *keywords* (exact, case-insensitive).

        Each hit gets ``matchedKeywords`` and ``relevance`` = matched / queried.
        """
        if not keywords:
            return []
        results = []
        for module in self.modules.values():
            own = {k.lower() for k in module.get("keywords", [])}
            matched = [k for k in keywords if k.lower() in own]
            if matched:
                results.append({
                    **module,
                    "matchedKeywords": matched,
                    "relevance": len(matched) / len(keywords),
                })
        results.sort(key=lambda m: m["relevance"], reverse=True)
        return results

    def examples(self, module_id: str) -> Dict[str, Any]:
        """Usage examples for one module, per export kind."""
        module = self.modules.get(module_id)
        if module is None:
            raise NotFound(module_id)
        exports = {}
        for kind, items in (module.get("exports") or {}).items():
            if items:
                exports[kind] = [
                    {
                        "name": item["name"],
                        "example": item.get("example") or f"// No example available for {item['name']}",
                    }
                    for item in items
                ]
        return {
            "module": module["id"],
            "moduleName": module["name"],
            "category": module["category"],
            "imports": list(module.get("examples", [])),
            "useCases": list(module.get("use_cases", [])),
            "exports": exports,
        }

    def search(self, query: str) -> Dict[str, List[Dict[str, Any]]]:
        """Substring search across exports and the keyword map."""
        results: Dict[str, List[Dict[str, Any]]] = {
            "modules": [],
            "components": self._filter(self.components, query),
            "hooks": self._filter(self.hooks, query),
            "services": self._filter(self.services, query),
        }
        needle = query.lower()
        seen = set()
        for keyword, module_ids in self.keywords.items():
            if needle not in keyword.lower():
                continue
            for module_id in module_ids:
                if module_id in self.modules and module_id not in seen:
                    seen.add(module_id)
                    results["modules"].append(self.modules[module_id])
        return results


@dataclass
class IndexBuildReport:
    index: SearchIndex
    failures: List[CacheBuildFailure] = field(default_factory=list)
    elapsed_ms: int = 0

    @property
    def skipped(self) -> List[str]:
        return [f.module_id for f in self.failures]


# ===================================================================
# SearchIndexBuilder  (build side + cache metadata)
# ===================================================================

class SearchIndexBuilder:
    """Build, persist and validate the cached search index."""

    def __init__(
        self,
        store: ManifestStore,
        index_file: Optional[Path] = None,
        meta_file: Optional[Path] = None,
    ):
        self.store = store
        self.index_file = index_file or config.SEARCH_INDEX_FILE
        self.meta_file = meta_file or config.CACHE_META_FILE

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> IndexBuildReport:
        """Flatten the current registry into a :class:`SearchIndex`.

        Unreadable registry records are skipped and reported as failures.
        A missing or unreadable registry yields an empty index.
        """
        started = time.perf_counter()
        index = SearchIndex()
        report = IndexBuildReport(index=index)

        try:
            manifests = self.store.list()
        except RegistryUnavailable as exc:
            logger.warning("Building an empty search index: %s", exc)
            return report

        for module_id, category in self.store.unreadable():
            failure = CacheBuildFailure(module_id, f"unreadable registry record under '{category}'")
            logger.warning("%s", failure)
            report.failures.append(failure)

        keywords: Dict[str, List[str]] = {}
        for manifest in manifests:
            index.modules[manifest.id] = project_module(manifest)
            for kind in INDEXED_KINDS:
                for export in getattr(manifest.exports, kind):
                    index.exports(kind).append(flatten_export(export, manifest))
            for keyword in manifest.keywords:
                keywords.setdefault(keyword, []).append(manifest.id)
            logger.debug("Indexed module '%s'", manifest.id)

        index.keywords = {k: keywords[k] for k in sorted(keywords)}
        report.elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Built search index: %d modules, %d components, %d hooks, %d services",
            len(index.modules), len(index.components), len(index.hooks), len(index.services),
        )
        return report

    def save(self, index: SearchIndex, elapsed_ms: Optional[int] = None) -> None:
        """Persist *index* atomically and record the cache metadata."""
        write_json_atomic(self.index_file, index.to_dict())
        meta = self.load_meta()
        meta["lastUpdate"] = utc_now()
        meta["registryHash"] = self.registry_hash()
        meta["totalIndexBuilds"] = int(meta.get("totalIndexBuilds") or 0) + 1
        meta["lastIndexBuildMs"] = elapsed_ms
        write_json_atomic(self.meta_file, meta)

    def rebuild(self) -> IndexBuildReport:
        report = self.build()
        self.save(report.index, report.elapsed_ms)
        return report

    def load(self) -> SearchIndex:
        """Read the cached index. Raises ``OSError`` / ``ValueError``."""
        return SearchIndex.from_dict(read_json(self.index_file))

    def load_or_build(self) -> SearchIndex:
        """Return the cached index, building and persisting it first if absent."""
        if self.index_file.exists():
            try:
                return self.load()
            except (OSError, ValueError) as exc:
                logger.warning("Cached search index is unreadable, rebuilding: %s", exc)
        else:
            logger.info("Search index not built yet, building now")
        return self.rebuild().index

    # ------------------------------------------------------------------
    # Cache metadata
    # ------------------------------------------------------------------

    def registry_hash(self) -> Optional[str]:
        registry_file = self.store.registry_file
        if not registry_file.exists():
            return None
        return hashlib.md5(registry_file.read_bytes()).hexdigest()

    def load_meta(self) -> Dict[str, Any]:
        if self.meta_file.exists():
            try:
                return read_json(self.meta_file)
            except (OSError, ValueError) as exc:
                logger.warning("Could not load cache metadata, starting fresh: %s", exc)
        return {
            "version": DOCUMENT_VERSION,
            "lastUpdate": None,
            "registryHash": None,
            "lastIndexBuildMs": None,
            "totalIndexBuilds": 0,
        }

    def is_valid(self) -> bool:
        """True when the index exists and the registry is unchanged since its build."""
        if not self.index_file.exists():
            logger.debug("Cache invalid: search index not found")
            return False
        current = self.registry_hash()
        if current is None:
            logger.debug("Cache invalid: registry not found")
            return False
        if current != self.load_meta().get("registryHash"):
            logger.debug("Cache invalid: registry has been modified")
            return False
        return True

    def invalidate(self) -> bool:
        """Remove the cached index and reset the build hash.

        Returns:
            True if an index file was removed
        """
        removed = False
        if self.index_file.exists():
            self.index_file.unlink()
            removed = True
        meta = self.load_meta()
        meta["lastUpdate"] = None
        meta["registryHash"] = None
        write_json_atomic(self.meta_file, meta)
        logger.info("Search index cache invalidated")
        return removed

    def status(self) -> Dict[str, Any]:
        size = sum(p.stat().st_size for p in (self.index_file, self.meta_file) if p.exists())
        meta = self.load_meta()
        return {
            "valid": self.is_valid(),
            "size": f"{size / 1024:.2f} KB",
            "age": format_age(meta.get("lastUpdate")),
            "lastUpdate": meta.get("lastUpdate"),
            "lastIndexBuildMs": meta.get("lastIndexBuildMs"),
            "totalIndexBuilds": meta.get("totalIndexBuilds", 0),
        }


def format_age(timestamp: Optional[str], now: Optional[datetime] = None) -> str:
    """Human-readable age of an ISO-8601 timestamp."""
    if not timestamp:
        return "Never built"
    try:
        built = datetime.fromisoformat(timestamp)
    except ValueError:
        return "Unknown"
    if built.tzinfo is None:
        built = built.replace(tzinfo=timezone.utc)
    minutes = int(((now or datetime.now(timezone.utc)) - built).total_seconds() // 60)
    hours, days = minutes // 60, minutes // (60 * 24)
    if days > 0:
        return f"{days} day(s)"
    if hours > 0:
        return f"{hours} hour(s)"
    if minutes > 0:
        return f"{minutes} minute(s)"
    return "Just now"
