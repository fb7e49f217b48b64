"""Registry health metrics: inventory overview and export reusability."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .config import CATEGORIES, EXPORT_KINDS, STATUSES
from .storage import ManifestStore

logger = logging.getLogger(__name__)


class ModuleMetrics:
    """Aggregate counts over the manifests of a loaded :class:`ManifestStore`."""

    def __init__(self, store: ManifestStore):
        self.store = store
        if not store.loaded:
            store.load()

    def overview(self) -> Dict[str, Any]:
        modules = self.store.list()
        categories = {c: 0 for c in CATEGORIES}
        exports = {k: 0 for k in EXPORT_KINDS}
        statuses = {s: 0 for s in STATUSES}
        internal = external = 0
        with_examples = with_use_cases = 0

        for manifest in modules:
            categories[manifest.category] += 1
            statuses[manifest.status] += 1
            for kind, items in manifest.exports.items():
                exports[kind] += len(items)
            internal += len(manifest.dependencies.modules)
            external += len(manifest.dependencies.packages)
            if manifest.examples:
                with_examples += 1
            if manifest.use_cases:
                with_use_cases += 1

        return {
            "totalModules": len(modules),
            "categories": categories,
            "exports": exports,
            "statuses": statuses,
            "dependencies": {"internal": internal, "external": external},
            "health": {"withExamples": with_examples, "withUseCases": with_use_cases},
        }

    def by_category(self, category: str) -> Dict[str, Any]:
        if category not in CATEGORIES:
            raise ValueError(f"Invalid category '{category}'. Choose from: {', '.join(CATEGORIES)}")
        modules = self.store.list(category)
        total_exports = sum(m.exports.total for m in modules)
        return {
            "category": category,
            "count": len(modules),
            "avgExportsPerModule": round(total_exports / len(modules), 2) if modules else 0,
            "modules": [
                {
                    "id": m.id,
                    "name": m.name,
                    "version": m.version,
                    "status": m.status,
                    "exportsCount": m.exports.total,
                }
                for m in modules
            ],
        }

    def reusability(self) -> Dict[str, Any]:
        """Example coverage of every export, plus the exports lacking one."""
        by_kind = {k: 0 for k in EXPORT_KINDS}
        with_examples = 0
        missing: List[Dict[str, str]] = []

        for manifest in self.store.list():
            for kind, items in manifest.exports.items():
                for item in items:
                    by_kind[kind] += 1
                    if item.example:
                        with_examples += 1
                    else:
                        missing.append({
                            "module": manifest.id,
                            "item": item.name,
                            "type": kind,
                            "issue": "Missing usage example",
                        })

        total = sum(by_kind.values())
        coverage = round(with_examples * 100 / total) if total else 0
        logger.debug("Reusability: %d/%d exports with examples", with_examples, total)
        return {
            "totalExports": total,
            "reusableItems": by_kind,
            "withExamples": with_examples,
            "withoutExamples": total - with_examples,
            "exampleCoverage": coverage,
            "missingExamples": missing,
        }
