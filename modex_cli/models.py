"""Core data models used by the registry, index and suggestion layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Optional, Tuple

from .config import CATEGORIES, EXPORT_KINDS
from .errors import ValidationError
from .validation import resolve_ai_fields, validate_manifest


@dataclass
class ExportInfo:
    """A symbol exported by a module (component, hook, service, ...)."""
    name: str
    path: str
    type: Optional[str] = None
    description: Optional[str] = None
    example: Optional[str] = None
    keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "path": self.path}
        for key in ("type", "description", "example"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.keywords:
            payload["keywords"] = list(self.keywords)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExportInfo":
        return cls(
            name=data["name"],
            path=data["path"],
            type=data.get("type"),
            description=data.get("description"),
            example=data.get("example"),
            keywords=list(data.get("keywords", [])),
        )


@dataclass
class ModuleExports:
    components: List[ExportInfo] = field(default_factory=list)
    hooks: List[ExportInfo] = field(default_factory=list)
    services: List[ExportInfo] = field(default_factory=list)
    types: List[ExportInfo] = field(default_factory=list)
    utils: List[ExportInfo] = field(default_factory=list)
    schemas: List[ExportInfo] = field(default_factory=list)
    stores: List[ExportInfo] = field(default_factory=list)

    def items(self) -> Iterator[Tuple[str, List[ExportInfo]]]:
        """Yield ``(kind, exports)`` pairs in declaration order."""
        for kind in EXPORT_KINDS:
            yield kind, getattr(self, kind)

    @property
    def total(self) -> int:
        return sum(len(items) for _, items in self.items())

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {kind: [e.to_dict() for e in items] for kind, items in self.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleExports":
        return cls(**{
            kind: [ExportInfo.from_dict(e) for e in data.get(kind, [])]
            for kind in EXPORT_KINDS
        })


@dataclass
class ModuleDependencies:
    modules: List[str] = field(default_factory=list)
    packages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"modules": list(self.modules), "packages": list(self.packages)}


@dataclass
class ModuleManifest:
    """Metadata describing one reusable module."""
    id: str
    name: str
    version: str
    category: str
    description: str
    keywords: List[str]
    status: str = "stable"
    exports: ModuleExports = field(default_factory=ModuleExports)
    dependencies: ModuleDependencies = field(default_factory=ModuleDependencies)
    path: str = ""
    use_cases: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        if not self.path:
            self.path = f"modules/{self.category}/{self.id}"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "category": self.category,
            "description": self.description,
            "keywords": list(self.keywords),
            "status": self.status,
            "path": self.path,
            "exports": self.exports.to_dict(),
            "dependencies": self.dependencies.to_dict(),
            "use_cases": list(self.use_cases),
            "examples": list(self.examples),
        }
        if self.created_at is not None:
            payload["createdAt"] = self.created_at
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleManifest":
        """Validate and build a manifest, applying defaults.

        Raises:
            ValidationError: With every violated field, if invalid
        """
        errors = validate_manifest(data)
        if errors:
            module_id = data.get("id") if isinstance(data, dict) else None
            raise ValidationError(errors, module_id=module_id if isinstance(module_id, str) else None)

        data = resolve_ai_fields(data)
        deps = data.get("dependencies", {})
        return cls(
            id=data["id"],
            name=data["name"],
            version=data["version"],
            category=data["category"],
            description=data["description"],
            keywords=list(data["keywords"]),
            status=data.get("status", "stable"),
            exports=ModuleExports.from_dict(data.get("exports", {})),
            dependencies=ModuleDependencies(
                modules=list(deps.get("modules", [])),
                packages=list(deps.get("packages", [])),
            ),
            path=data.get("path") or "",
            use_cases=list(data.get("use_cases", [])),
            examples=list(data.get("examples", [])),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class RegistryStats:
    total_modules: int = 0
    ui: int = 0
    logic: int = 0
    data: int = 0
    integration: int = 0
    reusability_score: int = 0
    last_sync: Optional[str] = None

    def count(self, category: str) -> int:
        return getattr(self, category)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"total_modules": self.total_modules}
        for category in CATEGORIES:
            payload[category] = getattr(self, category)
        payload["reusability_score"] = self.reusability_score
        if self.last_sync is not None:
            payload["last_sync"] = self.last_sync
        return payload


@dataclass
class SyncReport:
    synced: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)


@dataclass
class InstalledModule:
    id: str
    version: str
    installed_at: str
    path: str
    active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "installedAt": self.installed_at,
            "path": self.path,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstalledModule":
        return cls(
            id=data["id"],
            version=data["version"],
            installed_at=data["installedAt"],
            path=data["path"],
            active=bool(data.get("active", True)),
        )


# ------------------------------------------------------------------
# Query-time models
# ------------------------------------------------------------------

@dataclass
class CategoryMatch:
    category: str
    matched_patterns: List[str]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "matchedPatterns": list(self.matched_patterns),
            "confidence": self.confidence,
        }


@dataclass
class ActionMatch:
    action: str
    matched_patterns: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, "matchedPatterns": list(self.matched_patterns)}


@dataclass
class KeywordBag:
    """Classification of one free-text query."""
    categories: List[CategoryMatch] = field(default_factory=list)
    actions: List[ActionMatch] = field(default_factory=list)
    domains: List[str] = field(default_factory=list)
    raw_tokens: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.categories or self.actions or self.domains or self.raw_tokens)

    @property
    def top_category(self) -> Optional[CategoryMatch]:
        return self.categories[0] if self.categories else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": [c.to_dict() for c in self.categories],
            "actions": [a.to_dict() for a in self.actions],
            "domains": list(self.domains),
            "rawTokens": list(self.raw_tokens),
        }


RecommendationType = Literal["module", "component", "hook", "service"]


@dataclass
class Recommendation:
    type: RecommendationType
    name: str
    module: str
    category: str
    relevance: int
    description: str = ""
    usage_snippet: str = ""
    example: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "name": self.name,
            "module": self.module,
            "category": self.category,
            "relevance": self.relevance,
            "description": self.description,
            "usageSnippet": self.usage_snippet,
        }
        if self.example:
            payload["example"] = self.example
        return payload


@dataclass
class SuggestionResult:
    context: str
    detected_category: str
    confidence: float
    keywords: KeywordBag
    recommendations: List[Recommendation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "context": self.context,
            "detectedCategory": self.detected_category,
            "confidence": self.confidence,
            "keywords": self.keywords.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


@dataclass
class TaskAnalysis:
    suggestions: SuggestionResult
    decision: Literal["reuse", "extend", "create"]
    message: str
    suggested_category: str

    @property
    def top(self) -> Optional[Recommendation]:
        recs = self.suggestions.recommendations
        return recs[0] if recs else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.suggestions.to_dict(),
            "decision": self.decision,
            "message": self.message,
            "suggestedCategory": self.suggested_category,
        }


@dataclass
class CodePattern:
    name: str
    description: str


@dataclass
class FileAnalysis:
    file: str
    type: str
    patterns: List[CodePattern] = field(default_factory=list)
    suggestions: List[Tuple[str, List[Recommendation]]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "type": self.type,
            "patterns": [{"name": p.name, "description": p.description} for p in self.patterns],
            "suggestions": [
                {"pattern": pattern, "found": [r.to_dict() for r in found]}
                for pattern, found in self.suggestions
            ],
        }
