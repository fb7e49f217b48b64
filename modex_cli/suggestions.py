"""Suggestion service: answer "which existing module fits this?" queries.

Combines the keyword extractor, the cached search index and the relevance
ranker into three query shapes:

- :meth:`SuggestionService.suggest` for ad-hoc context text
- :meth:`SuggestionService.suggest_from_task` for a task description, with a
  reuse / extend / create recommendation
- :meth:`SuggestionService.analyze_file` for an existing source file
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .config_manager import load_suggestions_config
from .keywords import detect_category, extract_keywords
from .models import (
    CodePattern,
    FileAnalysis,
    Recommendation,
    SuggestionResult,
    TaskAnalysis,
)
from .ranking import rank
from .search_index import SearchIndex, SearchIndexBuilder
from .storage import ManifestStore

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 10
MAX_CONTEXT_LENGTH = 100
PATTERN_SUGGESTIONS = 3

# Decision bands on the top recommendation's relevance (0-100)
REUSE_THRESHOLD = 80
EXTEND_THRESHOLD = 60

# Candidate sources in merge order; ties keep this order after sorting
CANDIDATE_SOURCES = (
    ("module", None),
    ("component", "components"),
    ("hook", "hooks"),
    ("service", "services"),
)


def to_relevance(score: float) -> int:
    """Convert a 0-1 score into an integer percentage, rounding halves up."""
    return int(score * 100 + 0.5)


def truncate_context(text: str, limit: int = MAX_CONTEXT_LENGTH) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class SuggestionService:
    """Rank registry modules and exports against free-text queries.

    Args:
        store: Manifest store; loaded on construction if it is not already
        builder: Index builder used to obtain (or lazily build) the index
        index: Pre-built index, bypassing the builder
        import_prefix: Prefix used when synthesizing import statements
    """

    def __init__(
        self,
        store: ManifestStore,
        builder: Optional[SearchIndexBuilder] = None,
        index: Optional[SearchIndex] = None,
        import_prefix: Optional[str] = None,
    ):
        self.store = store
        if not store.loaded:
            # RegistryUnavailable propagates: the caller must sync first.
            store.load()
        self.builder = builder or SearchIndexBuilder(store)
        self._index = index
        if import_prefix is None:
            import_prefix = load_suggestions_config()["import_prefix"]
        self.import_prefix = import_prefix.rstrip("/")

    @property
    def index(self) -> SearchIndex:
        if self._index is None:
            self._index = self.builder.load_or_build()
        return self._index

    # ------------------------------------------------------------------
    # Context suggestions
    # ------------------------------------------------------------------

    def _candidates(self) -> List[Dict[str, Any]]:
        """Every index entry tagged with its recommendation type, in merge order."""
        index = self.index
        candidates: List[Dict[str, Any]] = []
        for rec_type, kind in CANDIDATE_SOURCES:
            entries = index.modules.values() if kind is None else index.exports(kind)
            candidates.extend({**entry, "type": rec_type} for entry in entries)
        return candidates

    def _usage_snippet(self, rec_type: str, entry: Mapping[str, Any]) -> str:
        if rec_type == "module":
            return f"Check module: modules/{entry['category']}/{entry['id']}"
        return (
            f"import {{ {entry['name']} }} from "
            f"'{self.import_prefix}/{entry['category']}/{entry['moduleId']}'"
        )

    def _to_recommendation(self, entry: Mapping[str, Any], score: float) -> Recommendation:
        rec_type = entry["type"]
        return Recommendation(
            type=rec_type,
            name=entry["name"],
            module=entry["id"] if rec_type == "module" else entry["moduleId"],
            category=entry["category"],
            relevance=to_relevance(score),
            description=entry.get("description") or "",
            usage_snippet=self._usage_snippet(rec_type, entry),
            example=entry.get("example"),
        )

    def suggest(self, context: str) -> SuggestionResult:
        """Rank modules and exports for *context*; at most 10 recommendations."""
        context = context or ""
        keywords = extract_keywords(context)
        category, confidence = detect_category(keywords)

        result = SuggestionResult(
            context=truncate_context(context),
            detected_category=category,
            confidence=confidence,
            keywords=keywords,
        )
        if keywords.is_empty:
            return result

        candidates = self._candidates()
        ranked = rank(candidates, keywords, limit=MAX_RECOMMENDATIONS)
        result.recommendations = [
            self._to_recommendation(entry, score) for entry, score in ranked
        ]
        logger.debug(
            "suggest(%r): category=%s, %d candidates, %d recommendations",
            result.context, category, len(candidates), len(result.recommendations),
        )
        return result

    # ------------------------------------------------------------------
    # Task analysis
    # ------------------------------------------------------------------

    def suggest_from_task(self, description: str) -> TaskAnalysis:
        """Suggest for a task and decide whether to reuse, extend or create."""
        suggestions = self.suggest(description)
        category = suggestions.detected_category
        recs = suggestions.recommendations

        if not recs:
            decision = "create"
            message = f'No reusable modules found: create new module in category "{category}".'
        elif recs[0].relevance >= REUSE_THRESHOLD:
            decision = "reuse"
            message = f'High confidence match: reuse "{recs[0].name}".'
        elif recs[0].relevance >= EXTEND_THRESHOLD:
            decision = "extend"
            message = f'Partial match for "{recs[0].name}": extend or create new module.'
        else:
            decision = "create"
            message = f'Low confidence in existing matches: create new module in category "{category}".'

        return TaskAnalysis(
            suggestions=suggestions,
            decision=decision,
            message=message,
            suggested_category=category,
        )

    # ------------------------------------------------------------------
    # File analysis
    # ------------------------------------------------------------------

    def analyze_file(self, file_path: Union[str, Path]) -> FileAnalysis:
        """Detect the kind and code patterns of a file and suggest matches.

        Raises:
            FileNotFoundError: If *file_path* is not an existing file
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        code = path.read_text(encoding="utf-8", errors="replace")
        ext = path.suffix.lower()
        analysis = FileAnalysis(
            file=str(path),
            type=detect_file_type(ext, code),
            patterns=detect_patterns(ext, code),
        )

        for pattern in analysis.patterns:
            found = self.suggest(pattern.description).recommendations[:PATTERN_SUGGESTIONS]
            if found:
                analysis.suggestions.append((pattern.name, found))
        return analysis


# ===================================================================
# File heuristics
# ===================================================================

REACT_EXTENSIONS = (".tsx", ".jsx")
SCRIPT_EXTENSIONS = (".ts", ".js")
SQL_EXTENSIONS = (".sql",)

PROPS_INTERFACE_RE = re.compile(r"interface \w+Props")
PRIVATE_MEMBER_RE = re.compile(r"private \w+:")


def detect_file_type(ext: str, code: str) -> str:
    """Classify a file from its extension and marker substrings."""
    if ext in REACT_EXTENSIONS:
        if "export default" in code or "export function" in code:
            return "component"
        if "use" in code and "export" in code:
            return "hook"
    elif ext in SCRIPT_EXTENSIONS:
        if "class" in code and "Service" in code:
            return "service"
        if "interface" in code and "Repository" in code:
            return "repository"
        if "create(" in code and "zustand" in code:
            return "store"
    elif ext in SQL_EXTENSIONS:
        if "CREATE TABLE" in code:
            return "schema"
        if "ALTER TABLE" in code:
            return "migration"
    return "unknown"


def _react_patterns(code: str) -> List[CodePattern]:
    patterns = []
    if "useState" in code:
        patterns.append(CodePattern("useState", "state management with useState"))
    if "useEffect" in code:
        patterns.append(CodePattern("useEffect", "side effects with useEffect"))
    if "useCallback" in code:
        patterns.append(CodePattern("useCallback", "memoized callbacks"))
    if "useMemo" in code:
        patterns.append(CodePattern("useMemo", "memoized values"))
    if "create(" in code and "zustand" in code:
        patterns.append(CodePattern("Zustand Store", "global state with Zustand"))
    if PROPS_INTERFACE_RE.search(code):
        patterns.append(CodePattern("Component Props", "typed component props"))
    return patterns


def _script_patterns(code: str) -> List[CodePattern]:
    patterns = []
    if "class" in code and "constructor" in code:
        patterns.append(CodePattern("Class", "object-oriented class pattern"))
    if "interface" in code and "extends" in code:
        patterns.append(CodePattern("Interface Extension", "interface inheritance"))
    if "async" in code and "await" in code:
        patterns.append(CodePattern("Async/Await", "asynchronous operations"))
    if PRIVATE_MEMBER_RE.search(code):
        patterns.append(CodePattern("Dependency Injection", "constructor dependencies"))
    return patterns


def _sql_patterns(code: str) -> List[CodePattern]:
    patterns = []
    if "CREATE TABLE" in code:
        patterns.append(CodePattern("Table Creation", "database table schema"))
    if "CREATE POLICY" in code:
        patterns.append(CodePattern("RLS Policy", "row level security policy"))
    if "CREATE INDEX" in code:
        patterns.append(CodePattern("Index", "database index for performance"))
    if "CREATE TRIGGER" in code:
        patterns.append(CodePattern("Trigger", "database trigger"))
    return patterns


def detect_patterns(ext: str, code: str) -> List[CodePattern]:
    if ext in REACT_EXTENSIONS:
        return _react_patterns(code)
    if ext in SCRIPT_EXTENSIONS:
        return _script_patterns(code)
    if ext in SQL_EXTENSIONS:
        return _sql_patterns(code)
    return []


def summarize(analysis: TaskAnalysis) -> Dict[str, Any]:
    """Compact summary of a task analysis for reports."""
    bag = analysis.suggestions.keywords
    return {
        "category": analysis.suggestions.detected_category,
        "confidence": analysis.suggestions.confidence,
        "actions": [a.action for a in bag.actions],
        "domains": list(bag.domains),
        "keywords": bag.raw_tokens[:5],
    }
