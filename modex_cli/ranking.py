"""Relevance scoring of index entries against an extracted keyword bag.

The score is a capped weighted sum:

- ``CATEGORY_WEIGHT`` when the candidate's category is the top detected one
- ``DOMAIN_WEIGHT`` for every detected domain found in the candidate text
- ``TOKEN_WEIGHT`` times the share of query tokens found in the candidate text

Stored relevance expectations depend on these exact constants.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Tuple, TypeVar

from .keywords import normalize
from .models import KeywordBag

CATEGORY_WEIGHT = 0.3
DOMAIN_WEIGHT = 0.2
TOKEN_WEIGHT = 0.5
MAX_SCORE = 1.0

T = TypeVar("T", bound=Mapping[str, Any])


def searchable_text(candidate: Mapping[str, Any]) -> str:
    """Normalized ``name description keywords`` text of an index entry."""
    keywords = candidate.get("keywords") or []
    return normalize(
        f"{candidate.get('name') or ''} {candidate.get('description') or ''} {' '.join(keywords)}"
    )


def score(candidate: Mapping[str, Any], keywords: KeywordBag) -> float:
    """Score *candidate* against *keywords*; always within ``[0, 1]``."""
    text = searchable_text(candidate)
    total = 0.0

    top = keywords.top_category
    if top is not None and candidate.get("category") == top.category:
        total += CATEGORY_WEIGHT

    for domain in keywords.domains:
        if normalize(domain) in text:
            total += DOMAIN_WEIGHT

    if keywords.raw_tokens:
        matched = sum(1 for token in keywords.raw_tokens if token in text)
        total += (matched / len(keywords.raw_tokens)) * TOKEN_WEIGHT

    return min(total, MAX_SCORE)


def rank(
    candidates: Iterable[T],
    keywords: KeywordBag,
    limit: Optional[int] = None,
) -> List[Tuple[T, float]]:
    """Score, drop zero scores, sort descending (stable) and truncate."""
    scored = []
    for candidate in candidates:
        value = score(candidate, keywords)
        if value > 0:
            scored.append((candidate, value))
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:limit] if limit is not None else scored
