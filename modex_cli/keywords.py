"""Keyword extraction and classification for free-text queries.

Text is lowercased and stripped of diacritics before matching, and the
pattern tables below go through the same normalization, so ``"página"`` in a
table matches ``"PAGINA"`` in a query and vice versa.
"""

from __future__ import annotations

import unicodedata
from typing import Dict, List, Tuple

from .models import ActionMatch, CategoryMatch, KeywordBag

# Category detection patterns (declaration order breaks confidence ties)
CATEGORY_PATTERNS: Dict[str, List[str]] = {
    "ui": [
        "component", "componente", "interface", "página", "tela", "formulário",
        "botão", "modal", "card", "lista", "tabela", "menu", "navegação",
        "layout", "design", "visual", "react", "jsx", "tsx", "hook", "store",
        "estado", "zustand", "perfil",
    ],
    "logic": [
        "serviço", "service", "lógica", "regra de negócio", "validação",
        "repositório", "repository", "crud", "criar", "atualizar", "deletar",
        "buscar", "listar", "processar", "calcular", "transformar",
    ],
    "data": [
        "banco", "database", "tabela", "table", "schema", "migração",
        "migration", "sql", "query", "consulta", "rls", "policy", "índice",
        "index", "trigger",
    ],
    "integration": [
        "api", "integração", "webhook", "provider", "adapter", "externo",
        "terceiro", "stripe", "sendgrid", "twilio", "http", "fetch", "request",
    ],
}

# Action patterns for intent detection
ACTION_PATTERNS: Dict[str, List[str]] = {
    "create": ["criar", "create", "adicionar", "add", "novo", "new"],
    "read": ["buscar", "find", "get", "obter", "listar", "list", "visualizar", "view"],
    "update": ["atualizar", "update", "modificar", "modify", "editar", "edit"],
    "delete": ["deletar", "delete", "remover", "remove", "excluir"],
    "search": ["pesquisar", "search", "filtrar", "filter"],
    "validate": ["validar", "validate", "verificar", "check"],
}

# Domain keywords (common entities)
DOMAIN_KEYWORDS: List[str] = [
    "user", "usuário", "product", "produto", "order", "pedido",
    "payment", "pagamento", "customer", "cliente", "item", "cart",
    "carrinho", "auth", "autenticação", "profile", "perfil", "settings",
    "configurações",
]

MIN_TOKEN_LENGTH = 3


def normalize(text: str) -> str:
    """Lowercase and strip diacritics (NFD, combining marks removed)."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _normalize_table(patterns: List[str]) -> List[Tuple[str, str]]:
    return [(p, normalize(p)) for p in patterns]


_CATEGORY_TABLE = {cat: _normalize_table(p) for cat, p in CATEGORY_PATTERNS.items()}
_ACTION_TABLE = {action: _normalize_table(p) for action, p in ACTION_PATTERNS.items()}
_DOMAIN_TABLE = _normalize_table(DOMAIN_KEYWORDS)


def _matches(normalized: str, table: List[Tuple[str, str]]) -> List[str]:
    return [authored for authored, pattern in table if pattern in normalized]


def tokenize(normalized: str) -> List[str]:
    """Split on whitespace, keep non-numeric tokens of 3+ chars, dedupe in order."""
    seen: Dict[str, None] = {}
    for word in normalized.split():
        if len(word) >= MIN_TOKEN_LENGTH and not word.isdigit():
            seen.setdefault(word, None)
    return list(seen)


def extract_keywords(text: str) -> KeywordBag:
    """Classify *text* into categories, actions, domains and raw tokens.

    Empty or whitespace-only text yields an empty bag.
    """
    bag = KeywordBag()
    if not text or not text.strip():
        return bag

    normalized = normalize(text)

    for category, table in _CATEGORY_TABLE.items():
        matched = _matches(normalized, table)
        if matched:
            bag.categories.append(CategoryMatch(
                category=category,
                matched_patterns=matched,
                confidence=len(matched) / len(table),
            ))
    # Stable sort keeps declaration order on ties.
    bag.categories.sort(key=lambda c: c.confidence, reverse=True)

    for action, table in _ACTION_TABLE.items():
        matched = _matches(normalized, table)
        if matched:
            bag.actions.append(ActionMatch(action=action, matched_patterns=matched))

    bag.domains = _matches(normalized, _DOMAIN_TABLE)
    bag.raw_tokens = tokenize(normalized)
    return bag


def detect_category(bag: KeywordBag) -> Tuple[str, float]:
    """Return the top ``(category, confidence)``, or ``("unknown", 0.0)``."""
    top = bag.top_category
    if top is None:
        return "unknown", 0.0
    return top.category, top.confidence
