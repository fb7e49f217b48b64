"""Schema validation for module manifests."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from .config import CATEGORIES, EXPORT_KINDS, STATUSES

MODULE_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")
VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")
MIN_DESCRIPTION_LENGTH = 10


def resolve_ai_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fold the legacy ``ai`` block into the flat manifest shape.

    Manifest files written by the module generator keep keywords, summary,
    use cases and examples under ``ai``; the registry stores them flat.
    """
    ai = data.get("ai")
    if not isinstance(ai, dict):
        return data
    merged = dict(data)
    if "keywords" not in merged and "keywords" in ai:
        merged["keywords"] = ai["keywords"]
    if "description" not in merged and "summary" in ai:
        merged["description"] = ai["summary"]
    if "use_cases" not in merged and "use_cases" in ai:
        merged["use_cases"] = ai["use_cases"]
    if "examples" not in merged and "examples" in ai:
        merged["examples"] = ai["examples"]
    return merged


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) and v.strip() for v in value)


def _check_exports(exports: Any, errors: List[str]) -> None:
    if not isinstance(exports, dict):
        errors.append("exports: must be an object")
        return
    for kind, items in exports.items():
        if kind not in EXPORT_KINDS:
            errors.append(f"exports.{kind}: unknown export kind")
            continue
        if not isinstance(items, list):
            errors.append(f"exports.{kind}: must be a list")
            continue
        for i, item in enumerate(items):
            field = f"exports.{kind}[{i}]"
            if not isinstance(item, dict):
                errors.append(f"{field}: must be an object")
                continue
            for required in ("name", "path"):
                value = item.get(required)
                if not isinstance(value, str) or not value.strip():
                    errors.append(f"{field}.{required}: required non-empty string")
            for optional in ("type", "description", "example"):
                if item.get(optional) is not None and not isinstance(item[optional], str):
                    errors.append(f"{field}.{optional}: must be a string")
            if "keywords" in item and not _is_string_list(item["keywords"]):
                errors.append(f"{field}.keywords: must be a list of strings")


def _check_dependencies(deps: Any, errors: List[str]) -> None:
    if not isinstance(deps, dict):
        errors.append("dependencies: must be an object")
        return
    for key in ("modules", "packages"):
        if key in deps and not _is_string_list(deps[key]):
            errors.append(f"dependencies.{key}: must be a list of strings")


def validate_manifest(data: Any) -> List[str]:
    """Check a raw manifest against the schema.

    Args:
        data: Decoded ``module.json`` content or registry record

    Returns:
        Every violation as ``"<field>: <reason>"``; empty when valid
    """
    if not isinstance(data, dict):
        return ["manifest: must be an object"]

    data = resolve_ai_fields(data)
    errors: List[str] = []

    module_id = data.get("id")
    if not isinstance(module_id, str) or not module_id:
        errors.append("id: required non-empty string")
    elif not MODULE_ID_RE.match(module_id):
        errors.append(f"id: invalid module id {module_id!r}")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("name: required non-empty string")

    version = data.get("version")
    if not isinstance(version, str) or not VERSION_RE.match(version):
        errors.append("version: must match MAJOR.MINOR.PATCH")

    category = data.get("category")
    if category not in CATEGORIES:
        errors.append(f"category: must be one of {', '.join(CATEGORIES)}")

    description = data.get("description")
    if not isinstance(description, str) or len(description.strip()) < MIN_DESCRIPTION_LENGTH:
        errors.append(f"description: must be at least {MIN_DESCRIPTION_LENGTH} characters")

    keywords = data.get("keywords")
    if not _is_string_list(keywords) or not keywords:
        errors.append("keywords: must be a non-empty list of strings")

    status = data.get("status", "stable")
    if status not in STATUSES:
        errors.append(f"status: must be one of {', '.join(STATUSES)}")

    if "exports" in data:
        _check_exports(data["exports"], errors)
    if "dependencies" in data:
        _check_dependencies(data["dependencies"], errors)

    for key in ("use_cases", "examples"):
        if key in data and not _is_string_list(data[key]):
            errors.append(f"{key}: must be a list of strings")

    for key in ("path", "createdAt", "updatedAt"):
        if data.get(key) is not None and not isinstance(data[key], str):
            errors.append(f"{key}: must be a string")

    return errors
