"""Literal search/replace edits and the search/replace response shape."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from editforge.paths import is_file_like_key
from editforge.patching.models import PatchInstruction, Replacement
from editforge.sanitize import strip_plan_header, unescape_transport
from editforge.util.json_repair import JsonRepairError, repair_truncated_json
from editforge.util.logging import get_logger, preview

LOGGER = get_logger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class SearchReplaceResult:
    content: str
    applied_count: int = 0
    failed_searches: list[str] = field(default_factory=list)


@dataclass
class SearchReplaceResponse:
    changes: dict[str, PatchInstruction] = field(default_factory=dict)
    explanation: str = ""
    deleted_files: list[str] = field(default_factory=list)


def apply_search_replace(
    content: str, replacements: Iterable[Replacement | dict[str, str]]
) -> SearchReplaceResult:
    """Apply each pair to its first occurrence in the already-edited content."""
    result = SearchReplaceResult(content=content)
    for item in replacements:
        pair = item if isinstance(item, Replacement) else Replacement.model_validate(item)
        if not pair.search:
            continue
        search = unescape_transport(pair.search)
        replace = unescape_transport(pair.replace)
        if search in result.content:
            result.content = result.content.replace(search, replace, 1)
            result.applied_count += 1
            continue
        normalized_content = result.content.replace("\r\n", "\n")
        normalized_search = search.replace("\r\n", "\n")
        if normalized_search in normalized_content:
            result.content = normalized_content.replace(normalized_search, replace, 1)
            result.applied_count += 1
            continue
        LOGGER.warning("search string not found: %s", preview(search, 100))
        result.failed_searches.append(search[:100])
    return result


def _instruction_from(change: Any) -> PatchInstruction | None:
    if isinstance(change, str):
        return PatchInstruction(is_new=True, content=change)
    if not isinstance(change, dict):
        return None
    instruction = PatchInstruction()
    if change.get("isNew") or change.get("is_new"):
        instruction.is_new = True
        instruction.content = change.get("content") or change.get("diff") or ""
    elif isinstance(change.get("diff"), str):
        instruction.diff = change["diff"]
    elif isinstance(change.get("content"), str):
        instruction.content = change["content"]
    if change.get("isDeleted") or change.get("is_deleted"):
        instruction.is_deleted = True
    raw_replacements = change.get("replacements")
    if isinstance(raw_replacements, list):
        for raw in raw_replacements:
            if not isinstance(raw, dict):
                continue
            pair = Replacement(
                search=str(raw.get("search") or ""), replace=str(raw.get("replace") or "")
            )
            if pair.search:
                instruction.replacements.append(pair)
    return instruction


def parse_search_replace_response(text: str) -> SearchReplaceResponse | None:
    """Read a ``{"changes": {path: {...}}}`` response into patch instructions."""
    cleaned = strip_plan_header(text)
    fenced = _FENCED_JSON_RE.search(cleaned)
    if fenced:
        cleaned = fenced.group(1).strip()
    match = _OBJECT_RE.search(cleaned)
    if not match:
        start = cleaned.find("{")
        if start == -1:
            LOGGER.warning("no JSON found in search/replace response")
            return None
        candidate = cleaned[start:]
    else:
        candidate = match.group(0)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(repair_truncated_json(candidate))
        except (JsonRepairError, json.JSONDecodeError) as exc:
            LOGGER.warning("search/replace response could not be parsed: %s", exc)
            return None
    if not isinstance(parsed, dict):
        return None

    changes = parsed.get("changes") or parsed.get("files") or {}
    explanation = parsed.get("explanation")
    deleted = parsed.get("deletedFiles")
    response = SearchReplaceResponse(
        explanation=explanation if isinstance(explanation, str) else "",
        deleted_files=[path for path in deleted if isinstance(path, str)]
        if isinstance(deleted, list)
        else [],
    )
    if not isinstance(changes, dict):
        return response
    for path, change in changes.items():
        if not is_file_like_key(path):
            continue
        instruction = _instruction_from(change)
        if instruction is not None:
            response.changes[path] = instruction
    LOGGER.info(
        "parsed search/replace response: %d change(s), %d deletion(s)",
        len(response.changes),
        len(response.deleted_files),
    )
    return response
