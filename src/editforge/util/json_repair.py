"""Best-effort JSON repair utilities."""

from __future__ import annotations

import ast
import json
import re
from typing import Any

from editforge.util.logging import get_logger
from editforge.util.scanner import missing_closers, scan

LOGGER = get_logger(__name__)

MAX_JSON_REPAIR_SIZE = 500_000

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

# First match wins; later entries are never tried once one applies.
_DANGLING_TAILS = (
    re.compile(r",\s*$"),
    re.compile(r',?\s*"[^"]*"\s*:\s*$'),
    re.compile(r',?\s*"[^"]*"\s*:\s*"[^"]*$'),
)
_DANGLING_KEY = re.compile(r',?\s*"[^"]*"\s*$')
_PARTIAL_UNICODE_ESCAPE = re.compile(r"(?<!\\)((?:\\\\)*)\\u[0-9a-fA-F]{0,3}$")


class JsonRepairError(ValueError):
    """Raised when JSON repair fails."""


class RepairTooLargeError(JsonRepairError):
    """Raised when input exceeds the repair size ceiling."""


def _strip_fences(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _extract_json_block(text: str) -> str:
    start_index = None
    for idx, char in enumerate(text):
        if char in "{[":
            start_index = idx
            break
    if start_index is None:
        raise JsonRepairError("No JSON object or array found")
    depth = 0
    in_string = False
    escape = False
    for idx in range(start_index, len(text)):
        char = text[idx]
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
            continue
        if char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return text[start_index : idx + 1]
    raise JsonRepairError("Unbalanced JSON braces")


def _remove_trailing_commas(text: str) -> str:
    return re.sub(r",\s*([}\]])", r"\1", text)


def _replace_single_quotes(text: str) -> str:
    return re.sub(r"(?<!\\)'([^'\\]*(?:\\.[^'\\]*)*)'", r'"\1"', text)


def repair_json(text: str) -> Any:
    """Parse complete-but-malformed JSON with best-effort repairs."""
    stripped = _strip_fences(text)
    block = _extract_json_block(stripped)
    cleaned = _remove_trailing_commas(block)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    try:
        return ast.literal_eval(cleaned)
    except (ValueError, SyntaxError):
        pass
    cleaned = _replace_single_quotes(cleaned)
    cleaned = _remove_trailing_commas(cleaned)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    try:
        return ast.literal_eval(cleaned)
    except (ValueError, SyntaxError) as exc:
        raise JsonRepairError(f"Failed to repair JSON: {exc}") from exc


def _open_string_is_key(text: str) -> bool:
    """True when the unterminated string at the end of ``text`` is an object key."""
    quote = text.rfind('"')
    while quote > 0 and text[quote - 1] == "\\":
        quote = text.rfind('"', 0, quote - 1)
    if quote < 0:
        return False
    before = text[:quote].rstrip()
    if not before or before[-1] not in "{,":
        return False
    stack = scan(before).stack
    return bool(stack) and stack[-1] == "{"


def repair_truncated_json(text: str, max_chars: int = MAX_JSON_REPAIR_SIZE) -> str:
    """Close a cut-off JSON document so it can be parsed.

    Balanced input is returned unchanged. The output is balanced outside
    strings but a truncated string value stays truncated.
    """
    candidate = text.strip()
    if len(candidate) > max_chars:
        raise RepairTooLargeError(
            f"JSON too large to repair safely ({round(len(candidate) / 1000)}KB "
            f"exceeds {round(max_chars / 1000)}KB limit)"
        )
    state = scan(candidate)
    if state.balanced:
        return candidate

    LOGGER.debug(
        "json repair: braces=%s brackets=%s in_string=%s",
        state.brace_depth,
        state.bracket_depth,
        state.in_string,
    )
    repaired = candidate
    tails = list(_DANGLING_TAILS)
    if state.in_string:
        if state.escape:
            repaired = repaired[:-1]
        repaired = _PARTIAL_UNICODE_ESCAPE.sub(r"\1", repaired, count=1)
        if _open_string_is_key(repaired):
            tails.insert(0, _DANGLING_KEY)
        repaired += '"'

    for pattern in tails:
        if pattern.search(repaired):
            repaired = pattern.sub("", repaired, count=1)
            break

    return repaired + missing_closers(repaired)
