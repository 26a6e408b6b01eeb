"""Context trimming utilities for fix-attempt history."""

from __future__ import annotations

from typing import Any, Sequence


_TRUNCATED_HEAD_MARKER = "[TRUNCATED_HEAD]"
_TRUNCATED_TAIL_MARKER = "[TRUNCATED_TAIL]"
_ERROR_MARKERS = (
    "Error:",
    "TypeError",
    "ReferenceError",
    "SyntaxError",
    "is not defined",
    "Cannot find",
    "Unexpected token",
)


def _should_keep_tail(content: str) -> bool:
    return any(marker in content for marker in _ERROR_MARKERS)


def truncate_text(content: str, max_chars: int) -> str:
    """Fit ``content`` into ``max_chars``, keeping the tail when it carries an error."""
    max_chars = max(1, max_chars)
    if len(content) <= max_chars:
        return content
    keep_tail = _should_keep_tail(content)
    marker = _TRUNCATED_HEAD_MARKER if keep_tail else _TRUNCATED_TAIL_MARKER
    if max_chars <= len(marker):
        return marker[:max_chars]
    keep_len = max_chars - len(marker)
    if keep_tail:
        return f"{marker}{content[-keep_len:]}"
    return f"{content[:keep_len]}{marker}"


def trim_attempt_history(
    attempts: Sequence[Any],
    limit: int,
    max_chars: int,
    fields: Sequence[str] = ("response", "applied_fix", "resulting_error"),
) -> list[dict[str, Any]]:
    """Keep the last ``limit`` attempts as dicts with long fields truncated.

    Items may be pydantic models or plain mappings; the originals are never
    modified.
    """
    if limit <= 0 or not attempts:
        return []
    trimmed: list[dict[str, Any]] = []
    for attempt in list(attempts)[-limit:]:
        data = attempt.model_dump() if hasattr(attempt, "model_dump") else dict(attempt)
        for name in fields:
            value = data.get(name)
            if isinstance(value, str):
                data[name] = truncate_text(value, max_chars)
        trimmed.append(data)
    return trimmed
