"""Strip transport artifacts from generated file content."""

from __future__ import annotations

import re

from editforge.util.scanner import find_container_end

PLAN_MARKER = "// PLAN:"

_INVISIBLE_RE = re.compile(r"^[\ufeff\u200b-\u200d\u00a0]+")
_FENCE_LANGS = (
    "javascript|typescript|tsx|jsx|json|ts|js|react|html|css|sql|markdown|md"
    "|plaintext|text|shell|bash|sh"
)
_FENCE_PATTERNS = (
    re.compile(rf"^```(?:{_FENCE_LANGS})?[ \t]*\n?", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\n?```[ \t]*$", re.MULTILINE),
)
_LEADING_LANG_RE = re.compile(r"^(?:javascript|typescript|tsx|jsx|ts|js|react)[ \t]*\n", re.IGNORECASE)
_MARKER_TAG_RE = re.compile(r"^[ \t]*<!--\s*/?FILE:[^>]*-->[ \t]*\n?", re.MULTILINE)

_CODE_SIGNALS = (
    re.compile(r"import\s+"),
    re.compile(r"export\s+"),
    re.compile(r"function\s+|const\s+\w+\s*=|=>\s*\{"),
    re.compile(r"<\w+"),
    re.compile(r"class\s+\w+"),
)

_UNESCAPES = (
    ("\\\\", "\x00"),
    ("\\n", "\n"),
    ("\\t", "\t"),
    ("\\r", "\r"),
    ("\x00", "\\"),
)


def strip_invisible(text: str) -> str:
    """Trim leading whitespace, BOM and zero-width characters."""
    return _INVISIBLE_RE.sub("", text.lstrip())


def strip_plan_header(text: str) -> str:
    """Remove a leading ``// PLAN: {...}`` header, counting braces to find its end."""
    cleaned = strip_invisible(text)
    index = cleaned.find(PLAN_MARKER)
    if index == -1 or cleaned[:index].strip():
        return cleaned
    first_brace = cleaned.find("{", index)
    if first_brace == -1:
        return cleaned
    end = find_container_end(cleaned, first_brace)
    if end is None:
        return cleaned[first_brace:]
    return cleaned[end + 1 :].lstrip()


def clean_generated_code(code: str) -> str:
    """Remove fences, language tags and stray marker tags; never rewrites code."""
    if not code:
        return ""
    cleaned = code
    for pattern in _FENCE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _LEADING_LANG_RE.sub("", cleaned, count=1)
    cleaned = cleaned.replace("```", "")
    cleaned = _MARKER_TAG_RE.sub("", cleaned)
    return cleaned.strip()


def looks_like_code(text: str) -> bool:
    if not text or len(text) < 10:
        return False
    return any(pattern.search(text) for pattern in _CODE_SIGNALS)


def unescape_transport(text: str) -> str:
    """Turn literal ``\\n``/``\\t``/``\\r``/``\\\\`` sequences into characters."""
    result = text
    for escaped, replacement in _UNESCAPES:
        result = result.replace(escaped, replacement)
    return result
