"""Classify runtime and compile errors reported by a preview environment."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import BaseModel, Field


class ParsedError(BaseModel):
    message: str
    stack: str | None = None
    type: str = "unknown"
    category: str = "unknown"
    priority: int = 1
    confidence: float = 0.0
    is_auto_fixable: bool = False
    is_ignorable: bool = False
    import_path: str | None = None
    identifier: str | None = None
    suggested_fix: str | None = None
    expected_type: str | None = None
    actual_type: str | None = None
    missing_property: str | None = None
    file: str | None = None
    line: int | None = None
    column: int | None = None
    related_files: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class _ErrorPattern:
    pattern: re.Pattern[str]
    type: str
    category: str
    priority: int
    extract: Callable[[re.Match[str]], dict[str, Any]]


def _p(regex: str) -> re.Pattern[str]:
    return re.compile(regex, re.IGNORECASE)


# First match wins, so more specific shapes come before generic ones.
ERROR_PATTERNS: list[_ErrorPattern] = [
    _ErrorPattern(
        _p(r"[\"']([^\"']+)[\"']\s*was\s*a?\s*bare\s*specifier"),
        "bare-specifier",
        "import",
        5,
        lambda m: {
            "import_path": m.group(1),
            "suggested_fix": f'Change import from "{m.group(1)}" to a relative path',
            "is_auto_fixable": True,
            "confidence": 0.95,
        },
    ),
    _ErrorPattern(
        _p(r"specifier\s*[\"']([^\"']+)[\"']\s*was\s*not\s*remapped"),
        "bare-specifier",
        "import",
        5,
        lambda m: {"import_path": m.group(1), "is_auto_fixable": True, "confidence": 0.9},
    ),
    _ErrorPattern(
        _p(r"Cannot find module ['\"]([^'\"]+)['\"]"),
        "module-not-found",
        "import",
        4,
        lambda m: {
            "import_path": m.group(1),
            "is_auto_fixable": m.group(1).startswith((".", "src/")),
            "confidence": 0.85,
        },
    ),
    _ErrorPattern(
        _p(r"Failed to resolve import [\"']([^\"']+)[\"']"),
        "module-not-found",
        "import",
        4,
        lambda m: {"import_path": m.group(1), "is_auto_fixable": True, "confidence": 0.85},
    ),
    _ErrorPattern(
        _p(r"ReferenceError:\s*(\w+)\s+is\s+not\s+defined"),
        "undefined-variable",
        "import",
        4,
        lambda m: {"identifier": m.group(1), "is_auto_fixable": True, "confidence": 0.95},
    ),
    _ErrorPattern(
        _p(r"['\"]?(\w+)['\"]?\s+is\s+not\s+defined"),
        "undefined-variable",
        "import",
        4,
        lambda m: {
            "identifier": m.group(1),
            "suggested_fix": f'Add import or define "{m.group(1)}"',
            "is_auto_fixable": True,
            "confidence": 0.9,
        },
    ),
    _ErrorPattern(
        _p(r"Cannot find name\s+['\"]?(\w+)['\"]?"),
        "undefined-variable",
        "import",
        4,
        lambda m: {"identifier": m.group(1), "is_auto_fixable": True, "confidence": 0.9},
    ),
    _ErrorPattern(
        _p(r"Type ['\"]([^'\"]+)['\"] is not assignable to type ['\"]([^'\"]+)['\"]"),
        "type-error",
        "type",
        3,
        lambda m: {"actual_type": m.group(1), "expected_type": m.group(2), "confidence": 0.8},
    ),
    _ErrorPattern(
        _p(r"Property ['\"](\w+)['\"] does not exist on type"),
        "property-error",
        "type",
        3,
        lambda m: {"missing_property": m.group(1), "confidence": 0.75},
    ),
    _ErrorPattern(
        _p(r"SyntaxError:\s*(.+)"),
        "syntax-error",
        "syntax",
        5,
        lambda m: {"suggested_fix": f"Fix syntax error: {m.group(1)}", "confidence": 0.6},
    ),
    _ErrorPattern(
        _p(r"Unexpected token\s*['\"]?(\S+?)['\"]?(?:\s|$)"),
        "syntax-error",
        "syntax",
        5,
        lambda m: {"identifier": m.group(1), "confidence": 0.65},
    ),
    _ErrorPattern(
        _p(r"Unterminated\s+(string|template)\s+literal"),
        "syntax-error",
        "syntax",
        5,
        lambda m: {
            "suggested_fix": f"Close the unterminated {m.group(1)} literal",
            "confidence": 0.7,
        },
    ),
    _ErrorPattern(
        _p(r"JSX element ['\"](\w+)['\"] has no corresponding closing tag"),
        "jsx-error",
        "jsx",
        4,
        lambda m: {
            "identifier": m.group(1),
            "suggested_fix": f"Add closing tag for <{m.group(1)}>",
            "confidence": 0.8,
        },
    ),
    _ErrorPattern(
        _p(r"Adjacent JSX elements must be wrapped"),
        "jsx-error",
        "jsx",
        4,
        lambda m: {
            "suggested_fix": "Wrap multiple JSX elements in a fragment <></>",
            "confidence": 0.85,
        },
    ),
    _ErrorPattern(
        _p(r"React Hook [\"'](\w+)[\"'] is called conditionally"),
        "hook-error",
        "react",
        4,
        lambda m: {
            "identifier": m.group(1),
            "suggested_fix": f"Move {m.group(1)} to the top level",
            "confidence": 0.9,
        },
    ),
    _ErrorPattern(
        _p(r"Invalid hook call"),
        "hook-error",
        "react",
        4,
        lambda m: {
            "suggested_fix": "Ensure hooks are only called inside function components",
            "confidence": 0.8,
        },
    ),
    _ErrorPattern(
        _p(r"Cannot read propert(?:y|ies) (?:of\s+)?['\"]?(\w+)['\"]? (?:of\s+)?(undefined|null)"),
        "runtime-error",
        "runtime",
        3,
        lambda m: {
            "missing_property": m.group(1),
            "suggested_fix": f'Add null check before accessing "{m.group(1)}"',
            "confidence": 0.7,
        },
    ),
    _ErrorPattern(
        _p(r"(\w+) is not a function"),
        "runtime-error",
        "runtime",
        3,
        lambda m: {"identifier": m.group(1), "confidence": 0.65},
    ),
    _ErrorPattern(
        _p(r"does not provide an export named ['\"](\w+)['\"]"),
        "module-not-found",
        "import",
        4,
        lambda m: {"identifier": m.group(1), "confidence": 0.8},
    ),
]

IGNORABLE_PATTERNS = [
    _p(r"Loading chunk \d+ failed"),
    _p(r"Failed to fetch dynamically imported module"),
    _p(r"ResizeObserver loop"),
    _p(r"Script error\."),
    _p(r"Network Error"),
    _p(r"Failed to fetch"),
    _p(r"NetworkError|CORS|Cross-Origin"),
    _p(r"timeout"),
    _p(r"AbortError"),
    _p(r"cancelled"),
    _p(r"ERR_CONNECTION"),
]

_LOCATION_RE = re.compile(r"(?:at\s+)?\(?([^()\s]+\.(?:tsx?|jsx?)):(\d+):(\d+)\)?")
_IN_FILE_RE = re.compile(r"in\s+([^()\s]+\.(?:tsx?|jsx?))\s*\(line\s+(\d+)", re.IGNORECASE)
_URL_PREFIX_RE = re.compile(r"^https?://[^/]+/")
_GENERIC_SUMMARIES = {
    "syntax-error": "Syntax error",
    "jsx-error": "JSX error",
    "runtime-error": "Runtime error",
    "network-error": "Network error",
}


def is_ignorable_error(message: str) -> bool:
    """Transient or non-actionable noise that should never start a fix."""
    return any(pattern.search(message) for pattern in IGNORABLE_PATTERNS)


def _normalize_location(path: str) -> str:
    normalized = _URL_PREFIX_RE.sub("", path).split("?")[0].lstrip("/")
    if not normalized.startswith(("src/", "./")) and any(
        folder in normalized for folder in ("components/", "utils/", "hooks/")
    ):
        normalized = f"src/{normalized}"
    return normalized


class ErrorAnalyzer:
    """Turns an error message and optional stack into a :class:`ParsedError`."""

    def __init__(self, patterns: list[_ErrorPattern] | None = None) -> None:
        self.patterns = patterns if patterns is not None else ERROR_PATTERNS

    def analyze(
        self,
        message: str,
        stack: str | None = None,
        files: Mapping[str, str] | None = None,
    ) -> ParsedError:
        parsed = ParsedError(message=message, stack=stack, is_ignorable=is_ignorable_error(message))
        if parsed.is_ignorable:
            return parsed

        for entry in self.patterns:
            match = entry.pattern.search(message)
            if match is None:
                continue
            parsed = parsed.model_copy(
                update={
                    "type": entry.type,
                    "category": entry.category,
                    "priority": entry.priority,
                    **entry.extract(match),
                }
            )
            break

        location = self._location(message, stack)
        if location:
            parsed.file, parsed.line, parsed.column = location
        if files:
            parsed.related_files = self._related_files(parsed, files)
        return parsed

    def summary(self, parsed: ParsedError) -> str:
        if parsed.type == "bare-specifier":
            text = f'Import "{parsed.import_path}" needs relative path'
        elif parsed.type == "module-not-found":
            text = f'Cannot find "{parsed.import_path or parsed.identifier}"'
        elif parsed.type == "undefined-variable":
            text = f'"{parsed.identifier}" is not defined'
        elif parsed.type == "type-error":
            text = (
                f"Type mismatch: expected {parsed.expected_type}"
                if parsed.expected_type and parsed.actual_type
                else "Type error"
            )
        elif parsed.type == "hook-error":
            text = f'Hook "{parsed.identifier}" used incorrectly'
        elif parsed.type == "property-error":
            text = f'Property "{parsed.missing_property}" missing'
        elif parsed.type in _GENERIC_SUMMARIES:
            text = _GENERIC_SUMMARIES[parsed.type]
        else:
            text = parsed.message[:80]
        if parsed.file:
            text += f" in {parsed.file}"
            if parsed.line:
                text += f" at line {parsed.line}"
        return text

    def severity(self, parsed: ParsedError) -> int:
        """Priority on a 1 to 5 scale, higher is more urgent."""
        return parsed.priority

    def _location(self, message: str, stack: str | None) -> tuple[str, int, int | None] | None:
        combined = message if not stack else f"{message}\n{stack}"
        match = _LOCATION_RE.search(combined)
        if match:
            return _normalize_location(match.group(1)), int(match.group(2)), int(match.group(3))
        match = _IN_FILE_RE.search(combined)
        if match:
            return _normalize_location(match.group(1)), int(match.group(2)), None
        return None

    def _related_files(self, parsed: ParsedError, files: Mapping[str, str]) -> list[str]:
        related: list[str] = []
        if parsed.import_path:
            related.extend(path for path, content in files.items() if parsed.import_path in (content or ""))
        if parsed.identifier:
            name = re.escape(parsed.identifier)
            exported = re.compile(rf"export\s+(?:default\s+)?(?:const|function|class)?\s*{name}\b")
            declared = re.compile(rf"(?:function|const)\s+{name}\s*[=(]")
            related.extend(
                path
                for path, content in files.items()
                if content and (exported.search(content) or declared.search(content))
            )
        unique = list(dict.fromkeys(related))
        return [path for path in unique if path != parsed.file][:5]
