"""Deterministic fixes for common import errors, tried before any model call."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Mapping

from pydantic import BaseModel, Field

from editforge.paths import relative_import_path
from editforge.util.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ImportInfo:
    source: str
    is_default: bool = False
    is_type: bool = False


def _named(source: str, *names: str) -> dict[str, ImportInfo]:
    return {name: ImportInfo(source) for name in names}


COMMON_IMPORTS: dict[str, ImportInfo] = {
    "React": ImportInfo("react", is_default=True),
    **_named(
        "react",
        "useState",
        "useEffect",
        "useCallback",
        "useMemo",
        "useRef",
        "useContext",
        "useReducer",
        "useLayoutEffect",
        "useId",
        "createContext",
        "forwardRef",
        "memo",
        "lazy",
        "Suspense",
        "Fragment",
    ),
    **{
        name: ImportInfo("react", is_type=True)
        for name in (
            "FC",
            "ReactNode",
            "ReactElement",
            "CSSProperties",
            "ChangeEvent",
            "FormEvent",
            "MouseEvent",
            "KeyboardEvent",
        )
    },
    **_named(
        "lucide-react",
        "Search",
        "X",
        "Check",
        "ChevronDown",
        "ChevronUp",
        "ChevronLeft",
        "ChevronRight",
        "Menu",
        "Settings",
        "User",
        "Home",
        "Plus",
        "Minus",
        "Edit",
        "Trash",
        "Trash2",
        "Download",
        "Upload",
        "Eye",
        "EyeOff",
        "Lock",
        "Info",
        "AlertCircle",
        "AlertTriangle",
        "Loader2",
        "RefreshCw",
        "Copy",
        "ExternalLink",
        "Send",
        "Play",
        "Pause",
        "Save",
        "Sparkles",
        "Code",
        "Terminal",
    ),
    **_named("motion/react", "motion", "AnimatePresence", "useAnimation", "useMotionValue"),
    "clsx": ImportInfo("clsx", is_default=True),
    "cn": ImportInfo("clsx", is_default=True),
    "axios": ImportInfo("axios", is_default=True),
    **_named("date-fns", "format", "formatDistance", "parseISO"),
}

_BARE_SPECIFIER_RES = (
    re.compile(r"[\"']([^\"']+)[\"']\s*was\s*a?\s*bare\s*specifier", re.IGNORECASE),
    re.compile(r"specifier\s*[\"']([^\"']+)[\"']", re.IGNORECASE),
)
_UNDEFINED_RES = (
    re.compile(r"['\"]?(\w+)['\"]?\s+is\s+not\s+defined", re.IGNORECASE),
    re.compile(r"Cannot find name ['\"]?(\w+)['\"]?", re.IGNORECASE),
)
_FIRST_IMPORT_RE = re.compile(r"^(import\s+.*?['\"][^'\"]+['\"];?[ \t]*\n)", re.MULTILINE)


class LocalFixResult(BaseModel):
    success: bool = False
    fixed_files: dict[str, str] = Field(default_factory=dict)
    explanation: str = ""
    fix_type: str = "none"


def _no_fix(explanation: str = "") -> LocalFixResult:
    return LocalFixResult(explanation=explanation)


def _first_match(patterns: tuple[re.Pattern[str], ...], message: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def _insert_import(content: str, statement: str) -> str:
    """Place ``statement`` after the first import, or at the top of the file."""
    match = _FIRST_IMPORT_RE.search(content)
    if match is None:
        return statement + content
    return content[: match.end()] + statement + content[match.end() :]


def _import_statement(identifier: str, source: str, *, default: bool, type_only: bool = False) -> str:
    if default:
        return f"import {identifier} from '{source}';\n"
    if type_only:
        return f"import type {{ {identifier} }} from '{source}';\n"
    return f"import {{ {identifier} }} from '{source}';\n"


def fix_bare_specifier(
    message: str, target_file: str, files: Mapping[str, str]
) -> LocalFixResult:
    """Rewrite ``src/...`` specifiers into relative paths in every importing file."""
    bad_path = _first_match(_BARE_SPECIFIER_RES, message)
    if not bad_path:
        return _no_fix()
    if not bad_path.startswith("src/") and "/components/" not in bad_path and "/utils/" not in bad_path:
        return _no_fix()

    escaped = re.escape(bad_path)
    importer = re.compile(rf"(import\s+(?:[\w\s{{}},*]+\s+from\s+)?['\"]){escaped}(['\"])")
    specifier = re.compile(rf"(['\"]){escaped}(['\"])")
    fixed: dict[str, str] = {}
    for path, content in files.items():
        if not content or not importer.search(content):
            continue
        relative = relative_import_path(path, bad_path)
        updated = specifier.sub(lambda m: f"{m.group(1)}{relative}{m.group(2)}", content)
        if updated != content:
            fixed[path] = updated

    if not fixed:
        return _no_fix()
    return LocalFixResult(
        success=True,
        fixed_files=fixed,
        explanation=f'Fixed {len(fixed)} bare specifier import(s): "{bad_path}" -> relative path',
        fix_type="bare-specifier",
    )


def fix_missing_import(
    message: str, target_file: str, files: Mapping[str, str]
) -> LocalFixResult:
    """Add an import for a well-known library identifier."""
    identifier = _first_match(_UNDEFINED_RES, message)
    if not identifier or identifier not in COMMON_IMPORTS:
        return _no_fix()
    info = COMMON_IMPORTS[identifier]
    content = files.get(target_file)
    if not content:
        return _no_fix()

    source = re.escape(info.source)
    already = re.compile(rf"import\s+.*?\b{identifier}\b.*?from\s+['\"]{source}['\"]")
    if already.search(content):
        return _no_fix("Already imported")

    existing = re.compile(rf"(import\s+)\{{([^}}]*)\}}(\s+from\s+['\"]{source}['\"])")
    match = existing.search(content)
    if match and not info.is_default and not info.is_type:
        names = match.group(2).strip().rstrip(",")
        merged = f"{names}, {identifier}" if names else identifier
        updated = content[: match.start()] + f"{match.group(1)}{{ {merged} }}{match.group(3)}" + content[match.end() :]
    else:
        statement = _import_statement(
            identifier, info.source, default=info.is_default, type_only=info.is_type
        )
        updated = _insert_import(content, statement)

    return LocalFixResult(
        success=True,
        fixed_files={target_file: updated},
        explanation=f"Added missing import: {identifier} from '{info.source}'",
        fix_type="missing-import",
    )


def fix_undefined_variable(
    message: str, target_file: str, files: Mapping[str, str]
) -> LocalFixResult:
    """Import an identifier from the local file that exports it."""
    identifier = _first_match(_UNDEFINED_RES, message)
    if not identifier or identifier in COMMON_IMPORTS:
        return _no_fix()
    content = files.get(target_file)
    if not content:
        return _no_fix()

    name = re.escape(identifier)
    default_export = (
        re.compile(rf"export\s+default\s+(?:function|class|const)?\s*{name}\b", re.MULTILINE),
        re.compile(rf"export\s+default\s+{name}\b", re.MULTILINE),
    )
    named_export = (
        re.compile(
            rf"export\s+(?:const|let|var|function|class|interface|type)\s+{name}\b",
            re.MULTILINE,
        ),
        re.compile(rf"export\s*\{{[^}}]*\b{name}\b[^}}]*\}}", re.MULTILINE),
    )
    for path, source in files.items():
        if not source or path == target_file:
            continue
        is_default = any(pattern.search(source) for pattern in default_export)
        if not is_default and not any(pattern.search(source) for pattern in named_export):
            continue
        import_path = relative_import_path(target_file, path)
        statement = _import_statement(identifier, import_path, default=is_default)
        return LocalFixResult(
            success=True,
            fixed_files={target_file: _insert_import(content, statement)},
            explanation=f"Added import for {identifier} from '{import_path}'",
            fix_type="undefined-var",
        )
    return _no_fix()


Strategy = Callable[[str, str, Mapping[str, str]], LocalFixResult]


class LocalFixer:
    """Runs each strategy in order and returns the first that produces a change."""

    def __init__(self, strategies: list[tuple[str, Strategy]] | None = None) -> None:
        self.strategies = strategies or [
            ("bare_specifier", fix_bare_specifier),
            ("missing_import", fix_missing_import),
            ("undefined_variable", fix_undefined_variable),
        ]

    def try_fix(
        self,
        message: str,
        stack: str | None,
        target_file: str,
        files: Mapping[str, str],
    ) -> LocalFixResult:
        for name, strategy in self.strategies:
            result = strategy(message, target_file, files)
            if result.success:
                LOGGER.info("local fix %s succeeded: %s", name, result.explanation)
                return result
        return _no_fix("No local fix available")
