"""Prompt construction for model-driven fix attempts."""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

from editforge.fix.analyzer import ParsedError
from editforge.paths import resolve_relative_import
from editforge.util.context_trim import trim_attempt_history

FIX_SYSTEM_PROMPT = """You fix errors in a React and TypeScript project.
Respond with a single JSON object and nothing else:
{"explanation": "<one sentence>", "files": {"<path>": "<complete file content>"}}
Rules:
- Include only files you changed, each with its COMPLETE new content.
- Never use placeholders such as "// rest of code".
- Do not ask questions. If information is missing, make the most reasonable fix.
"""

_IMPORT_FROM_RE = re.compile(r"from\s+['\"]([^'\"]+)['\"]")
_BARE_SPECIFIER_RE = re.compile(r"bare specifier|was not remapped", re.IGNORECASE)
_BAD_IMPORT_RES = (
    re.compile(r"[\"']([^\"']+)[\"']\s*was\s*a?\s*bare\s*specifier", re.IGNORECASE),
    re.compile(r"specifier\s*[\"']([^\"']+)[\"']", re.IGNORECASE),
)
RESOLVED_IMPORT_CHARS = 1000


def _truncate(content: str, limit: int) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "\n...(truncated)"


def _bad_import_path(parsed: ParsedError) -> str | None:
    if parsed.import_path:
        return parsed.import_path
    for pattern in _BAD_IMPORT_RES:
        match = pattern.search(parsed.message)
        if match:
            return match.group(1)
    return None


def files_importing(import_path: str, files: Mapping[str, str]) -> list[tuple[str, str]]:
    """Files that import, side-effect import, or require ``import_path``."""
    escaped = re.escape(import_path)
    patterns = (
        re.compile(rf"from\s+['\"]{escaped}['\"]"),
        re.compile(rf"import\s+['\"]{escaped}['\"]"),
        re.compile(rf"require\s*\(\s*['\"]{escaped}['\"]"),
    )
    return [
        (path, content)
        for path, content in files.items()
        if content and any(pattern.search(content) for pattern in patterns)
    ]


def resolved_imports(target_file: str, files: Mapping[str, str], limit: int = 3) -> list[tuple[str, str]]:
    """Local files imported by ``target_file``, resolved against the snapshot."""
    found: list[tuple[str, str]] = []
    for specifier in _IMPORT_FROM_RE.findall(files.get(target_file, "")):
        resolved = resolve_relative_import(target_file, specifier, files)
        if resolved and resolved not in dict(found):
            found.append((resolved, files[resolved]))
        if len(found) >= limit:
            break
    return found


def build_fix_prompt(
    parsed: ParsedError,
    target_file: str,
    files: Mapping[str, str],
    attempts: Sequence[Any] = (),
    *,
    history_limit: int = 5,
    history_chars: int = 2000,
    related_file_chars: int = 1500,
) -> str:
    is_bare_specifier = parsed.type == "bare-specifier" or bool(
        _BARE_SPECIFIER_RE.search(parsed.message)
    )
    parts = ["## ERROR TO FIX\n"]
    details = [
        f"**Error Type:** {parsed.type}",
        f"**Category:** {parsed.category}",
    ]
    if parsed.identifier:
        details.append(f"**Identifier:** {parsed.identifier}")
    if parsed.import_path:
        details.append(f"**Import Path:** {parsed.import_path}")
    if parsed.suggested_fix:
        details.append(f"**Suggested Fix:** {parsed.suggested_fix}")
    if parsed.file:
        location = f"{parsed.file}:{parsed.line}" if parsed.line else parsed.file
        details.append(f"**Error Location:** {location}")
    parts.append("\n".join(details) + "\n")
    parts.append(f"**Error Message:**\n{parsed.message}")
    if parsed.stack:
        parts.append(f"**Stack Trace:**\n```\n{parsed.stack}\n```")

    if is_bare_specifier:
        bad_path = _bad_import_path(parsed)
        importing = files_importing(bad_path, files) if bad_path else []
        if importing:
            section = [
                "## IMPORT ERROR",
                f'The problem is in the file(s) that import "{bad_path}", not in the imported file.',
                "### FILES THAT NEED FIXING",
            ]
            for path, content in importing:
                section.append(f"#### {path}\n```tsx\n{content}\n```")
            section.append(
                f'**How to fix:** change "{bad_path}" to a relative path such as '
                f'"./{bad_path.removeprefix("src/")}".'
            )
            parts.append("\n".join(section))

    parts.append(f"## TARGET FILE: {target_file}\n```tsx\n{files.get(target_file, '')}\n```")

    related = [path for path in parsed.related_files if files.get(path)][:3]
    if related:
        section = ["## RELATED FILES"]
        for path in related:
            section.append(f"### {path}\n```tsx\n{_truncate(files[path], related_file_chars)}\n```")
        parts.append("\n".join(section))
    elif not is_bare_specifier:
        imported = resolved_imports(target_file, files)
        if imported:
            section = ["## RELATED FILES FOR CONTEXT"]
            for path, content in imported:
                section.append(f"### {path}\n```tsx\n{_truncate(content, RESOLVED_IMPORT_CHARS)}\n```")
            parts.append("\n".join(section))

    history = trim_attempt_history(attempts, history_limit, history_chars)
    if history:
        offset = len(attempts) - len(history)
        section = ["## PREVIOUS FAILED ATTEMPTS (do NOT repeat these)"]
        for index, attempt in enumerate(history, start=offset + 1):
            section.append(
                f"**Attempt {index}:**\n"
                f"- Files modified: {attempt.get('applied_fix') or 'none'}\n"
                f"- Result: {attempt.get('resulting_error') or 'Unknown error'}"
            )
        section.append("**Important:** Try a DIFFERENT approach from the failed attempts above.")
        parts.append("\n".join(section))

    instructions = ["## INSTRUCTIONS"]
    if is_bare_specifier:
        instructions.append("Fix the IMPORTING file, not the imported file.")
        instructions.append('Change bare "src/..." imports to relative paths like "./".')
    elif parsed.type == "undefined-variable":
        instructions.append(f'Add the missing import for "{parsed.identifier}" or define it.')
    elif parsed.type == "type-error":
        instructions.append("Fix the type mismatch while preserving functionality.")
    else:
        instructions.append("Fix the error while preserving all existing functionality.")
    instructions.append("Return the complete fixed file(s), with no placeholders or truncation.")
    parts.append("\n".join(instructions))
    return "\n\n".join(parts) + "\n"


def build_fix_messages(prompt: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": FIX_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
