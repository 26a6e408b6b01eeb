"""Unified diff detection and application with a fuzzy fallback."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable

from editforge.util.logging import get_logger

LOGGER = get_logger(__name__)

_HUNK_HEADER_RE = re.compile(r"^@@\s+-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s+@@")
_FILE_HEADER_RE = re.compile(r"^(?:---|\+\+\+)\s+\S", re.MULTILINE)
_CHANGE_LINE_RE = re.compile(r"^(?:\+(?!\+\+)|-(?!--))", re.MULTILINE)

LineMatcher = Callable[[str, str], bool]


@dataclass
class DiffHunk:
    """A single hunk; ``lines`` holds ``(prefix, content)`` with prefix in `` +-``."""

    old_start: int = 0
    old_count: int = 0
    new_start: int = 0
    new_count: int = 0
    lines: list[tuple[str, str]] = field(default_factory=list)

    @property
    def expected(self) -> list[str]:
        return [content for prefix, content in self.lines if prefix in (" ", "-")]

    @property
    def replacement(self) -> list[str]:
        return [content for prefix, content in self.lines if prefix in (" ", "+")]


def looks_like_diff(text: str) -> bool:
    """A hunk header plus either file headers or change lines."""
    if not text:
        return False
    normalized = text.replace("\r\n", "\n")
    has_hunk = any(_HUNK_HEADER_RE.match(line) for line in normalized.split("\n"))
    if not has_hunk:
        return False
    return bool(_FILE_HEADER_RE.search(normalized) or _CHANGE_LINE_RE.search(normalized))


def is_new_file_diff(text: str) -> bool:
    return "--- /dev/null" in text or "new file mode" in text


def parse_hunks(text: str) -> list[DiffHunk]:
    hunks: list[DiffHunk] = []
    current: DiffHunk | None = None
    for line in text.replace("\r\n", "\n").split("\n"):
        header = _HUNK_HEADER_RE.match(line)
        if header:
            current = DiffHunk(
                old_start=int(header.group(1)),
                old_count=int(header.group(2) or 1),
                new_start=int(header.group(3)),
                new_count=int(header.group(4) or 1),
            )
            hunks.append(current)
            continue
        if current is None:
            continue
        if line.startswith(("--- ", "+++ ", "diff --git")):
            current = None
            continue
        if line.startswith("\\"):
            continue
        if line == "":
            current.lines.append((" ", ""))
        elif line[0] in " +-":
            current.lines.append((line[0], line[1:]))
        else:
            current.lines.append((" ", line))
    for hunk in hunks:
        while hunk.lines and hunk.lines[-1] == (" ", ""):
            hunk.lines.pop()
    return [hunk for hunk in hunks if hunk.lines]


def _exact(a: str, b: str) -> bool:
    return a == b


def _loose(a: str, b: str) -> bool:
    return a.strip() == b.strip()


def _block_at(lines: list[str], block: list[str], pos: int, matcher: LineMatcher) -> bool:
    if pos < 0 or pos + len(block) > len(lines):
        return False
    return all(matcher(lines[pos + idx], expected) for idx, expected in enumerate(block))


def _find_block(
    lines: list[str], block: list[str], hint: int, matcher: LineMatcher
) -> int | None:
    """Search outward from ``hint`` for the nearest position where ``block`` matches."""
    last = len(lines) - len(block)
    if last < 0:
        return None
    hint = max(0, min(hint, last))
    for distance in range(0, max(hint, last - hint) + 1):
        for pos in (hint - distance, hint + distance):
            if 0 <= pos <= last and _block_at(lines, block, pos, matcher):
                return pos
    return None


def _apply_hunks(
    lines: list[str], hunks: list[DiffHunk], matcher: LineMatcher, allow_applied: bool
) -> list[str] | None:
    result = list(lines)
    offset = 0
    for hunk in hunks:
        expected = hunk.expected
        replacement = hunk.replacement
        if not expected:
            insert_at = max(0, min(hunk.old_start + offset, len(result)))
            result[insert_at:insert_at] = replacement
            offset += len(replacement)
            continue
        hint = max(0, hunk.old_start - 1 + offset)
        pos = _find_block(result, expected, hint, matcher)
        if pos is None:
            if allow_applied and _find_block(result, replacement, hint, matcher) is not None:
                LOGGER.debug("hunk @@ -%s already applied", hunk.old_start)
                continue
            return None
        result[pos : pos + len(expected)] = replacement
        offset = pos + len(replacement) - (hunk.old_start - 1 + len(expected))
    return result


def _new_file_content(hunks: list[DiffHunk]) -> str:
    added = [content for hunk in hunks for prefix, content in hunk.lines if prefix == "+"]
    return "\n".join(added) + "\n" if added else ""


def apply_unified_diff(original: str, diff: str, *, fuzzy: bool = True) -> str | None:
    """Apply ``diff`` to ``original``; ``None`` means the caller picks a fallback.

    The strict pass matches context lines exactly (hunks may drift from their
    header line numbers). The fuzzy pass compares whitespace-stripped lines
    and treats hunks whose result is already present as applied.
    """
    if not looks_like_diff(diff):
        return None
    hunks = parse_hunks(diff)
    if not hunks:
        return None
    if is_new_file_diff(diff) and not original:
        content = _new_file_content(hunks)
        return content or None

    had_trailing_newline = original.endswith("\n")
    lines = original.replace("\r\n", "\n").split("\n")
    if had_trailing_newline:
        lines.pop()

    patched = _apply_hunks(lines, hunks, _exact, allow_applied=False)
    if patched is None and fuzzy:
        LOGGER.info("strict diff apply failed, retrying with fuzzy matching")
        patched = _apply_hunks(lines, hunks, _loose, allow_applied=True)
    if patched is None:
        LOGGER.warning("diff could not be applied")
        return None
    return "\n".join(patched) + ("\n" if had_trailing_newline else "")
