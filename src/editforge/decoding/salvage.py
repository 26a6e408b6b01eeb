"""Regex salvage ladder for responses that no repair could make parseable.

Each stage takes the raw payload and returns a ``{path: content}`` mapping
or ``None``. Stages run strictest first and the first non-empty result wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from editforge.sanitize import looks_like_code
from editforge.util.logging import get_logger

LOGGER = get_logger(__name__)

SALVAGE_SCAN_MAX_CHARS = 500_000
SALVAGE_VALUE_MAX_CHARS = 100_000
MIN_SALVAGED_CHARS = 50

_BACKTICK_PAIR_RE = re.compile(r'"([^"]+\.(?:tsx?|jsx?|css|json))":\s*`([^`]*)`')
_QUOTED_PAIR_RE = re.compile(r'"([^"]+\.(?:tsx?|jsx?|css|json))":\s*"([^"\\]*(?:\\.[^"\\]*)*)"')
_PATH_KEY_RE = re.compile(r'"([^"]{1,200}\.(?:tsx?|jsx?|css|json|md))":\s*"')
_FENCED_CODE_RE = re.compile(r"```(?:tsx?|jsx?|typescript|javascript)[ \t]*\n(.*?)\n```", re.DOTALL)
_JSON_ESCAPES = re.compile(r'\\(["\\/nt])')
_JSON_ESCAPE_MAP = {'"': '"', "\\": "\\", "/": "/", "n": "\n", "t": "\t"}

Stage = Callable[[str], dict[str, str] | None]


@dataclass(frozen=True)
class SalvageResult:
    stage: str
    files: dict[str, str]

    @property
    def explanation(self) -> str:
        count = len(self.files)
        return f"Response was severely truncated - recovered {count} file(s) via {self.stage}."


def _unescape_json_string(content: str) -> str:
    return _JSON_ESCAPES.sub(lambda match: _JSON_ESCAPE_MAP[match.group(1)], content)


def backtick_pairs(text: str) -> dict[str, str] | None:
    """``"path.tsx": `body``` pairs, as some models emit template literals."""
    files = {match.group(1): match.group(2) for match in _BACKTICK_PAIR_RE.finditer(text)}
    return files or None


def quoted_pairs(text: str) -> dict[str, str] | None:
    files: dict[str, str] = {}
    for match in _QUOTED_PAIR_RE.finditer(text):
        content = (
            match.group(2)
            .replace("\\'", "'")
            .replace('\\"', '"')
            .replace("\\n", "\n")
            .strip()
        )
        files[match.group(1)] = content
    return files or None


def _read_to_unescaped_quote(text: str, start: int, limit: int) -> int | None:
    escape = False
    for idx in range(start, min(len(text), start + limit)):
        char = text[idx]
        if escape:
            escape = False
        elif char == "\\":
            escape = True
        elif char == '"':
            return idx
    return None


def string_scan(
    text: str,
    scan_max_chars: int = SALVAGE_SCAN_MAX_CHARS,
    value_max_chars: int = SALVAGE_VALUE_MAX_CHARS,
) -> dict[str, str] | None:
    """Locate path-like keys and read each value up to its closing quote.

    Both the input and each value scan are bounded, so adversarial input
    costs at most linear work per key.
    """
    bounded = text[:scan_max_chars]
    files: dict[str, str] = {}
    for match in _PATH_KEY_RE.finditer(bounded):
        start = match.end()
        end = _read_to_unescaped_quote(bounded, start, value_max_chars)
        if end is None or end <= start:
            continue
        content = bounded[start:end]
        if len(content) < MIN_SALVAGED_CHARS:
            continue
        content = re.sub(r"(?:\.\.\.|```)$", "", content)
        content = _unescape_json_string(content).strip()
        if looks_like_code(content):
            files[match.group(1)] = content
    return files or None


def _infer_file_name(content: str, index: int) -> str:
    if "export default" in content or "React" in content:
        return f"component{index}.tsx"
    if "export" in content:
        return f"module{index}.ts"
    return f"utils{index}.js"


def fenced_blocks(text: str) -> dict[str, str] | None:
    """Last resort: any fenced code blocks, named after their content shape."""
    files: dict[str, str] = {}
    index = 1
    for match in _FENCED_CODE_RE.finditer(text):
        content = match.group(1).strip()
        if len(content) > MIN_SALVAGED_CHARS and looks_like_code(content):
            files[_infer_file_name(content, index)] = content
            index += 1
    return files or None


def default_stages(
    scan_max_chars: int = SALVAGE_SCAN_MAX_CHARS,
    value_max_chars: int = SALVAGE_VALUE_MAX_CHARS,
) -> list[tuple[str, Stage]]:
    return [
        ("backtick_pairs", backtick_pairs),
        ("quoted_pairs", quoted_pairs),
        (
            "string_scan",
            lambda text: string_scan(text, scan_max_chars, value_max_chars),
        ),
        ("fenced_blocks", fenced_blocks),
    ]


def salvage(text: str, stages: list[tuple[str, Stage]] | None = None) -> SalvageResult | None:
    """Run the ladder and return the first stage that recovers anything."""
    for name, stage in stages or default_stages():
        files = stage(text)
        if files:
            LOGGER.info("salvage stage %s recovered %d file(s)", name, len(files))
            return SalvageResult(stage=name, files=files)
    return None
