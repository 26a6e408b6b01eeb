"""Heuristics for reading free-form fix responses."""

from __future__ import annotations

import re

from editforge.decoding.models import EditSet
from editforge.fix.analyzer import ParsedError
from editforge.paths import is_file_like_key

QUESTION_PATTERNS = [
    re.compile(r"I need to see", re.IGNORECASE),
    re.compile(r"could you (please )?provide", re.IGNORECASE),
    re.compile(r"can you (please )?share", re.IGNORECASE),
    re.compile(r"please provide", re.IGNORECASE),
    re.compile(r"I do not have (access|information|the file)", re.IGNORECASE),
    re.compile(r"which file (is|contains|has)", re.IGNORECASE),
    re.compile(r"I need more (information|context|details)", re.IGNORECASE),
    re.compile(r"without seeing the", re.IGNORECASE),
    re.compile(r"I cannot (fix|help|proceed)", re.IGNORECASE),
    re.compile(r"\?\s*$", re.MULTILINE),
]

_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_IMPORT_LINE_RE = re.compile(r"^\s*import ", re.MULTILINE)
_FILES_PAYLOAD_RE = re.compile(r'"(?:files|changes)"\s*:\s*\{\s*"([^"\\]+)"\s*:')
_FENCED_CODE_RE = re.compile(r"```(?:tsx?|jsx?|javascript|typescript)?[ \t]*\n?([\s\S]*?)```")
_CODE_START = (
    "import ",
    "export ",
    "const ",
    "function ",
    "class ",
    "interface ",
    "type ",
    "'use ",
    '"use ',
)
_CODE_END = (";", "}", ")")
MIN_EXTRACTED_CHARS = 50


def is_asking_question(text: str) -> bool:
    """True when a response asks for more information instead of carrying code."""
    if _CODE_BLOCK_RE.search(text) or _IMPORT_LINE_RE.search(text):
        return False
    payload = _FILES_PAYLOAD_RE.search(text)
    if payload and is_file_like_key(payload.group(1)):
        return False
    return any(pattern.search(text) for pattern in QUESTION_PATTERNS)


def smart_extract_fix(
    text: str, target_file: str, parsed: ParsedError | None = None
) -> EditSet | None:
    """Pull a fix for ``target_file`` out of fenced code when JSON decoding failed."""
    blocks = [
        block.strip()
        for block in _FENCED_CODE_RE.findall(text)
        if len(block.strip()) > MIN_EXTRACTED_CHARS
    ]
    if not blocks:
        return None

    if parsed is not None and parsed.type == "bare-specifier" and parsed.import_path:
        bad_path = parsed.import_path
        fixed_path = "./" + bad_path.removeprefix("src/")
        for code in blocks:
            if fixed_path in code and f"'{bad_path}'" not in code and f'"{bad_path}"' not in code:
                return EditSet(
                    files={target_file: code},
                    explanation=f"Fixed import: {bad_path} -> {fixed_path}",
                    recovered_by="code_block",
                )

    if len(blocks) == 1 and any(token in blocks[0] for token in ("import ", "export ", "function ")):
        return EditSet(
            files={target_file: blocks[0]},
            explanation="Extracted from code block",
            recovered_by="code_block",
        )
    return None


def clean_raw_response(text: str) -> str:
    """Best-effort raw code: first fence body, trimmed to code-looking lines."""
    match = _FENCED_CODE_RE.search(text)
    code = match.group(1) if match else text
    lines = code.split("\n")

    start = 0
    for index, line in enumerate(lines):
        if line.strip().startswith(_CODE_START):
            start = index
            break
    end = len(lines)
    for index in range(len(lines) - 1, -1, -1):
        stripped = lines[index].strip()
        if stripped.endswith(_CODE_END) or stripped.startswith("export "):
            end = index + 1
            break
    return "\n".join(lines[start:end]).strip()
