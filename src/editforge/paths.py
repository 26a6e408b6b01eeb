"""Path policy: ignored directories, file-key checks and path matching."""

from __future__ import annotations

import re
from typing import Mapping, TypeVar

IGNORED_PATHS = (
    ".git",
    "node_modules",
    ".next",
    ".nuxt",
    "dist",
    "build",
    ".cache",
    ".DS_Store",
    "Thumbs.db",
)

_EXTENSION_RE = re.compile(r"\.[a-z]+$", re.IGNORECASE)
_CODE_EXTENSION_RE = re.compile(r"\.(tsx?|jsx?)$")

V = TypeVar("V")


def _normalize_separators(path: str) -> str:
    return path.replace("\\", "/")


def is_ignored_path(path: str) -> bool:
    """Return True for paths equal to, under, or containing an ignored segment."""
    normalized = _normalize_separators(path)
    for ignored in IGNORED_PATHS:
        if normalized == ignored:
            return True
        if normalized.startswith(f"{ignored}/"):
            return True
        if f"/{ignored}/" in normalized or normalized.endswith(f"/{ignored}"):
            return True
    return False


def filter_ignored(mapping: Mapping[str, V]) -> dict[str, V]:
    """Return a copy of ``mapping`` without ignored paths."""
    return {path: value for path, value in mapping.items() if not is_ignored_path(path)}


def is_file_like_key(key: str) -> bool:
    return "." in key or "/" in key


def is_malformed_path(path: str) -> bool:
    """Reject empty segments such as ``src/components/.tsx`` and extensionless keys."""
    return "/." in path or path.endswith("/") or not _EXTENSION_RE.search(path)


def normalize_path(path: str, files: Mapping[str, str]) -> str:
    """Map a model-supplied path onto an existing key in ``files``."""
    if path in files:
        return path
    without_src = re.sub(r"^src/", "", path)
    if without_src in files:
        return without_src
    with_src = f"src/{path}"
    if with_src in files:
        return with_src
    filename = path.split("/")[-1]
    if filename:
        for existing in files:
            if existing.endswith(filename):
                return existing
    return path


def relative_import_path(from_file: str, to_path: str) -> str:
    """Compute a ``./`` or ``../`` import specifier from one file to another.

    A leading ``src/`` on either side is treated as the project root.
    """
    from_parts = _normalize_separators(from_file).split("/")[:-1]
    if to_path.startswith("src/"):
        to_parts = to_path[4:].split("/")
    else:
        to_parts = _normalize_separators(to_path).split("/")
    from_dir = [part for part in from_parts if part and part != "src"]
    to_dir = to_parts[:-1]

    common = 0
    for left, right in zip(from_dir, to_dir):
        if left != right:
            break
        common += 1

    up_count = len(from_dir) - common
    down = "/".join(to_parts[common:])
    if up_count == 0:
        relative = f"./{down}"
    else:
        relative = "../" * up_count + down
    return _CODE_EXTENSION_RE.sub("", relative)


def resolve_relative_import(
    from_file: str,
    specifier: str,
    files: Mapping[str, str],
    extensions: tuple[str, ...] = ("", ".tsx", ".ts", ".jsx", ".js"),
) -> str | None:
    """Resolve ``./x`` or ``../x`` against ``files``, trying each extension."""
    if not specifier.startswith("."):
        return None
    parts = from_file.split("/")[:-1]
    for segment in specifier.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts:
                parts.pop()
            continue
        parts.append(segment)
    resolved = "/".join(parts)
    for extension in extensions:
        candidate = f"{resolved}{extension}"
        if candidate in files:
            return candidate
    return None
