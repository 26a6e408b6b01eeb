"""Decode a model's multi-file JSON envelope into an :class:`EditSet`."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from editforge.config import DEFAULT_SETTINGS, Settings
from editforge.decoding.models import EditSet, GenerationMeta, SkippedEntry
from editforge.decoding.plan import parse_plan_header, plan_generation_meta
from editforge.decoding.salvage import default_stages, salvage
from editforge.failures import (
    FailureTag,
    NoFileEntriesError,
    NoPayloadError,
    PayloadTooLargeError,
)
from editforge.paths import is_file_like_key, is_ignored_path, is_malformed_path
from editforge.sanitize import clean_generated_code, strip_invisible, strip_plan_header
from editforge.util.json_repair import (
    JsonRepairError,
    RepairTooLargeError,
    repair_json,
    repair_truncated_json,
)
from editforge.util.logging import get_logger, preview
from editforge.util.scanner import scan

LOGGER = get_logger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?[ \t]*\n(.*?)\n?```", re.DOTALL)
_FILES_SLICE_RE = re.compile(r'"files"\s*:\s*\{(.*)', re.DOTALL)
_EXTENSION_ONLY_RE = re.compile(r"^(?:tsx|jsx|ts|js|css|json|md|html);?$", re.IGNORECASE)
_NON_FILE_ROOT_KEYS = ("explanation", "description")

TRUNCATED_UNREPAIRABLE = (
    "Response was truncated and could not be repaired. The model may have hit "
    "token limits. Try a shorter prompt or different model."
)
PARTIAL_FILES_EXPLANATION = "Response was truncated - showing partial results."


@dataclass
class _Payload:
    data: dict[str, Any]
    truncated: bool = False
    recovered_by: str = "json"
    explanation: str | None = None


@dataclass
class _Entries:
    files: dict[str, str] = field(default_factory=dict)
    skipped: list[SkippedEntry] = field(default_factory=list)


ShapeExtractor = Callable[[dict[str, Any]], dict[str, Any] | None]


def _keyed(key: str) -> ShapeExtractor:
    def extract(payload: dict[str, Any]) -> dict[str, Any] | None:
        value = payload.get(key)
        if isinstance(value, dict) and any(is_file_like_key(name) for name in value):
            return value
        return None

    extract.__name__ = f"extract_{key}"
    return extract


def _root_level(payload: dict[str, Any]) -> dict[str, Any] | None:
    files = {
        key: value
        for key, value in payload.items()
        if key not in _NON_FILE_ROOT_KEYS and is_file_like_key(key)
    }
    return files or None


SHAPE_EXTRACTORS: list[ShapeExtractor] = [
    _keyed("files"),
    _keyed("fileChanges"),
    _keyed("Changes"),
    _keyed("changes"),
    _root_level,
]


def extract_files_object(payload: dict[str, Any]) -> dict[str, Any] | None:
    """Try each candidate shape in priority order."""
    for extractor in SHAPE_EXTRACTORS:
        files = extractor(payload)
        if files is not None:
            return files
    return None


def _locate_payload(raw: str) -> str:
    fenced = _FENCED_JSON_RE.search(raw)
    text = fenced.group(1) if fenced else raw
    return strip_plan_header(strip_invisible(text))


def _parse_payload(candidate: str, settings: Settings) -> _Payload | None:
    """Cheap close, parse, truncation repair, lenient repair, files-slice repair."""
    truncated = False
    closed = candidate
    state = scan(candidate)
    if state.brace_depth > 0 and not state.in_string:
        closed = candidate.rstrip() + "}" * state.brace_depth
        truncated = True
        LOGGER.debug("appended %d closing brace(s)", state.brace_depth)

    try:
        parsed = json.loads(closed)
        if isinstance(parsed, dict):
            return _Payload(data=parsed, truncated=truncated)
    except json.JSONDecodeError:
        pass

    try:
        parsed = json.loads(repair_truncated_json(candidate, settings.repair_max_chars))
        if isinstance(parsed, dict):
            return _Payload(data=parsed, truncated=True, recovered_by="repair")
    except RepairTooLargeError as exc:
        raise PayloadTooLargeError(str(exc)) from exc
    except (JsonRepairError, json.JSONDecodeError):
        pass

    try:
        parsed = repair_json(candidate)
        if isinstance(parsed, dict):
            return _Payload(data=parsed, truncated=truncated, recovered_by="lenient")
    except JsonRepairError:
        pass

    files_slice = _FILES_SLICE_RE.search(candidate)
    if files_slice:
        try:
            files = json.loads(
                repair_truncated_json("{" + files_slice.group(1), settings.repair_max_chars)
            )
        except (JsonRepairError, json.JSONDecodeError):
            files = None
        if isinstance(files, dict):
            return _Payload(
                data={"files": files},
                truncated=True,
                recovered_by="files_slice",
                explanation=PARTIAL_FILES_EXPLANATION,
            )
    return None


def _content_of(path: str, value: Any, entries: _Entries) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("content", "code", "diff"):
            if isinstance(value.get(key), str):
                return value[key]
        keys = ", ".join(value.keys())
        entries.skipped.append(
            SkippedEntry(
                path=path,
                reason=FailureTag.OBJECT_WITHOUT_CONTENT,
                detail=f"object without content (keys: {keys})",
            )
        )
        return None
    entries.skipped.append(
        SkippedEntry(
            path=path,
            reason=FailureTag.INVALID_CONTENT_TYPE,
            detail=f"invalid content type ({type(value).__name__})",
        )
    )
    return None


def validate_entries(files_obj: dict[str, Any], min_content_chars: int) -> _Entries:
    """Apply the per-entry checks, recording why each rejected entry was dropped."""
    entries = _Entries()
    for path, value in files_obj.items():
        if not is_file_like_key(path):
            continue
        if is_malformed_path(path):
            entries.skipped.append(
                SkippedEntry(path=path, reason=FailureTag.MALFORMED_PATH, detail="malformed path")
            )
            continue
        if is_ignored_path(path):
            entries.skipped.append(
                SkippedEntry(path=path, reason=FailureTag.IGNORED_PATH, detail="ignored path")
            )
            continue
        content = _content_of(path, value, entries)
        if content is None:
            continue
        cleaned = clean_generated_code(content)
        if len(cleaned) < min_content_chars:
            entries.skipped.append(
                SkippedEntry(
                    path=path,
                    reason=FailureTag.CONTENT_TOO_SHORT,
                    detail=f"empty content ({len(cleaned)} chars)",
                )
            )
            continue
        if _EXTENSION_ONLY_RE.match(cleaned):
            entries.skipped.append(
                SkippedEntry(
                    path=path,
                    reason=FailureTag.EXTENSION_ONLY,
                    detail="content is just file extension",
                )
            )
            continue
        entries.files[path] = cleaned
    for skipped in entries.skipped:
        LOGGER.warning("skipped %s: %s", skipped.path, skipped.detail)
    return entries


def _deleted_files(payload: dict[str, Any]) -> list[str]:
    deleted = payload.get("deletedFiles") or []
    if not isinstance(deleted, list):
        return []
    return [path for path in deleted if isinstance(path, str) and not is_ignored_path(path)]


def _generation_meta(payload: dict[str, Any], paths: list[str]) -> GenerationMeta | None:
    meta = GenerationMeta.from_payload(payload.get("generationMeta"))
    if meta is None and payload.get("continuation"):
        meta = GenerationMeta.from_legacy_continuation(payload["continuation"], paths)
    return meta


def _fail(strict: bool, error: Exception) -> None:
    if strict:
        raise error
    LOGGER.warning("decode failed: %s", error)


def decode(raw: str, *, strict: bool = True, settings: Settings | None = None) -> EditSet | None:
    """Decode raw model text into an edit set.

    With ``strict`` the distinct :class:`DecodeError` subclasses are raised;
    otherwise ``None`` is returned for unrecoverable input. Partial recovery
    is success: dropped entries are listed in ``EditSet.skipped``.
    """
    settings = settings or DEFAULT_SETTINGS
    if len(raw) > settings.response_max_chars:
        _fail(
            strict,
            PayloadTooLargeError(
                f"Response too large ({round(len(raw) / 1000)}KB). "
                "This may indicate runaway generation."
            ),
        )
        return None

    text = _locate_payload(raw)
    brace = text.find("{")
    payload: _Payload | None = None
    if brace != -1:
        try:
            payload = _parse_payload(text[brace:], settings)
        except PayloadTooLargeError as exc:
            _fail(strict, exc)
            return None

    if payload is None:
        stages = default_stages(settings.salvage_scan_max_chars, settings.salvage_value_max_chars)
        salvaged = salvage(text, stages)
        if salvaged is None:
            message = TRUNCATED_UNREPAIRABLE if brace != -1 else None
            _fail(strict, NoPayloadError(message))
            return None
        payload = _Payload(
            data={"files": salvaged.files},
            truncated=True,
            recovered_by=salvaged.stage,
            explanation=salvaged.explanation,
        )

    files_obj = extract_files_object(payload.data)
    if files_obj is None:
        _fail(strict, NoFileEntriesError())
        return None

    entries = validate_entries(files_obj, settings.min_content_chars)
    if not entries.files:
        _fail(
            strict,
            NoFileEntriesError(
                "Model returned no usable file entries after validation.",
                skipped=entries.skipped,
            ),
        )
        return None

    explanation = payload.data.get("explanation") or payload.data.get("description")
    if not isinstance(explanation, str):
        explanation = payload.explanation
    paths = list(entries.files)
    meta = _generation_meta(payload.data, paths)
    if meta is None and payload.truncated:
        plan = parse_plan_header(raw)
        if plan is not None:
            meta = plan_generation_meta(plan, paths)
    edit_set = EditSet(
        files=entries.files,
        explanation=explanation,
        deleted_files=_deleted_files(payload.data),
        truncated=payload.truncated,
        generation_meta=meta,
        skipped=entries.skipped,
        recovered_by=payload.recovered_by,
    )
    LOGGER.info(
        "decoded %d file(s) via %s truncated=%s: %s",
        len(paths),
        edit_set.recovered_by,
        edit_set.truncated,
        preview(", ".join(paths)),
    )
    return edit_set
