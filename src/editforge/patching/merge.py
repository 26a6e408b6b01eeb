"""Merge patch instructions into a file snapshot without mutating it."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from editforge.config import DEFAULT_SETTINGS, Settings
from editforge.failures import FailureEvent, FailureTag
from editforge.paths import is_ignored_path
from editforge.patching.diff import apply_unified_diff, is_new_file_diff, looks_like_diff
from editforge.patching.models import MergeResult, PatchInstruction
from editforge.patching.search_replace import apply_search_replace
from editforge.sanitize import clean_generated_code
from editforge.util.logging import get_logger

LOGGER = get_logger(__name__)


def _as_instruction(value: PatchInstruction | str | Mapping[str, Any]) -> PatchInstruction:
    if isinstance(value, PatchInstruction):
        return value
    if isinstance(value, str):
        return PatchInstruction(content=value)
    return PatchInstruction.model_validate(dict(value) if isinstance(value, Mapping) else value)


def _fail(result: MergeResult, path: str, tag: FailureTag, message: str) -> None:
    result.errors.append(message)
    result.failures.append(FailureEvent(tag=tag.value, reason=message, details={"path": path}))
    result.stats.failed += 1
    LOGGER.warning("merge failed for %s: %s", path, message)


def _create(result: MergeResult, path: str, instruction: PatchInstruction, min_chars: int) -> None:
    body = instruction.body
    if looks_like_diff(body) and is_new_file_diff(body):
        content = apply_unified_diff("", body) or ""
    else:
        content = clean_generated_code(body)
    if len(content) < min_chars:
        _fail(result, path, FailureTag.CONTENT_TOO_SHORT, f"New file {path} has invalid content")
        return
    result.files[path] = content
    result.stats.created += 1


def _replace_literals(
    result: MergeResult, path: str, current: str, instruction: PatchInstruction, min_chars: int
) -> None:
    applied = apply_search_replace(current, instruction.replacements)
    result.stats.replacements_applied += applied.applied_count
    result.stats.replacements_failed += len(applied.failed_searches)
    if applied.applied_count > 0:
        content = clean_generated_code(applied.content)
        if len(content) >= min_chars:
            result.files[path] = content
            result.stats.updated += 1
        else:
            _fail(
                result,
                path,
                FailureTag.CONTENT_TOO_SHORT,
                f"Modified content for {path} is invalid",
            )
    if applied.failed_searches:
        message = f"{path}: {len(applied.failed_searches)} search(es) not found"
        result.errors.append(message)
        result.failures.append(
            FailureEvent(
                tag=FailureTag.SEARCH_NOT_FOUND.value,
                reason=message,
                details={"path": path, "searches": applied.failed_searches},
            )
        )


def _patch_or_replace(
    result: MergeResult, path: str, current: str, instruction: PatchInstruction, min_chars: int
) -> None:
    body = instruction.body
    if looks_like_diff(body):
        patched = apply_unified_diff(current, body)
        if patched is None:
            _fail(result, path, FailureTag.DIFF_REJECTED, f"{path}: diff could not be applied")
            return
        content = patched
    else:
        content = clean_generated_code(body)
        if len(content) < min_chars:
            _fail(result, path, FailureTag.CONTENT_TOO_SHORT, f"Content for {path} is invalid")
            return
    if content != current:
        result.files[path] = content
        result.stats.updated += 1


def merge_changes(
    snapshot: Mapping[str, str],
    instructions: Mapping[str, PatchInstruction | str | Mapping[str, Any]],
    deleted_files: Iterable[str] = (),
    settings: Settings | None = None,
) -> MergeResult:
    """Apply every instruction to a copy of ``snapshot``.

    Deletions run before modifications. A failing file is recorded in the
    result and never stops the rest of the batch.
    """
    settings = settings or DEFAULT_SETTINGS
    min_chars = settings.min_content_chars
    result = MergeResult(files=dict(snapshot))
    parsed: dict[str, PatchInstruction] = {}
    for path, value in instructions.items():
        try:
            parsed[path] = _as_instruction(value)
        except ValidationError as exc:
            _fail(
                result,
                path,
                FailureTag.INVALID_CONTENT_TYPE,
                f"{path}: invalid instruction ({exc.error_count()} error(s))",
            )

    to_delete = list(deleted_files) + [
        path for path, instruction in parsed.items() if instruction.is_deleted
    ]
    for path in to_delete:
        if is_ignored_path(path):
            continue
        if path in result.files:
            del result.files[path]
            result.stats.deleted += 1

    for path, instruction in parsed.items():
        if instruction.is_deleted:
            continue
        if is_ignored_path(path):
            LOGGER.info("skipping ignored path %s", path)
            continue
        current = snapshot.get(path)
        if instruction.is_new or current is None:
            _create(result, path, instruction, min_chars)
        elif instruction.replacements:
            _replace_literals(result, path, current, instruction, min_chars)
        elif instruction.body:
            _patch_or_replace(result, path, current, instruction, min_chars)

    result.success = result.stats.failed == 0 and result.stats.replacements_failed == 0
    LOGGER.info(
        "merge finished success=%s created=%d updated=%d deleted=%d failed=%d",
        result.success,
        result.stats.created,
        result.stats.updated,
        result.stats.deleted,
        result.stats.failed,
    )
    return result
