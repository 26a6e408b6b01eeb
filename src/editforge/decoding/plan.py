"""Read the ``// PLAN: {...}`` header and turn a short response into a batch."""

from __future__ import annotations

import json
import math
import re

from pydantic import BaseModel, Field, ValidationError

from editforge.decoding.models import EditSet, GenerationMeta
from editforge.sanitize import strip_invisible
from editforge.util.logging import get_logger
from editforge.util.scanner import find_container_end

LOGGER = get_logger(__name__)

FILES_PER_BATCH = 5

_PLAN_RE = re.compile(r"^[ \t]*//\s*PLAN:\s*(?=\{)", re.MULTILINE)


class FilePlan(BaseModel):
    """Files the model announced before emitting the payload."""

    create: list[str] = Field(default_factory=list)
    update: list[str] = Field(default_factory=list)
    delete: list[str] = Field(default_factory=list)
    total: int = 0

    @property
    def planned_files(self) -> list[str]:
        """Files expected in the payload, in announcement order."""
        return list(dict.fromkeys(self.create + self.update))


def parse_plan_header(text: str) -> FilePlan | None:
    cleaned = strip_invisible(text)
    match = _PLAN_RE.search(cleaned)
    if match is None:
        return None
    end = find_container_end(cleaned, match.end())
    if end is None:
        LOGGER.debug("plan header is not closed")
        return None
    try:
        data = json.loads(cleaned[match.end() : end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    cleaned_data = {key: value for key, value in data.items() if value is not None}
    try:
        return FilePlan.model_validate(cleaned_data)
    except ValidationError as exc:
        LOGGER.debug("ignoring malformed plan header: %s", exc)
        return None


def plan_generation_meta(plan: FilePlan, decoded: list[str]) -> GenerationMeta | None:
    """Batch metadata for planned files the response never reached, if any."""
    remaining = [path for path in plan.planned_files if path not in decoded]
    if not remaining:
        return None
    total = plan.total or len(plan.planned_files)
    return GenerationMeta(
        total_files_planned=total,
        files_in_this_batch=list(decoded),
        completed_files=list(decoded),
        remaining_files=remaining,
        current_batch=1,
        total_batches=max(1, math.ceil(total / FILES_PER_BATCH)),
        is_complete=False,
    )


def batch_continuation_prompt(edit_set: EditSet) -> str | None:
    """Ask for the files a batched or truncated generation still owes."""
    meta = edit_set.generation_meta
    if meta is None or meta.is_complete or not meta.remaining_files:
        return None
    completed = meta.completed_files or list(edit_set.files)
    lines = [f"Continue generating the remaining {len(meta.remaining_files)} file(s).", ""]
    lines.append(f"ALREADY COMPLETED ({len(completed)} file(s)):")
    lines.extend(f"- {path}" for path in completed)
    lines.append("")
    lines.append("REMAINING FILES TO GENERATE:")
    lines.extend(f"- {path}" for path in meta.remaining_files)
    lines.append("")
    lines.append(
        "Use the same JSON format and structure. "
        f"This is batch {meta.current_batch + 1} of {max(meta.total_batches, meta.current_batch + 1)}."
    )
    return "\n".join(lines)
