"""Data models produced by the response decoders."""

from __future__ import annotations

import json
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from editforge.failures import FailureTag


class GenerationMeta(BaseModel):
    """Batch continuation bookkeeping for multi-response generations."""

    model_config = ConfigDict(populate_by_name=True)

    total_files_planned: int = Field(
        default=0,
        validation_alias=AliasChoices("total_files_planned", "totalFilesPlanned"),
        serialization_alias="totalFilesPlanned",
    )
    files_in_this_batch: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("files_in_this_batch", "filesInThisBatch"),
        serialization_alias="filesInThisBatch",
    )
    completed_files: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("completed_files", "completedFiles"),
        serialization_alias="completedFiles",
    )
    remaining_files: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("remaining_files", "remainingFiles"),
        serialization_alias="remainingFiles",
    )
    current_batch: int = Field(
        default=1,
        validation_alias=AliasChoices("current_batch", "currentBatch"),
        serialization_alias="currentBatch",
    )
    total_batches: int = Field(
        default=1,
        validation_alias=AliasChoices("total_batches", "totalBatches"),
        serialization_alias="totalBatches",
    )
    is_complete: bool = Field(
        default=True,
        validation_alias=AliasChoices("is_complete", "isComplete"),
        serialization_alias="isComplete",
    )

    @classmethod
    def from_payload(cls, payload: Any) -> GenerationMeta | None:
        if not isinstance(payload, dict):
            return None
        cleaned = {key: value for key, value in payload.items() if value is not None}
        try:
            return cls.model_validate(cleaned)
        except ValueError:
            return None

    @classmethod
    def from_legacy_continuation(
        cls, continuation: Any, file_paths: list[str]
    ) -> GenerationMeta | None:
        """Convert the older ``continuation`` block into batch metadata."""
        if not isinstance(continuation, dict):
            return None
        remaining = continuation.get("remainingFiles") or []
        if not isinstance(remaining, list):
            remaining = []
        remaining = [str(path) for path in remaining]
        return cls(
            total_files_planned=len(remaining) + len(file_paths),
            files_in_this_batch=list(file_paths),
            completed_files=list(file_paths),
            remaining_files=remaining,
            current_batch=_as_int(continuation.get("currentBatch"), 1),
            total_batches=_as_int(continuation.get("totalBatches"), 1),
            is_complete=not remaining,
        )


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value) or default


class SkippedEntry(BaseModel):
    path: str
    reason: FailureTag
    detail: str = ""


class EditSet(BaseModel):
    """Normalized ``{path: content}`` edits plus decode diagnostics."""

    files: dict[str, str] = Field(default_factory=dict)
    explanation: str | None = None
    deleted_files: list[str] = Field(default_factory=list)
    truncated: bool = False
    generation_meta: GenerationMeta | None = None
    skipped: list[SkippedEntry] = Field(default_factory=list)
    recovered_by: str = "json"

    def to_envelope(self) -> dict[str, Any]:
        """Canonical envelope that decodes back to the same files."""
        envelope: dict[str, Any] = {"files": dict(self.files)}
        if self.explanation:
            envelope["explanation"] = self.explanation
        if self.deleted_files:
            envelope["deletedFiles"] = list(self.deleted_files)
        if self.generation_meta is not None:
            envelope["generationMeta"] = self.generation_meta.model_dump(by_alias=True)
        return envelope

    def to_json(self) -> str:
        return json.dumps(self.to_envelope(), ensure_ascii=False)


class StreamingStatus(BaseModel):
    """Per-path progress while a response is still arriving."""

    pending: list[str] = Field(default_factory=list)
    streaming: list[str] = Field(default_factory=list)
    complete: list[str] = Field(default_factory=list)
