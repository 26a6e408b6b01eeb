"""Patch instruction and merge result models."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from editforge.failures import FailureEvent


class Replacement(BaseModel):
    search: str
    replace: str = ""


class PatchInstruction(BaseModel):
    """One file's edit: full content, a unified diff, replacements, or a delete flag."""

    model_config = ConfigDict(populate_by_name=True)

    content: str | None = None
    diff: str | None = None
    is_new: bool = Field(default=False, validation_alias=AliasChoices("is_new", "isNew"))
    is_deleted: bool = Field(
        default=False, validation_alias=AliasChoices("is_deleted", "isDeleted")
    )
    replacements: list[Replacement] = Field(default_factory=list)

    @property
    def body(self) -> str:
        return self.content if self.content is not None else (self.diff or "")


class MergeStats(BaseModel):
    created: int = 0
    updated: int = 0
    deleted: int = 0
    failed: int = 0
    replacements_applied: int = 0
    replacements_failed: int = 0


class MergeResult(BaseModel):
    """Best-effort merged snapshot plus per-file diagnostics."""

    success: bool = True
    files: dict[str, str] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    failures: list[FailureEvent] = Field(default_factory=list)
    stats: MergeStats = Field(default_factory=MergeStats)
