"""Failure taxonomy and decode errors."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureTag(str, Enum):
    """Standardized categories for dropped entries and failed edits."""

    NOT_A_FILE = "NOT_A_FILE"
    MALFORMED_PATH = "MALFORMED_PATH"
    IGNORED_PATH = "IGNORED_PATH"
    INVALID_CONTENT_TYPE = "INVALID_CONTENT_TYPE"
    OBJECT_WITHOUT_CONTENT = "OBJECT_WITHOUT_CONTENT"
    CONTENT_TOO_SHORT = "CONTENT_TOO_SHORT"
    EXTENSION_ONLY = "EXTENSION_ONLY"
    DIFF_REJECTED = "DIFF_REJECTED"
    SEARCH_NOT_FOUND = "SEARCH_NOT_FOUND"
    MISSING_TARGET = "MISSING_TARGET"


@dataclass(frozen=True)
class FailureEvent:
    """Structured failure event for merge results and diagnostics."""

    tag: str
    reason: str
    details: dict[str, Any] | None = None


class DecodeError(ValueError):
    """Raised when a model response cannot be turned into an edit set."""


class NoPayloadError(DecodeError):
    """No JSON-shaped payload could be found or recovered."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No valid JSON found in response. The model may not support structured code generation."
        )


class NoFileEntriesError(DecodeError):
    """A payload was found but it held no usable file entries."""

    def __init__(self, message: str | None = None, skipped: list[Any] | None = None) -> None:
        super().__init__(
            message
            or "Model returned no code files. Try a model better suited for code generation."
        )
        self.skipped = skipped or []


class PayloadTooLargeError(DecodeError):
    """The response exceeds the size that is safe to repair."""
