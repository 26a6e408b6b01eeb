"""Base model interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class ModelResponse(BaseModel):
    final_text: str | None = None
    model: str | None = None
    finish_reason: str | None = None


class BaseChatModel(ABC):
    """Abstract chat model interface."""

    name: str = "unknown"

    @abstractmethod
    def chat(self, messages: list[dict[str, Any]]) -> ModelResponse:
        """Send chat request and return model response."""
        raise NotImplementedError
