"""Mock chat model for offline testing."""

from __future__ import annotations

import json
from typing import Any

from editforge.models.base import BaseChatModel, ModelResponse


class MockChatModel(BaseChatModel):
    """Deterministic mock model used when no API key is available."""

    name = "mock"

    def __init__(self, scripted: list[ModelResponse | str] | None = None) -> None:
        self._scripted = list(scripted or [])
        self.calls: list[list[dict[str, Any]]] = []

    def chat(self, messages: list[dict[str, Any]]) -> ModelResponse:
        self.calls.append([dict(message) for message in messages])
        if self._scripted:
            item = self._scripted.pop(0)
            if isinstance(item, str):
                return ModelResponse(final_text=item, model=self.name)
            return item
        return ModelResponse(
            final_text=json.dumps({"files": {}, "explanation": "Mock model made no changes."}),
            model=self.name,
        )
