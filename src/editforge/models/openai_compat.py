"""OpenAI-compatible chat model client."""

from __future__ import annotations

import json
import time
from typing import Any
from urllib.parse import urlparse, urlunparse

import httpx

from editforge.models.base import BaseChatModel, ModelResponse
from editforge.util.logging import get_logger, preview

LOGGER = get_logger(__name__)

_RETRYABLE_STATUS = {408, 409, 429}


class OpenAICompatError(RuntimeError):
    """Raised when the OpenAI-compatible backend returns an error."""


def chat_completions_url(base_url: str) -> str:
    """Resolve ``base_url`` to its ``.../v1/chat/completions`` endpoint."""
    normalized = base_url.strip()
    if not normalized.startswith(("http://", "https://")):
        normalized = f"http://{normalized}"
    parsed = urlparse(normalized.rstrip("/"))
    path = parsed.path.rstrip("/")
    if not path.endswith("/chat/completions"):
        if "v1" not in path.split("/"):
            path = f"{path}/v1"
        path = f"{path}/chat/completions"
    return urlunparse(parsed._replace(path=path, params="", query="", fragment=""))


def _message_text(data: Any) -> tuple[str, str | None]:
    if not isinstance(data, dict):
        raise OpenAICompatError("Unexpected response shape")
    choices = data.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices else {}
    if not isinstance(choice, dict):
        choice = {}
    message = choice.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, list):
        # Some backends split the reply into typed parts.
        content = "".join(
            str(part.get("text") or "") for part in content if isinstance(part, dict)
        )
    finish_reason = choice.get("finish_reason")
    return (
        content if isinstance(content, str) else "",
        finish_reason if isinstance(finish_reason, str) else None,
    )


class OpenAICompatChatModel(BaseChatModel):
    """HTTP client for OpenAI-compatible chat/completions."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: int = 120,
        max_response_bytes: int = 2_000_000,
        temperature: float | None = None,
        json_response: bool = True,
        extra_headers: dict[str, str] | None = None,
        max_attempts: int = 3,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = chat_completions_url(base_url)
        self.api_key = api_key
        self.model = model
        self.name = model
        self.timeout_seconds = timeout_seconds
        self.max_response_bytes = max_response_bytes
        self.temperature = temperature
        self.json_response = json_response
        self.extra_headers = extra_headers or {}
        self.max_attempts = max(1, max_attempts)
        self.transport = transport

    def _request_payload(self, messages: list[dict[str, Any]]) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": self.model, "messages": messages}
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.json_response:
            payload["response_format"] = {"type": "json_object"}
        return payload

    def _read(self, response: httpx.Response) -> ModelResponse:
        if response.status_code in _RETRYABLE_STATUS or response.status_code >= 500:
            raise OpenAICompatError(
                f"Retryable error {response.status_code}: {response.text[:200]}"
            )
        response.raise_for_status()
        if len(response.content) > self.max_response_bytes:
            raise OpenAICompatError("Response too large")
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise OpenAICompatError("Malformed JSON response") from exc
        text, finish_reason = _message_text(data)
        if finish_reason == "length":
            LOGGER.warning("model stopped at its output limit; response is likely truncated")
        return ModelResponse(
            final_text=text,
            model=data.get("model") or self.model,
            finish_reason=finish_reason,
        )

    def chat(self, messages: list[dict[str, Any]]) -> ModelResponse:
        headers = {"Authorization": f"Bearer {self.api_key}", **self.extra_headers}
        payload = self._request_payload(messages)
        last_error: Exception | None = None
        with httpx.Client(
            timeout=httpx.Timeout(self.timeout_seconds), transport=self.transport
        ) as client:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    return self._read(client.post(self.url, headers=headers, json=payload))
                except (httpx.HTTPError, OpenAICompatError) as exc:
                    last_error = exc
                    LOGGER.warning(
                        "model request failed (attempt %d/%d): %s",
                        attempt,
                        self.max_attempts,
                        preview(str(exc)),
                    )
                    if attempt < self.max_attempts:
                        time.sleep(2 ** (attempt - 1))
        raise OpenAICompatError(f"OpenAI-compatible request failed: {last_error}")
