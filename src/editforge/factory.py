"""Shared construction helpers for models and fix sessions."""

from __future__ import annotations

import json

from editforge.config import Settings
from editforge.fix.history import FixHistory
from editforge.fix.session import FixSession, create_fix_session
from editforge.models.base import BaseChatModel
from editforge.models.mock import MockChatModel
from editforge.models.openai_compat import OpenAICompatChatModel


def build_model(settings: Settings, use_mock: bool = False) -> BaseChatModel:
    if use_mock or not settings.openai_api_key:
        return MockChatModel()
    extra_headers = None
    if settings.openai_extra_headers:
        extra_headers = json.loads(settings.openai_extra_headers)
    return OpenAICompatChatModel(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout_seconds=settings.openai_timeout_seconds,
        temperature=settings.fix_temperature,
        extra_headers=extra_headers,
    )


def build_session(
    settings: Settings,
    model: BaseChatModel | None = None,
    history: FixHistory | None = None,
) -> FixSession:
    return create_fix_session(model or build_model(settings), settings=settings, history=history)
