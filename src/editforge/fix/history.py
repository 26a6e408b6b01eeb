"""Cross-session record of fix attempts used to avoid repeating failed work."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Callable

MAX_HISTORY_SIZE = 50
MAX_ATTEMPTS_PER_ERROR = 3
RECENT_FIX_WINDOW_SECONDS = 5.0
SIGNATURE_TTL_SECONDS = 30.0

_SIGNATURE_RULES = (
    (re.compile(r":\d+:\d+"), ":X:X"),
    (re.compile(r"line \d+", re.IGNORECASE), "line X"),
    (re.compile(r"[a-zA-Z]:[\\/]\S+"), "FILE"),
    (re.compile(r"/\S+\.(tsx?|jsx?)"), r"/FILE.\1"),
    (re.compile(r"'[^']+'"), "'X'"),
    (re.compile(r'"[^"]+"'), '"X"'),
)


def error_signature(message: str) -> str:
    """Stable key for an error: positions, paths and quoted values are masked."""
    normalized = message.lower().strip()
    for pattern, replacement in _SIGNATURE_RULES:
        normalized = pattern.sub(replacement, normalized)
    return normalized[:200]


@dataclass(frozen=True)
class FixRecord:
    error_message: str
    fix_applied: str | None
    success: bool
    timestamp: float


@dataclass
class SkipDecision:
    skip: bool
    reason: str | None = None


@dataclass
class FixHistory:
    """Attempt counts per error signature plus a bounded log of recent fixes."""

    max_attempts_per_error: int = MAX_ATTEMPTS_PER_ERROR
    max_history: int = MAX_HISTORY_SIZE
    recent_window: float = RECENT_FIX_WINDOW_SECONDS
    clock: Callable[[], float] = time.monotonic
    records: list[FixRecord] = field(default_factory=list)
    _attempts: dict[str, int] = field(default_factory=dict)
    _recent: dict[str, float] = field(default_factory=dict)

    def record_attempt(self, error_message: str, fix_applied: str | None, success: bool) -> None:
        signature = error_signature(error_message)
        now = self.clock()
        self._attempts[signature] = self._attempts.get(signature, 0) + 1
        if success and fix_applied:
            self._recent[signature] = now
        self.records.append(FixRecord(error_message, fix_applied, success, now))
        if len(self.records) > self.max_history:
            self.records = self.records[-self.max_history :]
        self._expire(now)

    def was_recently_fixed(self, error_message: str) -> bool:
        fixed_at = self._recent.get(error_signature(error_message))
        return fixed_at is not None and self.clock() - fixed_at < self.recent_window

    def attempt_count(self, error_message: str) -> int:
        return self._attempts.get(error_signature(error_message), 0)

    def should_skip(self, error_message: str) -> SkipDecision:
        if self.was_recently_fixed(error_message):
            return SkipDecision(True, "Recently fixed")
        attempts = self.attempt_count(error_message)
        if attempts >= self.max_attempts_per_error:
            return SkipDecision(True, f"Max attempts ({attempts}) reached")
        return SkipDecision(False)

    def reset_error(self, error_message: str) -> None:
        signature = error_signature(error_message)
        self._attempts.pop(signature, None)
        self._recent.pop(signature, None)

    def reset(self) -> None:
        self.records.clear()
        self._attempts.clear()
        self._recent.clear()

    def _expire(self, now: float) -> None:
        for signature, fixed_at in list(self._recent.items()):
            if now - fixed_at > SIGNATURE_TTL_SECONDS:
                del self._recent[signature]
