"""Stateful fix loop: analyze, try a local fix, ask the model, apply, verify.

One session drives one error at a time. Attempts are strictly sequential;
the only suspension points are the model call (run in a worker thread) and
the settle delay after applying a fix, during which the host may report a
new error or success. Observers can detach and later reattach through
:meth:`FixSession.reconnect`, which replays everything buffered so far.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, Mapping
from uuid import uuid4

from pydantic import BaseModel, Field

from editforge.config import DEFAULT_SETTINGS, Settings
from editforge.decoding.models import EditSet
from editforge.fix.analyzer import ErrorAnalyzer, ParsedError, is_ignorable_error
from editforge.fix.history import FixHistory
from editforge.fix.local_fixes import LocalFixer
from editforge.fix.prompt import build_fix_messages, build_fix_prompt
from editforge.fix.responses import clean_raw_response, is_asking_question, smart_extract_fix
from editforge.models.base import BaseChatModel
from editforge.paths import normalize_path
from editforge.protocol import parse_response
from editforge.sanitize import looks_like_code
from editforge.util.logging import get_logger, preview

LOGGER = get_logger(__name__)

PROMPT_LOG_CHARS = 1000
RESPONSE_LOG_CHARS = 500


class AgentState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    LOCAL_FIX = "local-fix"
    AI_FIX = "ai-fix"
    FIXING = "fixing"
    APPLYING = "applying"
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAILED = "failed"
    MAX_ATTEMPTS_REACHED = "max_attempts_reached"


LogType = Literal["info", "prompt", "response", "fix", "error", "success", "warning"]


class AgentLogEntry(BaseModel):
    id: str
    timestamp: datetime
    type: LogType
    title: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class AgentAttempt(BaseModel):
    prompt: str
    response: str
    applied_fix: str
    changed_files: list[str] = Field(default_factory=list)
    resulting_error: str | None = None


@dataclass
class FixCallbacks:
    on_state_change: Callable[[AgentState], None] | None = None
    on_log: Callable[[AgentLogEntry], None] | None = None
    on_file_update: Callable[[str, str], None] | None = None
    on_complete: Callable[[bool, str], None] | None = None


class _Step(Enum):
    CONTINUE = "continue"
    DONE = "done"


Sleep = Callable[[float], Awaitable[Any]]


def _describe(paths: list[str]) -> str:
    return paths[0] if len(paths) == 1 else f"{len(paths)} files"


class FixSession:
    """Drives one error through local and model-based fix attempts."""

    def __init__(
        self,
        model: BaseChatModel,
        settings: Settings | None = None,
        history: FixHistory | None = None,
        sleep: Sleep = asyncio.sleep,
        analyzer: ErrorAnalyzer | None = None,
        local_fixer: LocalFixer | None = None,
    ) -> None:
        self.model = model
        self.settings = settings or DEFAULT_SETTINGS
        self.history = history if history is not None else FixHistory()
        self._sleep = sleep
        self.analyzer = analyzer or ErrorAnalyzer()
        self.local_fixer = local_fixer or LocalFixer()
        self._callbacks = FixCallbacks()
        self._state = AgentState.IDLE
        self._logs: list[AgentLogEntry] = []
        self._attempts: list[AgentAttempt] = []
        self._files: dict[str, str] = {}
        self._attempt = 0
        self._max_attempts = self.settings.max_attempts
        self._running = False
        self._aborted = False
        self._completion: str | None = None
        self._succeeded: bool | None = None
        self._original_error = ""
        self._error = ""
        self._stack: str | None = None
        self._target_file = ""
        self._signal: asyncio.Event | None = None
        self._signal_error: tuple[str, str | None] | None = None

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def logs(self) -> list[AgentLogEntry]:
        return list(self._logs)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def completion_message(self) -> str | None:
        return self._completion

    @property
    def attempts(self) -> list[AgentAttempt]:
        return list(self._attempts)

    @property
    def current_attempt(self) -> int:
        return self._attempt

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def current_error(self) -> str:
        return self._error

    @property
    def files(self) -> dict[str, str]:
        return dict(self._files)

    async def start(
        self,
        error_message: str,
        error_stack: str | None,
        target_file: str,
        files: Mapping[str, str],
        callbacks: FixCallbacks | None = None,
        max_attempts: int | None = None,
    ) -> None:
        if self._running:
            raise RuntimeError("fix session is already running")
        if callbacks is not None:
            self._callbacks = callbacks
        self._attempt = 0
        self._attempts = []
        self._logs = []
        self._files = dict(files)
        self._max_attempts = max_attempts or self.settings.max_attempts
        self._running = True
        self._aborted = False
        self._completion = None
        self._succeeded = None
        self._original_error = error_message
        self._error = error_message
        self._stack = error_stack
        self._target_file = target_file

        self._log("info", "Agent Started", f"Starting error fix agent for: {target_file}")
        self._log("error", "Error Detected", error_message, file=target_file)

        if is_ignorable_error(error_message):
            self._finish(False, "Skipped: ignorable error", AgentState.FAILED)
            return
        decision = self.history.should_skip(error_message)
        if decision.skip:
            self._finish(False, f"Skipped: {decision.reason}", AgentState.FAILED)
            return

        await self._run()

    def stop(self) -> None:
        """Cooperative stop: the current step finishes, the next one is skipped."""
        if not self._running:
            return
        self._aborted = True
        if self._signal is not None:
            self._signal.set()
        self._log("warning", "Agent Stopped", "Agent was stopped by user")
        self._finish(False, "Agent stopped by user", AgentState.IDLE)

    def report_error(self, message: str, stack: str | None = None) -> None:
        """A new error surfaced after a fix; only honoured while verifying."""
        if self._state is not AgentState.VERIFYING or self._signal is None:
            return
        self._signal_error = (message, stack)
        self._signal.set()

    def report_success(self) -> None:
        if self._state is not AgentState.VERIFYING or self._signal is None:
            return
        self._signal_error = None
        self._signal.set()

    def reconnect(self, callbacks: FixCallbacks) -> None:
        """Attach new observers and replay buffered logs, state and completion."""
        self._callbacks = callbacks
        if callbacks.on_log:
            for entry in self._logs:
                callbacks.on_log(entry)
        if callbacks.on_state_change:
            callbacks.on_state_change(self._state)
        if callbacks.on_complete and self._completion is not None and not self._running:
            callbacks.on_complete(bool(self._succeeded), self._completion)

    async def _run(self) -> None:
        while self._attempt < self._max_attempts:
            if self._aborted:
                return
            self._attempt += 1
            self._log("info", f"Attempt {self._attempt}/{self._max_attempts}", "Starting fix attempt...")
            try:
                step = await self._attempt_once()
            except Exception as exc:
                LOGGER.exception("fix attempt %d failed", self._attempt)
                self._log("error", "Error in Fix Attempt", str(exc) or type(exc).__name__)
                if self._attempts and self._attempts[-1].resulting_error is None:
                    self._attempts[-1].resulting_error = str(exc)
                continue
            if step is _Step.DONE:
                return

        if self._aborted:
            return
        message = f"Failed after {self._max_attempts} attempts"
        self._log("warning", "Max Attempts Reached", f"Failed to fix error after {self._max_attempts} attempts")
        self._finish(False, message, AgentState.MAX_ATTEMPTS_REACHED)

    async def _attempt_once(self) -> _Step:
        self._set_state(AgentState.ANALYZING)
        parsed = self.analyzer.analyze(self._error, self._stack, self._files)
        self._log(
            "info",
            "Error Analysis",
            f"Type: {parsed.type}\nCategory: {parsed.category}\n"
            f"Summary: {self.analyzer.summary(parsed)}\n"
            f"Auto-fixable: {parsed.is_auto_fixable}\n"
            f"Confidence: {parsed.confidence * 100:.0f}%",
        )

        if parsed.is_auto_fixable and self._attempt == 1:
            step = await self._try_local(parsed)
            if step is not None:
                return step

        self._set_state(AgentState.AI_FIX)
        prompt = build_fix_prompt(
            parsed,
            self._target_file,
            self._files,
            self._attempts,
            history_limit=self.settings.fix_history_limit,
            history_chars=self.settings.fix_history_response_chars,
            related_file_chars=self.settings.related_file_chars,
        )
        suffix = "\n...(truncated)" if len(prompt) > PROMPT_LOG_CHARS else ""
        self._log(
            "prompt",
            "Prompt Sent to LLM",
            prompt[:PROMPT_LOG_CHARS] + suffix,
            file=self._target_file,
            model=self.model.name,
        )

        self._set_state(AgentState.FIXING)
        started = time.monotonic()
        response = await asyncio.wait_for(
            asyncio.to_thread(self.model.chat, build_fix_messages(prompt)),
            timeout=self.settings.fix_timeout_seconds,
        )
        duration = round(time.monotonic() - started, 3)
        if self._aborted:
            return _Step.DONE
        text = response.final_text or ""
        if not text.strip():
            self._log("error", "Empty Response", "LLM returned empty response")
            return _Step.CONTINUE
        suffix = "..." if len(text) > RESPONSE_LOG_CHARS else ""
        self._log(
            "response",
            "LLM Response",
            text[:RESPONSE_LOG_CHARS] + suffix,
            duration=duration,
            model=response.model or self.model.name,
        )

        if is_asking_question(text):
            self._log("warning", "Invalid Response", "Model asked questions instead of fixing. Retrying...")
            return _Step.CONTINUE

        edit = self._read_fix(text, parsed)
        if edit is None:
            self._log("error", "Parse Failed", "Could not extract any file changes from the response")
            return _Step.CONTINUE
        if edit.explanation:
            self._log("info", "Fix Explanation", edit.explanation)

        changes: dict[str, str] = {}
        for path, content in edit.files.items():
            actual = normalize_path(path, self._files)
            if content and content != self._files.get(actual):
                changes[actual] = content
        if not changes:
            self._log("warning", "No Changes", "LLM returned identical code for all files")
            return _Step.CONTINUE

        applied = self._apply(changes, "Applying Fix")
        self._log("info", "Files Updated", f"Applied fixes to: {', '.join(applied)}")
        self._attempts.append(
            AgentAttempt(prompt=prompt, response=text, applied_fix=", ".join(applied), changed_files=applied)
        )
        suffix = " (fallback mode)" if edit.recovered_by == "raw" else ""
        return await self._verify(
            applied,
            f"Fixed {_describe(applied)} after {self._attempt} attempt(s){suffix}",
        )

    async def _try_local(self, parsed: ParsedError) -> _Step | None:
        self._set_state(AgentState.LOCAL_FIX)
        self._log("info", "Trying Local Fix", "Attempting to fix without AI...")
        result = self.local_fixer.try_fix(self._error, self._stack, self._target_file, self._files)
        if not result.success:
            self._log("info", "Local Fix Failed", "No local fix available, proceeding with AI...")
            return None
        self._log("success", "Local Fix Found", f"{result.explanation}\nFix type: {result.fix_type}")
        applied = self._apply(result.fixed_files, "Applying Local Fix")
        self._attempts.append(
            AgentAttempt(
                prompt="Local fix (no AI)",
                response=result.explanation,
                applied_fix=", ".join(applied),
                changed_files=applied,
            )
        )
        return await self._verify(applied, f"Fixed {_describe(applied)} locally (no AI needed)")

    def _read_fix(self, text: str, parsed: ParsedError) -> EditSet | None:
        edit = parse_response(text, strict=False, settings=self.settings)
        # fenced_blocks invents file names; the target file is known here.
        if edit is not None and edit.files and edit.recovered_by != "fenced_blocks":
            return edit
        self._log("info", "Trying Smart Extraction", "JSON parse failed, extracting code from response...")
        edit = smart_extract_fix(text, self._target_file, parsed)
        if edit is not None:
            return edit
        fallback = clean_raw_response(text)
        if looks_like_code(fallback) and fallback != self._files.get(self._target_file):
            self._log("info", "Using Fallback", "Applying raw code as fallback")
            return EditSet(files={self._target_file: fallback}, recovered_by="raw")
        return None

    def _apply(self, changes: Mapping[str, str], title: str) -> list[str]:
        self._set_state(AgentState.APPLYING)
        applied: list[str] = []
        for path, content in changes.items():
            self._log("fix", title, f"Updating {path}", file=path)
            if self._callbacks.on_file_update:
                self._callbacks.on_file_update(path, content)
            self._files[path] = content
            applied.append(path)
        return applied

    async def _verify(self, applied: list[str], success_message: str) -> _Step:
        self._signal = asyncio.Event()
        self._signal_error = None
        self._set_state(AgentState.VERIFYING)
        self._log("info", "Verifying Fix", "Waiting for preview to compile...")

        settle = asyncio.ensure_future(self._sleep(self.settings.fix_settle_seconds))
        signalled = asyncio.ensure_future(self._signal.wait())
        try:
            await asyncio.wait({settle, signalled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (settle, signalled):
                task.cancel()
        reported = self._signal.is_set()
        self._signal = None
        if self._aborted:
            return _Step.DONE

        if reported and self._signal_error is not None:
            message, stack = self._signal_error
            self._signal_error = None
            self._log("error", "New Error After Fix", message)
            self._attempts[-1].resulting_error = message
            self.history.record_attempt(self._error, ", ".join(applied), False)
            self._error = message
            self._stack = stack
            return _Step.CONTINUE

        if reported:
            self._log("success", "Error Resolved", "Preview compiled successfully!")
            self._finish(True, "Error fixed successfully!", AgentState.SUCCESS, ", ".join(applied))
        else:
            self._log("success", "Fix Applied", f"Successfully applied fix to {_describe(applied)}")
            self._finish(True, success_message, AgentState.SUCCESS, ", ".join(applied))
        return _Step.DONE

    def _finish(
        self, success: bool, message: str, state: AgentState, fix_applied: str | None = None
    ) -> None:
        self._set_state(state)
        self._running = False
        self._succeeded = success
        self._completion = message
        if state is not AgentState.IDLE:
            self.history.record_attempt(self._original_error, fix_applied, success)
        LOGGER.info("fix session finished state=%s message=%s", state.value, message)
        if self._callbacks.on_complete:
            self._callbacks.on_complete(success, message)

    def _set_state(self, state: AgentState) -> None:
        self._state = state
        if self._callbacks.on_state_change:
            self._callbacks.on_state_change(state)

    def _log(self, type_: LogType, title: str, content: str, **metadata: Any) -> None:
        entry = AgentLogEntry(
            id=f"{int(time.time() * 1000)}-{uuid4().hex[:7]}",
            timestamp=datetime.now(timezone.utc),
            type=type_,
            title=title,
            content=content,
            metadata={**metadata, "attempt": self._attempt},
        )
        self._logs.append(entry)
        LOGGER.debug("[%s] %s: %s", type_, title, preview(content))
        if self._callbacks.on_log:
            self._callbacks.on_log(entry)


def create_fix_session(
    model: BaseChatModel,
    settings: Settings | None = None,
    history: FixHistory | None = None,
    sleep: Sleep = asyncio.sleep,
) -> FixSession:
    return FixSession(model, settings=settings, history=history, sleep=sleep)
