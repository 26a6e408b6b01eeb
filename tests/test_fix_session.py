import asyncio
import json

import pytest

from editforge.config import Settings
from editforge.fix.history import FixHistory
from editforge.fix.session import AgentState, FixCallbacks, FixSession, create_fix_session
from editforge.models.mock import MockChatModel

TYPE_ERROR = "Type 'string' is not assignable to type 'number'."
FILES = {"src/App.tsx": "export const x: number = 'a';\n"}


async def no_sleep(_seconds):
    return None


def fix_response(content, explanation="Use a number"):
    return json.dumps({"explanation": explanation, "files": {"src/App.tsx": content}})


def make_session(scripted=None, **kwargs):
    model = MockChatModel(scripted)
    session = create_fix_session(model, settings=Settings(max_attempts=5), sleep=no_sleep, **kwargs)
    return session, model


def run(session, callbacks=None, error=TYPE_ERROR, files=FILES, max_attempts=None):
    asyncio.run(
        session.start(error, None, "src/App.tsx", files, callbacks=callbacks, max_attempts=max_attempts)
    )


def test_stops_after_max_attempts_without_changes():
    session, model = make_session()
    run(session, max_attempts=3)
    assert session.state is AgentState.MAX_ATTEMPTS_REACHED
    assert session.completion_message == "Failed after 3 attempts"
    assert len(model.calls) == 3
    assert session.current_attempt == 3
    assert session.attempts == []
    assert not session.is_running


def test_identical_content_is_not_applied():
    same = fix_response(FILES["src/App.tsx"].strip())
    session, model = make_session([same, same])
    updates = []
    files = {"src/App.tsx": FILES["src/App.tsx"].strip()}
    run(session, FixCallbacks(on_file_update=lambda path, content: updates.append(path)), files=files, max_attempts=2)
    assert session.state is AgentState.MAX_ATTEMPTS_REACHED
    assert updates == []
    assert any(entry.title == "No Changes" for entry in session.logs)


def test_successful_model_fix():
    session, model = make_session([fix_response("export const x: number = 1;")])
    updates = []
    completed = []
    callbacks = FixCallbacks(
        on_file_update=lambda path, content: updates.append((path, content)),
        on_complete=lambda ok, message: completed.append((ok, message)),
    )
    run(session, callbacks)
    assert session.state is AgentState.SUCCESS
    assert updates == [("src/App.tsx", "export const x: number = 1;")]
    assert completed == [(True, "Fixed src/App.tsx after 1 attempt(s)")]
    assert session.files["src/App.tsx"] == "export const x: number = 1;"
    assert len(session.attempts) == 1
    assert model.calls[0][0]["role"] == "system"


def test_reported_error_starts_another_attempt():
    session, model = make_session(
        [fix_response("export const x: number = 1;"), fix_response("export const x: number = 2;")]
    )
    reported = []

    def on_state_change(state):
        if state is AgentState.VERIFYING and not reported:
            reported.append(state)
            session.report_error("ReferenceError: y is not defined")

    run(session, FixCallbacks(on_state_change=on_state_change))
    assert session.state is AgentState.SUCCESS
    assert len(model.calls) == 2
    assert session.attempts[0].resulting_error == "ReferenceError: y is not defined"
    assert session.current_error == "ReferenceError: y is not defined"
    assert "PREVIOUS FAILED ATTEMPTS" in model.calls[1][1]["content"]
    assert session.completion_message == "Fixed src/App.tsx after 2 attempt(s)"


def test_reported_success_finishes_immediately():
    session, _ = make_session([fix_response("export const x: number = 1;")])

    def on_state_change(state):
        if state is AgentState.VERIFYING:
            session.report_success()

    run(session, FixCallbacks(on_state_change=on_state_change))
    assert session.state is AgentState.SUCCESS
    assert session.completion_message == "Error fixed successfully!"


def test_signals_outside_verification_are_ignored():
    session, _ = make_session()
    session.report_error("late error")
    session.report_success()
    assert session.state is AgentState.IDLE


def test_local_fix_skips_the_model():
    files = {
        "src/App.tsx": "import React from 'react';\n\nexport default function App() {\n  const [a] = useState(0);\n  return a;\n}\n"
    }
    session, model = make_session()
    states = []
    run(session, FixCallbacks(on_state_change=states.append), error="useState is not defined", files=files)
    assert session.state is AgentState.SUCCESS
    assert model.calls == []
    assert AgentState.LOCAL_FIX in states
    assert session.completion_message == "Fixed src/App.tsx locally (no AI needed)"
    assert "import { useState } from 'react';" in session.files["src/App.tsx"]
    assert session.attempts[0].prompt == "Local fix (no AI)"


def test_question_is_rejected_without_recording_attempt():
    session, model = make_session(
        ["Could you please provide the file contents?", fix_response("export const x: number = 1;")]
    )
    run(session, max_attempts=2)
    assert session.state is AgentState.SUCCESS
    assert len(session.attempts) == 1
    assert "PREVIOUS FAILED ATTEMPTS" not in model.calls[1][1]["content"]
    assert any(entry.title == "Invalid Response" for entry in session.logs)


def test_fenced_code_fallback():
    text = "Here is the fix:\n```tsx\nimport { useMemo } from 'react';\nexport const x: number = 1;\nexport default x;\n```"
    session, _ = make_session([text])
    run(session)
    assert session.state is AgentState.SUCCESS
    assert session.files["src/App.tsx"].startswith("import { useMemo } from 'react';")


def test_ignorable_error_is_skipped():
    session, model = make_session()
    run(session, error="ResizeObserver loop limit exceeded")
    assert session.state is AgentState.FAILED
    assert session.completion_message == "Skipped: ignorable error"
    assert model.calls == []


def test_history_skips_repeated_errors():
    history = FixHistory(max_attempts_per_error=1)
    history.record_attempt(TYPE_ERROR, None, False)
    session, model = make_session(history=history)
    run(session)
    assert session.state is AgentState.FAILED
    assert session.completion_message == "Skipped: Max attempts (1) reached"
    assert model.calls == []


def test_stop_during_model_call():
    session, model = make_session([fix_response("export const x: number = 1;")])
    completed = []

    def on_state_change(state):
        if state is AgentState.FIXING:
            session.stop()

    run(session, FixCallbacks(on_state_change=on_state_change, on_complete=lambda ok, msg: completed.append((ok, msg))))
    assert session.state is AgentState.IDLE
    assert completed == [(False, "Agent stopped by user")]
    assert len(model.calls) == 1
    assert session.files == FILES


def test_reconnect_replays_logs_state_and_completion():
    session, _ = make_session([fix_response("export const x: number = 1;")])
    run(session)
    logs, states, completed = [], [], []
    session.reconnect(
        FixCallbacks(
            on_log=logs.append,
            on_state_change=states.append,
            on_complete=lambda ok, msg: completed.append((ok, msg)),
        )
    )
    assert [entry.id for entry in logs] == [entry.id for entry in session.logs]
    assert states == [AgentState.SUCCESS]
    assert completed == [(True, "Fixed src/App.tsx after 1 attempt(s)")]


def test_log_entries_carry_attempt_numbers():
    session, _ = make_session([fix_response("export const x: number = 1;")])
    run(session)
    assert session.logs[0].title == "Agent Started"
    assert session.logs[0].metadata["attempt"] == 0
    assert any(entry.type == "prompt" and entry.metadata["attempt"] == 1 for entry in session.logs)


def test_start_while_running_is_rejected():
    session, _ = make_session()
    session._running = True
    with pytest.raises(RuntimeError):
        asyncio.run(session.start(TYPE_ERROR, None, "src/App.tsx", FILES))


def test_session_defaults():
    session = FixSession(MockChatModel())
    assert session.state is AgentState.IDLE
    assert session.max_attempts == Settings().max_attempts
