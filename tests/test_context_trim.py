from editforge.fix.session import AgentAttempt
from editforge.util.context_trim import trim_attempt_history, truncate_text


def test_truncate_text_keeps_head_by_default():
    trimmed = truncate_text("a" * 100, 30)
    assert trimmed.endswith("[TRUNCATED_TAIL]")
    assert trimmed.startswith("a")
    assert len(trimmed) == 30


def test_truncate_text_keeps_tail_on_errors():
    trimmed = truncate_text("x" * 100 + "TypeError: boom", 40)
    assert trimmed.startswith("[TRUNCATED_HEAD]")
    assert trimmed.endswith("TypeError: boom")
    assert len(trimmed) == 40


def test_short_text_is_unchanged():
    assert truncate_text("short", 30) == "short"


def test_trim_attempt_history_keeps_last_items():
    attempts = [{"response": f"r{i}", "applied_fix": "a.ts"} for i in range(6)]
    trimmed = trim_attempt_history(attempts, limit=2, max_chars=100)
    assert [item["response"] for item in trimmed] == ["r4", "r5"]
    assert len(attempts) == 6


def test_trim_attempt_history_accepts_models():
    attempt = AgentAttempt(prompt="p", response="y" * 500, applied_fix="a.ts")
    trimmed = trim_attempt_history([attempt], limit=5, max_chars=50)
    assert len(trimmed[0]["response"]) == 50
    assert attempt.response == "y" * 500
    assert trim_attempt_history([attempt], limit=0, max_chars=50) == []
