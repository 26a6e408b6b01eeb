from editforge.fix.history import FixHistory, error_signature


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_signature_masks_positions_and_quotes():
    assert error_signature("Error at src/App.tsx:12:5") == error_signature("Error at src/App.tsx:13:9")
    assert error_signature("'foo' is not defined") == error_signature("'bar' is not defined")
    assert len(error_signature("x" * 500)) == 200


def test_max_attempts_per_error():
    history = FixHistory()
    for _ in range(3):
        history.record_attempt("Boom at line 3", None, False)
    decision = history.should_skip("Boom at line 9")
    assert decision.skip
    assert decision.reason == "Max attempts (3) reached"


def test_recent_fix_window():
    clock = FakeClock()
    history = FixHistory(clock=clock)
    history.record_attempt("Boom", "src/App.tsx", True)
    clock.now = 1.0
    assert history.should_skip("Boom").reason == "Recently fixed"
    clock.now = 10.0
    assert not history.was_recently_fixed("Boom")


def test_reset_error_clears_counts():
    history = FixHistory()
    history.record_attempt("Boom", None, False)
    history.reset_error("Boom")
    assert history.attempt_count("Boom") == 0
    assert not history.should_skip("Boom").skip


def test_records_are_capped():
    history = FixHistory(max_history=2)
    for i in range(5):
        history.record_attempt(f"error {i}", None, False)
    assert [record.error_message for record in history.records] == ["error 3", "error 4"]


def test_reset_clears_everything():
    history = FixHistory()
    history.record_attempt("Boom", "src/App.tsx", True)
    history.reset()
    assert history.records == []
    assert history.attempt_count("Boom") == 0
    assert not history.was_recently_fixed("Boom")
