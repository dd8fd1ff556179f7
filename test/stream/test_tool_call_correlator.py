"""Unit tests for pairing tool calls with their results."""

from ralph_loop.models.display import DisplayKind
from ralph_loop.stream.correlator import NO_RESULT_MARKER, ToolCallCorrelator


class TestRegisterCall:
    """Tests for call registration."""

    def test_call_with_id_is_buffered(self):
        correlator = ToolCallCorrelator()
        assert correlator.register_call("t1", "Bash(ls)", tool_name="Bash") is None
        pending = correlator.pending_calls()
        assert [(c.id, c.summary) for c in pending] == [("t1", "Bash(ls)")]

    def test_call_without_id_is_displayed_immediately(self):
        correlator = ToolCallCorrelator()
        event = correlator.register_call(None, "Bash(ls)")
        assert event.kind == DisplayKind.TOOL_CALL
        assert event.lines == ("Bash(ls)",)
        assert correlator.pending_calls() == ()

    def test_duplicate_id_keeps_first(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t1", "Bash(ls)")
        correlator.register_call("t1", "Bash(pwd)")
        assert [c.summary for c in correlator.pending_calls()] == ["Bash(ls)"]


class TestRegisterResult:
    """Tests for result correlation."""

    def test_matching_result_pairs_once(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t1", "Bash(ls)", tool_name="Bash")
        event = correlator.register_result("t1", "a.txt\nb.txt")
        assert event.kind == DisplayKind.TOOL_RESULT
        assert event.lines == ("Bash(ls)", "(2 lines, 11 chars)", "  a.txt", "  b.txt")
        assert event.tool_id == "t1"
        assert correlator.pending_calls() == ()

        again = correlator.register_result("t1", "late")
        assert again.kind == DisplayKind.ORPHAN_RESULT

    def test_unknown_id_is_orphan(self):
        correlator = ToolCallCorrelator()
        event = correlator.register_result("t9", "")
        assert event.kind == DisplayKind.ORPHAN_RESULT
        assert event.lines == ("unknown (t9)", "(empty)")

    def test_error_flag_is_carried(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t1", "Bash(false)")
        assert correlator.register_result("t1", "exit 1", is_error=True).is_error is True

    def test_task_result_parts_are_joined(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t1", "Task", tool_name="Task")
        event = correlator.register_result("t1", [{"type": "text", "text": "one"}, {"type": "text", "text": "two"}])
        assert event.lines[1:] == ("(2 lines, 7 chars)", "  one", "  two")

    def test_list_result_from_other_tool_is_raw(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t1", "Bash(ls)", tool_name="Bash")
        event = correlator.register_result("t1", [{"type": "text", "text": "one"}])
        raw = '[{"type": "text", "text": "one"}]'
        assert event.lines[1:] == (f"(1 lines, {len(raw)} chars)", f"  {raw}")


class TestFlushUnmatched:
    """Tests for draining calls that never got a result."""

    def test_flush_in_registration_order(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t2", "Read(b.py)")
        correlator.register_call("t1", "Read(a.py)")
        flushed = correlator.flush_unmatched()
        assert [c.id for c in flushed] == ["t2", "t1"]
        assert correlator.pending_calls() == ()

    def test_flush_runs_once_until_reset(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t1", "Bash(ls)")
        assert len(correlator.flush_unmatched()) == 1
        correlator.register_call("t2", "Bash(pwd)")
        assert correlator.flush_unmatched() == []

        correlator.reset()
        correlator.register_call("t3", "Bash(id)")
        assert [c.id for c in correlator.flush_unmatched()] == ["t3"]

    def test_flushed_call_result_becomes_orphan(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t1", "Bash(ls)")
        correlator.flush_unmatched()
        assert correlator.register_result("t1", "x").kind == DisplayKind.ORPHAN_RESULT

    def test_no_result_event(self):
        correlator = ToolCallCorrelator()
        correlator.register_call("t2", "Bash(sleep 100)")
        (call,) = correlator.flush_unmatched()
        event = ToolCallCorrelator.no_result_event(call)
        assert event.kind == DisplayKind.NO_RESULT
        assert event.lines == ("Bash(sleep 100)", NO_RESULT_MARKER)
        assert event.tool_id == "t2"
