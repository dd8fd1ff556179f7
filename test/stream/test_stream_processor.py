"""Unit tests for the per-line stream pipeline."""

import json

from ralph_loop.models.display import DisplayKind
from ralph_loop.models.session import TodoStatus
from ralph_loop.stream.processor import StreamProcessor


def _wrapped(event: dict) -> str:
    return json.dumps({"type": "stream_event", "event": event})


def _tool_call_lines(index, tool_id, name, fragments):
    lines = [
        _wrapped(
            {
                "type": "content_block_start",
                "index": index,
                "content_block": {"type": "tool_use", "id": tool_id, "name": name, "input": {}},
            }
        )
    ]
    for fragment in fragments:
        lines.append(
            _wrapped(
                {
                    "type": "content_block_delta",
                    "index": index,
                    "delta": {"type": "input_json_delta", "partial_json": fragment},
                }
            )
        )
    lines.append(_wrapped({"type": "content_block_stop", "index": index}))
    return lines


def _tool_result_line(tool_id, content, is_error=False):
    return json.dumps(
        {
            "type": "user",
            "message": {
                "content": [
                    {"type": "tool_result", "tool_use_id": tool_id, "content": content, "is_error": is_error}
                ]
            },
        }
    )


def _process_all(processor, lines):
    events = []
    for line in lines:
        events.extend(processor.process_line(line))
    return events


class TestStreamProcessor:
    """Tests for turning NDJSON lines into display events."""

    def test_ping_emits_nothing(self):
        processor = StreamProcessor()
        assert processor.process_line('{"type":"ping"}') == []

    def test_blank_line_emits_nothing(self):
        assert StreamProcessor().process_line("   ") == []

    def test_tool_call_then_result(self):
        """Bash call split across deltas pairs with its later result."""
        processor = StreamProcessor()
        events = _process_all(processor, _tool_call_lines(1, "t1", "Bash", ['{"comm', 'and":"ls"}']))
        assert events == []
        assert [c.summary for c in processor.pending_calls()] == ["Bash(ls)"]

        events = processor.process_line(_tool_result_line("t1", "README.md"))
        assert len(events) == 1
        assert events[0].kind == DisplayKind.TOOL_RESULT
        assert events[0].lines[0] == "Bash(ls)"
        assert processor.pending_calls() == ()

    def test_orphan_result(self):
        processor = StreamProcessor()
        events = processor.process_line(_tool_result_line("t7", "x"))
        assert [e.kind for e in events] == [DisplayKind.ORPHAN_RESULT]

    def test_malformed_line_is_marked(self):
        processor = StreamProcessor()
        events = processor.process_line("{not json")
        assert len(events) == 1
        assert events[0].kind == DisplayKind.PARSE_FAILURE
        assert events[0].lines == ("[malformed JSON] {not json",)

    def test_assistant_text(self):
        processor = StreamProcessor()
        lines = [
            _wrapped({"type": "message_start", "message": {"id": "m1"}}),
            _wrapped({"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}}),
            _wrapped({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Done."}}),
            _wrapped({"type": "content_block_stop", "index": 0}),
            _wrapped({"type": "message_stop"}),
        ]
        events = _process_all(processor, lines)
        assert [(e.kind, e.lines) for e in events] == [(DisplayKind.ASSISTANT_TEXT, ("Done.",))]

    def test_usage_summary_uses_iteration(self):
        processor = StreamProcessor()
        processor.reset(iteration=3)
        line = json.dumps(
            {
                "type": "result",
                "total_cost_usd": 0.05,
                "duration_ms": 2300,
                "usage": {"input_tokens": 10, "output_tokens": 2},
            }
        )
        (event,) = processor.process_line(line)
        assert event.kind == DisplayKind.USAGE_SUMMARY
        assert "Exchange 3 (continuation): 10 in / 2 out" in event.lines
        assert "Cost: $0.05 | Duration: 2.3s" in event.lines

    def test_finish_flushes_unmatched_calls(self):
        processor = StreamProcessor()
        _process_all(processor, _tool_call_lines(0, "t2", "Read", ['{"file_path":"a.py"}']))
        events = processor.finish()
        assert [(e.kind, e.lines) for e in events] == [(DisplayKind.NO_RESULT, ("Read(a.py)", "no result received"))]
        assert processor.finish() == []

    def test_reset_clears_pending_calls(self):
        processor = StreamProcessor()
        _process_all(processor, _tool_call_lines(0, "t2", "Read", ['{"file_path":"a.py"}']))
        processor.reset(iteration=2)
        assert processor.pending_calls() == ()
        assert processor.finish() == []

    def test_non_string_tool_id_is_marked_not_raised(self):
        processor = StreamProcessor()
        lines = [
            _wrapped(
                {"type": "content_block_start", "index": 0, "content_block": {"type": "tool_use", "id": 7, "name": "Bash"}}
            ),
            _wrapped({"type": "content_block_stop", "index": 0}),
        ]
        events = _process_all(processor, lines)
        assert [e.kind for e in events] == [DisplayKind.PARSE_FAILURE]
        assert events[0].lines[0].startswith("[invalid field 'id']")
        assert processor.pending_calls() == ()

    def test_non_string_text_is_marked_not_raised(self):
        processor = StreamProcessor()
        lines = [
            _wrapped({"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": 5}}),
            _wrapped({"type": "content_block_stop", "index": 0}),
        ]
        events = _process_all(processor, lines)
        assert [e.kind for e in events] == [DisplayKind.PARSE_FAILURE]

    def test_stderr_passthrough(self):
        processor = StreamProcessor()
        (event,) = processor.process_stderr("warning: slow")
        assert event.kind == DisplayKind.STDERR
        assert event.lines == ("[stderr] warning: slow",)

    def test_todo_write_updates_todos(self):
        processor = StreamProcessor()
        todos = {
            "todos": [
                {"content": "Write tests", "activeForm": "Writing tests", "status": "in_progress"},
                {"content": "Ship", "activeForm": "Shipping", "status": "pending"},
            ]
        }
        _process_all(processor, _tool_call_lines(0, "t5", "TodoWrite", [json.dumps(todos)]))
        assert [(t.content, t.status) for t in processor.todos] == [
            ("Write tests", TodoStatus.IN_PROGRESS),
            ("Ship", TodoStatus.PENDING),
        ]

    def test_finish_drops_unfinished_blocks(self):
        processor = StreamProcessor()
        processor.process_line(
            _wrapped({"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": "cut"}})
        )
        assert processor.accumulator.open_indexes == [0]
        assert processor.finish() == []
        assert processor.accumulator.open_indexes == []
