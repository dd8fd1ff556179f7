"""Per-line stream pipeline: parser -> accumulator -> correlator."""

import logging
from typing import List, Tuple

from ralph_loop.models.display import DisplayEvent, DisplayKind
from ralph_loop.models.events import (
    AssistantMessage,
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    MessageDelta,
    MessageStart,
    MessageStop,
    ParseFailure,
    Ping,
    ResultSummary,
    SystemInit,
    Unknown,
    UserMessage,
)
from ralph_loop.models.session import PendingToolCall, TodoItem
from ralph_loop.stream.accumulator import ContentBlockAccumulator, FinalizedToolCall
from ralph_loop.stream.correlator import ToolCallCorrelator
from ralph_loop.stream.parser import parse_line
from ralph_loop.utils.formatting import TODO_WRITE_TOOL, format_usage_summary, parse_todos

logger = logging.getLogger(__name__)

STDERR_PREFIX = "[stderr]"


class StreamProcessor:
    """Turns decoded lines from one subprocess run into display events.

    Owns the accumulator and correlator state for the current run; callers
    get copies only (``pending_calls``, ``todos``).
    """

    def __init__(self):
        self.accumulator = ContentBlockAccumulator()
        self.correlator = ToolCallCorrelator()
        self.iteration = 1
        self._todos: Tuple[TodoItem, ...] = ()

    def reset(self, iteration: int = 1) -> None:
        """Clear all block and correlation state for a new run."""
        self.accumulator.reset()
        self.correlator.reset()
        self.iteration = iteration

    @property
    def todos(self) -> Tuple[TodoItem, ...]:
        return self._todos

    def pending_calls(self) -> Tuple[PendingToolCall, ...]:
        return self.correlator.pending_calls()

    def process_stderr(self, line: str) -> List[DisplayEvent]:
        if not line.strip():
            return []
        return [DisplayEvent(kind=DisplayKind.STDERR, lines=(f"{STDERR_PREFIX} {line}",))]

    def process_line(self, line: str) -> List[DisplayEvent]:
        if not line.strip():
            return []
        logger.debug(f"raw_json_line: {line[:500]}")

        event = parse_line(line)
        if isinstance(event, ParseFailure):
            return [
                DisplayEvent(
                    kind=DisplayKind.PARSE_FAILURE,
                    lines=(f"[{event.reason}] {event.snippet}",),
                )
            ]
        return self.process_event(event)

    def process_event(self, event) -> List[DisplayEvent]:
        if isinstance(event, (MessageStart, ContentBlockStart, ContentBlockDelta, ContentBlockStop)):
            return self._route(self.accumulator.handle(event))

        if isinstance(event, UserMessage):
            return [
                self.correlator.register_result(result.tool_use_id, result.content, result.is_error)
                for result in event.tool_results
            ]

        if isinstance(event, ResultSummary):
            exchange_type = "initial prompt" if self.iteration <= 1 else "continuation"
            return [
                DisplayEvent(
                    kind=DisplayKind.USAGE_SUMMARY,
                    lines=tuple(format_usage_summary(event, self.iteration, exchange_type)),
                    is_error=event.is_error,
                )
            ]

        if isinstance(event, Ping):
            logger.debug("Received ping")
        elif isinstance(event, SystemInit):
            logger.debug(f"System event: subtype={event.subtype} session_id={event.session_id}")
        elif isinstance(event, (AssistantMessage, MessageDelta, MessageStop)):
            logger.debug(f"{type(event).__name__} event")
        elif isinstance(event, Unknown):
            logger.debug(f"Ignoring unknown event type '{event.tag}'")
        return []

    def finish(self) -> List[DisplayEvent]:
        """Flush calls that never received a result. Call once per run."""
        if self.accumulator.open_indexes:
            logger.warning(f"Process ended with unfinished content blocks {self.accumulator.open_indexes}")
            self.accumulator.reset()
        return [ToolCallCorrelator.no_result_event(call) for call in self.correlator.flush_unmatched()]

    def _route(self, outputs) -> List[DisplayEvent]:
        events: List[DisplayEvent] = []
        for output in outputs:
            if isinstance(output, FinalizedToolCall):
                self._track_todos(output)
                immediate = self.correlator.register_call(
                    output.tool_id, output.summary, tool_name=output.tool_name
                )
                if immediate is not None:
                    events.append(immediate)
            else:
                events.append(output)
        return events

    def _track_todos(self, call: FinalizedToolCall) -> None:
        if call.tool_name == TODO_WRITE_TOOL and call.input_ok:
            self._todos = tuple(parse_todos(call.tool_input))
