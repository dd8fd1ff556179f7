"""Tool call/result correlator.

Tool results arrive asynchronously in later ``user`` events. A finalized
call waits here until its result arrives or the process exits; each pending
call ends in exactly one of those two ways.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ralph_loop.models.display import DisplayEvent, DisplayKind
from ralph_loop.models.session import PendingToolCall
from ralph_loop.utils.formatting import extract_result_text, summarize_result

logger = logging.getLogger(__name__)

NO_RESULT_MARKER = "no result received"


class ToolCallCorrelator:
    """Matches registered tool calls with their results by tool_use id."""

    def __init__(self):
        self._pending: Dict[str, PendingToolCall] = {}
        self._next_order = 0
        self._flushed = False

    def reset(self) -> None:
        self._pending.clear()
        self._next_order = 0
        self._flushed = False

    def pending_calls(self) -> Tuple[PendingToolCall, ...]:
        """Pending calls in registration order."""
        return tuple(sorted(self._pending.values(), key=lambda call: call.order))

    def register_call(
        self, tool_id: Optional[str], summary: str, tool_name: str = ""
    ) -> Optional[DisplayEvent]:
        """Buffer a call until its result arrives.

        A call without an id cannot be correlated, so its summary is
        returned for immediate display instead.
        """
        if not tool_id:
            logger.debug(f"Tool call {tool_name or summary} has no id, displaying without result")
            return DisplayEvent(kind=DisplayKind.TOOL_CALL, lines=(summary,))

        if tool_id in self._pending:
            logger.warning(f"Duplicate tool call id {tool_id}, keeping the first registration")
            return None

        self._pending[tool_id] = PendingToolCall(
            id=tool_id, tool_name=tool_name, summary=summary, order=self._next_order
        )
        self._next_order += 1
        return None

    def register_result(
        self, tool_id: Optional[str], content: Any, is_error: bool = False
    ) -> DisplayEvent:
        """Pair a result with its pending call, or report it as an orphan."""
        call = self._pending.pop(tool_id, None) if tool_id else None

        if call is None:
            logger.warning(f"Tool result for unknown id {tool_id}, displaying as orphan")
            text = extract_result_text(None, content)
            return DisplayEvent(
                kind=DisplayKind.ORPHAN_RESULT,
                lines=(f"unknown ({tool_id or 'no id'})", *summarize_result(text)),
                tool_id=tool_id,
                is_error=is_error,
            )

        text = extract_result_text(call.tool_name, content)
        return DisplayEvent(
            kind=DisplayKind.TOOL_RESULT,
            lines=(call.summary, *summarize_result(text)),
            tool_id=call.id,
            is_error=is_error,
        )

    def flush_unmatched(self) -> List[PendingToolCall]:
        """Drain every pending call, in registration order.

        Called once when the process exits; later calls return nothing
        until ``reset``.
        """
        if self._flushed:
            logger.debug("flush_unmatched already called for this process")
            return []
        self._flushed = True

        remaining = list(self.pending_calls())
        self._pending.clear()
        for call in remaining:
            logger.info(f"No result received for tool call {call.summary} (id={call.id})")
        return remaining

    @staticmethod
    def no_result_event(call: PendingToolCall) -> DisplayEvent:
        return DisplayEvent(
            kind=DisplayKind.NO_RESULT,
            lines=(call.summary, NO_RESULT_MARKER),
            tool_id=call.id,
        )
