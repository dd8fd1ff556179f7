"""Display events emitted by the stream pipeline and the session controller."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class DisplayKind(str, Enum):
    """Kind of a display event."""

    ASSISTANT_TEXT = "assistant_text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    ORPHAN_RESULT = "orphan_result"
    INPUT_PARSE_FAILED = "input_parse_failed"
    PARSE_FAILURE = "parse_failure"
    NO_RESULT = "no_result"
    USAGE_SUMMARY = "usage_summary"
    STDERR = "stderr"
    LOOP_DIVIDER = "loop_divider"
    AUTO_CONTINUE = "auto_continue"
    ALL_SPECS_COMPLETE = "all_specs_complete"
    ITERATIONS_EXHAUSTED = "iterations_exhausted"
    SPECS_MISSING = "specs_missing"
    PROCESS_EXIT = "process_exit"
    SPAWN_FAILED = "spawn_failed"
    MANUAL_STOP = "manual_stop"


@dataclass(frozen=True)
class DisplayEvent:
    """One displayable unit, already split into plain text lines.

    For ``TOOL_RESULT`` and ``NO_RESULT`` the first line is the call summary
    and the remaining lines belong beneath it.
    """

    kind: DisplayKind
    lines: Tuple[str, ...] = field(default_factory=tuple)
    tool_id: Optional[str] = None
    is_error: bool = False

    @property
    def text(self) -> str:
        return "\n".join(self.lines)
