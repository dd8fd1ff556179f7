"""Claude CLI stream events.

The CLI writes one JSON object per line. Each line becomes exactly one of
the immutable event types below; anything with an unrecognised ``type``
becomes ``Unknown`` and a line that cannot be decoded becomes
``ParseFailure``.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union


@dataclass(frozen=True)
class Usage:
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


@dataclass(frozen=True)
class MessageStart:
    message_id: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class ContentBlockStart:
    """Opens content block ``index``.

    ``block_type`` is ``"text"`` or ``"tool_use"`` for the blocks Ralph
    accumulates; other types (e.g. ``"thinking"``) are carried through.
    """

    index: int
    block_type: str
    text: str = ""
    tool_id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_input: Optional[Any] = None


@dataclass(frozen=True)
class ContentBlockDelta:
    """``text`` holds the text fragment or the partial input JSON."""

    index: int
    delta_type: str
    text: str = ""


@dataclass(frozen=True)
class ContentBlockStop:
    index: int


@dataclass(frozen=True)
class MessageDelta:
    stop_reason: Optional[str] = None
    usage: Optional[Usage] = None


@dataclass(frozen=True)
class MessageStop:
    pass


@dataclass(frozen=True)
class SystemInit:
    subtype: Optional[str] = None
    session_id: Optional[str] = None


@dataclass(frozen=True)
class AssistantMessage:
    message_id: Optional[str] = None


@dataclass(frozen=True)
class ToolResult:
    tool_use_id: Optional[str]
    content: Any = ""
    is_error: bool = False


@dataclass(frozen=True)
class UserMessage:
    tool_results: Tuple[ToolResult, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ResultSummary:
    subtype: Optional[str] = None
    is_error: bool = False
    total_cost_usd: Optional[float] = None
    duration_ms: Optional[int] = None
    num_turns: Optional[int] = None
    usage: Optional[Usage] = None


@dataclass(frozen=True)
class Ping:
    pass


@dataclass(frozen=True)
class Unknown:
    tag: str


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    snippet: str


Event = Union[
    MessageStart,
    ContentBlockStart,
    ContentBlockDelta,
    ContentBlockStop,
    MessageDelta,
    MessageStop,
    SystemInit,
    AssistantMessage,
    UserMessage,
    ResultSummary,
    Ping,
    Unknown,
]
