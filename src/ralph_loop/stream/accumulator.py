"""Content block accumulator.

Assembles streamed deltas into complete text and tool_use blocks, keyed by
block index within the current message. Deltas are applied in arrival
order; nothing is reordered.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ralph_loop.models.display import DisplayEvent, DisplayKind
from ralph_loop.models.events import (
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    MessageStart,
)
from ralph_loop.utils.formatting import format_raw_tool_summary, format_tool_summary

logger = logging.getLogger(__name__)


@dataclass
class TextBlock:
    text: str = ""


@dataclass
class ToolUseBlock:
    tool_id: Optional[str]
    name: str
    raw_input: str = ""
    start_input: Any = None


@dataclass
class OtherBlock:
    """A block type Ralph does not display (thinking, ...)."""

    block_type: str


Block = Union[TextBlock, ToolUseBlock, OtherBlock]


@dataclass(frozen=True)
class FinalizedToolCall:
    """A tool_use block closed by ContentBlockStop, ready for correlation."""

    tool_id: Optional[str]
    tool_name: str
    summary: str
    tool_input: Any = None
    input_ok: bool = True


AccumulatorOutput = Union[DisplayEvent, FinalizedToolCall]


class ContentBlockAccumulator:
    """Per-index block state machine scoped to the current message."""

    def __init__(self):
        self._blocks: Dict[int, Block] = {}

    @property
    def open_indexes(self) -> List[int]:
        return sorted(self._blocks)

    def reset(self) -> None:
        self._blocks.clear()

    def handle(
        self, event: Union[MessageStart, ContentBlockStart, ContentBlockDelta, ContentBlockStop]
    ) -> List[AccumulatorOutput]:
        if isinstance(event, MessageStart):
            self._start_message()
            return []
        if isinstance(event, ContentBlockStart):
            self._start_block(event)
            return []
        if isinstance(event, ContentBlockDelta):
            self._apply_delta(event)
            return []
        if isinstance(event, ContentBlockStop):
            return self._stop_block(event.index)
        return []

    def _start_message(self) -> None:
        for index, block in self._blocks.items():
            if isinstance(block, ToolUseBlock):
                logger.warning(
                    f"Abandoning unfinalized tool call {block.name} "
                    f"(id={block.tool_id}, index={index}) at new message"
                )
        self._blocks.clear()

    def _start_block(self, event: ContentBlockStart) -> None:
        if event.index in self._blocks:
            logger.warning(f"Content block index {event.index} restarted within one message")

        if event.block_type == "text":
            block: Block = TextBlock(text=event.text)
        elif event.block_type == "tool_use":
            block = ToolUseBlock(
                tool_id=event.tool_id,
                name=event.tool_name or "",
                start_input=event.tool_input,
            )
        else:
            block = OtherBlock(block_type=event.block_type)

        self._blocks[event.index] = block
        logger.debug(f"Content block started: index={event.index} type={event.block_type}")

    def _apply_delta(self, event: ContentBlockDelta) -> None:
        block = self._blocks.get(event.index)
        if block is None:
            logger.warning(f"Delta for unknown content block index {event.index}, dropping")
            return

        if event.delta_type == "text_delta" and isinstance(block, TextBlock):
            block.text += event.text
        elif event.delta_type == "input_json_delta" and isinstance(block, ToolUseBlock):
            block.raw_input += event.text
        elif isinstance(block, OtherBlock):
            return
        elif event.delta_type in ("text_delta", "input_json_delta"):
            logger.warning(
                f"Delta type {event.delta_type} does not match block at index {event.index}, dropping"
            )

    def _stop_block(self, index: int) -> List[AccumulatorOutput]:
        block = self._blocks.pop(index, None)
        logger.debug(f"Content block stopped: index={index}")

        if block is None:
            logger.warning(f"Stop for unknown content block index {index}")
            return []

        if isinstance(block, TextBlock):
            if not block.text.strip():
                return []
            return [DisplayEvent(kind=DisplayKind.ASSISTANT_TEXT, lines=tuple(block.text.splitlines()))]

        if isinstance(block, ToolUseBlock):
            return self._finalize_tool(block)

        return []

    def _finalize_tool(self, block: ToolUseBlock) -> List[AccumulatorOutput]:
        raw = block.raw_input.strip()
        if not raw:
            # No input deltas streamed: use the input carried by the start payload
            tool_input = block.start_input if isinstance(block.start_input, dict) else {}
            return [
                FinalizedToolCall(
                    tool_id=block.tool_id,
                    tool_name=block.name,
                    summary=format_tool_summary(block.name, tool_input),
                    tool_input=tool_input,
                )
            ]

        try:
            tool_input = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            logger.warning(f"Failed to parse input for tool {block.name} (id={block.tool_id})")
            degraded = DisplayEvent(
                kind=DisplayKind.INPUT_PARSE_FAILED,
                lines=(f"{block.name} (input parsing failed)",),
                tool_id=block.tool_id,
            )
            call = FinalizedToolCall(
                tool_id=block.tool_id,
                tool_name=block.name,
                summary=format_raw_tool_summary(block.name, raw),
                input_ok=False,
            )
            return [degraded, call]

        return [
            FinalizedToolCall(
                tool_id=block.tool_id,
                tool_name=block.name,
                summary=format_tool_summary(block.name, tool_input),
                tool_input=tool_input,
            )
        ]
