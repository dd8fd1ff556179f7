"""Event parser for Claude CLI ``stream-json`` output.

Translates one NDJSON line into an Event. Inner streaming events arrive
wrapped as ``{"type": "stream_event", "event": {...}}``; bare inner events
at top level are accepted as well.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional, Union

from ralph_loop.constants import PARSE_FAILURE_SNIPPET_LEN
from ralph_loop.models.events import (
    AssistantMessage,
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    Event,
    MessageDelta,
    MessageStart,
    MessageStop,
    ParseFailure,
    Ping,
    ResultSummary,
    SystemInit,
    ToolResult,
    Unknown,
    Usage,
    UserMessage,
)

logger = logging.getLogger(__name__)

STREAM_EVENT_TAG = "stream_event"


class _MissingField(Exception):
    pass


class _InvalidField(Exception):
    pass


def _snippet(line: str) -> str:
    if len(line) <= PARSE_FAILURE_SNIPPET_LEN:
        return line
    return line[:PARSE_FAILURE_SNIPPET_LEN] + "..."


def _require(obj: dict, key: str) -> Any:
    if key not in obj or obj[key] is None:
        raise _MissingField(key)
    return obj[key]


def _require_str(obj: dict, key: str) -> str:
    value = _require(obj, key)
    if not isinstance(value, str):
        raise _InvalidField(key)
    return value


def _optional_str(obj: dict, key: str) -> Optional[str]:
    """Absent, null and empty values read as None; any other non-string is invalid."""
    value = obj.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise _InvalidField(key)
    return value


def _require_index(obj: dict) -> int:
    index = _require(obj, "index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise _MissingField("index")
    return index


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _opt_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _parse_usage(value: Any) -> Optional[Usage]:
    if not isinstance(value, dict):
        return None
    return Usage(
        input_tokens=_opt_int(value.get("input_tokens")),
        output_tokens=_opt_int(value.get("output_tokens")),
    )


# -- Inner streaming events ---------------------------------------------------


def _parse_message_start(obj: dict) -> Event:
    message = _as_dict(obj.get("message"))
    return MessageStart(message_id=message.get("id"), role=message.get("role"))


def _parse_content_block_start(obj: dict) -> Event:
    index = _require_index(obj)
    block = _require(obj, "content_block")
    if not isinstance(block, dict):
        raise _MissingField("content_block")
    block_type = _require_str(block, "type")
    if block_type == "tool_use":
        return ContentBlockStart(
            index=index,
            block_type=block_type,
            tool_id=_optional_str(block, "id"),
            tool_name=_require_str(block, "name"),
            tool_input=block.get("input"),
        )
    return ContentBlockStart(index=index, block_type=block_type, text=_optional_str(block, "text") or "")


def _parse_content_block_delta(obj: dict) -> Event:
    index = _require_index(obj)
    delta = _require(obj, "delta")
    if not isinstance(delta, dict):
        raise _MissingField("delta")
    delta_type = _require_str(delta, "type")
    if delta_type == "text_delta":
        text = _require_str(delta, "text")
    elif delta_type == "input_json_delta":
        text = _require_str(delta, "partial_json")
    else:
        # thinking_delta, signature_delta, ...
        text = ""
    return ContentBlockDelta(index=index, delta_type=delta_type, text=text)


def _parse_content_block_stop(obj: dict) -> Event:
    return ContentBlockStop(index=_require_index(obj))


def _parse_message_delta(obj: dict) -> Event:
    delta = _as_dict(obj.get("delta"))
    return MessageDelta(stop_reason=delta.get("stop_reason"), usage=_parse_usage(obj.get("usage")))


def _parse_message_stop(obj: dict) -> Event:
    return MessageStop()


# -- CLI wrapper events -------------------------------------------------------


def _parse_system(obj: dict) -> Event:
    return SystemInit(subtype=obj.get("subtype"), session_id=obj.get("session_id"))


def _parse_assistant(obj: dict) -> Event:
    message = _as_dict(obj.get("message"))
    return AssistantMessage(message_id=message.get("id"))


def _parse_user(obj: dict) -> Event:
    """Collect tool results from a user turn; other content is skipped."""
    message = _as_dict(obj.get("message"))
    content = message.get("content")
    results = []
    if isinstance(content, list):
        for item in content:
            if not isinstance(item, dict) or item.get("type") != "tool_result":
                continue
            results.append(
                ToolResult(
                    tool_use_id=_optional_str(item, "tool_use_id"),
                    content=item.get("content", ""),
                    is_error=bool(item.get("is_error", False)),
                )
            )
    return UserMessage(tool_results=tuple(results))


def _parse_result(obj: dict) -> Event:
    cost = obj.get("total_cost_usd")
    return ResultSummary(
        subtype=obj.get("subtype"),
        is_error=bool(obj.get("is_error", False)),
        total_cost_usd=float(cost) if isinstance(cost, (int, float)) and not isinstance(cost, bool) else None,
        duration_ms=_opt_int(obj.get("duration_ms")),
        num_turns=_opt_int(obj.get("num_turns")),
        usage=_parse_usage(obj.get("usage")),
    )


def _parse_ping(obj: dict) -> Event:
    return Ping()


_INNER_PARSERS: Dict[str, Callable[[dict], Event]] = {
    "message_start": _parse_message_start,
    "content_block_start": _parse_content_block_start,
    "content_block_delta": _parse_content_block_delta,
    "content_block_stop": _parse_content_block_stop,
    "message_delta": _parse_message_delta,
    "message_stop": _parse_message_stop,
}

_TOP_LEVEL_PARSERS: Dict[str, Callable[[dict], Event]] = {
    "system": _parse_system,
    "assistant": _parse_assistant,
    "user": _parse_user,
    "result": _parse_result,
    "ping": _parse_ping,
    **_INNER_PARSERS,
}


def _dispatch(obj: dict, parsers: Dict[str, Callable[[dict], Event]]) -> Event:
    tag = obj.get("type")
    if not isinstance(tag, str):
        raise _MissingField("type")
    parser = parsers.get(tag)
    if parser is None:
        logger.warning(f"Unknown event type '{tag}', skipping")
        return Unknown(tag=tag)
    return parser(obj)


def parse_line(line: str) -> Union[Event, ParseFailure]:
    """Parse one NDJSON line.

    Never raises: undecodable JSON or a missing or mistyped required field
    yields a ParseFailure carrying a truncated snippet of the line.
    """
    try:
        obj = json.loads(line)
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Malformed JSON line, skipping: {e}")
        return ParseFailure(reason="malformed JSON", snippet=_snippet(line))

    if not isinstance(obj, dict):
        logger.warning("JSON line is not an object, skipping")
        return ParseFailure(reason="expected a JSON object", snippet=_snippet(line))

    try:
        if obj.get("type") == STREAM_EVENT_TAG:
            inner = obj.get("event")
            if not isinstance(inner, dict):
                raise _MissingField("event")
            return _dispatch(inner, _INNER_PARSERS)
        return _dispatch(obj, _TOP_LEVEL_PARSERS)
    except _MissingField as e:
        logger.warning(f"Event is missing field '{e}', skipping")
        return ParseFailure(reason=f"missing field '{e}'", snippet=_snippet(line))
    except _InvalidField as e:
        logger.warning(f"Event has invalid field '{e}', skipping")
        return ParseFailure(reason=f"invalid field '{e}'", snippet=_snippet(line))
