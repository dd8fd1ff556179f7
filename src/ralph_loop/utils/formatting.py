"""Plain-text formatting for display events."""

import json
from typing import Any, Dict, List, Optional, Tuple

from ralph_loop.constants import BASH_COMMAND_MAX_LEN, RESULT_PREVIEW_LINES, TOOL_INPUT_MAX_LEN
from ralph_loop.models.events import ResultSummary
from ralph_loop.models.session import TodoItem, TodoStatus

# tool name -> (input key shown as the call's argument, max display length)
KEY_ARGUMENTS: Dict[str, Tuple[str, int]] = {
    "Bash": ("command", BASH_COMMAND_MAX_LEN),
    "Read": ("file_path", TOOL_INPUT_MAX_LEN),
    "Edit": ("file_path", TOOL_INPUT_MAX_LEN),
    "Write": ("file_path", TOOL_INPUT_MAX_LEN),
    "Grep": ("pattern", TOOL_INPUT_MAX_LEN),
    "Glob": ("pattern", TOOL_INPUT_MAX_LEN),
}

# Tools whose result content is a list of {"text": ...} parts
NESTED_TEXT_RESULT_TOOLS = {"Task"}

TODO_WRITE_TOOL = "TodoWrite"

USAGE_SEPARATOR = "─" * 35
MISSING_VALUE = "—"


def truncate_str(s: str, max_len: int) -> str:
    """Collapse newlines to spaces and cut to ``max_len`` chars, ending in "..."."""
    single_line = s.replace("\n", " ")
    if len(single_line) <= max_len:
        return single_line
    return single_line[: max(max_len - 3, 0)] + "..."


def extract_key_argument(tool_name: str, tool_input: Any) -> Optional[str]:
    """Return the display argument for a known tool, or None."""
    entry = KEY_ARGUMENTS.get(tool_name)
    if entry is None or not isinstance(tool_input, dict):
        return None
    key, max_len = entry
    value = tool_input.get(key)
    if not isinstance(value, str):
        return None
    return truncate_str(value, max_len)


def format_tool_summary(tool_name: str, tool_input: Any) -> str:
    """Format a tool call like ``Bash(git status)``; unknown tools give the name only."""
    key_arg = extract_key_argument(tool_name, tool_input)
    if key_arg is None:
        return tool_name
    return f"{tool_name}({key_arg})"


def format_raw_tool_summary(tool_name: str, raw_input: str) -> str:
    """Fallback summary when the accumulated input is not valid JSON."""
    raw = raw_input.strip()
    if not raw:
        return tool_name
    return f"{tool_name}({truncate_str(raw, TOOL_INPUT_MAX_LEN)})"


def _raw_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


def extract_result_text(tool_name: Optional[str], content: Any) -> str:
    """Extract display text from tool result content.

    Strings pass through. For Task results, a list of ``{"text": ...}``
    parts is joined in order; anything else is shown as raw JSON.
    """
    if isinstance(content, str):
        return content
    if content is None:
        return ""
    if tool_name in NESTED_TEXT_RESULT_TOOLS and isinstance(content, list):
        parts = []
        for item in content:
            if not isinstance(item, dict) or not isinstance(item.get("text"), str):
                return _raw_content(content)
            parts.append(item["text"])
        return "\n".join(parts)
    return _raw_content(content)


def summarize_result(text: str) -> List[str]:
    """Return ``(N lines, M chars)`` followed by an indented preview."""
    if not text:
        return ["(empty)"]

    content_lines = text.splitlines()
    line_count = len(content_lines)
    lines = [f"({line_count} lines, {len(text)} chars)"]
    for line in content_lines[:RESULT_PREVIEW_LINES]:
        lines.append(f"  {line}")

    remaining = line_count - RESULT_PREVIEW_LINES
    if remaining > 0:
        lines.append(f"  ({remaining} more lines)")
    return lines


def format_usage_summary(result: ResultSummary, exchange_num: int, exchange_type: str) -> List[str]:
    """Format a ``result`` event as a boxed usage summary.

    Example::

        ───────────────────────────────────
        Exchange 1 (initial prompt): 7371 in / 892 out
        Cost: $0.05 | Duration: 2.3s
        ───────────────────────────────────
    """
    if result.usage is not None:
        tokens_in = result.usage.input_tokens
        tokens_out = result.usage.output_tokens
        tokens = (
            f"{tokens_in if tokens_in is not None else MISSING_VALUE} in / "
            f"{tokens_out if tokens_out is not None else MISSING_VALUE} out"
        )
    else:
        tokens = f"{MISSING_VALUE} in / {MISSING_VALUE} out"

    lines = [USAGE_SEPARATOR, f"Exchange {exchange_num} ({exchange_type}): {tokens}"]

    parts = []
    if result.total_cost_usd is not None:
        parts.append(f"Cost: ${result.total_cost_usd:.2f}")
    if result.duration_ms is not None:
        parts.append(f"Duration: {result.duration_ms / 1000.0:.1f}s")
    if parts:
        lines.append(" | ".join(parts))

    lines.append(USAGE_SEPARATOR)
    return lines


def parse_todos(tool_input: Any) -> List[TodoItem]:
    """Parse the ``todos`` list of a TodoWrite call; malformed entries are skipped."""
    if not isinstance(tool_input, dict) or not isinstance(tool_input.get("todos"), list):
        return []

    items = []
    for todo in tool_input["todos"]:
        if not isinstance(todo, dict):
            continue
        content = todo.get("content") if isinstance(todo.get("content"), str) else ""
        active_form = todo.get("activeForm") if isinstance(todo.get("activeForm"), str) else content
        try:
            status = TodoStatus(todo.get("status"))
        except ValueError:
            status = TodoStatus.UNKNOWN
        if not content and active_form:
            content = active_form
        items.append(TodoItem(content=content, active_form=active_form, status=status))
    return items
