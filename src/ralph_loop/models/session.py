"""Session state models."""

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


class SessionStatus(str, Enum):
    """Session controller status."""

    STOPPED = "stopped"
    RUNNING = "running"
    ERROR = "error"


class SessionState(BaseModel):
    """Mutable session state, owned by the SessionController.

    ``total_iterations`` < 0 means unbounded, 0 disables the loop.
    """

    status: SessionStatus = SessionStatus.STOPPED
    current_iteration: int = 0
    total_iterations: int = -1
    stop_requested: bool = False
    loop_count: int = 0


class PendingToolCall(BaseModel):
    """A finalized tool call waiting for its result."""

    model_config = ConfigDict(frozen=True)

    id: str
    tool_name: str
    summary: str
    order: int


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class TodoItem(BaseModel):
    """One entry of a TodoWrite tool call."""

    model_config = ConfigDict(frozen=True)

    content: str
    active_form: str
    status: TodoStatus


class SessionSnapshot(BaseModel):
    """Read-only copy of controller state taken between processing steps."""

    model_config = ConfigDict(frozen=True)

    status: SessionStatus
    current_iteration: int
    total_iterations: int
    stop_requested: bool
    loop_count: int
    active_spec: Optional[str] = None
    pending_calls: Tuple[PendingToolCall, ...] = ()
    todos: Tuple[TodoItem, ...] = ()
