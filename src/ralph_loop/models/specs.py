"""Specs status table models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SpecStatus(str, Enum):
    """Status label of a row in the specs status table."""

    READY = "Ready"
    IN_PROGRESS = "In Progress"
    DONE = "Done"
    BLOCKED = "Blocked"

    @classmethod
    def from_label(cls, label: str) -> Optional["SpecStatus"]:
        """Parse a status cell; case sensitive, surrounding whitespace ignored."""
        label = label.strip()
        if label == "InProgress":
            return cls.IN_PROGRESS
        try:
            return cls(label)
        except ValueError:
            return None


class SpecsRemaining(str, Enum):
    YES = "yes"
    NO = "no"
    MISSING = "missing"


class ParsedSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    status: SpecStatus


class SpecsVerdict(BaseModel):
    """Result of one status table poll. Never cached."""

    model_config = ConfigDict(frozen=True)

    remaining: SpecsRemaining
    active_name: Optional[str] = None
    error: Optional[str] = None
