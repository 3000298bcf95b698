"""Command Result — outcome of applying one command to the scene store."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from scene_agent.models.scene import EntitySummary


class ErrorKind(str, Enum):
    BLOCKED_START = "blocked_start"
    UNKNOWN_COMMAND = "unknown_command"
    INVALID_COMMAND = "invalid_command"
    TARGET_NOT_FOUND = "target_not_found"
    MALFORMED_PROPOSAL = "malformed_proposal"
    TRANSPORT_ABORTED = "transport_aborted"
    CREDITS_EXHAUSTED = "credits_exhausted"
    SAFETY_LIMIT_REACHED = "safety_limit_reached"
    UNEXPECTED_FAILURE = "unexpected_failure"


class CommandResult(BaseModel):
    """Structured outcome of a single command execution."""

    action: str
    success: bool
    entity: Optional[EntitySummary] = None   # Set for creation commands
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    duration: float = 0.0
