"""Session State — what the agent control loop reads and mutates."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from scene_agent.models.commands import Command
from scene_agent.models.execution import ErrorKind


class ThoughtStatus(str, Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERROR = "error"


# Statuses only ever move to a higher rank
THOUGHT_STATUS_RANK = {
    ThoughtStatus.PENDING: 0,
    ThoughtStatus.EXECUTING: 1,
    ThoughtStatus.COMPLETED: 2,
    ThoughtStatus.ERROR: 2,
}


class ThoughtEntry(BaseModel):
    """One loop iteration: the model's reasoning and the command it proposed."""

    id: str
    thought: str
    command: Command
    timestamp: datetime
    status: ThoughtStatus = ThoughtStatus.PENDING
    error: Optional[str] = None


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class StopReason(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERROR = "error"


class SessionState(BaseModel):
    is_running: bool = False
    is_paused: bool = False
    goal: str = ""
    thoughts: List[ThoughtEntry] = []
    command_history: List[Command] = []
    speed: float = Field(ge=0, default=1.5)     # Seconds between commands
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    credits: int = Field(ge=0, default=10)
    max_credits: int = Field(ge=1, default=10)
    credits_requested: bool = False             # Set when the loop was blocked on credits
