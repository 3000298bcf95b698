"""
Session Store — owns the running/paused flags, goal, credits and history.

Constructed once per session with an injected credit store and passed by
reference to the agent control loop.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from scene_agent.models.commands import COMPLETE_ACTION, Command
from scene_agent.models.execution import ErrorKind
from scene_agent.models.session import (
    THOUGHT_STATUS_RANK,
    SessionState,
    ThoughtEntry,
    ThoughtStatus,
)
from scene_agent.session.credits import DEFAULT_CREDITS, CreditStore, InMemoryCreditStore

logger = logging.getLogger(__name__)

INTERVENTION_PREFIX = "\n\nAdditional instruction: "


class SessionStore:
    """In-memory session state with persisted credits."""

    def __init__(
        self,
        credit_store: Optional[CreditStore] = None,
        max_credits: int = DEFAULT_CREDITS,
    ):
        self.credit_store = credit_store or InMemoryCreditStore(max_credits)
        self._state = SessionState(credits=max_credits, max_credits=max_credits)
        self.init_credits()

    @property
    def state(self) -> SessionState:
        return self._state

    # --- Read-only views ---

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def goal(self) -> str:
        return self._state.goal

    @property
    def speed(self) -> float:
        return self._state.speed

    @property
    def credits(self) -> int:
        return self._state.credits

    @property
    def thoughts(self) -> List[ThoughtEntry]:
        return self._state.thoughts

    @property
    def command_history(self) -> List[Command]:
        return self._state.command_history

    @property
    def latest_thought(self) -> Optional[ThoughtEntry]:
        return self._state.thoughts[-1] if self._state.thoughts else None

    @property
    def completed_commands(self) -> int:
        return sum(
            1 for t in self._state.thoughts if t.status == ThoughtStatus.COMPLETED
        )

    @property
    def is_complete(self) -> bool:
        latest = self.latest_thought
        return latest is not None and latest.command.action == COMPLETE_ACTION

    @property
    def has_credits(self) -> bool:
        return self._state.credits > 0

    @property
    def credit_percentage(self) -> int:
        return round(self._state.credits / self._state.max_credits * 100)

    def recent_history(self, limit: int) -> List[Command]:
        """Trailing slice of successfully applied commands."""
        if limit <= 0:
            return []
        return list(self._state.command_history[-limit:])

    def snapshot(self) -> dict:
        """Serializable view of the whole session, including derived values."""
        data = self._state.model_dump(mode="json")
        data["completed_commands"] = self.completed_commands
        data["credit_percentage"] = self.credit_percentage
        data["is_complete"] = self.is_complete
        return data

    # --- Lifecycle ---

    def set_goal(self, goal: str) -> None:
        self._state.goal = goal

    def append_to_goal(self, instruction: str) -> None:
        """Fold a user intervention into the active goal."""
        self._state.goal = f"{self._state.goal}{INTERVENTION_PREFIX}{instruction}"

    def start(self) -> None:
        self._state.is_running = True
        self._state.is_paused = False
        self._state.error = None
        self._state.error_kind = None

    def pause(self) -> None:
        self._state.is_paused = True

    def resume(self) -> None:
        self._state.is_paused = False

    def stop(self) -> None:
        self._state.is_running = False
        self._state.is_paused = False

    def set_speed(self, speed: float) -> None:
        if speed < 0:
            raise ValueError("speed must be non-negative")
        self._state.speed = speed

    def set_error(self, error: Optional[str], kind: Optional[ErrorKind] = None) -> None:
        """Record a session-level error; any error also stops the session."""
        self._state.error = error
        self._state.error_kind = kind if error else None
        if error:
            self._state.is_running = False
            logger.warning("Session error (%s): %s", kind.value if kind else "-", error)

    def reset(self) -> None:
        """Clear everything but the credit balance and speed."""
        self._state.is_running = False
        self._state.is_paused = False
        self._state.goal = ""
        self._state.thoughts = []
        self._state.command_history = []
        self._state.error = None
        self._state.error_kind = None
        self._state.credits_requested = False

    # --- History ---

    def add_thought(self, thought: str, command: Command) -> str:
        entry = ThoughtEntry(
            id=f"thought_{uuid4().hex[:12]}",
            thought=thought,
            command=command,
            timestamp=datetime.utcnow(),
        )
        self._state.thoughts.append(entry)
        return entry.id

    def update_thought_status(
        self,
        thought_id: str,
        status: ThoughtStatus,
        error: Optional[str] = None,
    ) -> None:
        """Advance a thought's status. Status never moves backwards."""
        thought = next((t for t in self._state.thoughts if t.id == thought_id), None)
        if thought is None:
            return
        if THOUGHT_STATUS_RANK[status] <= THOUGHT_STATUS_RANK[thought.status]:
            raise ValueError(
                f"Illegal thought transition {thought.status.value} -> {status.value}"
            )
        thought.status = status
        if error:
            thought.error = error

    def add_command(self, command: Command) -> None:
        self._state.command_history.append(command)

    # --- Credits ---

    def use_credit(self) -> bool:
        if self._state.credits > 0:
            self._state.credits -= 1
            self.credit_store.save(self._state.credits)
            return True
        return False

    def reset_credits(self) -> None:
        self._state.credits = self._state.max_credits
        self.credit_store.save(self._state.credits)
        self._state.credits_requested = False

    def init_credits(self) -> None:
        credits = self.credit_store.load()
        self._state.credits = max(0, credits)

    def request_credits(self) -> None:
        """Flag that the user needs to top up before the loop can continue."""
        self._state.credits_requested = True

    def dismiss_credit_request(self) -> None:
        self._state.credits_requested = False
