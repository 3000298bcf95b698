"""Agent configuration."""

from pydantic import BaseModel, Field


class AgentConfig(BaseModel):
    """Configuration for the agent control loop."""

    step_delay_seconds: float = Field(ge=0, default=1.5)
    history_window: int = Field(ge=0, default=10)
    max_commands: int = Field(ge=1, default=50)
    default_credits: int = Field(ge=1, default=10)
