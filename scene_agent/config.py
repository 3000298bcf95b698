"""
Runtime settings, read from the environment.

A ``.env`` file in the working directory is loaded first (without
overriding variables that are already set).
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from scene_agent.models.config import AgentConfig

DEFAULT_MODEL = "gpt-4o-mini"


class ProposerSettings(BaseModel):
    """Connection settings for the OpenAI-compatible proposal endpoint."""

    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    base_url: Optional[str] = None
    max_tokens: int = Field(ge=1, default=1024)
    temperature: float = Field(ge=0, le=2, default=0.7)
    timeout_seconds: float = Field(gt=0, default=60.0)


class Settings(BaseModel):
    proposer: ProposerSettings = ProposerSettings()
    agent: AgentConfig = AgentConfig()
    credits_db_path: str = ":memory:"


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build settings from ``SCENE_AGENT_*`` environment variables."""
    load_dotenv(dotenv_path=env_file or Path.cwd() / ".env", override=False)

    proposer = ProposerSettings(
        api_key=os.getenv("SCENE_AGENT_API_KEY") or os.getenv("OPENAI_API_KEY"),
        model=os.getenv("SCENE_AGENT_MODEL", DEFAULT_MODEL),
        base_url=os.getenv("SCENE_AGENT_BASE_URL") or None,
        max_tokens=int(os.getenv("SCENE_AGENT_MAX_TOKENS", "1024")),
    )

    agent_kwargs = {}
    step_delay = os.getenv("SCENE_AGENT_STEP_DELAY")
    if step_delay:
        agent_kwargs["step_delay_seconds"] = float(step_delay)
    default_credits = os.getenv("SCENE_AGENT_DEFAULT_CREDITS")
    if default_credits:
        agent_kwargs["default_credits"] = int(default_credits)

    return Settings(
        proposer=proposer,
        agent=AgentConfig(**agent_kwargs),
        credits_db_path=os.getenv("SCENE_AGENT_CREDITS_DB", ":memory:"),
    )
