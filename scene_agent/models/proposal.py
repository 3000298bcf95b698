"""Proposal — the exchange with the external command-proposing model."""

from typing import List

from pydantic import BaseModel, Field

from scene_agent.models.commands import Command


class ProposalRequest(BaseModel):
    """Wire shape of a proposal request (camelCase field kept for clients)."""

    sceneState: str = ""
    goal: str = ""
    history: List[Command] = []


class AgentResponse(BaseModel):
    """One step's reasoning plus exactly one command."""

    thought: str = Field(min_length=1)
    command: Command
