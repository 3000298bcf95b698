"""
Proposer — the external model that looks at the scene and picks one command.

The control loop only depends on the ``Proposer`` protocol. ``LLMProposer``
is the production backend: any OpenAI-compatible chat completion endpoint.
"""

import json
import logging
from typing import List, Optional, Protocol

from openai import AsyncOpenAI
from pydantic import ValidationError

from scene_agent.agent.errors import MalformedProposal, SceneAgentError
from scene_agent.agent.prompts import HISTORY_WINDOW, build_agent_prompt, get_system_prompt
from scene_agent.config import ProposerSettings
from scene_agent.models.commands import Command
from scene_agent.models.proposal import AgentResponse

logger = logging.getLogger(__name__)


class ProposerConfigError(SceneAgentError):
    """Raised when the proposer cannot be used as configured."""
    pass


class Proposer(Protocol):
    """Protocol for command proposal — pluggable backend."""

    async def propose(
        self,
        observation: str,
        goal: str,
        history: List[Command],
    ) -> AgentResponse: ...


def _strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code block, if present."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_agent_response(text: Optional[str]) -> AgentResponse:
    """
    Parse the model's raw reply into an AgentResponse.

    Raises MalformedProposal when the reply is empty, not JSON, or missing
    ``thought`` / ``command.action``.
    """
    if not text or not text.strip():
        raise MalformedProposal("Empty response from model")

    try:
        data = json.loads(_strip_code_fences(text))
    except json.JSONDecodeError as e:
        logger.error("Failed to parse model response: %s", text[:200])
        raise MalformedProposal(f"Invalid JSON response from model: {e}") from e

    if not isinstance(data, dict):
        raise MalformedProposal("Invalid response structure from model")
    command = data.get("command")
    if (
        not data.get("thought")
        or not isinstance(command, dict)
        or not command.get("action")
    ):
        raise MalformedProposal("Invalid response structure from model")
    if command.get("params") is None:
        command["params"] = {}

    try:
        return AgentResponse.model_validate(data)
    except ValidationError as e:
        raise MalformedProposal(f"Invalid response structure from model: {e}") from e


class LLMProposer:
    """
    Proposes commands with an OpenAI-compatible chat completion endpoint.
    The HTTP client is created lazily so construction never needs a key.
    """

    def __init__(
        self,
        settings: Optional[ProposerSettings] = None,
        client: Optional[AsyncOpenAI] = None,
        history_window: int = HISTORY_WINDOW,
    ):
        self.settings = settings or ProposerSettings()
        self.history_window = history_window
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.api_key:
                raise ProposerConfigError("Proposer API key not configured")
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout_seconds,
            )
        return self._client

    async def propose(
        self,
        observation: str,
        goal: str,
        history: List[Command],
    ) -> AgentResponse:
        client = self._get_client()
        user_prompt = build_agent_prompt(
            observation, goal, history, limit=self.history_window
        )

        response = await client.chat.completions.create(
            model=self.settings.model,
            messages=[
                {"role": "system", "content": get_system_prompt()},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
        )

        if not response.choices:
            raise MalformedProposal("No choices in model response")
        content = response.choices[0].message.content
        proposal = parse_agent_response(content)
        logger.debug("Proposed %s: %s", proposal.command.action, proposal.thought)
        return proposal
