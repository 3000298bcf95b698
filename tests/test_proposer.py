"""Tests for the proposer, response parsing and prompt building."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from scene_agent.agent.errors import MalformedProposal
from scene_agent.agent.prompts import build_agent_prompt, format_history
from scene_agent.agent.proposer import LLMProposer, ProposerConfigError, parse_agent_response
from scene_agent.config import ProposerSettings, load_settings
from scene_agent.models.commands import Command


def _completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _make_client(content) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_completion(content))
    return client


VALID = json.dumps({
    "thought": "Lay down the ground first.",
    "command": {"action": "createPlane", "params": {"color": "#3a5f0b"}},
})


class TestParseAgentResponse:
    def test_plain_json(self):
        response = parse_agent_response(VALID)
        assert response.thought == "Lay down the ground first."
        assert response.command.action == "createPlane"
        assert response.command.params == {"color": "#3a5f0b"}

    def test_fenced_json(self):
        response = parse_agent_response(f"```json\n{VALID}\n```")
        assert response.command.action == "createPlane"

    def test_bare_fence(self):
        response = parse_agent_response(f"```\n{VALID}\n```")
        assert response.command.action == "createPlane"

    def test_missing_params_become_empty(self):
        text = json.dumps({"thought": "done", "command": {"action": "complete"}})
        assert parse_agent_response(text).command.params == {}

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        None,
        "I think we should add a tree",
        "[1, 2, 3]",
        json.dumps({"command": {"action": "createBox"}}),
        json.dumps({"thought": "", "command": {"action": "createBox"}}),
        json.dumps({"thought": "hm", "command": {"params": {}}}),
        json.dumps({"thought": "hm", "command": "createBox"}),
    ])
    def test_malformed(self, text):
        with pytest.raises(MalformedProposal):
            parse_agent_response(text)


class TestPrompts:
    def test_empty_history(self):
        assert format_history([]) == "No commands executed yet."

    def test_history_is_trailing_window(self):
        history = [Command(action="createBox", params={"name": str(i)}) for i in range(15)]
        lines = format_history(history, limit=10).splitlines()
        assert len(lines) == 10
        assert lines[0] == '1. createBox({"name": "5"})'
        assert lines[-1] == '10. createBox({"name": "14"})'

    def test_prompt_sections(self):
        prompt = build_agent_prompt("=== CURRENT SCENE ===", "A castle", [])
        assert '## USER GOAL\n"A castle"' in prompt
        assert "## SCENE STATE\n=== CURRENT SCENE ===" in prompt
        assert "## RECENT COMMAND HISTORY (last 10)" in prompt
        assert "No commands executed yet." in prompt


class TestLLMProposer:
    def test_propose_uses_chat_completions(self):
        client = _make_client(VALID)
        proposer = LLMProposer(ProposerSettings(model="test-model"), client=client)

        response = asyncio.run(proposer.propose("scene text", "A farm", []))

        assert response.command.action == "createPlane"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"][0]["role"] == "system"
        assert "A farm" in kwargs["messages"][1]["content"]
        assert "scene text" in kwargs["messages"][1]["content"]

    def test_malformed_reply(self):
        proposer = LLMProposer(client=_make_client("not json"))
        with pytest.raises(MalformedProposal):
            asyncio.run(proposer.propose("scene", "goal", []))

    def test_no_choices(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[]))
        proposer = LLMProposer(client=client)
        with pytest.raises(MalformedProposal):
            asyncio.run(proposer.propose("scene", "goal", []))

    def test_missing_api_key(self):
        proposer = LLMProposer(ProposerSettings(api_key=None))
        with pytest.raises(ProposerConfigError):
            asyncio.run(proposer.propose("scene", "goal", []))


class TestLoadSettings:
    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCENE_AGENT_API_KEY", "sk-test")
        monkeypatch.setenv("SCENE_AGENT_MODEL", "local-model")
        monkeypatch.setenv("SCENE_AGENT_STEP_DELAY", "0.25")
        monkeypatch.setenv("SCENE_AGENT_CREDITS_DB", str(tmp_path / "credits.db"))

        settings = load_settings(env_file=tmp_path / "missing.env")

        assert settings.proposer.api_key == "sk-test"
        assert settings.proposer.model == "local-model"
        assert settings.agent.step_delay_seconds == 0.25
        assert settings.credits_db_path.endswith("credits.db")

    def test_falls_back_to_openai_key(self, monkeypatch, tmp_path):
        monkeypatch.delenv("SCENE_AGENT_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        settings = load_settings(env_file=tmp_path / "missing.env")
        assert settings.proposer.api_key == "sk-openai"
