"""Tests for the Agent Control Loop."""

import asyncio
from typing import Callable, List, Optional

import pytest

from scene_agent.agent.errors import (
    BlockedStart,
    InsufficientCredits,
    MalformedProposal,
    STEP_LEVEL_KINDS,
    SceneNotInitialized,
)
from scene_agent.agent.loop import AgentLoop
from scene_agent.models.commands import Command, CreateBox
from scene_agent.models.config import AgentConfig
from scene_agent.models.execution import ErrorKind
from scene_agent.models.proposal import AgentResponse
from scene_agent.models.session import LoopState, StopReason, ThoughtStatus
from scene_agent.scene.store import SceneStore
from scene_agent.session.credits import InMemoryCreditStore
from scene_agent.session.store import SessionStore


def _response(action: str, thought: str = "next step", **params) -> AgentResponse:
    return AgentResponse(thought=thought, command=Command(action=action, params=params))


class ProposalCall:
    def __init__(self, observation: str, goal: str, history: List[Command]):
        self.observation = observation
        self.goal = goal
        self.history = list(history)


class ScriptedProposer:
    """Replays a fixed script; ``complete`` once the script runs out."""

    def __init__(self, script=None, on_call: Optional[Callable[[int], None]] = None):
        self.script = list(script or [])
        self.on_call = on_call
        self.calls: List[ProposalCall] = []

    async def propose(self, observation, goal, history):
        self.calls.append(ProposalCall(observation, goal, history))
        if self.on_call is not None:
            self.on_call(len(self.calls))
        if not self.script:
            return _response("complete", thought="done", summary="finished")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class RepeatingProposer(ScriptedProposer):
    """Proposes the same command forever."""

    def __init__(self, response: AgentResponse):
        super().__init__()
        self.response = response

    async def propose(self, observation, goal, history):
        self.calls.append(ProposalCall(observation, goal, history))
        return self.response


class HangingProposer(ScriptedProposer):
    """Never answers until cancelled."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.cancelled = False

    async def propose(self, observation, goal, history):
        self.calls.append(ProposalCall(observation, goal, history))
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class HangOnceProposer(HangingProposer):
    """Hangs on the first call, then replays the script."""

    def __init__(self, script):
        super().__init__()
        self.script = list(script)

    async def propose(self, observation, goal, history):
        if not self.started.is_set():
            return await super().propose(observation, goal, history)
        return await ScriptedProposer.propose(self, observation, goal, history)


def _make_loop(proposer, credits: int = 10, scene: Optional[SceneStore] = None, **config):
    if scene is None:
        scene = SceneStore()
        scene.initialize()
    session = SessionStore(credit_store=InMemoryCreditStore(credits), max_credits=credits)
    config.setdefault("step_delay_seconds", 0)
    loop = AgentLoop(scene, session, proposer, config=AgentConfig(**config))
    return loop, scene, session


async def _settle(ticks: int = 50) -> None:
    for _ in range(ticks):
        await asyncio.sleep(0)


class TestPreconditions:
    def test_no_credits_blocks_start(self):
        proposer = ScriptedProposer()
        loop, _, session = _make_loop(proposer, credits=0)

        with pytest.raises(InsufficientCredits):
            asyncio.run(loop.run())

        assert proposer.calls == []
        assert session.state.credits_requested is True
        assert session.is_running is False
        assert loop.state == LoopState.IDLE

    def test_uninitialized_scene_blocks_start(self):
        proposer = ScriptedProposer()
        loop, _, session = _make_loop(proposer, scene=SceneStore())

        with pytest.raises(SceneNotInitialized):
            asyncio.run(loop.run())

        assert proposer.calls == []
        assert session.state.error_kind == ErrorKind.BLOCKED_START

    def test_cannot_start_twice(self):
        proposer = HangingProposer()
        loop, _, _ = _make_loop(proposer)

        async def scenario():
            task = asyncio.create_task(loop.run())
            await proposer.started.wait()
            with pytest.raises(BlockedStart):
                await loop.start_building("another goal")
            loop.stop()
            await task

        asyncio.run(scenario())
        assert len(proposer.calls) == 1


class TestCompletion:
    def test_complete_stops_without_mutation(self):
        proposer = ScriptedProposer([_response("complete", summary="nothing to do")])
        loop, scene, session = _make_loop(proposer)
        before = len(list(scene.traverse_entities()))

        state = asyncio.run(loop.run())

        assert loop.state == LoopState.STOPPED
        assert loop.stop_reason == StopReason.COMPLETED
        assert state.is_running is False
        assert state.error is None
        assert len(state.thoughts) == 1
        assert state.thoughts[0].status == ThoughtStatus.COMPLETED
        assert state.credits == 10
        assert state.command_history == []
        assert len(list(scene.traverse_entities())) == before

    def test_successful_commands_spend_credits(self):
        proposer = ScriptedProposer([
            _response("createBox", name="Base"),
            _response("addPointLight"),
        ])
        loop, scene, session = _make_loop(proposer)

        asyncio.run(loop.run())

        assert loop.stop_reason == StopReason.COMPLETED
        assert [c.action for c in session.command_history] == ["createBox", "addPointLight"]
        assert session.credits == 8
        assert len(scene.get_agent_entities()) == 2
        assert [t.status for t in session.thoughts] == [ThoughtStatus.COMPLETED] * 3

    def test_observation_reflects_previous_step(self):
        proposer = ScriptedProposer([_response("createBox", name="Tower")])
        loop, _, _ = _make_loop(proposer)

        asyncio.run(loop.run())

        assert "Scene is empty" in proposer.calls[0].observation
        assert '"Tower" [box]' in proposer.calls[1].observation

    def test_start_building_resets_session_and_scene(self):
        proposer = ScriptedProposer([_response("createBox")])
        loop, scene, session = _make_loop(proposer)
        asyncio.run(loop.start_building("first"))
        assert len(scene.get_agent_entities()) == 1

        proposer.script = []
        asyncio.run(loop.start_building("second"))

        assert scene.get_agent_entities() == []
        assert session.goal == "second"
        assert session.command_history == []
        assert len(session.thoughts) == 1
        assert session.credits == 9


class TestStepFailures:
    def test_unknown_target_is_step_level(self):
        proposer = ScriptedProposer([
            _response("moveObject", objectId="obj_missing", position={"x": 1, "y": 1, "z": 1}),
        ])
        loop, _, session = _make_loop(proposer)

        state = asyncio.run(loop.run())

        assert loop.stop_reason == StopReason.COMPLETED
        assert state.thoughts[0].status == ThoughtStatus.ERROR
        assert state.thoughts[0].error
        assert state.credits == 10
        assert state.command_history == []
        assert state.error is None
        assert loop.results[0].error_kind == ErrorKind.TARGET_NOT_FOUND

    def test_unknown_action_is_step_level(self):
        proposer = ScriptedProposer([_response("launchRocket")])
        loop, _, session = _make_loop(proposer)

        asyncio.run(loop.run())

        assert session.thoughts[0].status == ThoughtStatus.ERROR
        assert loop.results[0].error_kind in STEP_LEVEL_KINDS
        assert len(proposer.calls) == 2


class TestTerminalFailures:
    def test_malformed_proposal_stops_with_error(self):
        proposer = ScriptedProposer([MalformedProposal("Invalid JSON response from model")])
        loop, _, session = _make_loop(proposer)

        state = asyncio.run(loop.run())

        assert loop.stop_reason == StopReason.ERROR
        assert state.error_kind == ErrorKind.MALFORMED_PROPOSAL
        assert "Invalid JSON" in state.error
        assert state.thoughts == []

    def test_unexpected_exception(self):
        proposer = ScriptedProposer([RuntimeError("socket closed")])
        loop, _, _ = _make_loop(proposer)

        state = asyncio.run(loop.run())

        assert loop.stop_reason == StopReason.ERROR
        assert state.error_kind == ErrorKind.UNEXPECTED_FAILURE
        assert "socket closed" in state.error

    def test_executor_crash_stops_loop(self):
        proposer = ScriptedProposer([_response("createBox"), _response("createBox")])
        loop, _, session = _make_loop(proposer)

        def boom(store, cmd):
            raise RuntimeError("renderer unavailable")

        loop.executor._handlers[CreateBox] = boom

        state = asyncio.run(loop.run())

        assert len(proposer.calls) == 1
        assert loop.stop_reason == StopReason.ERROR
        assert state.error_kind == ErrorKind.UNEXPECTED_FAILURE
        assert "renderer unavailable" in state.error
        assert state.thoughts[0].status == ThoughtStatus.ERROR
        assert state.credits == 10

    def test_credits_exhausted_mid_run(self):
        proposer = RepeatingProposer(_response("createBox"))
        loop, _, session = _make_loop(proposer, credits=2)

        state = asyncio.run(loop.run())

        assert len(proposer.calls) == 2
        assert state.credits == 0
        assert len(state.command_history) == 2
        assert loop.stop_reason == StopReason.ERROR
        assert state.error_kind == ErrorKind.CREDITS_EXHAUSTED
        assert state.credits_requested is True

    def test_safety_limit(self):
        proposer = RepeatingProposer(_response("createSphere"))
        loop, scene, session = _make_loop(proposer, credits=100)

        state = asyncio.run(loop.run())

        assert len(state.command_history) == 50
        assert len(proposer.calls) == 50
        assert state.credits == 50
        assert state.error_kind == ErrorKind.SAFETY_LIMIT_REACHED
        assert loop.stop_reason == StopReason.ERROR
        assert len(scene.get_agent_entities()) == 50

    def test_failed_commands_do_not_count_toward_limit(self):
        script = [_response("deleteObject", objectId="ghost")] * 3
        script += [_response("createBox")] * 2
        proposer = ScriptedProposer(script)
        loop, _, session = _make_loop(proposer, max_commands=2)

        state = asyncio.run(loop.run())

        assert len(proposer.calls) == 5
        assert state.error_kind == ErrorKind.SAFETY_LIMIT_REACHED


class TestControl:
    def test_stop_during_inflight_proposal(self):
        proposer = HangingProposer()
        loop, _, session = _make_loop(proposer)

        async def scenario():
            task = asyncio.create_task(loop.run())
            await proposer.started.wait()
            loop.stop()
            return await task

        state = asyncio.run(scenario())

        assert proposer.cancelled is True
        assert loop.state == LoopState.STOPPED
        assert loop.stop_reason == StopReason.ABORTED
        assert state.error is None
        assert state.thoughts == []
        assert state.credits == 10

    def test_restart_right_after_stop(self):
        proposer = HangOnceProposer([_response("createBox", name="Fresh")])
        loop, scene, session = _make_loop(proposer)

        async def scenario():
            first = asyncio.create_task(loop.run())
            await proposer.started.wait()
            loop.stop()
            second = asyncio.create_task(loop.start_building("second"))
            await first
            return await second

        state = asyncio.run(scenario())

        assert proposer.cancelled is True
        assert loop.stop_reason == StopReason.COMPLETED
        assert state.goal == "second"
        assert state.error is None
        assert [c.action for c in state.command_history] == ["createBox"]
        assert [t.status for t in state.thoughts] == [ThoughtStatus.COMPLETED] * 2
        assert len(proposer.calls) == 3
        assert len(scene.get_agent_entities()) == 1

    def test_stop_during_delay(self):
        proposer = RepeatingProposer(_response("createBox"))
        loop, _, session = _make_loop(proposer, step_delay_seconds=30)

        async def scenario():
            task = asyncio.create_task(loop.run())
            while not session.command_history:
                await asyncio.sleep(0)
            loop.stop()
            return await asyncio.wait_for(task, timeout=5)

        state = asyncio.run(scenario())

        assert loop.stop_reason == StopReason.ABORTED
        assert len(state.command_history) == 1
        assert len(proposer.calls) == 1

    def test_pause_intervene_resume(self):
        loop_ref = {}

        def on_call(n):
            if n == 1:
                loop_ref["loop"].pause()
                loop_ref["loop"].intervene("add a red door")

        proposer = ScriptedProposer([_response("createBox", name="House")], on_call=on_call)
        loop, _, session = _make_loop(proposer)
        loop_ref["loop"] = loop
        session.set_goal("Build a house")

        async def scenario():
            task = asyncio.create_task(loop.run())
            await _settle()
            paused_state = loop.state
            calls_while_paused = len(proposer.calls)
            loop.resume()
            await task
            return paused_state, calls_while_paused

        paused_state, calls_while_paused = asyncio.run(scenario())

        assert paused_state == LoopState.PAUSED
        assert calls_while_paused == 1
        assert "add a red door" not in proposer.calls[0].goal
        assert proposer.calls[1].goal.count("Additional instruction: add a red door") == 1
        assert loop.stop_reason == StopReason.COMPLETED

    def test_toggle_pause(self):
        proposer = HangingProposer()
        loop, _, _ = _make_loop(proposer)

        async def scenario():
            task = asyncio.create_task(loop.run())
            await proposer.started.wait()
            loop.toggle_pause()
            first = loop.state
            loop.toggle_pause()
            second = loop.state
            loop.stop()
            await task
            return first, second

        assert asyncio.run(scenario()) == (LoopState.PAUSED, LoopState.RUNNING)

    def test_intervene_requires_running(self):
        loop, _, session = _make_loop(ScriptedProposer())
        assert loop.intervene("more trees") is False
        assert session.goal == ""

    def test_intervene_keeps_loop_running(self):
        def on_call(n):
            if n == 1:
                loop.intervene("use blue")

        proposer = ScriptedProposer([_response("createBox")], on_call=on_call)
        loop, _, _ = _make_loop(proposer)

        asyncio.run(loop.run())

        assert loop.stop_reason == StopReason.COMPLETED
        assert "use blue" in proposer.calls[1].goal

    def test_history_window(self):
        script = [_response("createBox", name=f"Box {i}") for i in range(12)]
        proposer = ScriptedProposer(script)
        loop, _, session = _make_loop(proposer, credits=20)

        asyncio.run(loop.run())

        assert proposer.calls[0].history == []
        last = proposer.calls[12].history
        assert len(last) == 10
        assert [c.params["name"] for c in last] == [f"Box {i}" for i in range(2, 12)]
