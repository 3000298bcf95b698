"""
Scene Agent API — FastAPI endpoints.

Exposes the agent's functionality via a REST API for:
- Command proposal (the model-facing endpoint)
- Session control (start / pause / resume / stop / intervene)
- Credits
- Scene inspection and manual commands
"""

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from scene_agent.agent.errors import SceneAgentError
from scene_agent.agent.loop import AgentLoop
from scene_agent.agent.proposer import LLMProposer, Proposer
from scene_agent.config import Settings, load_settings
from scene_agent.execution.executor import CommandExecutor
from scene_agent.models.commands import Command
from scene_agent.models.execution import ErrorKind
from scene_agent.models.proposal import ProposalRequest
from scene_agent.observation.codec import observe, serialize_scene
from scene_agent.scene.store import SceneStore
from scene_agent.session.credits import SqliteCreditStore
from scene_agent.session.store import SessionStore

logger = logging.getLogger(__name__)


# --- Request/Response Models ---

class StartRequest(BaseModel):
    goal: str = Field(min_length=1)


class InterveneRequest(BaseModel):
    instruction: str = Field(min_length=1)


class SpeedRequest(BaseModel):
    speed: float = Field(ge=0)


# --- Application Factory ---

def create_app(
    scene_store: Optional[SceneStore] = None,
    session_store: Optional[SessionStore] = None,
    proposer: Optional[Proposer] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Scene Agent API",
        description="Autonomous 3D scene building agent",
        version="0.1.0",
    )

    # Initialize components
    cfg = settings or load_settings()
    if scene_store is None:
        scene_store = SceneStore()
        scene_store.initialize()
    ss = session_store or SessionStore(
        credit_store=SqliteCreditStore(
            db_path=cfg.credits_db_path,
            default_credits=cfg.agent.default_credits,
        ),
        max_credits=cfg.agent.default_credits,
    )
    pr = proposer or LLMProposer(cfg.proposer, history_window=cfg.agent.history_window)
    executor = CommandExecutor()
    agent = AgentLoop(
        scene_store=scene_store,
        session_store=ss,
        proposer=pr,
        executor=executor,
        config=cfg.agent,
    )

    # Store components on app state for access in endpoints
    app.state.scene_store = scene_store
    app.state.session_store = ss
    app.state.proposer = pr
    app.state.executor = executor
    app.state.agent = agent
    app.state.agent_task = None

    def _log_task_result(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Agent task ended with %s: %s", type(error).__name__, error)

    # === PROPOSAL ===

    @app.post("/api/agent")
    async def propose(req: ProposalRequest):
        """Ask the model for the next command."""
        if not req.goal:
            raise HTTPException(400, "Goal is required")
        try:
            response = await pr.propose(req.sceneState, req.goal, req.history)
        except SceneAgentError as e:
            raise HTTPException(500, f"Proposer error: {e}")
        except Exception as e:
            logger.exception("Proposer call failed")
            raise HTTPException(500, f"Proposer error: {e}")
        return response.model_dump(mode="json")

    # === SESSION ===

    @app.get("/session")
    async def get_session():
        """Current session state."""
        data = ss.snapshot()
        data["loop_state"] = agent.state.value
        data["stop_reason"] = agent.stop_reason.value if agent.stop_reason else None
        return data

    @app.get("/session/thoughts")
    async def get_thoughts():
        return [t.model_dump(mode="json") for t in ss.thoughts]

    @app.post("/session/start")
    async def start_session(req: StartRequest):
        """Reset the session, clear the scene and launch the loop."""
        if ss.is_running:
            raise HTTPException(409, "Agent is already running")
        if not scene_store.is_initialized:
            raise HTTPException(409, "Scene not initialized")
        if not ss.has_credits:
            ss.request_credits()
            raise HTTPException(409, "Need credits")

        task = asyncio.create_task(agent.start_building(req.goal))
        task.add_done_callback(_log_task_result)
        app.state.agent_task = task
        # Let the loop take its first synchronous steps
        await asyncio.sleep(0)
        return {"status": "started", "goal": req.goal}

    @app.post("/session/pause")
    async def pause_session():
        if not ss.is_running:
            raise HTTPException(409, "Agent is not running")
        agent.pause()
        return {"status": agent.state.value}

    @app.post("/session/resume")
    async def resume_session():
        if not ss.is_running:
            raise HTTPException(409, "Agent is not running")
        agent.resume()
        return {"status": agent.state.value}

    @app.post("/session/stop")
    async def stop_session():
        agent.stop()
        return {"status": agent.state.value}

    @app.post("/session/intervene")
    async def intervene(req: InterveneRequest):
        """Add an instruction to the active goal."""
        if not agent.intervene(req.instruction):
            raise HTTPException(409, "Agent is not running")
        return {"status": agent.state.value, "goal": ss.goal}

    @app.put("/session/speed")
    async def set_speed(req: SpeedRequest):
        ss.set_speed(req.speed)
        return {"speed": ss.speed}

    # === CREDITS ===

    @app.get("/session/credits")
    async def get_credits():
        return {
            "credits": ss.credits,
            "max_credits": ss.state.max_credits,
            "percentage": ss.credit_percentage,
            "requested": ss.state.credits_requested,
        }

    @app.post("/session/credits/reset")
    async def reset_credits():
        ss.reset_credits()
        return {"credits": ss.credits}

    @app.post("/session/credits/dismiss")
    async def dismiss_credit_request():
        ss.dismiss_credit_request()
        return {"requested": ss.state.credits_requested}

    # === SCENE ===

    @app.get("/scene/state")
    async def get_scene_state():
        """Rounded observation snapshot."""
        if not scene_store.is_initialized:
            raise HTTPException(409, "Scene not initialized")
        return serialize_scene(scene_store).model_dump(mode="json")

    @app.get("/scene/entities")
    async def get_scene_entities():
        """Full unrounded store contents, scaffolding and helpers included."""
        return scene_store.get_state_snapshot()

    @app.get("/scene/observation")
    async def get_observation():
        """The exact text the proposer receives."""
        return {"observation": observe(scene_store)}

    @app.post("/scene/commands")
    async def run_command(command: Command):
        """Manually apply one command (blocked while the agent runs)."""
        if ss.is_running:
            raise HTTPException(409, "Agent is running")
        if not scene_store.is_initialized:
            raise HTTPException(409, "Scene not initialized")
        result = executor.execute(scene_store, command)
        if not result.success:
            status = 404 if result.error_kind == ErrorKind.TARGET_NOT_FOUND else 422
            raise HTTPException(status, result.error)
        return result.model_dump(mode="json")

    @app.post("/scene/clear")
    async def clear_scene():
        if ss.is_running:
            raise HTTPException(409, "Agent is running")
        removed = scene_store.clear()
        return {"removed": removed}

    return app


# Default application instance
app = create_app()
