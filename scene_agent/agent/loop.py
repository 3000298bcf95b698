"""
Agent Control Loop — the observe → propose → execute → wait cycle.

States:
  IDLE → RUNNING ⇄ PAUSED → STOPPED (COMPLETED | ABORTED | ERROR)

One iteration, in order:
  a. re-check credits (none left → stop, credits exhausted)
  b. serialize the scene into an observation
  c. ask the proposer for one command (cancellable by stop)
  d. drop the response if the session was stopped while it was in flight
  e. record the thought as executing
  f. ``complete`` → mark completed and stop
  g. execute; success appends history and spends one credit. A step-level
     failure does neither, any other failure stops the loop
  h. inter-step delay (cancellable by stop)
  i. wait while paused
  j. stop with an error once the command ceiling is reached

The loop only suspends at (c), (h) and (i). At most one step is in flight.
"""

import asyncio
import logging
from typing import List, Optional

from scene_agent.agent.errors import (
    BlockedStart,
    CreditsExhausted,
    InsufficientCredits,
    SafetyLimitReached,
    SceneAgentError,
    STEP_LEVEL_KINDS,
    SceneNotInitialized,
    TransportAborted,
    UnexpectedFailure,
)
from scene_agent.agent.proposer import Proposer
from scene_agent.execution.executor import CommandExecutor
from scene_agent.models.commands import COMPLETE_ACTION, Command
from scene_agent.models.config import AgentConfig
from scene_agent.models.execution import CommandResult, ErrorKind
from scene_agent.models.proposal import AgentResponse
from scene_agent.models.session import LoopState, SessionState, StopReason, ThoughtStatus
from scene_agent.observation.codec import format_observation, serialize_scene
from scene_agent.scene.store import SceneStore
from scene_agent.session.store import SessionStore

logger = logging.getLogger(__name__)


class AgentLoop:
    """
    Drives one session at a time. ``pause``, ``resume``, ``stop`` and
    ``intervene`` are called from outside the loop (same event loop) while
    ``run`` is being awaited.
    """

    def __init__(
        self,
        scene_store: SceneStore,
        session_store: SessionStore,
        proposer: Proposer,
        executor: Optional[CommandExecutor] = None,
        config: Optional[AgentConfig] = None,
    ):
        self.scene = scene_store
        self.session = session_store
        self.proposer = proposer
        self.executor = executor or CommandExecutor()
        self.config = config or AgentConfig()
        self.session.set_speed(self.config.step_delay_seconds)

        self._stop_reason: Optional[StopReason] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._resume_event: Optional[asyncio.Event] = None
        self._inflight: Optional[asyncio.Future] = None
        self._run_done: Optional[asyncio.Event] = None
        self._results: List[CommandResult] = []

    @property
    def state(self) -> LoopState:
        if self.session.is_running:
            return LoopState.PAUSED if self.session.is_paused else LoopState.RUNNING
        if self._stop_reason is None:
            return LoopState.IDLE
        return LoopState.STOPPED

    @property
    def stop_reason(self) -> Optional[StopReason]:
        return self._stop_reason

    @property
    def results(self) -> List[CommandResult]:
        """Executor results of the current (or last) run, in order."""
        return list(self._results)

    # --- External control ---

    def pause(self) -> None:
        if self._resume_event is not None:
            self._resume_event.clear()
        self.session.pause()

    def resume(self) -> None:
        self.session.resume()
        if self._resume_event is not None:
            self._resume_event.set()

    def toggle_pause(self) -> None:
        if self.session.is_paused:
            self.resume()
        else:
            self.pause()

    def stop(self) -> None:
        """Abort the session; any in-flight proposal request is cancelled."""
        if self.session.is_running and self._stop_reason is None:
            self._stop_reason = StopReason.ABORTED
        self.session.stop()

        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        if self._stop_event is not None:
            self._stop_event.set()
        if self._resume_event is not None:
            self._resume_event.set()

    def intervene(self, instruction: str) -> bool:
        """
        Append an instruction to the goal. The goal is read once per step
        before the proposal call, so the next step sees it exactly once.
        """
        if not self.session.is_running:
            return False
        was_paused = self.session.is_paused
        self.pause()
        self.session.append_to_goal(instruction)
        if not was_paused:
            self.resume()
        logger.info("Intervention added to goal: %s", instruction[:100])
        return True

    # --- Entry points ---

    async def start_building(self, goal: str) -> SessionState:
        """Fresh session: reset history, clear the scene, then run."""
        await self._await_previous_run()
        if self.session.is_running:
            raise BlockedStart("Agent loop is already running")
        self.session.reset()
        self.scene.clear()
        self.session.set_goal(goal)
        return await self.run()

    async def run(self) -> SessionState:
        """
        Run until a terminal condition. Raises BlockedStart subclasses,
        without calling the proposer, when preconditions are unmet.
        A stopped run that is still unwinding is awaited first, so two
        runs never overlap.
        """
        await self._await_previous_run()
        if self.session.is_running:
            raise BlockedStart("Agent loop is already running")
        if not self.scene.is_initialized:
            self.session.set_error("Scene not initialized", ErrorKind.BLOCKED_START)
            raise SceneNotInitialized("Scene not initialized")
        if not self.session.has_credits:
            self.session.request_credits()
            raise InsufficientCredits("No credits remaining")

        run_done = asyncio.Event()
        self._run_done = run_done
        self._stop_event = asyncio.Event()
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._stop_reason = None
        self._results = []
        self.session.start()
        logger.info("Agent loop started (credits=%d)", self.session.credits)

        try:
            while self.session.is_running:
                try:
                    keep_going = await self._step()
                except TransportAborted:
                    logger.info("Proposal request aborted by stop")
                    self._finish(StopReason.ABORTED)
                    break
                except SceneAgentError as e:
                    self._fail(e)
                    break
                except Exception as e:
                    logger.exception("Agent loop failed")
                    self._fail(UnexpectedFailure(str(e) or type(e).__name__))
                    break
                if not keep_going:
                    break
        finally:
            if self._inflight is not None and not self._inflight.done():
                self._inflight.cancel()
            self._inflight = None
            self.session.stop()
            self._finish(StopReason.ABORTED)
            run_done.set()

        logger.info(
            "Agent loop stopped (%s): %d commands, %d credits left",
            self._stop_reason.value,
            len(self.session.command_history),
            self.session.credits,
        )
        return self.session.state

    async def _await_previous_run(self) -> None:
        while self._run_done is not None and not self._run_done.is_set():
            await self._run_done.wait()

    # --- Internals ---

    async def _step(self) -> bool:
        """One iteration. Returns False when the loop should exit normally."""
        if not self.session.has_credits:
            self.session.request_credits()
            raise CreditsExhausted("Out of credits")

        observation = format_observation(serialize_scene(self.scene))
        history = self.session.recent_history(self.config.history_window)
        response = await self._request_proposal(observation, self.session.goal, history)

        if not self.session.is_running:
            logger.info("Discarding proposal received after stop")
            return False

        thought_id = self.session.add_thought(response.thought, response.command)
        self.session.update_thought_status(thought_id, ThoughtStatus.EXECUTING)

        if response.command.action == COMPLETE_ACTION:
            self.session.update_thought_status(thought_id, ThoughtStatus.COMPLETED)
            self._finish(StopReason.COMPLETED)
            self.session.stop()
            return False

        self._apply(thought_id, response.command)

        await self._sleep(self.session.speed)
        await self._wait_while_paused()
        if not self.session.is_running:
            return False

        if len(self.session.command_history) >= self.config.max_commands:
            raise SafetyLimitReached(
                f"Reached maximum command limit ({self.config.max_commands})"
            )
        return True

    def _apply(self, thought_id: str, command: Command) -> None:
        result = self.executor.execute(self.scene, command)
        self._results.append(result)

        if result.success:
            self.session.add_command(command)
            self.session.update_thought_status(thought_id, ThoughtStatus.COMPLETED)
            self.session.use_credit()
            logger.info("Executed %s (credits=%d)", command.action, self.session.credits)
            return

        self.session.update_thought_status(
            thought_id, ThoughtStatus.ERROR, error=result.error
        )
        if result.error_kind not in STEP_LEVEL_KINDS:
            raise UnexpectedFailure(result.error or f"Command {command.action} failed")
        logger.warning(
            "Command %s failed (%s): %s",
            command.action,
            result.error_kind.value,
            result.error,
        )

    async def _request_proposal(
        self,
        observation: str,
        goal: str,
        history: List[Command],
    ) -> AgentResponse:
        """Await the proposer, or raise TransportAborted if stop wins."""
        proposal = asyncio.ensure_future(
            self.proposer.propose(observation, goal, history)
        )
        stop_waiter = asyncio.ensure_future(self._stop_event.wait())
        self._inflight = proposal
        done = set()
        try:
            done, _ = await asyncio.wait(
                {proposal, stop_waiter},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            stop_waiter.cancel()
            self._inflight = None
            if not proposal.done():
                proposal.cancel()

        if proposal not in done or proposal.cancelled():
            raise TransportAborted("Proposal request cancelled")
        return proposal.result()

    async def _sleep(self, delay: float) -> None:
        """Inter-step delay; returns early on stop."""
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _wait_while_paused(self) -> None:
        while self.session.is_paused and self.session.is_running:
            self._resume_event.clear()
            await self._resume_event.wait()

    def _finish(self, reason: StopReason) -> None:
        if self._stop_reason is None:
            self._stop_reason = reason

    def _fail(self, error: SceneAgentError) -> None:
        self._stop_reason = StopReason.ERROR
        self.session.set_error(str(error), error.kind)
