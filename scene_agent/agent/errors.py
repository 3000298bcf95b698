"""
Error taxonomy for the agent control loop.

Step-level (recorded on the thought entry, loop continues):
  UnknownCommand, InvalidCommand, TargetNotFound
Loop-terminal (stop the loop, recorded on the session):
  MalformedProposal, CreditsExhausted, SafetyLimitReached, UnexpectedFailure
Never surfaced as a session error:
  TransportAborted
Raised before the loop starts:
  BlockedStart (SceneNotInitialized, InsufficientCredits)
"""

from scene_agent.models.execution import ErrorKind


class SceneAgentError(Exception):
    """Base class for all scene agent errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED_FAILURE


class BlockedStart(SceneAgentError):
    """The loop's start preconditions are not met."""

    kind = ErrorKind.BLOCKED_START


class SceneNotInitialized(BlockedStart):
    """blocked: scene uninitialized"""
    pass


class InsufficientCredits(BlockedStart):
    """blocked: need credits"""
    pass


class UnknownCommand(SceneAgentError):
    kind = ErrorKind.UNKNOWN_COMMAND


class InvalidCommand(SceneAgentError):
    kind = ErrorKind.INVALID_COMMAND


class TargetNotFound(SceneAgentError):
    kind = ErrorKind.TARGET_NOT_FOUND


class MalformedProposal(SceneAgentError):
    """The proposer's response was unparseable or structurally incomplete."""

    kind = ErrorKind.MALFORMED_PROPOSAL


class TransportAborted(SceneAgentError):
    """The in-flight proposal request was cancelled by an explicit stop."""

    kind = ErrorKind.TRANSPORT_ABORTED


class CreditsExhausted(SceneAgentError):
    kind = ErrorKind.CREDITS_EXHAUSTED


class SafetyLimitReached(SceneAgentError):
    kind = ErrorKind.SAFETY_LIMIT_REACHED


class UnexpectedFailure(SceneAgentError):
    kind = ErrorKind.UNEXPECTED_FAILURE


STEP_LEVEL_KINDS = frozenset({
    ErrorKind.UNKNOWN_COMMAND,
    ErrorKind.INVALID_COMMAND,
    ErrorKind.TARGET_NOT_FOUND,
})
