"""Scene Agent data models."""

from scene_agent.models.commands import (
    COMPLETE_ACTION,
    SUPPORTED_ACTIONS,
    Command,
    SceneCommand,
    parse_scene_command,
)
from scene_agent.models.config import AgentConfig
from scene_agent.models.execution import CommandResult, ErrorKind
from scene_agent.models.observation import (
    CameraObservation,
    EntityObservation,
    EnvironmentObservation,
    FogObservation,
    GeometryObservation,
    MaterialObservation,
    ObservationSnapshot,
    VectorObservation,
)
from scene_agent.models.proposal import AgentResponse, ProposalRequest
from scene_agent.models.scene import (
    CameraState,
    EntityKind,
    EntitySummary,
    Environment,
    FogSpec,
    GeometryParams,
    HexColor,
    LightSpec,
    LightType,
    MaterialSpec,
    SceneEntity,
    Vector2,
    Vector3,
    normalize_color,
)
from scene_agent.models.session import (
    LoopState,
    SessionState,
    StopReason,
    ThoughtEntry,
    ThoughtStatus,
)

__all__ = [
    "COMPLETE_ACTION",
    "SUPPORTED_ACTIONS",
    "AgentConfig",
    "AgentResponse",
    "CameraObservation",
    "CameraState",
    "Command",
    "CommandResult",
    "EntityKind",
    "EntityObservation",
    "EntitySummary",
    "Environment",
    "EnvironmentObservation",
    "ErrorKind",
    "FogObservation",
    "FogSpec",
    "GeometryObservation",
    "GeometryParams",
    "HexColor",
    "LightSpec",
    "LightType",
    "LoopState",
    "MaterialObservation",
    "MaterialSpec",
    "ObservationSnapshot",
    "ProposalRequest",
    "SceneCommand",
    "SceneEntity",
    "SessionState",
    "StopReason",
    "ThoughtEntry",
    "ThoughtStatus",
    "Vector2",
    "Vector3",
    "VectorObservation",
    "normalize_color",
    "parse_scene_command",
]
