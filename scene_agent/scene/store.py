"""
Scene Store — the mutable scene graph the agent builds into.

Mutated by: Command Executor (one loop iteration at a time)
Read by: Observation Codec + renderers/exporters

The rendering engine is an outside collaborator; this store only holds
what the core needs: identifier-addressed entities plus the environment.
"""

import logging
from typing import Dict, Iterator, List, Optional

from scene_agent.models.scene import (
    CameraState,
    EntityKind,
    Environment,
    FogSpec,
    LightSpec,
    LightType,
    SceneEntity,
    Vector3,
)

logger = logging.getLogger(__name__)

HELPER_SUFFIX = "_helper"
DEFAULT_BACKGROUND = "#f0f4ff"


def helper_id_for(entity_id: str) -> str:
    """Derived identifier of the helper linked to ``entity_id``."""
    return f"{entity_id}{HELPER_SUFFIX}"


def is_helper_id(entity_id: str) -> bool:
    return entity_id.endswith(HELPER_SUFFIX)


def is_helper(entity: SceneEntity) -> bool:
    """Helpers are linked to a parent and are never addressable or observed."""
    return entity.parent_id is not None or is_helper_id(entity.id)


class DuplicateEntityError(Exception):
    """Raised when an entity identifier is already present in the store."""
    pass


class SceneStore:
    """
    In-memory scene store. Insertion order is preserved so that
    traversal (and therefore observation) is deterministic.
    """

    def __init__(self, camera: Optional[CameraState] = None):
        self._entities: Dict[str, SceneEntity] = {}
        self._environment = Environment(background_color=DEFAULT_BACKGROUND)
        self._camera = camera or CameraState()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def camera(self) -> CameraState:
        return self._camera

    def initialize(self) -> None:
        """Set up the default scaffolding: ambient + key light and a floor grid."""
        if self._initialized:
            return
        self.add_entity(SceneEntity(
            id="scaffold_ambient_light",
            kind=EntityKind.LIGHT,
            name="Ambient Light",
            light=LightSpec(light_type=LightType.AMBIENT, intensity=0.4),
        ))
        self.add_entity(SceneEntity(
            id="scaffold_directional_light",
            kind=EntityKind.LIGHT,
            name="Key Light",
            position=Vector3(x=10.0, y=20.0, z=10.0),
            light=LightSpec(light_type=LightType.DIRECTIONAL, intensity=0.8),
        ))
        self.add_entity(SceneEntity(
            id="scaffold_grid",
            kind=EntityKind.GRID,
            name="Grid",
            position=Vector3(y=-0.01),
        ))
        self._initialized = True
        logger.debug("Scene initialized with %d scaffolding entities", len(self._entities))

    def add_entity(self, entity: SceneEntity) -> None:
        """Insert a new entity."""
        if entity.id in self._entities:
            raise DuplicateEntityError(f"Entity already exists: {entity.id}")
        self._entities[entity.id] = entity

    def get_entity_by_id(self, entity_id: str) -> Optional[SceneEntity]:
        """Get a specific entity by ID."""
        return self._entities.get(entity_id)

    def remove_entity(self, entity_id: str) -> bool:
        """Remove an entity from the store."""
        if entity_id in self._entities:
            del self._entities[entity_id]
            return True
        return False

    def traverse_entities(self) -> Iterator[SceneEntity]:
        """Iterate all entities in insertion order, scaffolding included."""
        return iter(list(self._entities.values()))

    def get_helpers(self, parent_id: str) -> List[SceneEntity]:
        """Helper entities linked to ``parent_id``."""
        return [e for e in self._entities.values() if e.parent_id == parent_id]

    def get_agent_entities(self) -> List[SceneEntity]:
        """All entities the agent created, helpers excluded."""
        return [
            e for e in self._entities.values()
            if e.agent_created and not is_helper(e)
        ]

    def set_background(self, color: str) -> None:
        self._environment.background_color = color

    def set_fog(self, fog: Optional[FogSpec]) -> None:
        self._environment.fog = fog

    def clear(self) -> int:
        """
        Remove everything the agent created (and linked helpers) and reset
        the environment. Scaffolding stays. Returns the number removed.
        """
        doomed = [
            entity_id for entity_id, e in self._entities.items()
            if e.agent_created or is_helper(e)
        ]
        for entity_id in doomed:
            del self._entities[entity_id]

        self._environment = Environment(background_color=DEFAULT_BACKGROUND)
        logger.debug("Cleared %d entities from scene", len(doomed))
        return len(doomed)

    def get_state_snapshot(self) -> dict:
        """Get a serializable snapshot of the full store (for exporters)."""
        return {
            "initialized": self._initialized,
            "entities": [e.model_dump(mode="json") for e in self._entities.values()],
            "environment": self._environment.model_dump(mode="json"),
            "camera": self._camera.model_dump(mode="json"),
        }
