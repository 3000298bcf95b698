"""
Command Executor — applies validated agent commands to the scene store.

Behavioral Contract:
- Accepts only the closed action set; anything else is rejected, not raised
- Validates each envelope into its typed payload before touching the store
- Only agent-created entities are addressable; helpers and scaffolding never are
- Moving or deleting an entity carries its linked helper along
- A failure inside one command degrades to a failed result; it never propagates
"""

import itertools
import logging
import math
import time
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from scene_agent.agent.errors import InvalidCommand, TargetNotFound, UnknownCommand
from scene_agent.models.commands import (
    COMPLETE_ACTION,
    SUPPORTED_ACTIONS,
    AddDirectionalLight,
    AddFog,
    AddPointLight,
    Command,
    CreateBox,
    CreateCone,
    CreateCylinder,
    CreatePlane,
    CreateSphere,
    DeleteObject,
    MoveObject,
    RotateObject,
    ScaleObject,
    SetBackgroundColor,
    SetMaterial,
    parse_scene_command,
)
from scene_agent.models.execution import CommandResult, ErrorKind
from scene_agent.models.scene import (
    EntityKind,
    EntitySummary,
    FogSpec,
    GeometryParams,
    LightSpec,
    LightType,
    MaterialSpec,
    SceneEntity,
    Vector3,
)
from scene_agent.scene.store import SceneStore, helper_id_for, is_helper

logger = logging.getLogger(__name__)

_object_counter = itertools.count(1)

PLANE_TILT = -math.pi / 2  # Planes lie flat by default
HELPER_RADIUS = 0.1


def generate_id() -> str:
    """Process-wide unique entity identifier: ``obj_<counter>_<epoch ms>``."""
    return f"obj_{next(_object_counter)}_{int(time.time() * 1000)}"


class CommandExecutor:
    """
    Fixed registry mapping each payload type of the command union to a
    mutation over the scene store.
    """

    def __init__(self):
        self._handlers: Dict[type, Callable] = {}
        self._register_default_handlers()

    def _register_default_handlers(self) -> None:
        """Register one handler per supported action."""
        self._handlers[CreateBox] = self._create_box
        self._handlers[CreateSphere] = self._create_sphere
        self._handlers[CreateCylinder] = self._create_cylinder
        self._handlers[CreatePlane] = self._create_plane
        self._handlers[CreateCone] = self._create_cone
        self._handlers[AddPointLight] = self._add_point_light
        self._handlers[AddDirectionalLight] = self._add_directional_light
        self._handlers[SetMaterial] = self._set_material
        self._handlers[MoveObject] = self._move_object
        self._handlers[RotateObject] = self._rotate_object
        self._handlers[ScaleObject] = self._scale_object
        self._handlers[DeleteObject] = self._delete_object
        self._handlers[SetBackgroundColor] = self._set_background_color
        self._handlers[AddFog] = self._add_fog

    @property
    def handled_types(self) -> tuple:
        return tuple(self._handlers)

    def execute(self, store: SceneStore, command: Command) -> CommandResult:
        """Validate and apply a single command."""
        action = command.action
        start = time.monotonic()
        try:
            payload = self._validate(command)
            summary = self._handlers[type(payload)](store, payload)
        except (UnknownCommand, InvalidCommand, TargetNotFound) as e:
            logger.warning("Rejected %s (%s): %s", action, e.kind.value, e)
            return self._failure(
                action, e.kind, str(e), duration=time.monotonic() - start
            )
        except Exception as e:
            logger.exception("Error executing command %s", action)
            return self._failure(
                action,
                ErrorKind.UNEXPECTED_FAILURE,
                str(e),
                duration=time.monotonic() - start,
            )

        return CommandResult(
            action=action,
            success=True,
            entity=summary,
            duration=round(time.monotonic() - start, 3),
        )

    def _validate(self, command: Command):
        """Resolve the envelope into a handled payload or raise a step-level error."""
        action = command.action
        if action not in SUPPORTED_ACTIONS:
            raise UnknownCommand(f"Unknown command: {action}")
        if action == COMPLETE_ACTION:
            raise UnknownCommand("complete is a loop sentinel and is never executed")
        try:
            payload = parse_scene_command(command)
        except ValidationError as e:
            raise InvalidCommand(self._describe_validation(e)) from e
        if type(payload) not in self._handlers:
            raise UnknownCommand(f"No handler for command: {action}")
        return payload

    def _failure(
        self,
        action: str,
        kind: ErrorKind,
        message: str,
        duration: float = 0.0,
    ) -> CommandResult:
        return CommandResult(
            action=action,
            success=False,
            error_kind=kind,
            error=message,
            duration=round(duration, 3),
        )

    def _describe_validation(self, error: ValidationError) -> str:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in error.errors()
        ]
        return "Invalid params: " + "; ".join(problems)

    def _resolve_target(self, store: SceneStore, object_id: str) -> SceneEntity:
        """Look up an addressable entity; helpers and scaffolding never resolve."""
        entity = store.get_entity_by_id(object_id)
        if entity is None or not entity.agent_created or is_helper(entity):
            raise TargetNotFound(f"Object not found: {object_id}")
        return entity

    # --- Creation ---

    def _insert_mesh(
        self,
        store: SceneStore,
        kind: EntityKind,
        default_name: str,
        name: Optional[str],
        position: Vector3,
        color: str,
        geometry: GeometryParams,
        rotation: Optional[Vector3] = None,
    ) -> EntitySummary:
        entity = SceneEntity(
            id=generate_id(),
            kind=kind,
            name=name or default_name,
            position=position.model_copy(),
            rotation=rotation or Vector3(),
            material=MaterialSpec(color=color),
            geometry=geometry,
            agent_created=True,
        )
        store.add_entity(entity)
        return EntitySummary.from_entity(entity)

    def _create_box(self, store: SceneStore, cmd: CreateBox) -> EntitySummary:
        return self._insert_mesh(
            store, EntityKind.BOX, "Box", cmd.name, cmd.position, cmd.color,
            GeometryParams(width=cmd.size.x, height=cmd.size.y, depth=cmd.size.z),
        )

    def _create_sphere(self, store: SceneStore, cmd: CreateSphere) -> EntitySummary:
        return self._insert_mesh(
            store, EntityKind.SPHERE, "Sphere", cmd.name, cmd.position, cmd.color,
            GeometryParams(radius=cmd.radius, segments=32),
        )

    def _create_cylinder(self, store: SceneStore, cmd: CreateCylinder) -> EntitySummary:
        return self._insert_mesh(
            store, EntityKind.CYLINDER, "Cylinder", cmd.name, cmd.position, cmd.color,
            GeometryParams(radius=cmd.radius, height=cmd.height, segments=32),
        )

    def _create_plane(self, store: SceneStore, cmd: CreatePlane) -> EntitySummary:
        return self._insert_mesh(
            store, EntityKind.PLANE, "Plane", cmd.name, cmd.position, cmd.color,
            GeometryParams(width=cmd.size.x, height=cmd.size.y),
            rotation=Vector3(x=PLANE_TILT),
        )

    def _create_cone(self, store: SceneStore, cmd: CreateCone) -> EntitySummary:
        return self._insert_mesh(
            store, EntityKind.CONE, "Cone", cmd.name, cmd.position, cmd.color,
            GeometryParams(radius=cmd.radius, height=cmd.height, segments=32),
        )

    def _insert_light(
        self,
        store: SceneStore,
        light_type: LightType,
        default_name: str,
        name: Optional[str],
        position: Vector3,
        color: str,
        intensity: float,
    ) -> EntitySummary:
        entity_id = generate_id()
        light = SceneEntity(
            id=entity_id,
            kind=EntityKind.LIGHT,
            name=name or default_name,
            position=position.model_copy(),
            light=LightSpec(light_type=light_type, color=color, intensity=intensity),
            agent_created=True,
        )
        store.add_entity(light)

        # Small marker sphere so the light is visible in the viewport
        store.add_entity(SceneEntity(
            id=helper_id_for(entity_id),
            kind=EntityKind.HELPER,
            name=f"{light.name} marker",
            position=position.model_copy(),
            material=MaterialSpec(color=color),
            geometry=GeometryParams(radius=HELPER_RADIUS),
            parent_id=entity_id,
        ))
        return EntitySummary.from_entity(light)

    def _add_point_light(self, store: SceneStore, cmd: AddPointLight) -> EntitySummary:
        return self._insert_light(
            store, LightType.POINT, "Point Light", cmd.name,
            cmd.position, cmd.color, cmd.intensity,
        )

    def _add_directional_light(
        self, store: SceneStore, cmd: AddDirectionalLight
    ) -> EntitySummary:
        return self._insert_light(
            store, LightType.DIRECTIONAL, "Directional Light", cmd.name,
            cmd.position, cmd.color, cmd.intensity,
        )

    # --- Modification ---

    def _set_material(self, store: SceneStore, cmd: SetMaterial) -> None:
        entity = self._resolve_target(store, cmd.objectId)
        if entity.material is None:
            raise TargetNotFound(f"Object has no material: {cmd.objectId}")

        material = entity.material
        if cmd.color:
            material.color = cmd.color
        if cmd.metalness is not None:
            material.metalness = cmd.metalness
        if cmd.roughness is not None:
            material.roughness = cmd.roughness
        if cmd.emissive:
            material.emissive = cmd.emissive
        if cmd.emissiveIntensity is not None:
            material.emissive_intensity = cmd.emissiveIntensity
        return None

    def _move_object(self, store: SceneStore, cmd: MoveObject) -> None:
        entity = self._resolve_target(store, cmd.objectId)
        entity.position = cmd.position.model_copy()

        for helper in store.get_helpers(entity.id):
            helper.position = cmd.position.model_copy()
        return None

    def _rotate_object(self, store: SceneStore, cmd: RotateObject) -> None:
        entity = self._resolve_target(store, cmd.objectId)
        entity.rotation = cmd.rotation.model_copy()
        return None

    def _scale_object(self, store: SceneStore, cmd: ScaleObject) -> None:
        entity = self._resolve_target(store, cmd.objectId)
        entity.scale = cmd.scale.model_copy()
        return None

    def _delete_object(self, store: SceneStore, cmd: DeleteObject) -> None:
        entity = self._resolve_target(store, cmd.objectId)
        for helper in store.get_helpers(entity.id):
            store.remove_entity(helper.id)
        store.remove_entity(entity.id)
        return None

    # --- Environment ---

    def _set_background_color(
        self, store: SceneStore, cmd: SetBackgroundColor
    ) -> None:
        store.set_background(cmd.color)
        return None

    def _add_fog(self, store: SceneStore, cmd: AddFog) -> None:
        store.set_fog(FogSpec(color=cmd.color, near=cmd.near, far=cmd.far))
        return None
