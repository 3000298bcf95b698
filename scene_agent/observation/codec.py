"""
Observation Codec — turns the live scene store into the text the model sees.

The formatted text is the only scene information the proposer receives,
so it must be deterministic for a given store state:
  - entities appear in store insertion order
  - helpers and scaffolding never appear
  - every numeric value is rounded to 2 decimal places
"""

from typing import List, Optional

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
from scene_agent.models.scene import (
    GeometryParams,
    LightType,
    MaterialSpec,
    SceneEntity,
    Vector3,
)
from scene_agent.scene.store import SceneStore, is_helper

PRECISION = 2
DEFAULT_AMBIENT_INTENSITY = 0.3
SCENE_NOT_INITIALIZED = "Scene not initialized"


def _round(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    rounded = round(value, PRECISION)
    # Avoid "-0.00" flickering into the text
    if rounded == 0:
        return 0.0
    return rounded


def _round_vector(vector: Vector3) -> VectorObservation:
    return VectorObservation(x=_round(vector.x), y=_round(vector.y), z=_round(vector.z))


def _round_material(material: MaterialSpec) -> MaterialObservation:
    return MaterialObservation(
        color=material.color,
        metalness=_round(material.metalness),
        roughness=_round(material.roughness),
        emissive=material.emissive,
        emissive_intensity=_round(material.emissive_intensity),
        opacity=_round(material.opacity),
        transparent=material.transparent,
    )


def _round_geometry(geometry: GeometryParams) -> GeometryObservation:
    return GeometryObservation(
        width=_round(geometry.width),
        height=_round(geometry.height),
        depth=_round(geometry.depth),
        radius=_round(geometry.radius),
        segments=geometry.segments,
    )


def _is_observable(entity: SceneEntity) -> bool:
    return entity.agent_created and not is_helper(entity)


def _observe_entity(entity: SceneEntity) -> EntityObservation:
    light = entity.light
    return EntityObservation(
        id=entity.id,
        type=entity.kind,
        name=entity.name,
        position=_round_vector(entity.position),
        rotation=_round_vector(entity.rotation),
        scale=_round_vector(entity.scale),
        material=_round_material(entity.material) if entity.material else None,
        light_type=light.light_type if light else None,
        light_color=light.color if light else None,
        light_intensity=_round(light.intensity) if light else None,
        geometry=_round_geometry(entity.geometry) if entity.geometry else None,
    )


def serialize_scene(store: SceneStore) -> ObservationSnapshot:
    """Build a fresh, immutable snapshot of the observable scene."""
    objects: List[EntityObservation] = []
    ambient_intensity = DEFAULT_AMBIENT_INTENSITY

    for entity in store.traverse_entities():
        if entity.light and entity.light.light_type == LightType.AMBIENT:
            ambient_intensity = entity.light.intensity
        if not _is_observable(entity):
            continue
        objects.append(_observe_entity(entity))

    env = store.environment
    fog = None
    if env.fog is not None:
        fog = FogObservation(
            color=env.fog.color,
            near=_round(env.fog.near),
            far=_round(env.fog.far),
        )

    return ObservationSnapshot(
        objects=tuple(objects),
        camera=CameraObservation(
            position=_round_vector(store.camera.position),
            target=_round_vector(store.camera.target),
        ),
        environment=EnvironmentObservation(
            background_color=env.background_color,
            fog=fog,
            ambient_intensity=_round(ambient_intensity),
        ),
    )


def _fmt(vector: Vector3) -> str:
    return f"({vector.x:.2f}, {vector.y:.2f}, {vector.z:.2f})"


def format_observation(snapshot: ObservationSnapshot) -> str:
    """Render a snapshot in the fixed layout the proposer is prompted with."""
    lines: List[str] = []

    lines.append("=== CURRENT SCENE ===")
    lines.append(f"Objects: {len(snapshot.objects)}")
    lines.append(
        f"Camera: {_fmt(snapshot.camera.position)} "
        f"looking at {_fmt(snapshot.camera.target)}"
    )
    lines.append(f"Background: {snapshot.environment.background_color}")
    fog = snapshot.environment.fog
    if fog is not None:
        lines.append(f"Fog: {fog.color} near {fog.near:.2f} far {fog.far:.2f}")

    lines.append("")
    if snapshot.objects:
        lines.append("Objects in scene:")
        for obj in snapshot.objects:
            lines.append(
                f'  - {obj.id} "{obj.name}" [{obj.type.value}] '
                f"at {_fmt(obj.position)}, color: {obj.primary_color}"
            )
    else:
        lines.append("Scene is empty. Start building!")

    return "\n".join(lines)


def observe(store: SceneStore) -> str:
    """Serialize and format in one step."""
    if not store.is_initialized:
        return SCENE_NOT_INITIALIZED
    return format_observation(serialize_scene(store))
