"""Observation Snapshot — the bounded view of the scene handed to the model.

Every model here is frozen and collections are tuples, so a snapshot cannot
be altered after the serializer builds it.
"""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from scene_agent.models.scene import EntityKind, LightType


class VectorObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class MaterialObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    color: str
    metalness: float
    roughness: float
    emissive: str
    emissive_intensity: float
    opacity: float
    transparent: bool = False


class GeometryObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: Optional[float] = None
    height: Optional[float] = None
    depth: Optional[float] = None
    radius: Optional[float] = None
    segments: Optional[int] = None


class FogObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    color: str
    near: float
    far: float


class EntityObservation(BaseModel):
    """One agent-created entity, numerics rounded to 2 decimals."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: EntityKind
    name: str
    position: VectorObservation
    rotation: VectorObservation
    scale: VectorObservation
    material: Optional[MaterialObservation] = None
    light_type: Optional[LightType] = None
    light_color: Optional[str] = None
    light_intensity: Optional[float] = None
    geometry: Optional[GeometryObservation] = None

    @property
    def primary_color(self) -> str:
        if self.material is not None:
            return self.material.color
        if self.light_color:
            return self.light_color
        return "N/A"


class CameraObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: VectorObservation
    target: VectorObservation


class EnvironmentObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    background_color: str
    fog: Optional[FogObservation] = None
    ambient_intensity: float


class ObservationSnapshot(BaseModel):
    """Produced fresh on every loop iteration."""

    model_config = ConfigDict(frozen=True)

    version: int = 1
    objects: Tuple[EntityObservation, ...] = ()
    camera: CameraObservation
    environment: EnvironmentObservation
