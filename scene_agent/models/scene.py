"""Scene Entities — the addressable contents of the scene store."""

from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field
from pydantic_extra_types.color import Color


def normalize_color(value: str) -> str:
    """Parse any CSS color (hex, ``rgb()``, named) into lowercase ``#rrggbb``."""
    r, g, b = Color(value).as_rgb_tuple(alpha=False)
    return f"#{r:02x}{g:02x}{b:02x}"


HexColor = Annotated[str, AfterValidator(normalize_color)]


class EntityKind(str, Enum):
    BOX = "box"
    SPHERE = "sphere"
    CYLINDER = "cylinder"
    PLANE = "plane"
    CONE = "cone"
    LIGHT = "light"
    GROUP = "group"
    # Non-addressable kinds: never produced by agent commands
    HELPER = "helper"
    GRID = "grid"


class LightType(str, Enum):
    POINT = "point"
    DIRECTIONAL = "directional"
    SPOT = "spot"
    AMBIENT = "ambient"


class Vector3(BaseModel):
    x: float = Field(default=0.0, allow_inf_nan=False)
    y: float = Field(default=0.0, allow_inf_nan=False)
    z: float = Field(default=0.0, allow_inf_nan=False)


class Vector2(BaseModel):
    x: float = Field(default=0.0, allow_inf_nan=False)
    y: float = Field(default=0.0, allow_inf_nan=False)


class MaterialSpec(BaseModel):
    """Standard physically-based material parameters."""

    color: HexColor = "#888888"
    metalness: float = Field(ge=0.0, le=1.0, default=0.1)
    roughness: float = Field(ge=0.0, le=1.0, default=0.5)
    emissive: HexColor = "#000000"
    emissive_intensity: float = Field(ge=0.0, default=0.0)
    opacity: float = Field(ge=0.0, le=1.0, default=1.0)
    transparent: bool = False


class LightSpec(BaseModel):
    light_type: LightType
    color: HexColor = "#ffffff"
    intensity: float = Field(ge=0.0, default=1.0)


class GeometryParams(BaseModel):
    width: Optional[float] = None
    height: Optional[float] = None
    depth: Optional[float] = None
    radius: Optional[float] = None
    segments: Optional[int] = None


class SceneEntity(BaseModel):
    """A single object held by the scene store."""

    id: str                                 # Unique, stable for the entity's lifetime
    kind: EntityKind
    name: str
    position: Vector3 = Field(default_factory=Vector3)
    rotation: Vector3 = Field(default_factory=Vector3)  # Radians
    scale: Vector3 = Field(default_factory=lambda: Vector3(x=1.0, y=1.0, z=1.0))
    material: Optional[MaterialSpec] = None
    light: Optional[LightSpec] = None
    geometry: Optional[GeometryParams] = None
    agent_created: bool = False             # Only marked entities are observable/addressable
    parent_id: Optional[str] = None         # Set on helpers linked to a parent entity


class EntitySummary(BaseModel):
    """What a creation command reports back about the entity it made."""

    id: str
    type: EntityKind
    name: str
    position: Vector3
    rotation: Vector3
    scale: Vector3
    material: Optional[MaterialSpec] = None
    light_type: Optional[LightType] = None
    light_color: Optional[str] = None
    light_intensity: Optional[float] = None
    geometry: Optional[GeometryParams] = None

    @classmethod
    def from_entity(cls, entity: SceneEntity) -> "EntitySummary":
        return cls(
            id=entity.id,
            type=entity.kind,
            name=entity.name,
            position=entity.position.model_copy(),
            rotation=entity.rotation.model_copy(),
            scale=entity.scale.model_copy(),
            material=entity.material.model_copy() if entity.material else None,
            light_type=entity.light.light_type if entity.light else None,
            light_color=entity.light.color if entity.light else None,
            light_intensity=entity.light.intensity if entity.light else None,
            geometry=entity.geometry.model_copy() if entity.geometry else None,
        )


class FogSpec(BaseModel):
    color: HexColor
    near: float = 10.0
    far: float = 50.0


class Environment(BaseModel):
    """Global scene environment, mutated by environment commands."""

    background_color: HexColor = "#f0f4ff"
    fog: Optional[FogSpec] = None


class CameraState(BaseModel):
    position: Vector3 = Field(default_factory=lambda: Vector3(x=15.0, y=12.0, z=15.0))
    target: Vector3 = Field(default_factory=Vector3)
