"""Scene Commands — the closed set of mutations the agent may propose.

A proposed command arrives as an untyped ``Command`` envelope
(``{"action": ..., "params": {...}}``). At execution time the envelope is
validated into exactly one member of the ``SceneCommand`` tagged union,
discriminated on ``action``. Anything that does not validate is rejected
before it reaches the scene store.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from scene_agent.models.scene import HexColor, Vector2, Vector3


class Command(BaseModel):
    """Untyped command envelope as proposed by the model."""

    action: str
    params: Dict[str, Any] = {}


# --- Primitives ---

class CreateBox(BaseModel):
    action: Literal["createBox"] = "createBox"
    position: Vector3 = Field(default_factory=Vector3)
    size: Vector3 = Field(default_factory=lambda: Vector3(x=1.0, y=1.0, z=1.0))
    color: HexColor = "#888888"
    name: Optional[str] = None


class CreateSphere(BaseModel):
    action: Literal["createSphere"] = "createSphere"
    position: Vector3 = Field(default_factory=Vector3)
    radius: float = Field(gt=0, default=0.5)
    color: HexColor = "#888888"
    name: Optional[str] = None


class CreateCylinder(BaseModel):
    action: Literal["createCylinder"] = "createCylinder"
    position: Vector3 = Field(default_factory=Vector3)
    radius: float = Field(gt=0, default=0.5)
    height: float = Field(gt=0, default=1.0)
    color: HexColor = "#888888"
    name: Optional[str] = None


class CreatePlane(BaseModel):
    action: Literal["createPlane"] = "createPlane"
    position: Vector3 = Field(default_factory=Vector3)
    size: Vector2 = Field(default_factory=lambda: Vector2(x=10.0, y=10.0))
    color: HexColor = "#444444"
    name: Optional[str] = None


class CreateCone(BaseModel):
    action: Literal["createCone"] = "createCone"
    position: Vector3 = Field(default_factory=Vector3)
    radius: float = Field(gt=0, default=0.5)
    height: float = Field(gt=0, default=1.0)
    color: HexColor = "#888888"
    name: Optional[str] = None


# --- Lighting ---

class AddPointLight(BaseModel):
    action: Literal["addPointLight"] = "addPointLight"
    position: Vector3 = Field(default_factory=lambda: Vector3(x=0.0, y=5.0, z=0.0))
    color: HexColor = "#ffffff"
    intensity: float = Field(ge=0, default=1.0)
    name: Optional[str] = None


class AddDirectionalLight(BaseModel):
    action: Literal["addDirectionalLight"] = "addDirectionalLight"
    position: Vector3 = Field(default_factory=lambda: Vector3(x=5.0, y=10.0, z=5.0))
    color: HexColor = "#ffffff"
    intensity: float = Field(ge=0, default=1.0)
    name: Optional[str] = None


# --- Modifications ---

class SetMaterial(BaseModel):
    action: Literal["setMaterial"] = "setMaterial"
    objectId: str
    color: Optional[HexColor] = None
    metalness: Optional[float] = Field(ge=0, le=1, default=None)
    roughness: Optional[float] = Field(ge=0, le=1, default=None)
    emissive: Optional[HexColor] = None
    emissiveIntensity: Optional[float] = Field(ge=0, default=None)


class MoveObject(BaseModel):
    action: Literal["moveObject"] = "moveObject"
    objectId: str
    position: Vector3


class RotateObject(BaseModel):
    action: Literal["rotateObject"] = "rotateObject"
    objectId: str
    rotation: Vector3                       # Radians


class ScaleObject(BaseModel):
    action: Literal["scaleObject"] = "scaleObject"
    objectId: str
    scale: Vector3


class DeleteObject(BaseModel):
    action: Literal["deleteObject"] = "deleteObject"
    objectId: str


# --- Environment ---

class SetBackgroundColor(BaseModel):
    action: Literal["setBackgroundColor"] = "setBackgroundColor"
    color: HexColor


class AddFog(BaseModel):
    action: Literal["addFog"] = "addFog"
    color: HexColor
    near: float = Field(ge=0, default=10.0)
    far: float = Field(gt=0, default=50.0)


# --- Completion sentinel ---

class Complete(BaseModel):
    action: Literal["complete"] = "complete"
    summary: Optional[str] = None


SceneCommand = Annotated[
    Union[
        CreateBox,
        CreateSphere,
        CreateCylinder,
        CreatePlane,
        CreateCone,
        AddPointLight,
        AddDirectionalLight,
        SetMaterial,
        MoveObject,
        RotateObject,
        ScaleObject,
        DeleteObject,
        SetBackgroundColor,
        AddFog,
        Complete,
    ],
    Field(discriminator="action"),
]

SCENE_COMMAND_ADAPTER: TypeAdapter = TypeAdapter(SceneCommand)

COMPLETE_ACTION = "complete"

SUPPORTED_ACTIONS = (
    "createBox",
    "createSphere",
    "createCylinder",
    "createPlane",
    "createCone",
    "addPointLight",
    "addDirectionalLight",
    "setMaterial",
    "moveObject",
    "rotateObject",
    "scaleObject",
    "deleteObject",
    "setBackgroundColor",
    "addFog",
    COMPLETE_ACTION,
)


def parse_scene_command(command: Command):
    """
    Validate an envelope into its typed payload.

    Raises pydantic.ValidationError when the params do not fit the
    action's contract. Callers check ``action in SUPPORTED_ACTIONS`` first.
    """
    payload = dict(command.params or {})
    payload["action"] = command.action
    return SCENE_COMMAND_ADAPTER.validate_python(payload)
