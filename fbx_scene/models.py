"""Domain models produced by the scene reconstructor."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .core.transform import TransformData

Color = Tuple[float, float, float]
Vector3 = Tuple[float, float, float]

WHITE: Color = (1.0, 1.0, 1.0)


def _identity() -> np.ndarray:
    return np.identity(4)


def hex_to_color(value: int) -> Color:
    return (((value >> 16) & 0xFF) / 255.0, ((value >> 8) & 0xFF) / 255.0, (value & 0xFF) / 255.0)


class Wrapping(Enum):
    """Texture wrap modes, valued by their FBX ``WrapModeU/V`` codes."""

    REPEAT = 0
    CLAMP_TO_EDGE = 1


class TextureMapping(Enum):
    UV = "uv"
    EQUIRECTANGULAR_REFLECTION = "equirectangular_reflection"


class TextureEncoding(Enum):
    LINEAR = "linear"
    SRGB = "srgb"


@dataclass
class ImageHandle:
    """Decoded inline image data."""

    filename: str
    mime_type: str
    data: bytes = field(repr=False, default=b"")
    image: Any = field(repr=False, default=None)


@dataclass(eq=False)
class Texture:
    name: str = ""
    id: Optional[int] = None
    source: Union[str, ImageHandle, None] = None
    image: Optional[ImageHandle] = None
    wrap_s: Wrapping = Wrapping.REPEAT
    wrap_t: Wrapping = Wrapping.REPEAT
    repeat: Tuple[float, float] = (1.0, 1.0)
    mapping: TextureMapping = TextureMapping.UV
    encoding: TextureEncoding = TextureEncoding.LINEAR
    cross_origin: Optional[str] = None
    placeholder: bool = False


@dataclass(eq=False)
class Material:
    name: str = ""
    id: Optional[int] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    transparent: bool = False
    vertex_colors: bool = False
    skinning: bool = False
    morph_targets: bool = False

    shading = "base"

    def set_values(self, parameters: Dict[str, Any]) -> None:
        self.parameters.update(parameters)
        if "transparent" in parameters:
            self.transparent = bool(parameters["transparent"])

    @property
    def color(self) -> Optional[Color]:
        return self.parameters.get("color")

    def clone(self) -> "Material":
        duplicate = copy.copy(self)
        duplicate.parameters = dict(self.parameters)
        return duplicate


class PhongMaterial(Material):
    shading = "phong"


class LambertMaterial(Material):
    shading = "lambert"


class LineBasicMaterial(Material):
    shading = "line_basic"


@dataclass(eq=False)
class Geometry:
    """Non-indexed triangle (or line) buffers for one FBX Geometry object."""

    name: str = ""
    id: Optional[int] = None
    attributes: Dict[str, np.ndarray] = field(default_factory=dict)
    groups: List[Tuple[int, int, int]] = field(default_factory=list)
    morph_attributes: Dict[str, List[np.ndarray]] = field(default_factory=dict)
    morph_target_names: List[str] = field(default_factory=list)
    deformer: Any = field(default=None, repr=False)
    user_data: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def vertex_count(self) -> int:
        position = self.attributes.get("position")
        return 0 if position is None else len(position)

    @property
    def has_morph_positions(self) -> bool:
        return bool(self.morph_attributes.get("position"))


@dataclass(eq=False)
class Object3D:
    """Base scene node: a local matrix, a cached world matrix and children."""

    name: str = ""
    id: Optional[int] = None
    parent: Optional["Object3D"] = field(default=None, repr=False)
    children: List["Object3D"] = field(default_factory=list, repr=False)
    matrix: np.ndarray = field(default_factory=_identity, repr=False)
    matrix_world: np.ndarray = field(default_factory=_identity, repr=False)
    transform_data: Optional[TransformData] = field(default=None, repr=False)
    animations: List["AnimationClip"] = field(default_factory=list, repr=False)
    user_data: Dict[str, Any] = field(default_factory=dict, repr=False)

    def add(self, child: "Object3D") -> bool:
        """Attach ``child``, detaching it from its previous parent.

        Returns ``False`` (and changes nothing) when the attachment would create
        a cycle.
        """

        if child is self or child.is_ancestor_of(self):
            return False
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)
        return True

    def remove(self, child: "Object3D") -> None:
        if child in self.children:
            self.children.remove(child)
            child.parent = None

    def is_ancestor_of(self, other: "Object3D") -> bool:
        current = other.parent
        while current is not None:
            if current is self:
                return True
            current = current.parent
        return False

    def walk(self) -> Iterator["Object3D"]:
        yield self
        for child in list(self.children):
            yield from child.walk()

    @property
    def position(self) -> np.ndarray:
        return self.matrix[:3, 3]

    def apply_matrix(self, matrix: np.ndarray) -> None:
        self.matrix = np.asarray(matrix, dtype=float) @ self.matrix

    def update_world_matrix(self) -> None:
        if self.parent is None:
            self.matrix_world = self.matrix.copy()
        else:
            self.matrix_world = self.parent.matrix_world @ self.matrix

    def look_at(self, target: Sequence[float], up: Sequence[float] = (0.0, 1.0, 0.0)) -> None:
        """Rotate the node so it faces ``target`` (cameras and lights look down -Z)."""

        self.update_world_matrix()
        position = self.matrix_world[:3, 3]
        target = np.asarray(target, dtype=float)
        if isinstance(self, (Camera, Light)):
            rotation = _look_rotation(position, target, np.asarray(up, dtype=float))
        else:
            rotation = _look_rotation(target, position, np.asarray(up, dtype=float))

        if self.parent is not None:
            rotation = extract_rotation(self.parent.matrix_world).T @ rotation

        scale = np.linalg.norm(self.matrix[:3, :3], axis=0)
        self.matrix[:3, :3] = rotation * scale


def extract_rotation(matrix: np.ndarray) -> np.ndarray:
    """Return the rotation part of ``matrix`` with column scales divided out."""

    basis = np.array(matrix[:3, :3], dtype=float)
    scale = np.linalg.norm(basis, axis=0)
    scale[scale == 0] = 1.0
    return basis / scale


def _look_rotation(eye: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    z = eye - target
    if not z.any():
        z = np.array([0.0, 0.0, 1.0])
    z = z / np.linalg.norm(z)
    x = np.cross(up, z)
    if not x.any():
        z = z + (np.array([0.0001, 0.0, 0.0]) if abs(up[2]) == 1 else np.array([0.0, 0.0, 0.0001]))
        z = z / np.linalg.norm(z)
        x = np.cross(up, z)
    x = x / np.linalg.norm(x)
    y = np.cross(z, x)
    return np.column_stack((x, y, z))


@dataclass(eq=False, repr=False)
class Group(Object3D):
    pass


@dataclass(eq=False, repr=False)
class Bone(Object3D):
    pass


@dataclass(eq=False)
class Skeleton:
    bones: List[Bone]
    bone_inverses: List[np.ndarray] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if not self.bone_inverses:
            self.calculate_inverses()

    def calculate_inverses(self) -> None:
        self.bone_inverses = [_safe_inverse(bone.matrix_world) for bone in self.bones]


def _safe_inverse(matrix: np.ndarray) -> np.ndarray:
    try:
        return np.linalg.inv(matrix)
    except np.linalg.LinAlgError:
        return np.zeros((4, 4))


MaterialSlot = Union[Material, List[Material]]


@dataclass(eq=False, repr=False)
class Mesh(Object3D):
    geometry: Geometry = field(default_factory=Geometry)
    material: Optional[MaterialSlot] = None

    @property
    def materials(self) -> List[Material]:
        if self.material is None:
            return []
        if isinstance(self.material, list):
            return list(self.material)
        return [self.material]


@dataclass(eq=False, repr=False)
class SkinnedMesh(Mesh):
    skeleton: Optional[Skeleton] = None
    bind_matrix: np.ndarray = field(default_factory=_identity)
    bind_matrix_inverse: np.ndarray = field(default_factory=_identity)

    def bind(self, skeleton: Skeleton, bind_matrix: Optional[np.ndarray] = None) -> None:
        self.skeleton = skeleton
        self.bind_matrix = _identity() if bind_matrix is None else np.array(bind_matrix, dtype=float)
        self.bind_matrix_inverse = _safe_inverse(self.bind_matrix)

    def normalize_skin_weights(self) -> None:
        weights = self.geometry.attributes.get("skinWeight")
        if weights is None or not len(weights):
            return
        weights = np.asarray(weights, dtype=float)
        totals = weights.sum(axis=1, keepdims=True)
        normalized = np.divide(weights, totals, out=np.zeros_like(weights), where=totals != 0)
        # Vertices without influences follow the first bone.
        normalized[totals[:, 0] == 0, 0] = 1.0
        self.geometry.attributes["skinWeight"] = normalized


@dataclass(eq=False, repr=False)
class Line(Object3D):
    geometry: Optional[Geometry] = None
    material: Optional[Material] = None


@dataclass(eq=False, repr=False)
class Camera(Object3D):
    near: float = 1.0
    far: float = 1000.0


@dataclass(eq=False, repr=False)
class PerspectiveCamera(Camera):
    fov: float = 45.0
    aspect: float = 1.0
    film_gauge: float = 35.0

    @property
    def film_height(self) -> float:
        return self.film_gauge / max(self.aspect, 1.0)

    def set_focal_length(self, focal_length: float) -> None:
        """Derive the vertical field of view from a focal length in millimetres."""

        slope = 0.5 * self.film_height / focal_length
        self.fov = math.degrees(2.0 * math.atan(slope))


@dataclass(eq=False, repr=False)
class OrthographicCamera(Camera):
    left: float = -1.0
    right: float = 1.0
    top: float = 1.0
    bottom: float = -1.0


@dataclass(eq=False, repr=False)
class Light(Object3D):
    color: Color = WHITE
    intensity: float = 1.0
    cast_shadow: bool = False


@dataclass(eq=False, repr=False)
class PointLight(Light):
    distance: float = 0.0
    decay: float = 1.0


@dataclass(eq=False, repr=False)
class DirectionalLight(Light):
    target: Object3D = field(default_factory=Object3D)


@dataclass(eq=False, repr=False)
class SpotLight(Light):
    distance: float = 0.0
    angle: float = math.pi / 3
    penumbra: float = 0.0
    decay: float = 1.0
    target: Object3D = field(default_factory=Object3D)


@dataclass(eq=False, repr=False)
class AmbientLight(Light):
    pass


@dataclass
class KeyCurve:
    """Raw keys of one animated channel (``d|X``, ``d|DeformPercent``, ...)."""

    model_id: int
    node_name: str
    property: str
    channel: str
    times: np.ndarray = field(repr=False)
    values: np.ndarray = field(repr=False)


@dataclass
class AnimationClip:
    name: str
    duration: float = 0.0
    curves: List[KeyCurve] = field(default_factory=list)
