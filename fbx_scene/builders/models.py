"""Model registry: turn every ``Model`` object into exactly one scene node."""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

from ..core.catalog import FBXObject
from ..core.connections import ConnectionEntry
from ..core.transform import TransformData
from ..models import (
    Bone,
    DirectionalLight,
    Geometry,
    Group,
    Line,
    LineBasicMaterial,
    Material,
    Mesh,
    Object3D,
    OrthographicCamera,
    PerspectiveCamera,
    PhongMaterial,
    PointLight,
    SkinnedMesh,
    SpotLight,
    hex_to_color,
)
from ..utils import double3_to_tuple, resolve_enum_value, sanitize_node_name
from .deformers import RawSkeleton

if TYPE_CHECKING:  # pragma: no cover
    from ..core.loader import ParseContext

logger = logging.getLogger(__name__)

DEFAULT_MATERIAL_COLOR = 0xCCCCCC
CURVE_COLOR = 0x3300FF


class ModelType(Enum):
    CAMERA = "Camera"
    LIGHT = "Light"
    MESH = "Mesh"
    NURBS_CURVE = "NurbsCurve"
    LIMB_NODE = "LimbNode"
    ROOT = "Root"
    NULL = "Null"


class LightType(Enum):
    POINT = 0
    DIRECTIONAL = 1
    SPOT = 2


class CameraProjection(Enum):
    PERSPECTIVE = 0
    ORTHOGRAPHIC = 1


def _model_type(node: FBXObject) -> ModelType:
    return resolve_enum_value(ModelType, node.attr_type, default=ModelType.NULL)


def _node_attribute(context: "ParseContext", relationships: ConnectionEntry) -> Optional[FBXObject]:
    """First ``NodeAttribute`` child in connection order."""

    attributes = context.catalog.node_attributes
    for child in relationships.children:
        attribute = attributes.get(child.id)
        if attribute is not None:
            return attribute
    return None


def build_bone(
    relationships: ConnectionEntry, skeletons: Dict[int, RawSkeleton], model_id: int, name: str
) -> Optional[Bone]:
    """Create joint nodes for every skeleton that claims this model as a cluster link.

    When several skeletons share the bone, each later joint wraps the earlier
    one as its child so every skeleton holds its own node.
    """

    bone: Optional[Bone] = None
    for parent in relationships.parents:
        for skeleton in skeletons.values():
            for index, raw_bone in enumerate(skeleton.raw_bones):
                if raw_bone.id != parent.id:
                    continue
                sub_bone = bone
                bone = Bone(name=sanitize_node_name(name) if name else "", id=model_id)
                bone.matrix_world = raw_bone.transform_link.copy()
                skeleton.bones[index] = bone
                if sub_bone is not None:
                    bone.add(sub_bone)
    return bone


def create_camera(context: "ParseContext", relationships: ConnectionEntry) -> Object3D:
    attribute = _node_attribute(context, relationships)
    if attribute is None:
        return Object3D()

    projection_value = int(attribute.prop("CameraProjectionType", 0))
    near = 1.0
    if attribute.has("NearPlane"):
        near = float(attribute.prop("NearPlane")) / 1000
    far = 1000.0
    if attribute.has("FarPlane"):
        far = float(attribute.prop("FarPlane")) / 1000

    width, height = context.options.viewport_size
    if attribute.has("AspectWidth") and attribute.has("AspectHeight"):
        width = float(attribute.prop("AspectWidth"))
        height = float(attribute.prop("AspectHeight"))
    aspect = width / height if height else 1.0

    fov = float(attribute.prop("FieldOfView", 45.0))
    focal_length = attribute.prop("FocalLength")

    try:
        projection = resolve_enum_value(CameraProjection, projection_value)
    except ValueError:
        logger.warning("Unknown camera type %s, defaulting to a perspective camera.", projection_value)
        projection = CameraProjection.PERSPECTIVE

    if projection is CameraProjection.ORTHOGRAPHIC:
        return OrthographicCamera(
            left=-width / 2, right=width / 2, top=height / 2, bottom=-height / 2, near=near, far=far
        )

    camera = PerspectiveCamera(fov=fov, aspect=aspect, near=near, far=far)
    if focal_length is not None:
        camera.set_focal_length(float(focal_length))
    return camera


def create_light(context: "ParseContext", relationships: ConnectionEntry) -> Object3D:
    attribute = _node_attribute(context, relationships)
    if attribute is None:
        return Object3D()

    type_value = int(attribute.prop("LightType", 0))
    color = double3_to_tuple(attribute.prop("Color")) if attribute.has("Color") else (1.0, 1.0, 1.0)

    intensity = 1.0
    if attribute.has("Intensity"):
        intensity = float(attribute.prop("Intensity")) / 100
    if attribute.has("CastLightOnObject") and int(attribute.prop("CastLightOnObject")) == 0:
        intensity = 0.0

    distance = 0.0
    if attribute.has("FarAttenuationEnd"):
        if attribute.has("EnableFarAttenuation") and int(attribute.prop("EnableFarAttenuation")) == 0:
            distance = 0.0
        else:
            distance = float(attribute.prop("FarAttenuationEnd"))
    decay = 1.0

    try:
        light_type = resolve_enum_value(LightType, type_value)
    except ValueError:
        logger.warning("Unknown light type %s, defaulting to a point light.", type_value)
        light_type = None

    if light_type is LightType.POINT:
        light = PointLight(color=color, intensity=intensity, distance=distance, decay=decay)
    elif light_type is LightType.DIRECTIONAL:
        light = DirectionalLight(color=color, intensity=intensity)
    elif light_type is LightType.SPOT:
        angle = math.pi / 3
        if attribute.has("InnerAngle"):
            angle = math.radians(float(attribute.prop("InnerAngle")))
        penumbra = 0.0
        if attribute.has("OuterAngle"):
            # Outer angle in radians read as a penumbra fraction.
            penumbra = math.radians(float(attribute.prop("OuterAngle")))
            penumbra = max(penumbra, 1)
        light = SpotLight(
            color=color, intensity=intensity, distance=distance, angle=angle, penumbra=penumbra, decay=decay
        )
    else:
        light = PointLight(color=color, intensity=intensity)

    if attribute.has("CastShadows") and int(attribute.prop("CastShadows")) == 1:
        light.cast_shadow = True
    return light


def create_mesh(
    relationships: ConnectionEntry, geometries: Dict[int, Geometry], materials: Dict[int, Material]
) -> Mesh:
    geometry: Optional[Geometry] = None
    assigned: List[Material] = []

    for child in relationships.children:
        if child.id in geometries:
            geometry = geometries[child.id]
        if child.id in materials:
            assigned.append(materials[child.id])

    if not assigned:
        assigned.append(PhongMaterial(parameters={"color": hex_to_color(DEFAULT_MATERIAL_COLOR)}))
    material = list(assigned) if len(assigned) > 1 else assigned[0]

    if geometry is None:
        logger.warning("Mesh model without geometry, using an empty one.")
        geometry = Geometry()

    if "color" in geometry.attributes:
        for entry in assigned:
            entry.vertex_colors = True

    if geometry.deformer is not None:
        for entry in assigned:
            entry.skinning = True
        skinned = SkinnedMesh(geometry=geometry, material=material)
        skinned.normalize_skin_weights()
        return skinned

    return Mesh(geometry=geometry, material=material)


def create_curve(relationships: ConnectionEntry, geometries: Dict[int, Geometry]) -> Line:
    geometry: Optional[Geometry] = None
    for child in relationships.children:
        if child.id in geometries:
            geometry = geometries[child.id]

    # FBX does not store curve materials.
    material = LineBasicMaterial(parameters={"color": hex_to_color(CURVE_COLOR), "linewidth": 1})
    return Line(geometry=geometry, material=material)


def build_model(
    context: "ParseContext",
    node: FBXObject,
    skeletons: Dict[int, RawSkeleton],
    geometries: Dict[int, Geometry],
    materials: Dict[int, Material],
) -> Object3D:
    relationships = context.graph.get(node.id)

    model: Optional[Object3D] = build_bone(relationships, skeletons, node.id, node.attr_name)
    if model is None:
        model_type = _model_type(node)
        if model_type is ModelType.CAMERA:
            model = create_camera(context, relationships)
        elif model_type is ModelType.LIGHT:
            model = create_light(context, relationships)
        elif model_type is ModelType.MESH:
            model = create_mesh(relationships, geometries, materials)
        elif model_type is ModelType.NURBS_CURVE:
            model = create_curve(relationships, geometries)
        elif model_type in (ModelType.LIMB_NODE, ModelType.ROOT):
            model = Bone()
        else:
            model = Group()

        model.name = sanitize_node_name(node.attr_name) if node.attr_name else ""
        model.id = node.id

    model.transform_data = TransformData.from_model(node)
    return model


def parse_models(
    context: "ParseContext",
    skeletons: Dict[int, RawSkeleton],
    geometries: Dict[int, Geometry],
    materials: Dict[int, Material],
) -> Dict[int, Object3D]:
    models: Dict[int, Object3D] = {}
    for model_id, node in context.catalog.models.items():
        models[model_id] = build_model(context, node, skeletons, geometries, materials)
    logger.debug("Built %d models", len(models))
    return models
