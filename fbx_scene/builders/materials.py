"""Material registry: shading model dispatch, parameters and texture channels."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, NamedTuple, Optional

from ..core.catalog import FBXObject
from ..models import (
    LambertMaterial,
    Material,
    PhongMaterial,
    Texture,
    TextureEncoding,
    TextureMapping,
)
from ..utils import double3_to_tuple, resolve_enum_value

if TYPE_CHECKING:  # pragma: no cover
    from ..core.loader import ParseContext

logger = logging.getLogger(__name__)


class ShadingModel(Enum):
    PHONG = "phong"
    LAMBERT = "lambert"


_MATERIAL_CLASSES = {
    ShadingModel.PHONG: PhongMaterial,
    ShadingModel.LAMBERT: LambertMaterial,
}


class Channel(NamedTuple):
    """Where a texture connected under a given relationship label ends up."""

    parameter: str
    srgb: bool = False
    mapping: Optional[TextureMapping] = None
    transparent: bool = False


CHANNELS: Dict[str, Channel] = {
    "Bump": Channel("bump_map"),
    "Maya|TEX_ao_map": Channel("ao_map"),
    "DiffuseColor": Channel("map", srgb=True),
    "Maya|TEX_color_map": Channel("map", srgb=True),
    "DisplacementColor": Channel("displacement_map"),
    "EmissiveColor": Channel("emissive_map", srgb=True),
    "NormalMap": Channel("normal_map"),
    "Maya|TEX_normal_map": Channel("normal_map"),
    "ReflectionColor": Channel("env_map", srgb=True, mapping=TextureMapping.EQUIRECTANGULAR_REFLECTION),
    "SpecularColor": Channel("specular_map", srgb=True),
    "TransparentColor": Channel("alpha_map", transparent=True),
    "TransparencyFactor": Channel("alpha_map", transparent=True),
}

_COLOR_TYPES = ("Color", "ColorRGB")


def _shading_model(node: FBXObject) -> ShadingModel:
    raw = node.child_value("ShadingModel")
    if raw is None:
        raw = node.prop("ShadingModel", "")
    try:
        return resolve_enum_value(ShadingModel, str(raw).lower())
    except ValueError:
        logger.warning('Unknown material type "%s". Defaulting to a Phong material.', raw)
        return ShadingModel.PHONG


def _get_texture(context: "ParseContext", textures: Dict[int, Texture], texture_id: int) -> Optional[Texture]:
    if texture_id in context.catalog.layered_textures:
        logger.warning("Layered textures are not supported. Discarding all but first layer.")
        layers = context.graph.require(texture_id).children
        if not layers:
            return None
        texture_id = layers[0].id
    return textures.get(texture_id)


def parse_parameters(
    context: "ParseContext", node: FBXObject, textures: Dict[int, Texture]
) -> Dict[str, Any]:
    """Flatten the scalar properties and texture channels of one material."""

    parameters: Dict[str, Any] = {}
    properties = node.properties

    if node.has("BumpFactor"):
        parameters["bump_scale"] = float(node.prop("BumpFactor"))

    if node.has("Diffuse"):
        parameters["color"] = double3_to_tuple(node.prop("Diffuse"))
    elif node.has("DiffuseColor") and properties["DiffuseColor"].type in _COLOR_TYPES:
        parameters["color"] = double3_to_tuple(node.prop("DiffuseColor"))

    if node.has("DisplacementFactor"):
        parameters["displacement_scale"] = float(node.prop("DisplacementFactor"))

    if node.has("Emissive"):
        parameters["emissive"] = double3_to_tuple(node.prop("Emissive"))
    elif node.has("EmissiveColor") and properties["EmissiveColor"].type in _COLOR_TYPES:
        parameters["emissive"] = double3_to_tuple(node.prop("EmissiveColor"))

    if node.has("EmissiveFactor"):
        parameters["emissive_intensity"] = float(node.prop("EmissiveFactor"))

    if node.has("Opacity"):
        parameters["opacity"] = float(node.prop("Opacity"))
        if parameters["opacity"] < 1.0:
            parameters["transparent"] = True

    if node.has("ReflectionFactor"):
        parameters["reflectivity"] = float(node.prop("ReflectionFactor"))

    if node.has("Shininess"):
        parameters["shininess"] = float(node.prop("Shininess"))

    if node.has("Specular"):
        parameters["specular"] = double3_to_tuple(node.prop("Specular"))
    elif node.has("SpecularColor") and properties["SpecularColor"].type == "Color":
        parameters["specular"] = double3_to_tuple(node.prop("SpecularColor"))

    for child in context.graph.children(node.id):
        channel = CHANNELS.get(child.relationship) if child.relationship else None
        if channel is None:
            logger.warning("%s map is not supported, skipping texture.", child.relationship)
            continue

        texture = _get_texture(context, textures, child.id)
        parameters[channel.parameter] = texture
        if texture is not None:
            if channel.srgb:
                texture.encoding = TextureEncoding.SRGB
            if channel.mapping is not None:
                texture.mapping = channel.mapping
        if channel.transparent:
            parameters["transparent"] = True

    return parameters


def parse_material(
    context: "ParseContext", node: FBXObject, textures: Dict[int, Texture]
) -> Optional[Material]:
    # Materials nothing connects to are not materialised.
    if node.id not in context.graph:
        return None

    shading = _shading_model(node)
    material = _MATERIAL_CLASSES[shading](name=node.attr_name, id=node.id)
    material.set_values(parse_parameters(context, node, textures))
    return material


def parse_materials(context: "ParseContext", textures: Dict[int, Texture]) -> Dict[int, Material]:
    materials: Dict[int, Material] = {}
    for material_id, node in context.catalog.materials.items():
        material = parse_material(context, node, textures)
        if material is not None:
            materials[material_id] = material
    logger.debug("Built %d materials", len(materials))
    return materials
