"""Builders turning catalog objects into scene entities."""

from .deformers import Deformers, MorphTargetSet, RawBone, RawMorphTarget, RawSkeleton, parse_deformers
from .materials import CHANNELS, ShadingModel, parse_materials
from .models import CameraProjection, LightType, ModelType, parse_models
from .scene import SceneReconstructor
from .textures import parse_images, parse_textures

__all__ = [
    "CHANNELS",
    "CameraProjection",
    "Deformers",
    "LightType",
    "ModelType",
    "MorphTargetSet",
    "RawBone",
    "RawMorphTarget",
    "RawSkeleton",
    "SceneReconstructor",
    "ShadingModel",
    "parse_deformers",
    "parse_images",
    "parse_materials",
    "parse_models",
    "parse_textures",
]
