"""Scene reconstruction: registries, hierarchy, bindings and the transform pass."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

import numpy as np

from ..core.transform import apply_transforms
from ..models import (
    AmbientLight,
    AnimationClip,
    Bone,
    Geometry,
    Group,
    Material,
    Mesh,
    Object3D,
    Skeleton,
    SkinnedMesh,
)
from ..utils import double3_to_tuple
from .deformers import Deformers, RawSkeleton, parse_deformers
from .materials import parse_materials
from .models import parse_models
from .textures import parse_images, parse_textures

if TYPE_CHECKING:  # pragma: no cover
    from ..core.loader import ParseContext

logger = logging.getLogger(__name__)


class SceneReconstructor:
    """Builds the scene root for one :class:`ParseContext`."""

    def __init__(self, context: "ParseContext") -> None:
        self.context = context
        self.root: Object3D = Group()
        self.models: Dict[int, Object3D] = {}
        self.geometries: Dict[int, Geometry] = {}
        self.materials: Dict[int, Material] = {}
        self.deformers = Deformers()

    def build(self) -> Object3D:
        context = self.context
        options = context.options

        images = parse_images(context)
        textures = parse_textures(context, images)
        self.materials = parse_materials(context, textures)
        self.deformers = parse_deformers(context)
        if options.geometry_parser is not None:
            self.geometries = options.geometry_parser.parse(context, self.deformers)
        self.models = parse_models(context, self.deformers.skeletons, self.geometries, self.materials)

        self.assemble_hierarchy()
        self.bind_skeletons()
        self.add_ambient_light()
        self.setup_morph_materials()
        apply_transforms(self.root)

        animations: List[AnimationClip] = []
        if options.animation_parser is not None:
            animations = options.animation_parser.parse(context)

        return self.collapse(animations)

    def assemble_hierarchy(self) -> None:
        graph = self.context.graph
        catalog = self.context.catalog

        for model_id, model in self.models.items():
            node = catalog.models.get(model_id)
            if node is not None and node.has("LookAtProperty"):
                self.set_look_at(model, model_id)

            for edge in graph.parents(model_id):
                parent = self.models.get(edge.id)
                if parent is None:
                    continue
                if not parent.add(model):
                    logger.warning(
                        "Ignoring parent link %s -> %s, it would create a cycle.", model_id, edge.id
                    )

            if model.parent is None:
                self.root.add(model)

    def set_look_at(self, model: Object3D, model_id: int) -> None:
        catalog = self.context.catalog
        for edge in self.context.graph.children(model_id):
            if edge.relationship != "LookAtProperty":
                continue
            target_node = catalog.models.get(edge.id)
            if target_node is None or not target_node.has("Lcl Translation"):
                continue

            position = np.array(double3_to_tuple(target_node.prop("Lcl Translation")))
            target: Optional[Object3D] = getattr(model, "target", None)
            if target is not None:
                target.matrix[:3, 3] = position
                self.root.add(target)
            else:
                model.look_at(position)

    def parse_bind_matrices(self) -> Dict[int, np.ndarray]:
        matrices: Dict[int, np.ndarray] = {}
        for pose in self.context.catalog.poses.values():
            if pose.attr_type != "BindPose":
                continue
            for pose_node in pose.children("PoseNode"):
                node_id = pose_node.first("Node")
                matrix = pose_node.first("Matrix")
                if node_id is None or matrix is None or node_id.value is None:
                    continue
                values = np.asarray(matrix.value, dtype=float)
                if values.size != 16:
                    logger.warning("Ignoring malformed bind pose matrix for node %s", node_id.value)
                    continue
                matrices[int(node_id.value)] = values.reshape(4, 4).T
        return matrices

    def _skeleton_bones(self, skeleton: RawSkeleton) -> List[Bone]:
        bones: List[Bone] = []
        for raw_bone, bone in zip(skeleton.raw_bones, skeleton.bones):
            if bone is None:
                logger.warning("Cluster %s has no bone model, using an unlinked bone.", raw_bone.id)
                bone = Bone()
                bone.matrix_world = raw_bone.transform_link.copy()
            bones.append(bone)
        return bones

    def bind_skeletons(self) -> None:
        graph = self.context.graph
        bind_matrices = self.parse_bind_matrices()

        for skeleton in self.deformers.skeletons.values():
            for parent in graph.get(skeleton.id).parents:
                if parent.id not in self.geometries:
                    continue
                for owner in graph.require(parent.id).parents:
                    model = self.models.get(owner.id)
                    if model is None:
                        continue
                    if not isinstance(model, SkinnedMesh):
                        logger.warning("Model %r owns a skinned geometry but is not skinned.", model.name)
                        continue
                    model.bind(Skeleton(self._skeleton_bones(skeleton)), bind_matrices.get(owner.id))

    def add_ambient_light(self) -> None:
        setting = self.context.catalog.global_settings.get("AmbientColor")
        if setting is None or setting.value is None:
            return
        color = double3_to_tuple(setting.value)
        if any(component != 0 for component in color):
            self.root.add(AmbientLight(color=color, intensity=1.0))

    def _meshes(self) -> List[Mesh]:
        return [node for node in self.root.walk() if isinstance(node, Mesh)]

    def setup_morph_materials(self) -> None:
        meshes = self._meshes()
        for mesh in meshes:
            if not mesh.geometry.has_morph_positions:
                continue
            if isinstance(mesh.material, list):
                for index, material in enumerate(mesh.material):
                    self._setup_morph_material(meshes, mesh, material, index)
            elif mesh.material is not None:
                self._setup_morph_material(meshes, mesh, mesh.material, None)

    @staticmethod
    def _setup_morph_material(
        meshes: List[Mesh], owner: Mesh, material: Material, index: Optional[int]
    ) -> None:
        shared = any(other is not owner and any(m is material for m in other.materials) for other in meshes)
        if not shared:
            material.morph_targets = True
            return

        cloned = material.clone()
        cloned.morph_targets = True
        if index is None:
            owner.material = cloned
        else:
            owner.material[index] = cloned

    def collapse(self, animations: List[AnimationClip]) -> Object3D:
        root = self.root
        if len(root.children) == 1 and isinstance(root.children[0], Group):
            child = root.children[0]
            root.remove(child)
            root = child
        root.animations = animations
        return root
