"""Raw skeletons and morph targets read from ``Deformer`` objects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

import numpy as np

from ..core.catalog import FBXObject
from ..core.connections import ConnectionEntry
from ..models import Bone

if TYPE_CHECKING:  # pragma: no cover
    from ..core.loader import ParseContext

logger = logging.getLogger(__name__)


@dataclass
class RawBone:
    """One ``Cluster``: the vertices a bone moves and its bind pose."""

    id: int
    indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64), repr=False)
    weights: np.ndarray = field(default_factory=lambda: np.zeros(0), repr=False)
    transform_link: np.ndarray = field(default_factory=lambda: np.identity(4), repr=False)


@dataclass
class RawSkeleton:
    """A ``Skin`` deformer; ``bones`` is filled index-aligned while models are built."""

    id: int
    raw_bones: List[RawBone] = field(default_factory=list)
    bones: List[Optional[Bone]] = field(default_factory=list, repr=False)
    geometry_id: Optional[int] = None

    def __post_init__(self) -> None:
        if len(self.bones) < len(self.raw_bones):
            self.bones.extend([None] * (len(self.raw_bones) - len(self.bones)))


@dataclass
class RawMorphTarget:
    """A ``BlendShapeChannel`` and the ``Shape`` geometry holding its deltas."""

    id: int
    name: str
    initial_weight: float = 0.0
    full_weights: np.ndarray = field(default_factory=lambda: np.zeros(0), repr=False)
    geometry_id: Optional[int] = None


@dataclass
class MorphTargetSet:
    """A ``BlendShape`` deformer grouping its channels."""

    id: int
    raw_targets: List[RawMorphTarget] = field(default_factory=list)


@dataclass
class Deformers:
    skeletons: Dict[int, RawSkeleton] = field(default_factory=dict)
    morph_targets: Dict[int, MorphTargetSet] = field(default_factory=dict)


def _column_major(values: Optional[np.ndarray]) -> np.ndarray:
    if values is None or len(values) != 16:
        return np.identity(4)
    return np.asarray(values, dtype=float).reshape(4, 4).T


def parse_skeleton(
    relationships: ConnectionEntry, deformer_nodes: Dict[int, FBXObject], skin_id: int
) -> RawSkeleton:
    raw_bones: List[RawBone] = []
    for child in relationships.children:
        cluster = deformer_nodes.get(child.id)
        if cluster is None or cluster.attr_type != "Cluster":
            continue

        raw_bone = RawBone(id=child.id, transform_link=_column_major(cluster.array("TransformLink")))
        indices = cluster.array("Indexes")
        if indices is not None:
            raw_bone.indices = indices.astype(np.int64)
            weights = cluster.array("Weights")
            raw_bone.weights = np.zeros(len(indices)) if weights is None else weights.astype(float)
        raw_bones.append(raw_bone)

    return RawSkeleton(id=skin_id, raw_bones=raw_bones)


def _unlabelled_child(context: "ParseContext", object_id: int) -> Optional[int]:
    for edge in context.graph.children(object_id):
        if edge.relationship is None:
            return edge.id
    return None


def parse_morph_targets(
    context: "ParseContext", relationships: ConnectionEntry, deformer_nodes: Dict[int, FBXObject]
) -> List[RawMorphTarget]:
    raw_targets: List[RawMorphTarget] = []
    for child in relationships.children:
        channel = deformer_nodes.get(child.id)
        if channel is None or channel.attr_type != "BlendShapeChannel":
            continue

        initial_weight = channel.child_value("DeformPercent")
        if initial_weight is None:
            initial_weight = channel.prop("DeformPercent", 0.0)
        full_weights = channel.array("FullWeights")

        geometry_id = _unlabelled_child(context, channel.id)
        if geometry_id is None:
            logger.warning("Morph target %r has no shape geometry, skipping it.", channel.attr_name)
            continue

        raw_targets.append(
            RawMorphTarget(
                id=channel.id,
                name=channel.attr_name,
                initial_weight=float(initial_weight),
                full_weights=np.zeros(0) if full_weights is None else full_weights.astype(float),
                geometry_id=geometry_id,
            )
        )
    return raw_targets


def parse_deformers(context: "ParseContext") -> Deformers:
    """Collect every ``Skin`` and ``BlendShape`` deformer of the file."""

    deformers = Deformers()
    deformer_nodes = context.catalog.deformers

    for deformer_id, node in deformer_nodes.items():
        relationships = context.graph.get(deformer_id)

        if node.attr_type == "Skin":
            skeleton = parse_skeleton(relationships, deformer_nodes, deformer_id)
            if len(relationships.parents) > 1:
                logger.warning("Skeleton attached to more than one geometry is not supported.")
            if relationships.parents:
                skeleton.geometry_id = relationships.parents[0].id
            deformers.skeletons[deformer_id] = skeleton

        elif node.attr_type == "BlendShape":
            morph_set = MorphTargetSet(
                id=deformer_id,
                raw_targets=parse_morph_targets(context, relationships, deformer_nodes),
            )
            if len(relationships.parents) > 1:
                logger.warning("Morph target attached to more than one geometry is not supported.")
            deformers.morph_targets[deformer_id] = morph_set

    logger.debug(
        "Found %d skeletons and %d morph target sets",
        len(deformers.skeletons),
        len(deformers.morph_targets),
    )
    return deformers
