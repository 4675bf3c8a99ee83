"""Default animation parser: raw key curves grouped into one clip per stack.

Curves are read as stored (``KeyTime`` / ``KeyValueFloat``); no interpolation
or track construction happens here.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, List, Optional, Tuple

import numpy as np

from ..core.catalog import FBXObject
from ..models import AnimationClip, KeyCurve
from ..utils import sanitize_node_name

if TYPE_CHECKING:  # pragma: no cover
    from ..core.loader import ParseContext

logger = logging.getLogger(__name__)

FBX_TICKS_PER_SECOND = 46186158000

_CURVE_NODE_RE = re.compile(r"^(?:T|R|S|DeformPercent)$")
_CHANNELS = (("X", "x"), ("Y", "y"), ("Z", "z"))


def convert_fbx_time_to_seconds(ticks: np.ndarray) -> np.ndarray:
    return np.asarray(ticks, dtype=np.float64) / FBX_TICKS_PER_SECOND


def _channel(relationship: Optional[str]) -> Optional[str]:
    if not relationship:
        return None
    if relationship == "d|DeformPercent":
        return "morph"
    for suffix, channel in _CHANNELS:
        if relationship.endswith(suffix):
            return channel
    return None


class KeyframeAnimationParser:
    """Produce :class:`AnimationClip` objects from ``AnimationStack`` objects."""

    def parse(self, context: "ParseContext") -> List[AnimationClip]:
        catalog = context.catalog
        if not catalog.animation_curves:
            return []

        clips: List[AnimationClip] = []
        for stack_id, stack in catalog.animation_stacks.items():
            layers = [edge for edge in context.graph.children(stack_id) if edge.id in catalog.animation_layers]
            if len(layers) > 1:
                logger.warning(
                    "Animation stack %r has multiple layers, ignoring all but the first.", stack.attr_name
                )

            clip = AnimationClip(name=stack.attr_name)
            if layers:
                clip.curves = self.parse_layer(context, layers[0].id)
            clip.duration = max((float(curve.times[-1]) for curve in clip.curves if len(curve.times)), default=0.0)
            clips.append(clip)

        logger.debug("Parsed %d animation clips", len(clips))
        return clips

    def parse_layer(self, context: "ParseContext", layer_id: int) -> List[KeyCurve]:
        catalog = context.catalog
        curves: List[KeyCurve] = []

        for edge in context.graph.children(layer_id):
            curve_node = catalog.animation_curve_nodes.get(edge.id)
            if curve_node is None or not _CURVE_NODE_RE.match(curve_node.attr_name):
                continue

            target = self.resolve_target(context, curve_node)
            if target is None:
                logger.warning("Encountered an unused curve node %s.", curve_node.id)
                continue
            model_id, node_name, property_name = target

            for curve_edge in context.graph.children(curve_node.id):
                curve = catalog.animation_curves.get(curve_edge.id)
                channel = _channel(curve_edge.relationship)
                if curve is None or channel is None:
                    continue
                curves.append(self.read_curve(curve, model_id, node_name, property_name, channel))

        return curves

    def resolve_target(self, context: "ParseContext", curve_node: FBXObject) -> Optional[Tuple[int, str, str]]:
        """Return ``(model_id, node_name, property)`` animated by a curve node."""

        catalog = context.catalog
        graph = context.graph
        for parent in graph.parents(curve_node.id):
            if parent.relationship is None:
                continue

            model = catalog.models.get(parent.id)
            if model is not None:
                return model.id, sanitize_node_name(model.attr_name), parent.relationship

            channel = catalog.deformers.get(parent.id)
            if channel is None:
                continue
            # BlendShapeChannel -> BlendShape -> Geometry -> Model
            blend_shapes = graph.parents(channel.id)
            geometries = graph.parents(blend_shapes[0].id) if blend_shapes else []
            owners = graph.parents(geometries[0].id) if geometries else []
            for owner in owners:
                owner_model = catalog.models.get(owner.id)
                if owner_model is not None:
                    return owner_model.id, sanitize_node_name(owner_model.attr_name), channel.attr_name
        return None

    @staticmethod
    def read_curve(curve: FBXObject, model_id: int, node_name: str, property_name: str, channel: str) -> KeyCurve:
        times = curve.array("KeyTime")
        values = curve.array("KeyValueFloat")
        return KeyCurve(
            model_id=model_id,
            node_name=node_name,
            property=property_name,
            channel=channel,
            times=convert_fbx_time_to_seconds(times if times is not None else np.zeros(0)),
            values=np.zeros(0) if values is None else values.astype(np.float64),
        )
