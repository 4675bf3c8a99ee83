"""Typed views over the ``Objects`` section of a decoded tree."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

import numpy as np

from .tree import FBXNode, FBXTree

logger = logging.getLogger(__name__)

_CLASS_PREFIX_RE = re.compile(r"^\w+::")


@dataclass(frozen=True)
class Property:
    """One ``P`` (or legacy ``Property``) record."""

    type: str
    type2: str
    flag: str
    value: Any


def _property_value(values: list) -> Any:
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return tuple(values)


def parse_properties(node: Optional[FBXNode]) -> Dict[str, Property]:
    """Collect ``Properties70`` / ``Properties60`` records of ``node`` by name."""

    properties: Dict[str, Property] = {}
    if node is None:
        return properties

    block = node.first("Properties70")
    if block is not None:
        for record in block.get_all("P"):
            props = record.properties
            if not props:
                continue
            padded = list(props[:4]) + [""] * (4 - len(props[:4]))
            properties[str(props[0])] = Property(
                type=str(padded[1]),
                type2=str(padded[2]),
                flag=str(padded[3]),
                value=_property_value(list(props[4:])),
            )

    legacy = node.first("Properties60")
    if legacy is not None:
        # Property: name, type, flag, values...
        for record in legacy.get_all("Property"):
            props = record.properties
            if not props:
                continue
            padded = list(props[:3]) + [""] * (3 - len(props[:3]))
            properties.setdefault(
                str(props[0]),
                Property(
                    type=str(padded[1]),
                    type2="",
                    flag=str(padded[2]),
                    value=_property_value(list(props[3:])),
                ),
            )

    return properties


def strip_class_prefix(name: str) -> str:
    return _CLASS_PREFIX_RE.sub("", name, count=1)


@dataclass
class FBXObject:
    """An entry of ``Objects``: ``Kind: id, "Class::name", "type" { ... }``."""

    id: int
    kind: str
    attr_name: str
    attr_type: str
    node: FBXNode
    properties: Dict[str, Property] = field(default_factory=dict)

    @classmethod
    def from_node(cls, node: FBXNode) -> Optional["FBXObject"]:
        props = node.properties
        if not props or isinstance(props[0], bool) or not isinstance(props[0], int):
            return None
        attr_name = strip_class_prefix(str(props[1])) if len(props) > 1 else ""
        attr_type = str(props[2]) if len(props) > 2 else ""
        return cls(
            id=props[0],
            kind=node.name,
            attr_name=attr_name,
            attr_type=attr_type,
            node=node,
            properties=parse_properties(node),
        )

    def has(self, name: str) -> bool:
        return name in self.properties

    def prop(self, name: str, default: Any = None) -> Any:
        entry = self.properties.get(name)
        return default if entry is None or entry.value is None else entry.value

    def child_value(self, name: str, default: Any = None) -> Any:
        child = self.node.first(name)
        if child is None or not child.properties:
            return default
        return child.properties[0]

    def has_child(self, name: str) -> bool:
        return name in self.node.children

    def array(self, name: str) -> Optional[np.ndarray]:
        value = self.child_value(name)
        if value is None:
            return None
        return np.asarray(value)

    def children(self, name: str) -> list:
        return self.node.get_all(name)


def decode_content(content: Any) -> bytes:
    """Return inline ``Content`` bytes; ASCII files carry them base64 encoded."""

    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    if isinstance(content, str) and content:
        try:
            return base64.b64decode(content)
        except (binascii.Error, ValueError):
            logger.warning("Ignoring malformed base64 image content")
    return b""


class ObjectCatalog:
    """Objects grouped by tag, each group keyed by object ID in file order."""

    def __init__(self, tree: FBXTree) -> None:
        self._groups: Dict[str, Dict[int, FBXObject]] = {}
        self._by_id: Dict[int, FBXObject] = {}

        section = tree.section("Objects")
        if section is not None:
            for node in section.iter_children():
                obj = FBXObject.from_node(node)
                if obj is None:
                    continue
                self._groups.setdefault(obj.kind, {})[obj.id] = obj
                self._by_id[obj.id] = obj

        settings = tree.section("GlobalSettings")
        self.global_settings: Dict[str, Property] = parse_properties(settings)

    def group(self, kind: str) -> Dict[int, FBXObject]:
        return self._groups.get(kind, {})

    def get(self, object_id: int) -> Optional[FBXObject]:
        return self._by_id.get(object_id)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._by_id

    def __iter__(self) -> Iterator[FBXObject]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def models(self) -> Dict[int, FBXObject]:
        return self.group("Model")

    @property
    def materials(self) -> Dict[int, FBXObject]:
        return self.group("Material")

    @property
    def textures(self) -> Dict[int, FBXObject]:
        return self.group("Texture")

    @property
    def layered_textures(self) -> Dict[int, FBXObject]:
        return self.group("LayeredTexture")

    @property
    def deformers(self) -> Dict[int, FBXObject]:
        return self.group("Deformer")

    @property
    def node_attributes(self) -> Dict[int, FBXObject]:
        return self.group("NodeAttribute")

    @property
    def videos(self) -> Dict[int, FBXObject]:
        return self.group("Video")

    @property
    def poses(self) -> Dict[int, FBXObject]:
        return self.group("Pose")

    @property
    def geometries(self) -> Dict[int, FBXObject]:
        return self.group("Geometry")

    @property
    def animation_stacks(self) -> Dict[int, FBXObject]:
        return self.group("AnimationStack")

    @property
    def animation_layers(self) -> Dict[int, FBXObject]:
        return self.group("AnimationLayer")

    @property
    def animation_curve_nodes(self) -> Dict[int, FBXObject]:
        return self.group("AnimationCurveNode")

    @property
    def animation_curves(self) -> Dict[int, FBXObject]:
        return self.group("AnimationCurve")
