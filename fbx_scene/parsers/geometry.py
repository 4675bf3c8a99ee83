"""Default geometry parser: FBX polygon meshes and NURBS curves to flat buffers.

Polygons are fan-triangulated. Per-vertex layers (normals, UVs, colours,
material indices) are resolved through the FBX mapping and reference modes
and expanded to one entry per emitted triangle corner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import numpy as np

from ..core.catalog import FBXObject
from ..core.connections import ConnectionEntry
from ..core.transform import TransformData, generate_transform
from ..core.tree import FBXNode
from ..models import Geometry

if TYPE_CHECKING:  # pragma: no cover
    from ..builders.deformers import Deformers, MorphTargetSet, RawSkeleton
    from ..core.loader import ParseContext

logger = logging.getLogger(__name__)

MAX_INFLUENCES = 4
_MAPPING_TYPES = ("ByPolygonVertex", "ByPolygon", "ByVertice", "ByVertex", "AllSame")


@dataclass
class LayerData:
    """One ``LayerElement*`` block of a geometry."""

    data_size: int
    buffer: np.ndarray
    indices: np.ndarray
    mapping_type: str
    reference_type: str

    def gather(self, polygon_vertex: np.ndarray, polygon: np.ndarray, vertex: np.ndarray) -> np.ndarray:
        """Values for each polygon vertex, shaped ``(n, data_size)``."""

        if self.mapping_type == "ByPolygonVertex":
            index = polygon_vertex
        elif self.mapping_type == "ByPolygon":
            index = polygon
        elif self.mapping_type in ("ByVertice", "ByVertex"):
            index = vertex
        else:
            first = int(self.indices[0]) if len(self.indices) else 0
            index = np.full(len(polygon_vertex), first, dtype=np.int64)

        if self.reference_type == "IndexToDirect" and self.mapping_type != "AllSame":
            index = self.indices[index]
        rows = self.buffer.reshape(-1, self.data_size)
        return rows[index]


@dataclass
class GeometryInfo:
    vertex_positions: np.ndarray
    vertex_indices: np.ndarray
    normal: Optional[LayerData] = None
    color: Optional[LayerData] = None
    material: Optional[LayerData] = None
    uvs: List[LayerData] = field(default_factory=list)
    skeleton: Optional["RawSkeleton"] = None


@dataclass
class Polygons:
    """Triangle fan layout of a ``PolygonVertexIndex`` array."""

    vertex: np.ndarray
    polygon: np.ndarray
    corners: np.ndarray

    @property
    def polygon_vertex(self) -> np.ndarray:
        return np.arange(len(self.vertex))


def split_polygons(vertex_indices: np.ndarray) -> Polygons:
    """Decode polygon boundaries and fan-triangulate every polygon.

    A negative index ends a polygon and stores ``-1 - index``.
    """

    raw = np.asarray(vertex_indices, dtype=np.int64)
    ends = raw < 0
    vertex = np.where(ends, -1 - raw, raw)
    polygon = np.concatenate(([0], np.cumsum(ends)[:-1])) if len(raw) else np.zeros(0, dtype=np.int64)

    corners: List[int] = []
    start = 0
    for end in np.flatnonzero(ends):
        for i in range(start + 2, end + 1):
            corners.extend((start, i - 1, i))
        start = end + 1
    return Polygons(vertex=vertex, polygon=polygon.astype(np.int64), corners=np.asarray(corners, dtype=np.int64))


def _array(node: FBXNode, name: str) -> Optional[np.ndarray]:
    child = node.first(name)
    if child is None or child.value is None:
        return None
    return np.asarray(child.value)


def _text(node: FBXNode, name: str) -> str:
    child = node.first(name)
    return "" if child is None or child.value is None else str(child.value)


def _layer(node: FBXNode, data_name: str, index_names: Tuple[str, ...], data_size: int) -> Optional[LayerData]:
    mapping_type = _text(node, "MappingInformationType")
    reference_type = _text(node, "ReferenceInformationType")
    if mapping_type not in _MAPPING_TYPES:
        logger.warning("Unknown attribute mapping type %r, ignoring %s", mapping_type, node.name)
        return None

    buffer = _array(node, data_name)
    if buffer is None:
        return None

    indices = np.zeros(0, dtype=np.int64)
    if reference_type == "IndexToDirect":
        for index_name in index_names:
            found = _array(node, index_name)
            if found is not None:
                indices = found.astype(np.int64)
                break
    return LayerData(data_size, buffer.astype(float), indices, mapping_type, reference_type)


def parse_material_indices(node: FBXNode) -> Optional[LayerData]:
    mapping_type = _text(node, "MappingInformationType")
    reference_type = _text(node, "ReferenceInformationType")

    if mapping_type == "NoMappingInformation":
        return LayerData(1, np.zeros(1), np.zeros(1, dtype=np.int64), "AllSame", reference_type)

    buffer = _array(node, "Materials")
    if buffer is None:
        return None
    buffer = buffer.astype(np.int64)
    return LayerData(1, buffer, np.arange(len(buffer)), mapping_type, "Direct")


def parse_geometry_info(node: FBXObject, skeleton: Optional["RawSkeleton"]) -> GeometryInfo:
    positions = node.array("Vertices")
    indices = node.array("PolygonVertexIndex")
    info = GeometryInfo(
        vertex_positions=np.zeros(0) if positions is None else positions.astype(float),
        vertex_indices=np.zeros(0, dtype=np.int64) if indices is None else indices.astype(np.int64),
        skeleton=skeleton,
    )

    colors = node.children("LayerElementColor")
    if colors:
        info.color = _layer(colors[0], "Colors", ("ColorIndex",), 4)

    materials = node.children("LayerElementMaterial")
    if materials:
        info.material = parse_material_indices(materials[0])

    normals = node.children("LayerElementNormal")
    if normals:
        info.normal = _layer(normals[0], "Normals", ("NormalIndex", "NormalsIndex"), 3)

    for uv_node in node.children("LayerElementUV"):
        if uv_node.first("UV") is not None:
            layer = _layer(uv_node, "UV", ("UVIndex",), 2)
            if layer is not None:
                info.uvs.append(layer)

    return info


def skin_attributes(skeleton: "RawSkeleton", vertex_count: int) -> Tuple[np.ndarray, np.ndarray]:
    """Per control point bone indices and weights, strongest four influences."""

    table: Dict[int, List[Tuple[int, float]]] = {}
    for bone_index, raw_bone in enumerate(skeleton.raw_bones):
        for vertex, weight in zip(raw_bone.indices, raw_bone.weights):
            table.setdefault(int(vertex), []).append((bone_index, float(weight)))

    skin_index = np.zeros((vertex_count, MAX_INFLUENCES), dtype=np.uint16)
    skin_weight = np.zeros((vertex_count, MAX_INFLUENCES), dtype=np.float32)
    warned = False
    for vertex, influences in table.items():
        if not 0 <= vertex < vertex_count:
            continue
        if len(influences) > MAX_INFLUENCES:
            if not warned:
                logger.warning(
                    "Vertex has more than 4 skinning weights assigned to vertex. Deleting additional weights."
                )
                warned = True
            influences = sorted(influences, key=lambda item: -item[1])[:MAX_INFLUENCES]
        for slot, (bone_index, weight) in enumerate(influences):
            skin_index[vertex, slot] = bone_index
            skin_weight[vertex, slot] = weight
    return skin_index, skin_weight


def _transform_points(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    return points @ matrix[:3, :3].T + matrix[:3, 3]


def _transform_normals(normals: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    try:
        normal_matrix = np.linalg.inv(matrix[:3, :3]).T
    except np.linalg.LinAlgError:
        return normals
    transformed = normals @ normal_matrix.T
    lengths = np.linalg.norm(transformed, axis=1, keepdims=True)
    return np.divide(transformed, lengths, out=np.zeros_like(transformed), where=lengths != 0)


def material_groups(material_index: np.ndarray) -> List[Tuple[int, int, int]]:
    """Runs of equal material index as ``(start, count, material)``."""

    groups: List[Tuple[int, int, int]] = []
    if not len(material_index):
        return groups
    start = 0
    current = int(material_index[0])
    for i in range(1, len(material_index)):
        value = int(material_index[i])
        if value != current:
            groups.append((start, i - start, current))
            start, current = i, value
    groups.append((start, len(material_index) - start, current))
    return groups


class MeshGeometryParser:
    """Builds a :class:`Geometry` for every ``Mesh`` and ``NurbsCurve`` geometry."""

    def parse(self, context: "ParseContext", deformers: "Deformers") -> Dict[int, Geometry]:
        geometries: Dict[int, Geometry] = {}
        for geometry_id, node in context.catalog.geometries.items():
            relationships = context.graph.get(geometry_id)
            geometry = self.parse_geometry(context, relationships, node, deformers)
            if geometry is not None:
                geometries[geometry_id] = geometry
        logger.debug("Built %d geometries", len(geometries))
        return geometries

    def parse_geometry(
        self, context: "ParseContext", relationships: ConnectionEntry, node: FBXObject, deformers: "Deformers"
    ) -> Optional[Geometry]:
        if node.attr_type == "Mesh":
            return self.parse_mesh(context, relationships, node, deformers)
        if node.attr_type == "NurbsCurve":
            return self.parse_nurbs(node)
        return None

    def parse_mesh(
        self, context: "ParseContext", relationships: ConnectionEntry, node: FBXObject, deformers: "Deformers"
    ) -> Optional[Geometry]:
        models = context.catalog.models
        model_nodes = [models[edge.id] for edge in relationships.parents if edge.id in models]
        if not model_nodes:
            # Shape geometries only carry morph deltas for another mesh.
            return None

        skeleton = None
        morph_sets: List["MorphTargetSet"] = []
        for child in relationships.children:
            if child.id in deformers.skeletons:
                skeleton = deformers.skeletons[child.id]
            if child.id in deformers.morph_targets:
                morph_sets.append(deformers.morph_targets[child.id])

        pre_transform = generate_transform(TransformData.geometric_from_model(model_nodes[0]))
        return self.build_geometry(context, node, skeleton, morph_sets, pre_transform)

    def build_geometry(
        self,
        context: "ParseContext",
        node: FBXObject,
        skeleton: Optional["RawSkeleton"],
        morph_sets: List["MorphTargetSet"],
        pre_transform: np.ndarray,
    ) -> Geometry:
        geometry = Geometry(name=node.attr_name, id=node.id)
        info = parse_geometry_info(node, skeleton)
        polygons = split_polygons(info.vertex_indices)
        corners = polygons.corners

        control_points = info.vertex_positions.reshape(-1, 3)
        corner_vertices = polygons.vertex[corners]
        geometry.attributes["position"] = _transform_points(control_points[corner_vertices], pre_transform)

        gather = (polygons.polygon_vertex, polygons.polygon, polygons.vertex)

        if info.color is not None:
            geometry.attributes["color"] = info.color.gather(*gather)[corners][:, :3]

        if skeleton is not None:
            skin_index, skin_weight = skin_attributes(skeleton, len(control_points))
            geometry.attributes["skinIndex"] = skin_index[corner_vertices]
            geometry.attributes["skinWeight"] = skin_weight[corner_vertices]
            geometry.deformer = skeleton

        if info.normal is not None:
            normals = info.normal.gather(*gather)[corners]
            geometry.attributes["normal"] = _transform_normals(normals, pre_transform)

        for index, uv_layer in enumerate(info.uvs):
            name = "uv" if index == 0 else f"uv{index + 1}"
            geometry.attributes[name] = uv_layer.gather(*gather)[corners]

        if info.material is not None and info.material.mapping_type != "AllSame":
            material_index = info.material.gather(*gather)[corners][:, 0].astype(np.int64)
            geometry.groups = material_groups(material_index)

        self.add_morph_targets(context, geometry, corner_vertices, len(control_points), morph_sets, pre_transform)
        return geometry

    def add_morph_targets(
        self,
        context: "ParseContext",
        geometry: Geometry,
        corner_vertices: np.ndarray,
        vertex_count: int,
        morph_sets: List["MorphTargetSet"],
        pre_transform: np.ndarray,
    ) -> None:
        if not morph_sets:
            return

        positions: List[np.ndarray] = []
        names: List[str] = []
        shapes = context.catalog.geometries
        for morph_set in morph_sets:
            for raw_target in morph_set.raw_targets:
                shape = shapes.get(raw_target.geometry_id) if raw_target.geometry_id is not None else None
                if shape is None:
                    continue

                deltas = np.zeros((vertex_count, 3))
                sparse = shape.array("Vertices")
                indices = shape.array("Indexes")
                if sparse is not None and indices is not None:
                    sparse = sparse.astype(float).reshape(-1, 3)
                    count = min(len(indices), len(sparse))
                    indices = indices[:count].astype(np.int64)
                    valid = (indices >= 0) & (indices < vertex_count)
                    deltas[indices[valid]] = sparse[:count][valid]

                # Deltas are directions, so only the linear part applies.
                positions.append(deltas[corner_vertices] @ pre_transform[:3, :3].T)
                names.append(raw_target.name)

        geometry.morph_attributes["position"] = positions
        geometry.morph_target_names = names

    def parse_nurbs(self, node: FBXObject) -> Geometry:
        """Control polygon of a NURBS curve; curve evaluation is left to the caller."""

        geometry = Geometry(name=node.attr_name, id=node.id)
        order = node.child_value("Order")
        try:
            degree = int(order) - 1
        except (TypeError, ValueError):
            logger.error("Invalid Order %s given for geometry ID: %s", order, node.id)
            return geometry

        points = node.array("Points")
        if points is None:
            return geometry
        control_points = points.astype(float).reshape(-1, 4)[:, :3]

        form = node.child_value("Form")
        if form == "Closed" and len(control_points):
            control_points = np.vstack((control_points, control_points[:1]))
        elif form == "Periodic" and degree > 0:
            control_points = np.vstack((control_points, control_points[:degree]))

        geometry.attributes["position"] = control_points
        knots = node.array("KnotVector")
        if knots is not None:
            geometry.user_data.update(degree=degree, knots=knots.astype(float))
        return geometry
