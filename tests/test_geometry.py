import logging

import numpy as np
import pytest

from fbx_builders import array, ascii_document, model, quad_geometry
from fbx_scene.builders.deformers import Deformers, RawBone, RawSkeleton, parse_deformers
from fbx_scene.parsers.geometry import (
    MeshGeometryParser,
    material_groups,
    skin_attributes,
    split_polygons,
)


def _layer(tag, data_name, values, mapping, reference="Direct", index_name=None, indices=None):
    lines = [f"{tag}: 0 {{", f'\tMappingInformationType: "{mapping}"', f'\tReferenceInformationType: "{reference}"']
    lines += ["\t" + line for line in array(data_name, values).splitlines()]
    if index_name is not None:
        lines += ["\t" + line for line in array(index_name, indices).splitlines()]
    lines.append("}")
    return "\n".join(lines)


def _parse(make_context, objects, connections):
    context = make_context(ascii_document(objects, connections))
    return MeshGeometryParser().parse(context, parse_deformers(context))


def test_split_polygons_fans_and_decodes_end_markers():
    polygons = split_polygons(np.array([0, 1, 2, -4, 4, 5, -7]))

    np.testing.assert_array_equal(polygons.vertex, [0, 1, 2, 3, 4, 5, 6])
    np.testing.assert_array_equal(polygons.polygon, [0, 0, 0, 0, 1, 1, 1])
    np.testing.assert_array_equal(polygons.corners, [0, 1, 2, 0, 2, 3, 4, 5, 6])


def test_material_groups_are_runs():
    assert material_groups(np.array([0, 0, 0, 1, 1, 1, 0, 0, 0])) == [(0, 3, 0), (3, 3, 1), (6, 3, 0)]
    assert material_groups(np.array([], dtype=np.int64)) == []


def test_quad_is_triangulated(make_context):
    geometries = _parse(make_context, "\n".join([model(100, "Quad", "Mesh"), quad_geometry(200)]), 'C: "OO",200,100')

    geometry = geometries[200]
    positions = geometry.attributes["position"]
    assert geometry.vertex_count == 6
    np.testing.assert_allclose(
        positions,
        [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 0, 0], [1, 1, 0], [0, 1, 0]],
    )
    assert geometry.groups == []


def test_layers_are_expanded_per_corner(make_context):
    normals = _layer("LayerElementNormal", "Normals", [0.0, 0.0, 1.0] * 4, "ByPolygonVertex")
    uvs = _layer(
        "LayerElementUV",
        "UV",
        [0.0, 0.0, 1.0, 0.0, 1.0, 1.0, 0.0, 1.0],
        "ByPolygonVertex",
        "IndexToDirect",
        "UVIndex",
        [0, 1, 2, 3],
    )
    colors = _layer("LayerElementColor", "Colors", [1.0, 0.0, 0.0, 1.0], "AllSame")
    material = "\n".join(
        [
            "LayerElementMaterial: 0 {",
            '\tMappingInformationType: "AllSame"',
            '\tReferenceInformationType: "IndexToDirect"',
            "\tMaterials: *1 {",
            "\t\ta: 0",
            "\t}",
            "}",
        ]
    )
    objects = "\n".join([model(100, "Quad", "Mesh"), quad_geometry(200, extra="\n".join([normals, uvs, colors, material]))])

    geometry = _parse(make_context, objects, 'C: "OO",200,100')[200]

    np.testing.assert_allclose(geometry.attributes["normal"], [[0, 0, 1]] * 6)
    np.testing.assert_allclose(geometry.attributes["uv"][:3], [[0, 0], [1, 0], [1, 1]])
    np.testing.assert_allclose(geometry.attributes["uv"][5], [0, 1])
    np.testing.assert_allclose(geometry.attributes["color"], [[1, 0, 0]] * 6)
    assert geometry.groups == []


def test_per_polygon_materials_make_groups(make_context):
    two_triangles = "\n".join(
        [
            'Geometry: 200, "Geometry::Pair", "Mesh" {',
            "\t" + array("Vertices", [0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 1.0, 1.0, 0.0, 0.0, 1.0, 0.0]).replace("\n", "\n\t"),
            "\t" + array("PolygonVertexIndex", [0, 1, -3, 0, 2, -4]).replace("\n", "\n\t"),
            "\tLayerElementMaterial: 0 {",
            '\t\tMappingInformationType: "ByPolygon"',
            '\t\tReferenceInformationType: "IndexToDirect"',
            "\t\t" + array("Materials", [0, 1]).replace("\n", "\n\t\t"),
            "\t}",
            "}",
        ]
    )
    objects = "\n".join([model(100, "Pair", "Mesh"), two_triangles])

    geometry = _parse(make_context, objects, 'C: "OO",200,100')[200]

    assert geometry.groups == [(0, 3, 0), (3, 3, 1)]


def test_geometric_translation_is_baked(make_context):
    properties = 'P: "GeometricTranslation", "Vector3D", "Vector", "",0.0,0.0,5.0'
    objects = "\n".join([model(100, "Quad", "Mesh", properties), quad_geometry(200)])

    geometry = _parse(make_context, objects, 'C: "OO",200,100')[200]

    np.testing.assert_allclose(geometry.attributes["position"][:, 2], [5.0] * 6)


def test_geometry_without_model_is_skipped(make_context):
    geometries = _parse(make_context, quad_geometry(200), "")

    assert geometries == {}


def test_skin_attributes_keep_strongest_four(caplog):
    raw_bones = [
        RawBone(id=index, indices=np.array([0]), weights=np.array([weight]))
        for index, weight in enumerate([0.1, 0.5, 0.05, 0.2, 0.15])
    ]
    skeleton = RawSkeleton(id=1, raw_bones=raw_bones)

    with caplog.at_level(logging.WARNING):
        skin_index, skin_weight = skin_attributes(skeleton, 2)

    assert skin_index.dtype == np.uint16
    assert list(skin_index[0]) == [1, 3, 4, 0]
    np.testing.assert_allclose(skin_weight[0], [0.5, 0.2, 0.15, 0.1], rtol=1e-6)
    np.testing.assert_array_equal(skin_weight[1], [0, 0, 0, 0])
    assert "more than 4 skinning weights" in caplog.text


def test_skinned_geometry_gets_skin_attributes(make_context):
    cluster = "\n".join(
        [
            'Deformer: 301, "SubDeformer::Root", "Cluster" {',
            "\t" + array("Indexes", [0, 1, 2, 3]).replace("\n", "\n\t"),
            "\t" + array("Weights", [1.0, 1.0, 1.0, 1.0]).replace("\n", "\n\t"),
            "}",
        ]
    )
    objects = "\n".join(
        [model(100, "Quad", "Mesh"), quad_geometry(200), 'Deformer: 300, "Deformer::Skin", "Skin" {\n}', cluster]
    )
    connections = 'C: "OO",200,100\nC: "OO",300,200\nC: "OO",301,300'

    geometry = _parse(make_context, objects, connections)[200]

    assert geometry.attributes["skinIndex"].shape == (6, 4)
    np.testing.assert_allclose(geometry.attributes["skinWeight"][:, 0], [1.0] * 6)
    assert isinstance(geometry.deformer, RawSkeleton)


def test_morph_deltas_are_indexed_per_corner(make_context):
    shape = "\n".join(
        [
            'Geometry: 600, "Geometry::Lift", "Shape" {',
            "\t" + array("Indexes", [2]).replace("\n", "\n\t"),
            "\t" + array("Vertices", [0.0, 0.0, 1.0]).replace("\n", "\n\t"),
            "}",
        ]
    )
    objects = "\n".join(
        [
            model(100, "Quad", "Mesh", 'P: "GeometricTranslation", "Vector3D", "Vector", "",9.0,9.0,9.0'),
            quad_geometry(200),
            'Deformer: 500, "Deformer::Shapes", "BlendShape" {\n}',
            'Deformer: 501, "SubDeformer::Lift", "BlendShapeChannel" {\n}',
            shape,
        ]
    )
    connections = 'C: "OO",200,100\nC: "OO",500,200\nC: "OO",501,500\nC: "OO",600,501'

    geometries = _parse(make_context, objects, connections)

    assert 600 not in geometries
    geometry = geometries[200]
    assert geometry.morph_target_names == ["Lift"]
    (deltas,) = geometry.morph_attributes["position"]
    # Corners 2 and 4 reference control point 2; translation does not move deltas.
    np.testing.assert_allclose(deltas[[2, 4]], [[0, 0, 1], [0, 0, 1]])
    np.testing.assert_allclose(deltas[[0, 1, 3, 5]], np.zeros((4, 3)))


def _nurbs(form, order="4"):
    points = [0.0, 0.0, 0.0, 1.0, 1.0, 0.0, 0.0, 1.0, 1.0, 1.0, 0.0, 1.0, 2.0, 1.0, 0.0, 1.0]
    return "\n".join(
        [
            'Geometry: 200, "Geometry::Curve", "NurbsCurve" {',
            f"\tOrder: {order}",
            f'\tForm: "{form}"',
            "\t" + array("Points", points).replace("\n", "\n\t"),
            "\t" + array("KnotVector", [0.0, 0.0, 0.0, 0.0, 1.0, 1.0, 1.0, 1.0]).replace("\n", "\n\t"),
            "}",
        ]
    )


@pytest.mark.parametrize("form, count", [("Open", 4), ("Closed", 5), ("Periodic", 7)])
def test_nurbs_control_polygon(make_context, form, count):
    geometry = _parse(make_context, _nurbs(form), "")[200]

    positions = geometry.attributes["position"]
    assert positions.shape == (count, 3)
    np.testing.assert_allclose(positions[1], [1.0, 0.0, 0.0])
    assert geometry.user_data["degree"] == 3
    assert len(geometry.user_data["knots"]) == 8


def test_nurbs_with_invalid_order(make_context, caplog):
    with caplog.at_level(logging.ERROR):
        geometry = _parse(make_context, _nurbs("Open", order='"x"'), "")[200]

    assert "position" not in geometry.attributes
    assert "Invalid Order" in caplog.text


def test_empty_deformers_accepted(make_context):
    context = make_context(ascii_document("\n".join([model(100, "Quad", "Mesh"), quad_geometry(200)]), 'C: "OO",200,100'))

    geometries = MeshGeometryParser().parse(context, Deformers())

    assert list(geometries) == [200]
