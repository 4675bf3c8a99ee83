import logging

import numpy as np
import pytest

from fbx_builders import array, ascii_document, model, quad_geometry
from fbx_scene.builders.deformers import parse_deformers
from fbx_scene.builders.models import parse_models
from fbx_scene.models import Bone


def _cluster(object_id, name, indexes, weights, translation=(0.0, 0.0, 0.0)):
    link = [1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, *translation, 1.0]
    body = "\n".join([array("Indexes", indexes), array("Weights", weights), array("TransformLink", link)])
    body = "\n".join("\t" + line for line in body.splitlines())
    return f'Deformer: {object_id}, "SubDeformer::{name}", "Cluster" {{\n{body}\n}}'


SKIN_OBJECTS = "\n".join(
    [
        model(100, "Body", "Mesh"),
        quad_geometry(200, "Body"),
        'Deformer: 300, "Deformer::Skin", "Skin" {\n}',
        _cluster(301, "Hip", [0, 1], [1.0, 0.5], translation=(5.0, 6.0, 7.0)),
        _cluster(302, "Knee", [1, 2, 3], [0.5, 1.0, 1.0]),
        model(401, "Hip", "LimbNode"),
        model(402, "Knee", "LimbNode"),
    ]
)

SKIN_CONNECTIONS = """
C: "OO",100,0
C: "OO",200,100
C: "OO",300,200
C: "OO",301,300
C: "OO",302,300
C: "OO",401,301
C: "OO",402,302
C: "OO",401,0
C: "OO",402,401
"""


def test_skin_clusters_in_connection_order(make_context):
    context = make_context(ascii_document(SKIN_OBJECTS, SKIN_CONNECTIONS))

    deformers = parse_deformers(context)

    skeleton = deformers.skeletons[300]
    assert skeleton.geometry_id == 200
    assert [bone.id for bone in skeleton.raw_bones] == [301, 302]
    np.testing.assert_array_equal(skeleton.raw_bones[0].indices, [0, 1])
    np.testing.assert_allclose(skeleton.raw_bones[1].weights, [0.5, 1.0, 1.0])
    np.testing.assert_allclose(skeleton.raw_bones[0].transform_link[:3, 3], [5.0, 6.0, 7.0])
    assert skeleton.bones == [None, None]


def test_bones_fill_skeleton_slots(make_context):
    context = make_context(ascii_document(SKIN_OBJECTS, SKIN_CONNECTIONS))
    deformers = parse_deformers(context)

    models = parse_models(context, deformers.skeletons, {}, {})

    skeleton = deformers.skeletons[300]
    assert skeleton.bones[0] is models[401]
    assert skeleton.bones[1] is models[402]
    assert isinstance(models[401], Bone)
    assert models[401].name == "Hip"
    np.testing.assert_allclose(models[401].matrix_world[:3, 3], [5.0, 6.0, 7.0])


def test_bone_shared_by_two_skeletons_is_duplicated(make_context):
    objects = "\n".join(
        [
            SKIN_OBJECTS,
            model(110, "Armor", "Mesh"),
            quad_geometry(210, "Armor"),
            'Deformer: 310, "Deformer::ArmorSkin", "Skin" {\n}',
            _cluster(311, "ArmorHip", [0], [1.0]),
        ]
    )
    connections = SKIN_CONNECTIONS + '\nC: "OO",210,110\nC: "OO",310,210\nC: "OO",311,310\nC: "OO",401,311\n'
    context = make_context(ascii_document(objects, connections))
    deformers = parse_deformers(context)

    models = parse_models(context, deformers.skeletons, {}, {})

    first = deformers.skeletons[300].bones[0]
    second = deformers.skeletons[310].bones[0]
    assert first is not second
    assert first.id == second.id == 401
    assert first.parent is second
    assert models[401] is second


def test_skin_on_two_geometries_warns(make_context, caplog):
    connections = SKIN_CONNECTIONS + '\nC: "OO",300,210\n'
    context = make_context(ascii_document(SKIN_OBJECTS, connections))

    with caplog.at_level(logging.WARNING):
        deformers = parse_deformers(context)

    assert deformers.skeletons[300].geometry_id == 200
    assert "more than one geometry" in caplog.text


MORPH_OBJECTS = "\n".join(
    [
        model(100, "Face", "Mesh"),
        quad_geometry(200, "Face"),
        'Deformer: 500, "Deformer::Expressions", "BlendShape" {\n}',
        'Deformer: 501, "SubDeformer::Smile", "BlendShapeChannel" {\n'
        "\tDeformPercent: 25\n"
        + "\n".join("\t" + line for line in array("FullWeights", [100]).splitlines())
        + "\n}",
        'Deformer: 502, "SubDeformer::Frown", "BlendShapeChannel" {\n}',
        'Geometry: 600, "Geometry::Smile", "Shape" {\n'
        + "\n".join("\t" + line for line in array("Indexes", [2]).splitlines())
        + "\n"
        + "\n".join("\t" + line for line in array("Vertices", [0.0, 0.0, 1.0]).splitlines())
        + "\n}",
    ]
)

MORPH_CONNECTIONS = """
C: "OO",100,0
C: "OO",200,100
C: "OO",500,200
C: "OO",501,500
C: "OO",502,500
C: "OO",600,501
"""


def test_blend_shape_channels(make_context, caplog):
    context = make_context(ascii_document(MORPH_OBJECTS, MORPH_CONNECTIONS))

    with caplog.at_level(logging.WARNING):
        deformers = parse_deformers(context)

    targets = deformers.morph_targets[500].raw_targets
    assert [target.name for target in targets] == ["Smile"]
    assert targets[0].initial_weight == pytest.approx(25.0)
    assert targets[0].geometry_id == 600
    np.testing.assert_allclose(targets[0].full_weights, [100.0])
    assert "Frown" in caplog.text
