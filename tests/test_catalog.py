import base64

import numpy as np

from fbx_builders import ascii_document, model
from fbx_scene.core.catalog import FBXObject, ObjectCatalog, decode_content, strip_class_prefix
from fbx_scene.core.text import parse_text
from fbx_scene.core.tree import FBXNode

OBJECTS = "\n".join(
    [
        model(
            100,
            "Cube",
            "Mesh",
            properties="""
            P: "Lcl Translation", "Lcl Translation", "", "A",1.0,2.0,3.0
            P: "RotationOrder", "enum", "", "",4
            P: "LookAtProperty", "object", "", ""
            """,
        ),
        'Material: 800, "Material::Red", "" {',
        '\tShadingModel: "lambert"',
        "}",
        'Geometry: 200, "Geometry::Cube", "Mesh" {',
        "\tVertices: *3 {",
        "\t\ta: 1.0,2.0,3.0",
        "\t}",
        "}",
        'Model: 101, "Model::Legacy", "Null" {',
        "\tProperties60:  {",
        '\t\tProperty: "Lcl Scaling", "Lcl Scaling", "A+",2,2,2',
        "\t}",
        "}",
    ]
)

SETTINGS = 'P: "AmbientColor", "ColorRGB", "Color", "",0.1,0.2,0.3'


def _catalog():
    return ObjectCatalog(parse_text(ascii_document(OBJECTS, global_settings=SETTINGS).decode()))


def test_objects_grouped_by_tag():
    catalog = _catalog()

    assert list(catalog.models) == [100, 101]
    assert list(catalog.materials) == [800]
    assert list(catalog.geometries) == [200]
    assert len(catalog) == 4
    assert catalog.get(800).kind == "Material"
    assert 200 in catalog
    assert catalog.textures == {}


def test_object_names_and_types():
    cube = _catalog().models[100]

    assert cube.attr_name == "Cube"
    assert cube.attr_type == "Mesh"
    assert strip_class_prefix("Geometry::Cube") == "Cube"
    assert strip_class_prefix("Plain") == "Plain"


def test_properties70_values():
    cube = _catalog().models[100]

    assert cube.prop("Lcl Translation") == (1.0, 2.0, 3.0)
    assert cube.prop("RotationOrder") == 4
    assert cube.properties["RotationOrder"].type == "enum"
    assert cube.properties["Lcl Translation"].flag == "A"
    assert cube.has("LookAtProperty")
    assert cube.prop("LookAtProperty", "fallback") == "fallback"
    assert cube.prop("Missing") is None


def test_legacy_properties60():
    legacy = _catalog().models[101]

    assert legacy.prop("Lcl Scaling") == (2, 2, 2)
    assert legacy.properties["Lcl Scaling"].flag == "A+"


def test_child_values_and_arrays():
    catalog = _catalog()

    assert catalog.materials[800].child_value("ShadingModel") == "lambert"
    assert catalog.materials[800].child_value("Missing", "phong") == "phong"
    vertices = catalog.geometries[200].array("Vertices")
    np.testing.assert_array_equal(vertices, [1.0, 2.0, 3.0])
    assert catalog.geometries[200].array("Normals") is None


def test_global_settings():
    setting = _catalog().global_settings["AmbientColor"]

    assert setting.value == (0.1, 0.2, 0.3)
    assert setting.type == "ColorRGB"


def test_records_without_numeric_id_are_not_objects():
    assert FBXObject.from_node(FBXNode("GlobalSettings", ["x"])) is None
    assert FBXObject.from_node(FBXNode("Flag", [True])) is None


def test_decode_content():
    assert decode_content(b"\x89PNG") == b"\x89PNG"
    assert decode_content(base64.b64encode(b"payload").decode()) == b"payload"
    assert decode_content(None) == b""
