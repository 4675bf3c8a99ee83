"""Helpers that write small binary and ASCII FBX documents for the tests."""

from __future__ import annotations

import struct
import textwrap
import zlib
from dataclasses import dataclass
from typing import Iterable, List

import numpy as np

from fbx_scene.core.sniffer import BINARY_MAGIC
from fbx_scene.core.tree import FBXNode


@dataclass
class RawProperty:
    """Pre-encoded property bytes, tag included."""

    data: bytes


_ARRAY_TAGS = {"<f4": b"f", "<f8": b"d", "<i8": b"l", "<i4": b"i", "|b1": b"b"}


def node(name: str, *properties, children: Iterable[FBXNode] = ()) -> FBXNode:
    result = FBXNode(name=name, properties=list(properties))
    for child in children:
        result.add_child(child)
    return result


def _encode_string(value: str) -> bytes:
    if "::" in value:
        klass, name = value.split("::", 1)
        value = f"{name}\x00\x01{klass}"
    return value.encode("utf-8")


def encode_property(value, compress: bool = False) -> bytes:
    if isinstance(value, RawProperty):
        return value.data
    if isinstance(value, bool):
        return b"C" + struct.pack("<B", value)
    if isinstance(value, int):
        return b"L" + struct.pack("<q", value)
    if isinstance(value, float):
        return b"D" + struct.pack("<d", value)
    if isinstance(value, str):
        raw = _encode_string(value)
        return b"S" + struct.pack("<I", len(raw)) + raw
    if isinstance(value, bytes):
        return b"R" + struct.pack("<I", len(value)) + value
    if isinstance(value, np.ndarray):
        tag = _ARRAY_TAGS[value.dtype.str]
        payload = value.tobytes()
        encoding = 0
        if compress:
            payload = zlib.compress(payload)
            encoding = 1
        return tag + struct.pack("<III", len(value), encoding, len(payload)) + payload
    raise TypeError(f"Cannot encode {value!r}")


def _null_record(wide: bool) -> bytes:
    return b"\x00" * (struct.calcsize("<QQQ" if wide else "<III") + 1)


def encode_node(fbx_node: FBXNode, offset: int, wide: bool, compress: bool = False) -> bytes:
    header_fmt = "<QQQ" if wide else "<III"
    name = fbx_node.name.encode("ascii")
    properties = b"".join(encode_property(value, compress) for value in fbx_node.properties)
    body_offset = offset + struct.calcsize(header_fmt) + 1 + len(name) + len(properties)

    children = b""
    child_nodes: List[FBXNode] = list(fbx_node.iter_children())
    for child in child_nodes:
        children += encode_node(child, body_offset + len(children), wide, compress)
    if child_nodes:
        children += _null_record(wide)

    end_offset = body_offset + len(children)
    header = struct.pack(header_fmt, end_offset, len(fbx_node.properties), len(properties))
    return header + bytes([len(name)]) + name + properties + children


def encode_binary(sections: Iterable[FBXNode], version: int = 7400, compress: bool = False) -> bytes:
    wide = version >= 7500
    out = bytearray(BINARY_MAGIC + b"\x1a\x00" + struct.pack("<I", version))
    for section in sections:
        out += encode_node(section, len(out), wide, compress)
    out += _null_record(wide)
    return bytes(out)


def binary_header(version: int = 7400) -> FBXNode:
    return node(
        "FBXHeaderExtension",
        children=[node("FBXHeaderVersion", 1003), node("FBXVersion", version)],
    )


def ascii_document(
    objects: str = "",
    connections: str = "",
    global_settings: str = "",
    version: int = 7400,
) -> bytes:
    """Wrap object and connection records into a complete ASCII FBX file."""

    parts = [
        f"; FBX {version // 1000}.{version % 1000 // 100}.0 project file",
        "FBXHeaderExtension:  {",
        "\tFBXHeaderVersion: 1003",
        f"\tFBXVersion: {version}",
        "}",
    ]
    if global_settings:
        parts += [
            "GlobalSettings:  {",
            "\tVersion: 1000",
            "\tProperties70:  {",
            textwrap.indent(textwrap.dedent(global_settings).strip(), "\t\t"),
            "\t}",
            "}",
        ]
    parts += ["Objects:  {", textwrap.indent(textwrap.dedent(objects).strip(), "\t"), "}"]
    parts += ["Connections:  {", textwrap.indent(textwrap.dedent(connections).strip(), "\t"), "}"]
    return ("\n".join(parts) + "\n").encode("utf-8")


def model(object_id: int, name: str, kind: str = "Null", properties: str = "") -> str:
    lines = [f'Model: {object_id}, "Model::{name}", "{kind}" {{', "\tVersion: 232"]
    if properties:
        lines += ["\tProperties70:  {", textwrap.indent(textwrap.dedent(properties).strip(), "\t\t"), "\t}"]
    lines.append("}")
    return "\n".join(lines)


def array(name: str, values: Iterable) -> str:
    values = list(values)
    return f"{name}: *{len(values)} {{\n\ta: {','.join(str(value) for value in values)}\n}}"


def quad_geometry(object_id: int, name: str = "Quad", extra: str = "") -> str:
    """A unit quad with four control points and one polygon."""

    body = [
        array("Vertices", [0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 1.0, 1.0, 0.0, 0.0, 1.0, 0.0]),
        array("PolygonVertexIndex", [0, 1, 2, -4]),
    ]
    if extra:
        body.append(textwrap.dedent(extra).strip())
    inner = textwrap.indent("\n".join(body), "\t")
    return f'Geometry: {object_id}, "Geometry::{name}", "Mesh" {{\n{inner}\n}}'
