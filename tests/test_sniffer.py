import struct

import pytest

from fbx_builders import ascii_document, encode_binary, node
from fbx_scene.core.exceptions import FormatError, UnsupportedVersionError
from fbx_scene.core.sniffer import BINARY_MAGIC, sniff_format


def test_binary_buffer_reports_header_version():
    info = sniff_format(encode_binary([node("Objects")], version=7400))

    assert info.is_binary
    assert info.version == 7400


def test_ascii_buffer_reports_declared_version():
    info = sniff_format(ascii_document(version=7300))

    assert info.kind == "ascii"
    assert info.version == 7300
    assert "FBXHeaderExtension" in info.text


def test_ascii_below_7000_is_rejected():
    with pytest.raises(UnsupportedVersionError) as excinfo:
        sniff_format(ascii_document(version=6100))

    assert excinfo.value.version == 6100
    assert excinfo.value.minimum == 7000


def test_binary_below_6400_is_rejected():
    with pytest.raises(UnsupportedVersionError) as excinfo:
        sniff_format(BINARY_MAGIC + b"\x1a\x00" + struct.pack("<I", 6100) + b"\x00" * 13)

    assert excinfo.value.version == 6100


def test_wrong_magic_is_a_format_error():
    buffer = b"Kaydara FBX Binary!!\x00\x1a\x00" + struct.pack("<I", 7400) + b"\x00" * 13

    with pytest.raises(FormatError):
        sniff_format(buffer)


def test_ascii_header_without_version_is_a_format_error():
    with pytest.raises(FormatError):
        sniff_format(b"FBXHeaderExtension:  {\n}\n")


def test_truncated_binary_header_is_a_format_error():
    with pytest.raises(FormatError):
        sniff_format(BINARY_MAGIC + b"\x1a")
