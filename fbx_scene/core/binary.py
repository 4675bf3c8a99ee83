"""Binary FBX container decoder.

Layout follows the binary format notes published on code.blender.org (2013).

Each record is ``end_offset, property_count, property_bytes`` (uint32 before
7500, uint64 from 7500 on), a one-byte name length, the name, the encoded
properties and finally the nested records, terminated by a null record.
"""

from __future__ import annotations

import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from .exceptions import BinaryParseError
from .sniffer import BINARY_HEADER_SIZE, binary_version
from .tree import FBXNode, FBXTree

logger = logging.getLogger(__name__)

WIDE_HEADER_VERSION = 7500

_SCALARS: Dict[bytes, Tuple[str, Callable[[Any], Any]]] = {
    b"Y": ("<h", int),
    b"C": ("<B", bool),
    b"I": ("<i", int),
    b"F": ("<f", float),
    b"D": ("<d", float),
    b"L": ("<q", int),
}

_ARRAYS: Dict[bytes, np.dtype] = {
    b"f": np.dtype("<f4"),
    b"d": np.dtype("<f8"),
    b"l": np.dtype("<i8"),
    b"i": np.dtype("<i4"),
    b"b": np.dtype(np.bool_),
    b"c": np.dtype(np.uint8),
}


@dataclass
class _Reader:
    data: bytes
    offset: int = 0

    def read(self, size: int) -> bytes:
        chunk = self.data[self.offset : self.offset + size]
        if len(chunk) != size:
            raise BinaryParseError(f"Unexpected end of data, need {size} bytes", self.offset)
        self.offset += size
        return chunk

    def unpack(self, fmt: str) -> Any:
        size = struct.calcsize(fmt)
        values = struct.unpack(fmt, self.read(size))
        return values[0] if len(values) == 1 else values


def _decode_string(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    # Object names are stored as "name\x00\x01Class"; use the ASCII "Class::name" spelling.
    if "\x00\x01" in text:
        name, _, klass = text.partition("\x00\x01")
        return f"{klass}::{name}"
    return text


def _read_array(reader: _Reader, dtype: np.dtype) -> np.ndarray:
    start = reader.offset
    count, encoding, byte_length = reader.unpack("<III")
    payload = reader.read(byte_length)
    if encoding == 1:
        try:
            payload = zlib.decompress(payload)
        except zlib.error as exc:
            raise BinaryParseError(f"Failed to inflate array: {exc}", start) from exc
    elif encoding != 0:
        raise BinaryParseError(f"Unknown array encoding {encoding}", start)

    expected = count * dtype.itemsize
    if len(payload) != expected:
        raise BinaryParseError(
            f"Array payload holds {len(payload)} bytes, expected {expected}", start
        )
    return np.frombuffer(payload, dtype=dtype).copy()


def _read_property(reader: _Reader) -> Any:
    start = reader.offset
    tag = reader.read(1)

    scalar = _SCALARS.get(tag)
    if scalar is not None:
        fmt, convert = scalar
        return convert(reader.unpack(fmt))

    dtype = _ARRAYS.get(tag)
    if dtype is not None:
        return _read_array(reader, dtype)

    if tag == b"S":
        length = reader.unpack("<I")
        return _decode_string(reader.read(length))
    if tag == b"R":
        length = reader.unpack("<I")
        return bytes(reader.read(length))

    raise BinaryParseError(f"Unknown property type {tag!r}", start)


class BinaryParser:
    """Decode a binary FBX buffer into an :class:`FBXTree`."""

    def __init__(self, buffer: bytes) -> None:
        self._reader = _Reader(bytes(buffer))
        self.version = binary_version(self._reader.data)
        if self.version >= WIDE_HEADER_VERSION:
            self._header_fmt = "<QQQ"
        else:
            self._header_fmt = "<III"

    def parse(self) -> FBXTree:
        reader = self._reader
        reader.offset = BINARY_HEADER_SIZE
        root = FBXNode(name="")

        while reader.offset < len(reader.data):
            node = self._parse_node()
            if node is None:
                break
            root.add_child(node)

        logger.debug("Decoded %d top-level binary sections", len(root.children))
        return FBXTree(root=root, version=self.version, kind="binary")

    def _parse_node(self) -> Optional[FBXNode]:
        reader = self._reader
        start = reader.offset
        end_offset, property_count, property_bytes = reader.unpack(self._header_fmt)
        name = reader.read(reader.unpack("<B")).decode("ascii", errors="replace")

        if end_offset == 0:
            if property_count or property_bytes or name:
                raise BinaryParseError("Malformed null record", start)
            return None

        if end_offset > len(reader.data) or end_offset <= start:
            raise BinaryParseError(f"Corrupt end offset {end_offset} for node {name!r}", start)

        node = FBXNode(name=name)
        properties_end = reader.offset + property_bytes
        for _ in range(property_count):
            node.properties.append(_read_property(reader))
        if reader.offset != properties_end:
            raise BinaryParseError(
                f"Property block of {name!r} ends at {reader.offset}, expected {properties_end}",
                reader.offset,
            )

        while reader.offset < end_offset:
            child = self._parse_node()
            if child is not None:
                node.add_child(child)

        if reader.offset != end_offset:
            raise BinaryParseError(
                f"Node {name!r} overran its end offset {end_offset}", reader.offset
            )
        return node


def parse_binary(buffer: bytes) -> FBXTree:
    return BinaryParser(buffer).parse()
