"""Detect the FBX flavour of a buffer and extract its version."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from typing import Optional

from .exceptions import FormatError, UnsupportedVersionError

BINARY_MAGIC = b"Kaydara FBX Binary  \x00"
BINARY_HEADER_SIZE = 27  # magic (21) + 0x1a 0x00 + uint32 version
ASCII_MARKER = "FBXHeaderExtension"

MIN_BINARY_VERSION = 6400
MIN_ASCII_VERSION = 7000

_VERSION_RE = re.compile(r"FBXVersion:\s*(\d+)")


@dataclass(frozen=True)
class FormatInfo:
    kind: str
    version: int
    text: Optional[str] = None

    @property
    def is_binary(self) -> bool:
        return self.kind == "binary"


def is_binary_fbx(buffer: bytes) -> bool:
    return len(buffer) >= len(BINARY_MAGIC) and buffer[: len(BINARY_MAGIC)] == BINARY_MAGIC


def is_ascii_fbx(text: str) -> bool:
    return ASCII_MARKER in text or text.lstrip().startswith("; FBX")


def binary_version(buffer: bytes) -> int:
    if len(buffer) < BINARY_HEADER_SIZE:
        raise FormatError("Binary FBX header is truncated.")
    return struct.unpack_from("<I", buffer, 23)[0]


def ascii_version(text: str) -> int:
    match = _VERSION_RE.search(text)
    if match is None:
        raise FormatError("Cannot find the FBXVersion number in the ASCII header.")
    return int(match.group(1))


def sniff_format(buffer: bytes) -> FormatInfo:
    """Return the format and version of ``buffer``.

    The version floor is enforced here so neither decoder starts on a file it
    cannot read.
    """

    if is_binary_fbx(buffer):
        version = binary_version(buffer)
        if version < MIN_BINARY_VERSION:
            raise UnsupportedVersionError(version, MIN_BINARY_VERSION)
        return FormatInfo(kind="binary", version=version)

    text = bytes(buffer).decode("utf-8", errors="replace")
    if not is_ascii_fbx(text):
        raise FormatError("Unknown format: neither binary magic nor an ASCII FBX header was found.")

    version = ascii_version(text)
    if version < MIN_ASCII_VERSION:
        raise UnsupportedVersionError(version, MIN_ASCII_VERSION)
    return FormatInfo(kind="ascii", version=version, text=text)
