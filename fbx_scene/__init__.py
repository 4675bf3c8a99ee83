"""Load FBX files (binary and ASCII) into an in-memory scene graph."""

from __future__ import annotations

import os
from typing import Optional, Union

from .core.exceptions import (
    BinaryParseError,
    FBXError,
    FormatError,
    GraphResolutionError,
    TextParseError,
    UnsupportedVersionError,
)
from .core.loader import FBXLoader, LoaderOptions, ParseContext
from .models import Object3D

__all__ = [
    "BinaryParseError",
    "FBXError",
    "FBXLoader",
    "FormatError",
    "GraphResolutionError",
    "LoaderOptions",
    "ParseContext",
    "TextParseError",
    "UnsupportedVersionError",
    "load_fbx",
    "parse_fbx",
]

__version__ = "0.1.0"


def parse_fbx(buffer: bytes, path: str = "", options: Optional[LoaderOptions] = None) -> Object3D:
    """Parse an in-memory FBX buffer; ``path`` resolves external texture files."""

    return FBXLoader(options).parse(buffer, path)


def load_fbx(path: Union[str, "os.PathLike[str]"], options: Optional[LoaderOptions] = None) -> Object3D:
    return FBXLoader(options).load(path)
