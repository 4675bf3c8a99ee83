"""Core infrastructure: tree decoding, connection graph and object catalog."""

from .catalog import FBXObject, ObjectCatalog
from .connections import Connection, ConnectionGraph, build_connection_graph, parse_connections
from .exceptions import (
    BinaryParseError,
    FBXError,
    FormatError,
    GraphResolutionError,
    TextParseError,
    UnsupportedVersionError,
)
from .sniffer import sniff_format
from .tree import FBXNode, FBXTree

__all__ = [
    "BinaryParseError",
    "Connection",
    "ConnectionGraph",
    "FBXError",
    "FBXNode",
    "FBXObject",
    "FBXTree",
    "FormatError",
    "GraphResolutionError",
    "ObjectCatalog",
    "TextParseError",
    "UnsupportedVersionError",
    "build_connection_graph",
    "parse_connections",
    "sniff_format",
]
