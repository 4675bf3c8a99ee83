"""Default collaborator implementations used by :class:`FBXLoader`."""

from .animation import KeyframeAnimationParser
from .geometry import MeshGeometryParser
from .images import FileTextureLoader, PillowImageDecoder

__all__ = [
    "FileTextureLoader",
    "KeyframeAnimationParser",
    "MeshGeometryParser",
    "PillowImageDecoder",
]
