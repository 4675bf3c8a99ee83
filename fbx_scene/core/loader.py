"""High level loader orchestration."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from ..builders.scene import SceneReconstructor
from ..parsers.animation import KeyframeAnimationParser
from ..parsers.geometry import MeshGeometryParser
from ..parsers.images import FileTextureLoader, PillowImageDecoder
from .binary import parse_binary
from .catalog import ObjectCatalog
from .connections import ConnectionGraph, parse_connections
from .sniffer import sniff_format
from .text import parse_text
from .tree import FBXTree

if TYPE_CHECKING:  # pragma: no cover
    from ..builders.deformers import Deformers
    from ..models import AnimationClip, Geometry, ImageHandle, Object3D

logger = logging.getLogger(__name__)


class GeometryParser(Protocol):
    """Builds geometry buffers for every ``Geometry`` object, keyed by ID."""

    def parse(self, context: "ParseContext", deformers: "Deformers") -> Dict[int, "Geometry"]:
        ...


class AnimationParser(Protocol):
    def parse(self, context: "ParseContext") -> List["AnimationClip"]:
        ...


class TextureLoader(Protocol):
    """Turns a filename or decoded inline image into a texture image."""

    def load(self, source: Union[str, "ImageHandle"], resource_path: Optional[str], cross_origin: Optional[str]) -> Any:
        ...


class ImageDecoder(Protocol):
    def decode(self, blob: bytes, filename: str) -> Optional["ImageHandle"]:
        """Return a handle for ``blob``, or ``None`` when the type is unsupported."""

    def has_handler(self, extension: str) -> bool:
        ...


class SceneInspector(Protocol):
    """Protocol defining how inspectors gather data from a loaded scene."""

    id: str

    def collect(self, scene: "Object3D") -> Any:
        """Return extracted information from the scene."""


@dataclass
class LoaderOptions:
    """User facing configuration; unset collaborators get the package defaults."""

    resource_path: Optional[str] = None
    cross_origin: Optional[str] = "anonymous"
    viewport_size: Tuple[int, int] = (1920, 1080)
    geometry_parser: Optional[GeometryParser] = None
    animation_parser: Optional[AnimationParser] = None
    texture_loader: Optional[TextureLoader] = None
    image_decoder: Optional[ImageDecoder] = None

    def with_defaults(self) -> "LoaderOptions":
        return dataclasses.replace(
            self,
            geometry_parser=self.geometry_parser or MeshGeometryParser(),
            animation_parser=self.animation_parser or KeyframeAnimationParser(),
            texture_loader=self.texture_loader or FileTextureLoader(),
            image_decoder=self.image_decoder or PillowImageDecoder(),
        )


@dataclass(frozen=True)
class ParseContext:
    """Everything one parse owns, threaded explicitly through every stage."""

    tree: FBXTree
    graph: ConnectionGraph
    catalog: ObjectCatalog
    options: LoaderOptions
    resource_path: Optional[str] = None

    @property
    def version(self) -> int:
        return self.tree.version


class FBXLoader:
    """Decodes FBX buffers and coordinates scene reconstruction."""

    def __init__(self, options: Optional[LoaderOptions] = None) -> None:
        self._options = (options or LoaderOptions()).with_defaults()

    @property
    def options(self) -> LoaderOptions:
        return self._options

    def parse_tree(self, buffer: bytes) -> FBXTree:
        """Sniff the format of ``buffer`` and decode it into the generic tree."""

        info = sniff_format(buffer)
        logger.debug("Detected %s FBX version %d", info.kind, info.version)
        if info.is_binary:
            return parse_binary(buffer)
        return parse_text(info.text or "", info.version)

    def create_context(self, tree: FBXTree, path: str = "") -> ParseContext:
        resource_path = self._options.resource_path or path or None
        return ParseContext(
            tree=tree,
            graph=parse_connections(tree),
            catalog=ObjectCatalog(tree),
            options=self._options,
            resource_path=resource_path,
        )

    def parse(self, buffer: bytes, path: str = "") -> "Object3D":
        tree = self.parse_tree(buffer)
        context = self.create_context(tree, path)
        return SceneReconstructor(context).build()

    def load(self, path: Union[str, "os.PathLike[str]"]) -> "Object3D":
        file_path = Path(path)
        buffer = file_path.read_bytes()
        return self.parse(buffer, str(file_path.parent))

    def run(self, scene: "Object3D", inspectors: Iterable[SceneInspector]) -> Dict[str, Any]:
        """Execute inspectors and return their aggregated results."""

        results: Dict[str, Any] = {}
        for inspector in inspectors:
            results[inspector.id] = inspector.collect(scene)
        return results
