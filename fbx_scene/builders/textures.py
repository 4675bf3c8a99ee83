"""Image and texture registries built from ``Video`` and ``Texture`` objects."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional, Union

from ..core.catalog import FBXObject, decode_content
from ..models import ImageHandle, Texture, Wrapping
from ..utils import resolve_enum_value

if TYPE_CHECKING:  # pragma: no cover
    from ..core.loader import ParseContext

logger = logging.getLogger(__name__)

ImageSource = Union[str, ImageHandle]


def _video_filename(video: FBXObject) -> str:
    return str(video.child_value("RelativeFilename") or video.child_value("Filename") or "")


def parse_images(context: "ParseContext") -> Dict[int, ImageSource]:
    """Map every ``Video`` ID to an external filename or a decoded inline image."""

    decoder = context.options.image_decoder
    filenames: Dict[int, str] = {}
    blobs: Dict[str, ImageHandle] = {}

    for video_id, video in context.catalog.videos.items():
        filename = _video_filename(video)
        filenames[video_id] = filename

        blob = decode_content(video.child_value("Content"))
        if blob and decoder is not None:
            handle = decoder.decode(blob, filename)
            if handle is not None:
                blobs[filename] = handle

    images: Dict[int, ImageSource] = {}
    for video_id, filename in filenames.items():
        if filename in blobs:
            images[video_id] = blobs[filename]
        else:
            images[video_id] = filename.split("\\")[-1]
    return images


def _wrapping(value: object) -> Wrapping:
    return resolve_enum_value(Wrapping, int(value or 0), default=Wrapping.CLAMP_TO_EDGE)


def _placeholder_reason(context: "ParseContext", extension: str) -> Optional[str]:
    if extension == "psd":
        return "PSD textures are not supported, creating placeholder texture"
    if extension == "tga":
        decoder = context.options.image_decoder
        if decoder is None or not decoder.has_handler("tga"):
            return "TGA loader not found, creating placeholder texture"
    return None


def load_texture(context: "ParseContext", node: FBXObject, images: Dict[int, ImageSource]) -> Texture:
    texture = Texture()
    filename = str(node.child_value("FileName") or "")
    extension = filename[-3:].lower()

    reason = _placeholder_reason(context, extension)
    if reason is not None:
        logger.warning("%s: %s", reason, filename)
        texture.placeholder = True
        return texture

    source: Optional[ImageSource] = None
    children = context.graph.children(node.id)
    if children and children[0].id in images:
        source = images[children[0].id]

    texture.source = source
    if source is None:
        return texture

    resource_path = None if isinstance(source, ImageHandle) else context.resource_path
    loader = context.options.texture_loader
    if loader is not None:
        texture.image = loader.load(source, resource_path, context.options.cross_origin)
    texture.cross_origin = context.options.cross_origin
    return texture


def parse_texture(context: "ParseContext", node: FBXObject, images: Dict[int, ImageSource]) -> Texture:
    texture = load_texture(context, node, images)

    texture.id = node.id
    texture.name = node.attr_name
    texture.wrap_s = _wrapping(node.prop("WrapModeU", 0))
    texture.wrap_t = _wrapping(node.prop("WrapModeV", 0))

    scaling = node.prop("Scaling")
    if scaling is not None:
        texture.repeat = (float(scaling[0]), float(scaling[1]))

    return texture


def parse_textures(context: "ParseContext", images: Dict[int, ImageSource]) -> Dict[int, Texture]:
    textures: Dict[int, Texture] = {}
    for texture_id, node in context.catalog.textures.items():
        textures[texture_id] = parse_texture(context, node, images)
    logger.debug("Built %d textures", len(textures))
    return textures
