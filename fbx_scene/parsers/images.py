"""Pillow backed image decoding and texture loading."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from PIL import Image, UnidentifiedImageError

from ..models import ImageHandle

logger = logging.getLogger(__name__)

MIME_TYPES: Dict[str, str] = {
    "bmp": "image/bmp",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "tif": "image/tiff",
}
TGA_MIME_TYPE = "image/tga"


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def open_image(stream) -> Optional[Image.Image]:
    try:
        image = Image.open(stream)
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("Unable to decode image: %s", exc)
        return None
    return image


class PillowImageDecoder:
    """Decodes inline ``Video`` content by file extension.

    TGA needs an explicit ``register_handler("tga")``; without it TGA content
    is skipped and textures pointing at ``.tga`` files become placeholders.
    """

    def __init__(self, handlers: Optional[Dict[str, str]] = None) -> None:
        self._handlers: Dict[str, str] = dict(MIME_TYPES if handlers is None else handlers)

    def register_handler(self, extension: str, mime_type: Optional[str] = None) -> None:
        extension = extension.lower().lstrip(".")
        self._handlers[extension] = mime_type or (TGA_MIME_TYPE if extension == "tga" else f"image/{extension}")

    def has_handler(self, extension: str) -> bool:
        return extension.lower().lstrip(".") in self._handlers

    def decode(self, blob: bytes, filename: str) -> Optional[ImageHandle]:
        extension = _extension(filename)
        mime_type = self._handlers.get(extension)
        if mime_type is None:
            if extension == "tga":
                logger.warning("TGA loader not found, skipping %s", filename)
            else:
                logger.warning('Image type "%s" is not supported.', extension)
            return None

        image = open_image(io.BytesIO(blob))
        return ImageHandle(filename=filename, mime_type=mime_type, data=bytes(blob), image=image)


class FileTextureLoader:
    """Resolves texture sources against the resource path and opens them."""

    def load(
        self, source: Union[str, ImageHandle], resource_path: Optional[str], cross_origin: Optional[str]
    ) -> Optional[ImageHandle]:
        if isinstance(source, ImageHandle):
            return source
        if not source:
            return None

        path = Path(resource_path) / source if resource_path else Path(source)
        if not path.is_file():
            logger.warning("Texture file not found: %s", path)
            return None

        image = open_image(path)
        mime_type = MIME_TYPES.get(_extension(source), Image.MIME.get(image.format or "", "") if image else "")
        return ImageHandle(filename=str(path), mime_type=mime_type, image=image)
