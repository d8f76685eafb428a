"""
Validation and normalisation of uploaded images.
"""

from __future__ import annotations

import base64
import binascii
import io
import time
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

MAX_IMAGE_EDGE = 2048
JPEG_QUALITY = 90
JPEG_MIME_TYPE = "image/jpeg"


class InvalidImageError(ValueError):
    pass


class ImageTooLargeError(InvalidImageError):
    pass


@dataclass
class NormalizedImage:
    data: bytes
    width: int
    height: int
    mime_type: str = JPEG_MIME_TYPE


def strip_data_url(image_str: str) -> bytes:
    """Decodes a base64 payload, accepting ``data:image/...;base64,`` prefixes."""
    s = (image_str or "").strip()
    if "," in s and s.lower().startswith("data:"):
        s = s.split(",", 1)[1]
    try:
        return base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Image is not valid base64") from e


def normalize_image(data: bytes, max_bytes: int) -> NormalizedImage:
    """
    Checks size and decodability, fixes EXIF rotation, downscales and re-encodes
    the image as RGB JPEG.
    """
    if not data:
        raise InvalidImageError("Image is empty")
    if len(data) > max_bytes:
        raise ImageTooLargeError(
            f"Image size must be less than {max_bytes // (1024 * 1024)}MB"
        )
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            if img.mode != "RGB":
                img = img.convert("RGB")
            img.thumbnail((MAX_IMAGE_EDGE, MAX_IMAGE_EDGE))
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=JPEG_QUALITY)
            return NormalizedImage(data=out.getvalue(), width=img.width, height=img.height)
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError("File is not a supported image") from e


def build_object_path(
    prefix: str, user_id: str, suffix: str, extension: str = "jpg"
) -> str:
    """Builds ``<prefix>/<user>/<millis>-<suffix>.<extension>``."""
    millis = int(time.time() * 1000)
    return f"{prefix}/{user_id}/{millis}-{suffix}.{extension}"
