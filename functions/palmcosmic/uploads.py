"""
Image upload handling shared by the HTTP routes.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, UploadFile

from palmcosmic.images import (
    ImageTooLargeError,
    InvalidImageError,
    NormalizedImage,
    build_object_path,
    normalize_image,
)
from palmcosmic.storage import StorageClient
from shared.constants import (
    BLOG_IMAGES_PREFIX,
    ILLUSTRATIONS_PREFIX,
    PALM_IMAGES_PREFIX,
    PROFILE_PICTURES_PREFIX,
)

logger = logging.getLogger(__name__)

USER_FILE_PREFIXES = (
    PALM_IMAGES_PREFIX,
    BLOG_IMAGES_PREFIX,
    PROFILE_PICTURES_PREFIX,
    ILLUSTRATIONS_PREFIX,
)


def prepare_image(data: bytes, max_bytes: int) -> NormalizedImage:
    """Validates and normalises an image, mapping failures to HTTP errors."""
    try:
        return normalize_image(data, max_bytes)
    except ImageTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e)) from e
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def put_image(storage: StorageClient, image: NormalizedImage, path: str) -> str:
    storage.upload_bytes(path, image.data, content_type=image.mime_type)
    return path


async def read_upload(file: UploadFile, max_bytes: int) -> NormalizedImage:
    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Please select an image file")
    return prepare_image(await file.read(), max_bytes)


async def store_upload(
    storage: StorageClient,
    file: UploadFile,
    *,
    prefix: str,
    user_id: str,
    suffix: str,
    max_bytes: int,
) -> str:
    image = await read_upload(file, max_bytes)
    return put_image(storage, image, build_object_path(prefix, user_id, suffix))


def delete_owned_images(storage: StorageClient, user_id: str, urls) -> int:
    """
    Deletes the stored objects behind ``urls`` that live in ``user_id``'s folder.

    URLs that point elsewhere (another user's folder or an external host) are left alone.
    """
    deleted = 0
    for url in urls:
        path = storage.path_from_url(url) if url else None
        if not path or path.split("/")[1:2] != [user_id]:
            continue
        storage.delete(path)
        deleted += 1
    return deleted


def delete_user_files(storage: StorageClient, user_id: str) -> int:
    deleted = 0
    for prefix in USER_FILE_PREFIXES:
        deleted += storage.delete_prefix(f"{prefix}/{user_id}/")
    logger.info("Deleted %d stored files for %s", deleted, user_id)
    return deleted
