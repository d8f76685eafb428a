"""
Educational palm illustrations from the image model.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from models import gemini, prompts
from palmcosmic.images import build_object_path
from palmcosmic.records import new_id
from palmcosmic.storage import StorageClient
from shared.constants import ILLUSTRATIONS_PREFIX

logger = logging.getLogger(__name__)


class IllustrationUnavailableError(Exception):
    pass


@dataclass
class Illustration:
    image_url: str
    palm_area: str
    description: Optional[str] = None
    path: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


def build_illustration_prompt(palm_area: str, description: Optional[str] = None) -> str:
    extra = f"Additional context: {description}" if description else ""
    return prompts.PALM_ILLUSTRATION_PROMPT.format(
        palm_area=palm_area, extra_context=extra
    )


def generate_illustration(
    palm_area: str,
    storage: StorageClient,
    description: Optional[str] = None,
    owner: str = "shared",
    model: str | None = None,
    api_key: str | None = None,
) -> Illustration:
    palm_area = (palm_area or "").strip()
    if not palm_area:
        raise ValueError("Palm area is required")

    prompt = build_illustration_prompt(palm_area, description)
    try:
        data = gemini.generate_image(prompt, model=model, api_key=api_key)
    except Exception as e:
        logger.exception("Illustration generation failed for %s", palm_area)
        raise IllustrationUnavailableError(str(e) or "Image generation failed") from e

    path = build_object_path(ILLUSTRATIONS_PREFIX, owner, new_id()[:12], "png")
    storage.upload_bytes(path, data, content_type="image/png")
    return Illustration(
        image_url=storage.public_url(path),
        palm_area=palm_area,
        description=description,
        path=path,
    )
