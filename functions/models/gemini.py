# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


import time
import logging
from google import genai
from google.genai import types
from models import api_config
from typing import List, Optional, Sequence, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

API_KEY_LOGGING_MESSAGE = "Ran with user-specified API key"
QUERY_RESPONSE_MAX_OUTPUT_TOKENS = 1500
CHAT_RESPONSE_MAX_OUTPUT_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7

T = TypeVar("T")

# (image bytes, mime type)
ImagePart = Tuple[bytes, str]


class GeminiInvalidResponseException(Exception):
    pass


def _get_client(api_key: str | None) -> genai.Client:
    if not api_key:
        api_key = api_config.DEFAULT_API_KEY
    else:
        logger.info(API_KEY_LOGGING_MESSAGE)
    return genai.Client(api_key=api_key)


def _truncate_for_log(prompt: str) -> str:
    return (prompt[:200] + "...") if len(prompt) > 200 else prompt


def call_predict(
    query: str,
    system_instruction: Optional[str] = None,
    model: str | None = None,
    api_key: str | None = None,
    max_output_tokens: int = QUERY_RESPONSE_MAX_OUTPUT_TOKENS,
) -> str:
    client = _get_client(api_key)

    response = client.models.generate_content(
        model=model or api_config.DEFAULT_TEXT_MODEL,
        contents=query,
        config=types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=DEFAULT_TEMPERATURE,
            max_output_tokens=max_output_tokens,
        ),
    )
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text


def call_predict_with_images(
    prompt: str,
    images: Sequence[ImagePart],
    system_instruction: Optional[str] = None,
    model: str | None = None,
    api_key: str | None = None,
    max_output_tokens: int = QUERY_RESPONSE_MAX_OUTPUT_TOKENS,
) -> str:
    """Calls Gemini with a prompt followed by one or more images."""
    client = _get_client(api_key)

    start_time = time.time()
    logger.info(
        "Calling Gemini with %d image(s), prompt: '%s'",
        len(images),
        _truncate_for_log(prompt),
    )
    contents: List = [prompt]
    for data, mime_type in images:
        contents.append(types.Part.from_bytes(data=data, mime_type=mime_type))

    response = client.models.generate_content(
        model=model or api_config.DEFAULT_TEXT_MODEL,
        contents=contents,
        config=types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=DEFAULT_TEMPERATURE,
            max_output_tokens=max_output_tokens,
        ),
    )
    logger.info("Gemini image call took: %.2fs", time.time() - start_time)
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text


def call_predict_with_schema(
    query: str,
    response_schema: Type[T],
    model: str | None = None,
    api_key: str | None = None,
) -> T | List[T] | None:
    """Calls Gemini with a response schema for structured output."""
    client = _get_client(api_key)
    start_time = time.time()
    logger.info("Calling Gemini with schema, prompt: '%s'", _truncate_for_log(query))
    try:
        response = client.models.generate_content(
            model=model or api_config.DEFAULT_TEXT_MODEL,
            contents=query,
            config={
                "response_mime_type": "application/json",
                "response_schema": response_schema,
                "temperature": 0,
            },
        )
        logger.info("Gemini with schema call took: %.2fs", time.time() - start_time)
        if not response.parsed:
            raise GeminiInvalidResponseException()
        return response.parsed
    except Exception as e:
        logger.warning("An error occurred during predict with schema API call: %s", e)
        return None


def generate_image(
    prompt: str,
    model: str | None = None,
    api_key: str | None = None,
) -> bytes:
    """Generates a single square image and returns its encoded bytes."""
    client = _get_client(api_key)
    logger.info("Calling Gemini image generation, prompt: '%s'", _truncate_for_log(prompt))

    response = client.models.generate_images(
        model=model or api_config.DEFAULT_IMAGE_MODEL,
        prompt=prompt,
        config=types.GenerateImagesConfig(number_of_images=1, aspect_ratio="1:1"),
    )
    if not response.generated_images:
        raise GeminiInvalidResponseException()
    image = response.generated_images[0].image
    if not image or not image.image_bytes:
        raise GeminiInvalidResponseException()
    return image.image_bytes
