"""
Palm readings produced by the vision model.

The model answers in a fixed plain-text layout (see
``models.prompts.PALM_READING_SYSTEM_PROMPT``); line strengths are derived
from that text with keyword matching, and the structured sub-analyses come
from a second, schema-constrained call.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Optional, Sequence
from urllib.parse import urlsplit

import requests
from pydantic import BaseModel, Field

from models import gemini, prompts
from models.gemini import ImagePart
from palmcosmic.config import get_settings
from palmcosmic.images import ImageTooLargeError, InvalidImageError, normalize_image
from shared.constants import MAX_INSIGHT_LENGTH
from shared.markdown_utils import cleanup_markdown, truncate
from shared.types import LineStrength, PalmLine

logger = logging.getLogger(__name__)

IMAGE_FETCH_TIMEOUT_SECONDS = 20
IMAGE_FETCH_CHUNK_BYTES = 64 * 1024
ALLOWED_URL_SCHEMES = ("http", "https")
BLOCKED_HOST_SUFFIXES = (".localhost", ".local", ".internal")

STRONG_KEYWORDS = (
    "strong",
    "deep",
    "prominent",
    "clear",
    "well-defined",
    "excellent",
    "impressive",
)
WEAK_KEYWORDS = ("weak", "faint", "shallow", "light", "thin")

DEFAULT_TRAITS = {
    "personality": "Balanced and intuitive",
    "strengths": "Strong emotional intelligence and analytical abilities",
    "challenges": "Finding harmony between logic and intuition",
}

FALLBACK_READING = """PALM READING ANALYSIS

Thank you for sharing your palm image. Here's a detailed analysis based on traditional palmistry principles.

MAJOR PALM LINES ANALYSIS

1. LIFE LINE

Observation: Your life line shows a strong, well-defined curve that flows gracefully around the base of your thumb. The line appears deep and continuous, indicating robust vitality.

Interpretation:
- Vitality: Your life line suggests strong physical energy and stamina, with a natural resilience that helps you recover from challenges
- Life Journey: The curve indicates a balanced approach to life, with stability in your core values while remaining adaptable to change
- Health Influence: The depth and clarity suggest good constitutional health and the ability to maintain energy throughout life

2. HEART LINE

Observation: The heart line runs clearly across the upper portion of your palm, showing good definition and a gentle curve toward the fingers.

Interpretation:
- Emotional Depth: You possess deep emotional intelligence and the capacity for meaningful connections with others
- Relationships: Your approach to love is both passionate and thoughtful, valuing both emotional and intellectual compatibility
- Capacity for Love: You have a generous heart with the ability to give and receive love freely, though you maintain healthy boundaries

3. HEAD LINE

Observation: Your head line travels horizontally across the center of your palm with clear definition, showing a balanced length and steady direction.

Interpretation:
- Mental Clarity: You possess analytical thinking skills combined with creative insight, allowing for well-rounded decision making
- Decision Making: You process information thoroughly before making choices, balancing logic with intuition effectively
- Intellectual Style: Your thinking style blends practical wisdom with creative problem-solving abilities

4. FATE LINE

Observation: The fate line shows moderate definition, running vertically through the center of your palm with consistent strength.

Interpretation:
- Career Path: You have natural leadership abilities and the determination to achieve your professional goals
- Life Direction: Your sense of purpose is developing steadily, with opportunities for growth in areas that align with your values
- External Influences: While you're influenced by others' guidance, you maintain independence in your major life decisions"""


class ReadingUnavailableError(Exception):
    pass


class AgePrediction(BaseModel):
    age_range: str
    prediction: str


class TimelineEvent(BaseModel):
    age: int
    event: str


class LineIntersection(BaseModel):
    lines: list[str]
    meaning: str


class MountReading(BaseModel):
    mount: str
    development: str
    meaning: str


class PalmInsights(BaseModel):
    """Structured sub-analyses requested alongside the free-text reading."""

    age_predictions: list[AgePrediction] = Field(default_factory=list)
    age_timeline: list[TimelineEvent] = Field(default_factory=list)
    line_intersections: list[LineIntersection] = Field(default_factory=list)
    mount_analysis: list[MountReading] = Field(default_factory=list)
    partnership_predictions: str = ""
    wealth_analysis: str = ""


@dataclass
class PalmReading:
    life_line_strength: str
    heart_line_strength: str
    head_line_strength: str
    fate_line_strength: str
    overall_insight: str
    traits: dict = field(default_factory=lambda: dict(DEFAULT_TRAITS))
    age_predictions: Optional[list] = None
    age_timeline: Optional[list] = None
    line_intersections: Optional[list] = None
    mount_analysis: Optional[list] = None
    partnership_predictions: Optional[str] = None
    wealth_analysis: Optional[str] = None
    used_fallback: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


def parse_line_strength(analysis: str, line: PalmLine | str) -> str:
    """Classifies a line's section of the reading as Strong, Weak or Moderate."""
    name = str(line)
    match = re.search(
        rf"{re.escape(name)} line[\s\S]*?(?=\n\n\d+\.|$)",
        analysis or "",
        flags=re.IGNORECASE,
    )
    if match:
        section = match.group(0).lower()
        if any(word in section for word in STRONG_KEYWORDS):
            return LineStrength.STRONG.value
        if any(word in section for word in WEAK_KEYWORDS):
            return LineStrength.WEAK.value
    return LineStrength.MODERATE.value


def build_palm_reading(analysis: str) -> PalmReading:
    return PalmReading(
        life_line_strength=parse_line_strength(analysis, PalmLine.LIFE),
        heart_line_strength=parse_line_strength(analysis, PalmLine.HEART),
        head_line_strength=parse_line_strength(analysis, PalmLine.HEAD),
        fate_line_strength=parse_line_strength(analysis, PalmLine.FATE),
        overall_insight=truncate(cleanup_markdown(analysis), MAX_INSIGHT_LENGTH),
    )


def _check_image_url(url: str) -> None:
    parts = urlsplit(url or "")
    if parts.scheme not in ALLOWED_URL_SCHEMES or not parts.hostname:
        raise InvalidImageError("Image URL must be an http(s) URL")
    host = parts.hostname.lower()
    if host == "localhost" or host.endswith(BLOCKED_HOST_SUFFIXES):
        raise InvalidImageError("Image URL host is not allowed")
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return
    if not address.is_global:
        raise InvalidImageError("Image URL host is not allowed")


def fetch_image(url: str, max_bytes: Optional[int] = None) -> ImagePart:
    """
    Downloads an image referenced by URL and normalises it to JPEG.

    Raises ``InvalidImageError`` for disallowed URLs or undecodable content and
    ``ImageTooLargeError`` once the download exceeds ``max_bytes``.
    """
    _check_image_url(url)
    if max_bytes is None:
        max_bytes = get_settings().max_upload_bytes
    with requests.get(url, timeout=IMAGE_FETCH_TIMEOUT_SECONDS, stream=True) as response:
        response.raise_for_status()
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise ImageTooLargeError("Remote image is too large")
        data = bytearray()
        for chunk in response.iter_content(chunk_size=IMAGE_FETCH_CHUNK_BYTES):
            data.extend(chunk)
            if len(data) > max_bytes:
                raise ImageTooLargeError("Remote image is too large")
    normalized = normalize_image(bytes(data), max_bytes)
    return normalized.data, normalized.mime_type


def _request_insights(analysis: str, api_key: str | None) -> Optional[PalmInsights]:
    result = gemini.call_predict_with_schema(
        prompts.PALM_INSIGHTS_PROMPT.format(analysis=analysis),
        PalmInsights,
        api_key=api_key,
    )
    if isinstance(result, list):
        result = result[0] if result else None
    return result


def generate_palm_reading(
    images: Sequence[ImagePart],
    api_key: str | None = None,
    include_insights: bool = True,
) -> PalmReading:
    """
    Runs the palm analysis for one (left) or two (left, right) palm images.

    Model failures fall back to a canned reading; the request never fails
    because of the provider.
    """
    if not images:
        raise ReadingUnavailableError("Palm image is required")

    user_prompt = (
        prompts.PALM_READING_DUAL_USER_PROMPT
        if len(images) > 1
        else prompts.PALM_READING_USER_PROMPT
    )
    used_fallback = False
    try:
        analysis = gemini.call_predict_with_images(
            user_prompt,
            images,
            system_instruction=prompts.PALM_READING_SYSTEM_PROMPT,
            api_key=api_key,
        )
    except Exception as e:
        logger.warning("AI analysis failed, using fallback reading: %s", e)
        analysis = FALLBACK_READING
        used_fallback = True

    logger.info("Palm analysis length: %d", len(analysis))
    reading = build_palm_reading(analysis)
    reading.used_fallback = used_fallback

    if include_insights and not used_fallback:
        insights = _request_insights(analysis, api_key)
        if insights:
            reading.age_predictions = [p.model_dump() for p in insights.age_predictions]
            reading.age_timeline = [e.model_dump() for e in insights.age_timeline]
            reading.line_intersections = [
                i.model_dump() for i in insights.line_intersections
            ]
            reading.mount_analysis = [m.model_dump() for m in insights.mount_analysis]
            reading.partnership_predictions = insights.partnership_predictions or None
            reading.wealth_analysis = insights.wealth_analysis or None
    return reading
