"""
Astrobot, the palmistry chat assistant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from models import gemini, prompts
from models.gemini import ImagePart
from shared.types import ChatSender

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "The cosmic energies are momentarily clouded, but I sense great potential in "
    "your destiny! Please try asking your question again, and I'll channel my "
    "mystical powers to reveal what your palm holds for your future. ✨🔮"
)

IMAGE_FOLLOW_UP = (
    "\n\n✨ *Would you like me to focus on any specific aspect of your palm? I can "
    "provide more detailed insights about your relationships, career, health, or "
    "spiritual path.*"
)
LOVE_PHOTO_HINT = (
    "\n\n📷 *For a precise reading about your love destiny, click the help button "
    "(?) next to the camera icon to see how to take the perfect palm photo. I'll "
    "read the exact timing and details from your heart line.*"
)
CAREER_PHOTO_HINT = (
    "\n\n📷 *To reveal your complete financial and career destiny, upload a clear "
    "palm photo. Click the help button (?) for photography guidance, then I'll "
    "read your exact timeline from your fate and head lines.*"
)
GENERIC_PHOTO_HINT = (
    "\n\n📷 *For the most accurate reading, please upload a clear photo of your "
    "palm. Click the help button (?) next to the camera icon for detailed "
    "photography guidance.*"
)

LOVE_KEYWORDS = ("marriage", "relationship")
CAREER_KEYWORDS = ("career", "job", "money", "rich")

PREBUILT_QUESTIONS = [
    "When will I get married?",
    "Will I be poor or rich?",
    "When will I get a job?",
    "Will I get divorced?",
    "What does my heart line say about my relationships?",
    "What does my fate line reveal about my destiny?",
    "What does my head line suggest about my intelligence?",
    "What can I learn about my past from my palm?",
    "What do the mounts on my palm mean?",
    "How long will I live based on my life line?",
]


@dataclass
class HistoryEntry:
    sender: str
    content: str
    is_typing: bool = False


@dataclass
class ChatReply:
    content: str
    used_fallback: bool = False


def build_context(history: Iterable[HistoryEntry], window: int) -> str:
    """Renders the last ``window`` messages as ``User: ...`` / ``Astrobot: ...``."""
    recent = list(history)[-window:] if window > 0 else []
    lines = []
    for entry in recent:
        if entry.sender == ChatSender.ASTROBOT and entry.is_typing:
            continue
        speaker = "User" if entry.sender == ChatSender.USER else "Astrobot"
        lines.append(f"{speaker}: {entry.content}")
    return "\n".join(lines)


def build_prompt(message: str, has_image: bool, context: str) -> tuple[str, str]:
    """Returns the (system instruction, user turn) pair."""
    system = prompts.ASTROBOT_KNOWLEDGE_PROMPT + (
        prompts.ASTROBOT_WITH_IMAGE_ADDENDUM
        if has_image
        else prompts.ASTROBOT_WITHOUT_IMAGE_ADDENDUM
    )
    if has_image and not message:
        message = prompts.ASTROBOT_DEFAULT_IMAGE_MESSAGE
    if context:
        user_turn = prompts.ASTROBOT_CONTEXT_TEMPLATE.format(
            context=context, message=message
        )
    else:
        user_turn = message
    return system, user_turn


def reply_suffix(message: str, has_image: bool) -> str:
    if has_image:
        return IMAGE_FOLLOW_UP
    lowered = (message or "").lower()
    if any(word in lowered for word in LOVE_KEYWORDS):
        return LOVE_PHOTO_HINT
    if any(word in lowered for word in CAREER_KEYWORDS):
        return CAREER_PHOTO_HINT
    return GENERIC_PHOTO_HINT


def generate_reply(
    message: str,
    history: Iterable[HistoryEntry] = (),
    image: Optional[ImagePart] = None,
    api_key: str | None = None,
    window: int = 10,
) -> ChatReply:
    context = build_context(history, window)
    system, user_turn = build_prompt(message, image is not None, context)
    try:
        if image is not None:
            text = gemini.call_predict_with_images(
                user_turn,
                [image],
                system_instruction=system,
                api_key=api_key,
                max_output_tokens=gemini.CHAT_RESPONSE_MAX_OUTPUT_TOKENS,
            )
        else:
            text = gemini.call_predict(
                user_turn,
                system_instruction=system,
                api_key=api_key,
                max_output_tokens=gemini.CHAT_RESPONSE_MAX_OUTPUT_TOKENS,
            )
    except Exception:
        logger.exception("Astrobot reply failed, returning fallback")
        return ChatReply(content=FALLBACK_REPLY, used_fallback=True)
    return ChatReply(content=text + reply_suffix(message, image is not None))
