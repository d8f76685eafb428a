"""
Daily horoscope generation.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Optional

from models import gemini, prompts
from shared.markdown_utils import cleanup_markdown

logger = logging.getLogger(__name__)

ZODIAC_SIGNS = (
    "Aries",
    "Taurus",
    "Gemini",
    "Cancer",
    "Leo",
    "Virgo",
    "Libra",
    "Scorpio",
    "Sagittarius",
    "Capricorn",
    "Aquarius",
    "Pisces",
)

# (month, first day) of each sign, in calendar order.
_SIGN_STARTS = (
    (1, 20, "Aquarius"),
    (2, 19, "Pisces"),
    (3, 21, "Aries"),
    (4, 20, "Taurus"),
    (5, 21, "Gemini"),
    (6, 21, "Cancer"),
    (7, 23, "Leo"),
    (8, 23, "Virgo"),
    (9, 23, "Libra"),
    (10, 23, "Scorpio"),
    (11, 22, "Sagittarius"),
    (12, 22, "Capricorn"),
)


class HoroscopeUnavailableError(Exception):
    pass


@dataclass
class Horoscope:
    sign: str
    sign_type: str
    date: str
    horoscope: str

    def as_dict(self) -> dict:
        return asdict(self)


def normalize_sign(value: str) -> Optional[str]:
    wanted = (value or "").strip().lower()
    for sign in ZODIAC_SIGNS:
        if sign.lower() == wanted:
            return sign
    return None


def sun_sign(birthdate: date) -> str:
    sign = "Capricorn"
    for month, day, name in _SIGN_STARTS:
        if (birthdate.month, birthdate.day) >= (month, day):
            sign = name
    return sign


def generate_horoscope(
    sign: Optional[str] = None,
    birthdate: Optional[date] = None,
    birth_time: Optional[str] = None,
    birth_place: Optional[str] = None,
    today: Optional[date] = None,
    api_key: str | None = None,
) -> Horoscope:
    """
    Writes today's horoscope for an explicit sign, or for the sun sign of
    ``birthdate`` when no sign is given.
    """
    today = today or datetime.now(timezone.utc).date()
    if sign:
        resolved = normalize_sign(sign)
        if not resolved:
            raise ValueError(f"Unknown zodiac sign: {sign}")
        sign_type = "sun"
        birth_details = ""
    elif birthdate:
        resolved = sun_sign(birthdate)
        sign_type = "birth chart"
        details = [f"Birth date: {birthdate.isoformat()}"]
        if birth_time:
            details.append(f"Birth time: {birth_time}")
        if birth_place:
            details.append(f"Birth place: {birth_place}")
        birth_details = "\n".join(details) + "\n"
    else:
        raise ValueError("Either a zodiac sign or a birth date is required")

    prompt = prompts.HOROSCOPE_PROMPT.format(
        sign=resolved,
        sign_type=sign_type,
        date=today.strftime("%A, %B %d, %Y"),
        birth_details=birth_details,
    )
    try:
        text = gemini.call_predict(prompt, api_key=api_key)
    except Exception as e:
        logger.exception("Horoscope generation failed for %s", resolved)
        raise HoroscopeUnavailableError("Failed to generate horoscope") from e

    return Horoscope(
        sign=resolved,
        sign_type=sign_type,
        date=today.isoformat(),
        horoscope=cleanup_markdown(text),
    )
