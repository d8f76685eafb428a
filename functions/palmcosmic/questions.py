"""
Rotation of the suggested questions shown on the welcome screen.
"""

from __future__ import annotations

import random
from typing import Optional, Sequence

ALL_QUESTIONS = [
    "When will I find my soulmate?",
    "What does my wealth line reveal?",
    "Will I have a long and healthy life?",
    "What career path should I pursue?",
    "How many children will I have?",
    "What challenges await me this year?",
    "What are my natural talents?",
    "When will I achieve success?",
    "What does my love line say about relationships?",
    "How can I improve my financial situation?",
    "What health issues should I be aware of?",
    "What creative abilities do I possess?",
]

QUESTIONS_PER_ROTATION = 3
RECENT_WINDOW = 3


def random_questions(rng: Optional[random.Random] = None) -> list[str]:
    rng = rng or random.Random()
    return rng.sample(ALL_QUESTIONS, QUESTIONS_PER_ROTATION)


def rotate_questions(
    seen: Sequence[int], rng: Optional[random.Random] = None
) -> tuple[list[str], list[int]]:
    """
    Picks the next questions for a signed-in user.

    While fewer than half have been seen only unseen questions are offered.
    After that anything except the last three seen is allowed, and once at
    least 75% have been seen the history is cut back to those last three.

    Returns ``(questions, new_seen)``.
    """
    rng = rng or random.Random()
    total = len(ALL_QUESTIONS)
    seen = [i for i in seen if 0 <= i < total]
    history = list(seen)

    if len(seen) < total / 2:
        available = [i for i in range(total) if i not in seen]
    else:
        recent = seen[-RECENT_WINDOW:]
        available = [i for i in range(total) if i not in recent]
        if len(seen) >= total * 0.75:
            history = list(recent)

    if not available:
        available = list(range(total))

    selected = rng.sample(available, min(QUESTIONS_PER_ROTATION, len(available)))
    return [ALL_QUESTIONS[i] for i in selected], history + selected
