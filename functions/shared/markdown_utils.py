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

"""Helpers for turning LLM markdown into plain display text."""

import re

_HEADING_PATTERN = re.compile(r"#{1,6}\s*")
_BOLD_PATTERN = re.compile(r"\*\*(.*?)\*\*")
_ITALIC_PATTERN = re.compile(r"\*(.*?)\*")
_EXTRA_NEWLINES_PATTERN = re.compile(r"\n{3,}")

# Bullets can arrive either intact or double-encoded as UTF-8 mojibake.
_BULLETS = ("•", "â€¢")


def cleanup_markdown(text: str) -> str:
    """Removes headings, bold/italic markers and collapses blank lines."""
    if not text:
        return text
    text = _HEADING_PATTERN.sub("", text)
    text = _BOLD_PATTERN.sub(r"\1", text)
    text = _ITALIC_PATTERN.sub(r"\1", text)
    for bullet in _BULLETS:
        text = text.replace(bullet, "-")
    text = _EXTRA_NEWLINES_PATTERN.sub("\n\n", text)
    return text.strip()


def truncate(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncates text to max_length characters, including the suffix."""
    if not text or len(text) <= max_length:
        return text
    if max_length <= len(suffix):
        return text[:max_length]
    return text[: max_length - len(suffix)].rstrip() + suffix
