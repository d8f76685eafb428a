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


from enum import StrEnum


class CaptureState(StrEnum):
    """Lifecycle of a palm capture session / analysis job."""

    READY = "READY"
    DETECTING = "DETECTING"
    SCANNING = "SCANNING"
    CAPTURING = "CAPTURING"
    ANALYZING = "ANALYZING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class Hand(StrEnum):
    LEFT = "left"
    RIGHT = "right"


class Alignment(StrEnum):
    GOOD = "good"
    POOR = "poor"


class LineStrength(StrEnum):
    STRONG = "Strong"
    MODERATE = "Moderate"
    WEAK = "Weak"


class PalmLine(StrEnum):
    LIFE = "life"
    HEART = "heart"
    HEAD = "head"
    FATE = "fate"


class ChatSender(StrEnum):
    USER = "user"
    ASTROBOT = "astrobot"


class ChangeEvent(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
