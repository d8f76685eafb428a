"""
Plain records mirroring the managed tables.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from shared.types import Alignment, CaptureState, ChatSender, Hand


def new_id() -> str:
    return uuid.uuid4().hex


def _now() -> float:
    return time.time()


@dataclass
class Profile:
    id: str
    email: str
    full_name: Optional[str] = None
    birthdate: Optional[str] = None
    gender: Optional[str] = None
    phone_number: Optional[str] = None
    phone_verified: bool = False
    profile_picture_url: Optional[str] = None
    seen_questions: list[int] = field(default_factory=list)
    pending_phone_otp: Optional[str] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        data = asdict(self)
        data.pop("pending_phone_otp")
        return data


@dataclass
class PalmScan:
    user_id: str
    id: str = field(default_factory=new_id)
    scan_date: float = field(default_factory=_now)
    life_line_strength: Optional[str] = None
    heart_line_strength: Optional[str] = None
    head_line_strength: Optional[str] = None
    fate_line_strength: Optional[str] = None
    overall_insight: Optional[str] = None
    traits: Optional[dict] = None
    age_predictions: Optional[Any] = None
    age_timeline: Optional[Any] = None
    line_intersections: Optional[Any] = None
    mount_analysis: Optional[Any] = None
    partnership_predictions: Optional[Any] = None
    wealth_analysis: Optional[Any] = None
    palm_image_url: Optional[str] = None
    right_palm_image_url: Optional[str] = None
    reading_name: Optional[str] = None
    capture_id: Optional[str] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class Blog:
    user_id: str
    title: str
    content: str
    id: str = field(default_factory=new_id)
    image_url: Optional[str] = None
    published: bool = True
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class BlogComment:
    blog_id: str
    user_id: str
    content: str
    id: str = field(default_factory=new_id)
    parent_comment_id: Optional[str] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class BlogLike:
    blog_id: str
    user_id: str
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class CommentLike:
    comment_id: str
    user_id: str
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class ChatSession:
    user_id: Optional[str]
    id: str = field(default_factory=new_id)
    session_name: Optional[str] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)


@dataclass
class ChatMessage:
    session_id: str
    sender: ChatSender
    content: str
    id: str = field(default_factory=new_id)
    image_url: Optional[str] = None
    follow_up_questions: Optional[list[str]] = None
    created_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["sender"] = self.sender.value
        return data


@dataclass
class CaptureJob:
    """A capture session that becomes an analysis job once both hands are in."""

    user_id: str
    job_id: str = field(default_factory=new_id)
    state: CaptureState = CaptureState.READY
    current_hand: Hand = Hand.LEFT
    alignment: Alignment = Alignment.POOR
    left_image_path: Optional[str] = None
    right_image_path: Optional[str] = None
    scan_id: Optional[str] = None
    error: Optional[str] = None
    stage: str = "CAPTURE"
    locked_at: Optional[float] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "user_id": self.user_id,
            "state": self.state.name,
            "current_hand": self.current_hand.value,
            "alignment": self.alignment.value,
            "left_image_path": self.left_image_path,
            "right_image_path": self.right_image_path,
            "scan_id": self.scan_id,
            "error": self.error,
            "stage": self.stage,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
