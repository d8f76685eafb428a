"""
Pydantic schemas for the PalmCosmic API.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from shared.constants import (
    MAX_CHAT_MESSAGE_LENGTH,
    MAX_COMMENT_LENGTH,
    MAX_INSIGHT_LENGTH,
    MAX_PALM_AREA_LENGTH,
)


class PalmReadingRequest(BaseModel):
    image_url: str = Field(..., min_length=1)
    right_image_url: Optional[str] = None


class PalmReadingResponse(BaseModel):
    life_line_strength: str
    heart_line_strength: str
    head_line_strength: str
    fate_line_strength: str
    overall_insight: str
    traits: dict
    age_predictions: Optional[list] = None
    age_timeline: Optional[list] = None
    line_intersections: Optional[list] = None
    mount_analysis: Optional[list] = None
    partnership_predictions: Optional[str] = None
    wealth_analysis: Optional[str] = None
    used_fallback: bool = False


class CaptureSessionResponse(BaseModel):
    job_id: str
    state: str
    current_hand: Literal["left", "right"]
    alignment: Literal["good", "poor"]
    left_image_url: Optional[str] = None
    right_image_url: Optional[str] = None
    scan_id: Optional[str] = None
    error: Optional[str] = None


class FrameUpload(BaseModel):
    image: str = Field(..., min_length=1, description="Base64 JPEG or data URL")
    hand: Optional[Literal["left", "right"]] = None


class SaveScanRequest(BaseModel):
    life_line_strength: Optional[str] = None
    heart_line_strength: Optional[str] = None
    head_line_strength: Optional[str] = None
    fate_line_strength: Optional[str] = None
    overall_insight: Optional[str] = Field(None, max_length=MAX_INSIGHT_LENGTH)
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


class ScanResponse(BaseModel):
    id: str
    user_id: str
    scan_date: float
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
    created_at: float
    updated_at: float


class RenameScanRequest(BaseModel):
    reading_name: str


class StatsResponse(BaseModel):
    total_readings: int
    days_streak: int
    accuracy: float
    cosmic_sync: int
    profile_completeness: int


class QuestionsResponse(BaseModel):
    questions: list[str]


class ChatHistoryItem(BaseModel):
    sender: Literal["user", "astrobot"]
    content: str
    is_typing: bool = False


class ChatRequest(BaseModel):
    message: str = Field("", max_length=MAX_CHAT_MESSAGE_LENGTH)
    image_url: Optional[str] = None
    image_path: Optional[str] = None
    conversation_history: list[ChatHistoryItem] = Field(default_factory=list)


class ChatMessageResponse(BaseModel):
    id: str
    session_id: str
    sender: Literal["user", "astrobot"]
    content: str
    image_url: Optional[str] = None
    follow_up_questions: Optional[list[str]] = None
    created_at: float


class ChatResponse(BaseModel):
    response: str
    session_id: Optional[str] = None
    used_fallback: bool = False


class ChatMessagesResponse(BaseModel):
    session_id: str
    messages: list[ChatMessageResponse]


class UploadedImageResponse(BaseModel):
    image_url: str
    path: str


class BlogResponse(BaseModel):
    id: str
    user_id: str
    title: str
    content: str
    image_url: Optional[str] = None
    published: bool
    created_at: float
    updated_at: float
    author_name: str
    author_email: Optional[str] = None
    author_profile_picture: Optional[str] = None
    likes_count: int = 0
    comments_count: int = 0
    is_liked_by_user: bool = False


class BlogDetailResponse(BaseModel):
    blog: BlogResponse
    comments: list[CommentResponse]


class CommentRequest(BaseModel):
    content: str = Field(..., max_length=MAX_COMMENT_LENGTH)
    parent_comment_id: Optional[str] = None


class CommentResponse(BaseModel):
    id: str
    blog_id: str
    user_id: str
    content: str
    parent_comment_id: Optional[str] = None
    created_at: float
    updated_at: float
    author_name: str
    author_profile_picture: Optional[str] = None
    likes_count: int = 0
    is_liked_by_user: bool = False
    replies: list[CommentResponse] = Field(default_factory=list)


class LikeResponse(BaseModel):
    liked: bool
    likes_count: int


class ProfileResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    birthdate: Optional[str] = None
    gender: Optional[str] = None
    phone_number: Optional[str] = None
    phone_verified: bool = False
    profile_picture_url: Optional[str] = None
    seen_questions: list[int] = Field(default_factory=list)
    created_at: float
    updated_at: float


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, max_length=100)
    birthdate: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    gender: Optional[str] = Field(None, max_length=32)
    phone_number: Optional[str] = Field(None, max_length=32)


class PhoneOtpRequest(BaseModel):
    phone_number: str = Field(..., pattern=r"^\+?[0-9 ()-]{6,20}$")


class PhoneOtpResponse(BaseModel):
    phone_number: str
    otp: str
    message: str


class PhoneVerifyRequest(BaseModel):
    otp: str = Field(..., pattern=r"^\d{6}$")


class AccountDeletionResponse(BaseModel):
    status: Literal["deleted"]
    email_sent: bool


class HoroscopeRequest(BaseModel):
    zodiac_sign: Optional[str] = None
    birth_date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    birth_time: Optional[str] = None
    birth_place: Optional[str] = None


class HoroscopeResponse(BaseModel):
    sign: str
    sign_type: str
    date: str
    horoscope: str


class IllustrationRequest(BaseModel):
    palm_area: str = Field(..., min_length=1, max_length=MAX_PALM_AREA_LENGTH)
    description: Optional[str] = Field(None, max_length=500)


class IllustrationResponse(BaseModel):
    image_url: str
    palm_area: str
    description: Optional[str] = None


class SignUrlResponse(BaseModel):
    url: str


class HealthResponse(BaseModel):
    status: Literal["ok"]
    queue_size: int


BlogDetailResponse.model_rebuild()
