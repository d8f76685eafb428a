"""
Database abstraction and an in-memory implementation for development and tests.

The SQLAlchemy-backed implementation lives in ``palmcosmic.db_postgres``.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Dict, Iterable, Optional, Protocol

from palmcosmic.records import (
    Blog,
    BlogComment,
    BlogLike,
    CaptureJob,
    ChatMessage,
    ChatSession,
    CommentLike,
    PalmScan,
    Profile,
)
from shared.types import CaptureState

PROFILE_UPDATABLE_FIELDS = frozenset(
    {
        "email",
        "full_name",
        "birthdate",
        "gender",
        "phone_number",
        "phone_verified",
        "profile_picture_url",
        "seen_questions",
        "pending_phone_otp",
    }
)

QUEUED_STAGE = "QUEUED"
CLAIMED_STAGE = "CLAIMED"


class DbClient(Protocol):
    """Interface for database access."""

    # Profiles

    def get_profile(self, user_id: str) -> Optional[Profile]:
        ...

    def ensure_profile(self, user_id: str, email: str = "") -> Profile:
        ...

    def update_profile(self, user_id: str, **fields) -> Optional[Profile]:
        ...

    def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        ...

    def delete_user_account(self, user_id: str) -> None:
        ...

    # Palm scans

    def create_scan(self, scan: PalmScan) -> PalmScan:
        ...

    def get_scan(self, scan_id: str) -> Optional[PalmScan]:
        ...

    def list_scans(self, user_id: str) -> list[PalmScan]:
        ...

    def rename_scan(self, scan_id: str, reading_name: str) -> Optional[PalmScan]:
        ...

    def delete_scan(self, scan_id: str) -> bool:
        ...

    def count_scans(self, user_id: str) -> int:
        ...

    def list_scan_dates(self, user_id: str) -> list[float]:
        ...

    # Blogs

    def create_blog(self, blog: Blog) -> Blog:
        ...

    def get_blog(self, blog_id: str) -> Optional[Blog]:
        ...

    def list_published_blogs(self) -> list[Blog]:
        ...

    def list_user_blogs(self, user_id: str) -> list[Blog]:
        ...

    def publish_blog(self, blog_id: str, user_id: str) -> bool:
        ...

    def delete_blog(self, blog_id: str, user_id: str) -> bool:
        ...

    def list_blog_likes(self, blog_ids: Iterable[str]) -> list[BlogLike]:
        ...

    def toggle_blog_like(self, blog_id: str, user_id: str) -> bool:
        ...

    def count_comments(self, blog_ids: Iterable[str]) -> Dict[str, int]:
        ...

    # Comments

    def create_comment(self, comment: BlogComment) -> BlogComment:
        ...

    def get_comment(self, comment_id: str) -> Optional[BlogComment]:
        ...

    def list_comments(self, blog_id: str) -> list[BlogComment]:
        ...

    def delete_comment(self, comment_id: str) -> bool:
        ...

    def list_comment_likes(self, comment_ids: Iterable[str]) -> list[CommentLike]:
        ...

    def toggle_comment_like(self, comment_id: str, user_id: str) -> bool:
        ...

    # Chat

    def get_or_create_chat_session(self, user_id: str) -> ChatSession:
        ...

    def get_chat_session(self, session_id: str) -> Optional[ChatSession]:
        ...

    def add_chat_message(self, message: ChatMessage) -> ChatMessage:
        ...

    def list_chat_messages(
        self, session_id: str, limit: Optional[int] = None
    ) -> list[ChatMessage]:
        ...

    # Capture / analysis jobs

    def create_capture_job(self, user_id: str) -> CaptureJob:
        ...

    def get_capture_job(self, job_id: str) -> Optional[CaptureJob]:
        ...

    def save_capture_job(self, job: CaptureJob) -> None:
        ...

    def claim_next_analysis_job(self) -> Optional[CaptureJob]:
        ...

    def requeue_stale_locks(self, lock_timeout_seconds: float = 900) -> int:
        ...


def _newest_first(records):
    # Reverse first so that records created in the same instant keep
    # newest-first order under the stable sort.
    return sorted(reversed(list(records)), key=lambda r: r.created_at, reverse=True)


def _oldest_first(records):
    return sorted(records, key=lambda r: r.created_at)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.profiles: Dict[str, Profile] = {}
        self.scans: Dict[str, PalmScan] = {}
        self.blogs: Dict[str, Blog] = {}
        self.blog_likes: Dict[str, BlogLike] = {}
        self.comments: Dict[str, BlogComment] = {}
        self.comment_likes: Dict[str, CommentLike] = {}
        self.chat_sessions: Dict[str, ChatSession] = {}
        self.chat_messages: Dict[str, ChatMessage] = {}
        self.jobs: Dict[str, CaptureJob] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.profiles.clear()
        self.scans.clear()
        self.blogs.clear()
        self.blog_likes.clear()
        self.comments.clear()
        self.comment_likes.clear()
        self.chat_sessions.clear()
        self.chat_messages.clear()
        self.jobs.clear()

    # Profiles

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.profiles.get(user_id)

    def ensure_profile(self, user_id: str, email: str = "") -> Profile:
        profile = self.profiles.get(user_id)
        if profile:
            if email and not profile.email:
                profile.email = email
            return profile
        profile = Profile(id=user_id, email=email)
        self.profiles[user_id] = profile
        return profile

    def update_profile(self, user_id: str, **fields) -> Optional[Profile]:
        profile = self.profiles.get(user_id)
        if not profile:
            return None
        for key, value in fields.items():
            if key not in PROFILE_UPDATABLE_FIELDS:
                raise ValueError(f"Unknown profile field: {key}")
            setattr(profile, key, value)
        profile.updated_at = time.time()
        return profile

    def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        return {
            user_id: self.profiles[user_id]
            for user_id in set(user_ids)
            if user_id in self.profiles
        }

    def delete_user_account(self, user_id: str) -> None:
        for blog in [b for b in self.blogs.values() if b.user_id == user_id]:
            self._delete_blog_rows(blog.id)
        for comment in [c for c in self.comments.values() if c.user_id == user_id]:
            if comment.id in self.comments:
                self.delete_comment(comment.id)
        self.blog_likes = {
            k: v for k, v in self.blog_likes.items() if v.user_id != user_id
        }
        self.comment_likes = {
            k: v for k, v in self.comment_likes.items() if v.user_id != user_id
        }
        self.scans = {k: v for k, v in self.scans.items() if v.user_id != user_id}
        session_ids = {
            s.id for s in self.chat_sessions.values() if s.user_id == user_id
        }
        self.chat_messages = {
            k: v
            for k, v in self.chat_messages.items()
            if v.session_id not in session_ids
        }
        for session_id in session_ids:
            self.chat_sessions.pop(session_id, None)
        self.jobs = {k: v for k, v in self.jobs.items() if v.user_id != user_id}
        self.profiles.pop(user_id, None)

    # Palm scans

    def create_scan(self, scan: PalmScan) -> PalmScan:
        if scan.capture_id:
            for existing in self.scans.values():
                if (
                    existing.capture_id == scan.capture_id
                    and existing.user_id == scan.user_id
                ):
                    return existing
        self.scans[scan.id] = scan
        return scan

    def get_scan(self, scan_id: str) -> Optional[PalmScan]:
        return self.scans.get(scan_id)

    def list_scans(self, user_id: str) -> list[PalmScan]:
        return _newest_first(s for s in self.scans.values() if s.user_id == user_id)

    def rename_scan(self, scan_id: str, reading_name: str) -> Optional[PalmScan]:
        scan = self.scans.get(scan_id)
        if not scan:
            return None
        scan.reading_name = reading_name
        scan.updated_at = time.time()
        return scan

    def delete_scan(self, scan_id: str) -> bool:
        return self.scans.pop(scan_id, None) is not None

    def count_scans(self, user_id: str) -> int:
        return sum(1 for s in self.scans.values() if s.user_id == user_id)

    def list_scan_dates(self, user_id: str) -> list[float]:
        dates = [s.scan_date for s in self.scans.values() if s.user_id == user_id]
        return sorted(dates, reverse=True)

    # Blogs

    def create_blog(self, blog: Blog) -> Blog:
        self.blogs[blog.id] = blog
        return blog

    def get_blog(self, blog_id: str) -> Optional[Blog]:
        return self.blogs.get(blog_id)

    def list_published_blogs(self) -> list[Blog]:
        return _newest_first(b for b in self.blogs.values() if b.published)

    def list_user_blogs(self, user_id: str) -> list[Blog]:
        return _newest_first(b for b in self.blogs.values() if b.user_id == user_id)

    def publish_blog(self, blog_id: str, user_id: str) -> bool:
        blog = self.blogs.get(blog_id)
        if not blog or blog.user_id != user_id:
            return False
        blog.published = True
        blog.updated_at = time.time()
        return True

    def delete_blog(self, blog_id: str, user_id: str) -> bool:
        blog = self.blogs.get(blog_id)
        if not blog or blog.user_id != user_id:
            return False
        self._delete_blog_rows(blog_id)
        return True

    def _delete_blog_rows(self, blog_id: str) -> None:
        comment_ids = {c.id for c in self.comments.values() if c.blog_id == blog_id}
        self.comment_likes = {
            k: v
            for k, v in self.comment_likes.items()
            if v.comment_id not in comment_ids
        }
        for comment_id in comment_ids:
            self.comments.pop(comment_id, None)
        self.blog_likes = {
            k: v for k, v in self.blog_likes.items() if v.blog_id != blog_id
        }
        self.blogs.pop(blog_id, None)

    def list_blog_likes(self, blog_ids: Iterable[str]) -> list[BlogLike]:
        wanted = set(blog_ids)
        return [like for like in self.blog_likes.values() if like.blog_id in wanted]

    def toggle_blog_like(self, blog_id: str, user_id: str) -> bool:
        for key, like in self.blog_likes.items():
            if like.blog_id == blog_id and like.user_id == user_id:
                del self.blog_likes[key]
                return False
        like = BlogLike(blog_id=blog_id, user_id=user_id)
        self.blog_likes[like.id] = like
        return True

    def count_comments(self, blog_ids: Iterable[str]) -> Dict[str, int]:
        counts = {blog_id: 0 for blog_id in blog_ids}
        for comment in self.comments.values():
            if comment.blog_id in counts:
                counts[comment.blog_id] += 1
        return counts

    # Comments

    def create_comment(self, comment: BlogComment) -> BlogComment:
        self.comments[comment.id] = comment
        return comment

    def get_comment(self, comment_id: str) -> Optional[BlogComment]:
        return self.comments.get(comment_id)

    def list_comments(self, blog_id: str) -> list[BlogComment]:
        return _oldest_first(c for c in self.comments.values() if c.blog_id == blog_id)

    def delete_comment(self, comment_id: str) -> bool:
        if comment_id not in self.comments:
            return False
        removed = {comment_id}
        frontier = {comment_id}
        while frontier:
            frontier = {
                c.id
                for c in self.comments.values()
                if c.parent_comment_id in frontier and c.id not in removed
            }
            removed |= frontier
        for key in removed:
            self.comments.pop(key, None)
        self.comment_likes = {
            k: v for k, v in self.comment_likes.items() if v.comment_id not in removed
        }
        return True

    def list_comment_likes(self, comment_ids: Iterable[str]) -> list[CommentLike]:
        wanted = set(comment_ids)
        return [
            like for like in self.comment_likes.values() if like.comment_id in wanted
        ]

    def toggle_comment_like(self, comment_id: str, user_id: str) -> bool:
        for key, like in self.comment_likes.items():
            if like.comment_id == comment_id and like.user_id == user_id:
                del self.comment_likes[key]
                return False
        like = CommentLike(comment_id=comment_id, user_id=user_id)
        self.comment_likes[like.id] = like
        return True

    # Chat

    def get_or_create_chat_session(self, user_id: str) -> ChatSession:
        sessions = _newest_first(
            s for s in self.chat_sessions.values() if s.user_id == user_id
        )
        if sessions:
            return sessions[0]
        session = ChatSession(user_id=user_id)
        self.chat_sessions[session.id] = session
        return session

    def get_chat_session(self, session_id: str) -> Optional[ChatSession]:
        return self.chat_sessions.get(session_id)

    def add_chat_message(self, message: ChatMessage) -> ChatMessage:
        self.chat_messages[message.id] = message
        session = self.chat_sessions.get(message.session_id)
        if session:
            session.updated_at = time.time()
        return message

    def list_chat_messages(
        self, session_id: str, limit: Optional[int] = None
    ) -> list[ChatMessage]:
        messages = _oldest_first(
            m for m in self.chat_messages.values() if m.session_id == session_id
        )
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages

    # Capture / analysis jobs

    def create_capture_job(self, user_id: str) -> CaptureJob:
        job = CaptureJob(user_id=user_id)
        self.jobs[job.job_id] = job
        return replace(job)

    def get_capture_job(self, job_id: str) -> Optional[CaptureJob]:
        job = self.jobs.get(job_id)
        return replace(job) if job else None

    def save_capture_job(self, job: CaptureJob) -> None:
        job.updated_at = time.time()
        self.jobs[job.job_id] = replace(job)

    def claim_next_analysis_job(self) -> Optional[CaptureJob]:
        for job in _oldest_first(self.jobs.values()):
            if job.state == CaptureState.ANALYZING and job.stage == QUEUED_STAGE:
                job.stage = CLAIMED_STAGE
                job.locked_at = time.time()
                job.updated_at = job.locked_at
                return replace(job)
        return None

    def requeue_stale_locks(self, lock_timeout_seconds: float = 900) -> int:
        now = time.time()
        requeued = 0
        for job in self.jobs.values():
            if (
                job.state == CaptureState.ANALYZING
                and job.stage == CLAIMED_STAGE
                and job.locked_at
                and now - job.locked_at > lock_timeout_seconds
            ):
                job.stage = QUEUED_STAGE
                job.locked_at = None
                job.updated_at = now
                requeued += 1
        return requeued
