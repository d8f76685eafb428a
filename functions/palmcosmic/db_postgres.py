"""
SQLAlchemy-backed database client.
"""

from __future__ import annotations

import time
from dataclasses import asdict
from typing import Dict, Iterable, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from palmcosmic.db import CLAIMED_STAGE, PROFILE_UPDATABLE_FIELDS, QUEUED_STAGE
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
from shared.types import Alignment, CaptureState, ChatSender, Hand

Base = declarative_base()


def _row_fields(row) -> dict:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


def _comment_subtree(session: Session, root_ids: Iterable[str]) -> set[str]:
    """Returns the given comment ids plus every reply beneath them."""
    removed = set(root_ids)
    frontier = set(removed)
    while frontier:
        frontier = set(
            session.scalars(
                select(CommentRow.id).where(
                    CommentRow.parent_comment_id.in_(frontier)
                )
            )
        ) - removed
        removed |= frontier
    return removed


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        engine_kwargs = {"future": True, "pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_recycle"] = 1800
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Profiles

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            return Profile(**_row_fields(row)) if row else None

    def ensure_profile(self, user_id: str, email: str = "") -> Profile:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            if row:
                if email and not row.email:
                    row.email = email
                    session.commit()
                return Profile(**_row_fields(row))
            profile = Profile(id=user_id, email=email)
            session.add(ProfileRow(**asdict(profile)))
            session.commit()
            return profile

    def update_profile(self, user_id: str, **fields) -> Optional[Profile]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            if not row:
                return None
            for key, value in fields.items():
                if key not in PROFILE_UPDATABLE_FIELDS:
                    raise ValueError(f"Unknown profile field: {key}")
                setattr(row, key, value)
            row.updated_at = time.time()
            session.commit()
            return Profile(**_row_fields(row))

    def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = set(user_ids)
        if not ids:
            return {}
        with self.Session() as session:
            rows = session.scalars(select(ProfileRow).where(ProfileRow.id.in_(ids)))
            return {row.id: Profile(**_row_fields(row)) for row in rows}

    def delete_user_account(self, user_id: str) -> None:
        with self.Session() as session:
            blog_ids = select(BlogRow.id).where(BlogRow.user_id == user_id)
            authored_comment_ids = select(CommentRow.id).where(
                CommentRow.user_id == user_id
            )
            removed_comment_ids = _comment_subtree(
                session,
                session.scalars(
                    select(CommentRow.id).where(
                        (CommentRow.blog_id.in_(blog_ids))
                        | (CommentRow.id.in_(authored_comment_ids))
                    )
                ).all(),
            )
            if removed_comment_ids:
                session.execute(
                    delete(CommentLikeRow).where(
                        CommentLikeRow.comment_id.in_(removed_comment_ids)
                    )
                )
                session.execute(
                    delete(CommentRow).where(CommentRow.id.in_(removed_comment_ids))
                )
            session.execute(
                delete(BlogLikeRow).where(
                    (BlogLikeRow.blog_id.in_(blog_ids))
                    | (BlogLikeRow.user_id == user_id)
                )
            )
            session.execute(delete(CommentLikeRow).where(CommentLikeRow.user_id == user_id))
            session.execute(delete(BlogRow).where(BlogRow.user_id == user_id))
            session.execute(delete(ScanRow).where(ScanRow.user_id == user_id))
            session_ids = select(ChatSessionRow.id).where(
                ChatSessionRow.user_id == user_id
            )
            session.execute(
                delete(ChatMessageRow).where(ChatMessageRow.session_id.in_(session_ids))
            )
            session.execute(delete(ChatSessionRow).where(ChatSessionRow.user_id == user_id))
            session.execute(delete(JobRow).where(JobRow.user_id == user_id))
            session.execute(delete(ProfileRow).where(ProfileRow.id == user_id))
            session.commit()

    # Palm scans

    def _find_scan_by_capture(
        self, session: Session, user_id: str, capture_id: str
    ) -> Optional[ScanRow]:
        return session.scalars(
            select(ScanRow)
            .where(ScanRow.user_id == user_id, ScanRow.capture_id == capture_id)
            .limit(1)
        ).first()

    def create_scan(self, scan: PalmScan) -> PalmScan:
        with self.Session() as session:
            if scan.capture_id:
                existing = self._find_scan_by_capture(
                    session, scan.user_id, scan.capture_id
                )
                if existing:
                    return PalmScan(**_row_fields(existing))
            session.add(ScanRow(**asdict(scan)))
            try:
                session.commit()
            except IntegrityError:
                # A concurrent save of the same capture won the race.
                session.rollback()
                if not scan.capture_id:
                    raise
                existing = self._find_scan_by_capture(
                    session, scan.user_id, scan.capture_id
                )
                if not existing:
                    raise
                return PalmScan(**_row_fields(existing))
            return scan

    def get_scan(self, scan_id: str) -> Optional[PalmScan]:
        with self.Session() as session:
            row = session.get(ScanRow, scan_id)
            return PalmScan(**_row_fields(row)) if row else None

    def list_scans(self, user_id: str) -> list[PalmScan]:
        with self.Session() as session:
            rows = session.scalars(
                select(ScanRow)
                .where(ScanRow.user_id == user_id)
                .order_by(ScanRow.created_at.desc())
            )
            return [PalmScan(**_row_fields(row)) for row in rows]

    def rename_scan(self, scan_id: str, reading_name: str) -> Optional[PalmScan]:
        with self.Session() as session:
            row = session.get(ScanRow, scan_id)
            if not row:
                return None
            row.reading_name = reading_name
            row.updated_at = time.time()
            session.commit()
            return PalmScan(**_row_fields(row))

    def delete_scan(self, scan_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(delete(ScanRow).where(ScanRow.id == scan_id))
            session.commit()
            return bool(result.rowcount)

    def count_scans(self, user_id: str) -> int:
        with self.Session() as session:
            return session.scalar(
                select(func.count()).select_from(ScanRow).where(ScanRow.user_id == user_id)
            ) or 0

    def list_scan_dates(self, user_id: str) -> list[float]:
        with self.Session() as session:
            return list(
                session.scalars(
                    select(ScanRow.scan_date)
                    .where(ScanRow.user_id == user_id)
                    .order_by(ScanRow.scan_date.desc())
                )
            )

    # Blogs

    def create_blog(self, blog: Blog) -> Blog:
        with self.Session() as session:
            session.add(BlogRow(**asdict(blog)))
            session.commit()
            return blog

    def get_blog(self, blog_id: str) -> Optional[Blog]:
        with self.Session() as session:
            row = session.get(BlogRow, blog_id)
            return Blog(**_row_fields(row)) if row else None

    def list_published_blogs(self) -> list[Blog]:
        with self.Session() as session:
            rows = session.scalars(
                select(BlogRow)
                .where(BlogRow.published.is_(True))
                .order_by(BlogRow.created_at.desc())
            )
            return [Blog(**_row_fields(row)) for row in rows]

    def list_user_blogs(self, user_id: str) -> list[Blog]:
        with self.Session() as session:
            rows = session.scalars(
                select(BlogRow)
                .where(BlogRow.user_id == user_id)
                .order_by(BlogRow.created_at.desc())
            )
            return [Blog(**_row_fields(row)) for row in rows]

    def publish_blog(self, blog_id: str, user_id: str) -> bool:
        with self.Session() as session:
            row = session.get(BlogRow, blog_id)
            if not row or row.user_id != user_id:
                return False
            row.published = True
            row.updated_at = time.time()
            session.commit()
            return True

    def delete_blog(self, blog_id: str, user_id: str) -> bool:
        with self.Session() as session:
            row = session.get(BlogRow, blog_id)
            if not row or row.user_id != user_id:
                return False
            comment_ids = select(CommentRow.id).where(CommentRow.blog_id == blog_id)
            session.execute(
                delete(CommentLikeRow).where(CommentLikeRow.comment_id.in_(comment_ids))
            )
            session.execute(delete(CommentRow).where(CommentRow.blog_id == blog_id))
            session.execute(delete(BlogLikeRow).where(BlogLikeRow.blog_id == blog_id))
            session.delete(row)
            session.commit()
            return True

    def list_blog_likes(self, blog_ids: Iterable[str]) -> list[BlogLike]:
        ids = set(blog_ids)
        if not ids:
            return []
        with self.Session() as session:
            rows = session.scalars(select(BlogLikeRow).where(BlogLikeRow.blog_id.in_(ids)))
            return [BlogLike(**_row_fields(row)) for row in rows]

    def toggle_blog_like(self, blog_id: str, user_id: str) -> bool:
        with self.Session() as session:
            existing = session.scalars(
                select(BlogLikeRow).where(
                    BlogLikeRow.blog_id == blog_id, BlogLikeRow.user_id == user_id
                )
            ).first()
            if existing:
                session.delete(existing)
                session.commit()
                return False
            session.add(BlogLikeRow(**asdict(BlogLike(blog_id=blog_id, user_id=user_id))))
            session.commit()
            return True

    def count_comments(self, blog_ids: Iterable[str]) -> Dict[str, int]:
        counts = {blog_id: 0 for blog_id in blog_ids}
        if not counts:
            return counts
        with self.Session() as session:
            rows = session.execute(
                select(CommentRow.blog_id, func.count())
                .where(CommentRow.blog_id.in_(list(counts)))
                .group_by(CommentRow.blog_id)
            )
            for blog_id, count in rows:
                counts[blog_id] = count
        return counts

    # Comments

    def create_comment(self, comment: BlogComment) -> BlogComment:
        with self.Session() as session:
            session.add(CommentRow(**asdict(comment)))
            session.commit()
            return comment

    def get_comment(self, comment_id: str) -> Optional[BlogComment]:
        with self.Session() as session:
            row = session.get(CommentRow, comment_id)
            return BlogComment(**_row_fields(row)) if row else None

    def list_comments(self, blog_id: str) -> list[BlogComment]:
        with self.Session() as session:
            rows = session.scalars(
                select(CommentRow)
                .where(CommentRow.blog_id == blog_id)
                .order_by(CommentRow.created_at.asc())
            )
            return [BlogComment(**_row_fields(row)) for row in rows]

    def delete_comment(self, comment_id: str) -> bool:
        with self.Session() as session:
            row = session.get(CommentRow, comment_id)
            if not row:
                return False
            removed = _comment_subtree(session, [comment_id])
            session.execute(
                delete(CommentLikeRow).where(CommentLikeRow.comment_id.in_(removed))
            )
            session.execute(delete(CommentRow).where(CommentRow.id.in_(removed)))
            session.commit()
            return True

    def list_comment_likes(self, comment_ids: Iterable[str]) -> list[CommentLike]:
        ids = set(comment_ids)
        if not ids:
            return []
        with self.Session() as session:
            rows = session.scalars(
                select(CommentLikeRow).where(CommentLikeRow.comment_id.in_(ids))
            )
            return [CommentLike(**_row_fields(row)) for row in rows]

    def toggle_comment_like(self, comment_id: str, user_id: str) -> bool:
        with self.Session() as session:
            existing = session.scalars(
                select(CommentLikeRow).where(
                    CommentLikeRow.comment_id == comment_id,
                    CommentLikeRow.user_id == user_id,
                )
            ).first()
            if existing:
                session.delete(existing)
                session.commit()
                return False
            session.add(
                CommentLikeRow(
                    **asdict(CommentLike(comment_id=comment_id, user_id=user_id))
                )
            )
            session.commit()
            return True

    # Chat

    def get_or_create_chat_session(self, user_id: str) -> ChatSession:
        with self.Session() as session:
            row = session.scalars(
                select(ChatSessionRow)
                .where(ChatSessionRow.user_id == user_id)
                .order_by(ChatSessionRow.created_at.desc())
                .limit(1)
            ).first()
            if row:
                return ChatSession(**_row_fields(row))
            chat_session = ChatSession(user_id=user_id)
            session.add(ChatSessionRow(**asdict(chat_session)))
            session.commit()
            return chat_session

    def get_chat_session(self, session_id: str) -> Optional[ChatSession]:
        with self.Session() as session:
            row = session.get(ChatSessionRow, session_id)
            return ChatSession(**_row_fields(row)) if row else None

    def add_chat_message(self, message: ChatMessage) -> ChatMessage:
        with self.Session() as session:
            fields = asdict(message)
            fields["sender"] = message.sender.value
            session.add(ChatMessageRow(**fields))
            chat_session = session.get(ChatSessionRow, message.session_id)
            if chat_session:
                chat_session.updated_at = time.time()
            session.commit()
            return message

    def list_chat_messages(
        self, session_id: str, limit: Optional[int] = None
    ) -> list[ChatMessage]:
        with self.Session() as session:
            stmt = select(ChatMessageRow).where(ChatMessageRow.session_id == session_id)
            if limit is not None:
                stmt = stmt.order_by(ChatMessageRow.created_at.desc()).limit(limit)
                rows = list(reversed(list(session.scalars(stmt))))
            else:
                rows = list(
                    session.scalars(stmt.order_by(ChatMessageRow.created_at.asc()))
                )
            messages = []
            for row in rows:
                fields = _row_fields(row)
                fields["sender"] = ChatSender(fields["sender"])
                messages.append(ChatMessage(**fields))
            return messages

    # Capture / analysis jobs

    def _to_job(self, row: "JobRow") -> CaptureJob:
        fields = _row_fields(row)
        fields["state"] = CaptureState(fields["state"])
        fields["current_hand"] = Hand(fields["current_hand"])
        fields["alignment"] = Alignment(fields["alignment"])
        return CaptureJob(**fields)

    def create_capture_job(self, user_id: str) -> CaptureJob:
        job = CaptureJob(user_id=user_id)
        self.save_capture_job(job)
        return job

    def get_capture_job(self, job_id: str) -> Optional[CaptureJob]:
        with self.Session() as session:
            row = session.get(JobRow, job_id)
            return self._to_job(row) if row else None

    def save_capture_job(self, job: CaptureJob) -> None:
        job.updated_at = time.time()
        fields = asdict(job)
        fields["state"] = job.state.value
        fields["current_hand"] = job.current_hand.value
        fields["alignment"] = job.alignment.value
        with self.Session() as session:
            session.merge(JobRow(**fields))
            session.commit()

    def claim_next_analysis_job(self) -> Optional[CaptureJob]:
        now = time.time()
        with self.Session() as session:
            stmt = (
                select(JobRow)
                .where(
                    JobRow.state == CaptureState.ANALYZING.value,
                    JobRow.stage == QUEUED_STAGE,
                )
                .order_by(JobRow.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            row.stage = CLAIMED_STAGE
            row.locked_at = now
            row.updated_at = now
            session.commit()
            return self._to_job(row)

    def requeue_stale_locks(self, lock_timeout_seconds: float = 900) -> int:
        cutoff = time.time() - lock_timeout_seconds
        with self.Session() as session:
            updated = (
                session.query(JobRow)
                .filter(
                    JobRow.state == CaptureState.ANALYZING.value,
                    JobRow.stage == CLAIMED_STAGE,
                    JobRow.locked_at != None,
                    JobRow.locked_at < cutoff,
                )
                .update(
                    {
                        JobRow.stage: QUEUED_STAGE,
                        JobRow.locked_at: None,
                        JobRow.updated_at: time.time(),
                    },
                    synchronize_session=False,
                )
            )
            session.commit()
            return updated or 0


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, default="")
    full_name = Column(String, nullable=True)
    birthdate = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    phone_verified = Column(Boolean, nullable=False, default=False)
    profile_picture_url = Column(String, nullable=True)
    seen_questions = Column(JSON, nullable=False, default=list)
    pending_phone_otp = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ScanRow(Base):
    __tablename__ = "palm_scans"
    __table_args__ = (UniqueConstraint("user_id", "capture_id"),)

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    scan_date = Column(Float, nullable=False)
    life_line_strength = Column(String, nullable=True)
    heart_line_strength = Column(String, nullable=True)
    head_line_strength = Column(String, nullable=True)
    fate_line_strength = Column(String, nullable=True)
    overall_insight = Column(Text, nullable=True)
    traits = Column(JSON, nullable=True)
    age_predictions = Column(JSON, nullable=True)
    age_timeline = Column(JSON, nullable=True)
    line_intersections = Column(JSON, nullable=True)
    mount_analysis = Column(JSON, nullable=True)
    partnership_predictions = Column(JSON, nullable=True)
    wealth_analysis = Column(JSON, nullable=True)
    palm_image_url = Column(String, nullable=True)
    right_palm_image_url = Column(String, nullable=True)
    reading_name = Column(String, nullable=True)
    capture_id = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class BlogRow(Base):
    __tablename__ = "blogs"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    published = Column(Boolean, nullable=False, default=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class CommentRow(Base):
    __tablename__ = "blog_comments"

    id = Column(String, primary_key=True)
    blog_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    parent_comment_id = Column(String, nullable=True, index=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class BlogLikeRow(Base):
    __tablename__ = "blog_likes"

    id = Column(String, primary_key=True)
    blog_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)


class CommentLikeRow(Base):
    __tablename__ = "comment_likes"

    id = Column(String, primary_key=True)
    comment_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)


class ChatSessionRow(Base):
    __tablename__ = "chat_sessions"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    session_name = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ChatMessageRow(Base):
    __tablename__ = "chat_messages"

    id = Column(String, primary_key=True)
    session_id = Column(String, nullable=False, index=True)
    sender = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    follow_up_questions = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False)


class JobRow(Base):
    __tablename__ = "capture_jobs"

    job_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    state = Column(String, nullable=False, index=True)
    current_hand = Column(String, nullable=False)
    alignment = Column(String, nullable=False)
    left_image_path = Column(String, nullable=True)
    right_image_path = Column(String, nullable=True)
    scan_id = Column(String, nullable=True)
    error = Column(Text, nullable=True)
    stage = Column(String, nullable=False, default="CAPTURE")
    locked_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
