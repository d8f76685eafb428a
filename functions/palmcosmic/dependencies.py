"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException

from palmcosmic.config import get_settings
from palmcosmic.db import DbClient, InMemoryDbClient
from palmcosmic.db_postgres import PostgresDbClient
from palmcosmic.messaging import (
    ChangeFeed,
    InMemoryChangeFeed,
    InMemoryJobQueue,
    JobQueue,
    RedisChangeFeed,
    RedisJobQueue,
)
from palmcosmic.notifications import EmailSender, InMemoryEmailSender, ResendEmailSender
from palmcosmic.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_queue_client: JobQueue | None = None
_change_feed: ChangeFeed | None = None
_email_sender: EmailSender | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so capture state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url,
        )
    return _storage_client


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for dispatching analysis jobs to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_change_feed() -> ChangeFeed:
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _change_feed = RedisChangeFeed(
            url=settings.redis_url,
            channel_prefix=settings.redis_channel_prefix,
        )
    else:
        _change_feed = InMemoryChangeFeed()
    return _change_feed


def get_email_sender() -> EmailSender:
    global _email_sender
    if _email_sender:
        return _email_sender

    settings = get_settings()
    if settings.resend_api_key and not settings.use_in_memory_backends:
        _email_sender = ResendEmailSender(
            api_key=settings.resend_api_key, sender=settings.email_from
        )
    else:
        _email_sender = InMemoryEmailSender()
    return _email_sender


# Identity is asserted by the auth gateway in front of the service.


def get_optional_user_id(
    x_user_id: Optional[str] = Header(default=None),
) -> Optional[str]:
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None),
) -> str:
    user_id = get_optional_user_id(x_user_id)
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


def get_user_email(x_user_email: Optional[str] = Header(default=None)) -> str:
    return (x_user_email or "").strip()
