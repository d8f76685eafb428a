"""
Redis-backed messaging: the analysis job queue and the realtime change feed.

Both have in-memory fallbacks for tests/local runs. The change feed mirrors
the hosted platform's "postgres_changes" events so clients can refresh
scans, profiles and blog threads without polling.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from shared.types import ChangeEvent

logger = logging.getLogger(__name__)


class JobQueue(Protocol):
    """Minimal queue interface for dispatching job_ids to workers."""

    def enqueue(self, job_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...

    def size(self) -> int:
        ...


@dataclass
class InMemoryJobQueue:
    """Simple FIFO queue for testing/dev."""

    items: list[str] = field(default_factory=list)

    def enqueue(self, job_id: str) -> None:
        if job_id not in self.items:
            self.items.append(job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        if not self.items:
            return None
        return self.items.pop(0)

    def size(self) -> int:
        return len(self.items)


@dataclass
class RedisJobQueue:
    """Redis-backed queue using list push/pop operations."""

    url: str
    queue_key: str = "palmcosmic:analysis-jobs"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, job_id: str) -> None:
        self.client.rpush(self.queue_key, job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, job_id = result
            else:
                job_id = self.client.lpop(self.queue_key)
                if job_id is None:
                    return None
            return job_id.decode("utf-8")
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis. Treat as empty queue
            # and allow the worker loop to retry.
            self.client = redis.Redis.from_url(self.url)
            return None

    def size(self) -> int:
        return int(self.client.llen(self.queue_key))


@dataclass
class Change:
    table: str
    event: ChangeEvent
    record: dict
    commit_timestamp: float = field(default_factory=time.time)

    def to_json(self) -> str:
        return json.dumps(
            {
                "table": self.table,
                "event": self.event.value,
                "record": self.record,
                "commit_timestamp": self.commit_timestamp,
            },
            default=str,
        )

    @classmethod
    def from_json(cls, payload: str | bytes) -> "Change":
        data = json.loads(payload)
        return cls(
            table=data["table"],
            event=ChangeEvent(data["event"]),
            record=data.get("record") or {},
            commit_timestamp=data.get("commit_timestamp") or time.time(),
        )


class ChangeFeed(Protocol):
    """Publishes row-level change notifications for subscribed clients."""

    def publish(self, table: str, event: ChangeEvent, record: dict) -> None:
        ...


@dataclass
class InMemoryChangeFeed:
    """Records published changes and fans them out to local listeners."""

    changes: list[Change] = field(default_factory=list)
    listeners: list[Callable[[Change], None]] = field(default_factory=list)

    def publish(self, table: str, event: ChangeEvent, record: dict) -> None:
        change = Change(table=table, event=event, record=record)
        self.changes.append(change)
        for listener in self.listeners:
            listener(change)

    def subscribe(self, listener: Callable[[Change], None]) -> None:
        self.listeners.append(listener)

    def for_table(self, table: str) -> list[Change]:
        return [change for change in self.changes if change.table == table]


@dataclass
class RedisChangeFeed:
    """Redis pub/sub change feed, one channel per table."""

    url: str
    channel_prefix: str = "palmcosmic:changes"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def channel(self, table: str) -> str:
        return f"{self.channel_prefix}:{table}"

    def publish(self, table: str, event: ChangeEvent, record: dict) -> None:
        change = Change(table=table, event=event, record=record)
        try:
            self.client.publish(self.channel(table), change.to_json())
        except redis_exceptions.ConnectionError:
            # Notifications are best-effort; the row itself is already stored.
            logger.warning("Dropped %s change on %s: Redis unavailable", event, table)

    def listen(self, *tables: str) -> Iterator[Change]:
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(*[self.channel(table) for table in tables])
        try:
            for message in pubsub.listen():
                if message.get("type") == "message":
                    yield Change.from_json(message["data"])
        finally:
            pubsub.close()
