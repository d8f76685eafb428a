import unittest
from unittest.mock import patch

from redis import exceptions as redis_exceptions

from palmcosmic.messaging import (
    Change,
    InMemoryChangeFeed,
    InMemoryJobQueue,
    RedisChangeFeed,
    RedisJobQueue,
)
from shared.types import ChangeEvent


class InMemoryMessagingTests(unittest.TestCase):
    def test_queue_is_fifo(self):
        queue = InMemoryJobQueue()
        queue.enqueue("a")
        queue.enqueue("b")
        self.assertEqual(queue.size(), 2)
        self.assertEqual(queue.dequeue(block=False), "a")
        self.assertEqual(queue.dequeue(block=False), "b")
        self.assertIsNone(queue.dequeue(block=False))

    def test_feed_notifies_listeners(self):
        feed = InMemoryChangeFeed()
        received = []
        feed.subscribe(received.append)
        feed.publish("blogs", ChangeEvent.INSERT, {"id": "b1"})
        feed.publish("palm_scans", ChangeEvent.DELETE, {"id": "s1"})

        self.assertEqual(len(received), 2)
        self.assertEqual([c.record["id"] for c in feed.for_table("blogs")], ["b1"])

    def test_change_json(self):
        change = Change(table="blogs", event=ChangeEvent.UPDATE, record={"id": "b1"})
        restored = Change.from_json(change.to_json())
        self.assertEqual(restored.event, ChangeEvent.UPDATE)
        self.assertEqual(restored.record, {"id": "b1"})
        self.assertEqual(restored.commit_timestamp, change.commit_timestamp)


class RedisMessagingTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("palmcosmic.messaging.redis.Redis.from_url")
        self.mock_from_url = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = self.mock_from_url.return_value

    def test_blocking_dequeue(self):
        self.client.blpop.return_value = (b"palmcosmic:analysis-jobs", b"job-1")
        queue = RedisJobQueue("redis://localhost:6379/0")
        self.assertEqual(queue.dequeue(timeout=2), "job-1")
        self.client.blpop.assert_called_once_with("palmcosmic:analysis-jobs", timeout=2)

    def test_connection_reset_reads_as_empty(self):
        self.client.lpop.side_effect = redis_exceptions.ConnectionError("reset")
        queue = RedisJobQueue("redis://localhost:6379/0")
        self.assertIsNone(queue.dequeue(block=False))
        self.assertEqual(self.mock_from_url.call_count, 2)

    def test_publish_uses_table_channel(self):
        feed = RedisChangeFeed("redis://localhost:6379/0")
        feed.publish("profiles", ChangeEvent.DELETE, {"id": "u1"})
        channel, payload = self.client.publish.call_args.args
        self.assertEqual(channel, "palmcosmic:changes:profiles")
        self.assertEqual(Change.from_json(payload).record, {"id": "u1"})


if __name__ == "__main__":
    unittest.main()
