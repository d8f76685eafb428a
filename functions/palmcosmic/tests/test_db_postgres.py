import time
import unittest

from palmcosmic import capture
from palmcosmic.db import CLAIMED_STAGE, QUEUED_STAGE
from palmcosmic.db_postgres import PostgresDbClient
from palmcosmic.records import Blog, BlogComment, ChatMessage, PalmScan
from shared.types import CaptureState, ChatSender, Hand


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            PostgresDbClient("")

    def test_ensure_and_update_profile(self):
        profile = self.db.ensure_profile("u1", "u1@example.com")
        self.assertEqual(profile.email, "u1@example.com")
        self.assertEqual(self.db.ensure_profile("u1").email, "u1@example.com")

        updated = self.db.update_profile("u1", full_name="Una", seen_questions=[1, 2])
        self.assertEqual(updated.full_name, "Una")
        self.assertEqual(self.db.get_profile("u1").seen_questions, [1, 2])
        self.assertIsNone(self.db.update_profile("missing", full_name="x"))

        with self.assertRaises(ValueError):
            self.db.update_profile("u1", id="other")

    def test_scan_with_same_capture_is_saved_once(self):
        first = self.db.create_scan(PalmScan(user_id="u1", capture_id="job-1"))
        second = self.db.create_scan(PalmScan(user_id="u1", capture_id="job-1"))
        self.assertEqual(first.id, second.id)
        self.assertEqual(self.db.count_scans("u1"), 1)

        other = self.db.create_scan(PalmScan(user_id="u2", capture_id="job-1"))
        self.assertNotEqual(other.id, first.id)
        self.assertEqual(other.user_id, "u2")
        self.assertEqual(self.db.count_scans("u2"), 1)

        self.db.create_scan(PalmScan(user_id="u1"))
        self.db.create_scan(PalmScan(user_id="u1"))
        self.assertEqual(self.db.count_scans("u1"), 3)
        self.assertEqual(len(self.db.list_scan_dates("u1")), 3)

    def test_rename_and_delete_scan(self):
        scan = self.db.create_scan(PalmScan(user_id="u1", overall_insight="Calm"))
        renamed = self.db.rename_scan(scan.id, "Morning")
        self.assertEqual(renamed.reading_name, "Morning")
        self.assertEqual(self.db.get_scan(scan.id).overall_insight, "Calm")
        self.assertTrue(self.db.delete_scan(scan.id))
        self.assertFalse(self.db.delete_scan(scan.id))
        self.assertIsNone(self.db.rename_scan(scan.id, "Gone"))

    def test_blog_publishing_and_likes(self):
        draft = self.db.create_blog(
            Blog(user_id="u1", title="Draft", content="...", published=False)
        )
        self.assertEqual(self.db.list_published_blogs(), [])
        self.assertFalse(self.db.publish_blog(draft.id, "u2"))
        self.assertTrue(self.db.publish_blog(draft.id, "u1"))
        self.assertEqual([b.id for b in self.db.list_published_blogs()], [draft.id])

        self.assertTrue(self.db.toggle_blog_like(draft.id, "u2"))
        self.assertEqual(len(self.db.list_blog_likes([draft.id])), 1)
        self.assertFalse(self.db.toggle_blog_like(draft.id, "u2"))
        self.assertEqual(self.db.list_blog_likes([draft.id]), [])

    def test_deleting_comment_removes_replies_and_likes(self):
        blog = self.db.create_blog(Blog(user_id="u1", title="T", content="C"))
        root = self.db.create_comment(BlogComment(blog_id=blog.id, user_id="u2", content="a"))
        reply = self.db.create_comment(
            BlogComment(
                blog_id=blog.id, user_id="u1", content="b", parent_comment_id=root.id
            )
        )
        nested = self.db.create_comment(
            BlogComment(
                blog_id=blog.id, user_id="u3", content="c", parent_comment_id=reply.id
            )
        )
        self.db.toggle_comment_like(reply.id, "u3")
        self.db.toggle_comment_like(nested.id, "u1")
        self.assertEqual(self.db.count_comments([blog.id]), {blog.id: 3})

        self.assertTrue(self.db.delete_comment(root.id))
        self.assertEqual(self.db.list_comments(blog.id), [])
        self.assertEqual(self.db.list_comment_likes([reply.id, nested.id]), [])
        self.assertEqual(self.db.count_comments([blog.id]), {blog.id: 0})
        self.assertFalse(self.db.delete_comment(root.id))

    def test_only_author_can_delete_blog(self):
        blog = self.db.create_blog(Blog(user_id="u1", title="T", content="C"))
        self.db.create_comment(BlogComment(blog_id=blog.id, user_id="u2", content="a"))
        self.assertFalse(self.db.delete_blog(blog.id, "u2"))
        self.assertTrue(self.db.delete_blog(blog.id, "u1"))
        self.assertIsNone(self.db.get_blog(blog.id))
        self.assertEqual(self.db.count_comments([blog.id]), {blog.id: 0})

    def test_chat_messages_limit_keeps_most_recent(self):
        chat_session = self.db.get_or_create_chat_session("u1")
        self.assertEqual(self.db.get_or_create_chat_session("u1").id, chat_session.id)
        now = time.time()
        for i in range(5):
            self.db.add_chat_message(
                ChatMessage(
                    session_id=chat_session.id,
                    sender=ChatSender.USER if i % 2 == 0 else ChatSender.ASTROBOT,
                    content=f"m{i}",
                    created_at=now + i,
                )
            )
        recent = self.db.list_chat_messages(chat_session.id, limit=2)
        self.assertEqual([m.content for m in recent], ["m3", "m4"])
        self.assertEqual(recent[1].sender, ChatSender.USER)
        self.assertEqual(len(self.db.list_chat_messages(chat_session.id)), 5)

    def test_capture_job_round_trip_and_claim(self):
        job = self.db.create_capture_job("u1")
        capture.record_capture(job, Hand.LEFT, "palm-images/u1/left.jpg")
        self.db.save_capture_job(job)

        loaded = self.db.get_capture_job(job.job_id)
        self.assertEqual(loaded.state, CaptureState.READY)
        self.assertEqual(loaded.current_hand, Hand.RIGHT)
        self.assertEqual(loaded.left_image_path, "palm-images/u1/left.jpg")
        self.assertIsNone(self.db.claim_next_analysis_job())

        capture.record_capture(loaded, Hand.RIGHT, "palm-images/u1/right.jpg")
        self.db.save_capture_job(loaded)

        claimed = self.db.claim_next_analysis_job()
        self.assertEqual(claimed.job_id, job.job_id)
        self.assertEqual(claimed.stage, CLAIMED_STAGE)
        self.assertIsNone(self.db.claim_next_analysis_job())

    def test_requeue_stale_locks(self):
        job = self.db.create_capture_job("u1")
        job.state = CaptureState.ANALYZING
        job.stage = CLAIMED_STAGE
        job.locked_at = time.time() - 3600
        self.db.save_capture_job(job)

        self.assertEqual(self.db.requeue_stale_locks(lock_timeout_seconds=60), 1)
        self.assertEqual(self.db.get_capture_job(job.job_id).stage, QUEUED_STAGE)
        self.assertEqual(self.db.requeue_stale_locks(lock_timeout_seconds=60), 0)

    def test_delete_user_account(self):
        self.db.ensure_profile("u1", "u1@example.com")
        self.db.create_scan(PalmScan(user_id="u1"))
        own_blog = self.db.create_blog(Blog(user_id="u1", title="T", content="C"))
        other_blog = self.db.create_blog(Blog(user_id="u2", title="T2", content="C2"))
        self.db.create_comment(BlogComment(blog_id=own_blog.id, user_id="u2", content="x"))
        kept = self.db.create_comment(
            BlogComment(blog_id=other_blog.id, user_id="u2", content="keep")
        )
        farewell = self.db.create_comment(
            BlogComment(blog_id=other_blog.id, user_id="u1", content="bye")
        )
        answer = self.db.create_comment(
            BlogComment(
                blog_id=other_blog.id,
                user_id="u2",
                content="why?",
                parent_comment_id=farewell.id,
            )
        )
        self.db.create_comment(
            BlogComment(
                blog_id=other_blog.id,
                user_id="u3",
                content="same",
                parent_comment_id=answer.id,
            )
        )
        self.db.toggle_blog_like(other_blog.id, "u1")
        chat_session = self.db.get_or_create_chat_session("u1")
        self.db.add_chat_message(
            ChatMessage(session_id=chat_session.id, sender=ChatSender.USER, content="hi")
        )
        self.db.create_capture_job("u1")

        self.db.delete_user_account("u1")

        self.assertIsNone(self.db.get_profile("u1"))
        self.assertEqual(self.db.count_scans("u1"), 0)
        self.assertIsNone(self.db.get_blog(own_blog.id))
        self.assertEqual([c.id for c in self.db.list_comments(other_blog.id)], [kept.id])
        self.assertEqual(self.db.list_blog_likes([other_blog.id]), [])
        self.assertIsNone(self.db.get_chat_session(chat_session.id))


if __name__ == "__main__":
    unittest.main()
