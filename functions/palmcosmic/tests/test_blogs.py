import unittest

from palmcosmic.blogs import build_comment_tree, decorate_blogs
from palmcosmic.records import Blog, BlogComment, BlogLike, CommentLike, Profile


class BlogShapingTests(unittest.TestCase):
    def setUp(self):
        self.profiles = {
            "u1": Profile(id="u1", email="u1@example.com", full_name="Una"),
            "u2": Profile(id="u2", email="u2@example.com"),
        }

    def test_decorate_blogs(self):
        blog = Blog(id="b1", user_id="u1", title="T", content="C")
        anon = Blog(id="b2", user_id="ghost", title="T2", content="C2")
        likes = [BlogLike(blog_id="b1", user_id="u2"), BlogLike(blog_id="b1", user_id="u1")]

        items = decorate_blogs([blog, anon], self.profiles, likes, {"b1": 4}, viewer_id="u2")

        self.assertEqual(items[0]["author_name"], "Una")
        self.assertEqual(items[0]["likes_count"], 2)
        self.assertEqual(items[0]["comments_count"], 4)
        self.assertTrue(items[0]["is_liked_by_user"])
        self.assertEqual(items[1]["author_name"], "Unknown")
        self.assertIsNone(items[1]["author_email"])
        self.assertFalse(items[1]["is_liked_by_user"])

    def test_anonymous_viewer_likes_nothing(self):
        blog = Blog(id="b1", user_id="u1", title="T", content="C")
        items = decorate_blogs([blog], self.profiles, [BlogLike("b1", "u1")], {}, None)
        self.assertFalse(items[0]["is_liked_by_user"])

    def test_comment_tree(self):
        root = BlogComment(id="c1", blog_id="b1", user_id="u2", content="root")
        reply = BlogComment(
            id="c2", blog_id="b1", user_id="u1", content="reply", parent_comment_id="c1"
        )
        orphan = BlogComment(
            id="c3", blog_id="b1", user_id="u1", content="lost", parent_comment_id="gone"
        )
        second = BlogComment(id="c4", blog_id="b1", user_id="u1", content="second")

        tree = build_comment_tree(
            [root, reply, orphan, second],
            self.profiles,
            [CommentLike(comment_id="c2", user_id="u2")],
            viewer_id="u2",
        )

        self.assertEqual([node["id"] for node in tree], ["c1", "c4"])
        self.assertEqual(tree[0]["author_name"], "Unknown")
        self.assertNotIn("author_email", tree[0])
        nested = tree[0]["replies"][0]
        self.assertEqual(nested["author_name"], "Una")
        self.assertEqual(nested["likes_count"], 1)
        self.assertTrue(nested["is_liked_by_user"])
        self.assertEqual(tree[1]["replies"], [])


if __name__ == "__main__":
    unittest.main()
