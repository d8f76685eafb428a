"""
Read-side shaping of blog posts and comment threads.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping, Optional

from palmcosmic.records import Blog, BlogComment, BlogLike, CommentLike, Profile
from shared.constants import UNKNOWN_AUTHOR


def _author_fields(profile: Optional[Profile]) -> dict:
    return {
        "author_name": (profile.full_name if profile and profile.full_name else UNKNOWN_AUTHOR),
        "author_email": profile.email if profile else None,
        "author_profile_picture": profile.profile_picture_url if profile else None,
    }


def decorate_blogs(
    blogs: Iterable[Blog],
    profiles: Mapping[str, Profile],
    likes: Iterable[BlogLike],
    comment_counts: Mapping[str, int],
    viewer_id: Optional[str] = None,
) -> list[dict]:
    likes = list(likes)
    like_counts = Counter(like.blog_id for like in likes)
    liked_by_viewer = {like.blog_id for like in likes if like.user_id == viewer_id}
    out = []
    for blog in blogs:
        item = blog.as_dict()
        item.update(_author_fields(profiles.get(blog.user_id)))
        item["likes_count"] = like_counts.get(blog.id, 0)
        item["comments_count"] = comment_counts.get(blog.id, 0)
        item["is_liked_by_user"] = bool(viewer_id) and blog.id in liked_by_viewer
        out.append(item)
    return out


def comment_node(
    comment: BlogComment,
    profile: Optional[Profile],
    likes_count: int = 0,
    is_liked_by_user: bool = False,
) -> dict:
    node = comment.as_dict()
    node.update(_author_fields(profile))
    node.pop("author_email")
    node["likes_count"] = likes_count
    node["is_liked_by_user"] = is_liked_by_user
    node["replies"] = []
    return node


def build_comment_tree(
    comments: Iterable[BlogComment],
    profiles: Mapping[str, Profile],
    likes: Iterable[CommentLike],
    viewer_id: Optional[str] = None,
) -> list[dict]:
    """
    Nests replies under their parent comment.

    Roots keep the order they were given in (oldest first). Replies whose
    parent is not among ``comments`` are dropped.
    """
    likes = list(likes)
    like_counts = Counter(like.comment_id for like in likes)
    liked_by_viewer = {like.comment_id for like in likes if like.user_id == viewer_id}

    nodes: dict[str, dict] = {}
    ordered = list(comments)
    for comment in ordered:
        nodes[comment.id] = comment_node(
            comment,
            profiles.get(comment.user_id),
            like_counts.get(comment.id, 0),
            bool(viewer_id) and comment.id in liked_by_viewer,
        )

    roots = []
    for comment in ordered:
        node = nodes[comment.id]
        if comment.parent_comment_id is None:
            roots.append(node)
        elif comment.parent_comment_id in nodes:
            nodes[comment.parent_comment_id]["replies"].append(node)
    return roots
