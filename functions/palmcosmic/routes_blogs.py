"""
HTTP routes for the community blog.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from palmcosmic.blogs import build_comment_tree, comment_node, decorate_blogs
from palmcosmic.config import get_settings
from palmcosmic.db import DbClient
from palmcosmic.dependencies import (
    get_change_feed,
    get_current_user_id,
    get_db_client,
    get_optional_user_id,
    get_storage_client,
    get_user_email,
)
from palmcosmic.messaging import ChangeFeed
from palmcosmic.records import Blog, BlogComment, new_id
from palmcosmic.schemas import (
    BlogDetailResponse,
    BlogResponse,
    CommentRequest,
    CommentResponse,
    LikeResponse,
)
from palmcosmic.storage import StorageClient
from palmcosmic.uploads import delete_owned_images, store_upload
from shared.constants import (
    BLOG_COMMENTS_TABLE,
    BLOG_IMAGES_PREFIX,
    BLOGS_TABLE,
    MAX_BLOG_CONTENT_LENGTH,
    MAX_BLOG_TITLE_LENGTH,
)
from shared.types import ChangeEvent

logger = logging.getLogger(__name__)

router = APIRouter()


def _decorated(db: DbClient, blogs: list[Blog], viewer_id: Optional[str]) -> list[dict]:
    blog_ids = [blog.id for blog in blogs]
    profiles = db.get_profiles(blog.user_id for blog in blogs)
    return decorate_blogs(
        blogs,
        profiles,
        db.list_blog_likes(blog_ids),
        db.count_comments(blog_ids),
        viewer_id,
    )


def _comment_tree(db: DbClient, blog_id: str, viewer_id: Optional[str]) -> list[dict]:
    comments = db.list_comments(blog_id)
    profiles = db.get_profiles(comment.user_id for comment in comments)
    likes = db.list_comment_likes(comment.id for comment in comments)
    return build_comment_tree(comments, profiles, likes, viewer_id)


def _visible_blog(db: DbClient, blog_id: str, viewer_id: Optional[str]) -> Blog:
    blog = db.get_blog(blog_id)
    # Drafts are only visible to their author.
    if not blog or (not blog.published and blog.user_id != viewer_id):
        raise HTTPException(status_code=404, detail="Blog not found")
    return blog


@router.get("/blogs", response_model=list[BlogResponse])
def list_blogs(
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    db: DbClient = Depends(get_db_client),
):
    return _decorated(db, db.list_published_blogs(), viewer_id)


@router.get("/blogs/mine", response_model=list[BlogResponse])
def list_my_blogs(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    return _decorated(db, db.list_user_blogs(user_id), user_id)


@router.post("/blogs", response_model=BlogResponse, status_code=201)
async def create_blog(
    title: str = Form(...),
    content: str = Form(...),
    publish: bool = Form(True),
    image: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Publishes a post, or saves it as a draft when ``publish`` is false.
    """
    title, content = title.strip(), content.strip()
    if not title or not content:
        raise HTTPException(status_code=400, detail="Title and content are required")
    if len(title) > MAX_BLOG_TITLE_LENGTH:
        raise HTTPException(status_code=400, detail="Title is too long")
    if len(content) > MAX_BLOG_CONTENT_LENGTH:
        raise HTTPException(status_code=400, detail="Content is too long")

    image_url = None
    if image is not None and image.filename:
        path = await store_upload(
            storage,
            image,
            prefix=BLOG_IMAGES_PREFIX,
            user_id=user_id,
            suffix=f"blog-{new_id()[:8]}",
            max_bytes=get_settings().max_upload_bytes,
        )
        image_url = storage.public_url(path)

    db.ensure_profile(user_id, email)
    blog = db.create_blog(
        Blog(
            user_id=user_id,
            title=title,
            content=content,
            image_url=image_url,
            published=publish,
        )
    )
    feed.publish(BLOGS_TABLE, ChangeEvent.INSERT, blog.as_dict())
    return _decorated(db, [blog], user_id)[0]


@router.get("/blogs/{blog_id}", response_model=BlogDetailResponse)
def get_blog(
    blog_id: str,
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    db: DbClient = Depends(get_db_client),
):
    blog = _visible_blog(db, blog_id, viewer_id)
    return BlogDetailResponse(
        blog=_decorated(db, [blog], viewer_id)[0],
        comments=_comment_tree(db, blog_id, viewer_id),
    )


@router.post("/blogs/{blog_id}/publish", response_model=BlogResponse)
def publish_blog(
    blog_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    if not db.publish_blog(blog_id, user_id):
        raise HTTPException(status_code=404, detail="Draft not found")
    blog = db.get_blog(blog_id)
    feed.publish(BLOGS_TABLE, ChangeEvent.UPDATE, blog.as_dict())
    return _decorated(db, [blog], user_id)[0]


@router.delete("/blogs/{blog_id}", status_code=204)
def delete_blog(
    blog_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    blog = db.get_blog(blog_id)
    if not blog:
        raise HTTPException(status_code=404, detail="Blog not found")
    if blog.user_id != user_id:
        raise HTTPException(status_code=403, detail="Only the author can delete this post")
    delete_owned_images(storage, user_id, [blog.image_url])
    db.delete_blog(blog_id, user_id)
    feed.publish(BLOGS_TABLE, ChangeEvent.DELETE, {"id": blog_id, "user_id": user_id})


@router.post("/blogs/{blog_id}/like", response_model=LikeResponse)
def like_blog(
    blog_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    _visible_blog(db, blog_id, user_id)
    liked = db.toggle_blog_like(blog_id, user_id)
    count = len(db.list_blog_likes([blog_id]))
    return LikeResponse(liked=liked, likes_count=count)


@router.get("/blogs/{blog_id}/comments", response_model=list[CommentResponse])
def list_comments(
    blog_id: str,
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    db: DbClient = Depends(get_db_client),
):
    _visible_blog(db, blog_id, viewer_id)
    return _comment_tree(db, blog_id, viewer_id)


@router.post("/blogs/{blog_id}/comments", response_model=CommentResponse, status_code=201)
def add_comment(
    blog_id: str,
    payload: CommentRequest,
    user_id: str = Depends(get_current_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    _visible_blog(db, blog_id, user_id)
    content = payload.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Comment cannot be empty")
    if payload.parent_comment_id:
        parent = db.get_comment(payload.parent_comment_id)
        if not parent or parent.blog_id != blog_id:
            raise HTTPException(status_code=400, detail="Parent comment not found on this post")

    profile = db.ensure_profile(user_id, email)
    comment = db.create_comment(
        BlogComment(
            blog_id=blog_id,
            user_id=user_id,
            content=content,
            parent_comment_id=payload.parent_comment_id,
        )
    )
    feed.publish(BLOG_COMMENTS_TABLE, ChangeEvent.INSERT, comment.as_dict())
    return comment_node(comment, profile)


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    comment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Deletes a comment and its replies. Allowed for the comment's author and
    for the author of the post it belongs to.
    """
    comment = db.get_comment(comment_id)
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    blog = db.get_blog(comment.blog_id)
    if comment.user_id != user_id and (not blog or blog.user_id != user_id):
        raise HTTPException(status_code=403, detail="Not allowed to delete this comment")
    db.delete_comment(comment_id)
    feed.publish(
        BLOG_COMMENTS_TABLE,
        ChangeEvent.DELETE,
        {"id": comment_id, "blog_id": comment.blog_id},
    )


@router.post("/comments/{comment_id}/like", response_model=LikeResponse)
def like_comment(
    comment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    if not db.get_comment(comment_id):
        raise HTTPException(status_code=404, detail="Comment not found")
    liked = db.toggle_comment_like(comment_id, user_id)
    count = len(db.list_comment_likes([comment_id]))
    return LikeResponse(liked=liked, likes_count=count)
