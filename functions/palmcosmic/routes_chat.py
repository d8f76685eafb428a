"""
HTTP routes for the Astrobot chat.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from models.gemini import ImagePart
from palmcosmic import chat, readings
from palmcosmic.chat import HistoryEntry
from palmcosmic.config import get_settings
from palmcosmic.db import DbClient
from palmcosmic.dependencies import (
    get_current_user_id,
    get_db_client,
    get_optional_user_id,
    get_storage_client,
    get_user_email,
)
from palmcosmic.images import ImageTooLargeError, InvalidImageError
from palmcosmic.records import ChatMessage, new_id
from palmcosmic.schemas import (
    ChatMessageResponse,
    ChatMessagesResponse,
    ChatRequest,
    ChatResponse,
    QuestionsResponse,
    UploadedImageResponse,
)
from palmcosmic.storage import StorageClient
from palmcosmic.uploads import store_upload
from shared.constants import PALM_IMAGES_PREFIX
from shared.types import ChatSender

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_image(
    payload: ChatRequest, user_id: Optional[str], storage: StorageClient
) -> Optional[ImagePart]:
    if payload.image_path:
        owner = payload.image_path.split("/")[1:2]
        if not payload.image_path.startswith(f"{PALM_IMAGES_PREFIX}/") or owner != [
            user_id or "anonymous"
        ]:
            raise HTTPException(status_code=403, detail="Image does not belong to you")
        try:
            return storage.get_bytes(payload.image_path), "image/jpeg"
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail="Image not found") from e
    if payload.image_url:
        try:
            return readings.fetch_image(payload.image_url)
        except ImageTooLargeError as e:
            raise HTTPException(status_code=413, detail=str(e)) from e
        except InvalidImageError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except requests.RequestException as e:
            logger.warning("Could not download chat image: %s", e)
            raise HTTPException(status_code=400, detail="Could not download image") from e
    return None


@router.post("/chat", response_model=ChatResponse)
def send_message(
    payload: ChatRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    """
    Answers a palmistry question. Signed-in users get their stored
    conversation as context and both turns are persisted; anonymous callers
    pass ``conversation_history`` themselves.
    """
    message = payload.message.strip()
    if not message and not (payload.image_url or payload.image_path):
        raise HTTPException(status_code=400, detail="Message or image is required")

    image = _load_image(payload, user_id, storage)
    image_url = payload.image_url or (
        storage.public_url(payload.image_path) if payload.image_path else None
    )
    window = get_settings().chat_context_window

    session_id = None
    if user_id:
        db.ensure_profile(user_id, email)
        session = db.get_or_create_chat_session(user_id)
        session_id = session.id
        history = [
            HistoryEntry(sender=m.sender, content=m.content)
            for m in db.list_chat_messages(session.id, limit=window)
        ]
        db.add_chat_message(
            ChatMessage(
                session_id=session.id,
                sender=ChatSender.USER,
                content=message,
                image_url=image_url,
            )
        )
    else:
        history = [
            HistoryEntry(sender=h.sender, content=h.content, is_typing=h.is_typing)
            for h in payload.conversation_history
        ]

    reply = chat.generate_reply(message, history, image=image, window=window)

    if session_id:
        db.add_chat_message(
            ChatMessage(
                session_id=session_id,
                sender=ChatSender.ASTROBOT,
                content=reply.content,
                follow_up_questions=chat.PREBUILT_QUESTIONS[:4],
            )
        )
    return ChatResponse(
        response=reply.content,
        session_id=session_id,
        used_fallback=reply.used_fallback,
    )


@router.get("/chat/messages", response_model=ChatMessagesResponse)
def list_messages(
    limit: Optional[int] = None,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    session = db.get_or_create_chat_session(user_id)
    messages = db.list_chat_messages(session.id, limit=limit)
    return ChatMessagesResponse(
        session_id=session.id,
        messages=[ChatMessageResponse(**m.as_dict()) for m in messages],
    )


@router.post("/chat/images", response_model=UploadedImageResponse, status_code=201)
async def upload_chat_image(
    file: UploadFile = File(...),
    user_id: Optional[str] = Depends(get_optional_user_id),
    storage: StorageClient = Depends(get_storage_client),
):
    path = await store_upload(
        storage,
        file,
        prefix=PALM_IMAGES_PREFIX,
        user_id=user_id or "anonymous",
        suffix=f"chat-{new_id()[:8]}",
        max_bytes=get_settings().max_upload_bytes,
    )
    return UploadedImageResponse(image_url=storage.public_url(path), path=path)


@router.get("/chat/questions", response_model=QuestionsResponse)
def prebuilt_questions():
    return QuestionsResponse(questions=list(chat.PREBUILT_QUESTIONS))
