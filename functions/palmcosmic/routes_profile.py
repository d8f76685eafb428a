"""
HTTP routes for the user profile and account.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from palmcosmic.config import get_settings
from palmcosmic.db import DbClient
from palmcosmic.dependencies import (
    get_change_feed,
    get_current_user_id,
    get_db_client,
    get_email_sender,
    get_storage_client,
    get_user_email,
)
from palmcosmic.messaging import ChangeFeed
from palmcosmic.notifications import EmailSender, send_account_deletion_email
from palmcosmic.records import Profile
from palmcosmic.schemas import (
    AccountDeletionResponse,
    PhoneOtpRequest,
    PhoneOtpResponse,
    PhoneVerifyRequest,
    ProfileResponse,
    ProfileUpdateRequest,
)
from palmcosmic.storage import StorageClient
from palmcosmic.uploads import delete_user_files, store_upload
from shared.constants import PROFILE_PICTURES_PREFIX, PROFILES_TABLE
from shared.types import ChangeEvent

logger = logging.getLogger(__name__)

router = APIRouter()

OTP_DIGITS = 6


def _profile_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(**profile.as_dict())


def _update(db: DbClient, feed: ChangeFeed, user_id: str, **fields) -> Profile:
    profile = db.update_profile(user_id, **fields)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    feed.publish(PROFILES_TABLE, ChangeEvent.UPDATE, profile.as_dict())
    return profile


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    user_id: str = Depends(get_current_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
):
    return _profile_response(db.ensure_profile(user_id, email))


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    profile = db.ensure_profile(user_id, email)
    fields = {
        key: (value.strip() or None) if isinstance(value, str) else value
        for key, value in payload.model_dump(exclude_unset=True).items()
    }
    if "phone_number" in fields and fields["phone_number"] != profile.phone_number:
        fields["phone_verified"] = False
        fields["pending_phone_otp"] = None
    if not fields:
        return _profile_response(profile)
    return _profile_response(_update(db, feed, user_id, **fields))


@router.post("/profile/picture", response_model=ProfileResponse)
async def upload_profile_picture(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    db.ensure_profile(user_id, email)
    path = await store_upload(
        storage,
        file,
        prefix=PROFILE_PICTURES_PREFIX,
        user_id=user_id,
        suffix="avatar",
        max_bytes=get_settings().max_upload_bytes,
    )
    profile = _update(db, feed, user_id, profile_picture_url=storage.public_url(path))
    return _profile_response(profile)


@router.post("/profile/phone/otp", response_model=PhoneOtpResponse)
def request_phone_otp(
    payload: PhoneOtpRequest,
    user_id: str = Depends(get_current_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Issues a verification code. There is no SMS provider; the code is
    returned in the response for the client to display.
    """
    db.ensure_profile(user_id, email)
    otp = f"{secrets.randbelow(10**OTP_DIGITS):0{OTP_DIGITS}d}"
    phone_number = payload.phone_number.strip()
    _update(
        db,
        feed,
        user_id,
        phone_number=phone_number,
        phone_verified=False,
        pending_phone_otp=otp,
    )
    logger.info("Issued phone verification code for user %s", user_id)
    return PhoneOtpResponse(
        phone_number=phone_number,
        otp=otp,
        message=f"Your verification code is {otp}",
    )


@router.post("/profile/phone/verify", response_model=ProfileResponse)
def verify_phone(
    payload: PhoneVerifyRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    profile = db.get_profile(user_id)
    if not profile or not profile.pending_phone_otp:
        raise HTTPException(status_code=400, detail="No verification in progress")
    if not secrets.compare_digest(profile.pending_phone_otp, payload.otp):
        raise HTTPException(status_code=400, detail="Invalid OTP. Please try again.")
    profile = _update(db, feed, user_id, phone_verified=True, pending_phone_otp=None)
    return _profile_response(profile)


@router.delete("/account", response_model=AccountDeletionResponse)
def delete_account(
    user_id: str = Depends(get_current_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    sender: EmailSender = Depends(get_email_sender),
):
    """
    Removes every record and stored file owned by the user, then sends the confirmation email.
    """
    profile = db.get_profile(user_id)
    address = (profile.email if profile and profile.email else "") or email
    full_name = profile.full_name if profile else None

    delete_user_files(storage, user_id)
    db.delete_user_account(user_id)
    feed.publish(PROFILES_TABLE, ChangeEvent.DELETE, {"id": user_id})
    logger.info("Deleted account %s", user_id)

    email_sent = send_account_deletion_email(sender, address, full_name)
    return AccountDeletionResponse(status="deleted", email_sent=email_sent)
