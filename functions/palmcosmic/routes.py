"""
HTTP routes for palm readings, capture sessions and scans.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

import requests
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from pydantic import ValidationError

from palmcosmic import capture, readings
from palmcosmic.capture import InvalidTransition
from palmcosmic.config import get_settings
from palmcosmic.db import DbClient
from palmcosmic.dependencies import (
    get_change_feed,
    get_current_user_id,
    get_db_client,
    get_optional_user_id,
    get_queue_client,
    get_storage_client,
    get_user_email,
)
from palmcosmic.horoscope import HoroscopeUnavailableError, generate_horoscope
from palmcosmic.illustration import IllustrationUnavailableError, generate_illustration
from palmcosmic.images import (
    ImageTooLargeError,
    InvalidImageError,
    build_object_path,
    strip_data_url,
)
from palmcosmic.messaging import ChangeFeed, JobQueue
from palmcosmic.questions import random_questions, rotate_questions
from palmcosmic.records import CaptureJob, PalmScan
from palmcosmic.schemas import (
    CaptureSessionResponse,
    FrameUpload,
    HealthResponse,
    HoroscopeRequest,
    HoroscopeResponse,
    IllustrationRequest,
    IllustrationResponse,
    PalmReadingRequest,
    PalmReadingResponse,
    QuestionsResponse,
    RenameScanRequest,
    SaveScanRequest,
    ScanResponse,
    SignUrlResponse,
    StatsResponse,
)
from palmcosmic.stats import compute_user_stats
from palmcosmic.storage import StorageClient
from palmcosmic.uploads import (
    delete_owned_images,
    prepare_image,
    put_image,
    read_upload,
)
from shared.constants import PALM_IMAGES_PREFIX, PALM_SCANS_TABLE, PROFILES_TABLE
from shared.types import CaptureState, ChangeEvent, Hand

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNABLE_PREFIXES = ("palm-images/", "blog-images/", "profile-pictures/", "illustrations/")


def _session_response(job: CaptureJob, storage: StorageClient) -> CaptureSessionResponse:
    return CaptureSessionResponse(
        job_id=job.job_id,
        state=job.state.name,
        current_hand=job.current_hand.value,
        alignment=job.alignment.value,
        left_image_url=storage.public_url(job.left_image_path)
        if job.left_image_path
        else None,
        right_image_url=storage.public_url(job.right_image_path)
        if job.right_image_path
        else None,
        scan_id=job.scan_id,
        error=job.error,
    )


def _owned_job(db: DbClient, job_id: str, user_id: str) -> CaptureJob:
    job = db.get_capture_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Capture session not found")
    if job.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not your capture session")
    return job


def _owned_scan(db: DbClient, scan_id: str, user_id: str) -> PalmScan:
    scan = db.get_scan(scan_id)
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")
    if scan.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not your scan")
    return scan


def _validate_reading_name(name: Optional[str]) -> Optional[str]:
    if name is None:
        return None
    name = name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Reading name cannot be empty")
    limit = get_settings().reading_name_max_length
    if len(name) > limit:
        raise HTTPException(
            status_code=400,
            detail=f"Reading name must be {limit} characters or less",
        )
    return name


def _capture_frame(
    job: CaptureJob,
    data: bytes,
    hand: Optional[str],
    db: DbClient,
    storage: StorageClient,
    queue: JobQueue,
) -> CaptureJob:
    if job.state in capture.TERMINAL_STATES or job.state == CaptureState.ANALYZING:
        raise HTTPException(
            status_code=409, detail=f"Capture session is {job.state.name}"
        )
    target = Hand(hand) if hand else job.current_hand
    if target != job.current_hand:
        raise HTTPException(
            status_code=409,
            detail=f"Expected the {job.current_hand.value} palm next",
        )
    image = prepare_image(data, get_settings().max_upload_bytes)
    path = _palm_path(job, target)
    try:
        capture.record_capture(job, target, path)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    put_image(storage, image, path)
    db.save_capture_job(job)
    if job.state == CaptureState.ANALYZING:
        queue.enqueue(job.job_id)
        logger.info("[%s] Both palms captured, analysis queued", job.job_id)
    return job


def _palm_path(job: CaptureJob, hand: Hand) -> str:
    return build_object_path(
        PALM_IMAGES_PREFIX, job.user_id, f"{job.job_id[:8]}-{hand.value}-palm"
    )


@router.post("/palm-reading", response_model=PalmReadingResponse)
def palm_reading(payload: PalmReadingRequest):
    """
    Reads one palm (or a left/right pair) referenced by URL.
    """
    urls = [payload.image_url]
    if payload.right_image_url:
        urls.append(payload.right_image_url)
    try:
        images = [readings.fetch_image(url) for url in urls]
    except ImageTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e)) from e
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except requests.RequestException as e:
        logger.warning("Could not download palm image: %s", e)
        raise HTTPException(status_code=400, detail="Could not download palm image") from e
    reading = readings.generate_palm_reading(images)
    return PalmReadingResponse(**reading.as_dict())


@router.post("/scans/sessions", response_model=CaptureSessionResponse, status_code=201)
def create_capture_session(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    job = db.create_capture_job(user_id)
    return _session_response(job, storage)


@router.get("/scans/sessions/{job_id}", response_model=CaptureSessionResponse)
def get_capture_session(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    return _session_response(_owned_job(db, job_id, user_id), storage)


@router.post("/scans/sessions/{job_id}/detect", response_model=CaptureSessionResponse)
def detect_hand(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    job = _owned_job(db, job_id, user_id)
    try:
        capture.start_detection(job)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    db.save_capture_job(job)
    return _session_response(job, storage)


@router.post("/scans/sessions/{job_id}/frames", response_model=CaptureSessionResponse)
async def capture_frame(
    job_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """
    Accepts a camera frame for the current hand, either as a multipart ``file``
    or as JSON ``{"image": "<data url>"}``.
    """
    job = _owned_job(db, job_id, user_id)
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            frame = FrameUpload.model_validate(await request.json())
            data = strip_data_url(frame.image)
        except (ValidationError, ValueError) as e:
            raise HTTPException(status_code=400, detail="Invalid frame payload") from e
        hand = frame.hand
    else:
        form = await request.form()
        upload = form.get("file")
        if upload is None or isinstance(upload, str):
            raise HTTPException(status_code=400, detail="Image file is required")
        data = await upload.read()
        hand = form.get("hand") or None
        if hand not in (None, "left", "right"):
            raise HTTPException(status_code=400, detail="Hand must be left or right")
    job = _capture_frame(job, data, hand, db, storage, queue)
    return _session_response(job, storage)


@router.post("/scans/upload", response_model=CaptureSessionResponse, status_code=202)
async def upload_palms(
    left_file: UploadFile = File(...),
    right_file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """
    Uploads both palm photos at once and queues the analysis.
    """
    max_bytes = get_settings().max_upload_bytes
    images = {
        Hand.LEFT: await read_upload(left_file, max_bytes),
        Hand.RIGHT: await read_upload(right_file, max_bytes),
    }
    job = db.create_capture_job(user_id)
    for hand, image in images.items():
        path = _palm_path(job, hand)
        capture.record_capture(job, hand, path)
        put_image(storage, image, path)
    db.save_capture_job(job)
    queue.enqueue(job.job_id)
    return _session_response(job, storage)


@router.get("/scans", response_model=list[ScanResponse])
def list_scans(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    return [ScanResponse(**scan.as_dict()) for scan in db.list_scans(user_id)]


@router.post("/scans", response_model=ScanResponse, status_code=201)
def save_scan(
    payload: SaveScanRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Persists a reading. Saving the same capture twice returns the first scan.
    """
    fields = payload.model_dump()
    fields["reading_name"] = _validate_reading_name(payload.reading_name)
    if payload.capture_id:
        job = db.get_capture_job(payload.capture_id)
        if job and job.user_id != user_id:
            raise HTTPException(status_code=403, detail="Not your capture session")
    candidate = PalmScan(user_id=user_id, **fields)
    scan = db.create_scan(candidate)
    if scan.id == candidate.id:
        feed.publish(PALM_SCANS_TABLE, ChangeEvent.INSERT, scan.as_dict())
    return ScanResponse(**scan.as_dict())


@router.get("/scans/{scan_id}", response_model=ScanResponse)
def get_scan(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    return ScanResponse(**_owned_scan(db, scan_id, user_id).as_dict())


@router.patch("/scans/{scan_id}", response_model=ScanResponse)
def rename_scan(
    scan_id: str,
    payload: RenameScanRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    _owned_scan(db, scan_id, user_id)
    scan = db.rename_scan(scan_id, _validate_reading_name(payload.reading_name))
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")
    feed.publish(PALM_SCANS_TABLE, ChangeEvent.UPDATE, scan.as_dict())
    return ScanResponse(**scan.as_dict())


@router.delete("/scans/{scan_id}", status_code=204)
def delete_scan(
    scan_id: str,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    scan = _owned_scan(db, scan_id, user_id)
    delete_owned_images(
        storage, user_id, (scan.palm_image_url, scan.right_palm_image_url)
    )
    db.delete_scan(scan_id)
    feed.publish(PALM_SCANS_TABLE, ChangeEvent.DELETE, {"id": scan.id, "user_id": user_id})


@router.get("/stats", response_model=StatsResponse)
def user_stats(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    stats = compute_user_stats(
        db.list_scan_dates(user_id),
        db.count_scans(user_id),
        db.get_profile(user_id),
    )
    return StatsResponse(**stats.as_dict())


@router.get("/questions", response_model=QuestionsResponse)
def suggested_questions(
    user_id: Optional[str] = Depends(get_optional_user_id),
    email: str = Depends(get_user_email),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    if not user_id:
        return QuestionsResponse(questions=random_questions())
    profile = db.ensure_profile(user_id, email)
    questions, seen = rotate_questions(profile.seen_questions)
    profile = db.update_profile(user_id, seen_questions=seen)
    feed.publish(PROFILES_TABLE, ChangeEvent.UPDATE, profile.as_dict())
    return QuestionsResponse(questions=questions)


@router.post("/horoscope", response_model=HoroscopeResponse)
def horoscope(payload: HoroscopeRequest):
    birthdate: Optional[date] = None
    if payload.birth_date:
        try:
            birthdate = date.fromisoformat(payload.birth_date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid birth date") from e
    try:
        result = generate_horoscope(
            sign=payload.zodiac_sign,
            birthdate=birthdate,
            birth_time=payload.birth_time,
            birth_place=payload.birth_place,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except HoroscopeUnavailableError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return HoroscopeResponse(**result.as_dict())


@router.post("/palm-illustration", response_model=IllustrationResponse)
def palm_illustration(
    payload: IllustrationRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    storage: StorageClient = Depends(get_storage_client),
):
    settings = get_settings()
    try:
        result = generate_illustration(
            payload.palm_area,
            storage,
            description=payload.description,
            owner=user_id or "shared",
            model=settings.gemini_image_model,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except IllustrationUnavailableError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return IllustrationResponse(
        image_url=result.image_url,
        palm_area=result.palm_area,
        description=result.description,
    )


@router.get("/sign-url", response_model=SignUrlResponse)
def sign_url(
    path: str = Query(..., description="Object path in storage"),
    op: str = Query("get", pattern="^(get|put)$"),
    expires_in: int = Query(3600, ge=60, le=86400),
    user_id: str = Depends(get_current_user_id),
    storage: StorageClient = Depends(get_storage_client),
):
    if not path.startswith(SIGNABLE_PREFIXES) or ".." in path:
        raise HTTPException(status_code=400, detail="Unknown storage path")
    if op == "get":
        url = storage.presign_get(path, expires_in=expires_in)
    else:
        # Uploads are only signed into the caller's own folder.
        if path.split("/")[1:2] != [user_id]:
            raise HTTPException(status_code=403, detail="Cannot upload outside your folder")
        url = storage.presign_put(path, expires_in=expires_in)
    return SignUrlResponse(url=url)


@router.get("/health", response_model=HealthResponse)
def health(queue: JobQueue = Depends(get_queue_client)):
    return HealthResponse(status="ok", queue_size=queue.size())
