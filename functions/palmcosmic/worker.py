"""
Worker loop that turns captured palm pairs into saved readings.

A capture session reaches ANALYZING once both hands are in and its job id is
pushed to the queue. The worker claims it, runs the palm analysis, saves the
scan with ``capture_id = job_id`` (so a redelivered job cannot produce a
second scan) and finishes the session as COMPLETE or ERROR.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from palmcosmic import capture
from palmcosmic.config import apply_model_settings, get_settings
from palmcosmic.db import CLAIMED_STAGE, QUEUED_STAGE, DbClient
from palmcosmic.dependencies import (
    get_change_feed,
    get_db_client,
    get_queue_client,
    get_storage_client,
)
from palmcosmic.images import JPEG_MIME_TYPE
from palmcosmic.messaging import ChangeFeed, JobQueue
from palmcosmic.readings import generate_palm_reading
from palmcosmic.records import CaptureJob, PalmScan
from palmcosmic.storage import StorageClient
from shared.constants import PALM_SCANS_TABLE
from shared.types import CaptureState, ChangeEvent

logger = logging.getLogger(__name__)


def process_job(
    job: CaptureJob,
    db: DbClient,
    storage: Optional[StorageClient] = None,
    feed: Optional[ChangeFeed] = None,
) -> PalmScan:
    """
    Analyse a single claimed job. On failure the job is marked ERROR and the
    exception is re-raised.
    """
    storage = storage or get_storage_client()
    feed = feed or get_change_feed()

    try:
        if not job.left_image_path or not job.right_image_path:
            raise ValueError("Both palm images are required for analysis")

        logger.info("[%s] Loading palm images", job.job_id)
        images = [
            (storage.get_bytes(job.left_image_path), JPEG_MIME_TYPE),
            (storage.get_bytes(job.right_image_path), JPEG_MIME_TYPE),
        ]

        reading = generate_palm_reading(images)
        fields = reading.as_dict()
        fields.pop("used_fallback")
        candidate = PalmScan(
            user_id=job.user_id,
            palm_image_url=storage.public_url(job.left_image_path),
            right_palm_image_url=storage.public_url(job.right_image_path),
            capture_id=job.job_id,
            **fields,
        )
        scan = db.create_scan(candidate)
        if scan.id == candidate.id:
            feed.publish(PALM_SCANS_TABLE, ChangeEvent.INSERT, scan.as_dict())
        else:
            logger.info("[%s] Scan already saved as %s", job.job_id, scan.id)

        capture.complete(job, scan.id)
        db.save_capture_job(job)
        logger.info("[%s] Analysis complete, scan %s", job.job_id, scan.id)
        return scan
    except Exception as e:
        logger.exception("[%s] Palm analysis failed", job.job_id)
        capture.fail(job, str(e) or e.__class__.__name__)
        db.save_capture_job(job)
        raise


def process_next(
    *,
    db: Optional[DbClient] = None,
    queue: Optional[JobQueue] = None,
    storage: Optional[StorageClient] = None,
    feed: Optional[ChangeFeed] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Fetch and process one job from the queue (or DB fallback). Returns True if processed.
    """
    db = db or get_db_client()
    queue = queue or get_queue_client()

    job_id = queue.dequeue(block=block, timeout=timeout) if queue else None
    job: Optional[CaptureJob] = None

    if job_id:
        job = db.get_capture_job(job_id)
        if not job:
            logger.warning("Received job_id %s from queue but no DB record found", job_id)
            return False
        if job.state != CaptureState.ANALYZING or job.stage != QUEUED_STAGE:
            logger.info("[%s] Skipping job in state %s/%s", job_id, job.state.name, job.stage)
            return False
        job.stage = CLAIMED_STAGE
        job.locked_at = time.time()
        db.save_capture_job(job)
    else:
        # Jobs that were never queued, or were requeued after a stale claim.
        job = db.claim_next_analysis_job()
        if not job:
            return False

    try:
        process_job(job, db, storage=storage, feed=feed)
    except Exception:
        logger.info("[%s] Job left in ERROR state", job.job_id)
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Simple polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    settings = get_settings()
    apply_model_settings(settings)
    db = get_db_client()
    queue = get_queue_client()
    while True:
        try:
            requeued = db.requeue_stale_locks(
                lock_timeout_seconds=settings.stale_job_timeout_seconds
            )
            if requeued:
                logger.info("Requeued %d stale analysis job(s)", requeued)
        except Exception:
            logger.exception("Failed to requeue stale locks")
        processed = process_next(
            db=db, queue=queue, block=True, timeout=int(poll_interval_seconds)
        )
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_loop()
