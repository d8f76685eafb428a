"""
Palm capture state machine.

A session walks READY -> DETECTING -> SCANNING -> CAPTURING for the left hand,
returns to READY for the right hand, and after the right hand moves on to
ANALYZING, where the worker takes over and finishes in COMPLETE or ERROR.
"""

from __future__ import annotations

import random
import time
from typing import Optional

from palmcosmic.db import QUEUED_STAGE
from palmcosmic.records import CaptureJob
from shared.types import Alignment, CaptureState, Hand

GOOD_ALIGNMENT_PROBABILITY = 0.7

TRANSITIONS: dict[CaptureState, frozenset[CaptureState]] = {
    CaptureState.READY: frozenset({CaptureState.DETECTING}),
    CaptureState.DETECTING: frozenset({CaptureState.SCANNING}),
    CaptureState.SCANNING: frozenset({CaptureState.CAPTURING}),
    CaptureState.CAPTURING: frozenset({CaptureState.READY, CaptureState.ANALYZING}),
    CaptureState.ANALYZING: frozenset({CaptureState.COMPLETE}),
    CaptureState.COMPLETE: frozenset(),
    CaptureState.ERROR: frozenset(),
}

TERMINAL_STATES = frozenset({CaptureState.COMPLETE, CaptureState.ERROR})


class InvalidTransition(Exception):
    def __init__(self, current: CaptureState, target: CaptureState):
        super().__init__(f"Cannot move capture from {current.name} to {target.name}")
        self.current = current
        self.target = target


def sample_alignment(rng: Optional[random.Random] = None) -> Alignment:
    """Mock alignment indicator; there is no real hand detection behind it."""
    value = (rng or random).random()
    return Alignment.GOOD if value < GOOD_ALIGNMENT_PROBABILITY else Alignment.POOR


def transition(job: CaptureJob, target: CaptureState) -> CaptureJob:
    if target == CaptureState.ERROR:
        if job.state in TERMINAL_STATES:
            raise InvalidTransition(job.state, target)
    elif target not in TRANSITIONS[job.state]:
        raise InvalidTransition(job.state, target)
    job.state = target
    job.updated_at = time.time()
    return job


def start_detection(job: CaptureJob, rng: Optional[random.Random] = None) -> CaptureJob:
    transition(job, CaptureState.DETECTING)
    job.alignment = sample_alignment(rng)
    return job


def record_capture(
    job: CaptureJob,
    hand: Hand,
    image_path: str,
    rng: Optional[random.Random] = None,
) -> CaptureJob:
    """
    Stores the captured image for the current hand.

    Callers may capture directly from READY; the detection and scanning steps
    are walked through on their behalf.
    """
    if hand != job.current_hand:
        raise ValueError(f"Expected the {job.current_hand.value} palm next")
    if job.state == CaptureState.READY:
        start_detection(job, rng)
    if job.state == CaptureState.DETECTING:
        transition(job, CaptureState.SCANNING)
    transition(job, CaptureState.CAPTURING)

    if hand == Hand.LEFT:
        job.left_image_path = image_path
        job.current_hand = Hand.RIGHT
        transition(job, CaptureState.READY)
        job.alignment = Alignment.POOR
    else:
        job.right_image_path = image_path
        begin_analysis(job)
    return job


def begin_analysis(job: CaptureJob) -> CaptureJob:
    transition(job, CaptureState.ANALYZING)
    job.stage = QUEUED_STAGE
    return job


def complete(job: CaptureJob, scan_id: str) -> CaptureJob:
    transition(job, CaptureState.COMPLETE)
    job.scan_id = scan_id
    job.stage = "DONE"
    job.locked_at = None
    return job


def fail(job: CaptureJob, message: str) -> CaptureJob:
    transition(job, CaptureState.ERROR)
    job.error = message
    job.stage = "ERROR"
    job.locked_at = None
    return job
