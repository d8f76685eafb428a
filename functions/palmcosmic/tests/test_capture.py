import random
import unittest

from palmcosmic import capture
from palmcosmic.capture import InvalidTransition
from palmcosmic.db import QUEUED_STAGE
from palmcosmic.records import CaptureJob
from shared.types import Alignment, CaptureState, Hand


class CaptureStateMachineTests(unittest.TestCase):
    def setUp(self):
        self.job = CaptureJob(user_id="u1")

    def test_full_walk_for_both_hands(self):
        capture.start_detection(self.job, random.Random(1))
        capture.transition(self.job, CaptureState.SCANNING)
        capture.record_capture(self.job, Hand.LEFT, "left.jpg")

        self.assertEqual(self.job.state, CaptureState.READY)
        self.assertEqual(self.job.current_hand, Hand.RIGHT)
        self.assertEqual(self.job.alignment, Alignment.POOR)
        self.assertEqual(self.job.left_image_path, "left.jpg")

        capture.record_capture(self.job, Hand.RIGHT, "right.jpg")
        self.assertEqual(self.job.state, CaptureState.ANALYZING)
        self.assertEqual(self.job.stage, QUEUED_STAGE)

        capture.complete(self.job, "scan-1")
        self.assertEqual(self.job.state, CaptureState.COMPLETE)
        self.assertEqual(self.job.scan_id, "scan-1")

    def test_wrong_hand_is_rejected(self):
        with self.assertRaises(ValueError):
            capture.record_capture(self.job, Hand.RIGHT, "right.jpg")
        self.assertEqual(self.job.state, CaptureState.READY)

    def test_cannot_skip_states(self):
        with self.assertRaises(InvalidTransition):
            capture.transition(self.job, CaptureState.ANALYZING)
        with self.assertRaises(InvalidTransition):
            capture.transition(self.job, CaptureState.COMPLETE)

    def test_error_from_any_active_state_but_not_after_finish(self):
        capture.start_detection(self.job)
        capture.fail(self.job, "camera lost")
        self.assertEqual(self.job.state, CaptureState.ERROR)
        self.assertEqual(self.job.error, "camera lost")

        with self.assertRaises(InvalidTransition):
            capture.fail(self.job, "again")
        with self.assertRaises(InvalidTransition):
            capture.transition(self.job, CaptureState.READY)

    def test_alignment_sampling(self):
        rng = random.Random(0)
        samples = [capture.sample_alignment(rng) for _ in range(200)]
        good = samples.count(Alignment.GOOD)
        self.assertGreater(good, 100)
        self.assertLess(good, 180)


if __name__ == "__main__":
    unittest.main()
