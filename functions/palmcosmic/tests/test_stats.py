import unittest
from datetime import date

from palmcosmic.records import Profile
from palmcosmic.stats import compute_user_stats, days_streak, profile_completeness

TODAY = date(2025, 3, 10)


class StatsTests(unittest.TestCase):
    def test_streak_counts_back_from_today(self):
        dates = [date(2025, 3, 10), date(2025, 3, 9), date(2025, 3, 9), date(2025, 3, 8)]
        self.assertEqual(days_streak(dates, TODAY), 3)

    def test_streak_may_start_yesterday(self):
        self.assertEqual(days_streak([date(2025, 3, 9), date(2025, 3, 8)], TODAY), 2)

    def test_streak_broken(self):
        self.assertEqual(days_streak([date(2025, 3, 7)], TODAY), 0)
        self.assertEqual(days_streak([date(2025, 3, 10), date(2025, 3, 8)], TODAY), 1)
        self.assertEqual(days_streak([], TODAY), 0)

    def test_profile_completeness(self):
        self.assertEqual(profile_completeness(None), 0)
        profile = Profile(id="u1", email="a@b.c", full_name="A", birthdate="1990-01-01")
        self.assertEqual(profile_completeness(profile), 50)

    def test_compute_user_stats(self):
        profile = Profile(
            id="u1",
            email="a@b.c",
            full_name="A",
            birthdate="1990-01-01",
            phone_number="+1",
            profile_picture_url="https://example.test/a.jpg",
        )
        stats = compute_user_stats(
            [date(2025, 3, 10), date(2025, 3, 9)], total_readings=12, profile=profile, today=TODAY
        )
        self.assertEqual(stats.profile_completeness, 100)
        self.assertEqual(stats.days_streak, 2)
        self.assertEqual(stats.accuracy, 10)
        # (100 + 100 + 4) / 2.2
        self.assertEqual(stats.cosmic_sync, 93)

    def test_no_readings(self):
        stats = compute_user_stats([], 0, None, today=TODAY)
        self.assertEqual(stats.as_dict()["accuracy"], 0.0)
        self.assertEqual(stats.cosmic_sync, 0)


if __name__ == "__main__":
    unittest.main()
