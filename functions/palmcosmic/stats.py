"""
Dashboard statistics derived from a user's scans and profile.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from palmcosmic.records import Profile

COMPLETENESS_FIELDS = ("full_name", "birthdate", "phone_number", "profile_picture_url")
POINTS_PER_FIELD = 25


@dataclass
class UserStats:
    total_readings: int
    days_streak: int
    accuracy: float
    cosmic_sync: int
    profile_completeness: int

    def as_dict(self) -> dict:
        return asdict(self)


def _to_day(value: float | date) -> date:
    if isinstance(value, date):
        return value
    return datetime.fromtimestamp(value, tz=timezone.utc).date()


def days_streak(scan_dates: Iterable[float | date], today: date) -> int:
    """
    Consecutive calendar days with at least one scan, counted back from today,
    or from yesterday when there was no scan today.
    """
    days = sorted({_to_day(d) for d in scan_dates}, reverse=True)
    if not days:
        return 0
    gap = (today - days[0]).days
    if gap > 1:
        return 0
    current = today - timedelta(days=gap) if gap == 1 else today
    streak = 0
    for day in days:
        if day != current:
            break
        streak += 1
        current -= timedelta(days=1)
    return streak


def profile_completeness(profile: Optional[Profile]) -> int:
    if not profile:
        return 0
    return sum(POINTS_PER_FIELD for name in COMPLETENESS_FIELDS if getattr(profile, name))


def compute_user_stats(
    scan_dates: Iterable[float | date],
    total_readings: int,
    profile: Optional[Profile],
    today: Optional[date] = None,
) -> UserStats:
    today = today or datetime.now(timezone.utc).date()
    streak = days_streak(scan_dates, today)
    completeness = profile_completeness(profile)

    usage_score = min(total_readings, 10) * 10
    streak_score = min(streak, 30) * 2
    cosmic_sync = round((completeness + usage_score + streak_score) / 2.2)
    accuracy = round(min(5 + total_readings * 0.5, 10), 1) if total_readings else 0.0

    return UserStats(
        total_readings=total_readings,
        days_streak=streak,
        accuracy=accuracy,
        cosmic_sync=min(cosmic_sync, 100),
        profile_completeness=completeness,
    )
