"""
Activity statistics.

Aggregates over stored activities only; never calls Strava.
"""

import math
from collections import defaultdict

from .repository import ActivityRepository
from .schemas import ActivitySummary, SportTotals


class ActivityStatsService:
    """Derived statistics over a user's activity store."""

    def __init__(self, activities: ActivityRepository):
        self.activities = activities

    async def total_distance_km(self, user_id: str) -> float:
        """
        Total distance of all stored activities in kilometers.

        A user without activities has 0.0, not an error.
        """
        records = await self.activities.list_for_user(user_id)
        # order-independent exact sum
        return math.fsum(record.distance or 0.0 for record in records) / 1000

    async def summary(self, user_id: str) -> ActivitySummary:
        """Count, distance and time totals, overall and per sport type."""
        records = await self.activities.list_for_user(user_id)

        distance_by_sport: dict[str, float] = defaultdict(float)
        count_by_sport: dict[str, int] = defaultdict(int)
        for record in records:
            distance_by_sport[record.sport_type] += record.distance
            count_by_sport[record.sport_type] += 1

        return ActivitySummary(
            user_id=user_id,
            count=len(records),
            total_distance_km=round(math.fsum(distance_by_sport.values()) / 1000, 2),
            total_elapsed_hours=round(sum(r.elapsed_time for r in records) / 3600, 2),
            by_sport={
                sport: SportTotals(
                    count=count_by_sport[sport],
                    distance_km=round(distance_by_sport[sport] / 1000, 2),
                )
                for sport in sorted(count_by_sport)
            },
        )
