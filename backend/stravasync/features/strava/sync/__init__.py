"""
Strava sync services.

Provides:
- ActivitySyncService: Activity fetching and reconciliation
- UserSyncLocks: Per-user sync serialization
- run_batch: Concurrent writes with per-item outcomes
"""

from .activities import ActivitySyncService, UserSyncLocks
from .batch import BatchOutcome, run_batch

__all__ = [
    "ActivitySyncService",
    "UserSyncLocks",
    "BatchOutcome",
    "run_batch",
]
