"""
Activity synchronization.

Fetches the remote activity list for a connected user and reconciles it
against the activity store:

1. Load credentials (NotConnectedError if none), refreshing if near expiry
2. Fetch the athlete profile, unless one was passed in
3. Fetch the activity list
4. Partition into new / already stored
5. Insert new records; skip or overwrite stored ones per policy
6. Run all writes concurrently and report per-activity failures

Running a sync twice against an unchanged remote list inserts nothing the
second time; the (user_id, activity_id) key prevents duplicate rows.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from ..client import StravaClient
from ..errors import ActivityWriteError, NotConnectedError
from ..oauth import StravaOAuth
from ..repository import ActivityRepository, CredentialRepository
from ..schemas import (
    ActivityRecord,
    AthleteProfile,
    ExistingActivityPolicy,
    SyncReport,
)
from .batch import run_batch

logger = logging.getLogger(__name__)


class UserSyncLocks:
    """
    One asyncio.Lock per user id, so syncs for a user never overlap.

    A user's lock is dropped once nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, int] = {}  # holders + waiters per user

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._pending[user_id] = self._pending.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._pending[user_id] -= 1
            if not self._pending[user_id]:
                del self._pending[user_id]
                del self._locks[user_id]


def remote_activity_id(item: Any) -> Optional[int]:
    """Integer id of an activities-list item, or None if the item is unusable."""
    if not isinstance(item, dict):
        return None
    value = item.get("id")
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ActivitySyncService:
    """
    Service for syncing activities from Strava.

    Usage:
        service = ActivitySyncService(credentials_repo, activities_repo, client, oauth)
        report = await service.sync_activities(user_id)
        if report.is_noop:
            ...  # nothing new, skip re-rendering
    """

    def __init__(
        self,
        credentials: CredentialRepository,
        activities: ActivityRepository,
        client: StravaClient,
        oauth: Optional[StravaOAuth] = None,
        locks: Optional[UserSyncLocks] = None,
        per_page: int = 30,
        max_pages: int = 10,
    ):
        self.credentials = credentials
        self.activities = activities
        self.client = client
        self.oauth = oauth
        self.locks = locks
        self.per_page = per_page
        self.max_pages = max_pages

    async def sync_activities(
        self,
        user_id: str,
        policy: ExistingActivityPolicy = ExistingActivityPolicy.OVERWRITE,
        athlete: Optional[AthleteProfile] = None,
    ) -> SyncReport:
        """
        Sync activities for a single user.

        Args:
            user_id: Local user id
            policy: SKIP keeps stored activities as they are,
                OVERWRITE refreshes them from Strava
            athlete: Pre-fetched athlete profile; fetched when None

        Returns:
            SyncReport with counts and the reconciled activity list

        Raises:
            NotConnectedError: If the user has no credentials
            RefreshError: If an expiring token could not be refreshed
            UpstreamError: If a Strava resource call fails
            ActivityWriteError: If any store write failed
        """
        if self.locks is None:
            return await self._sync(user_id, policy, athlete)

        async with self.locks.hold(user_id):
            return await self._sync(user_id, policy, athlete)

    async def _sync(
        self,
        user_id: str,
        policy: ExistingActivityPolicy,
        athlete: Optional[AthleteProfile],
    ) -> SyncReport:
        credential = await self.credentials.get_by_user_id(user_id)
        if credential is None:
            raise NotConnectedError(user_id)

        if self.oauth is not None:
            credential = await self.oauth.ensure_fresh(credential)

        if athlete is None:
            athlete = await self.client.get_athlete(credential.access_token)

        remote = await self.client.get_all_activities(
            credential.access_token,
            per_page=self.per_page,
            max_pages=self.max_pages,
        )

        stored = {
            record.activity_id: record
            for record in await self.activities.list_for_user(user_id)
        }

        # Later duplicates of the same id in one listing win
        fetched: dict[int, ActivityRecord] = {}
        for item in remote:
            if remote_activity_id(item) is None:
                logger.warning(f"Skipping malformed Strava activity for user {user_id}: {item!r}")
                continue
            record = ActivityRecord.from_strava(user_id, item, athlete)
            fetched[record.activity_id] = record

        new = [record for activity_id, record in fetched.items() if activity_id not in stored]
        existing = [record for activity_id, record in fetched.items() if activity_id in stored]

        jobs = [(record.activity_id, self.activities.create(record)) for record in new]
        if policy == ExistingActivityPolicy.OVERWRITE:
            jobs += [(record.activity_id, self.activities.update(record)) for record in existing]
            skipped_count = 0
        else:
            skipped_count = len(existing)

        outcomes = await run_batch(jobs)

        # Counts cover committed writes only
        new_ids = {record.activity_id for record in new}
        new_count = updated_count = 0
        reconciled = dict(stored)
        for outcome in outcomes:
            if outcome.ok:
                reconciled[outcome.key] = outcome.value
                if outcome.key in new_ids:
                    new_count += 1
                else:
                    updated_count += 1

        report = SyncReport(
            user_id=user_id,
            new_count=new_count,
            updated_count=updated_count,
            skipped_count=skipped_count,
            activities=list(reconciled.values()),
        )

        failures = {outcome.key: outcome.error for outcome in outcomes if not outcome.ok}
        if failures:
            for activity_id, error in failures.items():
                logger.error(f"Failed to store activity {activity_id} for user {user_id}: {error}")
            raise ActivityWriteError(failures, report)

        if report.is_noop:
            logger.info(f"No new activities for user {user_id} ({len(fetched)} fetched)")
        else:
            logger.info(
                f"Synced user {user_id}: {report.new_count} new, "
                f"{report.updated_count} updated, {report.skipped_count} skipped"
            )
        return report
