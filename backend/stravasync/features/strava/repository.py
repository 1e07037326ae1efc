"""
Strava repositories.

Data access layer for credential and activity records.
"""

import logging

from stravasync.shared.repository import BaseRepository
from stravasync.shared.store import Store
from .models import CREDENTIALS_COLLECTION, ACTIVITIES_COLLECTION
from .schemas import (
    ActivityRecord,
    CredentialRecord,
    CredentialUpsert,
    UpsertOutcome,
)

logger = logging.getLogger(__name__)


class CredentialRepository(BaseRepository[CredentialRecord]):
    """Repository for Strava OAuth credentials (the token store)."""

    def __init__(self, store: Store):
        super().__init__(store, CREDENTIALS_COLLECTION, CredentialRecord)

    async def get_by_user_id(self, user_id: str) -> CredentialRecord | None:
        """
        Get credentials for user.

        Args:
            user_id: Local user ID

        Returns:
            CredentialRecord if found, None otherwise
        """
        return await self.get_by_key(user_id)

    async def find_by_athlete_id(self, athlete_id: str) -> CredentialRecord | None:
        """
        Get credentials by Strava athlete ID.

        Args:
            athlete_id: Strava athlete ID

        Returns:
            CredentialRecord if found, None otherwise
        """
        return await self.get_by(athlete_id=athlete_id)

    async def upsert(self, record: CredentialRecord) -> CredentialUpsert:
        """
        Store credentials, treating the Strava athlete as canonical.

        Lookup order:
        1. Existing row for the same athlete: update it, keeping its user_id
        2. Existing row for the same user_id: update it with the new athlete
        3. Otherwise insert a new row keyed by record.user_id

        Args:
            record: Credentials from a code exchange (user_id = OAuth state)

        Returns:
            CredentialUpsert with the stored record and the outcome
        """
        existing = await self.find_by_athlete_id(record.athlete_id)
        if existing is None:
            existing = await self.get_by_user_id(record.user_id)

        if existing is not None:
            if existing.user_id != record.user_id:
                logger.info(
                    f"Athlete {record.athlete_id} re-authorized from user {record.user_id}, "
                    f"keeping credentials under user {existing.user_id}"
                )
            merged = record.model_copy(update={"user_id": existing.user_id})
            stored = await self.update(merged)
            return CredentialUpsert(record=stored, outcome=UpsertOutcome.UPDATED)

        stored = await self.create(record)
        return CredentialUpsert(record=stored, outcome=UpsertOutcome.INSERTED)

    async def update_tokens(
        self,
        record: CredentialRecord,
        access_token: str,
        refresh_token: str,
        expires_at: int
    ) -> CredentialRecord:
        """
        Update OAuth tokens after refresh.

        Returns:
            Updated record
        """
        return await self.update(record.model_copy(update={
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": expires_at,
        }))


class ActivityRepository(BaseRepository[ActivityRecord]):
    """Repository for synced activities (the activity store)."""

    def __init__(self, store: Store):
        super().__init__(store, ACTIVITIES_COLLECTION, ActivityRecord)

    async def get(self, user_id: str, activity_id: int) -> ActivityRecord | None:
        """Get one activity by its composite key."""
        return await self.get_by_key((user_id, activity_id))

    async def list_for_user(self, user_id: str) -> list[ActivityRecord]:
        """Get all stored activities for a user."""
        return await self.get_all(user_id=user_id)
