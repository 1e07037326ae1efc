"""
Strava record schemas.

Pydantic models for the records exchanged with the Store and returned
to callers. Remote payloads are normalized here: absent numbers become
0, absent strings become "Unknown", negative distance/time become 0.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

UNKNOWN = "Unknown"


def _number(value: Any, cast=float):
    if isinstance(value, bool):
        return cast(0)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return cast(0)
    if not math.isfinite(number):
        return cast(0)
    return cast(number)


def _text(value: Any) -> str:
    if value is None or value == "":
        return UNKNOWN
    return str(value)


# =============================================================================
# Credentials
# =============================================================================

class CredentialRecord(BaseModel):
    """OAuth credentials for one local user."""

    user_id: str
    athlete_id: str
    access_token: str
    refresh_token: str
    expires_at: int


class UpsertOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


class CredentialUpsert(BaseModel):
    """Result of storing credentials: the record and how it was stored."""

    record: CredentialRecord
    outcome: UpsertOutcome


# =============================================================================
# Athlete
# =============================================================================

class AthleteProfile(BaseModel):
    """Subset of the athlete profile denormalized into activity records."""

    id: str = UNKNOWN
    sex: str = UNKNOWN
    weight: float = 0.0

    @classmethod
    def from_strava(cls, data: dict) -> "AthleteProfile":
        return cls(
            id=_text(data.get("id")),
            sex=_text(data.get("sex")),
            weight=_number(data.get("weight")),
        )


# =============================================================================
# Activities
# =============================================================================

class ActivityRecord(BaseModel):
    """Denormalized activity snapshot for one (user, activity) pair."""

    user_id: str
    activity_id: int
    name: str = UNKNOWN
    distance: float = Field(default=0.0, ge=0)  # meters
    elapsed_time: int = Field(default=0, ge=0)  # seconds
    sport_type: str = UNKNOWN
    start_date: str = UNKNOWN
    start_date_local: str = UNKNOWN
    timezone: str = UNKNOWN
    athlete_id: str = UNKNOWN
    sex: str = UNKNOWN
    weight: float = 0.0

    @property
    def key(self) -> tuple[str, int]:
        return (self.user_id, self.activity_id)

    @classmethod
    def from_strava(
        cls,
        user_id: str,
        data: dict,
        athlete: AthleteProfile
    ) -> "ActivityRecord":
        """
        Build a record from an activities-list item plus the athlete profile.

        The athlete id comes from the activity payload when present,
        otherwise from the profile.
        """
        athlete_block = data.get("athlete")
        athlete_id = athlete_block.get("id") if isinstance(athlete_block, dict) else None

        return cls(
            user_id=user_id,
            activity_id=int(data["id"]),
            name=_text(data.get("name")),
            distance=max(_number(data.get("distance")), 0.0),
            elapsed_time=max(_number(data.get("elapsed_time"), int), 0),
            sport_type=_text(data.get("sport_type") or data.get("type")),
            start_date=_text(data.get("start_date")),
            start_date_local=_text(data.get("start_date_local")),
            timezone=_text(data.get("timezone")),
            athlete_id=_text(athlete_id) if athlete_id is not None else athlete.id,
            sex=athlete.sex,
            weight=athlete.weight,
        )


class ExistingActivityPolicy(str, Enum):
    """What a sync does with activities that are already stored."""

    SKIP = "skip"            # insert-only-if-new
    OVERWRITE = "overwrite"  # refresh stored fields from Strava


class SyncReport(BaseModel):
    """Outcome of one activity sync."""

    user_id: str
    new_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    activities: list[ActivityRecord] = Field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        """True when the sync found nothing new."""
        return self.new_count == 0


class SportTotals(BaseModel):
    count: int = 0
    distance_km: float = 0.0


class ActivitySummary(BaseModel):
    """Aggregate statistics over a user's stored activities."""

    user_id: str
    count: int = 0
    total_distance_km: float = 0.0
    total_elapsed_hours: float = 0.0
    by_sport: dict[str, SportTotals] = Field(default_factory=dict)


# =============================================================================
# Operation results
# =============================================================================

class OperationResult(BaseModel):
    """
    Typed outcome returned to the presentation layer.

    `error` is the stable error code when success is False.
    `reauthorize` tells the caller to send the user through the connect flow.
    """

    success: bool
    message: str = ""
    error: Optional[str] = None
    reauthorize: bool = False
    data: Optional[dict[str, Any]] = None

    @classmethod
    def ok(cls, message: str = "", **data) -> "OperationResult":
        return cls(success=True, message=message, data=data or None)

    @classmethod
    def fail(
        cls,
        error: str,
        message: str,
        reauthorize: bool = False,
        **data
    ) -> "OperationResult":
        return cls(
            success=False,
            error=error,
            message=message,
            reauthorize=reauthorize,
            data=data or None,
        )
