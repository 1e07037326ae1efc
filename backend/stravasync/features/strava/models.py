"""
Strava-related database models.

Models:
- StravaCredential: OAuth credentials, one row per local user
- StravaActivity: Denormalized activity snapshot, one row per (user, activity)

Collection names used by the Store contract match the table names.
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Float, BigInteger, Text

from stravasync.models.base import Base


CREDENTIALS_COLLECTION = "strava_credentials"
ACTIVITIES_COLLECTION = "strava_activities"


class StravaCredential(Base):
    """
    Strava OAuth credential storage.

    Tokens should be encrypted in production.
    """

    __tablename__ = CREDENTIALS_COLLECTION

    user_id = Column(String(36), primary_key=True)

    # Remote identity; at most one row per athlete
    athlete_id = Column(String(20), unique=True, nullable=False, index=True)

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    expires_at = Column(Integer, nullable=False)  # Unix timestamp

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StravaCredential user_id={self.user_id} athlete_id={self.athlete_id}>"


class StravaActivity(Base):
    """
    Strava activity snapshot.

    Combines the activity summary with the athlete profile (sex, weight)
    as seen at sync time. Every column is non-nullable; absent remote
    values are stored as 0 or "Unknown".
    """

    __tablename__ = ACTIVITIES_COLLECTION

    user_id = Column(String(36), primary_key=True)
    activity_id = Column(BigInteger, primary_key=True, autoincrement=False)

    name = Column(String(255), nullable=False, default="Unknown")
    distance = Column(Float, nullable=False, default=0.0)  # meters
    elapsed_time = Column(Integer, nullable=False, default=0)  # seconds
    sport_type = Column(String(50), nullable=False, default="Unknown")
    start_date = Column(String(32), nullable=False, default="Unknown")
    start_date_local = Column(String(32), nullable=False, default="Unknown")
    timezone = Column(String(64), nullable=False, default="Unknown")

    # Athlete snapshot
    athlete_id = Column(String(20), nullable=False, default="Unknown")
    sex = Column(String(16), nullable=False, default="Unknown")
    weight = Column(Float, nullable=False, default=0.0)

    # Sync metadata
    synced_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StravaActivity {self.activity_id} {self.sport_type} {self.distance}m>"
