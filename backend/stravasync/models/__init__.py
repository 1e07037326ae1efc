"""
Database Models

Import all models here to ensure they are registered with SQLAlchemy.

Note: Feature models are imported lazily to avoid circular imports.
Use direct imports from features/ modules when possible.
"""

from stravasync.models.base import Base


def _get_strava_models():
    """Lazy import of Strava models."""
    from stravasync.features.strava.models import StravaCredential, StravaActivity
    return StravaCredential, StravaActivity


__all__ = ["Base"]
