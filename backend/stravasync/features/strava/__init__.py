"""
Strava integration module.

Usage:
    from stravasync.features.strava import create_integration, load_client_credentials

Components:
- StravaOAuth: OAuth flow (auth URL, code exchange, refresh)
- StravaClient: API client (athlete profile, activities)
- ActivitySyncService: Activity reconciliation
- ActivityStatsService: Aggregates over stored activities
- StravaIntegration: Boundary returning OperationResult

Repositories:
- CredentialRepository: Per-user OAuth credentials
- ActivityRepository: Per-user activity snapshots
"""

from .credentials import (
    ClientCredentials,
    EnvSecretStore,
    load_client_credentials,
)
from .errors import (
    StravaError,
    SecretInitError,
    NotConnectedError,
    MissingCallbackParamsError,
    ExchangeError,
    RefreshError,
    UpstreamError,
    ActivityWriteError,
)
from .schemas import (
    CredentialRecord,
    CredentialUpsert,
    UpsertOutcome,
    AthleteProfile,
    ActivityRecord,
    ExistingActivityPolicy,
    SyncReport,
    ActivitySummary,
    OperationResult,
)
from .repository import CredentialRepository, ActivityRepository
from .oauth import StravaOAuth
from .client import StravaClient
from .sync import ActivitySyncService, UserSyncLocks
from .stats import ActivityStatsService
from .service import StravaIntegration, create_integration

__all__ = [
    # Credentials
    "ClientCredentials",
    "EnvSecretStore",
    "load_client_credentials",
    # Errors
    "StravaError",
    "SecretInitError",
    "NotConnectedError",
    "MissingCallbackParamsError",
    "ExchangeError",
    "RefreshError",
    "UpstreamError",
    "ActivityWriteError",
    # Schemas
    "CredentialRecord",
    "CredentialUpsert",
    "UpsertOutcome",
    "AthleteProfile",
    "ActivityRecord",
    "ExistingActivityPolicy",
    "SyncReport",
    "ActivitySummary",
    "OperationResult",
    # Repositories
    "CredentialRepository",
    "ActivityRepository",
    # Services
    "StravaOAuth",
    "StravaClient",
    "ActivitySyncService",
    "UserSyncLocks",
    "ActivityStatsService",
    "StravaIntegration",
    "create_integration",
]
