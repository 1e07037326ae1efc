"""
Strava integration boundary.

Every public operation returns an OperationResult. Typed Strava errors,
network errors (httpx.HTTPError) and store errors are converted here so
the presentation layer can render a message without knowing internal
failure types. Nothing is retried: each failure is the caller's decision
(re-authorize, show the error, or treat as empty state).
"""

import logging
from typing import Awaitable, Callable, Optional

import httpx

from stravasync.shared.store import StoreError
from .errors import (
    ActivityWriteError,
    HTTPStatusError,
    MissingCallbackParamsError,
    NotConnectedError,
    RefreshError,
    StravaError,
)
from .oauth import StravaOAuth
from .client import StravaClient
from .repository import ActivityRepository, CredentialRepository
from .schemas import AthleteProfile, ExistingActivityPolicy, OperationResult
from .stats import ActivityStatsService
from .sync import ActivitySyncService, UserSyncLocks

logger = logging.getLogger(__name__)

# Errors that should send the user back through the connect flow
REAUTHORIZE_ERRORS = (NotConnectedError, RefreshError)


class StravaIntegration:
    """
    Facade over OAuth, sync and statistics.

    Usage:
        integration = StravaIntegration(oauth, sync_service, stats, credentials)
        result = await integration.handle_callback(code, state)
        if result.success:
            result = await integration.sync(state)
    """

    def __init__(
        self,
        oauth: StravaOAuth,
        sync_service: ActivitySyncService,
        stats: ActivityStatsService,
        credentials: CredentialRepository,
    ):
        self.oauth = oauth
        self.sync_service = sync_service
        self.stats = stats
        self.credentials = credentials

    async def _guard(
        self,
        operation: str,
        call: Callable[[], Awaitable[OperationResult]]
    ) -> OperationResult:
        try:
            return await call()
        except ActivityWriteError as e:
            failed = sorted(e.failures)
            return OperationResult.fail(
                e.code,
                str(e),
                failed_activity_ids=failed,
                new_count=e.report.new_count if e.report else 0,
            )
        except StravaError as e:
            if not isinstance(e, HTTPStatusError):
                logger.warning(f"{operation} failed: {e}")
            data = {}
            if isinstance(e, HTTPStatusError):
                data = {"status_code": e.status_code, "body": e.body}
            return OperationResult.fail(
                e.code,
                str(e),
                reauthorize=isinstance(e, REAUTHORIZE_ERRORS),
                **data,
            )
        except httpx.HTTPError as e:
            logger.error(f"{operation} failed: network error: {e}")
            return OperationResult.fail("network_error", f"Could not reach Strava: {e}")
        except StoreError as e:
            logger.error(f"{operation} failed: store error: {e}")
            return OperationResult.fail("store_error", f"Storage failure: {e}")

    # -------------------------------------------------------------------------
    # OAuth
    # -------------------------------------------------------------------------

    async def connect_url(self, user_id: str) -> OperationResult:
        """Authorization URL to send the user to."""
        async def call():
            return OperationResult.ok("Redirect to Strava", url=self.oauth.authorize(user_id))
        return await self._guard("connect", call)

    async def handle_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> OperationResult:
        """
        Complete the OAuth redirect.

        A provider error (user denied access) or a missing code/state is
        reported without contacting Strava.
        """
        async def call():
            if error:
                logger.warning(f"Strava OAuth denied: {error}")
                return OperationResult.fail("access_denied", f"Strava authorization declined: {error}")
            if not code or not state:
                raise MissingCallbackParamsError("OAuth callback is missing code or state")

            stored = await self.oauth.exchange_authorization_code(code, state)
            return OperationResult.ok(
                "Strava connected",
                user_id=stored.record.user_id,
                athlete_id=stored.record.athlete_id,
                outcome=stored.outcome.value,
            )
        return await self._guard("callback", call)

    async def refresh_connection(self, user_id: str) -> OperationResult:
        """Force an access token refresh."""
        async def call():
            record = await self.oauth.refresh(user_id)
            return OperationResult.ok("Token refreshed", expires_at=record.expires_at)
        return await self._guard("refresh", call)

    async def status(self, user_id: str) -> OperationResult:
        """Connection status; a missing connection is not a failure."""
        async def call():
            record = await self.credentials.get_by_user_id(user_id)
            if record is None:
                return OperationResult.ok("Not connected", connected=False)
            return OperationResult.ok(
                "Connected",
                connected=True,
                athlete_id=record.athlete_id,
                expires_at=record.expires_at,
            )
        return await self._guard("status", call)

    # -------------------------------------------------------------------------
    # Sync & stats
    # -------------------------------------------------------------------------

    async def sync(
        self,
        user_id: str,
        policy: ExistingActivityPolicy = ExistingActivityPolicy.OVERWRITE,
        athlete: Optional[AthleteProfile] = None,
    ) -> OperationResult:
        """Sync activities; a sync with nothing new succeeds with noop=True."""
        async def call():
            report = await self.sync_service.sync_activities(user_id, policy, athlete)
            message = "No new activities" if report.is_noop else f"{report.new_count} new activities"
            return OperationResult.ok(
                message,
                noop=report.is_noop,
                new_count=report.new_count,
                updated_count=report.updated_count,
                skipped_count=report.skipped_count,
                activities=[record.model_dump() for record in report.activities],
            )
        return await self._guard("sync", call)

    async def total_distance(self, user_id: str) -> OperationResult:
        async def call():
            km = await self.stats.total_distance_km(user_id)
            return OperationResult.ok(f"{km:.1f} km", total_distance_km=km)
        return await self._guard("total_distance", call)

    async def summary(self, user_id: str) -> OperationResult:
        async def call():
            summary = await self.stats.summary(user_id)
            return OperationResult.ok(f"{summary.count} activities", **summary.model_dump())
        return await self._guard("summary", call)


def create_integration(
    store,
    http: httpx.AsyncClient,
    credentials,
    refresh_buffer_seconds: int = 300,
    per_page: int = 30,
    max_pages: int = 10,
) -> StravaIntegration:
    """
    Wire repositories, OAuth, client, sync and stats over one store.

    Args:
        store: Store implementation
        http: Shared HTTP client (its timeout applies to every Strava call)
        credentials: ClientCredentials resolved at startup
    """
    credential_repo = CredentialRepository(store)
    activity_repo = ActivityRepository(store)
    oauth = StravaOAuth(
        credentials,
        http,
        credential_repo,
        refresh_buffer_seconds=refresh_buffer_seconds,
    )
    sync_service = ActivitySyncService(
        credential_repo,
        activity_repo,
        StravaClient(http),
        oauth=oauth,
        locks=UserSyncLocks(),
        per_page=per_page,
        max_pages=max_pages,
    )
    return StravaIntegration(
        oauth,
        sync_service,
        ActivityStatsService(activity_repo),
        credential_repo,
    )
