"""
Strava OAuth Routes

Endpoints for Strava integration:
- /auth/strava - Initiate OAuth flow
- /auth/strava/callback - Handle OAuth callback
- /strava/status/{user_id} - Check connection status
- /strava/refresh/{user_id} - Force token refresh
- /strava/sync/{user_id} - Sync activities
- /strava/stats/{user_id} - Aggregate statistics
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from stravasync.config import settings
from stravasync.features.strava import (
    ExistingActivityPolicy,
    OperationResult,
    StravaIntegration,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_integration(request: Request) -> StravaIntegration:
    """Integration built during application startup."""
    integration = getattr(request.app.state, "integration", None)
    if integration is None:
        raise HTTPException(status_code=503, detail="Strava integration not configured")
    return integration


def _frontend_redirect(**params) -> RedirectResponse:
    url = f"{settings.frontend_url.rstrip('/')}/?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=307)


# =============================================================================
# OAuth Flow
# =============================================================================

@router.get("/auth/strava")
async def strava_auth(
    user_id: str = Query(..., description="Local user ID"),
    integration: StravaIntegration = Depends(get_integration),
):
    """Initiate Strava OAuth flow."""
    result = await integration.connect_url(user_id)
    if not result.success:
        raise HTTPException(status_code=503, detail=result.message)

    logger.info(f"Strava OAuth initiated for user_id={user_id}")
    return RedirectResponse(url=result.data["url"])


@router.get("/auth/strava/callback")
async def strava_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    integration: StravaIntegration = Depends(get_integration),
):
    """
    Handle Strava OAuth callback.

    Always redirects back to the frontend; failures land on a neutral
    page with strava=error.
    """
    result = await integration.handle_callback(code, state, error)
    if not result.success:
        return _frontend_redirect(strava="error", reason=result.error)

    # First sync right after connecting; a failed sync does not undo the connection
    synced = await integration.sync(result.data["user_id"])
    return _frontend_redirect(strava="ok", synced=int(synced.success))


# =============================================================================
# Connection
# =============================================================================

@router.get("/strava/status/{user_id}", response_model=OperationResult)
async def get_strava_status(
    user_id: str,
    integration: StravaIntegration = Depends(get_integration),
):
    """Check Strava connection status for a user."""
    return await integration.status(user_id)


@router.post("/strava/refresh/{user_id}", response_model=OperationResult)
async def refresh_strava_token(
    user_id: str,
    integration: StravaIntegration = Depends(get_integration),
):
    """Refresh the user's access token."""
    return await integration.refresh_connection(user_id)


# =============================================================================
# Sync & Stats
# =============================================================================

@router.post("/strava/sync/{user_id}", response_model=OperationResult)
async def sync_strava_activities(
    user_id: str,
    policy: ExistingActivityPolicy = Query(default=ExistingActivityPolicy.OVERWRITE),
    integration: StravaIntegration = Depends(get_integration),
):
    """Sync the user's activities from Strava."""
    return await integration.sync(user_id, policy)


@router.get("/strava/stats/{user_id}", response_model=OperationResult)
async def get_strava_stats(
    user_id: str,
    integration: StravaIntegration = Depends(get_integration),
):
    """Aggregate statistics over stored activities."""
    return await integration.summary(user_id)
