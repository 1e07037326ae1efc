"""
Strava OAuth flow.

Handles:
- Authorization URL generation
- Code exchange for tokens (stored by athlete identity)
- Token refresh, including refresh-token rotation

Failed exchanges and refreshes are never retried here: an authorization
code is single-use, and a rejected refresh token means the user has to
connect again.
"""

import logging
import time
from typing import Callable, Optional
from urllib.parse import urlencode

import httpx

from .client import read_json
from .credentials import ClientCredentials
from .errors import (
    ExchangeError,
    MissingCallbackParamsError,
    NotConnectedError,
    RefreshError,
    SecretInitError,
)
from .repository import CredentialRepository
from .schemas import CredentialRecord, CredentialUpsert

logger = logging.getLogger(__name__)


class StravaOAuth:
    """
    Strava OAuth handler.

    Usage:
        oauth = StravaOAuth(credentials, http, CredentialRepository(store))
        url = oauth.authorize(user_id="user_123")
        stored = await oauth.exchange_authorization_code(code, state)
        record = await oauth.refresh("user_123")
    """

    AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"
    TOKEN_URL = "https://www.strava.com/oauth/token"

    def __init__(
        self,
        credentials: Optional[ClientCredentials],
        http: httpx.AsyncClient,
        repository: CredentialRepository,
        refresh_buffer_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.credentials = credentials
        self.http = http
        self.repository = repository
        self.refresh_buffer_seconds = refresh_buffer_seconds
        self.clock = clock

    def _require_credentials(self) -> ClientCredentials:
        if self.credentials is None:
            raise SecretInitError("Strava client credentials are not initialized")
        return self.credentials

    # -------------------------------------------------------------------------
    # Authorization
    # -------------------------------------------------------------------------

    def authorize(self, user_id: str) -> str:
        """
        Generate Strava OAuth authorization URL.

        The user_id travels as the `state` parameter and comes back on the
        callback, tying the redirect to the session that started it.

        Returns:
            Authorization URL string
        """
        credentials = self._require_credentials()
        params = {
            "client_id": credentials.client_id,
            "redirect_uri": credentials.redirect_uri,
            "response_type": "code",
            "approval_prompt": "auto",
            "scope": credentials.scope,
            "state": user_id,
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(
        self,
        code: Optional[str],
        state: Optional[str]
    ) -> CredentialUpsert:
        """
        Exchange authorization code for tokens and store them.

        Args:
            code: Authorization code from the callback
            state: Local user id echoed back by Strava

        Returns:
            CredentialUpsert (INSERTED for a new athlete, UPDATED otherwise)

        Raises:
            MissingCallbackParamsError: If code or state is missing
            ExchangeError: If Strava rejects the code or answers malformed data
        """
        if not code or not state:
            raise MissingCallbackParamsError("OAuth callback requires both code and state")

        credentials = self._require_credentials()
        response = await self.http.post(
            self.TOKEN_URL,
            json={
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": credentials.redirect_uri,
            }
        )

        if not response.is_success:
            logger.error(f"Strava token exchange failed: {response.status_code} {response.text}")
            raise ExchangeError(
                response.status_code,
                response.text,
                f"Token exchange failed: {response.status_code}"
            )

        data = read_json(response, ExchangeError, dict)
        athlete = data.get("athlete")
        athlete_id = athlete.get("id") if isinstance(athlete, dict) else None
        if athlete_id is None or isinstance(athlete_id, (dict, list)):
            raise ExchangeError(response.status_code, response.text, "Token response has no athlete id")

        record = CredentialRecord(
            user_id=state,
            athlete_id=str(athlete_id),
            **self._parse_tokens(data, ExchangeError, response),
        )
        stored = await self.repository.upsert(record)

        logger.info(
            f"Strava connected: user_id={stored.record.user_id}, "
            f"athlete_id={stored.record.athlete_id} ({stored.outcome.value})"
        )
        return stored

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    async def refresh(self, user_id: str) -> CredentialRecord:
        """
        Refresh the access token for a user.

        Raises:
            NotConnectedError: If the user has no stored credentials
            RefreshError: If Strava rejects the refresh token
        """
        record = await self.repository.get_by_user_id(user_id)
        if record is None:
            raise NotConnectedError(user_id)
        return await self._refresh_record(record)

    async def ensure_fresh(self, record: CredentialRecord) -> CredentialRecord:
        """
        Return credentials whose access token is not about to expire.

        Refreshes once when the token expires within the refresh buffer.
        """
        if record.expires_at - self.clock() > self.refresh_buffer_seconds:
            return record
        logger.info(f"Access token for user {record.user_id} expires soon, refreshing")
        return await self._refresh_record(record)

    async def _refresh_record(self, record: CredentialRecord) -> CredentialRecord:
        credentials = self._require_credentials()
        response = await self.http.post(
            self.TOKEN_URL,
            json={
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "refresh_token": record.refresh_token,
                "grant_type": "refresh_token",
            }
        )

        if not response.is_success:
            logger.error(
                f"Strava token refresh failed for user {record.user_id}: "
                f"{response.status_code} {response.text}"
            )
            raise RefreshError(
                response.status_code,
                response.text,
                f"Token refresh failed: {response.status_code}"
            )

        data = read_json(response, RefreshError, dict)
        tokens = self._parse_tokens(data, RefreshError, response, record.refresh_token)
        updated = await self.repository.update_tokens(record, **tokens)
        logger.info(f"Refreshed Strava token for user {record.user_id}")
        return updated

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _parse_tokens(
        self,
        data: dict,
        error_cls: type,
        response: httpx.Response,
        fallback_refresh_token: Optional[str] = None
    ) -> dict:
        """
        Normalize a token response.

        expires_at is preferred; expires_in is converted relative to now.
        A missing refresh_token keeps the previous one (no rotation).
        """
        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token") or fallback_refresh_token

        try:
            if data.get("expires_at") is not None:
                expires_at = int(data["expires_at"])
            elif data.get("expires_in") is not None:
                expires_at = int(self.clock()) + int(data["expires_in"])
            else:
                expires_at = None
        except (TypeError, ValueError, OverflowError):
            expires_at = None

        if (
            not isinstance(access_token, str)
            or not isinstance(refresh_token, str)
            or not access_token
            or not refresh_token
            or expires_at is None
        ):
            raise error_cls(response.status_code, response.text, "Token response is incomplete")

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": expires_at,
        }
