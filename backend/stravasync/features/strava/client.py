"""
Strava API client.

Authenticated calls to the resource endpoints used by the sync:
- GET /athlete               (profile: id, sex, weight)
- GET /athlete/activities    (paged activity summaries)

Non-success statuses raise UpstreamError and are not retried; a failing
resource call usually means the token is invalid, which a refresh
diagnoses better than a blind retry.
"""

import logging
from typing import Type

import httpx

from .errors import HTTPStatusError, UpstreamError
from .schemas import AthleteProfile

logger = logging.getLogger(__name__)


def read_json(response: httpx.Response, error_cls: Type[HTTPStatusError], expected: type):
    """
    Decode a JSON body of the expected type or raise error_cls.
    """
    try:
        data = response.json()
    except ValueError:
        raise error_cls(response.status_code, response.text, "Strava returned invalid JSON") from None
    if not isinstance(data, expected):
        raise error_cls(
            response.status_code,
            response.text,
            f"Strava returned {type(data).__name__}, expected {expected.__name__}"
        )
    return data


class StravaClient:
    """
    Async client for Strava resource endpoints.

    Usage:
        client = StravaClient(http)
        athlete = await client.get_athlete(access_token)
        activities = await client.get_all_activities(access_token)
    """

    API_URL = "https://www.strava.com/api/v3"

    # Strava caps per_page at 200
    MAX_PER_PAGE = 200

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def _api_request(
        self,
        endpoint: str,
        access_token: str,
        params: dict | None = None
    ) -> httpx.Response:
        response = await self.http.get(
            f"{self.API_URL}{endpoint}",
            headers={"Authorization": f"Bearer {access_token}"},
            params=params
        )

        # Log rate limit headers from Strava
        if "X-RateLimit-Limit" in response.headers:
            logger.debug(
                f"Strava rate limit: {response.headers.get('X-RateLimit-Usage')} "
                f"/ {response.headers.get('X-RateLimit-Limit')}"
            )

        if not response.is_success:
            logger.warning(f"Strava {endpoint} failed: {response.status_code}")
            raise UpstreamError(
                response.status_code,
                response.text,
                f"API error on {endpoint}: {response.status_code}"
            )
        return response

    async def get_athlete(self, access_token: str) -> AthleteProfile:
        """Get authenticated athlete profile."""
        response = await self._api_request("/athlete", access_token)
        return AthleteProfile.from_strava(read_json(response, UpstreamError, dict))

    async def get_activities(
        self,
        access_token: str,
        page: int = 1,
        per_page: int = 30
    ) -> list[dict]:
        """
        Get one page of athlete activities.

        Args:
            access_token: Valid access token
            page: Page number (1-based)
            per_page: Results per page (max 200)
        """
        params = {"page": page, "per_page": min(per_page, self.MAX_PER_PAGE)}
        response = await self._api_request("/athlete/activities", access_token, params)
        return read_json(response, UpstreamError, list)

    async def get_all_activities(
        self,
        access_token: str,
        per_page: int = 30,
        max_pages: int = 10
    ) -> list[dict]:
        """
        Get activities page by page until a short page or max_pages.
        """
        per_page = min(per_page, self.MAX_PER_PAGE)
        activities: list[dict] = []
        for page in range(1, max_pages + 1):
            batch = await self.get_activities(access_token, page=page, per_page=per_page)
            activities.extend(batch)
            if len(batch) < per_page:
                break
        logger.debug(f"Fetched {len(activities)} activities from Strava")
        return activities
