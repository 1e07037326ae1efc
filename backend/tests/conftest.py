"""
Shared fixtures.

- InMemoryStore: Store implementation over dicts, with call log and
  failure injection
- FakeStrava: httpx.MockTransport handler serving token, athlete and
  activities endpoints
"""

import asyncio
import json

import httpx
import pytest

from stravasync.features.strava import (
    ClientCredentials,
    CredentialRecord,
    create_integration,
)
from stravasync.shared.store import (
    Store,
    StoreError,
    DuplicateKeyError,
    RecordNotFoundError,
)


KEY_FIELDS = {
    "strava_credentials": ("user_id",),
    "strava_activities": ("user_id", "activity_id"),
}

NOW = 1_700_000_000


def run(coro):
    """Drive a coroutine to completion from a sync test."""
    return asyncio.run(coro)


# =============================================================================
# Store
# =============================================================================

class InMemoryStore(Store):
    """Dict-backed Store; `fail_when(collection, op, record)` injects StoreError."""

    def __init__(self):
        self.data: dict[str, dict[tuple, dict]] = {name: {} for name in KEY_FIELDS}
        self.calls: list[tuple[str, str]] = []
        self.fail_when = None

    def _key(self, collection, record):
        return tuple(record[name] for name in KEY_FIELDS[collection])

    def _check(self, collection, op, record=None):
        self.calls.append((op, collection))
        if self.fail_when and self.fail_when(collection, op, record):
            raise StoreError(f"injected {op} failure on {collection}")

    async def get(self, collection, key):
        self._check(collection, "get")
        key = key if isinstance(key, tuple) else (key,)
        record = self.data[collection].get(key)
        return dict(record) if record else None

    async def insert(self, collection, record):
        self._check(collection, "insert", record)
        await asyncio.sleep(0)
        key = self._key(collection, record)
        if key in self.data[collection]:
            raise DuplicateKeyError(f"{collection} {key}")
        self.data[collection][key] = dict(record)
        return dict(record)

    async def update(self, collection, record):
        self._check(collection, "update", record)
        await asyncio.sleep(0)
        key = self._key(collection, record)
        if key not in self.data[collection]:
            raise RecordNotFoundError(f"{collection} {key}")
        self.data[collection][key].update(record)
        return dict(self.data[collection][key])

    async def find(self, collection, filters):
        self._check(collection, "find")
        return [
            dict(record)
            for record in self.data[collection].values()
            if all(record.get(name) == value for name, value in filters)
        ]

    def rows(self, collection):
        return list(self.data[collection].values())


# =============================================================================
# Strava
# =============================================================================

class FakeStrava:
    """Scripted Strava API. Token responses are consumed in order."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_responses: list[tuple[int, object]] = []
        self.athlete_response: tuple[int, object] = (
            200, {"id": 42, "sex": "F", "weight": 61.5}
        )
        self.activities: list[dict] = []
        self.activities_status = 200

    @staticmethod
    def _response(status, payload):
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth/token":
            status, payload = self.token_responses.pop(0)
            return self._response(status, payload)

        if path == "/api/v3/athlete":
            return self._response(*self.athlete_response)

        if path == "/api/v3/athlete/activities":
            if self.activities_status != 200:
                return self._response(self.activities_status, "activities unavailable")
            page = int(request.url.params["page"])
            per_page = int(request.url.params["per_page"])
            start = (page - 1) * per_page
            return self._response(200, self.activities[start:start + per_page])

        return httpx.Response(404, text="not found")

    def http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def token_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests_to("/oauth/token")]


def token_payload(access="access-1", refresh="refresh-1", expires_at=NOW + 21600, athlete_id=None):
    payload = {
        "token_type": "Bearer",
        "access_token": access,
        "refresh_token": refresh,
        "expires_at": expires_at,
        "expires_in": 21600,
    }
    if athlete_id is not None:
        payload["athlete"] = {"id": athlete_id, "firstname": "Ann"}
    return payload


def activity_payload(activity_id, distance=5000.0, elapsed_time=1200, sport_type="Run", **extra):
    payload = {
        "id": activity_id,
        "name": f"Activity {activity_id}",
        "distance": distance,
        "elapsed_time": elapsed_time,
        "sport_type": sport_type,
        "start_date": "2024-05-01T06:00:00Z",
        "start_date_local": "2024-05-01T08:00:00Z",
        "timezone": "(GMT+01:00) Europe/Amsterdam",
        "athlete": {"id": 42},
        "map": {"summary_polyline": "abc"},
    }
    payload.update(extra)
    return payload


def connected_record(user_id="user-1", athlete_id="42", expires_at=NOW + 21600):
    return CredentialRecord(
        user_id=user_id,
        athlete_id=athlete_id,
        access_token="access-0",
        refresh_token="refresh-0",
        expires_at=expires_at,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def credentials():
    return ClientCredentials(
        client_id="1234",
        client_secret="s3cret",
        redirect_uri="http://localhost:8000/api/v1/auth/strava/callback",
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def strava():
    return FakeStrava()


@pytest.fixture
def integration(store, strava, credentials):
    integration = create_integration(store, strava.http(), credentials)
    integration.oauth.clock = lambda: NOW
    return integration
