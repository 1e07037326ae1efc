"""
Tests for ActivitySyncService.

Reconciliation of the remote activity list against the activity store:
insert-new, skip/overwrite existing, idempotence and failure reporting.
"""

import asyncio

import pytest

from stravasync.features.strava import (
    ActivityRecord,
    ActivityRepository,
    ActivitySyncService,
    ActivityWriteError,
    AthleteProfile,
    CredentialRepository,
    ExistingActivityPolicy,
    NotConnectedError,
    StravaClient,
    StravaOAuth,
    UpstreamError,
    UserSyncLocks,
)

from conftest import NOW, activity_payload, connected_record, run, token_payload


@pytest.fixture
def connected(store):
    run(CredentialRepository(store).create(connected_record()))


@pytest.fixture
def service(store, strava):
    return ActivitySyncService(
        CredentialRepository(store),
        ActivityRepository(store),
        StravaClient(strava.http()),
        per_page=2,
        max_pages=5,
    )


def stored_activities(store):
    return store.rows("strava_activities")


# =============================================================================
# Basic Sync
# =============================================================================

class TestSyncActivities:
    """Tests for sync_activities()."""

    def test_not_connected(self, service, strava):
        with pytest.raises(NotConnectedError):
            run(service.sync_activities("nobody"))
        assert strava.requests == []

    def test_single_new_activity(self, service, store, strava, connected):
        strava.activities = [activity_payload(1, distance=5000, elapsed_time=1200, sport_type="Run")]

        report = run(service.sync_activities("user-1"))

        assert report.new_count == 1
        assert not report.is_noop
        rows = stored_activities(store)
        assert len(rows) == 1
        assert rows[0]["distance"] == 5000
        assert rows[0]["elapsed_time"] == 1200
        assert rows[0]["sport_type"] == "Run"

    def test_record_denormalizes_athlete_profile(self, service, store, strava, connected):
        strava.activities = [activity_payload(1)]

        run(service.sync_activities("user-1"))

        row = stored_activities(store)[0]
        assert row["user_id"] == "user-1"
        assert row["activity_id"] == 1
        assert row["athlete_id"] == "42"
        assert row["sex"] == "F"
        assert row["weight"] == 61.5
        assert row["timezone"] == "(GMT+01:00) Europe/Amsterdam"

    def test_uses_bearer_token(self, service, strava, connected):
        run(service.sync_activities("user-1"))

        for request in strava.requests:
            assert request.headers["Authorization"] == "Bearer access-0"

    def test_empty_remote_list_is_noop_success(self, service, store, strava, connected):
        report = run(service.sync_activities("user-1"))

        assert report.new_count == 0
        assert report.is_noop
        assert report.activities == []
        assert stored_activities(store) == []

    def test_second_run_is_idempotent(self, service, store, strava, connected):
        strava.activities = [activity_payload(1), activity_payload(2), activity_payload(3)]

        first = run(service.sync_activities("user-1"))
        second = run(service.sync_activities("user-1"))

        assert first.new_count == 3
        assert second.new_count == 0
        assert second.is_noop
        assert len(stored_activities(store)) == 3
        assert len(second.activities) == 3

    def test_one_new_one_existing(self, service, store, strava, connected):
        strava.activities = [activity_payload(1)]
        run(service.sync_activities("user-1"))

        strava.activities = [activity_payload(1, name="Renamed"), activity_payload(2)]
        report = run(service.sync_activities("user-1"))

        assert report.new_count == 1
        assert report.updated_count == 1
        rows = stored_activities(store)
        assert len(rows) == 2
        assert [r for r in rows if r["activity_id"] == 1][0]["name"] == "Renamed"

    def test_fetches_all_pages(self, service, store, strava, connected):
        # per_page=2: pages of 2, 2, 1
        strava.activities = [activity_payload(i) for i in range(1, 6)]

        report = run(service.sync_activities("user-1"))

        assert report.new_count == 5
        assert len(strava.requests_to("/api/v3/athlete/activities")) == 3

    def test_duplicate_ids_in_listing_stored_once(self, service, store, strava, connected):
        strava.activities = [activity_payload(7, name="old"), activity_payload(7, name="new")]

        report = run(service.sync_activities("user-1"))

        assert report.new_count == 1
        rows = stored_activities(store)
        assert len(rows) == 1
        assert rows[0]["name"] == "new"

    def test_other_users_records_untouched(self, service, store, strava, connected):
        run(ActivityRepository(store).create(ActivityRecord(user_id="user-2", activity_id=1)))
        strava.activities = [activity_payload(1)]

        report = run(service.sync_activities("user-1"))

        assert report.new_count == 1
        assert len(stored_activities(store)) == 2


# =============================================================================
# Existing Activity Policy
# =============================================================================

class TestExistingActivityPolicy:
    """SKIP vs OVERWRITE for already stored activities."""

    def test_skip_leaves_stored_record(self, service, store, strava, connected):
        strava.activities = [activity_payload(1, distance=1000)]
        run(service.sync_activities("user-1"))

        strava.activities = [activity_payload(1, distance=9999)]
        report = run(service.sync_activities("user-1", policy=ExistingActivityPolicy.SKIP))

        assert report.skipped_count == 1
        assert report.updated_count == 0
        assert stored_activities(store)[0]["distance"] == 1000
        assert ("update", "strava_activities") not in store.calls

    def test_overwrite_takes_provider_values(self, service, store, strava, connected):
        strava.activities = [activity_payload(1, distance=1000)]
        run(service.sync_activities("user-1"))

        strava.activities = [activity_payload(1, distance=1500, start_date="2024-06-01T06:00:00Z")]
        report = run(service.sync_activities("user-1", policy=ExistingActivityPolicy.OVERWRITE))

        assert report.updated_count == 1
        row = stored_activities(store)[0]
        assert row["distance"] == 1500
        assert row["start_date"] == "2024-06-01T06:00:00Z"


# =============================================================================
# Athlete Profile
# =============================================================================

class TestAthleteProfile:
    """Profile fetch and the pre-fetched profile path."""

    def test_prefetched_profile_skips_fetch(self, service, store, strava, connected):
        strava.activities = [activity_payload(1)]
        athlete = AthleteProfile(id="42", sex="M", weight=80.0)

        run(service.sync_activities("user-1", athlete=athlete))

        assert strava.requests_to("/api/v3/athlete") == []
        assert stored_activities(store)[0]["sex"] == "M"

    def test_profile_failure_raises_upstream_error(self, service, store, strava, connected):
        strava.athlete_response = (401, '{"message": "Authorization Error"}')
        strava.activities = [activity_payload(1)]

        with pytest.raises(UpstreamError) as exc_info:
            run(service.sync_activities("user-1"))

        assert exc_info.value.status_code == 401
        assert strava.requests_to("/api/v3/athlete/activities") == []
        assert stored_activities(store) == []

    def test_activities_failure_raises_upstream_error(self, service, strava, connected):
        strava.activities_status = 500

        with pytest.raises(UpstreamError):
            run(service.sync_activities("user-1"))
        assert len(strava.requests_to("/api/v3/athlete/activities")) == 1

    def test_missing_fields_are_filled(self, service, store, strava, connected):
        strava.athlete_response = (200, {"id": 42})
        strava.activities = [{"id": 9}]

        run(service.sync_activities("user-1"))

        row = stored_activities(store)[0]
        assert row["name"] == "Unknown"
        assert row["distance"] == 0.0
        assert row["elapsed_time"] == 0
        assert row["sport_type"] == "Unknown"
        assert row["sex"] == "Unknown"
        assert row["weight"] == 0.0
        assert row["athlete_id"] == "42"


# =============================================================================
# Failures & Token Freshness
# =============================================================================

class TestWriteFailures:
    """Per-item failure reporting of the write batch."""

    def test_failed_write_reports_activity_id(self, service, store, strava, connected):
        strava.activities = [activity_payload(1), activity_payload(2), activity_payload(3)]
        store.fail_when = lambda collection, op, record: (
            op == "insert" and record["activity_id"] == 2
        )

        with pytest.raises(ActivityWriteError) as exc_info:
            run(service.sync_activities("user-1"))

        assert list(exc_info.value.failures) == [2]
        assert exc_info.value.report.new_count == 2
        # Other writes are committed, not rolled back
        assert sorted(r["activity_id"] for r in stored_activities(store)) == [1, 3]

    def test_retry_after_failure_converges(self, service, store, strava, connected):
        strava.activities = [activity_payload(1), activity_payload(2)]
        store.fail_when = lambda collection, op, record: (
            op == "insert" and record["activity_id"] == 2
        )
        with pytest.raises(ActivityWriteError):
            run(service.sync_activities("user-1"))

        store.fail_when = None
        report = run(service.sync_activities("user-1"))

        assert report.new_count == 1
        assert len(stored_activities(store)) == 2


class TestTokenFreshness:
    """Expiring tokens are refreshed before the sync calls Strava."""

    def test_expiring_token_refreshed_first(self, store, strava, credentials):
        repo = CredentialRepository(store)
        run(repo.create(connected_record(expires_at=NOW + 10)))
        strava.token_responses.append((200, token_payload(access="access-new")))
        http = strava.http()
        service = ActivitySyncService(
            repo,
            ActivityRepository(store),
            StravaClient(http),
            oauth=StravaOAuth(credentials, http, repo, clock=lambda: NOW),
        )

        run(service.sync_activities("user-1"))

        assert strava.requests[0].url.path == "/oauth/token"
        assert strava.requests_to("/api/v3/athlete")[0].headers["Authorization"] == "Bearer access-new"


# =============================================================================
# Malformed Listings
# =============================================================================

class TestMalformedActivities:
    """Unusable items in the activity listing are skipped."""

    @pytest.mark.parametrize("bad_item", [
        {"name": "no id"},
        None,
        42,
        {"id": "abc"},
        {"id": None},
        {"id": True},
    ])
    def test_bad_item_skipped(self, service, store, strava, connected, bad_item):
        strava.activities = [activity_payload(1), bad_item, activity_payload(2)]

        report = run(service.sync_activities("user-1"))

        assert report.new_count == 2
        assert sorted(r["activity_id"] for r in stored_activities(store)) == [1, 2]

    def test_bad_field_values_zero_filled(self, service, store, strava, connected):
        strava.activities = [
            activity_payload(1, distance="far", elapsed_time="long", athlete=7),
        ]

        run(service.sync_activities("user-1"))

        row = stored_activities(store)[0]
        assert row["distance"] == 0.0
        assert row["elapsed_time"] == 0
        assert row["athlete_id"] == "42"


# =============================================================================
# Concurrency
# =============================================================================

class TestConcurrentSyncs:
    """Overlapping syncs for one user are serialized."""

    @pytest.fixture
    def locked_service(self, store, strava):
        return ActivitySyncService(
            CredentialRepository(store),
            ActivityRepository(store),
            StravaClient(strava.http()),
            locks=UserSyncLocks(),
        )

    def test_overlapping_syncs_insert_once(self, locked_service, store, strava, connected):
        strava.activities = [activity_payload(1), activity_payload(2)]

        async def both():
            return await asyncio.gather(
                locked_service.sync_activities("user-1"),
                locked_service.sync_activities("user-1"),
            )

        reports = run(both())

        assert sorted(report.new_count for report in reports) == [0, 2]
        assert len(stored_activities(store)) == 2
        assert ("insert", "strava_activities") in store.calls

    def test_locks_released_after_sync(self, locked_service, strava, connected):
        strava.activities = [activity_payload(1)]

        run(locked_service.sync_activities("user-1"))

        assert len(locked_service.locks) == 0

    def test_lock_released_after_failure(self, locked_service):
        with pytest.raises(NotConnectedError):
            run(locked_service.sync_activities("nobody"))

        assert len(locked_service.locks) == 0


class TestUserSyncLocks:

    def test_waiter_keeps_lock_until_done(self):
        locks = UserSyncLocks()
        order = []

        async def worker(name):
            async with locks.hold("user-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")
            return len(locks)

        async def scenario():
            return await asyncio.gather(worker("a"), worker("b"))

        remaining = run(scenario())

        assert order == ["a-in", "a-out", "b-in", "b-out"]
        # b was still waiting when a released
        assert remaining == [1, 0]
        assert len(locks) == 0

    def test_other_users_not_blocked(self):
        locks = UserSyncLocks()

        async def scenario():
            async with locks.hold("user-1"):
                async with locks.hold("user-2"):
                    return len(locks)

        assert run(scenario()) == 2
