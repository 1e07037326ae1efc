"""
Strava integration errors.

Every error carries a stable `code` so the integration boundary can
report failures without callers inspecting exception types.
"""

from typing import Optional


class StravaError(Exception):
    """Base Strava error."""

    code = "strava_error"


class SecretInitError(StravaError):
    """Client credentials could not be resolved at startup."""

    code = "secret_init"


class NotConnectedError(StravaError):
    """User has no stored Strava credentials."""

    code = "not_connected"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Strava is not connected for user {user_id}")


class MissingCallbackParamsError(StravaError):
    """OAuth redirect arrived without code or state."""

    code = "missing_callback_params"


class HTTPStatusError(StravaError):
    """Strava answered with a non-success status."""

    code = "http_error"

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Strava returned {status_code}: {body}")


class ExchangeError(HTTPStatusError):
    """Authorization code exchange was rejected."""

    code = "exchange_failed"


class RefreshError(HTTPStatusError):
    """Refresh token exchange was rejected; the user must re-authorize."""

    code = "refresh_failed"


class UpstreamError(HTTPStatusError):
    """Resource endpoint (athlete, activities) returned an error."""

    code = "upstream_error"


class ActivityWriteError(StravaError):
    """One or more activity writes failed during a sync batch."""

    code = "write_failed"

    def __init__(self, failures: dict, report=None):
        # failures: activity_id -> exception
        self.failures = failures
        self.report = report
        ids = ", ".join(str(activity_id) for activity_id in sorted(failures))
        super().__init__(f"Failed to store activities: {ids}")
