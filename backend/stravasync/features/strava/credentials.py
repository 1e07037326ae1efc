"""
Strava client credentials.

Credentials are resolved once during process initialization into an
immutable ClientCredentials object, then passed into StravaOAuth.
"""

from dataclasses import dataclass
from typing import Optional

from stravasync.config import Settings, settings
from .errors import SecretInitError


REQUIRED_SECRETS = ("strava_client_id", "strava_client_secret", "strava_redirect_uri")


class EnvSecretStore:
    """
    Secret accessor backed by Settings (environment / .env file).

    Any object with a get_secret(name) method can be used in its place,
    e.g. an adapter over a cloud secret manager.
    """

    def __init__(self, source: Settings = settings):
        self._source = source

    def get_secret(self, name: str) -> Optional[str]:
        value = getattr(self._source, name, None)
        if value is None:
            return None
        return str(value)


@dataclass(frozen=True)
class ClientCredentials:
    """Strava application credentials."""

    client_id: str
    client_secret: str
    redirect_uri: str
    scope: str = "read,activity:read"


def load_client_credentials(secrets, scope: Optional[str] = None) -> ClientCredentials:
    """
    Resolve Strava client credentials from a secret accessor.

    Args:
        secrets: Object exposing get_secret(name)
        scope: OAuth scope override (defaults to settings.strava_scope)

    Returns:
        ClientCredentials

    Raises:
        SecretInitError: If any required secret is missing or empty
    """
    values = {name: secrets.get_secret(name) for name in REQUIRED_SECRETS}
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise SecretInitError(f"Missing Strava secrets: {', '.join(missing)}")

    return ClientCredentials(
        client_id=values["strava_client_id"],
        client_secret=values["strava_client_secret"],
        redirect_uri=values["strava_redirect_uri"],
        scope=scope or settings.strava_scope,
    )
