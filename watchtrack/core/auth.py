"""Session credentials for requests to the tracking backend.

The session itself is issued by the auth service; Watchtrack only forwards
it. Reads are attempted without a session (the server decides), writes
refuse to leave the process without one.
"""

from dataclasses import dataclass

from pydantic import SecretStr

from watchtrack.core.config import get_settings
from watchtrack.core.errors import AuthenticationError


@dataclass(frozen=True)
class SessionCredentials:
    """The cookie identifying the signed-in user."""

    cookie: SecretStr | None = None
    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.cookie is not None and bool(self.cookie.get_secret_value())

    def headers(self) -> dict[str, str]:
        """Headers for a request that may go out anonymously."""
        if not self.is_authenticated:
            return {}
        return {"Cookie": self.cookie.get_secret_value()}

    def require_headers(self) -> dict[str, str]:
        """Headers for a request that must carry the session."""
        if not self.is_authenticated:
            raise AuthenticationError("Not signed in: progress writes need a session")
        return self.headers()


def get_credentials() -> SessionCredentials:
    """Build credentials from the configured session."""
    settings = get_settings()
    return SessionCredentials(cookie=settings.session_cookie, user_id=settings.user_id)
