"""Access token lifecycle shared by every request a client issues."""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Generator, Protocol

import httpx

from xc_drive.exceptions import AuthError
from xc_drive.types.session_credentials import SessionCredentials, TokenGrant

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenProvider(Protocol):
    """Provider side of the token exchange."""

    @property
    def can_authenticate(self) -> bool:
        """Whether the long-lived credentials are still held."""
        ...

    def exchange_credentials(self) -> TokenGrant: ...

    def exchange_refresh_token(self, refresh_token: str) -> TokenGrant: ...


class TokenManager:
    """Owns the session credentials and keeps the access token valid.

    Refreshes are serialized: concurrent callers that find the token expired
    wait on the lock and then reuse the token the first caller obtained.
    """

    def __init__(
        self,
        provider: TokenProvider,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.provider = provider
        self.clock = clock
        self.credentials: SessionCredentials | None = None
        self._lock = threading.RLock()

    def authenticate(self) -> SessionCredentials:
        """Exchange the long-lived credentials for a fresh token pair."""
        with self._lock:
            logger.debug("Authenticating with provider credentials")
            grant = self.provider.exchange_credentials()
            self.credentials = SessionCredentials.from_grant(grant, self.clock())
            logger.info("Authentication successful")
            return self.credentials

    def refresh(self) -> SessionCredentials:
        """Exchange the refresh token for a new access token.

        The refresh token itself is kept; providers do not rotate it.
        """
        with self._lock:
            if self.credentials is None or not self.credentials.refresh_token:
                raise AuthError("No refresh token available")
            logger.debug("Refreshing access token")
            refresh_token = self.credentials.refresh_token
            grant = self.provider.exchange_refresh_token(refresh_token)
            self.credentials = SessionCredentials.from_grant(
                grant, self.clock(), refresh_token=refresh_token
            )
            logger.info("Access token refreshed")
            return self.credentials

    def ensure_valid(self) -> str:
        """Return an access token whose expiry is in the future."""
        with self._lock:
            credentials = self.credentials
            if credentials is None:
                return self.authenticate().access_token
            if not credentials.is_expired(self.clock()):
                return credentials.access_token

            logger.debug("Access token expired")
            if not credentials.refresh_token:
                return self.authenticate().access_token
            try:
                return self.refresh().access_token
            except AuthError as e:
                if not self.provider.can_authenticate:
                    raise
                logger.warning(f"Token refresh rejected ({e}), re-authenticating")
                return self.authenticate().access_token

    def invalidate(self, stale_token: str) -> None:
        """Mark ``stale_token`` expired if it is still the current token."""
        with self._lock:
            if (
                self.credentials is not None
                and self.credentials.access_token == stale_token
            ):
                self.credentials = self.credentials.model_copy(
                    update={"expires_at": self.clock()}
                )


class _ManagedTokenAuth(httpx.Auth):
    """Attach a managed token; on a 401, refresh once and resend."""

    def __init__(self, token_manager: TokenManager):
        self.token_manager = token_manager

    def apply(self, request: httpx.Request, token: str) -> None:
        raise NotImplementedError

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:  # noqa: E501
        token = self.token_manager.ensure_valid()
        self.apply(request, token)
        response = yield request

        if response.status_code == 401:
            logger.warning("Request rejected with 401, refreshing token and retrying")
            self.token_manager.invalidate(token)
            self.apply(request, self.token_manager.ensure_valid())
            yield request


class BearerAuth(_ManagedTokenAuth):
    def apply(self, request: httpx.Request, token: str) -> None:
        request.headers["Authorization"] = f"Bearer {token}"


class AuthCodeAuth(_ManagedTokenAuth):
    """Send the token as an ``authcode`` query parameter."""

    param_name: str = "authcode"

    def apply(self, request: httpx.Request, token: str) -> None:
        request.url = request.url.copy_set_param(self.param_name, token)
