import json
import logging
from datetime import datetime
from typing import Any, Callable, TypeVar

import httpx
from pydantic import ValidationError

from xc_drive.client.auth import TokenManager, _ManagedTokenAuth, utcnow
from xc_drive.exceptions import (
    ApiError,
    AuthError,
    DriveError,
    NetworkError,
    ResponseDecodeError,
)
from xc_drive.types.responses import Envelope
from xc_drive.types.session_credentials import TokenGrant

logger = logging.getLogger(__name__)

EnvelopeT = TypeVar("EnvelopeT", bound=Envelope)


def multipart_fields(**fields: Any) -> dict[str, tuple[None, str]]:
    """Encode plain form fields as ``multipart/form-data`` parts."""
    return {name: (None, str(value)) for name, value in fields.items()}


def body_excerpt(response: httpx.Response, limit: int = 200) -> str | None:
    try:
        text = response.text.strip()
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return None
    return text[:limit] or None


class BaseDriveClient(httpx.Client):
    """``httpx.Client`` that authenticates every request through a TokenManager.

    Subclasses implement the token exchange (``exchange_credentials`` and
    ``exchange_refresh_token``) and pick how the token is attached.
    """

    auth_class: type[_ManagedTokenAuth]

    def __init__(
        self,
        *,
        base_url: httpx.URL | str,
        clock: Callable[[], datetime] = utcnow,
        **kwargs: Any,
    ):
        self.token_manager = TokenManager(self, clock=clock)

        auth = self.auth_class(self.token_manager)
        headers = json.loads(json.dumps(kwargs.pop("headers", None) or {}))

        # Set default timeout for transfers (5 minutes total, 30s connect, 60s read)
        default_timeout = httpx.Timeout(timeout=300.0, connect=30.0, read=60.0)
        timeout = kwargs.pop("timeout", default_timeout)

        super().__init__(
            base_url=base_url, auth=auth, headers=headers, timeout=timeout, **kwargs
        )

    @property
    def can_authenticate(self) -> bool:
        raise NotImplementedError

    def exchange_credentials(self) -> TokenGrant:
        raise NotImplementedError

    def exchange_refresh_token(self, refresh_token: str) -> TokenGrant:
        raise NotImplementedError

    def send_request(
        self, method: str, url: httpx.URL | str, **kwargs: Any
    ) -> httpx.Response:
        """Send a request, turning transport failures into :class:`NetworkError`."""
        try:
            return self.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {url} failed: {e!r}") from e

    def decode(
        self,
        response: httpx.Response,
        model: type[EnvelopeT],
        *,
        action: str,
        error_cls: type[DriveError] = ApiError,
        decode_error_cls: type[DriveError] = ResponseDecodeError,
    ) -> EnvelopeT:
        """Check the HTTP status and the embedded code, then return the envelope."""
        if response.status_code == 401:
            # Still rejected after the auth flow's refresh and resend
            raise AuthError(
                f"Failed to {action}: token rejected",
                status_code=response.status_code,
                provider_message=body_excerpt(response),
            )
        if not response.is_success:
            raise error_cls(
                f"Failed to {action}",
                status_code=response.status_code,
                provider_message=body_excerpt(response),
            )

        try:
            envelope = model.model_validate_json(response.content)
        except ValidationError as e:
            logger.debug(f"Unparseable {action} response: {body_excerpt(response)}")
            raise decode_error_cls(
                f"Failed to parse {action} response: {e}",
                status_code=response.status_code,
            ) from e

        if not envelope.ok:
            raise error_cls(
                f"Failed to {action} (code={envelope.code_value})",
                status_code=response.status_code,
                provider_message=envelope.error_message or None,
            )
        return envelope
