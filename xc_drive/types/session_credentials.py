from datetime import datetime, timedelta

from pydantic import BaseModel, Field


class TokenGrant(BaseModel):
    """Token pair returned by a credential or refresh-token exchange."""

    access_token: str = Field(..., min_length=1, description="Bearer token")
    refresh_token: str | None = Field(
        default=None, description="Refresh token, if the provider issues one"
    )
    expires_in: int = Field(..., ge=0, description="Token lifetime in seconds")


class SessionCredentials(BaseModel):
    """Authentication state shared by every call a client issues."""

    access_token: str = Field(..., description="Current access token")
    refresh_token: str | None = Field(default=None, description="Refresh token")
    expires_at: datetime = Field(..., description="Access token expiry")

    @classmethod
    def from_grant(
        cls,
        grant: TokenGrant,
        now: datetime,
        refresh_token: str | None = None,
    ) -> "SessionCredentials":
        return cls(
            access_token=grant.access_token,
            refresh_token=refresh_token or grant.refresh_token,
            expires_at=now + timedelta(seconds=grant.expires_in),
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
