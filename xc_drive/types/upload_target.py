from typing import Any

import httpx
from pydantic import BaseModel, Field


class UploadTarget(BaseModel):
    """Upload node address handed out by the begin-upload call.

    Scoped to a single upload attempt.
    """

    url: str = Field(..., description="Upload node base URL")
    query: str = Field(default="", description="Opaque per-attempt query string")

    def endpoint(self, path: str, **params: Any) -> httpx.URL:
        """Build ``{url}/{path}?{query}&{params}``."""
        query = httpx.QueryParams(self.query)
        if params:
            query = query.merge({k: str(v) for k, v in params.items()})
        return httpx.URL(f"{self.url.rstrip('/')}/{path}", params=query)
