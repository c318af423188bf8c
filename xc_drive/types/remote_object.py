from datetime import datetime

from pydantic import BaseModel, Field


class RemoteObject(BaseModel):
    """A file or folder as seen on the remote side."""

    id: str = Field(..., description="Provider-assigned identifier")
    name: str = Field(..., description="Display name")
    size: int = Field(default=0, ge=0, description="Size in bytes, 0 for folders")
    is_folder: bool = Field(default=False)
    modified: datetime | None = Field(default=None, description="Last change time")
