from pydantic import BaseModel, Field


class UploadResult(BaseModel):
    """Outcome of a completed upload."""

    filename: str
    size: int
    chunked: bool
    total_chunks: int = Field(default=1)
    fingerprint: str | None = Field(default=None, description="Resume key or hash")
    sent_chunks: list[int] = Field(default_factory=list)
    skipped_chunks: list[int] = Field(default_factory=list)
    file_id: str | None = Field(
        default=None,
        description="New object id; some providers do not report it",
    )
    instant: bool = Field(default=False, description="Deduplicated server-side")
