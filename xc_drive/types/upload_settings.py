from pydantic import BaseModel, ConfigDict, Field

from xc_drive import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_FINGERPRINT_PREFIX_SIZE,
    DEFAULT_SINGLE_SHOT_THRESHOLD,
)


class UploadSettings(BaseModel):
    """Tuning knobs for the upload pipeline.

    The defaults match what the XingChen upload nodes expect.
    """

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    single_shot_threshold: int = Field(default=DEFAULT_SINGLE_SHOT_THRESHOLD, ge=0)
    fingerprint_prefix_size: int = Field(default=DEFAULT_FINGERPRINT_PREFIX_SIZE, gt=0)

    # Retry policy for a single chunk (transient failures only)
    max_chunk_attempts: int = Field(default=3, ge=1)
    retry_wait_min: float = Field(default=1.0, ge=0)
    retry_wait_max: float = Field(default=30.0, ge=0)

    # Values above 1 enable parallel transfer over a ranged-read stream
    max_workers: int = Field(default=1, ge=1)
