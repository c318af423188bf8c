import logging

from xc_drive import DEFAULT_CHUNK_SIZE, DEFAULT_SINGLE_SHOT_THRESHOLD
from xc_drive.exceptions import InvalidInputError
from xc_drive.types.upload_plan import UploadPlan
from xc_drive.upload.stream import FileStream

logger = logging.getLogger(__name__)


def plan_upload(
    size: int,
    *,
    single_shot_threshold: int = DEFAULT_SINGLE_SHOT_THRESHOLD,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> UploadPlan:
    """Decide between a single-shot and a chunked upload for ``size`` bytes."""
    if size <= 0:
        raise InvalidInputError(f"Upload size must be positive, got {size}")
    if chunk_size <= 0:
        raise InvalidInputError(f"Chunk size must be positive, got {chunk_size}")

    if size <= single_shot_threshold:
        return UploadPlan(
            total_size=size, chunk_size=size, total_chunks=1, chunked=False
        )

    total_chunks = (size + chunk_size - 1) // chunk_size
    plan = UploadPlan(
        total_size=size,
        chunk_size=chunk_size,
        total_chunks=total_chunks,
        chunked=True,
    )
    logger.debug(
        f"Planned {total_chunks} chunks of {chunk_size} bytes for {size} bytes"
    )
    return plan


def validate_stream(stream: FileStream) -> None:
    if not stream.name or not stream.name.strip():
        raise InvalidInputError("Upload filename must not be empty")
    if stream.size <= 0:
        raise InvalidInputError(
            f"Upload size must be positive, got {stream.size} for {stream.name!r}"
        )
