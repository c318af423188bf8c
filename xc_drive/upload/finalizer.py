import logging
from typing import TYPE_CHECKING

from xc_drive.types.upload_target import UploadTarget

if TYPE_CHECKING:
    from xc_drive.upload.pipeline import ChunkedUploadBackend

logger = logging.getLogger(__name__)


def finalize_upload(
    backend: "ChunkedUploadBackend",
    target: UploadTarget,
    *,
    fingerprint: str,
    filename: str,
    total_chunks: int,
) -> str | None:
    """Ask the server to assemble the uploaded chunks into ``filename``.

    Not retried: a merge may already have happened server-side, and repeating
    it can create a duplicate object. Returns the new object id when the
    provider reports one.
    """
    logger.debug(f"Merging {total_chunks} chunks of {filename!r} ({fingerprint})")
    file_id = backend.merge_chunks(
        target,
        fingerprint=fingerprint,
        filename=filename,
        total_chunks=total_chunks,
    )
    if file_id is None:
        logger.debug(f"Merge of {filename!r} did not report an object id")
    return file_id
