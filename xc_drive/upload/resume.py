import logging
from typing import Callable, Iterable

from xc_drive.exceptions import ApiError, NetworkError, ResponseDecodeError

logger = logging.getLogger(__name__)


def negotiate_resume(
    fetch: Callable[[], Iterable[int]], total_chunks: int
) -> set[int]:
    """Ask the remote side once which chunks it already holds.

    Any failure degrades to an empty set: the upload then sends every chunk
    instead of aborting.
    """
    try:
        indices = list(fetch())
    except (NetworkError, ApiError, ResponseDecodeError) as e:
        logger.warning(f"Could not query uploaded chunks, uploading all: {e}")
        return set()

    uploaded = {i for i in indices if 0 <= i < total_chunks}
    if ignored := sorted(set(indices) - uploaded):
        logger.debug(f"Ignoring out-of-range chunk indices {ignored}")
    if uploaded:
        logger.info(f"Resuming upload: {len(uploaded)}/{total_chunks} chunks present")
    return uploaded
