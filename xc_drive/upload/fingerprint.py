"""Content fingerprint used as the resume key for chunked uploads.

Only the first ``prefix_size`` bytes are hashed, so two large files that share
that prefix get the same fingerprint. This keeps fingerprinting cheap on
multi-gigabyte files; files no longer than the prefix are hashed whole.
"""

import hashlib
import logging

from xc_drive import DEFAULT_FINGERPRINT_PREFIX_SIZE
from xc_drive.upload.stream import FileStream

logger = logging.getLogger(__name__)


def compute_fingerprint(
    stream: FileStream,
    prefix_size: int = DEFAULT_FINGERPRINT_PREFIX_SIZE,
    hash_name: str = "md5",
) -> str:
    """Hash the leading bytes of ``stream`` and rewind it.

    The stream is left at the position it started from, so the transfer can
    read the same bytes again.
    """
    if prefix_size <= 0:
        raise ValueError(f"prefix_size must be positive, got {prefix_size}")

    hash_size = min(prefix_size, stream.remaining)
    prefix = stream.read_exact(hash_size)
    stream.rewind(prefix)

    fingerprint = hashlib.new(hash_name, prefix).hexdigest()
    logger.debug(
        f"Fingerprint of {stream.name!r} over {hash_size} bytes: {fingerprint}"
    )
    return fingerprint
