"""Sequential byte source with a declared size and a name.

Upload chunk boundaries are defined by read position, so the stream is
consumed strictly front to back. Bytes read ahead (the fingerprint prefix)
are handed back with :meth:`FileStream.rewind`, which seeks when the
underlying object allows it and buffers the bytes for replay otherwise.
"""

import hashlib
import io
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import BinaryIO

from xc_drive.exceptions import InvalidInputError, TruncatedStreamError

logger = logging.getLogger(__name__)

READ_BLOCK_SIZE: int = 8 * 1024 * 1024


class FileStream:
    def __init__(self, fileobj: BinaryIO, *, name: str, size: int):
        if size < 0:
            raise InvalidInputError(f"Negative stream size: {size}")
        self.fileobj = fileobj
        self.name = name
        self.size = size
        self.position = 0

        self._pushback = b""
        self._lock = threading.Lock()
        self._seekable = _is_seekable(fileobj)
        self._origin = fileobj.tell() if self._seekable else 0

    @classmethod
    def from_path(cls, path: Path | str, name: str | None = None) -> "FileStream":
        path = Path(path)
        return cls(open(path, "rb"), name=name or path.name, size=path.stat().st_size)

    @classmethod
    def from_bytes(cls, data: bytes, name: str) -> "FileStream":
        return cls(io.BytesIO(data), name=name, size=len(data))

    def __enter__(self) -> "FileStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.fileobj.close()

    def seekable(self) -> bool:
        return self._seekable

    @property
    def remaining(self) -> int:
        return self.size - self.position

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, never past the declared size."""
        if size < 0 or size > self.remaining:
            size = self.remaining
        if size == 0:
            return b""

        data = b""
        if self._pushback:
            data, self._pushback = self._pushback[:size], self._pushback[size:]
        if len(data) < size:
            data += self.fileobj.read(size - len(data)) or b""
        self.position += len(data)
        return data

    def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes or raise :class:`TruncatedStreamError`."""
        offset = self.position
        buf = bytearray()
        while len(buf) < size:
            block = self.read(size - len(buf))
            if not block:
                break
            buf += block
        if len(buf) != size:
            raise TruncatedStreamError(size, len(buf), offset=offset)
        return bytes(buf)

    def skip(self, size: int) -> None:
        """Advance past ``size`` bytes without keeping them."""
        if size > self.remaining:
            raise TruncatedStreamError(size, self.remaining, offset=self.position)

        if self._seekable and not self._pushback:
            target = self._origin + self.position + size
            # Seeking past EOF succeeds silently, so check the real length first
            available = self.fileobj.seek(0, os.SEEK_END)
            if available < target:
                actual = max(available - self._origin - self.position, 0)
                self.fileobj.seek(self._origin + self.position)
                raise TruncatedStreamError(size, actual, offset=self.position)
            self.fileobj.seek(target)
            self.position += size
            return

        offset = self.position
        skipped = 0
        while skipped < size:
            block = self.read(min(READ_BLOCK_SIZE, size - skipped))
            if not block:
                raise TruncatedStreamError(size, skipped, offset=offset)
            skipped += len(block)

    def rewind(self, data: bytes) -> None:
        """Give back ``data``, the bytes most recently read."""
        if len(data) > self.position:
            raise ValueError("Cannot rewind past the start of the stream")
        self.position -= len(data)
        if self._seekable and not self._pushback:
            self.fileobj.seek(self._origin + self.position)
        else:
            self._pushback = data + self._pushback

    def verify_length(self) -> None:
        """Raise :class:`TruncatedStreamError` if the object is shorter than declared."""
        if not self._seekable:
            raise InvalidInputError(f"Stream {self.name!r} does not support seeking")
        with self._lock:
            current = self.fileobj.tell()
            available = self.fileobj.seek(0, os.SEEK_END) - self._origin
            self.fileobj.seek(current)
        if available < self.size:
            raise TruncatedStreamError(self.size, max(available, 0))

    def exact_reader(self) -> "ExactSizeReader":
        return ExactSizeReader(self)

    def supports_ranged_reads(self) -> bool:
        return self._seekable

    def read_range(self, offset: int, length: int) -> bytes:
        """Read ``length`` bytes at ``offset``; safe to call from worker threads."""
        if not self._seekable:
            raise InvalidInputError(f"Stream {self.name!r} does not support seeking")
        with self._lock:
            self.fileobj.seek(self._origin + offset)
            data = self.fileobj.read(length) or b""
        if len(data) != length:
            raise TruncatedStreamError(length, len(data), offset=offset)
        return data

    def spool(
        self, hash_name: str = "md5", directory: Path | str | None = None
    ) -> tuple["FileStream", str]:
        """Copy the remaining bytes into a temp file while hashing them.

        Returns a seekable stream over the copy and the hex digest of the full
        content. The copy is removed when the returned stream is closed.
        """
        digest = hashlib.new(hash_name)
        spooled = tempfile.TemporaryFile(dir=directory)
        expected = self.remaining
        copied = 0
        try:
            while block := self.read(READ_BLOCK_SIZE):
                digest.update(block)
                spooled.write(block)
                copied += len(block)
            if copied != expected:
                raise TruncatedStreamError(expected, copied)
            spooled.seek(0)
        except BaseException:
            spooled.close()
            raise

        logger.debug(f"Spooled {copied} bytes of {self.name!r} to a temp file")
        return FileStream(spooled, name=self.name, size=copied), digest.hexdigest()


class ExactSizeReader:
    """File-like view of a :class:`FileStream` for request bodies.

    Ends cleanly only after the declared size has been read; an earlier EOF
    raises :class:`TruncatedStreamError` instead of sending a short body.
    """

    def __init__(self, stream: FileStream):
        self.stream = stream

    def read(self, size: int = -1) -> bytes:
        if self.stream.remaining == 0:
            return b""
        data = self.stream.read(size)
        if not data:
            raise TruncatedStreamError(self.stream.size, self.stream.position)
        return data


def _is_seekable(fileobj: BinaryIO) -> bool:
    try:
        if not fileobj.seekable():
            return False
        fileobj.tell()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return False
    return True
