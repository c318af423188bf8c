"""Custom exceptions for storage client operations."""


class DriveError(Exception):
    """Base class for every error raised by the storage clients.

    Carries the HTTP status and the provider's own message when known so a
    failure can be diagnosed without retrying it.
    """

    def __init__(
        self,
        message: str = "Storage provider request failed",
        *,
        status_code: int | None = None,
        provider_message: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.provider_message = provider_message
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.provider_message:
            parts.append(f"message={self.provider_message}")
        return ", ".join(parts)


class AuthError(DriveError):
    """Raised when credentials or a refresh token are rejected.

    Fatal for the whole client session.
    """

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, **kwargs)


class InvalidInputError(DriveError, ValueError):
    """Raised for caller errors such as a non-positive size or empty filename."""


class NetworkError(DriveError):
    """Raised when the transport fails or an upstream answers with a 5xx."""

    def __init__(self, message: str = "Network request failed", **kwargs):
        super().__init__(message, **kwargs)


class ApiError(DriveError):
    """Raised when the provider rejects a request (HTTP or envelope code)."""


class ResponseDecodeError(DriveError):
    """Raised when a provider response is not the JSON shape we expect."""

    def __init__(self, message: str = "Malformed provider response", **kwargs):
        super().__init__(message, **kwargs)


class UploadError(DriveError):
    """Raised when an upload cannot be completed."""


class ChunkUploadError(UploadError):
    """Raised when a chunk is rejected or keeps failing after retries.

    Aborts the whole upload. Re-running the upload resumes from the chunks the
    remote side already holds.
    """

    def __init__(
        self,
        index: int,
        cause: BaseException | None = None,
        *,
        message: str | None = None,
        **kwargs,
    ):
        self.index = index
        self.cause = cause
        if message is None:
            message = f"Chunk {index} upload failed"
            if cause is not None:
                message = f"{message}: {cause}"
        if cause is not None and isinstance(cause, DriveError):
            kwargs.setdefault("status_code", cause.status_code)
            kwargs.setdefault("provider_message", cause.provider_message)
        super().__init__(message, **kwargs)


class TruncatedStreamError(UploadError):
    """Raised when the stream ends before its declared size."""

    def __init__(self, expected: int, actual: int, *, offset: int = 0):
        self.expected = expected
        self.actual = actual
        self.offset = offset
        super().__init__(
            f"Stream truncated at byte {offset + actual}: "
            + f"expected {expected} bytes, got {actual}"
        )


class MergeError(UploadError):
    """Raised when the server refuses to assemble the uploaded chunks."""

    def __init__(self, message: str = "Chunk merge failed", **kwargs):
        super().__init__(message, **kwargs)


class UploadCancelledError(UploadError):
    """Raised when an upload is cancelled between chunks.

    Chunks already on the remote side are left in place for a later resume.
    """

    def __init__(self, completed_chunks: int, total_chunks: int):
        self.completed_chunks = completed_chunks
        self.total_chunks = total_chunks
        super().__init__(
            f"Upload cancelled after {completed_chunks}/{total_chunks} chunks"
        )
