from xc_drive.exceptions import (
    ApiError,
    AuthError,
    ChunkUploadError,
    DriveError,
    InvalidInputError,
    MergeError,
    NetworkError,
    ResponseDecodeError,
    TruncatedStreamError,
    UploadCancelledError,
    UploadError,
)
from xc_drive.types.remote_object import RemoteObject
from xc_drive.types.upload_result import UploadResult
from xc_drive.types.upload_settings import UploadSettings

from ._client import XingChenClient
from .auth import AuthCodeAuth, BearerAuth, TokenManager
from .czk_client import CzkClient

__all__ = [
    "ApiError",
    "AuthCodeAuth",
    "AuthError",
    "BearerAuth",
    "ChunkUploadError",
    "CzkClient",
    "DriveError",
    "InvalidInputError",
    "MergeError",
    "NetworkError",
    "RemoteObject",
    "ResponseDecodeError",
    "TokenManager",
    "TruncatedStreamError",
    "UploadCancelledError",
    "UploadError",
    "UploadResult",
    "UploadSettings",
    "XingChenClient",
]
