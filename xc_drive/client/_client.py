import logging
import os
import threading
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from xc_drive import DEFAULT_AUTH_CODE_TTL, XC_AID_NAME, XC_BASE_URL, XC_KEY_NAME
from xc_drive.client._base import BaseDriveClient
from xc_drive.client.auth import AuthCodeAuth
from xc_drive.exceptions import (
    ApiError,
    AuthError,
    MergeError,
    NetworkError,
    UploadError,
)
from xc_drive.types.remote_object import RemoteObject
from xc_drive.types.responses import (
    XcAuthCodeResponse,
    XcBaseResponse,
    XcChunkResponse,
    XcDownloadResponse,
    XcFileListResponse,
    XcMergeResponse,
    XcUploadedChunksResponse,
    XcUploadTargetResponse,
)
from xc_drive.types.session_credentials import TokenGrant
from xc_drive.types.upload_result import UploadResult
from xc_drive.types.upload_settings import UploadSettings
from xc_drive.types.upload_target import UploadTarget
from xc_drive.upload.pipeline import UploadPipeline
from xc_drive.upload.progress import ProgressCallback
from xc_drive.upload.stream import FileStream
from xc_drive.utils.folder_id import normalize_folder_id

logger = logging.getLogger(__name__)

error_credentials_missing_msg = (
    "The XingChen AID and KEY are not set. "
    + "Please provide them as arguments or "
    + f"set the `{XC_AID_NAME}` and `{XC_KEY_NAME}` environment variables."
)


class XingChenClient(BaseDriveClient):
    """Client for the XingChen open API.

    Every management call carries a short-lived auth code obtained from the
    AID/KEY pair. Uploads go to a per-attempt upload node; files above the
    single-shot threshold use the resumable chunked pipeline.
    """

    auth_class = AuthCodeAuth

    def __init__(
        self,
        *,
        aid: str | None = None,
        key: str | None = None,
        base_url: httpx.URL | str = XC_BASE_URL,
        auth_code_ttl: int = DEFAULT_AUTH_CODE_TTL,
        upload_settings: UploadSettings | None = None,
        **kwargs: Any,
    ):
        if aid is None:
            aid = os.getenv(XC_AID_NAME)
        if key is None:
            key = os.getenv(XC_KEY_NAME)
        if not aid or not key:
            raise ValueError(error_credentials_missing_msg)

        self.aid = aid
        self.key = key
        self.auth_code_ttl = auth_code_ttl
        self.upload_settings = upload_settings or UploadSettings()

        super().__init__(base_url=base_url, **kwargs)

    # --- Authentication ---

    @property
    def can_authenticate(self) -> bool:
        return bool(self.aid and self.key)

    def exchange_credentials(self) -> TokenGrant:
        """Exchange the AID/KEY pair for an auth code.

        Auth codes come without a refresh token or lifetime, so they are
        treated as access tokens valid for ``auth_code_ttl`` seconds.
        """
        response = self.send_request(
            "GET",
            "/GetAuthCode",
            params={"aid": self.aid, "key": self.key},
            auth=None,
        )
        envelope = self.decode(
            response,
            XcAuthCodeResponse,
            action="get auth code",
            error_cls=AuthError,
            decode_error_cls=AuthError,
        )
        if not envelope.data:
            raise AuthError(
                "Auth code response is missing 'data'",
                status_code=response.status_code,
                provider_message=envelope.msg or None,
            )
        return TokenGrant(access_token=envelope.data, expires_in=self.auth_code_ttl)

    def exchange_refresh_token(self, refresh_token: str) -> TokenGrant:
        raise AuthError("XingChen does not issue refresh tokens")

    # --- File management ---

    def list_files(self, folder_id: str | None = None) -> list[RemoteObject]:
        params = {"type": "1"}
        if fid := normalize_folder_id(folder_id):
            params["fid"] = fid

        response = self.send_request("GET", "/getFileList", params=params)
        envelope = self.decode(response, XcFileListResponse, action="list files")
        return [f.to_remote_object() for f in envelope.require_data()]

    def get_link(self, file_id: str) -> str:
        """Return a direct download URL for a file."""
        response = self.send_request(
            "POST", "/downAllPath", data={"id": f"[{file_id}]"}
        )
        envelope = self.decode(response, XcDownloadResponse, action="get download url")
        if not envelope.data:
            raise ApiError(
                f"No download url returned for file {file_id}",
                status_code=response.status_code,
            )
        return envelope.data[0].url

    def make_dir(self, parent_id: str | None, name: str) -> None:
        form = {"c_name": name}
        if fid := normalize_folder_id(parent_id):
            form["c_fid"] = fid
        response = self.send_request("POST", "/addPath", data=form)
        self.decode(response, XcBaseResponse, action="create folder")
        logger.debug(f"Created folder {name!r}")

    def rename(self, object_id: str, new_name: str) -> None:
        response = self.send_request(
            "POST", "/editPath", data={"id": object_id, "c_name": new_name}
        )
        self.decode(response, XcBaseResponse, action="rename")

    def move(self, object_id: str, folder_id: str | None) -> None:
        form = {"id": f"[{object_id}]"}
        if fid := normalize_folder_id(folder_id):
            form["fid"] = fid
        response = self.send_request("POST", "/transferPath", data=form)
        self.decode(response, XcBaseResponse, action="move")

    def remove(self, object_id: str) -> None:
        response = self.send_request(
            "POST", "/delPath", data={"id": f"[{object_id}]"}
        )
        self.decode(response, XcBaseResponse, action="delete")

    # --- Upload ---

    def put(
        self,
        stream: FileStream,
        folder_id: str | None = None,
        progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> UploadResult:
        """Upload ``stream`` into ``folder_id``.

        An interrupted chunked upload can be resumed by calling ``put`` again
        with the same content; chunks already on the upload node are skipped.
        """
        self.token_manager.ensure_valid()
        pipeline = UploadPipeline(self, self.upload_settings)
        return pipeline.upload(
            stream, folder_id=folder_id, progress=progress, cancel_event=cancel_event
        )

    def put_file(
        self,
        path: Path | str,
        folder_id: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> UploadResult:
        with FileStream.from_path(path) as stream:
            return self.put(stream, folder_id=folder_id, progress=progress)

    def begin_upload(self, folder_id: str | None) -> UploadTarget:
        params = {}
        if fid := normalize_folder_id(folder_id):
            params["fid"] = fid

        response = self.send_request("GET", "/Getuploads", params=params)
        envelope = self.decode(
            response,
            XcUploadTargetResponse,
            action="get upload node",
            error_cls=UploadError,
        )
        target: UploadTarget = envelope.require_data()
        if not target.url:
            raise UploadError("Upload node appears to be offline, try again later")
        logger.debug(f"Upload node: {target.url}")
        return target

    def upload_direct(self, target: UploadTarget, stream: FileStream) -> str | None:
        response = self.send_request(
            "POST",
            target.endpoint("upload"),
            files={"file": (stream.name, stream.exact_reader())},
            auth=None,
        )
        if not response.is_success:
            raise UploadError(
                f"Failed to upload {stream.name!r}",
                status_code=response.status_code,
            )
        try:
            envelope = XcMergeResponse.model_validate_json(response.content)
        except ValidationError:
            # Upload nodes do not always answer direct uploads with an envelope
            return None
        if not envelope.ok:
            raise UploadError(
                f"Failed to upload {stream.name!r} (code={envelope.code})",
                status_code=response.status_code,
                provider_message=envelope.msg or None,
            )
        return envelope.file_id

    def list_uploaded_chunks(self, target: UploadTarget, fingerprint: str) -> list[int]:
        response = self.send_request(
            "GET", target.endpoint("uploadedChunks", hash=fingerprint), auth=None
        )
        envelope = self.decode(
            response, XcUploadedChunksResponse, action="list uploaded chunks"
        )
        return envelope.require_data()

    def upload_chunk(
        self,
        target: UploadTarget,
        data: bytes,
        *,
        index: int,
        total_chunks: int,
        fingerprint: str,
        filename: str,
    ) -> None:
        url = target.endpoint(
            "uploadChunk",
            hash=fingerprint,
            index=index,
            totalChunks=total_chunks,
            filename=filename,
        )
        response = self.send_request(
            "POST", url, files={"file": (filename, data)}, auth=None
        )
        if response.status_code >= 500:
            raise NetworkError(
                f"Upload node error for chunk {index}",
                status_code=response.status_code,
            )
        self.decode(response, XcChunkResponse, action=f"upload chunk {index}")

    def merge_chunks(
        self,
        target: UploadTarget,
        *,
        fingerprint: str,
        filename: str,
        total_chunks: int,
    ) -> str | None:
        response = self.send_request(
            "POST",
            target.endpoint("mergeChunks"),
            data={
                "filename": filename,
                "hash": fingerprint,
                "totalChunks": str(total_chunks),
            },
            auth=None,
        )
        envelope = self.decode(
            response,
            XcMergeResponse,
            action="merge chunks",
            error_cls=MergeError,
            decode_error_cls=MergeError,
        )
        return envelope.file_id
