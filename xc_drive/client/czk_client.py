import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from xc_drive import CZK_API_KEY_NAME, CZK_API_SECRET_NAME, CZK_BASE_URL
from xc_drive.client._base import BaseDriveClient, multipart_fields
from xc_drive.client.auth import BearerAuth
from xc_drive.exceptions import AuthError, NetworkError, UploadError
from xc_drive.types.remote_object import RemoteObject
from xc_drive.types.responses import (
    CzkCompleteUploadResponse,
    CzkDownloadResponse,
    CzkEnvelope,
    CzkFirstUploadResponse,
    CzkFolderResponse,
    CzkListResponse,
    CzkTokenResponse,
)
from xc_drive.types.session_credentials import TokenGrant
from xc_drive.types.upload_result import UploadResult
from xc_drive.upload.planner import validate_stream
from xc_drive.upload.progress import ProgressCallback, ProgressReporter
from xc_drive.upload.stream import READ_BLOCK_SIZE, FileStream
from xc_drive.utils.folder_id import ROOT_FOLDER_ID

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    + "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

error_api_key_missing_msg = (
    "The CZK API key and secret are not set. "
    + "Please provide them as arguments or "
    + f"set the `{CZK_API_KEY_NAME}` and `{CZK_API_SECRET_NAME}` "
    + "environment variables."
)


class CzkClient(BaseDriveClient):
    """Client for the CZK cloud drive API.

    Authenticates with an API key/secret pair for an access/refresh token
    pair. Uploads hash the full content first, so the server can answer with
    an instant (deduplicated) upload; otherwise the bytes go to a presigned
    storage URL and the upload is confirmed afterwards.
    """

    auth_class = BearerAuth

    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_secret: str | None = None,
        base_url: httpx.URL | str = CZK_BASE_URL,
        **kwargs: Any,
    ):
        if api_key is None:
            api_key = os.getenv(CZK_API_KEY_NAME)
        if api_secret is None:
            api_secret = os.getenv(CZK_API_SECRET_NAME)
        if not api_key or not api_secret:
            raise ValueError(error_api_key_missing_msg)

        self.api_key = api_key
        self.api_secret = api_secret

        headers = {"User-Agent": DEFAULT_USER_AGENT}
        headers.update(kwargs.pop("headers", None) or {})

        super().__init__(base_url=base_url, headers=headers, **kwargs)

    # --- Authentication ---

    @property
    def can_authenticate(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def exchange_credentials(self) -> TokenGrant:
        response = self.send_request(
            "GET",
            "/authenticate",
            headers={"x-api-key": self.api_key, "x-api-secret": self.api_secret},
            auth=None,
        )
        return self._token_grant(response, action="authenticate")

    def exchange_refresh_token(self, refresh_token: str) -> TokenGrant:
        response = self.send_request(
            "POST",
            "/refresh_token",
            files=multipart_fields(refresh_token=refresh_token),
            auth=None,
        )
        return self._token_grant(response, action="refresh token")

    def _token_grant(self, response: httpx.Response, action: str) -> TokenGrant:
        envelope = self.decode(
            response,
            CzkTokenResponse,
            action=action,
            error_cls=AuthError,
            decode_error_cls=AuthError,
        )
        if envelope.data is None:
            raise AuthError(
                f"{action.capitalize()} response is missing 'data'",
                status_code=response.status_code,
                provider_message=envelope.message or None,
            )
        return TokenGrant(
            access_token=envelope.data.access_token,
            refresh_token=envelope.data.refresh_token,
            expires_in=envelope.data.expires_in,
        )

    # --- File management ---

    def list_files(self, folder_id: str = ROOT_FOLDER_ID) -> list[RemoteObject]:
        response = self.send_request(
            "GET", "/list_files", params={"folder_id": folder_id}
        )
        envelope = self.decode(response, CzkListResponse, action="list files")
        return [item.to_remote_object() for item in envelope.require_data().items]

    def get_link(self, file_id: str) -> str:
        response = self.send_request(
            "GET", "/get_download_url", params={"file_id": file_id}
        )
        envelope = self.decode(
            response, CzkDownloadResponse, action="get download url"
        )
        return envelope.require_data().download_url

    def make_dir(self, parent_id: str, name: str) -> RemoteObject:
        response = self.send_request(
            "POST",
            "/create_folder",
            files=multipart_fields(parent_id=parent_id, name=name),
        )
        envelope = self.decode(response, CzkFolderResponse, action="create folder")
        folder_id = envelope.require_data().folder_id
        return RemoteObject(id=str(folder_id), name=name, is_folder=True)

    def move(self, obj: RemoteObject, folder_id: str) -> RemoteObject:
        self._item_action(
            "/move_item", obj, action="move", target_id=folder_id
        )
        return obj.model_copy(update={"modified": datetime.now(timezone.utc)})

    def rename(self, obj: RemoteObject, new_name: str) -> RemoteObject:
        self._item_action("/rename_item", obj, action="rename", new_name=new_name)
        return obj.model_copy(
            update={"name": new_name, "modified": datetime.now(timezone.utc)}
        )

    def remove(self, obj: RemoteObject) -> None:
        self._item_action("/delete_item", obj, action="delete")

    def _item_action(
        self, path: str, obj: RemoteObject, *, action: str, **fields: str
    ) -> None:
        item_type = "folder" if obj.is_folder else "file"
        response = self.send_request(
            "POST",
            path,
            files=multipart_fields(id=obj.id, type=item_type, **fields),
        )
        self.decode(response, CzkEnvelope, action=f"{action} {item_type} {obj.id}")

    # --- Upload ---

    def put(
        self,
        stream: FileStream,
        folder_id: str = ROOT_FOLDER_ID,
        progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Upload ``stream`` into ``folder_id``.

        The stream is spooled to a temp file to compute its MD5 before the
        upload is announced.
        """
        validate_stream(stream)
        self.token_manager.ensure_valid()
        reporter = ProgressReporter(progress)

        spooled, file_hash = stream.spool(hash_name="md5")
        with spooled:
            fields = {
                "hash": file_hash,
                "filename": stream.name,
                "filesize": stream.size,
                "folder": folder_id,
            }
            response = self.send_request(
                "POST", "/first_upload", files=multipart_fields(**fields)
            )
            envelope = self.decode(
                response,
                CzkFirstUploadResponse,
                action="init upload",
                error_cls=UploadError,
            )
            init = envelope.require_data()

            if init.instant:
                logger.info(f"Instant upload of {stream.name!r}")
                reporter.report(100.0)
                return UploadResult(
                    filename=stream.name,
                    size=stream.size,
                    chunked=False,
                    fingerprint=file_hash,
                    file_id=str(init.file_id),
                    instant=True,
                )

            self.upload_to_storage(str(init.upload_url), spooled, reporter)

            response = self.send_request(
                "POST",
                "/ok_upload",
                files=multipart_fields(
                    **fields, csrf_token=init.csrf_token, file_key=init.file_key
                ),
            )
            complete = self.decode(
                response,
                CzkCompleteUploadResponse,
                action="complete upload",
                error_cls=UploadError,
            )

        file_id = str(complete.require_data().file_id)
        logger.info(f"Uploaded {stream.name!r} as file {file_id}")
        return UploadResult(
            filename=stream.name,
            size=stream.size,
            chunked=False,
            fingerprint=file_hash,
            file_id=file_id,
        )

    def put_file(
        self,
        path: Path | str,
        folder_id: str = ROOT_FOLDER_ID,
        progress: ProgressCallback | None = None,
    ) -> UploadResult:
        with FileStream.from_path(path) as stream:
            return self.put(stream, folder_id=folder_id, progress=progress)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=30),
        retry=retry_if_exception_type(NetworkError),
        reraise=True,
    )
    def upload_to_storage(
        self, upload_url: str, spooled: FileStream, reporter: ProgressReporter
    ) -> None:
        """PUT the spooled content to the presigned storage URL."""

        def body() -> Generator[bytes, None, None]:
            offset = 0
            while offset < spooled.size:
                block = spooled.read_range(
                    offset, min(READ_BLOCK_SIZE, spooled.size - offset)
                )
                yield block
                offset += len(block)
                reporter.report_fraction(offset, spooled.size)

        logger.debug(f"Uploading {spooled.size} bytes to storage")
        response = self.send_request(
            "PUT",
            upload_url,
            content=body(),
            headers={"Content-Length": str(spooled.size)},
            auth=None,
        )
        if response.status_code >= 500:
            raise NetworkError(
                "Storage upload failed", status_code=response.status_code
            )
        if response.status_code != 200:
            raise UploadError(
                "Storage upload rejected", status_code=response.status_code
            )
