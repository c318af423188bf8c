"""Provider response envelopes, decoded once at the client boundary.

Every provider answer is a JSON envelope carrying a status code, an error
message and a ``data`` payload. Each response kind gets its own model so a
missing field surfaces as a validation error instead of a silent ``None``.
"""

from datetime import datetime
from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from xc_drive.exceptions import ResponseDecodeError
from xc_drive.types.remote_object import RemoteObject
from xc_drive.types.upload_target import UploadTarget


class Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success_codes: ClassVar[frozenset[int]] = frozenset({200})

    data: Any = None

    @property
    def code_value(self) -> int | None:
        raise NotImplementedError

    @property
    def error_message(self) -> str:
        raise NotImplementedError

    @property
    def ok(self) -> bool:
        return self.code_value in self.success_codes

    def require_data(self) -> Any:
        if self.data is None:
            raise ResponseDecodeError(
                f"{type(self).__name__} is missing 'data'",
                provider_message=self.error_message or None,
            )
        return self.data


# XingChen: {"code": 200, "msg": "...", "data": ...}


class XcEnvelope(Envelope):
    code: int
    msg: str = ""

    @property
    def code_value(self) -> int | None:
        return self.code

    @property
    def error_message(self) -> str:
        return self.msg


class XcBaseResponse(XcEnvelope):
    pass


class XcAuthCodeResponse(XcEnvelope):
    data: str | None = None


class XcFile(BaseModel):
    id: int
    c_name: str
    c_size: int = 0
    c_type: str = ""
    c_time: str = ""

    def to_remote_object(self) -> RemoteObject:
        modified: datetime | None = None
        if self.c_time:
            try:
                modified = datetime.strptime(self.c_time, "%Y-%m-%d %H:%M:%S")
            except ValueError:
                modified = None
        return RemoteObject(
            id=str(self.id),
            name=self.c_name,
            size=self.c_size,
            is_folder=self.c_type == "folder",
            modified=modified,
        )


class XcFileListResponse(XcEnvelope):
    data: list[XcFile] | None = None


class XcDownloadLink(BaseModel):
    url: str


class XcDownloadResponse(XcEnvelope):
    data: list[XcDownloadLink] | None = None


class XcUploadTargetResponse(XcEnvelope):
    data: UploadTarget | None = None


class XcUploadedChunksResponse(XcEnvelope):
    # Upload nodes answer the chunk query without a code on success
    success_codes: ClassVar[frozenset[int]] = frozenset({0, 200})

    code: int | None = None  # type: ignore[assignment]
    data: list[int] | None = None

    @property
    def ok(self) -> bool:
        return self.code is None or self.code in self.success_codes


class XcChunkResponse(XcEnvelope):
    success_codes: ClassVar[frozenset[int]] = frozenset({0, 200})


class XcMergeResponse(XcEnvelope):
    success_codes: ClassVar[frozenset[int]] = frozenset({0, 200})

    data: dict[str, Any] | None = None

    @property
    def file_id(self) -> str | None:
        if not self.data:
            return None
        for key in ("file_id", "id"):
            if (value := self.data.get(key)) is not None:
                return str(value)
        return None


# CZK: {"status"|"code": 200, "message": "...", "data": {...}}


class CzkEnvelope(Envelope):
    status: int | None = Field(
        default=None, validation_alias=AliasChoices("status", "code")
    )
    message: str = ""

    @property
    def code_value(self) -> int | None:
        return self.status

    @property
    def error_message(self) -> str:
        return self.message

    @property
    def ok(self) -> bool:
        return self.status is None or self.status in self.success_codes


class CzkTokenData(BaseModel):
    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_in: int = Field(..., ge=0)
    token_type: str = "Bearer"


class CzkTokenResponse(CzkEnvelope):
    # Auth endpoints always report a status
    status: int = Field(..., validation_alias=AliasChoices("status", "code"))  # type: ignore[assignment]  # noqa: E501
    data: CzkTokenData | None = None

    @property
    def ok(self) -> bool:
        return self.status in self.success_codes


class CzkItem(BaseModel):
    id: int
    name: str
    type: str
    size: int | None = None

    def to_remote_object(self) -> RemoteObject:
        return RemoteObject(
            id=str(self.id),
            name=self.name,
            size=self.size or 0,
            is_folder=self.type == "folder",
        )


class CzkListData(BaseModel):
    items: list[CzkItem] = Field(default_factory=list)


class CzkListResponse(CzkEnvelope):
    data: CzkListData | None = None


class CzkDownloadData(BaseModel):
    download_url: str = Field(..., min_length=1)


class CzkDownloadResponse(CzkEnvelope):
    data: CzkDownloadData | None = None


class CzkFolderData(BaseModel):
    folder_id: int


class CzkFolderResponse(CzkEnvelope):
    data: CzkFolderData | None = None


class CzkFirstUploadData(BaseModel):
    status: str | None = None
    file_id: int | None = None
    upload_url: str | None = None
    csrf_token: str | None = None
    file_key: str | None = None

    @property
    def instant(self) -> bool:
        return self.status == "instant"

    @model_validator(mode="after")
    def _check_fields(self) -> "CzkFirstUploadData":
        if self.instant:
            if self.file_id is None:
                raise ValueError("instant upload without file_id")
        elif not (self.upload_url and self.csrf_token and self.file_key):
            raise ValueError("upload_url, csrf_token and file_key are required")
        return self


class CzkFirstUploadResponse(CzkEnvelope):
    data: CzkFirstUploadData | None = None


class CzkFileIdData(BaseModel):
    file_id: int


class CzkCompleteUploadResponse(CzkEnvelope):
    data: CzkFileIdData | None = None
