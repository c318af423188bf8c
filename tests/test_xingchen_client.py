import hashlib
import io

import httpx
import pytest
from fakes import multipart_form, query, urlencoded_form

from xc_drive import XC_AID_NAME, XC_KEY_NAME
from xc_drive.client import XingChenClient
from xc_drive.exceptions import (
    ApiError,
    AuthError,
    ChunkUploadError,
    MergeError,
    ResponseDecodeError,
    TruncatedStreamError,
    UploadError,
)
from xc_drive.upload.stream import FileStream

NODE = "https://node.example/api"


class FakeXingChen:
    """Routes requests the way the XingChen API and an upload node would."""

    def __init__(self, uploaded: list[int] | None = None):
        self.uploaded = uploaded or []
        self.requests: list[httpx.Request] = []
        self.auth_codes_issued = 0
        self.auth_code_response: dict | None = None
        self.uploaded_chunks_error: Exception | None = None
        self.chunk_responses: dict[int, list[httpx.Response]] = {}
        self.merge_response = httpx.Response(200, json={"code": 200, "msg": "ok"})
        self.management_response = {"code": 200, "msg": "ok"}
        self.file_list_override: tuple[int, dict] | None = None
        self.node_url = NODE

    def paths(self) -> list[str]:
        return [r.url.path.rsplit("/", 1)[-1] for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]

        if endpoint == "GetAuthCode":
            if self.auth_code_response is not None:
                return httpx.Response(200, json=self.auth_code_response)
            self.auth_codes_issued += 1
            return httpx.Response(
                200, json={"code": 200, "msg": "ok", "data": f"code-{self.auth_codes_issued}"}
            )
        if endpoint == "Getuploads":
            return httpx.Response(
                200,
                json={"code": 200, "data": {"url": self.node_url, "query": "token=abc"}},
            )
        if endpoint == "uploadedChunks":
            if self.uploaded_chunks_error is not None:
                raise self.uploaded_chunks_error
            return httpx.Response(200, json={"data": self.uploaded})
        if endpoint == "uploadChunk":
            index = int(query(request)["index"])
            if responses := self.chunk_responses.get(index):
                return responses.pop(0)
            return httpx.Response(200, json={"code": 0, "msg": "ok"})
        if endpoint == "mergeChunks":
            return self.merge_response
        if endpoint == "upload":
            return httpx.Response(200, json={"code": 200, "data": {"file_id": 77}})
        if endpoint == "getFileList":
            if self.file_list_override is not None:
                status, body = self.file_list_override
                return httpx.Response(status, json=body)
            return httpx.Response(
                200,
                json={
                    "code": 200,
                    "data": [
                        {
                            "id": 1,
                            "c_name": "docs",
                            "c_type": "folder",
                            "c_time": "2024-05-01 10:00:00",
                        },
                        {"id": 2, "c_name": "a.txt", "c_size": 12, "c_type": "file"},
                    ],
                },
            )
        if endpoint == "downAllPath":
            return httpx.Response(
                200, json={"code": 200, "data": [{"url": "https://cdn.example/a.txt"}]}
            )
        if endpoint in ("addPath", "editPath", "transferPath", "delPath"):
            return httpx.Response(200, json=self.management_response)
        return httpx.Response(404, json={"code": 404, "msg": "not found"})


@pytest.fixture
def server():
    return FakeXingChen()


@pytest.fixture
def client(server, small_settings, clock):
    with XingChenClient(
        aid="aid",
        key="key",
        upload_settings=small_settings,
        clock=clock,
        transport=httpx.MockTransport(server),
    ) as client:
        yield client


class TestConfiguration:
    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv(XC_AID_NAME, raising=False)
        monkeypatch.delenv(XC_KEY_NAME, raising=False)

        with pytest.raises(ValueError, match=XC_AID_NAME):
            XingChenClient()

    def test_credentials_from_environment(self, monkeypatch):
        monkeypatch.setenv(XC_AID_NAME, "env-aid")
        monkeypatch.setenv(XC_KEY_NAME, "env-key")

        with XingChenClient() as client:
            assert client.aid == "env-aid"
            assert client.key == "env-key"


class TestAuthCode:
    def test_auth_code_is_fetched_once_and_attached(self, client, server):
        client.list_files()
        client.list_files("5")

        assert server.paths() == ["GetAuthCode", "getFileList", "getFileList"]
        assert query(server.requests[0]) == {"aid": "aid", "key": "key"}
        assert query(server.requests[1]) == {"type": "1", "authcode": "code-1"}
        assert query(server.requests[2])["fid"] == "5"

    def test_auth_code_is_renewed_after_ttl(self, client, server, clock):
        client.list_files()
        clock.advance(client.auth_code_ttl)
        client.list_files()

        assert server.auth_codes_issued == 2
        assert query(server.requests[-1])["authcode"] == "code-2"

    def test_rejected_credentials(self, client, server):
        server.auth_code_response = {"code": 403, "msg": "bad key"}

        with pytest.raises(AuthError) as exc_info:
            client.list_files()
        assert exc_info.value.provider_message == "bad key"

    def test_malformed_auth_response(self, client, server):
        server.auth_code_response = {"code": 200, "data": None}

        with pytest.raises(AuthError):
            client.list_files()

    def test_persistent_401_raises_auth_error(self, client, server):
        server.file_list_override = (401, {"code": 401, "msg": "bad authcode"})

        with pytest.raises(AuthError) as exc_info:
            client.list_files()

        assert exc_info.value.status_code == 401
        assert server.paths() == [
            "GetAuthCode",
            "getFileList",
            "GetAuthCode",
            "getFileList",
        ]


class TestManagement:
    def test_list_files(self, client):
        files = client.list_files()

        assert [f.name for f in files] == ["docs", "a.txt"]
        assert files[0].is_folder
        assert files[0].modified is not None
        assert files[1].size == 12
        assert files[1].id == "2"

    def test_list_without_data_is_a_decode_error(self, client, server):
        server.file_list_override = (200, {"code": 200, "msg": "ok"})

        with pytest.raises(ResponseDecodeError):
            client.list_files()

    def test_empty_folder(self, client, server):
        server.file_list_override = (200, {"code": 200, "data": []})

        assert client.list_files() == []

    def test_get_link(self, client, server):
        assert client.get_link("2") == "https://cdn.example/a.txt"
        assert urlencoded_form(server.requests[-1]) == {"id": "[2]"}

    def test_root_folder_is_omitted(self, client, server):
        client.make_dir("0", "new")
        client.move("9", "0")

        assert urlencoded_form(server.requests[-2]) == {"c_name": "new"}
        assert urlencoded_form(server.requests[-1]) == {"id": "[9]"}

    def test_rename_and_remove(self, client, server):
        client.rename("9", "renamed")
        client.remove("9")

        assert urlencoded_form(server.requests[-2]) == {"id": "9", "c_name": "renamed"}
        assert urlencoded_form(server.requests[-1]) == {"id": "[9]"}

    def test_api_error_carries_code_and_message(self, client, server):
        server.management_response = {"code": 500, "msg": "name already taken"}

        with pytest.raises(ApiError) as exc_info:
            client.make_dir(None, "docs")

        assert exc_info.value.status_code == 200
        assert exc_info.value.provider_message == "name already taken"
        assert "code=500" in str(exc_info.value)


class TestChunkedUpload:
    def test_resumed_upload_end_to_end(self, client, server, content):
        server.uploaded = [0]
        progress: list[float] = []
        stream = FileStream.from_bytes(content, name="movie.mkv")

        result = client.put(stream, folder_id="42", progress=progress.append)

        assert server.paths() == [
            "GetAuthCode",
            "Getuploads",
            "uploadedChunks",
            "uploadChunk",
            "uploadChunk",
            "mergeChunks",
        ]
        fingerprint = hashlib.md5(content[:10]).hexdigest()
        getuploads, uploaded_query, chunk1, chunk2, merge = server.requests[1:]

        assert query(getuploads) == {"fid": "42", "authcode": "code-1"}
        assert query(uploaded_query) == {"token": "abc", "hash": fingerprint}
        assert uploaded_query.url.host == "node.example"

        for request, index in ((chunk1, 1), (chunk2, 2)):
            assert query(request) == {
                "token": "abc",
                "hash": fingerprint,
                "index": str(index),
                "totalChunks": "3",
                "filename": "movie.mkv",
            }
        assert multipart_form(chunk1)["file"] == content[100:200]
        assert multipart_form(chunk2)["file"] == content[200:]

        assert query(merge) == {"token": "abc"}
        assert urlencoded_form(merge) == {
            "filename": "movie.mkv",
            "hash": fingerprint,
            "totalChunks": "3",
        }
        assert result.sent_chunks == [1, 2]
        assert result.skipped_chunks == [0]
        assert result.file_id is None
        assert progress[-1] == 100.0

    def test_resume_query_timeout_sends_all_chunks(self, client, server, content):
        server.uploaded_chunks_error = httpx.ReadTimeout("timed out")

        result = client.put(FileStream.from_bytes(content, name="movie.mkv"))

        assert server.paths().count("uploadChunk") == 3
        assert result.sent_chunks == [0, 1, 2]

    def test_transient_chunk_failure_is_retried(self, client, server, content):
        server.chunk_responses[1] = [httpx.Response(503), httpx.Response(502)]

        result = client.put(FileStream.from_bytes(content, name="movie.mkv"))

        assert server.paths().count("uploadChunk") == 5
        assert result.sent_chunks == [0, 1, 2]

    def test_rejected_chunk_aborts_upload(self, client, server, content):
        server.chunk_responses[1] = [
            httpx.Response(200, json={"code": 500, "msg": "hash mismatch"})
        ]

        with pytest.raises(ChunkUploadError) as exc_info:
            client.put(FileStream.from_bytes(content, name="movie.mkv"))

        assert exc_info.value.index == 1
        assert exc_info.value.provider_message == "hash mismatch"
        assert "mergeChunks" not in server.paths()

    def test_merge_rejection(self, client, server, content):
        server.merge_response = httpx.Response(200, json={"code": 1, "msg": "missing chunk"})

        with pytest.raises(MergeError) as exc_info:
            client.put(FileStream.from_bytes(content, name="movie.mkv"))

        assert exc_info.value.provider_message == "missing chunk"
        assert server.paths().count("mergeChunks") == 1

    def test_merge_http_error(self, client, server, content):
        server.merge_response = httpx.Response(500, text="boom")

        with pytest.raises(MergeError) as exc_info:
            client.put(FileStream.from_bytes(content, name="movie.mkv"))
        assert exc_info.value.status_code == 500

    def test_offline_upload_node(self, client, server, content):
        server.node_url = ""

        with pytest.raises(UploadError, match="offline"):
            client.put(FileStream.from_bytes(content, name="movie.mkv"))


class TestDirectUpload:
    def test_small_file_is_posted_once(self, client, server):
        data = b"small" * 10
        result = client.put(FileStream.from_bytes(data, name="note.txt"))

        assert server.paths() == ["GetAuthCode", "Getuploads", "upload"]
        upload = server.requests[-1]
        assert query(upload) == {"token": "abc"}
        assert "authcode" not in query(upload)
        assert multipart_form(upload)["file"] == data
        assert not result.chunked
        assert result.file_id == "77"

    def test_short_stream_is_not_uploaded(self, client, server):
        stream = FileStream(io.BytesIO(b"x" * 50), name="a.bin", size=80)

        with pytest.raises(TruncatedStreamError) as exc_info:
            client.put(stream)

        assert exc_info.value.expected == 80
        assert exc_info.value.actual == 50

    def test_put_file(self, client, server, tmp_path):
        path = tmp_path / "note.txt"
        path.write_bytes(b"from disk")

        result = client.put_file(path)

        assert result.filename == "note.txt"
        assert multipart_form(server.requests[-1])["file"] == b"from disk"
