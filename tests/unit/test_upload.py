"""
Unit tests for the /upload handler.
"""

import json
import os
from pathlib import Path

import pytest

from devserver.handlers.upload import UploadHandler, safe_filename
from devserver.http.request import HTTPRequest
from devserver.http.status_codes import HTTPStatus


BOUNDARY = "uploadBoundary42"


def upload_request(filename="notes.txt", data=b"hello upload", field="file") -> HTTPRequest:
    disposition = f'form-data; name="{field}"'
    if filename is not None:
        disposition += f'; filename="{filename}"'
    body = (
        f"--{BOUNDARY}\r\n"
        f"Content-Disposition: {disposition}\r\n"
        "Content-Type: text/plain\r\n"
        "\r\n"
    ).encode("utf-8") + data + f"\r\n--{BOUNDARY}--\r\n".encode("ascii")

    return HTTPRequest(
        method="POST",
        path="/upload",
        headers={
            "content-type": f"multipart/form-data; boundary={BOUNDARY}",
            "content-length": str(len(body)),
        },
        body=body,
    )


def body_json(response) -> dict:
    return json.loads(response.body)


@pytest.fixture
def uploads(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def handler(uploads: Path) -> UploadHandler:
    return UploadHandler(uploads_dir=str(uploads))


class TestUploadHandler:

    def test_stores_file(self, handler: UploadHandler, uploads: Path):
        response = handler(upload_request())

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "application/json"
        assert body_json(response) == {"message": "File uploaded successfully: notes.txt"}
        assert (uploads / "notes.txt").read_bytes() == b"hello upload"

    def test_binary_content_unchanged(self, handler: UploadHandler, uploads: Path):
        data = bytes(range(256)) * 4
        handler(upload_request(filename="blob.bin", data=data))

        assert (uploads / "blob.bin").read_bytes() == data

    def test_creates_nested_uploads_dir(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "uploads"
        response = UploadHandler(uploads_dir=str(target))(upload_request())

        assert response.status == HTTPStatus.OK
        assert (target / "notes.txt").exists()

    def test_overwrites_existing(self, handler: UploadHandler, uploads: Path):
        handler(upload_request(data=b"first"))
        handler(upload_request(data=b"second"))

        assert (uploads / "notes.txt").read_bytes() == b"second"

    def test_client_path_stripped(self, handler: UploadHandler, uploads: Path, tmp_path: Path):
        response = handler(upload_request(filename="../../escape.txt"))

        assert body_json(response) == {"message": "File uploaded successfully: escape.txt"}
        assert (uploads / "escape.txt").exists()
        assert not (tmp_path / "escape.txt").exists()

    def test_not_multipart(self, handler: UploadHandler):
        request = HTTPRequest(
            method="POST",
            path="/upload",
            headers={"content-type": "application/json"},
            body=b'{"file": "x"}',
        )

        response = handler(request)

        assert response.status == HTTPStatus.BAD_REQUEST
        assert body_json(response) == {"error": "Unable to parse form"}

    def test_too_large(self, uploads: Path):
        handler = UploadHandler(uploads_dir=str(uploads), max_upload_size=100)

        response = handler(upload_request(data=b"x" * 500))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert body_json(response) == {"error": "Unable to parse form"}
        assert not uploads.exists()

    def test_missing_file_field(self, handler: UploadHandler):
        response = handler(upload_request(field="attachment"))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert body_json(response) == {"error": "Unable to retrieve file"}

    def test_file_field_without_filename(self, handler: UploadHandler):
        response = handler(upload_request(filename=None))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert body_json(response) == {"error": "Unable to retrieve file"}

    def test_empty_filename(self, handler: UploadHandler):
        response = handler(upload_request(filename=""))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert body_json(response) == {"error": "Unable to retrieve file"}

    def test_uploads_dir_is_a_file(self, tmp_path: Path):
        blocker = tmp_path / "uploads"
        blocker.write_text("not a directory")

        response = UploadHandler(uploads_dir=str(blocker))(upload_request())

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert body_json(response) == {"error": "Unable to create uploads directory"}

    def test_cannot_create_file(self, handler: UploadHandler, uploads: Path):
        (uploads / "notes.txt").mkdir(parents=True)

        response = handler(upload_request())

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert body_json(response) == {"error": "Unable to create file"}

    def test_write_failure(self, handler: UploadHandler, monkeypatch):
        import builtins
        real_open = builtins.open

        class BrokenFile:
            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def write(self, data):
                raise OSError("No space left on device")

        def fake_open(path, mode="r", *args, **kwargs):
            if str(path).endswith("notes.txt") and "w" in mode:
                return BrokenFile()
            return real_open(path, mode, *args, **kwargs)

        monkeypatch.setattr(builtins, "open", fake_open)

        response = handler(upload_request())

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert body_json(response) == {"error": "Unable to save file"}


class TestSafeFilename:

    @pytest.mark.parametrize("raw,expected", [
        ("notes.txt", "notes.txt"),
        ("dir/notes.txt", "notes.txt"),
        ("C:\\Users\\me\\notes.txt", "notes.txt"),
        ("../../etc/passwd", "passwd"),
        ("  spaced.txt ", "spaced.txt"),
        ("", ""),
        ("..", ""),
        ("uploads/", ""),
    ])
    def test_basename(self, raw, expected):
        assert safe_filename(raw) == expected
