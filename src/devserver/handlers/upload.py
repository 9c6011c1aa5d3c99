"""
=============================================================================
UPLOAD HANDLER
=============================================================================

``/upload`` takes a multipart/form-data POST with the file in a part named
``file`` and stores it under the uploads directory.

    <form action="http://127.0.0.1:4221/upload" method="post"
          enctype="multipart/form-data">
        <input type="file" name="file">
    </form>

=============================================================================
OUTCOMES
=============================================================================

    ┌────────────────────────────────────┬────────┬─────────────────────────┐
    │ What happened                      │ Status │ Body                    │
    ├────────────────────────────────────┼────────┼─────────────────────────┤
    │ stored                             │  200   │ {"message": "File       │
    │                                    │        │  uploaded successfully: │
    │                                    │        │  <name>"}               │
    │ not multipart / too big / garbled  │  400   │ Unable to parse form    │
    │ no "file" part or empty filename   │  400   │ Unable to retrieve file │
    │ can't mkdir the uploads directory  │  500   │ Unable to create        │
    │                                    │        │  uploads directory      │
    │ can't open the target file         │  500   │ Unable to create file   │
    │ write failed halfway               │  500   │ Unable to save file     │
    └────────────────────────────────────┴────────┴─────────────────────────┘

Errors are ``{"error": "<message>"}``. An existing file with the same name
is overwritten. Only the basename of the client's filename is used, so
``../../etc/passwd`` lands as ``uploads/passwd``.

OPTIONS never gets here; the CORS middleware answers preflights.

=============================================================================
"""

import logging
import os
from pathlib import Path

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, json_error, ok
from ..http.multipart import MultipartError, parse_multipart
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


FILE_FIELD = "file"


def safe_filename(filename: str) -> str:
    """
    Basename of a client-supplied filename; either slash counts as a
    separator. Returns "" when nothing usable is left.

        >>> safe_filename("C:\\\\Users\\\\me\\\\notes.txt")
        'notes.txt'
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name in ("", ".", ".."):
        return ""
    return name


class UploadHandler:
    """
    Stores multipart uploads.

    Usage:
        handler = UploadHandler(uploads_dir="uploads", max_upload_size=10 * MiB)
        router.add_route("/upload", handler)
    """

    def __init__(self, uploads_dir: str = "uploads", max_upload_size: int = 10 * 1024 * 1024):
        self.uploads_dir = Path(uploads_dir)
        self.max_upload_size = max_upload_size

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        try:
            form = parse_multipart(
                request.headers.get("content-type", ""),
                request.body,
                max_size=self.max_upload_size,
            )
        except MultipartError as e:
            logger.warning(f"Error parsing form: {e}")
            return json_error(HTTPStatus.BAD_REQUEST, "Unable to parse form")

        part = form.get_file(FILE_FIELD)
        filename = safe_filename(part.filename) if part else ""
        if not filename:
            logger.warning("Error retrieving file: no usable 'file' part")
            return json_error(HTTPStatus.BAD_REQUEST, "Unable to retrieve file")

        try:
            os.makedirs(self.uploads_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"Error creating uploads directory {self.uploads_dir}: {e}")
            return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Unable to create uploads directory")

        target = self.uploads_dir / filename
        try:
            dst = open(target, "wb")
        except OSError as e:
            logger.error(f"Error creating file {target}: {e}")
            return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Unable to create file")

        try:
            with dst:
                dst.write(part.data)
        except OSError as e:
            logger.error(f"Error saving file {target}: {e}")
            return json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Unable to save file")

        logger.info(f"Stored upload {target} ({len(part.data)} bytes)")
        return ok({"message": f"File uploaded successfully: {filename}"})
