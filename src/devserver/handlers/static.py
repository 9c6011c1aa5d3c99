"""
=============================================================================
FILE RESPONDER
=============================================================================

Serves files from the root directory. This is the heart of the dev server:
everything a GET on a path other than /ws or /upload gets back comes out
of FileResponder.respond().

=============================================================================
WHAT A GET GOES THROUGH
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  respond("/css/site.css", accepts_gzip, range_spec, if_none_match)  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. RESOLVE      "/"      → <root>/index.html   (not checked yet)   │
    │                  "/a/b.js"→ <root>/a/b.js        missing → 404      │
    │                  outside <root> or a directory   → 404              │
    │                                                                      │
    │  2. VALIDATE     ETag          md5 hex of the whole file            │
    │                  Last-Modified file mtime as an HTTP date           │
    │                  If-None-Match == ETag           → 304, no body     │
    │                                                                      │
    │  3. OPEN         can't open (missing index.html…) → 404             │
    │                                                                      │
    │  4. SLICE        range requested  → seek(start)                     │
    │                  end > 0          → copy end - start bytes          │
    │                  otherwise        → copy to EOF                     │
    │                                                                      │
    │  5. ENCODE       gzip accepted    → the slice goes through gzip     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every answer, 404 and 304 included, carries Access-Control-Allow-Origin
with the configured origin.

=============================================================================
RANGES THE DEV-SERVER WAY
=============================================================================

    Range: bytes=2-5      →  3 bytes from offset 2      (end is exclusive)
    Range: bytes=100-     →  offset 100 to EOF
    Range: bytes=5-2      →  empty body
    Range: bytes=0-0      →  whole file                 (same as no range)
    Range: items=1-2      →  whole file                 (doesn't parse)

The status stays 200 and there is no Content-Range header: the slice is
just the body. Bounds are not checked against the file size; a start past
EOF gives an empty body. With gzip the compressed stream holds the slice
only, so it decompresses to exactly the bytes the plain response would
have carried.

=============================================================================
ETAGS
=============================================================================

The ETag is the md5 hex digest of the file content, unquoted. Two copies
of the same bytes get the same ETag wherever they live; one changed byte
gives a new one. Hashing means reading the whole file on every request,
so ETagCache can remember digests keyed by (path, mtime_ns, size). Any
write that changes the mtime or the size misses the cache.

=============================================================================
"""

import gzip
import hashlib
import io
import logging
import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Tuple

from ..http.response import HTTPResponse, ResponseBuilder, format_http_timestamp
from ..http.status_codes import HTTPStatus
from ..http.mime_types import get_content_type


logger = logging.getLogger(__name__)


NOT_FOUND_BODY = "404 Not Found"

_RANGE_PATTERN = re.compile(r"bytes=\s*(\d+)\s*-\s*(\d+)?")

# Largest offset a seek accepts; bigger numbers are treated as unparseable.
MAX_RANGE_OFFSET = 2 ** 63 - 1


# =============================================================================
# RANGE SPEC
# =============================================================================

@dataclass(frozen=True)
class RangeSpec:
    """
    Requested byte window.

    ``end`` is exclusive and 0 means "to EOF"; (0, 0) is the whole file.
    """

    start: int = 0
    end: int = 0

    @property
    def is_requested(self) -> bool:
        return self.start > 0 or self.end > 0

    @property
    def length(self) -> Optional[int]:
        """Bytes to copy after seeking, None for "until EOF"."""
        if self.end > 0:
            return max(self.end - self.start, 0)
        return None


WHOLE_FILE = RangeSpec()


def parse_range(header: Optional[str]) -> RangeSpec:
    """
    Read a Range header as ``bytes=<start>-<end>``.

    Only the leading range of a multi-range header counts. Anything that
    doesn't start with ``bytes=<digits>-`` is the whole file.

        >>> parse_range("bytes=2-5")
        RangeSpec(start=2, end=5)
        >>> parse_range("bytes=100-")
        RangeSpec(start=100, end=0)
        >>> parse_range("bytes=-500")
        RangeSpec(start=0, end=0)
        >>> parse_range("bytes=99999999999999999999-")
        RangeSpec(start=0, end=0)
    """
    if not header:
        return WHOLE_FILE

    match = _RANGE_PATTERN.match(header.strip())
    if not match:
        return WHOLE_FILE

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) is not None else 0
    if start > MAX_RANGE_OFFSET or end > MAX_RANGE_OFFSET:
        return WHOLE_FILE
    return RangeSpec(start=start, end=end)


# =============================================================================
# VALIDATION METADATA
# =============================================================================

@dataclass(frozen=True)
class ValidationMetadata:
    """ETag and Last-Modified for one file; either may be missing."""

    etag: str = ""
    last_modified: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        headers = {}
        if self.last_modified:
            headers["Last-Modified"] = self.last_modified
        if self.etag:
            headers["ETag"] = self.etag
        return headers


def compute_etag(path: Path, chunk_size: int = 64 * 1024) -> str:
    """
    md5 hex digest of a file's content.

    Raises:
        OSError: The file can't be read.
    """
    digest = hashlib.md5(usedforsecurity=False)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ETagCache:
    """
    Thread-safe ETag memo keyed by (path, mtime_ns, size).

    Holds one entry per path; a stat that differs from the stored one
    recomputes and replaces it. The oldest path is evicted past
    ``max_entries``.
    """

    def __init__(self, max_entries: int = 1024):
        self.max_entries = max_entries
        self._entries: Dict[str, Tuple[int, int, str]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, path: Path, stat: os.stat_result) -> str:
        """
        ETag for ``path`` given its current stat.

        Raises:
            OSError: A recompute was needed and the file can't be read.
        """
        key = str(path)
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry[0] == stat.st_mtime_ns and entry[1] == stat.st_size:
                self.hits += 1
                return entry[2]

        # hash outside the lock; two threads may both compute, same result
        etag = compute_etag(path)

        with self._lock:
            self.misses += 1
            self._entries.pop(key, None)
            self._entries[key] = (stat.st_mtime_ns, stat.st_size, etag)
            while len(self._entries) > self.max_entries:
                del self._entries[next(iter(self._entries))]

        return etag

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# FILE RESPONDER
# =============================================================================

class FileResponder:
    """
    Turns (request path, hints) into a file response.

    Usage:
        responder = FileResponder(
            root_dir=".",
            cors_origin="http://127.0.0.1:5500",
        )
        response = responder.respond("/app.js", accepts_gzip=True)

    Args:
        root_dir: Directory files are served from.
        index_file: Default document for ``/``.
        cors_origin: Access-Control-Allow-Origin on every response.
        etag_cache: Optional ETagCache; None hashes on every request.
        chunk_size: Read size when copying the file.
    """

    def __init__(
        self,
        root_dir: str = ".",
        index_file: str = "index.html",
        cors_origin: str = "http://127.0.0.1:5500",
        etag_cache: Optional[ETagCache] = None,
        chunk_size: int = 64 * 1024,
    ):
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.cors_origin = cors_origin
        self.etag_cache = etag_cache
        self.chunk_size = chunk_size

    # ─────────────────────────────────────────────────────────────────────
    # RESOLVE
    # ─────────────────────────────────────────────────────────────────────

    def resolve(self, request_path: str) -> Tuple[Optional[Path], bool]:
        """
        Map a request path onto the filesystem.

        Returns:
            (path, is_default). path is None when the request points outside
            the root or can't be resolved at all (an embedded NUL byte).
        """
        if request_path in ("", "/"):
            return self.root_dir / self.index_file, True

        relative = request_path.lstrip("/")
        try:
            candidate = (self.root_dir / relative).resolve()
        except (OSError, ValueError) as e:
            logger.warning(f"Unresolvable path {request_path!r}: {e}")
            return None, False

        try:
            candidate.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Refusing path outside root: {request_path}")
            return None, False

        return candidate, False

    # ─────────────────────────────────────────────────────────────────────
    # VALIDATE
    # ─────────────────────────────────────────────────────────────────────

    def metadata(self, path: Path) -> ValidationMetadata:
        """
        ETag and Last-Modified for ``path``.

        A file that can't be stat'ed or read yields empty fields instead of
        an error; opening it later turns that into a 404.
        """
        try:
            stat = path.stat()
        except OSError:
            return ValidationMetadata()

        last_modified = format_http_timestamp(stat.st_mtime)

        try:
            if self.etag_cache is not None:
                etag = self.etag_cache.get(path, stat)
            else:
                etag = compute_etag(path, self.chunk_size)
        except OSError as e:
            logger.debug(f"No ETag for {path}: {e}")
            etag = ""

        return ValidationMetadata(etag=etag, last_modified=last_modified)

    # ─────────────────────────────────────────────────────────────────────
    # RESPOND
    # ─────────────────────────────────────────────────────────────────────

    def respond(
        self,
        request_path: str,
        accepts_gzip: bool = False,
        range_spec: RangeSpec = WHOLE_FILE,
        if_none_match: str = "",
    ) -> HTTPResponse:
        """
        Build the response for a GET of ``request_path``.

        Args:
            request_path: URL path, already percent-decoded.
            accepts_gzip: Encode the body with gzip.
            range_spec: Byte window to send.
            if_none_match: Raw If-None-Match header value.

        Returns:
            200 with the (sliced, maybe gzipped) bytes, 304, or 404.
        """
        path, is_default = self.resolve(request_path)
        if path is None:
            return self._not_found()

        if not is_default and not path.exists():
            return self._not_found()

        if path.is_dir():
            return self._not_found()

        meta = self.metadata(path)

        if if_none_match and meta.etag and if_none_match == meta.etag:
            return (ResponseBuilder()
                .status(HTTPStatus.NOT_MODIFIED)
                .header("Access-Control-Allow-Origin", self.cors_origin)
                .headers(meta.headers())
                .build())

        try:
            f = open(path, "rb")
        except OSError as e:
            logger.warning(f"Error opening file {path}: {e}")
            return self._not_found()

        with f:
            body = self._read_body(f, path, accepts_gzip, range_spec)

        builder = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .header("Access-Control-Allow-Origin", self.cors_origin)
            .headers(meta.headers())
            .content_type(get_content_type(path)))

        if accepts_gzip:
            builder.header("Content-Encoding", "gzip").header("Vary", "Accept-Encoding")

        return builder.body(body).build()

    def _read_body(
        self,
        f: BinaryIO,
        path: Path,
        accepts_gzip: bool,
        range_spec: RangeSpec,
    ) -> bytes:
        buffer = io.BytesIO()

        try:
            if range_spec.is_requested:
                f.seek(range_spec.start)
        except (OSError, ValueError, OverflowError) as e:
            logger.error(f"Seek to {range_spec.start} failed for {path}: {e}")

        if accepts_gzip:
            # mtime=0 keeps identical slices byte-identical when compressed
            with gzip.GzipFile(fileobj=buffer, mode="wb", mtime=0) as encoder:
                self._copy(f, encoder, range_spec.length, path)
        else:
            self._copy(f, buffer, range_spec.length, path)

        return buffer.getvalue()

    def _copy(self, src: BinaryIO, dst: BinaryIO, limit: Optional[int], path: Path):
        """
        Copy ``limit`` bytes (or to EOF when None). A read error stops the
        copy and is logged; what was copied so far stays.
        """
        remaining = limit
        try:
            while remaining is None or remaining > 0:
                size = self.chunk_size if remaining is None else min(self.chunk_size, remaining)
                chunk = src.read(size)
                if not chunk:
                    break
                dst.write(chunk)
                if remaining is not None:
                    remaining -= len(chunk)
        except OSError as e:
            logger.error(f"Error reading {path}: {e}")

    def _not_found(self) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .header("Access-Control-Allow-Origin", self.cors_origin)
            .text(NOT_FOUND_BODY)
            .build())
