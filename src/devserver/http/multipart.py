"""
=============================================================================
MULTIPART FORM PARSER
=============================================================================

Parses ``multipart/form-data`` request bodies, the format browsers use for
``<form enctype="multipart/form-data">`` and ``fetch(url, {body: FormData})``.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  Content-Type: multipart/form-data; boundary=----WebKitFormBoundary │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ------WebKitFormBoundary\r\n                                      │
    │   Content-Disposition: form-data; name="file"; filename="a.png"\r\n │
    │   Content-Type: image/png\r\n                                       │
    │   \r\n                                                              │
    │   <raw bytes of a.png>\r\n                                          │
    │   ------WebKitFormBoundary\r\n                                      │
    │   Content-Disposition: form-data; name="note"\r\n                   │
    │   \r\n                                                              │
    │   hello\r\n                                                         │
    │   ------WebKitFormBoundary--\r\n                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The body is handed to the standard library MIME parser (``email``) with the
HTTP policy; it already knows boundaries, quoted and RFC 2231 encoded
parameters, and keeps part payloads byte-exact. What it does not do is fail:
a broken body comes back as a message with ``defects``. parse_multipart()
turns the defects that mean "this is not a usable form" into
MultipartError.

=============================================================================
"""

from dataclasses import dataclass, field
from email import errors as email_errors
from email.parser import BytesParser
from email.policy import HTTP
from typing import Optional, Dict, List


class MultipartError(ValueError):
    """The body is not a well-formed multipart/form-data payload."""


# Defects after which the part list can't be trusted
_FATAL_DEFECTS = (
    email_errors.NoBoundaryInMultipartDefect,
    email_errors.StartBoundaryNotFoundDefect,
    email_errors.CloseBoundaryNotFoundDefect,
    email_errors.MultipartInvariantViolationDefect,
)


@dataclass
class FormPart:
    """
    One part of a multipart form.

    ``filename`` is None for plain fields and the client-supplied name
    (unsanitized) for file fields.
    """

    name: str
    data: bytes
    filename: Optional[str] = None
    content_type: str = "text/plain"

    @property
    def is_file(self) -> bool:
        return self.filename is not None

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


@dataclass
class MultipartForm:
    """Parsed form: parts in body order, with lookup by field name."""

    parts: List[FormPart] = field(default_factory=list)

    def get(self, name: str) -> Optional[FormPart]:
        """First part with this field name."""
        for part in self.parts:
            if part.name == name:
                return part
        return None

    def get_file(self, name: str) -> Optional[FormPart]:
        """First part with this field name that carries a filename."""
        for part in self.parts:
            if part.name == name and part.is_file:
                return part
        return None

    @property
    def fields(self) -> Dict[str, str]:
        """Non-file fields as text; the first value wins on duplicates."""
        values: Dict[str, str] = {}
        for part in self.parts:
            if not part.is_file:
                values.setdefault(part.name, part.text)
        return values

    @property
    def files(self) -> List[FormPart]:
        return [part for part in self.parts if part.is_file]


def parse_multipart(
    content_type: str,
    body: bytes,
    max_size: Optional[int] = None
) -> MultipartForm:
    """
    Parse a multipart/form-data body.

    Args:
        content_type: Full Content-Type header value, boundary included.
        body: Raw request body.
        max_size: Reject bodies larger than this many bytes.

    Returns:
        The parsed MultipartForm.

    Raises:
        MultipartError: Wrong media type, missing boundary, body too large,
            or a body the boundary does not frame.
    """
    if max_size is not None and len(body) > max_size:
        raise MultipartError(f"Form body too large: {len(body)} > {max_size} bytes")

    media_type = content_type.split(";")[0].strip().lower()
    if media_type != "multipart/form-data":
        raise MultipartError(f"Not a multipart form: {media_type or 'no Content-Type'}")

    # The MIME parser wants a whole message, so prepend the one header it
    # needs to find the boundary.
    envelope = (
        b"Content-Type: " + content_type.encode("latin-1", errors="replace") +
        b"\r\nMIME-Version: 1.0\r\n\r\n"
    )
    message = BytesParser(policy=HTTP).parsebytes(envelope + body)

    if not message.is_multipart():
        raise MultipartError("Body is not multipart")
    if message.get_boundary() is None:
        raise MultipartError("Missing multipart boundary")

    for defect in message.defects:
        if isinstance(defect, _FATAL_DEFECTS):
            raise MultipartError(f"Malformed multipart body: {type(defect).__name__}")

    form = MultipartForm()
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if name is None:
            continue  # not a form-data part

        payload = part.get_payload(decode=True)
        form.parts.append(FormPart(
            name=str(name),
            data=payload if payload is not None else b"",
            filename=part.get_filename(),
            content_type=part.get_content_type(),
        ))

    return form
