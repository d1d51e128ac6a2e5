"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Builds the bytes that go back over the wire.

=============================================================================
RESPONSE FORMAT
=============================================================================

Every response this server sends has the same shape:

    ┌─────────────────────────────────────────────────────────────────┐
    │  HTTP/1.1 200 OK\r\n                     ← Status line           │
    │  Content-Type: application/octet-stream\r\n                      │
    │  Content-Length: 5\r\n                   ← Exact body size       │
    │  \r\n                                    ← End of head           │
    │  hello                                   ← Body                  │
    └─────────────────────────────────────────────────────────────────┘

Only two headers are ever emitted, always in this order. There is no
keep-alive: the connection is closed after the body, and Content-Length
tells the client where the body ends.

=============================================================================
HEAD AND BODY ARE SEPARABLE
=============================================================================

Large files are not loaded into memory. For those, the handler builds a
response with an explicit Content-Length and an EMPTY body, writes
head_bytes(), then streams the file in chunks:

    response = (ResponseBuilder()
        .octet_stream()
        .content_length(size)
        .build())

    conn.send_response(response.head_bytes())
    for chunk in file_chunks:
        conn.send_response(chunk)

Small files and HTML pages carry their body and go out with to_bytes().
Both paths produce identical bytes on the wire.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict

from .status_codes import HTTPStatus


HTML_CONTENT_TYPE = "text/html"
BINARY_CONTENT_TYPE = "application/octet-stream"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Headers keep insertion order, which is the order they are written.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Example: "HTTP/1.1 403 Forbidden"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def content_length(self) -> int:
        """Announced body size (explicit header, or the body length)."""
        if "Content-Length" in self.headers:
            return int(self.headers["Content-Length"])
        return len(self.body)

    def head_bytes(self) -> bytes:
        """
        Serialize the status line and headers, including the blank line.

        Content-Length is appended from the body when it was not set
        explicitly.
        """
        response_headers = dict(self.headers)
        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n"

    def to_bytes(self) -> bytes:
        """Serialize head and body in one buffer."""
        return self.head_bytes() + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .html("<h1>404 Not Found</h1>")
            .build())

    Each method returns self except build().
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        """Set the HTTP status code."""
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Add a single response header."""
        self._headers[name] = value
        return self

    def content_length(self, length: int) -> "ResponseBuilder":
        """
        Announce a body size explicitly.

        Used when the body is streamed after the head instead of being
        held in the response.
        """
        return self.header("Content-Length", str(length))

    def html(self, html: str) -> "ResponseBuilder":
        """Set an HTML body (UTF-8) and its Content-Type."""
        self._headers["Content-Type"] = HTML_CONTENT_TYPE
        self._body = html.encode("utf-8")
        return self

    def octet_stream(self, content: bytes = b"") -> "ResponseBuilder":
        """Set a raw binary body and its Content-Type."""
        self._headers["Content-Type"] = BINARY_CONTENT_TYPE
        self._body = content
        return self

    def build(self) -> HTTPResponse:
        """Build and return the HTTPResponse object."""
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def error_response(status: HTTPStatus) -> HTTPResponse:
    """
    Create an HTML error response.

    Body format: <h1>404 Not Found</h1>
    """
    return (ResponseBuilder()
        .status(status)
        .html(f"<h1>{int(status)} {status.phrase}</h1>")
        .build())


def not_found() -> HTTPResponse:
    """Create a 404 Not Found response."""
    return error_response(HTTPStatus.NOT_FOUND)
