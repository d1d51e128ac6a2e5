"""
=============================================================================
HTTP WIRE FORMAT
=============================================================================

The minimal slice of HTTP/1.1 this server speaks.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST LINE (request.py)                                           │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Input:   b"GET /a%20b.txt HTTP/1.1\r\n..."                          │
    │ Output:  RequestLine(method="GET", path="/a b.txt", ...)            │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │ RESPONSES (response.py, status_codes.py)                            │
    │ ─────────────────────────────────────────────────────────────────── │
    │ HTTPResponse → head_bytes() / to_bytes()                            │
    │ Status line + Content-Type + Content-Length + body                  │
    └─────────────────────────────────────────────────────────────────────┘
"""

from .request import RequestLine, parse_request_line, decode_path, DEFAULT_PATH
from .response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    not_found,
    HTML_CONTENT_TYPE,
    BINARY_CONTENT_TYPE,
)
from .status_codes import HTTPStatus

__all__ = [
    # Request line
    "RequestLine",
    "parse_request_line",
    "decode_path",
    "DEFAULT_PATH",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "error_response",
    "not_found",
    "HTML_CONTENT_TYPE",
    "BINARY_CONTENT_TYPE",

    # Status codes
    "HTTPStatus",
]
