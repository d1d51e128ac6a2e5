"""
=============================================================================
REQUEST LINE PARSING
=============================================================================

This server reads exactly one thing from a request: the path on the
first line. Everything after the first line (headers, body) is ignored.

=============================================================================
WHAT WE LOOK AT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────┐
    │  GET /docs/my%20notes.txt HTTP/1.1\r\n      ← only this line     │
    │  Host: localhost:8123\r\n                   ← ignored            │
    │  User-Agent: curl/8.0\r\n                   ← ignored            │
    │  \r\n                                                            │
    └─────────────────────────────────────────────────────────────────┘

    "GET /docs/my%20notes.txt HTTP/1.1".split()
      │          │                │
      │          │                └── tokens[2]  version
      │          └─────────────────── tokens[1]  raw target
      └────────────────────────────── tokens[0]  method (not interpreted)

    unquote("/docs/my%20notes.txt") → "/docs/my notes.txt"

=============================================================================
MISSING OR BROKEN TARGETS
=============================================================================

A missing or undecodable target is not an error. The request simply
falls back to the root path "/":

    b""                          → path "/"
    b"GET\r\n"                   → path "/"
    b"GET /%FF%FE HTTP/1.1\r\n"  → path "/"  (not valid UTF-8)

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote


DEFAULT_PATH = "/"


@dataclass(frozen=True)
class RequestLine:
    """
    Parsed view of the first line of a request.

    Attributes:
        method: First token, e.g. "GET". Empty when the line is blank.
        raw_target: Second token exactly as sent, or None if absent.
        path: URL-decoded target, "/" when absent or undecodable.
        version: Third token, e.g. "HTTP/1.1". Empty when absent.
    """
    method: str
    raw_target: Optional[str]
    path: str
    version: str = ""


def parse_request_line(data: bytes) -> RequestLine:
    """
    Parse the first line of a raw request buffer.

    The buffer is decoded as UTF-8 with replacement characters, so any
    byte sequence produces a RequestLine.

    Args:
        data: Raw bytes read from the connection.

    Returns:
        The parsed request line.
    """
    text = data.decode("utf-8", errors="replace")
    first_line = text.split("\n", 1)[0].rstrip("\r")
    tokens = first_line.split()

    method = tokens[0] if tokens else ""
    raw_target = tokens[1] if len(tokens) > 1 else None
    version = tokens[2] if len(tokens) > 2 else ""

    return RequestLine(
        method=method,
        raw_target=raw_target,
        path=decode_path(raw_target),
        version=version,
    )


def decode_path(raw_target: Optional[str]) -> str:
    """
    URL-decode a request target.

    Returns DEFAULT_PATH when there is no target or when the
    percent-escapes do not decode to valid UTF-8.
    """
    if not raw_target:
        return DEFAULT_PATH
    try:
        return unquote(raw_target, errors="strict")
    except UnicodeDecodeError:
        return DEFAULT_PATH
