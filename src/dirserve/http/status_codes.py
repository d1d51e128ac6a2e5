"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can put on the wire.

A directory server only needs a handful of them:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    STATUS CODES WE SEND                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   200 OK          Directory listing or file contents                │
    │   403 Forbidden   Resolved path escapes the served root             │
    │   404 Not Found   Path missing, or not a file/directory             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── Reason phrase (HTTPStatus.phrase)
              └───────── Status code (int value of the enum)

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so a status compares equal to its number:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200                        # Listing or file body follows
    FORBIDDEN = 403                 # Containment check failed
    NOT_FOUND = 404                 # Nothing servable at that path

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
}
