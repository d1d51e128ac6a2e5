"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps an accepted client socket with the three operations the request
pipeline needs: read the request once, write response bytes, close.

=============================================================================
ONE READ, ONE REQUEST
=============================================================================

TCP is a byte stream, so a single recv() may in principle return only
part of what the client sent. This server only needs the FIRST LINE of
the request, which in practice always arrives in the first segment:

    recv(1024) → b"GET /docs/ HTTP/1.1\r\nHost: localhost\r\n..."
                   └─────────────────┘
                   all we look at

Whatever does not fit in the buffer (long headers, a body) is never
read. close() drains it so the kernel does not answer our FIN with a RST
that could destroy the response still in flight.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READ_REQUEST ──► PARSE_REQUEST ──► RESOLVE_PATH ──► CLASSIFY
                 │                                   │              │
                 │ read error                        │ 403 / 404    ▼
                 │                                   │           RESPOND
                 ▼                                   ▼              │
               CLOSED ◄──────────────────────────────┴──────────────┘

Every path ends in CLOSED. The state is set by the connection handler
and is only used for logging and tests.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionReadError(Exception):
    """The request could not be read from the socket."""


class ConnectionState(Enum):
    """Where a connection is in the request pipeline."""
    NEW = "new"                      # Accepted, waiting for a worker
    READ_REQUEST = "read_request"    # Reading the request buffer
    PARSE_REQUEST = "parse_request"  # Extracting the path
    RESOLVE_PATH = "resolve_path"    # Canonicalize + containment check
    CLASSIFY = "classify"            # File, directory, or not found
    RESPOND = "respond"              # Writing the response
    CLOSED = "closed"                # Socket released


@dataclass
class Connection:
    """
    Represents one accepted client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        state: Current pipeline state.
        created_at: Timestamp when the connection was accepted.
        bytes_sent: Total bytes successfully written.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    bytes_sent: int = 0

    buffer_size: int = 1024
    timeout: Optional[float] = None   # None = block forever

    def __post_init__(self):
        """Put the socket in blocking mode with the configured timeout."""
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0] if self.address else "-"

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Read up to buffer_size bytes of request data.

        A single recv(). An empty result means the client closed its
        side without sending anything.

        Returns:
            The bytes received (possibly empty).

        Raises:
            ConnectionReadError: If the socket read fails or times out.
        """
        try:
            return self.socket.recv(self.buffer_size)
        except OSError as e:
            # socket.timeout is an OSError subclass
            raise ConnectionReadError(f"Read failed: {e}") from e

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send bytes to the client.

        Uses sendall(), so either everything is written or an error is
        reported.

        Returns:
            True if the data was sent, False if the connection is broken.
        """
        try:
            self.socket.sendall(data)
            self.bytes_sent += len(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): send FIN, the client sees end of response
        2. Drain unread request bytes (short timeout)
        3. close(): release the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.bytes_sent} bytes")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
