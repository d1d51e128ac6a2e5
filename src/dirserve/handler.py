"""
=============================================================================
CONNECTION HANDLER
=============================================================================

The per-connection pipeline. Runs on a worker thread, start to finish,
for exactly one request.

=============================================================================
PIPELINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   READ_REQUEST    recv(buffer_size) once                            │
    │        │          └── error? log, close, no response                │
    │        ▼                                                             │
    │   PARSE_REQUEST   second token of the first line, URL-decoded       │
    │        │          └── missing/undecodable? use "/"                  │
    │        ▼                                                             │
    │   RESOLVE_PATH    PathResolver.resolve()                            │
    │        │          ├── PathForbidden → 403, close                    │
    │        │          └── PathNotFound  → 404, close                    │
    │        ▼                                                             │
    │   CLASSIFY        file / directory / not found                      │
    │        │                                                             │
    │        ▼                                                             │
    │   RESPOND         listing, file bytes, or 404                       │
    │        │                                                             │
    │        ▼                                                             │
    │   CLOSED          always, via the Connection context manager        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing is kept between connections. The only shared objects are the
resolver (whose root is immutable) and the content handler (stateless).

=============================================================================
"""

import logging
from typing import Optional

from .access_log import AccessLog, AccessLogger
from .core.connection import Connection, ConnectionReadError, ConnectionState
from .core.dispatcher import WorkItem
from .handlers.resolver import PathResolver, ResolveError
from .handlers.static import StaticContentHandler
from .http.request import RequestLine, parse_request_line
from .http.response import error_response
from .http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class ConnectionHandler:
    """
    Serves one request per connection.

    Usage:
        handler = ConnectionHandler(resolver, StaticContentHandler())
        record = handler.handle(conn)   # conn is closed afterwards
    """

    def __init__(
        self,
        resolver: PathResolver,
        content: StaticContentHandler,
        access_logger: Optional[AccessLogger] = None,
    ):
        self.resolver = resolver
        self.content = content
        self.access_logger = access_logger

    def handle(self, conn: Connection) -> AccessLog:
        """
        Run the full pipeline on a connection and close it.

        Returns:
            The access log record for the connection (also emitted to the
            access logger, when there is one).
        """
        request: Optional[RequestLine] = None
        status = 0

        try:
            with conn:
                conn.state = ConnectionState.READ_REQUEST
                try:
                    data: Optional[bytes] = conn.read_request()
                except ConnectionReadError as e:
                    logger.warning(f"[{conn.id}] {e}, closing without response")
                    data = None

                if data is not None:
                    conn.state = ConnectionState.PARSE_REQUEST
                    request = parse_request_line(data)
                    logger.debug(f"[{conn.id}] {request.method or '-'} {request.path}")

                    status = int(self._serve(request, conn))
        finally:
            # Also runs when the pipeline raised; status stays 0 then
            record = self._finish(conn, request, status)

        return record

    def _serve(self, request: RequestLine, conn: Connection) -> HTTPStatus:
        conn.state = ConnectionState.RESOLVE_PATH
        try:
            resolved = self.resolver.resolve(request.path)
        except ResolveError as e:
            logger.debug(f"[{conn.id}] {e}")
            conn.send_response(error_response(e.status_code).to_bytes())
            return e.status_code

        conn.state = ConnectionState.CLASSIFY
        kind = self.content.classify(resolved.path)

        conn.state = ConnectionState.RESPOND
        return self.content.respond(resolved, kind, conn)

    def _finish(self, conn: Connection, request: Optional[RequestLine], status: int) -> AccessLog:
        record = AccessLog(
            connection_id=conn.id,
            client_ip=conn.client_ip,
            method=(request.method or "-") if request else "-",
            path=request.path if request else "-",
            status_code=status,
            bytes_sent=conn.bytes_sent,
            duration_ms=conn.age * 1000,
            timestamp=AccessLogger.timestamp(),
        )
        if self.access_logger is not None:
            self.access_logger.emit(record)
        return record


class ConnectionTask(WorkItem):
    """Work item that runs one connection through a ConnectionHandler."""

    def __init__(self, conn: Connection, handler: ConnectionHandler):
        self.conn = conn
        self.handler = handler

    def execute(self) -> None:
        self.handler.handle(self.conn)

    def __repr__(self) -> str:
        return f"ConnectionTask({self.conn.id}, {self.conn.client_ip})"
