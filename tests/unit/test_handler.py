"""
Unit tests for the per-connection pipeline.
"""

import json
import logging
from pathlib import Path

import pytest

from conftest import RecordingConnection, split_response
from dirserve.access_log import AccessLogger
from dirserve.core.connection import ConnectionState
from dirserve.handler import ConnectionHandler, ConnectionTask
from dirserve.handlers.resolver import PathResolver, ServerRoot
from dirserve.handlers.static import StaticContentHandler


@pytest.fixture
def handler(served_root: Path) -> ConnectionHandler:
    return ConnectionHandler(
        resolver=PathResolver(ServerRoot.establish(served_root)),
        content=StaticContentHandler(),
    )


def request(target: str) -> bytes:
    return f"GET {target} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode("utf-8")


class TestPipeline:
    """Tests for ConnectionHandler.handle()."""

    def test_file(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/hello.txt"))
        record = handler.handle(conn)

        status_line, _, body = split_response(conn.data)
        assert status_line == "HTTP/1.1 200 OK"
        assert body == b"hello world"
        assert record.status_code == 200

    def test_directory(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/docs"))
        handler.handle(conn)

        _, headers, body = split_response(conn.data)
        assert headers["Content-Type"] == "text/html"
        assert b"Index of /docs" in body

    def test_encoded_name(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/a%20b%231.txt"))
        handler.handle(conn)
        assert split_response(conn.data)[2] == b"spaces and hash"

    def test_traversal_is_403(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/../outside.txt"))
        record = handler.handle(conn)

        status_line, _, body = split_response(conn.data)
        assert status_line == "HTTP/1.1 403 Forbidden"
        assert body == b"<h1>403 Forbidden</h1>"
        assert record.status_code == 403

    def test_missing_is_404(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/nope.txt"))
        handler.handle(conn)

        status_line, _, body = split_response(conn.data)
        assert status_line == "HTTP/1.1 404 Not Found"
        assert body == b"<h1>404 Not Found</h1>"

    def test_fifo_is_404(self, handler: ConnectionHandler, fifo_path: Path):
        conn = RecordingConnection(request("/pipe"))
        handler.handle(conn)
        assert conn.data.startswith(b"HTTP/1.1 404 Not Found\r\n")

    def test_empty_request_lists_root(self, handler: ConnectionHandler):
        conn = RecordingConnection(b"")
        handler.handle(conn)

        _, _, body = split_response(conn.data)
        assert b"Index of /" in body
        assert b"hello.txt" in body

    def test_bad_escape_lists_root(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/%ff"))
        handler.handle(conn)
        assert b"Index of /<" in split_response(conn.data)[2]

    def test_read_error_sends_nothing(self, handler: ConnectionHandler):
        conn = RecordingConnection(read_error=True)
        record = handler.handle(conn)

        assert conn.sent == []
        assert conn.closed
        assert record.status_code == 0
        assert record.path == "-"

    def test_connection_always_closed(self, handler: ConnectionHandler):
        for target in ["/hello.txt", "/docs", "/../x", "/missing"]:
            conn = RecordingConnection(request(target))
            handler.handle(conn)
            assert conn.closed
            assert conn.state is ConnectionState.CLOSED

    def test_state_sequence_for_file(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/hello.txt"))
        handler.handle(conn)

        assert conn.states_seen == [
            ConnectionState.READ_REQUEST,
            ConnectionState.PARSE_REQUEST,
            ConnectionState.RESOLVE_PATH,
            ConnectionState.CLASSIFY,
            ConnectionState.RESPOND,
            ConnectionState.CLOSED,
        ]

    def test_state_sequence_for_forbidden(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/../outside.txt"))
        handler.handle(conn)

        assert conn.states_seen == [
            ConnectionState.READ_REQUEST,
            ConnectionState.PARSE_REQUEST,
            ConnectionState.RESOLVE_PATH,
            ConnectionState.CLOSED,
        ]

    def test_unexpected_error_still_closes(self, handler: ConnectionHandler, monkeypatch):
        def explode(*args):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(handler.content, "classify", explode)
        conn = RecordingConnection(request("/hello.txt"))

        with pytest.raises(RuntimeError):
            handler.handle(conn)
        assert conn.closed

    def test_root_with_non_utf8_name(self, handler: ConnectionHandler, non_utf8_file: bytes):
        conn = RecordingConnection(request("/"))
        record = handler.handle(conn)

        status_line, _, body = split_response(conn.data)
        assert status_line == "HTTP/1.1 200 OK"
        assert b"hello.txt" in body
        assert record.status_code == 200


class TestAccessRecord:
    """The handler emits one access log record per connection."""

    def test_record_fields(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/hello.txt"))
        record = handler.handle(conn)

        assert record.connection_id == conn.id
        assert record.client_ip == "127.0.0.1"
        assert record.method == "GET"
        assert record.path == "/hello.txt"
        assert record.bytes_sent == len(conn.data)
        assert record.duration_ms >= 0

    def test_emitted_once(self, served_root: Path, caplog):
        handler = ConnectionHandler(
            resolver=PathResolver(ServerRoot.establish(served_root)),
            content=StaticContentHandler(),
            access_logger=AccessLogger(log_format="json"),
        )

        with caplog.at_level(logging.INFO, logger="dirserve.access"):
            handler.handle(RecordingConnection(request("/hello.txt")))

        lines = [r.getMessage() for r in caplog.records if r.name == "dirserve.access"]
        assert len(lines) == 1
        assert json.loads(lines[0])["status_code"] == 200

    def test_emitted_when_pipeline_raises(self, served_root: Path, caplog, monkeypatch):
        handler = ConnectionHandler(
            resolver=PathResolver(ServerRoot.establish(served_root)),
            content=StaticContentHandler(),
            access_logger=AccessLogger(log_format="json"),
        )

        def explode(*args):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(handler.content, "classify", explode)

        with caplog.at_level(logging.INFO, logger="dirserve.access"):
            with pytest.raises(RuntimeError):
                handler.handle(RecordingConnection(request("/hello.txt")))

        lines = [r.getMessage() for r in caplog.records if r.name == "dirserve.access"]
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["path"] == "/hello.txt"
        assert entry["status_code"] == 0


class TestConnectionTask:
    def test_execute_runs_handler(self, handler: ConnectionHandler):
        conn = RecordingConnection(request("/hello.txt"))
        ConnectionTask(conn, handler).execute()

        assert conn.closed
        assert split_response(conn.data)[2] == b"hello world"
