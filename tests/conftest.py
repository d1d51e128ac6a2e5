"""
pytest configuration and fixtures.
"""

import os
import socket
import threading
import time
from typing import Dict, Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dirserve import FileServer, ServerConfig
from dirserve.core.connection import ConnectionReadError, ConnectionState


# =============================================================================
# FILESYSTEM
# =============================================================================

@pytest.fixture
def served_root(tmp_path: Path) -> Path:
    """
    A small tree to serve, plus things next to it that must stay private.

        tmp_path/
        ├── root/                  ← served
        │   ├── hello.txt
        │   ├── a b#1.txt
        │   ├── empty.bin
        │   └── docs/
        │       ├── notes.txt
        │       └── guides/
        ├── root-evil/secret.txt   ← shares the root's name as a prefix
        └── outside.txt
    """
    root = tmp_path / "root"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"hello world")
    (root / "a b#1.txt").write_bytes(b"spaces and hash")
    (root / "empty.bin").write_bytes(b"")
    (root / "docs").mkdir()
    (root / "docs" / "notes.txt").write_bytes(b"some notes")
    (root / "docs" / "guides").mkdir()

    (tmp_path / "root-evil").mkdir()
    (tmp_path / "root-evil" / "secret.txt").write_bytes(b"secret")
    (tmp_path / "outside.txt").write_bytes(b"outside")

    return root


# =============================================================================
# FAKE CONNECTION
# =============================================================================

class RecordingConnection:
    """
    Stands in for core.connection.Connection without a socket.

    Records every send_response() call. `request` is what read_request()
    returns; pass read_error=True to make it raise instead. `fail_after`
    makes sends fail once that many calls have succeeded.
    """

    def __init__(
        self,
        request: bytes = b"GET / HTTP/1.1\r\n\r\n",
        read_error: bool = False,
        fail_after: Optional[int] = None,
    ):
        self.request = request
        self.read_error = read_error
        self.fail_after = fail_after

        self.id = "test0001"
        self.address = ("127.0.0.1", 50000)
        self.state = ConnectionState.NEW
        self.created_at = time.time()
        self.bytes_sent = 0
        self.sent: List[bytes] = []
        self.closed = False
        self.states_seen: List[ConnectionState] = []

    def __setattr__(self, name, value):
        if name == "state" and "states_seen" in self.__dict__:
            self.states_seen.append(value)
        super().__setattr__(name, value)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    @property
    def data(self) -> bytes:
        """Everything sent, concatenated."""
        return b"".join(self.sent)

    def read_request(self) -> bytes:
        if self.read_error:
            raise ConnectionReadError("Read failed: connection reset")
        return self.request

    def send_response(self, data: bytes) -> bool:
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            return False
        self.sent.append(data)
        self.bytes_sent += len(data)
        return True

    def close(self):
        self.closed = True
        self.state = ConnectionState.CLOSED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


@pytest.fixture
def recording_connection():
    """Factory for RecordingConnection."""
    return RecordingConnection


def split_response(raw: bytes) -> Tuple[str, Dict[str, str], bytes]:
    """Split raw response bytes into (status line, headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers[name] = value
    return lines[0], headers, body


def header_names(raw: bytes) -> List[str]:
    """Header names in the order they were written."""
    head = raw.partition(b"\r\n\r\n")[0].decode("utf-8")
    return [line.partition(":")[0] for line in head.split("\r\n")[1:]]


# =============================================================================
# REAL SERVER
# =============================================================================

@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class RunningServer:
    """FileServer running in a background thread."""

    def __init__(self, server: FileServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_listening(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server and wait for run() to return."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def connect(self) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=10.0)
        return sock

    def send_raw(self, data: bytes) -> bytes:
        """Send raw request bytes and read until the server closes."""
        with self.connect() as sock:
            if data:
                sock.sendall(data)
            return read_all(sock)

    def get(self, target: str) -> bytes:
        return self.send_raw(f"GET {target} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode("utf-8"))


def read_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def server_factory(served_root: Path) -> Generator:
    """Build and start servers over served_root; all are stopped at teardown."""
    started: List[RunningServer] = []

    def factory(**overrides) -> RunningServer:
        settings = dict(
            host="127.0.0.1",
            port=0,
            workers=2,
            root=str(served_root),
            timeout=5.0,
            log_level="WARNING",
        )
        settings.update(overrides)
        running = RunningServer(FileServer(ServerConfig(**settings)))
        running.start()
        started.append(running)
        return running

    yield factory

    for running in started:
        running.stop()


@pytest.fixture
def running_server(server_factory) -> RunningServer:
    """A started server over served_root with two workers."""
    return server_factory()


@pytest.fixture
def fifo_path(served_root: Path) -> Path:
    """A named pipe inside the served root (skipped where unsupported)."""
    if not hasattr(os, "mkfifo"):
        pytest.skip("os.mkfifo not available")
    path = served_root / "pipe"
    os.mkfifo(path)
    return path


@pytest.fixture
def non_utf8_file(served_root: Path) -> bytes:
    """A file named b"bad\\xff.bin" in the served root (skipped where the filesystem refuses it)."""
    path = os.path.join(os.fsencode(served_root), b"bad\xff.bin")
    try:
        with open(path, "wb") as f:
            f.write(b"x")
    except OSError:
        pytest.skip("filesystem rejects non-UTF-8 names")
    return path
