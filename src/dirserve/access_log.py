"""
=============================================================================
ACCESS LOG
=============================================================================

One line per connection, written to the "dirserve.access" logger after
the connection has been closed.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default, common log style):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [10/Jun/2024:10:55:36 +0000] "GET /docs/" 200 912 1.84ms│
    │ ────────────────────────────────────────────────────────────────────│
    │ IP          Timestamp          Method/Path   Status Bytes Duration  │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (for log aggregators):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"connection_id": "a1b2c3d4", "client_ip": "127.0.0.1",             │
    │  "method": "GET", "path": "/docs/", "status_code": 200,             │
    │  "bytes_sent": 912, "duration_ms": 1.84, "timestamp": "..."}        │
    └─────────────────────────────────────────────────────────────────────┘

A status of 0 means the connection ended before any response was
written (the request could not be read).

The logger is namespaced so it can be routed on its own:

    logging.getLogger("dirserve.access").addHandler(file_handler)

=============================================================================
"""

import json
import time
import logging
from dataclasses import dataclass, asdict

from .config import LOG_FORMATS


logger = logging.getLogger("dirserve.access")


@dataclass
class AccessLog:
    """
    Structured record for one connection.

    Fields:
        connection_id: Short id shared with the connection's other log lines.
        client_ip:     Peer address.
        method:        First token of the request line ("-" if absent).
        path:          Decoded request path ("-" if never parsed).
        status_code:   Status written, 0 if none.
        bytes_sent:    Bytes actually written to the socket.
        duration_ms:   Time from accept to close.
        timestamp:     When the record was made.
    """

    connection_id: str
    client_ip: str
    method: str
    path: str
    status_code: int
    bytes_sent: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.bytes_sent} {self.duration_ms:.2f}ms'
        )


class AccessLogger:
    """
    Formats and emits AccessLog records.

        access = AccessLogger(log_format="json")
        access.emit(record)
    """

    def __init__(self, log_format: str = "text", enabled: bool = True, level: int = logging.INFO):
        if log_format not in LOG_FORMATS:
            raise ValueError(f"Unknown access log format: {log_format!r}")
        self.log_format = log_format
        self.enabled = enabled
        self.level = level

    @staticmethod
    def timestamp() -> str:
        return time.strftime("%d/%b/%Y:%H:%M:%S %z")

    def format(self, record: AccessLog) -> str:
        if self.log_format == "json":
            return json.dumps(record.to_dict())
        return record.to_text()

    def emit(self, record: AccessLog) -> None:
        if not self.enabled:
            return
        logger.log(self.level, self.format(record))
