"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the directory server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m dirserve 9000 8                                  │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── DIRSERVE_PORT=9000 python -m dirserve                      │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE SERVED ROOT
=============================================================================

`root` defaults to the process's current working directory, read ONCE
when the server starts. After that the root never changes: every worker
checks paths against the same canonical directory.

=============================================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the directory server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    CONCURRENCY
    - workers

    CONTENT
    - root

    LOGGING
    - log_level, log_format, access_log

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind to. "0.0.0.0" listens on all interfaces."""

    port: int = 8123
    """Port to listen on. 0 lets the OS pick a free port."""

    backlog: int = 128
    """Maximum number of connections queued by the kernel before accept()."""

    buffer_size: int = 1024
    """
    Size of the single request read, in bytes.
    Only the request line is used, so this can stay small.
    """

    timeout: Optional[float] = None
    """
    Per-connection socket timeout in seconds.
    None = no timeout: a client that never sends keeps its worker busy
    until it disconnects.
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 4
    """Number of worker threads. Fixed for the life of the process."""

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    root: Optional[str] = None
    """Directory to serve. None = current working directory at startup."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)."""

    log_format: str = "text"
    """Access log format: 'text' (common log style) or 'json'."""

    access_log: bool = True
    """Emit one access log line per connection."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        DIRSERVE_HOST        Bind address (default: 127.0.0.1)
        DIRSERVE_PORT        Port (default: 8123)
        DIRSERVE_WORKERS     Worker threads (default: 4)
        DIRSERVE_ROOT        Served directory (default: cwd)
        DIRSERVE_TIMEOUT     Socket timeout in seconds (default: none)
        DIRSERVE_LOG_LEVEL   Logging level (default: INFO)
        DIRSERVE_LOG_FORMAT  text or json (default: text)

        =====================================================================
        """
        timeout = os.getenv("DIRSERVE_TIMEOUT")
        return cls(
            host=os.getenv("DIRSERVE_HOST", "127.0.0.1"),
            port=int(os.getenv("DIRSERVE_PORT", "8123")),
            workers=int(os.getenv("DIRSERVE_WORKERS", "4")),
            root=os.getenv("DIRSERVE_ROOT"),
            timeout=float(timeout) if timeout else None,
            log_level=os.getenv("DIRSERVE_LOG_LEVEL", "INFO"),
            log_format=os.getenv("DIRSERVE_LOG_FORMAT", "text"),
        )

    def resolve_root(self) -> Path:
        """Absolute path of the directory to serve."""
        return Path(self.root).absolute() if self.root else Path.cwd()

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at startup so a bad value fails immediately.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

        if self.buffer_size < 64:
            raise ValueError(f"buffer_size must be >= 64, got {self.buffer_size}")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {', '.join(LOG_FORMATS)}, got {self.log_format!r}"
            )
