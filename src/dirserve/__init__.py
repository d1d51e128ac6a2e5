"""
=============================================================================
DIRSERVE - Concurrent Static Directory Server
=============================================================================

Serves one directory tree over HTTP: directory listings as HTML pages and
files as raw bytes. Built on raw sockets and a fixed pool of worker
threads.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    dirserve/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m dirserve)
    ├── server.py            # FileServer orchestrator
    ├── handler.py           # Per-connection pipeline + work item
    ├── config.py            # ServerConfig dataclass
    ├── access_log.py        # One log line per connection
    ├── core/
    │   ├── socket_server.py # Accept loop
    │   ├── connection.py    # Client socket wrapper
    │   └── dispatcher.py    # Fixed worker pool
    ├── http/
    │   ├── request.py       # Request line parsing
    │   ├── response.py      # Response serialization
    │   └── status_codes.py  # 200 / 403 / 404
    └── handlers/
        ├── resolver.py      # Path containment
        └── static.py        # Listings and file transfer

=============================================================================
QUICK START
=============================================================================

    from dirserve import FileServer, ServerConfig

    server = FileServer(ServerConfig(root="/srv/files", port=8123, workers=4))
    server.run()

    # or: python -m dirserve 8123 4 --root /srv/files

=============================================================================
"""

__version__ = "1.0.0"

from .server import FileServer, serve
from .config import ServerConfig

__all__ = ["FileServer", "ServerConfig", "serve", "__version__"]
