"""
=============================================================================
DIRECTORY SERVER
=============================================================================

The orchestrator. Builds every component from a ServerConfig, wires them
together and runs the accept loop.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   FileServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌────────────────┐   ┌──────────────────┐    │
    │    │ SocketServer │    │ TaskDispatcher │   │ConnectionHandler │    │
    │    │  (accepting) │    │   (workers)    │   │   (pipeline)     │    │
    │    └──────────────┘    └────────────────┘   └────────┬─────────┘    │
    │                                                      │              │
    │                                      ┌───────────────┴──────┐       │
    │                                      ▼                      ▼       │
    │                              ┌──────────────┐  ┌─────────────────┐  │
    │                              │ PathResolver │  │ StaticContent-  │  │
    │                              │ (ServerRoot) │  │ Handler         │  │
    │                              └──────────────┘  └─────────────────┘  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST FLOW
=============================================================================

    1. SocketServer.accept()            main thread
    2. _handle_connection()             wrap in Connection, submit
    3. Worker picks up ConnectionTask   worker thread
    4. ConnectionHandler.handle()       read → parse → resolve → respond
    5. Connection closed, access log line written

=============================================================================
"""

import logging
from typing import Optional, Tuple

from .access_log import AccessLogger
from .config import ServerConfig
from .core.connection import Connection
from .core.dispatcher import TaskDispatcher
from .core.socket_server import SocketServer
from .handler import ConnectionHandler, ConnectionTask
from .handlers.resolver import PathResolver, ServerRoot
from .handlers.static import StaticContentHandler


logger = logging.getLogger(__name__)


class FileServer:
    """
    Concurrent directory server.

    =========================================================================
    USAGE
    =========================================================================

        config = ServerConfig(port=8123, workers=4, root="/srv/files")
        server = FileServer(config)
        server.run()            # Blocks until Ctrl+C or shutdown()

    From another thread (tests):

        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_listening(timeout=5)
        host, port = server.address
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Build the server. Nothing is bound and no thread is started yet.

        Raises:
            ValueError: If the config is invalid or the root is not an
                        existing directory.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        # Read once; the root never changes afterwards
        self.root = ServerRoot.establish(self.config.resolve_root())

        self.handler = ConnectionHandler(
            resolver=PathResolver(self.root),
            content=StaticContentHandler(),
            access_logger=AccessLogger(
                log_format=self.config.log_format,
                enabled=self.config.access_log,
            ),
        )

        self._socket_server = SocketServer(self.config)
        self._dispatcher: Optional[TaskDispatcher] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening."""
        return self._socket_server.address

    @property
    def dispatcher(self) -> Optional[TaskDispatcher]:
        """The worker pool, available while the server runs."""
        return self._dispatcher

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_listening(timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the workers and accept connections (blocking).

        Returns after shutdown() or SIGINT/SIGTERM, once the workers have
        finished what was already queued.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._setup_logging()

        self._dispatcher = TaskDispatcher(self.config.workers)

        try:
            # The banner needs the real port, known only after bind()
            self._socket_server.start(
                self._handle_connection,
                on_listening=self._print_startup_banner,
            )
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._stop_workers()

    def shutdown(self):
        """Stop accepting; run() then drains the queue and returns."""
        self._socket_server.shutdown()

    def _stop_workers(self):
        if self._dispatcher is not None:
            self._dispatcher.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # =========================================================================
    # SETUP
    # =========================================================================

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("dirserve").setLevel(level)

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print(f"Server will use {self.config.workers} threads.")
        print(f"Serving files from: {self.root}")
        print(f"Server listening on http://{host}:{port}")
        print("Press Ctrl+C to stop")
        print()

    # =========================================================================
    # CONNECTION HANDOFF
    # =========================================================================

    def _handle_connection(self, client_socket, client_address):
        """
        Wrap an accepted socket and queue it. Runs on the accept thread.
        """
        conn = Connection(
            socket=client_socket,
            address=client_address,
            buffer_size=self.config.buffer_size,
            timeout=self.config.timeout,
        )
        try:
            self._dispatcher.submit(ConnectionTask(conn, self.handler))
        except RuntimeError:
            logger.warning(f"[{conn.id}] Dispatcher stopped, dropping connection")
            conn.close()


def serve(root: Optional[str] = None, **kwargs) -> FileServer:
    """
    Build a FileServer for a directory.

        serve("/srv/files", port=9000, workers=8).run()
    """
    return FileServer(ServerConfig(root=str(root) if root else None, **kwargs))
