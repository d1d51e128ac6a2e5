"""
=============================================================================
TCP ACCEPTOR
=============================================================================

Owns the listening socket. Its only job is to accept connections and hand
each one to a callback as fast as possible; everything else happens on
the worker threads.

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    1. socket()    AF_INET / SOCK_STREAM
    2. bind()      (host, port), port 0 lets the kernel choose
    3. listen()    backlog = connections the kernel queues for us
    4. accept()    loop, one new socket per client
    5. close()     on shutdown

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── created once in start()
                    └───────────┬───────────┘
                                │ accept()
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌───────────┐         ┌───────────┐         ┌───────────┐
    │ Client 1  │         │ Client 2  │         │ Client 3  │
    └───────────┘         └───────────┘         └───────────┘
        callback(client_socket, client_address) for each

=============================================================================
SHUTDOWN
=============================================================================

accept() is given a 1 second timeout, so the loop re-checks its running
flag at least once a second:

    while running:
        try:
            accept()          # at most 1 s
        except timeout:
            continue          # check the flag again

SIGINT (Ctrl+C) and SIGTERM call shutdown(). Python only allows signal
handlers to be installed from the main thread, so a server started on any
other thread (tests, embedding) skips that step and relies on an explicit
shutdown() call.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig


logger = logging.getLogger(__name__)


ConnectionCallback = Callable[[socket.socket, Tuple[str, int]], None]


class SocketServer:
    """
    Listening socket plus accept loop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(callback)       blocks until shutdown()                     │
    │        ├──► _create_socket()   SO_REUSEADDR, 1 s timeout             │
    │        ├──► bind() / listen()                                        │
    │        ├──► _setup_signals()   main thread only                      │
    │        ├──► ready event set    wait_until_listening() returns        │
    │        └──► _accept_loop()                                           │
    │                                                                      │
    │    shutdown()            flag + event, idempotent                    │
    │    _cleanup()            restore signals, close socket               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        server = SocketServer(config)
        server.start(lambda sock, addr: ...)   # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None

        self._ready_event = threading.Event()

        # Restored on cleanup, for servers embedded in a larger app
        self._original_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        """
        The address actually bound.

        Before start() this is the configured address; after bind() it
        carries the real port, which matters when the config asked for 0.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Allow restart without waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # accept() wakes up every second to check the running flag
        sock.settimeout(1.0)

        return sock

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers that call shutdown()."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(
        self,
        connection_callback: ConnectionCallback,
        on_listening: Optional[Callable[[], None]] = None,
    ):
        """
        Bind, listen and accept until shutdown() is called.

        Args:
            connection_callback: Called on the accepting thread with
                                 (client_socket, client_address) for every
                                 connection. It must not block.
            on_listening: Called once, after listen() and before the first
                          accept().

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._setup_signals()

        host, port = self._bound_address
        logger.info(f"Listening on {host}:{port}")

        try:
            if on_listening is not None:
                on_listening()
            self._ready_event.set()
            self._accept_loop(connection_callback)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_callback: ConnectionCallback):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                # Socket closed underneath us, usually during shutdown
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            connection_callback(client_socket, client_address)

    def shutdown(self):
        """Stop the accept loop. Safe to call more than once, from any thread."""
        if self._running:
            logger.info("Shutting down acceptor...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready_event.clear()
        logger.info("Acceptor stopped")

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the socket is bound and listening.

        Returns:
            True once listening, False on timeout.
        """
        return self._ready_event.wait(timeout)
