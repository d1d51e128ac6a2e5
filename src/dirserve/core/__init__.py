"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The plumbing underneath the request pipeline.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Owns the listening socket and the accept() loop                  │
    │  • Hands each client socket to a callback, never blocks on it       │
    │  • SIGINT / SIGTERM trigger a graceful stop                         │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ submit(ConnectionTask)
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                        TASK DISPATCHER                               │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Fixed number of worker threads, one unbounded FIFO queue         │
    │  • A failing work item is logged; its worker carries on             │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ worker runs the item
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • One read, any number of writes, one close                        │
    │  • Tracks pipeline state and bytes sent                             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, ConnectionReadError
from .dispatcher import TaskDispatcher, WorkItem, Worker, WorkerState

__all__ = [
    "SocketServer",         # Accept loop
    "Connection",           # Client socket wrapper
    "ConnectionState",      # Pipeline states
    "ConnectionReadError",  # Raised when the request cannot be read
    "TaskDispatcher",       # Fixed worker pool
    "WorkItem",             # Unit of work submitted to the pool
    "Worker",
    "WorkerState",
]
