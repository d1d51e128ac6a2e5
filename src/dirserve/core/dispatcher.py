"""
=============================================================================
TASK DISPATCHER (FIXED WORKER POOL)
=============================================================================

The dispatcher decouples ACCEPTING connections from PROCESSING them.
The accept loop hands each connection over as a work item and goes
straight back to accept(); a fixed set of worker threads does the rest.

=============================================================================
WHY A FIXED POOL?
=============================================================================

    THREAD PER CONNECTION:
    ─────────────────────

    for sock in accept_connections():
        Thread(target=handle, args=(sock,)).start()

    A burst of 10,000 connections means 10,000 threads, each with its
    own stack. Memory use follows the burst size.

    FIXED POOL:
    ───────────

    dispatcher = TaskDispatcher(worker_count=4)

    for sock in accept_connections():
        dispatcher.submit(ConnectionTask(sock, ...))

    At most 4 connections are processed at any instant. The rest wait
    in the queue. Memory use follows worker_count, not the burst size.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         TaskDispatcher                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   submit(item) ──► ┌──────────────────────────────────────────┐     │
    │                    │  INGRESS QUEUE (queue.Queue, unbounded)  │     │
    │                    │  [item 1] [item 2] [item 3] ...          │     │
    │                    └───────────────────┬──────────────────────┘     │
    │                                        │ get() (FIFO)               │
    │                                        ▼                            │
    │          ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐       │
    │          │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │ Worker 3 │       │
    │          │ (idle)   │ │ (busy)   │ │ (busy)   │ │ (idle)   │       │
    │          └──────────┘ └──────────┘ └──────────┘ └──────────┘       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    • submit() never waits on I/O. The queue is unbounded, so put()
      only takes the queue's internal lock for the handoff.
    • Items leave the queue in submission order. Which worker gets an
      item, and the order items FINISH in, is not defined.
    • A worker runs one item to completion before taking the next.

=============================================================================
FAILURE CONTAINMENT
=============================================================================

A work item that raises must not take its worker down with it:

    def _execute(self, item):
        try:
            item.execute()
        except Exception:
            logger.exception(...)   ← logged, counted
                                    ← worker loops back to get()

Without this, one bad connection would silently shrink the pool by one
thread, and after worker_count bad connections the server would accept
connections forever without ever answering them.

=============================================================================
"""

import threading
import queue
import time
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)


class WorkItem(ABC):
    """
    A single-execution unit of work.

    Subclasses implement execute(). The dispatcher calls it exactly once,
    on exactly one worker thread, and ignores any return value.
    """

    @abstractmethod
    def execute(self) -> None:
        """Run the work to completion."""


class WorkerState(Enum):
    """Worker thread states, for monitoring."""
    IDLE = "idle"        # Waiting on the queue
    BUSY = "busy"        # Executing a work item
    STOPPED = "stopped"  # Thread exited


class Worker(threading.Thread):
    """
    Long-lived worker thread that executes work items from the queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Loop                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. get() next item from the shared queue (blocking)               │
    │   2. None? → "poison pill", exit the loop                            │
    │   3. item.execute() inside try/except (containment)                 │
    │   4. task_done(), back to step 1                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        task_queue: "queue.Queue[Optional[WorkItem]]",
        worker_id: int,
        idle_timeout: float = 1.0
    ):
        """
        Initialize the worker.

        Args:
            task_queue: Shared queue to pull work items from.
            worker_id: Identifier used in thread name and logs.
            idle_timeout: Seconds between shutdown checks while idle.
        """
        # daemon=True: workers never keep the process alive on their own
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        # Metrics
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        """Main worker loop, runs until shutdown or a poison pill."""
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                item = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                # Nothing to do, loop to re-check the shutdown flag
                continue

            try:
                if item is None:
                    break
                self._execute(item)
            finally:
                # Keeps queue.join() accurate, pills included
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, item: WorkItem):
        """
        Execute a single work item.

        Any exception is logged and counted; it never escapes the worker.
        """
        self.state = WorkerState.BUSY
        start_time = time.time()
        logger.debug(f"Worker {self.worker_id} got a job; executing.")

        try:
            item.execute()

            elapsed = time.time() - start_time
            logger.debug(f"Worker {self.worker_id} completed job in {elapsed:.3f}s")
            self.tasks_completed += 1

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} job failed after {elapsed:.3f}s: {e}"
            )
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop."""
        self._shutdown.set()


class TaskDispatcher:
    """
    Fixed-size pool of workers fed by one ingress queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      TaskDispatcher Usage                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   dispatcher = TaskDispatcher(worker_count=4)   # workers start now │
    │                                                                      │
    │   dispatcher.submit(ConnectionTask(conn, handler))                  │
    │                                                                      │
    │   dispatcher.stats   # {"workers": {...}, "tasks": {...}}           │
    │                                                                      │
    │   dispatcher.shutdown(wait=True)   # drain, then stop workers       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    The pool size never changes after construction.
    """

    def __init__(self, worker_count: int, idle_timeout: float = 1.0):
        """
        Create the pool and start every worker.

        Args:
            worker_count: Number of worker threads. Must be at least 1.
            idle_timeout: Seconds between shutdown checks while idle.

        Raises:
            ValueError: If worker_count is less than 1.
        """
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")

        self._worker_count = worker_count

        # Unbounded: put() never blocks the accept loop
        self._task_queue: "queue.Queue[Optional[WorkItem]]" = queue.Queue()

        self._lock = threading.Lock()  # Protects _shutdown
        self._shutdown = False

        logger.info(f"Starting task dispatcher with {worker_count} workers")

        self._workers = [
            Worker(self._task_queue, worker_id, idle_timeout)
            for worker_id in range(worker_count)
        ]
        for worker in self._workers:
            worker.start()

    @property
    def worker_count(self) -> int:
        """Number of workers the pool was created with."""
        return self._worker_count

    def submit(self, item: WorkItem) -> None:
        """
        Queue a work item for the first free worker.

        Returns immediately; the item runs later on some worker thread.

        Raises:
            RuntimeError: If the dispatcher has been shut down.
        """
        with self._lock:
            if self._shutdown:
                raise RuntimeError("Task dispatcher is shut down")
            self._task_queue.put(item)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the workers.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    shutdown() Flow                               │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   1. Reject new submissions                                      │
        │   2. wait=True: let queued items finish (bounded by timeout)    │
        │   3. One poison pill (None) per worker                          │
        │   4. Join the workers                                           │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

        Args:
            wait: Whether to let queued items run before stopping.
            timeout: Maximum seconds to wait for the queue to drain.
        """
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True

        logger.info("Shutting down task dispatcher...")

        if wait:
            if timeout is not None:
                deadline = time.time() + timeout
                while self._task_queue.unfinished_tasks:
                    if time.time() > deadline:
                        logger.warning("Dispatcher drain timed out, stopping workers")
                        break
                    time.sleep(0.05)
            else:
                self._task_queue.join()

        for _ in self._workers:
            self._task_queue.put(None)

        for worker in self._workers:
            worker.shutdown()
            worker.join(timeout=2.0)

        logger.info("Task dispatcher stopped")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def busy_workers(self) -> int:
        """Count of workers currently executing an item."""
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        """Count of workers waiting on the queue."""
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def alive_workers(self) -> int:
        """Count of worker threads still running."""
        return sum(1 for w in self._workers if w.is_alive())

    @property
    def queue_size(self) -> int:
        """Items waiting for a worker."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """Worker and task counters, for logs and tests."""
        return {
            "workers": {
                "total": len(self._workers),
                "alive": self.alive_workers,
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.queue_size,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
