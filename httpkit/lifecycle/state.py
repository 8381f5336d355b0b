"""Listener lifecycle state and connection worker tracking."""

import logging
import socket
import threading
import time
from typing import Optional

from httpkit.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("httpkit.lifecycle"), {})


class ServerLifecycle:
    """Tracks worker threads and whether the listener is draining."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._draining_event = threading.Event()
        self._workers: dict[threading.Thread, socket.socket] = {}
        self._idle: set[threading.Thread] = set()

    def should_stop(self) -> bool:
        """Check if the listener should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        """Check if the listener is in draining mode."""
        return self._draining_event.is_set()

    def register_worker(self, thread: threading.Thread, client_socket: socket.socket) -> None:
        """Register a worker thread and the connection it serves."""
        with self._lock:
            self._workers[thread] = client_socket

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.pop(thread, None)
            self._idle.discard(thread)

    def has_worker(self, thread: threading.Thread) -> bool:
        """Return True when the worker is currently tracked."""
        with self._lock:
            return thread in self._workers

    def active_worker_count(self) -> int:
        """Return the number of currently tracked worker threads."""
        with self._lock:
            return len(self._workers)

    def mark_idle(self, thread: threading.Thread) -> bool:
        """Record that the worker is waiting for its next request.

        Returns False when draining has begun, in which case the worker should
        close its connection instead of waiting.
        """
        with self._lock:
            if self._draining_event.is_set():
                return False
            self._idle.add(thread)
            return True

    def mark_busy(self, thread: threading.Thread) -> None:
        """Record that the worker started receiving a request."""
        with self._lock:
            self._idle.discard(thread)

    def begin_draining(self) -> None:
        """Stop accepting connections and close keep-alive connections at rest."""
        with self._lock:
            self._draining_event.set()
            self._stop_event.set()
            idle_sockets = [self._workers[t] for t in self._idle if t in self._workers]
            self._idle.clear()
        for client_socket in idle_sockets:
            try:
                client_socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown",
            extra={"event": "draining", "idle_connections": len(idle_sockets)},
        )

    def wait_for_workers(self, timeout: Optional[float]) -> bool:
        """Wait for all worker threads to complete; None waits without bound."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            with self._lock:
                self._workers = {
                    w: s for w, s in self._workers.items() if w.is_alive()
                }
                active_workers = list(self._workers)
            if not active_workers:
                return True
            if deadline is None:
                remaining = 0.1
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    LIFECYCLE_LOGGER.warning(
                        "Shutdown timeout exceeded",
                        extra={
                            "event": "shutdown_timeout",
                            "remaining_workers": len(active_workers),
                        },
                    )
                    return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if deadline is not None and time.monotonic() >= deadline:
                    break
