"""Cancellable, deadline-bearing contexts passed through the server lifecycle.

A context becomes done when it is cancelled, when its parent becomes done, or
when its deadline passes. Deadlines are ``time.monotonic()`` values and a
child always inherits the earliest deadline along its parent chain.
"""

import threading
import time
import weakref
from typing import Callable, Optional


class ContextCancelled(Exception):
    """Raised or reported when a context was cancelled explicitly."""


class DeadlineExceeded(TimeoutError):
    """Raised or reported when a context deadline passed before work finished."""


CancelFunc = Callable[[], None]


class Context:
    """Cancellation scope shared between the caller and background threads."""

    def __init__(
        self, parent: Optional["Context"] = None, deadline: Optional[float] = None
    ) -> None:
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._children: "weakref.WeakSet[Context]" = weakref.WeakSet()
        self._parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = (
                parent.deadline if deadline is None else min(deadline, parent.deadline)
            )
        self._deadline = deadline
        if parent is not None:
            parent._adopt(self)

    @property
    def deadline(self) -> Optional[float]:
        """Monotonic time at which the context expires, or None."""
        return self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    def is_done(self) -> bool:
        """Return True once the context is cancelled or its deadline passed."""
        if self._cancelled.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the context is done or ``timeout`` elapses."""
        remaining = self.remaining()
        if remaining is not None and (timeout is None or remaining < timeout):
            timeout = remaining
        self._cancelled.wait(timeout)
        return self.is_done()

    def err(self) -> Optional[Exception]:
        """Describe why the context is done, or None while it is live."""
        if self._cancelled.is_set():
            return ContextCancelled("context cancelled")
        if self.is_done():
            return DeadlineExceeded("context deadline exceeded")
        return None

    def _adopt(self, child: "Context") -> None:
        with self._lock:
            if not self._cancelled.is_set():
                self._children.add(child)
                return
        child.cancel()


def background() -> Context:
    """Return a fresh root context that is never cancelled on its own."""
    return Context()


def with_cancel(parent: Context) -> tuple[Context, CancelFunc]:
    """Derive a child context together with the function that cancels it."""
    child = Context(parent)
    return child, child.cancel


def with_timeout(parent: Context, seconds: float) -> tuple[Context, CancelFunc]:
    """Derive a child context that expires ``seconds`` from now."""
    child = Context(parent, deadline=time.monotonic() + seconds)
    return child, child.cancel
