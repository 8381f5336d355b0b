"""Sources of the single "please shut down" event observed by the coordinator."""

import logging
import signal
import threading
from typing import Iterable, Protocol

from httpkit.domain.correlation_id import CorrelationLoggerAdapter
from httpkit.lifecycle.context import CancelFunc, Context

SIGNAL_LOGGER = CorrelationLoggerAdapter(logging.getLogger("httpkit.lifecycle.signals"), {})


class ShutdownSource(Protocol):  # pylint: disable=too-few-public-methods
    """Derives a context that is cancelled when shutdown is requested."""

    def subscribe(self, parent: Context) -> tuple[Context, CancelFunc]:
        """Return the derived context and an idempotent release function."""


class SignalShutdownSource:  # pylint: disable=too-few-public-methods
    """Cancel the derived context when the process receives one of ``signals``.

    Handlers are installed on subscribe and the previous handlers restored on
    release. Python only delivers signals to the main thread, so subscribe must
    be called from it.
    """

    def __init__(self, signals: Iterable[int] = (signal.SIGINT,)) -> None:
        self._signals = tuple(signals)

    def subscribe(self, parent: Context) -> tuple[Context, CancelFunc]:
        ctx = Context(parent)
        previous = {}

        def handle_signal(signum: int, _frame) -> None:
            SIGNAL_LOGGER.info(
                "Received shutdown signal",
                extra={"event": "shutdown_signal", "signal": signum},
            )
            ctx.cancel()

        for signum in self._signals:
            previous[signum] = signal.signal(signum, handle_signal)

        released = threading.Event()

        def release() -> None:
            if released.is_set():
                return
            released.set()
            for signum, handler in previous.items():
                signal.signal(signum, handler)

        return ctx, release


class ManualShutdownSource:
    """Shutdown source triggered programmatically instead of by a signal."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._triggered = False
        self._subscribers: list[Context] = []
        self.release_count = 0

    def subscribe(self, parent: Context) -> tuple[Context, CancelFunc]:
        ctx = Context(parent)
        with self._lock:
            self._subscribers.append(ctx)
            triggered = self._triggered
        if triggered:
            ctx.cancel()

        released = threading.Event()

        def release() -> None:
            if released.is_set():
                return
            released.set()
            with self._lock:
                self.release_count += 1
                if ctx in self._subscribers:
                    self._subscribers.remove(ctx)

        return ctx, release

    def trigger(self) -> None:
        """Request shutdown of every current and future subscriber."""
        with self._lock:
            self._triggered = True
            subscribers = list(self._subscribers)
        for ctx in subscribers:
            ctx.cancel()
