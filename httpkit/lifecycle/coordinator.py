"""Server bootstrap: serve a handler until it fails or shutdown is requested.

``start`` blocks the calling thread. The listener runs on a background thread
and reports its terminal outcome through a single-slot queue, while the caller
polls that queue and the shutdown context. Whichever is ready first decides
the path taken:

* the listener exited on its own: its error is collected and no shutdown is
  issued against it;
* the shutdown context is done: the signal subscription is released and the
  listener is asked to shut down gracefully.

Either way the configured cleanup callbacks then run in registration order and
every failure is raised together as a ``ServeError``.
"""

import logging
import queue
import threading
from typing import Callable, Optional, Protocol

from httpkit.bootstrap.options import Option, ServerConfig, ShutdownCallback, build_config
from httpkit.domain.correlation_id import CorrelationLoggerAdapter
from httpkit.domain.http_types import Handler
from httpkit.lifecycle.context import CancelFunc, Context, with_timeout
from httpkit.lifecycle.signals import ShutdownSource, SignalShutdownSource
from httpkit.transport.listener import HttpListener

COORDINATOR_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("httpkit.lifecycle.coordinator"), {}
)

POLL_INTERVAL = 0.1


class ServeError(ExceptionGroup):
    """Every failure observed while serving, shutting down and cleaning up."""

    def derive(self, excs):
        return ServeError(self.message, excs)


class Listener(Protocol):
    """What the coordinator needs from a listener."""

    def serve_forever(self) -> None:
        """Serve until shut down; raise on failure."""

    def shutdown(self, ctx: Context) -> None:
        """Stop serving, waiting for in-flight work until ``ctx``'s deadline."""


ListenerFactory = Callable[[ServerConfig, Handler], Listener]


def _serve(listener: Listener, results: "queue.Queue[Optional[Exception]]") -> None:
    try:
        listener.serve_forever()
    except Exception as error:  # pylint: disable=broad-except
        results.put(error)
    else:
        results.put(None)


def _wait_for_exit(
    results: "queue.Queue[Optional[Exception]]", ctx: Context
) -> tuple[bool, Optional[Exception]]:
    """Return ``(True, error)`` if the listener exited first, else ``(False, None)``."""
    while True:
        try:
            return True, results.get(timeout=POLL_INTERVAL)
        except queue.Empty:
            if ctx.is_done():
                return False, None


def _callback_name(callback: ShutdownCallback) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


def _run_shutdown_callbacks(
    callbacks: tuple[ShutdownCallback, ...], ctx: Context, errors: list[Exception]
) -> None:
    for callback in callbacks:
        try:
            callback(ctx)
        except Exception as error:  # pylint: disable=broad-except
            COORDINATOR_LOGGER.warning(
                "Shutdown callback failed",
                extra={
                    "event": "shutdown_callback_failed",
                    "callback": _callback_name(callback),
                    "error": str(error),
                    "error_type": type(error).__name__,
                },
            )
            errors.append(error)


def _shutdown_listener(
    listener: Listener, ctx: Context, config: ServerConfig, release: CancelFunc
) -> Optional[Exception]:
    release()
    shutdown_ctx = ctx
    if config.shutdown_timeout is not None:
        shutdown_ctx, _ = with_timeout(ctx, config.shutdown_timeout)
    try:
        listener.shutdown(shutdown_ctx)
    except Exception as error:  # pylint: disable=broad-except
        return error
    return None


def _serve_until_done(
    listener_factory: ListenerFactory,
    config: ServerConfig,
    handler: Handler,
    ctx: Context,
    release: CancelFunc,
) -> Optional[Exception]:
    """Run the listener until it exits or ``ctx`` is done; return the failure, if any."""
    try:
        listener = listener_factory(config, handler)
    except Exception as error:  # pylint: disable=broad-except
        return error
    COORDINATOR_LOGGER.info(
        "Starting HTTP server",
        extra={
            "event": "server_starting",
            "host": config.host,
            "port": config.port,
            "read_timeout": config.read_timeout,
            "write_timeout": config.write_timeout,
            "callbacks": len(config.shutdown_callbacks),
        },
    )

    results: "queue.Queue[Optional[Exception]]" = queue.Queue(maxsize=1)
    threading.Thread(
        target=_serve, args=(listener, results), name="httpkit-listener", daemon=True
    ).start()

    listener_exited, error = _wait_for_exit(results, ctx)
    if not listener_exited:
        error = _shutdown_listener(listener, ctx, config, release)
    return error


def start(
    ctx: Context,
    handler: Handler,
    *options: Option,
    shutdown_source: Optional[ShutdownSource] = None,
    listener_factory: ListenerFactory = HttpListener,
) -> None:
    """Serve ``handler`` until the listener fails or shutdown is requested.

    Options are applied in order on top of the defaults. By default SIGINT
    requests shutdown; pass ``shutdown_source`` to use another trigger. The
    configured shutdown callbacks always run before this returns, each with
    the shutdown context, and a failing callback does not prevent the rest.

    Raises ServeError holding, in order, the listener failure or graceful
    shutdown failure and every callback failure.
    """
    config = build_config(*options)
    source = shutdown_source if shutdown_source is not None else SignalShutdownSource()
    run_ctx, release = source.subscribe(ctx)
    errors: list[Exception] = []

    try:
        error = _serve_until_done(listener_factory, config, handler, run_ctx, release)
        if error is not None:
            errors.append(error)
    finally:
        release()
        _run_shutdown_callbacks(config.shutdown_callbacks, run_ctx, errors)

    if errors:
        raise ServeError("HTTP server terminated with errors", errors)
