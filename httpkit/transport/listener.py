"""Threaded HTTP listener with bounded graceful shutdown."""

import logging
import socket
import threading
from typing import Optional

from httpkit.bootstrap.options import ServerConfig
from httpkit.domain.correlation_id import CorrelationLoggerAdapter
from httpkit.domain.http_types import Handler
from httpkit.domain.response_builders import draining_response
from httpkit.lifecycle.context import Context, DeadlineExceeded
from httpkit.lifecycle.state import ServerLifecycle
from httpkit.pipeline.io import send_response
from httpkit.transport.worker import WorkerContext, handle_client

LISTENER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("httpkit.transport.listener"), {}
)

ACCEPT_POLL_INTERVAL = 0.25


class HttpListener:
    """Accepts connections and hands each one to a worker thread."""

    def __init__(
        self,
        config: ServerConfig,
        handler: Handler,
        lifecycle: Optional[ServerLifecycle] = None,
    ) -> None:
        self.config = config
        self.handler = handler
        self.lifecycle = lifecycle if lifecycle is not None else ServerLifecycle()
        self._started = threading.Event()
        self._stopped = threading.Event()

    def serve_forever(self) -> None:
        """Bind, then accept connections until shutdown() is called.

        Raises OSError when the address cannot be bound or accepting fails.
        """
        self._started.set()
        try:
            if self.lifecycle.should_stop():
                self._stopped.set()
                return
            server_socket = socket.create_server(
                (self.config.host, int(self.config.port))
            )
        except BaseException:
            self._stopped.set()
            raise

        try:
            server_socket.settimeout(ACCEPT_POLL_INTERVAL)
            LISTENER_LOGGER.info(
                "Server listening for connections",
                extra={
                    "event": "server_listening",
                    "host": self.config.host,
                    "port": self.config.port,
                },
            )
            self._accept_loop(server_socket)
        finally:
            server_socket.close()
            self._stopped.set()
            LISTENER_LOGGER.info("Listener closed", extra={"event": "listener_closed"})

    def _accept_loop(self, server_socket: socket.socket) -> None:
        worker_context = WorkerContext(self.handler, self.config, self.lifecycle)
        while not self.lifecycle.should_stop():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if self.lifecycle.should_stop():
                    break
                LISTENER_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                raise

            if self.lifecycle.is_draining():
                send_response(client_socket, draining_response())
                client_socket.close()
                continue

            thread = threading.Thread(
                target=handle_client,
                args=(client_socket, client_address, worker_context),
                daemon=True,
            )
            self.lifecycle.register_worker(thread, client_socket)
            thread.start()

    def shutdown(self, ctx: Context) -> None:
        """Stop accepting and wait for in-flight requests until ``ctx``'s deadline.

        Without a deadline the wait is unbounded. Raises DeadlineExceeded when
        connections are still active once the deadline passes.
        """
        LISTENER_LOGGER.info(
            "Shutting down listener",
            extra={"event": "shutdown_started", "shutdown_timeout": ctx.remaining()},
        )
        self.lifecycle.begin_draining()
        if self._started.is_set() and not self._stopped.wait(ctx.remaining()):
            raise DeadlineExceeded("listener did not stop before the shutdown deadline")
        if not self.lifecycle.wait_for_workers(ctx.remaining()):
            raise DeadlineExceeded(
                f"{self.lifecycle.active_worker_count()} connection(s) still active "
                "at the shutdown deadline"
            )
        LISTENER_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
