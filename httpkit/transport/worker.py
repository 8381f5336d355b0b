"""Worker thread logic for handling individual client connections."""

import dataclasses
import logging
import socket
import threading
from dataclasses import dataclass
from typing import Optional

from httpkit.bootstrap.options import ServerConfig
from httpkit.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from httpkit.domain.http_types import Handler, HttpRequest, HttpResponse, should_close
from httpkit.domain.response_builders import (
    bad_request_response,
    draining_response,
    entity_too_large_response,
    internal_error_response,
)
from httpkit.lifecycle.state import ServerLifecycle
from httpkit.pipeline.io import (
    RequestEntityTooLarge,
    deadline_after,
    receive_request,
    send_response,
)

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("httpkit.transport.worker"), {}
)


@dataclass
class WorkerContext:
    """Dependencies shared across connection workers."""

    handler: Handler
    config: ServerConfig
    lifecycle: ServerLifecycle


def _read_request(
    client_socket: socket.socket,
    buffer: bytes,
    client_addr_str: str,
    context: WorkerContext,
) -> tuple[Optional[HttpRequest], bytes]:
    """Read one request under the read timeout, answering protocol errors."""
    current_thread = threading.current_thread()
    try:
        return receive_request(
            client_socket,
            buffer,
            deadline_after(context.config.read_timeout),
            on_first_byte=lambda: context.lifecycle.mark_busy(current_thread),
        )
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request size exceeded limit",
            extra={"event": "request_too_large", "client": client_addr_str},
        )
        send_response(client_socket, entity_too_large_response())
    except ValueError:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": client_addr_str},
        )
        send_response(client_socket, bad_request_response())
    return None, b""


def _invoke_handler(request: HttpRequest, context: WorkerContext) -> HttpResponse:
    """Run the user handler, converting any exception into a 500 response."""
    try:
        return context.handler(request)
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Handler raised an exception",
            extra={
                "event": "handler_error",
                "method": request.method,
                "route": request.path,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
        return internal_error_response(request)


def _cleanup_worker(
    lifecycle: ServerLifecycle,
    client_socket: socket.socket,
    client_addr_str: str,
) -> None:
    lifecycle.cleanup_worker(threading.current_thread())
    try:
        client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    client_socket.close()

    WORKER_LOGGER.debug(
        "Socket closed",
        extra={"event": "socket_closed", "client": client_addr_str},
    )
    clear_correlation_id()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    buffer = b""
    lifecycle = context.lifecycle
    current_thread = threading.current_thread()
    client_addr_str = f"{client_address[0]}:{client_address[1]}"

    try:
        while True:
            set_correlation_id(generate_correlation_id())

            if not lifecycle.mark_idle(current_thread):
                send_response(client_socket, draining_response())
                break

            request, buffer = _read_request(
                client_socket, buffer, client_addr_str, context
            )
            if request is None:
                if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
                    WORKER_LOGGER.debug(
                        "Client disconnected",
                        extra={"event": "client_disconnected", "client": client_addr_str},
                    )
                break

            write_deadline = deadline_after(context.config.write_timeout)
            response = _invoke_handler(request, context)
            if lifecycle.is_draining() or should_close(request.headers):
                response = dataclasses.replace(response, close_connection=True)
            send_response(client_socket, response, write_deadline)

            WORKER_LOGGER.debug(
                "Request processing complete",
                extra={
                    "event": "request_complete",
                    "client": client_addr_str,
                    "method": request.method,
                    "route": request.path,
                    "status": response.status_line,
                },
            )
            clear_correlation_id()

            if response.close_connection:
                break
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.info(
            "Client connection ended",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    finally:
        _cleanup_worker(lifecycle, client_socket, client_addr_str)
