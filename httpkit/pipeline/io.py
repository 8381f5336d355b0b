"""HTTP input/output over raw client sockets."""

import logging
import socket
import time
import urllib.parse
from typing import Callable, Optional, Tuple

from httpkit.domain.correlation_id import (
    CorrelationLoggerAdapter,
    get_correlation_id,
    set_correlation_id,
)
from httpkit.domain.http_types import HttpRequest, HttpResponse

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("httpkit.pipeline.io"), {})

HEADER_DELIMITER = b"\r\n\r\n"
MAX_HEADER_BYTES = 64 * 1024
MAX_BODY_BYTES = 5 * 1024 * 1024
RECV_SIZE = 4096


class RequestEntityTooLarge(Exception):
    """Raised when a request head or body exceeds configured limits."""


def deadline_after(seconds: float) -> int:
    """Return a monotonic nanosecond deadline ``seconds`` from now."""
    return time.monotonic_ns() + int(seconds * 1_000_000_000)


def _remaining_seconds(deadline_ns: int, message: str) -> float:
    remaining_ns = deadline_ns - time.monotonic_ns()
    if remaining_ns <= 0:
        raise TimeoutError(message)
    return remaining_ns / 1_000_000_000


def _recv_with_deadline(client_socket: socket.socket, deadline_ns: int) -> bytes:
    """Receive data from socket with a deadline, raising TimeoutError if exceeded."""
    client_socket.settimeout(_remaining_seconds(deadline_ns, "Request deadline exceeded"))
    return client_socket.recv(RECV_SIZE)


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        if ":" in line:
            name, value = line.split(":", 1)
            parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str, str]:
    """Parse the HTTP method, decoded path and raw query from the request line."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if not version.startswith("HTTP/"):
        raise ValueError("Invalid HTTP version")

    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path)
    return method.upper(), path, parsed_target.query


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_BODY_BYTES:
        raise RequestEntityTooLarge
    return content_length


def receive_request(
    client_socket: socket.socket,
    buffer: bytes,
    deadline_ns: int,
    on_first_byte: Optional[Callable[[], None]] = None,
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is available.

    Returns ``(None, b"")`` when the peer closes the connection before a full
    request arrives.
    """
    if buffer and on_first_byte is not None:
        on_first_byte()
    while HEADER_DELIMITER not in buffer:
        chunk = _recv_with_deadline(client_socket, deadline_ns)
        if not chunk:
            return None, b""
        if not buffer and on_first_byte is not None:
            on_first_byte()
        buffer += chunk
        if len(buffer) > MAX_HEADER_BYTES and HEADER_DELIMITER not in buffer:
            raise RequestEntityTooLarge

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, path, query = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    incoming_correlation_id = headers.get("x-request-id")
    if incoming_correlation_id:
        set_correlation_id(incoming_correlation_id)

    content_length = determine_content_length(headers)

    while len(remainder) < content_length:
        chunk = _recv_with_deadline(client_socket, deadline_ns)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug("Parsed request", extra={"method": method, "route": path})
    return HttpRequest(method, path, headers, body, query), leftover


def send_response(
    client_socket: socket.socket,
    response: HttpResponse,
    deadline_ns: Optional[int] = None,
) -> None:
    """Serialize and send the HTTP response, bounded by ``deadline_ns`` if given."""
    headers = dict(response.headers)

    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id

    headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    payload = "\r\n".join(header_lines).encode() + HEADER_DELIMITER + response.body

    if deadline_ns is not None:
        client_socket.settimeout(
            _remaining_seconds(deadline_ns, "Response deadline exceeded")
        )
    client_socket.sendall(payload)
    IO_LOGGER.debug("Sent response", extra={"status": response.status_line})
