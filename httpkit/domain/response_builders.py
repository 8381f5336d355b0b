"""Pure HTTP response builders."""

from typing import Optional

from httpkit.domain.http_types import HttpRequest, HttpResponse, should_close


def _close_preference(request: Optional[HttpRequest]) -> bool:
    return should_close(request.headers) if request is not None else True


def not_found_response(request: HttpRequest) -> HttpResponse:
    """Return a 404 response reusing the connection preference."""
    return HttpResponse("HTTP/1.1 404 Not Found", {}, b"", should_close(request.headers))


def bad_request_response(request: Optional[HttpRequest] = None) -> HttpResponse:
    """Produce a 400 response honoring the caller's connection preference."""
    return HttpResponse("HTTP/1.1 400 Bad Request", {}, b"", _close_preference(request))


def entity_too_large_response() -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    return HttpResponse("HTTP/1.1 413 Payload Too Large", {}, b"", True)


def internal_error_response(request: Optional[HttpRequest] = None) -> HttpResponse:
    """Produce a 500 response used when a handler raises."""
    return HttpResponse(
        "HTTP/1.1 500 Internal Server Error",
        {"Content-Type": "text/plain"},
        b"Internal Server Error",
        _close_preference(request),
    )


def draining_response() -> HttpResponse:
    """Produce a 503 response indicating the server is draining."""
    return HttpResponse(
        "HTTP/1.1 503 Service Unavailable",
        {"Connection": "close"},
        b"draining",
        True,
    )
