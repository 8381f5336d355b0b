"""JSON response encoders for request handlers."""

import json
from typing import Any

from httpkit.domain.http_types import HttpRequest, HttpResponse, should_close

JSON_CONTENT_TYPE = "application/json"


class EncodingError(ValueError):
    """Raised when a response value cannot be serialized to JSON."""


def _encode(request: HttpRequest, value: Any, status_line: str) -> HttpResponse:
    try:
        payload = json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"cannot encode {type(value).__name__} as JSON") from exc
    return HttpResponse(
        status_line,
        {"Content-Type": JSON_CONTENT_TYPE},
        (payload + "\n").encode(),
        should_close(request.headers),
    )


def encode_response(request: HttpRequest, value: Any) -> HttpResponse:
    """Serialize ``value`` as a 200 OK JSON response."""
    return _encode(request, value, "HTTP/1.1 200 OK")


def encode_post_response(request: HttpRequest, value: Any) -> HttpResponse:
    """Serialize ``value`` as a 201 Created JSON response."""
    return _encode(request, value, "HTTP/1.1 201 Created")
