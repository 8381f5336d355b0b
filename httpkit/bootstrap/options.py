"""Server configuration assembled from option functions."""

import dataclasses
from dataclasses import dataclass
from typing import Callable, Optional

from httpkit.lifecycle.context import Context

DEFAULT_PORT = "8080"
DEFAULT_HOST = ""
DEFAULT_READ_TIMEOUT = 30.0
DEFAULT_WRITE_TIMEOUT = 30.0

ShutdownCallback = Callable[[Context], None]


@dataclass(frozen=True)
class ServerConfig:
    """Listener settings and the cleanup callbacks run before start() returns."""

    port: str = DEFAULT_PORT
    host: str = DEFAULT_HOST
    read_timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    shutdown_timeout: Optional[float] = None
    shutdown_callbacks: tuple[ShutdownCallback, ...] = ()


Option = Callable[[ServerConfig], ServerConfig]


def with_port(port: str) -> Option:
    """Set the listening port. Defaults to 8080."""

    def apply(config: ServerConfig) -> ServerConfig:
        return dataclasses.replace(config, port=str(port))

    return apply


def with_host(host: str) -> Option:
    """Set the bind host. Defaults to all interfaces."""

    def apply(config: ServerConfig) -> ServerConfig:
        return dataclasses.replace(config, host=host)

    return apply


def with_read_timeout(seconds: float) -> Option:
    """Bound the time spent reading each request. Defaults to 30s."""

    def apply(config: ServerConfig) -> ServerConfig:
        return dataclasses.replace(config, read_timeout=float(seconds))

    return apply


def with_write_timeout(seconds: float) -> Option:
    """Bound the time spent handling and writing each response. Defaults to 30s."""

    def apply(config: ServerConfig) -> ServerConfig:
        return dataclasses.replace(config, write_timeout=float(seconds))

    return apply


def with_shutdown_timeout(seconds: Optional[float]) -> Option:
    """Cap how long graceful shutdown waits for in-flight requests.

    Without it the wait is bounded only by the deadline of the context given
    to start(), if any.
    """

    def apply(config: ServerConfig) -> ServerConfig:
        value = float(seconds) if seconds is not None else None
        return dataclasses.replace(config, shutdown_timeout=value)

    return apply


def with_shutdown_callbacks(*callbacks: ShutdownCallback) -> Option:
    """Replace the cleanup callbacks executed before start() returns."""

    def apply(config: ServerConfig) -> ServerConfig:
        return dataclasses.replace(config, shutdown_callbacks=tuple(callbacks))

    return apply


def build_config(*options: Option) -> ServerConfig:
    """Apply options in order on top of the defaults; later options win."""
    config = ServerConfig()
    for option in options:
        config = option(config)
    return config
