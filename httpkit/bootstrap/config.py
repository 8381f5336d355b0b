"""Command-line and environment configuration for the demo service."""

import argparse
import os
from typing import Optional

from httpkit.bootstrap.options import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    Option,
    with_host,
    with_port,
    with_read_timeout,
    with_shutdown_timeout,
    with_write_timeout,
)

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value is not None else default


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments, defaulting to HTTP_SERVER_* environment values."""
    parser = argparse.ArgumentParser(description="httpkit demo service")
    parser.add_argument("--host", default=_env_str("HTTP_SERVER_HOST", DEFAULT_HOST))
    parser.add_argument("--port", default=_env_str("HTTP_SERVER_PORT", DEFAULT_PORT))
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=_env_float("HTTP_SERVER_READ_TIMEOUT", DEFAULT_READ_TIMEOUT),
        help="Seconds allowed for reading each request",
    )
    parser.add_argument(
        "--write-timeout",
        type=float,
        default=_env_float("HTTP_SERVER_WRITE_TIMEOUT", DEFAULT_WRITE_TIMEOUT),
        help="Seconds allowed for handling and writing each response",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        default=_env_float("HTTP_SERVER_SHUTDOWN_TIMEOUT", None),
        help="Grace period in seconds for in-flight requests on shutdown",
    )
    parser.add_argument(
        "--log-level",
        default=_env_str("HTTP_SERVER_LOG_LEVEL", "INFO").upper(),
        choices=LOG_LEVELS,
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=_env_str("HTTP_SERVER_LOG_DESTINATION", "stdout"),
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=_env_str("HTTP_SERVER_LOG_FORMAT", "json").lower(),
        choices=["json", "text"],
        type=str.lower,
    )
    return parser.parse_args(argv)


def options_from_args(args: argparse.Namespace) -> list[Option]:
    """Translate parsed arguments into server options."""
    return [
        with_host(args.host),
        with_port(args.port),
        with_read_timeout(args.read_timeout),
        with_write_timeout(args.write_timeout),
        with_shutdown_timeout(args.shutdown_timeout),
    ]
