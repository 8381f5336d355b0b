"""Golden unit tests validating CLI parsing behavior."""

from typing import TYPE_CHECKING

from httpkit.bootstrap.config import options_from_args, parse_cli_args
from httpkit.bootstrap.options import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    build_config,
)

if TYPE_CHECKING:
    from _pytest.monkeypatch import MonkeyPatch


def test_parse_cli_args_uses_defaults() -> None:
    """Defaults mirror the library defaults."""
    args = parse_cli_args([])

    assert args.host == DEFAULT_HOST
    assert args.port == DEFAULT_PORT
    assert args.read_timeout == DEFAULT_READ_TIMEOUT
    assert args.write_timeout == DEFAULT_WRITE_TIMEOUT
    assert args.shutdown_timeout is None
    assert args.log_level == "INFO"
    assert args.log_destination == "stdout"
    assert args.log_format == "json"


def test_parse_cli_args_honors_overrides() -> None:
    """Overrides should replace defaults when flags are present."""
    args = parse_cli_args(
        [
            "--host",
            "0.0.0.0",
            "--port",
            "9090",
            "--read-timeout",
            "2.5",
            "--write-timeout",
            "4",
            "--shutdown-timeout",
            "10",
            "--log-level",
            "debug",
            "--log-destination",
            "/tmp/server.log",
            "--log-format",
            "TEXT",
        ]
    )

    assert args.host == "0.0.0.0"
    assert args.port == "9090"
    assert args.read_timeout == 2.5
    assert args.write_timeout == 4.0
    assert args.shutdown_timeout == 10.0
    assert args.log_level == "DEBUG"
    assert args.log_destination == "/tmp/server.log"
    assert args.log_format == "text"


def test_parse_cli_args_reads_environment(monkeypatch: "MonkeyPatch") -> None:
    """HTTP_SERVER_* variables provide the defaults."""
    monkeypatch.setenv("HTTP_SERVER_PORT", "7070")
    monkeypatch.setenv("HTTP_SERVER_READ_TIMEOUT", "1.5")
    monkeypatch.setenv("HTTP_SERVER_SHUTDOWN_TIMEOUT", "3")
    monkeypatch.setenv("HTTP_SERVER_LOG_LEVEL", "trace")

    args = parse_cli_args([])

    assert args.port == "7070"
    assert args.read_timeout == 1.5
    assert args.shutdown_timeout == 3.0
    assert args.log_level == "TRACE"


def test_flags_take_precedence_over_environment(monkeypatch: "MonkeyPatch") -> None:
    """An explicit flag wins over the environment value."""
    monkeypatch.setenv("HTTP_SERVER_PORT", "7070")

    assert parse_cli_args(["--port", "6060"]).port == "6060"


def test_options_from_args_builds_server_config() -> None:
    """Parsed arguments translate into an equivalent ServerConfig."""
    args = parse_cli_args(["--port", "9000", "--read-timeout", "5", "--shutdown-timeout", "2"])

    config = build_config(*options_from_args(args))

    assert config.port == "9000"
    assert config.host == DEFAULT_HOST
    assert config.read_timeout == 5.0
    assert config.write_timeout == DEFAULT_WRITE_TIMEOUT
    assert config.shutdown_timeout == 2.0
    assert config.shutdown_callbacks == ()
