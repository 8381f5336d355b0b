"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Generator, Optional, TypedDict

import pytest

from httpkit.bootstrap.options import Option, with_host, with_port
from httpkit.domain.http_types import Handler
from httpkit.lifecycle.context import background
from httpkit.lifecycle.coordinator import ServeError, start
from httpkit.lifecycle.signals import ManualShutdownSource
from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
HOST = "127.0.0.1"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    process: subprocess.Popen[str]
    log_file: Path


class BackgroundServer:
    """Runs start() on a helper thread, stopped through a manual shutdown source."""

    def __init__(self, handler: Handler, *options: Option) -> None:
        self.port = reserve_port(HOST)
        self.base_url = f"http://{HOST}:{self.port}"
        self.source = ManualShutdownSource()
        self.error: Optional[ServeError] = None
        self.returned = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(handler, (with_host(HOST), with_port(str(self.port)), *options)),
            daemon=True,
        )

    def _run(self, handler: Handler, options: tuple[Option, ...]) -> None:
        try:
            start(background(), handler, *options, shutdown_source=self.source)
        except ServeError as error:
            self.error = error
        finally:
            self.returned.set()

    def launch(self) -> "BackgroundServer":
        """Start serving and wait until the port accepts connections."""
        self._thread.start()
        wait_for_port(HOST, self.port)
        return self

    def stop(self, timeout: float = 5.0) -> bool:
        """Trigger shutdown and wait for start() to return."""
        self.source.trigger()
        self._thread.join(timeout)
        return self.returned.is_set()


@pytest.fixture(name="serve")
def _serve() -> Generator[Callable[..., BackgroundServer], None, None]:
    """Factory launching background servers that are stopped after the test."""

    servers: list[BackgroundServer] = []

    def launch(handler: Handler, *options: Option) -> BackgroundServer:
        server = BackgroundServer(handler, *options).launch()
        servers.append(server)
        return server

    yield launch
    for server in servers:
        server.stop()


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the demo service in a background process for integration tests."""

    port = reserve_port(HOST)
    log_file = tmp_path_factory.mktemp("server-logs") / "server.log"
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--host",
        HOST,
        "--port",
        str(port),
        "--shutdown-timeout",
        "5",
        "--log-destination",
        str(log_file),
    ]
    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(HOST, port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        yield {
            "base_url": f"http://{HOST}:{port}",
            "host": HOST,
            "port": port,
            "process": process,
            "log_file": log_file,
        }

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
