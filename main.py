"""Demo service run through the httpkit bootstrap."""

import logging
import signal
import sys
import time

from httpkit.bootstrap.config import options_from_args, parse_cli_args
from httpkit.bootstrap.log_writer import LogWriter
from httpkit.bootstrap.logging_setup import configure_logging
from httpkit.bootstrap.options import with_shutdown_callbacks
from httpkit.domain.correlation_id import CorrelationLoggerAdapter
from httpkit.domain.http_types import HttpRequest, HttpResponse
from httpkit.domain.response_builders import not_found_response
from httpkit.httptransport.encoding import encode_post_response, encode_response
from httpkit.lifecycle.context import Context, background
from httpkit.lifecycle.coordinator import ServeError, start
from httpkit.lifecycle.signals import SignalShutdownSource

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("httpkit.server"), {})

STARTED_AT = time.monotonic()


def demo_handler(request: HttpRequest) -> HttpResponse:
    """Answer /healthz and echo JSON bodies posted to /echo."""
    if request.path == "/healthz":
        return encode_response(
            request, {"status": "ok", "uptime": round(time.monotonic() - STARTED_AT, 3)}
        )
    if request.path == "/echo" and request.method == "POST":
        return encode_post_response(
            request, {"received": request.body.decode(errors="replace")}
        )
    return not_found_response(request)


def main() -> int:
    """Run the demo service and translate the outcome into an exit code."""
    args = parse_cli_args(sys.argv[1:])
    configure_logging(args.log_level, args.log_destination, args.log_format == "json")
    debug_sink = LogWriter("demo")

    def announce_shutdown(ctx: Context) -> None:
        debug_sink.write(f"shutdown callback running, context done={ctx.is_done()}")
        SERVER_LOGGER.info("Demo service stopped", extra={"event": "service_stopped"})

    try:
        start(
            background(),
            demo_handler,
            *options_from_args(args),
            with_shutdown_callbacks(announce_shutdown),
            shutdown_source=SignalShutdownSource((signal.SIGINT, signal.SIGTERM)),
        )
    except ServeError as error:
        SERVER_LOGGER.error(
            "Service exited with errors",
            extra={"event": "service_failed", "error": str(error)},
            exc_info=True,
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
