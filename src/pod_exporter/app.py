"""pod_exporter - HTTP front end and process entry point."""

import logging
import signal
import socket
import sys
import threading
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import make_wsgi_app

from pod_exporter.config import Config
from pod_exporter.downward import read_downward_info
from pod_exporter.errors import ConfigurationError
from pod_exporter.logs import log_failure, setup_logging
from pod_exporter.registry import MetricsRegistry
from pod_exporter.scheduler import Scheduler

logger = logging.getLogger(__name__)

TEXT_PLAIN = [("Content-Type", "text/plain; charset=utf-8")]


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """Serves each scrape on its own thread."""

    daemon_threads = True


class ThreadingWSGIServerV6(ThreadingWSGIServer):
    address_family = socket.AF_INET6


class QuietHandler(WSGIRequestHandler):
    """Routes access lines through logging at DEBUG instead of stderr."""

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


def create_app(registry: MetricsRegistry):
    """WSGI app: /metrics, /healthz, and 404 for everything else."""
    metrics_app = make_wsgi_app(registry.registry)

    def app(environ, start_response):
        path = environ.get("PATH_INFO", "")
        if path == "/metrics":
            logger.debug("scrape requested")
            return metrics_app(environ, start_response)
        if path == "/healthz":
            logger.debug("healthz requested")
            start_response("200 OK", TEXT_PLAIN)
            return [b"ok\n"]
        logger.warning("not found requested path=%s", path)
        start_response("404 Not Found", TEXT_PLAIN)
        return [b"not found\n"]

    return app


def build(config: Config) -> tuple[MetricsRegistry, Scheduler]:
    """Create the registry and scheduler, and dump the downward metadata once."""
    registry = MetricsRegistry(config)
    if config.downward_dir is not None:
        try:
            registry.apply_downward_info(read_downward_info(config.downward_dir))
        except Exception as exc:
            log_failure(logger, "init downward api info failed", exc)
    return registry, Scheduler(config, registry)


def main() -> None:
    """Entry point for pod_exporter."""
    try:
        config = Config.from_env()
    except ConfigurationError as exc:
        setup_logging()
        logger.error("invalid configuration: %s", exc)
        sys.exit(2)

    setup_logging(config.log_level)
    registry, scheduler = build(config)

    try:
        server = make_server(
            config.listen_host,
            config.listen_port,
            create_app(registry),
            server_class=ThreadingWSGIServerV6 if ":" in config.listen_host else ThreadingWSGIServer,
            handler_class=QuietHandler,
        )
    except OSError as exc:
        log_failure(
            logger, "could not bind listener", exc, listen_addr=f"{config.listen_host}:{config.listen_port}"
        )
        sys.exit(1)

    def _shutdown(signum, frame):
        logger.info("received signal %d, shutting down", signum)
        scheduler.stop()
        # shutdown() blocks until serve_forever returns, so call it off-thread.
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    scheduler.start()
    logger.info(
        "starting listen_addr=%s:%d interval_secs=%.0f",
        config.listen_host,
        config.listen_port,
        scheduler.interval,
    )
    try:
        server.serve_forever()
    finally:
        scheduler.stop()
        server.server_close()


if __name__ == "__main__":
    main()
