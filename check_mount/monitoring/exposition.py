# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Serve collection outcomes as Prometheus metrics."""

import logging
import socket
from socketserver import ThreadingMixIn
from typing import Any, Callable, Iterable, List, Tuple
from wsgiref.simple_server import make_server, WSGIRequestHandler, WSGIServer

from check_mount.monitoring.reconcile import collect, MountCheckConfig, TablePaths
from check_mount.schemas.mount.metric import CheckMountStatus, CheckMountSuccess
from check_mount.schemas.mount.status import CollectionOutcome
from prometheus_client import (
    CollectorRegistry,
    GC_COLLECTOR,
    make_wsgi_app,
    PLATFORM_COLLECTOR,
    PROCESS_COLLECTOR,
)
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"
DEFAULT_LISTEN_ADDRESS = ":9304"

STATUS_NAME = "check_mount_status"
STATUS_HELP = "Mount point status, 1=mounted 0=not mounted"
SUCCESS_NAME = "check_mount_success"
SUCCESS_HELP = "Exporter status, 1=successful 0=errors"

LANDING_PAGE = f"""<html>
<head><title>check_mount Exporter</title></head>
<body>
<h1>check_mount Exporter</h1>
<p><a href='{METRICS_PATH}'>Metrics</a></p>
</body>
</html>
""".encode()

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]


def as_label_value(value: str) -> str:
    """Make `value` encodable as UTF-8. Bytes that were not valid UTF-8 in the
    mount tables become U+FFFD.

    >>> as_label_value("/mnt/caf\\udce9") == "/mnt/caf\\ufffd"
    True
    """
    return value.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def as_metric_messages(
    outcome: CollectionOutcome,
) -> Tuple[List[CheckMountStatus], CheckMountSuccess]:
    statuses = [
        CheckMountStatus(
            mountpoint=as_label_value(record.mount_point),
            rw=record.write_mode,
            status=int(record.mounted),
        )
        for record in outcome.records
    ]
    return statuses, CheckMountSuccess(success=int(outcome.succeeded))


class CheckMountCollector(Collector):
    """Runs a fresh collection cycle on every scrape."""

    def __init__(self, config: MountCheckConfig, paths: TablePaths):
        self.config = config
        self.paths = paths

    def describe(self) -> Iterable[Metric]:
        # returning the families here keeps registration from running a cycle
        return self._families([], CheckMountSuccess(success=0))

    def collect(self) -> Iterable[Metric]:
        outcome = collect(self.config, self.paths)
        return self._families(*as_metric_messages(outcome))

    def _families(
        self, statuses: List[CheckMountStatus], success: CheckMountSuccess
    ) -> List[Metric]:
        status = GaugeMetricFamily(
            STATUS_NAME, STATUS_HELP, labels=["mountpoint", "rw"]
        )
        for s in statuses:
            status.add_metric([s.mountpoint, s.rw], s.status)
        return [
            status,
            GaugeMetricFamily(SUCCESS_NAME, SUCCESS_HELP, value=success.success),
        ]


def build_registry(
    collector: Collector, disable_exporter_metrics: bool = False
) -> CollectorRegistry:
    registry = CollectorRegistry(auto_describe=True)
    registry.register(collector)
    if not disable_exporter_metrics:
        for exporter_collector in (PROCESS_COLLECTOR, PLATFORM_COLLECTOR, GC_COLLECTOR):
            registry.register(exporter_collector)
    return registry


def make_app(registry: CollectorRegistry) -> WSGIApp:
    metrics_app = make_wsgi_app(registry)

    def app(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        if environ.get("PATH_INFO", "/") == METRICS_PATH:
            return metrics_app(environ, start_response)
        start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
        return [LANDING_PAGE]

    return app


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split a `host:port` listen address. An empty host listens on all interfaces.

    >>> parse_listen_address(":9304")
    ('', 9304)
    >>> parse_listen_address("127.0.0.1:9304")
    ('127.0.0.1', 9304)
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"{address!r} is not of the form [host]:port")
    try:
        port_number = int(port)
    except ValueError as e:
        raise ValueError(f"{port!r} is not a valid port") from e
    if not 0 <= port_number <= 65535:
        raise ValueError(f"{port_number} is out of range")
    return host.strip("[]"), port_number


class LoggingWSGIRequestHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """WSGI server with threads."""

    daemon_threads = True


def get_best_family(host: str, port: int) -> Tuple[socket.AddressFamily, str]:
    """Resolve `host` to the address family and address to bind. An empty host
    binds all IPv4 interfaces.
    """
    infos = socket.getaddrinfo(
        host or "0.0.0.0", port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
    )
    family, _, _, _, sockaddr = next(iter(infos))
    return family, sockaddr[0]


def serve(app: WSGIApp, host: str, port: int) -> None:
    family, address = get_best_family(host, port)

    class Server(ThreadingWSGIServer):
        address_family = family

    with make_server(
        address,
        port,
        app,
        server_class=Server,
        handler_class=LoggingWSGIRequestHandler,
    ) as httpd:
        logger.info("Starting Server: %s:%d", host, port)
        httpd.serve_forever()
