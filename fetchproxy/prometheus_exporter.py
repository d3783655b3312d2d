import logging
import threading
from typing import Dict

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, start_http_server

from .metrics import Metrics


logger = logging.getLogger(__name__)


class PrometheusExporter:
    def __init__(self, metrics: Metrics, port: int = 8000, registry: CollectorRegistry = REGISTRY) -> None:
        self.metrics = metrics
        self.port = port
        self.registry = registry
        self._server_thread: threading.Thread | None = None
        self._stop_event = threading.Event()

        self.requests_total = Counter(
            'fetchproxy_requests_total', 'Total number of proxied requests', registry=registry
        )
        self.bytes_total = Counter(
            'fetchproxy_response_bytes_total', 'Total number of response body bytes read', registry=registry
        )
        self.errors_total = Counter(
            'fetchproxy_errors_total', 'Total number of failed requests by error kind', ['kind'], registry=registry
        )
        self.requests_per_second = Gauge(
            'fetchproxy_requests_per_second', 'Average request rate since start', registry=registry
        )
        self.avg_fetch_duration_seconds = Gauge(
            'fetchproxy_avg_fetch_duration_seconds', 'Average exchange duration in seconds', registry=registry
        )

        self._last_requests = 0
        self._last_bytes = 0
        self._last_errors: Dict[str, int] = {}

    def start(self) -> None:
        start_http_server(self.port, registry=self.registry)
        logger.info("Prometheus metrics server started on port %d", self.port)

        self._server_thread = threading.Thread(
            target=self._update_metrics_loop,
            name="prometheus-updater",
            daemon=True
        )
        self._server_thread.start()

    def _update_metrics_loop(self) -> None:
        while not self._stop_event.is_set():
            self._update_metrics()
            self._stop_event.wait(5.0)

    def _update_metrics(self) -> None:
        totals, elapsed = self.metrics.snapshot()

        requests_delta = totals.requests - self._last_requests
        bytes_delta = totals.bytes - self._last_bytes
        if requests_delta > 0:
            self.requests_total.inc(requests_delta)
        if bytes_delta > 0:
            self.bytes_total.inc(bytes_delta)
        for kind, count in totals.errors_by_kind.items():
            delta = count - self._last_errors.get(kind, 0)
            if delta > 0:
                self.errors_total.labels(kind=kind).inc(delta)

        if elapsed > 0:
            self.requests_per_second.set(totals.requests / elapsed)
        if totals.requests > 0:
            avg_fetch_ms = totals.fetch_ms_sum / totals.requests
            self.avg_fetch_duration_seconds.set(avg_fetch_ms / 1000.0)

        self._last_requests = totals.requests
        self._last_bytes = totals.bytes
        self._last_errors = dict(totals.errors_by_kind)

    def stop(self) -> None:
        self._stop_event.set()
        if self._server_thread:
            self._server_thread.join(timeout=2.0)
        self._update_metrics()
