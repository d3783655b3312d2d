from prometheus_client import CollectorRegistry

from fetchproxy.metrics import Metrics, StatsLogger
from fetchproxy.prometheus_exporter import PrometheusExporter


def test_metrics_records_fetches():
    m = Metrics()

    m.record_fetch(ok=True, bytes_read=1024, fetch_ms=50.0)
    totals, elapsed = m.snapshot()

    assert totals.requests == 1
    assert totals.bytes == 1024
    assert totals.errors == 0
    assert totals.fetch_ms_sum == 50.0
    assert elapsed > 0

    m.record_fetch(ok=False, bytes_read=0, fetch_ms=100.0, error_kind="transport")
    totals, elapsed = m.snapshot()

    assert totals.requests == 2
    assert totals.bytes == 1024
    assert totals.errors == 1
    assert totals.errors_by_kind == {"transport": 1}
    assert totals.fetch_ms_sum == 150.0


def test_stats_logger_stops():
    lines = []
    logger = StatsLogger(Metrics(), 0.5, lambda fmt, *args: lines.append(fmt % args))
    logger.start()
    logger.stop()
    logger.join(timeout=2.0)
    assert not logger.is_alive()


def test_prometheus_exporter_applies_deltas():
    registry = CollectorRegistry()
    m = Metrics()
    exporter = PrometheusExporter(m, registry=registry)

    m.record_fetch(ok=True, bytes_read=10, fetch_ms=20.0)
    m.record_fetch(ok=False, bytes_read=0, fetch_ms=5.0, error_kind="invalid_request")
    exporter._update_metrics()
    m.record_fetch(ok=False, bytes_read=0, fetch_ms=5.0, error_kind="invalid_request")
    exporter._update_metrics()

    assert registry.get_sample_value("fetchproxy_requests_total") == 3
    assert registry.get_sample_value("fetchproxy_response_bytes_total") == 10
    assert registry.get_sample_value("fetchproxy_errors_total", {"kind": "invalid_request"}) == 2
    assert registry.get_sample_value("fetchproxy_avg_fetch_duration_seconds") == 0.01


def test_stats_logger_reports_errors_by_kind():
    m = Metrics()
    m.record_fetch(ok=True, bytes_read=0, fetch_ms=1.0)
    m.record_fetch(ok=False, bytes_read=0, fetch_ms=1.0, error_kind="transport")
    m.record_fetch(ok=False, bytes_read=0, fetch_ms=1.0, error_kind="invalid_request")
    lines = []
    StatsLogger(m, 0.5, lambda fmt, *args: lines.append(fmt % args)).report()
    assert "errors=2 [invalid_request=1, transport=1]" in lines[0]
    assert lines[0].startswith("Perf: requests=3")
