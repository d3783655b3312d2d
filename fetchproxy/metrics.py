import threading
import time
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class Totals:
    requests: int = 0
    bytes: int = 0
    errors: int = 0
    fetch_ms_sum: float = 0.0
    errors_by_kind: Dict[str, int] = field(default_factory=dict)


class Metrics:
    def __init__(self):
        self._totals = Totals()
        self._lock = threading.Lock()
        self._start = time.time()

    def record_fetch(self, ok: bool, bytes_read: int, fetch_ms: float, error_kind: str | None = None) -> None:
        with self._lock:
            self._totals.requests += 1
            self._totals.bytes += max(0, bytes_read)
            if not ok:
                self._totals.errors += 1
                kind = error_kind or "unknown"
                self._totals.errors_by_kind[kind] = self._totals.errors_by_kind.get(kind, 0) + 1
            self._totals.fetch_ms_sum += fetch_ms

    def snapshot(self) -> tuple[Totals, float]:
        with self._lock:
            t = Totals(
                requests=self._totals.requests,
                bytes=self._totals.bytes,
                errors=self._totals.errors,
                fetch_ms_sum=self._totals.fetch_ms_sum,
                errors_by_kind=dict(self._totals.errors_by_kind),
            )
        elapsed = max(1e-6, time.time() - self._start)
        return t, elapsed


class StatsLogger(threading.Thread):
    daemon = True

    def __init__(self, metrics: Metrics, interval_s: float, log_fn):
        super().__init__(name="stats-logger")
        self._metrics = metrics
        self._interval = max(0.5, interval_s)
        self._log = log_fn
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            self._stop_event.wait(self._interval)
            if self._stop_event.is_set():
                break
            self.report()

    def report(self) -> None:
        totals, elapsed = self._metrics.snapshot()
        by_kind = ", ".join(f"{kind}={count}" for kind, count in sorted(totals.errors_by_kind.items())) or "none"
        self._log(
            "Perf: requests=%d, errors=%d [%s], MB=%.2f, avg_fetch_ms=%.1f, requests/sec=%.2f",
            totals.requests,
            totals.errors,
            by_kind,
            totals.bytes / (1024 * 1024),
            totals.fetch_ms_sum / max(1, totals.requests),
            totals.requests / elapsed,
        )

    def stop(self) -> None:
        self._stop_event.set()
