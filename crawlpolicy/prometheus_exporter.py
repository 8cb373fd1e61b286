import logging
import threading
from typing import Dict

from prometheus_client import REGISTRY, CollectorRegistry, Counter, start_http_server

from .metrics import PolicyMetrics


logger = logging.getLogger(__name__)


class PrometheusExporter:
    def __init__(self, metrics: PolicyMetrics, port: int = 8000,
                 registry: CollectorRegistry = REGISTRY) -> None:
        self.metrics = metrics
        self.port = port
        self.registry = registry
        self._server_thread: threading.Thread | None = None
        self._stop_event = threading.Event()

        self.crawl_decisions_total = Counter(
            'crawlpolicy_crawl_decisions_total', 'Crawl-time admission decisions', ['result'],
            registry=registry,
        )
        self.index_decisions_total = Counter(
            'crawlpolicy_index_decisions_total', 'Index-time admission decisions', ['result'],
            registry=registry,
        )
        self.rejections_total = Counter(
            'crawlpolicy_rejections_total', 'Rejected candidates by failing filter', ['reason'],
            registry=registry,
        )

        self._last: Dict[str, int] = {}
        self._lock = threading.Lock()

    def start(self) -> None:
        start_http_server(self.port, registry=self.registry)
        logger.info("Prometheus metrics server started on port %d", self.port)

        self._server_thread = threading.Thread(
            target=self._update_metrics_loop,
            name="prometheus-updater",
            daemon=True,
        )
        self._server_thread.start()

    def _update_metrics_loop(self) -> None:
        while not self._stop_event.is_set():
            self.update_metrics()
            self._stop_event.wait(5.0)

    def _inc(self, key: str, value: int, counter) -> None:
        delta = value - self._last.get(key, 0)
        if delta > 0:
            counter.inc(delta)
        self._last[key] = value

    def update_metrics(self) -> None:
        with self._lock:
            self._push()

    def _push(self) -> None:
        totals, _ = self.metrics.snapshot()

        self._inc("crawl_accepted", totals.crawl_accepted, self.crawl_decisions_total.labels(result="accepted"))
        self._inc("crawl_rejected", totals.crawl_rejected, self.crawl_decisions_total.labels(result="rejected"))
        self._inc("index_accepted", totals.index_accepted, self.index_decisions_total.labels(result="accepted"))
        self._inc("index_rejected", totals.index_rejected, self.index_decisions_total.labels(result="rejected"))
        for reason, count in totals.rejections.items():
            self._inc("reason:" + reason, count, self.rejections_total.labels(reason=reason))

    def stop(self) -> None:
        self._stop_event.set()
        if self._server_thread:
            self._server_thread.join(timeout=2.0)
