import threading
import time
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class Totals:
    crawl_accepted: int = 0
    crawl_rejected: int = 0
    index_accepted: int = 0
    index_rejected: int = 0
    rejections: Dict[str, int] = field(default_factory=dict)


class PolicyMetrics:
    def __init__(self):
        self._totals = Totals()
        self._lock = threading.Lock()
        self._start = time.time()

    def record_crawl(self, accepted: bool, reason: str = "") -> None:
        with self._lock:
            if accepted:
                self._totals.crawl_accepted += 1
            else:
                self._totals.crawl_rejected += 1
                self._reject(reason)

    def record_index(self, accepted: bool, reason: str = "") -> None:
        with self._lock:
            if accepted:
                self._totals.index_accepted += 1
            else:
                self._totals.index_rejected += 1
                self._reject(reason)

    def _reject(self, reason: str) -> None:
        self._totals.rejections[reason] = self._totals.rejections.get(reason, 0) + 1

    def snapshot(self) -> tuple[Totals, float]:
        with self._lock:
            t = Totals(
                crawl_accepted=self._totals.crawl_accepted,
                crawl_rejected=self._totals.crawl_rejected,
                index_accepted=self._totals.index_accepted,
                index_rejected=self._totals.index_rejected,
                rejections=dict(self._totals.rejections),
            )
        elapsed = max(1e-6, time.time() - self._start)
        return t, elapsed


class StatsLogger(threading.Thread):
    daemon = True

    def __init__(self, metrics: PolicyMetrics, interval_s: float, log_fn):
        super().__init__(name="policy-stats-logger")
        self._metrics = metrics
        self._interval = max(0.5, interval_s)
        self._log = log_fn
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            self._stop_event.wait(self._interval)
            if self._stop_event.is_set():
                break
            totals, elapsed = self._metrics.snapshot()
            checked = totals.crawl_accepted + totals.crawl_rejected
            self._log(
                "Policy: crawl accepted=%d rejected=%d, index accepted=%d rejected=%d, checks/sec=%.2f",
                totals.crawl_accepted,
                totals.crawl_rejected,
                totals.index_accepted,
                totals.index_rejected,
                checked / elapsed,
            )

    def stop(self) -> None:
        self._stop_event.set()
