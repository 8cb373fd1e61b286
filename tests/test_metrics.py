import threading
from concurrent.futures import ThreadPoolExecutor

from prometheus_client import CollectorRegistry

from crawlpolicy.metrics import PolicyMetrics, StatsLogger
from crawlpolicy.prometheus_exporter import PrometheusExporter


def test_metrics_records_decisions():
    m = PolicyMetrics()

    m.record_crawl(True)
    m.record_crawl(False, "depth")
    m.record_crawl(False, "depth")
    m.record_index(False, "index_url_must_match")
    totals, elapsed = m.snapshot()

    assert totals.crawl_accepted == 1
    assert totals.crawl_rejected == 2
    assert totals.index_accepted == 0
    assert totals.index_rejected == 1
    assert totals.rejections == {"depth": 2, "index_url_must_match": 1}
    assert elapsed > 0


def test_snapshot_is_a_copy():
    m = PolicyMetrics()
    m.record_crawl(False, "country")
    totals, _ = m.snapshot()
    m.record_crawl(False, "country")
    assert totals.rejections == {"country": 1}


def test_exporter_pushes_deltas():
    registry = CollectorRegistry()
    m = PolicyMetrics()
    exporter = PrometheusExporter(m, port=0, registry=registry)

    m.record_crawl(True)
    m.record_crawl(False, "domain_quota")
    exporter.update_metrics()
    m.record_crawl(True)
    exporter.update_metrics()

    assert registry.get_sample_value("crawlpolicy_crawl_decisions_total", {"result": "accepted"}) == 2.0
    assert registry.get_sample_value("crawlpolicy_crawl_decisions_total", {"result": "rejected"}) == 1.0
    assert registry.get_sample_value("crawlpolicy_rejections_total", {"reason": "domain_quota"}) == 1.0


def test_stats_logger_logs_totals():
    m = PolicyMetrics()
    m.record_crawl(True)
    lines = []

    def log(fmt, *args):
        lines.append(fmt % args)

    stats = StatsLogger(m, 0.5, log)
    stats.start()
    stats.join(timeout=1.2)
    stats.stop()
    stats.join(timeout=1.0)
    assert lines
    assert "crawl accepted=1" in lines[0]


def test_rejections_live_in_totals():
    m = PolicyMetrics()
    m.record_crawl(False, "depth")
    m.record_index(False, "depth")
    assert m._totals.rejections == {"depth": 2}
    totals, _ = m.snapshot()
    assert totals.rejections is not m._totals.rejections


def test_concurrent_updates_do_not_double_count():
    registry = CollectorRegistry()
    m = PolicyMetrics()
    exporter = PrometheusExporter(m, port=0, registry=registry)
    for _ in range(50):
        m.record_crawl(True)
        m.record_crawl(False, "depth")
    barrier = threading.Barrier(8)

    def push(_):
        barrier.wait()
        exporter.update_metrics()

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(push, range(8)))

    assert registry.get_sample_value("crawlpolicy_crawl_decisions_total", {"result": "accepted"}) == 50.0
    assert registry.get_sample_value("crawlpolicy_crawl_decisions_total", {"result": "rejected"}) == 50.0
    assert registry.get_sample_value("crawlpolicy_rejections_total", {"reason": "depth"}) == 50.0
