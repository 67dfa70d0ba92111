from domain_resolver.metrics import RequestMetrics


def test_empty_metrics():
    metrics = RequestMetrics()
    snapshot = metrics.get_snapshot()
    assert snapshot.avg_latency_ms == 0.0
    assert snapshot.p95_latency_ms == 0.0
    assert snapshot.timeout_rate == 0.0
    assert snapshot.total_requests == 0


def test_record_mixed_outcomes():
    metrics = RequestMetrics()
    for latency in range(1, 101):
        metrics.record(float(latency), status=200 if latency % 2 else 404)
    metrics.record(8000.0, is_timeout=True)
    metrics.record(5.0)

    snapshot = metrics.get_snapshot()
    assert snapshot.total_requests == 102
    assert snapshot.total_timeouts == 1
    assert snapshot.avg_latency_ms == 50.5
    assert snapshot.p95_latency_ms == 96.0
    assert snapshot.status_codes == {200: 50, 404: 50}
    assert metrics.total_errors == 1
    assert "errors=1" in str(metrics)


def test_latency_window_is_bounded():
    metrics = RequestMetrics(latency_window=10)
    for latency in range(100):
        metrics.record(float(latency), status=200)
    assert len(metrics.latencies) == 10
    assert metrics.get_avg_latency() == 94.5


def test_reset():
    metrics = RequestMetrics()
    metrics.record(10.0, status=200)
    metrics.reset()
    assert metrics.total_requests == 0
    assert metrics.get_snapshot().status_codes == {}
