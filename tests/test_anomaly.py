"""
Tests for anomaly detection and the baseline store.
"""
import math
import threading
from datetime import datetime, timezone

import pytest

from arlog_engine.analysis.aggregator import aggregate_job
from arlog_engine.analysis.anomaly import (
    API_AVG_DURATION,
    ERROR_RATE,
    MAX_THREAD_BUSY,
    SQL_AVG_DURATION,
    collect_job_metrics,
    compute_sigma,
    detect_anomalies,
    detect_outliers,
)
from arlog_engine.analysis.baseline import BaselineStore, MetricBaseline
from arlog_engine.analysis.thresholds import AnomalySeverity, SigmaBands, classify_sigma
from arlog_engine.analysis.threads import analyze_threads
from arlog_engine.analysis.types import AnomalyType
from arlog_engine.models.record import LogType

DETECTED_AT = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# detect_anomalies() Tests
# ============================================================================

class TestDetectAnomalies:
    """Tests for baseline comparison."""

    def test_five_sigma_is_critical(self):
        baseline = {API_AVG_DURATION: MetricBaseline(mean=100, std_dev=10, sample_count=20)}

        entries = detect_anomalies({API_AVG_DURATION: 150}, baseline, sigma_threshold=2.0)

        assert len(entries) == 1
        entry = entries[0]
        assert entry.sigma == 5.0
        assert entry.severity == "critical"
        assert entry.value == 150
        assert entry.baseline == 100
        assert entry.type == AnomalyType.SLOW_API

    def test_below_threshold_not_emitted(self):
        baseline = {API_AVG_DURATION: MetricBaseline(mean=100, std_dev=10)}
        assert detect_anomalies({API_AVG_DURATION: 119}, baseline) == []

    def test_threshold_inclusive(self):
        baseline = {API_AVG_DURATION: MetricBaseline(mean=100, std_dev=10)}
        entries = detect_anomalies({API_AVG_DURATION: 120}, baseline)
        assert entries[0].severity == "low"

    def test_sigma_sign_follows_direction(self):
        baseline = {
            API_AVG_DURATION: MetricBaseline(mean=100, std_dev=10),
            SQL_AVG_DURATION: MetricBaseline(mean=100, std_dev=10),
        }

        entries = detect_anomalies({API_AVG_DURATION: 160, SQL_AVG_DURATION: 40}, baseline)
        by_metric = {e.metric: e for e in entries}

        assert by_metric[API_AVG_DURATION].sigma > 0
        assert by_metric[SQL_AVG_DURATION].sigma < 0
        assert "below" in by_metric[SQL_AVG_DURATION].title

    def test_zero_std_dev_triggers(self):
        baseline = {ERROR_RATE: MetricBaseline(mean=0.0, std_dev=0.0)}

        entries = detect_anomalies({ERROR_RATE: 0.5}, baseline, sigma_threshold=500)

        assert len(entries) == 1
        assert math.isfinite(entries[0].sigma)
        assert entries[0].sigma == 99.0
        assert entries[0].type == AnomalyType.HIGH_ERROR_RATE

    def test_zero_std_dev_no_delta(self):
        baseline = {ERROR_RATE: MetricBaseline(mean=1.0, std_dev=0.0)}
        assert detect_anomalies({ERROR_RATE: 1.0}, baseline) == []

    def test_metric_without_baseline_skipped(self):
        assert detect_anomalies({API_AVG_DURATION: 1e6}, {}) == []

    def test_ordered_by_magnitude(self):
        baseline = {
            API_AVG_DURATION: MetricBaseline(mean=100, std_dev=10),
            MAX_THREAD_BUSY: MetricBaseline(mean=40, std_dev=5),
        }
        entries = detect_anomalies(
            {API_AVG_DURATION: 130, MAX_THREAD_BUSY: 95},
            baseline,
            detected_at=DETECTED_AT,
        )

        assert [e.metric for e in entries] == [MAX_THREAD_BUSY, API_AVG_DURATION]
        assert all(e.detected_at == DETECTED_AT for e in entries)

    def test_to_dict(self):
        baseline = {API_AVG_DURATION: MetricBaseline(mean=100, std_dev=10)}
        data = detect_anomalies({API_AVG_DURATION: 150}, baseline, detected_at=DETECTED_AT)[0].to_dict()

        assert data["type"] == "slow_api"
        assert data["sigma"] == 5.0
        assert data["detected_at"] == DETECTED_AT.isoformat()


class TestSigma:

    def test_compute_sigma_clamped(self):
        assert compute_sigma(1e9, MetricBaseline(mean=0, std_dev=1)) == 99.0
        assert compute_sigma(-1e9, MetricBaseline(mean=0, std_dev=1)) == -99.0

    @pytest.mark.parametrize("sigma,expected", [
        (4.0, AnomalySeverity.CRITICAL),
        (-4.5, AnomalySeverity.CRITICAL),
        (3.0, AnomalySeverity.HIGH),
        (2.5, AnomalySeverity.MEDIUM),
        (2.49, AnomalySeverity.LOW),
    ])
    def test_severity_bands(self, sigma, expected):
        assert classify_sigma(sigma) == expected

    def test_custom_bands(self):
        bands = SigmaBands(critical=10, high=8, medium=6)
        assert bands.classify(5) == AnomalySeverity.LOW


# ============================================================================
# detect_outliers() Tests
# ============================================================================

class TestDetectOutliers:

    def test_flags_slow_form(self):
        points = {f"Form{i}": 100.0 for i in range(9)}
        points["Slow"] = 1000.0

        entries = detect_outliers(points, "api_form_avg_duration_ms", AnomalyType.SLOW_API)

        assert [e.title.split()[0] for e in entries] == ["Slow"]
        assert entries[0].sigma > 2

    def test_needs_three_points(self):
        assert detect_outliers({"a": 1.0, "b": 100.0}, "m", AnomalyType.SLOW_SQL) == []

    def test_no_spread(self):
        assert detect_outliers({"a": 5.0, "b": 5.0, "c": 5.0}, "m", AnomalyType.SLOW_SQL) == []


# ============================================================================
# collect_job_metrics() Tests
# ============================================================================

class TestCollectJobMetrics:

    def test_metrics_from_outputs(self, make_record):
        records = [
            make_record(LogType.API, offset_ms=0, duration_ms=100, thread_id="T1"),
            make_record(LogType.API, offset_ms=1000, duration_ms=300, thread_id="T1", success=False),
            make_record(LogType.SQL, duration_ms=50),
        ]
        aggregates = aggregate_job("job-1", records)
        threads = analyze_threads("job-1", records)

        metrics = collect_job_metrics(aggregates, [threads, None])

        assert metrics[API_AVG_DURATION] == 200
        assert metrics[SQL_AVG_DURATION] == 50
        assert metrics[ERROR_RATE] == pytest.approx(100 / 3)
        assert metrics[MAX_THREAD_BUSY] == pytest.approx(400 / 1300 * 100)
        assert "filter_avg_duration_ms" not in metrics

    def test_nothing_available(self):
        assert collect_job_metrics(None, [None]) == {}


# ============================================================================
# BaselineStore Tests
# ============================================================================

class TestBaselineStore:
    """Tests for snapshot isolation and history handling."""

    def test_min_samples(self):
        store = BaselineStore(min_samples=3)
        store.update({API_AVG_DURATION: 100})
        store.update({API_AVG_DURATION: 110})
        assert API_AVG_DURATION not in store.snapshot()

        store.update({API_AVG_DURATION: 120})
        baseline = store.snapshot().get(API_AVG_DURATION)

        assert baseline.mean == pytest.approx(110)
        assert baseline.std_dev == pytest.approx(10)  # sample std-dev
        assert baseline.sample_count == 3

    def test_snapshot_not_mutated_by_update(self):
        store = BaselineStore(min_samples=1)
        store.update({API_AVG_DURATION: 100})
        before = store.snapshot()

        store.update({API_AVG_DURATION: 500})

        assert before.get(API_AVG_DURATION).mean == 100
        assert store.snapshot().version == before.version + 1
        assert store.snapshot() is not before

    def test_history_bounded(self):
        store = BaselineStore(max_history=3, min_samples=1)
        for value in (1, 2, 3, 4, 5):
            store.update({ERROR_RATE: value})
        assert store.snapshot().history[ERROR_RATE] == (3.0, 4.0, 5.0)

    def test_non_finite_ignored(self):
        store = BaselineStore(min_samples=1)
        store.update({ERROR_RATE: float("nan")})
        assert ERROR_RATE not in store.snapshot().history

    def test_seed(self):
        store = BaselineStore(min_samples=2)
        snapshot = store.seed({API_AVG_DURATION: (90.0, 110.0)})
        assert snapshot.get(API_AVG_DURATION).mean == 100

    def test_snapshot_read_only(self):
        store = BaselineStore(min_samples=1)
        store.update({API_AVG_DURATION: 1})
        with pytest.raises(TypeError):
            store.snapshot().baselines[API_AVG_DURATION] = None

    def test_concurrent_updates(self):
        store = BaselineStore(max_history=1000, min_samples=1)

        def worker(offset):
            for i in range(50):
                store.update({API_AVG_DURATION: offset + i})

        threads = [threading.Thread(target=worker, args=(n * 100,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snapshot = store.snapshot()
        assert len(snapshot.history[API_AVG_DURATION]) == 200
        assert snapshot.version == 200

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            BaselineStore(max_history=0)
