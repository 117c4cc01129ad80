"""
Tests for thread utilization analysis.
"""
import pytest

from arlog_engine.analysis.threads import analyze_threads, compute_thread_stats
from arlog_engine.analysis.types import ThreadScope
from arlog_engine.models.record import LogType, RecordSource


# ============================================================================
# compute_thread_stats() Tests
# ============================================================================

class TestComputeThreadStats:
    """Tests for per-thread statistics and busy percentage."""

    def test_busy_pct_ninety(self, make_record):
        records = [
            make_record(LogType.API, offset_ms=0, duration_ms=800, thread_id="T1", queue="Fast"),
            make_record(LogType.API, offset_ms=1000, duration_ms=1000, thread_id="T1", queue="Fast"),
        ]

        entries = compute_thread_stats(records)

        assert len(entries) == 1
        entry = entries[0]
        assert entry.total_duration_ms == 1800
        assert entry.busy_pct == 90.0
        assert entry.total_requests == 2
        assert entry.min_duration_ms == 800
        assert entry.max_duration_ms == 1000
        assert entry.avg_duration_ms == 900

    def test_busy_pct_clamped_on_overlap(self, make_record):
        records = [
            make_record(offset_ms=0, duration_ms=1000, thread_id="T1"),
            make_record(offset_ms=100, duration_ms=1000, thread_id="T1"),
        ]
        assert compute_thread_stats(records)[0].busy_pct == 100.0

    def test_duration_beyond_datetime_range(self, make_record):
        records = [
            make_record(offset_ms=0, duration_ms=1e17, thread_id="T1"),
            make_record(offset_ms=500, duration_ms=10, thread_id="T1"),
        ]

        entry = compute_thread_stats(records)[0]

        assert entry.busy_pct == 100.0
        assert entry.active_start is not None
        assert entry.active_end is None

    def test_degenerate_window_omits_busy_pct(self, make_record):
        entry = compute_thread_stats([make_record(offset_ms=0, duration_ms=0, thread_id="T1")])[0]

        assert entry.busy_pct is None
        assert "busy_pct" not in entry.to_dict()

    def test_no_timestamps_omits_busy_pct(self, make_record):
        entry = compute_thread_stats([make_record(duration_ms=50, thread_id="T1")])[0]
        assert entry.busy_pct is None

    def test_scope_selects_log_type(self, make_record):
        records = [
            make_record(LogType.API, offset_ms=0, thread_id="T1"),
            make_record(LogType.SQL, offset_ms=0, thread_id="T9"),
        ]
        assert [e.thread_id for e in compute_thread_stats(records, ThreadScope.SQL)] == ["T9"]

    def test_records_without_thread_ignored(self, make_record):
        assert compute_thread_stats([make_record(offset_ms=0, duration_ms=5)]) == []

    def test_grouped_by_thread_and_queue(self, make_record):
        records = [
            make_record(offset_ms=0, duration_ms=5, thread_id="T1", queue="Fast"),
            make_record(offset_ms=10, duration_ms=5, thread_id="T1", queue="List"),
        ]
        assert len(compute_thread_stats(records)) == 2

    def test_ordering_queue_then_busy_desc(self, make_record):
        records = [
            # queue B: T3 fully busy
            make_record(offset_ms=0, duration_ms=500, thread_id="T3", queue="B"),
            make_record(offset_ms=500, duration_ms=0, thread_id="T3", queue="B"),
            # queue A: T1 50% busy, T2 100% busy, T4 no window
            make_record(offset_ms=0, duration_ms=250, thread_id="T1", queue="A"),
            make_record(offset_ms=750, duration_ms=250, thread_id="T1", queue="A"),
            make_record(offset_ms=0, duration_ms=100, thread_id="T2", queue="A"),
            make_record(duration_ms=10, thread_id="T4", queue="A"),
        ]

        entries = compute_thread_stats(records)

        assert [(e.queue, e.thread_id) for e in entries] == [
            ("A", "T2"),
            ("A", "T1"),
            ("A", "T4"),
            ("B", "T3"),
        ]
        assert entries[1].busy_pct == pytest.approx(50.0)

    def test_busy_pct_in_range(self, make_record):
        records = [
            make_record(offset_ms=i * 37, duration_ms=(i * 13) % 90, thread_id=f"T{i % 3}")
            for i in range(30)
        ]
        for entry in compute_thread_stats(records):
            if entry.busy_pct is not None:
                assert 0 <= entry.busy_pct <= 100

    def test_unique_users_and_forms(self, make_record):
        records = [
            make_record(offset_ms=0, thread_id="T1", user="Demo", form="A"),
            make_record(offset_ms=5, thread_id="T1", user="Demo", form="B"),
            make_record(offset_ms=9, thread_id="T1", user="Allen", form="B"),
        ]
        entry = compute_thread_stats(records)[0]
        assert entry.unique_users == 2
        assert entry.unique_forms == 2


# ============================================================================
# analyze_threads() Tests
# ============================================================================

class TestAnalyzeThreads:

    def test_response(self, make_record):
        records = [
            make_record(offset_ms=0, duration_ms=800, thread_id="T1"),
            make_record(offset_ms=1000, duration_ms=1000, thread_id="T1"),
            make_record(offset_ms=0, duration_ms=100, thread_id="T2"),
            make_record(offset_ms=900, duration_ms=100, thread_id="T2"),
        ]

        response = analyze_threads("job-1", records)

        assert response.scope == ThreadScope.API
        assert response.total_threads == 2
        assert response.max_busy_pct == 90.0

    def test_computed_source_has_no_busy_pct(self, make_record):
        records = [
            make_record(offset_ms=0, duration_ms=800, thread_id="T1"),
            make_record(offset_ms=1000, duration_ms=1000, thread_id="T1"),
        ]

        response = analyze_threads("job-1", records, source=RecordSource.COMPUTED)

        assert response.threads[0].busy_pct is None
        assert response.max_busy_pct is None
        data = response.to_dict()
        assert "max_busy_pct" not in data
        assert "busy_pct" not in data["threads"][0]
