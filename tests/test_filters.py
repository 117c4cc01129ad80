"""
Tests for filter complexity analysis.
"""
import pytest

from arlog_engine.analysis.filters import (
    analyze_filters,
    per_transaction_stats,
    summarize_filters,
)
from arlog_engine.models.record import LogType, RecordSource


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def five_transactions(make_record):
    """Transactions with 0, 2, 4, 6 and 8 filter executions."""
    records = []
    for n, count in enumerate([0, 2, 4, 6, 8]):
        trace = f"trace-{n}"
        records.append(make_record(
            LogType.API, offset_ms=n * 1000, trace_id=trace, user="Demo", queue="Fast",
        ))
        for i in range(count):
            records.append(make_record(
                LogType.FILTER,
                offset_ms=n * 1000 + i + 1,
                trace_id=trace,
                filter_name=f"HPD:Filter{i % 3}",
                filter_level=i % 3,
                duration_ms=float(count),
            ))
    return records


# ============================================================================
# Per-transaction Tests
# ============================================================================

class TestPerTransaction:
    """Tests for per-transaction filter counts."""

    def test_zero_filter_transaction_excluded(self, five_transactions):
        response = analyze_filters("job-1", five_transactions)

        traces = {t.trace_id for t in response.per_transaction}
        assert "trace-0" not in traces
        assert response.total_transactions == 4
        assert response.avg_filters_per_transaction == 5
        assert response.max_filters_per_transaction == 8

    def test_ordered_by_total_time(self, five_transactions):
        entries = per_transaction_stats(five_transactions)
        assert [e.trace_id for e in entries] == ["trace-4", "trace-3", "trace-2", "trace-1"]

    def test_filters_per_sec(self, five_transactions):
        entry = next(e for e in per_transaction_stats(five_transactions) if e.trace_id == "trace-1")

        # 2 filters, 4ms total
        assert entry.total_filter_duration_ms == 4
        assert entry.filters_per_sec == pytest.approx(500.0)
        assert entry.user == "Demo"
        assert entry.queue == "Fast"

    def test_zero_duration_omits_rate(self, make_record):
        records = [make_record(LogType.FILTER, trace_id="t1", filter_name="F", duration_ms=0)]

        entry = per_transaction_stats(records)[0]

        assert entry.filters_per_sec is None
        assert "filters_per_sec" not in entry.to_dict()

    def test_limit_applied_after_aggregates(self, five_transactions):
        response = analyze_filters("job-1", five_transactions, per_transaction_limit=1)

        assert len(response.per_transaction) == 1
        assert response.per_transaction[0].trace_id == "trace-4"
        assert response.avg_filters_per_transaction == 5
        assert response.total_transactions == 4

    def test_filters_without_trace_not_a_transaction(self, make_record):
        response = analyze_filters("job-1", [make_record(LogType.FILTER, filter_name="F", duration_ms=3)])

        assert response.per_transaction == ()
        assert response.avg_filters_per_transaction == 0
        assert response.total_filter_time_ms == 3


# ============================================================================
# Most Executed Tests
# ============================================================================

class TestMostExecuted:

    def test_ranking_count_desc_then_name(self, make_record):
        records = [
            make_record(LogType.FILTER, filter_name="B"),
            make_record(LogType.FILTER, filter_name="A"),
            make_record(LogType.FILTER, filter_name="C"),
            make_record(LogType.FILTER, filter_name="C"),
        ]
        assert [f.filter_name for f in summarize_filters(records)] == ["C", "A", "B"]

    def test_top_n(self, five_transactions):
        response = analyze_filters("job-1", five_transactions, top_n=2)
        assert len(response.most_executed) == 2

    def test_summary_statistics(self, make_record):
        records = [
            make_record(LogType.FILTER, filter_name="F", form="HPD:Help Desk", duration_ms=2),
            make_record(LogType.FILTER, filter_name="F", form="HPD:Help Desk", duration_ms=6, success=False),
        ]
        summary = summarize_filters(records)[0]

        assert summary.execution_count == 2
        assert summary.avg_duration_ms == 4
        assert summary.max_duration_ms == 6
        assert summary.error_count == 1
        assert summary.form == "HPD:Help Desk"


# ============================================================================
# Nesting Level Tests
# ============================================================================

class TestFilterLevels:

    def test_levels_reported(self, five_transactions):
        response = analyze_filters("job-1", five_transactions)

        assert len(response.filter_levels) == 20
        assert response.max_nesting_level == 2
        assert [s.level for s in response.level_summary] == [0, 1, 2]
        assert sum(s.count for s in response.level_summary) == 20

    def test_computed_source_omits_levels(self, five_transactions):
        response = analyze_filters("job-1", five_transactions, source=RecordSource.COMPUTED)

        assert response.filter_levels is None
        data = response.to_dict()
        assert "filter_levels" not in data
        assert "level_summary" not in data
        assert "max_nesting_level" not in data

    def test_no_levels_in_data(self, make_record):
        response = analyze_filters("job-1", [make_record(LogType.FILTER, trace_id="t", filter_name="F")])
        assert response.filter_levels is None
