"""
Analytic components.

Each analyzer reads an immutable record collection and returns a new,
frozen result object; none of them mutates shared state.
"""
from arlog_engine.analysis.aggregator import aggregate, aggregate_job
from arlog_engine.analysis.anomaly import collect_job_metrics, detect_anomalies, detect_outliers
from arlog_engine.analysis.baseline import BaselineSnapshot, BaselineStore, MetricBaseline
from arlog_engine.analysis.escalations import find_delayed_escalations
from arlog_engine.analysis.exceptions import analyze_exceptions
from arlog_engine.analysis.filters import analyze_filters
from arlog_engine.analysis.gaps import analyze_gaps, detect_gaps
from arlog_engine.analysis.health import HealthConfig, HealthFactorInput, HealthScorer, compute_health_score
from arlog_engine.analysis.overview import build_overview
from arlog_engine.analysis.threads import analyze_threads, compute_thread_stats
from arlog_engine.analysis.types import GapScope, ThreadScope

__all__ = [
    # Aggregation
    "aggregate",
    "aggregate_job",
    "analyze_exceptions",
    # Timeline
    "detect_gaps",
    "analyze_gaps",
    "GapScope",
    "compute_thread_stats",
    "analyze_threads",
    "ThreadScope",
    # Filters / escalations / overview
    "analyze_filters",
    "find_delayed_escalations",
    "build_overview",
    # Anomalies
    "detect_anomalies",
    "detect_outliers",
    "collect_job_metrics",
    "MetricBaseline",
    "BaselineSnapshot",
    "BaselineStore",
    # Health
    "HealthConfig",
    "HealthFactorInput",
    "HealthScorer",
    "compute_health_score",
]
