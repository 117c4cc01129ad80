"""
Statistical anomaly detection.

Compares a job's metrics against their historical baseline and flags
values that deviate by at least ``sigma_threshold`` standard deviations.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from arlog_engine.analysis.baseline import MetricBaseline
from arlog_engine.analysis.numeric import clamp, mean_std, safe_div
from arlog_engine.analysis.thresholds import (
    DEFAULT_SIGMA_BANDS,
    DEFAULT_SIGMA_THRESHOLD,
    MAX_REPORTED_SIGMA,
    SigmaBands,
)
from arlog_engine.analysis.types import (
    AggregatesResponse,
    AnomalyEntry,
    AnomalyType,
    ThreadStatsResponse,
)

logger = logging.getLogger(__name__)

# Tracked job metrics
API_AVG_DURATION = "api_avg_duration_ms"
SQL_AVG_DURATION = "sql_avg_duration_ms"
FILTER_AVG_DURATION = "filter_avg_duration_ms"
ESC_AVG_DURATION = "esc_avg_duration_ms"
ERROR_RATE = "error_rate_pct"
MAX_THREAD_BUSY = "max_thread_busy_pct"

METRIC_TYPES: Dict[str, AnomalyType] = {
    API_AVG_DURATION: AnomalyType.SLOW_API,
    SQL_AVG_DURATION: AnomalyType.SLOW_SQL,
    FILTER_AVG_DURATION: AnomalyType.SLOW_FILTER,
    ESC_AVG_DURATION: AnomalyType.SLOW_ESCALATION,
    ERROR_RATE: AnomalyType.HIGH_ERROR_RATE,
    MAX_THREAD_BUSY: AnomalyType.THREAD_CONTENTION,
}

METRIC_LABELS: Dict[str, str] = {
    API_AVG_DURATION: "Average API duration",
    SQL_AVG_DURATION: "Average SQL duration",
    FILTER_AVG_DURATION: "Average filter duration",
    ESC_AVG_DURATION: "Average escalation duration",
    ERROR_RATE: "Error rate",
    MAX_THREAD_BUSY: "Peak thread utilization",
}

_SECTION_METRICS = {
    "api": API_AVG_DURATION,
    "sql": SQL_AVG_DURATION,
    "filter": FILTER_AVG_DURATION,
    "escalation": ESC_AVG_DURATION,
}

MIN_OUTLIER_POINTS = 3


def compute_sigma(
    value: float,
    baseline: MetricBaseline,
    max_reported_sigma: float = MAX_REPORTED_SIGMA,
) -> float:
    """
    Signed deviation of ``value`` from the baseline in standard deviations.

    A zero standard deviation with any non-zero delta is an unbounded
    deviation; it is reported as ``±max_reported_sigma``.
    """
    delta = value - baseline.mean
    if delta == 0:
        return 0.0
    if not baseline.std_dev > 0:
        return math.copysign(max_reported_sigma, delta)
    return clamp(delta / baseline.std_dev, -max_reported_sigma, max_reported_sigma)


def _describe(label: str, value: float, mean: float, sigma: float) -> str:
    direction = "above" if sigma > 0 else "below"
    return (
        f"{label} is {value:.2f}, {abs(sigma):.1f} standard deviations "
        f"{direction} the baseline of {mean:.2f}"
    )


def detect_anomalies(
    current_metrics: Mapping[str, float],
    baseline: Mapping[str, MetricBaseline],
    sigma_threshold: float = DEFAULT_SIGMA_THRESHOLD,
    bands: SigmaBands = DEFAULT_SIGMA_BANDS,
    max_reported_sigma: float = MAX_REPORTED_SIGMA,
    detected_at: Optional[datetime] = None,
) -> List[AnomalyEntry]:
    """
    Flag metrics that deviate significantly from their baseline.

    Args:
        current_metrics: Metric name -> value for the current job
        baseline: Metric name -> historical baseline; metrics without one
            are skipped
        sigma_threshold: Minimum |sigma| for an entry to be emitted
        bands: Severity cut points on |sigma|
        max_reported_sigma: Cap on the published |sigma|
        detected_at: Timestamp put on every entry (default: now, UTC)

    Returns:
        Entries ordered by |sigma| descending, then metric name.
    """
    detected_at = detected_at or datetime.now(timezone.utc)
    entries = []

    for metric in sorted(current_metrics):
        value = current_metrics[metric]
        reference = baseline.get(metric)
        if reference is None or value is None or not math.isfinite(value):
            continue

        sigma = compute_sigma(value, reference, max_reported_sigma)
        unbounded = not reference.std_dev > 0 and value != reference.mean
        if not unbounded and abs(sigma) < sigma_threshold:
            continue

        anomaly_type = METRIC_TYPES.get(metric, AnomalyType.SLOW_API)
        label = METRIC_LABELS.get(metric, metric)
        direction = "above" if sigma > 0 else "below"
        entries.append(AnomalyEntry(
            id=f"{anomaly_type.value}:{metric}",
            type=anomaly_type,
            severity=bands.classify(sigma).value,
            title=f"{label} {direction} baseline",
            description=_describe(label, value, reference.mean, sigma),
            metric=metric,
            value=value,
            baseline=reference.mean,
            std_dev=reference.std_dev,
            sigma=sigma,
            detected_at=detected_at,
        ))

    entries.sort(key=lambda e: (-abs(e.sigma), e.metric))
    return entries


def detect_outliers(
    points: Mapping[str, float],
    metric: str,
    anomaly_type: AnomalyType,
    sigma_threshold: float = DEFAULT_SIGMA_THRESHOLD,
    bands: SigmaBands = DEFAULT_SIGMA_BANDS,
    detected_at: Optional[datetime] = None,
) -> List[AnomalyEntry]:
    """
    Flag points that deviate from the mean of their peers within one job.

    ``points`` maps a label (e.g. a form name) to its value. Needs at least
    three points and a non-zero spread; otherwise nothing is reported.
    """
    if len(points) < MIN_OUTLIER_POINTS:
        return []

    labels = sorted(points)
    mean, std = mean_std([points[k] for k in labels])
    if not std > 0:
        return []

    detected_at = detected_at or datetime.now(timezone.utc)
    entries = []
    for name in labels:
        value = points[name]
        sigma = safe_div(value - mean, std)
        if abs(sigma) < sigma_threshold:
            continue
        direction = "above" if sigma > 0 else "below"
        entries.append(AnomalyEntry(
            id=f"{anomaly_type.value}:{metric}:{name}",
            type=anomaly_type,
            severity=bands.classify(sigma).value,
            title=f"{name} {direction} peer average",
            description=_describe(f"{metric} for {name}", value, mean, sigma),
            metric=metric,
            value=value,
            baseline=mean,
            std_dev=std,
            sigma=sigma,
            detected_at=detected_at,
        ))

    entries.sort(key=lambda e: (-abs(e.sigma), e.id))
    return entries


def collect_job_metrics(
    aggregates: Optional[AggregatesResponse],
    thread_stats: Iterable[Optional[ThreadStatsResponse]] = (),
) -> Dict[str, float]:
    """
    Derive the tracked job metrics from finalized analyzer output.

    Metrics whose inputs are unavailable are left out.
    """
    metrics: Dict[str, float] = {}

    if aggregates is not None:
        total = 0
        errors = 0
        for section_name, metric in _SECTION_METRICS.items():
            section = aggregates.sections.get(section_name)
            if section is None or section.grand_total.count == 0:
                continue
            metrics[metric] = section.grand_total.avg_ms
            total += section.grand_total.count
            errors += section.grand_total.error_count
        if total > 0:
            metrics[ERROR_RATE] = errors * 100.0 / total

    busy = [
        stats.max_busy_pct
        for stats in thread_stats
        if stats is not None and stats.max_busy_pct is not None
    ]
    if busy:
        metrics[MAX_THREAD_BUSY] = max(busy)

    return metrics
