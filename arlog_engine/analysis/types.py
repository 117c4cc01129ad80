"""
Analysis result types and data structures.

Every analyzer returns one of the frozen dataclasses below. ``to_dict()``
renders the shape the dashboard consumes: durations in milliseconds,
percentages as 0-100 floats, and optional fields that a parse path cannot
produce left out entirely rather than serialized as null.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from arlog_engine.models.record import LogType, RecordSource


class Capability(str, Enum):
    """Optional outputs that need full-fidelity records."""
    BUSY_PCT = "busy_pct"
    THREAD_GAPS = "thread_gaps"
    FILTER_LEVELS = "filter_levels"


SOURCE_CAPABILITIES: Dict[RecordSource, FrozenSet[Capability]] = {
    RecordSource.JAR_PARSED: frozenset(Capability),
    RecordSource.COMPUTED: frozenset(),
}


def supports(source: RecordSource, capability: Capability) -> bool:
    return capability in SOURCE_CAPABILITIES.get(source, frozenset())


class ThreadScope(str, Enum):
    API = "API"
    SQL = "SQL"


class GapScope(str, Enum):
    GLOBAL = "global"
    PER_THREAD = "per_thread"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in data.items() if v is not None}


def _read_only(obj: Any, name: str) -> None:
    """Replace a mapping field of a frozen dataclass with a read-only view."""
    object.__setattr__(obj, name, MappingProxyType(dict(getattr(obj, name))))


# ============================================================================
# Aggregates
# ============================================================================

@dataclass(frozen=True)
class AggregateGroup:
    """Statistics for one dimension value."""
    name: str
    count: int = 0
    error_count: int = 0
    min_ms: float = 0.0
    max_ms: float = 0.0
    avg_ms: float = 0.0
    total_ms: float = 0.0
    error_rate: float = 0.0   # 0-100
    unique_traces: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "count": self.count,
            "error_count": self.error_count,
            "min_ms": self.min_ms,
            "max_ms": self.max_ms,
            "avg_ms": self.avg_ms,
            "total_ms": self.total_ms,
            "error_rate": self.error_rate,
            "unique_traces": self.unique_traces,
        }


@dataclass(frozen=True)
class AggregateSection:
    """Groups for one dimension plus their grand total."""
    dimension: str
    groups: Tuple[AggregateGroup, ...]
    grand_total: AggregateGroup

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension": self.dimension,
            "groups": [g.to_dict() for g in self.groups],
            "grand_total": self.grand_total.to_dict(),
        }


@dataclass(frozen=True)
class AggregatesResponse:
    job_id: str
    source: RecordSource
    sections: Mapping[str, AggregateSection] = field(default_factory=dict)

    def __post_init__(self):
        _read_only(self, "sections")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "source": self.source.value,
            "sections": {name: s.to_dict() for name, s in self.sections.items()},
        }


# ============================================================================
# Exceptions
# ============================================================================

@dataclass(frozen=True)
class ExceptionEntry:
    """Failed operations sharing one error code."""
    error_code: str
    message: str
    count: int
    first_seen: Optional[datetime]
    last_seen: Optional[datetime]
    log_type: LogType
    queue: str = ""
    form: str = ""
    user: str = ""
    sample_line: int = 0
    sample_trace: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "error_code": self.error_code,
            "message": self.message,
            "count": self.count,
            "first_seen": _iso(self.first_seen),
            "last_seen": _iso(self.last_seen),
            "log_type": self.log_type.value,
            "queue": self.queue,
            "form": self.form,
            "user": self.user,
            "sample_line": self.sample_line,
            "sample_trace": self.sample_trace,
        })


@dataclass(frozen=True)
class ExceptionsResponse:
    job_id: str
    source: RecordSource
    exceptions: Tuple[ExceptionEntry, ...] = ()
    total_count: int = 0
    top_codes: Tuple[str, ...] = ()
    error_rates: Mapping[str, float] = field(default_factory=dict)  # log type -> 0-100

    def __post_init__(self):
        _read_only(self, "error_rates")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "source": self.source.value,
            "exceptions": [e.to_dict() for e in self.exceptions],
            "total_count": self.total_count,
            "top_codes": list(self.top_codes),
            "error_rates": dict(self.error_rates),
        }


# ============================================================================
# Gaps
# ============================================================================

@dataclass(frozen=True)
class GapEntry:
    """
    A stretch of time with no recorded activity.

    ``thread_id`` is set for gaps found on one thread's timeline and absent
    for gaps on the global timeline.
    """
    start_time: datetime
    end_time: datetime
    duration_ms: float
    before_line: int
    after_line: int
    log_type: LogType
    thread_id: Optional[str] = None
    queue: Optional[str] = None

    @property
    def is_thread_gap(self) -> bool:
        return self.thread_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "duration_ms": self.duration_ms,
            "before_line": self.before_line,
            "after_line": self.after_line,
            "log_type": self.log_type.value,
            "thread_id": self.thread_id,
            "queue": self.queue,
        })


@dataclass(frozen=True)
class QueueHealthSummary:
    queue: str
    total_requests: int
    error_count: int
    error_rate: float
    avg_duration_ms: float
    max_duration_ms: float
    p95_duration_ms: float
    gap_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queue": self.queue,
            "total_requests": self.total_requests,
            "error_count": self.error_count,
            "error_rate": self.error_rate,
            "avg_duration_ms": self.avg_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "p95_duration_ms": self.p95_duration_ms,
            "gap_count": self.gap_count,
        }


@dataclass(frozen=True)
class GapsResponse:
    job_id: str
    source: RecordSource
    line_gaps: Tuple[GapEntry, ...] = ()
    thread_gaps: Optional[Tuple[GapEntry, ...]] = None
    queue_health: Tuple[QueueHealthSummary, ...] = ()
    total_gaps: int = 0
    critical_count: int = 0
    warning_count: int = 0
    max_gap_ms: float = 0.0
    min_gap_ms: float = 0.0
    warning_ms: float = 0.0
    critical_ms: float = 0.0
    timed_records: int = 0  # records the scan could place in time
    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "job_id": self.job_id,
            "source": self.source.value,
            "line_gaps": [g.to_dict() for g in self.line_gaps],
            "thread_gaps": (
                [g.to_dict() for g in self.thread_gaps]
                if self.thread_gaps is not None else None
            ),
            "queue_health": [q.to_dict() for q in self.queue_health],
            "total_gaps": self.total_gaps,
            "critical_count": self.critical_count,
            "warning_count": self.warning_count,
            "max_gap_ms": self.max_gap_ms,
            "timed_records": self.timed_records,
            "bands": {
                "min_gap_ms": self.min_gap_ms,
                "warning_ms": self.warning_ms,
                "critical_ms": self.critical_ms,
            },
        })


# ============================================================================
# Threads
# ============================================================================

@dataclass(frozen=True)
class ThreadStatsEntry:
    """Utilization summary for one (thread, queue) pair."""
    thread_id: str
    queue: str
    total_requests: int
    error_count: int
    avg_duration_ms: float
    max_duration_ms: float
    min_duration_ms: float
    total_duration_ms: float
    busy_pct: Optional[float] = None  # absent = not enough data, not 0%
    unique_users: int = 0
    unique_forms: int = 0
    active_start: Optional[datetime] = None
    active_end: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "thread_id": self.thread_id,
            "queue": self.queue,
            "total_requests": self.total_requests,
            "error_count": self.error_count,
            "avg_duration_ms": self.avg_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "min_duration_ms": self.min_duration_ms,
            "total_duration_ms": self.total_duration_ms,
            "busy_pct": self.busy_pct,
            "unique_users": self.unique_users,
            "unique_forms": self.unique_forms,
            "active_start": _iso(self.active_start),
            "active_end": _iso(self.active_end),
        })


@dataclass(frozen=True)
class ThreadStatsResponse:
    job_id: str
    source: RecordSource
    scope: ThreadScope
    threads: Tuple[ThreadStatsEntry, ...] = ()
    total_threads: int = 0
    max_busy_pct: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "job_id": self.job_id,
            "source": self.source.value,
            "scope": self.scope.value,
            "threads": [t.to_dict() for t in self.threads],
            "total_threads": self.total_threads,
            "max_busy_pct": self.max_busy_pct,
        })


# ============================================================================
# Filters
# ============================================================================

@dataclass(frozen=True)
class FilterSummary:
    filter_name: str
    execution_count: int
    avg_duration_ms: float
    max_duration_ms: float
    total_duration_ms: float
    error_count: int
    form: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "filter_name": self.filter_name,
            "execution_count": self.execution_count,
            "avg_duration_ms": self.avg_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "total_duration_ms": self.total_duration_ms,
            "error_count": self.error_count,
            "form": self.form,
        })


@dataclass(frozen=True)
class FilterPerTransaction:
    trace_id: str
    filter_count: int
    total_filter_duration_ms: float
    filters_per_sec: Optional[float] = None
    rpc_id: str = ""
    timestamp: Optional[datetime] = None
    user: str = ""
    queue: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "trace_id": self.trace_id,
            "rpc_id": self.rpc_id,
            "timestamp": _iso(self.timestamp),
            "filter_count": self.filter_count,
            "total_filter_duration_ms": self.total_filter_duration_ms,
            "filters_per_sec": self.filters_per_sec,
            "user": self.user,
            "queue": self.queue,
        })


@dataclass(frozen=True)
class FilterLevelEntry:
    """Nesting depth of one filter invocation."""
    trace_id: str
    filter_name: str
    level: int
    duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "filter_name": self.filter_name,
            "level": self.level,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class FilterLevelSummary:
    level: int
    count: int
    avg_duration_ms: float
    max_duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "count": self.count,
            "avg_duration_ms": self.avg_duration_ms,
            "max_duration_ms": self.max_duration_ms,
        }


@dataclass(frozen=True)
class FilterComplexityResponse:
    job_id: str
    source: RecordSource
    most_executed: Tuple[FilterSummary, ...] = ()
    per_transaction: Tuple[FilterPerTransaction, ...] = ()
    avg_filters_per_transaction: float = 0.0
    max_filters_per_transaction: int = 0
    total_transactions: int = 0
    total_filter_time_ms: float = 0.0
    filter_levels: Optional[Tuple[FilterLevelEntry, ...]] = None
    level_summary: Optional[Tuple[FilterLevelSummary, ...]] = None
    max_nesting_level: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "job_id": self.job_id,
            "source": self.source.value,
            "most_executed": [f.to_dict() for f in self.most_executed],
            "per_transaction": [p.to_dict() for p in self.per_transaction],
            "avg_filters_per_transaction": self.avg_filters_per_transaction,
            "max_filters_per_transaction": self.max_filters_per_transaction,
            "total_transactions": self.total_transactions,
            "total_filter_time_ms": self.total_filter_time_ms,
            "filter_levels": (
                [f.to_dict() for f in self.filter_levels]
                if self.filter_levels is not None else None
            ),
            "level_summary": (
                [s.to_dict() for s in self.level_summary]
                if self.level_summary is not None else None
            ),
            "max_nesting_level": self.max_nesting_level,
        })


# ============================================================================
# Anomalies
# ============================================================================

class AnomalyType(str, Enum):
    SLOW_API = "slow_api"
    SLOW_SQL = "slow_sql"
    SLOW_FILTER = "slow_filter"
    SLOW_ESCALATION = "slow_escalation"
    HIGH_ERROR_RATE = "high_error_rate"
    THREAD_CONTENTION = "thread_contention"


@dataclass(frozen=True)
class AnomalyEntry:
    """A metric that deviates significantly from its baseline."""
    type: AnomalyType
    severity: str
    title: str
    description: str
    metric: str
    value: float
    baseline: float
    std_dev: float
    sigma: float   # signed: positive when value is above baseline
    detected_at: datetime
    id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "metric": self.metric,
            "value": self.value,
            "baseline": self.baseline,
            "std_dev": self.std_dev,
            "sigma": self.sigma,
            "detected_at": self.detected_at.isoformat(),
        }


@dataclass(frozen=True)
class AnomalyList:
    job_id: str
    anomalies: Tuple[AnomalyEntry, ...] = ()
    sigma_threshold: float = 0.0
    source: RecordSource = RecordSource.JAR_PARSED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "source": self.source.value,
            "sigma_threshold": self.sigma_threshold,
            "anomalies": [a.to_dict() for a in self.anomalies],
            "total": len(self.anomalies),
        }


# ============================================================================
# Health
# ============================================================================

@dataclass(frozen=True)
class HealthScoreFactor:
    """One weighted sub-score of the composite health score."""
    name: str
    score: float
    max_score: float
    weight: float
    severity: str
    description: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _read_only(self, "metadata")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "max_score": self.max_score,
            "weight": self.weight,
            "severity": self.severity,
            "description": self.description,
        }


@dataclass(frozen=True)
class HealthScore:
    score: int
    status: str
    color: str
    factors: Tuple[HealthScoreFactor, ...] = ()
    excluded_factors: Tuple[str, ...] = ()
    source: RecordSource = RecordSource.JAR_PARSED

    def explain(self) -> str:
        """Human-readable breakdown of the score."""
        lines = [f"Health Score: {self.score}/100 ({self.status})", ""]
        for f in sorted(self.factors, key=lambda x: x.weight, reverse=True):
            lines.append(
                f"  {f.name}: {f.score:g}/{f.max_score:g} "
                f"(weight: {f.weight:.0%}, {f.severity})"
            )
            lines.append(f"    -> {f.description}")
        if self.excluded_factors:
            lines.append("")
            lines.append("Not scored: " + ", ".join(self.excluded_factors))
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "score": self.score,
            "source": self.source.value,
            "status": self.status,
            "color": self.color,
            "factors": [f.to_dict() for f in self.factors],
        }
        if self.excluded_factors:
            data["excluded_factors"] = list(self.excluded_factors)
        return data


# ============================================================================
# Overview
# ============================================================================

@dataclass(frozen=True)
class GeneralStatistics:
    total_records: int = 0
    api_count: int = 0
    sql_count: int = 0
    filter_count: int = 0
    esc_count: int = 0
    unique_users: int = 0
    unique_forms: int = 0
    unique_tables: int = 0
    log_start: Optional[datetime] = None
    log_end: Optional[datetime] = None
    log_duration_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "total_records": self.total_records,
            "api_count": self.api_count,
            "sql_count": self.sql_count,
            "filter_count": self.filter_count,
            "esc_count": self.esc_count,
            "unique_users": self.unique_users,
            "unique_forms": self.unique_forms,
            "unique_tables": self.unique_tables,
            "log_start": _iso(self.log_start),
            "log_end": _iso(self.log_end),
            "log_duration_ms": self.log_duration_ms,
        })


@dataclass(frozen=True)
class TimeSeriesPoint:
    timestamp: datetime
    api_count: int = 0
    sql_count: int = 0
    filter_count: int = 0
    esc_count: int = 0
    avg_duration_ms: float = 0.0
    error_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "api_count": self.api_count,
            "sql_count": self.sql_count,
            "filter_count": self.filter_count,
            "esc_count": self.esc_count,
            "avg_duration_ms": self.avg_duration_ms,
            "error_count": self.error_count,
        }


@dataclass(frozen=True)
class OverviewResponse:
    job_id: str
    source: RecordSource
    general_stats: GeneralStatistics
    time_series: Tuple[TimeSeriesPoint, ...] = ()
    bucket: Optional[str] = None
    distribution: Mapping[str, Mapping[str, int]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "distribution", MappingProxyType({
            name: MappingProxyType(dict(counts))
            for name, counts in self.distribution.items()
        }))

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "job_id": self.job_id,
            "source": self.source.value,
            "general_stats": self.general_stats.to_dict(),
            "time_series": [p.to_dict() for p in self.time_series],
            "bucket": self.bucket,
            "distribution": {k: dict(v) for k, v in self.distribution.items()},
        })


# ============================================================================
# Escalations
# ============================================================================

@dataclass(frozen=True)
class DelayedEscalationEntry:
    esc_name: str
    esc_pool: str
    delay_ms: float
    duration_ms: float
    timestamp: Optional[datetime]
    line_number: int
    trace_id: str = ""
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "esc_name": self.esc_name,
            "esc_pool": self.esc_pool,
            "delay_ms": self.delay_ms,
            "duration_ms": self.duration_ms,
            "timestamp": _iso(self.timestamp),
            "line_number": self.line_number,
            "trace_id": self.trace_id,
            "success": self.success,
        })


@dataclass(frozen=True)
class DelayedEscalationsResponse:
    job_id: str
    source: RecordSource
    entries: Tuple[DelayedEscalationEntry, ...] = ()
    total: int = 0
    avg_delay_ms: float = 0.0
    max_delay_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "source": self.source.value,
            "entries": [e.to_dict() for e in self.entries],
            "total": self.total,
            "avg_delay_ms": self.avg_delay_ms,
            "max_delay_ms": self.max_delay_ms,
        }
