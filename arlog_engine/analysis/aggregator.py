"""
Dimension aggregator.

Groups records by a dimension key (form, table, filter name, client, pool)
and computes count / error / duration statistics per group plus a grand
total.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set

from arlog_engine.analysis.numeric import exact_sum, percent, safe_div
from arlog_engine.analysis.types import (
    AggregateGroup,
    AggregateSection,
    AggregatesResponse,
)
from arlog_engine.models.record import LogType, RecordSource, TransactionRecord

logger = logging.getLogger(__name__)

UNKNOWN_KEY = "Unknown"
GRAND_TOTAL_NAME = "Total"

KeyFn = Callable[[TransactionRecord], str]
ErrorPredicate = Callable[[TransactionRecord], bool]

SORT_FIELDS = ("count", "error_count", "total_ms", "avg_ms", "max_ms", "min_ms", "error_rate", "name")


def is_failure(record: TransactionRecord) -> bool:
    """Default error predicate."""
    return not record.success


@dataclass
class _Accumulator:
    durations: List[float] = field(default_factory=list)
    error_count: int = 0
    traces: Set[str] = field(default_factory=set)

    def add(self, record: TransactionRecord, failed: bool) -> None:
        self.durations.append(record.duration_ms)
        if failed:
            self.error_count += 1
        if record.trace_id:
            self.traces.add(record.trace_id)

    def finalize(self, name: str) -> AggregateGroup:
        count = len(self.durations)
        if count == 0:
            return AggregateGroup(name=name)
        total = exact_sum(self.durations)
        return AggregateGroup(
            name=name,
            count=count,
            error_count=self.error_count,
            min_ms=min(self.durations),
            max_ms=max(self.durations),
            avg_ms=safe_div(total, count),
            total_ms=total,
            error_rate=percent(self.error_count, count),
            unique_traces=len(self.traces),
        )


def _normalize_key(value: Optional[str]) -> str:
    if value is None:
        return UNKNOWN_KEY
    value = str(value).strip()
    return value or UNKNOWN_KEY


def _sort_groups(
    groups: List[AggregateGroup],
    sort_by: str,
    descending: bool,
) -> List[AggregateGroup]:
    if sort_by not in SORT_FIELDS:
        raise ValueError(f"unknown sort field {sort_by!r}, expected one of {SORT_FIELDS}")

    # Name ascending is the tie-break regardless of direction
    ordered = sorted(groups, key=lambda g: g.name)
    if sort_by == "name":
        return list(reversed(ordered)) if descending else ordered
    return sorted(ordered, key=lambda g: getattr(g, sort_by), reverse=descending)


def aggregate(
    records: Iterable[TransactionRecord],
    key_fn: KeyFn,
    error_predicate: Optional[ErrorPredicate] = None,
    sort_by: str = "count",
    descending: bool = True,
    cancel=None,
    dimension: str = "",
) -> AggregateSection:
    """
    Group records by ``key_fn`` and compute per-group statistics.

    Args:
        records: Records to aggregate (any order)
        key_fn: Extracts the dimension value; blank values group as "Unknown"
        error_predicate: Decides whether a record counts as an error
            (default: ``not record.success``)
        sort_by: Group field to order by (default count, descending)
        descending: Sort direction for ``sort_by``
        cancel: Optional CancellationToken checked before finalizing
        dimension: Label carried on the returned section

    Returns:
        AggregateSection with the groups and a "Total" grand total, which
        is all zeros when there are no records.
    """
    failed = error_predicate or is_failure
    buckets: Dict[str, _Accumulator] = {}
    overall = _Accumulator()

    for record in records:
        key = _normalize_key(key_fn(record))
        is_error = bool(failed(record))
        buckets.setdefault(key, _Accumulator()).add(record, is_error)
        overall.add(record, is_error)

    if cancel is not None:
        cancel.raise_if_cancelled()

    groups = [buckets[key].finalize(key) for key in sorted(buckets)]
    grand_total = overall.finalize(GRAND_TOTAL_NAME)

    return AggregateSection(
        dimension=dimension,
        groups=tuple(_sort_groups(groups, sort_by, descending)),
        grand_total=grand_total,
    )


# Section name -> (log type, key function)
JOB_DIMENSIONS: Dict[str, tuple] = {
    "api": (LogType.API, lambda r: r.form),
    "sql": (LogType.SQL, lambda r: r.table),
    "filter": (LogType.FILTER, lambda r: r.filter_name),
    "escalation": (LogType.ESCALATION, lambda r: r.esc_pool),
    "client": (LogType.API, lambda r: r.client),
}

_DIMENSION_LABELS = {
    "api": "form",
    "sql": "table",
    "filter": "filter_name",
    "escalation": "esc_pool",
    "client": "client",
}


def aggregate_job(
    job_id: str,
    records: Iterable[TransactionRecord],
    source: RecordSource = RecordSource.JAR_PARSED,
    cancel=None,
) -> AggregatesResponse:
    """
    Build every standard aggregate section for one job.

    A section is omitted when its log type has no records.
    """
    by_type: Dict[LogType, List[TransactionRecord]] = {t: [] for t in LogType}
    for record in records:
        by_type[record.log_type].append(record)

    sections: Dict[str, AggregateSection] = {}
    for name, (log_type, key_fn) in JOB_DIMENSIONS.items():
        if cancel is not None:
            cancel.raise_if_cancelled()
        subset = by_type[log_type]
        if not subset:
            continue
        sections[name] = aggregate(
            subset, key_fn, cancel=cancel, dimension=_DIMENSION_LABELS[name]
        )

    logger.debug(f"Aggregated job {job_id}: {len(sections)} sections")
    return AggregatesResponse(job_id=job_id, source=source, sections=sections)
