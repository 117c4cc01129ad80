"""
Filter complexity analysis.

Reports the most executed filters, per-transaction filter counts and rates,
and nesting-level statistics when the records expose nesting.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from arlog_engine.analysis.aggregator import UNKNOWN_KEY
from arlog_engine.analysis.numeric import exact_sum, safe_div
from arlog_engine.analysis.types import (
    Capability,
    FilterComplexityResponse,
    FilterLevelEntry,
    FilterLevelSummary,
    FilterPerTransaction,
    FilterSummary,
    supports,
)
from arlog_engine.models.record import LogType, RecordSource, TransactionRecord

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 50
DEFAULT_PER_TRANSACTION_LIMIT = 100


@dataclass
class _FilterStats:
    durations: List[float] = field(default_factory=list)
    error_count: int = 0
    forms: Set[str] = field(default_factory=set)


def summarize_filters(
    filter_records: Iterable[TransactionRecord],
    top_n: Optional[int] = DEFAULT_TOP_N,
) -> List[FilterSummary]:
    """Filters ranked by execution count descending, then name ascending."""
    stats: Dict[str, _FilterStats] = {}
    for record in filter_records:
        name = record.filter_name.strip() or UNKNOWN_KEY
        entry = stats.setdefault(name, _FilterStats())
        entry.durations.append(record.duration_ms)
        if not record.success:
            entry.error_count += 1
        if record.form:
            entry.forms.add(record.form)

    summaries = []
    for name, s in stats.items():
        total = exact_sum(s.durations)
        summaries.append(FilterSummary(
            filter_name=name,
            execution_count=len(s.durations),
            avg_duration_ms=safe_div(total, len(s.durations)),
            max_duration_ms=max(s.durations),
            total_duration_ms=total,
            error_count=s.error_count,
            # Only reported when the filter always runs on the same form
            form=next(iter(s.forms)) if len(s.forms) == 1 else None,
        ))

    summaries.sort(key=lambda f: (-f.execution_count, f.filter_name))
    return summaries if top_n is None else summaries[:top_n]


def per_transaction_stats(records: Sequence[TransactionRecord]) -> List[FilterPerTransaction]:
    """
    Filter count and time per transaction (trace id).

    Transactions without any filter execution are left out. Entries are
    ordered by total filter time descending, then trace id.
    """
    first_seen: Dict[str, TransactionRecord] = {}
    filters: Dict[str, List[TransactionRecord]] = {}

    for record in sorted(records, key=lambda r: r.sort_key()):
        trace = record.trace_id
        if not trace:
            continue
        first_seen.setdefault(trace, record)
        if record.log_type == LogType.FILTER:
            filters.setdefault(trace, []).append(record)

    entries = []
    for trace, executed in filters.items():
        head = first_seen[trace]
        total = exact_sum(r.duration_ms for r in executed)
        count = len(executed)
        entries.append(FilterPerTransaction(
            trace_id=trace,
            filter_count=count,
            total_filter_duration_ms=total,
            filters_per_sec=count / (total / 1000.0) if total > 0 else None,
            rpc_id=head.rpc_id or executed[0].rpc_id,
            timestamp=executed[0].timestamp,
            user=head.user or executed[0].user,
            queue=head.queue or executed[0].queue,
        ))

    entries.sort(key=lambda e: (-e.total_filter_duration_ms, e.trace_id))
    return entries


def filter_levels(filter_records: Sequence[TransactionRecord]) -> List[FilterLevelEntry]:
    return [
        FilterLevelEntry(
            trace_id=r.trace_id,
            filter_name=r.filter_name or UNKNOWN_KEY,
            level=r.filter_level,
            duration_ms=r.duration_ms,
        )
        for r in sorted(filter_records, key=lambda r: r.sort_key())
        if r.filter_level is not None
    ]


def summarize_levels(levels: Sequence[FilterLevelEntry]) -> List[FilterLevelSummary]:
    by_level: Dict[int, List[float]] = {}
    for entry in levels:
        by_level.setdefault(entry.level, []).append(entry.duration_ms)
    return [
        FilterLevelSummary(
            level=level,
            count=len(durations),
            avg_duration_ms=safe_div(exact_sum(durations), len(durations)),
            max_duration_ms=max(durations),
        )
        for level, durations in sorted(by_level.items())
    ]


def analyze_filters(
    job_id: str,
    records: Sequence[TransactionRecord],
    source: RecordSource = RecordSource.JAR_PARSED,
    top_n: int = DEFAULT_TOP_N,
    per_transaction_limit: int = DEFAULT_PER_TRANSACTION_LIMIT,
    include_levels: bool = True,
    cancel=None,
) -> FilterComplexityResponse:
    """
    Build the filter complexity view for one job.

    ``avg_filters_per_transaction`` and ``max_filters_per_transaction`` cover
    every transaction with at least one filter, before the per-transaction
    list is truncated to ``per_transaction_limit``.
    """
    filter_records = [r for r in records if r.log_type == LogType.FILTER]

    most_executed = summarize_filters(filter_records, top_n)
    if cancel is not None:
        cancel.raise_if_cancelled()

    transactions = per_transaction_stats(records)
    counts = [t.filter_count for t in transactions]
    if cancel is not None:
        cancel.raise_if_cancelled()

    levels: Optional[List[FilterLevelEntry]] = None
    level_summary: Optional[List[FilterLevelSummary]] = None
    if include_levels and supports(source, Capability.FILTER_LEVELS):
        levels = filter_levels(filter_records) or None
        if levels is not None:
            level_summary = summarize_levels(levels)

    logger.debug(
        f"Job {job_id}: {len(filter_records)} filter executions "
        f"across {len(transactions)} transactions"
    )

    return FilterComplexityResponse(
        job_id=job_id,
        source=source,
        most_executed=tuple(most_executed),
        per_transaction=tuple(transactions[:per_transaction_limit]),
        avg_filters_per_transaction=safe_div(sum(counts), len(counts)),
        max_filters_per_transaction=max(counts, default=0),
        total_transactions=len(transactions),
        total_filter_time_ms=exact_sum(r.duration_ms for r in filter_records),
        filter_levels=tuple(levels) if levels is not None else None,
        level_summary=tuple(level_summary) if level_summary is not None else None,
        max_nesting_level=max(e.level for e in levels) if levels else None,
    )
