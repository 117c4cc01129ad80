"""
Gap detection.

Finds stretches of time with no recorded activity, either on the global
timeline or per thread. Records are put in chronological order internally,
so the output does not depend on ingestion order.
"""
import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from arlog_engine.analysis.numeric import exact_sum, index_percentile, percent, safe_div
from arlog_engine.analysis.thresholds import (
    DEFAULT_GAP_BANDS,
    DEFAULT_MIN_GAP_MS,
    GapBands,
    GapSeverity,
)
from arlog_engine.analysis.types import (
    Capability,
    GapEntry,
    GapScope,
    GapsResponse,
    QueueHealthSummary,
    supports,
)
from arlog_engine.models.record import RecordSource, TransactionRecord

logger = logging.getLogger(__name__)

_ONE_MS = timedelta(milliseconds=1)
P95 = 0.95


def _gaps_in_timeline(
    timeline: Sequence[TransactionRecord],
    min_gap_ms: float,
    thread_id: Optional[str] = None,
) -> List[GapEntry]:
    """Consecutive-pair scan over an already sorted timeline."""
    gaps = []
    for prev, nxt in zip(timeline, timeline[1:]):
        delta_ms = (nxt.timestamp - prev.timestamp) / _ONE_MS
        if delta_ms > min_gap_ms:
            gaps.append(GapEntry(
                start_time=prev.timestamp,
                end_time=nxt.timestamp,
                duration_ms=delta_ms,
                before_line=prev.line_number,
                after_line=nxt.line_number,
                log_type=prev.log_type,
                thread_id=thread_id,
                queue=(prev.queue or None) if thread_id is not None else None,
            ))
    return gaps


def detect_gaps(
    records: Iterable[TransactionRecord],
    min_gap_ms: float = DEFAULT_MIN_GAP_MS,
    scope: GapScope = GapScope.GLOBAL,
    cancel=None,
) -> List[GapEntry]:
    """
    Detect timing discontinuities longer than ``min_gap_ms``.

    Args:
        records: Records in any order; those without a timestamp are skipped
        min_gap_ms: Reporting floor, exclusive
        scope: GLOBAL scans the whole timeline, PER_THREAD scans each
            thread's timeline independently (records without a thread id
            are ignored)
        cancel: Optional CancellationToken checked between threads

    Returns:
        Gap entries in chronological order (per thread, threads in id order).
    """
    timed = [r for r in records if r.timestamp is not None]

    if scope == GapScope.GLOBAL:
        timed.sort(key=lambda r: r.sort_key())
        return _gaps_in_timeline(timed, min_gap_ms)

    partitions: Dict[str, List[TransactionRecord]] = {}
    for record in timed:
        if record.thread_id is None:
            continue
        partitions.setdefault(record.thread_id, []).append(record)

    gaps: List[GapEntry] = []
    for thread_id in sorted(partitions):
        if cancel is not None:
            cancel.raise_if_cancelled()
        timeline = sorted(partitions[thread_id], key=lambda r: r.sort_key())
        gaps.extend(_gaps_in_timeline(timeline, min_gap_ms, thread_id=thread_id))
    return gaps


def _chronological(gap: GapEntry) -> tuple:
    return (gap.start_time, gap.thread_id or "", gap.before_line, gap.after_line)


def longest_gaps(gaps: Sequence[GapEntry], limit: Optional[int]) -> List[GapEntry]:
    """Keep the ``limit`` longest gaps, returned in chronological order."""
    if limit is None or len(gaps) <= limit:
        return sorted(gaps, key=_chronological)
    ranked = sorted(gaps, key=lambda g: (-g.duration_ms, _chronological(g)))
    return sorted(ranked[:limit], key=_chronological)


def summarize_queues(
    records: Iterable[TransactionRecord],
    thread_gaps: Optional[Sequence[GapEntry]] = None,
) -> List[QueueHealthSummary]:
    """Per-queue request statistics, queues in name order."""
    durations: Dict[str, List[float]] = {}
    errors: Dict[str, int] = {}
    for record in records:
        if not record.queue:
            continue
        durations.setdefault(record.queue, []).append(record.duration_ms)
        if not record.success:
            errors[record.queue] = errors.get(record.queue, 0) + 1

    gap_counts: Dict[str, int] = {}
    for gap in thread_gaps or ():
        if gap.queue:
            gap_counts[gap.queue] = gap_counts.get(gap.queue, 0) + 1

    summaries = []
    for queue in sorted(durations):
        values = sorted(durations[queue])
        total = len(values)
        error_count = errors.get(queue, 0)
        summaries.append(QueueHealthSummary(
            queue=queue,
            total_requests=total,
            error_count=error_count,
            error_rate=percent(error_count, total),
            avg_duration_ms=safe_div(exact_sum(values), total),
            max_duration_ms=values[-1],
            p95_duration_ms=index_percentile(values, P95),
            gap_count=gap_counts.get(queue, 0),
        ))
    return summaries


def analyze_gaps(
    job_id: str,
    records: Sequence[TransactionRecord],
    source: RecordSource = RecordSource.JAR_PARSED,
    min_gap_ms: float = DEFAULT_MIN_GAP_MS,
    bands: GapBands = DEFAULT_GAP_BANDS,
    limit: Optional[int] = None,
    cancel=None,
) -> GapsResponse:
    """
    Build the gaps view for one job.

    Thread gaps are only produced when the record source carries reliable
    thread ids. Counts and the maximum are taken over all detected gaps,
    before ``limit`` is applied.
    """
    line_gaps = detect_gaps(records, min_gap_ms, GapScope.GLOBAL, cancel=cancel)

    thread_gaps: Optional[List[GapEntry]] = None
    if supports(source, Capability.THREAD_GAPS):
        thread_gaps = detect_gaps(records, min_gap_ms, GapScope.PER_THREAD, cancel=cancel)

    if cancel is not None:
        cancel.raise_if_cancelled()

    all_gaps = line_gaps + (thread_gaps or [])
    severities = [bands.classify(g.duration_ms) for g in all_gaps]

    logger.debug(
        f"Job {job_id}: {len(line_gaps)} line gaps, "
        f"{len(thread_gaps) if thread_gaps is not None else 'n/a'} thread gaps"
    )

    return GapsResponse(
        job_id=job_id,
        source=source,
        line_gaps=tuple(longest_gaps(line_gaps, limit)),
        thread_gaps=(
            tuple(longest_gaps(thread_gaps, limit))
            if thread_gaps is not None else None
        ),
        queue_health=tuple(summarize_queues(records, thread_gaps)),
        total_gaps=len(all_gaps),
        critical_count=severities.count(GapSeverity.CRITICAL),
        warning_count=severities.count(GapSeverity.WARNING),
        max_gap_ms=max((g.duration_ms for g in all_gaps), default=0.0),
        min_gap_ms=min_gap_ms,
        warning_ms=bands.warning_ms,
        critical_ms=bands.critical_ms,
        timed_records=sum(1 for r in records if r.timestamp is not None),
    )
