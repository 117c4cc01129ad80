"""
Thread utilization analysis.

Computes per-thread busy percentage over the thread's observed wall-clock
window, grouped by queue.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

from arlog_engine.analysis.numeric import clamp, exact_sum, safe_div
from arlog_engine.analysis.types import (
    Capability,
    ThreadScope,
    ThreadStatsEntry,
    ThreadStatsResponse,
    supports,
)
from arlog_engine.models.record import LogType, RecordSource, TransactionRecord

logger = logging.getLogger(__name__)

SCOPE_LOG_TYPES = {
    ThreadScope.API: LogType.API,
    ThreadScope.SQL: LogType.SQL,
}


@dataclass
class _ThreadAccumulator:
    durations: List[float] = field(default_factory=list)
    error_count: int = 0
    users: Set[str] = field(default_factory=set)
    forms: Set[str] = field(default_factory=set)
    start: Optional[datetime] = None
    start_ms: Optional[float] = None
    end_ms: Optional[float] = None

    def add(self, record: TransactionRecord) -> None:
        self.durations.append(record.duration_ms)
        if not record.success:
            self.error_count += 1
        if record.user:
            self.users.add(record.user)
        if record.form:
            self.forms.add(record.form)
        if record.timestamp is not None:
            started, finished = record.timestamp_ms, record.end_timestamp_ms
            if self.start_ms is None or started < self.start_ms:
                self.start, self.start_ms = record.timestamp, started
            if self.end_ms is None or finished > self.end_ms:
                self.end_ms = finished

    @property
    def end(self) -> Optional[datetime]:
        # Durations can push the finish past what datetime represents
        if self.end_ms is None:
            return None
        try:
            return datetime.fromtimestamp(self.end_ms / 1000.0, tz=timezone.utc)
        except (OverflowError, ValueError, OSError):
            return None

    def busy_pct(self, total_ms: float) -> Optional[float]:
        """Busy share of the observed window, None when the window is degenerate."""
        if self.start_ms is None or self.end_ms is None:
            return None
        window_ms = self.end_ms - self.start_ms
        if window_ms <= 0:
            return None
        # Overlapping executions on one thread slot can exceed the window
        return clamp(total_ms * 100.0 / window_ms, 0.0, 100.0)


def _ordering(entry: ThreadStatsEntry) -> Tuple:
    missing = entry.busy_pct is None
    return (entry.queue, missing, -(entry.busy_pct or 0.0), entry.thread_id)


def compute_thread_stats(
    records: Iterable[TransactionRecord],
    scope: ThreadScope = ThreadScope.API,
    include_busy_pct: bool = True,
    cancel=None,
) -> List[ThreadStatsEntry]:
    """
    Summarize utilization per (thread, queue).

    Only records of the scope's log type that carry a thread id take part.
    Results are ordered by queue ascending, then busy percentage descending
    (entries without one last), then thread id.
    """
    log_type = SCOPE_LOG_TYPES[scope]
    groups: Dict[Tuple[str, str], _ThreadAccumulator] = {}
    for record in records:
        if record.log_type != log_type or record.thread_id is None:
            continue
        key = (record.thread_id, record.queue)
        groups.setdefault(key, _ThreadAccumulator()).add(record)

    if cancel is not None:
        cancel.raise_if_cancelled()

    entries = []
    for (thread_id, queue), acc in groups.items():
        count = len(acc.durations)
        total = exact_sum(acc.durations)
        entries.append(ThreadStatsEntry(
            thread_id=thread_id,
            queue=queue,
            total_requests=count,
            error_count=acc.error_count,
            avg_duration_ms=safe_div(total, count),
            max_duration_ms=max(acc.durations),
            min_duration_ms=min(acc.durations),
            total_duration_ms=total,
            busy_pct=acc.busy_pct(total) if include_busy_pct else None,
            unique_users=len(acc.users),
            unique_forms=len(acc.forms),
            active_start=acc.start,
            active_end=acc.end,
        ))

    entries.sort(key=_ordering)
    return entries


def analyze_threads(
    job_id: str,
    records: Iterable[TransactionRecord],
    source: RecordSource = RecordSource.JAR_PARSED,
    scope: ThreadScope = ThreadScope.API,
    cancel=None,
) -> ThreadStatsResponse:
    """Thread statistics response for one job and scope."""
    entries = compute_thread_stats(
        records,
        scope=scope,
        include_busy_pct=supports(source, Capability.BUSY_PCT),
        cancel=cancel,
    )
    busy = [e.busy_pct for e in entries if e.busy_pct is not None]

    logger.debug(f"Job {job_id}: {len(entries)} {scope.value} threads")

    return ThreadStatsResponse(
        job_id=job_id,
        source=source,
        scope=scope,
        threads=tuple(entries),
        total_threads=len({e.thread_id for e in entries}),
        max_busy_pct=max(busy) if busy else None,
    )
