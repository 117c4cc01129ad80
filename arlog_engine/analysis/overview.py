"""
Job overview: general statistics, activity time series and distribution maps.
"""
import logging
from collections import Counter
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from arlog_engine.analysis.types import GeneralStatistics, OverviewResponse, TimeSeriesPoint
from arlog_engine.models.record import LogType, RecordSource, TransactionRecord

logger = logging.getLogger(__name__)

MINUTE_BUCKET = "1min"
SECOND_BUCKET = "1s"

_TYPE_LABELS = {
    LogType.API: "API",
    LogType.SQL: "SQL",
    LogType.FILTER: "Filter",
    LogType.ESCALATION: "Escalation",
}


def general_statistics(records: Sequence[TransactionRecord]) -> GeneralStatistics:
    counts = Counter(r.log_type for r in records)
    timed = [r for r in records if r.timestamp is not None]

    log_start = min((r.timestamp for r in timed), default=None)
    log_end = max((r.timestamp for r in timed), default=None)
    duration = None
    if log_start is not None and log_end is not None:
        duration = (log_end - log_start) / timedelta(milliseconds=1)

    return GeneralStatistics(
        total_records=len(records),
        api_count=counts[LogType.API],
        sql_count=counts[LogType.SQL],
        filter_count=counts[LogType.FILTER],
        esc_count=counts[LogType.ESCALATION],
        unique_users=len({r.user for r in records if r.user}),
        unique_forms=len({r.form for r in records if r.form}),
        unique_tables=len({r.table for r in records if r.table}),
        log_start=log_start,
        log_end=log_end,
        log_duration_ms=duration,
    )


def bucket_size(span: timedelta) -> str:
    """Minute buckets for spans over a minute, second buckets otherwise."""
    return MINUTE_BUCKET if span > timedelta(minutes=1) else SECOND_BUCKET


def time_series(records: Iterable[TransactionRecord]) -> Tuple[List[TimeSeriesPoint], Optional[str]]:
    """
    Activity per time bucket.

    Returns the non-empty buckets in chronological order and the bucket
    size used (None when no record has a timestamp).
    """
    timed = [r for r in records if r.timestamp is not None]
    if not timed:
        return [], None

    df = pd.DataFrame({
        "timestamp": pd.to_datetime([r.timestamp for r in timed], utc=True),
        "log_type": [r.log_type.value for r in timed],
        "duration_ms": [r.duration_ms for r in timed],
        "error": [0 if r.success else 1 for r in timed],
    })
    df.set_index("timestamp", inplace=True)
    df.sort_index(inplace=True, kind="stable")

    freq = bucket_size(df.index.max() - df.index.min())

    type_columns = [t.value for t in LogType]
    counts = (
        pd.get_dummies(df["log_type"], dtype=int)
        .reindex(columns=type_columns, fill_value=0)
        .resample(freq)
        .sum()
    )
    durations = df["duration_ms"].resample(freq).mean()
    errors = df["error"].resample(freq).sum()

    points = []
    for bucket, row in counts.iterrows():
        if int(row.sum()) == 0:
            continue
        points.append(TimeSeriesPoint(
            timestamp=bucket.to_pydatetime(),
            api_count=int(row[LogType.API.value]),
            sql_count=int(row[LogType.SQL.value]),
            filter_count=int(row[LogType.FILTER.value]),
            esc_count=int(row[LogType.ESCALATION.value]),
            avg_duration_ms=float(durations.loc[bucket]),
            error_count=int(errors.loc[bucket]),
        ))
    return points, freq


def distribution(records: Sequence[TransactionRecord]) -> Dict[str, Dict[str, int]]:
    """Count maps by type, form, table, queue and user; empty maps are left out."""
    by_type: Counter = Counter()
    by_form: Counter = Counter()
    by_table: Counter = Counter()
    by_queue: Counter = Counter()
    by_user: Counter = Counter()

    for r in records:
        by_type[_TYPE_LABELS[r.log_type]] += 1
        if r.log_type == LogType.API:
            if r.form:
                by_form[r.form] += 1
            if r.user:
                by_user[r.user] += 1
        if r.log_type == LogType.SQL and r.table:
            by_table[r.table] += 1
        if r.log_type in (LogType.API, LogType.SQL) and r.queue:
            by_queue[r.queue] += 1

    maps = {
        "by_type": by_type,
        "by_form": by_form,
        "by_table": by_table,
        "by_queue": by_queue,
        "by_user": by_user,
    }
    return {name: dict(sorted(c.items())) for name, c in maps.items() if c}


def build_overview(
    job_id: str,
    records: Sequence[TransactionRecord],
    source: RecordSource = RecordSource.JAR_PARSED,
    cancel=None,
) -> OverviewResponse:
    stats = general_statistics(records)
    if cancel is not None:
        cancel.raise_if_cancelled()

    points, freq = time_series(records)
    if cancel is not None:
        cancel.raise_if_cancelled()

    logger.debug(f"Job {job_id}: overview with {len(points)} time buckets ({freq})")

    return OverviewResponse(
        job_id=job_id,
        source=source,
        general_stats=stats,
        time_series=tuple(points),
        bucket=freq,
        distribution=distribution(records),
    )
