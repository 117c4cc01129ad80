"""
Exception analysis: failed operations grouped by error code.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from arlog_engine.analysis.numeric import percent
from arlog_engine.analysis.types import ExceptionEntry, ExceptionsResponse
from arlog_engine.models.record import LogType, RecordSource, TransactionRecord

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown Error"
ERROR_CODE_LENGTH = 100
DEFAULT_TOP_CODES = 10


def error_code_for(record: TransactionRecord) -> str:
    """Grouping code for a failed record (truncated message)."""
    message = (record.error_message or "").strip()
    if not message:
        return UNKNOWN_ERROR
    return message[:ERROR_CODE_LENGTH]


@dataclass
class _ExceptionGroup:
    first: TransactionRecord
    count: int = 0
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None

    def add(self, record: TransactionRecord) -> None:
        self.count += 1
        ts = record.timestamp
        if ts is None:
            return
        if self.first_seen is None or ts < self.first_seen:
            self.first_seen = ts
        if self.last_seen is None or ts > self.last_seen:
            self.last_seen = ts


def analyze_exceptions(
    job_id: str,
    records: Iterable[TransactionRecord],
    source: RecordSource = RecordSource.JAR_PARSED,
    top_codes: int = DEFAULT_TOP_CODES,
    cancel=None,
) -> ExceptionsResponse:
    """
    Group failed records by error code.

    The sample line/trace of each entry comes from the earliest record of
    the group in chronological order, so the result does not depend on
    input order.
    """
    totals: Dict[LogType, int] = {t: 0 for t in LogType}
    errors: Dict[LogType, int] = {t: 0 for t in LogType}
    failed: List[TransactionRecord] = []

    for record in records:
        totals[record.log_type] += 1
        if not record.success:
            errors[record.log_type] += 1
            failed.append(record)

    if cancel is not None:
        cancel.raise_if_cancelled()

    groups: Dict[str, _ExceptionGroup] = {}
    for record in sorted(failed, key=lambda r: r.sort_key()):
        code = error_code_for(record)
        group = groups.get(code)
        if group is None:
            group = groups[code] = _ExceptionGroup(first=record)
        group.add(record)

    entries = [
        ExceptionEntry(
            error_code=code,
            message=group.first.error_message or UNKNOWN_ERROR,
            count=group.count,
            first_seen=group.first_seen,
            last_seen=group.last_seen,
            log_type=group.first.log_type,
            queue=group.first.queue,
            form=group.first.form,
            user=group.first.user,
            sample_line=group.first.line_number,
            sample_trace=group.first.trace_id,
        )
        for code, group in groups.items()
    ]
    entries.sort(key=lambda e: (-e.count, e.error_code))

    error_rates = {
        log_type.value: percent(errors[log_type], totals[log_type])
        for log_type in LogType
        if totals[log_type] > 0
    }

    logger.debug(f"Job {job_id}: {len(failed)} failed records in {len(entries)} error groups")

    return ExceptionsResponse(
        job_id=job_id,
        source=source,
        exceptions=tuple(entries),
        total_count=len(failed),
        top_codes=tuple(e.error_code for e in entries[:top_codes]),
        error_rates=error_rates,
    )
