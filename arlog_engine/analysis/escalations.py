"""
Delayed escalation report.
"""
import logging
from typing import Iterable, Optional

from arlog_engine.analysis.numeric import exact_sum, safe_div
from arlog_engine.analysis.types import DelayedEscalationEntry, DelayedEscalationsResponse
from arlog_engine.models.record import LogType, RecordSource, TransactionRecord

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


def find_delayed_escalations(
    job_id: str,
    records: Iterable[TransactionRecord],
    source: RecordSource = RecordSource.JAR_PARSED,
    min_delay_ms: float = 0.0,
    limit: Optional[int] = DEFAULT_LIMIT,
    cancel=None,
) -> DelayedEscalationsResponse:
    """
    Escalations that fired later than scheduled, longest delay first.

    ``total``, ``avg_delay_ms`` and ``max_delay_ms`` cover every delayed
    escalation, not only the ones kept after ``limit``.
    """
    entries = []
    for record in records:
        if record.log_type != LogType.ESCALATION:
            continue
        delay = record.delay_ms
        if delay is None or delay <= min_delay_ms:
            continue
        entries.append(DelayedEscalationEntry(
            esc_name=record.esc_name,
            esc_pool=record.esc_pool,
            delay_ms=delay,
            duration_ms=record.duration_ms,
            timestamp=record.timestamp,
            line_number=record.line_number,
            trace_id=record.trace_id,
            success=record.success,
        ))

    if cancel is not None:
        cancel.raise_if_cancelled()

    entries.sort(key=lambda e: (-e.delay_ms, e.line_number, e.esc_name))
    delays = [e.delay_ms for e in entries]

    if entries:
        logger.debug(f"Job {job_id}: {len(entries)} delayed escalations")

    return DelayedEscalationsResponse(
        job_id=job_id,
        source=source,
        entries=tuple(entries if limit is None else entries[:limit]),
        total=len(entries),
        avg_delay_ms=safe_div(exact_sum(delays), len(delays)),
        max_delay_ms=max(delays, default=0.0),
    )
