"""
Record quarantine.

Records that break an invariant are set aside and counted instead of
aborting the analysis.
"""
import logging
from typing import Iterable, List, Tuple

from arlog_engine.errors import InvalidRecordError
from arlog_engine.models.record import (
    QuarantinedRecord,
    RecordBatch,
    TransactionRecord,
    check_record,
)

logger = logging.getLogger(__name__)


def quarantine_records(
    records: Iterable[TransactionRecord],
) -> Tuple[List[TransactionRecord], List[QuarantinedRecord]]:
    """
    Split records into valid ones and quarantined ones.

    Returns:
        Tuple of (valid records, quarantined records)
    """
    valid: List[TransactionRecord] = []
    quarantined: List[QuarantinedRecord] = []

    for index, record in enumerate(records):
        try:
            check_record(record)
        except InvalidRecordError as e:
            quarantined.append(QuarantinedRecord(
                index=index,
                reason=e.reason,
                line_number=e.line_number,
                payload=record.model_dump(warnings=False),
            ))
            continue
        valid.append(record)

    return valid, quarantined


def quarantine_batch(batch: RecordBatch) -> RecordBatch:
    """Re-check a batch; returns it unchanged when every record is valid."""
    valid, quarantined = quarantine_records(batch.records)
    if not quarantined:
        return batch

    logger.warning(f"Job {batch.job_id}: quarantined {len(quarantined)} records")
    return RecordBatch(
        job_id=batch.job_id,
        source=batch.source,
        records=tuple(valid),
        quarantined=batch.quarantined + tuple(quarantined),
    )
