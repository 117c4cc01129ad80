"""
Data Models Package.
"""

from arlog_engine.models.record import (
    LogType,
    RecordSource,
    TransactionRecord,
    QuarantinedRecord,
    RecordBatch,
    check_record,
    normalize_timestamp,
)

__all__ = [
    "LogType",
    "RecordSource",
    "TransactionRecord",
    "QuarantinedRecord",
    "RecordBatch",
    "check_record",
    "normalize_timestamp",
]
