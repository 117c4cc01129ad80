"""
Transaction record model.

One record is one logged AR Server operation (API call, SQL statement,
filter execution or escalation) as produced by the upstream log parser.
"""
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from arlog_engine.errors import InvalidRecordError


class LogType(str, Enum):
    API = "API"
    SQL = "SQL"
    FILTER = "FLTR"
    ESCALATION = "ESCL"


class RecordSource(str, Enum):
    """Which parse path produced a record batch."""
    JAR_PARSED = "jar_parsed"  # native log-format parser, full fidelity
    COMPUTED = "computed"      # reduced fallback from a plain log scan


# Timestamps the parsers emit when a line carries no usable time.
_ZERO_INSTANTS = (
    datetime(1, 1, 1, tzinfo=timezone.utc),
    datetime(1970, 1, 1, tzinfo=timezone.utc),
)


def normalize_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Make a timestamp tz-aware (UTC) and map zero-time sentinels to None."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value.year <= 1 or value in _ZERO_INSTANTS:
        return None
    return value


class TransactionRecord(BaseModel):
    """One logged operation. Immutable once parsed."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    log_type: LogType
    timestamp: Optional[datetime] = None
    duration_ms: float = Field(0.0, ge=0, allow_inf_nan=False)
    queue_time_ms: float = Field(0.0, ge=0, allow_inf_nan=False)

    # Correlation
    thread_id: Optional[str] = None
    trace_id: str = ""
    rpc_id: str = ""

    # Context
    queue: str = ""
    user: str = ""
    client: str = ""

    # Dimension keys (type-dependent)
    form: str = ""
    table: str = Field("", alias="sql_table")
    filter_name: str = ""
    filter_level: Optional[int] = Field(None, ge=0)
    esc_name: str = ""
    esc_pool: str = ""
    api_code: str = ""

    # Outcome
    success: bool = True
    error_message: str = ""

    # Provenance
    line_number: int = Field(0, ge=0)
    file_number: int = Field(0, ge=0)

    raw_details: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _zero_time_is_unknown(cls, value: Optional[datetime]) -> Optional[datetime]:
        return normalize_timestamp(value)

    @field_validator("thread_id")
    @classmethod
    def _blank_thread_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def has_timestamp(self) -> bool:
        return self.timestamp is not None

    @property
    def end_timestamp_ms(self) -> Optional[float]:
        """Epoch milliseconds at which the operation finished."""
        if self.timestamp is None:
            return None
        return self.timestamp.timestamp() * 1000.0 + self.duration_ms

    @property
    def timestamp_ms(self) -> Optional[float]:
        if self.timestamp is None:
            return None
        return self.timestamp.timestamp() * 1000.0

    @property
    def delay_ms(self) -> Optional[float]:
        """Escalation delay carried in the raw payload, if any."""
        value = self.raw_details.get("delay_ms")
        if value is None:
            return None
        try:
            delay = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(delay) or delay < 0:
            return None
        return delay

    def dimension_key(self) -> str:
        """Natural grouping key for this record's log type."""
        if self.log_type == LogType.API:
            return self.form
        if self.log_type == LogType.SQL:
            return self.table
        if self.log_type == LogType.FILTER:
            return self.filter_name
        return self.esc_pool

    def sort_key(self) -> Tuple:
        """Total chronological order; ties broken by provenance."""
        return (
            self.timestamp_ms if self.timestamp_ms is not None else float("-inf"),
            self.line_number,
            self.file_number,
            self.log_type.value,
            self.trace_id,
        )


class QuarantinedRecord(BaseModel):
    """A payload excluded from analysis because it broke a record invariant."""
    model_config = ConfigDict(frozen=True)

    index: int
    reason: str
    line_number: Optional[int] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class RecordBatch(BaseModel):
    """All records of one analysis job."""
    model_config = ConfigDict(frozen=True)

    job_id: str
    source: RecordSource = RecordSource.JAR_PARSED
    records: Tuple[TransactionRecord, ...] = ()
    quarantined: Tuple[QuarantinedRecord, ...] = ()

    @property
    def quarantined_count(self) -> int:
        return len(self.quarantined)

    def by_type(self, log_type: LogType) -> List[TransactionRecord]:
        return [r for r in self.records if r.log_type == log_type]

    @classmethod
    def from_dicts(
        cls,
        job_id: str,
        payloads: List[Dict[str, Any]],
        source: RecordSource = RecordSource.JAR_PARSED,
    ) -> "RecordBatch":
        """
        Build a batch from raw parser payloads.

        Payloads that fail validation are quarantined instead of aborting
        the whole batch.
        """
        records: List[TransactionRecord] = []
        quarantined: List[QuarantinedRecord] = []

        for index, payload in enumerate(payloads):
            try:
                records.append(TransactionRecord.model_validate(payload))
            except ValidationError as e:
                line = payload.get("line_number") if isinstance(payload, dict) else None
                quarantined.append(QuarantinedRecord(
                    index=index,
                    reason=_summarize_validation_error(e),
                    line_number=line if isinstance(line, int) else None,
                    payload=payload if isinstance(payload, dict) else {},
                ))

        return cls(
            job_id=job_id,
            source=source,
            records=tuple(records),
            quarantined=tuple(quarantined),
        )


def check_record(record: TransactionRecord) -> None:
    """
    Re-check the invariants of an already-constructed record.

    Records built with ``model_construct`` skip validation, so the engine
    runs this before analysis.

    Raises:
        InvalidRecordError: if an invariant does not hold
    """
    duration = record.duration_ms
    if not isinstance(duration, (int, float)) or isinstance(duration, bool):
        raise InvalidRecordError("duration_ms is not numeric", record.line_number)
    if not math.isfinite(duration):
        raise InvalidRecordError("duration_ms is not finite", record.line_number)
    if duration < 0:
        raise InvalidRecordError(f"negative duration_ms {duration}", record.line_number)
    if record.timestamp is not None and not isinstance(record.timestamp, datetime):
        raise InvalidRecordError("malformed timestamp", record.line_number)
    if not isinstance(record.log_type, LogType):
        raise InvalidRecordError(f"unknown log_type {record.log_type!r}", record.line_number)


def _summarize_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts) or "invalid record"
