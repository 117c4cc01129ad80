"""
Job result sets and the in-memory result store.
"""
import threading
from types import MappingProxyType
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from arlog_engine.models.record import RecordSource

# Section names
AGGREGATES = "aggregates"
EXCEPTIONS = "exceptions"
GAPS = "gaps"
API_THREADS = "api_threads"
SQL_THREADS = "sql_threads"
FILTERS = "filters"
OVERVIEW = "overview"
DELAYED_ESCALATIONS = "delayed_escalations"
ANOMALIES = "anomalies"
HEALTH = "health"

INDEPENDENT_SECTIONS = (
    AGGREGATES,
    EXCEPTIONS,
    GAPS,
    API_THREADS,
    SQL_THREADS,
    FILTERS,
    OVERVIEW,
    DELAYED_ESCALATIONS,
)
DERIVED_SECTIONS = (ANOMALIES, HEALTH)
ALL_SECTIONS = INDEPENDENT_SECTIONS + DERIVED_SECTIONS


class SectionStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class SectionResult:
    """
    Outcome of one analytic section.

    An available section may still carry no value (e.g. a health score
    with no usable factors).
    """
    name: str
    status: SectionStatus
    value: Any = None
    error: Optional[str] = None
    native: bool = False

    @property
    def available(self) -> bool:
        return self.status == SectionStatus.AVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status.value}
        if self.native:
            data["native"] = True
        if self.error is not None:
            data["error"] = self.error
        if self.value is not None:
            data["data"] = self.value.to_dict() if hasattr(self.value, "to_dict") else self.value
        return data


@dataclass(frozen=True)
class JobResultSet:
    """All section results of one analysis run."""
    job_id: str
    source: RecordSource
    sections: Mapping[str, SectionResult]
    quarantined_count: int = 0
    record_count: int = 0
    baseline_version: int = 0
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "sections", MappingProxyType(dict(self.sections)))

    def get(self, name: str) -> Any:
        """Value of a section, or None when it is missing or unavailable."""
        result = self.sections.get(name)
        if result is None or not result.available:
            return None
        return result.value

    def is_available(self, name: str) -> bool:
        result = self.sections.get(name)
        return result is not None and result.available

    @property
    def unavailable_sections(self) -> List[str]:
        return sorted(n for n, r in self.sections.items() if not r.available)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "source": self.source.value,
            "record_count": self.record_count,
            "quarantined_count": self.quarantined_count,
            "baseline_version": self.baseline_version,
            "completed_at": self.completed_at.isoformat(),
            "sections": {name: r.to_dict() for name, r in self.sections.items()},
        }


class ResultStore:
    """In-memory map of job id to its latest result set."""

    def __init__(self):
        self._lock = threading.Lock()
        self._results: Dict[str, JobResultSet] = {}

    def put(self, result_set: JobResultSet) -> None:
        """Publish a result set, replacing any previous one for the job."""
        with self._lock:
            self._results[result_set.job_id] = result_set

    def get(self, job_id: str) -> Optional[JobResultSet]:
        with self._lock:
            return self._results.get(job_id)

    def evict(self, job_id: str) -> bool:
        with self._lock:
            return self._results.pop(job_id, None) is not None

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._results

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
