"""
Job orchestration: parallel section runs, cancellation, quarantine and
result publication.
"""
from arlog_engine.engine.cancellation import CancellationToken
from arlog_engine.engine.quarantine import quarantine_batch, quarantine_records
from arlog_engine.engine.results import JobResultSet, ResultStore, SectionResult, SectionStatus
from arlog_engine.engine.runner import AnalysisEngine

__all__ = [
    "AnalysisEngine",
    "CancellationToken",
    "JobResultSet",
    "ResultStore",
    "SectionResult",
    "SectionStatus",
    "quarantine_batch",
    "quarantine_records",
]
