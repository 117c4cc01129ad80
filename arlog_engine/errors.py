"""
Exceptions raised by the analysis engine.

Provides a small hierarchy so callers can tell data-quality problems
(recovered locally by the analyzers) apart from failures that abort a job.
"""

from typing import Optional


class EngineError(Exception):
    """
    Base exception for all engine errors.

    Catch this to handle any failure raised by the engine.
    """
    pass


class InvalidRecordError(EngineError):
    """
    Raised when a transaction record violates the record invariants.

    Attributes:
        reason: Short description of the violated invariant
        line_number: Source line of the offending record, if known
    """

    def __init__(self, reason: str, line_number: Optional[int] = None):
        self.reason = reason
        self.line_number = line_number
        location = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"Invalid record{location}: {reason}")


class AnalysisCancelled(EngineError):
    """
    Raised when a job's analysis is cancelled.

    Partial results are discarded when this propagates.
    """

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id
        suffix = f" for job {job_id}" if job_id else ""
        super().__init__(f"Analysis cancelled{suffix}")


class SectionFailure(EngineError):
    """
    Raised when one analytic section could not be produced.

    Attributes:
        section: Name of the failed section
        cause: Original exception
    """

    def __init__(self, section: str, cause: BaseException):
        self.section = section
        self.cause = cause
        super().__init__(f"Section '{section}' failed: {cause}")


class ConfigurationError(EngineError):
    """Raised for invalid engine configuration (weights, thresholds)."""
    pass
