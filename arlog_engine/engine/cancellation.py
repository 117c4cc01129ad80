"""
Cooperative cancellation for analysis jobs.
"""
import threading
from typing import Optional

from arlog_engine.errors import AnalysisCancelled


class CancellationToken:
    """
    Thread-safe cancellation flag shared by all sections of one job.

    Analyzers call ``raise_if_cancelled()`` between independent dimension
    computations; cancellation takes effect at the next check.
    """

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id
        self.reason: Optional[str] = None
        self._event = threading.Event()

    def cancel(self, reason: str = "") -> None:
        self.reason = reason or None
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled(self.job_id)
