"""
Thread saturation health component.

Scores contention from the busiest thread's utilization.
"""
from typing import Iterable, Optional

from arlog_engine.analysis.health.types import HealthConfig, HealthFactorInput, step_score
from arlog_engine.analysis.types import ThreadStatsResponse


class ThreadSaturationScorer:
    """Scores the highest busy percentage across all thread views."""

    name = "thread_saturation"

    def __init__(self, config: HealthConfig = None):
        self.config = config or HealthConfig()

    def score(
        self,
        thread_stats: Iterable[Optional[ThreadStatsResponse]],
    ) -> Optional[HealthFactorInput]:
        busiest = None
        for stats in thread_stats:
            if stats is None:
                continue
            for entry in stats.threads:
                if entry.busy_pct is None:
                    continue
                if busiest is None or entry.busy_pct > busiest.busy_pct:
                    busiest = entry

        # No busy percentage anywhere: insufficient data, not 0%
        if busiest is None:
            return None

        return HealthFactorInput(
            name="Thread Saturation",
            score=step_score(busiest.busy_pct, self.config.saturation_steps),
            max_score=self.config.max_score,
            weight=self.config.weights.get(self.name, 0.25),
            description=(
                f"Busiest thread {busiest.thread_id} ({busiest.queue or 'no queue'}) "
                f"at {busiest.busy_pct:.1f}%"
            ),
            metadata={"max_busy_pct": busiest.busy_pct, "thread_id": busiest.thread_id},
        )
