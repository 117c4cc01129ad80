"""
Latency health component.

Scores the average API response time.
"""
from typing import Optional

from arlog_engine.analysis.health.types import HealthConfig, HealthFactorInput, step_score
from arlog_engine.analysis.types import AggregatesResponse


class LatencyScorer:
    """Scores the average API duration (falls back to SQL when no API calls)."""

    name = "latency"

    def __init__(self, config: HealthConfig = None):
        self.config = config or HealthConfig()

    def score(self, aggregates: Optional[AggregatesResponse]) -> Optional[HealthFactorInput]:
        if aggregates is None:
            return None

        for section_name in ("api", "sql"):
            section = aggregates.sections.get(section_name)
            if section is not None and section.grand_total.count > 0:
                break
        else:
            return None

        avg_ms = section.grand_total.avg_ms
        kind = "API" if section_name == "api" else "SQL"
        return HealthFactorInput(
            name="Avg Response Time",
            score=step_score(avg_ms, self.config.latency_steps),
            max_score=self.config.max_score,
            weight=self.config.weights.get(self.name, 0.25),
            description=f"Average {kind} duration {avg_ms:.0f}ms",
            metadata={"avg_ms": avg_ms, "basis": section_name},
        )
