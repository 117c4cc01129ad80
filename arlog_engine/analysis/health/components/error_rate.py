"""
Error rate health component.

Scores the share of failed operations across all log types.
"""
from typing import Optional

from arlog_engine.analysis.health.types import HealthConfig, HealthFactorInput, step_score
from arlog_engine.analysis.types import AggregatesResponse

# Sections that each count a record once
_COUNTED_SECTIONS = ("api", "sql", "filter", "escalation")


class ErrorRateScorer:
    """Scores the overall error rate from the aggregate grand totals."""

    name = "error_rate"

    def __init__(self, config: HealthConfig = None):
        self.config = config or HealthConfig()

    def score(self, aggregates: Optional[AggregatesResponse]) -> Optional[HealthFactorInput]:
        if aggregates is None:
            return None

        total = 0
        errors = 0
        for name in _COUNTED_SECTIONS:
            section = aggregates.sections.get(name)
            if section is None:
                continue
            total += section.grand_total.count
            errors += section.grand_total.error_count

        if total == 0:
            return None

        rate = errors * 100.0 / total
        return HealthFactorInput(
            name="Error Rate",
            score=step_score(rate, self.config.error_rate_steps),
            max_score=self.config.max_score,
            weight=self.config.weights.get(self.name, 0.30),
            description=f"{rate:.2f}% of {total} operations failed",
            metadata={"error_rate": rate, "error_count": errors, "total": total},
        )
