"""
Gap frequency health component.

Scores logging discontinuities by the longest detected gap.
"""
from typing import Optional

from arlog_engine.analysis.health.types import HealthConfig, HealthFactorInput, step_score
from arlog_engine.analysis.types import GapsResponse


class GapFrequencyScorer:
    """Scores the longest gap; severity counts are kept as metadata."""

    name = "gap_frequency"

    def __init__(self, config: HealthConfig = None):
        self.config = config or HealthConfig()

    def score(self, gaps: Optional[GapsResponse]) -> Optional[HealthFactorInput]:
        # Fewer than two timed records cannot show a gap: insufficient data
        if gaps is None or gaps.timed_records < 2:
            return None

        longest_s = gaps.max_gap_ms / 1000.0
        if gaps.total_gaps == 0:
            description = "No gaps detected"
        else:
            description = (
                f"{gaps.total_gaps} gaps, longest {longest_s:.1f}s "
                f"({gaps.critical_count} critical, {gaps.warning_count} warning)"
            )

        return HealthFactorInput(
            name="Gap Frequency",
            score=step_score(longest_s, self.config.gap_steps),
            max_score=self.config.max_score,
            weight=self.config.weights.get(self.name, 0.20),
            description=description,
            metadata={
                "max_gap_ms": gaps.max_gap_ms,
                "total_gaps": gaps.total_gaps,
                "critical_count": gaps.critical_count,
                "warning_count": gaps.warning_count,
            },
        )
