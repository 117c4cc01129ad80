"""
Composite health scoring.

Combines weighted factor scores into one 0-100 score with a status band.
"""
import logging
import math
from typing import Iterable, List, Optional, Sequence

from arlog_engine.analysis.health.components import (
    ErrorRateScorer,
    GapFrequencyScorer,
    LatencyScorer,
    ThreadSaturationScorer,
)
from arlog_engine.analysis.health.types import HealthConfig, HealthFactorInput
from arlog_engine.analysis.numeric import exact_sum, round_half_up
from arlog_engine.analysis.thresholds import health_band, health_color
from arlog_engine.analysis.types import (
    AggregatesResponse,
    GapsResponse,
    HealthScore,
    HealthScoreFactor,
    ThreadStatsResponse,
)
from arlog_engine.models.record import RecordSource

logger = logging.getLogger(__name__)


def _is_usable(factor: HealthFactorInput) -> bool:
    values = (factor.score, factor.max_score, factor.weight)
    if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
        return False
    return factor.max_score > 0 and factor.weight > 0 and 0 <= factor.score <= factor.max_score


def compute_health_score(
    factors: Iterable[Optional[HealthFactorInput]],
    excluded: Sequence[str] = (),
    source: RecordSource = RecordSource.JAR_PARSED,
) -> Optional[HealthScore]:
    """
    Weighted average of normalized factor scores, scaled to 0-100.

    Missing (None) and invalid factors are left out of both numerator and
    denominator. Returns None when no factor is usable.
    """
    usable: List[HealthFactorInput] = []
    skipped = list(excluded)
    for factor in factors:
        if factor is None:
            continue
        if not _is_usable(factor):
            logger.warning(f"Ignoring invalid health factor {factor.name!r}")
            skipped.append(factor.name)
            continue
        usable.append(factor)

    if not usable:
        return None

    weight_sum = exact_sum(f.weight for f in usable)
    weighted = exact_sum(f.score / f.max_score * f.weight for f in usable)
    score = round_half_up(weighted / weight_sum * 100.0)

    scored = tuple(
        HealthScoreFactor(
            name=f.name,
            score=f.score,
            max_score=f.max_score,
            weight=f.weight,
            severity=health_color(f.score / f.max_score * 100.0).value,
            description=f.description,
            metadata=dict(f.metadata),
        )
        for f in usable
    )

    return HealthScore(
        score=score,
        status=health_band(score).value,
        color=health_color(score).value,
        factors=scored,
        excluded_factors=tuple(skipped),
        source=source,
    )


class HealthScorer:
    """
    Scores job health from finalized analyzer output.

    Components:
    - error_rate: share of failed operations
    - latency: average API response time
    - thread_saturation: busiest thread's utilization
    - gap_frequency: longest logging gap
    """

    def __init__(self, config: HealthConfig = None):
        self.config = config or HealthConfig()
        self.config.validate()

        self.error_rate_scorer = ErrorRateScorer(self.config)
        self.latency_scorer = LatencyScorer(self.config)
        self.saturation_scorer = ThreadSaturationScorer(self.config)
        self.gap_scorer = GapFrequencyScorer(self.config)

    def score_job(
        self,
        aggregates: Optional[AggregatesResponse] = None,
        gaps: Optional[GapsResponse] = None,
        thread_stats: Iterable[Optional[ThreadStatsResponse]] = (),
        source: RecordSource = RecordSource.JAR_PARSED,
    ) -> Optional[HealthScore]:
        candidates = [
            ("Error Rate", self.error_rate_scorer.score(aggregates)),
            ("Avg Response Time", self.latency_scorer.score(aggregates)),
            ("Thread Saturation", self.saturation_scorer.score(thread_stats)),
            ("Gap Frequency", self.gap_scorer.score(gaps)),
        ]
        missing = [name for name, factor in candidates if factor is None]
        result = compute_health_score(
            (f for _, f in candidates), excluded=missing, source=source,
        )

        if result is None:
            logger.info("No health factors available")
        return result
