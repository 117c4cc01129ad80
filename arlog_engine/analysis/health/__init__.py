"""
Health scoring.

Combines error rate, latency, thread saturation and gap factors into one
composite 0-100 score with a status band.
"""
from arlog_engine.analysis.health.types import HealthConfig, HealthFactorInput, step_score
from arlog_engine.analysis.health.scorer import HealthScorer, compute_health_score

__all__ = [
    "HealthConfig",
    "HealthFactorInput",
    "HealthScorer",
    "compute_health_score",
    "step_score",
]
