"""
Health factor component implementations.

Each component turns one analyzer's output into a weighted health factor.
"""
from arlog_engine.analysis.health.components.error_rate import ErrorRateScorer
from arlog_engine.analysis.health.components.latency import LatencyScorer
from arlog_engine.analysis.health.components.thread_saturation import ThreadSaturationScorer
from arlog_engine.analysis.health.components.gap_frequency import GapFrequencyScorer

__all__ = [
    "ErrorRateScorer",
    "LatencyScorer",
    "ThreadSaturationScorer",
    "GapFrequencyScorer",
]
