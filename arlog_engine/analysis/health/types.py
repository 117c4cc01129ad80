"""
Health scoring types and configuration.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from arlog_engine.errors import ConfigurationError


@dataclass(frozen=True)
class HealthFactorInput:
    """One factor as produced by a component scorer, before combination."""
    name: str
    score: float           # 0-max_score
    max_score: float
    weight: float          # relative, need not sum to 1 across inputs
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthConfig:
    """Configuration for health scoring."""

    # Factor weights (must sum to 1.0)
    weights: Dict[str, float] = field(default_factory=lambda: {
        "error_rate": 0.30,
        "latency": 0.25,
        "thread_saturation": 0.25,
        "gap_frequency": 0.20,
    })

    max_score: float = 100.0

    # Step functions: (exclusive upper bound, score); anything above the
    # last bound scores 0
    error_rate_steps: List[Tuple[float, float]] = field(default_factory=lambda: [
        (1.0, 100),    # < 1%
        (2.0, 80),     # 1-2%
        (5.0, 50),     # 2-5%
        (10.0, 25),    # 5-10%
    ])

    latency_steps: List[Tuple[float, float]] = field(default_factory=lambda: [
        (500.0, 100),   # < 500ms
        (1000.0, 80),   # 500ms-1s
        (2000.0, 50),   # 1-2s
        (5000.0, 25),   # 2-5s
    ])

    saturation_steps: List[Tuple[float, float]] = field(default_factory=lambda: [
        (50.0, 100),   # < 50% busy
        (70.0, 80),
        (85.0, 50),
        (95.0, 25),
    ])

    # Longest gap, in seconds
    gap_steps: List[Tuple[float, float]] = field(default_factory=lambda: [
        (5.0, 100),
        (15.0, 80),
        (30.0, 50),
        (60.0, 25),
    ])

    def validate(self) -> bool:
        """Validate configuration."""
        if any(w < 0 for w in self.weights.values()):
            raise ConfigurationError("Health weights must not be negative")
        weight_sum = sum(self.weights.values())
        if abs(weight_sum - 1.0) > 0.001:
            raise ConfigurationError(f"Health weights must sum to 1.0, got {weight_sum}")
        if self.max_score <= 0:
            raise ConfigurationError("max_score must be positive")
        return True


def step_score(value: float, steps: List[Tuple[float, float]]) -> float:
    """Score of the first step whose bound exceeds ``value``, else 0."""
    for bound, score in steps:
        if value < bound:
            return float(score)
    return 0.0
