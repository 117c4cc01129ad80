"""
Severity bands shared by the engine and its consumers.

Every continuous metric the dashboard colours (gap length, sigma deviation,
health percentage) is classified here, so the presentation layer reads the
same cut points the engine used.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GapSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


class AnomalySeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class HealthBand(str, Enum):
    """Composite status band."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class HealthColor(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


# Gap bands (milliseconds, exclusive lower bounds)
DEFAULT_MIN_GAP_MS = 1000.0
GAP_WARNING_MS = 5000.0
GAP_CRITICAL_MS = 60000.0

# Sigma bands (inclusive lower bounds on |sigma|)
DEFAULT_SIGMA_THRESHOLD = 2.0
SIGMA_CRITICAL = 4.0
SIGMA_HIGH = 3.0
SIGMA_MEDIUM = 2.5
MAX_REPORTED_SIGMA = 99.0

# Health bands (percent)
HEALTHY_ABOVE = 80
DEGRADED_FROM = 50


@dataclass(frozen=True)
class GapBands:
    """Cut points for gap severity."""
    warning_ms: float = GAP_WARNING_MS
    critical_ms: float = GAP_CRITICAL_MS

    def classify(self, duration_ms: float) -> Optional[GapSeverity]:
        if duration_ms > self.critical_ms:
            return GapSeverity.CRITICAL
        if duration_ms > self.warning_ms:
            return GapSeverity.WARNING
        return None


@dataclass(frozen=True)
class SigmaBands:
    """Cut points mapping |sigma| to anomaly severity."""
    critical: float = SIGMA_CRITICAL
    high: float = SIGMA_HIGH
    medium: float = SIGMA_MEDIUM

    def classify(self, sigma: float) -> AnomalySeverity:
        magnitude = abs(sigma)
        if magnitude >= self.critical:
            return AnomalySeverity.CRITICAL
        if magnitude >= self.high:
            return AnomalySeverity.HIGH
        if magnitude >= self.medium:
            return AnomalySeverity.MEDIUM
        return AnomalySeverity.LOW


DEFAULT_GAP_BANDS = GapBands()
DEFAULT_SIGMA_BANDS = SigmaBands()


def classify_gap(duration_ms: float, bands: GapBands = DEFAULT_GAP_BANDS) -> Optional[GapSeverity]:
    """Severity of a gap, or None when it is below the warning band."""
    return bands.classify(duration_ms)


def classify_sigma(sigma: float, bands: SigmaBands = DEFAULT_SIGMA_BANDS) -> AnomalySeverity:
    return bands.classify(sigma)


def health_band(percent: float) -> HealthBand:
    """Band for a 0-100 health percentage."""
    if percent > HEALTHY_ABOVE:
        return HealthBand.HEALTHY
    if percent >= DEGRADED_FROM:
        return HealthBand.DEGRADED
    return HealthBand.CRITICAL


def health_color(percent: float) -> HealthColor:
    return {
        HealthBand.HEALTHY: HealthColor.GREEN,
        HealthBand.DEGRADED: HealthColor.YELLOW,
        HealthBand.CRITICAL: HealthColor.RED,
    }[health_band(percent)]
