"""
Cross-job metric baselines.

The store holds one immutable snapshot. Readers take the current snapshot
once and keep using it; writers build a replacement and swap the reference
under a lock, so an analysis never observes a baseline changing mid-run.
"""
import logging
import math
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from arlog_engine.analysis.numeric import mean_std

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 500
DEFAULT_MIN_SAMPLES = 3


@dataclass(frozen=True)
class MetricBaseline:
    """Historical reference for one metric."""
    mean: float
    std_dev: float
    sample_count: int = 0

    @classmethod
    def from_values(cls, values) -> "MetricBaseline":
        values = list(values)
        mean, std = mean_std(values)
        return cls(mean=mean, std_dev=std, sample_count=len(values))

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "std_dev": self.std_dev,
            "sample_count": self.sample_count,
        }


@dataclass(frozen=True)
class BaselineSnapshot:
    version: int = 0
    history: Mapping[str, Tuple[float, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    baselines: Mapping[str, MetricBaseline] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def get(self, metric: str) -> Optional[MetricBaseline]:
        return self.baselines.get(metric)

    def __contains__(self, metric: str) -> bool:
        return metric in self.baselines

    def __len__(self) -> int:
        return len(self.baselines)


class BaselineStore:
    """
    Process-wide baseline state.

    Only metrics with at least ``min_samples`` observations are exposed as
    baselines; fewer observations give no meaningful standard deviation.
    """

    def __init__(
        self,
        max_history: int = DEFAULT_MAX_HISTORY,
        min_samples: int = DEFAULT_MIN_SAMPLES,
    ):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        if min_samples < 1:
            raise ValueError("min_samples must be at least 1")
        self.max_history = max_history
        self.min_samples = min_samples
        self._lock = threading.Lock()
        self._snapshot = BaselineSnapshot()

    def snapshot(self) -> BaselineSnapshot:
        """Current snapshot; never modified after it is returned."""
        return self._snapshot

    def update(self, metrics: Mapping[str, float]) -> BaselineSnapshot:
        """
        Record one job's finalized metrics and publish a new snapshot.

        Non-finite values are ignored.
        """
        with self._lock:
            current = self._snapshot
            history: Dict[str, Tuple[float, ...]] = dict(current.history)

            for metric, value in sorted(metrics.items()):
                if value is None or not math.isfinite(value):
                    continue
                series = history.get(metric, ()) + (float(value),)
                history[metric] = series[-self.max_history:]

            self._snapshot = self._build(current.version + 1, history)
            logger.debug(
                f"Baseline updated to version {self._snapshot.version} "
                f"({len(self._snapshot)} usable metrics)"
            )
            return self._snapshot

    def seed(self, history: Mapping[str, Tuple[float, ...]]) -> BaselineSnapshot:
        """Replace the whole history, e.g. when restoring persisted state."""
        with self._lock:
            trimmed = {
                metric: tuple(float(v) for v in values if math.isfinite(v))[-self.max_history:]
                for metric, values in history.items()
            }
            self._snapshot = self._build(self._snapshot.version + 1, trimmed)
            return self._snapshot

    def _build(self, version: int, history: Dict[str, Tuple[float, ...]]) -> BaselineSnapshot:
        baselines = {
            metric: MetricBaseline.from_values(values)
            for metric, values in history.items()
            if len(values) >= self.min_samples
        }
        return BaselineSnapshot(
            version=version,
            history=MappingProxyType(dict(history)),
            baselines=MappingProxyType(baselines),
        )
