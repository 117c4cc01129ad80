"""
Analysis engine.

Runs every analytic section of a job concurrently over the same immutable
record collection, then derives anomalies and health from the joined
results. A failing section is reported as unavailable without affecting
the others; cancellation aborts the whole job.
"""
import asyncio
from functools import partial
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from arlog_engine.analysis.aggregator import aggregate_job
from arlog_engine.analysis.anomaly import collect_job_metrics, detect_anomalies, detect_outliers
from arlog_engine.analysis.baseline import BaselineSnapshot, BaselineStore
from arlog_engine.analysis.escalations import find_delayed_escalations
from arlog_engine.analysis.exceptions import analyze_exceptions
from arlog_engine.analysis.filters import analyze_filters
from arlog_engine.analysis.gaps import analyze_gaps
from arlog_engine.analysis.health import HealthConfig, HealthScorer
from arlog_engine.analysis.overview import build_overview
from arlog_engine.analysis.threads import analyze_threads
from arlog_engine.analysis.thresholds import GapBands, SigmaBands
from arlog_engine.analysis.types import (
    AggregatesResponse,
    AnomalyList,
    AnomalyType,
    DelayedEscalationsResponse,
    ExceptionsResponse,
    FilterComplexityResponse,
    GapsResponse,
    HealthScore,
    OverviewResponse,
    ThreadScope,
    ThreadStatsResponse,
)
from arlog_engine.config.settings import EngineConfig
from arlog_engine.engine import results as sections
from arlog_engine.engine.cancellation import CancellationToken
from arlog_engine.engine.quarantine import quarantine_batch
from arlog_engine.engine.results import (
    JobResultSet,
    ResultStore,
    SectionResult,
    SectionStatus,
)
from arlog_engine.errors import AnalysisCancelled, ConfigurationError, SectionFailure
from arlog_engine.logging import EngineLogger, log_timing, logger as engine_logger
from arlog_engine.models.record import RecordBatch, RecordSource


# Per-form / per-table outlier metrics
API_FORM_AVG = "api_form_avg_duration_ms"
SQL_TABLE_AVG = "sql_table_avg_duration_ms"


class AnalysisEngine:
    """
    Orchestrates one job's analysis.

    The baseline store and result store are shared across jobs; everything
    else is built per run.
    """

    def __init__(
        self,
        config: EngineConfig = None,
        baseline_store: BaselineStore = None,
        result_store: ResultStore = None,
        health_config: HealthConfig = None,
    ):
        self.config = config or EngineConfig()
        valid, message = self.config.validate_thresholds()
        if not valid:
            raise ConfigurationError(message)

        self.gap_bands = GapBands(
            warning_ms=self.config.gap_warning_ms,
            critical_ms=self.config.gap_critical_ms,
        )
        self.sigma_bands = SigmaBands(
            critical=self.config.sigma_critical,
            high=self.config.sigma_high,
            medium=self.config.sigma_medium,
        )
        self.baselines = baseline_store or BaselineStore(
            max_history=self.config.baseline_max_history,
            min_samples=self.config.baseline_min_samples,
        )
        self.results = result_store or ResultStore()
        self.health_scorer = HealthScorer(health_config)

    def _section_plan(
        self,
        batch: RecordBatch,
        cancel: CancellationToken,
    ) -> Dict[str, Callable[[], Any]]:
        """Independent sections and the calls that compute them."""
        cfg = self.config
        job_id, records, source = batch.job_id, batch.records, batch.source
        return {
            sections.AGGREGATES: partial(aggregate_job, job_id, records, source, cancel=cancel),
            sections.EXCEPTIONS: partial(
                analyze_exceptions, job_id, records, source,
                top_codes=cfg.top_error_codes, cancel=cancel,
            ),
            sections.GAPS: partial(
                analyze_gaps, job_id, records, source,
                min_gap_ms=cfg.min_gap_ms, bands=self.gap_bands,
                limit=cfg.gap_report_limit, cancel=cancel,
            ),
            sections.API_THREADS: partial(
                analyze_threads, job_id, records, source, ThreadScope.API, cancel=cancel,
            ),
            sections.SQL_THREADS: partial(
                analyze_threads, job_id, records, source, ThreadScope.SQL, cancel=cancel,
            ),
            sections.FILTERS: partial(
                analyze_filters, job_id, records, source,
                top_n=cfg.filter_top_n,
                per_transaction_limit=cfg.filter_per_transaction_limit,
                cancel=cancel,
            ),
            sections.OVERVIEW: partial(build_overview, job_id, records, source, cancel=cancel),
            sections.DELAYED_ESCALATIONS: partial(
                find_delayed_escalations, job_id, records, source,
                min_delay_ms=cfg.delayed_escalation_min_ms,
                limit=cfg.delayed_escalation_limit,
                cancel=cancel,
            ),
        }

    async def _run_section(
        self,
        name: str,
        func: Callable[[], Any],
        cancel: CancellationToken,
        log: EngineLogger,
    ) -> SectionResult:
        cancel.raise_if_cancelled()
        try:
            value = await asyncio.to_thread(func)
        except (AnalysisCancelled, MemoryError):
            raise
        except Exception as e:
            failure = SectionFailure(name, e)
            log.error(str(failure), exc_info=True, section=name)
            return SectionResult(name=name, status=SectionStatus.UNAVAILABLE, error=str(e))

        log.section(name, SectionStatus.AVAILABLE.value)
        return SectionResult(name=name, status=SectionStatus.AVAILABLE, value=value)

    def _derive_section(self, name: str, func: Callable[[], Any], log: EngineLogger) -> SectionResult:
        try:
            value = func()
        except MemoryError:
            raise
        except Exception as e:
            failure = SectionFailure(name, e)
            log.error(str(failure), exc_info=True, section=name)
            return SectionResult(name=name, status=SectionStatus.UNAVAILABLE, error=str(e))

        log.section(name, SectionStatus.AVAILABLE.value)
        return SectionResult(name=name, status=SectionStatus.AVAILABLE, value=value)

    def _anomalies(
        self,
        job_id: str,
        metrics: Mapping[str, float],
        snapshot: BaselineSnapshot,
        aggregates,
        source: RecordSource = RecordSource.JAR_PARSED,
    ) -> AnomalyList:
        cfg = self.config
        found = detect_anomalies(
            metrics,
            snapshot.baselines,
            sigma_threshold=cfg.sigma_threshold,
            bands=self.sigma_bands,
            max_reported_sigma=cfg.max_reported_sigma,
        )

        if aggregates is not None:
            for section_name, metric, anomaly_type in (
                ("api", API_FORM_AVG, AnomalyType.SLOW_API),
                ("sql", SQL_TABLE_AVG, AnomalyType.SLOW_SQL),
            ):
                section = aggregates.sections.get(section_name)
                if section is None:
                    continue
                points = {g.name: g.avg_ms for g in section.groups}
                found.extend(detect_outliers(
                    points, metric, anomaly_type,
                    sigma_threshold=cfg.sigma_threshold,
                    bands=self.sigma_bands,
                ))

        return AnomalyList(
            job_id=job_id,
            anomalies=tuple(found),
            sigma_threshold=cfg.sigma_threshold,
            source=source,
        )

    @log_timing(label="analysis")
    async def analyze(
        self,
        batch: RecordBatch,
        cancel: Optional[CancellationToken] = None,
        native_sections: Optional[Mapping[str, Any]] = None,
    ) -> JobResultSet:
        """
        Analyze one job and publish its result set.

        Args:
            batch: The job's records
            cancel: Optional cancellation token
            native_sections: Sections already produced by the native parser;
                they are kept as-is and not recomputed

        Returns:
            The published JobResultSet

        Raises:
            AnalysisCancelled: if the job was cancelled; nothing is published
        """
        native = _check_native(native_sections or {})

        cancel = cancel or CancellationToken(batch.job_id)
        log = engine_logger.with_context(job_id=batch.job_id, source=batch.source.value)

        # Baseline is read once per job
        snapshot = self.baselines.snapshot()

        batch = quarantine_batch(batch)
        if batch.quarantined_count:
            log.warning(
                f"{batch.quarantined_count} records quarantined",
                quarantined=batch.quarantined_count,
            )
        log.info(f"Analyzing {len(batch.records)} records", records=len(batch.records))

        plan = {
            name: func
            for name, func in self._section_plan(batch, cancel).items()
            if name not in native
        }
        computed = await asyncio.gather(
            *(self._run_section(name, func, cancel, log) for name, func in plan.items())
        )
        cancel.raise_if_cancelled()

        results: Dict[str, SectionResult] = {r.name: r for r in computed}
        for name, value in native.items():
            results[name] = SectionResult(
                name=name, status=SectionStatus.AVAILABLE, value=value, native=True,
            )

        aggregates = _value(results, sections.AGGREGATES)
        gaps = _value(results, sections.GAPS)
        thread_views = [
            _value(results, sections.API_THREADS),
            _value(results, sections.SQL_THREADS),
        ]
        metrics = collect_job_metrics(aggregates, thread_views)

        if sections.ANOMALIES not in native:
            results[sections.ANOMALIES] = self._derive_section(
                sections.ANOMALIES,
                partial(self._anomalies, batch.job_id, metrics, snapshot, aggregates, batch.source),
                log,
            )
        if sections.HEALTH not in native:
            results[sections.HEALTH] = self._derive_section(
                sections.HEALTH,
                partial(
                    self.health_scorer.score_job, aggregates, gaps, thread_views, batch.source,
                ),
                log,
            )

        cancel.raise_if_cancelled()

        result_set = JobResultSet(
            job_id=batch.job_id,
            source=batch.source,
            sections={name: results[name] for name in sections.ALL_SECTIONS if name in results},
            quarantined_count=batch.quarantined_count,
            record_count=len(batch.records),
            baseline_version=snapshot.version,
        )

        if self.config.update_baseline and metrics:
            self.baselines.update(metrics)

        self.results.put(result_set)

        unavailable = result_set.unavailable_sections
        if unavailable:
            log.warning(f"Analysis finished with unavailable sections: {', '.join(unavailable)}")
        else:
            log.info("Analysis finished")
        return result_set

    async def analyze_payloads(
        self,
        job_id: str,
        payloads: Iterable[dict],
        source: RecordSource = RecordSource.JAR_PARSED,
        cancel: Optional[CancellationToken] = None,
    ) -> JobResultSet:
        """Validate raw parser payloads and analyze them."""
        batch = RecordBatch.from_dicts(job_id, list(payloads), source)
        return await self.analyze(batch, cancel=cancel)


def _value(results: Mapping[str, SectionResult], name: str) -> Any:
    result = results.get(name)
    if result is None or not result.available:
        return None
    return result.value


NATIVE_SECTION_TYPES = {
    sections.AGGREGATES: AggregatesResponse,
    sections.EXCEPTIONS: ExceptionsResponse,
    sections.GAPS: GapsResponse,
    sections.API_THREADS: ThreadStatsResponse,
    sections.SQL_THREADS: ThreadStatsResponse,
    sections.FILTERS: FilterComplexityResponse,
    sections.OVERVIEW: OverviewResponse,
    sections.DELAYED_ESCALATIONS: DelayedEscalationsResponse,
    sections.ANOMALIES: AnomalyList,
    sections.HEALTH: HealthScore,
}


def _check_native(native_sections: Mapping[str, Any]) -> Dict[str, Any]:
    """Native sections must use the engine's own response types."""
    native = dict(native_sections)
    unknown = set(native) - set(NATIVE_SECTION_TYPES)
    if unknown:
        raise ValueError(f"Unknown native sections: {sorted(unknown)}")
    for name, value in native.items():
        expected = NATIVE_SECTION_TYPES[name]
        if not isinstance(value, expected):
            raise TypeError(
                f"Native section '{name}' must be {expected.__name__}, "
                f"got {type(value).__name__}"
            )
    return native
