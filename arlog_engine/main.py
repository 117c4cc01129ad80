"""
Command line entry point.

Usage:
    python -m arlog_engine analyze RECORDS.jsonl [--job-id ID] [--source SOURCE]
        [--min-gap-ms MS] [--sigma SIGMA] [--baseline FILE] [--output FILE]

Examples:
    python -m arlog_engine analyze job.jsonl                        # Print results
    python -m arlog_engine analyze job.jsonl --source computed      # Reduced-fidelity records
    python -m arlog_engine analyze job.jsonl --baseline base.json   # Keep a baseline across runs
"""
import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from arlog_engine.analysis.baseline import BaselineStore
from arlog_engine.config.settings import EngineConfig
from arlog_engine.engine.runner import AnalysisEngine
from arlog_engine.errors import ConfigurationError, EngineError
from arlog_engine.logging import setup_logging
from arlog_engine.models.record import RecordBatch, RecordSource

logger = logging.getLogger("arlog_engine.main")


def read_payloads(path: Path) -> List[Any]:
    """
    Read one JSON payload per line.

    Lines that are not valid JSON are passed through as raw strings so the
    batch quarantines them instead of failing the job.
    """
    payloads: List[Any] = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                payloads.append(json.loads(line))
            except json.JSONDecodeError as e:
                logger.warning(f"{path}:{line_no}: not valid JSON ({e.msg})")
                payloads.append(line)
    return payloads


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def load_baseline(store: BaselineStore, path: Optional[Path]) -> None:
    if path is None or not path.exists():
        return
    try:
        with open(path, encoding="utf-8") as f:
            history = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Baseline file {path} is not valid JSON: {e.msg}") from e

    if not isinstance(history, dict):
        raise ConfigurationError(f"Baseline file {path} must map metric names to value lists")
    for metric, values in history.items():
        if not isinstance(values, list) or not all(_is_number(v) for v in values):
            raise ConfigurationError(f"Baseline history for {metric!r} in {path} must be a list of numbers")

    store.seed({metric: tuple(values) for metric, values in history.items()})
    logger.info(f"Loaded baseline history for {len(history)} metrics from {path}")


def save_baseline(store: BaselineStore, path: Optional[Path]) -> None:
    if path is None:
        return
    snapshot = store.snapshot()
    with open(path, "w", encoding="utf-8") as f:
        json.dump({m: list(v) for m, v in snapshot.history.items()}, f, indent=2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arlog-engine",
        description="Analyze parsed AR System transaction records",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a JSON-lines record file")
    analyze.add_argument("records", type=Path, help="JSON-lines file, one record per line")
    analyze.add_argument("--job-id", help="Job identifier (default: file name)")
    analyze.add_argument(
        "--source",
        choices=[s.value for s in RecordSource],
        default=RecordSource.JAR_PARSED.value,
        help="Parse path that produced the records",
    )
    analyze.add_argument("--min-gap-ms", type=float, help="Gap reporting floor in ms")
    analyze.add_argument("--sigma", type=float, help="Anomaly sigma threshold")
    analyze.add_argument("--baseline", type=Path, help="Baseline history file (read and updated)")
    analyze.add_argument("--output", "-o", type=Path, help="Write JSON here instead of stdout")
    analyze.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def _config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.min_gap_ms is not None:
        overrides["min_gap_ms"] = args.min_gap_ms
    if args.sigma is not None:
        overrides["sigma_threshold"] = args.sigma
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    return overrides


async def run_analyze(args: argparse.Namespace) -> int:
    config = EngineConfig(**_config_overrides(args))
    setup_logging(config)

    if not args.records.exists():
        logger.error(f"Record file not found: {args.records}")
        return 2

    job_id = args.job_id or args.records.stem
    payloads = read_payloads(args.records)
    batch = RecordBatch.from_dicts(job_id, payloads, RecordSource(args.source))

    engine = AnalysisEngine(config)
    load_baseline(engine.baselines, args.baseline)

    result_set = await engine.analyze(batch)

    save_baseline(engine.baselines, args.baseline)

    output = json.dumps(result_set.to_dict(), indent=2, default=str)
    if args.output:
        out_dir = os.path.dirname(str(args.output))
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        args.output.write_text(output + "\n", encoding="utf-8")
        logger.info(f"Results written to {args.output}")
    else:
        sys.stdout.write(output + "\n")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "analyze":
            return asyncio.run(run_analyze(args))
    except EngineError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130
    return 2
