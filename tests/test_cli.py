"""
Tests for the command line entry point.
"""
import json

import pytest

from arlog_engine.analysis.baseline import BaselineStore
from arlog_engine.errors import ConfigurationError
from arlog_engine.main import load_baseline, main, read_payloads


@pytest.fixture(autouse=True)
def no_config_file(monkeypatch, tmp_path):
    monkeypatch.setenv("ARLOG_CONFIG_FILE", str(tmp_path / "missing.yaml"))


@pytest.fixture
def records_file(tmp_path):
    lines = [
        {"log_type": "API", "timestamp": "2024-03-01T09:00:00Z", "duration_ms": 120,
         "form": "HPD:Help Desk", "thread_id": "T1", "queue": "Fast", "line_number": 1},
        {"log_type": "SQL", "timestamp": "2024-03-01T09:00:00.050Z", "duration_ms": 15,
         "sql_table": "T100", "thread_id": "T1", "queue": "Fast", "line_number": 2},
        {"log_type": "API", "timestamp": "2024-03-01T09:01:10Z", "duration_ms": 80,
         "form": "HPD:Help Desk", "thread_id": "T1", "queue": "Fast", "line_number": 3,
         "success": False, "error_message": "ARERR 9352 Timeout"},
    ]
    path = tmp_path / "job-42.jsonl"
    path.write_text("\n".join(json.dumps(line) for line in lines) + "\n{not json\n\n")
    return path


def test_analyze_to_file(records_file, tmp_path):
    output = tmp_path / "out" / "result.json"

    assert main(["analyze", str(records_file), "--output", str(output)]) == 0

    data = json.loads(output.read_text())
    assert data["job_id"] == "job-42"
    assert data["record_count"] == 3
    assert data["quarantined_count"] == 1
    assert data["sections"]["gaps"]["data"]["max_gap_ms"] == 69_950
    assert data["sections"]["health"]["status"] == "available"


def test_analyze_to_stdout(records_file, capsys):
    assert main(["analyze", str(records_file), "--job-id", "custom", "--source", "computed"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["job_id"] == "custom"
    assert data["source"] == "computed"
    assert "thread_gaps" not in data["sections"]["gaps"]["data"]


def test_min_gap_override(records_file, capsys):
    assert main(["analyze", str(records_file), "--min-gap-ms", "100000"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["sections"]["gaps"]["data"]["total_gaps"] == 0


def test_baseline_file_round_trip(records_file, tmp_path, capsys):
    baseline = tmp_path / "baseline.json"

    main(["analyze", str(records_file), "--baseline", str(baseline)])
    main(["analyze", str(records_file), "--baseline", str(baseline)])
    capsys.readouterr()

    history = json.loads(baseline.read_text())
    assert history["api_avg_duration_ms"] == [100.0, 100.0]


@pytest.mark.parametrize("content", [
    '{"api_avg_duration_ms": "abc"}',
    '{"api_avg_duration_ms": [1, "two"]}',
    "[1, 2]",
    "{not json",
])
def test_malformed_baseline_file(records_file, tmp_path, capsys, content):
    baseline = tmp_path / "baseline.json"
    baseline.write_text(content)

    assert main(["analyze", str(records_file), "--baseline", str(baseline)]) == 1
    assert capsys.readouterr().out == ""
    assert baseline.read_text() == content


def test_malformed_baseline_raises_configuration_error(tmp_path):
    baseline = tmp_path / "baseline.json"
    baseline.write_text('{"api_avg_duration_ms": [true]}')

    with pytest.raises(ConfigurationError):
        load_baseline(BaselineStore(), baseline)


def test_missing_file(tmp_path):
    assert main(["analyze", str(tmp_path / "nope.jsonl")]) == 2


def test_read_payloads_keeps_bad_lines(records_file):
    payloads = read_payloads(records_file)

    assert len(payloads) == 4
    assert payloads[-1] == "{not json"
