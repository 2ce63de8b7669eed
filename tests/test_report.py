import io
import json
from datetime import timedelta

import pytest
import yaml

from prom_verifier.models.results import AlertState
from prom_verifier.models.rules import Rule
from prom_verifier.report import (
    JSONReporter,
    OutputFormat,
    TextReporter,
    YAMLReporter,
    format_labels,
    new_reporter,
)

RULE = Rule(alert="InstanceDown", expr="up == 0", for_="5m")


def _feed(reporter) -> None:
    reporter.add_result(
        RULE,
        {"__name__": "up", "job": "api"},
        timedelta(minutes=10),
        AlertState.FIRING,
        {"summary": "api down", "runbook": "http://x"},
        group="node",
    )
    reporter.add_result(
        RULE, {"job": "db"}, timedelta(minutes=2), AlertState.PENDING, {}, group="node"
    )
    reporter.add_result(
        Rule(alert="Quiet", expr="absent(up)"),
        {},
        timedelta(0),
        AlertState.SILENT,
        None,
        group="node",
    )


def test_format_labels() -> None:
    assert format_labels({}) == "{}"
    assert format_labels({"__name__": "up"}) == "up"
    assert format_labels({"b": "2", "a": 'say "hi"'}) == '{a="say \\"hi\\"", b="2"}'
    assert format_labels({"__name__": "up", "job": "api"}) == 'up{job="api"}'


def test_json_reporter_buffers_until_flush() -> None:
    stream = io.StringIO()
    reporter = JSONReporter(stream)
    _feed(reporter)
    assert stream.getvalue() == ""

    reporter.flush()
    data = json.loads(stream.getvalue())

    assert [d["state"] for d in data] == ["FIRING", "PENDING", "SILENT"]
    assert data[0] == {
        "group": "node",
        "rule_name": "InstanceDown",
        "alert": "InstanceDown",
        "metric": 'up{job="api"}',
        "duration": "10m",
        "duration_seconds": 600.0,
        "state": "FIRING",
        "annotations": {"summary": "api down", "runbook": "http://x"},
    }
    assert "annotations" not in data[1]
    assert "annotations" not in data[2]
    assert data[2]["metric"] == "{}"
    assert data[2]["duration_seconds"] == 0.0


def test_yaml_reporter() -> None:
    stream = io.StringIO()
    reporter = YAMLReporter(stream)
    _feed(reporter)
    reporter.flush()

    data = yaml.safe_load(stream.getvalue())

    assert len(data) == 3
    assert data[1]["metric"] == '{job="db"}'
    assert data[1]["duration"] == "2m"
    assert data[2]["alert"] == "Quiet"


def test_json_reporter_empty_run() -> None:
    stream = io.StringIO()
    JSONReporter(stream).flush()
    assert json.loads(stream.getvalue()) == []


def test_text_reporter_writes_immediately() -> None:
    stream = io.StringIO()
    reporter = TextReporter(stream)
    _feed(reporter)

    lines = stream.getvalue().splitlines()

    assert lines[0] == "📐 [node] InstanceDown: up == 0"
    assert "🔥 FIRING! [up{job=\"api\"}] (Duration: 10m)" in lines[1]
    assert lines[2].strip() == "- runbook: http://x"
    assert lines[3].strip() == "- summary: api down"
    assert "⚠️ PENDING... [{job=\"db\"}] (Duration: 2m)" in lines[4]
    assert lines[5] == "📐 [node] Quiet: absent(up)"
    assert lines[6].strip() == "✅ Status: SILENT"


@pytest.mark.parametrize(
    "fmt,cls",
    [
        ("text", TextReporter),
        ("json", JSONReporter),
        (OutputFormat.YAML, YAMLReporter),
    ],
)
def test_new_reporter(fmt, cls) -> None:
    assert isinstance(new_reporter(fmt, io.StringIO()), cls)


def test_new_reporter_rejects_unknown_format() -> None:
    with pytest.raises(ValueError):
        new_reporter("xml")


def test_text_reporter_separates_rules_sharing_a_name() -> None:
    stream = io.StringIO()
    reporter = TextReporter(stream)
    warn = Rule(alert="DiskFull", expr="disk > 80")
    crit = Rule(alert="DiskFull", expr="disk > 95")

    reporter.add_result(warn, {"dev": "sda"}, timedelta(0), AlertState.FIRING, {}, "g")
    reporter.add_result(crit, {"dev": "sda"}, timedelta(0), AlertState.FIRING, {}, "g")

    headers = [line for line in stream.getvalue().splitlines() if line.startswith("📐")]
    assert headers == ["📐 [g] DiskFull: disk > 80", "📐 [g] DiskFull: disk > 95"]
