"""Result sinks for text, JSON and YAML output.

The engine calls ``add_result`` once per evaluated series (or once per rule
for a SILENT rule) and ``flush`` exactly once at the end of the run.
"""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from enum import Enum
from typing import TextIO

import yaml

from .durations import format_duration
from .models.results import AlertState
from .models.rules import Rule


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


def format_labels(labels: dict[str, str]) -> str:
    """Render a label set in Prometheus series notation.

    Example:
        >>> format_labels({"__name__": "up", "job": "api"})
        'up{job="api"}'
    """
    name = labels.get("__name__", "")
    rest = sorted((k, v) for k, v in labels.items() if k != "__name__")
    if name and not rest:
        return name
    inner = ", ".join(f"{k}={json.dumps(v, ensure_ascii=False)}" for k, v in rest)
    return f"{name}{{{inner}}}"


@dataclass
class ReportEntry:
    group: str
    rule_name: str
    alert: str
    metric: str
    duration: str
    duration_seconds: float
    state: str
    annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        if not self.annotations:
            data.pop("annotations")
        return data


class Reporter(ABC):
    """Sink for evaluation results."""

    @abstractmethod
    def add_result(
        self,
        rule: Rule,
        labels: dict[str, str],
        duration: timedelta,
        state: AlertState,
        annotations: dict[str, str] | None,
        group: str = "",
    ) -> None:
        """Record the result for one series of ``rule``."""

    @abstractmethod
    def flush(self) -> None:
        """Write out anything buffered. Called once per run."""


class TextReporter(Reporter):
    """Human readable output, written as results arrive."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout
        self._group: str | None = None
        self._rule: Rule | None = None

    def _write(self, line: str) -> None:
        self.stream.write(line + "\n")

    def add_result(self, rule, labels, duration, state, annotations, group=""):
        # Alert names repeat across severity variants; compare the rule itself.
        if rule is not self._rule or group != self._group:
            self._rule = rule
            self._group = group
            prefix = f"[{group}] " if group else ""
            self._write(f"📐 {prefix}{rule.alert}: {rule.expr}")

        metric = format_labels(labels)
        shown = format_duration(duration)
        if state == AlertState.FIRING:
            self._write(f"      🔥 FIRING! [{metric}] (Duration: {shown})")
            for name in sorted(annotations or {}):
                self._write(f"          - {name}: {annotations[name]}")
        elif state == AlertState.SILENT:
            self._write("      ✅ Status: SILENT")
        else:
            self._write(f"      ⚠️ PENDING... [{metric}] (Duration: {shown})")

    def flush(self) -> None:
        self.stream.flush()


class _BufferedReporter(Reporter):
    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout
        self.entries: list[ReportEntry] = []

    def add_result(self, rule, labels, duration, state, annotations, group=""):
        self.entries.append(
            ReportEntry(
                group=group,
                rule_name=rule.alert,
                alert=rule.alert,
                metric=format_labels(labels),
                duration=format_duration(duration),
                duration_seconds=duration.total_seconds(),
                state=AlertState(state).value,
                annotations=dict(annotations or {}),
            )
        )

    def payload(self) -> list[dict[str, object]]:
        return [entry.to_dict() for entry in self.entries]


class JSONReporter(_BufferedReporter):
    def flush(self) -> None:
        json.dump(self.payload(), self.stream, indent=2, ensure_ascii=False)
        self.stream.write("\n")
        self.stream.flush()


class YAMLReporter(_BufferedReporter):
    def flush(self) -> None:
        yaml.safe_dump(
            self.payload(),
            self.stream,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )
        self.stream.flush()


def new_reporter(fmt: OutputFormat | str, stream: TextIO | None = None) -> Reporter:
    fmt = OutputFormat(fmt)
    if fmt is OutputFormat.JSON:
        return JSONReporter(stream)
    if fmt is OutputFormat.YAML:
        return YAMLReporter(stream)
    return TextReporter(stream)
