"""Rule evaluation: classify each series as SILENT, PENDING or FIRING.

``evaluate`` is pure and works on an already fetched matrix. ``evaluate_rule``
and ``run`` drive the queries and feed results to a reporter.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from .durations import parse_duration
from .models.results import AlertResult, AlertState
from .models.rules import Rule, RuleFile
from .models.series import Matrix
from .prometheus import QueryError
from .report import Reporter
from .templating import render_annotations

logger = logging.getLogger(__name__)


class QueryClient(Protocol):
    def query_range(
        self, expr: str, start: datetime, end: datetime, step: timedelta
    ) -> Matrix: ...


@dataclass
class RunSummary:
    evaluated: int = 0
    failed: int = 0
    skipped: int = 0


def for_duration(rule: Rule) -> timedelta:
    """Return the rule's ``for`` duration, degrading bad values to zero."""
    if not rule.for_:
        return timedelta(0)
    parsed = parse_duration(rule.for_)
    if parsed is None:
        # Treated as instant-fire rather than a configuration error.
        logger.debug(
            "Rule %s has invalid 'for' %r; using 0s", rule.alert, rule.for_
        )
        return timedelta(0)
    return parsed


def evaluate(rule: Rule, matrix: Matrix) -> list[AlertResult]:
    """Classify every series of ``matrix`` against ``rule``.

    An empty matrix yields a single SILENT result. Otherwise there is one
    result per series, in input order. A series is FIRING once the span
    between its first and last sample reaches the rule's ``for`` duration;
    single-sample series only fire when ``for`` is zero.
    """
    if not matrix:
        return [
            AlertResult(
                labels={}, duration=timedelta(0), state=AlertState.SILENT
            )
        ]

    required = for_duration(rule)
    results: list[AlertResult] = []
    for series in matrix:
        samples = series.samples
        if len(samples) < 2:
            elapsed = timedelta(0)
            firing = required == timedelta(0)
        else:
            elapsed = samples[-1].timestamp - samples[0].timestamp
            firing = elapsed >= required

        annotations: dict[str, str] = {}
        if firing:
            latest = samples[-1].value if samples else math.nan
            annotations = render_annotations(rule.annotations, series.labels, latest)
        results.append(
            AlertResult(
                labels=dict(series.labels),
                duration=elapsed,
                state=AlertState.FIRING if firing else AlertState.PENDING,
                annotations=annotations,
            )
        )
    return results


def evaluate_rule(
    client: QueryClient,
    rule: Rule,
    start: datetime,
    end: datetime,
    step: timedelta,
    reporter: Reporter,
    group: str = "",
) -> bool:
    """Query and evaluate one rule. Returns False if the query failed.

    Results are only handed to the reporter once the whole rule has been
    evaluated; a failed query reports nothing for the rule.
    """
    try:
        matrix = client.query_range(rule.expr, start, end, step)
    except QueryError as exc:
        logger.error("❌ Query error for %s: %s", rule.alert, exc)
        return False

    results = evaluate(rule, matrix)
    for res in results:
        reporter.add_result(
            rule, res.labels, res.duration, res.state, res.annotations, group=group
        )
    logger.debug("Rule %s produced %d result(s)", rule.alert, len(results))
    return True


def run(
    client: QueryClient,
    rule_file: RuleFile,
    start: datetime,
    end: datetime,
    step: timedelta,
    reporter: Reporter,
    deadline: float | None = None,
) -> RunSummary:
    """Evaluate every rule in file order, then flush the reporter once.

    ``deadline`` is a ``time.monotonic()`` value; once it passes, remaining
    rules are skipped.
    """
    summary = RunSummary()
    for group in rule_file.groups:
        for rule in group.rules:
            if deadline is not None and time.monotonic() >= deadline:
                summary.skipped += 1
                continue
            if evaluate_rule(client, rule, start, end, step, reporter, group.name):
                summary.evaluated += 1
            else:
                summary.failed += 1
    if summary.skipped:
        logger.warning(
            "Run time limit reached; skipped %d rule(s)", summary.skipped
        )
    reporter.flush()
    return summary
