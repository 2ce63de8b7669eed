"""Shared test fixtures and dummy classes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from prom_verifier.models.series import Sample, Series

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_series(
    labels: dict[str, str], offsets_min: list[float], value: float = 1.0
) -> Series:
    """Build a series with samples at NOW + offset minutes."""
    samples = [
        Sample(timestamp=NOW + timedelta(minutes=off), value=value)
        for off in offsets_min
    ]
    return Series(labels=dict(labels), samples=samples)


class DummyResponse:
    """Dummy HTTP response for testing."""

    def __init__(self, data: object, status: int = 200, text: str = "") -> None:
        self._data = data
        self.status_code = status
        self.text = text or str(data)
        self.ok = 200 <= status < 300

    def json(self) -> object:
        if isinstance(self._data, Exception):
            raise self._data
        return self._data


class DummyClient:
    """Query client returning canned matrices (or raising) per expression."""

    def __init__(self, responses: dict[str, object]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, datetime, datetime, timedelta]] = []

    def query_range(self, expr, start, end, step):
        self.calls.append((expr, start, end, step))
        result = self.responses.get(expr, [])
        if isinstance(result, Exception):
            raise result
        return result


class RecordingReporter:
    """Reporter that keeps every call for assertions."""

    def __init__(self) -> None:
        self.results: list[dict[str, object]] = []
        self.flushes = 0

    def add_result(self, rule, labels, duration, state, annotations, group=""):
        self.results.append(
            {
                "group": group,
                "alert": rule.alert,
                "labels": labels,
                "duration": duration,
                "state": state,
                "annotations": annotations,
            }
        )

    def flush(self) -> None:
        self.flushes += 1
