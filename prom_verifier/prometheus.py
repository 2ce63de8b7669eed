"""Prometheus HTTP API client for range queries."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

from .models.series import Matrix, Sample, Series

logger = logging.getLogger(__name__)

USER_AGENT = "prom-verifier/0.1"


class QueryError(RuntimeError):
    """A range query could not be executed or decoded."""


def _to_unix(ts: datetime) -> float:
    return ts.timestamp()


def _parse_value(raw: Any) -> float:
    # Prometheus encodes sample values as strings, including NaN and +/-Inf.
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise QueryError(f"invalid sample value {raw!r}") from exc


def decode_matrix(data: Any) -> Matrix:
    """Convert the ``data`` member of a query_range response into a Matrix.

    Any payload that is not shaped like a matrix raises QueryError.
    """
    if not isinstance(data, dict):
        raise QueryError("Prometheus response has no data object")
    result_type = data.get("resultType")
    if result_type != "matrix":
        raise QueryError(f"expected matrix result, got {result_type!r}")
    result = data.get("result")
    if result is None:
        result = []
    if not isinstance(result, list):
        raise QueryError("matrix result must be a list")
    matrix: Matrix = []
    for entry in result:
        if not isinstance(entry, dict):
            raise QueryError(f"invalid series entry {entry!r}")
        metric = entry.get("metric") or {}
        values = entry.get("values") or []
        if not isinstance(metric, dict):
            raise QueryError(f"invalid series labels {metric!r}")
        if not isinstance(values, list):
            raise QueryError(f"invalid series values {values!r}")
        labels = {str(k): str(v) for k, v in metric.items()}
        samples = []
        for pair in values:
            try:
                ts_raw, value_raw = pair
                ts = datetime.fromtimestamp(float(ts_raw), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError) as exc:
                raise QueryError(f"invalid sample pair {pair!r}") from exc
            samples.append(Sample(timestamp=ts, value=_parse_value(value_raw)))
        matrix.append(Series(labels=labels, samples=samples))
    return matrix


class PrometheusClient:
    """Minimal client for ``/api/v1/query_range``."""

    def __init__(self, base_url: str, timeout_s: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def query_range(
        self, expr: str, start: datetime, end: datetime, step: timedelta
    ) -> Matrix:
        url = f"{self.base_url}/api/v1/query_range"
        params = {
            "query": expr,
            "start": f"{_to_unix(start):.3f}",
            "end": f"{_to_unix(end):.3f}",
            "step": f"{step.total_seconds():g}",
        }
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        logger.debug("query_range %s params=%s", url, params)
        try:
            resp = requests.get(
                url, params=params, headers=headers, timeout=self.timeout_s
            )
        except requests.RequestException as exc:
            raise QueryError(f"Prometheus request failed: {exc}") from exc

        if not resp.ok:
            raise QueryError(
                f"Prometheus HTTP {resp.status_code}: {_error_detail(resp)}"
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise QueryError("Prometheus returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise QueryError("Prometheus returned an unexpected payload")
        if payload.get("status") != "success":
            error_type = payload.get("errorType") or "error"
            raise QueryError(f"Prometheus {error_type}: {payload.get('error')}")
        for warning in payload.get("warnings") or []:
            logger.warning("Prometheus warning for %r: %s", expr, warning)
        return decode_matrix(payload.get("data"))


def _error_detail(resp: Any) -> str:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return (resp.text or "")[:500].replace("\n", " ")
