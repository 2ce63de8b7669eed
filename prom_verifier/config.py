"""Central configuration for prom_verifier.

Defaults come from environment variables and can be overridden by command
line flags. ``load_config`` resolves them into a validated ``Config`` with
the replay window already computed.
"""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta

from .durations import format_duration, parse_duration
from .report import OutputFormat

logger = logging.getLogger(__name__)

# Safety limits to keep replay queries cheap for the Prometheus server.
MAX_WINDOW = timedelta(hours=4)
MAX_LOOKBACK_DAYS = 90

AT_FORMAT = "%Y-%m-%d %H:%M"


class ConfigError(ValueError):
    """Invalid command line or environment configuration."""


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    try:
        return float(raw) if raw.strip() else default
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default


@dataclass
class Settings:
    """Raw configuration values before validation."""

    RULE_FILE: str
    PROMETHEUS_URL: str
    AT: str | None
    WINDOW: str
    OUTPUT: str
    STEP: str
    QUERY_TIMEOUT_S: float
    MAX_RUNTIME: str | None


def _read_settings() -> Settings:
    """Read configuration defaults from environment variables.

    Note:
        Invalid numeric values fall back to sensible defaults.
    """
    return Settings(
        RULE_FILE=os.environ.get("PROM_VERIFIER_FILE") or "alert.yaml",
        PROMETHEUS_URL=os.environ.get("PROMETHEUS_URL") or "http://localhost:9090",
        AT=os.environ.get("PROM_VERIFIER_AT") or None,
        WINDOW=os.environ.get("PROM_VERIFIER_WINDOW") or "30m",
        OUTPUT=(os.environ.get("PROM_VERIFIER_OUTPUT") or "text").lower(),
        STEP=os.environ.get("PROM_VERIFIER_STEP") or "1m",
        QUERY_TIMEOUT_S=_float_env("PROMETHEUS_TIMEOUT_S", 30.0),
        MAX_RUNTIME=os.environ.get("PROM_VERIFIER_MAX_RUNTIME") or None,
    )


@dataclass
class Config:
    """Validated runtime configuration."""

    rule_file: str
    prometheus_url: str
    output: OutputFormat
    target: datetime
    realtime: bool
    window: timedelta
    step: timedelta
    start: datetime
    end: datetime
    query_timeout_s: float
    max_runtime: timedelta | None


def build_parser(defaults: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prom-verifier",
        description="Replay Prometheus alerting rules against historical data",
    )
    parser.add_argument(
        "--file", default=defaults.RULE_FILE, help="Path to the alert rule file"
    )
    parser.add_argument(
        "--url", default=defaults.PROMETHEUS_URL, help="Prometheus API URL"
    )
    parser.add_argument(
        "--at",
        default=defaults.AT,
        help="Target timestamp (e.g. '2023-11-20 14:30'). Default is now.",
    )
    parser.add_argument(
        "--window",
        default=defaults.WINDOW,
        help="Time window around the target (30m means target +/- 30m)",
    )
    parser.add_argument(
        "--output",
        default=defaults.OUTPUT,
        choices=[f.value for f in OutputFormat],
        help="Output format",
    )
    parser.add_argument(
        "--step", default=defaults.STEP, help="Range query resolution step"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=defaults.QUERY_TIMEOUT_S,
        help="Per-query HTTP timeout in seconds",
    )
    parser.add_argument(
        "--max-runtime",
        default=defaults.MAX_RUNTIME,
        help="Stop issuing new rule queries after this long (e.g. 5m)",
    )
    return parser


def _parse_positive(raw: str, what: str) -> timedelta:
    parsed = parse_duration(raw)
    if parsed is None or parsed <= timedelta(0):
        raise ConfigError(f"invalid {what} format: {raw!r}")
    return parsed


def resolve(args: argparse.Namespace, now: datetime | None = None) -> Config:
    """Validate parsed arguments and compute the replay window."""
    now = now or datetime.now().astimezone()

    window = _parse_positive(args.window, "window")
    if window > MAX_WINDOW:
        raise ConfigError(
            f"safety block: window size {format_duration(window)} exceeds maximum "
            f"allowed limit of {format_duration(MAX_WINDOW)}. please choose a "
            "smaller window to avoid overloading prometheus"
        )
    step = _parse_positive(args.step, "step")

    try:
        output = OutputFormat(str(args.output).lower())
    except ValueError as exc:
        raise ConfigError(f"unknown output format: {args.output!r}") from exc

    if args.at:
        try:
            target = datetime.strptime(args.at.strip(), AT_FORMAT).astimezone()
        except ValueError as exc:
            raise ConfigError(
                "invalid time format, please use 'YYYY-MM-DD HH:MM'"
            ) from exc
        realtime = False
    else:
        target = now
        realtime = True

    start = target - window
    end = target + window
    oldest = now - timedelta(days=MAX_LOOKBACK_DAYS)
    if start < oldest:
        raise ConfigError(
            f"safety block: query start time {start:%Y-%m-%d} is older than "
            f"{MAX_LOOKBACK_DAYS} days limit ({oldest:%Y-%m-%d})"
        )

    max_runtime = None
    if args.max_runtime:
        max_runtime = _parse_positive(args.max_runtime, "max runtime")

    if args.timeout <= 0:
        raise ConfigError(f"timeout must be positive, got {args.timeout}")

    return Config(
        rule_file=args.file,
        prometheus_url=args.url,
        output=output,
        target=target,
        realtime=realtime,
        window=window,
        step=step,
        start=start,
        end=end,
        query_timeout_s=args.timeout,
        max_runtime=max_runtime,
    )


def load_config(argv: list[str] | None = None, now: datetime | None = None) -> Config:
    parser = build_parser(_read_settings())
    args = parser.parse_args(argv)
    return resolve(args, now=now)
