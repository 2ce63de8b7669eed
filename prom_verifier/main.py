"""Entrypoint for the prom-verifier command line tool.

Loads configuration and the rule file, replays every rule against Prometheus
and writes the report to stdout.
"""

from __future__ import annotations

import logging
import sys
import time

from . import config as config_mod
from .engine import run
from .logger import setup_logging
from .prometheus import PrometheusClient
from .report import new_reporter
from .rulefile import RuleFileError, load_rule_file

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    try:
        cfg = config_mod.load_config(argv)
        rule_file = load_rule_file(cfg.rule_file)
    except (config_mod.ConfigError, RuleFileError) as exc:
        logger.error("%s", exc)
        return 2

    if cfg.realtime:
        logger.info("🕒 Mode: Realtime (Now)")
    else:
        logger.info(
            "🕰️ Mode: Time Travel (Target: %s)",
            cfg.target.strftime(config_mod.AT_FORMAT),
        )
    logger.info(
        "🔍 Replay Window: %s <----> %s",
        cfg.start.strftime("%H:%M"),
        cfg.end.strftime("%H:%M"),
    )
    logger.info("🔧 File: %s | URL: %s", cfg.rule_file, cfg.prometheus_url)

    client = PrometheusClient(cfg.prometheus_url, timeout_s=cfg.query_timeout_s)
    reporter = new_reporter(cfg.output)
    deadline = None
    if cfg.max_runtime is not None:
        deadline = time.monotonic() + cfg.max_runtime.total_seconds()

    summary = run(client, rule_file, cfg.start, cfg.end, cfg.step, reporter, deadline)
    logger.info(
        "Done: %d evaluated, %d failed, %d skipped",
        summary.evaluated,
        summary.failed,
        summary.skipped,
    )
    return 1 if summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
