"""Prometheus rule file loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from .models.rules import Rule, RuleFile, RuleGroup

logger = logging.getLogger(__name__)


class RuleFileError(ValueError):
    """The rule file is unreadable or not shaped like a Prometheus rule file."""


def _str_map(raw: Any, what: str) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise RuleFileError(f"{what} must be a mapping")
    return {str(k): "" if v is None else str(v) for k, v in raw.items()}


def _parse_rule(raw: Any, group_name: str, index: int) -> Rule | None:
    where = f"group {group_name!r} rule #{index + 1}"
    if not isinstance(raw, dict):
        raise RuleFileError(f"{where} must be a mapping")
    if "alert" not in raw:
        if "record" in raw:
            logger.warning("Skipping recording rule %r in %s", raw["record"], where)
            return None
        raise RuleFileError(f"{where} has no 'alert' name")
    expr = raw.get("expr")
    if expr is None or str(expr).strip() == "":
        raise RuleFileError(f"{where} ({raw['alert']}) has no 'expr'")
    for_raw = raw.get("for")
    return Rule(
        alert=str(raw["alert"]),
        expr=str(expr),
        for_="" if for_raw is None else str(for_raw),
        labels=_str_map(raw.get("labels"), f"{where} labels"),
        annotations=_str_map(raw.get("annotations"), f"{where} annotations"),
    )


def parse_rule_file(data: Any) -> RuleFile:
    """Build a RuleFile from already-decoded YAML data."""
    if data is None:
        return RuleFile()
    if not isinstance(data, dict):
        raise RuleFileError("rule file must be a mapping with a 'groups' key")
    raw_groups = data.get("groups") or []
    if not isinstance(raw_groups, list):
        raise RuleFileError("'groups' must be a list")

    groups: list[RuleGroup] = []
    for g_index, raw_group in enumerate(raw_groups):
        if not isinstance(raw_group, dict):
            raise RuleFileError(f"group #{g_index + 1} must be a mapping")
        name = str(raw_group.get("name") or f"group-{g_index + 1}")
        raw_rules = raw_group.get("rules") or []
        if not isinstance(raw_rules, list):
            raise RuleFileError(f"group {name!r} rules must be a list")
        rules = []
        for r_index, raw_rule in enumerate(raw_rules):
            rule = _parse_rule(raw_rule, name, r_index)
            if rule is not None:
                rules.append(rule)
        groups.append(RuleGroup(name=name, rules=rules))
    return RuleFile(groups=groups)


def load_rule_file(path: str | Path) -> RuleFile:
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        raise RuleFileError(f"error reading file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise RuleFileError(f"error parsing YAML: {exc}") from exc
    rule_file = parse_rule_file(data)
    logger.info(
        "Loaded %d rule(s) in %d group(s) from %s",
        rule_file.rule_count(),
        len(rule_file.groups),
        path,
    )
    return rule_file
