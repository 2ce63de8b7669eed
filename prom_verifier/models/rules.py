"""Alerting rule dataclasses, mirroring the Prometheus rule file layout."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Rule:
    alert: str
    expr: str
    for_: str = ""  # raw duration text, parsed at evaluation time
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RuleGroup:
    name: str
    rules: list[Rule] = field(default_factory=list)


@dataclass(frozen=True)
class RuleFile:
    groups: list[RuleGroup] = field(default_factory=list)

    def rule_count(self) -> int:
        return sum(len(group.rules) for group in self.groups)
