import textwrap

import pytest

from prom_verifier.rulefile import RuleFileError, load_rule_file, parse_rule_file

RULES_YAML = textwrap.dedent(
    """
    groups:
      - name: node
        rules:
          - alert: InstanceDown
            expr: up == 0
            for: 5m
            labels:
              severity: page
            annotations:
              summary: "{{ $labels.instance }} down"
          - record: job:up:sum
            expr: sum by (job) (up)
          - alert: Instant
            expr: vector(1)
            for: 0
      - name: empty
    """
)


def test_load_rule_file(tmp_path) -> None:
    path = tmp_path / "alert.yaml"
    path.write_text(RULES_YAML, encoding="utf-8")

    rule_file = load_rule_file(path)

    assert [g.name for g in rule_file.groups] == ["node", "empty"]
    node = rule_file.groups[0]
    assert [r.alert for r in node.rules] == ["InstanceDown", "Instant"]
    down = node.rules[0]
    assert down.expr == "up == 0"
    assert down.for_ == "5m"
    assert down.labels == {"severity": "page"}
    assert down.annotations == {"summary": "{{ $labels.instance }} down"}
    assert node.rules[1].for_ == "0"
    assert rule_file.groups[1].rules == []
    assert rule_file.rule_count() == 2


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(RuleFileError, match="error reading file"):
        load_rule_file(tmp_path / "nope.yaml")


def test_invalid_yaml_raises(tmp_path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("groups: [\n", encoding="utf-8")
    with pytest.raises(RuleFileError, match="error parsing YAML"):
        load_rule_file(path)


def test_empty_document_has_no_groups() -> None:
    assert parse_rule_file(None).groups == []


@pytest.mark.parametrize(
    "data,message",
    [
        (["not", "a", "mapping"], "must be a mapping"),
        ({"groups": {"name": "x"}}, "'groups' must be a list"),
        ({"groups": [{"name": "g", "rules": [{"alert": "A"}]}]}, "has no 'expr'"),
        ({"groups": [{"name": "g", "rules": [{"expr": "up"}]}]}, "no 'alert' name"),
        (
            {"groups": [{"name": "g", "rules": [{"alert": "A", "expr": "up", "labels": [1]}]}]},
            "labels must be a mapping",
        ),
    ],
)
def test_structural_errors(data, message: str) -> None:
    with pytest.raises(RuleFileError, match=message):
        parse_rule_file(data)


def test_missing_for_defaults_to_empty() -> None:
    data = {"groups": [{"name": "g", "rules": [{"alert": "A", "expr": "up"}]}]}
    rule = parse_rule_file(data).groups[0].rules[0]
    assert rule.for_ == ""
    assert rule.labels == {}
    assert rule.annotations == {}
