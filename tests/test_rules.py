import pytest

from secscan.document import Dialect
from secscan.errors import RuleConfigError
from secscan.rules import (
    RULESET_VERSION,
    Rule,
    RuleKind,
    RuleRegistry,
    builtin_rules,
    load_registry,
    load_rule_file,
)
from secscan.severity import Severity


def _rule(**overrides):
    values = dict(
        id="ORG001",
        dialect=Dialect.COMPOSE,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"restart:\s*always",
        message="Service restarts forever",
        fix="Use 'restart: on-failure'.",
    )
    values.update(overrides)
    return Rule(**values)


def test_builtin_registry_is_valid_and_unique():
    registry = load_registry()

    ids = [rule.id for rule in registry]
    assert len(ids) >= 40
    assert len(ids) == len(set(ids))
    assert ids == sorted(ids)
    assert registry.version == RULESET_VERSION
    assert {rule.dialect for rule in registry} == set(Dialect)


def test_every_builtin_rule_has_message_and_fix():
    for rule in builtin_rules():
        assert rule.message, rule.id
        assert rule.fix, rule.id


def test_for_dialect_includes_generic_rules():
    registry = load_registry()

    compose_ids = {rule.id for rule in registry.for_dialect(Dialect.COMPOSE)}

    assert "DC001" in compose_ids
    assert "SEC001" in compose_ids
    assert "K8S001" not in compose_ids
    assert "TF001" not in compose_ids


def test_duplicate_rule_id_is_rejected():
    with pytest.raises(RuleConfigError) as excinfo:
        RuleRegistry([_rule(), _rule(severity=Severity.LOW)])

    assert excinfo.value.rule_id == "ORG001"


def test_invalid_regex_is_rejected():
    with pytest.raises(RuleConfigError):
        RuleRegistry([_rule(match="(unclosed")])


def test_scoped_kinds_need_a_context():
    with pytest.raises(RuleConfigError):
        RuleRegistry([_rule(kind=RuleKind.REQUIRED_KEY_MISSING, match="security_opt")])
    with pytest.raises(RuleConfigError):
        RuleRegistry([_rule(kind=RuleKind.PATTERN_ABSENT_WHEN_CONTEXT_PRESENT)])


def test_malformed_rule_id_is_rejected():
    with pytest.raises(RuleConfigError):
        RuleRegistry([_rule(id="no id")])


def test_custom_rule_file_extends_registry(tmp_path):
    rule_file = tmp_path / "org-rules.yml"
    rule_file.write_text(
        """
rules:
  - id: ORG001
    dialect: compose
    severity: high
    match: 'restart:\\s*always'
    message: Service restarts forever
    fix: "Use 'restart: on-failure'."
    compliance:
      internal: OPS-12
""".strip(),
        encoding="utf-8",
    )

    registry = load_registry([rule_file])

    assert "ORG001" in registry
    assert len(registry) == len(builtin_rules()) + 1
    rule = registry.get("ORG001")
    assert rule.severity == Severity.HIGH
    assert rule.kind == RuleKind.PATTERN_PRESENT
    assert rule.compliance == {"internal": "OPS-12"}


def test_custom_rule_cannot_reuse_builtin_id(tmp_path):
    rule_file = tmp_path / "org-rules.yml"
    rule_file.write_text(
        "- id: DC001\n  severity: low\n  match: foo\n  message: Clash\n  fix: none\n",
        encoding="utf-8",
    )

    with pytest.raises(RuleConfigError):
        load_registry([rule_file])


def test_rule_file_errors_are_reported(tmp_path):
    missing = tmp_path / "missing.yml"
    unknown_severity = tmp_path / "bad.yml"
    unknown_severity.write_text("- id: ORG002\n  severity: urgent\n  match: x\n  message: m\n", encoding="utf-8")

    with pytest.raises(RuleConfigError):
        load_rule_file(missing)
    with pytest.raises(RuleConfigError):
        load_rule_file(unknown_severity)
