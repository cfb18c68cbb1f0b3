"""Rule model, validation and the rule registry."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Pattern, Sequence, Tuple

import yaml

from secscan.document import Dialect
from secscan.errors import RuleConfigError
from secscan.severity import Severity
from secscan.utils.fileio import read_yaml_file
from secscan.utils.keypath import compile_pattern

logger = logging.getLogger(__name__)

RULESET_VERSION = "1.3.0"
RULE_ID_PATTERN = re.compile(r"^[A-Z][A-Z0-9_-]*[0-9]$")


class RuleKind(str, Enum):
    """Shapes of detection a rule can express."""

    PATTERN_PRESENT = "pattern_present"
    PATTERN_ABSENT_WHEN_CONTEXT_PRESENT = "pattern_absent_when_context_present"
    REQUIRED_KEY_MISSING = "required_key_missing"


@lru_cache(maxsize=None)
def compile_regex(expression: str) -> Pattern[str]:
    return re.compile(expression)


def _split_alternatives(expression: Optional[str]) -> Tuple[str, ...]:
    if not expression:
        return ()
    return tuple(part.strip() for part in expression.split("|") if part.strip())


@dataclass(frozen=True)
class Rule:
    """Declarative detection rule.

    ``match`` is a regular expression for the pattern kinds and a relative
    key path (``|`` separated alternatives) for ``REQUIRED_KEY_MISSING``.
    ``context`` is a key path pattern (``|`` separated alternatives) naming
    the blocks a rule is scoped to.
    """

    id: str
    dialect: Dialect
    severity: Severity
    kind: RuleKind
    match: str
    message: str
    fix: str
    exclude: Optional[str] = None
    context: Optional[str] = None
    value: Optional[str] = None
    compliance: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def pattern(self) -> Pattern[str]:
        return compile_regex(self.match)

    @property
    def exclude_pattern(self) -> Optional[Pattern[str]]:
        return compile_regex(self.exclude) if self.exclude else None

    @property
    def value_pattern(self) -> Optional[Pattern[str]]:
        return compile_regex(self.value) if self.value else None

    @property
    def contexts(self) -> Tuple[str, ...]:
        return _split_alternatives(self.context)

    @property
    def required_paths(self) -> Tuple[Tuple[str, ...], ...]:
        return tuple(compile_pattern(part) for part in _split_alternatives(self.match))

    def applies_to(self, dialect: Dialect) -> bool:
        return self.dialect == Dialect.GENERIC or self.dialect == dialect

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "dialect": self.dialect.value,
            "severity": self.severity.value,
            "kind": self.kind.value,
            "match": self.match,
            "message": self.message,
            "fix": self.fix,
        }
        for key in ("exclude", "context", "value"):
            if getattr(self, key):
                data[key] = getattr(self, key)
        if self.compliance:
            data["compliance"] = dict(self.compliance)
        return data


def validate_rule(rule: Rule) -> None:
    """Raise :class:`RuleConfigError` if ``rule`` cannot be evaluated safely."""

    if not RULE_ID_PATTERN.match(rule.id or ""):
        raise RuleConfigError(rule.id or "<missing>", "id must look like DC001 or SEC010")
    if not rule.message:
        raise RuleConfigError(rule.id, "message is required")
    expressions = {"exclude": rule.exclude, "value": rule.value}
    if rule.kind != RuleKind.REQUIRED_KEY_MISSING:
        expressions["match"] = rule.match
    for name, expression in expressions.items():
        if expression is None:
            continue
        try:
            compile_regex(expression)
        except re.error as exc:
            raise RuleConfigError(rule.id, f"invalid {name} expression {expression!r}: {exc}") from None
    if rule.kind != RuleKind.PATTERN_PRESENT and not rule.contexts:
        raise RuleConfigError(rule.id, f"{rule.kind.value} rules need a context")
    try:
        for context in rule.contexts:
            compile_pattern(context)
        if rule.kind == RuleKind.REQUIRED_KEY_MISSING and not rule.required_paths:
            raise RuleConfigError(rule.id, "required key path is empty")
    except ValueError as exc:
        raise RuleConfigError(rule.id, str(exc)) from None


class RuleRegistry:
    """Immutable, validated collection of rules indexed by id."""

    def __init__(self, rules: Iterable[Rule], version: str = RULESET_VERSION) -> None:
        by_id: Dict[str, Rule] = {}
        for rule in rules:
            validate_rule(rule)
            if rule.id in by_id:
                raise RuleConfigError(rule.id, "duplicate rule id")
            by_id[rule.id] = rule
        self._rules: Tuple[Rule, ...] = tuple(sorted(by_id.values(), key=lambda item: item.id))
        self._by_id = by_id
        self.version = version

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    def for_dialect(self, dialect: Dialect) -> Tuple[Rule, ...]:
        """Rules for ``dialect`` plus the generic rules that apply everywhere."""

        return tuple(rule for rule in self._rules if rule.applies_to(dialect))

    def extend(self, rules: Iterable[Rule]) -> "RuleRegistry":
        return RuleRegistry(list(self._rules) + list(rules), version=self.version)


def rule_from_dict(data: Dict[str, Any], source: str = "<inline>") -> Rule:
    """Build a rule from a mapping as found in a custom rule file."""

    if not isinstance(data, dict):
        raise RuleConfigError("<unknown>", f"{source}: rule entries must be mappings")
    rule_id = str(data.get("id", "")).strip()
    try:
        dialect = Dialect.parse(data.get("dialect", "generic"))
        severity = Severity.parse(data.get("severity", ""))
        kind = RuleKind(str(data.get("kind", RuleKind.PATTERN_PRESENT.value)).strip().lower())
    except ValueError as exc:
        raise RuleConfigError(rule_id or "<missing>", f"{source}: {exc}") from None
    match = data.get("match")
    if not isinstance(match, str) or not match:
        raise RuleConfigError(rule_id or "<missing>", f"{source}: match is required")
    compliance = data.get("compliance") or {}
    if not isinstance(compliance, dict):
        raise RuleConfigError(rule_id, f"{source}: compliance must be a mapping")
    return Rule(
        id=rule_id,
        dialect=dialect,
        severity=severity,
        kind=kind,
        match=match,
        message=str(data.get("message", "")),
        fix=str(data.get("fix", "")),
        exclude=data.get("exclude"),
        context=data.get("context"),
        value=data.get("value"),
        compliance={str(key): str(value) for key, value in compliance.items()},
    )


def load_rule_file(path: Path) -> List[Rule]:
    """Load custom rules from a YAML file containing a list (or ``rules:`` mapping)."""

    try:
        data = read_yaml_file(path)
    except (OSError, yaml.YAMLError) as exc:
        raise RuleConfigError("<file>", f"{path}: {exc}") from None
    if data is None:
        raise RuleConfigError("<file>", f"{path}: rule file not found or empty")
    if isinstance(data, dict):
        data = data.get("rules", [])
    if not isinstance(data, list):
        raise RuleConfigError("<file>", f"{path}: expected a list of rules")
    rules = [rule_from_dict(item, str(path)) for item in data]
    logger.info("Loaded %d custom rules from %s", len(rules), path)
    return rules


def builtin_rules() -> List[Rule]:
    from .compose import RULES as COMPOSE_RULES
    from .kubernetes import RULES as KUBERNETES_RULES
    from .secrets import RULES as SECRET_RULES
    from .terraform import RULES as TERRAFORM_RULES

    return [*COMPOSE_RULES, *KUBERNETES_RULES, *TERRAFORM_RULES, *SECRET_RULES]


def load_registry(extra_rule_files: Sequence[Path] = ()) -> RuleRegistry:
    """Return the built-in registry extended with any custom rule files."""

    rules = builtin_rules()
    for path in extra_rule_files:
        rules.extend(load_rule_file(Path(path)))
    return RuleRegistry(rules)
