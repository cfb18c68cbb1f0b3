"""Evaluate rules against a parsed document."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .document import Document, Node
from .result import Finding, finding_sort_key
from .rules import Rule, RuleKind
from .utils.keypath import matches

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE_LENGTH = 4096


class Matcher:
    """Apply a fixed rule set to documents.

    Evaluation is pure: the same document and rules always yield the same
    findings regardless of rule order.
    """

    def __init__(self, rules: Iterable[Rule], max_line_length: int = DEFAULT_MAX_LINE_LENGTH) -> None:
        self._rules = tuple(rules)
        self._max_line_length = max_line_length

    def evaluate(self, document: Document) -> List[Finding]:
        findings: Dict[Tuple[str, int], Finding] = {}
        for rule in self._rules:
            if not rule.applies_to(document.dialect):
                continue
            for finding in self._evaluate_rule(rule, document):
                findings.setdefault((finding.rule_id, finding.line), finding)
        return sorted(findings.values(), key=finding_sort_key)

    # ------------------------------------------------------------------
    # Rule kinds
    # ------------------------------------------------------------------
    def _evaluate_rule(self, rule: Rule, document: Document) -> Iterator[Finding]:
        if rule.kind == RuleKind.PATTERN_PRESENT:
            yield from self._pattern_present(rule, document)
        elif rule.kind == RuleKind.REQUIRED_KEY_MISSING:
            yield from self._required_key_missing(rule, document)
        elif rule.kind == RuleKind.PATTERN_ABSENT_WHEN_CONTEXT_PRESENT:
            yield from self._pattern_absent(rule, document)

    def _pattern_present(self, rule: Rule, document: Document) -> Iterator[Finding]:
        if rule.contexts:
            nodes: Iterable[Node] = (
                node for root in self._context_nodes(rule, document) for node in document.subtree(root)
            )
        else:
            nodes = document.nodes
        seen = set()
        exclude = rule.exclude_pattern
        for node in nodes:
            for line, text in node.physical_lines():
                if line in seen:
                    continue
                text = text[: self._max_line_length]
                match = rule.pattern.search(text)
                if match is None:
                    continue
                seen.add(line)
                if exclude is not None and exclude.search(text):
                    continue
                yield self._build_finding(rule, document, line, match.group(0))

    def _required_key_missing(self, rule: Rule, document: Document) -> Iterator[Finding]:
        required = rule.required_paths
        value_pattern = rule.value_pattern
        for root in self._context_nodes(rule, document):
            depth = len(root.key_path)
            satisfied = False
            for node in document.subtree(root):
                relative = node.key_path[depth:]
                if not any(matches(path, relative) for path in required):
                    continue
                if value_pattern is None or (node.value is not None and value_pattern.search(node.value)):
                    satisfied = True
                    break
            if not satisfied:
                yield self._build_finding(rule, document, root.line, self._header(document, root))

    def _pattern_absent(self, rule: Rule, document: Document) -> Iterator[Finding]:
        for root in self._context_nodes(rule, document):
            lines = (text[: self._max_line_length] for _, text in document.block_lines(root))
            if not any(rule.pattern.search(text) for text in lines):
                yield self._build_finding(rule, document, root.line, self._header(document, root))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _context_nodes(self, rule: Rule, document: Document) -> List[Node]:
        roots: Dict[Tuple[int, int, Tuple], Node] = {}
        for context in rule.contexts:
            for node in document.find(context):
                roots.setdefault((node.doc_index, node.line, node.key_path), node)
        return sorted(roots.values(), key=lambda node: (node.doc_index, node.line))

    def _header(self, document: Document, node: Node) -> str:
        return document.line_text(node.line).strip()[: self._max_line_length]

    def _build_finding(self, rule: Rule, document: Document, line: int, matched: str) -> Finding:
        return Finding(
            rule_id=rule.id,
            severity=rule.severity,
            file=document.path,
            line=line,
            matched_text=matched.strip(),
            message=rule.message,
            fix=rule.fix,
            compliance=tuple(sorted(rule.compliance.items())),
        )


def evaluate(document: Document, rules: Iterable[Rule], max_line_length: Optional[int] = None) -> List[Finding]:
    """Return the findings ``rules`` produce for ``document``."""

    matcher = Matcher(rules, max_line_length or DEFAULT_MAX_LINE_LENGTH)
    return matcher.evaluate(document)
