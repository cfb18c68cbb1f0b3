"""Render a :class:`ScanReport` in the supported output formats.

Renderers never filter: they receive the report after the minimum-severity
filter and suppression have been applied.
"""

from __future__ import annotations

import json
from typing import Callable, Dict, List, Optional

from . import __version__
from .result import ScanReport, redact
from .rules import RuleRegistry
from .severity import Severity

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
SARIF_LEVELS = {
    Severity.CRITICAL: "error",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "note",
}


def format_summary_table(report: ScanReport, max_findings: Optional[int] = None) -> str:
    """Create a human-readable report for console output."""

    lines: List[str] = []
    lines.append("Scan Summary")
    lines.append("=" * 40)
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in report.as_rows():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    status = "PASS" if report.passed else "FAIL"
    lines.append(f"Status    : {status}")
    lines.append(f"Files     : {report.files_scanned} scanned, {report.files_with_errors} with errors, "
                 f"{report.files_unreadable} unreadable")
    lines.append(f"Findings  : {report.total}")
    lines.append(f"Suppressed: {report.suppressed_count}")

    findings = report.findings if max_findings is None else report.findings[:max_findings]
    if findings:
        lines.append("")
        lines.append("Findings")
        lines.append("-" * 40)
        for finding in findings:
            lines.append(f"[{finding.severity.value}] {finding.rule_id} {finding.message}")
            lines.append(f"  Location: {finding.file}:{finding.line}")
            lines.append(f"  Match   : {redact(finding.matched_text)}")
            if finding.fix:
                lines.append(f"  Fix     : {finding.fix}")

    if report.diagnostics:
        lines.append("")
        lines.append("Diagnostics")
        lines.append("-" * 40)
        for diagnostic in report.diagnostics:
            location = f"{diagnostic.file}:{diagnostic.line}" if diagnostic.line else diagnostic.file
            lines.append(f"[{diagnostic.kind}] {location}: {diagnostic.message}")
    return "\n".join(lines)


def render_json(report: ScanReport) -> str:
    return json.dumps(report.to_dict(), indent=2)


def _md_escape(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def render_markdown(report: ScanReport) -> str:
    lines = [
        "# Security Scan Report",
        "",
        f"**Scan date:** {report.scan_date}  ",
        f"**Files scanned:** {report.files_scanned}  ",
        f"**Status:** {'PASS' if report.passed else 'FAIL'}",
        "",
        "## Summary",
        "",
        "| Severity | Count |",
        "|----------|------:|",
    ]
    lines.extend(f"| {severity} | {count} |" for severity, count in report.as_rows())
    lines.append(f"| Suppressed | {report.suppressed_count} |")

    lines.extend(["", "## Findings", ""])
    if report.findings:
        lines.append("| Severity | Rule | Location | Issue | Fix |")
        lines.append("|----------|------|----------|-------|-----|")
        for finding in report.findings:
            lines.append(
                f"| {finding.severity.value} | {finding.rule_id} | `{finding.file}:{finding.line}` "
                f"| {_md_escape(finding.message)} | {_md_escape(finding.fix)} |"
            )
    else:
        lines.append("No issues found.")

    if report.diagnostics:
        lines.extend(["", "## Diagnostics", ""])
        for diagnostic in report.diagnostics:
            location = f"{diagnostic.file}:{diagnostic.line}" if diagnostic.line else diagnostic.file
            lines.append(f"- **{diagnostic.kind}** `{location}`: {_md_escape(diagnostic.message)}")
    return "\n".join(lines) + "\n"


def render_sarif(report: ScanReport, registry: Optional[RuleRegistry] = None) -> str:
    rule_ids = sorted({finding.rule_id for finding in report.findings})
    descriptors = []
    for rule_id in rule_ids:
        rule = registry.get(rule_id) if registry is not None else None
        sample = next(finding for finding in report.findings if finding.rule_id == rule_id)
        descriptor: Dict[str, object] = {
            "id": rule_id,
            "shortDescription": {"text": rule.message if rule else sample.message},
            "help": {"text": rule.fix if rule else sample.fix},
            "defaultConfiguration": {"level": SARIF_LEVELS[sample.severity]},
            "properties": {"severity": sample.severity.value},
        }
        if rule is not None and rule.compliance:
            descriptor["properties"]["compliance"] = dict(rule.compliance)
        descriptors.append(descriptor)

    results = [
        {
            "ruleId": finding.rule_id,
            "level": SARIF_LEVELS[finding.severity],
            "message": {"text": finding.message},
            "locations": [
                {
                    "physicalLocation": {
                        "artifactLocation": {"uri": finding.file.replace("\\", "/")},
                        "region": {"startLine": finding.line},
                    }
                }
            ],
        }
        for finding in report.findings
    ]
    notifications = [
        {
            "level": "warning",
            "message": {"text": f"{diagnostic.file}: {diagnostic.message}"},
            "descriptor": {"id": diagnostic.kind},
        }
        for diagnostic in report.diagnostics
    ]
    payload = {
        "$schema": SARIF_SCHEMA,
        "version": "2.1.0",
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "security-scan",
                        "version": __version__,
                        "rules": descriptors,
                        "properties": {"rulesetVersion": report.ruleset_version},
                    }
                },
                "invocations": [
                    {
                        "executionSuccessful": True,
                        "endTimeUtc": report.scan_date,
                        "toolExecutionNotifications": notifications,
                    }
                ],
                "results": results,
            }
        ],
    }
    return json.dumps(payload, indent=2)


RENDERERS: Dict[str, Callable[[ScanReport], str]] = {
    "text": format_summary_table,
    "json": render_json,
    "markdown": render_markdown,
    "sarif": render_sarif,
}


def render(report: ScanReport, report_format: str, registry: Optional[RuleRegistry] = None) -> str:
    """Render ``report`` as ``text``, ``json``, ``markdown`` or ``sarif``."""

    if report_format == "sarif":
        return render_sarif(report, registry)
    try:
        renderer = RENDERERS[report_format]
    except KeyError:
        raise ValueError(f"Unsupported report format: {report_format}") from None
    return renderer(report)
