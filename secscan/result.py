"""Core result data structures for the scanner."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from .document import Diagnostic
from .severity import SEVERITY_ORDER, Severity

EXIT_CLEAN = 0
EXIT_LOW_MEDIUM = 1
EXIT_HIGH_CRITICAL = 2
EXIT_SCAN_FAILED = 3

KEY_VALUE = re.compile(r"^(.*?[:=]\s*[\"']?)(.*)$")


@dataclass(frozen=True)
class Finding:
    """Capture a single located rule violation."""

    rule_id: str
    severity: Severity
    file: str
    line: int
    matched_text: str
    message: str
    fix: str
    compliance: Tuple[Tuple[str, str], ...] = ()

    def to_dict(self) -> Dict[str, object]:
        """Serialise using the stable field names of the JSON report."""

        return {
            "id": self.rule_id,
            "severity": self.severity.value,
            "file": self.file,
            "line": self.line,
            "message": self.message,
            "fix": self.fix,
        }


def finding_sort_key(finding: Finding) -> Tuple[int, str, int, str]:
    """Order by severity (most severe first), then file, line and rule id."""

    return (-finding.severity.rank, finding.file, finding.line, finding.rule_id)


def _mask(value: str, keep: int) -> str:
    if len(value) <= keep:
        return "*" * len(value)
    return value[:keep] + "*" * min(len(value) - keep, 12)


def redact(text: str, keep: int = 4) -> str:
    """Mask a matched secret, keeping any ``key:``/``key =`` prefix and ``keep`` value characters."""

    text = text.strip()
    assignment = KEY_VALUE.match(text)
    if assignment and assignment.group(2):
        return assignment.group(1) + _mask(assignment.group(2), keep)
    return _mask(text, keep)


@dataclass(frozen=True)
class FileResult:
    """Outcome of scanning one file."""

    path: str
    findings: Tuple[Finding, ...] = ()
    suppressed: int = 0
    diagnostics: Tuple[Diagnostic, ...] = ()
    unreadable: bool = False

    @property
    def clean(self) -> bool:
        return not self.diagnostics and not self.unreadable


@dataclass(frozen=True)
class ScanReport:
    """Immutable aggregate of one scan invocation."""

    files_scanned: int
    findings: Tuple[Finding, ...]
    counts_by_severity: Dict[str, int]
    suppressed_count: int = 0
    diagnostics: Tuple[Diagnostic, ...] = ()
    files_unreadable: int = 0
    files_with_errors: int = 0
    min_severity: Severity = Severity.LOW
    scan_date: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds"))
    ruleset_version: str = ""

    @property
    def total(self) -> int:
        return len(self.findings)

    @property
    def highest_severity(self) -> Optional[Severity]:
        if not self.findings:
            return None
        return max((finding.severity for finding in self.findings), key=lambda severity: severity.rank)

    @property
    def passed(self) -> bool:
        return self.exit_code() == EXIT_CLEAN

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return severity/count pairs ordered for reporting."""

        return [(severity.value, self.counts_by_severity.get(severity.value, 0)) for severity in SEVERITY_ORDER]

    def exit_code(self) -> int:
        highest = None
        for finding in self.findings:
            if not finding.severity.at_least(self.min_severity):
                continue
            if highest is None or finding.severity.rank > highest.rank:
                highest = finding.severity
        if highest is None:
            return EXIT_CLEAN
        return highest.exit_priority

    def to_dict(self) -> Dict[str, object]:
        return {
            "scan_date": self.scan_date,
            "files_scanned": self.files_scanned,
            "issues": [finding.to_dict() for finding in self.findings],
            "summary": {severity.lower(): count for severity, count in self.as_rows()},
            "suppressed": self.suppressed_count,
            "files_unreadable": self.files_unreadable,
            "files_with_errors": self.files_with_errors,
            "diagnostics": [diagnostic.to_dict() for diagnostic in self.diagnostics],
            "min_severity": self.min_severity.value.lower(),
            "ruleset_version": self.ruleset_version,
            "passed": self.passed,
        }


def aggregate(
    results: Iterable[FileResult],
    min_severity: Severity = Severity.LOW,
    ruleset_version: str = "",
    scan_date: Optional[str] = None,
) -> ScanReport:
    """Merge per-file results into a :class:`ScanReport`.

    Findings below ``min_severity`` are dropped here, so every renderer sees
    the same set. The merge is insensitive to the order of ``results``.
    """

    findings: List[Finding] = []
    diagnostics: List[Diagnostic] = []
    files_scanned = 0
    unreadable = 0
    with_errors = 0
    suppressed = 0
    for result in results:
        if result.clean:
            files_scanned += 1
        elif result.unreadable:
            unreadable += 1
        else:
            with_errors += 1
        suppressed += result.suppressed
        diagnostics.extend(result.diagnostics)
        findings.extend(finding for finding in result.findings if finding.severity.at_least(min_severity))

    findings.sort(key=finding_sort_key)
    diagnostics.sort(key=lambda item: (item.file, item.line or 0, item.kind, item.message))
    counts = {severity.value: 0 for severity in SEVERITY_ORDER}
    for finding in findings:
        counts[finding.severity.value] += 1

    extra = {"scan_date": scan_date} if scan_date else {}
    return ScanReport(
        files_scanned=files_scanned,
        findings=tuple(findings),
        counts_by_severity=counts,
        suppressed_count=suppressed,
        diagnostics=tuple(diagnostics),
        files_unreadable=unreadable,
        files_with_errors=with_errors,
        min_severity=min_severity,
        ruleset_version=ruleset_version,
        **extra,
    )
