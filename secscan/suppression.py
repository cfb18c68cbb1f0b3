"""Suppression of findings via inline annotations and the ignore file."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import yaml

from .errors import SuppressionLoadError
from .parsers import dialect_for_filename
from .result import Finding
from .utils.fileio import read_yaml_file
from .utils.walk import glob_match

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILE = ".security-scan-ignore"
INLINE_TOKEN = re.compile(r"security-scan:\s*ignore\s+([A-Za-z0-9_,\s-]+)")
WILDCARD = "*"
HASH_COMMENT = ("#",)
HCL_COMMENT = ("#", "//")


@dataclass(frozen=True)
class SuppressionEntry:
    """One ignore-file entry: a rule id (or ``*``) and an optional file glob."""

    rule: str
    file: Optional[str] = None
    reason: Optional[str] = None
    expires: Optional[date] = None

    def is_expired(self, today: Optional[date] = None) -> bool:
        return self.expires is not None and self.expires < (today or date.today())

    def matches(self, rule_id: str, path: str) -> bool:
        if self.rule != WILDCARD and self.rule != rule_id:
            return False
        if self.file is None:
            return True
        return glob_match(self.file, path)

    @property
    def excludes_path(self) -> bool:
        """Entries for every rule with a file glob exclude matching paths from the walk."""

        return self.rule == WILDCARD and self.file is not None


@dataclass(frozen=True)
class SuppressionOutcome:
    surviving: Tuple[Finding, ...]
    suppressed: Tuple[Finding, ...]


def _parse_expiry(value: Any, index: int, path: Path) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise SuppressionLoadError(str(path), f"entry {index}: expires must be YYYY-MM-DD, got {value!r}") from None


def entry_from_dict(data: Any, index: int, path: Path) -> SuppressionEntry:
    if not isinstance(data, dict):
        raise SuppressionLoadError(str(path), f"entry {index}: expected a mapping with a 'rule' key")
    unknown = set(data) - {"rule", "file", "reason", "expires"}
    if unknown:
        raise SuppressionLoadError(str(path), f"entry {index}: unknown keys {sorted(unknown)}")
    rule = data.get("rule")
    if not isinstance(rule, str) or not rule.strip():
        raise SuppressionLoadError(str(path), f"entry {index}: 'rule' is required")
    file_glob = data.get("file")
    if file_glob is not None and not isinstance(file_glob, str):
        raise SuppressionLoadError(str(path), f"entry {index}: 'file' must be a string")
    reason = data.get("reason")
    return SuppressionEntry(
        rule=rule.strip(),
        file=file_glob,
        reason=str(reason) if reason is not None else None,
        expires=_parse_expiry(data.get("expires"), index, path),
    )


def load_ignore_file(path: Path, today: Optional[date] = None) -> Tuple[SuppressionEntry, ...]:
    """Load suppression entries; an absent file means no suppressions.

    Expired entries are dropped with a warning so the findings they covered
    reappear.
    """

    path = Path(path)
    if not path.exists():
        logger.debug("No ignore file at %s", path)
        return ()
    try:
        data = read_yaml_file(path)
    except (OSError, yaml.YAMLError) as exc:
        raise SuppressionLoadError(str(path), f"cannot parse ignore file: {exc}") from None
    if data is None:
        return ()
    if isinstance(data, dict):
        data = data.get("ignores", data.get("ignore"))
    if not isinstance(data, list):
        raise SuppressionLoadError(str(path), "expected a list of entries or an 'ignores:' list")

    entries: List[SuppressionEntry] = []
    for index, item in enumerate(data):
        entry = entry_from_dict(item, index, path)
        if entry.is_expired(today):
            logger.warning(
                "Ignore entry for %s (%s) expired on %s and no longer applies",
                entry.rule,
                entry.file or "all files",
                entry.expires,
            )
            continue
        entries.append(entry)
    logger.info("Loaded %d suppression entries from %s", len(entries), path)
    return tuple(entries)


def comment_text(line: str, markers: Sequence[str] = HASH_COMMENT) -> Optional[str]:
    """Return the text after the first comment marker outside a quoted string."""

    quote = None
    index = 0
    while index < len(line):
        char = line[index]
        if quote is not None:
            if char == "\\" and quote == '"':
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in "\"'" and (index == 0 or line[index - 1] in " \t[{(,:="):
            quote = char
        else:
            for marker in markers:
                if line.startswith(marker, index) and (marker != "#" or index == 0 or line[index - 1].isspace()):
                    return line[index + len(marker) :]
        index += 1
    return None


def inline_rule_ids(text: str, markers: Sequence[str] = HASH_COMMENT) -> Tuple[str, ...]:
    comment = comment_text(text, markers)
    if comment is None:
        return ()
    match = INLINE_TOKEN.search(comment)
    if match is None:
        return ()
    return tuple(part for part in re.split(r"[\s,]+", match.group(1)) if part)


def is_inline_suppressed(finding: Finding, lines: Sequence[str]) -> bool:
    """True when a comment on the finding line or an adjacent line carries ``security-scan: ignore <id>``."""

    markers = HCL_COMMENT if dialect_for_filename(finding.file) == "terraform" else HASH_COMMENT
    for line in (finding.line - 1, finding.line, finding.line + 1):
        if 1 <= line <= len(lines):
            if finding.rule_id in inline_rule_ids(lines[line - 1], markers):
                return True
    return False


def filter_findings(
    findings: Iterable[Finding],
    suppressions: Sequence[SuppressionEntry],
    lines: Sequence[str] = (),
) -> SuppressionOutcome:
    """Split ``findings`` into surviving and suppressed ones."""

    surviving: List[Finding] = []
    suppressed: List[Finding] = []
    for finding in findings:
        if is_inline_suppressed(finding, lines) or any(
            entry.matches(finding.rule_id, finding.file) for entry in suppressions
        ):
            suppressed.append(finding)
        else:
            surviving.append(finding)
    return SuppressionOutcome(surviving=tuple(surviving), suppressed=tuple(suppressed))


def path_excludes(suppressions: Iterable[SuppressionEntry]) -> Tuple[str, ...]:
    return tuple(entry.file for entry in suppressions if entry.excludes_path and entry.file)
