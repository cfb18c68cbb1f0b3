"""Scan orchestration: expand paths, run the per-file pipeline, merge results."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from . import parsers
from .config import ScanConfig
from .document import Diagnostic, Dialect
from .errors import ParseError
from .matcher import Matcher
from .result import FileResult, ScanReport, aggregate
from .rules import load_registry
from .severity import Severity
from .suppression import DEFAULT_IGNORE_FILE, filter_findings, load_ignore_file, path_excludes
from .utils.fileio import read_bytes_limited
from .utils.walk import iter_candidate_files

logger = logging.getLogger(__name__)


class Scanner:
    """Run the parse, match and suppress pipeline over a set of paths."""

    def __init__(self, config: ScanConfig) -> None:
        self.config = config
        self._matchers: Dict[Dialect, Matcher] = {
            dialect: Matcher(config.registry.for_dialect(dialect), config.max_line_length) for dialect in Dialect
        }

    def collect_files(self, paths: Iterable[str]) -> List[Path]:
        excludes = tuple(self.config.excludes) + path_excludes(self.config.suppressions)
        seen = set()
        files: List[Path] = []
        for path in iter_candidate_files(paths, parsers.is_candidate, excludes):
            key = os.path.normcase(os.path.abspath(path))
            if key in seen:
                continue
            seen.add(key)
            files.append(path)
        return files

    def scan_file(self, path: Path) -> FileResult:
        display = str(path)
        try:
            raw = read_bytes_limited(path, self.config.max_file_bytes)
        except OSError as exc:
            logger.warning("Cannot read %s: %s", display, exc.strerror or exc)
            return FileResult(
                path=display,
                unreadable=True,
                diagnostics=(Diagnostic(file=display, kind="unreadable", message=str(exc.strerror or exc)),),
            )

        try:
            document = parsers.parse(raw, display, self.config.max_file_bytes)
        except ParseError as exc:
            logger.warning("Skipping %s: %s", display, exc.message)
            return FileResult(path=display, diagnostics=(Diagnostic(file=display, kind="parse", message=exc.message),))

        for diagnostic in document.diagnostics:
            logger.warning("%s:%s: %s", display, diagnostic.line or "-", diagnostic.message)

        findings = self._matchers[document.dialect].evaluate(document)
        outcome = filter_findings(findings, self.config.suppressions, document.lines)
        logger.debug(
            "%s [%s]: %d findings, %d suppressed",
            display,
            document.dialect.value,
            len(outcome.surviving),
            len(outcome.suppressed),
        )
        return FileResult(
            path=display,
            findings=outcome.surviving,
            suppressed=len(outcome.suppressed),
            diagnostics=document.diagnostics,
        )

    def scan(self, paths: Sequence[str]) -> ScanReport:
        files = self.collect_files(paths or ["."])
        logger.info("Scanning %d candidate files", len(files))
        results = self._run(files)
        return aggregate(
            results,
            min_severity=self.config.min_severity,
            ruleset_version=self.config.registry.version,
        )

    def _run(self, files: List[Path]) -> List[FileResult]:
        if not files:
            return []
        workers = self.config.workers or os.cpu_count() or 1
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="secscan")
        futures: Dict[Future, Path] = {executor.submit(self.scan_file, path): path for path in files}
        try:
            done, pending = wait(futures, timeout=self.config.deadline)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        results = []
        for future in done:
            try:
                results.append(future.result())
            except Exception as exc:  # pylint: disable=broad-except
                display = str(futures[future])
                logger.exception("Unexpected error while scanning %s", display)
                results.append(
                    FileResult(
                        path=display,
                        diagnostics=(Diagnostic(file=display, kind="error", message=f"scan failed: {exc!r}"),),
                    )
                )
        for future in pending:
            display = str(futures[future])
            logger.warning("Scan deadline reached before %s completed", display)
            results.append(
                FileResult(
                    path=display,
                    diagnostics=(Diagnostic(file=display, kind="timeout", message="scan deadline reached"),),
                )
            )
        return results


def scan(
    paths: Sequence[str],
    min_severity: Severity = Severity.LOW,
    ignore_file_path: Optional[str] = DEFAULT_IGNORE_FILE,
    rule_files: Sequence[Path] = (),
    **options,
) -> ScanReport:
    """Convenience wrapper building a :class:`ScanConfig` and scanning ``paths``.

    Raises :class:`~secscan.errors.RuleConfigError` or
    :class:`~secscan.errors.SuppressionLoadError` before any file is read when
    the rule set or the ignore file is broken.
    """

    registry = load_registry(rule_files)
    suppressions = load_ignore_file(Path(ignore_file_path)) if ignore_file_path else ()
    config = ScanConfig(registry=registry, suppressions=suppressions, min_severity=min_severity, **options)
    return Scanner(config).scan(paths)
