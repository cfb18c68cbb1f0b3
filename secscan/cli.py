"""Command-line entry point for the configuration security scanner."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from . import __version__
from .config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_FORMAT,
    REPORT_FORMATS,
    ScanConfig,
    load_project_settings,
)
from .errors import ScanError
from .report import render
from .result import EXIT_SCAN_FAILED, ScanReport
from .rules import RuleRegistry, load_registry
from .scan import Scanner
from .severity import Severity
from .suppression import DEFAULT_IGNORE_FILE, load_ignore_file

logger = logging.getLogger(__name__)

SEVERITY_CHOICES = ["low", "medium", "high", "critical"]


class ScanArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with the scan-failed code on usage errors."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_SCAN_FAILED, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = ScanArgumentParser(
        prog="security-scan",
        description="Static security scanner for Docker Compose, Kubernetes and Terraform configuration.",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        default=None,
        help="Files or directories to scan (default: current directory, recursive).",
    )
    parser.add_argument(
        "--min-severity",
        choices=SEVERITY_CHOICES,
        default=None,
        help="Only report findings at or above this severity (default: low).",
    )
    parser.add_argument(
        "--format",
        choices=list(REPORT_FORMATS),
        default=None,
        help="Report format (default: text).",
    )
    parser.add_argument(
        "--ignore-file",
        default=None,
        help=f"Suppression file (default: {DEFAULT_IGNORE_FILE}).",
    )
    parser.add_argument(
        "--out",
        "--output",
        dest="output_path",
        type=str,
        default=None,
        help="Write the report to this path instead of stdout.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Project settings file (default: {DEFAULT_CONFIG_FILE} if present).",
    )
    parser.add_argument(
        "--rules",
        dest="rule_files",
        action="append",
        default=[],
        help="Additional YAML rule file (repeatable).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of files scanned in parallel (default: based on CPU count).",
    )
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Accepted for compatibility; the scanner never rewrites files.",
    )
    parser.add_argument(
        "--list-rules",
        action="store_true",
        help="Print the active rule set and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def format_rule_list(registry: RuleRegistry) -> str:
    lines = [f"Rule set {registry.version} ({len(registry)} rules)"]
    for rule in registry:
        lines.append(f"{rule.id:<7} {rule.dialect.value:<11} {rule.severity.value:<8} {rule.message}")
    return "\n".join(lines)


def write_output(text: str, output_path: str | None) -> None:
    if output_path:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
        logger.info("Report written to %s", output_path)
    else:
        print(text)


def run_scan(args: argparse.Namespace) -> tuple[ScanReport, RuleRegistry, str]:
    """Resolve settings, load rules and suppressions, and scan."""

    config_path = Path(args.config or DEFAULT_CONFIG_FILE)
    settings = load_project_settings(config_path, required=args.config is not None)

    rule_files = [Path(path) for path in (*settings.rules, *args.rule_files)]
    registry = load_registry(rule_files)

    ignore_file = args.ignore_file or settings.ignore_file or DEFAULT_IGNORE_FILE
    suppressions = load_ignore_file(Path(ignore_file))

    if args.min_severity:
        min_severity = Severity.parse(args.min_severity)
    else:
        min_severity = settings.min_severity or Severity.LOW

    options = {}
    if settings.max_file_bytes:
        options["max_file_bytes"] = settings.max_file_bytes
    config = ScanConfig(
        registry=registry,
        suppressions=suppressions,
        min_severity=min_severity,
        excludes=settings.exclude,
        workers=args.workers or settings.workers,
        **options,
    )
    report = Scanner(config).scan(args.paths or ["."])
    report_format = args.format or settings.format or DEFAULT_FORMAT
    return report, registry, report_format


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")
    if args.fix:
        logger.warning("--fix is not supported: findings are reported, files are left unchanged")

    try:
        if args.list_rules:
            registry = load_registry([Path(path) for path in args.rule_files])
            print(format_rule_list(registry))
            return 0
        report, registry, report_format = run_scan(args)
    except ScanError as exc:
        print(f"security-scan: scan could not run: {exc}", file=sys.stderr)
        return EXIT_SCAN_FAILED

    write_output(render(report, report_format, registry), args.output_path)
    return report.exit_code()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
