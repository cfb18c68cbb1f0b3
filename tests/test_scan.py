from pathlib import Path

from secscan import parsers
from secscan.config import ScanConfig
from secscan.rules import load_registry
from secscan.scan import Scanner, scan
from secscan.severity import Severity
from secscan.suppression import SuppressionEntry

CLEAN_COMPOSE = """\
services:
  web:
    image: nginx:1.25
    read_only: true
    mem_limit: 256m
    security_opt:
      - no-new-privileges:true
"""

BROKEN_COMPOSE = """\
services:
  web:
    privileged: true
    command: "unterminated
volumes:
  data: {}
"""

TERRAFORM = """\
resource "aws_db_instance" "main" {
  engine              = "postgres"
  publicly_accessible = true
  storage_encrypted   = true
}
"""


def _write(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _project(tmp_path):
    _write(tmp_path, "docker-compose.yml", CLEAN_COMPOSE)
    _write(tmp_path, "infra/main.tf", TERRAFORM)
    _write(tmp_path, "svc/docker-compose.yml", BROKEN_COMPOSE)
    _write(tmp_path, "README.md", "password: hunter2hunter2\n")
    return tmp_path


def test_partial_failure_is_reported_not_fatal(tmp_path):
    root = _project(tmp_path)

    report = scan([str(root)], ignore_file_path=None)

    assert report.files_scanned == 2
    assert report.files_with_errors == 1
    assert len(report.diagnostics) == 1
    assert report.diagnostics[0].file.endswith("docker-compose.yml")
    located = {(Path(finding.file).name, finding.rule_id, finding.line) for finding in report.findings}
    assert ("main.tf", "TF004", 3) in located
    assert ("docker-compose.yml", "DC001", 3) in located
    assert report.exit_code() == 2


def test_scan_is_idempotent(tmp_path):
    root = _project(tmp_path)

    first = scan([str(root)], ignore_file_path=None)
    second = scan([str(root)], ignore_file_path=None)

    assert first.findings == second.findings
    assert first.diagnostics == second.diagnostics
    assert first.counts_by_severity == second.counts_by_severity


def test_worker_count_does_not_change_the_report(tmp_path):
    root = _project(tmp_path)
    for index in range(6):
        _write(root, f"stack{index}/compose.yaml", CLEAN_COMPOSE.replace("1.25", "latest"))

    serial = scan([str(root)], ignore_file_path=None, workers=1)
    parallel = scan([str(root)], ignore_file_path=None, workers=4)

    assert serial.findings == parallel.findings
    assert serial.files_scanned == parallel.files_scanned == 8


def test_min_severity_drops_lower_findings(tmp_path):
    path = _write(tmp_path, "docker-compose.yml", CLEAN_COMPOSE.replace("1.25", "latest"))

    low = scan([str(path)], ignore_file_path=None)
    high = scan([str(path)], min_severity=Severity.HIGH, ignore_file_path=None)

    assert [finding.rule_id for finding in low.findings] == ["DC009"]
    assert high.findings == ()
    assert high.exit_code() == 0


def test_missing_path_is_unreadable(tmp_path):
    report = scan([str(tmp_path / "nope.yml")], ignore_file_path=None)

    assert report.files_unreadable == 1
    assert report.files_scanned == 0
    assert report.diagnostics[0].kind == "unreadable"


def test_oversized_file_is_skipped_with_diagnostic(tmp_path):
    path = _write(tmp_path, "docker-compose.yml", CLEAN_COMPOSE)

    report = scan([str(path)], ignore_file_path=None, max_file_bytes=16)

    assert report.findings == ()
    assert report.files_with_errors == 1
    assert "exceeds 16 bytes" in report.diagnostics[0].message


def test_excludes_and_suppressions(tmp_path):
    root = _project(tmp_path)
    config = ScanConfig(
        registry=load_registry(),
        suppressions=(
            SuppressionEntry(rule="*", file="svc"),
            SuppressionEntry(rule="TF004", file="infra/*.tf"),
        ),
        excludes=("vendor",),
    )
    _write(root, "vendor/docker-compose.yml", BROKEN_COMPOSE)

    report = Scanner(config).scan([str(root)])

    assert report.files_scanned == 2
    assert report.diagnostics == ()
    assert report.findings == ()
    assert report.suppressed_count == 1


def test_duplicate_paths_are_scanned_once(tmp_path):
    path = _write(tmp_path, "docker-compose.yml", CLEAN_COMPOSE)

    report = scan([str(path), str(path), str(tmp_path)], ignore_file_path=None)

    assert report.files_scanned == 1


def test_deeply_nested_file_does_not_abort_the_scan(tmp_path):
    _write(tmp_path, "good.yml", "password: Zq8rT2vLp0xWm4kN\n")
    _write(tmp_path, "deep.yml", "a: " + "[" * 3000 + "]" * 3000 + "\n")

    report = scan([str(tmp_path)], ignore_file_path=None)

    assert report.files_scanned == 1
    assert report.files_with_errors == 1
    assert [finding.rule_id for finding in report.findings] == ["SEC007"]
    assert report.diagnostics[0].file.endswith("deep.yml")


def test_alias_bomb_is_reported_not_expanded(tmp_path):
    lines = ["a: &a [" + ", ".join(["x"] * 10) + "]"]
    previous = "a"
    for name in "bcdefgh":
        lines.append(f"{name}: &{name} [" + ", ".join([f"*{previous}"] * 10) + "]")
        previous = name
    path = _write(tmp_path, "bomb.yml", "\n".join(lines) + "\n")

    report = scan([str(path)], ignore_file_path=None)

    assert report.files_with_errors == 1
    assert "too many nodes" in report.diagnostics[0].message


def test_unexpected_error_in_one_file_becomes_a_diagnostic(tmp_path, monkeypatch):
    _write(tmp_path, "docker-compose.yml", CLEAN_COMPOSE)
    _write(tmp_path, "infra/main.tf", TERRAFORM)
    real_parse = parsers.parse

    def parse(raw, filename, max_bytes=parsers.DEFAULT_MAX_FILE_BYTES):
        if filename.endswith(".tf"):
            raise RuntimeError("parser bug")
        return real_parse(raw, filename, max_bytes)

    monkeypatch.setattr(parsers, "parse", parse)

    report = scan([str(tmp_path)], ignore_file_path=None)

    assert report.files_scanned == 1
    assert report.files_with_errors == 1
    assert report.diagnostics[0].kind == "error"
    assert "parser bug" in report.diagnostics[0].message
