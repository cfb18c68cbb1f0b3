import json

import pytest

from secscan import cli

LOW_ONLY_COMPOSE = """\
services:
  web:
    image: nginx:latest
    read_only: true
    mem_limit: 256m
    security_opt:
      - no-new-privileges:true
"""

PRIVILEGED_COMPOSE = """\
services:
  web:
    image: nginx:1.25
    privileged: true
    ports:
      - "8080:8080"
"""


def test_cli_exit_code_respects_min_severity(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "docker-compose.yml").write_text(LOW_ONLY_COMPOSE, encoding="utf-8")

    assert cli.main(["."]) == 1
    captured = capsys.readouterr()
    assert "Scan Summary" in captured.out
    assert "DC009" in captured.out

    assert cli.main([".", "--min-severity", "medium"]) == 0
    captured = capsys.readouterr()
    assert "Status    : PASS" in captured.out


def test_cli_generates_json_report(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "docker-compose.yml").write_text(PRIVILEGED_COMPOSE, encoding="utf-8")
    output_path = tmp_path / "reports" / "scan.json"

    exit_code = cli.main(["--format", "json", "--out", str(output_path)])

    assert exit_code == 2
    assert capsys.readouterr().out == ""
    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert data["summary"]["critical"] == 2
    assert data["passed"] is False
    assert {issue["id"] for issue in data["issues"]} >= {"DC001", "DC002"}


def test_cli_applies_ignore_file(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "docker-compose.yml").write_text(LOW_ONLY_COMPOSE, encoding="utf-8")
    (tmp_path / ".security-scan-ignore").write_text(
        "- rule: DC009\n  reason: base image tracked upstream\n",
        encoding="utf-8",
    )

    assert cli.main(["--format", "json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["issues"] == []
    assert data["suppressed"] == 1


def test_cli_malformed_ignore_file_fails_the_scan(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "docker-compose.yml").write_text(LOW_ONLY_COMPOSE, encoding="utf-8")
    (tmp_path / "ignore.yml").write_text("- file: docker-compose.yml\n", encoding="utf-8")

    assert cli.main(["--ignore-file", "ignore.yml"]) == 3
    captured = capsys.readouterr()
    assert "scan could not run" in captured.err
    assert captured.out == ""


def test_cli_reads_project_settings(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "docker-compose.yml").write_text(LOW_ONLY_COMPOSE, encoding="utf-8")
    (tmp_path / ".security-scan.yml").write_text("min_severity: high\nformat: markdown\n", encoding="utf-8")

    assert cli.main([]) == 0
    assert capsys.readouterr().out.startswith("# Security Scan Report")


def test_cli_invalid_rule_file_fails_the_scan(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "rules.yml").write_text("- id: ORG001\n  severity: high\n  match: '(open'\n  message: m\n", encoding="utf-8")

    assert cli.main(["--rules", "rules.yml"]) == 3
    assert "ORG001" in capsys.readouterr().err


def test_cli_lists_rules(capsys):
    assert cli.main(["--list-rules"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Rule set ")
    assert "DC001" in out
    assert "K8S001" in out
    assert "TF001" in out
    assert "SEC001" in out


def test_cli_usage_errors_exit_with_scan_failed(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--min-severity", "urgent"])
    assert excinfo.value.code == 3

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--workers", "0"])
    assert excinfo.value.code == 3


def test_cli_fix_flag_leaves_files_untouched(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "docker-compose.yml"
    target.write_text(PRIVILEGED_COMPOSE, encoding="utf-8")

    assert cli.main(["--fix", "--format", "sarif"]) == 2
    assert target.read_text(encoding="utf-8") == PRIVILEGED_COMPOSE
    payload = json.loads(capsys.readouterr().out)
    assert payload["runs"][0]["results"]
