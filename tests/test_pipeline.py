import importlib.util
from datetime import date
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]


def _load(relative: str, name: str):
    spec = importlib.util.spec_from_file_location(name, ROOT / relative)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_ignore_file_validation_requires_reason_and_live_expiry(tmp_path):
    validator = _load("pipeline/scripts/validate_ignore_file.py", "validate_ignore_file")
    ignore_file = tmp_path / ".security-scan-ignore"
    ignore_file.write_text(
        """
ignores:
  - rule: DC001
    file: build/docker-compose.yml
    reason: CI builder needs privileged mode
    expires: 2027-03-31
  - rule: SEC007
    expires: 2027-03-31
  - rule: TF004
    reason: staging database
    expires: 2026-01-01
  - rule: K8S009
    reason: tracked upstream
""".strip(),
        encoding="utf-8",
    )

    errors = validator.validate(ignore_file, date(2026, 10, 19))

    assert errors == [
        "SEC007 (all files): missing reason",
        "TF004 (all files): expired on 2026-01-01",
        "K8S009 (all files): missing expires YYYY-MM-DD",
    ]
    assert validator.main([str(ignore_file)]) == 1
    assert validator.main([str(tmp_path / "absent")]) == 0


def test_pre_deploy_gate_blocks_on_threshold():
    pytest.importorskip("boto3")
    hook = _load("pipeline/hooks/pre_deploy_hook.py", "pre_deploy_hook")
    report = {
        "issues": [
            {"id": "DC009", "severity": "LOW", "file": "docker-compose.yml", "line": 3},
            {"id": "TF002", "severity": "HIGH", "file": "main.tf", "line": 17},
            {"id": "DC001", "severity": "CRITICAL", "file": "docker-compose.yml", "line": 4},
        ]
    }

    assert [item["id"] for item in hook.blocking_issues(report, "HIGH")] == ["DC001", "TF002"]
    assert [item["id"] for item in hook.blocking_issues(report, "LOW")] == ["DC001", "TF002", "DC009"]
    assert hook.blocking_issues({"issues": []}, "LOW") == []
