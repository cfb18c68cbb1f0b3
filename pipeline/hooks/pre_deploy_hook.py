"""Pipeline pre-deploy hook that gates a CodePipeline job on the scanner's JSON report."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import zipfile

import boto3

logger = logging.getLogger()
logger.setLevel(logging.INFO)

FAILURE_GUIDE_URL = os.environ.get(
    "GUIDE_URL",
    "https://docs.aws.amazon.com/wellarchitected/latest/security-pillar/security.html",
)
REPORT_PATH = os.environ.get("REPORT_PATH", "artifacts/security-scan.json")
FAIL_ON = os.environ.get("FAIL_ON", "HIGH").upper()

ORDER = ["CRITICAL", "HIGH", "MEDIUM", "LOW"]


def _extract_artifact(job_data: dict, target_path: str) -> dict:
    credentials = job_data["artifactCredentials"]
    session = boto3.Session(
        aws_access_key_id=credentials["accessKeyId"],
        aws_secret_access_key=credentials["secretAccessKey"],
        aws_session_token=credentials["sessionToken"],
        region_name=os.environ.get("AWS_REGION"),
    )
    s3_client = session.client("s3")

    artifact = job_data["inputArtifacts"][0]
    bucket = artifact["location"]["s3Location"]["bucketName"]
    key = artifact["location"]["s3Location"]["objectKey"]

    with tempfile.NamedTemporaryFile() as tmp_file:
        s3_client.download_file(bucket, key, tmp_file.name)
        with zipfile.ZipFile(tmp_file.name) as zipped:
            with zipped.open(target_path) as scan_file:
                return json.loads(scan_file.read().decode("utf-8"))


def _rank(severity: str) -> int:
    return ORDER.index(severity) if severity in ORDER else len(ORDER)


def blocking_issues(report: dict, fail_on: str = FAIL_ON) -> list[dict]:
    """Return report issues at or above ``fail_on``, most severe first."""

    threshold = _rank(fail_on)
    issues = [item for item in report.get("issues", []) if _rank(str(item.get("severity", "")).upper()) <= threshold]
    return sorted(issues, key=lambda item: (_rank(str(item.get("severity", "")).upper()), item.get("file", ""), item.get("line", 0)))


def _highlights(issues: list[dict], limit: int = 10) -> list[str]:
    return [
        f"[{item.get('severity')}] {item.get('id')} {item.get('message')} ({item.get('file')}:{item.get('line')})"
        for item in issues[:limit]
    ]


def handler(event, _context):
    job = event["CodePipeline.job"]
    job_id = job["id"]
    data = job["data"]

    client = boto3.client("codepipeline")

    try:
        report = _extract_artifact(data, REPORT_PATH)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Failed to read %s", REPORT_PATH)
        client.put_job_failure_result(
            jobId=job_id,
            failureDetails={
                "type": "JobFailed",
                "message": f"Failed to read {REPORT_PATH}: {exc}",
            },
        )
        return

    issues = blocking_issues(report)
    message_lines = [
        "Security scan gate (pre-deploy hook)",
        f"Scan date: {report.get('scan_date')}",
        f"Files scanned: {report.get('files_scanned')}",
        f"Summary: {report.get('summary', {})}",
        f"Blocking issues (>= {FAIL_ON}): {len(issues)}",
    ]
    if issues:
        message_lines.append("Highlights:")
        message_lines.extend(_highlights(issues))
    message_lines.append(f"Remediation: {FAILURE_GUIDE_URL}")
    message = "\n".join(message_lines)
    logger.info(message)

    if issues:
        client.put_job_failure_result(
            jobId=job_id,
            failureDetails={
                "type": "JobFailed",
                "message": message[:5000],
            },
        )
        return

    client.put_job_success_result(jobId=job_id, executionDetails={"summary": "Security scan gate passed"})
