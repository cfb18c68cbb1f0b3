"""Terraform (AWS provider) misconfiguration rules."""

from __future__ import annotations

from secscan.document import Dialect
from secscan.severity import Severity

from . import Rule, RuleKind

INTERPOLATED = r"\$\{|\bvar\.|\bdata\.|\blocal\.|\bmodule\."

RULES = (
    Rule(
        id="TF001",
        dialect=Dialect.TERRAFORM,
        severity=Severity.CRITICAL,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"[\"'](0\.0\.0\.0/0|::/0)[\"']",
        context=(
            "resource.aws_security_group.*.ingress.*"
            "|resource.aws_vpc_security_group_ingress_rule.*"
        ),
        message="Security group ingress is open to the whole internet",
        fix="Restrict ingress cidr_blocks to known address ranges or reference a source security group.",
        compliance={"CIS-AWS": "5.2"},
    ),
    Rule(
        id="TF002",
        dialect=Dialect.TERRAFORM,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_ABSENT_WHEN_CONTEXT_PRESENT,
        match=r"^\s*encrypted\s*=\s*true\b",
        context="resource.aws_ebs_volume.*",
        message="EBS volume is not encrypted",
        fix="Set 'encrypted = true' (and optionally kms_key_id) on the aws_ebs_volume.",
        compliance={"CIS-AWS": "2.2.1"},
    ),
    Rule(
        id="TF003",
        dialect=Dialect.TERRAFORM,
        severity=Severity.CRITICAL,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*acl\s*=\s*\"(public-read|public-read-write|authenticated-read)\"",
        message="S3 bucket ACL grants public access",
        fix="Use 'acl = \"private\"' and grant access through bucket policies scoped to principals.",
        compliance={"CIS-AWS": "2.1.5"},
    ),
    Rule(
        id="TF004",
        dialect=Dialect.TERRAFORM,
        severity=Severity.CRITICAL,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*publicly_accessible\s*=\s*true\b",
        context="resource.aws_db_instance.*|resource.aws_rds_cluster_instance.*",
        message="Database instance is publicly accessible",
        fix="Set 'publicly_accessible = false' and reach the database through private subnets.",
        compliance={"CIS-AWS": "2.3.3"},
    ),
    Rule(
        id="TF005",
        dialect=Dialect.TERRAFORM,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_ABSENT_WHEN_CONTEXT_PRESENT,
        match=r"^\s*storage_encrypted\s*=\s*true\b",
        context="resource.aws_db_instance.*|resource.aws_rds_cluster.*",
        message="Database storage is not encrypted",
        fix="Set 'storage_encrypted = true' on the database resource.",
        compliance={"CIS-AWS": "2.3.1"},
    ),
    Rule(
        id="TF006",
        dialect=Dialect.TERRAFORM,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*(password|master_password|admin_password|secret_key|access_key|token)\s*=\s*\"[^\"$]+\"",
        exclude=INTERPOLATED,
        message="Credential is hard-coded in a Terraform attribute",
        fix="Pass the value through a sensitive variable or read it from AWS Secrets Manager / SSM.",
        compliance={"CWE": "798"},
    ),
    Rule(
        id="TF007",
        dialect=Dialect.TERRAFORM,
        severity=Severity.MEDIUM,
        kind=RuleKind.PATTERN_ABSENT_WHEN_CONTEXT_PRESENT,
        match=r"^\s*http_tokens\s*=\s*\"required\"",
        context="resource.aws_instance.*|resource.aws_launch_template.*",
        message="Instance metadata service v2 (IMDSv2) is not enforced",
        fix="Add 'metadata_options { http_tokens = \"required\" }'.",
        compliance={"CIS-AWS": "5.6"},
    ),
    Rule(
        id="TF008",
        dialect=Dialect.TERRAFORM,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"\"Action\"\s*[:=]\s*\"\*\"|^\s*actions\s*=\s*\[\s*\"\*\"\s*\]|\"Action\"\s*[:=]\s*\[\s*\"\*\"\s*\]",
        message="IAM policy allows every action",
        fix="List the specific actions the principal needs instead of '*'.",
        compliance={"CIS-AWS": "1.16"},
    ),
    Rule(
        id="TF009",
        dialect=Dialect.TERRAFORM,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*(block_public_acls|block_public_policy|ignore_public_acls|restrict_public_buckets)\s*=\s*false\b",
        context="resource.aws_s3_bucket_public_access_block.*|resource.aws_s3_account_public_access_block.*",
        message="S3 public access block setting is disabled",
        fix="Set all four public access block settings to true.",
        compliance={"CIS-AWS": "2.1.5"},
    ),
    Rule(
        id="TF010",
        dialect=Dialect.TERRAFORM,
        severity=Severity.LOW,
        kind=RuleKind.PATTERN_ABSENT_WHEN_CONTEXT_PRESENT,
        match=r"^\s*enable_key_rotation\s*=\s*true\b",
        context="resource.aws_kms_key.*",
        message="KMS key rotation is not enabled",
        fix="Set 'enable_key_rotation = true' on customer managed keys.",
        compliance={"CIS-AWS": "3.8"},
    ),
)
