"""Kubernetes manifest hardening rules."""

from __future__ import annotations

from secscan.document import Dialect
from secscan.severity import Severity

from . import Rule, RuleKind

CONTAINER = "**.containers.*|**.initContainers.*|**.ephemeralContainers.*"
POD_SPEC = "spec|**.template.spec"

RULES = (
    Rule(
        id="K8S001",
        dialect=Dialect.KUBERNETES,
        severity=Severity.CRITICAL,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*privileged:\s*[\"']?true\b",
        message="Container runs privileged",
        fix="Set 'securityContext.privileged: false' and grant individual capabilities instead.",
        compliance={"CIS-Kubernetes": "5.2.1", "PSS": "baseline"},
    ),
    Rule(
        id="K8S002",
        dialect=Dialect.KUBERNETES,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*hostNetwork:\s*[\"']?true\b",
        message="Pod shares the host network namespace",
        fix="Remove 'hostNetwork: true'; expose the workload through a Service instead.",
        compliance={"CIS-Kubernetes": "5.2.4", "PSS": "baseline"},
    ),
    Rule(
        id="K8S003",
        dialect=Dialect.KUBERNETES,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*host(PID|IPC):\s*[\"']?true\b",
        message="Pod shares the host PID or IPC namespace",
        fix="Remove 'hostPID: true' / 'hostIPC: true'.",
        compliance={"CIS-Kubernetes": "5.2.2", "PSS": "baseline"},
    ),
    Rule(
        id="K8S004",
        dialect=Dialect.KUBERNETES,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*allowPrivilegeEscalation:\s*[\"']?true\b",
        message="Container allows privilege escalation",
        fix="Set 'securityContext.allowPrivilegeEscalation: false'.",
        compliance={"CIS-Kubernetes": "5.2.5", "PSS": "restricted"},
    ),
    Rule(
        id="K8S005",
        dialect=Dialect.KUBERNETES,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*runAsUser:\s*[\"']?0[\"']?\s*(#.*)?$|^\s*runAsNonRoot:\s*[\"']?false\b",
        message="Container is configured to run as root",
        fix="Set 'runAsNonRoot: true' and a non-zero 'runAsUser'.",
        compliance={"CIS-Kubernetes": "5.2.6", "PSS": "restricted"},
    ),
    Rule(
        id="K8S006",
        dialect=Dialect.KUBERNETES,
        severity=Severity.MEDIUM,
        kind=RuleKind.REQUIRED_KEY_MISSING,
        match="securityContext",
        context=CONTAINER,
        message="Container has no securityContext",
        fix="Add a securityContext with runAsNonRoot, allowPrivilegeEscalation: false and dropped capabilities.",
        compliance={"CIS-Kubernetes": "5.7.3"},
    ),
    Rule(
        id="K8S007",
        dialect=Dialect.KUBERNETES,
        severity=Severity.MEDIUM,
        kind=RuleKind.REQUIRED_KEY_MISSING,
        match="resources.limits",
        context=CONTAINER,
        message="Container has no resource limits",
        fix="Set 'resources.limits.cpu' and 'resources.limits.memory' to bound resource usage.",
        compliance={"NSA-Kubernetes": "resource-policies"},
    ),
    Rule(
        id="K8S008",
        dialect=Dialect.KUBERNETES,
        severity=Severity.LOW,
        kind=RuleKind.REQUIRED_KEY_MISSING,
        match="securityContext.readOnlyRootFilesystem",
        value=r"^true$",
        context=CONTAINER,
        message="Container root filesystem is writable",
        fix="Set 'securityContext.readOnlyRootFilesystem: true' and mount emptyDir volumes for scratch space.",
        compliance={"NSA-Kubernetes": "immutable-filesystem"},
    ),
    Rule(
        id="K8S009",
        dialect=Dialect.KUBERNETES,
        severity=Severity.LOW,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*(-\s*)?image:\s*[\"']?[^\s\"'#]+:latest\b",
        message="Image uses the mutable 'latest' tag",
        fix="Pin the image to a version tag or digest and set imagePullPolicy accordingly.",
    ),
    Rule(
        id="K8S010",
        dialect=Dialect.KUBERNETES,
        severity=Severity.MEDIUM,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*(-\s*)?hostPath:",
        context="**.volumes",
        message="Pod mounts a hostPath volume",
        fix="Use persistent volumes, configMaps or emptyDir instead of host paths.",
        compliance={"CIS-Kubernetes": "5.2.12", "PSS": "baseline"},
    ),
    Rule(
        id="K8S011",
        dialect=Dialect.KUBERNETES,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"\b(ALL|SYS_ADMIN|NET_ADMIN|SYS_PTRACE|SYS_MODULE)\b",
        context="**.capabilities.add",
        message="Container adds a dangerous Linux capability",
        fix="Drop ALL capabilities and add back only narrowly scoped ones.",
        compliance={"CIS-Kubernetes": "5.2.9", "PSS": "baseline"},
    ),
    Rule(
        id="K8S012",
        dialect=Dialect.KUBERNETES,
        severity=Severity.LOW,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*automountServiceAccountToken:\s*[\"']?true\b",
        context=POD_SPEC,
        message="Service account token is mounted automatically",
        fix="Set 'automountServiceAccountToken: false' unless the workload calls the Kubernetes API.",
        compliance={"CIS-Kubernetes": "5.1.6"},
    ),
)
