"""Docker Compose hardening rules."""

from __future__ import annotations

from secscan.document import Dialect
from secscan.severity import Severity

from . import Rule, RuleKind

SERVICE = "services.*"
LOOPBACK_BINDING = r"127\.0\.0\.1:|localhost:|\[::1\]:|host_ip:\s*[\"']?127\.0\.0\.1"

RULES = (
    Rule(
        id="DC001",
        dialect=Dialect.COMPOSE,
        severity=Severity.CRITICAL,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*privileged:\s*[\"']?(true|yes|on)\b",
        message="Container runs in privileged mode with full access to the host",
        fix="Remove 'privileged: true' and grant only the specific capabilities required with cap_add.",
        compliance={"CIS-Docker": "5.4"},
    ),
    Rule(
        id="DC002",
        dialect=Dialect.COMPOSE,
        severity=Severity.CRITICAL,
        kind=RuleKind.PATTERN_PRESENT,
        match=(
            r"^\s*(?:-\s*|ports:\s*\[.*?)[\"']?(?:0\.0\.0\.0:)?\d{1,5}(?:-\d{1,5})?:\d{1,5}"
            r"|^\s*published:\s*[\"']?\d"
        ),
        exclude=LOOPBACK_BINDING,
        context=f"{SERVICE}.ports",
        message="Port is published on all host interfaces",
        fix="Bind to a specific interface, for example '127.0.0.1:8080:8080', or place the service behind a reverse proxy.",
        compliance={"CIS-Docker": "5.13"},
    ),
    Rule(
        id="DC003",
        dialect=Dialect.COMPOSE,
        severity=Severity.CRITICAL,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"/var/run/docker\.sock|/run/docker\.sock",
        message="Docker socket is mounted into a container, granting root on the host",
        fix="Remove the docker.sock mount or use a restricted socket proxy that only exposes read-only endpoints.",
        compliance={"CIS-Docker": "5.31"},
    ),
    Rule(
        id="DC004",
        dialect=Dialect.COMPOSE,
        severity=Severity.MEDIUM,
        kind=RuleKind.REQUIRED_KEY_MISSING,
        match="security_opt",
        context=SERVICE,
        message="Service does not define security_opt",
        fix="Add 'security_opt: [\"no-new-privileges:true\"]' to prevent privilege escalation via setuid binaries.",
        compliance={"CIS-Docker": "5.25"},
    ),
    Rule(
        id="DC005",
        dialect=Dialect.COMPOSE,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*network_mode:\s*[\"']?host\b",
        message="Service shares the host network namespace",
        fix="Use a user-defined bridge network and publish only the ports that are needed.",
        compliance={"CIS-Docker": "5.9"},
    ),
    Rule(
        id="DC006",
        dialect=Dialect.COMPOSE,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"\b(ALL|SYS_ADMIN|NET_ADMIN|SYS_PTRACE|SYS_MODULE|DAC_READ_SEARCH)\b",
        context=f"{SERVICE}.cap_add",
        message="Service adds a dangerous Linux capability",
        fix="Drop all capabilities with 'cap_drop: [ALL]' and add back only narrowly scoped ones such as NET_BIND_SERVICE.",
        compliance={"CIS-Docker": "5.3"},
    ),
    Rule(
        id="DC007",
        dialect=Dialect.COMPOSE,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*(pid|ipc):\s*[\"']?host\b",
        message="Service shares the host PID or IPC namespace",
        fix="Remove 'pid: host' / 'ipc: host' so the container keeps its own namespaces.",
        compliance={"CIS-Docker": "5.15"},
    ),
    Rule(
        id="DC008",
        dialect=Dialect.COMPOSE,
        severity=Severity.HIGH,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"\b(seccomp|apparmor)[:=]\s*unconfined\b",
        message="Seccomp or AppArmor confinement is disabled",
        fix="Remove the unconfined profile and use the default or a custom restrictive profile.",
        compliance={"CIS-Docker": "5.21"},
    ),
    Rule(
        id="DC009",
        dialect=Dialect.COMPOSE,
        severity=Severity.LOW,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*image:\s*[\"']?[^\s\"'#]+:latest\b",
        message="Image uses the mutable 'latest' tag",
        fix="Pin the image to a version tag or an immutable digest (image@sha256:...).",
        compliance={"CIS-Docker": "4.7"},
    ),
    Rule(
        id="DC010",
        dialect=Dialect.COMPOSE,
        severity=Severity.LOW,
        kind=RuleKind.REQUIRED_KEY_MISSING,
        match="read_only",
        value=r"^(true|yes|on)$",
        context=SERVICE,
        message="Service root filesystem is writable",
        fix="Set 'read_only: true' and mount tmpfs or volumes only where writes are required.",
        compliance={"CIS-Docker": "5.12"},
    ),
    Rule(
        id="DC011",
        dialect=Dialect.COMPOSE,
        severity=Severity.LOW,
        kind=RuleKind.REQUIRED_KEY_MISSING,
        match="mem_limit|deploy.resources.limits.memory",
        context=SERVICE,
        message="Service has no memory limit",
        fix="Set 'mem_limit' or 'deploy.resources.limits.memory' so one container cannot exhaust host memory.",
        compliance={"CIS-Docker": "5.10"},
    ),
    Rule(
        id="DC012",
        dialect=Dialect.COMPOSE,
        severity=Severity.MEDIUM,
        kind=RuleKind.PATTERN_PRESENT,
        match=r"^\s*user:\s*[\"']?(root|0)(:\S*)?[\"']?\s*(#.*)?$",
        message="Service explicitly runs as root",
        fix="Run the process as an unprivileged user, for example 'user: \"1000:1000\"'.",
        compliance={"CIS-Docker": "4.1"},
    ),
)
