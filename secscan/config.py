"""Scan configuration and the optional project settings file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import ConfigError
from .parsers import DEFAULT_MAX_FILE_BYTES
from .matcher import DEFAULT_MAX_LINE_LENGTH
from .rules import RuleRegistry
from .severity import Severity
from .suppression import DEFAULT_IGNORE_FILE, SuppressionEntry
from .utils.fileio import read_yaml_file

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".security-scan.yml"
DEFAULT_FORMAT = "text"
REPORT_FORMATS = ("text", "json", "markdown", "sarif")


@dataclass(frozen=True)
class ScanConfig:
    """Immutable inputs shared read-only by every file scan."""

    registry: RuleRegistry
    suppressions: Tuple[SuppressionEntry, ...] = ()
    min_severity: Severity = Severity.LOW
    excludes: Tuple[str, ...] = ()
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH
    workers: Optional[int] = None
    deadline: Optional[float] = None


@dataclass
class ProjectSettings:
    """Values read from ``.security-scan.yml``; ``None`` means not set."""

    min_severity: Optional[Severity] = None
    format: Optional[str] = None
    ignore_file: Optional[str] = None
    exclude: Tuple[str, ...] = ()
    workers: Optional[int] = None
    max_file_bytes: Optional[int] = None
    rules: Tuple[str, ...] = ()
    source: Optional[Path] = field(default=None, repr=False)


def _as_tuple(value: Any, key: str, path: Path) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise ConfigError(f"{path}: '{key}' must be a string or a list of strings")


def _as_positive_int(value: Any, key: str, path: Path) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{path}: '{key}' must be a positive integer")
    return value


def load_project_settings(path: Path, required: bool = False) -> ProjectSettings:
    """Read project settings; a missing optional file yields defaults."""

    path = Path(path)
    if not path.exists():
        if required:
            raise ConfigError(f"{path}: configuration file not found")
        return ProjectSettings()
    try:
        data = read_yaml_file(path)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"{path}: cannot parse configuration: {exc}") from None
    if data is None:
        return ProjectSettings(source=path)
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: configuration must be a mapping")

    known = {"min_severity", "format", "ignore_file", "exclude", "workers", "max_file_bytes", "rules"}
    unknown = set(data) - known
    if unknown:
        logger.warning("Ignoring unknown configuration keys in %s: %s", path, ", ".join(sorted(unknown)))

    settings: Dict[str, Any] = {"source": path}
    if data.get("min_severity") is not None:
        try:
            settings["min_severity"] = Severity.parse(data["min_severity"])
        except ValueError as exc:
            raise ConfigError(f"{path}: {exc}") from None
    if data.get("format") is not None:
        report_format = str(data["format"]).lower()
        if report_format not in REPORT_FORMATS:
            raise ConfigError(f"{path}: format must be one of {', '.join(REPORT_FORMATS)}")
        settings["format"] = report_format
    if data.get("ignore_file") is not None:
        settings["ignore_file"] = str(data["ignore_file"])
    settings["exclude"] = _as_tuple(data.get("exclude"), "exclude", path)
    settings["rules"] = _as_tuple(data.get("rules"), "rules", path)
    settings["workers"] = _as_positive_int(data.get("workers"), "workers", path)
    settings["max_file_bytes"] = _as_positive_int(data.get("max_file_bytes"), "max_file_bytes", path)
    logger.info("Loaded project settings from %s", path)
    return ProjectSettings(**settings)


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_FORMAT",
    "DEFAULT_IGNORE_FILE",
    "REPORT_FORMATS",
    "ProjectSettings",
    "ScanConfig",
    "load_project_settings",
]
