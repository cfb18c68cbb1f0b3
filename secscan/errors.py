"""Exception hierarchy raised by the scanner."""

from __future__ import annotations


class ScanError(Exception):
    """Base class for all scanner errors."""


class ParseError(ScanError):
    """A file could not be turned into a document at all."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class RuleConfigError(ScanError):
    """The rule set is invalid; the scan must not start."""

    def __init__(self, rule_id: str, message: str) -> None:
        super().__init__(f"rule {rule_id}: {message}")
        self.rule_id = rule_id
        self.message = message


class SuppressionLoadError(ScanError):
    """The ignore file exists but cannot be understood."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class ConfigError(ScanError):
    """The project configuration file is malformed."""
