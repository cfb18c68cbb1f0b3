"""Dialect detection and parser dispatch."""

from __future__ import annotations

import fnmatch
from typing import Optional

from ..document import Dialect, Document
from ..errors import ParseError
from .dotenv import parse_dotenv
from .hcl import parse_hcl
from .yaml_parser import parse_yaml

DEFAULT_MAX_FILE_BYTES = 1_048_576

COMPOSE_PATTERNS = ("docker-compose*.yml", "docker-compose*.yaml", "compose*.yml", "compose*.yaml")
TERRAFORM_PATTERNS = ("*.tf", "*.tfvars")
YAML_PATTERNS = ("*.yml", "*.yaml")
ENV_PATTERNS = (".env", ".env.*", "*.env")


def _matches_any(name: str, patterns) -> bool:
    lowered = name.lower()
    return any(fnmatch.fnmatchcase(lowered, pattern) for pattern in patterns)


def dialect_for_filename(filename: str) -> Optional[str]:
    """Return the parser family for ``filename``: compose, terraform, yaml, env or None."""

    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    if _matches_any(name, COMPOSE_PATTERNS):
        return "compose"
    if _matches_any(name, TERRAFORM_PATTERNS):
        return "terraform"
    if _matches_any(name, YAML_PATTERNS):
        return "yaml"
    if _matches_any(name, ENV_PATTERNS):
        return "env"
    return None


def is_candidate(filename: str) -> bool:
    return dialect_for_filename(filename) is not None


def decode(raw: bytes, filename: str, max_bytes: int = DEFAULT_MAX_FILE_BYTES) -> str:
    if len(raw) > max_bytes:
        raise ParseError(filename, f"file exceeds {max_bytes} bytes, skipped")
    if b"\x00" in raw:
        raise ParseError(filename, "binary content, skipped")
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(filename, f"not valid UTF-8 ({exc.reason} at byte {exc.start})") from None
    return text.lstrip("\ufeff")


def parse(raw: bytes, filename: str, max_bytes: int = DEFAULT_MAX_FILE_BYTES) -> Document:
    """Parse ``raw`` into a :class:`Document` using the dialect implied by ``filename``.

    Malformed regions are reported as document diagnostics. ``ParseError`` is
    raised only when the file as a whole cannot be read as text.
    """

    family = dialect_for_filename(filename)
    if family is None:
        raise ParseError(filename, "unsupported file type")
    text = decode(raw, filename, max_bytes)
    if family == "compose":
        return parse_yaml(text, filename, Dialect.COMPOSE)
    if family == "terraform":
        return parse_hcl(text, filename)
    if family == "env":
        return parse_dotenv(text, filename)
    return parse_yaml(text, filename)


__all__ = [
    "DEFAULT_MAX_FILE_BYTES",
    "decode",
    "dialect_for_filename",
    "is_candidate",
    "parse",
    "parse_dotenv",
    "parse_hcl",
    "parse_yaml",
]
