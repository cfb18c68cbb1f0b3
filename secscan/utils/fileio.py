"""Basic file IO helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def read_yaml_file(path: Path) -> Any:
    """Return the parsed YAML if the file exists, otherwise ``None``.

    Settings, ignore and rule files are plain data, so custom tags are
    rejected by the safe loader.
    """

    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def read_bytes_limited(path: Path, limit: int) -> bytes:
    """Read at most ``limit + 1`` bytes so callers can detect oversize files."""

    with path.open("rb") as handle:
        return handle.read(limit + 1)
