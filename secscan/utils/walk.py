"""Expand input paths into candidate configuration files."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Callable, Generator, Iterable

logger = logging.getLogger(__name__)

SKIP_DIRS = {
    ".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv",
    ".tox", ".eggs", ".mypy_cache", ".pytest_cache", ".terraform", "dist", "build",
}


def glob_match(pattern: str, path: str) -> bool:
    """Match ``path`` against ``pattern`` as a whole path, a path suffix, a basename or a directory."""

    normalized = path.replace(os.sep, "/")
    pattern = pattern.replace(os.sep, "/").rstrip("/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    if pattern.startswith("./"):
        pattern = pattern[2:]
    if normalized == pattern or fnmatch.fnmatchcase(normalized, pattern):
        return True
    if "/" not in pattern and fnmatch.fnmatchcase(normalized.rsplit("/", 1)[-1], pattern):
        return True
    # Relative patterns also match below whatever root the scan started from.
    if fnmatch.fnmatchcase(normalized, "*/" + pattern):
        return True
    return normalized.startswith(pattern + "/") or ("/" + pattern + "/") in normalized


def iter_candidate_files(
    root_paths: Iterable[str],
    is_candidate: Callable[[str], bool],
    excludes: Iterable[str] = (),
) -> Generator[Path, None, None]:
    """Yield candidate files beneath the provided paths, in a stable order.

    Explicitly named files are always yielded, even when their name does not
    look like a configuration file, so the caller can report them.
    """

    exclude_patterns = tuple(excludes)

    def _excluded(path: str) -> bool:
        return any(glob_match(pattern, path) for pattern in exclude_patterns)

    for root in root_paths:
        root_path = Path(root)
        if root_path.is_file():
            if not _excluded(str(root_path)):
                yield root_path
            continue
        if not root_path.exists():
            logger.warning("Path does not exist: %s", root)
            yield root_path
            continue
        for current, dirs, filenames in os.walk(root_path):
            dirs[:] = sorted(
                name
                for name in dirs
                if name not in SKIP_DIRS and not _excluded(os.path.join(current, name))
            )
            for name in sorted(filenames):
                candidate = os.path.join(current, name)
                if not is_candidate(name) or _excluded(candidate):
                    continue
                yield Path(candidate)
