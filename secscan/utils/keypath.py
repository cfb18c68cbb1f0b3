"""Key path patterns used to scope rules to blocks of a document.

A pattern is a dotted string such as ``services.*`` or
``**.containers.*``. ``*`` matches exactly one segment (mapping key or
sequence index), ``**`` matches any number of segments including none, and
any other segment must equal the key (or index) literally.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Sequence, Tuple, Union

Segment = Union[str, int]
KeyPath = Tuple[Segment, ...]


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> Tuple[str, ...]:
    pattern = pattern.strip()
    if not pattern:
        return ()
    segments = tuple(pattern.split("."))
    if any(segment == "" for segment in segments):
        raise ValueError(f"empty segment in key path pattern {pattern!r}")
    return segments


def _segment_matches(expected: str, actual: Segment) -> bool:
    if expected == "*":
        return True
    return expected == str(actual)


def matches(pattern: Sequence[str], path: Sequence[Segment]) -> bool:
    """Return True when ``path`` matches ``pattern`` entirely."""

    if not pattern:
        return not path
    head = pattern[0]
    if head == "**":
        rest = pattern[1:]
        return any(matches(rest, path[index:]) for index in range(len(path) + 1))
    if not path:
        return False
    return _segment_matches(head, path[0]) and matches(pattern[1:], path[1:])


def is_prefix(prefix: Sequence[Segment], path: Sequence[Segment]) -> bool:
    return len(path) >= len(prefix) and tuple(path[: len(prefix)]) == tuple(prefix)


def format_path(path: Sequence[Segment]) -> str:
    return ".".join(f"[{part}]" if isinstance(part, int) else str(part) for part in path)
