"""Parsed document model shared by the parsers and the matcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from .utils.keypath import KeyPath, compile_pattern, is_prefix, matches


class Dialect(str, Enum):
    """Configuration file families understood by the scanner."""

    COMPOSE = "compose"
    KUBERNETES = "kubernetes"
    TERRAFORM = "terraform"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: str) -> "Dialect":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown dialect: {value!r}") from None


@dataclass(frozen=True)
class Node:
    """One located element of a document.

    ``line``/``end_line`` are 1-based and inclusive. Unparsed nodes carry the
    raw text of a region the parser could not understand; they have an empty
    key path and only take part in pattern matching.
    """

    line: int
    key_path: KeyPath
    raw: str
    value: Optional[str] = None
    end_line: int = 0
    doc_index: int = 0
    parsed: bool = True

    @property
    def last_line(self) -> int:
        return max(self.line, self.end_line)

    def physical_lines(self) -> Iterator[Tuple[int, str]]:
        for offset, text in enumerate(self.raw.splitlines() or [""]):
            yield self.line + offset, text


@dataclass(frozen=True)
class Diagnostic:
    """Informational problem attached to a file, never a finding."""

    file: str
    kind: str
    message: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {"file": self.file, "kind": self.kind, "message": self.message}
        if self.line is not None:
            data["line"] = self.line
        return data


@dataclass(frozen=True)
class Document:
    """A parsed file: ordered nodes plus the physical source lines."""

    path: str
    dialect: Dialect
    nodes: Tuple[Node, ...]
    lines: Tuple[str, ...]
    diagnostics: Tuple[Diagnostic, ...] = field(default_factory=tuple)

    def line_text(self, line: int) -> str:
        if 1 <= line <= len(self.lines):
            return self.lines[line - 1]
        return ""

    def find(self, pattern: str) -> Iterator[Node]:
        """Yield parsed nodes whose key path matches ``pattern``."""

        compiled = compile_pattern(pattern)
        for node in self.nodes:
            if node.parsed and matches(compiled, node.key_path):
                yield node

    def subtree(self, root: Node) -> Iterator[Node]:
        """Yield ``root`` and every parsed node nested beneath it."""

        for node in self.nodes:
            if node.parsed and node.doc_index == root.doc_index and is_prefix(root.key_path, node.key_path):
                yield node

    def block_lines(self, root: Node) -> Iterator[Tuple[int, str]]:
        """Yield the physical lines covered by ``root`` and its subtree."""

        last = root.last_line
        for node in self.subtree(root):
            last = max(last, node.last_line)
        for line in range(root.line, last + 1):
            yield line, self.line_text(line)
