"""Line-oriented Terraform (HCL) parser.

This is not a full HCL implementation. It tracks block nesting and attribute
assignments closely enough to give every line a key path such as
``resource.aws_security_group.web.ingress.0.cidr_blocks``. Lines it cannot
place are kept as unparsed nodes so secret patterns still see them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..document import Diagnostic, Dialect, Document, Node
from ..utils.keypath import KeyPath

logger = logging.getLogger(__name__)

STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"')
LINE_COMMENT = re.compile(r"(#|//).*$")
BLOCK_HEADER = re.compile(r'^\s*([A-Za-z_][\w-]*)((?:\s+(?:"[^"]*"|[A-Za-z_][\w-]*))*)\s*\{\s*(.*?)\s*$')
ATTRIBUTE = re.compile(r'^\s*"?([A-Za-z_][\w.-]*)"?\s*=\s*(.*?)\s*$')
HEREDOC = re.compile(r"<<-?\s*([A-Za-z_]\w*)\s*$")
LABEL = re.compile(r'"([^"]*)"|([A-Za-z_][\w-]*)')

OPENERS = "[{("
CLOSERS = "]})"


def _strip_code(text: str) -> str:
    """Remove string literals and trailing comments before counting brackets."""

    without_strings = STRING_LITERAL.sub('""', text)
    return LINE_COMMENT.sub("", without_strings)


def _depth_delta(text: str) -> int:
    code = _strip_code(text)
    return sum(code.count(ch) for ch in OPENERS) - sum(code.count(ch) for ch in CLOSERS)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


@dataclass
class _Pending:
    line: int
    key_path: KeyPath
    value: Optional[str] = None
    end_line: int = 0
    parsed: bool = True
    is_block: bool = False


@dataclass
class _Block:
    node: _Pending
    sibling_counts: Dict[str, int] = field(default_factory=dict)


class _HclReader:
    def __init__(self, lines: List[str], path: str) -> None:
        self.lines = lines
        self.path = path
        self.pending: List[_Pending] = []
        self.diagnostics: List[Diagnostic] = []
        self.stack: List[_Block] = []
        self.top_counts: Dict[str, int] = {}

    def _diagnose(self, line: int, message: str) -> None:
        logger.debug("%s:%d: %s", self.path, line, message)
        self.diagnostics.append(Diagnostic(file=self.path, kind="parse", message=message, line=line))

    def _parent_path(self) -> KeyPath:
        return self.stack[-1].node.key_path if self.stack else ()

    def _block_path(self, name: str, labels: List[str]) -> KeyPath:
        counts = self.stack[-1].sibling_counts if self.stack else self.top_counts
        path = self._parent_path() + (name,) + tuple(labels)
        if labels and not self.stack:
            return path
        key = "/".join((name,) + tuple(labels))
        index = counts.get(key, 0)
        counts[key] = index + 1
        return path + (index,)

    def read(self) -> None:
        index = 0
        in_comment_block = False
        while index < len(self.lines):
            line_no = index + 1
            text = self.lines[index]
            stripped = text.strip()

            if in_comment_block:
                if "*/" in stripped:
                    in_comment_block = False
                index += 1
                continue
            if stripped.startswith("/*"):
                in_comment_block = "*/" not in stripped
                index += 1
                continue
            if not stripped or stripped.startswith("#") or stripped.startswith("//"):
                index += 1
                continue

            if stripped.startswith("}"):
                self._close(line_no)
                index += 1
                continue

            attribute = ATTRIBUTE.match(text)
            if attribute:
                index = self._read_attribute(index, attribute.group(1), attribute.group(2))
                continue

            header = BLOCK_HEADER.match(text)
            if header:
                self._open(line_no, header.group(1), header.group(2), header.group(3))
                index += 1
                continue

            self._diagnose(line_no, f"unrecognised HCL syntax: {stripped[:60]}")
            self.pending.append(_Pending(line=line_no, key_path=(), end_line=line_no, parsed=False))
            index += 1

        last = len(self.lines)
        while self.stack:
            block = self.stack.pop()
            block.node.end_line = last
            self._diagnose(block.node.line, "unclosed block")

    def _open(self, line_no: int, name: str, raw_labels: str, rest: str) -> None:
        labels = [quoted or bare for quoted, bare in LABEL.findall(raw_labels)]
        node = _Pending(line=line_no, key_path=self._block_path(name, labels), end_line=line_no, is_block=True)
        self.pending.append(node)
        inner = rest.rstrip()
        if inner.endswith("}") and _depth_delta(inner) < 0:
            # Single-line block: ``ingress { from_port = 0 }``.
            body = inner[:-1].strip()
            attribute = ATTRIBUTE.match(body) if body else None
            if attribute:
                self.pending.append(
                    _Pending(
                        line=line_no,
                        key_path=node.key_path + (attribute.group(1),),
                        value=_unquote(attribute.group(2)),
                        end_line=line_no,
                    )
                )
            return
        self.stack.append(_Block(node=node))

    def _close(self, line_no: int) -> None:
        if not self.stack:
            self._diagnose(line_no, "unbalanced closing brace")
            self.pending.append(_Pending(line=line_no, key_path=(), end_line=line_no, parsed=False))
            return
        block = self.stack.pop()
        block.node.end_line = line_no

    def _read_attribute(self, index: int, name: str, value: str) -> int:
        line_no = index + 1
        key_path = self._parent_path() + (name,)
        node = _Pending(line=line_no, key_path=key_path, value=_unquote(value), end_line=line_no)
        self.pending.append(node)

        heredoc = HEREDOC.search(value)
        if heredoc:
            marker = heredoc.group(1)
            cursor = index + 1
            while cursor < len(self.lines) and self.lines[cursor].strip() != marker:
                cursor += 1
            if cursor >= len(self.lines):
                self._diagnose(line_no, f"unterminated heredoc {marker}")
                cursor = len(self.lines) - 1
            node.end_line = cursor + 1
            node.value = None
            return cursor + 1

        depth = _depth_delta(value)
        cursor = index
        while depth > 0 and cursor + 1 < len(self.lines):
            cursor += 1
            depth += _depth_delta(self.lines[cursor])
        if depth > 0:
            self._diagnose(line_no, f"unterminated expression for {name}")
        if cursor > index:
            node.end_line = cursor + 1
            node.value = None
        return cursor + 1

    def nodes(self) -> Tuple[Node, ...]:
        built = []
        for item in self.pending:
            end = max(item.line, item.end_line)
            # Blocks own only their header line; attributes own their full extent.
            raw_last = item.line if item.is_block else end
            built.append(
                Node(
                    line=item.line,
                    key_path=item.key_path,
                    raw="\n".join(self.lines[item.line - 1 : raw_last]),
                    value=item.value,
                    end_line=end,
                    parsed=item.parsed,
                )
            )
        return tuple(built)


def parse_hcl(text: str, path: str) -> Document:
    """Parse Terraform source or a ``.tfvars`` file into a :class:`Document`."""

    lines = text.splitlines()
    reader = _HclReader(lines, path)
    reader.read()
    return Document(
        path=path,
        dialect=Dialect.TERRAFORM,
        nodes=reader.nodes(),
        lines=tuple(lines),
        diagnostics=tuple(reader.diagnostics),
    )
