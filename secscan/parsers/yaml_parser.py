"""YAML parsing into line-indexed nodes for Compose, Kubernetes and generic files."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence, Tuple

import yaml

from ..document import Diagnostic, Dialect, Document, Node
from ..utils.keypath import KeyPath, format_path

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = re.compile(r"^(---|\.\.\.)(\s|$)")
TOP_LEVEL_KEY = re.compile(r"^[^\s#\-][^#]*:(\s|$)")
MERGE_TAG = "tag:yaml.org,2002:merge"
MAX_DEPTH = 64
# Aliases are expanded on every reference; this caps nodes per file.
MAX_NODES = 50_000


class _NodeLimitExceeded(Exception):
    pass


def split_documents(lines: Sequence[str]) -> List[Tuple[int, List[str]]]:
    """Split a multi-document stream, returning ``(first_line_index, lines)`` chunks."""

    chunks: List[Tuple[int, List[str]]] = []
    start = 0
    current: List[str] = []
    for index, line in enumerate(lines):
        if DOCUMENT_SEPARATOR.match(line):
            if any(text.strip() for text in current):
                chunks.append((start, current))
            start = index + 1
            current = []
            continue
        current.append(line)
    if any(text.strip() for text in current):
        chunks.append((start, current))
    return chunks


def _key_name(key_node: yaml.Node) -> str:
    if isinstance(key_node, yaml.ScalarNode):
        return str(key_node.value)
    return "?"


class _NodeCollector:
    def __init__(self, lines: Sequence[str], doc_index: int, limit: int = MAX_NODES) -> None:
        self._lines = lines
        self._doc_index = doc_index
        self._limit = limit
        self.nodes: List[Node] = []

    def _raw(self, first: int, last: int) -> str:
        return "\n".join(self._lines[first - 1 : last])

    def _end_line(self, node: yaml.Node, offset: int) -> int:
        """Return the 1-based last line holding content of ``node``."""

        mark = node.end_mark
        start = node.start_mark.line + offset + 1
        index = mark.line + offset
        end = index + 1
        if index < len(self._lines) and not self._lines[index][: mark.column].strip():
            # Block collections end at the next token, at the start of a later line.
            end = index
        end = min(end, len(self._lines))
        while end > start and (not self._lines[end - 1].strip() or self._lines[end - 1].lstrip().startswith("#")):
            end -= 1
        return max(start, end)

    def _emit(self, key_path: KeyPath, anchor: yaml.Node, value: yaml.Node, offset: int) -> None:
        if len(self.nodes) >= self._limit:
            raise _NodeLimitExceeded()
        line = anchor.start_mark.line + offset + 1
        end = max(line, self._end_line(value, offset))
        if isinstance(value, yaml.ScalarNode) or getattr(value, "flow_style", False):
            raw_last = end
        else:
            raw_last = line
        scalar = value.value if isinstance(value, yaml.ScalarNode) else None
        self.nodes.append(
            Node(
                line=line,
                key_path=key_path,
                raw=self._raw(line, raw_last),
                value=scalar,
                end_line=end,
                doc_index=self._doc_index,
            )
        )

    def walk(self, node: yaml.Node, path: KeyPath, offset: int, depth: int = 0) -> None:
        if depth > MAX_DEPTH:
            logger.debug("Nesting deeper than %d levels ignored at %s", MAX_DEPTH, format_path(path))
            return
        if isinstance(node, yaml.MappingNode):
            for key_node, value_node in node.value:
                if key_node.tag == MERGE_TAG or _key_name(key_node) == "<<":
                    # Merged anchors contribute their keys to this mapping.
                    merged = value_node.value if isinstance(value_node, yaml.SequenceNode) else [value_node]
                    for item in merged:
                        self.walk(item, path, offset, depth + 1)
                    continue
                child = path + (_key_name(key_node),)
                self._emit(child, key_node, value_node, offset)
                self.walk(value_node, child, offset, depth + 1)
        elif isinstance(node, yaml.SequenceNode):
            for index, item in enumerate(node.value):
                child = path + (index,)
                self._emit(child, item, item, offset)
                self.walk(item, child, offset, depth + 1)


def _unparsed(lines: Sequence[str], first_index: int, doc_index: int) -> List[Node]:
    nodes = []
    for index, text in enumerate(lines):
        if not text.strip():
            continue
        line = first_index + index + 1
        nodes.append(Node(line=line, key_path=(), raw=text, end_line=line, doc_index=doc_index, parsed=False))
    return nodes


def _top_level_blocks(chunk: Sequence[str]) -> List[Tuple[int, List[str]]]:
    blocks: List[Tuple[int, List[str]]] = []
    for index, line in enumerate(chunk):
        if TOP_LEVEL_KEY.match(line) or not blocks:
            blocks.append((index, [line]))
        else:
            blocks[-1][1].append(line)
    return blocks


def _compose(text: str) -> Optional[yaml.Node]:
    return yaml.compose(text, Loader=yaml.SafeLoader)


def _error_line(exc: Exception, offset: int) -> Optional[int]:
    mark = getattr(exc, "problem_mark", None) or getattr(exc, "context_mark", None)
    if mark is None:
        return None
    return mark.line + offset + 1


def parse_yaml(text: str, path: str, dialect: Optional[Dialect] = None) -> Document:
    """Parse YAML ``text`` into a :class:`Document`.

    Each ``---`` separated document is composed on its own. When a document
    fails to parse it is retried one top-level key at a time so a single bad
    block only degrades its own lines to unparsed nodes.
    """

    lines = text.splitlines()
    nodes: List[Node] = []
    diagnostics: List[Diagnostic] = []
    kubernetes_docs = 0

    for doc_index, (first, chunk) in enumerate(split_documents(lines)):
        collector = _NodeCollector(lines, doc_index, MAX_NODES - len(nodes))
        try:
            root = _compose("\n".join(chunk))
            if root is not None:
                collector.walk(root, (), first)
        except _NodeLimitExceeded:
            logger.debug("YAML document %d in %s exceeds %d nodes", doc_index, path, MAX_NODES)
            diagnostics.append(
                Diagnostic(
                    file=path,
                    kind="parse",
                    message=f"too many nodes: document expands beyond {MAX_NODES} nodes",
                    line=first + 1,
                )
            )
            nodes.extend(_unparsed(chunk, first, doc_index))
            continue
        except (yaml.YAMLError, RecursionError) as exc:
            logger.debug("YAML document %d in %s failed to parse: %s", doc_index, path, exc)
            if isinstance(exc, RecursionError):
                message = "invalid YAML: nesting too deep"
            else:
                message = f"invalid YAML: {getattr(exc, 'problem', None) or exc}"
            diagnostics.append(Diagnostic(file=path, kind="parse", message=message, line=_error_line(exc, first)))
        else:
            nodes.extend(collector.nodes)
            if _is_kubernetes_root(root):
                kubernetes_docs += 1
            continue

        top_keys = set()
        for block_start, block in _top_level_blocks(chunk):
            block_offset = first + block_start
            block_collector = _NodeCollector(lines, doc_index, MAX_NODES - len(nodes))
            try:
                root = _compose("\n".join(block))
                if root is not None:
                    block_collector.walk(root, (), block_offset)
            except (yaml.YAMLError, RecursionError, _NodeLimitExceeded):
                nodes.extend(_unparsed(block, block_offset, doc_index))
                continue
            if isinstance(root, yaml.MappingNode):
                top_keys.update(_key_name(key) for key, _ in root.value)
            nodes.extend(block_collector.nodes)
        if {"apiVersion", "kind"} <= top_keys:
            kubernetes_docs += 1

    if dialect is None:
        dialect = Dialect.KUBERNETES if kubernetes_docs else Dialect.GENERIC
    return Document(
        path=path,
        dialect=dialect,
        nodes=tuple(nodes),
        lines=tuple(lines),
        diagnostics=tuple(diagnostics),
    )


def _is_kubernetes_root(root: Optional[yaml.Node]) -> bool:
    if not isinstance(root, yaml.MappingNode):
        return False
    keys = {_key_name(key) for key, _ in root.value}
    return {"apiVersion", "kind"} <= keys
