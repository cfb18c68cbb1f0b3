"""Parser for ``.env`` style ``KEY=VALUE`` files."""

from __future__ import annotations

import re
from typing import List

from ..document import Diagnostic, Dialect, Document, Node

ASSIGNMENT = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_.-]*)\s*=\s*(.*?)\s*$")


def parse_dotenv(text: str, path: str) -> Document:
    lines = text.splitlines()
    nodes: List[Node] = []
    diagnostics: List[Diagnostic] = []
    for index, line in enumerate(lines):
        line_no = index + 1
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = ASSIGNMENT.match(line)
        if match is None:
            diagnostics.append(
                Diagnostic(file=path, kind="parse", message="line is not a KEY=VALUE assignment", line=line_no)
            )
            nodes.append(Node(line=line_no, key_path=(), raw=line, end_line=line_no, parsed=False))
            continue
        value = match.group(2)
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        nodes.append(Node(line=line_no, key_path=(match.group(1),), raw=line, value=value, end_line=line_no))
    return Document(
        path=path,
        dialect=Dialect.GENERIC,
        nodes=tuple(nodes),
        lines=tuple(lines),
        diagnostics=tuple(diagnostics),
    )
