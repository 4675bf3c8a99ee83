"""ASCII FBX decoder.

The grammar has no nested expressions, so the decoder is driven line by line
with a stack of open nodes:

    Name: prop, prop, ... {      opens a node
    Name: prop, prop, ...        leaf node
    }                            closes the innermost node

Array nodes (``Vertices: *12 { a: ... }``) are folded into a single array
property so the result matches the binary decoder node for node.
"""

from __future__ import annotations

import logging
import re
from typing import Any, List, Optional

import numpy as np

from .exceptions import TextParseError
from .tree import FBXNode, FBXTree

logger = logging.getLogger(__name__)

_ENTRY_RE = re.compile(r"^(\w+)\s*:(.*)$")
_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$")
_SPECIAL_FLOATS = {"nan", "-nan", "inf", "+inf", "-inf"}

_TRUE_TOKENS = ("T", "Y")
_FALSE_TOKENS = ("F", "N")
_BARE_WORD_RE = re.compile(r"^[A-Za-z_]\w*$")


def split_values(text: str) -> List[str]:
    """Split a comma separated property list, keeping quoted commas intact."""

    values: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == "," and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    if in_quotes:
        raise ValueError("unterminated string literal")
    values.append("".join(current).strip())
    return [value for value in values if value]


def parse_literal(token: str) -> Any:
    if token.startswith('"'):
        if len(token) < 2 or not token.endswith('"'):
            raise ValueError(f"malformed string literal {token!r}")
        return token[1:-1]
    if _INT_RE.match(token):
        return int(token)
    if _FLOAT_RE.match(token) or token.lower() in _SPECIAL_FLOATS:
        return float(token)
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    if _BARE_WORD_RE.match(token):
        return token
    raise ValueError(f"unparsable property literal {token!r}")


def _to_array(values: List[Any]) -> np.ndarray:
    if all(isinstance(value, int) and not isinstance(value, bool) for value in values):
        return np.array(values, dtype=np.int64)
    return np.array(values, dtype=np.float64)


class _Pending:
    """A leaf whose value list continues on the following line(s)."""

    def __init__(self, node: FBXNode, text: str, line: int, array_owner: Optional[FBXNode]) -> None:
        self.node = node
        self.text = text
        self.line = line
        self.array_owner = array_owner


class TextParser:
    def __init__(self, text: str) -> None:
        self._lines = text.splitlines()
        self._root = FBXNode(name="")
        self._stack: List[FBXNode] = [self._root]
        self._array_nodes: set = set()
        self._pending: Optional[_Pending] = None

    def parse(self, version: int = 0) -> FBXTree:
        line_no = 0
        for line_no, raw in enumerate(self._lines, start=1):
            line = raw.strip()
            if not line or line.startswith(";"):
                continue

            if self._pending is not None and line != "}":
                self._pending.text += line
                if not line.endswith(","):
                    self._finish_pending()
                continue

            if line == "}":
                self._finish_pending()
                self._close(line_no)
                continue

            match = _ENTRY_RE.match(line)
            if match is None:
                raise TextParseError(f"Unrecognised line {line!r}", line_no)
            name, rest = match.group(1), match.group(2).strip()

            if rest.endswith("{"):
                self._open(name, rest[:-1].strip(), line_no)
            else:
                self._leaf(name, rest, line_no)

        self._finish_pending()
        if len(self._stack) > 1:
            raise TextParseError(
                f"Unbalanced braces: {len(self._stack) - 1} node(s) left open", line_no
            )
        return FBXTree(root=self._root, version=version, kind="ascii")

    @property
    def _current(self) -> FBXNode:
        return self._stack[-1]

    def _open(self, name: str, header: str, line_no: int) -> None:
        node = FBXNode(name=name)
        if header.startswith("*"):
            self._array_nodes.add(id(node))
        else:
            node.properties = self._literals(header, line_no)
        self._current.add_child(node)
        self._stack.append(node)

    def _close(self, line_no: int) -> None:
        if len(self._stack) == 1:
            raise TextParseError("Unbalanced braces: unexpected '}'", line_no)
        node = self._stack.pop()
        if id(node) in self._array_nodes:
            self._array_nodes.discard(id(node))
            if not node.properties:
                node.properties = [np.array([], dtype=np.float64)]

    def _leaf(self, name: str, rest: str, line_no: int) -> None:
        owner = self._current if name == "a" and id(self._current) in self._array_nodes else None
        node = FBXNode(name=name)
        if owner is None:
            self._current.add_child(node)
        self._pending = _Pending(node, rest, line_no, owner)
        if not rest.endswith(","):
            self._finish_pending()

    def _finish_pending(self) -> None:
        pending = self._pending
        if pending is None:
            return
        self._pending = None
        values = self._literals(pending.text, pending.line)
        if pending.array_owner is not None:
            pending.array_owner.properties = [_to_array(values)]
        else:
            pending.node.properties = values

    @staticmethod
    def _literals(text: str, line_no: int) -> List[Any]:
        try:
            return [parse_literal(token) for token in split_values(text)]
        except ValueError as exc:
            raise TextParseError(str(exc), line_no) from exc


def parse_text(text: str, version: int = 0) -> FBXTree:
    tree = TextParser(text).parse(version)
    logger.debug("Decoded %d top-level ASCII sections", len(tree.root.children))
    return tree
