"""Generic attributed tree shared by the binary and ASCII decoders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional


@dataclass
class FBXNode:
    """One record of the decoded file.

    ``properties`` holds the raw values in file order. Children are grouped by
    tag; siblings sharing a tag keep their relative order inside one list.
    """

    name: str
    properties: List[Any] = field(default_factory=list)
    children: Dict[str, List["FBXNode"]] = field(default_factory=dict)

    def add_child(self, node: "FBXNode") -> "FBXNode":
        self.children.setdefault(node.name, []).append(node)
        return node

    def first(self, name: str) -> Optional["FBXNode"]:
        nodes = self.children.get(name)
        return nodes[0] if nodes else None

    def get_all(self, name: str) -> List["FBXNode"]:
        return self.children.get(name, [])

    def iter_children(self) -> Iterator["FBXNode"]:
        for nodes in self.children.values():
            yield from nodes

    def walk(self) -> Iterator["FBXNode"]:
        yield self
        for child in self.iter_children():
            yield from child.walk()

    @property
    def value(self) -> Any:
        """First property, or ``None`` for property-less nodes."""

        return self.properties[0] if self.properties else None


@dataclass
class FBXTree:
    """Result of a decoder run."""

    root: FBXNode
    version: int
    kind: str

    def section(self, name: str) -> Optional[FBXNode]:
        return self.root.first(name)

    def __contains__(self, name: str) -> bool:
        return name in self.root.children
