"""Utilities for traversing reconstructed scene graphs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator, Tuple, Type, TypeVar

if TYPE_CHECKING:  # pragma: no cover
    from ..models import Object3D

T = TypeVar("T")


def iter_nodes(root: "Object3D") -> Iterator["Object3D"]:
    """Yield nodes depth-first starting at `root` (inclusive)."""

    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        for idx in range(len(node.children) - 1, -1, -1):
            stack.append(node.children[idx])


def iter_with_depth(root: "Object3D") -> Iterator[Tuple["Object3D", int]]:
    """Like `iter_nodes`, paired with each node's depth below `root`."""

    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        for idx in range(len(node.children) - 1, -1, -1):
            stack.append((node.children[idx], depth + 1))


def iter_by_type(root: "Object3D", node_type: Type[T]) -> Iterator[T]:
    """Yield nodes that are instances of `node_type`."""

    for node in iter_nodes(root):
        if isinstance(node, node_type):
            yield node


def find_by_name(root: "Object3D", name: str):
    for node in iter_nodes(root):
        if node.name == name:
            return node
    return None
