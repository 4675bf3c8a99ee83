"""Object connection graph built from the ``Connections`` section."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional

from .exceptions import GraphResolutionError
from .tree import FBXTree

logger = logging.getLogger(__name__)


class Connection(NamedTuple):
    """Raw ``(from, to, relationship)`` triple; ``from`` is a child of ``to``."""

    from_id: int
    to_id: int
    relationship: Optional[str] = None


class Edge(NamedTuple):
    id: int
    relationship: Optional[str] = None


@dataclass
class ConnectionEntry:
    parents: List[Edge] = field(default_factory=list)
    children: List[Edge] = field(default_factory=list)


class ConnectionGraph:
    """Bidirectional adjacency keyed by object ID."""

    def __init__(self) -> None:
        self._entries: Dict[int, ConnectionEntry] = {}

    def add(self, connection: Connection) -> None:
        from_id, to_id, relationship = connection
        self._entries.setdefault(from_id, ConnectionEntry()).parents.append(Edge(to_id, relationship))
        self._entries.setdefault(to_id, ConnectionEntry()).children.append(Edge(from_id, relationship))

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def get(self, object_id: int) -> ConnectionEntry:
        """Return the entry for ``object_id``; unknown IDs get an empty entry."""

        entry = self._entries.get(object_id)
        return entry if entry is not None else ConnectionEntry()

    def require(self, object_id: int) -> ConnectionEntry:
        """Return the entry for an ID that was itself read from the graph."""

        entry = self._entries.get(object_id)
        if entry is None:
            raise GraphResolutionError(f"Object {object_id} is missing from the connection graph")
        return entry

    def parents(self, object_id: int) -> List[Edge]:
        return self.get(object_id).parents

    def children(self, object_id: int) -> List[Edge]:
        return self.get(object_id).children


def iter_raw_connections(tree: FBXTree) -> Iterator[Connection]:
    section = tree.section("Connections")
    if section is None:
        return
    for record in section.get_all("C"):
        # record.properties: connection type ("OO", "OP", ...), from, to[, property label]
        props = record.properties
        if len(props) < 3:
            logger.warning("Skipping short connection record %r", props)
            continue
        relationship = props[3] if len(props) > 3 else None
        yield Connection(int(props[1]), int(props[2]), relationship)


def build_connection_graph(connections: Iterable[Connection]) -> ConnectionGraph:
    graph = ConnectionGraph()
    for connection in connections:
        graph.add(connection)
    return graph


def parse_connections(tree: FBXTree) -> ConnectionGraph:
    graph = build_connection_graph(iter_raw_connections(tree))
    logger.debug("Connection graph holds %d objects", len(graph))
    return graph
