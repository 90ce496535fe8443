################################################################@
"""
Topology model.

Every Edge is ONE unidirectional output link: (A, B) and (B, A) are two
distinct edges. For two-way independent communication (e.g. switched
Ethernet) add the edge twice with swapped nodes.

Each edge owns one server handle per flow priority, indexed by rank. The
handles are created while building the network and dropped on reset.
"""
################################################################@

from enum import Enum
from typing import Iterable, Iterator

from .errors import UnbuiltEdgeError
from .priorities import FlowPriority


class AdjacencyMode(Enum):
    DIRECTED = "directed"   # Y.first == X.second
    NEIGHBOR = "neighbor"   # Y.first == X.second or Y.second == X.first


# ---------- Edge (output link) ---------- #

class Edge:
    """A unidirectional output link  node_from → node_to.

    Attributes:
      node_from — sending node
      node_to   — receiving node
      bitrate   — link service rate (bytes per second)
      latency   — nominal link delay (seconds)
      servers   — engine server handles, index = priority rank
    """

    def __init__(self, node_from: str, node_to: str,
                 bitrate: float, latency: float = 0.0):
        self.node_from = node_from
        self.node_to = node_to
        self.bitrate = bitrate          # B/s
        self.latency = latency          # s
        self.servers: list = []

    @property
    def nodes(self) -> tuple[str, str]:
        return (self.node_from, self.node_to)

    @property
    def label(self) -> str:
        return f"{self.node_from},{self.node_to}"

    def get_server(self, priority: FlowPriority):
        try:
            return self.servers[priority.rank]
        except IndexError:
            raise UnbuiltEdgeError(
                f"Edge {self.label} has no server for priority {priority} "
                f"(network not built?)") from None

    def set_servers(self, servers: list) -> None:
        """Register the per-priority servers, highest priority first."""
        self.servers = list(servers)

    def reset_servers(self) -> None:
        self.servers = []

    def __repr__(self):
        return (f"Edge({self.node_from!r} → {self.node_to!r}, "
                f"C={self.bitrate:g} B/s, d={self.latency:g} s)")


# ---------- Adjacency ---------- #

def adjacent_edges(edge: Edge, edges: Iterable[Edge],
                   mode: AdjacencyMode = AdjacencyMode.DIRECTED) -> list[Edge]:
    """All edges a turn may lead to from *edge*.

    Two edges are connected if the last node of the first is the first node
    of the second (e.g. R10/R20 & R20/R30). The NEIGHBOR variant also
    accepts the reverse contact (second edge ending where the first starts).
    Edges covering the same node pair (the edge itself or its reversal,
    e.g. R10/R20 & R20/R10) are never adjacent.
    """
    pair = set(edge.nodes)
    result = []
    for other in edges:
        if set(other.nodes) == pair:
            continue
        connected = other.node_from == edge.node_to
        if mode is AdjacencyMode.NEIGHBOR:
            connected = connected or other.node_to == edge.node_from
        if connected:
            result.append(other)
    return result


# ---------- Topology container ---------- #

class Topology:
    """Ordered registry of the declared edges."""

    def __init__(self):
        self.edges: list[Edge] = []

    def add_edge(self, node_from: str, node_to: str,
                 bitrate: float, latency: float = 0.0) -> Edge:
        """Append a new edge. Parallel duplicates are kept as declared."""
        edge = Edge(node_from, node_to, bitrate, latency)
        self.edges.append(edge)
        return edge

    def find_edge(self, node_from: str, node_to: str) -> Edge | None:
        """Return the first edge whose ordered node pair is (node_from, node_to)."""
        for e in self.edges:
            if e.node_from == node_from and e.node_to == node_to:
                return e
        return None

    def turns(self, mode: AdjacencyMode = AdjacencyMode.DIRECTED) -> Iterator[tuple[Edge, Edge]]:
        for edge in self.edges:
            for target in adjacent_edges(edge, self.edges, mode):
                yield edge, target

    def nodes(self) -> list[str]:
        seen: dict[str, None] = {}
        for e in self.edges:
            seen.setdefault(e.node_from)
            seen.setdefault(e.node_to)
        return list(seen)

    def reset_servers(self) -> None:
        for e in self.edges:
            e.reset_servers()

    def clear(self) -> None:
        self.edges.clear()

    def __len__(self) -> int:
        return len(self.edges)

    def __iter__(self) -> Iterator[Edge]:
        return iter(self.edges)
