################################################################@
"""
Analysis-engine contract.

The scheduling and topology layers never compute delay bounds themselves.
They hand servers, turns and flows to a NetworkCalculusEngine and ask it
for the end-to-end delay of one flow of interest.

  - ServerGraph            : in-memory server graph (servers, turns, flows)
  - NetworkCalculusEngine  : abstract engine interface
  - GraphEngine            : structural operations over a ServerGraph
  - AddFlowResult / AnalysisResult : typed per-operation outcomes
"""
################################################################@

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from .curves import ArrivalCurve, ServiceCurve
from .errors import GraphError

logger = logging.getLogger(__name__)


# ---------- Analysis enums ---------- #

class Multiplexing(Enum):
    FIFO = "FIFO"
    ARBITRARY = "ARBITRARY"


class MultiplexingEnforcement(Enum):
    SERVER_LOCAL = "SERVER_LOCAL"
    GLOBAL_ARBITRARY = "GLOBAL_ARBITRARY"
    GLOBAL_FIFO = "GLOBAL_FIFO"


class ArrivalBoundMethod(Enum):
    AGGR_PBOO_PER_SERVER = "AGGR_PBOO_PER_SERVER"
    AGGR_PBOO_CONCATENATION = "AGGR_PBOO_CONCATENATION"
    AGGR_PMOO = "AGGR_PMOO"
    AGGR_TM = "AGGR_TM"
    SEGR_PBOO = "SEGR_PBOO"
    SEGR_PMOO = "SEGR_PMOO"
    SEGR_TM = "SEGR_TM"

    @property
    def requires_arbitrary(self) -> bool:
        """PMOO and tandem-matching bounds only exist for arbitrary multiplexing."""
        return self in (ArrivalBoundMethod.AGGR_PMOO, ArrivalBoundMethod.AGGR_TM,
                        ArrivalBoundMethod.SEGR_PMOO, ArrivalBoundMethod.SEGR_TM)


class AnalysisMethod(Enum):
    TFA = "TFA"     # total flow analysis
    SFA = "SFA"     # separated flow analysis
    PMOO = "PMOO"   # pay multiplexing only once
    TMA = "TMA"     # tandem matching analysis

    @property
    def supports_fifo(self) -> bool:
        return self in (AnalysisMethod.TFA, AnalysisMethod.SFA)


@dataclass
class AnalysisConfig:
    """Per-analysis settings passed to NetworkCalculusEngine.analyze()."""

    arrival_bound_method: ArrivalBoundMethod = ArrivalBoundMethod.AGGR_PBOO_CONCATENATION
    enforcement: MultiplexingEnforcement = MultiplexingEnforcement.SERVER_LOCAL

    def multiplexing_at(self, server: "Server") -> Multiplexing:
        """Multiplexing discipline in effect at *server* under this config."""
        if self.enforcement is MultiplexingEnforcement.GLOBAL_ARBITRARY:
            return Multiplexing.ARBITRARY
        if self.enforcement is MultiplexingEnforcement.GLOBAL_FIFO:
            return Multiplexing.FIFO
        return server.multiplexing


# ---------- Graph entities ---------- #

@dataclass(eq=False)
class Server:
    id: int
    label: str
    curve: ServiceCurve
    multiplexing: Multiplexing = Multiplexing.FIFO

    def __repr__(self):
        return f"Server({self.id}, {self.label!r}, {self.curve!r})"


@dataclass(eq=False)
class Flow:
    id: int
    arrival: ArrivalCurve
    path: tuple[Server, ...]
    alias: str = ""

    def num_servers(self) -> int:
        return len(self.path)

    def __repr__(self):
        alias = f" {self.alias!r}" if self.alias else ""
        return (f"Flow({self.id}{alias}, "
                f"path=[{', '.join(s.label for s in self.path)}])")


class ServerGraph:
    """Servers, directed turns between them and the flows crossing them."""

    def __init__(self):
        self.servers: dict[int, Server] = {}
        self.turns: set[tuple[int, int]] = set()
        self.flows: list[Flow] = []
        self._server_ids = itertools.count()
        self._flow_ids = itertools.count()

    def contains(self, server: Server) -> bool:
        return self.servers.get(server.id) is server

    def flows_at(self, server: Server) -> list[Flow]:
        return [f for f in self.flows if server in f.path]

    def successors(self, server: Server) -> list[Server]:
        return [self.servers[dst] for src, dst in self.turns if src == server.id]

    def __repr__(self):
        return (f"ServerGraph(servers={len(self.servers)}, "
                f"turns={len(self.turns)}, flows={len(self.flows)})")


# ---------- Typed outcomes ---------- #

class FailureReason(Enum):
    MISSING_EDGE = "missing-edge"
    UNBUILT_EDGE = "unbuilt-edge"
    UNSUPPORTED_COMBINATION = "unsupported-combination"
    UNSTABLE = "unstable"
    ENGINE_INTERNAL = "engine-internal"


@dataclass
class AddFlowResult:
    service: str
    path: list[str]
    flow: Flow | None = None
    failure: FailureReason | None = None
    detail: str = ""
    error: Exception | None = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.flow is not None


@dataclass
class AnalysisResult:
    """Delay bound of one flow, in milliseconds, or the reason it failed."""

    flow: Flow
    delay_ms: float | None = None
    failure: FailureReason | None = None
    detail: str = ""

    FAILURE_SENTINEL = -1.0

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def value(self) -> float:
        """Delay in ms, or the -1 sentinel for a failed analysis."""
        return self.delay_ms if self.ok else self.FAILURE_SENTINEL


################################################################@
#  Engine interface
################################################################@

class NetworkCalculusEngine(ABC):
    """Interface every analysis backend implements."""

    @abstractmethod
    def create_graph(self) -> ServerGraph:
        ...

    @abstractmethod
    def add_server(self, graph: ServerGraph, label: str, curve: ServiceCurve,
                   multiplexing: Multiplexing) -> Server:
        ...

    @abstractmethod
    def add_turn(self, graph: ServerGraph, src: Server, dst: Server) -> None:
        """Connect *src* to *dst*. Adding an existing turn is a no-op."""
        ...

    @abstractmethod
    def add_flow(self, graph: ServerGraph, arrival: ArrivalCurve,
                 path: list[Server], alias: str = "") -> Flow:
        ...

    @abstractmethod
    def remove_flow(self, graph: ServerGraph, flow: Flow) -> None:
        ...

    @abstractmethod
    def remove_server(self, graph: ServerGraph, server: Server) -> None:
        ...

    @abstractmethod
    def analyze(self, graph: ServerGraph, config: AnalysisConfig, flow: Flow,
                method: AnalysisMethod) -> float:
        """Return the end-to-end delay bound of *flow* in seconds.

        Raises AnalysisError when no bound can be computed.
        """
        ...


class GraphEngine(NetworkCalculusEngine, ABC):
    """Structural half of an engine, backed by ServerGraph.

    Subclasses only provide analyze().
    """

    def create_graph(self) -> ServerGraph:
        return ServerGraph()

    def add_server(self, graph, label, curve, multiplexing=Multiplexing.FIFO):
        server = Server(next(graph._server_ids), label, curve, multiplexing)
        graph.servers[server.id] = server
        return server

    def add_turn(self, graph, src, dst):
        for s in (src, dst):
            if s is None or not graph.contains(s):
                raise GraphError(f"Turn endpoint {s!r} is not part of the graph")
        graph.turns.add((src.id, dst.id))

    def add_flow(self, graph, arrival, path, alias=""):
        if not path:
            raise GraphError("Cannot add a flow with an empty path")
        for server in path:
            if server is None or not graph.contains(server):
                raise GraphError(f"Flow path server {server!r} is not part of the graph")
        # A path implies its turns; existing ones are left untouched.
        for src, dst in zip(path, path[1:]):
            graph.turns.add((src.id, dst.id))
        flow = Flow(next(graph._flow_ids), arrival, tuple(path), alias)
        graph.flows.append(flow)
        return flow

    def remove_flow(self, graph, flow):
        try:
            graph.flows.remove(flow)
        except ValueError:
            raise GraphError(f"{flow!r} is not part of the graph") from None

    def remove_server(self, graph, server):
        if not graph.contains(server):
            raise GraphError(f"{server!r} is not part of the graph")
        if graph.flows_at(server):
            raise GraphError(f"{server!r} is still crossed by flows")
        del graph.servers[server.id]
        graph.turns = {t for t in graph.turns if server.id not in t}
