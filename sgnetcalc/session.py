################################################################@
"""
Analysis session.

The session is the explicit context every build / reset / analysis call
works on. It owns:
  - the declared edges (Topology) and services
  - the experiment configuration
  - the analysis engine and the server graph built with it

Usage order:
  1. add_edge()       [multiple times]  — one unidirectional output link each
  2. add_service()    [multiple times]
  3. build_network()  [once per configuration]
  4. orchestrator.calculate_delays(session)
"""
################################################################@

import logging

from .affine import AffineEngine
from .config import ExperimentConfig, SchedulingPolicy
from .engine import NetworkCalculusEngine, ServerGraph
from .priorities import FlowPriority
from .resolver import add_service_flows, remove_all_flows
from .scheduling import synthesize_service_curves
from .services import SGService
from .topology import Edge, Topology

logger = logging.getLogger(__name__)


class AnalysisSession:
    """Edges, services, configuration and server graph of one experiment."""

    def __init__(self, config: ExperimentConfig | None = None,
                 engine: NetworkCalculusEngine | None = None):
        self.config: ExperimentConfig = config or ExperimentConfig()
        self.engine: NetworkCalculusEngine = engine or AffineEngine()
        self.topology = Topology()
        self.services: list[SGService] = []
        self.graph: ServerGraph = self.engine.create_graph()
        self.built = False

    # ---- declaration ---- #

    def add_edge(self, node_from: str, node_to: str,
                 bitrate: float, latency: float = 0.0) -> Edge:
        return self.topology.add_edge(node_from, node_to, bitrate, latency)

    def add_service(self, name: str, server: str, bucket_size: int, bitrate: int,
                    deadline: float, multipath: list[list[str]],
                    priority: int = 0) -> SGService:
        """Declare a service. *priority* is a rank, clamped into [0, N-1]."""
        prio = FlowPriority.from_rank(priority)
        if prio.rank != priority:
            logger.warning("Priority %r of service %r clamped to %s",
                           priority, name, prio)
        service = SGService(name, server, bucket_size, bitrate, deadline,
                            [list(p) for p in multipath], prio)
        self.services.append(service)
        return service

    # ---- resets ---- #

    def reset_all(self) -> None:
        """Drop edges, services and the graph together."""
        self.topology.clear()
        self.services.clear()
        self.graph = self.engine.create_graph()
        self.built = False

    def remove_all_flows(self) -> None:
        remove_all_flows(self.engine, self.graph, self.services)

    def remove_all_servers(self) -> None:
        for server in list(self.graph.servers.values()):
            self.engine.remove_server(self.graph, server)
        self.topology.reset_servers()

    def reset_server_graph(self) -> None:
        """Start from an empty graph, keeping declared edges and services."""
        self.remove_all_flows()
        self.remove_all_servers()
        self.graph = self.engine.create_graph()
        self.built = False

    # ---- network construction ---- #

    def build_network(self) -> None:
        """Create servers, turns and flows for the current configuration."""
        if self.built or self.graph.servers:
            self.reset_server_graph()
        config = self.config
        priorities = FlowPriority.ordered()

        for edge in self.topology:
            curves = synthesize_service_curves(edge, config, len(priorities))
            # Servers must be created highest priority first
            servers = [
                self.engine.add_server(self.graph, f"{edge.label}{prio}",
                                       curves[prio.rank], config.multiplexing)
                for prio in priorities
            ]
            edge.set_servers(servers)

        # Turns connect servers of equal priority only: no priority hopping
        for edge, target in self.topology.turns(config.adjacency):
            for prio in priorities:
                self.engine.add_turn(self.graph, edge.get_server(prio),
                                     target.get_server(prio))

        fixed = None
        if config.scheduling_policy is SchedulingPolicy.NONE:
            fixed = FlowPriority.highest()
        add_service_flows(self.engine, self.graph, self.topology, self.services,
                          config, fixed_priority=fixed)
        self.built = True
        logger.info("Network built: %d edges, %d servers, %d turns, %d flows",
                    len(self.topology), len(self.graph.servers),
                    len(self.graph.turns), len(self.graph.flows))
