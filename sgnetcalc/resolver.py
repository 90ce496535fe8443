"""
Flow and arrival-curve resolver.

Maps every declared route of a service to the ordered servers of the edges
it crosses and registers the resulting flow on the server graph AND on the
service. Both registrations are made, and undone, together.
"""
import logging
from typing import Iterable

from .config import ArrivalCurveType, ExperimentConfig
from .curves import ArrivalCurve
from .engine import AddFlowResult, FailureReason, NetworkCalculusEngine, Server, ServerGraph
from .errors import ConfigurationError, MissingEdgeError, UnbuiltEdgeError
from .priorities import FlowPriority
from .services import SGService
from .topology import Topology

logger = logging.getLogger(__name__)


def arrival_curve_for(service: SGService, config: ExperimentConfig) -> ArrivalCurve:
    if config.arrival_curve_type is ArrivalCurveType.PEAK_ARRIVAL_RATE:
        return ArrivalCurve.peak_rate(service.bitrate)
    return ArrivalCurve.token_bucket(service.bitrate, service.bucket_size)


def resolve_path(topology: Topology, path: list[str], priority: FlowPriority,
                 service: str | None = None) -> list[Server]:
    """Return the servers along *path* at *priority*.

    A path of K nodes resolves to exactly K-1 servers. Edge lookup respects
    the node order: (A, B) never matches an edge declared as (B, A).
    """
    if len(path) < 2:
        raise ConfigurationError(
            f"Path {path} of service {service!r} needs at least two nodes")
    servers = []
    # Start with the second node: each hop is (previous, current)
    for node_from, node_to in zip(path, path[1:]):
        edge = topology.find_edge(node_from, node_to)
        if edge is None:
            raise MissingEdgeError(node_from, node_to, service)
        servers.append(edge.get_server(priority))
    return servers


def add_service_flows(engine: NetworkCalculusEngine, graph: ServerGraph,
                      topology: Topology, services: Iterable[SGService],
                      config: ExperimentConfig,
                      fixed_priority: FlowPriority | None = None) -> list[AddFlowResult]:
    """Add one flow per route of every service in *services*.

    With *fixed_priority* every flow is placed on the servers of that
    priority instead of the service's own one.

    Every route is resolved before the graph is touched; if any route fails
    the first failure is raised and nothing is added.
    """
    results: list[AddFlowResult] = []
    planned: list[tuple[SGService, list[str], ArrivalCurve, list[Server]]] = []

    for service in services:
        priority = service.priority if fixed_priority is None else fixed_priority
        arrival = arrival_curve_for(service, config)
        for path in service.multipath:
            try:
                servers = resolve_path(topology, path, priority, service.name)
            except MissingEdgeError as exc:
                results.append(AddFlowResult(service.name, list(path),
                                             failure=FailureReason.MISSING_EDGE,
                                             detail=str(exc), error=exc))
                continue
            except UnbuiltEdgeError as exc:
                results.append(AddFlowResult(service.name, list(path),
                                             failure=FailureReason.UNBUILT_EDGE,
                                             detail=str(exc), error=exc))
                continue
            planned.append((service, list(path), arrival, servers))

    failures = [r for r in results if not r.ok]
    if failures:
        for r in failures:
            logger.error("Cannot resolve path %s of service %r: %s",
                         r.path, r.service, r.detail)
        raise failures[0].error

    added: list[tuple[SGService, object]] = []
    try:
        for service, path, arrival, servers in planned:
            flow = engine.add_flow(graph, arrival, servers,
                                   alias=f"{service.name}:{'-'.join(path)}")
            service.add_flow(flow)
            added.append((service, flow))
            results.append(AddFlowResult(service.name, path, flow=flow))
    except Exception:
        for service, flow in added:
            engine.remove_flow(graph, flow)
            service.flows.remove(flow)
        raise

    logger.debug("Added %d flows (fixed priority: %s)", len(added), fixed_priority)
    return results


def remove_all_flows(engine: NetworkCalculusEngine, graph: ServerGraph,
                     services: Iterable[SGService]) -> None:
    """Remove every flow from *graph* and clear every service's flow list."""
    for flow in list(graph.flows):
        engine.remove_flow(graph, flow)
    for service in services:
        service.reset_flows()
