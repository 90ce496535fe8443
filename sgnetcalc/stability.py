"""Server load accumulation and stability check (load < service rate)."""
import logging

from .engine import Server, ServerGraph

logger = logging.getLogger(__name__)


def calculate_loads(graph: ServerGraph) -> dict[Server, float]:
    """Walk every flow path and accumulate its arrival rate on each server.

    A flow crossing the same server twice is counted once.
    """
    loads = {server: 0.0 for server in graph.servers.values()}
    for flow in graph.flows:
        for server in set(flow.path):
            loads[server] += flow.arrival.rate
    return loads


def check_stability(graph: ServerGraph) -> bool:
    """Verify load < service rate on every server.

    Returns True if the network is stable. Each overloaded server is logged.
    """
    stable = True
    for server, load in calculate_loads(graph).items():
        rate = server.curve.rate
        if load >= rate:
            logger.warning("[UNSTABLE] %s: load=%.2f B/s >= rate=%.2f B/s (ρ=%.4f)",
                           server.label, load, rate, load / rate if rate else float("inf"))
            stable = False
    if stable:
        logger.info("[OK] Network is stable (ρ < 1 on all servers).")
    return stable
