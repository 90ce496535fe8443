"""
Service-curve synthesizer.

For every edge one rate-latency service curve per priority is derived from
the configured link scheduler. Curves are returned in increasing rank
order: index 0 belongs to the highest priority.

Notation (all closed form):
  C      — edge bitrate [B/s]
  l_max  — maximum packet size [B]
  l_min  — minimum packet size [B]
  N      — number of priorities
"""
import logging

from .config import ExperimentConfig, SchedulingPolicy
from .curves import ServiceCurve
from .errors import ConfigurationError, DegenerateEdgeError
from .priorities import FlowPriority, validate_per_priority
from .topology import Edge

logger = logging.getLogger(__name__)


def _check_bitrate(edge: Edge) -> float:
    # also rejects NaN
    if not (edge.bitrate > 0):
        raise DegenerateEdgeError(edge.node_from, edge.node_to, edge.bitrate)
    return float(edge.bitrate)


def simple_service_curves(edge: Edge, config: ExperimentConfig,
                          priority_count: int | None = None) -> list[ServiceCurve]:
    """Model the link as packet burst + link rate, ignoring any scheduler."""
    n = FlowPriority.count() if priority_count is None else priority_count
    C = _check_bitrate(edge)
    latency = 0.0
    if config.use_packetizer:
        latency = config.max_packet_size / C
    if config.use_given_link_delay:
        latency += edge.latency
    return [ServiceCurve(C, latency) for _ in range(n)]


def _strict_priority(C: float, config: ExperimentConfig, n: int) -> list[ServiceCurve]:
    # The cross-traffic subtraction is done by the analysis: lower tiers see
    # the higher tiers' flows on their own servers.
    # Packetized SP waits for one lower-priority packet in service plus one
    # l_max for the packetizer; the lowest tier only pays the packetizer.
    latency = config.max_packet_size / C if config.use_packetizer else 0.0
    curves = [ServiceCurve(C, 2 * latency) for _ in range(n - 1)]
    curves.append(ServiceCurve(C, latency))
    return curves


def _weighted_fair_queueing(C: float, config: ExperimentConfig, n: int) -> list[ServiceCurve]:
    # PGPS: one l_max waiting to be scheduled plus one l_max for the packetizer.
    # Without packetizer this is plain GPS.
    latency = 2 * config.max_packet_size / C if config.use_packetizer else 0.0
    weights = config.flow_weights
    total = sum(weights)
    if total <= 0:
        raise ConfigurationError(f"flow_weights must sum to a positive value: {weights}")
    return [ServiceCurve(w / total * C, latency) for w in weights]


def _deficit_round_robin(C: float, config: ExperimentConfig, n: int) -> list[ServiceCurve]:
    # DRR is always packetized.
    l_max = config.max_packet_size
    L = l_max * n
    quanta = config.flow_quanta
    F = sum(quanta)
    if F <= 0 or any(q <= 0 for q in quanta):
        raise ConfigurationError(f"flow_quanta must all be positive: {quanta}")
    curves = []
    for Q_i in quanta:
        latency = (Q_i * (L - l_max) + (F - Q_i) * (Q_i + l_max) + Q_i * l_max) / (Q_i * C)
        curves.append(ServiceCurve(Q_i / F * C, latency))
    return curves


def _weighted_round_robin(C: float, config: ExperimentConfig, n: int) -> list[ServiceCurve]:
    # WRR has no unpacketized version.
    l_min = config.min_packet_size
    l_max = config.max_packet_size
    weights = config.flow_weights
    total = sum(weights)
    curves = []
    for w_i in weights:
        q_i = w_i * l_min
        Q_i = (total - w_i) * l_max
        if q_i + Q_i <= 0:
            raise ConfigurationError(f"flow_weights must sum to a positive value: {weights}")
        curves.append(ServiceCurve(q_i / (q_i + Q_i) * C, (Q_i + l_max) / C))
    return curves


_SYNTHESIZERS = {
    SchedulingPolicy.SP: _strict_priority,
    SchedulingPolicy.WFQ: _weighted_fair_queueing,
    SchedulingPolicy.DRR: _deficit_round_robin,
    SchedulingPolicy.WRR: _weighted_round_robin,
}


def synthesize_service_curves(edge: Edge, config: ExperimentConfig,
                              priority_count: int | None = None) -> list[ServiceCurve]:
    """Return one service curve per priority for *edge*, highest priority first.

    Edges touching a field device always get simple curves, whatever the
    configured scheduler.

    Raises:
      DegenerateEdgeError — edge bitrate is not positive
      ConfigurationError  — weight / quantum arrays do not match the
                            priority count
    """
    n = FlowPriority.count() if priority_count is None else priority_count
    validate_per_priority("flow_weights", config.flow_weights, n)
    validate_per_priority("flow_quanta", config.flow_quanta, n)

    policy = config.scheduling_policy
    if (config.is_field_device(edge.node_from)
            or config.is_field_device(edge.node_to)):
        policy = SchedulingPolicy.NONE

    if policy is SchedulingPolicy.NONE:
        return simple_service_curves(edge, config, n)
    C = _check_bitrate(edge)
    curves = _SYNTHESIZERS[policy](C, config, n)
    logger.debug("%s curves for %s: %s", policy.value, edge.label, curves)
    return curves
