################################################################@
"""
Closed-form analysis engine for rate-latency servers and affine flows.

Every server offers  β(t) = R·[t − T]⁺  and every flow enters the network
with  α(t) = b + r·t.  With these shapes all bounds used below have closed
forms, so no curve algebra is needed:

  Left-over service of flow f at server s (arbitrary multiplexing), with
  cross flows x of burst b_x (at s) and rate r_x:
      R_f = R − Σ r_x
      T_f = (R·T + Σ b_x) / R_f

  Output burst of f after s (output burstiness theorem):
      b_out = b_in + r·T_f

  Delay bound of an affine flow through a rate-latency curve:
      D = T + b / R

Arrival bounds of cross flows are obtained by walking their path upstream,
server after server. On a cyclic dependency the walk never terminates and
RecursionError propagates to the caller.
"""
################################################################@

import logging

from .engine import (AnalysisConfig, AnalysisMethod, ArrivalBoundMethod, Flow,
                     GraphEngine, Multiplexing, Server, ServerGraph)
from .errors import UnstableServerError, UnsupportedAnalysisError

logger = logging.getLogger(__name__)


class _FlowAnalysis:
    """Bursts and left-over curves computed during one analyze() call."""

    def __init__(self, graph: ServerGraph, config: AnalysisConfig):
        self.graph = graph
        self.config = config
        self._bursts: dict[tuple[int, int], float] = {}
        self._flows_at: dict[int, list[Flow]] = {}

    def flows_at(self, server: Server) -> list[Flow]:
        if server.id not in self._flows_at:
            self._flows_at[server.id] = self.graph.flows_at(server)
        return self._flows_at[server.id]

    def cross_flows(self, flow: Flow, server: Server) -> list[tuple[Flow, int]]:
        """Other flows at *server*, with the position of *server* on their path."""
        return [(x, x.path.index(server))
                for x in self.flows_at(server) if x is not flow]

    def burst_at(self, flow: Flow, pos: int) -> float:
        """Burst of *flow* when entering the server at path position *pos*."""
        key = (flow.id, pos)
        if key in self._bursts:
            return self._bursts[key]
        if pos == 0:
            burst = flow.arrival.burst
        else:
            _, latency = self.leftover(flow, flow.path[pos - 1])
            burst = self.burst_at(flow, pos - 1) + flow.arrival.rate * latency
        self._bursts[key] = burst
        return burst

    def leftover(self, flow: Flow, server: Server) -> tuple[float, float]:
        """Left-over rate-latency curve (R_f, T_f) of *flow* at *server*."""
        R, T = server.curve.rate, server.curve.latency
        cross = self.cross_flows(flow, server)
        cross_rate = sum(x.arrival.rate for x, _ in cross)
        cross_burst = sum(self.burst_at(x, pos) for x, pos in cross)
        rate = R - cross_rate
        if rate <= 0 or flow.arrival.rate > rate:
            raise UnstableServerError(
                f"{server.label}: flow rate {flow.arrival.rate:g} exceeds "
                f"left-over rate {rate:g} (R={R:g}, cross={cross_rate:g})")
        return rate, (R * T + cross_burst) / rate

    # ---- analyses ---- #

    def tfa(self, foi: Flow) -> float:
        """Sum of per-server delay bounds along the path of *foi*."""
        total = 0.0
        for pos, server in enumerate(foi.path):
            if self.config.multiplexing_at(server) is Multiplexing.FIFO:
                # FIFO: every flow at the server sees the aggregate delay
                R, T = server.curve.rate, server.curve.latency
                aggregate_rate = foi.arrival.rate
                aggregate_burst = self.burst_at(foi, pos)
                for x, x_pos in self.cross_flows(foi, server):
                    aggregate_rate += x.arrival.rate
                    aggregate_burst += self.burst_at(x, x_pos)
                if R <= 0 or aggregate_rate > R:
                    raise UnstableServerError(
                        f"{server.label}: aggregate rate {aggregate_rate:g} "
                        f"exceeds service rate {R:g}")
                delay = T + aggregate_burst / R
            else:
                rate, latency = self.leftover(foi, server)
                delay = latency + self.burst_at(foi, pos) / rate
            logger.debug("TFA %s at %s: %.6f s", foi, server.label, delay)
            total += delay
        return total

    def sfa(self, foi: Flow) -> float:
        """Concatenate the left-over curves along the path, then bound once."""
        curves = [self.leftover(foi, server) for server in foi.path]
        rate = min(r for r, _ in curves)
        latency = sum(t for _, t in curves)
        return latency + foi.arrival.burst / rate

    def pmoo(self, foi: Flow) -> float:
        """Pay each cross flow's burst only once along the tandem."""
        rate = float("inf")
        latency = 0.0
        joins: dict[int, tuple[Flow, int]] = {}
        crossed_latency: dict[int, float] = {}
        for server in foi.path:
            cross = self.cross_flows(foi, server)
            rate = min(rate, server.curve.rate - sum(x.arrival.rate for x, _ in cross))
            latency += server.curve.latency
            for x, x_pos in cross:
                joins.setdefault(x.id, (x, x_pos))
                crossed_latency[x.id] = crossed_latency.get(x.id, 0.0) + server.curve.latency
        if rate <= 0 or foi.arrival.rate > rate:
            raise UnstableServerError(
                f"{foi}: left-over tandem rate {rate:g} below flow rate "
                f"{foi.arrival.rate:g}")
        for x_id, (x, x_pos) in joins.items():
            latency += (self.burst_at(x, x_pos)
                        + x.arrival.rate * crossed_latency[x_id]) / rate
        return latency + foi.arrival.burst / rate


class AffineEngine(GraphEngine):
    """Default engine: TFA, SFA, PMOO and TMA for affine curves."""

    def analyze(self, graph, config, flow, method):
        if flow not in graph.flows:
            raise UnsupportedAnalysisError(f"{flow!r} is not part of the graph")
        self._check_combination(config, flow, method)

        analysis = _FlowAnalysis(graph, config)
        if method is AnalysisMethod.TFA:
            return analysis.tfa(flow)
        if method is AnalysisMethod.SFA:
            return analysis.sfa(flow)
        if method is AnalysisMethod.PMOO:
            return analysis.pmoo(flow)
        # Tandem matching keeps the best of both decompositions
        return min(analysis.sfa(flow), analysis.pmoo(flow))

    @staticmethod
    def _check_combination(config: AnalysisConfig, flow: Flow,
                           method: AnalysisMethod) -> None:
        if config.arrival_bound_method is ArrivalBoundMethod.SEGR_TM:
            raise UnsupportedAnalysisError(
                "Arrival bounding SEGR_TM is not supported by this engine")
        fifo = [s for s in flow.path
                if config.multiplexing_at(s) is Multiplexing.FIFO]
        if fifo and not method.supports_fifo:
            raise UnsupportedAnalysisError(
                f"{method.value} does not support FIFO multiplexing "
                f"(server {fifo[0].label})")
        if fifo and config.arrival_bound_method.requires_arbitrary:
            raise UnsupportedAnalysisError(
                f"Arrival bounding {config.arrival_bound_method.value} does not "
                f"support FIFO multiplexing (server {fifo[0].label})")
