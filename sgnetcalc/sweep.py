"""
Experiment sweeps.

  - run_full_experiment_sweep : every supported multiplexing × analysis ×
                                arrival-bound × scheduling combination
  - run_flow_after_flow       : grow the flow set one flow at a time
  - run_flow_combinations     : every combination of `depth` single routes
"""
import itertools
import logging
from dataclasses import replace
from typing import Iterator

from .config import ExperimentConfig, SchedulingPolicy
from .engine import AnalysisMethod, ArrivalBoundMethod, Multiplexing
from .orchestrator import DelayReport, calculate_delays
from .priorities import FlowPriority
from .services import SGService
from .session import AnalysisSession

logger = logging.getLogger(__name__)

# Arrival bounds the engine cannot combine with FIFO multiplexing
_FIFO_INCOMPATIBLE_BOUNDS = (ArrivalBoundMethod.AGGR_TM,
                             ArrivalBoundMethod.SEGR_PMOO,
                             ArrivalBoundMethod.AGGR_PMOO)


def is_supported_combination(multiplexing: Multiplexing, method: AnalysisMethod,
                             bound: ArrivalBoundMethod) -> bool:
    if bound is ArrivalBoundMethod.SEGR_TM:
        return False
    if multiplexing is Multiplexing.FIFO:
        if not method.supports_fifo:
            return False
        if bound in _FIFO_INCOMPATIBLE_BOUNDS:
            return False
    return True


def scenario_combinations() -> Iterator[tuple[Multiplexing, AnalysisMethod,
                                              ArrivalBoundMethod, SchedulingPolicy]]:
    """Lazily yield every supported sweep combination."""
    for mux, method, bound, policy in itertools.product(
            Multiplexing, AnalysisMethod, ArrivalBoundMethod, SchedulingPolicy):
        if is_supported_combination(mux, method, bound):
            yield mux, method, bound, policy


def sweep_header() -> list[str]:
    return ExperimentConfig.config_labels() + ["priorities", "results"]


def run_full_experiment_sweep(session: AnalysisSession) -> list[list[str]]:
    """Run every supported combination and return the result matrix.

    The first row holds the column labels. Declared edges and services are
    kept; servers and flows are rebuilt for each combination. The session's
    configuration is restored at the end.
    """
    original = session.config
    rows = [sweep_header()]
    try:
        for mux, method, bound, policy in scenario_combinations():
            session.config = replace(original, multiplexing=mux, analysis_method=method,
                                     arrival_bound_method=bound, scheduling_policy=policy)
            logger.info("=== Scenario %s / %s / %s / %s ===",
                        mux.value, method.value, bound.value, policy.value)
            session.reset_server_graph()
            session.build_network()
            rows.append(calculate_delays(session).to_row())
    finally:
        session.config = original
    logger.info("Sweep finished: %d scenarios", len(rows) - 1)
    return rows


# ---------- Flow subset experiments ---------- #

def first_flows(services: list[SGService], count: int) -> list[SGService]:
    """Copies of *services* restricted to their first *count* routes overall."""
    subset = []
    remaining = count
    for service in services:
        if remaining <= 0:
            break
        paths = service.multipath[:remaining]
        remaining -= len(paths)
        subset.append(replace(service, multipath=[list(p) for p in paths], flows=[]))
    return subset


def flow_combinations(services: list[SGService],
                      depth: int) -> Iterator[list[SGService]]:
    """Lazily yield every ordered combination of *depth* single routes.

    Each yielded list holds fresh single-route services, so a route picked
    twice becomes two independent flows.
    """
    variants = [v for s in services for v in s.single_path_variants()]
    for combo in itertools.product(variants, repeat=depth):
        yield [replace(v, multipath=[list(p) for p in v.multipath], flows=[])
               for v in combo]


def _analyze_subset(session: AnalysisSession,
                    services: list[SGService]) -> DelayReport:
    """Analyse *services* alone, every flow on the highest-priority servers."""
    session.remove_all_flows()
    declared = session.services
    session.services = services
    try:
        session.build_network()
        return calculate_delays(session, fixed_priority=FlowPriority.highest())
    finally:
        session.remove_all_flows()
        session.services = declared


def run_flow_after_flow(session: AnalysisSession) -> list[DelayReport]:
    """Analyse the first flow, then the first two, ... up to all flows."""
    total = sum(len(s.multipath) for s in session.services)
    reports = []
    for count in range(1, total + 1):
        logger.info("=== Flow after flow: %d of %d flows ===", count, total)
        reports.append(_analyze_subset(session, first_flows(session.services, count)))
    return reports


def run_flow_combinations(session: AnalysisSession, depth: int = 2) -> list[DelayReport]:
    """Analyse every combination of *depth* single routes of the declared services."""
    reports = []
    for services in flow_combinations(session.services, depth):
        logger.info("=== Flow combination: %s ===",
                    ", ".join(f"{s.name}:{'-'.join(s.multipath[0])}" for s in services))
        reports.append(_analyze_subset(session, services))
    return reports
