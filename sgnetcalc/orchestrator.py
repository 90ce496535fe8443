################################################################@
"""
Delay calculation for a built session.

Two modes, selected by the scheduling policy:

  Batch (None / WFQ / DRR / WRR)
      All flows are placed in the graph at once and every flow is analysed.

  Strict priority, step by step
      For each tier, highest first:
        AddTier   — flows of every service of this tier and of all higher
                    tiers are added on THIS tier's servers (higher tiers
                    act as cross traffic)
        Analyze   — only the flows of this tier are analysed
        Aggregate — per-service maxima vs. deadlines, OR-ed into the verdict
        ClearTier — every flow is removed again
      Only the first tier keeps the configured multiplexing; lower tiers see
      the higher tiers as unordered cross traffic (global arbitrary).
"""
################################################################@

import logging
from dataclasses import dataclass, field

from .config import ExperimentConfig, SchedulingPolicy
from .engine import (AnalysisConfig, AnalysisResult, FailureReason, Flow,
                     Multiplexing, MultiplexingEnforcement)
from .errors import (AnalysisError, UnstableServerError,
                     UnsupportedAnalysisError)
from .priorities import FlowPriority
from .resolver import add_service_flows
from .services import SGService
from .session import AnalysisSession

logger = logging.getLogger(__name__)


@dataclass
class DelayReport:
    """Result of one delay calculation.

    Attributes:
      config        — configuration the report was computed with
      priorities    — "name:PRIO - name:PRIO ..." for every service
      delays        — service name → per-flow delays in ms (-1 = failed)
      max_delays    — service name → largest successful flow delay in ms
      torn          — service name → True if the deadline is exceeded
      deadline_torn — True if any service deadline is torn
      cyclic_failure — analysis aborted on unbounded recursion
    """

    config: ExperimentConfig
    priorities: str = ""
    delays: dict[str, list[float]] = field(default_factory=dict)
    max_delays: dict[str, float] = field(default_factory=dict)
    torn: dict[str, bool] = field(default_factory=dict)
    deadline_torn: bool = False
    cyclic_failure: bool = False

    def to_row(self) -> list[str]:
        """Export row: config values, priorities, then per service its
        name followed by its flow delays, services sorted by name."""
        row = self.config.config_values()
        row.append(self.priorities)
        for name in sorted(self.delays):
            row.append(name)
            row.extend(f"{d:.3f}" for d in self.delays[name])
        return row


def nominal_enforcement(config: ExperimentConfig) -> MultiplexingEnforcement:
    if config.multiplexing is Multiplexing.ARBITRARY:
        return MultiplexingEnforcement.GLOBAL_ARBITRARY
    return MultiplexingEnforcement.SERVER_LOCAL


def priorities_label(services: list[SGService]) -> str:
    return " - ".join(f"{s.name}:{s.priority}" for s in services)


def analyze_flow(session: AnalysisSession, analysis_config: AnalysisConfig,
                 flow: Flow) -> AnalysisResult:
    """Analyse one flow; engine failures become a failed AnalysisResult."""
    config = session.config
    method = config.analysis_method
    try:
        delay = session.engine.analyze(session.graph, analysis_config, flow, method)
    except UnsupportedAnalysisError as exc:
        # e.g. PMOO with FIFO multiplexing
        logger.error("%s analysis failed for %s: %s", method.value, flow, exc)
        return AnalysisResult(flow, failure=FailureReason.UNSUPPORTED_COMBINATION,
                              detail=str(exc))
    except UnstableServerError as exc:
        logger.error("%s analysis failed for %s: %s", method.value, flow, exc)
        return AnalysisResult(flow, failure=FailureReason.UNSTABLE, detail=str(exc))
    except AnalysisError as exc:
        logger.exception("%s analysis failed for %s", method.value, flow)
        return AnalysisResult(flow, failure=FailureReason.ENGINE_INTERNAL,
                              detail=str(exc))
    except RecursionError:
        # cyclic dependency, handled once by calculate_delays
        raise
    except Exception as exc:
        logger.exception("%s engine error for %s", method.value, flow)
        return AnalysisResult(flow, failure=FailureReason.ENGINE_INTERNAL,
                              detail=f"{type(exc).__name__}: {exc}")

    # Propagation delay is zero if none is configured
    delay += config.propagation_delay * flow.num_servers()
    delay_ms = delay * 1000
    logger.info("delay bound of %s: %.2f ms", flow, delay_ms)
    return AnalysisResult(flow, delay_ms=delay_ms)


def analyze_services(session: AnalysisSession, analysis_config: AnalysisConfig,
                     services: list[SGService], report: DelayReport) -> bool:
    """Analyse every flow of *services* into *report*.

    Returns True if one of the services misses its deadline.
    """
    delay_torn = False
    for service in services:
        logger.info("--- Analyzing SGS %r ---", service.name)
        results = [analyze_flow(session, analysis_config, flow)
                   for flow in service.flows]
        report.delays[service.name] = [r.value for r in results]
        max_delay = max((r.delay_ms for r in results if r.ok), default=0.0)
        report.max_delays[service.name] = max_delay
        torn = service.deadline < max_delay
        report.torn[service.name] = torn
        logger.info("Max service delay for %s is %.2f ms (deadline: %.2f ms)",
                    service.name, max_delay, service.deadline)
        if torn:
            logger.warning("Service %s deadline not met (%.2f ms / %.2f ms)",
                           service.name, max_delay, service.deadline)
            delay_torn = True
    return delay_torn


def _batch_delays(session: AnalysisSession, report: DelayReport,
                  fixed: FlowPriority | None = None) -> bool:
    config = session.config
    analysis_config = AnalysisConfig(config.arrival_bound_method,
                                     nominal_enforcement(config))
    if fixed is None and config.scheduling_policy is SchedulingPolicy.NONE:
        # No scheduler: every flow shares the first priority's servers
        fixed = FlowPriority.highest()
    session.remove_all_flows()
    add_service_flows(session.engine, session.graph, session.topology,
                      session.services, config, fixed_priority=fixed)
    return analyze_services(session, analysis_config, session.services, report)


def _strict_priority_delays(session: AnalysisSession, report: DelayReport) -> bool:
    config = session.config
    analysis_config = AnalysisConfig(config.arrival_bound_method,
                                     nominal_enforcement(config))
    session.remove_all_flows()

    delay_torn = False
    current: list[SGService] = []
    for tier, prio in enumerate(FlowPriority.ordered()):
        tier_services = [s for s in session.services if s.priority is prio]
        current.extend(tier_services)
        if tier > 0:
            analysis_config.enforcement = MultiplexingEnforcement.GLOBAL_ARBITRARY
        logger.debug("Tier %s: %d services, %d including higher tiers",
                     prio, len(tier_services), len(current))
        try:
            add_service_flows(session.engine, session.graph, session.topology,
                              current, config, fixed_priority=prio)
            tier_torn = analyze_services(session, analysis_config,
                                         tier_services, report)
        finally:
            session.remove_all_flows()
        delay_torn = delay_torn or tier_torn
    return delay_torn


def calculate_delays(session: AnalysisSession,
                     fixed_priority: FlowPriority | None = None) -> DelayReport:
    """Compute delay bounds for every service flow of a built session.

    With *fixed_priority* every flow is analysed in one batch on the servers
    of that priority, whatever the scheduling policy.
    """
    config = session.config
    config.log_config()
    report = DelayReport(config=config, priorities=priorities_label(session.services))
    logger.info("------ Starting NC analysis using %s ------",
                config.analysis_method.value)
    try:
        if fixed_priority is None and config.scheduling_policy is SchedulingPolicy.SP:
            report.deadline_torn = _strict_priority_delays(session, report)
        else:
            report.deadline_torn = _batch_delays(session, report, fixed_priority)
    except RecursionError:
        logger.error("Recursion limit hit during analysis. "
                     "Possible reason: cyclic dependency in network.")
        report.cyclic_failure = True
        report.deadline_torn = True
    return report
