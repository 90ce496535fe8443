from dataclasses import replace

import pytest

from sgnetcalc.config import ExperimentConfig, SchedulingPolicy
from sgnetcalc.engine import GraphEngine
from sgnetcalc.session import AnalysisSession


class StubEngine(GraphEngine):
    """Engine returning scripted delays and recording every analyze() call."""

    def __init__(self, delay: float = 0.001, failures=None, raise_on=None):
        self.delay = delay                  # seconds
        self.failures = failures or {}      # service name -> exception instance
        self.raise_on = raise_on            # exception type raised by every call
        self.calls = []

    def analyze(self, graph, config, flow, method):
        service = flow.alias.split(":")[0]
        self.calls.append({
            "service": service,
            "flow": flow,
            "graph_services": sorted(f.alias.split(":")[0] for f in graph.flows),
            "graph_labels": [s.label for f in graph.flows for s in f.path],
            "enforcement": config.enforcement,
            "method": method,
        })
        if self.raise_on is not None:
            raise self.raise_on()
        if service in self.failures:
            raise self.failures[service]
        return self.delay


def add_reference_network(session: AnalysisSession) -> AnalysisSession:
    """Two-hop network F1 -> H1 -> S1 with one service per priority."""
    session.add_edge("F1", "H1", 200, 10)
    session.add_edge("H1", "S1", 200, 10)
    paths = [["F1", "H1", "S1"]]
    session.add_service("SGTest_high", "S1", 255, 50, 1000, paths, 0)
    session.add_service("SGTest_med", "S1", 255, 50, 1000, paths, 1)
    session.add_service("SGTest_low", "S1", 255, 50, 1000, paths, 2)
    return session


@pytest.fixture
def config():
    return ExperimentConfig()


@pytest.fixture
def sp_config(config):
    return replace(config, scheduling_policy=SchedulingPolicy.SP)


@pytest.fixture
def stub_engine():
    return StubEngine()


@pytest.fixture
def reference_session(sp_config):
    return add_reference_network(AnalysisSession(sp_config))


@pytest.fixture
def stub_session(sp_config, stub_engine):
    return add_reference_network(AnalysisSession(sp_config, stub_engine))
