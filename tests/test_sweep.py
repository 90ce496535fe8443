import pytest

from sgnetcalc.config import ExperimentConfig, SchedulingPolicy
from sgnetcalc.engine import AnalysisMethod, ArrivalBoundMethod, Multiplexing
from sgnetcalc.priorities import FlowPriority
from sgnetcalc.services import SGService
from sgnetcalc.sweep import (first_flows, flow_combinations, is_supported_combination,
                             run_flow_after_flow, run_flow_combinations,
                             run_full_experiment_sweep, scenario_combinations,
                             sweep_header)


@pytest.fixture
def services():
    return [
        SGService("SGA", "S1", 255, 50, 1000, [["F1", "H1"], ["F1", "H1", "S1"]]),
        SGService("SGB", "S1", 255, 50, 1000, [["H1", "S1"]], FlowPriority.LOW),
    ]


def test_supported_combinations():
    assert not is_supported_combination(Multiplexing.ARBITRARY, AnalysisMethod.SFA,
                                        ArrivalBoundMethod.SEGR_TM)
    assert not is_supported_combination(Multiplexing.FIFO, AnalysisMethod.PMOO,
                                        ArrivalBoundMethod.AGGR_PBOO_CONCATENATION)
    assert not is_supported_combination(Multiplexing.FIFO, AnalysisMethod.SFA,
                                        ArrivalBoundMethod.AGGR_PMOO)
    assert is_supported_combination(Multiplexing.FIFO, AnalysisMethod.TFA,
                                     ArrivalBoundMethod.SEGR_PBOO)
    assert is_supported_combination(Multiplexing.ARBITRARY, AnalysisMethod.TMA,
                                     ArrivalBoundMethod.AGGR_TM)


def test_scenario_count():
    combos = list(scenario_combinations())
    # FIFO: 2 methods x 3 bounds, ARBITRARY: 4 methods x 6 bounds; 5 policies each
    assert len(combos) == (2 * 3 + 4 * 6) * 5
    assert len(set(combos)) == len(combos)


def test_full_sweep_matrix(reference_session):
    original = reference_session.config
    rows = run_full_experiment_sweep(reference_session)
    assert rows[0] == sweep_header()
    assert len(rows) == 151
    assert reference_session.config is original
    assert len(reference_session.topology) == 2
    assert len(reference_session.services) == 3

    labels = ExperimentConfig.config_labels()
    wanted = {"multiplexing": "FIFO", "analysis_method": "SFA",
              "arrival_bound_method": "AGGR_PBOO_CONCATENATION",
              "scheduling_policy": "SP"}
    matches = [row for row in rows[1:]
               if all(dict(zip(labels, row))[k] == v for k, v in wanted.items())]
    assert len(matches) == 1
    results = matches[0][len(labels) + 1:]
    assert results[:2] == ["SGTest_high", "5100.001"]


def test_first_flows_truncates_routes(services):
    subset = first_flows(services, 2)
    assert [(s.name, len(s.multipath)) for s in subset] == [("SGA", 2)]
    subset = first_flows(services, 3)
    assert [(s.name, len(s.multipath)) for s in subset] == [("SGA", 2), ("SGB", 1)]
    assert subset[0] is not services[0]
    assert subset[1].priority is FlowPriority.LOW


def test_flow_combinations(services):
    combos = list(flow_combinations(services, 2))
    assert len(combos) == 9
    for combo in combos:
        assert len(combo) == 2
        assert all(len(s.multipath) == 1 for s in combo)
        assert combo[0] is not combo[1]


def test_flow_after_flow(reference_session):
    declared = reference_session.services
    reports = run_flow_after_flow(reference_session)
    assert [len(r.delays) for r in reports] == [1, 2, 3]
    assert reference_session.services is declared
    assert reference_session.graph.flows == []
    # every flow is placed on the first priority, the first one alone
    assert reports[0].max_delays["SGTest_high"] == pytest.approx(5100.001, abs=1e-6)


def test_flow_combinations_run(reference_session):
    reference_session.config = ExperimentConfig(scheduling_policy=SchedulingPolicy.WFQ)
    reports = run_flow_combinations(reference_session, depth=1)
    assert len(reports) == 3
    assert all(len(r.delays) == 1 for r in reports)
