from dataclasses import replace

import pytest

from sgnetcalc.config import SchedulingPolicy
from sgnetcalc.engine import Multiplexing, MultiplexingEnforcement
from sgnetcalc.errors import UnstableServerError, UnsupportedAnalysisError
from sgnetcalc.orchestrator import DelayReport, calculate_delays, priorities_label
from sgnetcalc.session import AnalysisSession

from conftest import StubEngine, add_reference_network

RANK = {"SGTest_high": 0, "SGTest_med": 1, "SGTest_low": 2}


def test_strict_priority_tiers_only_see_higher_priorities(stub_session, stub_engine):
    stub_session.build_network()
    calculate_delays(stub_session)

    analysed = [c["service"] for c in stub_engine.calls]
    assert analysed == ["SGTest_high", "SGTest_med", "SGTest_low"]
    for call in stub_engine.calls:
        tier = RANK[call["service"]]
        assert sorted(RANK[s] for s in call["graph_services"]) == list(range(tier + 1))
        prio = ("HIGH", "MEDIUM", "LOW")[tier]
        assert all(label.endswith(prio) for label in call["graph_labels"])


def test_strict_priority_leaves_no_flows_behind(stub_session):
    stub_session.build_network()
    calculate_delays(stub_session)
    assert stub_session.graph.flows == []
    assert all(s.flows == [] for s in stub_session.services)


def test_lower_tiers_are_analysed_as_arbitrary(stub_session, stub_engine):
    stub_session.build_network()
    calculate_delays(stub_session)
    enforcement = [c["enforcement"] for c in stub_engine.calls]
    assert enforcement == [MultiplexingEnforcement.SERVER_LOCAL,
                           MultiplexingEnforcement.GLOBAL_ARBITRARY,
                           MultiplexingEnforcement.GLOBAL_ARBITRARY]


@pytest.mark.parametrize("policy", [SchedulingPolicy.WFQ, SchedulingPolicy.DRR,
                                    SchedulingPolicy.WRR])
def test_batch_mode_analyses_all_flows_together(sp_config, policy):
    engine = StubEngine()
    config = replace(sp_config, scheduling_policy=policy,
                     multiplexing=Multiplexing.ARBITRARY)
    session = add_reference_network(AnalysisSession(config, engine))
    session.build_network()
    calculate_delays(session)
    assert len(engine.calls) == 3
    for call in engine.calls:
        assert len(call["graph_services"]) == 3
        assert call["enforcement"] is MultiplexingEnforcement.GLOBAL_ARBITRARY
    # batch mode keeps the flows in the graph
    assert len(session.graph.flows) == 3


def test_no_scheduling_puts_every_flow_on_first_priority(sp_config):
    engine = StubEngine()
    config = replace(sp_config, scheduling_policy=SchedulingPolicy.NONE)
    session = add_reference_network(AnalysisSession(config, engine))
    session.build_network()
    calculate_delays(session)
    for call in engine.calls:
        assert all(label.endswith("HIGH") for label in call["graph_labels"])


def test_delays_are_converted_to_milliseconds(stub_session):
    stub_session.build_network()
    report = calculate_delays(stub_session)
    # 1 ms from the engine plus two hops of 0.5 µs
    assert report.delays["SGTest_high"] == [pytest.approx(1.001)]
    assert not report.deadline_torn
    assert not report.cyclic_failure


def test_failed_flow_gets_sentinel_and_others_continue(sp_config):
    engine = StubEngine(failures={"SGTest_med": UnsupportedAnalysisError("PMOO+FIFO"),
                                  "SGTest_low": UnstableServerError("overload")})
    session = add_reference_network(AnalysisSession(sp_config, engine))
    session.build_network()
    report = calculate_delays(session)
    assert report.delays["SGTest_med"] == [-1.0]
    assert report.delays["SGTest_low"] == [-1.0]
    assert report.delays["SGTest_high"] == [pytest.approx(1.001)]
    assert report.max_delays["SGTest_med"] == 0.0
    assert not report.deadline_torn


def test_torn_deadline_is_or_ed_over_tiers(sp_config):
    engine = StubEngine(delay=2.0)
    session = AnalysisSession(sp_config, engine)
    add_reference_network(session)
    session.services[0].deadline = 5000
    session.services[2].deadline = 5000
    session.build_network()
    report = calculate_delays(session)
    assert report.torn == {"SGTest_high": False, "SGTest_med": True, "SGTest_low": False}
    assert report.deadline_torn


def test_recursion_is_reported_as_cyclic_failure(sp_config):
    engine = StubEngine(raise_on=RecursionError)
    session = add_reference_network(AnalysisSession(sp_config, engine))
    session.build_network()
    report = calculate_delays(session)
    assert report.cyclic_failure
    assert report.deadline_torn
    assert session.graph.flows == []


def test_report_row_lists_services_by_name(stub_session):
    stub_session.build_network()
    report = calculate_delays(stub_session)
    row = report.to_row()
    config_values = stub_session.config.config_values()
    assert row[:len(config_values)] == config_values
    assert row[len(config_values)] == priorities_label(stub_session.services)
    assert row[len(config_values) + 1:] == [
        "SGTest_high", "1.001", "SGTest_low", "1.001", "SGTest_med", "1.001"]


def test_priorities_label(stub_session):
    assert priorities_label(stub_session.services) == (
        "SGTest_high:HIGH - SGTest_med:MEDIUM - SGTest_low:LOW")


def test_empty_report_row(config):
    report = DelayReport(config=config)
    assert report.to_row() == config.config_values() + [""]


def test_unexpected_engine_error_gets_sentinel(sp_config, caplog):
    engine = StubEngine(failures={"SGTest_med": RuntimeError("engine bug")})
    session = add_reference_network(AnalysisSession(sp_config, engine))
    session.build_network()
    with caplog.at_level("ERROR", logger="sgnetcalc"):
        report = calculate_delays(session)
    assert report.delays["SGTest_med"] == [-1.0]
    assert report.delays["SGTest_high"] == [pytest.approx(1.001)]
    assert report.delays["SGTest_low"] == [pytest.approx(1.001)]
    assert not report.cyclic_failure
    assert "engine error" in caplog.text
