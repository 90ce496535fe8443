import csv
import logging
import os.path
import xml.etree.ElementTree as ET

import pytest

from sgnetcalc.__main__ import main
from sgnetcalc.config import SchedulingPolicy
from sgnetcalc.engine import AnalysisMethod, Multiplexing
from sgnetcalc.entrypoint import NCEntryPoint
from sgnetcalc.errors import ConfigurationError
from sgnetcalc.io import export_results, export_table, parse_enum, parse_scenario
from sgnetcalc.orchestrator import calculate_delays
from sgnetcalc.priorities import FlowPriority
from sgnetcalc.stability import calculate_loads, check_stability
from sgnetcalc.topology import AdjacencyMode

SCENARIO = """<?xml version="1.0" encoding="UTF-8"?>
<scenario>
  <network scheduling-policy="{policy}" analysis="sfa" multiplexing="FIFO"
           weights="2,1,1" adjacency="neighbor" packetizer="true"/>
  <link from="F1" to="H1" bitrate="200" latency="10"/>
  <link from="H1" to="S1" bitrate="200" latency="10"/>
  <service name="SGTest_high" server="S1" bucket-size="255" bitrate="50"
           deadline="{deadline}" priority="0">
    <route>
      <path node="F1"/>
      <path node="H1"/>
      <path node="S1"/>
    </route>
    <route>
      <path node="H1"/>
      <path node="S1"/>
    </route>
  </service>
  <service name="SGTest_low" server="S1" bucket-size="255" bitrate="50"
           deadline="{deadline}" priority="4">
    <route>
      <path node="F1"/>
      <path node="H1"/>
      <path node="S1"/>
    </route>
  </service>
</scenario>
"""


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    # main() installs handlers bound to the captured stdout
    logger = logging.getLogger("sgnetcalc")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def scenario_file(tmp_path):
    def write(policy="SP", deadline=100000):
        path = tmp_path / "grid.xml"
        path.write_text(SCENARIO.format(policy=policy, deadline=deadline), encoding="utf-8")
        return str(path)
    return write


def test_parse_scenario(scenario_file):
    session = parse_scenario(scenario_file())
    config = session.config
    assert config.scheduling_policy is SchedulingPolicy.SP
    assert config.analysis_method is AnalysisMethod.SFA
    assert config.multiplexing is Multiplexing.FIFO
    assert config.flow_weights == (2, 1, 1)
    assert config.adjacency is AdjacencyMode.NEIGHBOR
    assert [e.label for e in session.topology] == ["F1,H1", "H1,S1"]
    high, low = session.services
    assert high.multipath == [["F1", "H1", "S1"], ["H1", "S1"]]
    assert low.priority is FlowPriority.LOW


def test_missing_scenario_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_scenario(str(tmp_path / "nope.xml"))


def test_parse_enum():
    assert parse_enum(SchedulingPolicy, "wfq") is SchedulingPolicy.WFQ
    assert parse_enum(AdjacencyMode, "DIRECTED") is AdjacencyMode.DIRECTED
    with pytest.raises(ConfigurationError):
        parse_enum(SchedulingPolicy, "EDF")


def test_export_table_uses_semicolons(tmp_path):
    filename = export_table([["a", "b"], ["1", "2.500"]], tmp_path / "calcs", "bounding")
    assert filename.name.startswith("boundingLog_")
    with open(filename, newline="", encoding="utf-8") as f:
        assert list(csv.reader(f, delimiter=";")) == [["a", "b"], ["1", "2.500"]]


def test_export_results(scenario_file, tmp_path):
    session = parse_scenario(scenario_file(deadline=1000))
    session.build_network()
    loads = calculate_loads(session.graph)
    report = calculate_delays(session)
    out = tmp_path / "grid_res.xml"
    export_results(report, session, str(out), loads)

    root = ET.parse(out).getroot()
    assert root.get("torn") == "true"
    services = root.findall("delays/service")
    assert [s.get("name") for s in services] == ["SGTest_high", "SGTest_low"]
    assert len(services[0].findall("flow")) == 2
    assert services[0].get("max") == "8075.001"
    servers = {s.get("name"): s.get("percent") for s in root.findall("load/server")}
    # two high flows share H1,S1 at 200 B/s
    assert servers["H1,S1HIGH"] == "50.00%"


def test_stability_check(scenario_file, caplog):
    session = parse_scenario(scenario_file())
    session.build_network()
    assert check_stability(session.graph)
    session.add_service("SGHeavy", "S1", 255, 150, 1000, [["H1", "S1"]], 0)
    session.build_network()
    with caplog.at_level("WARNING", logger="sgnetcalc"):
        assert not check_stability(session.graph)
    assert "UNSTABLE" in caplog.text


def test_cli_writes_results(scenario_file, capsys):
    xml_file = scenario_file(deadline=100000)
    assert main([xml_file, "--log-level", "WARNING"]) == 0
    out = capsys.readouterr().out
    assert "<results" in out
    assert os.path.isfile(xml_file.replace(".xml", "_res.xml"))


def test_cli_reports_torn_deadline(scenario_file, tmp_path):
    xml_file = scenario_file(deadline=1)
    assert main([xml_file, "--policy", "WFQ", "--export-dir", str(tmp_path / "out"),
                 "--log-level", "ERROR"]) == 1
    assert list((tmp_path / "out" / "calcs").glob("boundingLog_*.csv"))


def test_cli_fails_on_bad_input(tmp_path, scenario_file):
    assert main([str(tmp_path / "missing.xml"), "--log-level", "ERROR"]) == 2
    assert main([scenario_file(), "--policy", "EDF", "--log-level", "ERROR"]) == 2


def test_entrypoint_round_trip(tmp_path):
    nc = NCEntryPoint(export_dir=tmp_path)
    nc.add_edge("F1", "H1", 200, 10)
    nc.add_edge("H1", "S1", 200, 10)
    nc.add_service("SGTest", "S1", 255, 50, 100000, [["F1", "H1", "S1"]], 0)
    nc.build_network()
    assert nc.calculate_delays() is False
    assert nc.last_report.max_delays["SGTest"] == pytest.approx(14025.001, abs=1e-6)
    assert list((tmp_path / "calcs").glob("boundingLog_*.csv"))

    nc.reset_all()
    assert nc.last_report is None
    assert len(nc.session.topology) == 0
    assert nc.session.services == []


@pytest.mark.parametrize("old, new", [
    ('<link from="F1" to="H1" bitrate="200"', '<link from="F1" to="H1" bitrate="fast"'),
    ('deadline="{deadline}" priority="0"', 'deadline="{deadline}" priority="top"'),
    ('weights="2,1,1"', 'weights="2,x,1"'),
    ('packetizer="true"', 'packetizer="true" max-packet-size="big"'),
    ('</scenario>', '</scenari'),
])
def test_malformed_scenario_is_a_configuration_error(tmp_path, old, new):
    path = tmp_path / "broken.xml"
    text = SCENARIO.replace(old, new).format(policy="SP", deadline=1000)
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        parse_scenario(str(path))
    assert main([str(path), "--log-level", "ERROR"]) == 2


def test_nan_bitrate_link_fails_the_build(tmp_path):
    path = tmp_path / "nan.xml"
    text = SCENARIO.replace('bitrate="200" latency="10"/>\n  <link from="H1"',
                            'bitrate="nan" latency="10"/>\n  <link from="H1"')
    path.write_text(text.format(policy="SP", deadline=1000), encoding="utf-8")
    assert main([str(path), "--log-level", "ERROR"]) == 2
