################################################################@
"""
Scenario input and result output.

Scenario XML:

    <scenario>
      <network name="grid" scheduling-policy="SP" analysis="SFA"
               multiplexing="FIFO" arrival-bound="AGGR_PBOO_CONCATENATION"
               arrival-curve="TokenBucket" packetizer="true"
               use-link-delay="false" max-packet-size="255"
               min-packet-size="255" propagation-delay="0.5e-6"
               weights="1,1,1" quanta="255,255,255" adjacency="directed"
               field-device-marker="F"/>
      <link from="F1" to="H1" bitrate="200" latency="10"/>
      <service name="SE" server="S1" bucket-size="255" bitrate="50"
               deadline="1000" priority="0">
        <route>
          <path node="F1"/> <path node="H1"/> <path node="S1"/>
        </route>
      </service>
    </scenario>

Every <network> attribute is optional and defaults to ExperimentConfig.
"""
################################################################@

import csv
import logging
import os.path
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path

from .config import ArrivalCurveType, ExperimentConfig, SchedulingPolicy
from .engine import AnalysisMethod, ArrivalBoundMethod, Multiplexing
from .errors import ConfigurationError
from .orchestrator import DelayReport
from .session import AnalysisSession
from .stability import calculate_loads
from .topology import AdjacencyMode

logger = logging.getLogger(__name__)


# ---------- attribute helpers ---------- #

def _parse_bool(raw: str) -> bool:
    lower = raw.strip().lower()
    if lower in ("true", "1", "yes"):
        return True
    if lower in ("false", "0", "no"):
        return False
    raise ConfigurationError(f"Not a boolean: {raw!r}")


def _parse_int_list(raw: str) -> tuple[int, ...]:
    return tuple(int(v) for v in raw.replace(";", ",").split(",") if v.strip())


def parse_enum(enum_cls, raw: str):
    """Match *raw* against member names or values, case-insensitively."""
    lower = raw.strip().lower()
    for member in enum_cls:
        if lower in (member.name.lower(), str(member.value).lower()):
            return member
    choices = ", ".join(m.name for m in enum_cls)
    raise ConfigurationError(f"Unknown {enum_cls.__name__} {raw!r} (choices: {choices})")


# attribute name → (config field, converter)
_NETWORK_ATTRIBUTES = {
    "use-link-delay": ("use_given_link_delay", _parse_bool),
    "packetizer": ("use_packetizer", _parse_bool),
    "propagation-delay": ("propagation_delay", float),
    "max-packet-size": ("max_packet_size", int),
    "min-packet-size": ("min_packet_size", int),
    "arrival-curve": ("arrival_curve_type", lambda v: parse_enum(ArrivalCurveType, v)),
    "multiplexing": ("multiplexing", lambda v: parse_enum(Multiplexing, v)),
    "arrival-bound": ("arrival_bound_method", lambda v: parse_enum(ArrivalBoundMethod, v)),
    "analysis": ("analysis_method", lambda v: parse_enum(AnalysisMethod, v)),
    "scheduling-policy": ("scheduling_policy", lambda v: parse_enum(SchedulingPolicy, v)),
    "weights": ("flow_weights", _parse_int_list),
    "quanta": ("flow_quanta", _parse_int_list),
    "field-device-marker": ("field_device_marker", str),
    "adjacency": ("adjacency", lambda v: parse_enum(AdjacencyMode, v)),
}


def _number(el: ET.Element, attribute: str, convert, default: str = "0"):
    """Convert a numeric attribute of *el*, ConfigurationError if malformed."""
    raw = el.get(attribute, default)
    try:
        return convert(raw)
    except ValueError:
        raise ConfigurationError(
            f"<{el.tag}> attribute {attribute}={raw!r} is not a number") from None


def _parse_config(root: ET.Element) -> ExperimentConfig:
    """Read the <network> tag into an ExperimentConfig."""
    elem = root.find("network")
    if elem is None:
        return ExperimentConfig()
    kwargs = {}
    for attribute, (name, convert) in _NETWORK_ATTRIBUTES.items():
        raw = elem.get(attribute)
        if raw is None:
            continue
        try:
            kwargs[name] = convert(raw)
        except ConfigurationError:
            raise
        except ValueError:
            raise ConfigurationError(
                f"<network> attribute {attribute}={raw!r} is malformed") from None
    return ExperimentConfig(**kwargs)


def _parse_links(root: ET.Element, session: AnalysisSession) -> None:
    """Parse every <link> tag into an edge."""
    for el in root.findall("link"):
        session.add_edge(el.get("from"), el.get("to"),
                         _number(el, "bitrate", float),
                         _number(el, "latency", float))


def _parse_services(root: ET.Element, session: AnalysisSession) -> None:
    """Parse every <service> tag with its <route> children.

    Each route lists its nodes as ordered <path node="..."/> tags.
    """
    for el in root.findall("service"):
        multipath = [[pt.get("node") for pt in route.findall("path")]
                     for route in el.findall("route")]
        session.add_service(el.get("name"), el.get("server", ""),
                            _number(el, "bucket-size", int),
                            _number(el, "bitrate", int),
                            _number(el, "deadline", float),
                            multipath,
                            _number(el, "priority", int))


def parse_scenario(xml_file: str, session: AnalysisSession | None = None) -> AnalysisSession:
    """Parse a scenario XML file into a session (a new one by default)."""
    if not os.path.isfile(xml_file):
        raise FileNotFoundError(f"Scenario file not found: {xml_file}")
    try:
        root = ET.parse(xml_file).getroot()
    except ET.ParseError as exc:
        raise ConfigurationError(f"Malformed scenario file {xml_file}: {exc}") from None

    config = _parse_config(root)
    if session is None:
        session = AnalysisSession(config)
    else:
        session.reset_all()
        session.config = config
    _parse_links(root, session)
    _parse_services(root, session)
    logger.info("Parsed %s: %d links, %d services",
                xml_file, len(session.topology), len(session.services))
    return session


################################################################@
#  Output
################################################################@

def export_table(rows: list[list[str]], folder: str | Path, prefix: str) -> Path:
    """Write *rows* as a ';'-delimited table to folder/<prefix>Log_<timestamp>.csv."""
    directory = Path(folder)
    directory.mkdir(parents=True, exist_ok=True)
    suffix = datetime.now().strftime("%Y%m%d%H%M%S")
    filename = directory / f"{prefix}Log_{suffix}.csv"
    with open(filename, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, delimiter=";")
        writer.writerows(rows)
    logger.info("Results exported to %s", filename)
    return filename


def export_results(report: DelayReport, session: AnalysisSession, filename: str,
                   loads: dict | None = None) -> None:
    """Generate an XML results file.

    *loads* defaults to the loads of the flows currently in the graph; the
    strict-priority analysis leaves none behind, so callers pass the loads
    measured right after building.

    Structure:
    <results torn="…">
        <delays>
            <service name="…" deadline="[ms]" max="[ms]" torn="…">
                <flow index="…" value="[ms]" />
            </service>
        </delays>
        <load>
            <server name="…" value="[B/s]" percent="…" />
        </load>
    </results>
    """
    root = ET.Element("results", torn=str(report.deadline_torn).lower())
    delays = ET.SubElement(root, "delays")
    deadlines = {s.name: s.deadline for s in session.services}
    for name in sorted(report.delays):
        service = ET.SubElement(
            delays, "service", name=name,
            deadline=f"{deadlines.get(name, 0.0):.2f}",
            max=f"{report.max_delays.get(name, 0.0):.3f}",
            torn=str(report.torn.get(name, False)).lower())
        for i, value in enumerate(report.delays[name]):
            ET.SubElement(service, "flow", index=str(i), value=f"{value:.3f}")

    load = ET.SubElement(root, "load")
    if loads is None:
        loads = calculate_loads(session.graph)
    for server, value in loads.items():
        rate = server.curve.rate
        pct = value / rate * 100.0 if rate > 0 else 0.0
        ET.SubElement(load, "server", name=server.label,
                      value=f"{value:.0f}", percent=f"{pct:.2f}%")

    ET.indent(root, space="\t")
    ET.ElementTree(root).write(filename, encoding="UTF-8", xml_declaration=True)
