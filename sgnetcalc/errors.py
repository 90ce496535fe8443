"""Exception hierarchy for sgnetcalc.

Configuration and topology errors abort the current build or analysis
operation. Analysis errors are raised by an engine for a single flow and are
isolated by the orchestrator.
"""


class SgnetcalcError(Exception):
    """Base class for every error raised by this package."""


# ---------- Configuration ---------- #

class ConfigurationError(SgnetcalcError, ValueError):
    """Invalid experiment configuration (array lengths, packet sizes, ...)."""


# ---------- Topology ---------- #

class TopologyError(SgnetcalcError):
    """Malformed topology or path declaration."""


class MissingEdgeError(TopologyError):
    """A consecutive node pair of a declared path has no matching edge."""

    def __init__(self, node_from: str, node_to: str, service: str | None = None):
        self.node_from = node_from
        self.node_to = node_to
        self.service = service
        where = f" (service={service})" if service else ""
        super().__init__(f"No edge {node_from} -> {node_to}{where}")


class DegenerateEdgeError(TopologyError):
    """Edge with a non-positive bitrate; no service curve can be derived."""

    def __init__(self, node_from: str, node_to: str, bitrate: float):
        self.bitrate = bitrate
        super().__init__(
            f"Edge {node_from} -> {node_to} has degenerate bitrate {bitrate!r}")


class UnbuiltEdgeError(TopologyError):
    """Edge has no server registered for the requested priority."""


# ---------- Engine ---------- #

class GraphError(SgnetcalcError):
    """Structural misuse of a server graph (unknown server, empty path)."""


class AnalysisError(SgnetcalcError):
    """An engine could not produce a delay bound for one flow."""


class UnsupportedAnalysisError(AnalysisError):
    """Analysis method / multiplexing / arrival-bound combination is invalid."""


class UnstableServerError(AnalysisError):
    """Traffic at a server reaches its service rate; the bound is infinite."""
