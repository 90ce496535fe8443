"""sgnetcalc - network-calculus delay bounds for prioritised smart-grid services."""
from .affine import AffineEngine
from .config import ArrivalCurveType, ExperimentConfig, SchedulingPolicy
from .engine import (AnalysisConfig, AnalysisMethod, ArrivalBoundMethod, Multiplexing,
                     MultiplexingEnforcement, NetworkCalculusEngine)
from .entrypoint import NCEntryPoint
from .orchestrator import DelayReport, calculate_delays
from .priorities import FlowPriority
from .session import AnalysisSession
from .topology import AdjacencyMode

__version__ = "0.1.0"

__all__ = [
    "AdjacencyMode",
    "AffineEngine",
    "AnalysisConfig",
    "AnalysisMethod",
    "AnalysisSession",
    "ArrivalBoundMethod",
    "ArrivalCurveType",
    "DelayReport",
    "ExperimentConfig",
    "FlowPriority",
    "Multiplexing",
    "MultiplexingEnforcement",
    "NCEntryPoint",
    "NetworkCalculusEngine",
    "SchedulingPolicy",
    "calculate_delays",
]
