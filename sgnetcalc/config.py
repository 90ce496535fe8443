"""Experiment configuration."""
import logging
from dataclasses import dataclass, fields
from enum import Enum

from .engine import AnalysisMethod, ArrivalBoundMethod, Multiplexing
from .errors import ConfigurationError
from .priorities import validate_per_priority
from .topology import AdjacencyMode

logger = logging.getLogger(__name__)


class ArrivalCurveType(Enum):
    TOKEN_BUCKET = "TokenBucket"        # bucket size = service bucket
    PEAK_ARRIVAL_RATE = "PeakArrivalRate"


class SchedulingPolicy(Enum):
    """Link scheduler for the multi-priority case; NONE disables scheduling."""
    NONE = "None"
    SP = "SP"
    WFQ = "WFQ"
    DRR = "DRR"
    WRR = "WRR"


@dataclass(frozen=True)
class ExperimentConfig:
    """One experiment setup. Use dataclasses.replace() to derive variants.

    Attributes:
      use_given_link_delay — add the edge latency given to add_edge() to the
                             simple service curve latency
      use_packetizer       — model packetization (changes curve latencies)
      propagation_delay    — per-hop propagation delay added to each bound [s]
      max_packet_size      — l_max [B]
      min_packet_size      — l_min [B], only used by WRR
      arrival_curve_type   — token bucket or peak rate
      multiplexing         — multiplexing of every created server. Only TFA
                             and SFA support FIFO; ARBITRARY is enforced
                             globally during analysis
      arrival_bound_method — arrival bounding used by the engine
      analysis_method      — tandem analysis to request
      scheduling_policy    — scheduler the service curves are derived from
      flow_weights         — WFQ / WRR weights, highest priority first
      flow_quanta          — DRR quanta, highest priority first
      field_device_marker  — substring marking field-device node names
      adjacency            — turn derivation variant
    """

    use_given_link_delay: bool = False
    use_packetizer: bool = True
    propagation_delay: float = 0.5e-6
    max_packet_size: int = 255
    min_packet_size: int = 255
    arrival_curve_type: ArrivalCurveType = ArrivalCurveType.TOKEN_BUCKET
    multiplexing: Multiplexing = Multiplexing.FIFO
    arrival_bound_method: ArrivalBoundMethod = ArrivalBoundMethod.AGGR_PBOO_CONCATENATION
    analysis_method: AnalysisMethod = AnalysisMethod.SFA
    scheduling_policy: SchedulingPolicy = SchedulingPolicy.DRR
    flow_weights: tuple[int, ...] = (1, 1, 1)
    flow_quanta: tuple[int, ...] = (255, 255, 255)
    field_device_marker: str = "F"
    adjacency: AdjacencyMode = AdjacencyMode.DIRECTED

    def __post_init__(self):
        # Lists given by callers are frozen into tuples
        object.__setattr__(self, "flow_weights", tuple(self.flow_weights))
        object.__setattr__(self, "flow_quanta", tuple(self.flow_quanta))
        validate_per_priority("flow_weights", self.flow_weights)
        validate_per_priority("flow_quanta", self.flow_quanta)
        if self.max_packet_size <= 0 or self.min_packet_size <= 0:
            raise ConfigurationError("Packet sizes must be positive")
        if self.min_packet_size > self.max_packet_size:
            raise ConfigurationError(
                f"min_packet_size ({self.min_packet_size}) exceeds "
                f"max_packet_size ({self.max_packet_size})")
        if self.propagation_delay < 0:
            raise ConfigurationError("propagation_delay must not be negative")

    def is_field_device(self, node: str) -> bool:
        return bool(self.field_device_marker) and self.field_device_marker in node

    # ---- export helpers ---- #

    @staticmethod
    def config_labels() -> list[str]:
        return [f.name for f in fields(ExperimentConfig)]

    def config_values(self) -> list[str]:
        values = []
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = "[" + ", ".join(str(v) for v in value) + "]"
            values.append(str(value))
        return values

    def log_config(self, level: int = logging.INFO) -> None:
        for label, value in zip(self.config_labels(), self.config_values()):
            logger.log(level, "%s: %s", label, value)
