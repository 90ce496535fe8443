"""
Caller-facing entry point.

Order of calls for a complete calculation:
  1. add_edge()                   [multiple times] — one output link each
  2. add_service()                [multiple times]
  3. build_network()              [once]
  4. calculate_delays()           → True if a deadline is torn
     or run_full_experiment_sweep()
"""
from pathlib import Path

from .config import ExperimentConfig
from .engine import NetworkCalculusEngine
from .io import export_table
from .orchestrator import DelayReport, calculate_delays
from .session import AnalysisSession
from .sweep import run_full_experiment_sweep, sweep_header


class NCEntryPoint:
    """Thin façade over an AnalysisSession.

    If *export_dir* is set, every delay calculation is written to
    export_dir/calcs and every sweep to export_dir/experiments.
    """

    def __init__(self, config: ExperimentConfig | None = None,
                 engine: NetworkCalculusEngine | None = None,
                 export_dir: str | Path | None = None):
        self.session = AnalysisSession(config, engine)
        self.export_dir = Path(export_dir) if export_dir is not None else None
        self.last_report: DelayReport | None = None

    @property
    def config(self) -> ExperimentConfig:
        return self.session.config

    @config.setter
    def config(self, value: ExperimentConfig) -> None:
        self.session.config = value

    def add_edge(self, node_from: str, node_to: str, bitrate: float, latency: float) -> None:
        """Add one unidirectional output link (bitrate [B/s], latency [s])."""
        self.session.add_edge(node_from, node_to, bitrate, latency)

    def add_service(self, name: str, origin_server: str, bucket_size: int, bitrate: int,
                    deadline_ms: float, multipath: list[list[str]],
                    priority_index: int) -> None:
        self.session.add_service(name, origin_server, bucket_size, bitrate,
                                 deadline_ms, multipath, priority_index)

    def reset_all(self) -> None:
        self.session.reset_all()
        self.last_report = None

    def build_network(self) -> None:
        self.session.build_network()

    def calculate_delays(self) -> bool:
        """Return True if one of the service deadlines is torn."""
        report = calculate_delays(self.session)
        self.last_report = report
        if self.export_dir is not None:
            rows = [sweep_header(), report.to_row()]
            export_table(rows, self.export_dir / "calcs", "bounding")
        return report.deadline_torn

    def run_full_experiment_sweep(self) -> list[list[str]]:
        rows = run_full_experiment_sweep(self.session)
        if self.export_dir is not None:
            export_table(rows, self.export_dir / "experiments", "experiment")
        return rows
