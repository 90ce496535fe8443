################################################################@
#  Command-line entry point
#
#    python -m sgnetcalc scenario.xml [--sweep] [--policy SP] ...
#
#  1. Parse the scenario
#  2. Build the network and check stability
#  3. Calculate delays (or run the full sweep)
#  4. Export <scenario>_res.xml and print it
################################################################@

import argparse
import logging
import os.path
import sys
from dataclasses import replace

from .config import SchedulingPolicy
from .engine import AnalysisMethod
from .errors import SgnetcalcError
from .io import export_results, export_table, parse_enum, parse_scenario
from .logging_config import setup_logging
from .orchestrator import calculate_delays
from .stability import calculate_loads, check_stability
from .sweep import run_full_experiment_sweep, sweep_header

logger = logging.getLogger("sgnetcalc")


def _result_filename(xml_file: str) -> str:
    root, ext = os.path.splitext(xml_file)
    return (root if ext else xml_file) + "_res.xml"


def file_to_stdout(filename: str) -> None:
    """Print the generated results file."""
    if os.path.isfile(filename):
        with open(filename, "r", encoding="utf-8") as f:
            print(f.read())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sgnetcalc",
        description="Worst-case delay bounds for prioritised smart-grid services.")
    parser.add_argument("scenario", help="scenario XML file")
    parser.add_argument("--policy", help="override the scheduling policy "
                        f"({', '.join(p.value for p in SchedulingPolicy)})")
    parser.add_argument("--analysis", help="override the analysis method "
                        f"({', '.join(m.value for m in AnalysisMethod)})")
    parser.add_argument("--sweep", action="store_true",
                        help="run every supported configuration combination")
    parser.add_argument("--export-dir", default=None,
                        help="folder for the ';'-delimited result tables")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    try:
        session = parse_scenario(args.scenario)
        overrides = {}
        if args.policy:
            overrides["scheduling_policy"] = parse_enum(SchedulingPolicy, args.policy)
        if args.analysis:
            overrides["analysis_method"] = parse_enum(AnalysisMethod, args.analysis)
        if overrides:
            session.config = replace(session.config, **overrides)

        if args.sweep:
            rows = run_full_experiment_sweep(session)
            if args.export_dir:
                export_table(rows, os.path.join(args.export_dir, "experiments"), "experiment")
            else:
                for row in rows:
                    print(";".join(row))
            return 0

        session.build_network()
        loads = calculate_loads(session.graph)
        check_stability(session.graph)
        report = calculate_delays(session)
    except (SgnetcalcError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 2

    if args.export_dir:
        export_table([sweep_header(), report.to_row()],
                     os.path.join(args.export_dir, "calcs"), "bounding")
    out_file = _result_filename(args.scenario)
    export_results(report, session, out_file, loads)
    file_to_stdout(out_file)
    return 1 if report.deadline_torn else 0


if __name__ == "__main__":
    sys.exit(main())
