"""
Command-line entry point.

    mes-pipeline import FILE [FILE ...]
    mes-pipeline summary [--start-date D] [--end-date D] [--quick KIND] [...]
    mes-pipeline clear
    mes-pipeline usage
    mes-pipeline stations|models [--add NAME] [--remove NAME]

Directories given to "import" are scanned (non-recursively) for .json and
.log files, like a folder upload.
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from ..core.analysis.date_ranges import QUICK_FILTERS, quick_filter_range
from ..core.exceptions import MesPipelineError
from ..core.models.query import FilterSpec
from .service_factory import Services, create_services

logger = logging.getLogger(__name__)


def expand_paths(paths: List[str]) -> List[Path]:
    """Files as given; directories replaced by their .json/.log files (sorted)."""
    expanded = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            expanded.extend(sorted(
                p for p in path.iterdir()
                if p.is_file() and p.suffix.lower() in (".json", ".log")
            ))
        else:
            expanded.append(path)
    return expanded


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mes-pipeline", description="MES test-log import and dashboard tool")
    parser.add_argument("--database", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--fallback", type=Path, default=None, help="Fallback store JSON path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="Import JSON and LOG files")
    p_import.add_argument("paths", nargs="+", help="Files or folders")

    p_summary = sub.add_parser("summary", help="Print dashboard figures")
    p_summary.add_argument("--quick", choices=QUICK_FILTERS, default=None, help="Quick date filter")
    p_summary.add_argument("--start-date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    p_summary.add_argument("--end-date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    p_summary.add_argument("--result", default=None, help="PASS, FAIL or all")
    p_summary.add_argument("--serial", default=None, help="Serial number substring")
    p_summary.add_argument("--work-order", default=None, help="Work order substring")
    p_summary.add_argument("--station", default=None, help="Exact station")
    p_summary.add_argument("--model", default=None, help="Exact model")

    sub.add_parser("clear", help="Delete all imported data (keeps stations and models)")
    sub.add_parser("usage", help="Show storage usage")

    for name in ("stations", "models"):
        p_vocab = sub.add_parser(name, help=f"List or edit configured {name}")
        p_vocab.add_argument("--add", default=None)
        p_vocab.add_argument("--remove", default=None)

    return parser


def filter_spec_from_args(args: argparse.Namespace) -> FilterSpec:
    start_date, end_date = args.start_date, args.end_date
    if args.quick:
        date_range = quick_filter_range(args.quick, date.today())
        start_date, end_date = date_range.start_date, date_range.end_date
    return FilterSpec(
        start_date=start_date,
        end_date=end_date,
        result=args.result,
        serial_number=args.serial,
        work_order=args.work_order,
        station=args.station,
        model=args.model,
    )


def run_import(services: Services, args: argparse.Namespace) -> int:
    def progress(percent: float, name: str) -> None:
        logger.info(f"[{percent:5.1f}%] {name}")

    report = services.import_service.import_paths(expand_paths(args.paths), progress=progress)
    print(
        f"JSON files: {report.json_count}  LOG files: {report.log_count}  "
        f"paired: {report.paired_count}  records: {report.total_records}"
    )
    for diagnostic in report.warnings:
        print(f"  {diagnostic.level.value.upper()}: {diagnostic.source}: {diagnostic.message}")
    return 0


def run_summary(services: Services, args: argparse.Namespace) -> int:
    snapshot = services.dashboard_service.build_snapshot(filter_spec_from_args(args))
    kpi = snapshot.kpi
    print(f"Tests: {kpi.total}  PASS: {kpi.passed}  FAIL: {kpi.failed}  pass rate: {kpi.pass_rate:.1f}%")
    print(
        f"Devices: {kpi.device_count}  passed: {kpi.passed_device_count}  "
        f"yield: {kpi.production_yield_rate:.1f}%  retests: {kpi.retest_count}"
    )
    print("Stations:")
    for row in snapshot.station_stats:
        print(f"  {row.station:<16} {row.total:>6} {row.pass_rate:>6.1f}%")
    print("Models:")
    for row in snapshot.model_stats:
        print(f"  {row.model:<16} {row.total:>6} {row.pass_rate:>6.1f}%")
    print("Top failure reasons:")
    for reason in snapshot.failure_reasons:
        print(f"  {reason.reason:<24} {reason.count:>4}/{reason.total:<4} {reason.failure_rate:>6.1f}%")
    print(f"Retest groups: {len(snapshot.retest_groups)}")
    return 0


def run_clear(services: Services, args: argparse.Namespace) -> int:
    result = services.storage.clear_all()
    print(f"Cleared ({result.target.value} store, {result.count} fallback keys removed)")
    return 0


def run_usage(services: Services, args: argparse.Namespace) -> int:
    usage = services.storage.estimate_usage()
    print(f"Used: {usage.used / 1024:.1f} KB  Available: {usage.available / 1024 / 1024:.1f} MB")
    return 0


def run_vocabulary(services: Services, args: argparse.Namespace) -> int:
    vocab = services.vocabulary_service
    if args.command == "stations":
        add, remove, get = vocab.add_station, vocab.remove_station, vocab.get_stations
    else:
        add, remove, get = vocab.add_model, vocab.remove_model, vocab.get_models
    if args.add:
        add(args.add)
    if args.remove:
        remove(args.remove)
    for name in get():
        print(name)
    return 0


COMMANDS = {
    "import": run_import,
    "summary": run_summary,
    "clear": run_clear,
    "usage": run_usage,
    "stations": run_vocabulary,
    "models": run_vocabulary,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the command-line tool.

    Returns:
        Process exit code (1 when a pipeline error stopped the command)
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s: %(name)s: %(message)s'
    )

    services = create_services(args.database, args.fallback)
    try:
        return COMMANDS[args.command](services, args)
    except MesPipelineError as e:
        logger.error(str(e))
        return 1
    finally:
        if services.connection is not None:
            services.connection.close()


if __name__ == "__main__":
    sys.exit(main())
