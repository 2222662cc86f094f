"""
Command-line front end for the SPIDA ↔ Katapult comparer and the cover
sheet extractor.
Launch with:
    python -m pole_recon compare katapult.xlsx spida.json --export report.csv
    python -m pole_recon cover-sheet spida.json
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .compare import export_report, run_comparison, summary_text, verification_text
from .cover_sheet import header_text, pole_table_text, process_spida_file
from .geocode import NominatimGeocoder
from .settings import MAX_THRESHOLD, MIN_THRESHOLD, Settings

logger = logging.getLogger(__name__)


def _threshold(value: str) -> float:
    try:
        threshold = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value}")
    if not MIN_THRESHOLD <= threshold <= MAX_THRESHOLD:
        raise argparse.ArgumentTypeError(
            f"threshold must be between {MIN_THRESHOLD:g} and {MAX_THRESHOLD:g}"
        )
    return threshold


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pole_recon",
        description="Compare Katapult and SPIDAcalc pole data, or build a SPIDAcalc cover sheet.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="show debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    cmp_p = sub.add_parser("compare", help="compare a Katapult export with a SPIDAcalc file")
    cmp_p.add_argument("katapult_file", type=Path, help="Katapult export (.xlsx, .xls, .csv or .json)")
    cmp_p.add_argument("spida_file", type=Path, help="SPIDAcalc JSON file")
    cmp_p.add_argument("--threshold", type=_threshold, default=None,
                       help="loading difference (%%) that counts as an issue, 1-20 (default: 5)")
    cmp_p.add_argument("--export", type=Path, help="write results to a .csv or .xlsx file")
    cmp_p.add_argument("--issues-only", action="store_true", help="export only poles with issues")

    cs_p = sub.add_parser("cover-sheet", help="print cover sheet fields from a SPIDAcalc file")
    cs_p.add_argument("spida_file", type=Path, help="SPIDAcalc JSON file")
    cs_p.add_argument("--no-geocode", action="store_true", help="skip the reverse-geocoding lookup")
    return parser


def _run_compare(args: argparse.Namespace, settings: Settings) -> int:
    result = run_comparison(args.katapult_file, args.spida_file, args.threshold, settings)
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    comparison = result.data
    report = verification_text(comparison.verification)
    if report:
        print(report)
        print()
    print(summary_text(comparison))

    if args.export:
        rows = comparison.issues if args.issues_only else comparison.rows
        path = export_report(rows, args.export)
        print(f"Exported {len(rows)} rows to {path}")
    return 0


def _run_cover_sheet(args: argparse.Namespace, settings: Settings) -> int:
    geocoder = None if args.no_geocode else NominatimGeocoder.from_settings(settings)
    result = process_spida_file(args.spida_file, geocoder, settings)
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    print(header_text(result.data))
    print()
    print(pole_table_text(result.data))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.command == "compare":
        return _run_compare(args, settings)
    return _run_cover_sheet(args, settings)


if __name__ == "__main__":
    sys.exit(main())
