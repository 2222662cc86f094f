"""compare.py – reconcile a Katapult export against a SPIDAcalc export.

Poles are joined on their numeric key; the result is one ComparisonRow per
key found in either source plus a VerificationResult listing missing,
duplicated and differently-formatted pole numbers. Rows can be turned into
a Pandas DataFrame for CSV / Excel export.
"""

from __future__ import annotations
import dataclasses
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .errors import PoleReconError
from .ids import scid_prefix
from .katapult import parse_katapult_rows, read_katapult_file
from .settings import DEFAULT_THRESHOLD, Settings, check_threshold
from .spida import load_spida_file, parse_spida_document
from .types import (
    MISSING_TEXT,
    Comparison,
    ComparisonRow,
    ParsedSource,
    ParseResult,
    PoleRecord,
    VerificationResult,
)

logger = logging.getLogger(__name__)

# export column order
EXPORT_COLUMNS = [
    "SCID #",
    "SPIDA Pole Number",
    "Katapult Pole Number",
    "SPIDA Pole Spec",
    "Katapult Pole Spec",
    "SPIDA Existing Loading %",
    "Katapult Existing Loading %",
    "SPIDA Final Loading %",
    "Katapult Final Loading %",
    "Existing Δ",
    "Final Δ",
]

# ---------------------------------------------------------------------------
# reconciliation
# ---------------------------------------------------------------------------

def _row(key: str, kat: Optional[PoleRecord], sp: Optional[PoleRecord]) -> ComparisonRow:
    scid = (kat.scid if kat else None) or scid_prefix(sp.raw_id if sp else None) or ""
    return ComparisonRow(
        key=key,
        scid=scid,
        spida_pole_number=sp.raw_id if sp else MISSING_TEXT,
        katapult_pole_number=kat.raw_id if kat else MISSING_TEXT,
        spida_spec=sp.specification if sp else MISSING_TEXT,
        katapult_spec=kat.specification if kat else MISSING_TEXT,
        spida_existing=sp.existing_loading if sp else 0.0,
        katapult_existing=kat.existing_loading if kat else 0.0,
        spida_final=sp.final_loading if sp else 0.0,
        katapult_final=kat.final_loading if kat else 0.0,
        in_spida=sp is not None,
        in_katapult=kat is not None,
    )


def reconcile(katapult: ParsedSource, spida: ParsedSource) -> Tuple[List[ComparisonRow], VerificationResult]:
    """Pair poles by match key.

    Every key from either side lands in exactly one row. Rows are sorted by
    display pole number (Katapult's, else SPIDA's).
    """
    verification = VerificationResult(
        duplicates_in_katapult=set(katapult.duplicates),
        duplicates_in_spida=set(spida.duplicates),
    )
    rows: List[ComparisonRow] = []

    for key, kat in katapult.poles.items():
        sp = spida.poles.get(key)
        if sp is None:
            verification.missing_in_spida.add(kat.raw_id)
            logger.debug("pole %s not found in SPIDAcalc", kat.raw_id, extra={"key": key})
        elif sp.raw_id != kat.raw_id:
            verification.formatting_issues.append({
                "raw_id": kat.raw_id,
                "message": (
                    f'Format mismatch: Katapult "{kat.raw_id}" vs SPIDA "{sp.raw_id}" '
                    f"(matched by numeric ID: {key})"
                ),
            })
        rows.append(_row(key, kat, sp))

    for key, sp in spida.poles.items():
        if key in katapult.poles:
            continue
        verification.missing_in_katapult.add(sp.raw_id)
        logger.debug("pole %s not found in Katapult", sp.raw_id, extra={"key": key})
        rows.append(_row(key, None, sp))

    rows.sort(key=lambda r: r.raw_id)
    logger.info(
        "reconciled %d rows: %d matched, %d Katapult only, %d SPIDA only",
        len(rows),
        sum(1 for r in rows if r.in_katapult and r.in_spida),
        len(verification.missing_in_spida),
        len(verification.missing_in_katapult),
    )
    return rows, verification

# ---------------------------------------------------------------------------
# issue classification
# ---------------------------------------------------------------------------

def classify_row(row: ComparisonRow, threshold: float = DEFAULT_THRESHOLD) -> ComparisonRow:
    existing_delta = abs(row.katapult_existing - row.spida_existing)
    final_delta = abs(row.katapult_final - row.spida_final)
    has_issue = (
        existing_delta > threshold
        or final_delta > threshold
        or row.katapult_spec != row.spida_spec
    )
    return dataclasses.replace(
        row, existing_delta=existing_delta, final_delta=final_delta, has_issue=has_issue
    )


def classify(rows: Iterable[ComparisonRow], threshold: float = DEFAULT_THRESHOLD) -> List[ComparisonRow]:
    """Return copies of *rows* with deltas and the issue flag filled in.

    A delta equal to the threshold is not an issue.
    """
    threshold = check_threshold(threshold)
    return [classify_row(row, threshold) for row in rows]


def issues(rows: Iterable[ComparisonRow]) -> List[ComparisonRow]:
    return [row for row in rows if row.has_issue]


def compare_sources(
    katapult: ParsedSource,
    spida: ParsedSource,
    threshold: float = DEFAULT_THRESHOLD,
) -> Comparison:
    rows, verification = reconcile(katapult, spida)
    rows = classify(rows, threshold)
    return Comparison(rows=rows, verification=verification, threshold=threshold)

# ---------------------------------------------------------------------------
# report
# ---------------------------------------------------------------------------

def rows_to_frame(rows: Sequence[ComparisonRow]) -> pd.DataFrame:
    """DataFrame in export column order."""
    records = [
        {
            "SCID #": row.scid,
            "SPIDA Pole Number": row.spida_pole_number,
            "Katapult Pole Number": row.katapult_pole_number,
            "SPIDA Pole Spec": row.spida_spec,
            "Katapult Pole Spec": row.katapult_spec,
            "SPIDA Existing Loading %": row.spida_existing,
            "Katapult Existing Loading %": row.katapult_existing,
            "SPIDA Final Loading %": row.spida_final,
            "Katapult Final Loading %": row.katapult_final,
            "Existing Δ": row.existing_delta,
            "Final Δ": row.final_delta,
        }
        for row in rows
    ]
    return pd.DataFrame(records, columns=EXPORT_COLUMNS)


def export_report(rows: Sequence[ComparisonRow], path: Path | str) -> Path:
    """Write *rows* to CSV, or to Excel when *path* ends in .xlsx."""
    path = Path(path)
    df = rows_to_frame(rows)
    if path.suffix.lower() == ".xlsx":
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False)
    logger.info("exported %d rows to %s", len(df), path)
    return path


def verification_text(verification: VerificationResult, limit: int = 10) -> str:
    """Human-readable summary of pole-number problems ("" when clean)."""
    if verification.total_issues == 0:
        return ""
    lines = ["POLE NUMBER VERIFICATION ISSUES"]

    def _section(title: str, items: Iterable[str]) -> None:
        items = sorted(items)
        if not items:
            return
        lines.append(f"{title} ({len(items)}): " + ", ".join(items[:limit]) + (" ..." if len(items) > limit else ""))

    _section("Poles missing in SPIDA", verification.missing_in_spida)
    _section("Poles missing in Katapult", verification.missing_in_katapult)
    _section("Duplicate Katapult poles", verification.duplicates_in_katapult)
    _section("Duplicate SPIDA poles", verification.duplicates_in_spida)
    if verification.formatting_issues:
        lines.append(f"Formatting issues ({len(verification.formatting_issues)}):")
        lines.extend(f"  {i['raw_id']}: {i['message']}" for i in verification.formatting_issues[:limit])
    return "\n".join(lines)


def summary_text(comparison: Comparison, limit: int = 10) -> str:
    flagged = comparison.issues
    lines = [
        "RESULTS SUMMARY",
        f"Total poles processed: {len(comparison.rows)}",
        f"Poles with issues: {len(flagged)}",
        f"Threshold used: {comparison.threshold:g}%",
    ]
    if flagged:
        lines.append(f"{'Pole ID':<20} {'Existing Δ':<12} {'Final Δ':<10} Spec Match")
        for row in flagged[:limit]:
            spec_match = "yes" if row.katapult_spec == row.spida_spec else "no"
            lines.append(f"{row.raw_id:<20} {row.existing_delta:<12.2f} {row.final_delta:<10.2f} {spec_match}")
    return "\n".join(lines)

# ---------------------------------------------------------------------------
# end-to-end
# ---------------------------------------------------------------------------

def run_comparison(
    katapult_path: Path | str,
    spida_path: Path | str,
    threshold: float | None = None,
    settings: Settings | None = None,
) -> ParseResult[Comparison]:
    """Read both files and compare them.

    Any whole-document failure comes back as a failed ParseResult carrying a
    single message; nothing is partially reported.
    """
    settings = settings or Settings()
    threshold = settings.threshold if threshold is None else threshold
    try:
        threshold = check_threshold(threshold)
        rows = read_katapult_file(katapult_path, settings.header_min_cells)
        katapult = parse_katapult_rows(rows, settings.pole_node_types)
        spida = parse_spida_document(load_spida_file(spida_path))
    except (PoleReconError, ValueError) as e:
        logger.error("comparison failed: %s", e)
        return ParseResult.fail(str(e))
    return ParseResult.ok(compare_sources(katapult, spida, threshold))
