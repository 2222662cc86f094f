"""Pole Recon - reconcile Katapult and SPIDAcalc pole data.

Example:
    >>> from pole_recon import run_comparison
    >>> result = run_comparison("katapult.xlsx", "spida.json", threshold=5)
    >>> if result.success:
    ...     for row in result.data.issues:
    ...         print(row.raw_id, row.existing_delta, row.final_delta)

Cover sheet:
    >>> from pole_recon import process_spida_file, header_text
    >>> sheet = process_spida_file("spida.json").data
    >>> print(header_text(sheet))
"""

import logging

from .compare import classify, compare_sources, export_report, reconcile, run_comparison
from .cover_sheet import extract_cover_sheet, header_text, pole_table_text, process_spida_file
from .fields import lookup
from .ids import extract_numeric_key, normalize
from .katapult import parse_katapult_rows, read_katapult_file
from .spida import load_spida_file, parse_spida_document
from .types import (
    Comparison,
    ComparisonRow,
    CoverSheet,
    CoverSheetPole,
    ParsedSource,
    ParseResult,
    PoleRecord,
    VerificationResult,
)

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Comparison
    "run_comparison",
    "compare_sources",
    "reconcile",
    "classify",
    "export_report",
    # Parsing
    "read_katapult_file",
    "parse_katapult_rows",
    "load_spida_file",
    "parse_spida_document",
    "lookup",
    "normalize",
    "extract_numeric_key",
    # Cover sheet
    "process_spida_file",
    "extract_cover_sheet",
    "header_text",
    "pole_table_text",
    # Types
    "Comparison",
    "ComparisonRow",
    "CoverSheet",
    "CoverSheetPole",
    "ParsedSource",
    "ParseResult",
    "PoleRecord",
    "VerificationResult",
]
