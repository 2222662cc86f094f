"""katapult.py – Katapult field-survey export → PoleRecord.

The export usually arrives as a spreadsheet whose header sits on row 0 or
row 1; Katapult job JSON (``nodes`` → ``attributes``) is accepted as well and
flattened into the same row shape.
"""

from __future__ import annotations
import csv
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from .errors import SourceFormatError
from .fields import is_blank, lookup, to_percent, to_text, unwrap
from .ids import extract_numeric_key, normalize
from .settings import HEADER_MIN_CELLS, POLE_NODE_TYPES
from .types import KATAPULT, UNKNOWN_SPEC, ParsedSource, PoleRecord

logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm", ".xls"}

# ---------------------------------------------------------------------------
# historically-used column names, most likely first
# ---------------------------------------------------------------------------

NODE_TYPE_FIELDS = ["node_type", "Node Type", "NODE_TYPE"]

SCID_FIELDS = ["scid", "SCID", "scid_number", "SCID Number", "SCID #"]

POLE_NUMBER_FIELDS = [
    "PL_number", "PL Number", "pl_number", "PLNumber",
    "DLOC_number", "DLOC Number",
    "pole_number", "Pole Number", "PoleNumber",
    "pole_tag", "Pole Tag", "PoleTag",
]

SPEC_FIELDS = ["pole_spec", "Pole Spec", "pole_specification", "Pole Specification"]

HEIGHT_FIELDS = ["pole_height", "Pole Height", "height", "Height", "pole_length"]
CLASS_FIELDS = ["pole_class", "Pole Class", "class_of_pole", "class"]
SPECIES_FIELDS = ["pole_species", "Pole Species", "species", "wood_species"]

EXISTING_FIELDS = [
    "existing_capacity_%", "Existing Capacity %", "existing_capacity",
    "existing_loading", "Existing Loading %", "existing capacity percent",
]
FINAL_FIELDS = [
    "final_passing_capacity_%", "Final Passing Capacity %", "final_passing_capacity",
    "final_capacity", "final_loading", "Final Loading %",
]

SPECIES_ABBREVIATIONS = {"SP": "Southern Pine", "SPC": "Southern Pine"}

# ---------------------------------------------------------------------------
# reading
# ---------------------------------------------------------------------------

def _populated(cells: Iterable[Any]) -> int:
    return sum(1 for c in cells if not is_blank(c))


def detect_header_row(frame: pd.DataFrame, min_cells: int = HEADER_MIN_CELLS) -> int:
    """Index of the header row: 0 or 1, whichever first has *min_cells*
    populated cells (0 when neither does)."""
    for idx in (0, 1):
        if idx < len(frame) and _populated(frame.iloc[idx].tolist()) >= min_cells:
            return idx
    return 0


def rows_from_frame(frame: pd.DataFrame, min_cells: int = HEADER_MIN_CELLS) -> List[Dict[str, Any]]:
    """Turn a header-less sheet into row dicts keyed by the detected header."""
    if frame.empty:
        return []
    header_idx = detect_header_row(frame, min_cells)
    header = [
        to_text(cell) or f"column_{i}"
        for i, cell in enumerate(frame.iloc[header_idx].tolist())
    ]
    logger.debug("header detected on row %d: %s", header_idx, header)

    rows: List[Dict[str, Any]] = []
    for values in frame.iloc[header_idx + 1:].itertuples(index=False, name=None):
        if _populated(values) == 0:
            continue
        rows.append({
            col: (None if is_blank(val) else val)
            for col, val in zip(header, values)
        })
    return rows


def rows_from_katapult_json(data: Any) -> List[Dict[str, Any]]:
    """Flatten a Katapult job JSON into spreadsheet-like rows."""
    if isinstance(data, dict):
        nodes = data.get("nodes", data)
    elif isinstance(data, list):
        nodes = data
    else:
        raise SourceFormatError("Unsupported Katapult JSON structure")

    node_iter = nodes.values() if isinstance(nodes, dict) else nodes
    rows: List[Dict[str, Any]] = []
    for node in node_iter:
        if not isinstance(node, dict):
            continue
        attrs = node.get("attributes", node)
        if isinstance(attrs, dict):
            rows.append({k: unwrap(v) for k, v in attrs.items()})
    return rows


def _csv_width(path: Path) -> int:
    """Field count of the widest line; a title row above the header is
    usually a single cell, so row 0 cannot be trusted to size the frame."""
    with path.open("r", newline="", encoding="utf-8-sig") as f:
        return max((len(record) for record in csv.reader(f)), default=0)


def read_katapult_file(path: Path | str, min_cells: int = HEADER_MIN_CELLS) -> List[Dict[str, Any]]:
    """Read a Katapult export (xlsx/xls/csv/json) into row dicts."""
    path = Path(path)
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            with path.open("r", encoding="utf-8") as f:
                return rows_from_katapult_json(json.load(f))
        if suffix == ".csv":
            width = _csv_width(path)
            if not width:
                return []
            frame = pd.read_csv(
                path, header=None, names=list(range(width)), dtype=object, encoding="utf-8-sig"
            )
        elif suffix in SPREADSHEET_SUFFIXES:
            frame = pd.read_excel(path, header=None, dtype=object)
        else:
            raise SourceFormatError(f"Unsupported Katapult file type: {path.name}")
    except SourceFormatError:
        raise
    except Exception as e:  # pandas/openpyxl/xlrd raise assorted types for bad workbooks
        raise SourceFormatError(f"Error reading Katapult file {path.name}: {e}") from e

    rows = rows_from_frame(frame, min_cells)
    logger.info("read %d Katapult rows from %s", len(rows), path.name)
    return rows

# ---------------------------------------------------------------------------
# parsing
# ---------------------------------------------------------------------------

def _clean_species(raw: Any) -> str:
    species = to_text(raw)
    if not species:
        return ""
    if species.upper() in SPECIES_ABBREVIATIONS:
        return SPECIES_ABBREVIATIONS[species.upper()]
    return " ".join(word.capitalize() for word in species.split())


def _expand_abbreviations(spec: str) -> str:
    for abbr, full in SPECIES_ABBREVIATIONS.items():
        spec = re.sub(rf"\b{abbr}\b", full, spec, flags=re.IGNORECASE)
    return spec


def build_spec(row: Mapping[str, Any]) -> str:
    """Pole spec for a Katapult row: the spec column when present, else
    "<height>-<class>[ <species>]" assembled from the component columns."""
    # "pole_spec" would fuzzy-match the "pole_species" column
    direct = lookup(row, SPEC_FIELDS, "pole spec", fuzzy=False)
    if direct is not None:
        spec = to_text(direct).replace("′", "'")
        spec = re.sub(r"^(\d+)'\s*-\s*", r"\1-", spec)
        spec = re.sub(r"^(\d+)'", r"\1", spec)
        return _expand_abbreviations(spec)

    height = lookup(row, HEIGHT_FIELDS, "pole height")
    klass = lookup(row, CLASS_FIELDS, "pole class")
    species = _clean_species(lookup(row, SPECIES_FIELDS, "pole species"))

    m = re.search(r"\d+", to_text(height))
    height_value = m.group(0) if m else ""
    m = re.search(r"\w+", to_text(klass))
    class_value = m.group(0) if m else ""

    if height_value and class_value:
        spec = f"{height_value}-{class_value}"
    else:
        spec = height_value or class_value
    if species:
        spec = f"{spec} {species}" if spec else species
    return spec or UNKNOWN_SPEC


def _has_type_field(rows: Sequence[Mapping[str, Any]]) -> bool:
    return any(lookup(row, NODE_TYPE_FIELDS) is not None for row in rows)


def parse_katapult_rows(
    rows: Sequence[Mapping[str, Any]],
    pole_types: Iterable[str] = POLE_NODE_TYPES,
) -> ParsedSource:
    """Extract one PoleRecord per pole row.

    Rows without any SCID or pole number are skipped; they never abort the
    run. Poles sharing a match key are recorded as duplicates.
    """
    parsed = ParsedSource(source=KATAPULT)
    allowed = {t.lower() for t in pole_types}
    filter_types = _has_type_field(rows)
    if not filter_types:
        logger.info("no node type column found; treating every row as a pole")

    for index, row in enumerate(rows):
        if filter_types:
            node_type = to_text(lookup(row, NODE_TYPE_FIELDS)).lower()
            if node_type not in allowed:
                continue

        scid = to_text(lookup(row, SCID_FIELDS, "SCID"))
        pole_number = to_text(lookup(row, POLE_NUMBER_FIELDS, "pole number"))
        if not scid and not pole_number:
            parsed.skipped += 1
            logger.warning("row %d: no SCID or pole number, skipping", index, extra={"row": index})
            continue

        raw_id = f"{scid}-{pole_number}" if scid and pole_number else (scid or pole_number)
        normalized_id = normalize(raw_id)
        if not normalized_id:
            parsed.skipped += 1
            logger.warning("row %d: unusable pole id %r, skipping", index, raw_id, extra={"row": index})
            continue

        pole = PoleRecord(
            raw_id=raw_id,
            normalized_id=normalized_id,
            numeric_key=extract_numeric_key(pole_number or raw_id),
            specification=build_spec(row),
            existing_loading=to_percent(lookup(row, EXISTING_FIELDS, "existing loading")),
            final_loading=to_percent(lookup(row, FINAL_FIELDS, "final loading")),
            source=KATAPULT,
            scid=scid or None,
            pl_number=pole_number or None,
        )
        logger.debug(
            "row %d: %s key=%s spec=%s existing=%.2f final=%.2f",
            index, pole.raw_id, pole.match_key, pole.specification,
            pole.existing_loading, pole.final_loading,
            extra={"row": index, "value": pole},
        )
        if not parsed.add(pole):
            logger.warning("row %d: duplicate Katapult pole %s", index, raw_id, extra={"row": index})

    logger.info("extracted %d Katapult poles (%d skipped)", len(parsed), parsed.skipped)
    return parsed
