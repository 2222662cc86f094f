"""cover_sheet.py – cover-sheet summary from a single SPIDAcalc export.

Pulls the job header (job number, date, location, city, engineer) and one
row per pole with its existing / final loading, and renders both as text
ready to paste into the cover-sheet document.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

import pandas as pd

from .errors import MissingFieldError, PoleReconError
from .fields import dig, is_blank, to_text
from .geocode import format_coordinates
from .ids import station_label
from .settings import CLIENT_NAME, Settings
from .spida import (
    MEASURED,
    RECOMMENDED,
    design_count,
    design_loading,
    find_design,
    first_coords,
    iter_locations,
    load_spida_file,
    location_label,
)
from .types import CoverSheet, CoverSheetPole, GeocodeResult, ParseResult

logger = logging.getLogger(__name__)

Geocoder = Callable[[float, float], Optional[GeocodeResult]]

NO_COORDINATES = "No coordinates available"
NO_LOCATION = "Location information not available"

# header field paths, first non-blank wins
JOB_NUMBER_PATHS = (("label",),)
DATE_PATHS = (("date",),)
LOCATION_PATHS = (("clientData", "generalLocation"), ("generalLocation",), ("address", "street"))
CITY_PATHS = (("address", "city"), ("clientData", "city"), ("city",))
ENGINEER_PATHS = (("engineer",), ("clientData", "engineer"))

TABLE_HEADER = ("#", "Station", "Existing %", "Final %", "Description of Work")


def _first(doc: Any, paths: Sequence[Tuple[str, ...]]) -> str:
    for path in paths:
        value = dig(doc, *path)
        if not is_blank(value):
            return to_text(value)
    return ""


def format_date(raw: Any) -> str:
    """MM/DD/YYYY; epoch milliseconds and ISO strings accepted. Anything
    unparsable is returned unchanged."""
    if is_blank(raw):
        return ""
    try:
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            ts = pd.to_datetime(raw, unit="ms")
        else:
            ts = pd.to_datetime(str(raw).strip())
    except (ValueError, TypeError, OverflowError):
        logger.warning("could not parse date %r", raw)
        return to_text(raw)
    if pd.isna(ts):
        return to_text(raw)
    return ts.strftime("%m/%d/%Y")


def _remedy_notes(loc: dict) -> str:
    remedies = loc.get("remedies")
    if not isinstance(remedies, list):
        return ""
    notes = []
    for remedy in remedies:
        if isinstance(remedy, dict):
            text = to_text(remedy.get("description") or remedy.get("text"))
        else:
            text = to_text(remedy)
        if text:
            notes.append(text)
    return "; ".join(notes)


def extract_poles(doc: Any) -> Tuple[List[CoverSheetPole], int]:
    """(pole rows, number of designs) for every labelled location."""
    poles: List[CoverSheetPole] = []
    designs = 0
    for lead_index, loc_index, loc in iter_locations(doc):
        label = location_label(loc)
        if not label:
            logger.warning("location %d/%d has no label, skipping", lead_index, loc_index,
                           extra={"row": loc_index, "lead": lead_index})
            continue
        existing, _ = design_loading(find_design(loc, MEASURED))
        final, _ = design_loading(find_design(loc, RECOMMENDED))
        designs += design_count(loc)
        poles.append(CoverSheetPole(station=label, existing=existing, final=final, notes=_remedy_notes(loc)))
        logger.debug("cover sheet pole %s existing=%s final=%s", label, existing, final,
                     extra={"row": loc_index, "value": (existing, final)})
    return poles, designs


def resolve_location(
    doc: Any,
    location: str,
    city: str,
    geocoder: Geocoder | None = None,
) -> Tuple[str, str, str]:
    """Fill a blank location/city from the first pole's coordinates.

    Returns (location, city, coordinates text). The geocoder is called at
    most once and only when something is blank.
    """
    coords = first_coords(doc)
    coordinates = format_coordinates(*coords) if coords else NO_COORDINATES
    if location and city:
        return location, city, coordinates

    if coords is None:
        logger.info("no coordinates found for location lookup")
        return location or NO_LOCATION, city, coordinates

    result = geocoder(*coords) if geocoder else None
    if result is not None:
        location = location or result.formatted_address
        city = city or result.city
    location = f"{location} ({coordinates})" if location else coordinates
    return location, city, coordinates


def extract_cover_sheet(
    doc: Any,
    geocoder: Geocoder | None = None,
    client: str = CLIENT_NAME,
) -> CoverSheet:
    """Build a CoverSheet from a decoded SPIDAcalc document.

    Raises MissingFieldError when the job label or date is absent.
    """
    if not isinstance(doc, dict):
        raise MissingFieldError("label", "SPIDAcalc file")
    job_number = _first(doc, JOB_NUMBER_PATHS)
    if not job_number:
        raise MissingFieldError("label", "SPIDAcalc file")
    raw_date = _first(doc, DATE_PATHS)
    if not raw_date:
        raise MissingFieldError("date", "SPIDAcalc file")

    poles, designs = extract_poles(doc)
    unique_poles = len({p.station for p in poles})
    location, city, coordinates = resolve_location(
        doc, _first(doc, LOCATION_PATHS), _first(doc, CITY_PATHS), geocoder
    )

    sheet = CoverSheet(
        job_number=job_number,
        client=client,
        date=format_date(dig(doc, "date")),
        location=location,
        city=city,
        engineer=_first(doc, ENGINEER_PATHS),
        comments=f"{designs} PLAs on {unique_poles} poles",
        coordinates=coordinates,
        poles=poles,
        design_count=designs,
    )
    logger.info("cover sheet %s: %s", sheet.job_number, sheet.comments)
    return sheet


def process_spida_file(
    path: Path | str,
    geocoder: Geocoder | None = None,
    settings: Settings | None = None,
) -> ParseResult[CoverSheet]:
    """Load *path* and extract its cover sheet; failures become one message."""
    settings = settings or Settings()
    try:
        doc = load_spida_file(path)
        return ParseResult.ok(extract_cover_sheet(doc, geocoder, settings.client_name))
    except PoleReconError as e:
        logger.error("cover sheet failed: %s", e)
        return ParseResult.fail(str(e))

# ---------------------------------------------------------------------------
# text blocks
# ---------------------------------------------------------------------------

def format_loading(value: Optional[float]) -> str:
    return "—" if value is None else f"{value:.2f}%"


def header_text(sheet: CoverSheet) -> str:
    return "\n".join(f"**{label}:** {value}" for label, value in sheet.as_dict().items())


def pole_row_text(index: int, pole: CoverSheetPole) -> str:
    return "\t".join([
        str(index + 1),
        station_label(pole.station),
        format_loading(pole.existing),
        format_loading(pole.final),
        pole.notes,
    ])


def pole_table_text(sheet: CoverSheet) -> str:
    """Tab-separated table that pastes straight into a Word table."""
    lines = ["\t".join(TABLE_HEADER)]
    lines.extend(pole_row_text(i, pole) for i, pole in enumerate(sheet.poles))
    return "\n".join(lines)
