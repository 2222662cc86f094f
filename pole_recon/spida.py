"""spida.py – SPIDAcalc exchange JSON → PoleRecord.

Walks leads → locations → designs. Each value with a history of schema
changes (design layer, pole spec, loading, coordinates) is read through an
ordered tuple of strategies; the first one returning a value wins, so a new
export layout means appending a strategy rather than rewriting the parser.
"""

from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from .errors import MissingFieldError, SourceFormatError
from .fields import dig, is_blank, to_feet, to_float, to_text
from .ids import extract_numeric_key, normalize
from .types import SPIDA, UNKNOWN_SPEC, ParsedSource, PoleRecord

logger = logging.getLogger(__name__)

Coord = Tuple[float, float]              # (lat, lon)

MEASURED = "measured"
RECOMMENDED = "recommended"

# ---------------------------------------------------------------------------
# loading
# ---------------------------------------------------------------------------

def loads(text: str | bytes) -> Any:
    try:
        return json.loads(text)
    except (ValueError, TypeError) as e:
        raise SourceFormatError(f"Invalid SPIDAcalc JSON: {e}") from e


def load_spida_file(path: Path | str) -> Any:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            return loads(f.read())
    except OSError as e:
        raise SourceFormatError(f"Error reading SPIDAcalc file {path.name}: {e}") from e


def iter_locations(doc: Any) -> Iterator[Tuple[int, int, dict]]:
    """Yield (lead index, location index, location) for every location.

    A bare list at the root is read as the list of leads. Raises
    MissingFieldError when there is no ``leads`` list.
    """
    if isinstance(doc, list):
        doc = {"leads": doc}
    if not isinstance(doc, dict):
        raise SourceFormatError("SPIDAcalc document must be a JSON object")
    leads = doc.get("leads")
    if not isinstance(leads, list):
        raise MissingFieldError("leads", "SPIDAcalc file")

    for lead_index, lead in enumerate(leads):
        if not isinstance(lead, dict):
            logger.warning("skipping non-dict lead at index %d", lead_index)
            continue
        locations = lead.get("locations")
        if not isinstance(locations, list):
            continue
        for loc_index, loc in enumerate(locations):
            if isinstance(loc, dict):
                yield lead_index, loc_index, loc
            else:
                logger.warning("skipping non-dict location at %d/%d", lead_index, loc_index)


def location_label(loc: dict) -> str:
    return to_text(loc.get("label"))

# ---------------------------------------------------------------------------
# design layers
# ---------------------------------------------------------------------------

def _designs(loc: dict) -> List[dict]:
    designs = loc.get("designs")
    if not isinstance(designs, list):
        return []
    return [d for d in designs if isinstance(d, dict)]


def _by_layer_type(designs: Sequence[dict], layer: str) -> Optional[dict]:
    return next((d for d in designs if str(d.get("layerType", "")).lower() == layer), None)


def _by_label(designs: Sequence[dict], layer: str) -> Optional[dict]:
    return next((d for d in designs if layer in str(d.get("label", "")).lower()), None)


DESIGN_STRATEGIES: Tuple[Callable[[Sequence[dict], str], Optional[dict]], ...] = (
    _by_layer_type,
    _by_label,
)


def find_design(loc: dict, layer: str) -> Optional[dict]:
    """The *layer* ("measured" / "recommended") design of a location."""
    designs = _designs(loc)
    for strategy in DESIGN_STRATEGIES:
        design = strategy(designs, layer)
        if design is not None:
            return design
    return None


def design_count(loc: dict) -> int:
    return len(_designs(loc))

# ---------------------------------------------------------------------------
# pole spec
# ---------------------------------------------------------------------------

def _clean_species(raw: Any) -> str:
    return " ".join(word.capitalize() for word in to_text(raw).split())


def _spec_from(block: Any) -> Optional[str]:
    if not isinstance(block, dict):
        return None
    klass = to_text(block.get("classOfPole"))
    feet = to_feet(block.get("height"))
    if not klass or feet is None:
        return None
    spec = f"{feet}-{klass}"
    species = _clean_species(block.get("species"))
    return f"{spec} {species}" if species else spec


def _spec_from_client_item(pole: dict) -> Optional[str]:
    return _spec_from(pole.get("clientItem"))


def _spec_from_pole(pole: dict) -> Optional[str]:
    return _spec_from(pole)


def _spec_from_alias(pole: dict) -> Optional[str]:
    alias = pole.get("clientItemAlias")
    if isinstance(alias, dict):
        alias = alias.get("id") or alias.get("label")
    alias = to_text(alias).replace("′", "'")
    return alias or None


SPEC_STRATEGIES: Tuple[Callable[[dict], Optional[str]], ...] = (
    _spec_from_client_item,
    _spec_from_pole,
    _spec_from_alias,
)


def build_spec(design: Optional[dict]) -> str:
    """"<height ft>-<class>[ <species>]" for the design's pole, else the
    pre-formatted alias, else "Unknown"."""
    pole = dig(design, "structure", "pole")
    if not isinstance(pole, dict):
        return UNKNOWN_SPEC
    for strategy in SPEC_STRATEGIES:
        spec = strategy(pole)
        if spec:
            return spec
    return UNKNOWN_SPEC

# ---------------------------------------------------------------------------
# loading %
# ---------------------------------------------------------------------------

def _results_from_cases(design: dict) -> List[Any]:
    cases = design.get("analysis")
    if not isinstance(cases, list):
        return []
    out: List[Any] = []
    for case in cases:
        if isinstance(case, dict) and isinstance(case.get("results"), list):
            out.extend(case["results"])
    return out


def _results_from_analysis_dict(design: dict) -> List[Any]:
    results = dig(design, "analysis", "results")
    return results if isinstance(results, list) else []


def _results_flat(design: dict) -> List[Any]:
    results = design.get("results")
    return results if isinstance(results, list) else []


RESULT_STRATEGIES: Tuple[Callable[[dict], List[Any]], ...] = (
    _results_from_cases,
    _results_from_analysis_dict,
    _results_flat,
)


def _is_pole_stress(result: Any) -> bool:
    return (
        isinstance(result, dict)
        and str(result.get("component", "")).lower() == "pole"
        and str(result.get("analysisType", "")).upper() == "STRESS"
    )


def _result_value(result: dict) -> Optional[float]:
    for raw in (result.get("actual"), dig(result, "summary", "loadingPercent")):
        if not is_blank(raw):
            return to_float(raw)
    return None


def _stress_ratio(design: dict) -> Optional[float]:
    for path in (("structure", "pole", "stressRatio"), ("structure", "stressRatio"), ("stressRatio",)):
        raw = dig(design, *path)
        if not is_blank(raw):
            return to_float(raw) * 100
    return None


def design_loading(design: Optional[dict]) -> Tuple[Optional[float], bool]:
    """(loading %, passes) for the pole stress result of *design*.

    The largest Pole/STRESS value across load cases is used. Falls back to
    the structure's stress ratio; (None, True) when nothing is found.
    """
    if not isinstance(design, dict):
        return None, True
    for strategy in RESULT_STRATEGIES:
        best: Optional[float] = None
        passes = True
        for result in strategy(design):
            if not _is_pole_stress(result):
                continue
            value = _result_value(result)
            if value is None:
                continue
            if best is None or value > best:
                best = value
                passes = result.get("passes") is not False
        if best is not None:
            logger.debug("pole stress %.2f%% via %s", best, strategy.__name__,
                         extra={"field": "loading", "strategy": strategy.__name__, "value": best})
            return best, passes

    ratio = _stress_ratio(design)
    if ratio is not None:
        logger.debug("pole stress %.2f%% via stress ratio", ratio,
                     extra={"field": "loading", "strategy": "stress_ratio", "value": ratio})
    return ratio, True

# ---------------------------------------------------------------------------
# coordinates
# ---------------------------------------------------------------------------

def _valid(lat: Any, lon: Any) -> Optional[Coord]:
    try:
        lat_f, lon_f = float(lat), float(lon)
    except (TypeError, ValueError):
        return None
    if lat_f == 0 and lon_f == 0:
        return None
    if not (-90 <= lat_f <= 90 and -180 <= lon_f <= 180):
        return None
    return lat_f, lon_f


def _geo_coords(block: Any) -> Optional[Coord]:
    """GeoJSON-style [lon, lat] pair, bare or under "coordinates"."""
    coords = block.get("coordinates") if isinstance(block, dict) else block
    if isinstance(coords, (list, tuple)) and len(coords) >= 2:
        lon, lat = coords[0], coords[1]
        return _valid(lat, lon)
    return None


def _coords_from_arrays(loc: dict) -> Optional[Coord]:
    for key in ("geographicCoordinate", "mapLocation", "coordinates"):
        c = _geo_coords(loc.get(key))
        if c:
            return c
    return None


def _coords_from_flat(loc: dict) -> Optional[Coord]:
    lat = loc.get("latitude", loc.get("lat"))
    lon = loc.get("longitude", loc.get("lon", loc.get("long")))
    return _valid(lat, lon)


def _coords_from_object(loc: dict) -> Optional[Coord]:
    for key in ("coordinate", "coordinates", "location"):
        block = loc.get(key)
        if isinstance(block, dict):
            c = _valid(block.get("latitude", block.get("lat")),
                       block.get("longitude", block.get("lon", block.get("lng"))))
            if c:
                return c
    return None


def _coords_from_gps(loc: dict) -> Optional[Coord]:
    gps = loc.get("gps")
    if isinstance(gps, dict):
        c = _valid(gps.get("lat", gps.get("latitude")), gps.get("lng", gps.get("longitude")))
        if c:
            return c
    return _valid(loc.get("gpsLat", loc.get("gpsLatitude")), loc.get("gpsLng", loc.get("gpsLongitude")))


def _coords_from_measured(loc: dict) -> Optional[Coord]:
    structure = dig(find_design(loc, MEASURED), "structure")
    if not isinstance(structure, dict):
        return None
    for key in ("poleLocation", "geographicCoordinate", "mapLocation"):
        c = _geo_coords(structure.get(key))
        if c:
            return c
    return None


COORD_STRATEGIES: Tuple[Callable[[dict], Optional[Coord]], ...] = (
    _coords_from_arrays,
    _coords_from_flat,
    _coords_from_object,
    _coords_from_gps,
    _coords_from_measured,
)


def location_coords(loc: dict) -> Optional[Coord]:
    """(lat, lon) for a location, or None."""
    for strategy in COORD_STRATEGIES:
        c = strategy(loc)
        if c:
            return c
    return None


def first_coords(doc: Any) -> Optional[Coord]:
    """Coordinates of the first location that has usable ones."""
    for _, _, loc in iter_locations(doc):
        c = location_coords(loc)
        if c:
            return c
    return None

# ---------------------------------------------------------------------------
# parsing
# ---------------------------------------------------------------------------

def parse_spida_document(doc: Any) -> ParsedSource:
    """Extract one PoleRecord per labelled location.

    Raises SourceFormatError (MissingFieldError for a document without
    leads); per-location problems only degrade to "Unknown" / 0.0.
    """
    parsed = ParsedSource(source=SPIDA)

    for lead_index, loc_index, loc in iter_locations(doc):
        label = location_label(loc)
        if not label:
            parsed.skipped += 1
            logger.warning("location %d/%d has no label, skipping", lead_index, loc_index,
                           extra={"row": loc_index, "lead": lead_index})
            continue

        normalized_id = normalize(label)
        if not normalized_id:
            parsed.skipped += 1
            logger.warning("location %d/%d: unusable label %r, skipping", lead_index, loc_index, label,
                           extra={"row": loc_index, "lead": lead_index})
            continue

        measured = find_design(loc, MEASURED)
        recommended = find_design(loc, RECOMMENDED)
        existing, _ = design_loading(measured)
        final, passes_final = design_loading(recommended)

        pole = PoleRecord(
            raw_id=label,
            normalized_id=normalized_id,
            numeric_key=extract_numeric_key(label),
            specification=build_spec(measured),
            existing_loading=existing or 0.0,
            final_loading=final or 0.0,
            source=SPIDA,
            passes_final=passes_final,
        )
        logger.debug(
            "location %d/%d: %s key=%s spec=%s existing=%.2f final=%.2f",
            lead_index, loc_index, pole.raw_id, pole.match_key, pole.specification,
            pole.existing_loading, pole.final_loading,
            extra={"row": loc_index, "lead": lead_index, "value": pole},
        )
        if not parsed.add(pole):
            logger.warning("duplicate SPIDAcalc pole %s", label, extra={"row": loc_index})

    logger.info("extracted %d SPIDAcalc poles (%d skipped)", len(parsed), parsed.skipped)
    return parsed
