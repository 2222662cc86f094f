"""fields.py – tolerant field access over loosely-schematized rows.

Both exports rename their columns/attributes from release to release, so
every logical field is looked up through an ordered list of aliases rather
than a fixed key.
"""

from __future__ import annotations
import logging
import math
import re
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

METRE_TO_FEET = 3.28084

# short keys like "id" would otherwise fuzzy-match "scid"
FUZZY_MIN_KEY = 3

# keys tried when a value arrives wrapped in a dict
_NUMERIC_SUBKEYS = ("value", "percent", "percentage", "%", "load", "loading")

# ---------------------------------------------------------------------------
# blank / wrapper helpers
# ---------------------------------------------------------------------------

def is_blank(value: Any) -> bool:
    """True for None, NaN and empty/whitespace strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def unwrap(value: Any) -> Any:
    """Katapult stores attributes as ``{"-Imported": value}`` or a one-entry
    dict keyed by a push id. Return the inner value; anything else passes."""
    if isinstance(value, dict) and value:
        if "-Imported" in value:
            return value["-Imported"]
        if len(value) == 1:
            return next(iter(value.values()))
    return value

# ---------------------------------------------------------------------------
# field accessor
# ---------------------------------------------------------------------------

def _exact(row: Mapping, candidate: str) -> list:
    return [candidate] if candidate in row else []


def _case_insensitive(row: Mapping, candidate: str) -> list:
    wanted = candidate.lower()
    return [key for key in row if str(key).lower() == wanted]


def _fuzzy(row: Mapping, candidate: str) -> list:
    wanted = candidate.lower()
    keys = []
    for key in row:
        k = str(key).strip().lower()
        if not k:
            continue
        if wanted in k or (len(k) >= FUZZY_MIN_KEY and k in wanted):
            keys.append(key)
    return keys


MATCH_TIERS = (
    ("exact", _exact),
    ("case-insensitive", _case_insensitive),
    ("fuzzy", _fuzzy),
)


def lookup(
    row: Mapping | None,
    candidates: Iterable[str],
    label: str | None = None,
    fuzzy: bool = True,
) -> Any | None:
    """Return the first non-blank value for any of *candidates* in *row*.

    Tiers are applied one after another over the whole candidate list:
    exact key, then case-insensitive key, then substring match in either
    direction. Pass fuzzy=False where a substring hit would be ambiguous.
    Returns None when nothing matches; never raises.
    """
    if not isinstance(row, Mapping) or not row:
        return None
    candidates = list(candidates)
    for tier, finder in MATCH_TIERS:
        if tier == "fuzzy" and not fuzzy:
            break
        for candidate in candidates:
            for key in finder(row, candidate):
                value = unwrap(row[key])
                if is_blank(value):
                    continue
                logger.debug(
                    "resolved %s via %s match %r -> %r",
                    label or candidate, tier, key, value,
                    extra={"field": label or candidate, "key": key, "tier": tier, "value": value},
                )
                return value
    return None


def dig(obj: Any, *path: str | int) -> Any | None:
    """Walk nested dicts/lists; None as soon as a step is missing."""
    cur = obj
    for step in path:
        if isinstance(step, int):
            if not isinstance(cur, list) or not -len(cur) <= step < len(cur):
                return None
            cur = cur[step]
        else:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(step)
        if cur is None:
            return None
    return cur

# ---------------------------------------------------------------------------
# coercion
# ---------------------------------------------------------------------------

def to_float(value: Any) -> float:
    """Best-effort float; 0.0 when the value cannot be read."""
    try:
        if is_blank(value) or isinstance(value, bool):
            return 0.0
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            cleaned = re.sub(r"[^0-9.\-]", "", value)
            return float(cleaned) if cleaned else 0.0
        if isinstance(value, dict):
            for key in _NUMERIC_SUBKEYS:
                if key in value:
                    return to_float(value[key])
            if len(value) == 1:
                return to_float(next(iter(value.values())))
    except (ValueError, TypeError):
        pass
    return 0.0


def to_percent(value: Any) -> float:
    """Loading percentage on a 0–100 scale.

    Exports are inconsistent about fractions vs. percents; anything strictly
    between 0 and 1 is taken to be a fraction.
    """
    pct = to_float(value)
    if 0 < pct < 1:
        pct *= 100
    return pct


def to_feet(raw: Any) -> int | None:
    """Convert a pole height to whole feet.

    Accepts:
        • dicts from SPIDA JSON, e.g. {"unit":"METRE","value":16.764}
        • bare numbers (SPIDA stores metres)
        • strings like "45'" (feet) or "13.7" (metres)
    """
    if is_blank(raw):
        return None

    if isinstance(raw, dict):
        unit = str(raw.get("unit", "")).lower()
        try:
            val = float(raw.get("value"))
        except (TypeError, ValueError):
            return None
        if unit.startswith("f"):
            return int(round(val))
        return int(round(val * METRE_TO_FEET))

    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return int(round(float(raw) * METRE_TO_FEET))

    s = str(raw).strip().replace("′", "'")
    if "'" in s:
        head = s.split("'")[0].strip()
        try:
            return int(round(float(head)))
        except ValueError:
            return None
    try:
        return int(round(float(s) * METRE_TO_FEET))
    except ValueError:
        return None


def to_text(value: Any) -> str:
    """String form for ids; whole floats lose their trailing '.0'."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
