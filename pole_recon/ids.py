"""Pole identifier normalization and the numeric join key."""

from __future__ import annotations
import re

# Tried in order; the first group of the first match is the pole serial.
# Other two-letter prefixes only count at the start of the id or of its last
# hyphen-separated component, so a trailing "ST5" is not taken for the serial.
KEY_PATTERNS = (
    re.compile(r"PL\s*-?\s*(\d+)", re.IGNORECASE),
    re.compile(r"(?:^|-)\s*[A-Za-z]{2}\s*-?\s*(\d+)(?!.*-)"),
    re.compile(r"-\s*(\d+)[^-]*$"),
)

_SCID_PREFIX = re.compile(r"^\s*\d+\s*-")


def normalize(pole_id: str | None) -> str:
    """Lowercase, drop whitespace and anything outside [a-z0-9-]."""
    if not pole_id:
        return ""
    normalized = str(pole_id).strip().lower()
    normalized = re.sub(r"\s+", "", normalized)
    return re.sub(r"[^a-z0-9-]", "", normalized)


def _strip_zeros(digits: str) -> str:
    if not digits:
        return ""
    return digits.lstrip("0") or "0"


def extract_numeric_key(pole_id: str | None) -> str:
    """Digits-only key used to match poles across sources.

    "145-PL0461207" → "461207", "pl-56" → "56", "146-455194" → "455194".
    Without a prefix or hyphen every digit is used. Leading zeros are
    dropped; "" when the id carries no digits.
    """
    if not pole_id:
        return ""
    text = str(pole_id)
    for pattern in KEY_PATTERNS:
        m = pattern.search(text)
        if m:
            return _strip_zeros(m.group(1))
    return _strip_zeros("".join(re.findall(r"\d", text)))


def station_label(pole_id: str | None) -> str:
    """Drop a leading "<scid>-" so "12-PL4411" reads as "PL4411"."""
    if not pole_id:
        return ""
    return _SCID_PREFIX.sub("", str(pole_id), count=1).strip()


def scid_prefix(pole_id: str | None) -> str | None:
    """The SCID in a "<scid>-<pole number>" label, if it has one."""
    if not pole_id:
        return None
    head, sep, _ = str(pole_id).partition("-")
    head = head.strip()
    if sep and head.isdigit():
        return head
    return None
