"""Data types shared by the comparison and cover-sheet pipelines."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

MISSING_TEXT = "N/A"
UNKNOWN_SPEC = "Unknown"

KATAPULT = "katapult"
SPIDA = "spida"


@dataclass(frozen=True)
class PoleRecord:
    """One physical pole as reported by one source.

    Attributes:
        raw_id: Identifier as found in the source, e.g. "1234-PL56"
        normalized_id: raw_id lowercased with separators/whitespace removed
        numeric_key: Digits-only serial used to join the two sources
        specification: "<height>-<class>[ <species>]" or "Unknown"
        existing_loading: Current loading, percent (0–100+)
        final_loading: Proposed final loading, percent
        source: "katapult" or "spida"
        scid: Katapult SCID
        pl_number: Katapult PL number
        passes_final: Whether the recommended design passes (SPIDA)
    """
    raw_id: str
    normalized_id: str
    numeric_key: str
    specification: str
    existing_loading: float
    final_loading: float
    source: str
    scid: Optional[str] = None
    pl_number: Optional[str] = None
    passes_final: bool = True

    @property
    def match_key(self) -> str:
        return self.numeric_key or self.normalized_id


@dataclass
class ParsedSource:
    """Poles extracted from one document, keyed by match key."""
    source: str
    poles: dict[str, PoleRecord] = field(default_factory=dict)
    records: list[PoleRecord] = field(default_factory=list)
    duplicates: set[str] = field(default_factory=set)
    skipped: int = 0

    def add(self, pole: PoleRecord) -> bool:
        """Store *pole*; returns False when its key was already taken."""
        key = pole.match_key
        fresh = key not in self.poles
        if not fresh:
            self.duplicates.add(key)
        self.poles[key] = pole
        self.records.append(pole)
        return fresh

    def __len__(self) -> int:
        return len(self.poles)


@dataclass(frozen=True)
class ComparisonRow:
    """A matched (or one-sided) pair of pole records."""
    key: str
    scid: str
    spida_pole_number: str
    katapult_pole_number: str
    spida_spec: str
    katapult_spec: str
    spida_existing: float
    katapult_existing: float
    spida_final: float
    katapult_final: float
    in_spida: bool = True
    in_katapult: bool = True
    existing_delta: Optional[float] = None
    final_delta: Optional[float] = None
    has_issue: Optional[bool] = None

    @property
    def raw_id(self) -> str:
        """Display id: Katapult's when present, else SPIDA's."""
        return self.katapult_pole_number if self.in_katapult else self.spida_pole_number


@dataclass
class VerificationResult:
    """Pole-number verification between the two sources."""
    missing_in_spida: set[str] = field(default_factory=set)
    missing_in_katapult: set[str] = field(default_factory=set)
    formatting_issues: list[dict[str, str]] = field(default_factory=list)
    duplicates_in_katapult: set[str] = field(default_factory=set)
    duplicates_in_spida: set[str] = field(default_factory=set)

    @property
    def total_issues(self) -> int:
        return (
            len(self.missing_in_spida)
            + len(self.missing_in_katapult)
            + len(self.formatting_issues)
            + len(self.duplicates_in_katapult)
            + len(self.duplicates_in_spida)
        )


@dataclass
class ParseResult(Generic[T]):
    """Outcome of a pipeline run: data on success, one message on failure."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "ParseResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ParseResult[T]":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class Comparison:
    """Everything a comparison run produces."""
    rows: list[ComparisonRow]
    verification: VerificationResult
    threshold: float

    @property
    def issues(self) -> list[ComparisonRow]:
        return [r for r in self.rows if r.has_issue]


@dataclass(frozen=True)
class GeocodeResult:
    formatted_address: str
    street_address: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""


@dataclass
class CoverSheetPole:
    station: str
    existing: Optional[float] = None
    final: Optional[float] = None
    notes: str = ""


@dataclass
class CoverSheet:
    """Header fields and pole list for a SPIDAcalc cover sheet."""
    job_number: str
    client: str
    date: str
    location: str
    city: str
    engineer: str
    comments: str
    coordinates: str
    poles: list[CoverSheetPole] = field(default_factory=list)
    design_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "Job Number": self.job_number,
            "Client": self.client,
            "Date": self.date,
            "Location of Poles": self.location,
            "City": self.city,
            "Project Engineer": self.engineer,
            "Comments": self.comments,
        }
