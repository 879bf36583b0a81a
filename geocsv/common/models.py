"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

Row = dict[str, str]

STRUCTURED_QUERY_FIELDS = ("country", "state", "city")


@dataclass(frozen=True)
class GeoQuery:
    """A free-text address or a structured country/state/city lookup, never both."""

    text: str | None = None
    country: str | None = None
    state: str | None = None
    city: str | None = None

    def __post_init__(self) -> None:
        structured = any(getattr(self, name) for name in STRUCTURED_QUERY_FIELDS)
        if self.text and structured:
            raise ValueError("GeoQuery takes either text or structured fields, not both")
        if not self.text and not structured:
            raise ValueError("GeoQuery needs text or at least one structured field")

    @property
    def is_structured(self) -> bool:
        return not self.text

    def to_params(self) -> dict[str, str]:
        if self.text:
            return {"text": self.text}
        # The service treats an empty parameter differently from an absent one.
        params = {}
        for name in STRUCTURED_QUERY_FIELDS:
            value = getattr(self, name)
            if value:
                params[name] = value
        return params


@dataclass(frozen=True)
class Candidate:
    lat: float
    lon: float
    confidence: float | None = None
    formatted: str | None = None
    properties: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class RowFailure:
    row_index: int
    error_code: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class EnrichmentResult:
    rows: list[Row] = field(default_factory=list)
    rows_in: int = 0
    enriched: int = 0
    skipped: int = 0
    failures: list[RowFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def counts(self) -> dict[str, int]:
        return {
            "rows_in": self.rows_in,
            "rows_out": len(self.rows),
            "enriched": self.enriched,
            "skipped": self.skipped,
            "failed": len(self.failures),
        }
